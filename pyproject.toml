[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "prismusers"
version = "1.0.0"
description = "Multi-tenant user management HTTP service with JWT-protected REST endpoints"
requires-python = ">=3.10"
keywords = ["users", "rest", "api", "multi-tenant", "flask", "jwt", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]
dependencies = [
    "flask",
    "bcrypt",
    "pyjwt",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
prism-user-service = "prismusers.server:main"

[tool.hatch.build.targets.wheel]
packages = ["prismusers"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
