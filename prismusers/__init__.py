"""Multi-tenant user management HTTP service backed by SQLite with JWT authentication."""

__version__ = "1.0.0"