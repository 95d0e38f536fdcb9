"""A small JSON web service for users and their notes, backed by SQLite."""

__version__ = "0.1.0"
__all__ = ["__version__"]