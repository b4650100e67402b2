"""
Database Module

Provides:
- SQLAlchemy models, one table per store namespace
- Engine, session factory and schema creation
"""

__all__ = [
    "models",
    "session",
]
