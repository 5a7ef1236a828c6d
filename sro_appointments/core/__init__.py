"""Persistence layer: SQLAlchemy models, sessions and repositories."""
