"""Database infrastructure (SQLAlchemy declarative base, engine, sessions)."""
