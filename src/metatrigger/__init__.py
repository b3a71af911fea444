"""MetaTrigger — dynamic mapping injection and trigger helpers for SQLAlchemy entities."""

__version__ = "0.1.0"
