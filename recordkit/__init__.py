"""Model layer for SQLAlchemy with calculations and virtual foreign keys."""

__version__ = "0.1.0"
