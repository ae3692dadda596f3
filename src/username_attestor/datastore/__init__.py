"""Async SQLAlchemy datastore."""
