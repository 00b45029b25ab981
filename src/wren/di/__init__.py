"""Scoped dependency injection."""
