"""Shared helpers: errors, pagination, formatting."""
