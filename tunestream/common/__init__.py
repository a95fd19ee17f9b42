"""Shared infrastructure (logging, formatting)."""
