"""Core infrastructure: configuration, cache connectors, errors, monitoring."""
