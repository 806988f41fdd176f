"""Core infrastructure: configuration, database, cache, errors."""
