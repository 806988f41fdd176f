"""Coffee Date Chronicles: café visit scrapbook service."""

__version__ = "1.0.0"
