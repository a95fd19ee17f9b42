"""tunestream - song query resolution, caching and audio streaming service."""

__version__ = "0.1.0"
