"""dockmetrics - Docker container and host metrics collector."""

__version__ = "1.0.0"
