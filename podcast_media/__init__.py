"""Media asset storage service for podcast hosting."""

__version__ = "1.0.0"
