"""In-memory scenario state, knowledge bases, validation and metrics for a constellation network simulator."""

__version__ = "0.1.0"