"""Build artifact resolution, caching and CI artifact transfer."""

__version__ = "0.1.0"
