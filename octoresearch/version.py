"""Version information for octoresearch."""

__version__ = "0.3.0"
