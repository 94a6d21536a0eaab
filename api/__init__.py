"""Vehicle protection quote platform API."""

__version__ = "0.1.0"
