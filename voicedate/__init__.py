"""Feed matching, compatibility and messaging service for the voice dating app."""

__version__ = "0.1.0"
