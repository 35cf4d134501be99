"""Command line control for the TimeFlip2 activity tracking cube."""

__version__ = "0.1.0"
