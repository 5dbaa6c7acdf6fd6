"""skillforge - skill catalog with startup reconciliation."""

__version__ = "0.1.0"
