"""Core runtime modules."""
