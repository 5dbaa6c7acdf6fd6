"""Storage locations."""
