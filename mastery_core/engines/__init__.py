"""Domain engines."""
