"""Domain models (value objects and wire shapes)."""
