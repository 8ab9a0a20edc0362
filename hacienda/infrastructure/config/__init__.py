"""Configuration loading and environment descriptors."""
