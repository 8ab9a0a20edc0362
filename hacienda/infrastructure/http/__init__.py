"""HTTP adapters for the Hacienda REST API."""
