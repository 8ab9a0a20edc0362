"""Domain Layer: value objects, ports and events of the invoicing client."""
