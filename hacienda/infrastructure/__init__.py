"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the client to the outside world (identity provider, REST API,
configuration files, logging) by implementing the interfaces defined in
the domain layer.
"""
