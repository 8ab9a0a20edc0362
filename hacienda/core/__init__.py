"""Core Layer: application services and the client facade.

Orchestrates the domain and infrastructure pieces into the operations a
caller uses: authenticate, submit, poll and query documents.
"""
