"""
Infrastructure Package
======================

Provides abstraction layers for the services the marketplace talks to outside the database.

Modules:
    - events: Event bus abstraction (Redis pub/sub, in-memory)
    - observability: OpenTelemetry tracing setup
    - container: Wires domain services to their infrastructure

This package enables:
    - Easy testing with in-memory implementations
    - Switching backends through settings without code changes
"""
