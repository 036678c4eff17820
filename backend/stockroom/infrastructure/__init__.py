"""Infrastructure Layer — database, storage, encryption and logging adapters.

Invariants:
    - Adapters implement the Protocols in core/repository_protocols.py
    - Low-level exceptions are mapped to StockroomError subclasses at this layer
"""
