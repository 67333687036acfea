"""Multi-tenant control-plane storage layer.

Persists agent definitions, execution targets, budget policies and usage, an
append-only audit log and model API secrets. Every repository exists as an
in-memory and as an async SQLAlchemy implementation with identical semantics.
"""

__version__ = "0.1.0"
