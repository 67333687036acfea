"""Error types for the control-plane store.

Not-found lookups return ``None`` and malformed inputs are absorbed by the
normalization kernel, so the only failures that reach callers are backend
failures of the relational store.
"""

from __future__ import annotations


class ControlPlaneStoreError(Exception):
    """Base error for all control-plane store exceptions."""


class StorageBackendError(ControlPlaneStoreError):
    """Raised when the relational backend fails to execute an operation.

    The driver exception is chained as ``__cause__``; the operation name and the
    driver's diagnostic text are kept on the instance for callers that want to
    report them separately.
    """

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage backend failed during '{operation}': {detail}")
