"""
Errors raised by a reconciliation pass.

Every failure that leaves the reconciler is a ``ReconcileError``; the work
queue hands it to the retry policy and never lets it reach the event loop.
"""
from typing import Optional


class ReconcileError(Exception):
    """Base class for all reconciliation failures."""


class ClusterApiError(ReconcileError):
    """The cluster API rejected a request or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @classmethod
    def from_exception(cls, exc: Exception) -> "ClusterApiError":
        status = getattr(exc, "status", None)
        reason = getattr(exc, "reason", None) or str(exc)
        return cls(f"Kube Api Error: {reason}", status=status)


class SerializationError(ReconcileError):
    """A resource document could not be parsed."""

    def __init__(self, message: str):
        super().__init__(f"SerializationError: {message}")


class MissingObjectKey(ReconcileError):
    """A required field is absent from an otherwise valid resource."""

    def __init__(self, key: str):
        super().__init__(f"MissingObjectKey: {key}")
        self.key = key
