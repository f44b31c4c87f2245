"""Exceptions raised at the registry client boundary."""

from enum import Enum
from typing import Any

__all__ = [
    "RegistryError",
    "RegistryErrorKind",
]


class RegistryErrorKind(Enum):
    """Classification of registry failures.

    The reaper decides what to do with a failure based on its kind, never
    on the concrete exception raised by the underlying SDK.
    """

    LISTING_FAILURE = "listing failure"
    DELETE_FAILURE = "delete failure"
    NOT_FOUND = "not found"
    IDENTITY_FAILURE = "identity failure"


class RegistryError(Exception):
    """A registry operation failed.

    Parameters
    ----------
    message
        Human-readable description of the failure.
    kind
        Classification of the failure.
    repository
        Repository the operation was acting on, if any.
    failures
        Per-image failures reported by a batch deletion, if any.
    """

    def __init__(
        self,
        message: str,
        kind: RegistryErrorKind,
        *,
        repository: str | None = None,
        failures: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.repository = repository
        self.failures = failures or []

    def __str__(self) -> str:
        msg = super().__str__()
        if self.repository:
            msg = f"{self.repository}: {msg}"
        return msg
