from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class RemoteStoreError(Exception):
    """A remote proposal store operation failed.

    The sync engine treats every subclass as recoverable: loads fall back to
    the local cache and writes are retried by the next debounce cycle.
    """

    message: str
    operation: str | None = None
    proposal_id: str | None = None
    retryable: bool = False
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class RemoteNotFound(RemoteStoreError):
    pass


@dataclass(slots=True)
class RemoteUnavailable(RemoteStoreError):
    pass
