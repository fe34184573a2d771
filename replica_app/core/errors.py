"""Exception types raised by the replica engines and the sync service."""

from __future__ import annotations


class ReplicaError(Exception):
    """Base class for every replica failure."""


class NotFoundError(ReplicaError, KeyError):
    def __init__(self, record_id: int):
        super().__init__(record_id)
        self.record_id = record_id

    def __str__(self) -> str:
        return f"Record {self.record_id} not found"


class InvalidPositionError(ReplicaError, IndexError):
    def __init__(self, position: int, length: int):
        super().__init__(f"Position {position} outside [0, {length}]")
        self.position = position
        self.length = length


class ConflictingSelectionError(ReplicaError):
    """The drop target is part of the selection being moved."""


class RemoteFetchFailed(ReplicaError, RuntimeError):
    """A remote fetch failed; ``processed`` fetch groups completed before it did."""

    def __init__(self, message: str, *, processed: int = 0, partial: list | None = None):
        super().__init__(message)
        self.processed = processed
        self.partial = partial or []


class MergeAborted(ReplicaError, RuntimeError):
    """A merge raised; the replica keeps its pre-merge state."""

    def __init__(self, message: str):
        super().__init__(message)
        self.processed = 0
