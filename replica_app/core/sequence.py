"""Ordered record store: id lookup and positional priority in one structure.

Records live in an arena keyed by their stable remote id; the order is a
separate list of ids. Position in that list is the only representation of
priority, mirrored onto each record's ``local_priority`` by :meth:`reindex`.
Not thread-safe; :class:`replica_app.core.replica.Replica` serializes access.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import replace

from .errors import InvalidPositionError, NotFoundError
from .models import RecordModel


class OrderedStore:
    def __init__(self, records: Iterable[RecordModel] = ()):
        self._records: dict[int, RecordModel] = {}
        self._order: list[int] = []
        for record in records:
            self.insert(len(self._order), record)
        self.reindex()

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[RecordModel]:
        return (self._records[rid] for rid in self._order)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def copy(self) -> OrderedStore:
        """Copy with its own record objects, so edits never leak back."""
        clone = OrderedStore()
        clone._records = {
            rid: replace(r, tags=list(r.tags), comments=list(r.comments))
            for rid, r in self._records.items()
        }
        clone._order = list(self._order)
        return clone

    # ------------------ Lookup ------------------
    def get(self, record_id: int) -> RecordModel | None:
        return self._records.get(record_id)

    def require(self, record_id: int) -> RecordModel:
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(record_id)
        return record

    def at(self, position: int) -> RecordModel:
        if not 0 <= position < len(self._order):
            raise InvalidPositionError(position, len(self._order))
        return self._records[self._order[position]]

    def index_of(self, record_id: int) -> int:
        try:
            return self._order.index(record_id)
        except ValueError:
            raise NotFoundError(record_id) from None

    def ids(self) -> list[int]:
        return list(self._order)

    # ------------------ Structural edits ------------------
    def insert(self, position: int, record: RecordModel) -> None:
        if not 0 <= position <= len(self._order):
            raise InvalidPositionError(position, len(self._order))
        if record.id in self._records:
            raise ValueError(f"Record {record.id} already present")
        self._records[record.id] = record
        self._order.insert(position, record.id)

    def remove(self, record_id: int) -> RecordModel:
        record = self._records.pop(record_id, None)
        if record is None:
            raise NotFoundError(record_id)
        self._order.remove(record_id)
        return record

    def new_prefix_length(self) -> int:
        """Length of the leading run of records still flagged as new."""
        count = 0
        for rid in self._order:
            if not self._records[rid].is_new:
                break
            count += 1
        return count

    def sort_range(self, start: int, stop: int, key) -> None:
        """Stable sort of ``order[start:stop]`` by ``key(record)``."""
        window = self._order[start:stop]
        window.sort(key=lambda rid: key(self._records[rid]))
        self._order[start:stop] = window

    def reindex(self) -> None:
        for index, rid in enumerate(self._order):
            self._records[rid].local_priority = index
