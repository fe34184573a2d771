"""Replica: the locked unit of record store, ordered sequence, and tier levels."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime

from .config import DEFAULT_TAGS, UNKNOWN_TAG_COLOR
from .errors import ConflictingSelectionError
from .merge import merge_batch
from .models import (
    ChangeHistoryModel,
    CommentModel,
    MergeResult,
    RecordModel,
    RemoteRecord,
    TagModel,
    Tier,
)
from .reorder import set_order_near, set_tier
from .sequence import OrderedStore
from .tiers import TierLevels


@dataclass(slots=True)
class ReplicaState:
    levels: TierLevels
    tags: list[TagModel]
    records: list[RecordModel]
    last_update: datetime | None


class Replica:
    """Local, user-ordered copy of the records of one remote product.

    Every read and write goes through one lock, so reindexing and tier
    recomputation always see a consistent sequence. Remote fetching happens
    elsewhere; only the final merge takes the lock.
    """

    def __init__(
        self,
        records: Iterable[RecordModel] = (),
        levels: TierLevels | None = None,
        tags: Iterable[TagModel] | None = None,
        last_update: datetime | None = None,
    ):
        self._lock = threading.RLock()
        self._store = OrderedStore(records)
        self._levels = levels or TierLevels.defaults()
        if tags is None:
            tags = [TagModel(name, color) for name, color in DEFAULT_TAGS]
        self._tags: list[TagModel] = list(tags)
        self._last_update = last_update
        self._logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    @property
    def is_initial(self) -> bool:
        """True until the first record has been merged."""
        with self._lock:
            return len(self._store) == 0

    @property
    def levels(self) -> TierLevels:
        with self._lock:
            return TierLevels(*self._levels.as_tuple())

    @property
    def last_update(self) -> datetime | None:
        """Time of the last successful sync."""
        with self._lock:
            return self._last_update

    @last_update.setter
    def last_update(self, value: datetime | None) -> None:
        with self._lock:
            self._last_update = value

    # ------------------ Reads ------------------
    def snapshot(self) -> list[RecordModel]:
        """Copies of every record in priority order."""
        with self._lock:
            return [deepcopy(r) for r in self._store]

    def export_state(self) -> ReplicaState:
        """Levels, tags, record copies and sync time taken as one consistent read."""
        with self._lock:
            return ReplicaState(
                levels=TierLevels(*self._levels.as_tuple()),
                tags=[TagModel(t.name, t.color) for t in self._tags],
                records=[deepcopy(r) for r in self._store],
                last_update=self._last_update,
            )

    def get(self, record_id: int) -> RecordModel:
        with self._lock:
            return deepcopy(self._store.require(record_id))

    def ids(self) -> list[int]:
        with self._lock:
            return self._store.ids()

    def tier_of(self, record_id: int) -> Tier | None:
        with self._lock:
            return self._levels.tier_of(self._store.index_of(record_id))

    # ------------------ Merge ------------------
    def merge(
        self,
        batch: Sequence[RemoteRecord],
        comments: Mapping[int, list[CommentModel]] | None = None,
        history: Iterable[ChangeHistoryModel] | None = None,
    ) -> MergeResult:
        """Fold ``batch`` in atomically; raises MergeAborted leaving state intact."""
        with self._lock:
            staged = merge_batch(self._store, self._levels, batch, comments=comments, history=history)
            self._store = staged.store
            self._levels = staged.levels
        self._logger.debug(
            "Merged batch (%d added, %d modified)",
            staged.result.new_count,
            staged.result.modified_count,
        )
        return staged.result

    # ------------------ Reorder ------------------
    def set_order_near(self, target_id: int | None, selection: Iterable[int]) -> bool:
        """Drop ``selection`` right before ``target_id`` (``None`` drops at the end).

        Returns False when the target is part of the selection, which is
        ignored.
        """
        with self._lock:
            position = len(self._store) if target_id is None else self._store.index_of(target_id)
            return self.set_order_at(position, selection)

    def set_order_at(self, position: int, selection: Iterable[int]) -> bool:
        with self._lock:
            try:
                self._levels = set_order_near(self._store, self._levels, position, selection)
            except ConflictingSelectionError as exc:
                self._logger.debug("Ignoring drop: %s", exc)
                return False
            return True

    def set_tier(self, tier: Tier, at_top: bool, selection: Iterable[int]) -> None:
        with self._lock:
            self._levels = set_tier(self._store, self._levels, tier, at_top, selection)

    # ------------------ Tags ------------------
    @property
    def tags(self) -> list[TagModel]:
        with self._lock:
            return list(self._tags)

    def define_tag(self, name: str, color: tuple[int, int, int]) -> None:
        with self._lock:
            for tag in self._tags:
                if tag.name == name:
                    tag.color = color
                    return
            self._tags.append(TagModel(name, color))

    def delete_tag(self, name: str) -> None:
        with self._lock:
            self._tags = [t for t in self._tags if t.name != name]

    def tag_color(self, name: str) -> tuple[int, int, int]:
        with self._lock:
            for tag in self._tags:
                if tag.name == name:
                    return tag.color
            return UNKNOWN_TAG_COLOR

    def add_tag(self, record_id: int, tag: str) -> None:
        with self._lock:
            self._store.require(record_id).add_tag(tag)

    def remove_tag(self, record_id: int, tag: str) -> None:
        with self._lock:
            self._store.require(record_id).remove_tag(tag)

    def clear_tags(self, record_id: int) -> None:
        with self._lock:
            self._store.require(record_id).clear_tags()
