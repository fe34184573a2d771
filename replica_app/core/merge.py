"""Merge engine: fold a batch of remote records into the ordered store.

The merge never touches the live store. It stages every change into a copy
(its own record objects, a new order list, new tier levels) and hands the
staged state back; the caller swaps it in only when the whole batch
succeeded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace

from .config import MILESTONE_HISTORY_FIELDS
from .errors import MergeAborted
from .models import ChangeHistoryModel, CommentModel, MergeResult, RecordModel, RemoteRecord
from .sequence import OrderedStore
from .tiers import TierLevels

logger = logging.getLogger(__name__)

DESCRIPTIVE_FIELDS: Sequence[str] = (
    "summary",
    "assignee",
    "status",
    "severity",
    "target_milestone",
    "component",
    "operating_system",
    "created",
    "key",
)


@dataclass(slots=True)
class StagedMerge:
    store: OrderedStore
    levels: TierLevels
    result: MergeResult


def apply_history(
    batch: Sequence[RemoteRecord], history: Iterable[ChangeHistoryModel]
) -> list[RemoteRecord]:
    """Return the batch with target-milestone corrections from ``history`` applied.

    Later changes win; records without history are returned unchanged.
    """
    corrections: dict[int, str | None] = {}
    for entry in history:
        for change in entry.changes:
            if change.field in MILESTONE_HISTORY_FIELDS:
                corrections[entry.record_id] = change.added
    if not corrections:
        return list(batch)
    out: list[RemoteRecord] = []
    for remote in batch:
        if remote.id in corrections:
            remote = replace(remote, target_milestone=corrections[remote.id])
        out.append(remote)
    return out


def _apply_remote(
    record: RecordModel, remote: RemoteRecord, comments: list[CommentModel] | None
) -> None:
    for name in DESCRIPTIVE_FIELDS:
        setattr(record, name, getattr(remote, name))
    record.is_new = True
    if comments is not None:
        record.comments = list(comments)
        record.requires_refresh = False
    else:
        record.requires_refresh = True


def stage_merge(
    store: OrderedStore,
    levels: TierLevels,
    batch: Sequence[RemoteRecord],
    comments: Mapping[int, list[CommentModel]] | None = None,
    history: Iterable[ChangeHistoryModel] | None = None,
) -> StagedMerge:
    """Compute the store and levels that result from merging ``batch``.

    New records are inserted as one block right after the leading run of
    records already flagged new, then that block alone is sorted by
    severity. Modified records keep their position. An empty store counts
    as an initial sync: history is ignored and the tier levels are reset to
    their defaults instead of being shifted.
    """
    initial = len(store) == 0
    staged = store.copy()
    result = MergeResult()
    insert_at = staged.new_prefix_length()
    fresh: list[RecordModel] = []

    if history is not None and not initial:
        batch = apply_history(batch, history)

    for remote in batch:
        if remote.id is None:
            raise ValueError("Remote record without id")
        coms = comments.get(remote.id) if comments is not None else None
        existing = staged.get(remote.id)
        if existing is None:
            record = RecordModel(id=remote.id)
            _apply_remote(record, remote, coms)
            staged.insert(insert_at + len(fresh), record)
            fresh.append(record)
            result.new_count += 1
            logger.debug("Merge: new record %s", remote.id)
        else:
            _apply_remote(existing, remote, coms)
            result.modified_count += 1

    staged.sort_range(insert_at, insert_at + len(fresh), key=lambda r: r.auto_priority)
    staged.reindex()

    if initial:
        new_levels = TierLevels.defaults()
    else:
        new_levels = levels.shifted(result.new_count)
    return StagedMerge(store=staged, levels=new_levels, result=result)


def merge_batch(
    store: OrderedStore,
    levels: TierLevels,
    batch: Sequence[RemoteRecord],
    comments: Mapping[int, list[CommentModel]] | None = None,
    history: Iterable[ChangeHistoryModel] | None = None,
) -> StagedMerge:
    """Stage a merge, converting any failure into :class:`MergeAborted`."""
    try:
        return stage_merge(store, levels, batch, comments=comments, history=history)
    except Exception as exc:
        logger.warning("Merge of %d records aborted: %s", len(batch), exc)
        raise MergeAborted(f"Merge aborted: {exc}") from exc
