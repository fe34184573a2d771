"""Reorder engine: manual moves of a selection within the ordered store.

Both operations capture, before anything is removed, the last record of each
tier that is not part of the selection. Those anchor records survive the
move, so after reindexing their new positions give the new tier levels.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .errors import ConflictingSelectionError, InvalidPositionError
from .models import RecordModel, Tier
from .sequence import OrderedStore
from .tiers import TierLevels, resolve_anchors

logger = logging.getLogger(__name__)


def _resolve_selection(store: OrderedStore, selection: Iterable[int]) -> list[RecordModel]:
    """Selected records in sequence order, duplicates dropped."""
    records = {rid: store.require(rid) for rid in selection}
    return sorted(records.values(), key=lambda r: store.index_of(r.id))


def _detach(store: OrderedStore, records: list[RecordModel]) -> None:
    for record in records:
        record.is_new = False
        store.remove(record.id)


def set_order_near(
    store: OrderedStore,
    levels: TierLevels,
    position: int,
    selection: Iterable[int],
) -> TierLevels:
    """Move ``selection`` as a block right before the record at ``position``.

    ``position == len(store)`` drops the block at the end. Raises
    :class:`ConflictingSelectionError` when the target record is itself
    selected; nothing is modified in that case.
    """
    if not 0 <= position <= len(store):
        raise InvalidPositionError(position, len(store))
    records = _resolve_selection(store, selection)
    if not records:
        return levels
    excluded = {r.id for r in records}
    target = store.at(position) if position < len(store) else None
    if target is not None and target.id in excluded:
        raise ConflictingSelectionError(f"Drop target {target.id} is part of the selection")

    anchors = resolve_anchors(store, levels, excluded)
    _detach(store, records)
    at = store.index_of(target.id) if target is not None else len(store)
    for offset, record in enumerate(records):
        store.insert(at + offset, record)
    store.reindex()
    logger.debug("Moved %d records to position %d", len(records), at)
    return TierLevels.from_anchors(anchors)


def _top_of_tier(store: OrderedStore, anchors: list[RecordModel | None], tier: Tier) -> int:
    """Position just after the nearest resolved anchor above ``tier``, else 0."""
    for above in reversed(range(tier)):
        anchor = anchors[above]
        if anchor is not None:
            return store.index_of(anchor.id) + 1
    return 0


def set_tier(
    store: OrderedStore,
    levels: TierLevels,
    tier: Tier,
    at_top: bool,
    selection: Iterable[int],
) -> TierLevels:
    """Move ``selection`` to the top or bottom of ``tier``.

    Each record of a top move is placed at the very top of the tier, so the
    last selected record ends up first. A bottom move stacks the selection
    in order below the tier's last record. When the target tier has no
    anchor left (it was empty or held only selected records), a bottom move
    falls back to the top-of-tier position.
    """
    records = _resolve_selection(store, selection)
    if not records:
        return levels
    excluded = {r.id for r in records}
    anchors = resolve_anchors(store, levels, excluded)
    _detach(store, records)

    for record in records:
        anchor = anchors[tier]
        if at_top or anchor is None:
            at = _top_of_tier(store, anchors, tier)
        else:
            at = store.index_of(anchor.id) + 1
        store.insert(at, record)
        if not at_top:
            anchors[tier] = record
    store.reindex()
    logger.debug("Moved %d records to %s tier (top=%s)", len(records), tier.name, at_top)
    return TierLevels.from_anchors(anchors)
