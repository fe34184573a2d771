"""Tier boundary bookkeeping for the High / Medium / Low priority bands."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from .config import DEFAULT_TIER_LEVELS, NO_RECORD
from .models import RecordModel, Tier
from .sequence import OrderedStore


@dataclass(slots=True)
class TierLevels:
    """Last position belonging to each tier, or ``NO_RECORD`` when empty."""

    high: int = DEFAULT_TIER_LEVELS[0]
    medium: int = DEFAULT_TIER_LEVELS[1]
    low: int = DEFAULT_TIER_LEVELS[2]

    @classmethod
    def defaults(cls) -> TierLevels:
        return cls(*DEFAULT_TIER_LEVELS)

    def get(self, tier: Tier) -> int:
        return (self.high, self.medium, self.low)[tier]

    def set(self, tier: Tier, level: int) -> None:
        if tier is Tier.HIGH:
            self.high = level
        elif tier is Tier.MEDIUM:
            self.medium = level
        else:
            self.low = level

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.high, self.medium, self.low)

    def shifted(self, count: int) -> TierLevels:
        return TierLevels(self.high + count, self.medium + count, self.low + count)

    def clamp(self) -> None:
        """Tiers cannot invert: Medium >= High and Low >= Medium."""
        if self.medium < self.high:
            self.medium = self.high
        if self.low < self.medium:
            self.low = self.medium

    def tier_of(self, position: int) -> Tier | None:
        for tier in Tier:
            if position <= self.get(tier):
                return tier
        return None

    @classmethod
    def from_anchors(cls, anchors: list[RecordModel | None]) -> TierLevels:
        levels = cls(*(a.local_priority if a is not None else NO_RECORD for a in anchors))
        levels.clamp()
        return levels


def find_previous_not_included(
    store: OrderedStore, position: int, excluded: Collection[int]
) -> RecordModel | None:
    """Walk back from ``position`` to the first record whose id is not excluded.

    Levels may point past the end of the sequence (defaults after a small
    initial sync), so the walk starts at the last existing position.
    """
    pos = min(position, len(store) - 1)
    while pos >= 0 and store.at(pos).id in excluded:
        pos -= 1
    return store.at(pos) if pos >= 0 else None


def resolve_anchors(
    store: OrderedStore, levels: TierLevels, excluded: Collection[int]
) -> list[RecordModel | None]:
    return [find_previous_not_included(store, levels.get(tier), excluded) for tier in Tier]
