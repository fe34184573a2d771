"""Domain data models for replicated records, comments, and change histories."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum

from .config import SEVERITIES


class Tier(IntEnum):
    HIGH = 0
    MEDIUM = 1
    LOW = 2


@dataclass(slots=True)
class AttachmentModel:
    file_name: str | None
    description: str | None = None
    content_type: str | None = None
    attacher: str | None = None
    created: datetime | None = None
    last_changed: datetime | None = None
    is_private: bool = False
    is_obsolete: bool = False
    is_url: bool = False
    is_patch: bool = False


@dataclass(frozen=True, slots=True)
class CommentModel:
    author: str | None
    created: datetime | None
    body: str | None
    is_private: bool = False
    attachment: AttachmentModel | None = None


@dataclass(slots=True)
class HistoryChangeModel:
    field: str | None
    removed: str | None = None
    added: str | None = None


@dataclass(slots=True)
class ChangeHistoryModel:
    record_id: int
    author: str | None = None
    created: datetime | None = None
    changes: list[HistoryChangeModel] = field(default_factory=list)


@dataclass(slots=True)
class RemoteRecord:
    """A record as returned by the remote source, before it is merged.

    ``id`` is None when the payload carried none; the merge rejects such a batch.
    """

    id: int | None
    summary: str | None = None
    assignee: str | None = None
    status: str | None = None
    severity: str | None = None
    target_milestone: str | None = None
    component: str | None = None
    operating_system: str | None = None
    created: datetime | None = None
    key: str | None = None


@dataclass(slots=True)
class RecordModel:
    id: int
    summary: str | None = None
    assignee: str | None = None
    status: str | None = None
    severity: str | None = None
    target_milestone: str | None = None
    component: str | None = None
    operating_system: str | None = None
    created: datetime | None = None
    key: str | None = None
    is_new: bool = False
    requires_refresh: bool = False
    tags: list[str] = field(default_factory=list)
    comments: list[CommentModel] = field(default_factory=list)

    # Maintained by OrderedStore.reindex
    local_priority: int = -1

    @property
    def auto_priority(self) -> int:
        """Rank of the severity; unknown severities rank after every known one."""
        try:
            return SEVERITIES.index(self.severity)
        except ValueError:
            return len(SEVERITIES)

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def remove_tag(self, tag: str) -> None:
        if tag in self.tags:
            self.tags.remove(tag)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def clear_tags(self) -> None:
        self.tags.clear()


@dataclass(slots=True)
class TagModel:
    name: str
    color: tuple[int, int, int]


@dataclass(slots=True)
class MergeResult:
    new_count: int = 0
    modified_count: int = 0
