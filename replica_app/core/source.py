"""Interface the sync service expects from a remote record source."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from .models import ChangeHistoryModel, CommentModel, RemoteRecord


class RemoteRecordSource(Protocol):
    def fetch_records(self, ids: Sequence[int]) -> list[RemoteRecord]: ...

    def search_product(
        self,
        product: str,
        status: str,
        severity: str,
        changed_since: datetime | None,
    ) -> list[RemoteRecord]: ...

    def fetch_comments(self, ids: Sequence[int]) -> dict[int, list[CommentModel]]: ...

    def fetch_history(self, ids: Sequence[int]) -> list[ChangeHistoryModel]: ...
