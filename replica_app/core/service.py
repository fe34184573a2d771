"""SyncService: fetches remote records outside the replica lock and merges them."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime

import pytz

from .config import (
    FETCH_MAX_WORKERS,
    INCREMENTAL_SYNC_STATUSES,
    INITIAL_SYNC_STATUSES,
    SEVERITIES,
    TIMEZONE,
)
from .errors import RemoteFetchFailed
from .models import ChangeHistoryModel, CommentModel, RemoteRecord
from .replica import Replica
from .source import RemoteRecordSource

ProgressCallback = Callable[[str, int | None, int | None], None]


@dataclass(slots=True)
class SyncReport:
    new_count: int
    modified_count: int

    @property
    def message(self) -> str:
        return f"Record list updated ({self.new_count} added, {self.modified_count} modified)"


class SyncService:
    def __init__(
        self,
        replica: Replica,
        source: RemoteRecordSource,
        product: str,
        *,
        max_workers: int = FETCH_MAX_WORKERS,
    ):
        self.replica = replica
        self.source = source
        self.product = product
        self.max_workers = max_workers
        self._tz = pytz.timezone(TIMEZONE)
        self._logger = logging.getLogger(__name__)

    # ------------------ Sync Methods ------------------
    def update(self, *, progress: ProgressCallback | None = None) -> SyncReport:
        """Pull every record of the product changed since the last sync.

        The first sync only asks for open statuses. The sync time is taken
        before fetching and recorded only when the merge succeeded, so a
        failed sync is retried from the same point.
        """
        started = datetime.now(self._tz)
        initial = self.replica.is_initial
        statuses = INITIAL_SYNC_STATUSES if initial else INCREMENTAL_SYNC_STATUSES
        records = self.fetch_product(
            statuses, SEVERITIES, self.replica.last_update, progress=progress
        )
        report = self._merge(records, initial=initial, progress=progress)
        self.replica.last_update = started
        return report

    def update_records(
        self, ids: Sequence[int], *, progress: ProgressCallback | None = None
    ) -> SyncReport:
        """Re-fetch the given records by id and merge them."""
        if progress:
            progress("Updating records from server", None, None)
        try:
            records = self.source.fetch_records(list(ids))
        except RemoteFetchFailed:
            raise
        except Exception as exc:
            raise RemoteFetchFailed(f"Update failed: {exc}") from exc
        return self._merge(records, initial=self.replica.is_initial, progress=progress)

    # ------------------ Fetch Fan-out ------------------
    def fetch_product(
        self,
        statuses: Sequence[str],
        severities: Sequence[str],
        changed_since: datetime | None,
        *,
        progress: ProgressCallback | None = None,
    ) -> list[RemoteRecord]:
        """Run one search per status x severity on a bounded pool.

        Results are de-duplicated by id, keeping combination order. If any
        search fails the whole fetch fails, carrying the records gathered
        by the searches that did complete.
        """
        combos = [(st, sv) for st in statuses for sv in severities]
        results: dict[tuple[str, str], list[RemoteRecord]] = {}
        errors: list[tuple[tuple[str, str], Exception]] = []
        total = len(combos)
        if progress:
            progress("Getting record data", 0, total)

        def _task(combo: tuple[str, str]) -> list[RemoteRecord]:
            status, severity = combo
            return self.source.search_product(self.product, status, severity, changed_since)

        completed = 0
        with ThreadPoolExecutor(max_workers=max(1, self.max_workers)) as pool:
            futures = {pool.submit(_task, combo): combo for combo in combos}
            for fut in as_completed(futures):
                combo = futures[fut]
                try:
                    results[combo] = fut.result()
                except Exception as exc:
                    self._logger.warning("Query %s / %s failed: %s", combo[0], combo[1], exc)
                    errors.append((combo, exc))
                finally:
                    completed += 1
                    if progress:
                        progress("Getting record data", completed, total)

        by_id: dict[int, RemoteRecord] = {}
        for combo in combos:
            for record in results.get(combo, []):
                by_id[record.id] = record
        if errors:
            (status, severity), exc = errors[0]
            raise RemoteFetchFailed(
                f"Query {status} / {severity} failed: {exc}",
                processed=len(results),
                partial=list(by_id.values()),
            ) from exc
        return list(by_id.values())

    def fetch_details(
        self, ids: Sequence[int]
    ) -> tuple[dict[int, list[CommentModel]] | None, list[ChangeHistoryModel]]:
        """Comments and change history for ``ids``.

        Comment failures are tolerated (records get flagged for refresh);
        history failures are not.
        """
        comments: dict[int, list[CommentModel]] | None
        try:
            comments = self.source.fetch_comments(list(ids))
        except Exception as exc:
            self._logger.warning("Fetching comments for %d records failed: %s", len(ids), exc)
            comments = None
        try:
            history = self.source.fetch_history(list(ids))
        except RemoteFetchFailed:
            raise
        except Exception as exc:
            raise RemoteFetchFailed(f"Fetching history failed: {exc}") from exc
        return comments, history

    # ------------------ Internal Helpers ------------------
    def _merge(
        self,
        records: list[RemoteRecord],
        *,
        initial: bool,
        progress: ProgressCallback | None = None,
    ) -> SyncReport:
        comments = None
        history = None
        if not initial and records:
            if progress:
                progress("Loading comments and history", None, None)
            comments, history = self.fetch_details([r.id for r in records])
        if progress:
            progress("Merging records", None, None)
        result = self.replica.merge(records, comments=comments, history=history)
        report = SyncReport(result.new_count, result.modified_count)
        self._logger.info("%s: %s", self.product, report.message)
        if progress:
            progress(report.message, None, None)
        return report
