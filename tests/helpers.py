"""Shared builders for replica tests."""

from __future__ import annotations

from replica_app.core.models import RecordModel, RemoteRecord


def remote(rid: int | None, severity: str = "Normal", **kwargs) -> RemoteRecord:
    kwargs.setdefault("summary", f"Record {rid}")
    return RemoteRecord(id=rid, severity=severity, **kwargs)


def record(rid: int, severity: str = "Normal", is_new: bool = False) -> RecordModel:
    return RecordModel(id=rid, summary=f"Record {rid}", severity=severity, is_new=is_new)


def ids(store) -> list[int]:
    return [r.id for r in store]


def assert_reindexed(store) -> None:
    for position, r in enumerate(store):
        assert r.local_priority == position
