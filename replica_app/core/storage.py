"""JSON persistence of replicas and the index of configured servers.

Files are written to a temporary sibling and renamed over the target so a
crash never leaves a half-written replica behind.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any

from .config import SETTINGS, ServerSettings
from .mappers import parse_dt
from .models import AttachmentModel, CommentModel, RecordModel, TagModel
from .replica import Replica
from .tiers import TierLevels

logger = logging.getLogger(__name__)


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _write_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    os.replace(tmp, path)


# ------------------ Records ------------------
def comment_to_dict(comment: CommentModel) -> dict[str, Any]:
    attachment = None
    if comment.attachment is not None:
        attachment = asdict(comment.attachment)
        attachment["created"] = _iso(comment.attachment.created)
        attachment["last_changed"] = _iso(comment.attachment.last_changed)
    return {
        "author": comment.author,
        "created": _iso(comment.created),
        "body": comment.body,
        "is_private": comment.is_private,
        "attachment": attachment,
    }


def comment_from_dict(data: dict[str, Any]) -> CommentModel:
    attachment = None
    if data.get("attachment"):
        raw = dict(data["attachment"])
        raw["created"] = parse_dt(raw.get("created"))
        raw["last_changed"] = parse_dt(raw.get("last_changed"))
        attachment = AttachmentModel(**raw)
    return CommentModel(
        author=data.get("author"),
        created=parse_dt(data.get("created")),
        body=data.get("body"),
        is_private=bool(data.get("is_private")),
        attachment=attachment,
    )


def record_to_dict(record: RecordModel) -> dict[str, Any]:
    return {
        "id": record.id,
        "key": record.key,
        "summary": record.summary,
        "assignee": record.assignee,
        "status": record.status,
        "severity": record.severity,
        "target_milestone": record.target_milestone,
        "component": record.component,
        "operating_system": record.operating_system,
        "created": _iso(record.created),
        "is_new": record.is_new,
        "requires_refresh": record.requires_refresh,
        "tags": list(record.tags),
        "comments": [comment_to_dict(c) for c in record.comments],
    }


def record_from_dict(data: dict[str, Any]) -> RecordModel:
    return RecordModel(
        id=int(data["id"]),
        key=data.get("key"),
        summary=data.get("summary"),
        assignee=data.get("assignee"),
        status=data.get("status"),
        severity=data.get("severity"),
        target_milestone=data.get("target_milestone"),
        component=data.get("component"),
        operating_system=data.get("operating_system"),
        created=parse_dt(data.get("created")),
        is_new=bool(data.get("is_new")),
        requires_refresh=bool(data.get("requires_refresh")),
        tags=list(dict.fromkeys(data.get("tags") or [])),
        comments=[comment_from_dict(c) for c in data.get("comments") or []],
    )


# ------------------ Replica ------------------
def replica_to_dict(replica: Replica) -> dict[str, Any]:
    # Order is carried by list position; local_priority is rebuilt on load.
    state = replica.export_state()
    return {
        "levels": list(state.levels.as_tuple()),
        "last_update": _iso(state.last_update),
        "tags": [{"name": t.name, "color": list(t.color)} for t in state.tags],
        "records": [record_to_dict(r) for r in state.records],
    }


def replica_from_dict(data: dict[str, Any]) -> Replica:
    levels = data.get("levels")
    tags = data.get("tags")
    return Replica(
        records=[record_from_dict(r) for r in data.get("records") or []],
        levels=TierLevels(*levels) if levels else None,
        tags=[TagModel(t["name"], tuple(t["color"])) for t in tags] if tags is not None else None,
        last_update=parse_dt(data.get("last_update")),
    )


def save_replica(replica: Replica, path: Path) -> None:
    _write_atomic(Path(path), replica_to_dict(replica))
    logger.debug("Saved replica to %s", path)


def load_replica(path: Path) -> Replica:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Replica data not found: {path}")
    return replica_from_dict(json.loads(path.read_text(encoding="utf-8")))


# ------------------ Server Index ------------------
class ServerRegistry:
    """Index of configured servers; each server's replica lives in ``<id>.json``."""

    def __init__(self, data_dir: Path | None = None, index_file: str | None = None):
        self.data_dir = Path(data_dir or SETTINGS.data_dir)
        self.index_path = self.data_dir / (index_file or SETTINGS.index_file)
        self._servers: dict[int, ServerSettings] | None = None

    @property
    def servers(self) -> dict[int, ServerSettings]:
        if self._servers is None:
            self._servers = self._load_index()
        return self._servers

    def _load_index(self) -> dict[int, ServerSettings]:
        if not self.index_path.exists():
            return {}
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Server index failed to load: %s", exc)
            return {}
        return {int(entry["id"]): ServerSettings(**entry["server"]) for entry in data}

    def _save_index(self) -> None:
        payload = [{"id": sid, "server": asdict(s)} for sid, s in sorted(self.servers.items())]
        _write_atomic(self.index_path, payload)

    def replica_path(self, server_id: int) -> Path:
        return self.data_dir / f"{server_id}.json"

    def add_server(self, settings: ServerSettings, replica: Replica | None = None) -> int:
        server_id = max(self.servers, default=0) + 1
        self.servers[server_id] = settings
        save_replica(replica or Replica(), self.replica_path(server_id))
        self._save_index()
        return server_id

    def update_server(self, server_id: int, settings: ServerSettings) -> None:
        if server_id not in self.servers:
            raise KeyError(server_id)
        self.servers[server_id] = settings
        self._save_index()

    def remove_server(self, server_id: int) -> None:
        self.servers.pop(server_id, None)
        self.replica_path(server_id).unlink(missing_ok=True)
        self._save_index()

    def load(self, server_id: int) -> Replica:
        return load_replica(self.replica_path(server_id))

    def save(self, server_id: int, replica: Replica) -> None:
        if server_id not in self.servers:
            raise KeyError(server_id)
        save_replica(replica, self.replica_path(server_id))
