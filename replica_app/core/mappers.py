"""Mapping raw Jira issue JSON into remote records, comments, and histories."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pandas as pd

from .config import FIELD_IDS, SEVERITY_ALIASES
from .models import (
    AttachmentModel,
    ChangeHistoryModel,
    CommentModel,
    HistoryChangeModel,
    RecordModel,
    RemoteRecord,
)
from .tiers import TierLevels


def parse_dt(val):
    if not val:
        return None
    ts = pd.to_datetime(val, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def map_severity(priority: str | None) -> str | None:
    if not priority:
        return None
    cleaned = " ".join(str(priority).split()).casefold()
    if cleaned in SEVERITY_ALIASES:
        return SEVERITY_ALIASES[cleaned]
    for alias, severity in SEVERITY_ALIASES.items():
        if cleaned.startswith(alias):
            return severity
    return str(priority).strip()


def _name(value: Any, attr: str = "name") -> str | None:
    if isinstance(value, dict):
        return value.get(attr)
    return None


def _first_name(values: Any) -> str | None:
    if isinstance(values, list) and values:
        return _name(values[0])
    return None


def _text(value: Any) -> str | None:
    """Flatten Atlassian document format (REST v3) bodies to plain text."""
    if value is None or isinstance(value, str):
        return value
    parts: list[str] = []

    def walk(node: Any):
        if isinstance(node, dict):
            if node.get("type") == "text" and isinstance(node.get("text"), str):
                parts.append(node["text"])
            for child in node.get("content", []) or []:
                walk(child)
            if node.get("type") == "paragraph":
                parts.append("\n")
        elif isinstance(node, list):
            for item in node:
                walk(item)

    walk(value)
    return "".join(parts).strip()


def map_record(raw: dict[str, Any]) -> RemoteRecord:
    fields = raw.get("fields", {}) or {}
    raw_id = raw.get("id")
    return RemoteRecord(
        id=int(raw_id) if raw_id is not None else None,
        key=raw.get("key"),
        summary=fields.get("summary"),
        assignee=_name(fields.get("assignee"), "displayName"),
        status=_name(fields.get("status")),
        severity=map_severity(_name(fields.get("priority"))),
        target_milestone=_first_name(fields.get(FIELD_IDS["target_milestone"])),
        component=_first_name(fields.get("components")),
        operating_system=_text(fields.get(FIELD_IDS["operating_system"])),
        created=parse_dt(fields.get("created")),
    )


def map_attachment(raw: dict[str, Any]) -> AttachmentModel:
    mime = raw.get("mimeType")
    return AttachmentModel(
        file_name=raw.get("filename"),
        description=raw.get("description"),
        content_type=mime,
        attacher=_name(raw.get("author"), "displayName"),
        created=parse_dt(raw.get("created")),
        last_changed=parse_dt(raw.get("updated") or raw.get("created")),
        is_patch=bool(mime and ("patch" in mime or "diff" in mime)),
    )


def map_comment(raw: dict[str, Any], attachment: AttachmentModel | None = None) -> CommentModel:
    return CommentModel(
        author=_name(raw.get("author"), "displayName"),
        created=parse_dt(raw.get("created")),
        body=_text(raw.get("body")),
        # Restricted visibility is Jira's notion of a private comment
        is_private=bool(raw.get("visibility") or raw.get("jsdPublic") is False),
        attachment=attachment,
    )


def map_history(record_id: int, raw: dict[str, Any]) -> list[ChangeHistoryModel]:
    histories_raw = (raw.get("changelog") or {}).get("histories", []) or []
    out = []
    for h in histories_raw:
        changes = [
            HistoryChangeModel(
                field=item.get("field"),
                removed=item.get("fromString"),
                added=item.get("toString"),
            )
            for item in h.get("items") or []
        ]
        out.append(
            ChangeHistoryModel(
                record_id=record_id,
                author=_name(h.get("author"), "displayName"),
                created=parse_dt(h.get("created")),
                changes=changes,
            )
        )
    return out


def record_url(base_url: str, record: RecordModel) -> str:
    return f"{base_url.rstrip('/')}/browse/{record.key or record.id}"


def records_to_dataframe(
    records: Iterable[RecordModel], levels: TierLevels | None = None
) -> pd.DataFrame:
    rows = []
    for r in records:
        tier = levels.tier_of(r.local_priority) if levels is not None else None
        rows.append(
            {
                "id": r.id,
                "key": r.key,
                "local_priority": r.local_priority,
                "tier": tier.name.title() if tier is not None else "None",
                "summary": r.summary,
                "assignee": r.assignee or "Unassigned",
                "status": r.status,
                "severity": r.severity or "None",
                "auto_priority": r.auto_priority,
                "target_milestone": r.target_milestone,
                "component": r.component,
                "operating_system": r.operating_system,
                "created": r.created,
                "is_new": r.is_new,
                "requires_refresh": r.requires_refresh,
                "tags": ", ".join(r.tags),
                "comments_count": len(r.comments),
            }
        )
    df = pd.DataFrame(rows)
    if "created" in df.columns:
        df["created"] = pd.to_datetime(df["created"], utc=True, errors="coerce")
    return df
