"""Jira-backed remote record source (REST v3 + enhanced search pagination)."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import pytz
from jira import JIRA, JIRAError

from .config import (
    FETCH_PAGE_SIZE,
    JIRA_FETCH_FIELDS,
    SEVERITY_QUERY_PRIORITIES,
    STATUS_ALIASES,
    TIMEZONE,
)
from .errors import RemoteFetchFailed
from .mappers import map_attachment, map_comment, map_history, map_record
from .models import AttachmentModel, ChangeHistoryModel, CommentModel, RemoteRecord

logger = logging.getLogger(__name__)


class JiraRecordSource:
    def __init__(self, server: str, email: str, token: str):
        self.server = server.rstrip("/")
        self.client = JIRA(
            basic_auth=(email, token), options={"server": self.server, "rest_api_version": "3"}
        )
        self._tz = pytz.timezone(TIMEZONE)

    # ------------------ Search ------------------
    def search_raw(
        self,
        jql: str,
        fields: list[str] | None = None,
        expand: list[str] | None = None,
        page_size: int = FETCH_PAGE_SIZE,
    ) -> list[dict[str, Any]]:
        session = getattr(self.client, "_session", None)
        if session is None:
            raise RemoteFetchFailed("JIRA session unavailable")
        url = f"{self.server}/rest/api/3/search/jql"
        params = {"jql": jql, "maxResults": page_size}
        if fields:
            params["fields"] = ",".join(fields)
        if expand:
            params["expand"] = ",".join(expand)
        out: list[dict[str, Any]] = []
        token = None
        while True:
            qp = dict(params)
            if token:
                qp["nextPageToken"] = token
            resp = session.get(url, params=qp)
            if resp.status_code >= 400:
                raise RemoteFetchFailed(
                    f"Search failed {resp.status_code}: {resp.text[:200]}", partial=out
                )
            data = resp.json()
            out.extend(data.get("issues", []))
            token = data.get("nextPageToken")
            if not token or data.get("isLast") is True:
                break
        return out

    def issue_raw(self, issue_id: int, fields: str | None = None, expand: str | None = None) -> dict:
        try:
            issue = self.client.issue(str(issue_id), fields=fields, expand=expand)
        except JIRAError as exc:  # pragma: no cover - network error path
            raise RemoteFetchFailed(f"Failed to fetch issue {issue_id}: {exc}") from exc
        if hasattr(issue, "raw"):
            return issue.raw
        if isinstance(issue, dict):
            return issue
        raise RemoteFetchFailed(f"Unexpected issue payload type for {issue_id}: {type(issue)!r}")

    # ------------------ RemoteRecordSource ------------------
    def fetch_records(self, ids: Sequence[int]) -> list[RemoteRecord]:
        if not ids:
            return []
        jql = f"id in ({', '.join(str(i) for i in ids)})"
        return [map_record(r) for r in self.search_raw(jql, fields=JIRA_FETCH_FIELDS)]

    def status_names(self, status: str) -> list[str]:
        """Jira status names that fall under a sync status."""
        return [name.title() for name, alias in STATUS_ALIASES.items() if alias == status] or [status]

    def product_jql(
        self, product: str, status: str, severity: str, changed_since: datetime | None
    ) -> str:
        statuses = ", ".join(f'"{s}"' for s in self.status_names(status))
        priorities = ", ".join(f'"{p}"' for p in SEVERITY_QUERY_PRIORITIES.get(severity, (severity,)))
        jql = f'project = "{product}" AND status in ({statuses}) AND priority in ({priorities})'
        if changed_since is not None:
            local = (
                changed_since.astimezone(self._tz)
                if changed_since.tzinfo
                else self._tz.localize(changed_since)
            )
            jql += f" AND updated >= '{local.strftime('%Y-%m-%d %H:%M')}'"
        return jql

    def search_product(
        self,
        product: str,
        status: str,
        severity: str,
        changed_since: datetime | None,
    ) -> list[RemoteRecord]:
        jql = self.product_jql(product, status, severity, changed_since)
        logger.debug("Querying %s / %s: %s", status, severity, jql)
        return [map_record(r) for r in self.search_raw(jql, fields=JIRA_FETCH_FIELDS)]

    def fetch_comments(self, ids: Sequence[int]) -> dict[int, list[CommentModel]]:
        out: dict[int, list[CommentModel]] = {}
        for issue_id in ids:
            raw = self.issue_raw(issue_id, fields="comment,attachment")
            fields = raw.get("fields", {}) or {}
            attachments = [map_attachment(a) for a in fields.get("attachment", []) or []]
            comments = (fields.get("comment") or {}).get("comments", []) or []
            out[int(issue_id)] = [
                map_comment(c, _attachment_for(c, attachments)) for c in comments
            ]
        return out

    def fetch_history(self, ids: Sequence[int]) -> list[ChangeHistoryModel]:
        out: list[ChangeHistoryModel] = []
        for issue_id in ids:
            raw = self.issue_raw(issue_id, fields="summary", expand="changelog")
            out.extend(map_history(int(issue_id), raw))
        return out


def _attachment_for(comment: dict[str, Any], attachments: list[AttachmentModel]) -> AttachmentModel | None:
    """Attachment whose file name the comment body refers to, if any."""
    if not attachments:
        return None
    body = json.dumps(comment.get("body"))
    for attachment in attachments:
        if attachment.file_name and attachment.file_name in body:
            return attachment
    return None
