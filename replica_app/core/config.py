"""Central configuration, constants, and tuning knobs for the record replica."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

# =============================================================================
# Remote Connection Settings
# =============================================================================
TIMEZONE = "UTC"
DEFAULT_PRODUCT = "OBS"

# =============================================================================
# Severity Configuration
# =============================================================================
# Ordered most to least urgent; a record's auto-priority is its index here.
SEVERITIES: Sequence[str] = (
    "Critical",
    "Major",
    "Normal",
    "Minor",
    "Enhancement",
)

# Map Jira priority names to severities (lowercase keys)
SEVERITY_ALIASES: dict[str, str] = {
    "blocker": "Critical",
    "highest": "Critical",
    "critical": "Critical",
    "high": "Major",
    "major": "Major",
    "medium": "Normal",
    "normal": "Normal",
    "low": "Minor",
    "minor": "Minor",
    "lowest": "Enhancement",
    "trivial": "Enhancement",
    "enhancement": "Enhancement",
}

# Jira priority queried for each severity during a product sync
SEVERITY_QUERY_PRIORITIES: dict[str, tuple[str, ...]] = {
    "Critical": ("Blocker", "Highest", "Critical"),
    "Major": ("High", "Major"),
    "Normal": ("Medium", "Normal"),
    "Minor": ("Low", "Minor"),
    "Enhancement": ("Lowest", "Trivial"),
}

# =============================================================================
# Workflow Status Configuration
# =============================================================================
# First sync only pulls open records
INITIAL_SYNC_STATUSES: Sequence[str] = ("NEW", "ASSIGNED", "NEEDINFO")

INCREMENTAL_SYNC_STATUSES: Sequence[str] = (
    "NEW",
    "ASSIGNED",
    "NEEDINFO",
    "RESOLVED",
    "CLOSED",
    "VERIFIED",
)

# Map Jira status names to the sync status vocabulary (lowercase keys)
STATUS_ALIASES: dict[str, str] = {
    "new": "NEW",
    "open": "NEW",
    "to do": "NEW",
    "reported": "NEW",
    "assigned": "ASSIGNED",
    "in progress": "ASSIGNED",
    "testing": "ASSIGNED",
    "needinfo": "NEEDINFO",
    "blocked": "NEEDINFO",
    "resolved": "RESOLVED",
    "done": "RESOLVED",
    "closed": "CLOSED",
    "cancelled": "CLOSED",
    "verified": "VERIFIED",
}

# =============================================================================
# Tier Configuration
# =============================================================================
# High / Medium / Low boundaries applied after an initial sync
DEFAULT_TIER_LEVELS: tuple[int, int, int] = (20, 40, 60)

NO_RECORD = -1

# =============================================================================
# Tags
# =============================================================================
DEFAULT_TAGS: Sequence[tuple[str, tuple[int, int, int]]] = (
    ("OnHold", (140, 140, 140)),
    ("MacBug", (140, 140, 140)),
    ("NeedInfo", (140, 140, 223)),
)

UNKNOWN_TAG_COLOR: tuple[int, int, int] = (0, 0, 0)

# =============================================================================
# Jira Field IDs
# =============================================================================
FIELD_IDS = {
    "target_milestone": "fixVersions",
    "operating_system": "environment",
}

# Changelog field names that carry a target-milestone correction
MILESTONE_HISTORY_FIELDS: frozenset[str] = frozenset({"target_milestone", "Fix Version"})

JIRA_FETCH_FIELDS = [
    "summary",
    "created",
    "assignee",
    "priority",
    "status",
    "components",
    FIELD_IDS["target_milestone"],
    FIELD_IDS["operating_system"],
]

# Parallel fetch tuning
# One task per status x severity combination; the jira client is synchronous
# and I/O bound so threads are used. Keep worker count moderate to avoid
# hitting rate limits.
FETCH_MAX_WORKERS = 8
FETCH_PAGE_SIZE = 100


@dataclass(slots=True)
class ServerSettings:
    name: str
    host: str
    product: str = DEFAULT_PRODUCT
    use_ssl: bool = True
    user: str = ""

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.host.rstrip('/')}"


@dataclass(slots=True)
class AppSettings:
    data_dir: Path = Path.home() / ".config" / "replica_app"
    index_file: str = "index.json"


SETTINGS = AppSettings()
