"""Tier-based aggregations over a replica DataFrame."""

from __future__ import annotations

import pandas as pd

from replica_app.core.config import SEVERITIES

TIER_ORDER = ("High", "Medium", "Low", "None")


def tier_severity_counts(df: pd.DataFrame) -> pd.DataFrame:
    """Records per tier (rows) and severity (columns), in canonical order."""
    if df.empty or "tier" not in df.columns:
        return pd.DataFrame()
    table = pd.crosstab(df["tier"], df["severity"])
    rows = [t for t in TIER_ORDER if t in table.index]
    known = [s for s in SEVERITIES if s in table.columns]
    extra = sorted(c for c in table.columns if c not in known)
    return table.reindex(index=rows, columns=known + extra, fill_value=0)


def tier_sizes(df: pd.DataFrame) -> dict[str, int]:
    if df.empty or "tier" not in df.columns:
        return {}
    counts = df["tier"].value_counts()
    return {t: int(counts.get(t, 0)) for t in TIER_ORDER}


def pending_review(df: pd.DataFrame) -> pd.DataFrame:
    """New or refresh-pending records, most urgent local priority first."""
    if df.empty or not {"is_new", "requires_refresh"}.issubset(df.columns):
        return pd.DataFrame()
    mask = df["is_new"].astype(bool) | df["requires_refresh"].astype(bool)
    return df[mask].sort_values(by="local_priority")
