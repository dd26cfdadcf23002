from __future__ import annotations

import csv
import os
from collections.abc import Mapping
from contextlib import AbstractContextManager
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from layer_builder.foundation.fs import lock_file

HISTORY_FIELDNAMES: list[str] = [
    "build_id",
    "stage",
    "signature",
    "image_tag",
    "status",
    "duration_s",
    "created_at",
    "error",
]

STAGE_STATUSES: tuple[str, ...] = ("built", "cached", "failed", "planned")


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def history_lock(
    history_path: str,
    *,
    timeout_seconds: float = 60.0,
    poll_interval_seconds: float = 0.1,
) -> AbstractContextManager[None]:
    return lock_file(
        f"{history_path}.lock",
        label="history lock",
        timeout_seconds=timeout_seconds,
        poll_interval_seconds=poll_interval_seconds,
    )


def append_history_row(history_path: str, row: Mapping[str, Any]) -> None:
    status = row.get("status")
    if status not in STAGE_STATUSES:
        raise ValueError(f"Invalid history status: {status!r}")
    for required in ("build_id", "stage"):
        if not row.get(required):
            raise KeyError(f"History row missing required field: {required}")

    output_row: dict[str, Any] = {name: row.get(name, "") for name in HISTORY_FIELDNAMES}
    if not output_row.get("created_at"):
        output_row["created_at"] = utc_now_iso8601()

    with history_lock(history_path):
        file_exists = os.path.exists(history_path) and os.path.getsize(history_path) > 0
        with open(history_path, "a", newline="", encoding="utf-8") as file:
            writer = csv.DictWriter(file, fieldnames=HISTORY_FIELDNAMES, extrasaction="ignore")
            if not file_exists:
                writer.writeheader()
            writer.writerow(output_row)


def load_history(history_path: str) -> pd.DataFrame:
    if not os.path.exists(history_path) or os.path.getsize(history_path) == 0:
        return pd.DataFrame(columns=HISTORY_FIELDNAMES)

    df = pd.read_csv(history_path, dtype=str, keep_default_na=False)
    missing = [name for name in ("build_id", "stage", "status") if name not in df.columns]
    if missing:
        raise ValueError(f"Build history {history_path} is missing columns: {missing}")
    if "duration_s" in df.columns:
        df["duration_s"] = pd.to_numeric(df["duration_s"], errors="coerce")
    else:
        df["duration_s"] = float("nan")
    return df


def summarize_history(history_path: str) -> pd.DataFrame:
    """Per-stage counts of built/cached/failed runs plus the mean build time.

    Rows keep the order in which stages first appear in the history.
    """

    df = load_history(history_path)
    columns = ["stage", "built", "cached", "failed", "builds", "cache_hit_rate", "mean_build_s"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    df = df[df["status"] != "planned"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    counts = pd.crosstab(df["stage"], df["status"])
    for status in ("built", "cached", "failed"):
        if status not in counts.columns:
            counts[status] = 0

    summary = counts[["built", "cached", "failed"]].copy()
    summary["builds"] = df.groupby("stage")["build_id"].nunique()
    summary["cache_hit_rate"] = (
        summary["cached"] / (summary["built"] + summary["cached"]).where(lambda s: s > 0)
    ).fillna(0.0)
    built = df[df["status"] == "built"]
    summary["mean_build_s"] = built.groupby("stage")["duration_s"].mean()

    order = list(dict.fromkeys(df["stage"]))
    summary = summary.reindex(order).reset_index().rename(columns={"index": "stage"})
    summary[["built", "cached", "failed", "builds"]] = summary[
        ["built", "cached", "failed", "builds"]
    ].astype(int)
    return summary[columns]
