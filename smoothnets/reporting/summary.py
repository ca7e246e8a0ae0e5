"""Summaries of the per-round metric stream."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping, Sequence

import numpy as np

_INDEX_KEYS = frozenset({"round", "seed"})


def compute_auc(points: Sequence[float]) -> float:
    """Trapezoidal area under ``points`` with unit spacing between reports."""

    if len(points) < 2:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    return float(np.sum(0.5 * (y[1:] + y[:-1])))


def read_records(path: str | Path) -> list[dict[str, object]]:
    path = Path(path)
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def _series(records: Iterable[Mapping[str, object]]) -> dict[str, list[float]]:
    series: dict[str, list[float]] = {}
    for record in records:
        for key, value in record.items():
            if key in _INDEX_KEYS or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                series.setdefault(key, []).append(float(value))
    return series


def summarise(records: Sequence[Mapping[str, object]], tail: int = 32) -> dict[str, object]:
    """Reduce each metric to min/max/mean/last and the AUC of its last ``tail`` reports."""

    window = min(tail, len(records))
    metrics: dict[str, dict[str, float]] = {}
    for name, values in _series(records).items():
        arr = np.asarray(values, dtype=np.float64)
        metrics[name] = {
            "min": float(arr.min()),
            "max": float(arr.max()),
            "mean": float(arr.mean()),
            "last": float(arr[-1]),
            "tail_auc": compute_auc(arr[-window:].tolist()) if window else 0.0,
        }
    last_round = records[-1].get("round") if records else None
    return {
        "version": 1,
        "records": len(records),
        "last_round": last_round,
        "tail_window": window,
        "metrics": metrics,
    }


def write_summary(
    metrics_jsonl: str | Path, out_summary_json: str | Path, *, tail: int = 32
) -> str:
    """Summarise ``metrics_jsonl`` into ``out_summary_json`` and return its path."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summary = summarise(read_records(metrics_jsonl), tail=tail)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["compute_auc", "read_records", "summarise", "write_summary"]
