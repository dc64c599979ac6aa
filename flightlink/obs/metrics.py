"""In-process counters and latency histograms.

Backs the /metrics endpoint and the turn pipeline's outcome counters
(merges, rejections, generated links). Single-process only.
"""

from typing import Dict, Any, Optional, Tuple, List
import threading


_LOCK = threading.Lock()

LabelsKey = Tuple[Tuple[str, str], ...]

_COUNTERS: Dict[Tuple[str, LabelsKey], int] = {}

# name -> {"bins": [...], "series": {labels -> {"counts": [...], "sum_ms": float}}}
_DEFAULT_BINS: List[int] = [5, 25, 100, 250, 500, 1000, 3000, 10000]
_HISTOGRAMS: Dict[str, Dict[str, Any]] = {}


def _labels_key(labels: Optional[Dict[str, str]]) -> LabelsKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def inc_counter(metric: str, labels: Optional[Dict[str, str]] = None, amount: int = 1) -> None:
    key = (metric, _labels_key(labels))
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0) + amount


def counter_value(metric: str, labels: Optional[Dict[str, str]] = None) -> int:
    with _LOCK:
        return _COUNTERS.get((metric, _labels_key(labels)), 0)


def record_timing(metric: str, value_ms: float, labels: Optional[Dict[str, str]] = None) -> None:
    if value_ms is None:
        return
    lk = _labels_key(labels)
    with _LOCK:
        hist = _HISTOGRAMS.setdefault(metric, {"bins": list(_DEFAULT_BINS), "series": {}})
        bins: List[int] = hist["bins"]
        entry = hist["series"].get(lk)
        if entry is None:
            entry = {"counts": [0] * (len(bins) + 1), "sum_ms": 0.0}
            hist["series"][lk] = entry
        idx = next((i for i, b in enumerate(bins) if value_ms <= b), len(bins))
        entry["counts"][idx] += 1
        entry["sum_ms"] += float(value_ms)


def get_metrics_snapshot() -> Dict[str, Any]:
    with _LOCK:
        counters = [
            {"name": name, "labels": dict(labels), "value": value}
            for (name, labels), value in _COUNTERS.items()
        ]
        histograms = [
            {
                "name": name,
                "labels": dict(labels),
                "bins_ms": list(h["bins"]),
                "counts": list(entry["counts"]),
                "sum_ms": entry["sum_ms"],
            }
            for name, h in _HISTOGRAMS.items()
            for labels, entry in h["series"].items()
        ]
    return {"counters": counters, "histograms": histograms}


def reset_metrics() -> None:
    with _LOCK:
        _COUNTERS.clear()
        _HISTOGRAMS.clear()
