"""
Process-local counters and histograms, rendered in the Prometheus text format.

Series used by the package:
- response_parse_total{mode}        one per parse_model_response call
- llm_requests_total{status}        LLM collaborator calls
- llm_latency_seconds               successful LLM call latency
- hint_requests_total{status}       HintSession.request_next outcomes
- span_duration_seconds{span}       trace_span timings
"""

from __future__ import annotations

import bisect
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

LATENCY_BUCKETS = (0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 60.0)

LabelKey = Tuple[Tuple[str, str], ...]
SeriesKey = Tuple[str, LabelKey]


@dataclass
class _Histogram:
    bounds: Tuple[float, ...]
    # per-bucket (non-cumulative) counts; the extra slot holds values above the last bound
    hits: List[int] = field(default_factory=list)
    total: float = 0.0

    def __post_init__(self) -> None:
        if not self.hits:
            self.hits = [0] * (len(self.bounds) + 1)

    def observe(self, value: float) -> None:
        self.hits[bisect.bisect_left(self.bounds, value)] += 1
        self.total += value

    @property
    def count(self) -> int:
        return sum(self.hits)


_lock = threading.Lock()
_counters: Dict[SeriesKey, float] = {}
_histograms: Dict[SeriesKey, _Histogram] = {}


def _key(name: str, labels: Optional[Mapping[str, object]]) -> SeriesKey:
    pairs = ((str(k), str(v)) for k, v in (labels or {}).items() if v is not None)
    return str(name), tuple(sorted(pairs))


def inc_counter(
    name: str, *, labels: Optional[Mapping[str, object]] = None, value: float = 1.0
) -> None:
    k = _key(name, labels)
    with _lock:
        _counters[k] = _counters.get(k, 0.0) + float(value)


def get_counter(name: str, *, labels: Optional[Mapping[str, object]] = None) -> float:
    with _lock:
        return _counters.get(_key(name, labels), 0.0)


def observe_histogram(
    name: str,
    *,
    value: float,
    buckets: Iterable[float] = LATENCY_BUCKETS,
    labels: Optional[Mapping[str, object]] = None,
) -> None:
    bounds = tuple(sorted({float(b) for b in buckets}))
    k = _key(name, labels)
    with _lock:
        h = _histograms.get(k)
        if h is None or h.bounds != bounds:
            h = _histograms[k] = _Histogram(bounds=bounds)
        h.observe(float(value))


def reset_metrics() -> None:
    with _lock:
        _counters.clear()
        _histograms.clear()


class Timer:
    def __init__(self) -> None:
        self._start = time.monotonic()

    def elapsed_seconds(self) -> float:
        return max(0.0, time.monotonic() - self._start)


def _labels_text(labels: LabelKey, **extra: str) -> str:
    items = list(labels) + sorted(extra.items())
    if not items:
        return ""
    escaped = (f'{k}="{_escape(v)}"' for k, v in items)
    return "{" + ",".join(escaped) + "}"


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def render_prometheus() -> str:
    out: List[str] = []
    with _lock:
        counters = sorted(_counters.items())
        histograms = sorted(_histograms.items(), key=lambda kv: kv[0])
    for (name, labels), value in counters:
        out.append(f"# TYPE {name} counter")
        out.append(f"{name}{_labels_text(labels)} {value:.0f}")
    for (name, labels), h in histograms:
        out.append(f"# TYPE {name} histogram")
        running = 0
        for bound, hits in zip(h.bounds, h.hits):
            running += hits
            out.append(f"{name}_bucket{_labels_text(labels, le=str(bound))} {running}")
        out.append(f"{name}_bucket{_labels_text(labels, le='+Inf')} {h.count}")
        out.append(f"{name}_count{_labels_text(labels)} {h.count}")
        out.append(f"{name}_sum{_labels_text(labels)} {h.total:.6f}")
    return "\n".join(out) + "\n"
