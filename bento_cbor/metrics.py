"""
Prometheus metrics for the CBOR processor.

Counters and histograms for:
- messages handled, by operator and outcome (ok / decode_error / serialization_error)
- payload bytes in/out, by operator
- per-message conversion duration

Typical usage (inside the processor):

    METRICS = get_metrics()

    with METRICS.time_message(operator="to_json", bytes_in=len(payload)) as obs:
        out = convert(payload)
        obs.ok(bytes_out=len(out))

Tests pass their own CollectorRegistry so counts start at zero.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

OUTCOME_OK = "ok"
OUTCOME_DECODE_ERROR = "decode_error"
OUTCOME_SERIALIZATION_ERROR = "serialization_error"


class _Observation:
    __slots__ = ("outcome", "bytes_out")

    def __init__(self) -> None:
        # Unmarked observations count as failures; the processor marks them.
        self.outcome = OUTCOME_DECODE_ERROR
        self.bytes_out = 0

    def ok(self, *, bytes_out: int = 0) -> None:
        self.outcome = OUTCOME_OK
        self.bytes_out = max(0, int(bytes_out))

    def fail(self, outcome: str) -> None:
        self.outcome = outcome


class ProcessorMetrics:
    """Concrete metrics backed by prometheus_client."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        reg = registry if registry is not None else REGISTRY
        self.registry = reg
        self.messages_total = Counter(
            "bento_cbor_messages_total",
            "Messages handled by the CBOR processor",
            ["operator", "outcome"],
            registry=reg,
        )
        self.bytes_total = Counter(
            "bento_cbor_bytes_total",
            "Payload bytes read and written by the CBOR processor",
            ["operator", "direction"],
            registry=reg,
        )
        self.duration = Histogram(
            "bento_cbor_message_duration_seconds",
            "Per-message conversion duration in seconds",
            ["operator"],
            registry=reg,
            buckets=(0.00005, 0.0001, 0.00025, 0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5),
        )

    @contextmanager
    def time_message(self, *, operator: str, bytes_in: int = 0) -> Iterator[_Observation]:
        """
        Record one conversion. The block marks success with `obs.ok(bytes_out=)`
        or a specific failure with `obs.fail(outcome)`; exceptions propagate.
        """
        start = time.perf_counter()
        obs = _Observation()
        try:
            yield obs
        finally:
            self.duration.labels(operator).observe(max(0.0, time.perf_counter() - start))
            self.messages_total.labels(operator, obs.outcome).inc()
            if bytes_in:
                self.bytes_total.labels(operator, "in").inc(bytes_in)
            if obs.bytes_out:
                self.bytes_total.labels(operator, "out").inc(obs.bytes_out)

    def sample(self, name: str, **labels: str) -> float:
        """Current value of a sample in this metrics' registry (0.0 if absent)."""
        value = self.registry.get_sample_value(name, labels or None)
        return float(value) if value is not None else 0.0


_METRICS_SINGLETON: Optional[ProcessorMetrics] = None


def get_metrics() -> ProcessorMetrics:
    """Process-wide ProcessorMetrics on the default prometheus registry."""
    global _METRICS_SINGLETON
    if _METRICS_SINGLETON is None:
        _METRICS_SINGLETON = ProcessorMetrics()
    return _METRICS_SINGLETON


__all__ = [
    "ProcessorMetrics",
    "get_metrics",
    "OUTCOME_OK",
    "OUTCOME_DECODE_ERROR",
    "OUTCOME_SERIALIZATION_ERROR",
]
