from __future__ import annotations

import math
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque


@dataclass(frozen=True)
class ExternalCallSample:
    ts: float
    integration: str
    latency_ms: float
    success: bool


@dataclass(frozen=True)
class ExternalCallSummary:
    calls: int
    succeeded: int
    p95_ms: float | None
    max_ms: float | None

    @property
    def failed(self) -> int:
        return self.calls - self.succeeded


_external_samples: Deque[ExternalCallSample] = deque(maxlen=10000)
_counters: dict[str, int] = defaultdict(int)


def record_external_call(*, integration: str, latency_ms: float, success: bool) -> None:
    # Capture per-request latency and outcome.
    _external_samples.append(
        ExternalCallSample(
            ts=time.time(),
            integration=integration,
            latency_ms=latency_ms,
            success=success,
        )
    )


def increment_counter(name: str, value: int = 1) -> None:
    # Running totals for delivered and failed pushes.
    _counters[name] += value


def external_call_summary(integration: str, *, since: float | None = None) -> ExternalCallSummary:
    # Aggregate one integration's samples recorded at or after `since`.
    samples = [
        sample
        for sample in _external_samples
        if sample.integration == integration and (since is None or sample.ts >= since)
    ]
    if not samples:
        return ExternalCallSummary(calls=0, succeeded=0, p95_ms=None, max_ms=None)
    latencies = sorted(sample.latency_ms for sample in samples)
    p95_idx = max(0, math.ceil(0.95 * len(latencies)) - 1)
    return ExternalCallSummary(
        calls=len(samples),
        succeeded=sum(1 for sample in samples if sample.success),
        p95_ms=latencies[p95_idx],
        max_ms=latencies[-1],
    )


def counters_snapshot() -> dict[str, int]:
    return dict(_counters)


def reset_telemetry() -> None:
    _external_samples.clear()
    _counters.clear()
