"""Process-wide bridge counters rendered in the Prometheus text format."""

from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass
from types import TracebackType


@dataclass
class _ProcessingStats:
    count: int = 0
    sum_ms: int = 0


def escape_label(value: str) -> str:
    """Escape a Prometheus label value."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _split_pair(key: str) -> tuple[str, str]:
    first, sep, second = key.partition("|")
    return first, (second if sep else "unknown")


class BridgeMetrics:
    """Thread-safe counters describing bridge traffic."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._totals: Counter[str] = Counter()
        self._queue_depth = 0
        self._queue_depth_max = 0
        self._inbound_by_event: Counter[str] = Counter()
        self._outbound_by_api: Counter[str] = Counter()
        self._outbound_failures_by_api_code: Counter[str] = Counter()
        self._policy_blocked_by_reason: Counter[str] = Counter()
        self._degraded_events_by_reason: Counter[str] = Counter()
        self._trace_events_by_flow_status: Counter[str] = Counter()
        self._cache_hits_by_name: Counter[str] = Counter()
        self._cache_misses_by_name: Counter[str] = Counter()
        self._processing_stats: dict[str, _ProcessingStats] = {}

    def _bump(self, total: str, by_key: Counter[str], key: str) -> None:
        with self._lock:
            self._totals[total] += 1
            by_key[key] += 1

    def record_inbound_event(self, event_type: str) -> None:
        self._bump("inbound", self._inbound_by_event, event_type)

    def record_outbound_call(self, api: str) -> None:
        self._bump("outbound", self._outbound_by_api, api)

    def record_outbound_failure(self, api: str, code: str) -> None:
        self._bump("outbound_failures", self._outbound_failures_by_api_code, f"{api}|{code}")

    def record_policy_block(self, reason: str) -> None:
        self._bump("policy_blocked", self._policy_blocked_by_reason, reason)

    def record_degraded_event(self, reason: str) -> None:
        self._bump("degraded", self._degraded_events_by_reason, reason)

    def record_trace_event(self, flow: str, status: str) -> None:
        self._bump("trace", self._trace_events_by_flow_status, f"{flow}|{status}")

    def record_cache_hit(self, cache_name: str) -> None:
        self._bump("cache_hits", self._cache_hits_by_name, cache_name)

    def record_cache_miss(self, cache_name: str) -> None:
        self._bump("cache_misses", self._cache_misses_by_name, cache_name)

    def record_processing_duration(self, stage: str, seconds: float) -> None:
        """Add one processing sample for ``stage``, in whole milliseconds."""
        millis = max(int(seconds * 1000), 0)
        with self._lock:
            stats = self._processing_stats.setdefault(stage, _ProcessingStats())
            stats.count += 1
            stats.sum_ms += millis

    def begin_queue_task(self) -> QueueDepthGuard:
        """Count one more queued task until the returned guard is released."""
        with self._lock:
            self._queue_depth += 1
            self._queue_depth_max = max(self._queue_depth_max, self._queue_depth)
        return QueueDepthGuard(self)

    def _end_queue_task(self) -> None:
        with self._lock:
            self._queue_depth = max(self._queue_depth - 1, 0)

    def render_prometheus(self) -> str:
        """Render every metric in the Prometheus exposition format."""
        with self._lock:
            totals = Counter(self._totals)
            inbound = sorted(self._inbound_by_event.items())
            outbound = sorted(self._outbound_by_api.items())
            failures = sorted(self._outbound_failures_by_api_code.items())
            blocked = sorted(self._policy_blocked_by_reason.items())
            degraded = sorted(self._degraded_events_by_reason.items())
            traces = sorted(self._trace_events_by_flow_status.items())
            hits = dict(self._cache_hits_by_name)
            misses = dict(self._cache_misses_by_name)
            depth = self._queue_depth
            depth_max = self._queue_depth_max
            processing = sorted(
                (stage, _ProcessingStats(s.count, s.sum_ms))
                for stage, s in self._processing_stats.items()
            )

        lines = [
            "# HELP bridge_inbound_events_total Total inbound events",
            "# TYPE bridge_inbound_events_total counter",
            f"bridge_inbound_events_total {totals['inbound']}",
        ]
        lines += [
            f'bridge_inbound_events_total_by_type{{event_type="{escape_label(k)}"}} {v}'
            for k, v in inbound
        ]

        lines += [
            "# HELP bridge_outbound_calls_total Total outbound API calls",
            "# TYPE bridge_outbound_calls_total counter",
            f"bridge_outbound_calls_total {totals['outbound']}",
        ]
        lines += [
            f'bridge_outbound_calls_total_by_api{{api="{escape_label(k)}"}} {v}'
            for k, v in outbound
        ]

        lines += [
            "# HELP bridge_outbound_failures_total Total outbound API failures",
            "# TYPE bridge_outbound_failures_total counter",
            f"bridge_outbound_failures_total {totals['outbound_failures']}",
        ]
        for key, count in failures:
            api, code = _split_pair(key)
            lines.append(
                "bridge_outbound_failures_total_by_api_code"
                f'{{api="{escape_label(api)}",code="{escape_label(code)}"}} {count}'
            )

        lines += [
            "# HELP bridge_policy_blocked_total Total blocked events by policy",
            "# TYPE bridge_policy_blocked_total counter",
            f"bridge_policy_blocked_total {totals['policy_blocked']}",
        ]
        lines += [
            f'bridge_policy_blocked_total_by_reason{{reason="{escape_label(k)}"}} {v}'
            for k, v in blocked
        ]

        lines += [
            "# HELP bridge_degraded_events_total Total events handled via degrade path",
            "# TYPE bridge_degraded_events_total counter",
            f"bridge_degraded_events_total {totals['degraded']}",
        ]
        lines += [
            f'bridge_degraded_events_total_by_reason{{reason="{escape_label(k)}"}} {v}'
            for k, v in degraded
        ]

        lines += [
            "# HELP bridge_trace_events_total Total traced bridge flow events",
            "# TYPE bridge_trace_events_total counter",
            f"bridge_trace_events_total {totals['trace']}",
        ]
        for key, count in traces:
            flow, status = _split_pair(key)
            lines.append(
                "bridge_trace_events_total_by_flow_status"
                f'{{flow="{escape_label(flow)}",status="{escape_label(status)}"}} {count}'
            )

        lines += [
            "# HELP bridge_cache_hits_total Total cache hits",
            "# TYPE bridge_cache_hits_total counter",
            f"bridge_cache_hits_total {totals['cache_hits']}",
            "# HELP bridge_cache_misses_total Total cache misses",
            "# TYPE bridge_cache_misses_total counter",
            f"bridge_cache_misses_total {totals['cache_misses']}",
            "# HELP bridge_cache_requests_total Cache requests by result",
            "# TYPE bridge_cache_requests_total counter",
            "# HELP bridge_cache_hit_ratio Cache hit ratio by cache name",
            "# TYPE bridge_cache_hit_ratio gauge",
        ]
        for name in sorted(set(hits) | set(misses)):
            hit_count = hits.get(name, 0)
            miss_count = misses.get(name, 0)
            total = hit_count + miss_count
            ratio = hit_count / total if total else 0.0
            label = escape_label(name)
            lines += [
                f'bridge_cache_requests_total{{cache="{label}",result="hit"}} {hit_count}',
                f'bridge_cache_requests_total{{cache="{label}",result="miss"}} {miss_count}',
                f'bridge_cache_hit_ratio{{cache="{label}"}} {ratio:.6f}',
            ]

        lines += [
            "# HELP bridge_queue_depth Current webhook queue depth",
            "# TYPE bridge_queue_depth gauge",
            f"bridge_queue_depth {depth}",
            f"bridge_queue_depth_max {depth_max}",
            "# HELP bridge_processing_duration_ms_sum Total processing duration in ms",
            "# TYPE bridge_processing_duration_ms_sum counter",
        ]
        for stage, stats in processing:
            label = escape_label(stage)
            lines += [
                f'bridge_processing_duration_ms_sum{{stage="{label}"}} {stats.sum_ms}',
                f'bridge_processing_duration_ms_count{{stage="{label}"}} {stats.count}',
            ]

        return "".join(f"{line}\n" for line in lines)


class QueueDepthGuard:
    """Holds one unit of queue depth until released or its block exits."""

    def __init__(self, metrics: BridgeMetrics) -> None:
        self._metrics = metrics
        self._released = False

    def release(self) -> None:
        """Give back the queue slot; further calls do nothing."""
        if not self._released:
            self._released = True
            self._metrics._end_queue_task()

    def __enter__(self) -> QueueDepthGuard:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class ScopedTimer:
    """Records the time from construction to block exit as a processing sample."""

    def __init__(self, stage: str, metrics: BridgeMetrics | None = None) -> None:
        self.stage = stage
        self._metrics = metrics
        self._started_at = time.monotonic()

    def __enter__(self) -> ScopedTimer:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        metrics = self._metrics or global_metrics()
        metrics.record_processing_duration(self.stage, time.monotonic() - self._started_at)


_GLOBAL_METRICS = BridgeMetrics()


def global_metrics() -> BridgeMetrics:
    """The process-wide metrics instance."""
    return _GLOBAL_METRICS