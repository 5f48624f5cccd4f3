"""Routing telemetry for fastpath.

Keeps a bounded, in-memory log of routing outcomes and derives tier
coverage, latency and success statistics from it on demand. Nothing is
persisted; exporting the events is left to the host.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field

from .taxonomy import ClassificationTier, TelemetryEvent

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 1000
TOP_TOOLS_LIMIT = 10
RECENT_EVENTS_LIMIT = 20

# Assumed latency of an LLM round trip, used for the impact estimate
ASSUMED_LLM_LATENCY_MS = 2000


@dataclass
class TelemetryStats:
    """Statistics derived from the telemetry buffer.

    Attributes:
        total: Number of events in the buffer
        counts: Events per tier
        coverage: Fraction of events per tier (0.0-1.0, 2 dp)
        avg_latency_ms: Mean routing latency per tier
        success_rate: Fraction of handled queries (2 dp)
        top_tools: Most invoked tools as (tool, count), most frequent first
        recent_events: Most recent events, oldest first
    """

    total: int = 0
    counts: dict[ClassificationTier, int] = field(default_factory=dict)
    coverage: dict[ClassificationTier, float] = field(default_factory=dict)
    avg_latency_ms: dict[ClassificationTier, int] = field(default_factory=dict)
    success_rate: float = 0.0
    top_tools: list[tuple[str, int]] = field(default_factory=list)
    recent_events: list[TelemetryEvent] = field(default_factory=list)

    @property
    def handled_locally(self) -> int:
        return self.counts.get(ClassificationTier.DETERMINISTIC, 0) + self.counts.get(
            ClassificationTier.STATISTICAL, 0
        )


class TelemetryManager:
    """Collects routing events in a fixed-capacity ring buffer.

    Records are O(1); every statistic is recomputed on read so nothing
    derived is ever stored.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        if max_events < 1:
            raise ValueError(f"max_events must be positive, got {max_events}")
        self.max_events = max_events
        self._events: deque[TelemetryEvent] = deque(maxlen=max_events)

    def __len__(self) -> int:
        return len(self._events)

    def record(self, event: TelemetryEvent) -> None:
        """Append an event, evicting the oldest when full."""
        self._events.append(event)

        if event.success:
            logger.debug(
                f"Intent routing succeeded: tier={event.tier.label} "
                f"tool={event.tool_name} latency={event.latency_ms}ms"
            )
        else:
            logger.debug(f"Intent routing fallback: tier={event.tier.label} reason={event.error}")

    def get_stats(self) -> TelemetryStats:
        """Compute statistics over the buffered events without mutating them."""
        events = list(self._events)
        total = len(events)
        tiers = list(ClassificationTier)

        if total == 0:
            return TelemetryStats(
                counts={tier: 0 for tier in tiers},
                coverage={tier: 0.0 for tier in tiers},
                avg_latency_ms={tier: 0 for tier in tiers},
            )

        counts: dict[ClassificationTier, int] = {}
        coverage: dict[ClassificationTier, float] = {}
        avg_latency: dict[ClassificationTier, int] = {}
        for tier in tiers:
            latencies = [e.latency_ms for e in events if e.tier == tier]
            counts[tier] = len(latencies)
            coverage[tier] = round(len(latencies) / total, 2)
            avg_latency[tier] = round(sum(latencies) / len(latencies)) if latencies else 0

        successful = sum(1 for e in events if e.success)
        tool_counts = Counter(e.tool_name for e in events if e.tool_name)

        return TelemetryStats(
            total=total,
            counts=counts,
            coverage=coverage,
            avg_latency_ms=avg_latency,
            success_rate=round(successful / total, 2),
            top_tools=tool_counts.most_common(TOP_TOOLS_LIMIT),
            recent_events=events[-RECENT_EVENTS_LIMIT:],
        )

    def export(self) -> list[TelemetryEvent]:
        """Return a copy of the buffered events, oldest first."""
        return list(self._events)

    def clear(self) -> None:
        """Drop all buffered events."""
        self._events.clear()
        logger.info("Telemetry data cleared")

    def generate_report(self) -> str:
        """Render a plain-text summary of the current statistics."""
        stats = self.get_stats()
        det = ClassificationTier.DETERMINISTIC
        stat = ClassificationTier.STATISTICAL
        fallback = ClassificationTier.FALLBACK

        lines = [
            "=== Intent Classification Telemetry Report ===",
            "",
            "Overview:",
            f"  Total Queries: {stats.total}",
            f"  Success Rate: {stats.success_rate * 100:.1f}%",
            "",
            "Tier Distribution:",
            f"  Tier 1 (Pattern): {stats.counts[det]} ({stats.coverage[det] * 100:.1f}%)",
            f"  Tier 2 (Statistical): {stats.counts[stat]} ({stats.coverage[stat] * 100:.1f}%)",
            f"  LLM Fallback: {stats.counts[fallback]} ({stats.coverage[fallback] * 100:.1f}%)",
            "",
            "Average Latency:",
            f"  Tier 1: {stats.avg_latency_ms[det]}ms",
            f"  Tier 2: {stats.avg_latency_ms[stat]}ms",
            f"  Fallback: {stats.avg_latency_ms[fallback]}ms",
            "",
        ]

        if stats.top_tools:
            lines.append("Top Tools:")
            lines.extend(f"  {tool}: {count} times" for tool, count in stats.top_tools)
            lines.append("")

        local_share = stats.handled_locally / stats.total * 100 if stats.total else 0.0
        lines.extend(
            [
                "Estimated Impact:",
                f"  Queries Handled Locally: {local_share:.1f}%",
                f"  Avg Latency Improvement: {self._latency_improvement(stats)}ms",
                "",
            ]
        )
        return "\n".join(lines)

    @staticmethod
    def _latency_improvement(stats: TelemetryStats) -> int:
        """Latency saved per locally handled query versus an LLM call."""
        det = ClassificationTier.DETERMINISTIC
        stat = ClassificationTier.STATISTICAL
        local = stats.handled_locally
        if local == 0:
            return 0
        avg_local = (
            stats.counts[det] * stats.avg_latency_ms[det]
            + stats.counts[stat] * stats.avg_latency_ms[stat]
        ) / local
        return round(ASSUMED_LLM_LATENCY_MS - avg_local)
