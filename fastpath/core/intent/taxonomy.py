"""Tier taxonomy, confidence thresholds and result types for fastpath.

This module defines the value objects passed between the routing tiers:
pattern matches, statistical classifications, tool execution results,
route results and telemetry events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ClassificationTier(IntEnum):
    """Routing tiers, in the order they are attempted."""

    DETERMINISTIC = 1  # Regex pattern tables
    STATISTICAL = 2  # Naive Bayes classifier
    FALLBACK = 3  # Hand off to the LLM

    @property
    def label(self) -> str:
        return self.name.lower()


class ConfidenceThresholds:
    """Default confidence thresholds for the routing tiers.

    - DETERMINISTIC (≥0.95): Pattern match is executed directly
    - STATISTICAL (≥0.85): Classifier match is extracted and executed
    - STATISTICAL_MEDIUM (≥0.60): Execute only if extraction finds parameters
    """

    DETERMINISTIC = 0.95
    STATISTICAL = 0.85
    STATISTICAL_MEDIUM = 0.60


@dataclass
class PatternMatchResult:
    """Result of deterministic pattern matching.

    Attributes:
        tool_name: Name of the matched tool ("" when unmatched)
        confidence: Confidence of the matching rule, 0.0 when unmatched
        params: Parameters extracted by an action rule (None for query rules)
        matched: Whether any rule matched
    """

    tool_name: str
    confidence: float
    params: dict[str, Any] | None = None
    matched: bool = False

    @classmethod
    def no_match(cls) -> "PatternMatchResult":
        return cls(tool_name="", confidence=0.0, matched=False)


@dataclass
class ClassificationResult:
    """Result of statistical classification.

    Attributes:
        intent: Top ranked label
        confidence: Posterior probability of the top label
        alternatives: Runner-up (intent, confidence) pairs, at most two.
            Diagnostics only, never executed.
    """

    intent: str
    confidence: float
    alternatives: list[tuple[str, float]] = field(default_factory=list)

    @classmethod
    def unknown(cls) -> "ClassificationResult":
        """Zero-confidence result used whenever the classifier declines."""
        return cls(intent="unknown", confidence=0.0)


@dataclass
class ToolExecutionResult:
    """Normalized outcome of a tool invocation."""

    success: bool
    response: str
    error: str | None = None


@dataclass
class RouteResult:
    """Outcome of routing a single query.

    A handled result always carries ``response`` and ``tool_name``. An
    unhandled result always carries ``reason``. The ``failed_*`` fields and
    ``original_tier`` are only set when a tier matched but the tool execution
    that followed failed, so the LLM fallback does not have to rediscover it.

    Attributes:
        handled: Whether a local tier resolved the query
        response: Tool response text (handled only)
        tool_name: Executed tool (handled only)
        confidence: Confidence of the tier that produced the result
        tier: Tier at which routing terminated
        reason: Why the query was not handled
        failed_tool_name: Tool that matched but failed to execute
        failed_error: Error from the failed execution
        original_tier: Tier that attempted the failed execution
        skill_id: Document skill detected in the query, if any
    """

    handled: bool
    response: str | None = None
    tool_name: str | None = None
    confidence: float | None = None
    tier: ClassificationTier | None = None
    reason: str | None = None
    failed_tool_name: str | None = None
    failed_error: str | None = None
    original_tier: ClassificationTier | None = None
    skill_id: str | None = None

    @classmethod
    def success(
        cls,
        response: str,
        tool_name: str,
        confidence: float,
        tier: ClassificationTier,
    ) -> "RouteResult":
        return cls(
            handled=True,
            response=response,
            tool_name=tool_name,
            confidence=confidence,
            tier=tier,
        )

    @property
    def execution_failed(self) -> bool:
        """True when a tier matched but its tool execution failed."""
        return self.failed_tool_name is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        data: dict[str, Any] = {}
        for key, value in self.__dict__.items():
            if value is None:
                continue
            if isinstance(value, ClassificationTier):
                value = value.label
            data[key] = value
        return data


@dataclass
class TelemetryEvent:
    """One routing outcome, recorded once per ``route()`` call.

    Attributes:
        query: Query text, truncated for privacy
        tier: Tier at which routing terminated
        tool_name: Tool that was executed or attempted
        confidence: Confidence of the terminating tier
        latency_ms: Wall-clock routing time
        timestamp_ms: Unix time of the event in milliseconds
        success: Whether the query was handled locally
        error: Failure reason for unhandled queries
    """

    query: str
    tier: ClassificationTier
    latency_ms: int
    timestamp_ms: int
    success: bool
    tool_name: str | None = None
    confidence: float | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "query": self.query,
            "tier": self.tier.label,
            "tool_name": self.tool_name,
            "confidence": self.confidence,
            "latency_ms": self.latency_ms,
            "timestamp_ms": self.timestamp_ms,
            "success": self.success,
            "error": self.error,
        }
