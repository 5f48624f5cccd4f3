"""Cascading intent routing for fastpath.

This package decides whether a free-text command can be handled locally,
without calling an LLM, and executes it if so.

The routing pipeline has three tiers:
1. Deterministic pattern matching (~1ms) - Regex tables
2. Statistical classification (~1-5ms) - Optional naive Bayes model
3. Fallback (LLM) - Unhandled result with diagnostic context

Example usage:
    ```python
    from fastpath.core.intent import ClassificationTier, create_router

    router = create_router(tools={"system_volume": set_volume})
    await router.initialize()

    result = await router.route("mute")
    assert result.handled and result.tier == ClassificationTier.DETERMINISTIC

    result = await router.route("write me a haiku")
    if not result.handled:
        escalate_to_llm(result.reason, result.failed_tool_name)
    ```
"""

from .classifier import (
    ClassifierBackend,
    ClassifierError,
    ClassifierHandle,
    ClassifierState,
    DependencyError,
    ModelLoadError,
    NaiveBayesBackend,
    PipelineModel,
    Ready,
    StatisticalClassifier,
    Unavailable,
)
from .executor import (
    ERROR_PREFIXES,
    Tool,
    ToolExecutor,
    ToolTelemetry,
    ToolTelemetryEntry,
    ToolTelemetryStats,
    is_error_response,
)
from .extractors import (
    ParameterExtractor,
    clamp_level,
    parse_duration_minutes,
)
from .patterns import (
    ACTION_PATTERNS,
    QUERY_PATTERNS,
    PatternMatcher,
    PatternRule,
    rule,
)
from .router import (
    PARAMETERLESS_INTENTS,
    IntentRouter,
    create_router,
)
from .skills import (
    detect_skill_id,
    get_skill_id_for_intent,
    is_skill_intent,
)
from .taxonomy import (
    ClassificationResult,
    ClassificationTier,
    ConfidenceThresholds,
    PatternMatchResult,
    RouteResult,
    TelemetryEvent,
    ToolExecutionResult,
)
from .telemetry import (
    TelemetryManager,
    TelemetryStats,
)

__all__ = [
    # Router
    "IntentRouter",
    "create_router",
    "PARAMETERLESS_INTENTS",
    # Tier 1
    "PatternMatcher",
    "PatternRule",
    "rule",
    "ACTION_PATTERNS",
    "QUERY_PATTERNS",
    # Parameter extraction
    "ParameterExtractor",
    "clamp_level",
    "parse_duration_minutes",
    # Tier 2
    "StatisticalClassifier",
    "ClassifierBackend",
    "ClassifierHandle",
    "ClassifierState",
    "NaiveBayesBackend",
    "PipelineModel",
    "Ready",
    "Unavailable",
    "ClassifierError",
    "ModelLoadError",
    "DependencyError",
    # Execution
    "Tool",
    "ToolExecutor",
    "ToolTelemetry",
    "ToolTelemetryEntry",
    "ToolTelemetryStats",
    "ERROR_PREFIXES",
    "is_error_response",
    # Telemetry
    "TelemetryManager",
    "TelemetryStats",
    # Skills
    "detect_skill_id",
    "get_skill_id_for_intent",
    "is_skill_intent",
    # Taxonomy
    "ClassificationTier",
    "ConfidenceThresholds",
    "ClassificationResult",
    "PatternMatchResult",
    "RouteResult",
    "TelemetryEvent",
    "ToolExecutionResult",
]
