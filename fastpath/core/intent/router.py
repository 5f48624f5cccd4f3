"""Cascading intent router for fastpath.

This module implements the three-tier routing pipeline:
1. Deterministic pattern matching (~1ms) - Regex tables
2. Statistical classification (~1-5ms) - Naive Bayes, if a model is loaded
3. Fallback - Hand the query to the LLM with diagnostic context

A tier only runs when every earlier tier declined. A tier that matches but
whose tool execution fails does not retry; routing moves on to the next tier
carrying the failure so the LLM fallback does not have to rediscover it.
``route()`` never raises.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from .classifier import NaiveBayesBackend, StatisticalClassifier
from .executor import ToolExecutor, ToolSource, ToolTelemetry
from .extractors import ParameterExtractor
from .patterns import PatternMatcher
from .skills import detect_skill_id
from .taxonomy import (
    ClassificationResult,
    ClassificationTier,
    ConfidenceThresholds,
    RouteResult,
    TelemetryEvent,
    ToolExecutionResult,
)
from .telemetry import TelemetryManager

if TYPE_CHECKING:
    from ...config import RouterConfig

logger = logging.getLogger(__name__)

# Security: Maximum input length to prevent DoS via regex abuse
MAX_INPUT_LENGTH = 10_000

# Query characters kept in telemetry events
TELEMETRY_QUERY_LENGTH = 100

# Intents with no parameters to extract. In the medium confidence band an
# empty extraction gives no corroborating evidence, so these are declined.
PARAMETERLESS_INTENTS: frozenset[str] = frozenset(
    {
        "window_list",
        "system_info",
        "network_info",
        "apps_list",
        "process_list",
        "clipboard_read",
        "clipboard_clear",
        "service_list",
        "system_lock",
        "system_sleep",
        "list_reminders",
        "productivity_worldclock",
    }
)


class IntentRouter:
    """Orchestrates the tiered routing pipeline.

    Attributes:
        pattern_matcher: Deterministic regex tier
        classifier: Optional statistical tier
        extractor: Parameter extraction for statistical matches
        executor: Tool execution boundary
        telemetry: Routing outcome log
        deterministic_threshold: Minimum pattern confidence to execute
        statistical_threshold: Classifier confidence to execute directly
        statistical_medium_threshold: Classifier confidence worth extracting for
    """

    def __init__(
        self,
        executor: ToolExecutor,
        pattern_matcher: PatternMatcher | None = None,
        classifier: StatisticalClassifier | None = None,
        extractor: ParameterExtractor | None = None,
        telemetry: TelemetryManager | None = None,
        deterministic_threshold: float = ConfidenceThresholds.DETERMINISTIC,
        statistical_threshold: float = ConfidenceThresholds.STATISTICAL,
        statistical_medium_threshold: float = ConfidenceThresholds.STATISTICAL_MEDIUM,
        max_query_length: int = MAX_INPUT_LENGTH,
        telemetry_query_length: int = TELEMETRY_QUERY_LENGTH,
        parameterless_intents: frozenset[str] = PARAMETERLESS_INTENTS,
    ) -> None:
        """Initialize the router with its collaborators.

        Args:
            executor: Tool executor backed by the host's tool registry
            pattern_matcher: Deterministic matcher (default tables if omitted)
            classifier: Statistical classifier (always unavailable if omitted)
            extractor: Parameter extractor for statistical matches
            telemetry: Telemetry manager (a new one if omitted)
            deterministic_threshold: Minimum pattern confidence to execute
            statistical_threshold: Classifier confidence to execute directly
            statistical_medium_threshold: Lowest classifier confidence worth
                an extraction attempt
            max_query_length: Longer queries are truncated
            telemetry_query_length: Query characters stored per telemetry event
            parameterless_intents: Intents declined in the medium band
        """
        self.executor = executor
        self.pattern_matcher = pattern_matcher if pattern_matcher is not None else PatternMatcher()
        self.classifier = classifier if classifier is not None else StatisticalClassifier()
        self.extractor = extractor if extractor is not None else ParameterExtractor()
        self.telemetry = telemetry if telemetry is not None else TelemetryManager()

        self.deterministic_threshold = deterministic_threshold
        self.statistical_threshold = statistical_threshold
        self.statistical_medium_threshold = statistical_medium_threshold
        self.max_query_length = max_query_length
        self.telemetry_query_length = telemetry_query_length
        self.parameterless_intents = parameterless_intents

    async def initialize(self) -> None:
        """Load the statistical model ahead of the first query."""
        await self.classifier.initialize()
        if self.classifier.is_available():
            logger.info("IntentRouter initialized with pattern + statistical tiers")
        else:
            logger.info(
                f"IntentRouter initialized with pattern tier only ({self.classifier.get_error()})"
            )

    async def route(self, query: str) -> RouteResult:
        """Route a query through the tiers.

        Args:
            query: User input text

        Returns:
            RouteResult; ``handled=False`` signals escalation to the LLM
        """
        start = time.perf_counter()
        text = query.strip()

        if len(text) > self.max_query_length:
            logger.warning(f"Input truncated from {len(text)} to {self.max_query_length} chars")
            text = text[: self.max_query_length]

        logger.debug(f"Intent routing started: {text[:50]!r}")

        try:
            result = await self._route_tiers(text)
        except Exception as e:
            logger.exception("Intent routing error")
            result = RouteResult(
                handled=False,
                tier=ClassificationTier.FALLBACK,
                reason=f"Routing error: {e}",
            )

        self._record_telemetry(text, result, start)
        return result

    async def _route_tiers(self, query: str) -> RouteResult:
        failure: RouteResult | None = None

        # Tier 1: Deterministic pattern matching
        pattern_match = self.pattern_matcher.match(query)
        pattern_confidence = pattern_match.confidence

        if pattern_match.matched and pattern_confidence >= self.deterministic_threshold:
            logger.debug(f"Pattern match: {pattern_match.tool_name} ({pattern_confidence:.2f})")
            execution = await self.executor.execute(
                pattern_match.tool_name,
                pattern_match.params or {},
                tier=ClassificationTier.DETERMINISTIC,
            )
            if execution.success:
                return RouteResult.success(
                    response=execution.response,
                    tool_name=pattern_match.tool_name,
                    confidence=pattern_confidence,
                    tier=ClassificationTier.DETERMINISTIC,
                )
            logger.info(f"Pattern match execution failed: {execution.error}")
            failure = self._failure(
                pattern_match.tool_name, pattern_confidence, execution, ClassificationTier.DETERMINISTIC
            )
        else:
            logger.debug(f"Pattern match: no match or low confidence ({pattern_confidence:.2f})")

        # Tier 2: Statistical classification
        await self.classifier.initialize()
        classification: ClassificationResult | None = None

        if self.classifier.is_available():
            classification = await self.classifier.classify(query)
            params = self._statistical_params(query, classification)

            if params is not None:
                execution = await self.executor.execute(
                    classification.intent, params, tier=ClassificationTier.STATISTICAL
                )
                if execution.success:
                    return RouteResult.success(
                        response=execution.response,
                        tool_name=classification.intent,
                        confidence=classification.confidence,
                        tier=ClassificationTier.STATISTICAL,
                    )
                logger.info(f"Statistical match execution failed: {execution.error}")
                failure = self._failure(
                    classification.intent,
                    classification.confidence,
                    execution,
                    ClassificationTier.STATISTICAL,
                )

        # Tier 3: Fallback
        return self._fallback(query, pattern_confidence, classification, failure)

    def _statistical_params(
        self, query: str, classification: ClassificationResult
    ) -> dict | None:
        """Decide whether a classification is worth executing.

        Returns:
            Parameters to execute with, or None to decline
        """
        intent = classification.intent
        confidence = classification.confidence

        if intent == ClassificationResult.unknown().intent:
            return None

        if confidence >= self.statistical_threshold:
            logger.debug(f"Statistical match: {intent} ({confidence:.2f})")
            return self.extractor.extract(query, intent)

        if confidence >= self.statistical_medium_threshold:
            if intent in self.parameterless_intents:
                logger.debug(f"Statistical medium confidence, parameterless intent declined: {intent}")
                return None
            params = self.extractor.extract(query, intent)
            if not params:
                logger.debug(f"Statistical medium confidence, nothing extracted for {intent}")
                return None
            logger.debug(f"Statistical medium confidence: {intent} ({confidence:.2f}) params={params}")
            return params

        logger.debug(f"Statistical match below threshold: {intent} ({confidence:.2f})")
        return None

    @staticmethod
    def _failure(
        tool_name: str,
        confidence: float,
        execution: ToolExecutionResult,
        tier: ClassificationTier,
    ) -> RouteResult:
        error = execution.error or execution.response
        return RouteResult(
            handled=False,
            confidence=confidence,
            reason=f"Execution failed: {error}",
            failed_tool_name=tool_name,
            failed_error=error,
            original_tier=tier,
        )

    def _fallback(
        self,
        query: str,
        pattern_confidence: float,
        classification: ClassificationResult | None,
        failure: RouteResult | None,
    ) -> RouteResult:
        statistical = (
            f"{classification.confidence:.2f}" if classification is not None else "unavailable"
        )
        summary = f"pattern confidence: {pattern_confidence:.2f}, statistical confidence: {statistical}"

        skill_id = detect_skill_id(query)

        if failure is not None:
            failure.tier = ClassificationTier.FALLBACK
            failure.reason = f"{failure.reason} ({summary})"
            failure.skill_id = skill_id
            return failure

        if skill_id:
            logger.info(f"Skill intent detected via keywords: {skill_id}")
            reason = f"Skill intent detected: {skill_id} ({summary})"
        else:
            reason = f"No confident match ({summary})"

        return RouteResult(
            handled=False,
            confidence=max(
                pattern_confidence, classification.confidence if classification else 0.0
            ),
            tier=ClassificationTier.FALLBACK,
            reason=reason,
            skill_id=skill_id,
        )

    def _record_telemetry(self, query: str, result: RouteResult, start: float) -> None:
        latency_ms = int((time.perf_counter() - start) * 1000)
        tier = result.tier or ClassificationTier.FALLBACK

        self.telemetry.record(
            TelemetryEvent(
                query=query[: self.telemetry_query_length],
                tier=tier,
                tool_name=result.tool_name or result.failed_tool_name,
                confidence=result.confidence,
                latency_ms=latency_ms,
                timestamp_ms=int(time.time() * 1000),
                success=result.handled,
                error=None if result.handled else result.reason,
            )
        )

        logger.info(
            f"Intent routing complete: tier={tier.label} handled={result.handled} "
            f"latency={latency_ms}ms"
        )


def create_router(
    tools: ToolSource | None = None,
    config: "RouterConfig | None" = None,
) -> IntentRouter:
    """Factory function to create an IntentRouter from configuration.

    Args:
        tools: Host tool registry (Tool objects or {name: handler})
        config: Router configuration (environment/defaults if omitted)

    Returns:
        Configured IntentRouter instance (model not yet loaded)
    """
    if config is None:
        from ...config import RouterConfig

        config = RouterConfig()

    executor = ToolExecutor(
        tools,
        telemetry=ToolTelemetry(config.tool_telemetry_capacity),
        timeout=config.execution_timeout,
    )

    return IntentRouter(
        executor=executor,
        classifier=StatisticalClassifier(NaiveBayesBackend(config.model_path)),
        telemetry=TelemetryManager(config.telemetry_capacity),
        deterministic_threshold=config.deterministic_threshold,
        statistical_threshold=config.statistical_threshold,
        statistical_medium_threshold=config.statistical_medium_threshold,
        max_query_length=config.max_query_length,
        telemetry_query_length=config.telemetry_query_length,
    )
