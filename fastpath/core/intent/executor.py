"""Tool execution boundary for fastpath.

Invokes host-registered tool handlers by name and normalizes whatever they
return into a ToolExecutionResult. Handlers may be sync or async and may
signal failure either by raising or, by convention, by returning a string
that starts with an error phrase ("Failed to ...", "Error: ..."). The
executor is the single place where both styles are reconciled.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Union

from .taxonomy import ClassificationTier, ToolExecutionResult

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Any]

# Prefixes (lowercase) that mark a returned string as a failure
ERROR_PREFIXES: tuple[str, ...] = (
    "failed to ",
    "error:",
    "error executing",
    "could not ",
    "unable to ",
    "cannot ",
)

TOOL_TELEMETRY_BUFFER_SIZE = 500


@dataclass
class Tool:
    """A named action supplied by the host.

    Attributes:
        name: Tool name used for routing
        handler: Callable receiving the parameter dict (sync or async)
        description: Human-readable description
    """

    name: str
    handler: ToolHandler | None
    description: str = ""


ToolSource = Union[Iterable[Tool], Mapping[str, ToolHandler]]


@dataclass
class ToolTelemetryEntry:
    """Telemetry for a single tool execution."""

    tool: str
    latency_ms: int
    success: bool
    tier: ClassificationTier | None
    timestamp_ms: int


@dataclass
class ToolTelemetryStats:
    """Aggregated execution stats for one tool."""

    tool: str
    calls: int
    avg_latency_ms: int
    p95_latency_ms: int
    success_rate: float


class ToolTelemetry:
    """Bounded ring buffer of recent tool executions."""

    def __init__(self, max_entries: int = TOOL_TELEMETRY_BUFFER_SIZE) -> None:
        self._entries: deque[ToolTelemetryEntry] = deque(maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, entry: ToolTelemetryEntry) -> None:
        self._entries.append(entry)

    def recent(self, limit: int = 50) -> list[ToolTelemetryEntry]:
        """Return the most recent entries, oldest first."""
        if limit <= 0:
            return []
        return list(self._entries)[-limit:]

    def stats(self) -> list[ToolTelemetryStats]:
        """Aggregate entries per tool, most called first."""
        groups: dict[str, list[ToolTelemetryEntry]] = {}
        for entry in self._entries:
            groups.setdefault(entry.tool, []).append(entry)

        stats = []
        for tool, entries in groups.items():
            latencies = sorted(e.latency_ms for e in entries)
            p95_index = min(int(len(latencies) * 0.95), len(latencies) - 1)
            stats.append(
                ToolTelemetryStats(
                    tool=tool,
                    calls=len(entries),
                    avg_latency_ms=round(sum(latencies) / len(latencies)),
                    p95_latency_ms=latencies[p95_index],
                    success_rate=sum(1 for e in entries if e.success) / len(entries),
                )
            )

        return sorted(stats, key=lambda s: s.calls, reverse=True)

    def clear(self) -> None:
        self._entries.clear()


def is_error_response(response: str) -> bool:
    """Detect handlers that report failure by returning an error string."""
    return response.lower().startswith(ERROR_PREFIXES)


class ToolExecutor:
    """Executes registered tools directly, without the LLM."""

    def __init__(
        self,
        tools: ToolSource | None = None,
        telemetry: ToolTelemetry | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            tools: Tool objects or a {name: handler} mapping
            telemetry: Per-tool execution buffer (a new one if omitted)
            timeout: Seconds to wait for async handlers (None waits forever)
        """
        self._tools: dict[str, Tool] = {}
        self._telemetry = telemetry if telemetry is not None else ToolTelemetry()
        self.timeout = timeout

        if isinstance(tools, Mapping):
            for name, handler in tools.items():
                self.register(name, handler)
        elif tools is not None:
            for tool in tools:
                if tool.name:
                    self._tools[tool.name] = tool

        logger.info(f"ToolExecutor initialized with {len(self._tools)} tools")

    @property
    def telemetry(self) -> ToolTelemetry:
        return self._telemetry

    def register(self, name: str, handler: ToolHandler | None, description: str = "") -> None:
        """Register or replace a tool."""
        self._tools[name] = Tool(name=name, handler=handler, description=description)

    def has_tool_available(self, tool_name: str) -> bool:
        """Check if a tool exists."""
        return tool_name in self._tools

    def get_available_tools(self) -> list[str]:
        """Get all available tool names."""
        return list(self._tools)

    async def execute(
        self,
        tool_name: str,
        params: dict[str, Any] | None = None,
        tier: ClassificationTier | None = None,
    ) -> ToolExecutionResult:
        """Execute a tool with parameters.

        Never raises for handler problems: missing tools, missing handlers,
        exceptions, timeouts and soft failures all become
        ``ToolExecutionResult(success=False)``.

        Args:
            tool_name: Registered tool name
            params: Parameters passed to the handler
            tier: Routing tier that requested the execution (telemetry only)

        Returns:
            ToolExecutionResult with the handler's response
        """
        params = params or {}

        tool = self._tools.get(tool_name)
        if tool is None:
            logger.error(f"Tool not found: {tool_name}")
            return ToolExecutionResult(
                success=False,
                response=f"Error: Tool '{tool_name}' not found",
                error="Tool not found",
            )

        if not callable(tool.handler):
            logger.error(f"Tool {tool_name} has no handler")
            return ToolExecutionResult(
                success=False,
                response=f"Error: Tool '{tool_name}' has no handler",
                error="No handler",
            )

        logger.debug(f"Executing tool: {tool_name} params={params}")
        start = time.perf_counter()

        try:
            result = tool.handler(params)
            if inspect.isawaitable(result):
                if self.timeout is not None:
                    result = await asyncio.wait_for(result, timeout=self.timeout)
                else:
                    result = await result
        except asyncio.TimeoutError as e:
            latency = self._elapsed_ms(start)
            message = f"Timed out after {self.timeout}s" if self.timeout is not None else (str(e) or "Timed out")
            logger.warning(f"Tool execution timed out: {tool_name} ({latency}ms)")
            self._record(tool_name, latency, False, tier)
            return ToolExecutionResult(
                success=False,
                response=f"Error executing {tool_name}: {message}",
                error=message,
            )
        except Exception as e:
            latency = self._elapsed_ms(start)
            logger.warning(f"Tool execution failed: {tool_name}: {e} ({latency}ms)")
            self._record(tool_name, latency, False, tier)
            return ToolExecutionResult(
                success=False,
                response=f"Error executing {tool_name}: {e}",
                error=str(e),
            )

        latency = self._elapsed_ms(start)
        try:
            response = self._serialize(result)
        except (TypeError, ValueError) as e:
            logger.warning(f"Tool result not serializable: {tool_name}: {e} ({latency}ms)")
            self._record(tool_name, latency, False, tier)
            return ToolExecutionResult(
                success=False,
                response=f"Error executing {tool_name}: unserializable result ({e})",
                error=f"Unserializable result: {e}",
            )

        if isinstance(result, str) and is_error_response(result):
            logger.warning(f"Tool returned error response: {tool_name}: {result[:100]} ({latency}ms)")
            self._record(tool_name, latency, False, tier)
            return ToolExecutionResult(success=False, response=response, error=result)

        logger.info(f"Tool executed: {tool_name} ({latency}ms)")
        self._record(tool_name, latency, True, tier)
        return ToolExecutionResult(success=True, response=response)

    @staticmethod
    def format_for_streaming(result: ToolExecutionResult) -> str:
        """Format an execution result the way LLM responses are streamed."""
        if result.success:
            return result.response
        return f"Error: {result.error or 'Unknown error'}"

    @staticmethod
    def _serialize(result: Any) -> str:
        if isinstance(result, str):
            return result
        return json.dumps(result, indent=2, default=str)

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)

    def _record(
        self, tool_name: str, latency_ms: int, success: bool, tier: ClassificationTier | None
    ) -> None:
        self._telemetry.record(
            ToolTelemetryEntry(
                tool=tool_name,
                latency_ms=latency_ms,
                success=success,
                tier=tier,
                timestamp_ms=int(time.time() * 1000),
            )
        )
