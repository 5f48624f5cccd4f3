"""Deterministic pattern matching for fastpath (Tier 1).

Regex tables keyed by tool name. Action patterns extract parameters from
named capture groups; query patterns carry no parameters. Matching runs in
well under a millisecond and is the first tier tried for every query.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .extractors import clamp_level, parse_duration_minutes
from .taxonomy import PatternMatchResult

logger = logging.getLogger(__name__)

Extractor = Callable[[re.Match[str]], dict[str, Any]]


@dataclass(frozen=True)
class PatternRule:
    """A compiled pattern with its confidence and optional extractor.

    Attributes:
        regex: Compiled regular expression (case-insensitive)
        confidence: Confidence score 0.0-1.0
        extractor: Builds tool parameters from the match (action rules only)
    """

    regex: re.Pattern[str]
    confidence: float
    extractor: Extractor | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Rule confidence must be within [0, 1], got {self.confidence} "
                f"for /{self.regex.pattern}/"
            )


def rule(pattern: str, confidence: float, extractor: Extractor | None = None) -> PatternRule:
    """Compile a pattern into a case-insensitive PatternRule."""
    return PatternRule(re.compile(pattern, re.IGNORECASE), confidence, extractor)


# --- Extractor helpers ---


def _level(match: re.Match[str]) -> dict[str, Any]:
    return {"action": "set", "level": clamp_level(int(match.group("level")))}


def _fixed(**params: Any) -> Extractor:
    return lambda match: dict(params)


def _countdown(match: re.Match[str]) -> dict[str, Any]:
    value = int(match.group("value"))
    unit = match.group("unit").lower()
    return {
        "action": "create",
        "duration": parse_duration_minutes(value, unit),
        "name": f"{value} {unit}",
    }


def _reminder(match: re.Match[str]) -> dict[str, Any]:
    delay = parse_duration_minutes(int(match.group("value")), match.group("unit"))
    message = re.search(r"remind me (?:to )?(.*?)\s+in\b", match.string, re.IGNORECASE)
    return {"message": message.group(1) if message else "Reminder", "delay": delay}


def _conversion(match: re.Match[str]) -> dict[str, Any]:
    return {
        "value": float(match.group("value")),
        "from_unit": match.group("from_unit"),
        "to_unit": match.group("to_unit"),
    }


_DURATION_UNITS = r"(?P<unit>minutes?|mins?|hours?|hrs?|seconds?|secs?)\b"
_MINUTE_HOUR_UNITS = r"(?P<unit>minutes?|mins?|hours?|hrs?)\b"
# Up to three words, not an article and not a timer or window phrase
_APP_NAME = (
    r"(?!(?:a|an|all|the)\b)(?!.*\b(?:timer|countdown|pomodoro|reminder|alarm|windows?)\b)"
    r"(?P<app>\w+(?: \w+){0,2}?)"
)


# Query patterns: {tool_name: [rule, ...]}, no parameters
QUERY_PATTERNS: dict[str, list[PatternRule]] = {
    # Window management
    "window_list": [
        rule(r"^(list|show|get|display|what).*\b(window|windows|open)\b", 0.96),
        rule(r"^what windows (are|r) (open|active|running)", 0.98),
        rule(r"^show.*\b(open|active) (window|windows)\b", 0.96),
    ],
    # System information
    "system_info": [
        rule(r"^(system|computer|pc|machine) (info|information|stats|details|specs)\b", 0.97),
        rule(r"^what.*\b(system|computer|pc|my computer)\b", 0.96),
        rule(r"^(check|show|get|display) (system|computer|pc) (info|information|specs)\b", 0.97),
        rule(r"^(tell me|show me).*\b(system|computer) (info|specs|details)\b", 0.96),
    ],
    # Volume query (set/mute live in the action table)
    "system_volume": [
        rule(r"^(get|what|check|show|tell me).*\b(volume|audio|sound)( level)?$", 0.97),
        rule(r"^what.*\b(volume|audio|sound)$", 0.96),
    ],
    # Network information
    "network_info": [
        rule(r"^(network|wifi|internet) (info|information|status|details)\b", 0.97),
        rule(r"^what.*\b(network|wifi|internet|ip)\b", 0.96),
        rule(r"^(check|show|get|display) (network|wifi|internet) (info|status)\b", 0.97),
    ],
    "apps_list": [
        rule(r"^(list|show|get|display).*\b(apps|applications|programs|running)\b", 0.96),
        rule(r"^what.*\b(apps|applications|programs)\b.*\b(running|open|installed)\b", 0.96),
    ],
    "process_list": [
        rule(r"^(list|show|get|display).*\b(process|processes|tasks)\b", 0.96),
        rule(r"^what.*\b(process|processes|tasks)\b.*\brunning\b", 0.96),
    ],
    # Clipboard
    "clipboard_read": [
        rule(r"^(read|get|show|check|what).*\b(clipboard|copied)\b", 0.97),
        rule(r"^(show|tell) me.*\b(clipboard|copied)\b", 0.96),
    ],
    "clipboard_clear": [
        rule(r"^(clear|empty|delete|wipe).*\bclipboard\b", 0.98),
    ],
    "service_list": [
        rule(r"^(list|show|get|display).*\b(service|services)\b", 0.96),
        rule(r"^what.*\b(service|services)\b.*\b(running|installed|active)\b", 0.96),
    ],
    # Power
    "system_lock": [
        rule(r"^(lock|secure).*\b(screen|computer|pc)\b", 0.98),
        rule(r"^lock (it|this|my computer|my pc|screen)$", 0.98),
    ],
    "system_sleep": [
        rule(r"^(sleep|suspend|hibernate).*\b(computer|pc|system)\b", 0.98),
        rule(r"^(put|send).*\b(computer|pc)\b.*\b(sleep|suspend)\b", 0.98),
    ],
    # Productivity
    "list_reminders": [
        rule(r"^what reminders (do i have|are active)", 0.98),
        rule(r"^(list|show|get|display|what).*\b(reminder|reminders)\b", 0.97),
    ],
    "productivity_worldclock": [
        rule(r"^(world clock|time.*\b(world|zones|cities)\b)", 0.97),
        rule(r"^what.*\b(time|clock)\b.*\b(world|zones)\b", 0.96),
    ],
}


# Action patterns: {tool_name: [rule, ...]}, parameters from named groups
ACTION_PATTERNS: dict[str, list[PatternRule]] = {
    "system_volume": [
        rule(r"^(set|change|adjust|make)\b.*?\b(volume|audio|sound)\D*(?P<level>\d+)", 0.95, _level),
        rule(r"^(volume|audio|sound)\D*(?P<level>\d+)", 0.94, _level),
        rule(r"^mute( the)?( volume| audio| sound)?$", 0.98, _fixed(action="mute")),
        rule(r"^unmute( the)?( volume| audio| sound)?$", 0.98, _fixed(action="unmute")),
        rule(r"^(increase|raise|turn up)\b.*\b(volume|audio|sound)", 0.92, _fixed(action="set", level=75)),
        rule(r"^(decrease|lower|turn down)\b.*\b(volume|audio|sound)", 0.92, _fixed(action="set", level=25)),
    ],
    "system_brightness": [
        rule(r"^(set|change|adjust|make)\b.*?\b(brightness|screen)\D*(?P<level>\d+)", 0.95, _level),
        rule(r"^brightness\D*(?P<level>\d+)", 0.94, _level),
    ],
    "productivity_countdown": [
        rule(r"^(timer|countdown)\b.*?(?P<value>\d+)\s*" + _DURATION_UNITS, 0.92, _countdown),
        rule(r"^(set|start)\b.*\b(timer|countdown)\b.*?(?P<value>\d+)\s*" + _MINUTE_HOUR_UNITS, 0.92, _countdown),
    ],
    "productivity_pomodoro": [
        rule(r"^(start|begin)\b.*\bpomodoro\b", 0.95, _fixed(action="create", work_duration=25, break_duration=5)),
        rule(r"^pomodoro$", 0.96, _fixed(action="create", work_duration=25, break_duration=5)),
    ],
    "set_reminder": [
        rule(r"^remind me\b.*?\bin (?P<value>\d+)\s*" + _MINUTE_HOUR_UNITS, 0.93, _reminder),
        rule(
            r"^set\b.*\b(reminder|alarm)\b.*?(?P<value>\d+)\s*" + _MINUTE_HOUR_UNITS,
            0.92,
            lambda m: {
                "message": "Reminder",
                "delay": parse_duration_minutes(int(m.group("value")), m.group("unit")),
            },
        ),
    ],
    "clipboard_write": [
        rule(
            r"^(copy|write|set)\b.*\bclipboard\b.*?[\"'](?P<content>.+)[\"']",
            0.94,
            lambda m: {"content": m.group("content")},
        ),
    ],
    "system_wifi": [
        rule(r"^(turn on|enable|activate)\b.*\b(wifi|wi-fi)\b", 0.97, _fixed(action="on")),
        rule(r"^(turn off|disable|deactivate)\b.*\b(wifi|wi-fi)\b", 0.97, _fixed(action="off")),
        rule(r"^(toggle|switch)\b.*\b(wifi|wi-fi)\b", 0.96, _fixed(action="toggle")),
        rule(r"^(wifi|wi-fi)\b.*\b(status|state)\b", 0.96, _fixed(action="status")),
        rule(r"^(list|show)\b.*\b(wifi|wi-fi)\b.*\b(network|networks)\b", 0.96, _fixed(action="available")),
    ],
    "system_dnd": [
        rule(r"^(turn on|enable|activate)\b.*\b(dnd|do not disturb)\b", 0.97, _fixed(action="on")),
        rule(r"^(turn off|disable|deactivate)\b.*\b(dnd|do not disturb)\b", 0.97, _fixed(action="off")),
        rule(r"^(dnd|do not disturb)\b.*\b(status|state)\b", 0.96, _fixed(action="status")),
    ],
    "productivity_convert": [
        rule(
            r"^(convert|change) (?P<value>\d+(?:\.\d+)?)\s*(?P<from_unit>[a-z]+)\s+(?:to|into)\s+(?P<to_unit>[a-z]+)",
            0.95,
            _conversion,
        ),
        rule(
            r"^(?P<value>\d+(?:\.\d+)?)\s*(?P<from_unit>[a-z]+)\s+(?:to|in|into)\s+(?P<to_unit>[a-z]+)$",
            0.94,
            _conversion,
        ),
    ],
    "system_screenshot": [
        rule(r"^(take|capture|grab)\b.*\b(screenshot|screen shot|screen)\b", 0.96, _fixed(region="fullscreen")),
        rule(r"^screenshot$", 0.97, _fixed(region="fullscreen")),
    ],
    # App verbs are generic ("start", "stop"), so these tables come last
    "window_focus": [
        rule(
            r"^(focus|switch to|bring up) (?P<app>\w+)",
            0.94,
            lambda m: {"app_name": m.group("app")},
        ),
        rule(r"^show (?P<app>desktop)$", 0.94, lambda m: {"app_name": m.group("app")}),
    ],
    "apps_launch": [
        rule(
            r"^(launch|open|start|run) " + _APP_NAME + r"$",
            0.95,
            lambda m: {"name": m.group("app")},
        ),
    ],
    "apps_quit": [
        rule(
            r"^(force quit|force close|force kill) " + _APP_NAME + r"(?: now)?$",
            0.96,
            lambda m: {"name": m.group("app"), "force": True},
        ),
        rule(
            r"^(quit|close|kill|stop|exit) " + _APP_NAME + r"(?: now)?$",
            0.94,
            lambda m: {"name": m.group("app"), "force": False},
        ),
    ],
}


class PatternMatcher:
    """Regex-table intent matcher.

    Action tables are tried before query tables because parameterized intents
    are more specific and must not be shadowed by a broader parameterless
    pattern for the same phrase. The first matching rule wins.
    """

    def __init__(
        self,
        action_patterns: Mapping[str, list[PatternRule]] | None = None,
        query_patterns: Mapping[str, list[PatternRule]] | None = None,
    ) -> None:
        """Initialize the matcher with rule tables.

        Args:
            action_patterns: Rules with extractors (defaults to ACTION_PATTERNS)
            query_patterns: Rules without parameters (defaults to QUERY_PATTERNS)
        """
        self._action_patterns = dict(ACTION_PATTERNS if action_patterns is None else action_patterns)
        self._query_patterns = dict(QUERY_PATTERNS if query_patterns is None else query_patterns)

    def match(self, query: str) -> PatternMatchResult:
        """Match a query against the action tables, then the query tables.

        Args:
            query: User input text

        Returns:
            PatternMatchResult for the first matching rule, or an unmatched
            result with confidence 0.0
        """
        text = query.strip()

        for tool_name, rules in self._action_patterns.items():
            for pattern_rule in rules:
                match = pattern_rule.regex.search(text)
                if not match:
                    continue
                try:
                    params = pattern_rule.extractor(match) if pattern_rule.extractor else {}
                except Exception as e:
                    logger.debug(f"Extractor failed for {tool_name} /{pattern_rule.regex.pattern}/: {e}")
                    continue
                return PatternMatchResult(
                    tool_name=tool_name,
                    confidence=pattern_rule.confidence,
                    params=params,
                    matched=True,
                )

        for tool_name, rules in self._query_patterns.items():
            for pattern_rule in rules:
                if pattern_rule.regex.search(text):
                    return PatternMatchResult(
                        tool_name=tool_name,
                        confidence=pattern_rule.confidence,
                        matched=True,
                    )

        return PatternMatchResult.no_match()

    def get_supported_tools(self) -> list[str]:
        """Return every tool name with at least one pattern, in table order."""
        tools = list(self._action_patterns)
        tools.extend(name for name in self._query_patterns if name not in tools)
        return tools
