"""Parameter extraction for fastpath intents.

This module turns free text into the structured parameters a tool expects
(volume levels, durations, app names, clipboard content, etc.). Each intent
has its own strategy: a cascade of candidate regexes where the first match
wins, with a documented default when nothing matches.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Defaults for relative volume changes without an explicit level
VOLUME_UP_LEVEL = 75
VOLUME_DOWN_LEVEL = 25

DEFAULT_TIMER_MINUTES = 25
DEFAULT_POMODORO_WORK = 25
DEFAULT_POMODORO_BREAK = 5
DEFAULT_REMINDER_DELAY = 60

# Leading verbs stripped from app/window commands (longest first)
APP_ACTION_WORDS: list[str] = [
    "force quit",
    "force close",
    "force kill",
    "bring up",
    "switch to",
    "launch",
    "start",
    "focus",
    "close",
    "show",
    "open",
    "quit",
    "kill",
    "stop",
    "exit",
    "run",
]

DURATION_PATTERN = re.compile(
    r"(?P<value>\d+)\s*(?P<unit>minutes?|mins?|hours?|hrs?|seconds?|secs?)\b",
    re.IGNORECASE,
)


def clamp_level(value: float, low: int = 0, high: int = 100) -> int:
    """Clamp a numeric level into [low, high] as an integer."""
    return int(max(low, min(high, int(value))))


def parse_duration_minutes(value: int, unit: str) -> int:
    """Normalize a duration to whole minutes.

    Hours are multiplied by 60. Seconds round to the nearest minute with
    halves rounding down and a floor of one minute, so "90 seconds" is 1,
    "100 seconds" is 2 and "5 seconds" is 1.

    Args:
        value: Numeric amount
        unit: Unit word as written ("min", "hours", "sec", ...)

    Returns:
        Duration in minutes
    """
    unit = unit.lower()
    if unit.startswith("h"):
        return value * 60
    if unit.startswith("s"):
        minutes, remainder = divmod(value, 60)
        if remainder > 30:
            minutes += 1
        return max(1, minutes)
    return value


class ParameterExtractor:
    """Extract tool parameters from a query for a known intent."""

    def __init__(self) -> None:
        self._strategies: dict[str, Callable[[str, str], dict[str, Any]]] = {
            "system_volume": self._volume,
            "system_brightness": self._brightness,
            "window_focus": self._app,
            "apps_launch": self._app,
            "apps_quit": self._app,
            "apps_switch": self._app,
            "productivity_countdown": self._countdown,
            "productivity_pomodoro": self._pomodoro,
            "set_reminder": self._reminder,
            "productivity_convert": self._conversion,
            "system_wifi": self._wifi,
            "system_dnd": self._dnd,
            "clipboard_write": self._clipboard,
            "system_screenshot": self._screenshot,
        }

    @property
    def supported_intents(self) -> list[str]:
        return list(self._strategies)

    def extract(self, query: str, intent: str) -> dict[str, Any]:
        """Extract parameters for an intent.

        Never raises. Unknown intents and strategy failures yield ``{}``.

        Args:
            query: Raw user query
            intent: Intent (tool) name

        Returns:
            Parameter dictionary for the tool
        """
        strategy = self._strategies.get(intent)
        if strategy is None:
            return {}

        text = query.strip()
        try:
            return strategy(text.lower(), text)
        except Exception as e:
            logger.warning(f"Parameter extraction failed for {intent}: {e}")
            return {}

    # --- Strategies ---
    # Each receives the lowercased query and the original (trimmed) query.

    def _volume(self, query: str, original: str) -> dict[str, Any]:
        if re.search(r"\bmute\b", query):
            return {"action": "mute"}
        if re.search(r"\bunmute\b", query):
            return {"action": "unmute"}

        level = self.extract_number(query)
        if level is not None:
            return {"action": "set", "level": clamp_level(level)}

        if re.search(r"\b(increase|raise|turn up|louder|up)\b", query):
            return {"action": "set", "level": VOLUME_UP_LEVEL}
        if re.search(r"\b(decrease|lower|turn down|quieter|down)\b", query):
            return {"action": "set", "level": VOLUME_DOWN_LEVEL}

        return {"action": "get"}

    def _brightness(self, query: str, original: str) -> dict[str, Any]:
        level = self.extract_number(query)
        if level is not None:
            return {"action": "set", "level": clamp_level(level)}
        return {"action": "get"}

    def _app(self, query: str, original: str) -> dict[str, Any]:
        name = self.extract_target(query, APP_ACTION_WORDS)
        if name:
            return {"name": name, "app_name": name}
        return {}

    def _countdown(self, query: str, original: str) -> dict[str, Any]:
        match = DURATION_PATTERN.search(query)
        if match:
            value = int(match.group("value"))
            unit = match.group("unit")
            return {
                "action": "create",
                "duration": parse_duration_minutes(value, unit),
                "name": f"{value} {unit} timer",
            }
        return {"action": "create", "duration": DEFAULT_TIMER_MINUTES, "name": "Timer"}

    def _pomodoro(self, query: str, original: str) -> dict[str, Any]:
        work = re.search(r"(\d+)\s*min(?:ute)?s?\s*work", query)
        rest = re.search(r"(\d+)\s*min(?:ute)?s?\s*break", query)
        return {
            "action": "create",
            "work_duration": int(work.group(1)) if work else DEFAULT_POMODORO_WORK,
            "break_duration": int(rest.group(1)) if rest else DEFAULT_POMODORO_BREAK,
            "name": "Pomodoro",
        }

    def _reminder(self, query: str, original: str) -> dict[str, Any]:
        delay = re.search(
            r"\bin\s+(?P<value>\d+)\s*(?P<unit>minutes?|mins?|hours?|hrs?)\b", query
        )
        if delay:
            message = re.search(r"remind me (?:to )?(.*?)\s+in\b", original, re.IGNORECASE)
            return {
                "message": message.group(1).strip() if message else "Reminder",
                "delay": parse_duration_minutes(int(delay.group("value")), delay.group("unit")),
            }

        at_time = re.search(r"\bat\s+(\d{1,2}(?::\d{2})?\s*(?:am|pm)?)", query)
        if at_time:
            message = re.search(r"remind me (?:to )?(.*?)\s+at\b", original, re.IGNORECASE)
            return {
                "message": message.group(1).strip() if message else "Reminder",
                "time": at_time.group(1).strip(),
            }

        return {"message": "Reminder", "delay": DEFAULT_REMINDER_DELAY}

    def _conversion(self, query: str, original: str) -> dict[str, Any]:
        match = re.search(r"(\d+(?:\.\d+)?)\s*([a-z]+)\s*(?:to|in|into)\s+([a-z]+)", query)
        if match:
            return {
                "value": float(match.group(1)),
                "from_unit": match.group(2),
                "to_unit": match.group(3),
            }
        return {}

    def _wifi(self, query: str, original: str) -> dict[str, Any]:
        if re.search(r"\b(turn on|enable|activate)\b", query):
            return {"action": "on"}
        if re.search(r"\b(turn off|disable|deactivate)\b", query):
            return {"action": "off"}
        if re.search(r"\b(toggle|switch)\b", query):
            return {"action": "toggle"}
        if re.search(r"\b(list|show|available)\b", query):
            return {"action": "available"}
        return {"action": "status"}

    def _dnd(self, query: str, original: str) -> dict[str, Any]:
        if re.search(r"\b(turn on|enable|activate)\b", query):
            minutes = self.extract_duration(query)
            if minutes is not None:
                return {"action": "on", "duration": minutes}
            return {"action": "on"}
        if re.search(r"\b(turn off|disable|deactivate)\b", query):
            return {"action": "off"}
        return {"action": "status"}

    def _clipboard(self, query: str, original: str) -> dict[str, Any]:
        quoted = re.search(r"[\"'](.+)[\"']", original)
        if quoted:
            return {"content": quoted.group(1)}

        trailing = re.search(r"\b(?:clipboard|copy)\s+(.+)", original, re.IGNORECASE)
        if trailing:
            return {"content": trailing.group(1)}

        return {}

    def _screenshot(self, query: str, original: str) -> dict[str, Any]:
        if "window" in query:
            return {"region": "window"}
        if re.search(r"\b(selection|select|area)\b", query):
            return {"region": "selection"}
        return {"region": "fullscreen"}

    # --- Helpers ---

    @staticmethod
    def extract_number(query: str) -> float | None:
        """Return the first number in the query, or None."""
        match = re.search(r"(\d+(?:\.\d+)?)", query)
        return float(match.group(1)) if match else None

    @staticmethod
    def extract_duration(query: str) -> int | None:
        """Return the first duration in the query in minutes, or None."""
        match = DURATION_PATTERN.search(query)
        if not match:
            return None
        return parse_duration_minutes(int(match.group("value")), match.group("unit"))

    @staticmethod
    def extract_target(query: str, action_words: list[str]) -> str | None:
        """Strip one leading action word and return the remaining target."""
        text = query.strip()
        for word in action_words:
            stripped = re.sub(rf"^{re.escape(word)}\s+", "", text, flags=re.IGNORECASE)
            if stripped != text:
                text = stripped
                break
        return text.strip() or None
