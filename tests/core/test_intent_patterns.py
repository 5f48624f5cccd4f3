"""Tests for deterministic pattern matching (Tier 1).

Tests cover:
- Rule construction and confidence bounds
- Action parameter extraction from named groups
- Query patterns
- Table ordering (action before query, declaration order)
- Extractor failures demoting a rule to a non-match
"""

from __future__ import annotations

import pytest

from fastpath.core.intent import (
    ACTION_PATTERNS,
    QUERY_PATTERNS,
    PatternMatcher,
    PatternRule,
    rule,
)

# =============================================================================
# Rule Construction Tests
# =============================================================================


class TestPatternRule:
    """Tests for PatternRule validation."""

    def test_all_table_confidences_in_range(self) -> None:
        """Every shipped rule has a confidence within [0, 1]."""
        for tables in (ACTION_PATTERNS, QUERY_PATTERNS):
            for rules in tables.values():
                for r in rules:
                    assert 0.0 <= r.confidence <= 1.0

    def test_action_rules_have_extractors(self) -> None:
        """Action rules always build parameters."""
        for rules in ACTION_PATTERNS.values():
            for r in rules:
                assert r.extractor is not None

    def test_confidence_above_one_rejected(self) -> None:
        with pytest.raises(ValueError, match="within"):
            rule(r"^x$", 1.5)

    def test_confidence_below_zero_rejected(self) -> None:
        with pytest.raises(ValueError):
            rule(r"^x$", -0.1)

    def test_bounds_inclusive(self) -> None:
        assert rule(r"^x$", 0.0).confidence == 0.0
        assert rule(r"^x$", 1.0).confidence == 1.0

    def test_rule_is_case_insensitive(self) -> None:
        r = rule(r"^mute$", 0.98)
        assert isinstance(r, PatternRule)
        assert r.regex.search("MUTE")


# =============================================================================
# Action Pattern Tests
# =============================================================================


class TestActionPatterns:
    """Tests for parameterized action patterns."""

    @pytest.fixture
    def matcher(self) -> PatternMatcher:
        return PatternMatcher()

    def test_mute(self, matcher: PatternMatcher) -> None:
        result = matcher.match("mute")
        assert result.matched
        assert result.tool_name == "system_volume"
        assert result.confidence == 0.98
        assert result.params == {"action": "mute"}

    def test_unmute_the_sound(self, matcher: PatternMatcher) -> None:
        result = matcher.match("Unmute the sound")
        assert result.tool_name == "system_volume"
        assert result.params == {"action": "unmute"}

    def test_set_volume_multi_digit(self, matcher: PatternMatcher) -> None:
        """The whole number is captured, not only its last digit."""
        result = matcher.match("set the volume to 42")
        assert result.tool_name == "system_volume"
        assert result.confidence == 0.95
        assert result.params == {"action": "set", "level": 42}

    def test_volume_level_clamped(self, matcher: PatternMatcher) -> None:
        result = matcher.match("volume 250")
        assert result.params == {"action": "set", "level": 100}

    def test_turn_up_volume(self, matcher: PatternMatcher) -> None:
        result = matcher.match("turn up the volume")
        assert result.tool_name == "system_volume"
        assert result.confidence == 0.92
        assert result.params == {"action": "set", "level": 75}

    def test_brightness(self, matcher: PatternMatcher) -> None:
        result = matcher.match("set brightness to 60")
        assert result.tool_name == "system_brightness"
        assert result.params == {"action": "set", "level": 60}

    def test_countdown_seconds(self, matcher: PatternMatcher) -> None:
        result = matcher.match("timer 90 seconds")
        assert result.tool_name == "productivity_countdown"
        assert result.params["duration"] == 1
        assert result.params["action"] == "create"

    def test_countdown_hours(self, matcher: PatternMatcher) -> None:
        result = matcher.match("set a timer for 2 hours")
        assert result.tool_name == "productivity_countdown"
        assert result.params["duration"] == 120

    def test_start_pomodoro_not_app_launch(self, matcher: PatternMatcher) -> None:
        """'start' is also an app verb; the pomodoro rule must win."""
        result = matcher.match("start pomodoro")
        assert result.tool_name == "productivity_pomodoro"
        assert result.params == {"action": "create", "work_duration": 25, "break_duration": 5}

    def test_reminder(self, matcher: PatternMatcher) -> None:
        result = matcher.match("remind me to call mom in 2 hours")
        assert result.tool_name == "set_reminder"
        assert result.params == {"message": "call mom", "delay": 120}

    def test_clipboard_write(self, matcher: PatternMatcher) -> None:
        result = matcher.match("copy to clipboard 'hello world'")
        assert result.tool_name == "clipboard_write"
        assert result.params == {"content": "hello world"}

    def test_wifi_off(self, matcher: PatternMatcher) -> None:
        result = matcher.match("turn off wifi")
        assert result.tool_name == "system_wifi"
        assert result.params == {"action": "off"}

    def test_dnd_on(self, matcher: PatternMatcher) -> None:
        result = matcher.match("enable do not disturb")
        assert result.tool_name == "system_dnd"
        assert result.params == {"action": "on"}

    def test_conversion(self, matcher: PatternMatcher) -> None:
        result = matcher.match("convert 10 km to miles")
        assert result.tool_name == "productivity_convert"
        assert result.params == {"value": 10.0, "from_unit": "km", "to_unit": "miles"}

    def test_screenshot(self, matcher: PatternMatcher) -> None:
        result = matcher.match("screenshot")
        assert result.tool_name == "system_screenshot"
        assert result.params == {"region": "fullscreen"}

    def test_launch_app(self, matcher: PatternMatcher) -> None:
        result = matcher.match("open safari")
        assert result.tool_name == "apps_launch"
        assert result.params == {"name": "safari"}

    def test_force_quit(self, matcher: PatternMatcher) -> None:
        result = matcher.match("force quit chrome")
        assert result.tool_name == "apps_quit"
        assert result.params == {"name": "chrome", "force": True}

    def test_focus_window(self, matcher: PatternMatcher) -> None:
        result = matcher.match("switch to terminal")
        assert result.tool_name == "window_focus"
        assert result.params == {"app_name": "terminal"}

    def test_show_desktop(self, matcher: PatternMatcher) -> None:
        result = matcher.match("show desktop")
        assert result.tool_name == "window_focus"
        assert result.params == {"app_name": "desktop"}

    def test_launch_multi_word_app(self, matcher: PatternMatcher) -> None:
        result = matcher.match("open google chrome")
        assert result.tool_name == "apps_launch"
        assert result.params == {"name": "google chrome"}

    def test_quit_now(self, matcher: PatternMatcher) -> None:
        result = matcher.match("quit chrome now")
        assert result.tool_name == "apps_quit"
        assert result.params == {"name": "chrome", "force": False}

    def test_force_quit_multi_word_app(self, matcher: PatternMatcher) -> None:
        result = matcher.match("force quit visual studio code")
        assert result.params == {"name": "visual studio code", "force": True}

    @pytest.mark.parametrize(
        "query",
        ["start a timer", "stop the timer", "kill the wireless thing", "close all windows"],
    )
    def test_app_verbs_leave_other_phrases(self, matcher: PatternMatcher, query: str) -> None:
        result = matcher.match(query)
        assert result.tool_name not in ("apps_launch", "apps_quit")


# =============================================================================
# Query Pattern Tests
# =============================================================================


class TestQueryPatterns:
    """Tests for parameterless query patterns."""

    @pytest.fixture
    def matcher(self) -> PatternMatcher:
        return PatternMatcher()

    @pytest.mark.parametrize(
        "query,tool",
        [
            ("what windows are open", "window_list"),
            ("system info", "system_info"),
            ("what is the volume", "system_volume"),
            ("network status", "network_info"),
            ("clear the clipboard", "clipboard_clear"),
            ("lock screen", "system_lock"),
            ("what reminders do i have", "list_reminders"),
            ("world clock", "productivity_worldclock"),
        ],
    )
    def test_query_patterns(self, matcher: PatternMatcher, query: str, tool: str) -> None:
        result = matcher.match(query)
        assert result.matched
        assert result.tool_name == tool
        assert not result.params

    def test_no_match(self, matcher: PatternMatcher) -> None:
        result = matcher.match("xyzzy plugh")
        assert not result.matched
        assert result.confidence == 0.0
        assert result.params is None

    def test_whitespace_trimmed(self, matcher: PatternMatcher) -> None:
        assert matcher.match("   mute   ").tool_name == "system_volume"


# =============================================================================
# Ordering Tests
# =============================================================================


class TestMatchOrdering:
    """Tests for table precedence."""

    def test_action_beats_query(self) -> None:
        """An action rule wins even against a higher-confidence query rule."""
        matcher = PatternMatcher(
            action_patterns={"do_thing": [rule(r"^thing", 0.95, lambda m: {"x": 1})]},
            query_patterns={"show_thing": [rule(r"thing", 0.99)]},
        )
        result = matcher.match("thing please")
        assert result.tool_name == "do_thing"
        assert result.params == {"x": 1}

    def test_first_declared_wins(self) -> None:
        matcher = PatternMatcher(
            action_patterns={
                "first": [rule(r"^go", 0.90, lambda m: {})],
                "second": [rule(r"^go", 0.99, lambda m: {})],
            },
            query_patterns={},
        )
        assert matcher.match("go").tool_name == "first"

    def test_failing_extractor_skips_rule(self) -> None:
        """An extractor error demotes the rule; matching continues."""

        def broken(match):
            raise ValueError("bad capture")

        matcher = PatternMatcher(
            action_patterns={
                "broken": [rule(r"^boom", 0.99, broken)],
                "fine": [rule(r"^boom", 0.97, lambda m: {"ok": True})],
            },
            query_patterns={},
        )
        result = matcher.match("boom")
        assert result.tool_name == "fine"
        assert result.params == {"ok": True}

    def test_failing_extractor_falls_through_to_query(self) -> None:
        def broken(match):
            raise KeyError("missing")

        matcher = PatternMatcher(
            action_patterns={"broken": [rule(r"^boom", 0.99, broken)]},
            query_patterns={"boom_info": [rule(r"^boom", 0.96)]},
        )
        assert matcher.match("boom").tool_name == "boom_info"

    def test_extractor_on_unmatched_group_skips_rule(self) -> None:
        matcher = PatternMatcher(
            action_patterns={
                "suffixed": [
                    rule(
                        r"^go(?P<suffix>x)?$",
                        0.99,
                        lambda m: {"suffix": m.group("suffix").lower()},
                    )
                ],
                "plain": [rule(r"^go$", 0.99)],
            },
            query_patterns={},
        )
        result = matcher.match("go")

        assert result is not None
        assert result.tool_name == "plain"

    def test_supported_tools_unique(self) -> None:
        tools = PatternMatcher().get_supported_tools()
        assert len(tools) == len(set(tools))
        assert "system_volume" in tools
        assert "window_list" in tools
        assert "apps_quit" in tools
