"""Tests for actionflow.core.scheduling.expressions."""

from datetime import UTC, datetime

import pytest

from actionflow.core.errors import DefinitionError
from actionflow.core.scheduling.expressions import (
    is_valid_expression,
    next_fire_time,
    normalize_expression,
    resolve_timezone,
    weekday_names,
)


class TestNormalizeExpression:
    def test_five_field_expression_passes_through(self):
        assert normalize_expression("*/5 * * * *") == "*/5 * * * *"

    def test_whitespace_collapsed(self):
        assert normalize_expression("  0   2 * *  * ") == "0 2 * * *"

    @pytest.mark.parametrize(
        "alias, expected",
        [("@daily", "0 0 * * *"), ("@hourly", "0 * * * *"), ("@WEEKLY", "0 0 * * 0")],
    )
    def test_aliases(self, alias, expected):
        assert normalize_expression(alias) == expected

    @pytest.mark.parametrize("expr", [None, "", "   "])
    def test_missing_expression(self, expr):
        with pytest.raises(DefinitionError, match="required") as exc_info:
            normalize_expression(expr)
        assert exc_info.value.field == "trigger.schedule"

    @pytest.mark.parametrize(
        "expr",
        ["* * * *", "0 0 * * * *", "61 * * * *", "not a cron", "* * 32 * *"],
    )
    def test_invalid_expressions(self, expr):
        with pytest.raises(DefinitionError):
            normalize_expression(expr)

    @pytest.mark.parametrize(
        "expr, expected",
        [
            ("0 0 * * 7", "0 0 * * 0"),
            ("0 9 * * mon-fri", "0 9 * * 1-5"),
            ("0 9 * * MON,wed", "0 9 * * 1,3"),
            ("0 0 * * 0-7", "0 0 * * *"),
            ("0 0 * * */2", "0 0 * * 0,2,4,6"),
            ("0 0 * * 5-7", "0 0 * * 0,5-6"),
            ("0 0 * * 1-5/2", "0 0 * * 1,3,5"),
        ],
    )
    def test_day_of_week_canonical_form(self, expr, expected):
        assert normalize_expression(expr) == expected

    @pytest.mark.parametrize(
        "expr",
        ["0 0 * * 8", "0 0 * * 5#2", "0 0 * * L", "0 0 * * 5-1", "0 0 1 * 1", "0 0 L * *"],
    )
    def test_day_of_week_outside_shared_grammar(self, expr):
        with pytest.raises(DefinitionError):
            normalize_expression(expr)

    def test_is_valid_expression(self):
        assert is_valid_expression("0 9 * * 1-5") is True
        assert is_valid_expression("bogus") is False


class TestNextFireTime:
    def test_next_minute_boundary(self):
        after = datetime(2026, 3, 1, 10, 7, 30, tzinfo=UTC)
        assert next_fire_time("*/5 * * * *", after) == datetime(2026, 3, 1, 10, 10, tzinfo=UTC)

    def test_strictly_after(self):
        after = datetime(2026, 3, 1, 10, 10, tzinfo=UTC)
        assert next_fire_time("*/5 * * * *", after) == datetime(2026, 3, 1, 10, 15, tzinfo=UTC)

    def test_naive_datetime_treated_as_utc(self):
        after = datetime(2026, 3, 1, 23, 30)
        assert next_fire_time("0 0 * * *", after) == datetime(2026, 3, 2, 0, 0, tzinfo=UTC)

    def test_timezone_applied(self):
        # 09:00 in New York during EST is 14:00 UTC
        after = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
        result = next_fire_time("0 9 * * *", after, timezone="America/New_York")
        assert result == datetime(2026, 1, 15, 14, 0, tzinfo=UTC)
        assert result.tzinfo == UTC


class TestResolveTimezone:
    def test_known(self):
        assert str(resolve_timezone("Europe/London")) == "Europe/London"

    def test_unknown(self):
        with pytest.raises(DefinitionError, match="Unknown timezone"):
            resolve_timezone("Mars/Olympus_Mons")


class TestWeekdayNames:
    @pytest.mark.parametrize(
        "field, expected",
        [("*", "*"), ("1-5", "mon,tue,wed,thu,fri"), ("0,5-6", "sun,fri,sat"), ("0", "sun")],
    )
    def test_translation(self, field, expected):
        assert weekday_names(field) == expected
