"""Tests for pgcrate.render.parameters: parameter file lines."""

from __future__ import annotations

import pytest

from pgcrate.core.errors import InvalidParameter
from pgcrate.core.types import ErrorKind, StartMode
from pgcrate.render.parameters import escape_string, format_parameter, format_start, render_value


class TestFormatParameter:
    @pytest.mark.parametrize(
        "name,value,expected",
        [
            ("shared_buffers", "24MB", "shared_buffers = '24MB'\n"),
            ("port", 5432, "port = 5432\n"),
            ("ssl", False, "ssl = false\n"),
            ("fsync", True, "fsync = true\n"),
            ("datestyle", ["iso", "ymd"], "datestyle = 'iso,ymd'\n"),
            ("random_page_cost", 1.5, "random_page_cost = 1.5\n"),
            ("log_line_prefix", "%t ", "log_line_prefix = '%t '\n"),
        ],
    )
    def test_rendering(self, name, value, expected):
        assert format_parameter(name, value) == expected

    def test_embedded_quote_doubled(self):
        assert format_parameter("archive_command", "echo 'x'") == "archive_command = 'echo ''x'''\n"

    def test_mapping_rejected(self):
        with pytest.raises(InvalidParameter) as exc_info:
            format_parameter("x", {"a": 1})
        assert exc_info.value.kind == ErrorKind.INVALID_PARAMETER
        assert exc_info.value.payload == {"a": 1}
        assert exc_info.value.name == "x"

    @pytest.mark.parametrize("value", [None, [1, 2], ["a", None], float("nan"), object()])
    def test_other_values_rejected(self, value):
        with pytest.raises(InvalidParameter):
            render_value("x", value)

    def test_enum_value(self):
        assert render_value("mode", StartMode.MANUAL) == "'manual'"


class TestEscapeString:
    def test_no_quotes(self):
        assert escape_string("plain") == "plain"

    def test_quotes(self):
        assert escape_string("it's") == "it''s"


class TestFormatStart:
    @pytest.mark.parametrize("value", ["auto", "manual", "disabled", StartMode.AUTO])
    def test_token(self, value):
        assert format_start("start", value) == f"{StartMode(value).value}\n"

    def test_unknown_mode(self):
        with pytest.raises(InvalidParameter):
            format_start("start", "sometimes")
