# tests/test_values.py
import pytest
import numpy as np
import pandas as pd
from datetime import date, datetime

from datazen.utils.values import (
    cell_to_text, is_missing, parse_date, parse_leading_float, parse_leading_int, parse_number
)


class TestMissingPredicate:

    @pytest.mark.parametrize("value", [None, "", "   ", "\t", float('nan'), np.nan, pd.NaT])
    def test_missing_values(self, value):
        """Null, NaN and blank strings are missing"""
        assert is_missing(value)

    @pytest.mark.parametrize("value", ["0", 0, 0.0, False, "abc", " x "])
    def test_present_values(self, value):
        """Zero and non-blank text are present"""
        assert not is_missing(value)


class TestNumberParsing:

    @pytest.mark.parametrize("value, expected", [
        ("12", 12.0),
        (" -3.5 ", -3.5),
        (".5", 0.5),
        ("1e3", 1000.0),
        ("+7", 7.0),
        (7, 7.0),
        (2.25, 2.25),
        (np.int64(4), 4.0),
    ])
    def test_parse_number(self, value, expected):
        """Full decimal literals and plain numbers parse"""
        assert parse_number(value) == expected

    @pytest.mark.parametrize("value", ["12abc", "", "  ", None, True, "nan", "inf", float('nan'), "1,000"])
    def test_parse_number_rejects(self, value):
        """Anything that is not a full decimal literal is rejected"""
        assert parse_number(value) is None

    @pytest.mark.parametrize("value", ["1e999", "-1e999", float('inf'), np.float64('-inf')])
    def test_overflow_is_not_a_number(self, value):
        """Literals that overflow to infinity are rejected"""
        assert parse_number(value) is None
        assert parse_leading_float(value) is None

    def test_overflow_after_currency_strip(self):
        assert parse_leading_float("$1e999") is None

    def test_parse_leading_float_strips_currency(self):
        """Currency symbols and thousands separators are ignored"""
        assert parse_leading_float("$1,234.50") == 1234.5
        assert parse_leading_float("€-3") == -3.0
        assert parse_leading_float("12.5 USD") == 12.5
        assert parse_leading_float("abc") is None
        assert parse_leading_float(8) == 8.0

    def test_parse_leading_int(self):
        """Leading integer part is kept, fractions are truncated"""
        assert parse_leading_int("1,200") == 1200
        assert parse_leading_int("12.7") == 12
        assert parse_leading_int("-4 units") == -4
        assert parse_leading_int("x12") is None
        assert parse_leading_int(12.9) == 12


class TestDateParsing:

    def test_iso_date(self):
        assert parse_date("2024-03-15") == date(2024, 3, 15)

    def test_long_form_date(self):
        assert parse_date("15 March 2024") == date(2024, 3, 15)

    def test_partial_date_uses_fixed_anchor(self):
        """Missing day is filled from a fixed default, not from today"""
        assert parse_date("March 2021") == date(2021, 3, 1)

    def test_datetime_passthrough(self):
        assert parse_date(datetime(2024, 1, 2, 10, 30)) == date(2024, 1, 2)
        assert parse_date(pd.Timestamp("2023-06-30")) == date(2023, 6, 30)

    @pytest.mark.parametrize("value", ["Mon", "tuesday", "may", "March", "2nd", "-5", "+12", "2020", 7])
    def test_bare_names_and_integers_are_not_dates(self, value):
        """Weekday and month names, ordinals and lone integers carry no calendar date"""
        assert parse_date(value) is None

    def test_unparseable(self):
        assert parse_date("banana") is None
        assert parse_date("") is None
        assert parse_date(None) is None


class TestCellToText:

    def test_rendering(self):
        assert cell_to_text(True) == "true"
        assert cell_to_text(False) == "false"
        assert cell_to_text(10.0) == "10"
        assert cell_to_text(10.5) == "10.5"
        assert cell_to_text(date(2024, 1, 2)) == "2024-01-02"
        assert cell_to_text("red") == "red"
        assert cell_to_text(None) == ""
