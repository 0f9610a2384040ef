from __future__ import annotations

import math

import pandas as pd
import pytest

from spreadsheet_consolidator import UNSPECIFIED
from spreadsheet_consolidator.values import (
    is_empty_row,
    is_empty_value,
    is_missing,
    is_numeric,
    to_number,
    to_text,
)


@pytest.mark.parametrize("value", [None, float("nan"), pd.NA, pd.NaT])
def test_is_missing_recognises_null_markers(value: object) -> None:
    assert is_missing(value)
    assert is_empty_value(value)


@pytest.mark.parametrize("value", [0, 0.0, False, "0", " ", "text"])
def test_falsy_or_blank_values_are_not_missing(value: object) -> None:
    assert not is_missing(value)
    assert not is_empty_value(value)


def test_empty_string_is_empty_but_not_missing() -> None:
    assert not is_missing("")
    assert is_empty_value("")


def test_is_empty_row_requires_every_field_empty() -> None:
    assert is_empty_row({"a": None, "b": "", "c": float("nan")})
    assert is_empty_row({})
    assert not is_empty_row({"a": None, "b": 0})


def test_to_number_parses_numbers_and_numeric_text() -> None:
    assert to_number(12) == 12.0
    assert to_number(2.5) == 2.5
    assert to_number(" 42 ") == 42.0
    assert to_number("-1e3") == -1000.0


@pytest.mark.parametrize(
    "value", [None, "", "abc", "12abc", "1_000", True, False, "nan", "inf", [1]]
)
def test_to_number_falls_back_to_zero(value: object) -> None:
    result = to_number(value)

    assert result == 0.0
    assert math.isfinite(result)


def test_is_numeric_matches_to_number_fallback() -> None:
    assert is_numeric("3.5")
    assert is_numeric(7)
    assert not is_numeric("seven")
    assert not is_numeric(None)
    assert not is_numeric(True)


def test_to_text_unifies_integral_floats_and_marks_empty() -> None:
    assert to_text(2024) == "2024"
    assert to_text(2024.0) == "2024"
    assert to_text(2.5) == "2.5"
    assert to_text("Moscow") == "Moscow"
    assert to_text(None) == UNSPECIFIED
    assert to_text("") == UNSPECIFIED
