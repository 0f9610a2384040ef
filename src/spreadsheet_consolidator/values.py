"""Cell coercion rules shared by every strategy."""

from __future__ import annotations

import math
from collections.abc import Mapping
from numbers import Integral, Real
from typing import Any, cast

import pandas as pd

from spreadsheet_consolidator import UNSPECIFIED


def is_missing(value: object) -> bool:
    """Return True for ``None``, NaN, ``pd.NA`` and ``pd.NaT``."""
    if value is None:
        return True
    try:
        return bool(pd.isna(cast(Any, value)))
    except (TypeError, ValueError):
        # array-likes are never a single missing cell
        return False


def is_empty_value(value: object) -> bool:
    return is_missing(value) or value == ""


def is_empty_row(row: Mapping[str, object]) -> bool:
    """A row is empty when every field is missing, null or ``""``."""
    return all(is_empty_value(val) for val in row.values())


def _parse_number(value: object) -> float | None:
    if isinstance(value, bool) or is_missing(value):
        return None
    if isinstance(value, Real):
        number = float(value)
    elif isinstance(value, str):
        token = value.strip()
        # float() accepts digit-grouping underscores, spreadsheet text does not
        if not token or "_" in token:
            return None
        try:
            number = float(token)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def is_numeric(value: object) -> bool:
    return _parse_number(value) is not None


def to_number(value: object) -> float:
    """Coerce a cell to a float; anything unparsable becomes ``0.0``."""
    number = _parse_number(value)
    return 0.0 if number is None else number


def to_text(value: object) -> str:
    """Return the group-key text for *value*.

    Empty cells map to :data:`UNSPECIFIED`; integral floats lose their
    trailing ``.0`` so ``2024`` and ``2024.0`` land in the same group.
    """
    if is_empty_value(value):
        return UNSPECIFIED
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Integral) and not isinstance(value, bool):
        return str(int(value))
    return str(value)
