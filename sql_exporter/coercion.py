"""Coercion of result-set column values into metric values.

Database drivers hand back a handful of Python types for numeric columns.
Every one of them is listed here; anything else is a type mismatch.
"""
from decimal import Decimal
from typing import Any, Mapping

from sql_exporter.exceptions import TypeMismatchError

TEXT_TYPES = (str, bytes, bytearray, memoryview)


def as_text(value: Any) -> str:
    """Decode a str or byte-string column value.

    Raises:
        UnicodeDecodeError: If a byte string is not valid UTF-8
    """
    if isinstance(value, str):
        return value
    return bytes(value).decode("utf-8")


def parse_value(row: Mapping[str, Any], column: str) -> float:
    """Read a column from a row as a float.

    A column missing from the row reads as 0.0.

    Raises:
        TypeMismatchError: If the value is neither numeric nor numeric text
    """
    if column not in row:
        return 0.0

    value = row[column]

    # bool is an int subclass but never a metric value
    if isinstance(value, bool):
        raise _mismatch(column, value)
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, TEXT_TYPES):
        try:
            return float(as_text(value))
        except ValueError:
            raise _mismatch(column, value) from None

    raise _mismatch(column, value)


def _mismatch(column: str, value: Any) -> TypeMismatchError:
    observed = type(value).__name__
    return TypeMismatchError(
        f"Column '{column}' must be type float, is '{observed}' (val: {value!r})",
        column=column,
        value=value,
        observed_type=observed,
    )
