"""Tests for column value coercion and label assembly."""
import random
import string
import sys
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from sql_exporter.coercion import parse_value  # noqa: E402
from sql_exporter.exceptions import TypeMismatchError  # noqa: E402
from sql_exporter.labels import Identity, build_labels, label_names  # noqa: E402

IDENTITY = Identity("postgres", "h", "d", "u")


def test_parse_value_numeric_types():
    row = {
        "int": 42,
        "big": 2**63 + 1,
        "negative": -7,
        "float": 4.2,
        "decimal": Decimal("1.5"),
    }
    assert parse_value(row, "int") == 42.0
    assert parse_value(row, "big") == float(2**63 + 1)
    assert parse_value(row, "negative") == -7.0
    assert parse_value(row, "float") == 4.2
    assert parse_value(row, "decimal") == 1.5


def test_parse_value_text_types():
    row = {
        "str": "3.25",
        "exp": "1e3",
        "bytes": b"42",
        "bytearray": bytearray(b"-1.5"),
        "memoryview": memoryview(b"8"),
    }
    assert parse_value(row, "str") == 3.25
    assert parse_value(row, "exp") == 1000.0
    assert parse_value(row, "bytes") == 42.0
    assert parse_value(row, "bytearray") == -1.5
    assert parse_value(row, "memoryview") == 8.0


def test_parse_value_missing_column_is_zero():
    assert parse_value({"other": 1}, "count") == 0.0


def test_parse_value_unparseable_text():
    with pytest.raises(TypeMismatchError) as exc_info:
        parse_value({"count": "many"}, "count")

    err = exc_info.value
    assert err.column == "count"
    assert err.value == "many"
    assert err.observed_type == "str"
    assert "count" in str(err)


@pytest.mark.parametrize("value", [None, True, [1], {"a": 1}, object()])
def test_parse_value_rejects_other_types(value):
    with pytest.raises(TypeMismatchError) as exc_info:
        parse_value({"count": value}, "count")
    assert exc_info.value.observed_type == type(value).__name__


def test_build_labels_order():
    row = {"datname": "app", "usename": b"svc", "count": 42}
    labels = build_labels(row, IDENTITY, "count", ["datname", "usename"])
    assert labels == ["app", "svc", "postgres", "h", "d", "u", "count"]


def test_build_labels_missing_column_is_empty():
    labels = build_labels({"a": "x"}, IDENTITY, "value", ["missing", "a"])
    assert labels == ["", "x", "postgres", "h", "d", "u", "value"]


@pytest.mark.parametrize("value", [1, 1.5, None, Decimal("2")])
def test_build_labels_rejects_non_text(value):
    with pytest.raises(TypeMismatchError) as exc_info:
        build_labels({"status_code": value}, IDENTITY, "value", ["status_code"])
    assert exc_info.value.column == "status_code"


def test_build_labels_rejects_invalid_utf8():
    assert build_labels({"host": b"caf\xc3\xa9"}, IDENTITY, "value", ["host"])[0] == "café"

    with pytest.raises(TypeMismatchError) as exc_info:
        build_labels({"host": b"caf\xe9"}, IDENTITY, "value", ["host"])
    assert exc_info.value.column == "host"
    assert exc_info.value.observed_type == "bytes"


def test_parse_value_rejects_invalid_utf8():
    with pytest.raises(TypeMismatchError) as exc_info:
        parse_value({"count": b"4\xff2"}, "count")
    assert exc_info.value.observed_type == "bytes"


def test_build_labels_length_and_series_randomized():
    rng = random.Random(1234)
    for _ in range(200):
        columns = [
            "".join(rng.choices(string.ascii_lowercase, k=rng.randint(1, 8)))
            for _ in range(rng.randint(0, 6))
        ]
        row = {c: rng.choice(["x", b"y", ""]) for c in columns if rng.random() < 0.7}
        series = rng.choice(["count", "hist", "value"])

        labels = build_labels(row, IDENTITY, series, columns)

        assert len(labels) == len(columns) + 5
        assert labels[-1] == series
        assert labels[len(columns):-1] == list(IDENTITY)
        assert len(labels) == len(label_names(columns))


def test_label_names_layout():
    assert label_names(["datname", "usename"]) == [
        "datname", "usename", "driver", "host", "database", "user", "col"
    ]


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-q"]))
