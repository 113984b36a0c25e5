"""Tests for gauge and histogram synthesis from single rows."""
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from sql_exporter.exceptions import NoValuesProducedError  # noqa: E402
from sql_exporter.labels import Identity  # noqa: E402
from sql_exporter.observability.metrics import GaugeSample, HistogramSample  # noqa: E402
from sql_exporter.schemas import BucketSpec, HistValueSpec  # noqa: E402
from sql_exporter.synthesis import gauge_metrics, histogram_metric, histogram_metrics  # noqa: E402

IDENTITY = Identity("postgres", "h", "d", "u")


def hist(name, count="cnt", sum_="sum", buckets=(("b100", "0.1"), ("b500", "0.5"))):
    return HistValueSpec(
        name=name,
        count=count,
        sum=sum_,
        buckets=[BucketSpec(name=b, value=v) for b, v in buckets],
    )


def test_gauge_end_to_end_example():
    row = {"datname": "app", "usename": "svc", "count": 42}
    metrics = gauge_metrics(row, IDENTITY, ["count"], ["datname", "usename"])

    assert metrics == [
        GaugeSample(value=42.0, label_values=("app", "svc", "postgres", "h", "d", "u", "count"))
    ]


def test_gauge_one_metric_per_valid_value_column():
    row = {"a": 1, "b": "2.5", "c": "oops", "d": None}
    metrics = gauge_metrics(row, IDENTITY, ["a", "b", "c", "d"], [])

    assert [m.label_values[-1] for m in metrics] == ["a", "b"]
    assert [m.value for m in metrics] == [1.0, 2.5]


def test_gauge_missing_value_column_reads_zero():
    metrics = gauge_metrics({}, IDENTITY, ["count"], [])
    assert metrics[0].value == 0.0


def test_gauge_bad_label_skips_every_value():
    row = {"status": 200, "a": 1, "b": 2}
    with pytest.raises(NoValuesProducedError):
        gauge_metrics(row, IDENTITY, ["a", "b"], ["status"])


def test_gauge_zero_values_fails_row():
    with pytest.raises(NoValuesProducedError):
        gauge_metrics({"count": "n/a"}, IDENTITY, ["count"], [])


def test_histogram_end_to_end_example():
    row = {"b100": 3, "b500": 10, "cnt": 10, "sum": 4.2}
    metric = histogram_metric(row, IDENTITY, hist("latency"), [])

    assert metric == HistogramSample(
        count=10,
        sum=4.2,
        buckets={0.1: 3, 0.5: 10},
        label_values=("postgres", "h", "d", "u", "latency"),
    )


def test_histogram_bucket_list_adds_inf_bucket():
    row = {"b100": 3, "b500": 10, "cnt": 12, "sum": 4.2}
    metric = histogram_metric(row, IDENTITY, hist("latency"), [])

    assert metric.bucket_list() == [("0.1", 3), ("0.5", 10), ("+Inf", 12)]


def test_histogram_failure_aborts_definition_not_siblings():
    row = {
        "b100": 3, "b500": "broken", "cnt": 10, "sum": 4.2,
        "ok_b100": 1, "ok_b500": 2, "ok_cnt": 2, "ok_sum": 0.3,
    }
    broken = hist("broken")
    ok = hist("ok", count="ok_cnt", sum_="ok_sum", buckets=(("ok_b100", "0.1"), ("ok_b500", "0.5")))

    metrics = histogram_metrics(row, IDENTITY, [broken, ok], [])

    assert len(metrics) == 1
    assert metrics[0].label_values[-1] == "ok"
    assert metrics[0].buckets == {0.1: 1, 0.5: 2}


def test_histogram_invalid_bound_aborts_definition():
    row = {"b100": 3, "bad": 1, "cnt": 4, "sum": 1.0}
    invalid = hist("invalid", buckets=(("b100", "0.1"), ("bad", "fast")))

    with pytest.raises(NoValuesProducedError):
        histogram_metrics(row, IDENTITY, [invalid], [])


def test_histogram_count_failure_aborts_definition():
    row = {"b100": 3, "b500": 10, "cnt": "x", "sum": 4.2}
    with pytest.raises(NoValuesProducedError):
        histogram_metrics(row, IDENTITY, [hist("latency")], [])


@pytest.mark.parametrize("column", ["cnt", "b500"])
@pytest.mark.parametrize("value", [float("nan"), float("inf"), "-inf"])
def test_histogram_non_finite_count_aborts_definition(column, value):
    row = {"b100": 3, "b500": 10, "cnt": 10, "sum": 4.2, column: value}
    finite = hist("finite", count="ok_cnt", buckets=(("b100", "0.1"),))
    row["ok_cnt"] = 3

    metrics = histogram_metrics(row, IDENTITY, [hist("latency"), finite], [])

    assert [m.label_values[-1] for m in metrics] == ["finite"]


def test_histogram_labels_use_definition_name():
    row = {"status_code": "200", "b100": 3, "b500": 10, "cnt": 10, "sum": 4.2}
    metrics = histogram_metrics(row, IDENTITY, [hist("http_request_duration_hist")], ["status_code"])

    assert metrics[0].label_values == ("200", "postgres", "h", "d", "u", "http_request_duration_hist")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-q"]))
