"""Metric synthesis from a single result row.

A failing value column or histogram definition is logged and skipped; a row
only fails when nothing at all could be built from it.
"""
import logging
import math
from typing import Any, List, Mapping, Sequence

from sql_exporter.coercion import parse_value
from sql_exporter.exceptions import InvalidBucketError, NoValuesProducedError, SqlExporterError, TypeMismatchError
from sql_exporter.labels import Identity, build_labels
from sql_exporter.observability.metrics import GaugeSample, HistogramSample
from sql_exporter.schemas import HistValueSpec

logger = logging.getLogger(__name__)


def gauge_metrics(
    row: Mapping[str, Any],
    identity: Identity,
    values: Sequence[str],
    label_columns: Sequence[str],
) -> List[GaugeSample]:
    """Build one gauge per value column of the row.

    Raises:
        NoValuesProducedError: If no value column could be read
    """
    metrics = []
    for value_name in values:
        try:
            metrics.append(gauge_metric(row, identity, value_name, label_columns))
        except SqlExporterError as e:
            logger.error(
                f"Failed to update metric: value={value_name} err={e} "
                f"host={identity.host} db={identity.database}"
            )
    if not metrics:
        raise NoValuesProducedError("zero values found")
    return metrics


def gauge_metric(
    row: Mapping[str, Any],
    identity: Identity,
    value_name: str,
    label_columns: Sequence[str],
) -> GaugeSample:
    """Build the gauge for a single value column."""
    value = parse_value(row, value_name)
    labels = build_labels(row, identity, value_name, label_columns)
    return GaugeSample(value=value, label_values=tuple(labels))


def histogram_metrics(
    row: Mapping[str, Any],
    identity: Identity,
    hist_values: Sequence[HistValueSpec],
    label_columns: Sequence[str],
) -> List[HistogramSample]:
    """Build one histogram per histogram definition of the row.

    Raises:
        NoValuesProducedError: If no definition could be built
    """
    metrics = []
    for hist in hist_values:
        try:
            metrics.append(histogram_metric(row, identity, hist, label_columns))
        except SqlExporterError as e:
            logger.error(
                f"Failed to update metric: value={hist.name} err={e} "
                f"host={identity.host} db={identity.database}"
            )
    if not metrics:
        raise NoValuesProducedError("zero values found")
    return metrics


def histogram_metric(
    row: Mapping[str, Any],
    identity: Identity,
    hist: HistValueSpec,
    label_columns: Sequence[str],
) -> HistogramSample:
    """Build a histogram from the count, sum and bucket columns of a definition.

    Any failure, including an unparseable bucket bound, fails the whole
    definition. Bucket counts are taken as-is from their columns.
    """
    count = _as_count(parse_value(row, hist.count), hist.count)
    total = parse_value(row, hist.sum)

    buckets = {}
    for bucket in hist.buckets:
        try:
            bound = float(bucket.value)
        except ValueError:
            raise InvalidBucketError(bucket.name, bucket.value) from None
        buckets[bound] = _as_count(parse_value(row, bucket.name), bucket.name)

    labels = build_labels(row, identity, hist.name, label_columns)
    return HistogramSample(count=count, sum=total, buckets=buckets, label_values=tuple(labels))


def _as_count(value: float, column: str) -> int:
    if math.isnan(value) or math.isinf(value):
        raise TypeMismatchError(
            f"Column '{column}' must be a finite count (val: {value})",
            column=column,
            value=value,
            observed_type="float",
        )
    return int(value)
