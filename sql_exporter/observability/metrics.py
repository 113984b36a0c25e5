"""Immutable metric samples synthesized from query results.

Design principles:
- Samples are created per row evaluation and never mutated
- A query's cached samples are replaced wholesale, never merged
- Conversion to prometheus_client families happens at scrape time only
"""
import math
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Union

from prometheus_client.core import GaugeMetricFamily, HistogramMetricFamily
from prometheus_client.utils import floatToGoString

from sql_exporter.labels import label_names

METRIC_PREFIX = "sql_"
JOB_LABEL_NAME = "sql_job"

METRIC_TYPE_GAUGE = "gauge"
METRIC_TYPE_HISTOGRAM = "histogram"


@dataclass(frozen=True)
class MetricDescriptor:
    """Name, help and ordered label names shared by all samples of a query."""
    name: str
    help: str
    label_names: Tuple[str, ...]
    const_labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def for_query(cls, job_name: str, query_name: str, help_text: str, label_columns: List[str]) -> "MetricDescriptor":
        """Descriptor for a configured query of a job."""
        return cls(
            name=f"{METRIC_PREFIX}{query_name}",
            help=help_text or query_name,
            label_names=tuple(label_names(label_columns)),
            const_labels={JOB_LABEL_NAME: job_name},
        )

    @property
    def full_label_names(self) -> List[str]:
        return [*self.label_names, *self.const_labels]

    def full_label_values(self, label_values: Tuple[str, ...]) -> List[str]:
        return [*label_values, *self.const_labels.values()]


@dataclass(frozen=True)
class GaugeSample:
    """A const gauge value with its label values."""
    value: float
    label_values: Tuple[str, ...]


@dataclass(frozen=True)
class HistogramSample:
    """A const histogram with per-bucket counts keyed by upper bound."""
    count: int
    sum: float
    buckets: Dict[float, int]
    label_values: Tuple[str, ...]

    def bucket_list(self) -> List[Tuple[str, float]]:
        """Buckets sorted by bound, closed by the +Inf bucket carrying the count."""
        buckets = [(floatToGoString(bound), value) for bound, value in sorted(self.buckets.items())]
        if not any(math.isinf(bound) and bound > 0 for bound in self.buckets):
            buckets.append(("+Inf", self.count))
        return buckets


MetricInstance = Union[GaugeSample, HistogramSample]


def new_family(descriptor: MetricDescriptor, metric_type: str):
    """Create an empty family for a descriptor."""
    if metric_type == METRIC_TYPE_HISTOGRAM:
        return HistogramMetricFamily(descriptor.name, descriptor.help, labels=descriptor.full_label_names)
    return GaugeMetricFamily(descriptor.name, descriptor.help, labels=descriptor.full_label_names)


def add_sample(family, descriptor: MetricDescriptor, sample: MetricInstance):
    """Add a cached sample to a family built by new_family()."""
    labels = descriptor.full_label_values(sample.label_values)
    if isinstance(sample, HistogramSample):
        family.add_metric(labels, buckets=sample.bucket_list(), sum_value=sample.sum)
    else:
        family.add_metric(labels, sample.value)
