"""Scrape-time collector for cached query metrics.

Nothing is queried here: each scrape reads the samples cached by the last
successful run of every (query, connection) pair.

Design:
- One metric family per metric name, shared by queries of different jobs
- Families are rebuilt on every scrape from immutable cached samples
"""
import logging
from typing import Dict, Iterator, List

from prometheus_client.registry import Collector

from sql_exporter.job import Job
from sql_exporter.observability.metrics import add_sample, new_family

logger = logging.getLogger(__name__)


class QueryMetricsCollector(Collector):
    """Exposes the cached samples of all queries of all jobs."""

    def __init__(self, jobs: List[Job]):
        self.jobs = jobs

    def collect(self) -> Iterator:
        families: Dict[str, object] = {}
        family_types: Dict[str, str] = {}
        family_labels: Dict[str, List[str]] = {}

        for job in self.jobs:
            for query in job.queries:
                descriptor = query.descriptor
                if descriptor is None:
                    continue

                name = descriptor.name
                if name not in families:
                    families[name] = new_family(descriptor, query.metric_type)
                    family_types[name] = query.metric_type
                    family_labels[name] = descriptor.full_label_names
                elif (family_types[name], family_labels[name]) != (query.metric_type, descriptor.full_label_names):
                    logger.warning(
                        f"Skipping query '{query.name}' of job '{job.name}': "
                        f"metric '{name}' is already exposed with another type or labels"
                    )
                    continue

                for sample in query.snapshot():
                    add_sample(families[name], descriptor, sample)

        yield from families.values()
