"""Per-target scrape health state.

One flag per (driver, host, database, user, job, query): 1 after any failure
for that tuple, back to 0 after the next success. Exposed as its own gauge so
a target that never produced a cacheable result still shows up on scrape.
"""
import threading
from typing import Dict, Iterator, Optional, Tuple

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from sql_exporter.labels import IDENTITY_LABEL_NAMES, Identity

HEALTH_METRIC_NAME = "sql_exporter_last_scrape_failed"
HEALTH_LABEL_NAMES = [*IDENTITY_LABEL_NAMES, "sql_job", "query"]

HealthKey = Tuple[str, str, str, str, str, str]


class ScrapeHealth(Collector):
    """Registry of scrape failure flags, collected as a gauge family."""

    def __init__(self):
        self._lock = threading.Lock()
        self._flags: Dict[HealthKey, float] = {}

    @staticmethod
    def key(identity: Identity, job: str, query: str) -> HealthKey:
        return (*identity, job, query)

    def set(self, identity: Identity, job: str, query: str, failed: bool):
        with self._lock:
            self._flags[self.key(identity, job, query)] = 1.0 if failed else 0.0

    def mark_failed(self, identity: Identity, job: str, query: str):
        self.set(identity, job, query, True)

    def mark_ok(self, identity: Identity, job: str, query: str):
        self.set(identity, job, query, False)

    def value(self, identity: Identity, job: str, query: str) -> Optional[float]:
        """Current flag for a tuple, None if the tuple was never evaluated."""
        with self._lock:
            return self._flags.get(self.key(identity, job, query))

    def collect(self) -> Iterator[GaugeMetricFamily]:
        family = GaugeMetricFamily(HEALTH_METRIC_NAME, "Failed scrapes", labels=HEALTH_LABEL_NAMES)
        with self._lock:
            flags = list(self._flags.items())
        for key, flag in flags:
            family.add_metric(list(key), flag)
        yield family
