"""Query execution and the per-query metrics cache.

A Query runs on every connection of its job. Each successful run replaces
the cached samples of that one connection; a failed run leaves the previous
samples in place. Scrapes read the cache through snapshot().
"""
import logging
import threading
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from sql_exporter.connection import Connection
from sql_exporter.exceptions import (
    ConfigurationError,
    NoRowsProducedError,
    QueryExecutionError,
    RowScanError,
    RunCancelledError,
    SqlExporterError,
)
from sql_exporter.observability.health import ScrapeHealth
from sql_exporter.observability.metrics import (
    METRIC_TYPE_GAUGE,
    METRIC_TYPE_HISTOGRAM,
    MetricDescriptor,
    MetricInstance,
)
from sql_exporter.schemas import QuerySpec
from sql_exporter.synthesis import gauge_metrics, histogram_metrics

logger = logging.getLogger(__name__)


def scan_row(row: Any) -> Dict[str, Any]:
    """Read a result row into a column name to value dict.

    Raises:
        RowScanError: If the row cannot be read
    """
    try:
        if isinstance(row, Mapping):
            return dict(row)
        return dict(row._mapping)
    except (AttributeError, TypeError, ValueError) as e:
        raise RowScanError(f"Failed to scan row: {e}") from e


class Query:
    """A configured SQL query with its metric mapping and cached samples."""

    def __init__(self, spec: QuerySpec, job_name: str, health: ScrapeHealth):
        """Initialize a query of a job.

        Args:
            spec: Validated query definition
            job_name: Name of the owning job
            health: Scrape health registry updated by every run
        """
        self.name = spec.name
        self.help = spec.help
        self.type = spec.type
        self.labels = list(spec.labels)
        self.values = list(spec.values)
        self.hist_values = list(spec.hist_values)
        self.sql = spec.query
        self.job_name = job_name
        self.health = health
        self.descriptor: Optional[MetricDescriptor] = MetricDescriptor.for_query(
            job_name, spec.name, spec.help, self.labels
        )

        self._lock = threading.Lock()
        self._metrics: Dict[Connection, List[MetricInstance]] = {}

        if self.type not in ("", METRIC_TYPE_GAUGE, METRIC_TYPE_HISTOGRAM):
            logger.warning(f"Query '{self.name}' has unknown type '{self.type}', using gauge")

    @property
    def metric_type(self) -> str:
        """Metric kind of this query; unknown kinds are gauges."""
        if self.type == METRIC_TYPE_HISTOGRAM:
            return METRIC_TYPE_HISTOGRAM
        return METRIC_TYPE_GAUGE

    def run(self, conn: Connection, cancelled: Optional[threading.Event] = None):
        """Execute the query on a connection and cache the resulting samples.

        Args:
            conn: Connected target to run on
            cancelled: Set when the run should be abandoned

        Raises:
            ConfigurationError: If the query or connection is unusable
            QueryExecutionError: If executing or fetching fails
            NoRowsProducedError: If no row produced a sample
            RunCancelledError: If cancelled while reading rows
        """
        if self.descriptor is None:
            raise ConfigurationError("metrics descriptor is nil", job=self.job_name, query=self.name)
        if not self.sql:
            raise ConfigurationError("query is empty", job=self.job_name, query=self.name)
        if conn is None or not conn.connected:
            raise ConfigurationError("db connection not initialized", job=self.job_name, query=self.name)

        identity = conn.identity

        try:
            result = conn.execute(self.sql)
        except SQLAlchemyError as e:
            self.health.mark_failed(identity, self.job_name, self.name)
            raise QueryExecutionError(
                f"Query '{self.name}' failed: {e}",
                query=self.name,
                host=conn.host,
                database=conn.database,
            ) from e

        updated = 0
        metrics: List[MetricInstance] = []
        try:
            rows = result if result.returns_rows else ()
            for row in rows:
                if cancelled is not None and cancelled.is_set():
                    raise RunCancelledError(f"Query '{self.name}' cancelled")
                try:
                    res = scan_row(row)
                    if self.metric_type == METRIC_TYPE_HISTOGRAM:
                        m = histogram_metrics(res, identity, self.hist_values, self.labels)
                    else:
                        m = gauge_metrics(res, identity, self.values, self.labels)
                except RowScanError as e:
                    logger.error(f"Failed to scan: err={e} host={conn.host} db={conn.database}")
                    self.health.mark_failed(identity, self.job_name, self.name)
                    continue
                except SqlExporterError as e:
                    logger.error(f"Failed to update metrics: err={e} host={conn.host} db={conn.database}")
                    self.health.mark_failed(identity, self.job_name, self.name)
                    continue

                metrics.extend(m)
                updated += 1
                self.health.mark_ok(identity, self.job_name, self.name)
        except SQLAlchemyError as e:
            self.health.mark_failed(identity, self.job_name, self.name)
            raise QueryExecutionError(
                f"Reading rows of query '{self.name}' failed: {e}",
                query=self.name,
                host=conn.host,
                database=conn.database,
            ) from e
        finally:
            result.close()

        if updated < 1:
            raise NoRowsProducedError(self.name)

        with self._lock:
            self._metrics[conn] = metrics

    def snapshot(self) -> List[MetricInstance]:
        """All cached samples of this query, across connections."""
        with self._lock:
            return [m for metrics in self._metrics.values() for m in metrics]

    def forget(self, conn: Connection):
        """Drop the cached samples of a connection."""
        with self._lock:
            self._metrics.pop(conn, None)

    def __repr__(self) -> str:
        return f"<Query {self.job_name}/{self.name} ({self.metric_type})>"
