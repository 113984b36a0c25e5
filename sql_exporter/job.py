"""Scheduled jobs.

A job wakes up every interval and runs its queries on all of its
connections. Connections are independent targets and run in parallel worker
threads; the queries of one connection run one after another.
"""
import asyncio
import logging
import threading
import time
from datetime import timedelta
from typing import List

from sql_exporter.connection import Connection
from sql_exporter.exceptions import QueryExecutionError, RunCancelledError, SqlExporterError
from sql_exporter.observability.health import ScrapeHealth
from sql_exporter.query import Query
from sql_exporter.schemas import JobSpec

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = timedelta(minutes=5)


class Job:
    """A set of queries run on a set of connections at a fixed interval."""

    def __init__(self, spec: JobSpec, health: ScrapeHealth):
        self.name = spec.name
        self.keepalive = spec.keepalive
        self.interval = spec.interval if spec.interval > timedelta(0) else DEFAULT_INTERVAL
        self.startup_sql = list(spec.startup_sql)
        self.health = health
        self.connections: List[Connection] = [Connection(url) for url in spec.connections]
        self.queries: List[Query] = [Query(q, spec.name, health) for q in spec.queries]
        self._shutdown = threading.Event()
        self._wakeup = asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self._shutdown.is_set()

    def run_once_connection(self, conn: Connection) -> int:
        """Run every query of the job on one connection.

        Returns:
            Number of queries that ran successfully
        """
        if self.stopping:
            return 0

        try:
            conn.connect(self.startup_sql)
        except QueryExecutionError as e:
            logger.error(f"Job '{self.name}' failed to connect: {e}")
            for query in self.queries:
                self.health.mark_failed(conn.identity, self.name, query.name)
            return 0

        updated = 0
        try:
            for query in self.queries:
                if self.stopping:
                    break
                logger.debug(f"Running query '{query.name}' on {conn.safe_url}")
                try:
                    query.run(conn, self._shutdown)
                except RunCancelledError:
                    logger.debug(f"Query '{query.name}' abandoned on shutdown")
                    break
                except SqlExporterError as e:
                    logger.warning(f"Failed to run query '{query.name}' of job '{self.name}': {e}")
                    continue
                logger.debug(f"Query '{query.name}' finished")
                updated += 1
        finally:
            if not self.keepalive:
                conn.close()

        return updated

    async def run_once(self) -> int:
        """Run one tick: all connections in parallel.

        Returns:
            Number of successful (query, connection) runs
        """
        results = await asyncio.gather(
            *(asyncio.to_thread(self.run_once_connection, conn) for conn in self.connections)
        )
        updated = sum(results)
        if updated < 1:
            logger.warning(f"Job '{self.name}': zero queries ran")
        return updated

    async def run_loop(self):
        """Run ticks every interval until stop() is called."""
        interval = self.interval.total_seconds()
        logger.info(
            f"Starting job '{self.name}' (interval={interval}s, "
            f"connections={len(self.connections)}, queries={len(self.queries)})"
        )

        while not self.stopping:
            started = time.monotonic()
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Job '{self.name}' tick failed: {e}")

            elapsed = time.monotonic() - started
            if elapsed > interval:
                logger.warning(f"Job '{self.name}' took {elapsed:.1f}s, longer than its {interval}s interval")
                continue
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=interval - elapsed)
            except asyncio.TimeoutError:
                pass

        logger.info(f"Job '{self.name}' stopped")

    def stop(self):
        """Ask running and future ticks to stop before their next connection or query.

        While run_loop() is active, call this from its event loop thread.
        """
        self._shutdown.set()
        self._wakeup.set()

    def close(self):
        """Close all connections and drop their cached samples."""
        for conn in self.connections:
            conn.close()
            for query in self.queries:
                query.forget(conn)

    def __repr__(self) -> str:
        return f"<Job {self.name}>"
