"""Exporter wiring: jobs, health registry and the Prometheus registry they feed."""
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Union

from prometheus_client import CollectorRegistry

from sql_exporter import config
from sql_exporter.job import Job
from sql_exporter.observability.collector import QueryMetricsCollector
from sql_exporter.observability.health import ScrapeHealth
from sql_exporter.schemas import ConfigFile

logger = logging.getLogger(__name__)


class Exporter:
    """Owns the jobs built from a config and serves their metrics."""

    def __init__(self, config_file: ConfigFile, registry: Optional[CollectorRegistry] = None):
        self.health = ScrapeHealth()
        self.jobs: List[Job] = [Job(spec, self.health) for spec in config_file.jobs]
        self.registry = registry if registry is not None else CollectorRegistry()
        self.registry.register(QueryMetricsCollector(self.jobs))
        self.registry.register(self.health)
        self._tasks: List[asyncio.Task] = []

    @classmethod
    def from_file(cls, path: Union[str, Path], registry: Optional[CollectorRegistry] = None) -> "Exporter":
        """Build an exporter from a config file path."""
        return cls(config.read(path), registry=registry)

    def start(self):
        """Start one scheduling task per job on the running event loop."""
        for job in self.jobs:
            self._tasks.append(asyncio.create_task(job.run_loop(), name=f"job-{job.name}"))
        logger.info(f"Started {len(self.jobs)} jobs: {', '.join(job.name for job in self.jobs)}")

    async def stop(self):
        """Stop all jobs, wait for in-flight ticks and close connections."""
        for job in self.jobs:
            job.stop()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        for job in self.jobs:
            job.close()
        logger.info("Stopped all jobs")
