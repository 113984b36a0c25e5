"""SQL Exporter - Main FastAPI Application"""
import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.responses import HTMLResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from sql_exporter import __version__, settings
from sql_exporter.exceptions import ConfigurationError
from sql_exporter.exporter import Exporter
from sql_exporter.schemas import HealthResponse

logger = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>SQL Exporter</title></head>
<body>
<h1>SQL Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


def configure_logging(level: str = settings.LOG_LEVEL):
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app(exporter: Optional[Exporter] = None, telemetry_path: str = settings.TELEMETRY_PATH) -> FastAPI:
    """Create the HTTP app serving an exporter.

    Args:
        exporter: Exporter to serve (loaded from settings.CONFIG_FILE if not provided)
        telemetry_path: Path of the metrics endpoint
    """
    started_at = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"Starting SQL Exporter v{__version__}")
        if app.state.exporter is None:
            app.state.exporter = Exporter.from_file(settings.CONFIG_FILE)
        app.state.exporter.start()

        yield

        logger.info("Shutting down SQL Exporter")
        await app.state.exporter.stop()

    app = FastAPI(
        title="SQL Exporter",
        description="Runs SQL queries on a schedule and exposes the results as Prometheus metrics",
        version=__version__,
        lifespan=lifespan
    )
    app.state.exporter = exporter

    @app.get("/", response_class=HTMLResponse)
    async def root():
        """Landing page linking to the metrics endpoint."""
        return LANDING_PAGE.format(path=telemetry_path)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check with version and configured jobs."""
        jobs = [job.name for job in app.state.exporter.jobs] if app.state.exporter else []
        return HealthResponse(
            status="ok",
            version=__version__,
            uptime_seconds=int(time.time() - started_at),
            now=datetime.utcnow(),
            jobs=jobs,
        )

    @app.get(telemetry_path)
    async def metrics():
        """Prometheus metrics endpoint.

        Exposes the cached results of every query plus
        sql_exporter_last_scrape_failed for every evaluated target.
        """
        registry = app.state.exporter.registry
        return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    return app


def main():
    """Entry point: load the config and serve metrics."""
    import uvicorn

    configure_logging()
    host, port = settings.listen_host_port()
    try:
        exporter = Exporter.from_file(settings.CONFIG_FILE)
    except ConfigurationError as e:
        logger.error(f"Error loading config: {e}")
        sys.exit(1)
    uvicorn.run(create_app(exporter), host=host, port=port)


if __name__ == "__main__":
    main()
