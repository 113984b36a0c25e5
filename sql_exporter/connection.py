"""Database connections of a job.

Each configured URL becomes one Connection. Its driver, host, database and
user are taken from the URL and attached verbatim to every metric it produces.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection as SAConnection, CursorResult, Engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from sql_exporter.exceptions import ConfigurationError, QueryExecutionError
from sql_exporter.labels import Identity

logger = logging.getLogger(__name__)

# URL schemes accepted in configs that SQLAlchemy knows under another name
SCHEME_ALIASES = {
    "postgres": "postgresql",
    "sqlserver": "mssql",
}


def engine_url(url: str) -> URL:
    """Parse a configured connection URL into a SQLAlchemy URL."""
    scheme, sep, rest = url.partition("://")
    if not sep:
        raise ConfigurationError(f"Connection URL has no scheme: {url!r}")
    try:
        return make_url(f"{SCHEME_ALIASES.get(scheme, scheme)}://{rest}")
    except ArgumentError as e:
        raise ConfigurationError(f"Invalid connection URL: {e}") from e


class Connection:
    """A live handle to one database target."""

    def __init__(self, url: str):
        self.url = url
        self.sa_url = engine_url(url)
        self.driver = url.partition("://")[0]
        self.host = self.sa_url.host or ""
        if self.sa_url.port:
            self.host = f"{self.host}:{self.sa_url.port}"
        # sqlserver style URLs carry the database as a query parameter
        self.database = self.sa_url.database or self.sa_url.query.get("database", "")
        if not isinstance(self.database, str):
            self.database = self.database[0]
        self.user = self.sa_url.username or ""
        self.engine: Optional[Engine] = None
        self.conn: Optional[SAConnection] = None

    @property
    def identity(self) -> Identity:
        return Identity(self.driver, self.host, self.database, self.user)

    @property
    def safe_url(self) -> str:
        """URL with the password masked, for logging."""
        return self.sa_url.render_as_string(hide_password=True)

    @property
    def connected(self) -> bool:
        # a dropped connection is invalidated by SQLAlchemy but not closed
        return self.conn is not None and not self.conn.closed and not self.conn.invalidated

    def connect(self, startup_sql: Iterable[str] = ()):
        """Open the connection and run startup SQL, unless already open.

        A handle invalidated by a disconnect is discarded and reopened.

        Raises:
            QueryExecutionError: If connecting or a startup statement fails
        """
        if self.connected:
            return
        if self.conn is not None:
            logger.warning(f"Reconnecting to {self.safe_url} after a lost connection")
            self.close()

        connect_args = {}
        if self.sa_url.get_backend_name() == "sqlite":
            connect_args["check_same_thread"] = False

        try:
            self.engine = create_engine(self.sa_url, poolclass=NullPool, connect_args=connect_args)
            self.conn = self.engine.connect().execution_options(isolation_level="AUTOCOMMIT")
            for statement in startup_sql:
                logger.debug(f"Running startup SQL on {self.safe_url}: {statement}")
                self.conn.exec_driver_sql(statement)
        except (SQLAlchemyError, ImportError) as e:
            self.close()
            raise QueryExecutionError(
                f"Failed to connect to {self.safe_url}: {e}",
                host=self.host,
                database=self.database,
            ) from e

        logger.info(f"Connected to {self.safe_url}")

    def execute(self, sql: str) -> CursorResult:
        """Execute raw SQL text and return the cursor result."""
        if not self.connected:
            raise ConfigurationError(f"db connection not initialized: {self.safe_url}")
        return self.conn.exec_driver_sql(sql)

    def close(self):
        """Close the connection and dispose of its engine."""
        if self.conn is not None:
            try:
                self.conn.close()
            except SQLAlchemyError as e:
                logger.warning(f"Failed to close connection to {self.safe_url}: {e}")
            self.conn = None
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    def __repr__(self) -> str:
        return f"<Connection {self.safe_url}>"
