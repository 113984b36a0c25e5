"""Domain exceptions for SQL Exporter"""
from typing import Any, Optional


class SqlExporterError(Exception):
    """Base exception for all exporter errors."""
    pass


class ConfigurationError(SqlExporterError):
    """Raised when a job or query definition cannot be used.

    Fatal: a query that fails validation is never scheduled and a failed
    precondition at run time is not retried.
    """

    def __init__(self, message: str, job: Optional[str] = None, query: Optional[str] = None):
        super().__init__(message)
        self.job = job
        self.query = query


class QueryExecutionError(SqlExporterError):
    """Raised when connecting to a target or executing a query against it fails."""

    def __init__(self, message: str, query: Optional[str] = None, host: Optional[str] = None, database: Optional[str] = None):
        super().__init__(message)
        self.query = query
        self.host = host
        self.database = database


class RowScanError(SqlExporterError):
    """Raised when a result row cannot be read into a column mapping."""
    pass


class TypeMismatchError(SqlExporterError):
    """Raised when a column holds a value of an unusable type."""

    def __init__(self, message: str, column: str, value: Any = None, observed_type: Optional[str] = None):
        super().__init__(message)
        self.column = column
        self.value = value
        self.observed_type = observed_type


class InvalidBucketError(SqlExporterError):
    """Raised when a histogram bucket upper bound is not a float."""

    def __init__(self, bucket: str, bound: str):
        super().__init__(f"Bucket '{bucket}' upper bound must be a float, got '{bound}'")
        self.bucket = bucket
        self.bound = bound


class RunCancelledError(SqlExporterError):
    """Raised when a query run is abandoned on shutdown before it finished."""
    pass


class NoValuesProducedError(SqlExporterError):
    """Raised when a single row yields no metric at all."""
    pass


class NoRowsProducedError(SqlExporterError):
    """Raised when no row of a query run yields a metric.

    The cached metrics of the (query, connection) pair are left untouched.
    """

    def __init__(self, query: str):
        super().__init__(f"Query '{query}' returned zero usable rows")
        self.query = query
