"""Pydantic schemas for the exporter config file and HTTP responses"""
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> timedelta:
    """Parse a Go style duration such as '5m', '1h30m' or '500ms'.

    Plain numbers are read as seconds.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration: {value!r}")

    text = value.strip()
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)

    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if not text or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return timedelta(seconds=sign * seconds)


def _none_as_empty(value: Any, empty: Any) -> Any:
    return empty if value is None else value


class BucketSpec(BaseModel):
    """Maps a result column to a histogram bucket upper bound.

    For example column "response_duration_500ms" to upper bound "0.5".
    """
    name: str
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def bound_as_text(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class HistValueSpec(BaseModel):
    """Maps result columns to the count, sum and buckets of one histogram series."""
    name: str = ""
    count: str
    sum: str
    buckets: List[BucketSpec] = Field(default_factory=list)

    @field_validator("buckets", mode="before")
    @classmethod
    def empty_buckets(cls, v):
        return _none_as_empty(v, [])


class QuerySpec(BaseModel):
    """A SQL query and how its result columns map onto a metric."""
    name: str
    help: str = ""
    type: str = ""
    labels: List[str] = Field(default_factory=list)
    values: List[str] = Field(default_factory=list)
    hist_values: List[HistValueSpec] = Field(default_factory=list)
    query: str = ""
    query_ref: str = ""

    @field_validator("labels", "values", "hist_values", mode="before")
    @classmethod
    def empty_lists(cls, v):
        return _none_as_empty(v, [])

    @field_validator("help", "type", "query", "query_ref", mode="before")
    @classmethod
    def empty_strings(cls, v):
        return _none_as_empty(v, "")


class JobSpec(BaseModel):
    """A set of queries run on a set of connections at a fixed interval."""
    name: str
    keepalive: bool = False
    interval: timedelta = timedelta(0)
    connections: List[str] = Field(default_factory=list)
    queries: List[QuerySpec] = Field(default_factory=list)
    startup_sql: List[str] = Field(default_factory=list)

    @field_validator("interval", mode="before")
    @classmethod
    def go_duration(cls, v):
        if v is None:
            return timedelta(0)
        return parse_duration(v)

    @field_validator("connections", "queries", "startup_sql", mode="before")
    @classmethod
    def empty_lists(cls, v):
        return _none_as_empty(v, [])


class ConfigFile(BaseModel):
    """Top level of the configuration file."""
    jobs: List[JobSpec] = Field(default_factory=list)
    queries: Dict[str, str] = Field(default_factory=dict)

    @field_validator("jobs", mode="before")
    @classmethod
    def empty_jobs(cls, v):
        return _none_as_empty(v, [])

    @field_validator("queries", mode="before")
    @classmethod
    def empty_queries(cls, v):
        return _none_as_empty(v, {})


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    uptime_seconds: int
    now: datetime
    jobs: List[str] = Field(default_factory=list)
