"""Configuration file loading.

The file is read, environment variables referenced as $VAR or ${VAR} are
expanded, and the YAML document is validated into ConfigFile. Queries that
refer to the shared `queries` map are resolved before anything is scheduled.
"""
import logging
import os
import re
from pathlib import Path
from typing import Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from sql_exporter.exceptions import ConfigurationError
from sql_exporter.labels import IDENTITY_LABEL_NAMES, SERIES_LABEL_NAME
from sql_exporter.observability.metrics import JOB_LABEL_NAME
from sql_exporter.schemas import ConfigFile, JobSpec, QuerySpec

logger = logging.getLogger(__name__)

# label names every metric already carries
RESERVED_LABEL_NAMES = frozenset((*IDENTITY_LABEL_NAMES, SERIES_LABEL_NAME, JOB_LABEL_NAME))

_ENV_REF = re.compile(r"\$\{([^}]*)\}|\$([A-Za-z0-9_]+)")


def expand_env(text: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Replace $VAR and ${VAR} with environment values, unset ones with ''."""
    env = os.environ if environ is None else environ
    return _ENV_REF.sub(lambda m: env.get(m.group(1) or m.group(2), ""), text)


def read(path: Union[str, Path]) -> ConfigFile:
    """Read and validate the configuration file at path.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    logger.info(f"Loading config from: {path}")
    return parse_config(text)


def parse_config(text: str, environ: Optional[Mapping[str, str]] = None) -> ConfigFile:
    """Parse configuration text into a validated ConfigFile."""
    try:
        data = yaml.safe_load(expand_env(text, environ))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Config must be a mapping with a 'jobs' list")

    try:
        config = ConfigFile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config: {e}") from e

    for job in config.jobs:
        validate_job(job, config.queries)
    return config


def validate_job(job: JobSpec, shared_queries: Mapping[str, str]):
    """Resolve query references and reject unusable queries of a job."""
    if not job.name:
        raise ConfigurationError("Job name must not be empty")
    if not job.connections:
        raise ConfigurationError(f"Job '{job.name}' has no connections", job=job.name)

    for query in job.queries:
        resolve_query_ref(job, query, shared_queries)
        if not query.name:
            raise ConfigurationError(f"Job '{job.name}' has a query without a name", job=job.name)
        if not query.query.strip():
            raise ConfigurationError(
                f"Query '{query.name}' of job '{job.name}' is empty",
                job=job.name,
                query=query.name,
            )
        validate_labels(job, query)
        if query.type == "histogram":
            if not query.hist_values:
                raise ConfigurationError(
                    f"Histogram query '{query.name}' has no hist_values",
                    job=job.name,
                    query=query.name,
                )
        elif not query.values:
            raise ConfigurationError(
                f"Query '{query.name}' has no values",
                job=job.name,
                query=query.name,
            )


def validate_labels(job: JobSpec, query: QuerySpec):
    """Reject label columns that repeat or shadow a built-in label."""
    seen = set()
    for column in query.labels:
        if column in RESERVED_LABEL_NAMES:
            raise ConfigurationError(
                f"Query '{query.name}' of job '{job.name}' uses reserved label name '{column}'; "
                f"alias the column in SQL",
                job=job.name,
                query=query.name,
            )
        if column in seen:
            raise ConfigurationError(
                f"Query '{query.name}' of job '{job.name}' repeats label '{column}'",
                job=job.name,
                query=query.name,
            )
        seen.add(column)


def resolve_query_ref(job: JobSpec, query: QuerySpec, shared_queries: Mapping[str, str]):
    """Fill in query text from the shared queries map.

    An inline query takes precedence over query_ref.
    """
    if query.query or not query.query_ref:
        return
    if query.query_ref not in shared_queries:
        raise ConfigurationError(
            f"Query '{query.name}' of job '{job.name}' references unknown query '{query.query_ref}'",
            job=job.name,
            query=query.name,
        )
    query.query = shared_queries[query.query_ref]
    logger.debug(f"Resolved query_ref '{query.query_ref}' for query '{query.name}'")
