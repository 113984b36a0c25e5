"""Label assembly for synthesized metrics.

Every metric of a query carries the same label layout:

    [*label columns, driver, host, database, user, col]

The descriptor label names and the label values built per row must line up
position by position.
"""
from typing import Any, List, Mapping, NamedTuple, Sequence

from sql_exporter.coercion import TEXT_TYPES, as_text
from sql_exporter.exceptions import TypeMismatchError

IDENTITY_LABEL_NAMES = ("driver", "host", "database", "user")
SERIES_LABEL_NAME = "col"


class Identity(NamedTuple):
    """Identity labels of a database target."""
    driver: str
    host: str
    database: str
    user: str


def label_names(label_columns: Sequence[str]) -> List[str]:
    """Full ordered label names for a query with the given label columns."""
    return [*label_columns, *IDENTITY_LABEL_NAMES, SERIES_LABEL_NAME]


def build_labels(
    row: Mapping[str, Any],
    identity: Identity,
    series: str,
    label_columns: Sequence[str],
) -> List[str]:
    """Build the label values for one metric of a row.

    Args:
        row: Column name to value mapping of a result row
        identity: Identity labels of the connection the row came from
        series: Value column or histogram definition name
        label_columns: Configured label columns, in order

    Returns:
        List of len(label_columns) + 5 label values

    Raises:
        TypeMismatchError: If a label column holds a non-text value
    """
    labels = []
    for column in label_columns:
        # every slot must be filled or names and values drift apart
        value = ""
        if column in row:
            raw = row[column]
            if not isinstance(raw, TEXT_TYPES):
                raise TypeMismatchError(
                    f"Column '{column}' must be type text (string)",
                    column=column,
                    value=raw,
                    observed_type=type(raw).__name__,
                )
            try:
                value = as_text(raw)
            except UnicodeDecodeError:
                raise TypeMismatchError(
                    f"Column '{column}' must be UTF-8 text",
                    column=column,
                    value=raw,
                    observed_type=type(raw).__name__,
                ) from None
        labels.append(value)

    labels.extend(identity)
    labels.append(series)
    return labels
