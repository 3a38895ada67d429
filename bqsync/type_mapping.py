"""Logical type to BigQuery field type mapping."""

from types import MappingProxyType
from typing import Iterable, Mapping

import structlog
from google.cloud import bigquery

from bqsync.schema import LogicalTable, LogicalType

log = structlog.get_logger()

# Forward mapping. UNKNOWN has no entry on purpose and falls back to STRING.
LOGICAL_TO_BIGQUERY: Mapping[LogicalType, str] = MappingProxyType({
    LogicalType.STRING: "STRING",
    LogicalType.INTEGER: "INTEGER",
    LogicalType.FLOAT: "FLOAT",
    LogicalType.BOOLEAN: "BOOLEAN",
    LogicalType.TIMESTAMP: "TIMESTAMP",
})

# Reverse mapping. The API reports legacy names; standard SQL aliases
# are accepted too since users write those in schema files.
BIGQUERY_TO_LOGICAL: Mapping[str, LogicalType] = MappingProxyType({
    "STRING": LogicalType.STRING,
    "INTEGER": LogicalType.INTEGER,
    "INT64": LogicalType.INTEGER,
    "FLOAT": LogicalType.FLOAT,
    "FLOAT64": LogicalType.FLOAT,
    "BOOLEAN": LogicalType.BOOLEAN,
    "BOOL": LogicalType.BOOLEAN,
    "TIMESTAMP": LogicalType.TIMESTAMP,
})

DEFAULT_LOGICAL_TYPE = LogicalType.STRING


def to_bigquery_type(logical_type: LogicalType) -> str:
    """
    Convert a logical column type to a BigQuery field type.

    Never raises: unmapped types are logged and stored as STRING.

    Args:
        logical_type: Logical column type

    Returns:
        BigQuery field type name (e.g. "TIMESTAMP")
    """
    mapped = LOGICAL_TO_BIGQUERY.get(logical_type)
    if mapped is None:
        log.warning(
            "unknown_logical_type",
            logical_type=str(getattr(logical_type, "value", logical_type)),
            fallback=LOGICAL_TO_BIGQUERY[DEFAULT_LOGICAL_TYPE],
        )
        return LOGICAL_TO_BIGQUERY[DEFAULT_LOGICAL_TYPE]
    return mapped


def to_logical_type(field_type: str) -> LogicalType:
    """
    Convert a BigQuery field type to a logical column type.

    Never raises: unmapped types (GEOGRAPHY, RECORD, ...) are logged
    and read back as STRING.

    Args:
        field_type: BigQuery field type name, any case

    Returns:
        Matching LogicalType
    """
    mapped = BIGQUERY_TO_LOGICAL.get(str(field_type or "").upper())
    if mapped is None:
        log.warning(
            "unknown_bigquery_type",
            field_type=field_type,
            fallback=DEFAULT_LOGICAL_TYPE.value,
        )
        return DEFAULT_LOGICAL_TYPE
    return mapped


def to_schema_fields(table: LogicalTable) -> list[bigquery.SchemaField]:
    """Translate every column of a logical table into a NULLABLE SchemaField."""
    # Sorted so create/patch requests are deterministic
    return [
        bigquery.SchemaField(column, to_bigquery_type(column_type), mode="NULLABLE")
        for column, column_type in sorted(table.columns.items())
    ]


def to_logical_table(name: str, fields: Iterable[bigquery.SchemaField]) -> LogicalTable:
    """Build a LogicalTable from BigQuery SchemaFields, mapping each field type back."""
    return LogicalTable(
        name=name,
        columns={f.name: to_logical_type(f.field_type) for f in fields},
    )
