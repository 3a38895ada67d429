"""Logical schema model shared by the reconciler and the type mapper."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class LogicalType(str, Enum):
    """Portable column types produced by upstream schema inference."""
    STRING = "STRING"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    BOOLEAN = "BOOLEAN"
    TIMESTAMP = "TIMESTAMP"
    UNKNOWN = "UNKNOWN"  # Inference could not decide; stored as STRING

    @classmethod
    def parse(cls, value: str) -> "LogicalType":
        """Parse a type name, returning UNKNOWN for anything unrecognised."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class LogicalTable:
    """
    A table as the ingestion side sees it.

    Column order carries no meaning. An empty column mapping is how an
    absent warehouse table is represented.
    """
    name: str
    columns: dict[str, LogicalType] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, columns: dict[str, Any]) -> "LogicalTable":
        """
        Build a table from a plain mapping of column name to type name.

        Args:
            name: Table name
            columns: Mapping like {"id": "STRING", "ts": "TIMESTAMP"}

        Returns:
            LogicalTable with parsed column types
        """
        return cls(
            name=name,
            columns={
                column: value if isinstance(value, LogicalType) else LogicalType.parse(str(value))
                for column, value in (columns or {}).items()
            },
        )

    def is_empty(self) -> bool:
        return not self.columns

    def missing_from(self, other: "LogicalTable") -> "LogicalTable":
        """Return the columns of this table that ``other`` does not have."""
        return LogicalTable(
            name=self.name,
            columns={
                column: column_type
                for column, column_type in self.columns.items()
                if column not in other.columns
            },
        )
