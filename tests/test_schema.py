"""Tests for the logical schema model."""

import pytest

from bqsync.schema import LogicalTable, LogicalType


class TestLogicalType:

    @pytest.mark.parametrize("name", ["STRING", "string", " Timestamp "])
    def test_parse_known_names(self, name):
        assert LogicalType.parse(name) is LogicalType(name.strip().upper())

    def test_parse_unknown_name(self):
        assert LogicalType.parse("GEOGRAPHY") is LogicalType.UNKNOWN


class TestLogicalTable:

    def test_from_mapping_parses_types(self):
        table = LogicalTable.from_mapping(
            "events",
            {"id": "STRING", "ts": "timestamp", "blob": "bytes", "n": LogicalType.INTEGER},
        )

        assert table.columns == {
            "id": LogicalType.STRING,
            "ts": LogicalType.TIMESTAMP,
            "blob": LogicalType.UNKNOWN,
            "n": LogicalType.INTEGER,
        }

    def test_default_table_is_empty(self):
        assert LogicalTable("ghost").is_empty()
        assert LogicalTable.from_mapping("ghost", None).is_empty()

    def test_missing_from(self):
        wanted = LogicalTable.from_mapping("events", {"id": "STRING", "ts": "TIMESTAMP"})
        current = LogicalTable.from_mapping("events", {"id": "STRING"})

        missing = wanted.missing_from(current)

        assert missing.name == "events"
        assert missing.columns == {"ts": LogicalType.TIMESTAMP}
        assert current.missing_from(wanted).is_empty()

    def test_table_is_frozen(self):
        table = LogicalTable("events")
        with pytest.raises(AttributeError):
            table.name = "other"
