"""
Command line entry point.

Commands:
    sync      Ensure the dataset exists, create or patch tables from a schema
              file, and optionally load a staged file into one of them
    describe  Print a table's current schema as YAML

Schema files map table names to column types:

    events:
      id: STRING
      ts: TIMESTAMP

A directory may be given instead of a file; every *.yaml under it is read.
"""

import argparse
import logging
import sys
from pathlib import Path

import structlog
import yaml

from bqsync.config import Config
from bqsync.errors import BqSyncError
from bqsync.loader import BatchLoader
from bqsync.metrics import MetricsClient
from bqsync.reconciler import SchemaReconciler
from bqsync.schema import LogicalTable
from bqsync.session import BigQuerySession

log = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Emit JSON log lines at or above ``level`` to stderr; stdout carries command output."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def load_schema_file(path: str) -> dict[str, LogicalTable]:
    """
    Load logical tables from a YAML file or a directory of YAML files.

    Args:
        path: File or directory path

    Returns:
        Dictionary mapping table name to LogicalTable

    Raises:
        ValueError: If a table entry is not a mapping of column to type
    """
    root = Path(path)
    files = sorted(root.rglob("*.yaml")) if root.is_dir() else [root]

    tables: dict[str, LogicalTable] = {}
    for yaml_path in files:
        raw = yaml.safe_load(yaml_path.read_text())
        if not raw:
            continue

        for name, columns in raw.items():
            if not isinstance(columns, dict):
                raise ValueError(f"Table {name} in {yaml_path} must map column names to types")
            tables[name] = LogicalTable.from_mapping(name, columns)
            log.debug("schema_loaded", table=name, columns=len(columns), path=str(yaml_path))

    return tables


def run_sync(
    session: BigQuerySession,
    tables: dict[str, LogicalTable],
    metrics: MetricsClient,
    staged_key: str | None = None,
    load_table: str | None = None,
) -> None:
    reconciler = SchemaReconciler(session, metrics)
    reconciler.ensure_dataset()

    for table in tables.values():
        added = reconciler.sync_table(table)
        log.info("table_synced", table=table.name, columns_added=added)

    if staged_key:
        result = BatchLoader(session, metrics).copy(staged_key, load_table)
        log.info("staged_file_loaded", table=result.table, rows=result.output_rows, job_id=result.job_id)


def run_describe(session: BigQuerySession, table_name: str) -> None:
    table = SchemaReconciler(session).get_table_schema(table_name)
    if table.is_empty():
        log.warning("table_missing_or_empty", table=table_name)
    columns = {column: column_type.value for column, column_type in sorted(table.columns.items())}
    sys.stdout.write(yaml.safe_dump({table.name: columns}, sort_keys=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bqsync", description="BigQuery schema sync and batch loader")
    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser("sync", help="Create or patch tables, then optionally load a staged file")
    sync.add_argument("--schema", required=True, help="Schema YAML file or directory")
    sync.add_argument("--staged-key", help="Object key of a staged JSON file to load after syncing")
    sync.add_argument("--table", help="Table to load into (required when the schema has several tables)")

    describe = commands.add_parser("describe", help="Print a table's schema as YAML")
    describe.add_argument("table", help="Table name")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    config = Config.from_env()
    configure_logging(config.log_level)

    metrics = MetricsClient(config)

    try:
        if args.command == "sync":
            tables = load_schema_file(args.schema)
            load_table = args.table
            if args.staged_key and load_table is None:
                if len(tables) != 1:
                    log.error("load_table_ambiguous", tables=sorted(tables))
                    return 2
                load_table = next(iter(tables))

            with BigQuerySession.open(config) as session:
                run_sync(session, tables, metrics, args.staged_key, load_table)
        else:
            with BigQuerySession.open(config) as session:
                run_describe(session, args.table)

        return 0

    except (BqSyncError, ValueError, OSError) as e:
        log.error("command_failed", command=args.command, error=str(e), error_type=type(e).__name__)
        metrics.increment("command.failures", dimensions={"command": args.command})
        return 1
    finally:
        metrics.gauge(
            "command.duration_seconds",
            round(metrics.elapsed(), 3),
            dimensions={"command": args.command},
        )
        metrics.flush()
