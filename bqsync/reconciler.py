"""Dataset and table schema reconciliation.

The reconciler keeps no state of its own. Existence and the table etag are
fetched from BigQuery on every call, which means fetch-then-create and
fetch-then-patch are two round trips with nothing in between to stop another
writer:

- two callers racing to create the same dataset or table both see NotFound;
  the loser gets a 409 Conflict, which is treated as "already exists"
- a patch whose etag went stale fails with ConcurrencyConflict, and the
  caller decides whether to re-fetch and try again
"""

import structlog
from google.cloud import bigquery

from bqsync.errors import (
    REMOTE_ERRORS,
    ConcurrencyConflict,
    ErrorKind,
    ReconcileError,
    classify_error,
)
from bqsync.metrics import MetricsClient
from bqsync.schema import LogicalTable, LogicalType
from bqsync.session import BigQuerySession
from bqsync.type_mapping import to_logical_table, to_schema_fields

log = structlog.get_logger()


class SchemaReconciler:
    """Ensures datasets and tables exist and grows table schemas additively."""

    def __init__(self, session: BigQuerySession, metrics: MetricsClient | None = None) -> None:
        self.session = session
        self.metrics = metrics

    def ensure_dataset(self, name: str | None = None) -> None:
        """
        Create the dataset if it does not exist. Safe to call repeatedly.

        Args:
            name: Dataset name (default: the session's dataset)

        Raises:
            ReconcileError: If the dataset cannot be fetched or created
        """
        dataset_id = self.session.dataset_id(name)
        client = self.session.client

        try:
            client.get_dataset(dataset_id)
            log.debug("dataset_exists", dataset=dataset_id)
            return
        except REMOTE_ERRORS as e:
            if classify_error(e) is not ErrorKind.NOT_FOUND:
                raise ReconcileError("get_dataset", dataset_id, e) from e

        dataset = bigquery.Dataset(dataset_id)
        dataset.location = self.session.config.location
        try:
            client.create_dataset(dataset)
        except REMOTE_ERRORS as e:
            if classify_error(e) is ErrorKind.CONFLICT:
                log.info("dataset_created_concurrently", dataset=dataset_id)
                return
            raise ReconcileError("create_dataset", dataset_id, e) from e

        log.info("dataset_created", dataset=dataset_id, location=dataset.location)

    def get_table_schema(self, name: str) -> LogicalTable:
        """
        Read a table's schema as a LogicalTable.

        A missing table is returned as a LogicalTable with no columns.

        Raises:
            ReconcileError: If fetching the table fails for any other reason
        """
        table_id = self.session.table_id(name)
        client = self.session.client
        try:
            bq_table = client.get_table(table_id)
        except REMOTE_ERRORS as e:
            if classify_error(e) is ErrorKind.NOT_FOUND:
                log.debug("table_not_found", table=table_id)
                return LogicalTable(name=name)
            raise ReconcileError("get_table", table_id, e) from e

        return to_logical_table(name, bq_table.schema)

    def create_table(self, table: LogicalTable) -> bool:
        """
        Create a table from a logical schema if it does not exist yet.

        An existing table is left alone; its schema is not compared.

        Returns:
            True if the table was created by this call

        Raises:
            ReconcileError: If the fetch or the create fails
        """
        table_id = self.session.table_id(table.name)
        client = self.session.client

        try:
            client.get_table(table_id)
            log.info("table_already_exists", table=table_id)
            return False
        except REMOTE_ERRORS as e:
            if classify_error(e) is not ErrorKind.NOT_FOUND:
                raise ReconcileError("get_table", table_id, e) from e

        schema = to_schema_fields(table)
        try:
            client.create_table(bigquery.Table(table_id, schema=schema))
        except REMOTE_ERRORS as e:
            if classify_error(e) is ErrorKind.CONFLICT:
                log.info("table_created_concurrently", table=table_id)
                return False
            raise ReconcileError("create_table", table_id, e) from e

        log.info("table_created", table=table_id, columns=[f.name for f in schema])
        if self.metrics:
            self.metrics.increment("tables.created", dimensions={"table": table.name})
        return True

    def patch_table_schema(self, patch: LogicalTable) -> None:
        """
        Append the patch's columns to an existing table.

        Additive only: nothing is removed or retyped, and names are not
        checked against existing fields. BigQuery rejects duplicates and
        that rejection is raised as a ReconcileError.

        The update is conditioned on the etag fetched here, so a table
        modified in between is never overwritten.

        Raises:
            ConcurrencyConflict: If the table changed since it was fetched
            ReconcileError: If the table is missing or the update fails
        """
        table_id = self.session.table_id(patch.name)
        client = self.session.client

        try:
            bq_table = client.get_table(table_id)
        except REMOTE_ERRORS as e:
            raise ReconcileError("get_table", table_id, e) from e

        if patch.is_empty():
            log.debug("schema_patch_empty", table=table_id)
            return

        if not bq_table.etag:
            raise ReconcileError("patch_table", table_id, "table metadata has no etag")

        new_fields = to_schema_fields(patch)
        bq_table.schema = list(bq_table.schema) + new_fields

        try:
            client.update_table(bq_table, ["schema"])
        except REMOTE_ERRORS as e:
            if classify_error(e) is ErrorKind.PRECONDITION_FAILED:
                log.warning("schema_patch_conflict", table=table_id, etag=bq_table.etag)
                raise ConcurrencyConflict("patch_table", table_id, e) from e
            log.error(
                "schema_patch_failed",
                table=table_id,
                schema=[f"{f.name} - {f.field_type}" for f in bq_table.schema],
                error=str(e),
            )
            raise ReconcileError("patch_table", table_id, e) from e

        log.info("table_schema_patched", table=table_id, added=[f.name for f in new_fields])
        if self.metrics:
            self.metrics.increment(
                "schema.columns_added",
                len(new_fields),
                dimensions={"table": patch.name},
            )

    def sync_table(self, table: LogicalTable) -> list[str]:
        """
        Make the warehouse table hold at least the columns of ``table``.

        Creates the table if absent, otherwise patches only the missing
        columns. Columns present with a different type are reported and
        left as they are.

        Returns:
            Names of the columns added (every column when the table was created)
        """
        current = self.get_table_schema(table.name)

        # No columns means absent or present with an empty schema
        if current.is_empty():
            if self.create_table(table):
                return sorted(table.columns)
            current = self.get_table_schema(table.name)

        for column, column_type in table.columns.items():
            existing = current.columns.get(column)
            if existing is None or column_type is LogicalType.UNKNOWN:
                continue
            if existing is not column_type:
                log.warning(
                    "column_type_mismatch",
                    table=table.name,
                    column=column,
                    expected=column_type.value,
                    actual=existing.value,
                )

        missing = table.missing_from(current)
        if missing.is_empty():
            log.debug("table_schema_in_sync", table=table.name)
            return []

        self.patch_table_schema(missing)
        return sorted(missing.columns)
