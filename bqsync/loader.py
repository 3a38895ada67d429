"""
Batch loading of staged GCS files into BigQuery tables.

A load has three places it can fail, and each one raises its own error so
the caller knows how far the load got:

1. Submitting the job           -> LoadSubmitError
2. Waiting for it to finish      -> LoadWaitError
3. The job finishing with errors -> LoadJobError

Destination tables are never created here (CREATE_NEVER); run the
SchemaReconciler first.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from google.cloud import bigquery

from bqsync.errors import (
    REMOTE_ERRORS,
    LoadError,
    LoadJobError,
    LoadSubmitError,
    LoadWaitError,
)
from bqsync.metrics import MetricsClient
from bqsync.session import BigQuerySession

log = structlog.get_logger()


@dataclass
class LoadResult:
    """Metadata about a completed load job."""
    job_id: str             # BigQuery job ID
    table: str              # Destination table name
    source_uri: str         # gs:// URI of the staged file
    output_rows: int        # Rows written, as reported by BigQuery
    started_at: datetime    # When the job was submitted
    completed_at: datetime  # When the job reached DONE

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


class BatchLoader:
    """Loads newline-delimited JSON files staged in GCS into existing tables."""

    def __init__(self, session: BigQuerySession, metrics: MetricsClient | None = None) -> None:
        self.session = session
        self.metrics = metrics

    @staticmethod
    def job_config() -> bigquery.LoadJobConfig:
        return bigquery.LoadJobConfig(
            source_format=bigquery.SourceFormat.NEWLINE_DELIMITED_JSON,
            create_disposition=bigquery.CreateDisposition.CREATE_NEVER,
            write_disposition=bigquery.WriteDisposition.WRITE_APPEND,
        )

    def copy(self, staged_key: str, table: str) -> LoadResult:
        """
        Load one staged file into a table and block until the job finishes.

        Args:
            staged_key: Object key of the staged file in the session's bucket
            table: Destination table name (must already exist)

        Returns:
            LoadResult for the finished job

        Raises:
            LoadSubmitError: If the job could not be submitted
            LoadWaitError: If waiting for the job failed
            LoadJobError: If the job finished with an error status
        """
        source_uri = self.session.gcs_uri(staged_key)
        table_id = self.session.table_id(table)
        client = self.session.client

        log.info("load_starting", source=source_uri, table=table_id)
        started_at = datetime.now(timezone.utc)

        try:
            load_job = self._submit(client, source_uri, table_id, table)
            self._wait(load_job, source_uri, table)
        except LoadError as e:
            if self.metrics:
                self.metrics.increment("load.failures", dimensions={"table": table, "stage": e.stage})
            raise

        completed_at = datetime.now(timezone.utc)
        result = LoadResult(
            job_id=load_job.job_id,
            table=table,
            source_uri=source_uri,
            output_rows=load_job.output_rows or 0,
            started_at=started_at,
            completed_at=completed_at,
        )

        log.info(
            "load_complete",
            job_id=result.job_id,
            table=table_id,
            rows=result.output_rows,
            duration_seconds=result.duration_seconds,
        )
        if self.metrics:
            self.metrics.increment("load.jobs", dimensions={"table": table})
            self.metrics.gauge("load.rows", result.output_rows, dimensions={"table": table})
            self.metrics.gauge("load.duration_seconds", result.duration_seconds, dimensions={"table": table})

        return result

    def _submit(
        self,
        client: bigquery.Client,
        source_uri: str,
        table_id: str,
        table: str,
    ) -> bigquery.LoadJob:
        try:
            return client.load_table_from_uri(source_uri, table_id, job_config=self.job_config())
        except REMOTE_ERRORS as e:
            log.error("load_submit_failed", source=source_uri, table=table_id, error=str(e))
            raise LoadSubmitError(table, source_uri, e) from e

    def _wait(self, load_job: bigquery.LoadJob, source_uri: str, table: str) -> None:
        """Block on the job, then check its terminal status."""
        try:
            load_job.result()
        except REMOTE_ERRORS as e:
            # result() raises for failed jobs too; a populated error_result
            # means the job itself reached DONE with an error.
            if load_job.error_result:
                raise self._job_error(load_job, source_uri, table) from e
            log.error("load_wait_failed", job_id=load_job.job_id, table=table, error=str(e))
            raise LoadWaitError(table, source_uri, e) from e

        if load_job.error_result:
            raise self._job_error(load_job, source_uri, table)

    @staticmethod
    def _job_error(load_job: bigquery.LoadJob, source_uri: str, table: str) -> LoadJobError:
        log.error(
            "load_job_failed",
            job_id=load_job.job_id,
            table=table,
            error_result=load_job.error_result,
            errors=load_job.errors,
        )
        return LoadJobError(
            table,
            source_uri,
            detail=load_job.error_result,
            errors=load_job.errors,
            job_id=load_job.job_id,
        )
