"""Shared fixtures: an in-memory stand-in for the BigQuery client.

The fake stores real API resources and hands out real ``bigquery.Table`` /
``bigquery.Dataset`` objects, raising the same ``google.api_core`` exceptions
the service does (404 missing, 409 exists, 412 stale etag, 400 duplicate column).
"""

import copy

import pytest
from google.api_core import exceptions as gcp_exceptions
from google.cloud import bigquery

from bqsync.config import Config
from bqsync.session import BigQuerySession

PROJECT = "test-project"
DATASET = "analytics"
BUCKET = "staging-bucket"


class FakeLoadJob:
    """Load job that is already in its terminal state when handed out."""

    def __init__(
        self,
        job_id: str,
        output_rows: int = 0,
        error_result: dict | None = None,
        errors: list[dict] | None = None,
        wait_error: Exception | None = None,
    ) -> None:
        self.job_id = job_id
        self.output_rows = output_rows
        self.error_result = error_result
        self.errors = errors
        self.state = "DONE"
        self._wait_error = wait_error

    def result(self):
        if self._wait_error is not None:
            raise self._wait_error
        if self.error_result:
            raise gcp_exceptions.NotFound(self.error_result["message"])
        return self


class FakeBigQueryClient:
    def __init__(self) -> None:
        self.datasets: dict[str, dict] = {}
        self.tables: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.load_jobs: list[tuple[str, str, bigquery.LoadJobConfig]] = []
        self.staged_rows: dict[str, int] = {}
        self.submit_error: Exception | None = None
        self.wait_error: Exception | None = None
        self.closed = False
        self._etag_counter = 0

    def _next_etag(self) -> str:
        self._etag_counter += 1
        return f"etag-{self._etag_counter}"

    # Datasets

    def get_dataset(self, dataset_id: str) -> bigquery.Dataset:
        self.calls.append(("get_dataset", dataset_id))
        if dataset_id not in self.datasets:
            raise gcp_exceptions.NotFound(f"Not found: Dataset {dataset_id}")
        return bigquery.Dataset.from_api_repr(copy.deepcopy(self.datasets[dataset_id]))

    def create_dataset(self, dataset: bigquery.Dataset) -> bigquery.Dataset:
        dataset_id = f"{dataset.project}.{dataset.dataset_id}"
        self.calls.append(("create_dataset", dataset_id))
        if dataset_id in self.datasets:
            raise gcp_exceptions.Conflict(f"Already Exists: Dataset {dataset_id}")
        self.datasets[dataset_id] = dataset.to_api_repr()
        return dataset

    # Tables

    def add_table(self, table_id: str, fields: list[tuple[str, str]]) -> None:
        """Seed a table directly, bypassing create_table."""
        table = bigquery.Table(
            table_id,
            schema=[bigquery.SchemaField(name, field_type) for name, field_type in fields],
        )
        resource = table.to_api_repr()
        resource["etag"] = self._next_etag()
        self.tables[table_id] = resource

    def get_table(self, table_id: str) -> bigquery.Table:
        self.calls.append(("get_table", table_id))
        if table_id not in self.tables:
            raise gcp_exceptions.NotFound(f"Not found: Table {table_id}")
        return bigquery.Table.from_api_repr(copy.deepcopy(self.tables[table_id]))

    def create_table(self, table: bigquery.Table) -> bigquery.Table:
        table_id = f"{table.project}.{table.dataset_id}.{table.table_id}"
        self.calls.append(("create_table", table_id))
        if table_id in self.tables:
            raise gcp_exceptions.Conflict(f"Already Exists: Table {table_id}")
        resource = table.to_api_repr()
        resource["etag"] = self._next_etag()
        self.tables[table_id] = resource
        return table

    def update_table(self, table: bigquery.Table, fields: list[str]) -> bigquery.Table:
        table_id = f"{table.project}.{table.dataset_id}.{table.table_id}"
        self.calls.append(("update_table", table_id))
        stored = self.tables.get(table_id)
        if stored is None:
            raise gcp_exceptions.NotFound(f"Not found: Table {table_id}")
        if table.etag and table.etag != stored["etag"]:
            raise gcp_exceptions.PreconditionFailed("Precondition check failed.")

        names = [f.name for f in table.schema]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise gcp_exceptions.BadRequest(f"Field {duplicates[0]} already exists in schema")

        resource = table.to_api_repr()
        for name in fields:
            stored[name] = resource[name]
        stored["etag"] = self._next_etag()
        return bigquery.Table.from_api_repr(copy.deepcopy(stored))

    def field_names(self, table_id: str) -> list[str]:
        return [f["name"] for f in self.tables[table_id]["schema"]["fields"]]

    # Load jobs

    def load_table_from_uri(self, source_uri: str, destination: str, job_config=None) -> FakeLoadJob:
        self.calls.append(("load_table_from_uri", destination))
        if self.submit_error is not None:
            raise self.submit_error

        self.load_jobs.append((source_uri, destination, job_config))
        job_id = f"job_{len(self.load_jobs)}"

        if destination not in self.tables:
            return FakeLoadJob(
                job_id,
                error_result={"reason": "notFound", "message": f"Not found: Table {destination}"},
                errors=[{"reason": "notFound", "message": f"Not found: Table {destination}"}],
                wait_error=self.wait_error,
            )

        return FakeLoadJob(
            job_id,
            output_rows=self.staged_rows.get(source_uri, 0),
            wait_error=self.wait_error,
        )

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def config():
    return Config(project_id=PROJECT, dataset=DATASET, bucket=BUCKET)


@pytest.fixture
def fake_client():
    client = FakeBigQueryClient()
    client.datasets[f"{PROJECT}.{DATASET}"] = bigquery.Dataset(f"{PROJECT}.{DATASET}").to_api_repr()
    return client


@pytest.fixture
def session(config, fake_client):
    return BigQuerySession(config, fake_client)
