"""Authenticated BigQuery session.

The session is the only owner of the ``bigquery.Client``. Reconciler and
loader reach the client through ``session.client`` on every call, so once the
session is closed they fail fast instead of using a released handle.

Typical use:

    with BigQuerySession.open(config) as session:
        SchemaReconciler(session).create_table(table)
        BatchLoader(session).copy(key, table.name)
"""

import json

import structlog
from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import bigquery
from google.oauth2 import service_account

from bqsync.config import Config
from bqsync.errors import WarehouseConnectionError

log = structlog.get_logger()


def looks_like_inline_json(content: str) -> bool:
    """Return True if a credential payload is JSON content rather than a file path."""
    return content.lstrip().startswith("{")


def load_credentials(payload: str | None) -> service_account.Credentials | None:
    """
    Build service account credentials from a config payload.

    Args:
        payload: Inline service account JSON, a path to a key file,
            or None/empty to fall back to Application Default Credentials

    Returns:
        Credentials, or None when the client library should resolve ADC itself

    Raises:
        ValueError: If the JSON or key content is malformed
        OSError: If the key file cannot be read
    """
    if not payload or not payload.strip():
        return None

    if looks_like_inline_json(payload):
        return service_account.Credentials.from_service_account_info(json.loads(payload))
    return service_account.Credentials.from_service_account_file(payload.strip())


class BigQuerySession:
    """Owns the BigQuery client and the project/dataset/bucket it works against."""

    def __init__(self, config: Config, client: bigquery.Client) -> None:
        self.config = config
        self._client: bigquery.Client | None = client

    @classmethod
    def open(cls, config: Config) -> "BigQuerySession":
        """
        Create a session for the configured project.

        Raises:
            WarehouseConnectionError: If credentials are invalid or the
                client cannot be created
        """
        try:
            credentials = load_credentials(config.credentials)
            client = bigquery.Client(
                project=config.project_id,
                credentials=credentials,
                location=config.location,
            )
        except (
            ValueError,
            OSError,
            auth_exceptions.GoogleAuthError,
            gcp_exceptions.GoogleAPIError,
        ) as e:
            log.error(
                "session_open_failed",
                project=config.project_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise WarehouseConnectionError(
                f"Error creating BigQuery client for project {config.project_id}: {e}"
            ) from e

        log.info(
            "session_opened",
            project=config.project_id,
            dataset=config.dataset,
            location=config.location,
        )
        return cls(config, client)

    @property
    def client(self) -> bigquery.Client:
        if self._client is None:
            raise WarehouseConnectionError(
                f"BigQuery session for project {self.config.project_id} is closed"
            )
        return self._client

    @property
    def closed(self) -> bool:
        return self._client is None

    @property
    def project_id(self) -> str:
        return self.config.project_id

    @property
    def dataset(self) -> str:
        return self.config.dataset

    @property
    def bucket(self) -> str:
        return self.config.bucket

    def dataset_id(self, name: str | None = None) -> str:
        """Fully qualified dataset ID, defaulting to the configured dataset."""
        return f"{self.project_id}.{name or self.dataset}"

    def table_id(self, table: str) -> str:
        return f"{self.project_id}.{self.dataset}.{table}"

    def gcs_uri(self, key: str) -> str:
        """Location of a staged object in the configured bucket."""
        return f"gs://{self.bucket}/{key.lstrip('/')}"

    def close(self) -> None:
        """
        Release the client. A second call is a no-op.

        Raises:
            WarehouseConnectionError: If the client fails to close
        """
        if self._client is None:
            log.debug("session_already_closed", project=self.project_id)
            return

        client, self._client = self._client, None
        try:
            client.close()
        except Exception as e:
            log.error("session_close_failed", project=self.project_id, error=str(e))
            raise WarehouseConnectionError(f"Error closing BigQuery client: {e}") from e

        log.info("session_closed", project=self.project_id)

    def __enter__(self) -> "BigQuerySession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
