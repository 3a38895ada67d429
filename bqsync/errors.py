"""Error hierarchy and translation of Google API errors.

Every remote failure is wrapped with the operation and resource it concerned
so that a single log line is enough to diagnose it. Nothing here retries;
callers that want retries can use ``ErrorKind.TRANSIENT`` to decide.
"""

from enum import Enum
from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.api_core import retry as gcp_retry
from google.auth import exceptions as auth_exceptions

# What a BigQuery client call can raise for a remote-side failure: API errors,
# credential refresh failures and transport errors (requests raises OSError subclasses).
REMOTE_ERRORS = (gcp_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, OSError)


class ErrorKind(str, Enum):
    """Coarse classification of a remote API failure."""
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"                        # 409, resource already exists
    PRECONDITION_FAILED = "precondition_failed"  # 412, stale etag
    TRANSIENT = "transient"
    FATAL = "fatal"


def classify_error(err: BaseException) -> ErrorKind:
    """
    Classify an exception raised by the Google client libraries.

    Args:
        err: Exception raised by a BigQuery client call

    Returns:
        The ErrorKind the rest of the package branches on
    """
    if isinstance(err, gcp_exceptions.NotFound):
        return ErrorKind.NOT_FOUND
    if isinstance(err, gcp_exceptions.Conflict):
        return ErrorKind.CONFLICT
    if isinstance(err, gcp_exceptions.PreconditionFailed):
        return ErrorKind.PRECONDITION_FAILED
    if gcp_retry.if_transient_error(err):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


class BqSyncError(Exception):
    """Base class for all bqsync errors."""


class WarehouseConnectionError(BqSyncError):
    """Opening, using or closing the BigQuery session failed."""


class ReconcileError(BqSyncError):
    """A dataset or table schema operation failed."""

    def __init__(self, operation: str, resource: str, cause: BaseException | str) -> None:
        self.operation = operation
        self.resource = resource
        self.cause = cause
        self.kind = classify_error(cause) if isinstance(cause, BaseException) else ErrorKind.FATAL
        super().__init__(f"{operation} failed for {resource}: {cause}")


class ConcurrencyConflict(ReconcileError):
    """The table changed between fetching its etag and updating it.

    Retrying means fetching the table again, not resubmitting the same update.
    """


class LoadError(BqSyncError):
    """Base class for load job failures."""

    stage = "load"

    def __init__(self, table: str, source_uri: str, cause: BaseException | str) -> None:
        self.table = table
        self.source_uri = source_uri
        self.cause = cause
        super().__init__(f"{self.stage} failed loading {source_uri} into {table}: {cause}")


class LoadSubmitError(LoadError):
    """The load job could not be submitted."""

    stage = "load_submit"


class LoadWaitError(LoadError):
    """Waiting for the load job failed before a terminal status was known."""

    stage = "load_wait"


class LoadJobError(LoadError):
    """The load job finished with an error status."""

    stage = "load_job"

    def __init__(
        self,
        table: str,
        source_uri: str,
        detail: dict[str, Any],
        errors: list[dict[str, Any]] | None = None,
        job_id: str | None = None,
    ) -> None:
        self.detail = detail
        self.errors = errors or []
        self.job_id = job_id
        message = detail.get("message") or detail.get("reason") or str(detail)
        super().__init__(table, source_uri, message)
