"""
bqsync - BigQuery schema reconciliation and batch loading.

Keeps BigQuery table schemas in step with a logical schema tracked by the
ingestion side, and bulk-loads newline-delimited JSON files that have already
been staged in GCS.

Usage:
    python -m bqsync sync --schema events.yaml --staged-key staging/events.json
    python -m bqsync describe events

Environment Variables:
    PROJECT_ID: GCP project ID
    BQ_DATASET: BigQuery dataset holding the destination tables
    STAGING_BUCKET: GCS bucket the staged files live in
    GOOGLE_CREDENTIALS: Service account JSON or path to a key file (optional)
"""

from bqsync.config import Config
from bqsync.errors import (
    BqSyncError,
    ConcurrencyConflict,
    ErrorKind,
    LoadError,
    LoadJobError,
    LoadSubmitError,
    LoadWaitError,
    ReconcileError,
    WarehouseConnectionError,
    classify_error,
)
from bqsync.loader import BatchLoader, LoadResult
from bqsync.reconciler import SchemaReconciler
from bqsync.schema import LogicalTable, LogicalType
from bqsync.session import BigQuerySession

__all__ = [
    "BatchLoader",
    "BigQuerySession",
    "BqSyncError",
    "ConcurrencyConflict",
    "Config",
    "ErrorKind",
    "LoadError",
    "LoadJobError",
    "LoadResult",
    "LoadSubmitError",
    "LoadWaitError",
    "LogicalTable",
    "LogicalType",
    "ReconcileError",
    "SchemaReconciler",
    "WarehouseConnectionError",
    "classify_error",
]

__version__ = "0.1.0"
