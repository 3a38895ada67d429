"""Configuration loaded from environment variables."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Config:
    """Connector configuration."""

    # Destination
    project_id: str
    dataset: str
    bucket: str           # GCS bucket holding staged files

    # Service account JSON content or a path to a key file.
    # None means Application Default Credentials.
    credentials: str | None = None
    location: str = "EU"

    # Environment
    env: str = "int"
    log_level: str = "INFO"

    # Metrics
    dynatrace_endpoint: str = ""
    dynatrace_token_path: str = "/secrets/dynatrace-token"

    @classmethod
    def from_env(cls) -> "Config":
        """
        Load configuration from environment variables.

        Required:
            PROJECT_ID: GCP project ID
            BQ_DATASET: BigQuery dataset name
            STAGING_BUCKET: GCS bucket with staged files

        Optional:
            GOOGLE_CREDENTIALS: Service account JSON or key file path
            BQ_LOCATION: Dataset location (default: EU)
            ENV: Environment name used as a metric dimension (default: int)
            LOG_LEVEL: Minimum log level (default: INFO)
            DYNATRACE_ENDPOINT: Dynatrace base URL (default: metrics disabled)
            DYNATRACE_TOKEN_PATH: File holding the Dynatrace API token
        """
        return cls(
            project_id=os.environ["PROJECT_ID"],
            dataset=os.environ["BQ_DATASET"],
            bucket=os.environ["STAGING_BUCKET"],
            credentials=os.environ.get("GOOGLE_CREDENTIALS") or None,
            location=os.environ.get("BQ_LOCATION", "EU"),
            env=os.environ.get("ENV", "int"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            dynatrace_endpoint=os.environ.get("DYNATRACE_ENDPOINT", ""),
            dynatrace_token_path=os.environ.get("DYNATRACE_TOKEN_PATH", "/secrets/dynatrace-token"),
        )
