"""Dynatrace metrics for schema and load operations."""

import time
from pathlib import Path
from typing import Any

import httpx
import structlog

from bqsync.config import Config

log = structlog.get_logger()

PREFIX = "bqsync"

# Characters the line protocol treats as separators inside a dimension value
_DIMENSION_SPECIALS = ("\\", "\"", ",", "=", " ")


def escape_dimension(value: Any) -> str:
    """Backslash-escape a dimension value for the Dynatrace line protocol."""
    text = str(value)
    for char in _DIMENSION_SPECIALS:
        text = text.replace(char, "\\" + char)
    return text


class MetricsClient:
    """
    Buffers metric lines in Dynatrace line protocol and pushes them on flush.

    Every line carries ``env`` and ``dataset`` dimensions. With no endpoint
    or token configured, flush just drops the buffer.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.start_time = time.monotonic()
        self._buffer: list[str] = []
        self._token: str | None = None

    @property
    def pending(self) -> list[str]:
        return list(self._buffer)

    def _get_token(self) -> str | None:
        if self._token is not None:
            return self._token

        token_path = Path(self.config.dynatrace_token_path)
        if token_path.exists():
            self._token = token_path.read_text().strip()
            return self._token

        log.debug("dynatrace_token_not_found", path=str(token_path))
        return None

    def increment(self, metric: str, value: int = 1, dimensions: dict[str, Any] | None = None) -> None:
        self._record(metric, f"count,delta={value}", dimensions)

    def gauge(self, metric: str, value: float, dimensions: dict[str, Any] | None = None) -> None:
        self._record(metric, f"gauge,{value}", dimensions)

    def elapsed(self) -> float:
        """Seconds since this client was created."""
        return time.monotonic() - self.start_time

    def _record(
        self,
        metric: str,
        payload: str,
        dimensions: dict[str, Any] | None = None,
    ) -> None:
        dims = {"env": self.config.env, "dataset": self.config.dataset}
        if dimensions:
            dims.update(dimensions)

        dim_str = ",".join(f"{k}={escape_dimension(v)}" for k, v in dims.items())
        self._buffer.append(f"{PREFIX}.{metric},{dim_str} {payload}")

        log.debug("metric_recorded", metric=metric, payload=payload)

    def flush(self) -> int:
        """
        Send buffered metrics to Dynatrace.

        Failures are logged, never raised; the buffer is always cleared.

        Returns:
            Number of lines accepted by Dynatrace (0 when skipped or failed)
        """
        if not self._buffer:
            return 0

        token = self._get_token()
        if not token or not self.config.dynatrace_endpoint:
            log.debug("metrics_flush_skipped", reason="no endpoint or token configured")
            self._buffer.clear()
            return 0

        count = len(self._buffer)
        try:
            response = httpx.post(
                f"{self.config.dynatrace_endpoint.rstrip('/')}/api/v2/metrics/ingest",
                headers={
                    "Authorization": f"Api-Token {token}",
                    "Content-Type": "text/plain; charset=utf-8",
                },
                content="\n".join(self._buffer),
                timeout=10,
            )
            if response.status_code == 202:
                log.info("metrics_flushed", count=count)
                return count

            log.error(
                "metrics_flush_failed",
                status=response.status_code,
                body=response.text[:500],
            )
            return 0
        except httpx.HTTPError as e:
            log.warning("metrics_flush_error", error=str(e))
            return 0
        finally:
            self._buffer.clear()
