"""Optional on-disk log of every API request/response pair.

Enabled with ``API_DEBUG=1`` (or ``true``). Each exchange becomes one JSON
file under ``<api_log_dir>/<service>/``. Writing a log entry never fails
the request it describes.
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from sitepulse.errors import ApiError

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path("api_log")


class ApiLogEntry(BaseModel):
    """One request/response exchange as written to disk."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    service: str
    endpoint: str
    params: Any = None
    response: Any = None
    error: dict[str, Any] | None = None
    success: bool


def _describe_error(error: BaseException) -> dict[str, Any]:
    info: dict[str, Any] = {"type": type(error).__name__, "message": str(error)}
    if isinstance(error, ApiError):
        info["status"] = error.status
        info["body"] = error.body
    return info


class ApiLogger:
    """Writes ``ApiLogEntry`` files for a single service."""

    def __init__(
        self,
        service: str,
        base_dir: Path = DEFAULT_LOG_DIR,
        enabled: bool = False,
    ) -> None:
        self.service = service
        self.enabled = enabled
        self._dir = Path(base_dir) / service
        if enabled:
            logger.info("API debug logging enabled for %s -> %s", service, self._dir)

    def log_exchange(
        self,
        endpoint: str,
        params: Any,
        response: Any = None,
        error: BaseException | None = None,
    ) -> Path | None:
        """Persist one exchange. Returns the file written, or None."""
        if not self.enabled:
            return None

        try:
            entry = ApiLogEntry(
                service=self.service,
                endpoint=endpoint,
                params=params,
                response=None if error is not None else response,
                error=_describe_error(error) if error is not None else None,
                success=error is None,
            )
            seed = f"{endpoint}-{json.dumps(params, sort_keys=True, default=str)}-{time.time_ns()}"
            digest = hashlib.md5(seed.encode()).hexdigest()[:8]
            stamp = entry.timestamp.replace(":", "-")
            slug = endpoint.strip("/").replace("/", "_") or "root"
            path = self._dir / f"{stamp}_{self.service}_{slug}_{digest}.json"

            self._dir.mkdir(parents=True, exist_ok=True)
            path.write_text(entry.model_dump_json(indent=2), encoding="utf-8")
            logger.debug("API debug log written to: %s", path)
            return path
        except Exception as exc:
            logger.warning("Error writing API debug log for %s: %s", endpoint, exc)
            return None


def count_log_files(base_dir: Path = DEFAULT_LOG_DIR) -> int:
    """Number of log files under *base_dir*, across all services."""
    base = Path(base_dir)
    if not base.exists():
        return 0
    return sum(1 for p in base.rglob("*") if p.is_file())


def clear_logs(base_dir: Path = DEFAULT_LOG_DIR) -> bool:
    """Delete everything under *base_dir*. Returns False if there was nothing."""
    base = Path(base_dir)
    if not base.exists():
        return False
    for child in base.iterdir():
        if child.is_dir():
            shutil.rmtree(child)
        else:
            child.unlink()
    return True
