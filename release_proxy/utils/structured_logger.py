"""
Structured logging for download events.
Provides JSON-formatted logs with context and metadata.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("release_proxy.events")
        logger.info("download_completed", app_id="Clash Verge", size_bytes=1024)
    """

    def __init__(self, name: str, log_dir: Path | None = None):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
        """
        self.name = name
        self._logger = logging.getLogger(name)

        self._json_file = None
        if log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"release_proxy_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all JSON entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    @property
    def json_enabled(self) -> bool:
        return self._json_file is not None and not self._json_file.closed

    def _format_message(self, event: str, **context) -> str:
        """Format message for console output."""
        parts = [f"[{event}]"]
        for key, value in context.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        """Write structured log entry to JSON file."""
        if not self.json_enabled:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            # Fallback to stderr if JSON logging fails
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        self._logger.log(level, self._format_message(event, **context))
        self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()


class DownloadEventLogger:
    """Specialized logger for proxied download events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def download_requested(self, app_id: str, platform: str):
        self.logger.debug("download_requested", app_id=app_id, platform=platform)

    def download_resolved(self, app_id: str, platform: str, url: str, fallback: bool):
        """Log which URL will be proxied, and whether it is the fallback."""
        self.logger.info(
            "download_resolved",
            app_id=app_id,
            platform=platform,
            url=url,
            fallback=fallback,
        )

    def download_completed(
        self, app_id: str, platform: str, size_bytes: int, duration_s: float
    ):
        self.logger.info(
            "download_completed",
            app_id=app_id,
            platform=platform,
            size_bytes=size_bytes,
            size_mb=round(size_bytes / (1024 * 1024), 2),
            duration_s=round(duration_s, 2),
        )

    def download_failed(self, app_id: str, platform: str, error: str, status: int):
        self.logger.error(
            "download_failed",
            app_id=app_id,
            platform=platform,
            error=error,
            status=status,
        )


def create_event_logger(log_dir: Path | None = None) -> DownloadEventLogger:
    """Creates the download event logger, writing JSON lines when `log_dir` is set."""
    return DownloadEventLogger(StructuredLogger("release_proxy.events", log_dir=log_dir))
