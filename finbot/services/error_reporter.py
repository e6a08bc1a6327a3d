"""Error Reporting Sink.

Fire-and-forget: report() logs the failure (and, when ERROR_LOG_DIR is
set, drops a JSON file per failure) and never raises into the caller.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from finbot.config import settings
from finbot.llm.errors import ProviderError

logger = logging.getLogger(__name__)


def describe_error(service: str, error: BaseException, context: Optional[str] = None) -> Dict[str, Any]:
    """Flatten an exception into a JSON-serializable record."""
    record: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": service,
        "error_class": type(error).__name__,
        "message": str(error),
    }
    if isinstance(error, ProviderError):
        record["provider"] = error.provider
        record["status"] = error.status
        record["body"] = error.body
        record["timed_out"] = error.timed_out
        record["transient"] = error.transient
    if context:
        record["context"] = context
    return record


class ErrorReporter:
    """Collects failures from providers and the conversation loop."""

    def __init__(self, log_dir: Optional[str] = None):
        self.log_dir = Path(log_dir) if log_dir else None

    def report(self, service: str, error: BaseException, context: Optional[str] = None) -> None:
        try:
            record = describe_error(service, error, context)
            logger.error(f"[{service}] {context or 'failure'}: {record['error_class']}: {record['message']}")
            if self.log_dir is not None:
                self._write(record)
        except Exception:
            logger.exception("Failed to report error")

    def _write(self, record: Dict[str, Any]) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S-%f")
        path = self.log_dir / f"{record['service']}_{stamp}.json"
        path.write_text(json.dumps(record, indent=2, default=str), encoding="utf-8")


_error_reporter: Optional[ErrorReporter] = None


def get_error_reporter() -> ErrorReporter:
    """Get the process-wide error reporter."""
    global _error_reporter
    if _error_reporter is None:
        _error_reporter = ErrorReporter(settings.ERROR_LOG_DIR)
    return _error_reporter
