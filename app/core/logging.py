"""
JSON logging for the reviews service.

One JSON object per line on stdout. Every line carries the current request
id when there is one, plus whatever was passed through extra={}.
"""
import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.config import settings

LOGGER_NAME = "storefront_reviews"

# Attributes every LogRecord carries; anything else arrived through extra={}
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "request_id",
    "taskName",
}


def _current_request_id() -> Optional[str]:
    # middleware imports this module, so look the context variable up lazily
    from app.core.middleware import request_id_var

    return request_id_var.get()


class JSONFormatter(logging.Formatter):
    """Serialize a record, its extras and any exception to a JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or _current_request_id()
        if request_id:
            entry["request_id"] = request_id

        entry.update({k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry["source"] = {"file": record.pathname, "line": record.lineno, "function": record.funcName}
        return json.dumps(entry, default=str)


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a single stdout JSON handler to the service logger."""
    level_no = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    service_logger = logging.getLogger(LOGGER_NAME)
    service_logger.setLevel(level_no)
    service_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    service_logger.addHandler(handler)
    service_logger.propagate = False

    return service_logger


logger = setup_logging()


def log_error(message: str, error: Optional[Exception] = None, **fields: Any) -> None:
    """Log at ERROR with the exception's type, text and traceback attached."""
    if error is not None:
        fields.update(error_type=type(error).__name__, error_message=str(error))
    logger.error(message, extra=fields, exc_info=error)
