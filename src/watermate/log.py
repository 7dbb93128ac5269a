"""
Logging setup for watermate, with a JSON formatter for structured output.
"""
import json
import logging
import sys
from datetime import datetime, timezone

# Extra fields copied from a record into the JSON document when present.
EXTRA_FIELDS = (
    "operation",
    "order_id",
    "notification_id",
    "user_id",
    "status",
    "key",
    "error",
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record):
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Attach a stderr handler to the ``watermate`` logger."""
    logger = logging.getLogger("watermate")
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    logger.handlers = [handler]
    logger.propagate = False
