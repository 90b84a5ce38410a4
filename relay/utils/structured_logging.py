"""JSON event lines for relay lifecycle milestones."""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_EVENT_FIELDS = "event_fields"


class JsonEventFormatter(logging.Formatter):
    """
    Render a record as one JSON object per line:

        {"time": "2025-01-13T14:00:00.000Z", "level": "INFO",
         "event": "relay_starting", "port": 3000, "channel": "news"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "event": record.getMessage(),
        }
        entry.update(getattr(record, _EVENT_FIELDS, {}))
        return json.dumps(entry, default=str)


class EventLogger:
    """Emits named events with keyword fields through a dedicated stdout handler."""

    def __init__(self, name: str, level: int = logging.INFO, context: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.context = dict(context or {})

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonEventFormatter())
            self.logger.addHandler(handler)
        self.logger.propagate = False

    def _emit(self, level: int, event: str, fields: Dict[str, Any]) -> None:
        self.logger.log(level, event, extra={_EVENT_FIELDS: {**self.context, **fields}})

    def info(self, event: str, **fields: Any) -> None:
        self._emit(logging.INFO, event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit(logging.WARNING, event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit(logging.ERROR, event, fields)

    def bind(self, **context: Any) -> "EventLogger":
        """Return a logger that adds ``context`` to every event."""
        bound = EventLogger.__new__(EventLogger)
        bound.logger = self.logger
        bound.context = {**self.context, **context}
        return bound


def get_logger(name: str, level: int = logging.INFO) -> EventLogger:
    """Get the event logger for ``name``, attaching its JSON handler once."""
    return EventLogger(name, level)
