"""Console logging for the chat server."""

import json
import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class StructuredFormatter(logging.Formatter):
    """Formatter that appends a record's ``structured`` payload as compact JSON."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        structured = getattr(record, "structured", None)
        if structured:
            # Truncate large payloads such as tool results
            payload = json.dumps(structured, default=str, ensure_ascii=False)
            if len(payload) > 2000:
                payload = payload[:2000] + "..."
            line = f"{line} {payload}"
        return line


def configure_logging(level: str = "INFO") -> None:
    """Send records to stderr, rendering structured payloads."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(LOG_FORMAT))
    logging.basicConfig(level=getattr(logging, level), handlers=[handler], force=True)
