"""
Structured Logging Configuration

JSON log lines carry the request id and acting user of the current request,
plus entity fields for booking and inventory events so a single listing's
counter history can be followed in the log aggregator.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Any, Dict
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar('request_id', default='')
user_id_var: ContextVar[str] = ContextVar('user_id', default='')

# Attributes copied from the LogRecord when a helper attached them
_RECORD_FIELDS = ("entity_type", "entity_id", "listing_id", "duration_ms")


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, var in (("request_id", request_id_var), ("user_id", user_id_var)):
            value = var.get()
            if value:
                log_data[key] = value

        for field in _RECORD_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if getattr(record, "event", None):
            log_data["event"] = record.event
            log_data["data"] = getattr(record, "event_data", {})

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter with one helper per domain event.

    Plain ``info``/``warning`` calls still work; helpers add an ``event``
    name and its payload so JSON output can be filtered by event.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get('extra', {})
        extra.update(self.extra)
        kwargs['extra'] = extra
        return msg, kwargs

    def event(
        self,
        name: str,
        msg: str,
        level: int = logging.INFO,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        listing_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        **data
    ):
        self.log(level, msg, extra={
            "event": name,
            "event_data": {k: v for k, v in data.items() if v is not None},
            "entity_type": entity_type,
            "entity_id": entity_id,
            "listing_id": listing_id,
            "duration_ms": duration_ms,
        })

    def booking_created(self, booking_id: str, listing_id: str, units: int, remaining_units: Optional[int] = None):
        self.event(
            "booking_created",
            f"Booking {booking_id} created on listing {listing_id} ({units} unit(s))",
            entity_type="booking",
            entity_id=booking_id,
            listing_id=listing_id,
            units=units,
            remaining_units=remaining_units,
        )

    def booking_status_changed(self, booking_id: str, old_status: str, new_status: str):
        self.event(
            "booking_status_changed",
            f"Booking {booking_id} status changed: {old_status} -> {new_status}",
            entity_type="booking",
            entity_id=booking_id,
            old_status=old_status,
            new_status=new_status,
        )

    def inventory_changed(self, listing_id: str, action: str, units: int, available_units: Optional[int] = None):
        """action is one of reserve, release, adjust."""
        self.event(
            "inventory_changed",
            f"Inventory {action}: {units} unit(s) on listing {listing_id}",
            entity_type="inventory",
            entity_id=listing_id,
            listing_id=listing_id,
            action=action,
            units=units,
            available_units=available_units,
        )

    def api_request(self, method: str, path: str, status_code: int, duration_ms: float):
        level = logging.WARNING if status_code >= 500 else logging.INFO
        self.event(
            "api_request",
            f"{method} {path} - {status_code}",
            level=level,
            duration_ms=duration_ms,
            method=method,
            path=path,
            status_code=status_code,
        )


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure the root logger and uvicorn's loggers with one stdout handler.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines (production) or a plain text format (local runs, tests)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(logger_name).handlers = [handler]

    # SQL echo is controlled by SQL_ECHO, not the log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name), {})


def set_request_context(request_id: str, user_id: Optional[str] = None):
    request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)


def clear_request_context():
    request_id_var.set('')
    user_id_var.set('')
