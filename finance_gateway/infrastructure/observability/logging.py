"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger.json import JsonFormatter

from finance_gateway.config import settings


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_generation(
    request_id: str,
    user_id: str,
    source: str,
    source_id: str,
    operation: str,
    transaction_count: int,
    duration_ms: Optional[float] = None,
) -> None:
    """Log how many ledger transactions an operation emitted"""
    logging.info(
        "Ledger transactions generated",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": operation,
            "source": source,
            "source_id": source_id,
            "transaction_count": transaction_count,
            "duration_ms": duration_ms,
        },
    )


def log_state_conflict(request_id: str, path: str, code: str, message: str) -> None:
    """Log a rejected attempt to regress or re-issue progress"""
    logging.warning(
        f"State conflict: {message}",
        extra={"request_id": request_id, "path": path, "conflict": code},
    )
