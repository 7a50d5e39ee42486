"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from finledger.config import settings
from finledger.domain.exceptions import DomainException, InvariantViolation


class CustomJsonFormatter(jsonlogger.JsonFormatter):
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


def log_operation(operation: str, **fields: Any) -> None:
    """Log a committed core operation with its identifiers and amounts"""
    logging.getLogger("finledger.operations").info(
        f"{operation} committed",
        extra={"step": operation, **fields},
    )


def log_operation_failure(operation: str, error: Exception, **fields: Any) -> None:
    """Log a rolled-back operation; domain errors are warnings, anything else is an error"""
    logger = logging.getLogger("finledger.operations")
    kind = getattr(error, "kind", type(error).__name__)
    extra = {"step": operation, "error_kind": kind, **fields}

    if isinstance(error, DomainException) and not isinstance(error, InvariantViolation):
        logger.warning(f"{operation} rejected: {error}", extra=extra)
    else:
        logger.error(f"{operation} failed: {error}", extra=extra)
