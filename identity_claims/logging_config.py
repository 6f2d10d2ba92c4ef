"""
Logging configuration for identity claim issuance.

Provides structured JSON logging for audit trails and debugging.
Signatures and key material are never logged; addresses are masked.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from . import config

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only the last N characters.
    Useful for logging.
    """
    if len(value) <= visible_chars:
        return '*' * len(value)
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per line so audit events can be shipped
    to a log aggregation system unchanged.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


class AuditLogger:
    """
    Specialized logger for claim lifecycle events.

    Provides methods for logging issuance, signing, verification and
    validation outcomes.
    """

    def __init__(self, name: str = "identity_claims.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        if not self._logger.isEnabledFor(level):
            return

        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def claim_created(self, address: str, tier: int, risk_score: int, expiry: int) -> None:
        """Log creation of an unsigned claim."""
        self._log(
            logging.INFO,
            "CLAIM_CREATED",
            address=mask_sensitive(address),
            tier=tier,
            risk_score=risk_score,
            expiry=expiry,
            message=f"Claim created for tier {tier}"
        )

    def claim_signed(self, address: str, issuer: str, key_id: Optional[str] = None) -> None:
        """Log a successful signature."""
        self._log(
            logging.INFO,
            "CLAIM_SIGNED",
            address=mask_sensitive(address),
            issuer=issuer,
            key_id=key_id,
            message=f"Claim signed by {issuer}"
        )

    def claim_verified(self, address: str, issuer: str, outcome: str) -> None:
        """Log a verification decision."""
        level = logging.INFO if outcome == "VALID" else logging.WARNING
        self._log(
            level,
            "CLAIM_VERIFIED",
            address=mask_sensitive(address),
            issuer=issuer,
            outcome=outcome,
            message=f"Claim verification outcome: {outcome}"
        )

    def signature_rejected(self, address: str, issuer: str, reason: str) -> None:
        """Log a rejected signature."""
        self._log(
            logging.WARNING,
            "SIGNATURE_REJECTED",
            address=mask_sensitive(address),
            issuer=issuer,
            reason=reason,
            message=f"Signature rejected: {reason}"
        )

    def validation_failed(self, field: Optional[str], code: str, reason: str) -> None:
        """Log a failed field or expiry check."""
        self._log(
            logging.WARNING,
            "VALIDATION_FAILED",
            field=field,
            failure_code=code,
            reason=reason,
            message=f"Claim validation failed: {reason}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); LOG_LEVEL if unset
        json_format: Use JSON formatting (recommended for production); LOG_JSON if unset
        log_file: Optional file path for log output
    """
    level = level or config.LOG_LEVEL
    if json_format is None:
        json_format = config.LOG_JSON

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
