"""
CallWarden - Structured Logging

Provides structured JSON logging with context injection for the caller
identity and provider call id. Both are masked before they reach a handler.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, List, Optional

from callwarden.telephony.privacy import mask_call_id, mask_phone_number


# =============================================================================
# Context Variables
# =============================================================================

user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
call_id_var: ContextVar[Optional[str]] = ContextVar('call_id', default=None)


# =============================================================================
# Structured Formatter
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that injects masked context variables.
    
    Output format:
    {
        "timestamp": "2024-11-30T00:00:00.000000Z",
        "level": "INFO",
        "logger": "module.submodule",
        "user": "+1555123xxxxx",
        "call_id": "***1234",
        "message": "Human-readable message",
        "data": { ... }
    }
    """
    
    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        
        user_id = user_id_var.get()
        if user_id:
            log_entry["user"] = mask_phone_number(user_id)
        
        call_id = call_id_var.get()
        if call_id:
            log_entry["call_id"] = mask_call_id(call_id)
        
        if hasattr(record, 'data') and record.data:
            log_entry["data"] = record.data
        
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        
        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for development.
    Includes timestamp, level, logger, and message with context.
    """
    
    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        
        context_parts = []
        
        user_id = user_id_var.get()
        if user_id:
            context_parts.append(f"user={mask_phone_number(user_id)}")
        
        call_id = call_id_var.get()
        if call_id:
            context_parts.append(f"call={mask_call_id(call_id)}")
        
        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""
        
        message = f"{timestamp} | {record.levelname:<8} | {record.name}{context_str} | {record.getMessage()}"
        
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        
        return message


# =============================================================================
# Logger Setup
# =============================================================================

def setup_structured_logging(
    level: str = "INFO",
    json_format: bool = False,
) -> None:
    """
    Configure structured logging for the application.
    
    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format (True for production, False for development)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    
    root_logger.handlers.clear()
    
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))
    
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())
    
    root_logger.addHandler(handler)
    
    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)


# =============================================================================
# Context Managers
# =============================================================================

class LogContext:
    """
    Context manager for setting log context variables.
    
    Usage:
        with LogContext(user_id="+15551230000", call_id="CA123"):
            logger.info("Processing event")
    """
    
    def __init__(
        self,
        user_id: Optional[str] = None,
        call_id: Optional[str] = None,
    ):
        self._user_id = user_id
        self._call_id = call_id
        self._tokens: List[tuple[ContextVar, Token]] = []
    
    def __enter__(self):
        if self._user_id:
            self._tokens.append((user_id_var, user_id_var.set(self._user_id)))
        if self._call_id:
            self._tokens.append((call_id_var, call_id_var.set(self._call_id)))
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
        return False


def format_duration(millis: int) -> str:
    """Render a time budget for log lines: whole minutes or seconds."""
    if millis >= 60_000:
        return f"{millis / 60_000:g} minutes"
    return f"{millis / 1000:g} seconds"


def log_data(**fields: Any) -> dict:
    """Build the ``extra`` mapping picked up by StructuredFormatter."""
    return {"data": fields}
