"""
CallWarden - Exception Hierarchy

Structured exceptions for consistent error handling across the system.
All exceptions include error codes for API responses.
"""

from typing import Optional


class CallWardenError(Exception):
    """Base exception for all CallWarden errors."""
    
    code: str = "UNKNOWN_ERROR"
    status_code: int = 500
    
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(CallWardenError):
    """Input validation error."""
    code = "VALIDATION_ERROR"
    status_code = 400


class MissingFieldError(ValidationError):
    """A required request field is missing or empty."""
    
    def __init__(self, field_name: str):
        super().__init__(f"{field_name} is required", {"field": field_name})
        self.field_name = field_name


# =============================================================================
# Call Control Errors
# =============================================================================

class CallControlError(CallWardenError):
    """The telephony provider rejected or failed a call-control request."""
    code = "CALL_CONTROL_ERROR"
    status_code = 502


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(CallWardenError):
    """Configuration error."""
    code = "CONFIGURATION_ERROR"
    status_code = 500
