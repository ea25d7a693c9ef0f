"""Error types for warehouse reverse engineering."""

import traceback
from typing import Optional, Dict, Any


class ReverseEngineeringError(Exception):
    """Base exception for reverse-engineering errors."""

    def __init__(self, message: str, code: str = "REVERSE_ENGINEERING_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for the host callback."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConnectionError(ReverseEngineeringError):
    """Invalid credentials, unreachable network or unknown account/project."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONNECTION_ERROR", details=details)


class ListError(ReverseEngineeringError):
    """Error enumerating datasets, schemas or entities."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="LIST_ERROR", details=details)


class FetchError(ReverseEngineeringError):
    """Error fetching DDL, row counts, samples or metadata for one entity."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="FETCH_ERROR", details=details)


class InferenceError(ReverseEngineeringError):
    """Sampled documents could not be turned into a schema."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INFERENCE_ERROR", details=details)


class SamplingSettingsError(ReverseEngineeringError):
    """Invalid record sampling settings."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="SAMPLING_SETTINGS_ERROR", details=details)


class ConfigurationError(ReverseEngineeringError):
    """Connection info or settings are incomplete."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)


def error_code(error: BaseException) -> str:
    """Return the typed code of an error, or UNKNOWN_ERROR for foreign exceptions."""
    if isinstance(error, ReverseEngineeringError):
        return error.code
    return "UNKNOWN_ERROR"


def format_stack(error: BaseException) -> str:
    """Render the traceback of an exception as a single string."""
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))
