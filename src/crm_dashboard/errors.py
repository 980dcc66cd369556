"""
Error classes for the dashboard pipeline.

Hierarchy:
    DashboardError
    ├── TransportError   (non-2xx response, network failure, timeout)
    ├── PayloadError     (response body is not valid JSON)
    └── ConfigError      (settings file missing or invalid)

Per-record parse problems are never raised; they degrade to neutral values.
"""

from typing import Optional


class DashboardError(Exception):
    """Base exception for all dashboard pipeline errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: Optional[dict] = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


class TransportError(DashboardError):
    """The source endpoint could not be reached or rejected the request."""

    def __init__(
        self,
        message: str,
        code: str = "TRANSPORT",
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ):
        self.status_code = status_code
        self.url = url
        super().__init__(message, code=code, details={"status_code": status_code, "url": url})


class PayloadError(DashboardError):
    """The response arrived but could not be parsed."""

    def __init__(self, message: str = "Could not parse response as JSON", code: str = "INVALID_JSON"):
        super().__init__(message, code=code)


class ConfigError(DashboardError):
    """Settings could not be loaded."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message, code="CONFIG", details={"path": path})
