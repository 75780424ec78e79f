"""
Exception hierarchy and error classification for figbridge.

Provides:
- Custom exception classes with error codes
- Error categorization (retryable, fatal, validation, ...)
- Classification of arbitrary exceptions at the daemon/CLI boundary
"""

from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    REMOTE = "remote"


class FigbridgeError(Exception):
    """Base exception for all figbridge errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class NoTargetFound(FigbridgeError):
    """No debuggable page matched the selector."""

    def __init__(self, selector: str | None = None, message: str | None = None):
        super().__init__(
            message or "No Figma design file open. Please open a design file in Figma Desktop.",
            code="NO_TARGET",
            category=ErrorCategory.NOT_FOUND,
            details={"selector": selector},
        )


class ConnectTimeout(FigbridgeError):
    """Transport did not become ready in time."""

    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(
            f"Connection to {url} timed out after {timeout_seconds}s",
            code="CONNECT_TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"url": url, "timeout_seconds": timeout_seconds},
        )


class TransportError(FigbridgeError):
    """Connection-level fault reported by the transport or the protocol."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            category=ErrorCategory.RETRYABLE,
            details={"url": url} if url else {},
        )


class NotConnected(FigbridgeError):
    """Request issued on a connection that is not open."""

    def __init__(self, message: str = "Not connected to Figma"):
        super().__init__(message, code="NOT_CONNECTED", category=ErrorCategory.RETRYABLE)


class RequestTimeout(FigbridgeError):
    """No reply arrived for a request within the per-request timeout."""

    def __init__(self, request_id: int, method: str, timeout_seconds: float):
        super().__init__(
            f"Request {request_id} ({method}) timed out after {timeout_seconds}s",
            code="REQUEST_TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"request_id": request_id, "method": method, "timeout_seconds": timeout_seconds},
        )


class RemoteFault(FigbridgeError):
    """A script raised inside the remote host."""

    def __init__(self, message: str, raw: dict[str, Any] | None = None):
        super().__init__(message, code="REMOTE_FAULT", category=ErrorCategory.REMOTE)
        self.raw = raw or {}

    def __str__(self) -> str:
        return self.message


class CompileError(FigbridgeError):
    """Malformed declarative markup."""

    def __init__(self, message: str, source: str | None = None):
        details = {"source": source[:200]} if source else {}
        super().__init__(message, code="COMPILE_ERROR", category=ErrorCategory.VALIDATION, details=details)


def classify_exception(exc: Exception) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    Returns:
        Tuple of (error_code, category, should_retry)
    """
    if isinstance(exc, FigbridgeError):
        return exc.code, exc.category, exc.category == ErrorCategory.RETRYABLE

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.VALIDATION, False

    if isinstance(exc, (ValueError, KeyError, TypeError)):
        return "INVALID_VALUE", ErrorCategory.VALIDATION, False

    exc_str = str(exc).lower()
    if "timeout" in exc_str or "timed out" in exc_str:
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if "connection" in exc_str or "network" in exc_str:
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False
