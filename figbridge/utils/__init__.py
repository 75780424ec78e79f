"""Utility functions for figbridge."""

from figbridge.utils.exceptions import (
    FigbridgeError,
    NoTargetFound,
    ConnectTimeout,
    TransportError,
    NotConnected,
    RequestTimeout,
    RemoteFault,
    CompileError,
    ErrorCategory,
    classify_exception,
)

__all__ = [
    "FigbridgeError",
    "NoTargetFound",
    "ConnectTimeout",
    "TransportError",
    "NotConnected",
    "RequestTimeout",
    "RemoteFault",
    "CompileError",
    "ErrorCategory",
    "classify_exception",
]
