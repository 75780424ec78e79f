"""DevTools transport: page discovery and the correlated request connection."""

from figbridge.cdp.connection import Connection, PendingRequest, connect, extract_fault_message
from figbridge.cdp.discovery import TargetInfo, TargetSelector, fetch_targets, find_target, is_available, list_pages

__all__ = [
    "Connection",
    "PendingRequest",
    "connect",
    "extract_fault_message",
    "TargetInfo",
    "TargetSelector",
    "fetch_targets",
    "find_target",
    "is_available",
    "list_pages",
]
