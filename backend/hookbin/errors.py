"""
Error taxonomy for the capture pipeline.

Every error a client can observe is a ``HookbinError`` carrying the HTTP
status and the machine-readable code rendered as ``{"error": code}``.
"""
from typing import Optional


class HookbinError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)


class NamespaceNotFound(HookbinError):
    status_code = 404
    code = "namespace_not_found"

    def __init__(self, namespace: str):
        super().__init__(f"Unknown namespace: {namespace!r}")
        self.namespace = namespace


class NamespaceUnavailable(HookbinError):
    """Namespace is configured but its durable log failed to load."""
    status_code = 503
    code = "namespace_unavailable"

    def __init__(self, namespace: str):
        super().__init__(f"Namespace {namespace!r} is quarantined")
        self.namespace = namespace


class BodyTooLarge(HookbinError):
    status_code = 413
    code = "body_too_large"

    def __init__(self, limit: int):
        super().__init__(f"Request body exceeds {limit} bytes")
        self.limit = limit


class DurableWriteFailure(HookbinError):
    status_code = 500
    code = "durable_write_failed"

    def __init__(self, namespace: str, cause: Exception):
        super().__init__(f"Could not append to log for {namespace!r}: {cause}")
        self.namespace = namespace


class CorruptLog(Exception):
    """A complete line of a durable log could not be decoded."""

    def __init__(self, path: str, line_number: int, reason: str):
        super().__init__(f"{path}:{line_number}: {reason}")
        self.path = path
        self.line_number = line_number
