"""Exception hierarchy for cogload."""

from __future__ import annotations

from urllib.parse import urlparse

from cogload.protocols import SUPPORTED_SCHEMES


class CogloadError(Exception):
    """Base class for all cogload errors."""


class UnsupportedResourceError(CogloadError):
    """Raised when a recomputation is requested for a resource outside http/https/file."""

    def __init__(self, resource: str) -> None:
        self.resource = resource
        super().__init__(f"Unsupported resource: {resource or '(none)'}")


class StoreError(CogloadError):
    """Raised when a read or write against the shared store fails."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"Store {operation} failed: {message}")


def is_supported_resource(resource: str | None) -> bool:
    """Return True if the resource uses one of the http, https or file schemes."""
    if not resource:
        return False
    return urlparse(resource).scheme.lower() in SUPPORTED_SCHEMES


def ensure_supported_resource(resource: str | None) -> str:
    """Return the resource unchanged or raise ``UnsupportedResourceError``."""
    if not is_supported_resource(resource):
        raise UnsupportedResourceError(resource or "")
    return resource  # type: ignore[return-value]
