"""
Extractor Errors - Exception Hierarchy

Every failure raised by the extraction engine derives from ExtractorError.
The hierarchy mirrors how failures are handled:

- TransientRemoteError: network, timeout and 5xx/408/429 responses, retried
- RemoteRequestError: non-retriable HTTP status, fails immediately
- ResponseParseError: malformed body or pagination fields, never retried
- ConfigurationError: unknown category, tenant not found, never retried

Usage:
    from utils.errors import TransientRemoteError

    raise TransientRemoteError("Gateway timeout", status_code=504)
"""


class ExtractorError(Exception):
    """Base class for all extraction engine errors."""


class RemoteError(ExtractorError):
    """Failure talking to the remote analytics API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientRemoteError(RemoteError):
    """Remote failure that may succeed on a later attempt."""


class RemoteRequestError(RemoteError):
    """Remote rejected the request; retrying would not help."""


class ResponseParseError(ExtractorError):
    """Response body could not be decoded into an envelope."""


class ConfigurationError(ExtractorError):
    """Invalid configuration or argument supplied by the caller."""


class TenantNotFoundError(ConfigurationError):
    """No tenant exists with the requested identifier."""

    def __init__(self, tenant_id: str) -> None:
        super().__init__(f"Tenant not found: {tenant_id}")
        self.tenant_id = tenant_id


class ExtractionInProgressError(ExtractorError):
    """An extraction for the tenant is already running."""

    def __init__(self, tenant_id: str) -> None:
        super().__init__(f"Extraction already in progress for tenant: {tenant_id}")
        self.tenant_id = tenant_id
