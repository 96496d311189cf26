"""
Exception hierarchy for update checks.

Every failure a check can run into maps onto one of these classes. Callers
that only care about "did the check fail" catch CheckKitError; the check
itself recovers RegistryUnreachable and PackageNotFound into a result.
"""

from __future__ import annotations


class CheckKitError(Exception):
    """Base class for all check-kit errors."""
    pass


class InvalidInput(CheckKitError, TypeError):
    """Raised when an option has the wrong type or value."""
    pass


class PackageDescriptorError(CheckKitError):
    """Raised when package.json is missing, unreadable or malformed."""
    pass


class RegistryError(CheckKitError):
    """
    Base exception for registry lookups.

    Attributes:
        message: Human-readable error message
        url: Request URL, if one was built
        status: HTTP status code, if a response was received
    """
    def __init__(
        self,
        message: str,
        url: str | None = None,
        status: int | None = None,
    ):
        self.message = message
        self.url = url
        self.status = status
        super().__init__(message)


class RegistryUnreachable(RegistryError):
    """Raised when there is no network path to the registry."""
    pass


class RegistryTimeout(RegistryUnreachable):
    """Raised when the registry did not answer within the timeout."""
    pass


class RegistryServerError(RegistryError):
    """Raised for 5xx and any other unexpected status."""
    pass


class MalformedResponse(RegistryError):
    """Raised when the response body is not a JSON object."""
    pass


class UnknownDistTag(RegistryError):
    """Raised when the requested dist-tag is absent from the metadata."""
    pass


class PackageNotFound(RegistryError):
    """Raised when the registry answers 404 for the package."""
    pass
