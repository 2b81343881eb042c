"""
Core Exceptions
================

Error hierarchy shared by every layer of the helpdesk service.

Services raise these; the API layer maps them to HTTP status codes in
one place (shared.api.middleware), so handlers never build error
responses themselves.
"""

from typing import Optional


GENERATION_FAILED_MESSAGE = "Failed to generate AI response. Please try again later."


class ApplicationException(Exception):
    """Root of the hierarchy. `details` is logged, never returned to clients."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """A business rule refused the operation."""


class RepositoryException(ApplicationException):
    """Persistence layer failure."""


class ValidationException(ApplicationException):
    """Caller input rejected before any work was done."""


class AIDisabledException(DomainException):
    """The assistant has been switched off by an administrator."""

    def __init__(self, details: Optional[dict] = None):
        super().__init__("AI assistant is currently disabled", details)


class ResourceNotFoundException(ApplicationException):

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        suffix = f" with id '{resource_id}'" if resource_id else ""
        super().__init__(f"{resource_type}{suffix} not found", details)


class ConfigurationException(ApplicationException):
    """Missing or invalid settings (API keys, provider names)."""


class ExternalServiceException(ApplicationException):
    """A third-party dependency failed; the message is prefixed with its name."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Provider call failed (network, auth, quota, malformed reply)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class GenerationException(ExternalServiceException):
    """
    Opaque failure of the response generation step.

    The message is always safe to show to end users; the underlying
    cause is logged where the failure is caught and never carried here.
    """

    def __init__(self, details: Optional[dict] = None):
        super().__init__("LLM Service", GENERATION_FAILED_MESSAGE, details)
        # Drop the service prefix so the text can go straight to clients
        self.message = GENERATION_FAILED_MESSAGE
