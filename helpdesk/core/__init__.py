"""
Core Module
============

Framework-free pieces shared by every bounded context; currently the
exception hierarchy.
"""

from helpdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    AIDisabledException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
    GenerationException,
    GENERATION_FAILED_MESSAGE,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "AIDisabledException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "GenerationException",
    "GENERATION_FAILED_MESSAGE",
]
