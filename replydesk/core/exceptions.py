"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    status_code = 400


class DocumentTooLargeException(ValidationException):
    """Document content exceeds the ingestion size limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"Document too large. Maximum size is {limit // 1000}KB.",
            {"size": size, "limit": limit}
        )


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    status_code = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class IngestionException(ApplicationException):
    """Document could not be indexed; any partial state has been rolled back."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for LLM API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class GenerationException(ExternalServiceException):
    """The generation model failed to draft a reply."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.service_name = "LLM Service"
        ApplicationException.__init__(self, f"Generation failed: {message}", details)


class VectorStoreException(ExternalServiceException):
    """Exception for vector store failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Vector Store", message, details)


class HelpdeskException(ExternalServiceException):
    """Exception for helpdesk (Freshdesk) API failures."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None
    ):
        self.http_status = status_code
        super().__init__("Helpdesk", message, details)


class StorefrontException(ExternalServiceException):
    """Exception for storefront (Shopify) API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Storefront", message, details)
