"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from replydesk.core.exceptions import (
    ApplicationException,
    RepositoryException,
    ValidationException,
    DocumentTooLargeException,
    ResourceNotFoundException,
    ConfigurationException,
    IngestionException,
    ExternalServiceException,
    LLMException,
    GenerationException,
    VectorStoreException,
    HelpdeskException,
    StorefrontException,
)

__all__ = [
    "ApplicationException",
    "RepositoryException",
    "ValidationException",
    "DocumentTooLargeException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "IngestionException",
    "ExternalServiceException",
    "LLMException",
    "GenerationException",
    "VectorStoreException",
    "HelpdeskException",
    "StorefrontException",
]
