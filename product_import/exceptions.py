"""
Exception classes for the product importer.

Problems with the imported data itself are never raised; they are attached to
the product as errors. The exceptions here signal programming errors and
configuration problems that must stop the import.
"""

from typing import Optional


class ProductImportError(Exception):
    """Base exception for importer failures."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        self.message = message
        self.original_exception = original_exception
        super().__init__(message)


class ReferenceResolutionError(ProductImportError):
    """A reference was handed to the resolver under a key it does not know."""


class ImportConfigurationError(ProductImportError):
    """Invalid configuration value found while loading settings."""
