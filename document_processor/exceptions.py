"""
Exception hierarchy for document processing.

Caller-input problems (validation, unsupported types, unknown strategies) are
raised. Format problems found inside a strategy are raised as ExtractionError
and turned into a failed ProcessingResult before they leave the strategy.
"""

from typing import Iterable, List, Optional


class DocumentProcessingError(Exception):
    """Base error for anything that goes wrong while processing a document."""

    default_code = "PROCESSING_ERROR"

    def __init__(
        self,
        message: str,
        document_name: Optional[str] = None,
        strategy_name: Optional[str] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.reason = message
        self.document_name = document_name
        self.strategy_name = strategy_name
        self.error_code = error_code or self.default_code

    def __str__(self) -> str:
        parts = []
        if self.document_name is not None:
            parts.append(f"Document '{self.document_name}': ")
        if self.strategy_name is not None:
            parts.append(f"[{self.strategy_name}] ")
        parts.append(self.reason)
        if self.error_code != DocumentProcessingError.default_code:
            parts.append(f" (Error Code: {self.error_code})")
        return "".join(parts)


class DocumentValidationError(DocumentProcessingError):
    """Raised before dispatch when a document is missing required data."""

    default_code = "VALIDATION_ERROR"

    def __init__(self, errors, document_name: Optional[str] = None):
        if isinstance(errors, str):
            errors = [errors]
        self.validation_errors: List[str] = list(errors)
        if len(self.validation_errors) == 1:
            message = self.validation_errors[0]
        else:
            message = "Document validation failed: " + ", ".join(self.validation_errors)
        super().__init__(message, document_name=document_name)

    def add_validation_error(self, error: str) -> None:
        self.validation_errors.append(error)


class UnsupportedDocumentTypeError(DocumentProcessingError):
    """Raised when a file extension does not map to any known document type."""

    default_code = "UNSUPPORTED_DOCUMENT_TYPE"

    def __init__(self, extension: str, supported_extensions: Iterable[str],
                 document_name: Optional[str] = None):
        self.extension = extension
        self.supported_extensions = frozenset(supported_extensions)
        message = (
            f"Unsupported document type '{extension}'. "
            f"Supported types are: {', '.join(sorted(self.supported_extensions))}"
        )
        super().__init__(message, document_name=document_name)


class StrategyNotFoundError(DocumentProcessingError):
    """Raised when no strategy is registered for a type or name."""

    default_code = "STRATEGY_NOT_FOUND"

    def __init__(self, requested: str, available: Iterable[str] = (),
                 document_name: Optional[str] = None):
        self.requested = requested
        self.available = sorted(available)
        message = f"No processing strategy found for: {requested}"
        if self.available:
            message += f". Available strategies: {', '.join(self.available)}"
        super().__init__(message, document_name=document_name)


class ExtractionError(DocumentProcessingError):
    """Expected format problem inside a strategy (corrupt file, bad sub-format)."""

    default_code = "EXTRACTION_ERROR"


class UnsupportedExtensionError(ValueError):
    """The extension is blank or not part of any DocumentType."""


class UnknownDocumentTypeError(ValueError):
    """The type tag does not name a DocumentType."""


class RegistryConfigurationError(RuntimeError):
    """The strategy registry was built from an incomplete strategy list."""


class LegacyDocumentError(ValueError):
    """The bytes are not a readable Word 97-2003 binary document."""
