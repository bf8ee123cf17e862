"""
Strategy contract shared by every document type, plus the module-level
validation helpers each strategy calls.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from document_processor.document_types import DocumentType
from document_processor.exceptions import DocumentValidationError, UnsupportedExtensionError
from document_processor.models import Document, ProcessingResult

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100


def supports_document(supported_type: DocumentType, document: Optional[Document]) -> bool:
    """True when the document has content and its extension maps to supported_type."""
    if document is None or not document.content:
        return False
    try:
        return DocumentType.from_extension(document.file_extension) is supported_type
    except UnsupportedExtensionError:
        return False


def validate_for_strategy(strategy: "ProcessingStrategy", document: Optional[Document]) -> None:
    """Raise DocumentValidationError unless the strategy can take this document."""
    if document is None:
        raise DocumentValidationError("Document cannot be null")
    if not document.content:
        raise DocumentValidationError("Document content cannot be null or empty",
                                      document_name=document.name)
    if not document.name or not document.name.strip():
        raise DocumentValidationError("Document name cannot be null or empty")
    if not strategy.can_process(document):
        raise DocumentValidationError(
            f"Document type '{document.determine_type_from_extension()}' is not "
            f"compatible with strategy '{strategy.name}'",
            document_name=document.name,
        )


class ProcessingStrategy(ABC):
    """One extraction procedure for one document type."""

    name: str = ""
    supported_type: DocumentType
    priority: int = DEFAULT_PRIORITY

    @abstractmethod
    def can_process(self, document: Document) -> bool:
        pass

    @abstractmethod
    def process(self, document: Document) -> ProcessingResult:
        pass

    def _failure(self, document: Optional[Document], message: str, error: Exception,
                 started: float) -> ProcessingResult:
        """Failed result for a problem found inside this strategy."""
        name = document.name if document is not None else None
        logger.error(f"{self.name} failed for {name}: {error}")
        return ProcessingResult.failure(name, self.name, message,
                                        [f"Processing error: {error}"], started=started)

    def _detect_encoding(self, file_bytes: bytes) -> str:
        """Detect encoding using charset-normalizer."""
        from charset_normalizer import from_bytes
        result = from_bytes(file_bytes).best()
        return result.encoding if result else 'utf-8'

    def _decode_bytes(self, file_bytes: bytes) -> Tuple[str, str, bool]:
        """
        Decode as UTF-8, falling back to a detected encoding.

        Returns (text, encoding label, whether the fallback was used).
        """
        try:
            return file_bytes.decode('utf-8-sig'), "UTF-8", False
        except UnicodeDecodeError:
            pass
        encoding = self._detect_encoding(file_bytes)
        logger.warning(f"Content is not valid UTF-8, decoding as {encoding}")
        try:
            return file_bytes.decode(encoding), encoding, True
        except (UnicodeDecodeError, LookupError):
            return file_bytes.decode('utf-8', errors='replace'), "UTF-8", True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"
