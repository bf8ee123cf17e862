"""
Document Processor: strategy based extraction for CSV, Excel, PDF and Word files.

Each document type has one processing strategy; the service validates a
document, resolves its strategy through the registry and returns a
ProcessingResult with text, structured data, metadata and statistics.
"""

from document_processor.base import ProcessingStrategy, supports_document, validate_for_strategy
from document_processor.config import Settings, get_settings
from document_processor.csv_strategy import CsvProcessingStrategy
from document_processor.document_types import DocumentType
from document_processor.excel_strategy import ExcelProcessingStrategy
from document_processor.exceptions import (
    DocumentProcessingError,
    DocumentValidationError,
    ExtractionError,
    LegacyDocumentError,
    RegistryConfigurationError,
    StrategyNotFoundError,
    UnknownDocumentTypeError,
    UnsupportedDocumentTypeError,
    UnsupportedExtensionError,
)
from document_processor.models import Document, DocumentMetadata, ProcessingResult
from document_processor.pdf_strategy import PdfProcessingStrategy
from document_processor.registry import StrategyInfo, StrategyRegistry, default_strategies
from document_processor.service import DocumentProcessorService
from document_processor.word_strategy import WordProcessingStrategy

__all__ = [
    "CsvProcessingStrategy",
    "Document",
    "DocumentMetadata",
    "DocumentProcessingError",
    "DocumentProcessorService",
    "DocumentType",
    "DocumentValidationError",
    "ExcelProcessingStrategy",
    "ExtractionError",
    "LegacyDocumentError",
    "PdfProcessingStrategy",
    "ProcessingResult",
    "ProcessingStrategy",
    "RegistryConfigurationError",
    "Settings",
    "StrategyInfo",
    "StrategyNotFoundError",
    "StrategyRegistry",
    "UnknownDocumentTypeError",
    "UnsupportedDocumentTypeError",
    "UnsupportedExtensionError",
    "WordProcessingStrategy",
    "default_strategies",
    "get_settings",
    "supports_document",
    "validate_for_strategy",
]
