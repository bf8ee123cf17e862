"""
Document processor service: validates a document, picks its strategy and
runs it.
"""

import logging
import time
from typing import Any, Dict, FrozenSet, List, Optional

from document_processor.base import ProcessingStrategy
from document_processor.config import Settings
from document_processor.document_types import DocumentType
from document_processor.exceptions import (
    DocumentProcessingError,
    DocumentValidationError,
    UnsupportedDocumentTypeError,
    UnsupportedExtensionError,
)
from document_processor.models import Document, ProcessingResult
from document_processor.registry import StrategyInfo, StrategyRegistry

logger = logging.getLogger(__name__)


class DocumentProcessorService:
    """Entry point for processing documents through the strategy registry."""

    def __init__(self, registry: Optional[StrategyRegistry] = None, settings: Optional[Settings] = None):
        self.registry = registry or StrategyRegistry.default(settings)
        logger.info(
            f"Initialized {len(self.registry)} strategies for "
            f"{len(self.registry.registered_types())} document types"
        )

    def process(self, document: Optional[Document]) -> ProcessingResult:
        """Process a document with the strategy registered for its type."""
        self._validate(document)
        logger.info(f"Processing document: {document.name} ({document.size} bytes)")

        doc_type = self._classify(document)
        strategy = self.registry.resolve_by_type(doc_type)
        logger.debug(f"Using strategy {strategy.name} for {document.name}")
        return self._run(strategy, document)

    def process_with_strategy(self, document: Optional[Document], strategy_name: str) -> ProcessingResult:
        """Process a document with a strategy chosen by name."""
        self._validate(document)
        logger.info(f"Processing document: {document.name} with strategy {strategy_name}")

        strategy = self.registry.resolve_by_name(strategy_name)
        return self._run(strategy, document)

    def _validate(self, document: Optional[Document]) -> None:
        if document is None:
            raise DocumentValidationError("Document cannot be null")
        errors = []
        if not document.name or not document.name.strip():
            errors.append("Document name cannot be null or empty")
        if not document.content:
            errors.append("Document content cannot be null or empty")
        if errors:
            raise DocumentValidationError(errors, document_name=document.name or None)
        if document.size is None:
            document.size = len(document.content)

    def _classify(self, document: Document) -> DocumentType:
        extension = document.file_extension
        try:
            return DocumentType.from_extension(extension)
        except UnsupportedExtensionError as e:
            logger.error(f"Document type not supported: {document.name}")
            raise UnsupportedDocumentTypeError(
                extension, DocumentType.all_extensions(), document_name=document.name,
            ) from e

    def _run(self, strategy: ProcessingStrategy, document: Document) -> ProcessingResult:
        if not strategy.can_process(document):
            raise DocumentProcessingError(
                f"Strategy {strategy.name} cannot process document {document.name} "
                f"of type {document.determine_type_from_extension()}",
                document_name=document.name,
                strategy_name=strategy.name,
            )

        started = time.time()
        try:
            result = strategy.process(document)
        except DocumentProcessingError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error processing document: {document.name}")
            raise DocumentProcessingError(
                f"Unexpected error during document processing: {e}",
                document_name=document.name,
                strategy_name=strategy.name,
            ) from e

        if result.processing_time_ms is None:
            result.mark_elapsed(started)

        if result.success:
            logger.info(
                f"Processed {document.name} with {strategy.name} in {result.processing_time_ms} ms"
            )
        else:
            logger.warning(f"Failed to process {document.name} with {strategy.name}: {result.errors}")
        return result

    # Introspection

    def list_strategies(self) -> List[StrategyInfo]:
        return self.registry.list_all()

    def supported_extensions(self) -> FrozenSet[str]:
        return DocumentType.all_extensions()

    def is_extension_supported(self, extension: Optional[str]) -> bool:
        try:
            DocumentType.from_extension(extension)
            return True
        except UnsupportedExtensionError:
            return False

    def is_document_type_supported(self, doc_type: DocumentType) -> bool:
        return doc_type in self.registry.registered_types()

    def strategies_info(self) -> Dict[str, Any]:
        strategies = []
        for strategy in self.registry.resolved_by_name():
            details = StrategyInfo.of(strategy).to_dict()
            details["class_name"] = type(strategy).__name__
            strategies.append(details)
        return {
            "total_strategies": len(self.registry),
            "supported_document_types": [t.type_name for t in self.registry.registered_types()],
            "strategies": strategies,
        }

    def processing_statistics(self) -> Dict[str, Any]:
        return {
            "configured_strategies": len(self.registry),
            "supported_document_types": len(self.registry.registered_types()),
            "strategy_priorities": {s.name: s.priority for s in self.registry.resolved_by_name()},
        }
