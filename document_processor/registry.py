"""
Strategy Registry: routes a document type or strategy name to its strategy.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional

from document_processor.base import ProcessingStrategy
from document_processor.config import Settings
from document_processor.csv_strategy import CsvProcessingStrategy
from document_processor.document_types import DocumentType
from document_processor.excel_strategy import ExcelProcessingStrategy
from document_processor.exceptions import RegistryConfigurationError, StrategyNotFoundError
from document_processor.pdf_strategy import PdfProcessingStrategy
from document_processor.word_strategy import WordProcessingStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyInfo:
    name: str
    supported_type: str
    supported_extensions: FrozenSet[str]
    priority: int

    @classmethod
    def of(cls, strategy: ProcessingStrategy) -> "StrategyInfo":
        return cls(
            name=strategy.name,
            supported_type=strategy.supported_type.type_name,
            supported_extensions=strategy.supported_type.supported_extensions,
            priority=strategy.priority,
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "supported_type": self.supported_type,
            "supported_extensions": sorted(self.supported_extensions),
            "priority": self.priority,
        }


def default_strategies(settings: Optional[Settings] = None) -> List[ProcessingStrategy]:
    """The built-in strategies, one per document type."""
    return [
        CsvProcessingStrategy(settings),
        ExcelProcessingStrategy(settings),
        PdfProcessingStrategy(settings),
        WordProcessingStrategy(settings),
    ]


class StrategyRegistry:
    """Immutable type and name indexes built once from an explicit strategy list.

    For each document type the strategy with the lowest priority value wins;
    the first one seen wins ties. Every DocumentType must be covered.
    """

    def __init__(self, strategies: Iterable[ProcessingStrategy]):
        self._strategies = list(strategies)
        self._by_type: Dict[DocumentType, ProcessingStrategy] = {}
        self._by_name: Dict[str, ProcessingStrategy] = {}

        for strategy in self._strategies:
            current = self._by_type.get(strategy.supported_type)
            if current is None or strategy.priority < current.priority:
                self._by_type[strategy.supported_type] = strategy

            known = self._by_name.get(strategy.name)
            if known is None:
                self._by_name[strategy.name] = strategy
            else:
                logger.warning(
                    f"Duplicate strategy name {strategy.name} "
                    f"(priorities {known.priority} and {strategy.priority})"
                )
                if strategy.priority <= known.priority:
                    self._by_name[strategy.name] = strategy

        missing = [t.type_name for t in DocumentType if t not in self._by_type]
        if missing:
            raise RegistryConfigurationError(
                f"No processing strategy configured for document types: {', '.join(missing)}"
            )

        for doc_type, strategy in self._by_type.items():
            logger.info(f"Mapped {doc_type.type_name} to {strategy.name} (priority {strategy.priority})")

    @classmethod
    def default(cls, settings: Optional[Settings] = None) -> "StrategyRegistry":
        return cls(default_strategies(settings))

    def resolve_by_type(self, doc_type: DocumentType) -> ProcessingStrategy:
        strategy = self._by_type.get(doc_type)
        if strategy is None:
            raise StrategyNotFoundError(doc_type.type_name, self.strategy_names())
        return strategy

    def resolve_by_name(self, name: str) -> ProcessingStrategy:
        strategy = self._by_name.get(name)
        if strategy is None:
            raise StrategyNotFoundError(name, self.strategy_names())
        return strategy

    def list_all(self) -> List[StrategyInfo]:
        """Every registered strategy, ascending by priority."""
        return [StrategyInfo.of(s) for s in sorted(self._strategies, key=lambda s: s.priority)]

    def resolved_by_name(self) -> List[ProcessingStrategy]:
        """The strategy each name resolves to, ascending by priority."""
        return sorted(self._by_name.values(), key=lambda s: s.priority)

    def strategy_names(self) -> List[str]:
        return sorted(self._by_name)

    def registered_types(self) -> List[DocumentType]:
        return [t for t in DocumentType if t in self._by_type]

    def __len__(self) -> int:
        return len(self._strategies)
