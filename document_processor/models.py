"""
Core data containers: the incoming Document, its extracted metadata and the
ProcessingResult returned for every request.
"""

import time
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

from document_processor.document_types import DocumentType
from document_processor.exceptions import UnsupportedExtensionError
from document_processor.statistics import StatisticsRecord, serialize_value


@dataclass
class Document:
    """An uploaded document. Owned by the caller."""

    name: str
    content: bytes
    size: Optional[int] = None
    type: Optional[str] = None
    upload_time: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.type is None:
            self.type = self.determine_type_from_extension()

    @property
    def file_extension(self) -> str:
        """Lowercased text after the last dot, empty when there is none."""
        if not self.name or '.' not in self.name:
            return ""
        return self.name.rsplit('.', 1)[1].lower()

    def determine_type_from_extension(self) -> str:
        try:
            return DocumentType.from_extension(self.file_extension).type_name
        except UnsupportedExtensionError:
            return "UNKNOWN"


@dataclass
class DocumentMetadata:
    """Descriptive metadata; type-specific fields stay None when not relevant."""

    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_size_bytes: Optional[int] = None
    page_count: Optional[int] = None
    word_count: Optional[int] = None
    author: Optional[str] = None
    title: Optional[str] = None
    creation_date: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    encoding: Optional[str] = None
    custom_properties: Dict[str, Any] = field(default_factory=dict)

    # Spreadsheet
    sheet_count: Optional[int] = None
    row_count: Optional[int] = None
    column_count: Optional[int] = None

    # CSV
    delimiter: Optional[str] = None
    has_headers: Optional[bool] = None

    # PDF
    is_encrypted: Optional[bool] = None
    pdf_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or (f.name == "custom_properties" and not value):
                continue
            data[f.name] = serialize_value(value)
        return data


@dataclass
class ProcessingResult:
    """
    Outcome of processing one document.

    success is derived from errors, so adding an error always marks the
    result as failed and warnings never change it.
    """

    document_name: str
    processing_strategy: Optional[str] = None
    message: str = ""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    processed_at: datetime = field(default_factory=datetime.now)
    processing_time_ms: Optional[int] = None
    metadata: Optional[DocumentMetadata] = None
    extracted_text: Optional[str] = None
    extracted_data: Optional[List[Dict[str, Any]]] = None
    processing_stats: Optional[StatisticsRecord] = None

    @property
    def success(self) -> bool:
        return not self.errors

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def mark_elapsed(self, started: float) -> None:
        """Record wall-clock time since `started` (a time.time() value)."""
        self.processing_time_ms = int((time.time() - started) * 1000)

    @classmethod
    def failure(cls, document_name: str, strategy_name: Optional[str], message: str,
                errors: List[str], started: Optional[float] = None) -> "ProcessingResult":
        """Build a non-fatal failed result. At least one error is required."""
        if not errors:
            raise ValueError("A failed result needs at least one error")
        result = cls(document_name=document_name, processing_strategy=strategy_name,
                     message=message, errors=list(errors))
        if started is not None:
            result.mark_elapsed(started)
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "document_name": self.document_name,
            "processing_strategy": self.processing_strategy,
            "success": self.success,
            "message": self.message,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "processed_at": self.processed_at,
            "processing_time_ms": self.processing_time_ms,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "extracted_text": self.extracted_text,
            "extracted_data": serialize_value(self.extracted_data),
            "processing_stats": self.processing_stats.to_dict() if self.processing_stats else None,
        }
