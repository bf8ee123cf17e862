"""
Static table of supported document types.
"""

from enum import Enum
from typing import FrozenSet, Optional

from document_processor.exceptions import UnknownDocumentTypeError, UnsupportedExtensionError


def normalize_extension(extension: Optional[str]) -> str:
    """Lowercase, trim and drop one leading dot."""
    if extension is None:
        return ""
    clean = extension.strip().lower()
    if clean.startswith('.'):
        clean = clean[1:]
    return clean


class DocumentType(Enum):
    """Document types with their accepted extensions and MIME type."""

    PDF = ("PDF", frozenset({"pdf"}), "application/pdf")
    EXCEL = ("EXCEL", frozenset({"xlsx", "xls"}),
             "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    WORD = ("WORD", frozenset({"docx", "doc"}),
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document")
    CSV = ("CSV", frozenset({"csv"}), "text/csv")

    def __init__(self, type_name: str, extensions: FrozenSet[str], mime_type: str):
        self.type_name = type_name
        self.supported_extensions = extensions
        self.mime_type = mime_type

    @classmethod
    def from_extension(cls, extension: Optional[str]) -> "DocumentType":
        clean = normalize_extension(extension)
        if not clean:
            raise UnsupportedExtensionError("Extension cannot be null or empty")
        for doc_type in cls:
            if clean in doc_type.supported_extensions:
                return doc_type
        raise UnsupportedExtensionError(f"Unsupported file extension: {extension}")

    @classmethod
    def from_type_name(cls, type_name: Optional[str]) -> "DocumentType":
        if type_name is None or not type_name.strip():
            raise UnknownDocumentTypeError("Type name cannot be null or empty")
        wanted = type_name.strip().upper()
        for doc_type in cls:
            if doc_type.type_name == wanted:
                return doc_type
        raise UnknownDocumentTypeError(f"Unknown document type: {type_name}")

    @classmethod
    def all_extensions(cls) -> FrozenSet[str]:
        extensions = set()
        for doc_type in cls:
            extensions |= doc_type.supported_extensions
        return frozenset(extensions)

    def supports_extension(self, extension: Optional[str]) -> bool:
        if extension is None:
            return False
        return normalize_extension(extension) in self.supported_extensions
