"""
PDF strategy.
Uses PyMuPDF (fitz) for page text and document information.
"""

import logging
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from document_processor.base import ProcessingStrategy, supports_document, validate_for_strategy
from document_processor.config import Settings
from document_processor.document_types import DocumentType
from document_processor.exceptions import DocumentValidationError
from document_processor.models import Document, DocumentMetadata, ProcessingResult
from document_processor.statistics import PdfStatistics
from document_processor.text_analysis import analyze_text

logger = logging.getLogger(__name__)

PAGE_BREAK = "\n\n--- PAGE BREAK ---\n\n"

PASSWORD_REQUIRED_MESSAGE = "PDF requires a password for processing"
PASSWORD_PROTECTED_ERROR = "Document is password protected"

# D:YYYYMMDDHHmmSSOHH'mm' with everything after the year optional
PDF_DATE_PATTERN = re.compile(
    r"(?:D:)?(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?"
    r"(?:([Zz])|([+-])(\d{2})'?(\d{2})?'?)?"
)

CUSTOM_PROPERTY_KEYS = ("subject", "keywords", "creator", "producer")


def parse_pdf_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a PDF date string into a datetime in the local time zone."""
    if not value:
        return None
    match = PDF_DATE_PATTERN.match(value.strip())
    if not match:
        return None
    year, month, day, hour, minute, second, zulu, sign, off_h, off_m = match.groups()
    try:
        parsed = datetime(
            int(year), int(month or 1), int(day or 1),
            int(hour or 0), int(minute or 0), int(second or 0),
        )
    except ValueError:
        logger.debug(f"Ignoring malformed PDF date: {value}")
        return None

    if zulu:
        parsed = parsed.replace(tzinfo=timezone.utc)
    elif sign:
        offset = timedelta(hours=int(off_h), minutes=int(off_m or 0))
        parsed = parsed.replace(tzinfo=timezone(offset if sign == '+' else -offset))
    # naive values are taken as local time
    return parsed.astimezone()


def pdf_version(format_name: Optional[str]) -> Optional[str]:
    """'PDF 1.7' -> '1.7'."""
    if not format_name:
        return None
    return format_name.replace("PDF", "").strip() or None


class PdfProcessingStrategy(ProcessingStrategy):
    """Extract page text, document information and text statistics from PDFs."""

    name = "PDF_PROCESSING_STRATEGY"
    supported_type = DocumentType.PDF
    priority = 20

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def can_process(self, document: Document) -> bool:
        return supports_document(self.supported_type, document)

    def process(self, document: Document) -> ProcessingResult:
        import fitz  # PyMuPDF

        started = time.time()
        try:
            validate_for_strategy(self, document)
        except DocumentValidationError as e:
            return self._failure(document, "Could not process PDF document", e, started)

        try:
            doc = fitz.open(stream=document.content, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            logger.error(f"Failed to read PDF {document.name}: {e}")
            return ProcessingResult.failure(
                document.name, self.name, "Could not read the PDF document",
                [f"I/O error while reading PDF: {e}"], started=started,
            )

        try:
            if doc.needs_pass and not doc.authenticate(""):
                logger.warning(f"Cannot process password protected PDF: {document.name}")
                return ProcessingResult.failure(
                    document.name, self.name, PASSWORD_REQUIRED_MESSAGE,
                    [PASSWORD_PROTECTED_ERROR], started=started,
                )
            return self._process(document, doc, started)
        finally:
            doc.close()

    def _process(self, document: Document, doc, started: float) -> ProcessingResult:
        page_count = len(doc)
        text = PAGE_BREAK.join(page.get_text("text", sort=True) for page in doc)

        stats = analyze_text(text, PdfStatistics(total_pages=page_count))
        if stats.has_text and page_count > 0:
            stats.average_words_per_page = stats.word_count / page_count
            stats.average_characters_per_page = stats.character_count / page_count

        result = ProcessingResult(
            document_name=document.name,
            processing_strategy=self.name,
            message=f"PDF processed successfully with {page_count} pages",
        )
        if len(text) > self.settings.max_text_length:
            result.add_warning(
                f"Extracted text has {len(text)} characters, above the configured limit of "
                f"{self.settings.max_text_length}"
            )

        result.metadata = self._metadata(document, doc, stats)
        result.extracted_text = text
        result.processing_stats = stats
        result.mark_elapsed(started)

        logger.info(f"Processed PDF: {document.name} ({page_count} pages, {stats.word_count} words)")
        return result

    def _metadata(self, document: Document, doc, stats: PdfStatistics) -> DocumentMetadata:
        info: Dict[str, Any] = doc.metadata or {}
        custom = {key: info[key] for key in CUSTOM_PROPERTY_KEYS if info.get(key)}
        return DocumentMetadata(
            file_name=document.name,
            file_type=DocumentType.PDF.type_name,
            file_size_bytes=document.size,
            page_count=len(doc),
            word_count=stats.word_count,
            title=info.get("title") or None,
            author=info.get("author") or None,
            creation_date=parse_pdf_date(info.get("creationDate")),
            last_modified=parse_pdf_date(info.get("modDate")),
            is_encrypted=bool(info.get("encryption")),
            pdf_version=pdf_version(info.get("format")),
            custom_properties=custom,
        )
