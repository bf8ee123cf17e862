"""
Word strategy.
DOCX through python-docx (body, tables, headers/footers, core and extended
properties); legacy DOC through the olefile based reader in legacy_doc.
"""

import io
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from document_processor.base import ProcessingStrategy, supports_document, validate_for_strategy
from document_processor.config import Settings
from document_processor.document_types import DocumentType
from document_processor.exceptions import DocumentValidationError, ExtractionError, LegacyDocumentError
from document_processor.legacy_doc import LegacyWordDocument
from document_processor.models import Document, DocumentMetadata, ProcessingResult
from document_processor.statistics import FormattingSummary, TableSummary, WordStatistics
from document_processor.text_analysis import analyze_text

logger = logging.getLogger(__name__)

APP_PROPERTIES_PART = '/docProps/app.xml'
EXTENDED_PROPERTIES_NS = 'http://schemas.openxmlformats.org/officeDocument/2006/extended-properties'

# app.xml element -> (custom property key, is numeric)
EXTENDED_PROPERTIES = [
    ('Application', 'application', False),
    ('Company', 'company', False),
    ('TotalTime', 'total_time', True),
    ('Pages', 'pages', True),
    ('Words', 'words', True),
    ('Characters', 'characters', True),
    ('CharactersWithSpaces', 'characters_with_spaces', True),
    ('Paragraphs', 'paragraphs', True),
    ('Lines', 'lines', True),
]


def _local_time(value: Optional[datetime]) -> Optional[datetime]:
    """Core properties carry naive UTC datetimes."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone()


class WordProcessingStrategy(ProcessingStrategy):
    """Extract text, structure and properties from DOCX and DOC files."""

    name = "WORD_PROCESSING_STRATEGY"
    supported_type = DocumentType.WORD
    priority = 25

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def can_process(self, document: Document) -> bool:
        return supports_document(self.supported_type, document)

    def process(self, document: Document) -> ProcessingResult:
        started = time.time()
        try:
            validate_for_strategy(self, document)
        except DocumentValidationError as e:
            return self._failure(document, "Failed to process Word document", e, started)

        extension = document.file_extension
        try:
            if extension == "docx":
                result = self._process_docx(document)
            elif extension == "doc":
                result = self._process_doc(document)
            else:
                return ProcessingResult.failure(
                    document.name, self.name, f"Unsupported Word document format: {extension}",
                    ["Only .doc and .docx formats are supported"], started=started,
                )
        except ExtractionError as e:
            return self._failure(document, f"Failed to process {extension.upper()} document", e, started)

        if result.extracted_text and len(result.extracted_text) > self.settings.max_text_length:
            result.add_warning(
                f"Extracted text has {len(result.extracted_text)} characters, above the "
                f"configured limit of {self.settings.max_text_length}"
            )
        result.mark_elapsed(started)
        return result

    # DOCX

    def _process_docx(self, document: Document) -> ProcessingResult:
        from docx import Document as DocxDocument

        try:
            doc = DocxDocument(io.BytesIO(document.content))
        except Exception as e:
            raise ExtractionError(f"Unreadable DOCX package: {e}") from e

        text = self._docx_text(doc)
        tables = [self._table_data(table) for table in doc.tables]
        headers, footers = self._headers_footers(doc)
        content = {
            "paragraphs": self._docx_paragraphs(doc),
            "tables": tables,
            "headers": headers,
            "footers": footers,
        }

        stats = analyze_text(text, WordStatistics(
            sub_format="docx",
            document_paragraph_count=len(doc.paragraphs),
            table_count=len(doc.tables),
            header_count=len(headers),
            footer_count=len(footers),
            section_count=len(doc.sections),
        ))
        stats.formatting = self._formatting(doc)
        stats.table_statistics = self._table_summary(tables)

        core = doc.core_properties
        metadata = DocumentMetadata(
            file_name=document.name,
            file_type=DocumentType.WORD.type_name,
            file_size_bytes=document.size,
            word_count=stats.word_count,
            title=core.title or None,
            author=core.author or None,
            creation_date=_local_time(core.created),
            last_modified=_local_time(core.modified),
            custom_properties=self._extended_properties(doc),
        )

        logger.info(
            f"Processed DOCX: {document.name} "
            f"({len(doc.paragraphs)} paragraphs, {len(tables)} tables)"
        )
        return ProcessingResult(
            document_name=document.name,
            processing_strategy=self.name,
            message=(f"Successfully processed DOCX with {len(doc.paragraphs)} paragraphs "
                     f"and {len(doc.tables)} tables"),
            metadata=metadata,
            extracted_text=text,
            extracted_data=[content],
            processing_stats=stats,
        )

    def _docx_text(self, doc) -> str:
        """Body paragraphs and tables in document order."""
        from docx.table import Table

        blocks = []
        for block in doc.iter_inner_content():
            if isinstance(block, Table):
                blocks.extend('\t'.join(cell.text for cell in row.cells) for row in block.rows)
            else:
                blocks.append(block.text)
        return '\n'.join(blocks)

    def _docx_paragraphs(self, doc) -> List[Dict[str, Any]]:
        paragraphs = []
        for para in doc.paragraphs:
            if not para.text.strip():
                continue
            paragraphs.append({
                "text": para.text,
                "style": para.style.name if para.style is not None else None,
                "alignment": para.alignment.name if para.alignment is not None else None,
                "runs": [
                    {
                        "text": run.text,
                        "is_bold": bool(run.bold),
                        "is_italic": bool(run.italic),
                        "font_size": run.font.size.pt if run.font.size is not None else None,
                        "font_family": run.font.name,
                    }
                    for run in para.runs
                ],
            })
        return paragraphs

    def _table_data(self, table) -> Dict[str, Any]:
        rows = [[cell.text for cell in row.cells] for row in table.rows]
        return {
            "rows": rows,
            "row_count": len(rows),
            "column_count": len(rows[0]) if rows else 0,
        }

    def _headers_footers(self, doc) -> Tuple[List[str], List[str]]:
        """Text of every header/footer a section defines itself."""
        headers, footers = [], []
        for section in doc.sections:
            for part, target in (
                (section.header, headers),
                (section.first_page_header, headers),
                (section.even_page_header, headers),
                (section.footer, footers),
                (section.first_page_footer, footers),
                (section.even_page_footer, footers),
            ):
                if part.is_linked_to_previous:
                    continue
                target.append('\n'.join(p.text for p in part.paragraphs))
        return headers, footers

    def _formatting(self, doc) -> FormattingSummary:
        summary = FormattingSummary()
        families = set()
        sizes = set()
        for para in doc.paragraphs:
            for run in para.runs:
                summary.total_runs += 1
                if run.bold:
                    summary.bold_runs += 1
                if run.italic:
                    summary.italic_runs += 1
                if run.font.name:
                    families.add(run.font.name)
                if run.font.size is not None and run.font.size.pt > 0:
                    sizes.add(run.font.size.pt)
        summary.font_families_used = sorted(families)
        summary.font_sizes_used = sorted(sizes)
        return summary

    def _table_summary(self, tables: List[Dict[str, Any]]) -> TableSummary:
        if not tables:
            return TableSummary(total_tables=0)
        total_rows = sum(t["row_count"] for t in tables)
        return TableSummary(
            total_tables=len(tables),
            total_rows=total_rows,
            max_columns=max(t["column_count"] for t in tables),
            average_rows_per_table=total_rows / len(tables),
        )

    def _extended_properties(self, doc) -> Dict[str, Any]:
        """Read docProps/app.xml if the package has one."""
        from lxml import etree

        for part in doc.part.package.iter_parts():
            if str(part.partname) != APP_PROPERTIES_PART:
                continue
            try:
                root = etree.fromstring(part.blob)
            except etree.XMLSyntaxError as e:
                logger.warning(f"Ignoring malformed extended properties: {e}")
                return {}
            properties = {}
            for tag, key, numeric in EXTENDED_PROPERTIES:
                element = root.find(f'{{{EXTENDED_PROPERTIES_NS}}}{tag}')
                if element is None or element.text is None:
                    continue
                value = element.text.strip()
                if numeric:
                    try:
                        properties[key] = int(value)
                    except ValueError:
                        continue
                else:
                    properties[key] = value
            return properties
        return {}

    # DOC

    def _process_doc(self, document: Document) -> ProcessingResult:
        try:
            with LegacyWordDocument(document.content) as legacy:
                text = legacy.text
                paragraphs = legacy.paragraphs
                section_count = legacy.section_count
                summary = legacy.summary()
        except LegacyDocumentError as e:
            raise ExtractionError(str(e)) from e

        content = {
            "paragraphs": [
                {"text": p.text.strip(), "justification": p.justification}
                for p in paragraphs if p.text.strip()
            ],
            "tables": [],
            "headers": [],
            "footers": [],
        }
        stats = analyze_text(text, WordStatistics(
            sub_format="doc",
            document_paragraph_count=len(paragraphs),
            section_count=section_count,
        ))

        counts = {key: summary[key] for key in ("word_count", "char_count", "page_count")
                  if summary[key] is not None}
        metadata = DocumentMetadata(
            file_name=document.name,
            file_type=DocumentType.WORD.type_name,
            file_size_bytes=document.size,
            word_count=stats.word_count,
            title=summary["title"],
            author=summary["author"],
            creation_date=summary["created"],
            last_modified=summary["last_saved"],
            custom_properties=counts,
        )

        logger.info(f"Processed DOC: {document.name} ({len(paragraphs)} paragraphs)")
        return ProcessingResult(
            document_name=document.name,
            processing_strategy=self.name,
            message="Successfully processed DOC document",
            metadata=metadata,
            extracted_text=text,
            extracted_data=[content],
            processing_stats=stats,
        )
