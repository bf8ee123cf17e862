"""
CSV strategy: delimiter sniffing, header detection and typed row dictionaries.
"""

import csv
import io
import logging
import re
import time
from typing import Any, Dict, List, Optional

from document_processor.base import ProcessingStrategy, supports_document, validate_for_strategy
from document_processor.config import Settings
from document_processor.document_types import DocumentType
from document_processor.exceptions import DocumentValidationError, ExtractionError
from document_processor.models import Document, DocumentMetadata, ProcessingResult
from document_processor.statistics import ColumnStatistics, CsvStatistics

logger = logging.getLogger(__name__)

# Checked in order; a later delimiter only wins with a strictly higher count.
CANDIDATE_DELIMITERS = [',', ';', '\t', '|']

INTEGER_PATTERN = re.compile(r'[+-]?\d+')
NUMBER_PATTERN = re.compile(r'[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')


def is_numeric(value: Optional[str]) -> bool:
    if value is None:
        return False
    return NUMBER_PATTERN.fullmatch(value.strip()) is not None


def detect_delimiter(text: str) -> str:
    """Most frequent candidate in the first line; comma on ties or no matches."""
    first_line = text.split('\n', 1)[0]
    best, best_count = ',', first_line.count(',')
    for delimiter in CANDIDATE_DELIMITERS[1:]:
        count = first_line.count(delimiter)
        if count > best_count:
            best, best_count = delimiter, count
    return best


def detect_headers(rows: List[List[str]]) -> bool:
    """A header exists unless some column is numeric in both of the first two rows."""
    if len(rows) < 2:
        return False
    first, second = rows[0], rows[1]
    for left, right in zip(first, second):
        if is_numeric(left) and is_numeric(right):
            return False
    return True


def convert_value(value: Optional[str]) -> Any:
    """Blank -> None, then int, float, bool, else the trimmed string."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    if INTEGER_PATTERN.fullmatch(value):
        return int(value)
    if NUMBER_PATTERN.fullmatch(value):
        return float(value)
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def default_headers(column_count: int) -> List[str]:
    return [f"Column_{i}" for i in range(1, column_count + 1)]


class CsvProcessingStrategy(ProcessingStrategy):
    """Turn delimited text into a list of ordered row dictionaries."""

    name = "CSV_PROCESSING_STRATEGY"
    supported_type = DocumentType.CSV
    priority = 10

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def can_process(self, document: Document) -> bool:
        return supports_document(self.supported_type, document)

    def process(self, document: Document) -> ProcessingResult:
        started = time.time()
        try:
            validate_for_strategy(self, document)
            return self._process(document, started)
        except (DocumentValidationError, ExtractionError) as e:
            return self._failure(document, "Could not process CSV document", e, started)

    def _process(self, document: Document, started: float) -> ProcessingResult:
        text, encoding, fell_back = self._decode_bytes(document.content)
        text = text.replace('\r\n', '\n').replace('\r', '\n')
        delimiter = detect_delimiter(text)
        rows = self._read_rows(text, delimiter)

        if not rows:
            return ProcessingResult.failure(
                document.name, self.name, "CSV file is empty",
                ["CSV file is empty: no data rows found"], started=started,
            )

        has_headers = detect_headers(rows)
        if has_headers:
            headers = [cell.strip() or f"Column_{i}" for i, cell in enumerate(rows[0], start=1)]
            data_rows = rows[1:]
        else:
            headers = default_headers(len(rows[0]))
            data_rows = rows

        records = self._to_records(headers, data_rows)

        result = ProcessingResult(
            document_name=document.name,
            processing_strategy=self.name,
            message=f"CSV processed successfully with {len(data_rows)} rows and {len(headers)} columns",
        )
        if fell_back:
            result.add_warning(f"Content is not valid UTF-8; decoded as {encoding}")
        if len(data_rows) > self.settings.max_table_rows:
            result.add_warning(
                f"CSV has {len(data_rows)} rows, above the configured limit of "
                f"{self.settings.max_table_rows}"
            )

        result.metadata = DocumentMetadata(
            file_name=document.name,
            file_type=DocumentType.CSV.type_name,
            file_size_bytes=document.size,
            row_count=len(rows) - (1 if has_headers else 0),
            column_count=len(rows[0]),
            delimiter=delimiter,
            has_headers=has_headers,
            encoding=encoding,
        )
        result.extracted_data = records
        result.processing_stats = self._statistics(records, headers)
        result.mark_elapsed(started)

        logger.info(
            f"Processed CSV: {document.name} ({len(data_rows)} rows, delimiter={delimiter!r}, "
            f"headers={has_headers})"
        )
        return result

    def _read_rows(self, text: str, delimiter: str) -> List[List[str]]:
        reader = csv.reader(io.StringIO(text), delimiter=delimiter)
        rows = []
        try:
            for row in reader:
                if not any(cell.strip() for cell in row):
                    continue
                rows.append(row)
        except csv.Error as e:
            raise ExtractionError(f"Malformed CSV at line {reader.line_num}: {e}") from e
        return rows

    def _to_records(self, headers: List[str], data_rows: List[List[str]]) -> List[Dict[str, Any]]:
        records = []
        for row in data_rows:
            record = {}
            for i, header in enumerate(headers):
                record[header] = convert_value(row[i] if i < len(row) else "")
            records.append(record)
        return records

    def _statistics(self, records: List[Dict[str, Any]], headers: List[str]) -> CsvStatistics:
        column_statistics = {}
        for header in headers:
            values = [record.get(header) for record in records if record.get(header) is not None]
            column = ColumnStatistics(non_null_count=len(values),
                                      null_count=len(records) - len(values))
            if values:
                booleans = sum(1 for v in values if isinstance(v, bool))
                numbers = sum(1 for v in values
                              if isinstance(v, (int, float)) and not isinstance(v, bool))
                column.number_count = numbers
                column.boolean_count = booleans
                column.string_count = len(values) - numbers - booleans
                column.unique_values = len({(type(v), v) for v in values})
            column_statistics[header] = column

        return CsvStatistics(
            total_rows=len(records),
            total_columns=len(headers),
            columns=list(headers),
            column_statistics=column_statistics,
        )
