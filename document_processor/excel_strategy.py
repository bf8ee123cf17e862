"""
Excel strategy.
Reads XLSX with openpyxl (formulas and cached values) and falls back to xlrd
for legacy XLS, then builds per-sheet row dictionaries and statistics.
"""

import io
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from document_processor.base import ProcessingStrategy, supports_document, validate_for_strategy
from document_processor.config import Settings
from document_processor.document_types import DocumentType
from document_processor.exceptions import DocumentValidationError, ExtractionError
from document_processor.models import Document, DocumentMetadata, ProcessingResult
from document_processor.statistics import (
    ColumnStatistics,
    SheetStatistics,
    SheetSummary,
    WorkbookStatistics,
)

logger = logging.getLogger(__name__)

HEADER_TEXT_RATIO = 0.6
HEADER_NUMBER_RATIO = 0.5

DATE_TYPES = (datetime, date, dt_time, timedelta)

# Cell kinds
STRING = "string"
NUMERIC = "numeric"
DATE = "date"
BOOLEAN = "boolean"
FORMULA = "formula"
ERROR = "error"


@dataclass
class CellData:
    """One non-empty cell. For formulas, value is the cached result or None."""

    kind: str
    value: Any = None
    formula: Optional[str] = None


@dataclass
class SheetData:
    name: str
    # zero-based row index -> zero-based column index -> cell
    rows: Dict[int, Dict[int, CellData]] = field(default_factory=dict)
    merged_count: int = 0

    def put(self, row: int, column: int, cell: CellData) -> None:
        self.rows.setdefault(row, {})[column] = cell


def _kind_of(value: Any) -> str:
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, DATE_TYPES):
        return DATE
    if isinstance(value, (int, float)):
        return NUMERIC
    return STRING


def _number(value: float) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def cell_value(cell: Optional[CellData]) -> Any:
    """Typed Python value of a cell, or the formula marker when no result is cached."""
    if cell is None:
        return None
    if cell.kind == FORMULA:
        if cell.value is None:
            return f"[Formula: {cell.formula}]"
        return cell_value(CellData(_kind_of(cell.value), cell.value))
    if cell.kind == NUMERIC:
        return _number(cell.value)
    return cell.value


def read_xlsx(content: bytes) -> List[SheetData]:
    """Load the workbook twice: once for formula text, once for cached values."""
    import openpyxl

    formulas_wb = openpyxl.load_workbook(io.BytesIO(content), data_only=False)
    values_wb = None
    try:
        values_wb = openpyxl.load_workbook(io.BytesIO(content), data_only=True)
        sheets = []
        for ws in formulas_wb.worksheets:
            cached_ws = values_wb[ws.title]
            sheet = SheetData(name=ws.title, merged_count=len(ws.merged_cells.ranges))
            for row in ws.iter_rows():
                for cell in row:
                    if cell.value is None:
                        continue
                    if cell.data_type == 'f':
                        formula = cell.value if isinstance(cell.value, str) else getattr(cell.value, 'text', None)
                        formula = (formula or "").lstrip('=')
                        cached = cached_ws[cell.coordinate].value
                        data = CellData(FORMULA, cached, formula)
                    elif cell.data_type == 'e':
                        data = CellData(ERROR, str(cell.value))
                    else:
                        data = CellData(_kind_of(cell.value), cell.value)
                    sheet.put(cell.row - 1, cell.column - 1, data)
            sheets.append(sheet)
        return sheets
    finally:
        formulas_wb.close()
        if values_wb is not None:
            values_wb.close()


def read_xls(content: bytes) -> List[SheetData]:
    """Legacy BIFF workbook. xlrd surfaces formula cells as their cached values."""
    import xlrd

    book = xlrd.open_workbook(file_contents=content, formatting_info=True, ragged_rows=True)
    try:
        sheets = []
        for ws in book.sheets():
            sheet = SheetData(name=ws.name, merged_count=len(ws.merged_cells))
            for row_idx in range(ws.nrows):
                for col_idx in range(ws.row_len(row_idx)):
                    cell = ws.cell(row_idx, col_idx)
                    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                        continue
                    if cell.ctype == xlrd.XL_CELL_TEXT:
                        data = CellData(STRING, cell.value)
                    elif cell.ctype == xlrd.XL_CELL_NUMBER:
                        data = CellData(NUMERIC, cell.value)
                    elif cell.ctype == xlrd.XL_CELL_DATE:
                        try:
                            data = CellData(DATE, xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
                        except xlrd.xldate.XLDateError:
                            data = CellData(NUMERIC, cell.value)
                    elif cell.ctype == xlrd.XL_CELL_BOOLEAN:
                        data = CellData(BOOLEAN, bool(cell.value))
                    else:
                        data = CellData(ERROR, xlrd.error_text_from_code.get(cell.value, "#ERR"))
                    sheet.put(row_idx, col_idx, data)
            sheets.append(sheet)
        return sheets
    finally:
        book.release_resources()


class ExcelProcessingStrategy(ProcessingStrategy):
    """Extract every sheet of an XLSX or XLS workbook as structured rows."""

    name = "EXCEL_PROCESSING_STRATEGY"
    supported_type = DocumentType.EXCEL
    priority = 15

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def can_process(self, document: Document) -> bool:
        return supports_document(self.supported_type, document)

    def process(self, document: Document) -> ProcessingResult:
        started = time.time()
        try:
            validate_for_strategy(self, document)
            sheets, sub_format = self._open(document)
            return self._process(document, sheets, sub_format, started)
        except (DocumentValidationError, ExtractionError) as e:
            return self._failure(document, "Could not process Excel document", e, started)

    def _open(self, document: Document) -> Tuple[List[SheetData], str]:
        try:
            return read_xlsx(document.content), "xlsx"
        except Exception as xlsx_error:
            logger.debug(f"Not an XLSX workbook ({xlsx_error}), trying legacy XLS: {document.name}")
        try:
            return read_xls(document.content), "xls"
        except Exception as e:
            raise ExtractionError(f"Unreadable workbook: {e}", document_name=document.name,
                                  strategy_name=self.name) from e

    def _process(self, document: Document, sheets: List[SheetData], sub_format: str,
                 started: float) -> ProcessingResult:
        result = ProcessingResult(document_name=document.name, processing_strategy=self.name)

        if len(sheets) > self.settings.max_excel_sheets:
            result.add_warning(
                f"Workbook has {len(sheets)} sheets, above the configured limit of "
                f"{self.settings.max_excel_sheets}"
            )

        sheets_data = []
        summaries = []
        total_rows = 0
        total_cells = 0
        for index, sheet in enumerate(sheets):
            sheet_data = self._process_sheet(sheet, index)
            stats = sheet_data["statistics"]
            sheets_data.append(sheet_data)
            total_rows += stats.data_rows
            total_cells += stats.total_cells
            summaries.append(SheetSummary(
                name=sheet.name,
                index=index,
                row_count=stats.data_rows,
                column_count=stats.column_count,
                has_data=stats.has_data,
            ))

        if total_rows > self.settings.max_table_rows:
            result.add_warning(
                f"Workbook has {total_rows} data rows, above the configured limit of "
                f"{self.settings.max_table_rows}"
            )

        has_formulas = self._has_formulas(sheets)
        has_merged_cells = any(sheet.merged_count > 0 for sheet in sheets)

        result.message = (
            f"Excel file processed successfully with {len(sheets)} sheets "
            f"and {total_rows} total rows"
        )
        result.metadata = DocumentMetadata(
            file_name=document.name,
            file_type=DocumentType.EXCEL.type_name,
            file_size_bytes=document.size,
            sheet_count=len(sheets),
            row_count=sum(s.row_count for s in summaries),
            column_count=max((s.column_count for s in summaries), default=0),
            custom_properties={
                "format": sub_format,
                "sheets_info": summaries,
                "has_formulas": has_formulas,
                "has_merged_cells": has_merged_cells,
            },
        )
        result.extracted_data = sheets_data
        result.processing_stats = WorkbookStatistics(
            total_sheets=len(sheets),
            total_rows=total_rows,
            total_cells=total_cells,
            sheets_info=summaries,
            has_formulas=has_formulas,
            has_merged_cells=has_merged_cells,
        )
        result.mark_elapsed(started)

        logger.info(
            f"Processed Excel ({sub_format}): {document.name} "
            f"({len(sheets)} sheets, {total_rows} rows)"
        )
        return result

    def _process_sheet(self, sheet: SheetData, index: int) -> Dict[str, Any]:
        if not sheet.rows:
            return {
                "sheet_name": sheet.name,
                "sheet_index": index,
                "has_data": False,
                "headers": [],
                "data": [],
                "statistics": SheetStatistics.empty(sheet.name),
            }

        first_row = min(sheet.rows)
        last_row = max(sheet.rows)
        max_columns = max(max(cells) + 1 for cells in sheet.rows.values())

        has_headers = self._detect_headers(sheet, first_row, max_columns)
        headers = self._headers(sheet, first_row, max_columns, has_headers)
        start = first_row + 1 if has_headers else first_row
        rows = self._rows(sheet, start, last_row, headers)

        return {
            "sheet_name": sheet.name,
            "sheet_index": index,
            "has_data": True,
            "headers": headers,
            "data": rows,
            "statistics": self._sheet_statistics(sheet, rows, headers, has_headers),
            "has_headers": has_headers,
        }

    def _detect_headers(self, sheet: SheetData, first_row: int, max_columns: int) -> bool:
        first = sheet.rows.get(first_row)
        second = sheet.rows.get(first_row + 1)
        if not first or not second or max_columns == 0:
            return False

        existing = 0
        text_in_first = 0
        numbers_in_second = 0
        for col in range(max_columns):
            cell = first.get(col)
            if cell is not None:
                existing += 1
                if cell.kind == STRING:
                    text_in_first += 1
            below = second.get(col)
            if below is not None and below.kind == NUMERIC:
                numbers_in_second += 1

        return (existing > 0
                and text_in_first / existing > HEADER_TEXT_RATIO
                and numbers_in_second > text_in_first * HEADER_NUMBER_RATIO)

    def _headers(self, sheet: SheetData, first_row: int, max_columns: int,
                 has_headers: bool) -> List[str]:
        if not has_headers:
            return [f"Column_{col + 1}" for col in range(max_columns)]
        header_cells = sheet.rows.get(first_row, {})
        headers = []
        for col in range(max_columns):
            value = cell_value(header_cells.get(col))
            text = "" if value is None else str(value)
            headers.append(text if text else f"Column_{col + 1}")
        return headers

    def _rows(self, sheet: SheetData, start: int, end: int, headers: List[str]) -> List[Dict[str, Any]]:
        rows = []
        for row_idx in range(start, end + 1):
            cells = sheet.rows.get(row_idx)
            if cells is None:
                continue
            row = {header: cell_value(cells.get(col)) for col, header in enumerate(headers)}
            if any(value is not None for value in row.values()):
                rows.append(row)
        return rows

    def _sheet_statistics(self, sheet: SheetData, rows: List[Dict[str, Any]], headers: List[str],
                          has_headers: bool) -> SheetStatistics:
        total_cells = len(rows) * len(headers)
        cells_with_data = sum(1 for row in rows for value in row.values() if value is not None)

        column_statistics = {}
        for header in headers:
            values = [row.get(header) for row in rows if row.get(header) is not None]
            column = ColumnStatistics(non_null_count=len(values), null_count=len(rows) - len(values))
            if values:
                numbers = [v for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]
                dates = sum(1 for v in values if isinstance(v, DATE_TYPES))
                booleans = sum(1 for v in values if isinstance(v, bool))
                column.number_count = len(numbers)
                column.date_count = dates
                column.boolean_count = booleans
                column.string_count = len(values) - len(numbers) - dates - booleans
                column.unique_values = len({(type(v), v) for v in values})
                if numbers:
                    column.min = float(min(numbers))
                    column.max = float(max(numbers))
                    column.sum = float(sum(numbers))
                    column.average = column.sum / len(numbers)
            column_statistics[header] = column

        return SheetStatistics(
            sheet_name=sheet.name,
            has_data=bool(rows),
            has_headers=has_headers,
            data_rows=len(rows),
            column_count=len(headers),
            total_cells=total_cells,
            cells_with_data=cells_with_data,
            empty_cells=total_cells - cells_with_data,
            data_completeness=cells_with_data / total_cells if total_cells else 0.0,
            column_statistics=column_statistics,
            merged_cells_count=sheet.merged_count,
        )

    def _has_formulas(self, sheets: List[SheetData]) -> bool:
        for sheet in sheets:
            for cells in sheet.rows.values():
                if any(cell.kind == FORMULA for cell in cells.values()):
                    return True
        return False
