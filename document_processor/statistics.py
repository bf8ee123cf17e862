"""
Per-format statistics records.

Each record keeps explicit fields but serializes to a plain dictionary,
dropping fields that were never set.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


def serialize_value(value: Any) -> Any:
    if isinstance(value, StatisticsRecord):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


class StatisticsRecord:
    """Mixin giving dataclass statistics a compact dictionary form."""

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            data[f.name] = serialize_value(value)
        return data


@dataclass
class ColumnStatistics(StatisticsRecord):
    non_null_count: int = 0
    null_count: int = 0
    number_count: Optional[int] = None
    date_count: Optional[int] = None
    boolean_count: Optional[int] = None
    string_count: Optional[int] = None
    unique_values: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    average: Optional[float] = None
    sum: Optional[float] = None


@dataclass
class CsvStatistics(StatisticsRecord):
    total_rows: int = 0
    total_columns: int = 0
    columns: List[str] = field(default_factory=list)
    column_statistics: Dict[str, ColumnStatistics] = field(default_factory=dict)


@dataclass
class SheetStatistics(StatisticsRecord):
    sheet_name: Optional[str] = None
    has_data: bool = False
    has_headers: Optional[bool] = None
    data_rows: int = 0
    column_count: int = 0
    total_cells: int = 0
    cells_with_data: int = 0
    empty_cells: int = 0
    data_completeness: float = 0.0
    column_statistics: Dict[str, ColumnStatistics] = field(default_factory=dict)
    merged_cells_count: int = 0

    @classmethod
    def empty(cls, sheet_name: Optional[str] = None) -> "SheetStatistics":
        """Zeroed record used for sheets without any used rows."""
        return cls(sheet_name=sheet_name)


@dataclass
class SheetSummary(StatisticsRecord):
    name: str
    index: int
    row_count: int
    column_count: int
    has_data: bool


@dataclass
class WorkbookStatistics(StatisticsRecord):
    total_sheets: int = 0
    total_rows: int = 0
    total_cells: int = 0
    sheets_info: List[SheetSummary] = field(default_factory=list)
    has_formulas: bool = False
    has_merged_cells: bool = False


@dataclass
class TopWord(StatisticsRecord):
    word: str
    frequency: int


@dataclass
class TextStatistics(StatisticsRecord):
    has_text: bool = False
    character_count: int = 0
    character_count_no_spaces: Optional[int] = None
    word_count: int = 0
    sentence_count: int = 0
    paragraph_count: int = 0
    unique_word_count: Optional[int] = None
    average_word_length: Optional[float] = None
    top_words: Optional[List[TopWord]] = None
    word_length_distribution: Optional[Dict[int, int]] = None
    detected_language: Optional[str] = None


@dataclass
class PdfStatistics(TextStatistics):
    total_pages: int = 0
    average_words_per_page: Optional[float] = None
    average_characters_per_page: Optional[float] = None


@dataclass
class FormattingSummary(StatisticsRecord):
    total_runs: int = 0
    bold_runs: int = 0
    italic_runs: int = 0
    font_families_used: List[str] = field(default_factory=list)
    font_sizes_used: List[float] = field(default_factory=list)


@dataclass
class TableSummary(StatisticsRecord):
    total_tables: int = 0
    total_rows: Optional[int] = None
    max_columns: Optional[int] = None
    average_rows_per_table: Optional[float] = None


@dataclass
class WordStatistics(TextStatistics):
    sub_format: Optional[str] = None
    document_paragraph_count: Optional[int] = None
    table_count: Optional[int] = None
    header_count: Optional[int] = None
    footer_count: Optional[int] = None
    section_count: Optional[int] = None
    formatting: Optional[FormattingSummary] = None
    table_statistics: Optional[TableSummary] = None
