from datetime import datetime

import pytest

from document_processor import excel_strategy
from document_processor.excel_strategy import (
    BOOLEAN,
    DATE,
    FORMULA,
    NUMERIC,
    STRING,
    CellData,
    ExcelProcessingStrategy,
    SheetData,
    cell_value,
    read_xls,
    read_xlsx,
)


@pytest.fixture()
def strategy(settings) -> ExcelProcessingStrategy:
    return ExcelProcessingStrategy(settings)


class TestCellValue:
    def test_integral_float_becomes_int(self) -> None:
        value = cell_value(CellData(NUMERIC, 30.0))
        assert value == 30 and isinstance(value, int)

    def test_fraction_stays_float(self) -> None:
        assert cell_value(CellData(NUMERIC, 2.5)) == 2.5

    def test_formula_without_cache_gives_marker(self) -> None:
        assert cell_value(CellData(FORMULA, None, "SUM(A1:A3)")) == "[Formula: SUM(A1:A3)]"

    def test_formula_with_cached_number(self) -> None:
        value = cell_value(CellData(FORMULA, 6.0, "SUM(A1:A3)"))
        assert value == 6 and isinstance(value, int)

    def test_missing_cell_is_none(self) -> None:
        assert cell_value(None) is None


class TestXlsx:
    def test_sheets_and_header_detection(self, strategy, make_document, xlsx_bytes) -> None:
        result = strategy.process(make_document("people.xlsx", xlsx_bytes))
        assert result.success is True
        assert result.message == "Excel file processed successfully with 2 sheets and 2 total rows"

        people, empty = result.extracted_data
        assert people["sheet_name"] == "People"
        assert people["has_headers"] is True
        assert people["headers"] == ["name", "age", "score", "bonus", "joined", "Column_6"]
        assert people["data"][0] == {
            "name": "Alice",
            "age": 30,
            "score": 88.5,
            "bonus": 5,
            "joined": datetime(2024, 1, 15),
            "Column_6": "[Formula: B2+C2]",
        }
        assert people["data"][1]["Column_6"] is None

        assert empty["has_data"] is False
        assert empty["data"] == []
        assert empty["statistics"].data_rows == 0

    def test_workbook_statistics(self, strategy, make_document, xlsx_bytes) -> None:
        stats = strategy.process(make_document("people.xlsx", xlsx_bytes)).processing_stats
        assert stats.total_sheets == 2
        assert stats.total_rows == 2
        assert stats.total_cells == 12
        assert stats.has_formulas is True
        assert stats.has_merged_cells is False
        assert [s.name for s in stats.sheets_info] == ["People", "Empty"]

    def test_sheet_statistics(self, strategy, make_document, xlsx_bytes) -> None:
        result = strategy.process(make_document("people.xlsx", xlsx_bytes))
        sheet_stats = result.extracted_data[0]["statistics"]
        assert sheet_stats.cells_with_data == 11
        assert sheet_stats.empty_cells == 1
        assert sheet_stats.data_completeness == pytest.approx(11 / 12)
        age = sheet_stats.column_statistics["age"]
        assert (age.min, age.max, age.sum, age.average) == (25.0, 30.0, 55.0, 27.5)
        joined = sheet_stats.column_statistics["joined"]
        assert joined.date_count == 2
        assert joined.number_count == 0
        assert sheet_stats.column_statistics["Column_6"].string_count == 1

    def test_metadata(self, strategy, make_document, xlsx_bytes) -> None:
        metadata = strategy.process(make_document("people.xlsx", xlsx_bytes)).metadata
        assert metadata.file_type == "EXCEL"
        assert metadata.sheet_count == 2
        assert metadata.row_count == 2
        assert metadata.column_count == 6
        assert metadata.custom_properties["format"] == "xlsx"
        assert metadata.custom_properties["has_formulas"] is True

    def test_numeric_sheet_without_headers_and_merged_cells(self, strategy, make_document,
                                                            merged_xlsx_bytes) -> None:
        result = strategy.process(make_document("numbers.xlsx", merged_xlsx_bytes))
        sheet = result.extracted_data[0]
        assert sheet["has_headers"] is False
        assert sheet["headers"] == ["Column_1", "Column_2"]
        assert sheet["data"] == [
            {"Column_1": 1, "Column_2": 2},
            {"Column_1": 3, "Column_2": 4},
            {"Column_1": "merged", "Column_2": None},
        ]
        assert sheet["statistics"].merged_cells_count == 1
        assert result.processing_stats.has_merged_cells is True
        assert result.processing_stats.has_formulas is False

    def test_sheet_limit_is_advisory(self, make_document, xlsx_bytes) -> None:
        from document_processor.config import Settings

        strategy = ExcelProcessingStrategy(Settings(_env_file=None, max_excel_sheets=1))
        result = strategy.process(make_document("people.xlsx", xlsx_bytes))
        assert result.success is True
        assert len(result.extracted_data) == 2
        assert any("sheets" in w for w in result.warnings)


class TestXls:
    def test_reader_keeps_dates_and_merges(self, xls_bytes) -> None:
        stock, notes = read_xls(xls_bytes)
        assert stock.name == "Stock"
        assert stock.rows[0][0] == CellData(STRING, "qty")
        assert stock.rows[1][0] == CellData(NUMERIC, 12.0)
        assert stock.rows[1][2] == CellData(DATE, datetime(2024, 3, 1))
        assert notes.merged_count == 1
        assert list(notes.rows[0]) == [0]

    def test_sheets_through_strategy(self, strategy, make_document, xls_bytes) -> None:
        result = strategy.process(make_document("stock.xls", xls_bytes))
        assert result.success is True

        stock, notes = result.extracted_data
        assert stock["has_headers"] is True
        assert stock["headers"] == ["qty", "price", "received"]
        assert stock["data"] == [
            {"qty": 12, "price": 2.5, "received": datetime(2024, 3, 1)},
            {"qty": 7, "price": 1.25, "received": datetime(2024, 3, 2)},
        ]
        assert notes["has_headers"] is False
        assert notes["data"] == [{"Column_1": "Merged note"}]
        assert notes["statistics"].merged_cells_count == 1

        assert result.processing_stats.has_merged_cells is True
        assert result.processing_stats.has_formulas is False
        assert result.metadata.custom_properties["format"] == "xls"


class TestHeaderRule:
    def _sheet(self, first, second) -> SheetData:
        sheet = SheetData(name="S")
        for col, cell in enumerate(first):
            if cell is not None:
                sheet.put(0, col, cell)
        for col, cell in enumerate(second):
            if cell is not None:
                sheet.put(1, col, cell)
        return sheet

    def test_mostly_text_over_numbers(self, strategy) -> None:
        sheet = self._sheet(
            [CellData(STRING, "a"), CellData(STRING, "b"), CellData(STRING, "c")],
            [CellData(NUMERIC, 1), CellData(NUMERIC, 2), CellData(STRING, "x")],
        )
        assert strategy._detect_headers(sheet, 0, 3) is True

    def test_dates_do_not_count_as_numbers(self, strategy) -> None:
        sheet = self._sheet(
            [CellData(STRING, "a"), CellData(STRING, "b")],
            [CellData(DATE, datetime(2024, 1, 1)), CellData(BOOLEAN, True)],
        )
        assert strategy._detect_headers(sheet, 0, 2) is False

    def test_too_little_text_in_first_row(self, strategy) -> None:
        sheet = self._sheet(
            [CellData(STRING, "a"), CellData(NUMERIC, 1)],
            [CellData(NUMERIC, 2), CellData(NUMERIC, 3)],
        )
        assert strategy._detect_headers(sheet, 0, 2) is False

    def test_missing_second_row(self, strategy) -> None:
        sheet = self._sheet([CellData(STRING, "a")], [])
        assert strategy._detect_headers(sheet, 0, 1) is False


class TestFallbacks:
    def test_legacy_xls_path(self, strategy, make_document, monkeypatch) -> None:
        legacy = SheetData(name="Old")
        legacy.put(0, 0, CellData(STRING, "qty"))
        legacy.put(0, 1, CellData(STRING, "price"))
        legacy.put(1, 0, CellData(NUMERIC, 12.0))
        legacy.put(1, 1, CellData(NUMERIC, 2.5))

        def not_xlsx(content):
            raise ValueError("File is not a zip file")

        monkeypatch.setattr(excel_strategy, "read_xlsx", not_xlsx)
        monkeypatch.setattr(excel_strategy, "read_xls", lambda content: [legacy])

        result = strategy.process(make_document("old.xls", b"\xd0\xcf\x11\xe0legacy"))
        assert result.success is True
        assert result.extracted_data[0]["data"] == [{"qty": 12, "price": 2.5}]
        assert result.metadata.custom_properties["format"] == "xls"
        assert result.processing_stats.has_formulas is False

    def test_unreadable_workbook_is_failed_result(self, strategy, make_document) -> None:
        result = strategy.process(make_document("broken.xlsx", b"this is not a spreadsheet"))
        assert result.success is False
        assert result.message == "Could not process Excel document"
        assert any("Unreadable workbook" in e for e in result.errors)

    def test_first_workbook_is_closed_when_second_load_fails(self, monkeypatch) -> None:
        import openpyxl

        class Workbook:
            closed = False

            def close(self) -> None:
                self.closed = True

        opened = []

        def load_workbook(stream, data_only=False):
            if data_only:
                raise OSError("read failed")
            opened.append(Workbook())
            return opened[-1]

        monkeypatch.setattr(openpyxl, "load_workbook", load_workbook)
        with pytest.raises(OSError):
            read_xlsx(b"PK")
        assert [wb.closed for wb in opened] == [True]
