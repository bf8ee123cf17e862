import io
from datetime import datetime
from typing import Callable, Optional

import pytest

from document_processor.base import ProcessingStrategy, supports_document
from document_processor.config import Settings
from document_processor.document_types import DocumentType
from document_processor.models import Document, ProcessingResult


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture()
def make_document() -> Callable[..., Document]:
    def _make(name: str, content: bytes) -> Document:
        return Document(name=name, content=content, size=len(content))
    return _make


@pytest.fixture()
def xlsx_bytes() -> bytes:
    """Workbook with a header row, a formula, a date and an empty second sheet."""
    import openpyxl

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "People"
    ws.append(["name", "age", "score", "bonus", "joined"])
    ws.append(["Alice", 30, 88.5, 5, datetime(2024, 1, 15)])
    ws.append(["Bob", 25, 92, 0, datetime(2023, 6, 1)])
    ws["F2"] = "=B2+C2"
    wb.create_sheet("Empty")
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture()
def merged_xlsx_bytes() -> bytes:
    """Headerless numeric sheet with one merged region."""
    import openpyxl

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Numbers"
    ws.append([1, 2])
    ws.append([3, 4])
    ws["A4"] = "merged"
    ws.merge_cells("A4:B4")
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture()
def xls_bytes() -> bytes:
    """Legacy BIFF workbook: a stock sheet with dates and a sheet with one merged cell."""
    import xlwt

    wb = xlwt.Workbook()
    date_style = xlwt.easyxf(num_format_str='YYYY-MM-DD')
    stock = wb.add_sheet("Stock")
    for col, header in enumerate(["qty", "price", "received"]):
        stock.write(0, col, header)
    stock.write(1, 0, 12)
    stock.write(1, 1, 2.5)
    stock.write(1, 2, datetime(2024, 3, 1), date_style)
    stock.write(2, 0, 7)
    stock.write(2, 1, 1.25)
    stock.write(2, 2, datetime(2024, 3, 2), date_style)
    notes = wb.add_sheet("Notes")
    notes.write_merge(0, 0, 0, 1, "Merged note")
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _pdf(pages, metadata=None, **save_options) -> bytes:
    import fitz

    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    if metadata:
        doc.set_metadata(metadata)
    data = doc.tobytes(**save_options)
    doc.close()
    return data


@pytest.fixture()
def pdf_bytes() -> bytes:
    return _pdf(
        ["The cat and the dog are here.\nThe dog sleeps.", "Second page for the report."],
        metadata={
            "title": "Quarterly Report",
            "author": "Jane Roe",
            "subject": "Finance",
            "creationDate": "D:20240115103000+01'00'",
        },
    )


@pytest.fixture()
def blank_pdf_bytes() -> bytes:
    return _pdf([""])


@pytest.fixture()
def encrypted_pdf_bytes() -> bytes:
    import fitz

    return _pdf(
        ["Secret content"],
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner-secret",
        user_pw="user-secret",
    )


@pytest.fixture()
def docx_bytes() -> bytes:
    from docx import Document as DocxDocument
    from docx.enum.text import WD_ALIGN_PARAGRAPH

    doc = DocxDocument()
    doc.core_properties.title = "Test Document"
    doc.core_properties.author = "Tester"
    para = doc.add_paragraph("The report covers the new plan. ")
    bold = para.add_run("Bold statement here.")
    bold.bold = True
    centered = doc.add_paragraph("Centered closing line.")
    centered.alignment = WD_ALIGN_PARAGRAPH.CENTER
    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Region"
    table.cell(0, 1).text = "Sales"
    table.cell(1, 0).text = "North"
    table.cell(1, 1).text = "100"
    doc.sections[0].header.paragraphs[0].text = "Company header"
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


class StubStrategy(ProcessingStrategy):
    """Configurable strategy for registry and service tests."""

    def __init__(self, name: str, supported_type: DocumentType, priority: int,
                 error: Optional[Exception] = None, accept: bool = True):
        self.name = name
        self.supported_type = supported_type
        self.priority = priority
        self.error = error
        self.accept = accept
        self.calls = 0

    def can_process(self, document: Document) -> bool:
        return self.accept and supports_document(self.supported_type, document)

    def process(self, document: Document) -> ProcessingResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return ProcessingResult(document_name=document.name, processing_strategy=self.name,
                                message="stub processed")


@pytest.fixture()
def make_strategy() -> Callable[..., StubStrategy]:
    return StubStrategy


@pytest.fixture()
def complete_strategies(make_strategy):
    """One stub per document type."""
    def _build(**overrides):
        strategies = []
        for priority, doc_type in enumerate(DocumentType, start=1):
            strategy = overrides.get(doc_type.name) or make_strategy(
                f"{doc_type.name}_STUB", doc_type, priority * 10)
            strategies.append(strategy)
        return strategies
    return _build
