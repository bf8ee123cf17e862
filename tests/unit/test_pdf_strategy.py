from datetime import datetime, timezone

import pytest

from document_processor.config import Settings
from document_processor.pdf_strategy import (
    PAGE_BREAK,
    PASSWORD_PROTECTED_ERROR,
    PASSWORD_REQUIRED_MESSAGE,
    PdfProcessingStrategy,
    parse_pdf_date,
    pdf_version,
)


@pytest.fixture()
def strategy(settings) -> PdfProcessingStrategy:
    return PdfProcessingStrategy(settings)


class TestParsePdfDate:
    def test_offset_is_applied(self) -> None:
        parsed = parse_pdf_date("D:20240115103000+01'00'")
        assert parsed == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)

    def test_zulu(self) -> None:
        parsed = parse_pdf_date("D:20240115103000Z")
        assert parsed == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_year_only_is_local_midnight(self) -> None:
        parsed = parse_pdf_date("D:2024")
        assert parsed.replace(tzinfo=None) == datetime(2024, 1, 1)

    @pytest.mark.parametrize("value", [None, "", "garbage", "D:20241345"])
    def test_unparseable_is_none(self, value) -> None:
        assert parse_pdf_date(value) is None


class TestPdfVersion:
    def test_strips_prefix(self) -> None:
        assert pdf_version("PDF 1.7") == "1.7"

    def test_missing(self) -> None:
        assert pdf_version(None) is None
        assert pdf_version("PDF") is None


class TestProcess:
    def test_text_and_pages(self, strategy, make_document, pdf_bytes) -> None:
        result = strategy.process(make_document("report.pdf", pdf_bytes))
        assert result.success is True
        assert result.message == "PDF processed successfully with 2 pages"
        assert result.processing_strategy == "PDF_PROCESSING_STRATEGY"
        first, second = result.extracted_text.split(PAGE_BREAK)
        assert "The cat and the dog are here." in first
        assert "Second page for the report." in second
        assert not result.extracted_text.endswith(PAGE_BREAK)
        assert result.processing_time_ms is not None

    def test_statistics(self, strategy, make_document, pdf_bytes) -> None:
        stats = strategy.process(make_document("report.pdf", pdf_bytes)).processing_stats
        assert stats.total_pages == 2
        assert stats.has_text is True
        assert stats.detected_language == "english"
        assert stats.average_words_per_page == stats.word_count / 2
        assert stats.average_characters_per_page == stats.character_count / 2

    def test_metadata(self, strategy, make_document, pdf_bytes) -> None:
        metadata = strategy.process(make_document("report.pdf", pdf_bytes)).metadata
        assert metadata.file_type == "PDF"
        assert metadata.page_count == 2
        assert metadata.title == "Quarterly Report"
        assert metadata.author == "Jane Roe"
        assert metadata.creation_date == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
        assert metadata.is_encrypted is False
        assert metadata.custom_properties["subject"] == "Finance"
        assert metadata.word_count > 0

    def test_blank_page(self, strategy, make_document, blank_pdf_bytes) -> None:
        result = strategy.process(make_document("blank.pdf", blank_pdf_bytes))
        assert result.success is True
        assert result.processing_stats.total_pages == 1
        assert result.processing_stats.has_text is False
        assert result.processing_stats.average_words_per_page is None

    def test_password_protected(self, strategy, make_document, encrypted_pdf_bytes) -> None:
        result = strategy.process(make_document("secret.pdf", encrypted_pdf_bytes))
        assert result.success is False
        assert result.message == PASSWORD_REQUIRED_MESSAGE
        assert result.errors == [PASSWORD_PROTECTED_ERROR]

    def test_unreadable_pdf(self, strategy, make_document, monkeypatch) -> None:
        import fitz

        def broken(*args, **kwargs):
            raise RuntimeError("cannot find startxref")

        monkeypatch.setattr(fitz, "open", broken)
        result = strategy.process(make_document("broken.pdf", b"%PDF-1.4 truncated"))
        assert result.success is False
        assert result.message == "Could not read the PDF document"
        assert result.errors == ["I/O error while reading PDF: cannot find startxref"]

    def test_text_limit_is_advisory(self, make_document, pdf_bytes) -> None:
        strategy = PdfProcessingStrategy(Settings(_env_file=None, max_text_length=10))
        result = strategy.process(make_document("report.pdf", pdf_bytes))
        assert result.success is True
        assert any("above the configured limit" in w for w in result.warnings)

    def test_wrong_type_is_failed_result(self, strategy, make_document) -> None:
        result = strategy.process(make_document("data.csv", b"a,b"))
        assert result.success is False
        assert result.errors[0].startswith("Processing error: ")
