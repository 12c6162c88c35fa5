import pytest

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import AppException
from knowledge_engine.modules.knowledge.extraction import DocumentTextExtractor


@pytest.fixture
def extractor():
    return DocumentTextExtractor(max_text_bytes=10_000)


def test_plain_text(extractor):
    assert extractor.extract("hello\nworld".encode("utf-8"), "txt") == "hello\nworld"


def test_latin1_fallback(extractor):
    assert extractor.extract("café".encode("latin-1"), "md") == "café"


def test_csv_rows_become_lines(extractor):
    text = extractor.extract(b"name,age\nann,31\n\nbob,42\n", "csv")

    assert text.splitlines() == ["name, age", "ann, 31", "bob, 42"]


def test_tsv_rows_are_comma_separated(extractor):
    text = extractor.extract(b"name\tage\nann\t31\n", ".tsv")

    assert text.splitlines() == ["name, age", "ann, 31"]


def test_html_drops_scripts_and_styles(extractor):
    html = b"""<html><head><style>p {color: red}</style><script>alert(1)</script></head>
    <body><h1>Title</h1><p>First line<br>Second line</p></body></html>"""

    text = extractor.extract(html, "html")

    assert "Title" in text
    assert "First line" in text and "Second line" in text
    assert "alert" not in text
    assert "color" not in text


def test_fake_pdf_is_decoded_as_text(extractor):
    assert extractor.extract(b"not really a pdf", "pdf") == "not really a pdf"


def test_unsupported_extension(extractor):
    with pytest.raises(AppException) as exc_info:
        extractor.extract(b"MZ\x90\x00", "exe")

    assert exc_info.value.error_key == ErrorKey.UNSUPPORTED_FILE_FORMAT
    assert exc_info.value.status_code == 415


@pytest.mark.parametrize("content", [b"", b"   \n\t  "])
def test_empty_content(extractor, content):
    with pytest.raises(AppException) as exc_info:
        extractor.extract(content, "txt")

    assert exc_info.value.error_key == ErrorKey.EMPTY_CONTENT


def test_extracted_text_too_large():
    extractor = DocumentTextExtractor(max_text_bytes=10)

    with pytest.raises(AppException) as exc_info:
        extractor.extract(b"this text is longer than ten bytes", "txt")

    assert exc_info.value.error_key == ErrorKey.CONTENT_TOO_LARGE
    assert exc_info.value.status_code == 413


def test_corrupt_docx(extractor):
    with pytest.raises(AppException) as exc_info:
        extractor.extract(b"definitely not a zip archive", "docx")

    assert exc_info.value.error_key == ErrorKey.ERROR_EXTRACTING_FROM_FILE
