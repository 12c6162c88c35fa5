import csv
import io
import logging
import re
from typing import Optional

from knowledge_engine.core.config.settings import settings
from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import AppException, InvalidArgumentError

logger = logging.getLogger(__name__)


class DocumentTextExtractor:
    """
        Turns uploaded document bytes into plain text.

        Supported types
        ---------------
        - PDF (.pdf): pdfminer.six
        - Word (.docx): docx2txt
        - Plain text: .txt, .text, .md, .log and source/data files (UTF-8 with latin-1 fallback)
        - Delimited (.csv, .tsv): one comma-separated line per row
        - HTML (.html, .htm): BeautifulSoup text

        Errors
        ------
        - UNSUPPORTED_FILE_FORMAT (415) for any other extension
        - EMPTY_CONTENT (400) for zero-byte input or whitespace-only text
        - CONTENT_TOO_LARGE (413) when the extracted text exceeds the configured ceiling
    """

    TEXT_SUFFIXES = {
        "txt", "text", "md", "log", "json", "xml",
        "java", "kt", "js", "ts", "py", "cpp", "c", "go",
    }
    DELIMITED_SUFFIXES = {"csv", "tsv"}
    HTML_SUFFIXES = {"html", "htm"}

    def __init__(self, max_text_bytes: Optional[int] = None):
        self.max_text_bytes = max_text_bytes or settings.MAX_EXTRACTED_TEXT_BYTES

    @property
    def supported_extensions(self) -> set[str]:
        return {"pdf", "docx"} | self.TEXT_SUFFIXES | self.DELIMITED_SUFFIXES | self.HTML_SUFFIXES

    def extract(self, content: bytes, extension: str) -> str:
        sfx = (extension or "").lower().lstrip(".")
        if sfx not in self.supported_extensions:
            raise AppException(ErrorKey.UNSUPPORTED_FILE_FORMAT, status_code=415, error_variables=[sfx or "-"])
        if not content:
            raise InvalidArgumentError(ErrorKey.EMPTY_CONTENT)

        text = self._extract_by_suffix(sfx, content)

        if not text or not text.strip():
            raise InvalidArgumentError(ErrorKey.EMPTY_CONTENT, error_detail=f"no text in .{sfx} document")
        if len(text.encode("utf-8")) > self.max_text_bytes:
            raise AppException(ErrorKey.CONTENT_TOO_LARGE, status_code=413)
        return text

    def _extract_by_suffix(self, sfx: str, content: bytes) -> str:
        try:
            if sfx == "pdf":
                return self._extract_pdf(content)
            if sfx == "docx":
                return self._extract_docx(content)
            if sfx in self.DELIMITED_SUFFIXES:
                return self._extract_delimited(content, "\t" if sfx == "tsv" else None)
            if sfx in self.HTML_SUFFIXES:
                return self._extract_html(content)
            return self._decode(content)
        except AppException:
            raise
        except Exception as e:
            logger.error(f"[extractor] .{sfx} extraction failed: {e}")
            raise AppException(ErrorKey.ERROR_EXTRACTING_FROM_FILE, status_code=422, error_detail=str(e))

    # ---------- Concrete extractors ----------

    def _extract_pdf(self, content: bytes) -> str:
        from pdfminer.high_level import extract_text as pdfminer_extract_text

        if not content.startswith(b"%PDF-"):
            logger.warning(f"[extractor] not a real PDF (head={content[:8]!r}); decoding as text")
            return self._decode(content)
        text = pdfminer_extract_text(io.BytesIO(content)) or ""
        logger.info("[extractor] pdf used=pdfminer.six")
        return self._normalize_whitespace(text.replace("\x0c", "\n"))

    def _extract_docx(self, content: bytes) -> str:
        import docx2txt

        logger.info("[extractor] docx used=docx2txt")
        return self._normalize_whitespace(docx2txt.process(io.BytesIO(content)) or "")

    def _extract_delimited(self, content: bytes, delimiter: Optional[str]) -> str:
        raw = self._decode(content)
        if delimiter is None:
            try:
                delimiter = csv.Sniffer().sniff(raw[:4096]).delimiter
            except csv.Error:
                delimiter = ","
        reader = csv.reader(io.StringIO(raw), delimiter=delimiter)
        # rows are re-emitted comma separated whatever the source delimiter
        rows = [", ".join(cell.strip() for cell in row) for row in reader if any(c.strip() for c in row)]
        return "\n".join(rows)

    def _extract_html(self, content: bytes) -> str:
        from bs4 import BeautifulSoup

        soup = BeautifulSoup(self._decode(content), "html.parser")
        for tag in soup(["script", "style", "noscript", "template", "meta", "link", "iframe"]):
            tag.decompose()
        for br in soup.find_all("br"):
            br.replace_with("\n")
        return self._normalize_whitespace(soup.get_text(separator="\n"))

    # ---------- Helpers ----------

    @staticmethod
    def _decode(content: bytes) -> str:
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError:
            return content.decode("latin-1")

    @staticmethod
    def _normalize_whitespace(s: str) -> str:
        s = re.sub(r"[ \t]+\n", "\n", s)  # trailing spaces before newlines
        s = re.sub(r"\n{3,}", "\n\n", s)  # collapse 3+ blank lines to 2
        s = re.sub(r"[ \t]{2,}", " ", s)  # collapse runs of spaces/tabs
        return s.strip()
