"""
Chunking profile detection from file extension and text heuristics
"""

from typing import Optional

from .profiles import CODE, MARKDOWN, SEMANTIC, SENTENCE

SMALL_TEXT_THRESHOLD = 2_000
MEDIUM_TEXT_THRESHOLD = 10_000
CSV_SAMPLE_LINES = 5

EXTENSION_TO_PROFILE = {
    # markdown-like
    "txt": MARKDOWN,
    "md": MARKDOWN,
    # source code
    "java": CODE,
    "kt": CODE,
    "js": CODE,
    "ts": CODE,
    "py": CODE,
    "cpp": CODE,
    "c": CODE,
    "go": CODE,
    # data formats and paged documents split by meaning
    "json": SEMANTIC,
    "csv": SEMANTIC,
    "xml": SEMANTIC,
    "pdf": SEMANTIC,
    "docx": SEMANTIC,
}

_MARKDOWN_MARKERS = ("# ", "```", "* ", "- ")
_CODE_MARKERS = ("class ", "def ", "fun ", "public ", "private ")


class ProfileDetector:
    """
    Picks a chunking profile for a document.

    A known extension wins without scanning the text. Otherwise the first
    matching rule decides: markdown markers, code markers, structured data
    (CSV / JSON / XML), then length bands. Callers may always pass an explicit
    profile instead of asking the detector.
    """

    def detect(self, text: str, extension: Optional[str] = None) -> str:
        if extension:
            profile = EXTENSION_TO_PROFILE.get(extension.lower().lstrip("."))
            if profile is not None:
                return profile
        return self.detect_from_text(text)

    def detect_from_text(self, text: str) -> str:
        trimmed = (text or "").lstrip()

        if self._looks_like_markdown(trimmed):
            return MARKDOWN

        if self._looks_like_code(trimmed):
            return CODE

        if self._looks_like_csv(trimmed) or self._looks_like_json(trimmed) or self._looks_like_xml(trimmed):
            return SEMANTIC

        if len(trimmed) < SMALL_TEXT_THRESHOLD:
            # short text: one precise chunk beats fragments
            return SEMANTIC

        if len(trimmed) < MEDIUM_TEXT_THRESHOLD:
            return SENTENCE

        return SEMANTIC

    @staticmethod
    def _looks_like_markdown(text: str) -> bool:
        return any(marker in text for marker in _MARKDOWN_MARKERS)

    @staticmethod
    def _looks_like_code(text: str) -> bool:
        return any(marker in text for marker in _CODE_MARKERS) or ("{" in text and "}" in text)

    @staticmethod
    def _looks_like_csv(text: str) -> bool:
        if "," not in text:
            return False
        lines = text.splitlines()[:CSV_SAMPLE_LINES]
        return all("," in line for line in lines)

    @staticmethod
    def _looks_like_json(text: str) -> bool:
        return (text.startswith("{") and text.endswith("}")) or (
            text.startswith("[") and text.endswith("]"))

    @staticmethod
    def _looks_like_xml(text: str) -> bool:
        return text.startswith("<") and "</" in text
