"""
Text Chunking
=============

Splits document text into overlapping, boundary-aware chunks.

Windows of ``chunk_size`` characters are cut at the last paragraph break,
then the last sentence break, then the last space, provided that boundary
falls in the back half of the window. Consecutive windows overlap by
``overlap`` characters so context spanning a cut is retrievable from
either side.
"""

import re
from typing import List

from replydesk.config import settings
from replydesk.core import ValidationException

_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Unify line endings, collapse runs of blank lines and trim."""
    text = text.replace("\r\n", "\n")
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


class TextChunker:
    """Holds the configured window and overlap sizes."""

    def __init__(self, chunk_size: int = 2000, overlap: int = 200):
        if chunk_size <= 0:
            raise ValidationException("chunk_size must be positive", {"chunk_size": chunk_size})
        if overlap < 0 or overlap >= chunk_size:
            raise ValidationException(
                "overlap must be non-negative and smaller than chunk_size",
                {"chunk_size": chunk_size, "overlap": overlap}
            )
        self.chunk_size = chunk_size
        self.overlap = overlap

    @classmethod
    def from_settings(cls) -> "TextChunker":
        return cls(settings.chunk_size, settings.chunk_overlap)

    def split(self, text: str) -> List[str]:
        """
        Split text into chunks.

        Args:
            text: Raw document text

        Returns:
            Non-empty, trimmed chunks in document order; [] for blank input
        """
        text = normalize_text(text or "")
        if not text:
            return []
        if len(text) <= self.chunk_size:
            return [text]

        chunks: List[str] = []
        length = len(text)
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            if end < length:
                end = self._find_break(text, start, end)

            chunk = text[start:end].strip()
            if chunk:
                chunks.append(chunk)

            if end >= length:
                break

            start = max(end - self.overlap, start + 1)
            # Tail already covered by the overlap of the chunk just emitted
            if start >= length - self.overlap:
                break

        return chunks

    def _find_break(self, text: str, start: int, end: int) -> int:
        floor = start + self.chunk_size // 2

        paragraph = text.rfind("\n\n", start, end)
        if paragraph > floor:
            return paragraph

        sentence = text.rfind(". ", start, end)
        if sentence > floor:
            return sentence + 1

        space = text.rfind(" ", start, end)
        if space > floor:
            return space

        return end


def split_text(text: str, chunk_size: int = 2000, overlap: int = 200) -> List[str]:
    """Convenience wrapper around TextChunker.split."""
    return TextChunker(chunk_size, overlap).split(text)
