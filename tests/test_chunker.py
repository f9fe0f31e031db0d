"""Tests for the text chunker."""

import pytest

from replydesk.core import ValidationException
from replydesk.knowledge.domain import TextChunker, normalize_text, split_text

PARAGRAPH_SEED = "Shipping policy details apply to every order. "


def paragraphs(count: int, length: int = 498) -> str:
    """Paragraphs of ``length`` characters separated by blank lines."""
    paragraph = (PARAGRAPH_SEED * (length // len(PARAGRAPH_SEED) + 1))[:length].strip()
    return "\n\n".join([paragraph] * count)


def numbered_paragraphs(count: int, length: int) -> str:
    """Like paragraphs() but each one starts with a unique heading."""
    return "\n\n".join(
        (f"Section {i}. " + PARAGRAPH_SEED * (length // len(PARAGRAPH_SEED) + 1))[:length].strip()
        for i in range(count)
    )


def uncovered(text: str, chunks: list) -> str:
    """Characters of text not found inside any chunk, scanning left to right."""
    covered = [False] * len(text)
    cursor = 0
    for chunk in chunks:
        position = text.find(chunk, cursor)
        assert position >= 0, "chunk is not a slice of the normalized text"
        for i in range(position, position + len(chunk)):
            covered[i] = True
        cursor = position + 1
    return "".join(ch for ch, hit in zip(text, covered) if not hit)


class TestSplit:
    """Tests for TextChunker.split."""

    def test_short_text_is_single_chunk(self):
        text = "Order #1001 was never delivered. Please refund me."

        chunks = split_text(text)

        assert chunks == [text]

    def test_empty_and_whitespace_yield_no_chunks(self):
        assert split_text("") == []
        assert split_text("   \n\n\t ") == []
        assert split_text(None) == []

    def test_five_thousand_chars_with_paragraphs_gives_three_chunks(self):
        text = paragraphs(10)
        assert len(text) == 4998

        chunks = split_text(text, 2000, 200)

        assert len(chunks) == 3
        # First two windows end on a paragraph boundary
        assert text[:len(chunks[0])] == chunks[0]
        assert text[len(chunks[0]):len(chunks[0]) + 2] == "\n\n"
        assert chunks[-1].endswith(text[-40:])

    def test_consecutive_chunks_overlap(self):
        text = paragraphs(10)

        chunks = split_text(text, 2000, 200)

        for previous, current in zip(chunks, chunks[1:]):
            assert current[:50] in previous

    def test_chunks_cover_all_text(self):
        text = normalize_text(numbered_paragraphs(23, 311) + "\n\nA final short line.")

        chunks = split_text(text, 1000, 150)

        assert uncovered(text, chunks).strip() == ""

    def test_chunk_size_bound(self):
        text = paragraphs(40, 233)

        chunks = split_text(text, 800, 100)

        assert len(chunks) > 1
        for chunk in chunks:
            assert len(chunk) <= 800

    def test_text_without_breaks_is_cut_at_window(self):
        text = "x" * 4500

        chunks = split_text(text, 2000, 200)

        assert [len(c) for c in chunks] == [2000, 2000, 900]

    def test_falls_back_to_sentence_boundary(self):
        sentence = "The warranty covers manufacturing defects only. "
        text = (sentence * 60).strip()

        chunks = split_text(text, 1000, 100)

        assert chunks[0].endswith(".")
        assert len(chunks[0]) > 500

    def test_is_deterministic(self):
        text = paragraphs(12, 401)

        assert split_text(text) == split_text(text)

    def test_last_window_runs_to_end_of_text(self):
        text = "y" * 2150

        chunks = split_text(text, 2000, 200)

        assert [len(c) for c in chunks] == [2000, 350]


class TestNormalize:
    """Tests for normalize_text."""

    def test_collapses_blank_lines_and_line_endings(self):
        assert normalize_text("  a\r\nb\n\n\n\nc  ") == "a\nb\n\nc"


class TestConfiguration:
    """Tests for chunker validation."""

    def test_rejects_non_positive_chunk_size(self):
        with pytest.raises(ValidationException):
            TextChunker(chunk_size=0)

    def test_rejects_overlap_not_smaller_than_chunk(self):
        with pytest.raises(ValidationException):
            TextChunker(chunk_size=100, overlap=100)

    def test_from_settings(self):
        chunker = TextChunker.from_settings()

        assert chunker.chunk_size == 2000
        assert chunker.overlap == 200
