"""Prose utilities: word counting, paragraph splitting, context windows."""

import re

_BLANK_LINE_RE = re.compile(r"\n\s*\n")


def count_words(text: str) -> int:
    """Count whitespace-separated tokens."""
    return len(text.split())


def split_into_paragraphs(text: str) -> list[str]:
    """Split prose on blank-line boundaries, dropping empty paragraphs.

    Single newlines stay inside their paragraph.
    """
    if not text:
        return []
    return [p.strip() for p in _BLANK_LINE_RE.split(text) if p.strip()]


def tail_text(content: str, char_limit: int = 3000) -> str:
    """Return the last `char_limit` characters of the content."""
    if not content:
        return ""
    if len(content) <= char_limit:
        return content
    return content[-char_limit:]


def join_sections(*parts: str) -> str:
    """Join non-empty sections with a blank line."""
    return "\n\n".join(p for p in parts if p and p.strip())


def chunk_words(text: str, size: int) -> list[str]:
    """Split text into chunks of at most `size` words, each with a trailing space.

    Concatenating the chunks gives the words of the text separated by single spaces.
    """
    words = text.split()
    if size < 1:
        size = 1
    return [" ".join(words[i:i + size]) + " " for i in range(0, len(words), size)]
