"""Plain-text helpers shared by the text steps."""

from __future__ import annotations


def drop_first_line(text: str) -> str:
    """Drop the first line of multi-line ``text``; single-line text is kept."""
    _, newline, rest = text.partition("\n")
    return rest if newline else text


def chunk_text(text: str, max_chars: int) -> list[str]:
    """
    Split ``text`` into chunks of at most ``max_chars`` characters.

    Breaks after the last newline in the window, else after the last
    whitespace, provided that keeps the chunk over half full; otherwise
    cuts hard.  ``"".join(chunks) == text`` always holds.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    chunks: list[str] = []
    start = 0
    length = len(text)
    half = max_chars // 2

    while length - start > max_chars:
        window = text[start:start + max_chars]
        cut = window.rfind("\n") + 1
        if cut <= half:
            cut = max(window.rfind(" "), window.rfind("\t")) + 1
        if cut <= half:
            cut = max_chars
        chunks.append(text[start:start + cut])
        start += cut

    if start < length:
        chunks.append(text[start:])
    return chunks
