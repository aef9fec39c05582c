"""Split parsed documents into chunks for indexing.

Sizes are measured in UTF-8 bytes, so multi-byte characters count for more
than one unit against a chunk's size limit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

DEFAULT_LINE_CHUNK_SIZE = 1000
DEFAULT_MAX_LINES = 50
DEFAULT_SECTION_CHUNK_SIZE = 2000


@dataclass
class LocationInfo:
    """Where a chunk sits inside its source document."""

    type: str = ""
    section: str = ""
    line_start: int = 0
    line_end: int = 0


@dataclass
class Element:
    """A structural element of a document, such as a heading or paragraph."""

    type: str = ""
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Section:
    """A titled section of a document."""

    title: str = ""
    level: int = 0


@dataclass
class DocumentStructure:
    """The elements and sections a parser found in a document."""

    elements: list[Element] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)


@dataclass
class ParsedDocument:
    """Text content of a document with optional structural information."""

    content: str = ""
    structure: Optional[DocumentStructure] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Chunk:
    """A piece of a document ready to be embedded."""

    content: str
    location: LocationInfo = field(default_factory=LocationInfo)
    metadata: dict[str, Any] = field(default_factory=dict)


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


class LineBasedChunker:
    """Splits text into chunks of whole lines, bounded by size and line count."""

    name = "line_based"

    def __init__(self, max_chunk_size: int = 0, max_lines: int = 0) -> None:
        self.max_chunk_size = max_chunk_size if max_chunk_size > 0 else DEFAULT_LINE_CHUNK_SIZE
        self.max_lines = max_lines if max_lines > 0 else DEFAULT_MAX_LINES

    def split(self, doc: ParsedDocument) -> list[Chunk]:
        """Return the chunks of ``doc``; empty for blank content."""
        if not doc.content.strip():
            return []

        lines = doc.content.split("\n")
        chunks: list[Chunk] = []
        current = ""
        current_size = 0
        line_count = 0
        start = 0

        def emit(end: int) -> None:
            chunks.append(
                Chunk(
                    content=current.strip(),
                    location=LocationInfo(type="text", line_start=start, line_end=end),
                    metadata={"chunk_index": len(chunks), "line_count": line_count},
                )
            )

        for i, line in enumerate(lines):
            line_size = _byte_len(line)
            too_big = current_size + line_size + 1 > self.max_chunk_size
            too_long = line_count >= self.max_lines
            if too_big or too_long:
                if current_size > 0:
                    emit(i)
                current = ""
                current_size = 0
                line_count = 0
                start = i

            if current_size > 0:
                current += "\n"
                current_size += 1
            current += line
            current_size += line_size
            line_count += 1

        if current_size > 0:
            emit(len(lines))

        return chunks


class StructuredChunker:
    """Splits a document along its structural elements, breaking at headings."""

    name = "structured"

    def __init__(self, max_chunk_size: int = 0) -> None:
        self.max_chunk_size = max_chunk_size if max_chunk_size > 0 else DEFAULT_SECTION_CHUNK_SIZE

    def split(self, doc: ParsedDocument) -> list[Chunk]:
        """Return the chunks of ``doc``, falling back to line-based splitting."""
        if doc.structure is None or not doc.structure.elements:
            return LineBasedChunker(self.max_chunk_size, DEFAULT_MAX_LINES).split(doc)

        chunks: list[Chunk] = []
        current = ""
        current_size = 0
        section = ""
        start_line = 0

        for elem in doc.structure.elements:
            text = elem.content
            if not text.strip():
                continue
            text_size = _byte_len(text)

            is_new_section = elem.type == "heading" or (
                current_size > 0 and current_size + text_size > self.max_chunk_size
            )
            if is_new_section and current_size > 0:
                chunks.append(
                    Chunk(
                        content=current.strip(),
                        location=LocationInfo(type="text", section=section),
                        metadata={"chunk_index": len(chunks)},
                    )
                )
                current = ""
                current_size = 0

            if elem.type == "heading":
                section = text

            if current_size == 0:
                value = elem.metadata.get("start_line")
                if isinstance(value, int) and not isinstance(value, bool):
                    start_line = value

            if current_size > 0:
                current += "\n\n"
                current_size += 2
            current += text
            current_size += text_size

        if current_size > 0:
            chunks.append(
                Chunk(
                    content=current.strip(),
                    location=LocationInfo(type="text", section=section),
                    metadata={"chunk_index": len(chunks), "start_line": start_line},
                )
            )

        return chunks


class MarkdownChunker:
    """Splits markdown into chunks by heading sections."""

    name = "markdown"

    def __init__(self, max_chunk_size: int = 0) -> None:
        self.max_chunk_size = max_chunk_size if max_chunk_size > 0 else DEFAULT_SECTION_CHUNK_SIZE

    def split(self, doc: ParsedDocument) -> list[Chunk]:
        """Return the chunks of ``doc``; sections are used when the parser found any."""
        if not doc.content.strip():
            return []
        if doc.structure is not None and doc.structure.sections:
            return self._split_by_sections(doc)
        return LineBasedChunker(self.max_chunk_size, DEFAULT_MAX_LINES).split(doc)

    def _split_by_sections(self, doc: ParsedDocument) -> list[Chunk]:
        lines = doc.content.split("\n")
        chunks: list[Chunk] = []
        current = ""
        current_size = 0
        heading = ""
        level = 0
        start = 0

        def emit(end: int, continued: bool = False) -> None:
            metadata: dict[str, Any] = {"chunk_index": len(chunks), "heading_level": level}
            if continued:
                metadata["continued"] = True
            chunks.append(
                Chunk(
                    content=current.strip(),
                    location=LocationInfo(
                        type="markdown", section=heading, line_start=start, line_end=end
                    ),
                    metadata=metadata,
                )
            )

        for i, line in enumerate(lines):
            parsed = parse_heading(line)
            if parsed is not None:
                if current_size > 0:
                    emit(i)
                    current = ""
                    current_size = 0
                level, heading = parsed
                start = i

            if current_size > 0:
                current += "\n"
                current_size += 1
            current += line
            current_size += _byte_len(line)

            if current_size > self.max_chunk_size and level > 1:
                emit(i + 1, continued=True)
                current = ""
                current_size = 0
                start = i + 1

        if current_size > 0:
            emit(len(lines))

        return chunks


def parse_heading(line: str) -> Optional[tuple[int, str]]:
    """Parse a markdown ATX heading into ``(level, title)``, or ``None``."""
    line = line.strip()
    if not line.startswith("#"):
        return None

    level = len(line) - len(line.lstrip("#"))
    if level > 6:
        return None
    if level >= len(line) or line[level] != " ":
        return None

    return level, line[level:].strip()


def token_count(text: str) -> int:
    """Estimate tokens as one per four characters."""
    return len(text) // 4