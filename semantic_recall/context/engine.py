"""
Context Engine - keyword-based context extraction around a cursor.

Pure text utilities with no embedding step: local windows, section
splitting, overlap-based relevance, duplicate removal, compression and
heading detection. The semantic assembler in ``semantic.py`` builds on
the window extraction here.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from ..memory.similarity import overlap_similarity


# Sections longer than this are split again on single newlines
MAX_SECTION_CHARS = 1000

# Sections at or below this overlap score are never considered related
MIN_SECTION_SCORE = 0.05

_BLANK_LINES = re.compile(r"\n{2,}")
_SENTENCE_END = re.compile(r"[.!?]+")
_MARKDOWN_HEADING = re.compile(r"^#{1,6}\s+.+")
_CAPS_HEADING = re.compile(r"^[A-Z][A-Z\s]{10,}$")
_SUBJECT_LINE = re.compile(r"^Subject:\s*.+", re.IGNORECASE)


@dataclass
class LocalContext:
    """Text around a cursor and the cursor position inside it."""

    text: str
    cursor_offset: int


@dataclass
class ContextChunk:
    """A document section with its relevance score and section index."""

    text: str
    score: float
    position: int


@dataclass
class ContextEngineOptions:
    """Options for keyword-based context assembly."""

    local_window: int = 1500
    max_related_sections: int = 3
    enable_relevance_scoring: bool = True
    enable_deduplication: bool = True


@dataclass
class AssembledContext:
    """Result of keyword-based context assembly."""

    local_context: str
    cursor_offset: int
    related_sections: List[str] = field(default_factory=list)
    total_chars: int = 0


def get_local_context(text: str, cursor: int, window: int = 800) -> LocalContext:
    """
    Extract ``window`` characters on each side of the cursor.

    Args:
        text: Full document text
        cursor: Cursor position
        window: Characters to take in each direction

    Returns:
        The clamped window and the cursor offset inside it
    """
    cursor = min(max(cursor, 0), len(text))
    start = max(0, cursor - window)
    end = min(len(text), cursor + window)
    return LocalContext(text=text[start:end], cursor_offset=cursor - start)


def extract_window(text: str, cursor: int, size: int) -> LocalContext:
    """
    Extract a window of ``size`` characters in total, centered on the cursor.

    ``size // 2`` characters come before the cursor and the rest after,
    clamped at the document boundaries.
    """
    cursor = min(max(cursor, 0), len(text))
    before = size // 2
    start = max(0, cursor - before)
    end = min(len(text), cursor + (size - before))
    return LocalContext(text=text[start:end], cursor_offset=cursor - start)


def keyword_overlap_score(a: str, b: str) -> float:
    """Jaccard similarity of the term sets of two texts."""
    return overlap_similarity(a, b)


def split_into_sections(text: str) -> List[str]:
    """
    Split text into paragraph-like sections.

    Splits on runs of blank lines. Sections longer than 1000 characters
    are split again on single newlines. Whitespace-only sections are
    dropped.
    """
    refined = []
    for section in _BLANK_LINES.split(text):
        if len(section) > MAX_SECTION_CHARS:
            refined.extend(line for line in section.split("\n") if line.strip())
        elif section.strip():
            refined.append(section)
    return refined


def get_relevant_sections(
    text: str,
    query: str,
    max_sections: int = 3,
) -> List[ContextChunk]:
    """
    Score each section of a document against a query by keyword overlap.

    Args:
        text: Full document text
        query: Query text, usually the local context around the cursor
        max_sections: Maximum number of sections to return

    Returns:
        Sections scoring above 0.05, highest first
    """
    scored = [
        ContextChunk(text=section, score=keyword_overlap_score(section, query), position=i)
        for i, section in enumerate(split_into_sections(text))
    ]
    relevant = [chunk for chunk in scored if chunk.score > MIN_SECTION_SCORE]
    relevant.sort(key=lambda c: c.score, reverse=True)
    return relevant[:max_sections]


def remove_duplicates(chunks: List[ContextChunk]) -> List[ContextChunk]:
    """
    Drop near-duplicate chunks by their 60-character prefix.

    Chunks whose prefix is 10 characters or shorter are dropped too.
    """
    unique = []
    seen = set()
    for chunk in chunks:
        key = chunk.text[:60].lower().strip()
        if key in seen or len(key) <= 10:
            continue
        seen.add(key)
        unique.append(chunk)
    return unique


def compress_chunks(
    chunks: List[ContextChunk],
    max_chars_per_chunk: int = 200,
) -> List[str]:
    """
    Shorten chunks to roughly ``max_chars_per_chunk`` characters.

    Keeps the first sentence, appends further sentences while they fit,
    and ends the result with a period.
    """
    compressed_chunks = []
    for chunk in chunks:
        sentences = [s for s in _SENTENCE_END.split(chunk.text) if s.strip()]
        if not sentences:
            compressed_chunks.append(chunk.text[:max_chars_per_chunk])
            continue

        compressed = sentences[0].strip()
        for sentence in sentences[1:]:
            if len(compressed) >= max_chars_per_chunk:
                break
            sentence = sentence.strip()
            if len(compressed) + len(sentence) + 2 < max_chars_per_chunk:
                compressed += ". " + sentence

        if not compressed.endswith("."):
            compressed += "."
        compressed_chunks.append(compressed)
    return compressed_chunks


def assemble_context(
    full_text: str,
    cursor: int,
    options: Optional[ContextEngineOptions] = None,
) -> AssembledContext:
    """
    Assemble prompt context from a document using keyword relevance.

    Args:
        full_text: Complete document text
        cursor: Cursor position
        options: Assembly options

    Returns:
        Local window, cursor offset and up to ``max_related_sections``
        compressed related sections
    """
    options = options or ContextEngineOptions()

    local = get_local_context(full_text, cursor, options.local_window)

    related_sections: List[str] = []
    # Short documents fit entirely in the local window
    if options.enable_relevance_scoring and len(full_text) > options.local_window * 2:
        chunks = get_relevant_sections(
            full_text, local.text, options.max_related_sections * 2
        )
        if options.enable_deduplication:
            chunks = remove_duplicates(chunks)
        related_sections = compress_chunks(chunks[:options.max_related_sections], 250)

    return AssembledContext(
        local_context=local.text,
        cursor_offset=local.cursor_offset,
        related_sections=related_sections,
        total_chars=len(local.text) + sum(len(s) for s in related_sections),
    )


def format_context_for_prompt(
    context: AssembledContext,
    include_related: bool = True,
) -> str:
    """
    Format assembled context as a prompt section.

    Args:
        context: Assembled context
        include_related: Whether to append the related sections

    Returns:
        Formatted context text
    """
    parts = []

    if context.local_context.strip():
        before = context.local_context[:context.cursor_offset]
        after = context.local_context[context.cursor_offset:]
        last_words = " ".join(before.split()[-5:])
        next_words = " ".join(after.split()[:5])

        parts.append(f"CONTEXT BEFORE CURSOR:\n{before or '[Start of document]'}\n\n")
        parts.append(f"CONTEXT AFTER CURSOR:\n{after or '[End of document]'}\n\n")

        if last_words and next_words:
            parts.append(
                "Note: The cursor is between existing text. Generate text that "
                "continues naturally from the context above.\n\n"
            )
        elif last_words:
            parts.append(f'CURSOR AT END: Text will continue after "...{last_words}"\n\n')
        elif next_words:
            parts.append(f'CURSOR AT START: Text will come before "{next_words}..."\n\n')

    if include_related and context.related_sections:
        parts.append("RELATED SECTIONS FROM DOCUMENT:\n")
        for i, section in enumerate(context.related_sections, 1):
            parts.append(f"{i}. {section.strip()}\n\n")

    return "".join(parts).strip()


def extract_document_structure(text: str) -> List[str]:
    """
    List the headings of a document.

    Recognizes markdown headings, ALL-CAPS heading lines and
    ``Subject:`` lines.
    """
    headings = []
    for line in text.split("\n"):
        line = line.strip()
        if _MARKDOWN_HEADING.match(line):
            headings.append(line.lstrip("#").strip())
        elif _CAPS_HEADING.match(line):
            headings.append(line)
        elif _SUBJECT_LINE.match(line):
            headings.append(re.sub(r"^Subject:\s*", "", line, flags=re.IGNORECASE))
    return headings


def get_nearest_heading(text: str, cursor: int) -> Optional[str]:
    """Return the closest markdown or ALL-CAPS heading before the cursor."""
    for line in reversed(text[:cursor].split("\n")):
        line = line.strip()
        if not line:
            continue
        if _MARKDOWN_HEADING.match(line):
            return line.lstrip("#").strip()
        if _CAPS_HEADING.match(line):
            return line
    return None
