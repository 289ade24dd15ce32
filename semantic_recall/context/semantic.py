"""
Semantic Context - budgeted prompt context with relevance filtering.

Combines the always-included window around the cursor with auxiliary
items (pinned notes, document sections, history) filtered by the
semantic memory engine, then fits the result into a character budget.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Union

from ..memory.manager import create_semantic_filter
from ..memory.types import ScoredItem, SearchOptions
from .engine import extract_window


logger = logging.getLogger(__name__)


# Caller options: a full SearchOptions, or a dict overriding single fields
OptionsLike = Union[SearchOptions, Dict[str, Any], None]

PINNED_NOTE_DEFAULTS = SearchOptions(top_k=3, min_score=0.1, max_overlap=0.9)
DOCUMENT_SECTION_DEFAULTS = SearchOptions(top_k=5, min_score=0.15, max_overlap=0.85)
HISTORY_DEFAULTS = SearchOptions(top_k=5, min_score=0.2, max_overlap=0.8)


def merge_search_options(defaults: SearchOptions, options: OptionsLike) -> SearchOptions:
    """
    Apply caller options on top of per-kind defaults.

    A dict overrides only the fields it names. A SearchOptions instance
    replaces the defaults entirely.
    """
    if options is None:
        return defaults
    if isinstance(options, SearchOptions):
        return options
    return replace(defaults, **options)


@dataclass
class ContextOptions:
    """
    Options for semantic context assembly.

    Attributes:
        max_context_chars: Budget for local context plus items
        local_window_chars: Total width of the window around the cursor
        enable_semantic_filtering: Filter items by relevance; when off,
            every item is kept (then trimmed to the budget)
        search_options: Overrides for the pinned-note search defaults
    """

    max_context_chars: int = 3000
    local_window_chars: int = 3000
    enable_semantic_filtering: bool = True
    search_options: OptionsLike = None


@dataclass
class SemanticContext:
    """Assembled context: local window plus the items that fit the budget."""

    local_context: str
    relevant_items: List[str] = field(default_factory=list)
    total_chars: int = 0
    cursor_offset: int = 0


@dataclass
class PromptContext:
    """Formatted prompt context with assembly statistics."""

    context: str
    relevant_items: List[str]
    stats: Dict[str, int]
    used_fallback: bool = False


def _filter(
    documents: Sequence[Dict[str, Any]],
    query: str,
    defaults: SearchOptions,
    options: OptionsLike,
) -> List[ScoredItem]:
    return create_semantic_filter(documents, query, merge_search_options(defaults, options))


def filter_pinned_notes(
    notes: Sequence[str],
    query: str,
    options: OptionsLike = None,
) -> List[str]:
    """
    Keep the pinned notes most relevant to a query.

    Args:
        notes: Note texts
        query: Query or surrounding context
        options: Overrides for top_k=3, min_score=0.1, max_overlap=0.9

    Returns:
        Note texts, most relevant first
    """
    if not notes:
        return []

    documents = [{"id": f"note-{i}", "text": note} for i, note in enumerate(notes)]
    results = _filter(documents, query, PINNED_NOTE_DEFAULTS, options)
    return [r.text for r in results]


def filter_document_sections(
    sections: Sequence[Dict[str, Any]],
    query: str,
    options: OptionsLike = None,
) -> List[Dict[str, Any]]:
    """
    Keep the document sections most relevant to a query.

    Args:
        sections: Dicts with "id", "text" and optional "heading"
        query: Query or surrounding context
        options: Overrides for top_k=5, min_score=0.15, max_overlap=0.85

    Returns:
        Dicts with "id", "text", "heading" and "score"
    """
    if not sections:
        return []

    by_id = {s["id"]: s for s in sections}
    results = _filter(sections, query, DOCUMENT_SECTION_DEFAULTS, options)
    return [
        {
            "id": r.id,
            "text": r.text,
            "heading": by_id[r.id].get("heading"),
            "score": r.score,
        }
        for r in results
    ]


def filter_history(
    items: Sequence[Dict[str, Any]],
    query: str,
    options: OptionsLike = None,
) -> List[Dict[str, Any]]:
    """
    Keep the history entries most relevant to a query.

    Args:
        items: Dicts with "id", "text" and optional "type"
        query: Query or surrounding context
        options: Overrides for top_k=5, min_score=0.2, max_overlap=0.8

    Returns:
        Dicts with "id", "text", "type" and "score"
    """
    if not items:
        return []

    by_id = {h["id"]: h for h in items}
    results = _filter(items, query, HISTORY_DEFAULTS, options)
    return [
        {
            "id": r.id,
            "text": r.text,
            "type": by_id[r.id].get("type"),
            "score": r.score,
        }
        for r in results
    ]


def trim_to_budget(local_context: str, items: Sequence[str], max_chars: int) -> List[str]:
    """
    Drop items from the end until local context plus items fit max_chars.

    The local context is never shortened, so when it alone exceeds the
    budget every item is dropped.
    """
    kept = list(items)
    total = len(local_context) + sum(len(item) for item in kept)
    while kept and total > max_chars:
        total -= len(kept.pop())
    return kept


def _build_context(local_text: str, cursor_offset: int, items: List[str], max_chars: int) -> SemanticContext:
    kept = trim_to_budget(local_text, items, max_chars)
    return SemanticContext(
        local_context=local_text,
        relevant_items=kept,
        total_chars=len(local_text) + sum(len(item) for item in kept),
        cursor_offset=cursor_offset,
    )


def assemble_semantic_context(
    full_document: str,
    cursor_position: int,
    query: str,
    auxiliary_items: Sequence[str] = (),
    options: Optional[ContextOptions] = None,
) -> SemanticContext:
    """
    Assemble context for a generation request.

    The window of ``local_window_chars`` around the cursor is always
    included. Auxiliary items are ranked against the query joined with
    that window, then dropped least relevant first until everything
    fits ``max_context_chars``.

    Args:
        full_document: Complete document text
        cursor_position: Cursor position in the document
        query: The user's request
        auxiliary_items: Candidate item texts, such as pinned notes
        options: Assembly options

    Returns:
        The assembled SemanticContext
    """
    options = options or ContextOptions()
    local = extract_window(full_document, cursor_position, options.local_window_chars)

    if options.enable_semantic_filtering and auxiliary_items:
        items = filter_pinned_notes(
            auxiliary_items,
            f"{query} {local.text}",
            options.search_options,
        )
    else:
        items = list(auxiliary_items)

    context = _build_context(local.text, local.cursor_offset, items, options.max_context_chars)
    logger.debug(
        f"Assembled context: {context.total_chars} chars, "
        f"{len(context.relevant_items)}/{len(auxiliary_items)} items"
    )
    return context


def format_semantic_context_for_prompt(context: SemanticContext) -> str:
    """Format assembled context as a prompt section."""
    parts = []

    if context.relevant_items:
        parts.append("RELEVANT CONTEXT AND GUIDANCE:\n")
        for i, item in enumerate(context.relevant_items, 1):
            parts.append(f"{i}. {item}\n")
        parts.append("\n")

    if context.local_context:
        parts.append("DOCUMENT CONTEXT:\n")
        parts.append(context.local_context)
        parts.append("\n")

    return "".join(parts)


def build_prompt_context(
    prompt: str,
    full_document: str,
    cursor_position: int,
    auxiliary_items: Sequence[str] = (),
    options: Optional[ContextOptions] = None,
) -> PromptContext:
    """
    Build the formatted context for a generation request.

    Falls back to the unfiltered items, trimmed to the budget, when
    filtering fails or keeps nothing while items exist.

    Args:
        prompt: The user's request
        full_document: Complete document text
        cursor_position: Cursor position in the document
        auxiliary_items: Candidate item texts
        options: Assembly options

    Returns:
        PromptContext with the formatted text and statistics
    """
    options = options or ContextOptions()
    used_fallback = False

    try:
        context = assemble_semantic_context(
            full_document, cursor_position, prompt, auxiliary_items, options
        )
    except Exception as e:
        logger.error(f"Context assembly failed, using unfiltered items: {e}")
        context = None

    if context is None or (auxiliary_items and not context.relevant_items):
        if context is not None:
            logger.warning("No relevant items found, using unfiltered items")
        local = extract_window(full_document, cursor_position, options.local_window_chars)
        context = _build_context(
            local.text, local.cursor_offset, list(auxiliary_items), options.max_context_chars
        )
        used_fallback = True

    return PromptContext(
        context=format_semantic_context_for_prompt(context),
        relevant_items=context.relevant_items,
        stats={
            "total_items": len(auxiliary_items),
            "filtered_items": len(context.relevant_items),
            "context_chars": context.total_chars,
        },
        used_fallback=used_fallback,
    )
