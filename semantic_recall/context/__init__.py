"""
Context assembly for generation requests.

- Keyword-based local context utilities (``engine``)
- Semantic filtering of auxiliary items within a character budget
  (``semantic``)
"""

from .engine import (
    AssembledContext,
    ContextChunk,
    ContextEngineOptions,
    LocalContext,
    assemble_context,
    extract_document_structure,
    extract_window,
    format_context_for_prompt,
    get_local_context,
    get_nearest_heading,
)
from .semantic import (
    ContextOptions,
    PromptContext,
    SemanticContext,
    assemble_semantic_context,
    build_prompt_context,
    filter_document_sections,
    filter_history,
    filter_pinned_notes,
    format_semantic_context_for_prompt,
)

__all__ = [
    # Engine
    "AssembledContext",
    "ContextChunk",
    "ContextEngineOptions",
    "LocalContext",
    "assemble_context",
    "extract_document_structure",
    "extract_window",
    "format_context_for_prompt",
    "get_local_context",
    "get_nearest_heading",
    # Semantic
    "ContextOptions",
    "PromptContext",
    "SemanticContext",
    "assemble_semantic_context",
    "build_prompt_context",
    "filter_document_sections",
    "filter_history",
    "filter_pinned_notes",
    "format_semantic_context_for_prompt",
]
