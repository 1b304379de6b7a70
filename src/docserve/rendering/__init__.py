"""Rendering of document text into HTML."""

from .markdown_renderer import ERROR_PLACEHOLDER, MarkdownRenderer, has_mermaid, wrap_tables_for_scroll

__all__ = [
    "ERROR_PLACEHOLDER",
    "MarkdownRenderer",
    "has_mermaid",
    "wrap_tables_for_scroll",
]
