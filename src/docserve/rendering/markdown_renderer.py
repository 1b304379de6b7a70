"""
Markdown to HTML rendering.

Front matter is stripped with python-frontmatter before the body is
converted by Python-Markdown. Rendering never fails the caller: errors turn
into a visible placeholder.
"""

import logging

import frontmatter
import markdown

from docserve.core.interfaces import IRenderer
from docserve.models.exceptions import RenderError

logger = logging.getLogger(__name__)

ERROR_PLACEHOLDER = "<p>Error parsing markdown</p>"
DEFAULT_EXTENSIONS = ["extra", "sane_lists"]


def wrap_tables_for_scroll(html: str) -> str:
    """Wrap every table in a div so wide tables scroll horizontally."""
    return html.replace("<table>", '<div class="table-wrapper"><table>').replace("</table>", "</table></div>")


def has_mermaid(html: str) -> bool:
    """Check whether rendered output contains a mermaid code block."""
    return 'class="language-mermaid"' in html


class MarkdownRenderer(IRenderer):
    """Renderer for markdown documents with optional YAML front matter."""

    def __init__(self, extensions: list[str] | None = None):
        self.extensions = list(extensions) if extensions is not None else list(DEFAULT_EXTENSIONS)

    def render_strict(self, content: str) -> str:
        """
        Render markdown to HTML.

        Raises:
            RenderError: If front matter or markdown conversion fails
        """
        try:
            body = frontmatter.loads(content).content
            html = markdown.markdown(body, extensions=self.extensions)
        except Exception as e:
            raise RenderError(f"Failed to render markdown: {e}", underlying_error=e) from e
        return wrap_tables_for_scroll(html)

    def render(self, content: str) -> str:
        try:
            return self.render_strict(content)
        except RenderError as e:
            logger.warning("%s", e)
            return ERROR_PLACEHOLDER
