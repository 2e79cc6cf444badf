"""Content renderers for Pegasus.

Each renderer turns the body of one kind of source file into HTML and reports
the headings it found for table-of-contents generation.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
- HTMLRenderer: Passes through HTML content.
- RendererRegistry: Picks the renderer for a source path.
"""

from __future__ import annotations

import posixpath
import re
from pathlib import Path
from typing import TYPE_CHECKING

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html
from .protocols import ContentRenderer
from .utils import is_html, is_markdown

if TYPE_CHECKING:
    from .content import Heading

IMAGE_SRC_RE = re.compile(r'(<img\s+[^>]*src=")([^"]+)(")', re.IGNORECASE)
MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url", "task_lists"]


def generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text, possibly containing inline HTML.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


def rewrite_relative_src(src: str, folder: str) -> str:
    """Make a relative image source root-relative to the document's folder.

    Pages are written to pretty URLs one directory deeper than their source
    file, so a relative ``images/a.png`` next to ``posts/x.md`` must become
    ``/posts/images/a.png`` to keep resolving.

    Args:
        src: Original image source.
        folder: Folder of the source document, relative to the source dir.

    Returns:
        Rewritten image source.
    """
    if src.startswith(("http://", "https://", "//", "/", "data:", "#")):
        return src
    joined = posixpath.normpath(posixpath.join("/", folder, src))
    return joined


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading anchors, image rewriting and highlighting.

    Attributes:
        folder: Folder containing the document being rendered.
        headings: Heading objects collected during rendering.
    """

    def __init__(self, folder: str):
        super().__init__(escape=False)
        self.folder = folder
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        from .content import Heading

        base_id = generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        self.headings.append(
            Heading(id=heading_id, text=re.sub(r"<[^>]+>", "", text), level=level)
        )
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def image(self, text: str, url: str, title: str | None = None) -> str:
        return super().image(text, rewrite_relative_src(url or "", self.folder), title)

    def block_code(self, code: str, info: str | None = None) -> str:
        lang = info.split()[0] if info else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML."""

    @property
    def source_type(self) -> str:
        return "markdown"

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str, folder: str) -> tuple[str, list[Heading]]:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source content (front-matter already removed).
            folder: Folder containing the document.

        Returns:
            Tuple of (rendered HTML, list of Heading objects).
        """
        renderer = _HighlightRenderer(folder)
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        html = markdown(content)
        return html, renderer.headings


class HTMLRenderer:
    """Passes HTML bodies through, only fixing relative image sources."""

    @property
    def source_type(self) -> str:
        return "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str, folder: str) -> tuple[str, list[Heading]]:
        def repl(match: re.Match) -> str:
            return f"{match.group(1)}{rewrite_relative_src(match.group(2), folder)}{match.group(3)}"

        return IMAGE_SRC_RE.sub(repl, content), []


class RendererRegistry:
    """Registry for content renderers.

    New source types are supported by registering another renderer; the
    first renderer whose ``can_render`` accepts a path wins.
    """

    def __init__(self):
        self._renderers: list[ContentRenderer] = []
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer: ContentRenderer) -> None:
        """Register a new renderer.

        Args:
            renderer: A ContentRenderer implementation.

        Raises:
            TypeError: If renderer does not implement ContentRenderer.
        """
        if not isinstance(renderer, ContentRenderer):
            raise TypeError(f"{type(renderer).__name__} is not a ContentRenderer")
        self._renderers.append(renderer)

    def get_renderer(self, path: Path) -> ContentRenderer | None:
        """Get the renderer for a file, or None when no renderer accepts it."""
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None

    def accepts(self, path: Path) -> bool:
        return self.get_renderer(path) is not None


# Default renderer registry instance
default_renderer_registry = RendererRegistry()
