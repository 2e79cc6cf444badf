"""Template rendering engine for Pegasus.

Layouts are Jinja2 templates looked up in the source directory's ``_layouts``
and ``_partials`` folders, falling back to the minimal layouts bundled in
``pegasus/templates/layouts``. The bundled layouts are not a theme; they exist
so a repository without any layouts still produces a browsable site.

Key class:
- TemplateEngine: Renders documents and listing pages with their layouts.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup
from pygments.formatters import HtmlFormatter

from .collections import DocumentCollection, Term, TermCollection
from .content import Document, Heading
from .html_utils import escape_html, join_root_url

BUILTIN_LAYOUTS_DIR = Path(__file__).parent / "templates" / "layouts"

__all__ = ["TemplateEngine", "render_toc"]


def render_toc(document: Document) -> Markup:
    """Render a document's headings as a nested ``<ul>`` table of contents.

    Args:
        document: Document whose ``toc`` is rendered.

    Returns:
        Markup-safe HTML, or empty Markup if the document has no headings.
    """
    if not document.toc:
        return Markup("")
    return _render_toc_from_headings(document.toc)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists when going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        elif not level_stack or level > level_stack[-1]:  # pragma: no branch
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        source_dir: Directory containing ``_layouts`` and ``_partials``.
        data: Global site data.
        root_url: Base URL prepended by ``url_for`` when set.
        env: Jinja2 environment.
        documents: All documents, as a DocumentCollection.
        tags: TermCollection of tags.
        categories: TermCollection of categories.
    """

    def __init__(self, source_dir: Path, data: dict[str, Any], root_url: str | None = None):
        self.source_dir = source_dir
        self.data = data
        self.root_url = root_url or ""
        self.env = Environment(
            loader=ChoiceLoader(
                [
                    FileSystemLoader([source_dir / "_layouts", source_dir / "_partials"]),
                    FileSystemLoader(BUILTIN_LAYOUTS_DIR),
                ]
            ),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            keep_trailing_newline=True,
        )
        self.documents = DocumentCollection([])
        self.tags = TermCollection({}, "tags")
        self.categories = TermCollection({}, "categories")
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["data"] = self.data
        self.env.globals["site"] = self.data
        self.env.globals["documents"] = self.documents
        self.env.globals["posts"] = self.documents.dated().sorted()
        self.env.globals["tags"] = self.tags
        self.env.globals["categories"] = self.categories
        self.env.globals["url_for"] = self.url_for
        self.env.globals["pygments_css"] = self._pygments_css
        self.env.globals["render_toc"] = render_toc

    @staticmethod
    def _pygments_css() -> str:
        """Return Pygments CSS rules for the ``.highlight`` class."""
        return HtmlFormatter().get_style_defs(".highlight")

    def update_collections(
        self, documents: DocumentCollection, tags: TermCollection, categories: TermCollection
    ) -> None:
        """Expose the loaded documents and taxonomies to templates."""
        self.documents = documents
        self.tags = tags
        self.categories = categories
        self._install_globals()

    def url_for(self, path: str) -> str:
        """Generate a URL for a path, applying root_url if configured.

        Args:
            path: Site path such as ``/posts/hello/`` or ``assets/app.css``.

        Returns:
            The path made root-relative, or absolute when root_url is set.
        """
        if path.startswith(("http://", "https://", "//")):
            return path
        rooted = path if path.startswith("/") else f"/{path}"
        if self.root_url:
            return join_root_url(self.root_url, rooted)
        return rooted

    def render_document(self, document: Document) -> str:
        """Render a document with its layout.

        Args:
            document: Document to render.

        Returns:
            Rendered HTML string.
        """
        context = {
            "page": document,
            "current_page": document,
            "frontmatter": document.frontmatter,
            "page_title": document.title,
        }
        template = self.resolve_layout_template([document.layout])
        return template.render(page_content=Markup(document.content), **context)

    def render_listing(
        self,
        layouts: list[str],
        title: str,
        documents: DocumentCollection,
        url: str,
        term: Term | None = None,
    ) -> str:
        """Render a listing page (home page, tag or category archive).

        Args:
            layouts: Layout names to try in order before the bundled ``listing``.
            title: Page title.
            documents: Documents to list.
            url: Root-relative URL of the page.
            term: The tag or category being listed, if any.

        Returns:
            Rendered HTML string.
        """
        template = self.resolve_layout_template([*layouts, "listing"])
        return template.render(
            page=None,
            page_title=title,
            listing=documents,
            term=term,
            listing_url=url,
        )

    def resolve_layout_template(self, layouts: list[str]):
        """Return the first layout template that exists, else ``default``.

        Args:
            layouts: Layout names to try in order.

        Returns:
            Jinja2 Template object.
        """
        names = [*layouts, "default"]
        for name in names:
            for suffix in (".html.jinja", ".jinja", ".html", ""):
                try:
                    return self.env.get_template(f"{name}{suffix}")
                except TemplateNotFound:
                    continue
        return self.env.from_string("{{ page_content }}")
