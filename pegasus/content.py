"""Content store for Pegasus.

This module discovers the documents under the source directory, parses their
front-matter and renders their bodies. The store is read-only: nothing here
writes to the source tree.

Key classes:
- Document: A source document with its metadata and rendered HTML.
- Heading: A heading collected for table-of-contents generation.
- FileContentLoader: Lists document and static files in path order.
- LayoutResolver: Picks the layout template for a document.
- UrlDeriver: Maps a source path to its pretty URL.
- DocumentBuilder: Builds a Document from one source file.
- ContentStore: Loads every document, ordered by path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import ContentError
from .frontmatter import CompositeMetadataExtractor, default_metadata_extractor
from .renderers import RendererRegistry, default_renderer_registry
from .utils import slugify

logger = logging.getLogger(__name__)

LAYOUT_SUFFIXES = (".html.jinja", ".jinja", ".html")


@dataclass
class Heading:
    """A heading extracted from rendered content.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The text content of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class Document:
    """A source document and everything derived from it.

    Attributes:
        path: Path to the source file.
        title: Human-readable title.
        body: Raw body text after the front-matter block.
        date: Publication date, or None for undated documents.
        categories: Category names in front-matter order.
        tags: Tag names in front-matter order.
        content: Rendered HTML body.
        description: Short description, at most 160 characters.
        excerpt: Full first paragraph as plain text.
        url: Root-relative URL of the generated page.
        slug: URL-friendly slug.
        layout: Layout template name.
        group: First folder component (e.g. 'posts').
        folder: Folder path relative to the source directory.
        filename: Name of the source file.
        source_type: "markdown" or "html".
        draft: Whether this is a draft.
        frontmatter: Raw front-matter mapping.
        toc: Headings for the table of contents.
    """

    path: Path
    title: str
    body: str
    date: datetime | None
    categories: list[str]
    tags: list[str]
    content: str
    description: str
    excerpt: str
    url: str
    slug: str
    layout: str
    group: str
    folder: str
    filename: str
    source_type: str
    draft: bool = False
    frontmatter: dict[str, Any] = field(default_factory=dict)
    toc: list[Heading] = field(default_factory=list)

    @property
    def rel_path(self) -> str:
        """Source path relative to the source directory, POSIX style."""
        if self.folder:
            return f"{self.folder}/{self.filename}"
        return self.filename


class FileContentLoader:
    """Lists the files of a source directory.

    Directories whose name starts with ``_`` (layouts, partials) are never
    content. Files whose name starts with ``_`` are drafts.

    Attributes:
        source_dir: Directory containing the documents.
        renderer_registry: Decides which files are documents.
    """

    def __init__(self, source_dir: Path, renderer_registry: RendererRegistry | None = None):
        self.source_dir = source_dir
        self.renderer_registry = renderer_registry or default_renderer_registry

    def _iter_visible(self) -> list[Path]:
        files: list[Path] = []
        for path in self.source_dir.rglob("*"):
            if path.is_dir():
                continue
            rel = path.relative_to(self.source_dir)
            if any(part.startswith(("_", ".")) for part in rel.parts[:-1]):
                continue
            if rel.name.startswith("."):
                continue
            files.append(path)
        return sorted(files, key=lambda p: p.relative_to(self.source_dir).as_posix())

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """List document files in path order.

        Args:
            include_drafts: Whether to include ``_``-prefixed files.

        Returns:
            Sorted list of paths to documents.
        """
        files: list[Path] = []
        for path in self._iter_visible():
            if not self.renderer_registry.accepts(path):
                continue
            if path.name.startswith("_") and not include_drafts:
                continue
            files.append(path)
        return files

    def iter_static_files(self) -> list[Path]:
        """List non-document files (images, downloads) in path order."""
        return [
            path
            for path in self._iter_visible()
            if not self.renderer_registry.accepts(path) and not path.name.startswith("_")
        ]


class LayoutResolver:
    """Resolves layout templates for documents.

    Candidates, most specific first:
    1. the front-matter ``layout`` key
    2. ``{folder}/{name}``
    3. ``{group}``
    4. ``post`` for dated documents, ``page`` otherwise
    5. ``default``

    Attributes:
        layout_dir: Directory holding layout templates.
    """

    def __init__(self, source_dir: Path):
        self.layout_dir = source_dir / "_layouts"

    def exists(self, name: str) -> bool:
        return any((self.layout_dir / f"{name}{suffix}").exists() for suffix in LAYOUT_SUFFIXES)

    def resolve(self, path: Path, folder: str, dated: bool, explicit: str | None = None) -> str:
        """Resolve the layout name for a document.

        Args:
            path: Path to the source file.
            folder: Folder containing the document.
            dated: Whether the document has a publication date.
            explicit: Layout requested in front-matter, if any.

        Returns:
            Layout name to use.
        """
        candidates: list[str] = []
        if explicit:
            candidates.append(explicit)
        if folder:
            candidates.append(f"{folder}/{path.stem}")
            candidates.append(group_from_folder(folder))
        else:
            candidates.append(path.stem)
        candidates.append("post" if dated else "page")

        for candidate in candidates:
            if self.exists(candidate):
                return candidate
        return "default"


def group_from_folder(folder: str) -> str:
    """Return the first component of a folder path, or an empty string."""
    if not folder:
        return ""
    return Path(folder).parts[0]


class UrlDeriver:
    """Derives pretty URLs for documents.

    ``posts/2024-01-15-hello.md`` becomes ``/posts/hello/`` and an
    ``index.md`` maps to its folder URL.
    """

    def derive(self, rel: Path, slug: str) -> str:
        """Derive the URL for a document.

        Args:
            rel: Relative path from the source directory.
            slug: URL-friendly slug.

        Returns:
            Root-relative URL ending with a slash.
        """
        segments = [slugify(p) for p in rel.parent.parts if p]
        url_parts = segments if slug == "index" else segments + [slug]
        path = "/".join(url_parts)
        return f"/{path}/" if path else "/"


class DocumentBuilder:
    """Builds Document objects from source files.

    Attributes:
        source_dir: Directory containing the documents.
        renderer_registry: Registry of content renderers.
        metadata_extractor: Composite metadata extractor.
        layout_resolver: Layout resolver instance.
        url_deriver: URL deriver instance.
    """

    def __init__(
        self,
        source_dir: Path,
        renderer_registry: RendererRegistry | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        self.source_dir = source_dir
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.metadata_extractor = metadata_extractor or default_metadata_extractor
        self.layout_resolver = LayoutResolver(source_dir)
        self.url_deriver = UrlDeriver()

    def build(self, path: Path) -> Document:
        """Build a Document from a source file.

        Args:
            path: Path to the source file.

        Returns:
            Document object.

        Raises:
            ContentError: If the file is not UTF-8 or its front-matter is malformed.
        """
        rel = path.relative_to(self.source_dir)
        folder = rel.parent.as_posix() if rel.parent != Path(".") else ""
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ContentError(path, "File is not valid UTF-8", exc) from exc

        metadata = self.metadata_extractor.extract(raw, path)
        body = metadata["body"]

        renderer = self.renderer_registry.get_renderer(path)
        content, toc = renderer.render(body, folder)

        slug = slugify(path.stem)
        date = metadata.get("date")
        return Document(
            path=path,
            title=metadata["title"],
            body=body,
            date=date,
            categories=metadata.get("categories", []),
            tags=metadata.get("tags", []),
            content=content,
            description=metadata.get("description", ""),
            excerpt=metadata.get("excerpt", ""),
            url=self.url_deriver.derive(rel, slug),
            slug=slug,
            layout=self.layout_resolver.resolve(
                path, folder, dated=date is not None, explicit=metadata.get("layout")
            ),
            group=group_from_folder(folder),
            folder=folder,
            filename=path.name,
            source_type=renderer.source_type,
            draft=metadata.get("draft", False),
            frontmatter=metadata["frontmatter"],
            toc=toc,
        )


class ContentStore:
    """Read-only, path-ordered collection of the documents in a source directory.

    Attributes:
        source_dir: Directory containing the documents.
    """

    def __init__(
        self,
        source_dir: Path,
        content_loader: FileContentLoader | None = None,
        document_builder: DocumentBuilder | None = None,
    ):
        self.source_dir = source_dir
        self._content_loader = content_loader or FileContentLoader(source_dir)
        self._document_builder = document_builder or DocumentBuilder(source_dir)

    def load(self, include_drafts: bool = False) -> list[Document]:
        """Load every document, ordered by relative path.

        Args:
            include_drafts: Whether to include drafts (``_`` prefix or ``draft: true``).

        Returns:
            List of Document objects.

        Raises:
            ContentError: On the first malformed document, or when two
                documents map to the same URL.
        """
        documents: list[Document] = []
        seen: dict[str, Path] = {}
        for path in self._content_loader.iter_files(include_drafts):
            document = self._document_builder.build(path)
            if document.draft and not include_drafts:
                logger.debug("Skipping draft %s", document.rel_path)
                continue
            if document.url in seen:
                raise ContentError(
                    path,
                    f"URL {document.url} is already used by {seen[document.url].relative_to(self.source_dir)}",
                )
            seen[document.url] = path
            documents.append(document)
        logger.debug("Loaded %d documents from %s", len(documents), self.source_dir)
        return documents

    def static_files(self) -> list[Path]:
        """List files copied verbatim into the build artifact."""
        return self._content_loader.iter_static_files()
