"""Site building for Pegasus.

This module is the builtin static-site generator: it turns the content store
into a build artifact directory. The output directory is wiped and fully
regenerated on every build, and every step iterates in sorted order, so an
unchanged source produces byte-identical output.

Key functions:
- build_site: Build the entire site.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import TemplateError, TemplateSyntaxError

from .assets import AssetPipeline
from .collections import DocumentCollection, Term, TermCollection
from .config import PipelineConfig, check_output_dir, load_data, load_pipeline_config
from .content import ContentStore, Document
from .errors import ContentError, PipelineEnvironmentError
from .feeds import create_default_feed_registry
from .templates import TemplateEngine
from .utils import absolutize_html_urls, build_terms_index, ensure_clean_dir, iter_tree

logger = logging.getLogger(__name__)

TAXONOMY_LAYOUTS = {"tags": "tag", "categories": "category"}


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        documents: Every document rendered into the site.
        output_dir: Directory where the site was built.
        data: Global site data dictionary.
        files: Every file written, relative to output_dir, sorted.
    """

    documents: list[Document]
    output_dir: Path
    data: dict[str, Any]
    files: list[Path] = field(default_factory=list)


def build_site(
    project_root: Path,
    include_drafts: bool | None = None,
    root_url: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
    config: PipelineConfig | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include drafts; defaults to the config value.
        root_url: Base URL to absolutize links with; defaults to the config value.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Write the build output here instead of config output_dir.
        config: Preloaded configuration; loaded from project_root when None.

    Returns:
        BuildResult describing the artifact.

    Raises:
        PipelineEnvironmentError: If the source directory does not exist.
        ConfigError: If the output directory overlaps the project or its sources.
        ContentError: If a document or template is malformed.
    """
    config = config or load_pipeline_config(project_root)
    source_dir = project_root / config.source_dir
    if not source_dir.is_dir():
        raise PipelineEnvironmentError(
            f"Expected source directory at {source_dir}", step="generate"
        )
    output_dir = output_dir_override or (project_root / config.output_dir)
    check_output_dir(output_dir, project_root, source_dir)
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    drafts = config.drafts if include_drafts is None else include_drafts
    resolved_root = config.root_url if root_url is None else root_url
    data = load_data(project_root)
    if resolved_root:
        data.setdefault("root_url", resolved_root)

    store = ContentStore(source_dir)
    documents = store.load(include_drafts=drafts)
    collection = DocumentCollection(documents)
    tags = TermCollection(build_terms_index(documents, "tags"), "tags")
    categories = TermCollection(build_terms_index(documents, "categories"), "categories")

    engine = TemplateEngine(source_dir, data, root_url=resolved_root)
    engine.update_collections(collection, tags, categories)

    written: dict[str, Path] = {}
    for document in documents:
        rendered = _render(document.path, lambda: engine.render_document(document))
        _write_page(output_dir, document.url, rendered, resolved_root)
        written[document.url] = document.path

    if "/" not in written:
        rendered = _render(
            source_dir,
            lambda: engine.render_listing(
                ["index", "archive"], str(data.get("title", "Blog")), collection.sorted(), "/"
            ),
        )
        _write_page(output_dir, "/", rendered, resolved_root)

    for terms in (tags, categories):
        _write_taxonomy(engine, output_dir, terms, written, resolved_root)

    AssetPipeline(project_root, output_dir, optimize=config.optimize_assets).run(
        source_dir, store.static_files()
    )
    feeds = create_default_feed_registry().generate_all(output_dir, documents, data)
    # Serve the tree verbatim on GitHub Pages
    (output_dir / ".nojekyll").write_text("", encoding="utf-8")

    files = iter_tree(output_dir)
    logger.info(
        "Built %d documents (%d files%s) into %s",
        len(documents),
        len(files),
        f", feeds: {', '.join(feeds)}" if feeds else "",
        output_dir,
    )
    return BuildResult(documents=documents, output_dir=output_dir, data=data, files=files)


def _render(source_path: Path, render) -> str:
    """Run a render callable, turning template failures into ContentError.

    Args:
        source_path: File blamed when the template itself is not at fault.
        render: Zero-argument callable returning HTML.

    Returns:
        Rendered HTML.
    """
    try:
        return render()
    except TemplateSyntaxError as exc:
        blamed = Path(exc.filename) if exc.filename else source_path
        raise ContentError(
            blamed, f"Template syntax error on line {exc.lineno}: {exc.message}", exc
        ) from exc
    except (TemplateError, TypeError, AttributeError, ValueError, KeyError) as exc:
        raise ContentError(source_path, _format_error_message(exc), exc) from exc


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _write_page(output_dir: Path, url: str, rendered: str, root_url: str) -> None:
    """Write rendered HTML to ``<output>/<url>/index.html``."""
    if root_url:
        rendered = absolutize_html_urls(rendered, root_url)
    target_dir = output_dir / url.strip("/")
    target_dir.mkdir(parents=True, exist_ok=True)
    with open(target_dir / "index.html", "w", encoding="utf-8", newline="\n") as f:
        f.write(rendered)


def _write_taxonomy(
    engine: TemplateEngine,
    output_dir: Path,
    terms: TermCollection,
    written: dict[str, Path],
    root_url: str,
) -> None:
    """Write one archive page per tag or category slug.

    Raises:
        ContentError: If a document already occupies the archive URL.
    """
    layout = TAXONOMY_LAYOUTS[terms.kind]
    for _, group in sorted(terms.by_slug().items()):
        term: Term = group[0]
        if term.url in written:
            raise ContentError(
                written[term.url], f"URL {term.url} is reserved for the {layout} archive"
            )
        members: dict[Path, Document] = {}
        for same_slug in group:
            for document in same_slug.documents:
                members[document.path] = document
        listing = DocumentCollection(members.values()).sorted()
        title = " / ".join(t.name for t in group)
        rendered = _render(
            engine.source_dir,
            lambda: engine.render_listing([layout, "archive"], title, listing, term.url, term),
        )
        _write_page(output_dir, term.url, rendered, root_url)
        written[term.url] = engine.source_dir
