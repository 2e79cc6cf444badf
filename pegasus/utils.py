"""Utility functions for Pegasus.

This module contains small helpers used throughout the Pegasus codebase:
string processing, path handling, date extraction and directory management.

Key functions:
    slugify: Convert filenames and terms to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract date from filename prefix.
    build_terms_index: Build index of documents by tag or category.
    is_markdown: Check if a path is a Markdown file.
    is_html: Check if a path is a plain HTML file.
    ensure_clean_dir: Ensure a directory exists and is empty.
    iter_tree: List the files of a directory in a stable order.
    trees_equal: Compare two directory trees byte for byte.
"""

from __future__ import annotations

import filecmp
import re
import shutil
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

# Re-export from html_utils so callers have a single import point
from .html_utils import absolutize_html_urls, escape_html, join_root_url  # noqa: F401


def _strip_date_prefix(name: str) -> str:
    parts = name.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        return "-".join(parts[3:])
    return name


def slugify(name: str) -> str:
    """Convert a filename stem or term to a slug, dropping a date prefix.

    Args:
        name: Filename stem or free text.

    Returns:
        URL-friendly slug.
    """
    cleaned = _strip_date_prefix(name)
    cleaned = re.sub(r"[^\w]+", "-", cleaned.lower(), flags=re.UNICODE)
    cleaned = cleaned.replace("_", "-").strip("-")
    cleaned = re.sub(r"-{2,}", "-", cleaned)
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'

        >>> titleize("getting-started.md")
        'Getting Started'
    """
    base = _strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.

    Examples:
        >>> extract_date_from_name("2024-01-15-hello-world")
        datetime(2024, 1, 15, 0, 0)

        >>> extract_date_from_name("hello-world")
        None
    """
    parts = name.split("-")
    if len(parts) >= 3 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first paragraph from text.

    Skips headings, images, fences and HTML comments. Strips inline HTML
    tags and collapses whitespace, truncating to the specified limit.

    Args:
        text: Markdown text to extract from.
        limit: Maximum character length of result.

    Returns:
        Cleaned first paragraph, truncated to limit characters.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "<!--", "---")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"!?\[([^\]]*)\]\([^)]*\)", r"\1", para)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # Fallback for stubborn directories
            for item in path.rglob("*"):
                if item.is_file():
                    item.unlink()
            for item in sorted(
                [p for p in path.rglob("*") if p.is_dir()], reverse=True
            ):
                item.rmdir()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .md or .markdown extension (case-insensitive).
    """
    return path.suffix.lower() in (".md", ".markdown")


def is_html(path: Path) -> bool:
    """Check if a path is a plain HTML page passed through unrendered.

    Args:
        path: Path to check.

    Returns:
        True if the file has a .html extension.
    """
    return path.suffix.lower() == ".html"


def build_terms_index(documents: Iterable, attr: str = "tags") -> dict[str, list]:
    """Build an index mapping terms to lists of documents carrying that term.

    Args:
        documents: Iterable of Document objects.
        attr: Name of the list attribute to index ("tags" or "categories").

    Returns:
        Dictionary mapping term names to lists of documents, keys sorted.
    """
    terms: dict[str, list] = {}
    for document in documents:
        for term in getattr(document, attr):
            terms.setdefault(term, []).append(document)
    return {key: terms[key] for key in sorted(terms, key=str.lower)}


def iter_tree(root: Path) -> list[Path]:
    """List every file below root as relative paths, sorted.

    Args:
        root: Directory to walk.

    Returns:
        Sorted list of file paths relative to root. Empty if root is missing.
    """
    if not root.exists():
        return []
    return sorted(p.relative_to(root) for p in root.rglob("*") if p.is_file())


def trees_equal(left: Path, right: Path) -> bool:
    """Check whether two directory trees hold the same files with the same bytes.

    Args:
        left: First directory.
        right: Second directory.

    Returns:
        True if both trees list the same relative files and every pair matches.
    """
    left_files = iter_tree(left)
    if left_files != iter_tree(right):
        return False
    return all(filecmp.cmp(left / rel, right / rel, shallow=False) for rel in left_files)
