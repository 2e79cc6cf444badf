"""Front-matter parsing and metadata extraction for Pegasus.

A document may begin with a YAML block delimited by ``---`` lines. When the
block is present it must be a well-formed YAML mapping; anything else raises
ContentError so the author sees the problem instead of a silently wrong page.

Key classes:
- FrontmatterExtractor: Splits and validates the YAML block.
- TitleExtractor: Front-matter title, first level-1 heading, or filename.
- DateExtractor: Front-matter date or filename prefix. Never the file mtime.
- TaxonomyExtractor: Categories and tags as ordered, de-duplicated lists.
- DescriptionExtractor: Description and excerpt from the first paragraph.
- CompositeMetadataExtractor: Runs all of the above and merges their results.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from .errors import ContentError
from .protocols import MetadataExtractor
from .utils import extract_date_from_name, first_paragraph, titleize

FRONTMATTER_OPEN_RE = re.compile(r"^---[ \t]*\r?\n")
FRONTMATTER_RE = re.compile(
    r"^---[ \t]*\r?\n(?:(?P<block>.*?)\r?\n)?---[ \t]*(?:\r?\n|$)", re.DOTALL
)
_SCALARS = (str, int, float)


def split_frontmatter(text: str, path: Path) -> tuple[dict[str, Any], str]:
    """Split a document into its front-matter mapping and body.

    Args:
        text: Raw file content.
        path: Path to the source file, used for error context.

    Returns:
        Tuple of (front-matter dict, remaining body). Documents without a
        leading ``---`` line return an empty dict and the text unchanged.

    Raises:
        ContentError: If the block is unterminated, is not valid YAML, or is
            not a mapping.
    """
    text = text.lstrip("\ufeff")
    if not FRONTMATTER_OPEN_RE.match(text):
        return {}, text
    match = FRONTMATTER_RE.match(text)
    if not match:
        raise ContentError(path, "Front-matter block is not closed with '---'")
    block = match.group("block") or ""
    try:
        data = yaml.safe_load(block)
    except (yaml.YAMLError, ValueError) as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" on line {mark.line + 2}" if mark is not None else ""
        problem = getattr(exc, "problem", None) or str(exc)
        raise ContentError(
            path, f"Invalid YAML front-matter{where}: {problem}", exc
        ) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ContentError(
            path,
            f"Front-matter must be key/value pairs, got {type(data).__name__}",
        )
    return {str(key): value for key, value in data.items()}, text[match.end() :]


def parse_date(value: Any, path: Path) -> datetime:
    """Normalize a front-matter date to a naive datetime.

    Timezone-aware values are converted to UTC before the zone is dropped so
    every document date compares against every other.

    Raises:
        ContentError: If the value is not a date, datetime or ISO-8601 string.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ContentError(path, f"Invalid date {value!r}", exc) from exc
    else:
        raise ContentError(path, f"Invalid date {value!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def normalize_terms(value: Any, key: str, path: Path) -> list[str]:
    """Normalize a categories/tags value to an ordered list of unique strings.

    Accepts a single string or a list of scalars. Nested lists (hierarchical
    categories) are flattened one level.

    Raises:
        ContentError: If the value has any other shape.
    """
    if value is None:
        return []
    if isinstance(value, _SCALARS) and not isinstance(value, bool):
        items = [value]
    elif isinstance(value, list):
        items = []
        for item in value:
            if isinstance(item, list):
                items.extend(item)
            else:
                items.append(item)
    else:
        raise ContentError(path, f"'{key}' must be a string or a list of strings")

    terms: list[str] = []
    for item in items:
        if isinstance(item, bool) or not isinstance(item, _SCALARS):
            raise ContentError(path, f"'{key}' entries must be strings, got {item!r}")
        term = str(item).strip()
        if term and term not in terms:
            terms.append(term)
    return terms


class FrontmatterExtractor:
    """Splits the YAML front-matter from the body."""

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        """Return the parsed ``frontmatter`` and remaining ``body``.

        The incoming frontmatter argument is ignored; this extractor is the
        one that produces it.
        """
        parsed, rest = split_frontmatter(body, path)
        return {"frontmatter": parsed, "body": rest}


class TitleExtractor:
    """Extracts the title.

    Looks for a ``title`` key, then a level-1 heading (``# Title``),
    falling back to titleizing the filename.
    """

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        title = frontmatter.get("title")
        if title is not None:
            if not isinstance(title, _SCALARS) or isinstance(title, bool):
                raise ContentError(path, "'title' must be a string")
            if str(title).strip():
                return {"title": str(title).strip()}
        for line in body.splitlines():
            stripped = line.strip()
            if stripped.startswith("# "):
                return {"title": stripped[2:].strip()}
        return {"title": titleize(path.name)}


class DateExtractor:
    """Extracts the publication date.

    Uses the ``date`` key, then a YYYY-MM-DD filename prefix. Documents with
    neither are undated.
    """

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        if frontmatter.get("date") is not None:
            return {"date": parse_date(frontmatter["date"], path)}
        return {"date": extract_date_from_name(path.stem)}


class TaxonomyExtractor:
    """Extracts categories and tags.

    ``category`` is accepted as an alias for ``categories`` and ``tag`` for
    ``tags``.
    """

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        categories = frontmatter.get("categories", frontmatter.get("category"))
        tags = frontmatter.get("tags", frontmatter.get("tag"))
        return {
            "categories": normalize_terms(categories, "categories", path),
            "tags": normalize_terms(tags, "tags", path),
        }


class DescriptionExtractor:
    """Extracts description and excerpt.

    An explicit ``description`` key wins. Otherwise the first prose paragraph
    is used, truncated to 160 characters for the description and kept whole
    for the excerpt.
    """

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        excerpt = first_paragraph(body, limit=10_000)
        description = frontmatter.get("description")
        if description is None:
            description = excerpt[:160]
        return {"description": str(description).strip(), "excerpt": excerpt}


class DraftExtractor:
    """Reads the ``draft`` and ``layout`` flags."""

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        draft = frontmatter.get("draft", False)
        if not isinstance(draft, bool):
            raise ContentError(path, "'draft' must be true or false")
        layout = frontmatter.get("layout")
        if layout is not None and not isinstance(layout, str):
            raise ContentError(path, "'layout' must be a string")
        return {"draft": draft or path.name.startswith("_"), "layout": layout}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    The front-matter extractor runs first; every later extractor sees the
    parsed front-matter and the body with the block removed. Later extractors
    can override keys set by earlier ones.
    """

    def __init__(self, extractors: list[MetadataExtractor] | None = None):
        """Initialize with a list of extractors.

        Args:
            extractors: Extractors to run after front-matter splitting.
                If None, uses the default extractors.
        """
        self._frontmatter_extractor = FrontmatterExtractor()
        if extractors is None:
            self._extractors = [
                TitleExtractor(),
                DateExtractor(),
                TaxonomyExtractor(),
                DescriptionExtractor(),
                DraftExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Extract all metadata from a raw document.

        Args:
            content: Raw source content including any front-matter.
            path: Path to the source file.

        Returns:
            Dictionary with ``frontmatter``, ``body`` and every extracted key.

        Raises:
            ContentError: If any extractor rejects the document.
        """
        result = self._frontmatter_extractor.extract({}, content, path)
        frontmatter, body = result["frontmatter"], result["body"]
        for extractor in self._extractors:
            result.update(extractor.extract(frontmatter, body, path))
        return result


# Default composite extractor instance
default_metadata_extractor = CompositeMetadataExtractor()
