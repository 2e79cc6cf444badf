from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import datetime

from .content import Document
from .utils import slugify


class DocumentCollection(Sequence[Document]):
    """Lightweight helper for working with lists of Documents in templates and code."""

    def __init__(self, documents: Iterable[Document]):
        self._documents = list(documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, item):
        return self._documents[item]

    def group(self, name: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if d.group == name)

    def with_tag(self, tag: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if tag in d.tags)

    def in_category(self, category: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if category in d.categories)

    def dated(self) -> DocumentCollection:
        """Documents with a publication date, i.e. posts rather than pages."""
        return DocumentCollection(d for d in self._documents if d.date is not None)

    def sorted(self, reverse: bool = True) -> DocumentCollection:
        """Sort by date, newest first by default, then by source path.

        The path tie-break is always ascending so two documents sharing a
        date keep the same relative order in both directions.
        """
        by_path = sorted(self._documents, key=lambda d: d.rel_path)
        ordered = sorted(by_path, key=lambda d: d.date or datetime.min, reverse=reverse)
        return DocumentCollection(ordered)

    def latest(self, count: int = 5) -> DocumentCollection:
        return DocumentCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"DocumentCollection({len(self._documents)} documents)"


class Term:
    """A tag or category with its slug, URL and documents."""

    def __init__(self, name: str, kind: str, documents: Iterable[Document]):
        self.name = name
        self.kind = kind
        self.slug = slugify(name)
        self.url = f"/{kind}/{self.slug}/"
        self.documents = DocumentCollection(documents).sorted()

    def __len__(self) -> int:
        return len(self.documents)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Term({self.kind}:{self.name}, {len(self.documents)} documents)"


class TermCollection(Mapping[str, Term]):
    """Mapping of term name to Term, in case-insensitive name order."""

    def __init__(self, mapping: dict[str, Iterable[Document]], kind: str):
        self.kind = kind
        self._mapping = {
            name: Term(name, kind, documents)
            for name, documents in sorted(mapping.items(), key=lambda item: item[0].lower())
        }

    def __getitem__(self, key: str) -> Term:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def by_slug(self) -> dict[str, list[Term]]:
        """Group terms by slug; names such as 'C++' and 'C' can share one page."""
        grouped: dict[str, list[Term]] = {}
        for term in self._mapping.values():
            grouped.setdefault(term.slug, []).append(term)
        return grouped

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TermCollection({self.kind}, {len(self._mapping)} terms)"
