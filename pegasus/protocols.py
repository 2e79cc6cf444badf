"""Protocol definitions for Pegasus.

These are the seams between the pipeline and its collaborators. The pipeline
only depends on Generator and Publisher, so tests and alternative
implementations (an external generator, a different host) plug in without
changing it.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Heading
    from .generators import GenerateResult
    from .publishers import PublishResult


@runtime_checkable
class ContentRenderer(Protocol):
    """Renders the body of one kind of source file to HTML."""

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file."""
        ...

    @abstractmethod
    def render(self, content: str, folder: str) -> tuple[str, list[Heading]]:
        """Render content to HTML.

        Args:
            content: Source body to render.
            folder: Folder containing the document (for relative path resolution).

        Returns:
            Tuple of (rendered HTML, list of headings for TOC).
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown', 'html')."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Extracts one kind of metadata from a parsed document."""

    @abstractmethod
    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        """Extract metadata.

        Args:
            frontmatter: Parsed front-matter mapping.
            body: Document body with the front-matter removed.
            path: Path to the source file.

        Returns:
            Dictionary of extracted metadata.
        """
        ...


@runtime_checkable
class Generator(Protocol):
    """Turns a project checkout into a build artifact directory."""

    @abstractmethod
    def preflight(self) -> None:
        """Check that every tool the generator needs is available.

        Raises:
            PipelineEnvironmentError: If a tool is missing.
        """
        ...

    @abstractmethod
    def generate(self, project_root: Path) -> GenerateResult:
        """Generate the site.

        Args:
            project_root: Root of the checked-out project.

        Returns:
            GenerateResult describing the artifact.

        Raises:
            ContentError: If a document is malformed.
            GenerateError: If the generator fails or produces nothing.
        """
        ...


@runtime_checkable
class Publisher(Protocol):
    """Replaces the publish target's contents with a build artifact."""

    @abstractmethod
    def preflight(self) -> None:
        """Check credentials and tools before anything is generated.

        Raises:
            PipelineEnvironmentError: If a credential or tool is missing.
        """
        ...

    @abstractmethod
    def publish(
        self,
        artifact_dir: Path,
        revision: str | None = None,
        commit_time: str | None = None,
    ) -> PublishResult:
        """Publish an artifact directory verbatim.

        Args:
            artifact_dir: Directory produced by a generator.
            revision: Source revision being published, for commit messages.
            commit_time: Source commit time, for reproducible commits.

        Returns:
            PublishResult describing what changed.

        Raises:
            PublishError: If the target could not be updated. The target
                keeps its previous content.
        """
        ...
