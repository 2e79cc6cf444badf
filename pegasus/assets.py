"""Asset pipeline for Pegasus.

Copies the project's ``assets/`` directory to ``<output>/assets/`` and the
non-document files of the source directory (images next to posts, favicons,
downloads) to the same relative location in the output, running each file
through the asset processor registry.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .asset_processors import AssetProcessorRegistry, create_default_registry
from .utils import iter_tree


class AssetPipeline:
    """Processes static files into the build artifact.

    Attributes:
        project_root: Root directory of the project.
        assets_dir: Directory containing theme assets.
        output_dir: Directory where processed files are written.
        processor_registry: Registry of asset processors.
    """

    def __init__(
        self,
        project_root: Path,
        output_dir: Path,
        processor_registry: AssetProcessorRegistry | None = None,
        optimize: bool = True,
    ):
        self.project_root = project_root
        self.assets_dir = project_root / "assets"
        self.output_dir = output_dir
        self.processor_registry = processor_registry or create_default_registry(optimize)

    def run(self, source_dir: Path | None = None, static_files: Iterable[Path] = ()) -> list[Path]:
        """Process theme assets and source static files.

        Args:
            source_dir: Source directory the static files are relative to.
            static_files: Non-document files found in the source directory.

        Returns:
            Output paths written, relative to the output directory.
        """
        written: list[Path] = []
        target = self.output_dir / "assets"
        for rel in iter_tree(self.assets_dir):
            if any(part.startswith(".") or part == "node_modules" for part in rel.parts):
                continue
            self.processor_registry.process(self.assets_dir / rel, target / rel)
            written.append(Path("assets") / rel)

        if source_dir is not None:
            for path in static_files:
                rel = path.relative_to(source_dir)
                self.processor_registry.process(path, self.output_dir / rel)
                written.append(rel)
        return written
