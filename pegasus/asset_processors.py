"""Asset processors for Pegasus.

Each processor handles one kind of static file. The registry asks processors
in priority order and the first one that accepts a path processes it.

Key classes:
- ImageProcessor: Re-encodes raster images with Pillow's optimizer.
- JSProcessor: Minifies JavaScript with rjsmin.
- StaticAssetProcessor: Copies everything else unchanged.
- AssetProcessorRegistry: Registry for managing asset processors.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from rjsmin import jsmin

logger = logging.getLogger(__name__)


class BaseAssetProcessor(ABC):
    """Base class for asset processors."""

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        """Check if this processor can handle the given asset."""
        ...

    @abstractmethod
    def process(self, source: Path, dest: Path) -> bool:
        """Process an asset file.

        Args:
            source: Source asset path.
            dest: Destination path for processed asset.

        Returns:
            True if processing was successful.
        """
        ...

    def ensure_dest_dir(self, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)


class ImageProcessor(BaseAssetProcessor):
    """Optimizes PNG, JPEG and WebP images with Pillow.

    JPEGs keep their original quantization tables so optimizing never
    recompresses them. Images Pillow cannot decode are copied unchanged.
    """

    SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}

    @property
    def priority(self) -> int:
        return 100

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() in self.SUPPORTED_EXTENSIONS

    def process(self, source: Path, dest: Path) -> bool:
        self.ensure_dest_dir(dest)
        try:
            with Image.open(source) as img:
                options = {"optimize": True}
                if img.format == "JPEG":
                    options["quality"] = "keep"
                img.save(dest, **options)
            return True
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            logger.warning("Could not optimize %s (%s); copying unchanged", source, exc)
        shutil.copyfile(source, dest)
        return True


class JSProcessor(BaseAssetProcessor):
    """Minifies JavaScript files. Already minified ``*.min.js`` files are copied.

    Scripts that are not UTF-8 are copied unchanged.
    """

    @property
    def priority(self) -> int:
        return 80

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == ".js" and not path.name.endswith(".min.js")

    def process(self, source: Path, dest: Path) -> bool:
        self.ensure_dest_dir(dest)
        try:
            source_text = source.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            logger.warning("Could not minify %s (%s); copying unchanged", source, exc)
            shutil.copyfile(source, dest)
            return True
        dest.write_text(jsmin(source_text), encoding="utf-8")
        return True


class StaticAssetProcessor(BaseAssetProcessor):
    """Copies files without modification; the fallback for every other type."""

    @property
    def priority(self) -> int:
        return 0

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> bool:
        self.ensure_dest_dir(dest)
        # copyfile, not copy2: mtimes must not leak into the artifact
        shutil.copyfile(source, dest)
        return True


class AssetProcessorRegistry:
    """Registry for managing asset processors.

    Processors are kept sorted by priority, highest first.
    """

    def __init__(self) -> None:
        self._processors: list[BaseAssetProcessor] = []

    def register(self, processor: BaseAssetProcessor) -> None:
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> BaseAssetProcessor | None:
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path, dest: Path) -> bool:
        """Process an asset with the first processor that accepts it.

        Returns:
            True if a processor handled the asset, False otherwise.
        """
        processor = self.get_processor(source)
        if processor is None:
            return False
        logger.debug("%s: %s -> %s", type(processor).__name__, source, dest)
        return processor.process(source, dest)


def create_default_registry(optimize: bool = True) -> AssetProcessorRegistry:
    """Create a registry with the default processors.

    Args:
        optimize: Register the image and JavaScript processors. When False
            every file is copied byte for byte.

    Returns:
        Configured AssetProcessorRegistry.
    """
    registry = AssetProcessorRegistry()
    if optimize:
        registry.register(ImageProcessor())
        registry.register(JSProcessor())
    registry.register(StaticAssetProcessor())
    return registry
