"""Generators for Pegasus.

A generator turns a checked-out project into a build artifact directory, or
fails. Two implementations exist:

- BuiltinGenerator: the in-process generator in build.py.
- CommandGenerator: an external static-site generator run as a subprocess,
  for example ``npx hexo generate`` after ``npm install``. Its contract is
  "given the project as working directory, fill the output directory or exit
  nonzero"; how it renders is its own business.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .build import build_site
from .config import PipelineConfig, check_output_dir
from .errors import GenerateError, PipelineEnvironmentError
from .executable_utils import CommandFailed, require_executable, run_command
from .utils import ensure_clean_dir, iter_tree

logger = logging.getLogger(__name__)


@dataclass
class GenerateResult:
    """Result of a generate step.

    Attributes:
        output_dir: Directory holding the build artifact.
        documents: Number of documents rendered, when the generator reports it.
        files: Every artifact file relative to output_dir, sorted.
    """

    output_dir: Path
    documents: int | None = None
    files: list[Path] = field(default_factory=list)


class BuiltinGenerator:
    """Runs the builtin generator in-process.

    Attributes:
        config: Pipeline configuration for the workspace being built.
    """

    def __init__(self, config: PipelineConfig):
        self.config = config

    def preflight(self) -> None:
        if not self.config.source_path.is_dir():
            raise PipelineEnvironmentError(
                f"Expected source directory at {self.config.source_path}", step="checkout"
            )

    def generate(self, project_root: Path) -> GenerateResult:
        result = build_site(project_root, config=self.config.with_root(project_root))
        return GenerateResult(
            output_dir=result.output_dir,
            documents=len(result.documents),
            files=result.files,
        )


class CommandGenerator:
    """Runs an external generator command.

    The optional install command runs first; both run with the project root as
    working directory. The output directory is emptied before the generator
    runs so nothing from an earlier build survives into the artifact.

    Attributes:
        config: Pipeline configuration; ``config.generator.command`` must be set.
    """

    def __init__(self, config: PipelineConfig):
        if not config.generator.command:
            raise ValueError("CommandGenerator requires generator.command")
        self.config = config

    def _resolve(self, argv: list[str], project_root: Path) -> list[str]:
        executable = require_executable(argv[0], project_root, step="checkout")
        return [executable, *argv[1:]]

    def preflight(self) -> None:
        root = self.config.project_root
        self._resolve(self.config.generator.command, root)
        if self.config.generator.install:
            self._resolve(self.config.generator.install, root)

    def generate(self, project_root: Path) -> GenerateResult:
        generator = self.config.generator
        output_dir = project_root / self.config.output_dir
        check_output_dir(output_dir, project_root, project_root / self.config.source_dir)

        if generator.install:
            self._run(generator.install, project_root, "Install")
        ensure_clean_dir(output_dir)
        self._run(generator.command, project_root, "Generator")

        if not output_dir.is_dir() or not any(output_dir.iterdir()):
            raise GenerateError(
                f"Generator finished but {self.config.output_dir}/ is empty or missing"
            )
        files = iter_tree(output_dir)
        logger.info("Generated %d files into %s", len(files), output_dir)
        return GenerateResult(output_dir=output_dir, files=files)

    def _run(self, argv: list[str], project_root: Path, label: str) -> None:
        resolved = self._resolve(argv, project_root)
        environ = self.config.environ
        logger.info("Running %s", " ".join(argv))
        try:
            run_command(
                resolved,
                cwd=project_root,
                env=dict(environ),
                secrets=[environ.get(self.config.deploy.token_env)],
            )
        except CommandFailed as exc:
            raise GenerateError(f"{label} failed: {exc}", returncode=exc.returncode) from exc


def create_generator(config: PipelineConfig):
    """Create the generator selected by ``config.generator``."""
    if config.generator.builtin:
        return BuiltinGenerator(config)
    return CommandGenerator(config)
