"""The checkout, generate and deploy pipeline.

A run moves through ``IDLE -> CHECKING_OUT -> GENERATING -> DEPLOYING -> DONE``.
The first failure moves it to ``FAILED`` and the remaining steps are skipped,
so nothing is published unless generation succeeded. Nothing is retried.

Configuration is read from the checked-out project, so loading it (and
checking that every tool and credential the run needs is present) belongs to
the checkout step.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .checkout import checkout, init_submodules
from .config import PipelineConfig, load_pipeline_config
from .errors import PipelineError
from .generators import GenerateResult, create_generator
from .protocols import Generator, Publisher
from .publishers import PublishResult, create_publisher

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    IDLE = "idle"
    CHECKING_OUT = "checking out"
    GENERATING = "generating"
    DEPLOYING = "deploying"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED)


STEP_NAMES = {
    PipelineState.CHECKING_OUT: "checkout",
    PipelineState.GENERATING: "generate",
    PipelineState.DEPLOYING: "deploy",
}


@dataclass
class PipelineRun:
    """The outcome of one pipeline run.

    Attributes:
        state: Current state; DONE or FAILED once the run returns.
        history: Every state entered, in order, starting with IDLE.
        revision: Source revision that was built, if known.
        generate_result: Result of the generate step, if it completed.
        publish_result: Result of the deploy step, if it completed.
        error: The exception that failed the run.
        failed_step: Name of the step that failed.
    """

    state: PipelineState = PipelineState.IDLE
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    revision: str | None = None
    generate_result: GenerateResult | None = None
    publish_result: PublishResult | None = None
    error: Exception | None = None
    failed_step: str | None = None

    def enter(self, state: PipelineState) -> None:
        if self.state.terminal:
            raise RuntimeError(f"Run already finished as {self.state.value}")
        self.state = state
        self.history.append(state)

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.DONE

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


class Pipeline:
    """Runs checkout, generate and deploy strictly in sequence.

    Attributes:
        config_path: Config file to read instead of ``pegasus.yaml``.
        overrides: Dotted-key config overrides (CLI options).
        environ: Environment for credentials and CI context; os.environ when None.
        deploy: Whether to run the deploy step.
        submodules: Recurse into submodules when cloning.
        generator_factory: Builds the generator from the loaded config.
        publisher_factory: Builds the publisher from the loaded config.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        overrides: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
        deploy: bool = True,
        submodules: bool = True,
        generator_factory: Callable[[PipelineConfig], Generator] = create_generator,
        publisher_factory: Callable[[PipelineConfig], Publisher] = create_publisher,
    ):
        self.config_path = config_path
        self.overrides = dict(overrides or {})
        self.environ = environ
        self.deploy = deploy
        self.submodules = submodules
        self.generator_factory = generator_factory
        self.publisher_factory = publisher_factory

    def run(self, source: str | Path = ".", ref: str | None = None) -> PipelineRun:
        """Run the pipeline once.

        Args:
            source: Local project directory or git URL.
            ref: Branch or tag to clone for a git URL.

        Returns:
            PipelineRun in state DONE or FAILED. Failures are recorded on the
            run rather than raised.
        """
        run = PipelineRun()
        try:
            self._enter(run, PipelineState.CHECKING_OUT)
            with checkout(source, ref, self.submodules, self.environ) as workspace:
                run.revision = workspace.revision
                config = load_pipeline_config(
                    workspace.root, self.config_path, self.environ, self.overrides
                )
                if config.checkout.submodules and not workspace.temporary:
                    init_submodules(workspace.root, self.environ)
                generator = self.generator_factory(config)
                generator.preflight()
                publisher = None
                if self.deploy:
                    publisher = self.publisher_factory(config)
                    publisher.preflight()

                self._enter(run, PipelineState.GENERATING)
                run.generate_result = generator.generate(workspace.root)

                if publisher is not None:
                    self._enter(run, PipelineState.DEPLOYING)
                    run.publish_result = publisher.publish(
                        run.generate_result.output_dir,
                        workspace.revision,
                        workspace.commit_time,
                    )
            self._enter(run, PipelineState.DONE)
        except Exception as exc:
            self._fail(run, exc)
        return run

    def _enter(self, run: PipelineRun, state: PipelineState) -> None:
        run.enter(state)
        step = STEP_NAMES.get(state)
        if step:
            logger.info("==> %s", step)
        else:
            logger.debug("Pipeline %s", state.value)

    def _fail(self, run: PipelineRun, exc: Exception) -> None:
        step = STEP_NAMES.get(run.state)
        run.error = exc
        run.failed_step = step
        run.enter(PipelineState.FAILED)
        if isinstance(exc, PipelineError):
            logger.error("%s failed: %s", step, exc)
        else:
            logger.exception("%s failed unexpectedly", step)


def run_pipeline(
    source: str | Path = ".",
    ref: str | None = None,
    deploy: bool = True,
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    submodules: bool = True,
) -> PipelineRun:
    """Run the pipeline with the generator and publisher selected by config."""
    pipeline = Pipeline(
        config_path=config_path,
        overrides=overrides,
        environ=environ,
        deploy=deploy,
        submodules=submodules,
    )
    return pipeline.run(source, ref)
