"""Error taxonomy for Pegasus.

Every failure in a pipeline run is raised as a subclass of PipelineError so the
pipeline can record which step failed and the CLI can render it. Nothing here is
retried: the exceptions propagate to the run's terminal status.

Classes:
    PipelineError: Base class carrying the step that failed.
    ContentError: Malformed front-matter, duplicate URLs or template errors.
    PipelineEnvironmentError: Missing executables, credentials or directories.
    ConfigError: Invalid configuration values.
    CheckoutError: The repository could not be acquired.
    GenerateError: The generator failed or produced nothing.
    PublishError: The publish target could not be updated.
"""

from __future__ import annotations

from pathlib import Path


class PipelineError(Exception):
    """Base class for pipeline failures.

    Attributes:
        message: Human-readable error message.
        step: Pipeline step name the error is attributed to, if known.
    """

    step: str | None = None

    def __init__(self, message: str, step: str | None = None):
        self.message = message
        if step is not None:
            self.step = step
        super().__init__(message)


class ContentError(PipelineError):
    """Error in a source document, surfaced to the author.

    Attributes:
        source_path: Path to the document that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught, if any.
    """

    step = "generate"

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.original_error = original_error
        super().__init__(message)
        self.args = (f"{source_path}: {message}",)

    def __str__(self) -> str:
        return f"{self.source_path}: {self.message}"


class PipelineEnvironmentError(PipelineError):
    """A required tool, credential or directory is missing."""


class ConfigError(PipelineEnvironmentError):
    """pegasus.yaml or an override holds an invalid value."""


class CheckoutError(PipelineError):
    """The repository contents could not be acquired."""

    step = "checkout"


class GenerateError(PipelineError):
    """The generator exited with an error or produced no output.

    Attributes:
        returncode: Exit status of the generator process, if one ran.
    """

    step = "generate"

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message)


class PublishError(PipelineError):
    """The publish target could not be updated; its previous content is intact."""

    step = "deploy"


def redact(text: str, secrets: list[str | None]) -> str:
    """Replace every non-empty secret in text with ``***``.

    Args:
        text: Text that may contain secret values.
        secrets: Secret values to hide; empty or None values are ignored.

    Returns:
        Text safe to log or display.
    """
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text
