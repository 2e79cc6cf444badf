"""Scoped acquisition of the project being published.

A local directory is used in place. A git URL is shallow-cloned (with its
submodules) into a temporary directory that is removed when the scope ends,
whether or not the run succeeded.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from .errors import CheckoutError, PipelineEnvironmentError
from .executable_utils import CommandFailed, find_executable, require_executable, run_command

logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("https://", "http://", "ssh://", "git://", "file://", "git@")


@dataclass
class Workspace:
    """A checked-out project.

    Attributes:
        root: Project root directory.
        revision: Commit being built, if known.
        commit_time: Commit time of ``revision`` in strict ISO 8601, if known.
        temporary: True when root is removed at the end of the scope.
    """

    root: Path
    revision: str | None = None
    commit_time: str | None = None
    temporary: bool = False


def is_remote(source: str | Path) -> bool:
    """Return True if source names a git remote rather than a local directory."""
    return isinstance(source, str) and source.startswith(REMOTE_PREFIXES)


def _revision(git: str, root: Path, env: Mapping[str, str]) -> tuple[str | None, str | None]:
    result = run_command([git, "rev-parse", "HEAD"], cwd=root, env=env, check=False)
    if result.returncode != 0:
        return None, None
    revision = result.stdout.strip()
    shown = run_command(
        [git, "show", "-s", "--format=%cI", revision], cwd=root, env=env, check=False
    )
    if shown.returncode != 0:
        return revision, None
    return revision, shown.stdout.strip() or None


@contextmanager
def checkout(
    source: str | Path = ".",
    ref: str | None = None,
    submodules: bool = True,
    environ: Mapping[str, str] | None = None,
) -> Iterator[Workspace]:
    """Acquire the project for the duration of a ``with`` block.

    Args:
        source: Local project directory or git URL.
        ref: Branch or tag to clone; ignored for local directories.
        submodules: Recurse into submodules when cloning.
        environ: Environment for git; defaults to os.environ. ``GITHUB_SHA``
            supplies the revision of a local tree that is not a git checkout.

    Yields:
        Workspace describing the checked-out project.

    Raises:
        PipelineEnvironmentError: If a local directory is missing or git is
            needed and not installed.
        CheckoutError: If cloning fails.
    """
    env = dict(os.environ if environ is None else environ)
    env.setdefault("GIT_TERMINAL_PROMPT", "0")

    if not is_remote(source):
        root = Path(source).expanduser().resolve()
        if not root.is_dir():
            raise PipelineEnvironmentError(f"Source directory not found: {root}", step="checkout")
        if ref:
            logger.warning("Ignoring ref %s for local source %s", ref, root)
        revision, commit_time = None, None
        git = find_executable("git")
        if git:
            revision, commit_time = _revision(git, root, env)
        if revision is None:
            revision = env.get("GITHUB_SHA") or None
        logger.info("Using %s%s", root, f" at {revision[:7]}" if revision else "")
        yield Workspace(root=root, revision=revision, commit_time=commit_time)
        return

    git = require_executable("git", step="checkout")
    tmp = Path(tempfile.mkdtemp(prefix="pegasus-checkout-"))
    root = tmp / "repo"
    cmd = [git, "clone", "--quiet", "--depth", "1"]
    if submodules:
        cmd += ["--recurse-submodules", "--shallow-submodules"]
    if ref:
        cmd += ["--branch", ref]
    cmd += [source, str(root)]
    try:
        logger.info("Cloning %s%s", source, f" ({ref})" if ref else "")
        try:
            run_command(cmd, env=env, secrets=[env.get("GITHUB_TOKEN")])
        except CommandFailed as exc:
            raise CheckoutError(f"Could not clone repository: {exc}") from exc
        revision, commit_time = _revision(git, root, env)
        yield Workspace(root=root, revision=revision, commit_time=commit_time, temporary=True)
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


def init_submodules(root: Path, environ: Mapping[str, str] | None = None) -> None:
    """Initialize the submodules of a local checkout, if it declares any.

    Raises:
        CheckoutError: If git fails to fetch a submodule.
    """
    if not (root / ".gitmodules").exists():
        return
    env = dict(os.environ if environ is None else environ)
    env.setdefault("GIT_TERMINAL_PROMPT", "0")
    git = require_executable("git", step="checkout")
    logger.info("Updating submodules in %s", root)
    try:
        run_command(
            [git, "submodule", "update", "--init", "--recursive", "--depth", "1"],
            cwd=root,
            env=env,
            secrets=[env.get("GITHUB_TOKEN")],
        )
    except CommandFailed as exc:
        raise CheckoutError(f"Could not update submodules: {exc}") from exc
