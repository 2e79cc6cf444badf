"""Command-line interface for Pegasus.

This module defines the CLI commands using Click framework.

Commands:
- build: Generate the site into the output directory.
- deploy: Publish an existing build artifact.
- run: Check out, generate and deploy in one go.
- workflow: Write the GitHub Actions workflow that runs the pipeline on push.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .errors import ContentError, PipelineError


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _report_failure(step: str | None, exc: Exception, project_root: Path) -> None:
    """Print a failed step to stderr in the same shape for every command."""
    label = f"{step.capitalize()} failed:" if step else "Failed:"
    click.echo(click.style(label, fg="red", bold=True), err=True)
    if isinstance(exc, ContentError):
        source = exc.source_path
        try:
            source = source.resolve().relative_to(project_root.resolve())
        except ValueError:
            pass
        click.echo(click.style(f"  File: {source}", fg="yellow"), err=True)
    message = exc.message if isinstance(exc, PipelineError) else str(exc)
    click.echo(click.style(f"  Error: {message}", fg="white"), err=True)


@click.group()
@click.version_option(version=__version__, prog_name="pegasus")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output, including git and generator logs")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file to use instead of pegasus.yaml",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None):
    """Pegasus static blog build-and-publish pipeline."""
    _setup_logging(verbose)
    ctx.obj = {"verbose": verbose, "config_path": config_path}


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--output",
    "output_dir",
    required=False,
    help="Output directory (overrides output_dir in pegasus.yaml)",
)
@click.option(
    "--root-url",
    required=False,
    help="Base URL to prefix links with (overrides root_url in pegasus.yaml)",
)
@click.pass_obj
def build(obj: dict, drafts: bool, output_dir: str | None, root_url: str | None):
    """Generate the site into the output directory."""
    project_root = Path.cwd()
    from .config import load_pipeline_config
    from .generators import create_generator

    overrides = {"output_dir": output_dir, "root_url": root_url, "drafts": True if drafts else None}
    try:
        config = load_pipeline_config(project_root, obj["config_path"], overrides=overrides)
        generator = create_generator(config)
        generator.preflight()
        result = generator.generate(project_root)
    except PipelineError as exc:
        _report_failure("build", exc, project_root)
        raise SystemExit(1) from None

    if result.documents is None:
        click.echo(f"Built {len(result.files)} files into {result.output_dir}")
    else:
        click.echo(f"Built {result.documents} documents into {result.output_dir}")


@cli.command()
@click.option(
    "--dir",
    "artifact_dir",
    type=click.Path(file_okay=False, path_type=Path),
    required=False,
    help="Artifact directory to publish (defaults to output_dir)",
)
@click.pass_obj
def deploy(obj: dict, artifact_dir: Path | None):
    """Publish an existing build artifact."""
    project_root = Path.cwd()
    from .checkout import checkout
    from .config import load_pipeline_config
    from .publishers import create_publisher

    try:
        with checkout(project_root) as workspace:
            config = load_pipeline_config(workspace.root, obj["config_path"])
            artifact = artifact_dir or config.output_path
            if not artifact.is_dir():
                raise PipelineError(
                    f"Nothing to deploy: {artifact} does not exist. Run `pegasus build` first.",
                    step="deploy",
                )
            publisher = create_publisher(config)
            publisher.preflight()
            result = publisher.publish(artifact, workspace.revision, workspace.commit_time)
    except PipelineError as exc:
        _report_failure("deploy", exc, project_root)
        raise SystemExit(1) from None

    if result.changed:
        click.echo(click.style(f"Deployed to {result.target}", fg="green"))
    else:
        click.echo(f"{result.target} is already up to date")


@cli.command()
@click.argument("source", required=False, default=".")
@click.option("--ref", required=False, help="Branch or tag to clone when SOURCE is a git URL")
@click.option("--no-deploy", is_flag=True, help="Stop after generating")
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option("--no-submodules", is_flag=True, help="Do not clone submodules")
@click.pass_obj
def run(obj: dict, source: str, ref: str | None, no_deploy: bool, drafts: bool, no_submodules: bool):
    """Check out SOURCE, generate the site and deploy it.

    SOURCE is a local project directory (default: the current directory) or
    a git URL to clone.
    """
    from .pipeline import run_pipeline

    outcome = run_pipeline(
        source,
        ref=ref,
        deploy=not no_deploy,
        config_path=obj["config_path"],
        overrides={"drafts": True if drafts else None},
        submodules=not no_submodules,
    )
    if not outcome.ok:
        _report_failure(outcome.failed_step, outcome.error, Path.cwd())
        raise SystemExit(outcome.exit_code)

    generated = outcome.generate_result
    click.echo(f"Generated {len(generated.files)} files into {generated.output_dir}")
    published = outcome.publish_result
    if published is None:
        return
    if published.changed:
        click.echo(click.style(f"Deployed to {published.target}", fg="green"))
    else:
        click.echo(f"{published.target} is already up to date")


@cli.command()
@click.option("--branch", default="main", show_default=True, help="Branch whose pushes trigger a deploy")
@click.option("--force", is_flag=True, help="Overwrite an existing workflow file")
@click.pass_obj
def workflow(obj: dict, branch: str, force: bool):
    """Write .github/workflows/deploy.yml for GitHub Actions."""
    project_root = Path.cwd()
    from .config import load_pipeline_config
    from .workflow import render_workflow, write_workflow

    try:
        config = load_pipeline_config(project_root, obj["config_path"])
    except PipelineError as exc:
        _report_failure("workflow", exc, project_root)
        raise SystemExit(1) from None
    content = render_workflow(branch, config, verbose=obj["verbose"])
    try:
        target = write_workflow(project_root, content, force=force)
    except FileExistsError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(f"Wrote {target.relative_to(project_root)}")


def main():
    """Entry point for the CLI application."""
    cli()
