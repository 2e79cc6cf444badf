"""GitHub Actions workflow generation.

Writes ``.github/workflows/deploy.yml``, which checks the repository out
with its submodules on every push to the default branch and runs
``pegasus run`` with the job's GITHUB_TOKEN.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .config import PipelineConfig

WORKFLOW_PATH = Path(".github") / "workflows" / "deploy.yml"
WORKFLOW_TEMPLATE = "workflow.yml.jinja"
PYTHON_VERSION = "3.12"
NODE_VERSION = "20"

_TEMPLATES_DIR = Path(__file__).parent / "templates"


def render_workflow(
    branch: str = "main",
    config: PipelineConfig | None = None,
    requirement: str = "pegasus-blog",
    verbose: bool = False,
) -> str:
    """Render the deploy workflow.

    Node.js is set up only when the project uses an external generator.

    Args:
        branch: Branch whose pushes trigger a deploy.
        config: Project configuration; defaults apply when None.
        requirement: pip requirement used to install pegasus in the job.
        verbose: Run pegasus with debug logging.

    Returns:
        Workflow YAML text.
    """
    env = Environment(
        loader=FileSystemLoader(_TEMPLATES_DIR),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        autoescape=False,
    )
    submodules = config.checkout.submodules if config else True
    node = bool(config and not config.generator.builtin)
    return env.get_template(WORKFLOW_TEMPLATE).render(
        branch=branch,
        submodules=submodules,
        node=node,
        node_version=NODE_VERSION,
        python_version=PYTHON_VERSION,
        requirement=requirement,
        verbose=verbose,
    )


def write_workflow(project_root: Path, content: str, force: bool = False) -> Path:
    """Write workflow content to ``<root>/.github/workflows/deploy.yml``.

    Raises:
        FileExistsError: If the workflow exists and force is False.
    """
    target = project_root / WORKFLOW_PATH
    if target.exists() and not force:
        raise FileExistsError(f"{target} already exists; use --force to overwrite")
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8", newline="\n") as f:
        f.write(content)
    return target
