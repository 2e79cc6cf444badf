"""Configuration loading for Pegasus.

Configuration is read from ``pegasus.yaml`` in the project root, merged over
DEFAULT_CONFIG, then overridden by ``PEGASUS_*`` environment variables and
finally by explicit overrides (CLI options). The result is a PipelineConfig
passed explicitly to every step; nothing downstream reads os.environ.

Key functions:
- load_config: Load the merged configuration mapping.
- load_data: Load site data from YAML files in the data directory.
- load_pipeline_config: Build a PipelineConfig for a project root.
"""

from __future__ import annotations

import copy
import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "pegasus.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "source_dir": "source",
    "output_dir": "public",
    "root_url": "",
    "drafts": False,
    "optimize_assets": True,
    "generator": {
        "command": None,
        "install": None,
    },
    "deploy": {
        "target": "git",
        "branch": "gh-pages",
        "repository": None,
        "remote": None,
        "token_env": "GITHUB_TOKEN",
        "directory": None,
        "keep_history": False,
        "user_name": "github-actions[bot]",
        "user_email": "41898282+github-actions[bot]@users.noreply.github.com",
        "message": "Deploy {sha}",
        "cname": None,
    },
    "checkout": {
        "submodules": True,
    },
}

# Environment variable -> dotted config key
ENV_OVERRIDES = {
    "PEGASUS_SOURCE_DIR": "source_dir",
    "PEGASUS_OUTPUT_DIR": "output_dir",
    "PEGASUS_ROOT_URL": "root_url",
    "PEGASUS_DEPLOY_TARGET": "deploy.target",
    "PEGASUS_DEPLOY_BRANCH": "deploy.branch",
    "PEGASUS_DEPLOY_REMOTE": "deploy.remote",
    "PEGASUS_DEPLOY_DIRECTORY": "deploy.directory",
}

DEPLOY_TARGETS = ("git", "directory")


def _merge(base: dict[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _set_dotted(config: dict[str, Any], dotted: str, value: Any) -> None:
    *parents, leaf = dotted.split(".")
    target = config
    for part in parents:
        target = target.setdefault(part, {})
    target[leaf] = value


def load_config(
    project_root: Path,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Load the merged configuration mapping.

    Args:
        project_root: Root directory of the project.
        config_path: Config file to read instead of ``<root>/pegasus.yaml``.
            Relative paths are resolved against project_root.
        environ: Environment used for ``PEGASUS_*`` overrides.
        overrides: Dotted-key overrides applied last, e.g. ``{"deploy.branch": "pages"}``.
            None values are ignored.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping, or an
            explicitly given config file does not exist.
    """
    if config_path is None:
        path = project_root / CONFIG_FILENAME
    else:
        path = config_path if config_path.is_absolute() else project_root / config_path
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}", step="checkout")

    config = copy.deepcopy(DEFAULT_CONFIG)
    if path.exists():
        with open(path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path}: {exc}", step="checkout") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"{path} must contain key/value pairs", step="checkout")
        config = _merge(config, loaded)

    for env_key, dotted in ENV_OVERRIDES.items():
        value = (environ or {}).get(env_key)
        if value:
            _set_dotted(config, dotted, value)
    for dotted, value in (overrides or {}).items():
        if value is not None:
            _set_dotted(config, dotted, value)
    return config


def load_data(project_root: Path) -> dict[str, Any]:
    """Load site data from YAML files in the data directory.

    ``data/site.yaml`` is merged into the top level; every other
    ``data/<name>.yaml`` is exposed as ``data[name]``.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing merged data from all YAML files.

    Raises:
        ConfigError: If a data file is not valid YAML.
    """
    data_dir = project_root / "data"
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    for path in sorted(data_dir.glob("*.yaml")):
        with open(path, encoding="utf-8") as f:
            try:
                payload = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path}: {exc}", step="generate") from exc
        if payload is None:
            continue
        if path.name == "site.yaml":
            if not isinstance(payload, dict):
                raise ConfigError(f"{path} must contain key/value pairs", step="generate")
            data.update(payload)
        else:
            data[path.stem] = payload
    return data


def check_output_dir(output_dir: Path, project_root: Path, source_dir: Path) -> None:
    """Refuse an output directory whose wipe would destroy the project.

    The output directory is emptied before every build, so it must not be the
    project root or the source directory, contain either of them, or sit
    inside the source directory.

    Raises:
        ConfigError: If output_dir overlaps project_root or source_dir.
    """
    output = output_dir.resolve()
    source = source_dir.resolve()
    for protected in (project_root.resolve(), source):
        if protected.is_relative_to(output):
            raise ConfigError(
                f"Output directory {output_dir} would overwrite {protected}", step="generate"
            )
    if output.is_relative_to(source):
        raise ConfigError(
            f"Output directory {output_dir} is inside the source directory {source_dir}",
            step="generate",
        )


def _command(value: Any, key: str) -> list[str] | None:
    if value in (None, "", []):
        return None
    if isinstance(value, str):
        return shlex.split(value)
    if isinstance(value, list) and all(isinstance(part, (str, int, float)) for part in value):
        return [str(part) for part in value]
    raise ConfigError(f"'{key}' must be a command string or a list of arguments")


def _bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("1", "true", "yes", "on", "0", "false", "no", "off"):
        return value.lower() in ("1", "true", "yes", "on")
    raise ConfigError(f"'{key}' must be true or false")


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class GeneratorConfig:
    """How the site is generated.

    Attributes:
        command: External generator argv; the builtin generator runs when None.
        install: Argv run before the generator, e.g. ``npm install``.
    """

    command: list[str] | None = None
    install: list[str] | None = None

    @property
    def builtin(self) -> bool:
        return self.command is None


@dataclass
class DeployConfig:
    """Where and how the build artifact is published."""

    target: str = "git"
    branch: str = "gh-pages"
    repository: str | None = None
    remote: str | None = None
    token_env: str = "GITHUB_TOKEN"
    directory: str | None = None
    keep_history: bool = False
    user_name: str = "github-actions[bot]"
    user_email: str = "41898282+github-actions[bot]@users.noreply.github.com"
    message: str = "Deploy {sha}"
    cname: str | None = None


@dataclass
class CheckoutConfig:
    submodules: bool = True


@dataclass
class PipelineConfig:
    """Everything a pipeline run needs, including the environment it reads.

    Attributes:
        project_root: Root of the checked-out project.
        source_dir: Documents directory, relative to project_root.
        output_dir: Build artifact directory, relative to project_root.
        root_url: Base URL used to absolutize links, empty for root-relative.
        drafts: Whether drafts are built.
        optimize_assets: Whether images and scripts are optimized.
        generator: Generator settings.
        deploy: Publisher settings.
        checkout: Checkout settings.
        environ: Environment variables visible to the run (credentials, CI context).
    """

    project_root: Path
    source_dir: str = "source"
    output_dir: str = "public"
    root_url: str = ""
    drafts: bool = False
    optimize_assets: bool = True
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    deploy: DeployConfig = field(default_factory=DeployConfig)
    checkout: CheckoutConfig = field(default_factory=CheckoutConfig)
    environ: Mapping[str, str] = field(default_factory=dict, repr=False)

    @property
    def source_path(self) -> Path:
        return self.project_root / self.source_dir

    @property
    def output_path(self) -> Path:
        return self.project_root / self.output_dir

    def with_root(self, project_root: Path) -> PipelineConfig:
        return replace(self, project_root=project_root)

    @classmethod
    def from_mapping(
        cls,
        project_root: Path,
        config: Mapping[str, Any],
        environ: Mapping[str, str] | None = None,
    ) -> PipelineConfig:
        """Build a PipelineConfig from a merged configuration mapping.

        Raises:
            ConfigError: If a value has the wrong type or an unknown deploy target.
        """
        environ = dict(environ or {})
        generator = config.get("generator") or {}
        deploy = config.get("deploy") or {}
        checkout = config.get("checkout") or {}
        if not all(isinstance(section, Mapping) for section in (generator, deploy, checkout)):
            raise ConfigError("'generator', 'deploy' and 'checkout' must be mappings")

        target = str(deploy.get("target", "git"))
        if target not in DEPLOY_TARGETS:
            raise ConfigError(
                f"Unknown deploy target {target!r}; expected one of {', '.join(DEPLOY_TARGETS)}"
            )
        defaults = DeployConfig()
        return cls(
            project_root=project_root,
            source_dir=str(config.get("source_dir", "source")),
            output_dir=str(config.get("output_dir", "public")),
            root_url=str(config.get("root_url") or ""),
            drafts=_bool(config.get("drafts", False), "drafts"),
            optimize_assets=_bool(config.get("optimize_assets", True), "optimize_assets"),
            generator=GeneratorConfig(
                command=_command(generator.get("command"), "generator.command"),
                install=_command(generator.get("install"), "generator.install"),
            ),
            deploy=DeployConfig(
                target=target,
                branch=str(deploy.get("branch") or defaults.branch),
                repository=_optional_str(deploy.get("repository"))
                or _optional_str(environ.get("GITHUB_REPOSITORY")),
                remote=_optional_str(deploy.get("remote")),
                token_env=str(deploy.get("token_env") or defaults.token_env),
                directory=_optional_str(deploy.get("directory")),
                keep_history=_bool(deploy.get("keep_history", False), "deploy.keep_history"),
                user_name=str(deploy.get("user_name") or defaults.user_name),
                user_email=str(deploy.get("user_email") or defaults.user_email),
                message=str(deploy.get("message") or defaults.message),
                cname=_optional_str(deploy.get("cname")),
            ),
            checkout=CheckoutConfig(
                submodules=_bool(checkout.get("submodules", True), "checkout.submodules"),
            ),
            environ=environ,
        )


def load_pipeline_config(
    project_root: Path,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> PipelineConfig:
    """Load and validate the configuration for a project root.

    Args:
        project_root: Root directory of the project.
        config_path: Optional config file instead of ``pegasus.yaml``.
        environ: Environment for overrides and credentials; defaults to os.environ.
        overrides: Dotted-key overrides, applied last.

    Returns:
        Validated PipelineConfig.
    """
    environ = dict(os.environ if environ is None else environ)
    config = load_config(project_root, config_path, environ, overrides)
    return PipelineConfig.from_mapping(project_root, config, environ)
