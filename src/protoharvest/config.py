"""protoharvest configuration loader.

Priority (high → low):
  1. CLI flags                  (handled at call site — not in this module)
  2. Environment variables      (PROTOHARVEST_OUT, PROTOHARVEST_DEPS_DIR, PROTOHARVEST_PROTOC)
  3. Per-project protoharvest.yaml  (in the working directory)
  4. Global ~/.protoharvest/config.yaml
  5. Hardcoded defaults

All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import shlex
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".protoharvest"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "protoharvest.yaml"

# Known top-level sections — unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(["source", "output", "compiler"])

_BACKENDS: frozenset[str] = frozenset(["protoc", "scan"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class SourceCfg:
    """Where the source tree comes from (protoharvest.yaml: source:).

    Attributes:
        deps_dir: Directory the source repositories are cloned into.
        top: Name of the clone holding the API catalog.
        deps: Repository URLs. A ``;`` separates the URL from a subdirectory
            of the clone used as import base, e.g. ``https://host/repo;protos``
            imports from ``<deps_dir>/repo/protos``.
        index_file: Catalog file name inside ``deps_dir/top``.
    """

    deps_dir: str = "deps"
    top: str = "googleapis"
    deps: list[str] = field(
        default_factory=lambda: ["https://github.com/googleapis/googleapis"]
    )
    index_file: str = "api-index-v1.json"

    @property
    def root(self) -> Path:
        """Directory containing the catalog."""
        return Path(self.deps_dir) / self.top

    def import_paths(self) -> list[Path]:
        """One import base per dependency: ``<deps_dir>/<basename(dep)>``."""
        paths: list[Path] = []
        for dep in self.deps:
            url, _, subdir = dep.partition(";")
            name = url.rstrip("/").split("/")[-1].removesuffix(".git")
            clone = Path(self.deps_dir) / name
            paths.append(clone / subdir if subdir else clone)
        return paths


@dataclass
class OutputCfg:
    """Output tree and registry metadata (protoharvest.yaml: output:)."""

    out: str = "apis/google.com"
    provider: str = "google.com"
    source: str = "import-google-apis"
    display_prefix: str = "Google"


@dataclass
class CompilerCfg:
    """Schema compiler settings (protoharvest.yaml: compiler:).

    Attributes:
        backend: ``protoc`` runs an external compiler; ``scan`` follows
            import statements in-process.
        command: Compiler argv prefix, e.g. ``["python", "-m", "grpc_tools.protoc"]``.
        timeout: Seconds before a compiler run is killed; 0 disables.
        exclude_prefix: Built-in namespace that is never packaged.
        suffix: Definition file suffix.
    """

    backend: str = "protoc"
    command: list[str] = field(default_factory=lambda: ["protoc"])
    timeout: float = 300.0
    exclude_prefix: str = "google/protobuf/"
    suffix: str = ".proto"


@dataclass
class HarvestConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    source: SourceCfg = field(default_factory=SourceCfg)
    output: OutputCfg = field(default_factory=OutputCfg)
    compiler: CompilerCfg = field(default_factory=CompilerCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: HarvestConfig) -> None:
    if cfg.compiler.backend not in _BACKENDS:
        raise ConfigError(
            f"compiler.backend must be one of {sorted(_BACKENDS)}, "
            f"got '{cfg.compiler.backend}'"
        )
    if not cfg.compiler.command:
        raise ConfigError("compiler.command must not be empty")
    if cfg.compiler.timeout < 0:
        raise ConfigError("compiler.timeout must be >= 0")
    if not cfg.compiler.suffix.startswith("."):
        raise ConfigError(f"compiler.suffix must start with '.', got '{cfg.compiler.suffix}'")
    if not cfg.source.deps:
        raise ConfigError("source.deps must list at least one repository")
    if not cfg.output.provider:
        raise ConfigError("output.provider must not be empty")


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _as_command(value: Any) -> list[str]:
    if isinstance(value, str):
        return shlex.split(value)
    return [str(part) for part in value]


def _cfg_from_dict(data: dict[str, Any]) -> HarvestConfig:
    """Build a *HarvestConfig* from a merged raw YAML dict."""
    cfg = HarvestConfig()

    if "source" in data:
        s = data["source"] or {}
        cfg.source = SourceCfg(
            deps_dir=str(s.get("deps_dir", cfg.source.deps_dir)),
            top=str(s.get("top", cfg.source.top)),
            deps=[str(d) for d in s.get("deps", cfg.source.deps)],
            index_file=str(s.get("index_file", cfg.source.index_file)),
        )

    if "output" in data:
        o = data["output"] or {}
        cfg.output = OutputCfg(
            out=str(o.get("out", cfg.output.out)),
            provider=str(o.get("provider", cfg.output.provider)),
            source=str(o.get("source", cfg.output.source)),
            display_prefix=str(o.get("display_prefix", cfg.output.display_prefix)),
        )

    if "compiler" in data:
        c = data["compiler"] or {}
        try:
            timeout = float(c.get("timeout", cfg.compiler.timeout))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"compiler.timeout must be a number: {exc}") from exc
        cfg.compiler = CompilerCfg(
            backend=str(c.get("backend", cfg.compiler.backend)),
            command=_as_command(c.get("command", cfg.compiler.command)),
            timeout=timeout,
            exclude_prefix=str(c.get("exclude_prefix", cfg.compiler.exclude_prefix)),
            suffix=str(c.get("suffix", cfg.compiler.suffix)),
        )

    return cfg


def _apply_env_overrides(cfg: HarvestConfig) -> HarvestConfig:
    """Apply PROTOHARVEST_* environment variable overrides."""
    if out := os.environ.get("PROTOHARVEST_OUT"):
        cfg.output.out = out
    if deps_dir := os.environ.get("PROTOHARVEST_DEPS_DIR"):
        cfg.source.deps_dir = deps_dir
    if protoc := os.environ.get("PROTOHARVEST_PROTOC"):
        cfg.compiler.command = shlex.split(protoc)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> HarvestConfig:
    """Load and return a merged *HarvestConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *protoharvest.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *HarvestConfig* with env var overrides applied.

    Raises:
        ConfigError: If a config file is malformed or holds an invalid value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _load_yaml(global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _load_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg
