"""Project configuration: ``agcbuilder.toml`` plus environment overrides.

The environment is read exactly once, when :func:`load_settings` builds a
:class:`BuildSettings`. Stages receive that object and never consult
``os.environ`` themselves.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Mapping

import toml

from .cli_logger import logger
from .errors import ConfigurationError

CONFIG_FILE = "agcbuilder.toml"

DEFAULT_REPOSITORY = "https://github.com/refresh-bio/agc.git"
DEFAULT_TAG = "v3.2.1"
DEFAULT_SYSTEM_DIR = "/usr/local/opt/agc"
DEFAULT_TOOLCHAIN_VERSIONS = ("13", "12", "11")
MISSING_RUNTIME_POLICIES = ("fallback", "error")

# Environment variables consulted when settings are built.
ENV_AGC_DIR = "AGC_DIR"
ENV_CC = "AGC_CC"
ENV_CXX = "AGC_CXX"
ENV_PLATFORM = "AGC_PLATFORM"
ENV_MISSING_RUNTIME = "AGC_MISSING_RUNTIME"

# The only ambient variables child processes of a build get to see.
PASSTHROUGH_VARIABLES = ("PATH", "HOME")


def load_config(path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    if os.path.exists(config_path):
        logger.info(f"Loading configuration from {config_path}")
        try:
            with open(config_path, "r") as f:
                return toml.load(f)
        except toml.TomlDecodeError as e:
            raise ConfigurationError(
                f"Error decoding TOML file at {config_path}: {e}",
                hint="Check the file's format for syntax errors.",
            ) from e
    return {}

def save_config(config, path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    logger.info(f"Saving configuration to {config_path}")
    try:
        with open(config_path, "w") as f:
            toml.dump(config, f)
    except IOError as e:
        logger.error(f"Error saving configuration to {config_path}: {e}")
        logger.info("Please check file permissions and ensure the directory is writable.")
        return False
    return True


@dataclass(frozen=True)
class BuildSettings:
    """Everything the build stages need to know, fixed for one build."""

    root: str
    agc_dir: str | None = None
    vendored_dir: str = "agc"
    system_dir: str = DEFAULT_SYSTEM_DIR
    repository: str = DEFAULT_REPOSITORY
    tag: str = DEFAULT_TAG
    archive_url: str | None = None
    jobs: int = 0
    toolchain_versions: tuple[str, ...] = DEFAULT_TOOLCHAIN_VERSIONS
    cc: str | None = None
    cxx: str | None = None
    platform_hint: str | None = None
    bridge_sources: tuple[str, ...] = ("src/agc_bridge.cpp",)
    bridge_header: str | None = "src/agc_bridge.h"
    cxx_std: str = "c++20"
    pic: bool = True
    build_dir: str = "build"
    missing_runtime: str = "fallback"
    environ: Mapping[str, str] = field(default_factory=dict)

    @property
    def vendored_path(self) -> str:
        return os.path.join(self.root, self.vendored_dir)

    @property
    def build_path(self) -> str:
        return os.path.join(self.root, self.build_dir)

    @property
    def link_plan_path(self) -> str:
        return os.path.join(self.build_path, "agc-link-plan.json")

    def subprocess_environment(self) -> dict[str, str]:
        """Fresh allow-listed environment for a child process."""
        return {name: self.environ[name] for name in PASSTHROUGH_VARIABLES if self.environ.get(name)}


def _section(conf, name):
    value = conf.get(name, {})
    if not isinstance(value, dict):
        raise ConfigurationError(f"[{name}] in {CONFIG_FILE} must be a table")
    return value


def _non_empty(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def settings_from_config(conf, root=".", environ=None):
    """Merge a loaded configuration mapping with environment overrides."""
    environ = dict(os.environ if environ is None else environ)
    agc = _section(conf, "agc")
    toolchain = _section(conf, "toolchain")
    bridge = _section(conf, "bridge")
    link = _section(conf, "link")

    versions = toolchain.get("versions", DEFAULT_TOOLCHAIN_VERSIONS)
    if isinstance(versions, str) or not versions:
        raise ConfigurationError(
            "[toolchain] versions must be a non-empty list of version strings",
            context={"value": repr(versions)},
        )

    jobs = agc.get("jobs", 0)
    if not isinstance(jobs, int) or jobs < 0:
        raise ConfigurationError("[agc] jobs must be a non-negative integer", context={"value": repr(jobs)})

    missing_runtime = _non_empty(environ.get(ENV_MISSING_RUNTIME)) or link.get("missing_runtime", "fallback")
    if missing_runtime not in MISSING_RUNTIME_POLICIES:
        raise ConfigurationError(
            f"Unknown missing-runtime policy '{missing_runtime}'",
            hint=f"Use one of: {', '.join(MISSING_RUNTIME_POLICIES)}",
        )

    sources = bridge.get("sources", ["src/agc_bridge.cpp"])
    if isinstance(sources, str):
        sources = [sources]

    return BuildSettings(
        root=os.path.abspath(root),
        agc_dir=_non_empty(environ.get(ENV_AGC_DIR)) or _non_empty(agc.get("dir")),
        vendored_dir=agc.get("vendored_dir", "agc"),
        system_dir=agc.get("system_dir", DEFAULT_SYSTEM_DIR),
        repository=agc.get("repository", DEFAULT_REPOSITORY),
        tag=agc.get("tag", DEFAULT_TAG),
        archive_url=_non_empty(agc.get("archive_url")),
        jobs=jobs,
        toolchain_versions=tuple(str(v) for v in versions),
        cc=_non_empty(environ.get(ENV_CC)) or _non_empty(toolchain.get("cc")),
        cxx=_non_empty(environ.get(ENV_CXX)) or _non_empty(toolchain.get("cxx")),
        platform_hint=_non_empty(environ.get(ENV_PLATFORM)) or _non_empty(agc.get("platform")),
        bridge_sources=tuple(sources),
        bridge_header=_non_empty(bridge.get("header", "src/agc_bridge.h")),
        cxx_std=bridge.get("std", "c++20"),
        pic=bool(bridge.get("pic", True)),
        build_dir=conf.get("build_dir", "build"),
        missing_runtime=missing_runtime,
        environ=environ,
    )


def with_overrides(settings, **changes):
    """Copy of ``settings`` with command-line overrides applied."""
    return replace(settings, **changes)


def load_settings(path=".", environ=None):
    """Load ``agcbuilder.toml`` from ``path`` and build the settings object."""
    return settings_from_config(load_config(path), root=path, environ=environ)
