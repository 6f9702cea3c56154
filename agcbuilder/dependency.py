"""Where the AGC sources and library come from.

Resolution order: an explicit override directory, then a system-wide
install, then the vendored copy under the project root. A vendored tree that
is not on disk yet is fetched with git (or from a configured source archive).
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from enum import Enum

from .cli_logger import logger
from .errors import SourceMissingError
from .utils.command_executor import format_command, run_shell_command
from .utils.file_manager import download_and_extract

# Paths inside an AGC tree.
AGC_ARCHIVE = os.path.join("bin", "libagc.a")
AGC_MAKEFILES = ("makefile", "Makefile")
ZSTD_LIB_DIR = os.path.join("3rd_party", "zstd", "lib")


class ArtifactKind(str, Enum):
    STATIC_ARCHIVE = "static"
    SHARED_OBJECT = "shared"


@dataclass(frozen=True)
class BuildArtifact:
    path: str
    kind: ArtifactKind = ArtifactKind.STATIC_ARCHIVE

    def exists(self) -> bool:
        return os.path.isfile(self.path)


@dataclass(frozen=True)
class _Source:
    path: str

    kind = "source"
    needs_build = False

    @property
    def artifact(self) -> BuildArtifact:
        return BuildArtifact(os.path.join(self.path, AGC_ARCHIVE))

    @property
    def library_dir(self) -> str:
        return os.path.dirname(self.artifact.path)

    @property
    def zstd_library_dir(self) -> str:
        return os.path.join(self.path, ZSTD_LIB_DIR)


@dataclass(frozen=True)
class EnvironmentOverride(_Source):
    needs_build: bool = False
    kind = "override"


@dataclass(frozen=True)
class SystemInstall(_Source):
    kind = "system"


@dataclass(frozen=True)
class VendoredSource(_Source):
    needs_build: bool = False
    kind = "vendored"


def has_source_tree(path):
    return any(os.path.isfile(os.path.join(path, name)) for name in AGC_MAKEFILES)


def _clone_command(settings, destination):
    return [
        "git", "clone", "--recurse-submodules", "--depth", "1",
        "--branch", settings.tag, settings.repository, destination,
    ]


def _strip_git_metadata(path):
    """Turn a checkout into plain source, like a vendored copy."""
    for dirpath, dirnames, filenames in os.walk(path):
        if ".git" in dirnames:
            shutil.rmtree(os.path.join(dirpath, ".git"))
            dirnames.remove(".git")
        for name in (".git", ".gitignore", ".gitmodules"):
            if name in filenames:
                os.remove(os.path.join(dirpath, name))


def _is_registered_submodule(settings, path):
    gitmodules = os.path.join(settings.root, ".gitmodules")
    if not os.path.isfile(gitmodules):
        return False
    relative = os.path.relpath(path, settings.root).replace(os.sep, "/")
    with open(gitmodules, "r") as f:
        for line in f:
            key, _, value = line.partition("=")
            if key.strip() == "path" and value.strip() == relative:
                return True
    return False


def _require_git(settings, path):
    _, _, returncode = run_shell_command(["git", "--version"], env=dict(settings.environ))
    if returncode == -1:
        raise SourceMissingError(
            f"AGC sources are missing at {path} and git is not installed to fetch them.",
            hint=f"Install git, or run: {format_command(_clone_command(settings, path))}",
            context={"path": path},
        )


def _run_fetch(command, settings, path, cwd=None):
    logger.step_info(f"$ {format_command(command)}", indent=2)
    stdout, stderr, returncode = run_shell_command(command, env=dict(settings.environ), cwd=cwd)
    if returncode != 0:
        raise SourceMissingError(
            f"Fetching AGC sources into {path} failed (exit code {returncode}).",
            hint=f"Run it by hand to see why: {format_command(command)}",
            context={"path": path, "output": (stdout + stderr).strip()},
        )


def _download_archive(settings, path):
    logger.info(f"Downloading AGC sources from {settings.archive_url}")
    if download_and_extract(settings.archive_url, path) is None or not has_source_tree(path):
        raise SourceMissingError(
            f"Could not unpack AGC sources from {settings.archive_url} into {path}.",
            hint="Check [agc] archive_url points at an AGC source archive including 3rd_party/.",
            context={"path": path},
        )


def fetch_vendored_source(settings, path=None):
    """Materialize the vendored AGC tree at ``path``.

    Raises:
        SourceMissingError: if no fetch tool is available or the fetch fails.
    """
    path = path or settings.vendored_path
    if settings.archive_url:
        _download_archive(settings, path)
        return path

    _require_git(settings, path)
    if _is_registered_submodule(settings, path):
        logger.info(f"Initializing submodule {os.path.relpath(path, settings.root)}")
        relative = os.path.relpath(path, settings.root)
        _run_fetch(
            ["git", "submodule", "update", "--init", "--recursive", "--", relative],
            settings, path, cwd=settings.root,
        )
    else:
        logger.info(f"Cloning AGC {settings.tag} from {settings.repository}")
        _run_fetch(_clone_command(settings, path), settings, path)
        _strip_git_metadata(path)

    if not has_source_tree(path):
        raise SourceMissingError(
            f"Fetched AGC sources at {path} have no makefile.",
            hint=f"Remove {path} and run 'agcbuilder vendor'.",
            context={"path": path},
        )
    return path


def vendor_source(settings, force=False):
    """(Re)create the vendored copy of AGC from the pinned upstream tag."""
    path = settings.vendored_path
    if has_source_tree(path) and not force:
        logger.info(f"AGC sources already present at {path}. Use --force to refresh.")
        return path

    staging = tempfile.mkdtemp(prefix="agc-vendor-")
    try:
        fetched = fetch_vendored_source(settings, os.path.join(staging, "agc"))
        if os.path.exists(path):
            logger.info(f"Removing existing AGC directory {path}")
            shutil.rmtree(path)
        shutil.move(fetched, path)
    finally:
        shutil.rmtree(staging, ignore_errors=True)
    logger.success(f"AGC {settings.tag} vendored into {path}")
    return path


def resolve_dependency_source(settings):
    """Decide where AGC comes from for this build.

    Returns:
        EnvironmentOverride, SystemInstall or VendoredSource. ``needs_build``
        is set when the library archive is absent.
    """
    if settings.agc_dir:
        path = os.path.abspath(os.path.join(settings.root, settings.agc_dir))
        source = EnvironmentOverride(path)
        if source.artifact.exists():
            logger.info(f"Using prebuilt AGC from override {path}")
            return source
        if has_source_tree(path):
            logger.info(f"AGC override {path} has no {AGC_ARCHIVE} yet; it will be built")
            return EnvironmentOverride(path, needs_build=True)
        raise SourceMissingError(
            f"AGC_DIR points at {path}, which holds neither {AGC_ARCHIVE} nor AGC sources.",
            hint="Unset AGC_DIR to use the vendored copy, or point it at an AGC checkout.",
            context={"path": path},
        )

    system = SystemInstall(os.path.abspath(settings.system_dir))
    if system.artifact.exists():
        logger.info(f"Using system AGC at {system.path}")
        return system

    path = settings.vendored_path
    vendored = VendoredSource(path)
    if vendored.artifact.exists():
        logger.info(f"Vendored AGC already built at {vendored.artifact.path}")
        return vendored
    if not has_source_tree(path):
        logger.warning(f"Vendored AGC sources not found at {path}; fetching them")
        fetch_vendored_source(settings, path)
    return VendoredSource(path, needs_build=True)
