"""Toolchain discovery.

AGC needs C++20 but refuses GCC 14 and newer, so on platforms whose default
compiler cannot build it we look for a bounded GCC: a fixed list of accepted
versions, tried from most to least preferred, each checked by a probe. The
first candidate whose probe resolves wins; nothing after it is probed.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

from .cli_logger import logger
from .errors import NoCompatibleToolchainError
from .utils.command_executor import run_shell_command

INSTALL_HINT = "brew install gcc@{version}"


@dataclass(frozen=True)
class ToolchainCandidate:
    identifier: str
    cc: str
    cxx: str
    # Lower-cased platform.system() names this candidate applies to; empty means all.
    platforms: frozenset = field(default_factory=frozenset)

    def applies_to(self, system: str) -> bool:
        return not self.platforms or system.lower() in self.platforms


@dataclass(frozen=True)
class ResolvedToolchain:
    """The one toolchain every stage of a build compiles and links with."""

    candidate: ToolchainCandidate
    cc_path: str
    cxx_path: str
    prefix: str | None = None
    runtime_dir: str | None = None
    source: str = "probe"

    @property
    def identifier(self) -> str:
        return self.candidate.identifier

    def runtime_archive(self, filename: str) -> str | None:
        """Expected location of a runtime archive under the runtime dir."""
        if not self.runtime_dir:
            return None
        return os.path.join(self.runtime_dir, filename)

    def describe(self) -> str:
        where = self.prefix or os.path.dirname(self.cxx_path)
        return f"GCC {self.identifier} at {where}"


Probe = Callable[[ToolchainCandidate], "ResolvedToolchain | None"]


def _version_key(identifier: str):
    try:
        return Version(identifier)
    except InvalidVersion:
        return Version("0")


def candidate_versions(max_version=13, min_version=11):
    """Accepted GCC major versions, most preferred (newest) first."""
    if min_version > max_version:
        raise ValueError(f"min_version {min_version} is greater than max_version {max_version}")
    return [str(v) for v in range(max_version, min_version - 1, -1)]


def build_candidates(versions: Iterable[str], platforms: Iterable[str] = ()) -> list[ToolchainCandidate]:
    """Turn version identifiers into ``gcc-N``/``g++-N`` candidates, newest first."""
    ordered = sorted(dict.fromkeys(str(v) for v in versions), key=_version_key, reverse=True)
    predicate = frozenset(p.lower() for p in platforms)
    return [
        ToolchainCandidate(identifier=v, cc=f"gcc-{v}", cxx=f"g++-{v}", platforms=predicate)
        for v in ordered
    ]


def accepted_specifier(versions: Sequence[str]) -> SpecifierSet:
    majors = sorted(_version_key(v).major for v in versions)
    return SpecifierSet(f">={majors[0]},<{majors[-1] + 1}")


def accepted_range(versions: Sequence[str]) -> str:
    majors = sorted(_version_key(v).major for v in versions)
    if majors[0] == majors[-1]:
        return f"GCC {majors[0]}"
    return f"GCC {majors[0]}-{majors[-1]}"


def query_runtime_dir(cxx: str) -> str | None:
    """Ask a GCC driver where its libgcc lives; that directory holds the runtime archives."""
    stdout, _, returncode = run_shell_command([cxx, "-print-libgcc-file-name"])
    path = stdout.strip()
    if returncode != 0 or not os.path.isabs(path):
        return None
    return os.path.dirname(path)


class HomebrewProbe:
    """Resolve ``gcc@N`` through ``brew --prefix``."""

    def __init__(self, brew="brew"):
        self.brew = brew

    def __call__(self, candidate: ToolchainCandidate) -> ResolvedToolchain | None:
        formula = f"gcc@{candidate.identifier}"
        stdout, _, returncode = run_shell_command([self.brew, "--prefix", formula])
        prefix = stdout.strip()
        if returncode != 0 or not prefix:
            logger.debug(f"brew has no {formula}")
            return None
        cc_path = os.path.join(prefix, "bin", candidate.cc)
        cxx_path = os.path.join(prefix, "bin", candidate.cxx)
        if not (os.path.exists(cc_path) and os.path.exists(cxx_path)):
            logger.debug(f"{formula} prefix {prefix} lacks {candidate.cc}/{candidate.cxx}")
            return None
        return ResolvedToolchain(
            candidate=candidate,
            cc_path=cc_path,
            cxx_path=cxx_path,
            prefix=prefix,
            runtime_dir=os.path.join(prefix, "lib", "gcc", candidate.identifier),
            source="homebrew",
        )


class PathProbe:
    """Resolve ``gcc-N``/``g++-N`` from ``PATH``."""

    def __init__(self, search_path=None):
        self.search_path = search_path

    def __call__(self, candidate: ToolchainCandidate) -> ResolvedToolchain | None:
        cc_path = shutil.which(candidate.cc, path=self.search_path)
        cxx_path = shutil.which(candidate.cxx, path=self.search_path)
        if not (cc_path and cxx_path):
            return None
        return ResolvedToolchain(
            candidate=candidate,
            cc_path=cc_path,
            cxx_path=cxx_path,
            prefix=os.path.dirname(os.path.dirname(os.path.realpath(cxx_path))),
            runtime_dir=query_runtime_dir(cxx_path),
            source="path",
        )


class FirstMatchProbe:
    """Try several probes on the same candidate; first non-empty answer wins."""

    def __init__(self, *probes: Probe):
        self.probes = probes

    def __call__(self, candidate: ToolchainCandidate) -> ResolvedToolchain | None:
        for probe in self.probes:
            resolved = probe(candidate)
            if resolved is not None:
                return resolved
        return None


def default_probe(strategy, environ=None) -> Probe:
    search_path = (environ or {}).get("PATH")
    if strategy.requires_bounded_toolchain:
        return FirstMatchProbe(HomebrewProbe(), PathProbe(search_path))
    return PathProbe(search_path)


def locate_toolchain(candidates: Sequence[ToolchainCandidate], probe: Probe, system: str | None = None) -> ResolvedToolchain:
    """Return the first candidate ``probe`` resolves.

    Candidates whose platform predicate excludes ``system`` are skipped
    without probing.

    Raises:
        NoCompatibleToolchainError: when every candidate was tried and none resolved.
    """
    attempted = []
    for candidate in candidates:
        if system and not candidate.applies_to(system):
            continue
        attempted.append(candidate.identifier)
        logger.step_info(f"- probing GCC {candidate.identifier}", indent=2)
        resolved = probe(candidate)
        if resolved is not None:
            logger.info(f"Using {resolved.describe()}")
            return resolved

    versions = [c.identifier for c in candidates]
    if not versions:
        raise NoCompatibleToolchainError("No toolchain candidates were configured.",
                                         hint="Set [toolchain] versions in agcbuilder.toml.")
    raise NoCompatibleToolchainError(
        f"No compatible compiler found; AGC needs {accepted_range(versions)}.",
        hint=f"Install one with: {INSTALL_HINT.format(version=versions[0])}",
        context={"attempted": ", ".join(attempted)},
    )


def _compiler_version(compiler: str) -> str | None:
    # clang rejects -dumpfullversion; gcc 7+ truncates -dumpversion to the major.
    for flag in ("-dumpfullversion", "-dumpversion"):
        stdout, _, returncode = run_shell_command([compiler, flag])
        text = stdout.strip()
        if returncode == 0 and text:
            return text.splitlines()[0].strip()
    return None


def resolve_explicit_toolchain(cc, cxx, versions, enforce_bounds=True) -> ResolvedToolchain:
    """Validate compilers named explicitly in the configuration.

    The C++ compiler is required; the C compiler defaults to it. When
    ``enforce_bounds`` is set the compiler's version must fall in the range
    ``versions`` spans.
    """
    if not cxx:
        raise NoCompatibleToolchainError(
            "A C compiler override was given without a C++ compiler.",
            hint="Set AGC_CXX (or [toolchain] cxx) alongside AGC_CC.",
        )
    cc = cc or cxx
    cxx_path = shutil.which(cxx) or cxx
    cc_path = shutil.which(cc) or cc

    version_text = _compiler_version(cxx_path)
    if version_text is None:
        raise NoCompatibleToolchainError(
            f"Configured C++ compiler '{cxx}' could not be run.",
            hint="Check AGC_CXX / [toolchain] cxx points at an installed compiler.",
            context={"compiler": cxx_path},
        )
    try:
        version = Version(version_text)
    except InvalidVersion:
        version = None

    if enforce_bounds:
        spec = accepted_specifier(versions)
        if version is None or version not in spec:
            raise NoCompatibleToolchainError(
                f"Configured compiler '{cxx}' reports version {version_text}; AGC needs {accepted_range(versions)}.",
                hint=f"Point AGC_CXX at a supported GCC, e.g. after {INSTALL_HINT.format(version=versions[0])}",
                context={"compiler": cxx_path, "accepted": str(spec)},
            )

    identifier = str(version.major) if version is not None else version_text
    candidate = ToolchainCandidate(identifier=identifier, cc=cc, cxx=cxx)
    return ResolvedToolchain(
        candidate=candidate,
        cc_path=cc_path,
        cxx_path=cxx_path,
        runtime_dir=query_runtime_dir(cxx_path),
        source="explicit",
    )


def resolve_toolchain(settings, strategy, probe: Probe | None = None) -> ResolvedToolchain | None:
    """Pick the build's toolchain, or None when the platform default is fine."""
    if settings.cc or settings.cxx:
        logger.info("Using compilers from configuration")
        return resolve_explicit_toolchain(
            settings.cc,
            settings.cxx,
            settings.toolchain_versions,
            enforce_bounds=strategy.requires_bounded_toolchain,
        )
    if not strategy.requires_bounded_toolchain:
        logger.info("Using the platform default compiler")
        return None

    logger.info(f"Looking for {accepted_range(settings.toolchain_versions)}...")
    candidates = build_candidates(settings.toolchain_versions)
    return locate_toolchain(candidates, probe or default_probe(strategy, settings.environ), system=strategy.system)
