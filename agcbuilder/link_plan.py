"""Synthesize the ordered link directives for the final extension.

``libagc.a`` built by an alternate GCC references that GCC's runtime
(libstdc++, libgcc, libatomic). Those are not guaranteed to exist as shared
libraries on the host, so their static archives are force-loaded whenever
they can be found, and force-loads always come before anything that could
let the host's own runtime answer for the same symbols.
"""

from __future__ import annotations

import glob
import json
import os
from dataclasses import dataclass, field

from .bridge import BRIDGE_LIBRARY
from .cli_logger import logger
from .errors import LinkResourceMissingError
from .utils.command_executor import run_shell_command


# -------------------- Directives --------------------

@dataclass(frozen=True)
class SearchPath:
    directory: str
    kind = "search_path"

    @property
    def value(self):
        return self.directory


@dataclass(frozen=True)
class StaticLib:
    name: str
    kind = "static_lib"

    @property
    def value(self):
        return self.name


@dataclass(frozen=True)
class DynamicLib:
    name: str
    kind = "dynamic_lib"

    @property
    def value(self):
        return self.name


@dataclass(frozen=True)
class ForceLoadArchive:
    path: str
    # Library name the archive provides, e.g. "stdc++" for libstdc++.a.
    provides: str | None = None
    kind = "force_load"

    @property
    def value(self):
        return self.path


@dataclass(frozen=True)
class LinkerRawArg:
    arg: str
    kind = "raw_arg"

    @property
    def value(self):
        return self.arg


@dataclass(frozen=True)
class RuntimeLibrary:
    """One runtime component of a GCC toolchain."""

    name: str
    static_archives: tuple[str, ...]
    dynamic_names: tuple[str, ...]
    required: bool = True
    # Also link the shared form next to a force-loaded archive, where the
    # platform strategy asks for it (libgcc_s on macOS).
    shared_companion: bool = False


TOOLCHAIN_RUNTIME = (
    RuntimeLibrary("stdc++", ("libstdc++.a",), ("stdc++",)),
    RuntimeLibrary("gcc", ("libgcc.a", "libgcc_eh.a"), ("gcc_s.1", "gcc_s"), shared_companion=True),
    RuntimeLibrary("atomic", ("libatomic.a",), ("atomic",), required=False),
)

BUNDLED_STATIC_LIBRARIES = ("agc", "zstd")


def _directive_dict(directive):
    entry = {"kind": directive.kind, "value": directive.value}
    if isinstance(directive, ForceLoadArchive) and directive.provides:
        entry["provides"] = directive.provides
    return entry


@dataclass
class LinkPlan:
    platform: str
    toolchain: str | None = None
    directives: list = field(default_factory=list)

    def add(self, directive):
        # Repeated search paths add nothing for the linker.
        if isinstance(directive, SearchPath) and directive in self.directives:
            return
        self.directives.append(directive)

    def of_kind(self, cls):
        return [d for d in self.directives if isinstance(d, cls)]

    def index_of(self, directive):
        return self.directives.index(directive)

    def validate_order(self):
        """Raise ValueError if a dynamic library precedes a force-loaded archive."""
        last_force_load = -1
        for index, directive in enumerate(self.directives):
            if isinstance(directive, ForceLoadArchive):
                last_force_load = index
        for index, directive in enumerate(self.directives):
            if isinstance(directive, DynamicLib) and index < last_force_load:
                raise ValueError(
                    f"dynamic library '{directive.name}' at position {index} precedes "
                    f"a force-loaded runtime archive at position {last_force_load}"
                )

    def to_dict(self, strategy=None):
        payload = {
            "platform": self.platform,
            "toolchain": self.toolchain,
            "directives": [_directive_dict(d) for d in self.directives],
        }
        if strategy is not None:
            payload["linker_args"] = render_linker_args(self, strategy)
        return payload


# -------------------- Runtime discovery --------------------

def find_static_archive(toolchain, filename, env=None):
    """Locate ``filename`` for ``toolchain``: its runtime dir first, then ask the driver."""
    expected = toolchain.runtime_archive(filename)
    if expected and os.path.isfile(expected):
        return expected

    stdout, _, returncode = run_shell_command([toolchain.cxx_path, f"-print-file-name={filename}"], env=env)
    reported = stdout.strip()
    # gcc echoes the bare name back when it has no such file.
    if returncode == 0 and os.path.isabs(reported) and os.path.isfile(reported):
        return os.path.normpath(reported)
    return None


def find_shared_library(strategy, directories, names):
    """First (name, directory) whose shared library exists in ``directories``."""
    for name in names:
        for directory in directories:
            if not directory:
                continue
            for pattern in strategy.shared_library_patterns(name):
                if glob.glob(os.path.join(directory, pattern)):
                    return name, directory
    return None


def _add_runtime_fallback(plan, library, toolchain, strategy, policy):
    directories = [toolchain.runtime_dir, *strategy.library_search_hints]
    found = find_shared_library(strategy, directories, library.dynamic_names)
    if found is not None:
        name, directory = found
        logger.warning(
            f"No static {library.static_archives[0]} for GCC {toolchain.identifier}; "
            f"linking lib{name} dynamically from {directory}"
        )
        plan.add(SearchPath(directory))
        plan.add(DynamicLib(name))
        return

    if not library.required:
        logger.debug(f"Optional runtime library {library.name} not found; skipping")
        return

    error = LinkResourceMissingError(
        f"GCC {toolchain.identifier} runtime library '{library.name}' was found neither as "
        f"{' / '.join(library.static_archives)} nor as a shared library.",
        hint=f"Reinstall the toolchain (e.g. brew reinstall gcc@{toolchain.identifier}).",
        context={"searched": ", ".join(d for d in directories if d)},
    )
    if policy == "error":
        raise error
    logger.warning(f"{error}\nAttempting a dynamic link against '{library.dynamic_names[-1]}' anyway.")
    for directory in strategy.library_search_hints:
        plan.add(SearchPath(directory))
    plan.add(DynamicLib(library.dynamic_names[-1]))


def synthesize_link_plan(settings, source, toolchain, strategy, bridge_archive=None, runtime=TOOLCHAIN_RUNTIME):
    """Build the ordered link directives for one build.

    Order: toolchain runtime dir, force-loaded runtime archives, the bridge,
    AGC and its bundled zstd, shared companions of force-loaded runtimes,
    runtime libraries that had to fall back to dynamic linking, then system
    libraries.

    Raises:
        LinkResourceMissingError: a required runtime library was not found and
            ``settings.missing_runtime`` is ``"error"``.
    """
    plan = LinkPlan(platform=strategy.name, toolchain=toolchain.identifier if toolchain else None)
    env = settings.subprocess_environment()

    fallbacks = []
    companions = []
    if toolchain is not None:
        if toolchain.runtime_dir:
            plan.add(SearchPath(toolchain.runtime_dir))
        for library in runtime:
            archive = None
            for filename in library.static_archives:
                archive = find_static_archive(toolchain, filename, env)
                if archive:
                    break
            if archive:
                logger.step_info(f"- force-loading {archive}", indent=2)
                plan.add(ForceLoadArchive(archive, provides=library.name))
                if library.shared_companion and strategy.links_shared_runtime_companions:
                    found = find_shared_library(strategy, [toolchain.runtime_dir], library.dynamic_names)
                    if found is not None:
                        companions.append(found[0])
            else:
                fallbacks.append(library)

    if bridge_archive:
        plan.add(SearchPath(os.path.dirname(bridge_archive)))
        plan.add(StaticLib(BRIDGE_LIBRARY))
    plan.add(SearchPath(source.library_dir))
    plan.add(StaticLib("agc"))
    plan.add(SearchPath(source.zstd_library_dir))
    plan.add(StaticLib("zstd"))

    for name in companions:
        plan.add(DynamicLib(name))
    for library in fallbacks:
        _add_runtime_fallback(plan, library, toolchain, strategy, settings.missing_runtime)

    for name in strategy.system_libraries:
        plan.add(DynamicLib(name))
    if toolchain is None and strategy.default_cxx_runtime:
        plan.add(DynamicLib(strategy.default_cxx_runtime))

    plan.validate_order()
    return plan


# -------------------- Rendering --------------------

def render_linker_args(plan, strategy):
    """Linker driver arguments for ``plan``, in order."""
    args = []
    for directive in plan.directives:
        if isinstance(directive, SearchPath):
            args.append(f"-L{directive.directory}")
        elif isinstance(directive, StaticLib):
            args.extend(strategy.static_lib_args(directive.name))
        elif isinstance(directive, DynamicLib):
            args.append(f"-l{directive.name}")
        elif isinstance(directive, ForceLoadArchive):
            args.extend(strategy.force_load_args(directive.path))
        elif isinstance(directive, LinkerRawArg):
            args.append(directive.arg)
    return args


def as_extension_kwargs(plan, strategy):
    """Keyword arguments for ``setuptools.Extension`` that keep the plan's order."""
    return {"extra_link_args": render_linker_args(plan, strategy)}


def format_plan(plan):
    return "\n".join(f"{d.kind:<12} {d.value}" for d in plan.directives)


def write_link_plan(plan, path, strategy):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        json.dump(plan.to_dict(strategy), f, indent=2)
        f.write("\n")
    return path


def load_link_plan(path):
    """Read a plan written by :func:`write_link_plan` back into directives."""
    kinds = {
        "search_path": SearchPath,
        "static_lib": StaticLib,
        "dynamic_lib": DynamicLib,
        "force_load": ForceLoadArchive,
        "raw_arg": LinkerRawArg,
    }
    with open(path, "r") as f:
        data = json.load(f)
    plan = LinkPlan(platform=data["platform"], toolchain=data.get("toolchain"))
    for entry in data["directives"]:
        cls = kinds[entry["kind"]]
        if cls is ForceLoadArchive:
            plan.directives.append(ForceLoadArchive(entry["value"], provides=entry.get("provides")))
        else:
            plan.directives.append(cls(entry["value"]))
    return plan
