"""Compile the C++ bridge against AGC's headers with the build's toolchain.

Using a different compiler here than for ``libagc.a`` would mix two C++
runtimes in one extension, so the resolved toolchain always wins over the
platform default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .cli_logger import logger
from .errors import BridgeCompileError
from .utils.command_executor import format_command, run_shell_command

BRIDGE_LIBRARY = "agc-bridge"
# Relative to the AGC root.
INCLUDE_SUBDIRS = ("", "src", os.path.join("src", "common"), os.path.join("src", "core"), "3rd_party")
STATIC_RUNTIME_FLAGS = ("-static-libgcc", "-static-libstdc++")

_PROBE_SOURCE = "int main(void) { return 0; }\n"


@dataclass
class BridgeCompileConfig:
    compiler: str
    sources: list[str]
    output_dir: str
    flags: list[str] = field(default_factory=list)
    include_dirs: list[str] = field(default_factory=list)
    header: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    archiver: str = "ar"

    @property
    def archive_path(self) -> str:
        return os.path.join(self.output_dir, f"lib{BRIDGE_LIBRARY}.a")

    def object_path(self, source: str) -> str:
        stem = os.path.splitext(os.path.basename(source))[0]
        return os.path.join(self.output_dir, f"{stem}.o")

    def stamp_path(self, source: str) -> str:
        """File recording the exact command the object was last compiled with."""
        return self.object_path(source) + ".cmd"

    def compile_command(self, source: str) -> list[str]:
        includes = [f"-I{d}" for d in self.include_dirs]
        return [self.compiler, *self.flags, *includes, "-c", source, "-o", self.object_path(source)]


def bridge_archive_path(settings):
    return os.path.join(settings.build_path, BRIDGE_LIBRARY, f"lib{BRIDGE_LIBRARY}.a")


def flag_supported(compiler, flag, env=None):
    """True when ``compiler`` accepts ``flag`` without so much as a warning."""
    command = [compiler, flag, "-Werror", "-x", "c++", "-c", "-", "-o", os.devnull]
    _, _, returncode = run_shell_command(command, env=env, input_data=_PROBE_SOURCE)
    return returncode == 0


def configure_bridge(settings, source_root, toolchain, strategy):
    """Flags, include paths and compiler for the bridge sources."""
    env = settings.subprocess_environment()
    if toolchain is not None:
        compiler = toolchain.cxx_path
    else:
        compiler = settings.cxx or strategy.default_cxx

    flags = [f"-std={settings.cxx_std}"]
    if settings.pic:
        flags.append("-fPIC")

    if toolchain is not None:
        flags.extend(strategy.bridge_arch_flags())
        flags.extend(STATIC_RUNTIME_FLAGS)
        if toolchain.runtime_dir:
            flags.append(f"-L{toolchain.runtime_dir}")
    else:
        flags.extend(flag for flag in STATIC_RUNTIME_FLAGS if flag_supported(compiler, flag, env))

    header = os.path.join(settings.root, settings.bridge_header) if settings.bridge_header else None
    return BridgeCompileConfig(
        compiler=compiler,
        sources=[os.path.join(settings.root, s) for s in settings.bridge_sources],
        output_dir=os.path.dirname(bridge_archive_path(settings)),
        flags=flags,
        include_dirs=[os.path.join(source_root, d) if d else source_root for d in INCLUDE_SUBDIRS],
        header=header,
        env=env,
    )


def _read_stamp(path):
    if not os.path.isfile(path):
        return None
    with open(path, "r") as f:
        return f.read()


def _is_up_to_date(target, *inputs):
    if not os.path.exists(target):
        return False
    target_mtime = os.path.getmtime(target)
    return all(os.path.getmtime(p) <= target_mtime for p in inputs if p and os.path.exists(p))


def compile_bridge(config: BridgeCompileConfig):
    """Compile every bridge source and bundle the objects into one archive.

    Objects are reused only when they are newer than their source and the
    bridge header and were compiled with the same command line, so a change of
    compiler, flags or AGC tree recompiles them.

    Returns:
        Path of ``libagc-bridge.a``.

    Raises:
        BridgeCompileError: a source is missing, or the compiler or archiver failed.
    """
    if not config.sources:
        raise BridgeCompileError("No bridge sources configured.", hint="Set [bridge] sources in agcbuilder.toml.")
    os.makedirs(config.output_dir, exist_ok=True)

    objects = []
    rebuilt = False
    for source in config.sources:
        if not os.path.isfile(source):
            raise BridgeCompileError(
                f"Bridge source {source} does not exist.",
                hint="Check [bridge] sources in agcbuilder.toml.",
            )
        obj = config.object_path(source)
        objects.append(obj)
        command = config.compile_command(source)
        stamp = config.stamp_path(source)
        if _read_stamp(stamp) == format_command(command) and _is_up_to_date(obj, source, config.header):
            logger.step_info(f"- {os.path.basename(obj)} is up to date", indent=2)
            continue
        if os.path.exists(stamp):
            os.remove(stamp)

        logger.step_info(f"$ {format_command(command)}", indent=2)
        stdout, stderr, returncode = run_shell_command(command, env=config.env)
        if returncode != 0:
            raise BridgeCompileError(
                f"Compiling {os.path.basename(source)} failed (exit code {returncode}).",
                diagnostic=(stderr + stdout).strip(),
                context={"compiler": config.compiler, "command": format_command(command)},
            )
        with open(stamp, "w") as f:
            f.write(format_command(command))
        rebuilt = True

    archive = config.archive_path
    if rebuilt or not os.path.exists(archive):
        if os.path.exists(archive):
            os.remove(archive)
        command = [config.archiver, "rcs", archive, *objects]
        stdout, stderr, returncode = run_shell_command(command, env=config.env)
        if returncode != 0:
            raise BridgeCompileError(
                f"Archiving the bridge objects failed (exit code {returncode}).",
                diagnostic=(stderr + stdout).strip(),
                context={"command": format_command(command)},
            )
        logger.success(f"Bridge compiled into {archive}")
    else:
        logger.info(f"Bridge archive {archive} is up to date")
    return archive
