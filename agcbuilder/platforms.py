"""Per-platform linking and build strategies.

One strategy is chosen at the start of a build and handed to every stage, so
the macOS/other split lives here instead of being re-tested in each stage.
"""

from __future__ import annotations

import platform as _platform

from .utils.command_executor import run_shell_command

ARM64_MACHINES = frozenset({"arm64", "aarch64"})


class PlatformLinkingStrategy:
    """Defaults for Linux and other ELF platforms using the system compiler."""

    name = "default"
    default_system = "linux"
    requires_bounded_toolchain = False
    default_cxx = "c++"
    # C++ runtime linked when no alternate toolchain was resolved.
    default_cxx_runtime = "stdc++"
    # Link a shared runtime (libgcc_s) alongside its force-loaded archive.
    links_shared_runtime_companions = False
    system_libraries = ("z", "pthread")
    library_search_hints = ("/usr/lib", "/usr/local/lib")

    def __init__(self, machine: str, platform_hint: str | None = None, system: str | None = None) -> None:
        self.machine = machine
        self.system = system or self.default_system
        self._platform_hint = platform_hint

    @property
    def is_arm64(self) -> bool:
        return self.machine.lower() in ARM64_MACHINES

    def make_command(self) -> str:
        return "make"

    def platform_hint(self) -> str | None:
        """Value forwarded to AGC's Makefile as ``PLATFORM``."""
        return self._platform_hint

    def bridge_arch_flags(self) -> list[str]:
        return []

    def force_load_args(self, archive: str) -> list[str]:
        return ["-Wl,--whole-archive", archive, "-Wl,--no-whole-archive"]

    def static_lib_args(self, name: str) -> list[str]:
        return ["-Wl,-Bstatic", f"-l{name}", "-Wl,-Bdynamic"]

    def shared_library_patterns(self, name: str) -> list[str]:
        return [f"lib{name}.so", f"lib{name}.so.*"]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(machine={self.machine!r})"


class MacOSLinkingStrategy(PlatformLinkingStrategy):
    """macOS: Apple clang cannot build AGC, so a Homebrew GCC is mandatory."""

    name = "macos"
    default_system = "darwin"
    requires_bounded_toolchain = True
    default_cxx_runtime = None
    links_shared_runtime_companions = True
    library_search_hints = ("/opt/homebrew/lib", "/usr/local/lib")

    def make_command(self) -> str:
        # AGC's makefile needs GNU make 4+, Xcode ships 3.81 as `make`.
        _, _, returncode = run_shell_command(["gmake", "--version"])
        return "gmake" if returncode == 0 else "make"

    def platform_hint(self) -> str | None:
        if self._platform_hint:
            return self._platform_hint
        return "arm8" if self.is_arm64 else None

    def bridge_arch_flags(self) -> list[str]:
        return ["-march=armv8-a"] if self.is_arm64 else []

    def force_load_args(self, archive: str) -> list[str]:
        return [f"-Wl,-force_load,{archive}"]

    def static_lib_args(self, name: str) -> list[str]:
        # ld64 has no -Bstatic; AGC's bin/ only holds the archive.
        return [f"-l{name}"]

    def shared_library_patterns(self, name: str) -> list[str]:
        # gcc_s.1 -> libgcc_s.1.dylib
        return [f"lib{name}.dylib"]


def select_platform_strategy(system=None, machine=None, platform_hint=None):
    """Pick the strategy for ``system`` (defaults to the running host)."""
    system = (system or _platform.system()).lower()
    machine = machine or _platform.machine()
    if system == "darwin":
        return MacOSLinkingStrategy(machine, platform_hint, system)
    return PlatformLinkingStrategy(machine, platform_hint, system)
