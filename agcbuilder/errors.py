"""Error taxonomy for the AGC build orchestrator.

Every error carries a stable code, an optional remediation hint and a small
context mapping (paths, versions, commands) so the message printed by the
CLI is enough for a human to fix the problem.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum


class ErrorCode(str, Enum):
    CONFIGURATION = "E_CONFIGURATION"
    SOURCE_MISSING = "E_SOURCE_MISSING"
    NO_TOOLCHAIN = "E_NO_TOOLCHAIN"
    NATIVE_BUILD = "E_NATIVE_BUILD"
    BRIDGE_COMPILE = "E_BRIDGE_COMPILE"
    LINK_RESOURCE = "E_LINK_RESOURCE"


class AgcBuildError(Exception):
    """Base error: message plus code, hint and context."""

    code = ErrorCode.CONFIGURATION

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for key, value in self.context.items():
            if value:
                parts.append(f"  {key}: {value}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code.value,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ConfigurationError(AgcBuildError):
    code = ErrorCode.CONFIGURATION


class SourceMissingError(AgcBuildError):
    code = ErrorCode.SOURCE_MISSING


class NoCompatibleToolchainError(AgcBuildError):
    code = ErrorCode.NO_TOOLCHAIN


class NativeBuildError(AgcBuildError):
    """The native library's own build exited non-zero.

    ``output`` holds the child's captured stdout and stderr, unmodified.
    """

    code = ErrorCode.NATIVE_BUILD

    def __init__(self, message, *, output="", returncode=None, hint=None, context=None):
        super().__init__(message, hint=hint, context=context)
        self.output = output
        self.returncode = returncode

    def __str__(self) -> str:
        text = super().__str__()
        if self.output:
            text = f"{text}\n--- build output ---\n{self.output}"
        return text


class BridgeCompileError(AgcBuildError):
    code = ErrorCode.BRIDGE_COMPILE

    def __init__(self, message, *, diagnostic="", hint=None, context=None):
        super().__init__(message, hint=hint, context=context)
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        text = super().__str__()
        if self.diagnostic:
            text = f"{text}\n--- compiler diagnostic ---\n{self.diagnostic}"
        return text


class LinkResourceMissingError(AgcBuildError):
    code = ErrorCode.LINK_RESOURCE


__all__ = [
    "AgcBuildError",
    "BridgeCompileError",
    "ConfigurationError",
    "ErrorCode",
    "LinkResourceMissingError",
    "NativeBuildError",
    "NoCompatibleToolchainError",
    "SourceMissingError",
]
