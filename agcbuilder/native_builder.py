"""Run AGC's own makefile to produce ``bin/libagc.a``."""

from __future__ import annotations

from .cli_logger import logger
from .errors import NativeBuildError
from .utils.command_executor import format_command, run_shell_command


def build_environment(settings, toolchain, strategy):
    """The complete environment handed to make: an allow-list, nothing else."""
    env = settings.subprocess_environment()
    if toolchain is not None:
        env["CC"] = toolchain.cc_path
        env["CXX"] = toolchain.cxx_path
    platform_hint = strategy.platform_hint()
    if platform_hint:
        env["PLATFORM"] = platform_hint
    return env


def make_command(settings, strategy):
    jobs = f"-j{settings.jobs}" if settings.jobs else "-j"
    return [strategy.make_command(), jobs]


def build_native(source, toolchain, settings, strategy, verbose=False):
    """Build AGC in ``source.path`` unless its archive already exists.

    Returns the artifact. A previously built archive is trusted as is, even
    if an earlier build was interrupted.

    Raises:
        NativeBuildError: make exited non-zero; carries make's output verbatim.
    """
    artifact = source.artifact
    if artifact.exists():
        logger.info(f"AGC library already built at {artifact.path}; skipping native build")
        return artifact
    if not source.needs_build:
        logger.warning(f"{artifact.path} is missing but {source.kind} AGC is not built here")
        return artifact

    command = make_command(settings, strategy)
    env = build_environment(settings, toolchain, strategy)
    compiler = toolchain.describe() if toolchain is not None else "the default compiler"
    logger.info(f"Building AGC in {source.path} with {compiler}")
    logger.step_info(f"$ {format_command(command)}", indent=2)
    for key in ("CC", "CXX", "PLATFORM"):
        if key in env:
            logger.step_info(f"{key}={env[key]}", indent=4)

    stdout, stderr, returncode = run_shell_command(
        command, stream_output=verbose, env=env, cwd=source.path
    )
    if returncode != 0:
        raise NativeBuildError(
            f"AGC build failed with exit code {returncode}.",
            output=stdout + stderr,
            returncode=returncode,
            hint="Fix the error above and re-run; a partial bin/libagc.a must be removed by hand.",
            context={"directory": source.path, "command": format_command(command)},
        )
    if not artifact.exists():
        raise NativeBuildError(
            f"AGC build finished but {artifact.path} was not produced.",
            output=stdout + stderr,
            returncode=returncode,
            context={"directory": source.path},
        )
    logger.success(f"Built {artifact.path}")
    return artifact
