"""Run the build stages in order, stopping at the first failure."""

from __future__ import annotations

import platform
from dataclasses import dataclass

from .bridge import bridge_archive_path, compile_bridge, configure_bridge
from .cli_logger import logger
from .dependency import resolve_dependency_source
from .link_plan import synthesize_link_plan, write_link_plan
from .native_builder import build_native
from .platforms import select_platform_strategy
from .toolchain import resolve_toolchain


@dataclass
class BuildResult:
    strategy: object
    source: object
    toolchain: object
    native_artifact: object
    bridge_archive: str | None
    link_plan: object
    link_plan_path: str | None


def run_build(settings, strategy=None, probe=None, plan_only=False, verbose=False):
    """Resolve AGC, pick the toolchain, build, compile the bridge and plan the link.

    With ``plan_only`` the native build and the bridge compile are skipped and
    no plan file is written; the plan then refers to where the artifacts will be.
    """
    if strategy is None:
        strategy = select_platform_strategy(platform.system(), platform.machine(), settings.platform_hint)
    logger.info(f"Platform strategy: {strategy.name} ({strategy.machine})")

    logger.info("[1/5] Resolving AGC sources...")
    source = resolve_dependency_source(settings)

    logger.info("[2/5] Locating a compatible toolchain...")
    toolchain = resolve_toolchain(settings, strategy, probe=probe)

    native_artifact = source.artifact
    bridge_archive = None
    if plan_only:
        bridge_archive = bridge_archive_path(settings)
        logger.info("[3/5] Skipping native build (plan only)")
        logger.info("[4/5] Skipping bridge compile (plan only)")
    else:
        logger.info("[3/5] Building AGC...")
        native_artifact = build_native(source, toolchain, settings, strategy, verbose=verbose)

        logger.info("[4/5] Compiling the bridge...")
        bridge_config = configure_bridge(settings, source.path, toolchain, strategy)
        bridge_archive = compile_bridge(bridge_config)

    logger.info("[5/5] Synthesizing the link plan...")
    plan = synthesize_link_plan(settings, source, toolchain, strategy, bridge_archive=bridge_archive)
    plan_path = None
    if not plan_only:
        plan_path = write_link_plan(plan, settings.link_plan_path, strategy)
        logger.success(f"Link plan written to {plan_path}")

    return BuildResult(
        strategy=strategy,
        source=source,
        toolchain=toolchain,
        native_artifact=native_artifact,
        bridge_archive=bridge_archive,
        link_plan=plan,
        link_plan_path=plan_path,
    )
