import os
import platform
import sys
import click
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..dependency import AGC_ARCHIVE, has_source_tree
from ..errors import NoCompatibleToolchainError
from ..platforms import select_platform_strategy
from ..toolchain import resolve_toolchain
from ..utils.command_executor import run_shell_command

@click.command()
@click.pass_context
@handle_exceptions
def doctor(ctx):
    """Check that the tools a build needs are installed."""
    settings = config_module.load_settings(ctx.obj["path"])
    strategy = select_platform_strategy(platform.system(), platform.machine(), settings.platform_hint)
    logger.info(f"Running environment check for {strategy.name} ({strategy.machine})...")
    problems = 0

    _, _, returncode = run_shell_command(["git", "--version"])
    if returncode == 0:
        logger.success("git is installed")
    elif has_source_tree(settings.vendored_path) or settings.agc_dir:
        logger.warning("git is not installed (not needed while the AGC sources are present)")
    else:
        logger.error("git is not installed and the vendored AGC sources are missing")
        problems += 1

    make = strategy.make_command()
    _, _, returncode = run_shell_command([make, "--version"])
    if returncode == 0:
        logger.success(f"{make} is installed")
    else:
        logger.error(f"{make} is not installed")
        problems += 1

    try:
        toolchain = resolve_toolchain(settings, strategy)
    except NoCompatibleToolchainError as e:
        logger.error(str(e))
        problems += 1
    else:
        if toolchain is None:
            logger.success("The platform default compiler will be used")
        else:
            logger.success(f"Toolchain: {toolchain.describe()}")

    if settings.agc_dir:
        logger.info(f"AGC_DIR override: {settings.agc_dir}")
    elif os.path.isfile(os.path.join(settings.vendored_path, AGC_ARCHIVE)):
        logger.success(f"Vendored AGC is built at {settings.vendored_path}")
    elif has_source_tree(settings.vendored_path):
        logger.info(f"Vendored AGC sources present at {settings.vendored_path}; not built yet")
    else:
        logger.warning(f"Vendored AGC sources missing at {settings.vendored_path}; run 'agcbuilder vendor'")

    if problems:
        logger.error(f"Environment check found {problems} problem(s).")
        sys.exit(1)
    logger.success("Environment check completed successfully.")
