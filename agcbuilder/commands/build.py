import click
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..orchestrator import run_build

@click.command()
@click.pass_context
@click.option("--jobs", "-j", type=click.IntRange(min=0), default=None, help="Parallel jobs for AGC's make (default: unbounded -j).")
@click.option("--verbose", "-v", is_flag=True, help="Stream the native build output.")
@handle_exceptions
def build(ctx, jobs, verbose):
    """Build AGC and the bridge, then write the link plan."""
    settings = config_module.load_settings(ctx.obj["path"])
    if jobs is not None:
        settings = config_module.with_overrides(settings, jobs=jobs)

    result = run_build(settings, verbose=verbose)

    logger.success("Build completed successfully.")
    logger.step_info(f"AGC library:   {result.native_artifact.path}", indent=2)
    logger.step_info(f"Bridge:        {result.bridge_archive}", indent=2)
    logger.step_info(f"Link plan:     {result.link_plan_path}", indent=2)
    if result.toolchain is not None:
        logger.step_info(f"Toolchain:     {result.toolchain.describe()}", indent=2)
