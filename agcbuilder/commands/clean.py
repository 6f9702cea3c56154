import click
import shutil
import os
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..dependency import has_source_tree
from ..utils.command_executor import run_shell_command

@click.command()
@click.pass_context
@click.option("--native", is_flag=True, help="Also run 'make clean' in the vendored AGC tree.")
@handle_exceptions
def clean(ctx, native):
    """Remove the bridge objects and the link plan."""
    settings = config_module.load_settings(ctx.obj["path"])
    items_removed = 0

    if os.path.isdir(settings.build_path):
        logger.info(f"Removing directory {settings.build_path}...")
        shutil.rmtree(settings.build_path)
        items_removed += 1

    if native:
        vendored = settings.vendored_path
        if has_source_tree(vendored):
            logger.info(f"Cleaning the AGC build in {vendored}...")
            stdout, stderr, returncode = run_shell_command(
                ["make", "clean"], env=settings.subprocess_environment(), cwd=vendored
            )
            if returncode != 0:
                logger.error(f"'make clean' failed in {vendored}:\n{stdout}{stderr}")
            else:
                items_removed += 1
        else:
            logger.info(f"No vendored AGC sources at {vendored}; nothing to clean there.")

    if items_removed > 0:
        logger.success(f"Cleaning complete. Removed {items_removed} items.")
    else:
        logger.info("Project is already clean.")
