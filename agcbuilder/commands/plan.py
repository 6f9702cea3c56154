import json
import click
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..link_plan import format_plan, render_linker_args
from ..orchestrator import run_build

@click.command()
@click.pass_context
@click.option("--format", "output_format", type=click.Choice(["text", "args", "json"]), default="text",
              help="How to print the plan.")
@handle_exceptions
def plan(ctx, output_format):
    """Print the link plan without building anything."""
    settings = config_module.load_settings(ctx.obj["path"])
    previous, logger.quiet = logger.quiet, output_format != "text"
    try:
        result = run_build(settings, plan_only=True)
    finally:
        logger.quiet = previous
    link_plan = result.link_plan

    if output_format == "json":
        click.echo(json.dumps(link_plan.to_dict(result.strategy), indent=2))
    elif output_format == "args":
        click.echo(" ".join(render_linker_args(link_plan, result.strategy)))
    else:
        click.echo(format_plan(link_plan))
