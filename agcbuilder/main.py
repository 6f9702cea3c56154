import click
from .commands.build import build
from .commands.plan import plan
from .commands.doctor import doctor
from .commands.vendor import vendor
from .commands.config import config
from .commands.clean import clean
from .commands.log import log
from .commands.version import version


@click.group()
@click.option("--path", "-p", default=".", help="Path to the project directory.")
@click.pass_context
def cli(ctx, path):
    """Build AGC and the bridge for the Python bindings."""
    ctx.obj = {"path": path}

cli.add_command(build)
cli.add_command(plan)
cli.add_command(doctor)
cli.add_command(vendor)
cli.add_command(config)
cli.add_command(clean)
cli.add_command(log)
cli.add_command(version)

if __name__ == '__main__':
    cli()
