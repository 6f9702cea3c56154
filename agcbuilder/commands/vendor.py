import click
from .. import config as config_module
from ..decorators import handle_exceptions
from ..dependency import vendor_source

@click.command()
@click.pass_context
@click.option("--force", is_flag=True, help="Replace an existing vendored copy.")
@handle_exceptions
def vendor(ctx, force):
    """Fetch the pinned AGC release into the vendored directory."""
    settings = config_module.load_settings(ctx.obj["path"])
    vendor_source(settings, force=force)
