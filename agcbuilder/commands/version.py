import click
import importlib.metadata
from ..cli_logger import logger

@click.command()
def version():
    """Print the version of agcbuilder."""
    try:
        ver = importlib.metadata.version("agcbuilder")
        logger.info(f"agcbuilder version {ver}")
    except importlib.metadata.PackageNotFoundError:
        logger.error("Error: Could not determine the version of agcbuilder. Is it installed correctly?")
