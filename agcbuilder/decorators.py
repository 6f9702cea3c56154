import functools
import sys
import click
from .cli_logger import logger
from .errors import AgcBuildError

def handle_exceptions(func):
    """Report build errors as actionable messages and exit non-zero."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.Abort:
            logger.warning("Command aborted by user.")
            sys.exit(1)
        except click.ClickException:
            raise
        except AgcBuildError as e:
            logger.error(str(e))
            logger.exception(*sys.exc_info())
            sys.exit(1)
        except Exception as e:
            logger.error(f"An unexpected error occurred: {e}")
            logger.info(f"The traceback was written to {logger.log_file}")
            logger.exception(*sys.exc_info())
            sys.exit(1)
    return wrapper
