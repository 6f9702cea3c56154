from .command_executor import run_shell_command, format_command
from .file_manager import download_and_extract, extract
