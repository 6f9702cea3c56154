import subprocess
import shlex
from ..cli_logger import logger


def format_command(command):
    """Render an argument list the way a user would type it in a shell."""
    return " ".join(shlex.quote(str(part)) for part in command)


def run_shell_command(command, stream_output=False, env=None, input_data=None, cwd=None):
    """
    Executes a command without a shell and waits for it to finish.

    Args:
        command (list): The command to execute as a list of strings.
        stream_output (bool): If True, echoes output lines through the logger
            while the command runs. stderr is merged into stdout.
        env (dict, optional): The complete environment for the child. ``None``
            inherits the current process environment.
        input_data (str, optional): Data to be passed to the command's stdin.
        cwd (str, optional): The working directory for the command.

    Returns:
        A tuple (stdout, stderr, return_code). When the executable cannot be
        started at all the return code is -1 and stderr holds the reason.
    """
    command = [str(part) for part in command]
    try:
        if stream_output:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=1,
                universal_newlines=True,
                env=env,
                cwd=cwd
            )
            collected = []
            for line in process.stdout:
                collected.append(line)
                logger.command_output(line)
            process.wait()
            return "".join(collected), "", process.returncode

        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            env=env,
            input=input_data,
            check=False,
            cwd=cwd
        )
        return result.stdout, result.stderr, result.returncode

    except FileNotFoundError as e:
        logger.debug(f"Command not found: {e.filename or command[0]}")
        return "", f"command not found: {command[0]}", -1
    except PermissionError as e:
        logger.debug(f"Command not executable: {e.filename or command[0]}")
        return "", f"permission denied: {command[0]}", -1
    except OSError as e:
        logger.debug(f"Command could not be started: {command[0]}: {e}")
        return "", f"cannot execute {command[0]}: {e.strerror or e}", -1
