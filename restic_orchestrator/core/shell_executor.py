#!/usr/bin/env python3
"""
Safe command execution utilities.
Commands are always argument lists, never shell strings.
"""

import os
import shutil
import subprocess
from pathlib import Path
from typing import Tuple, Optional, List, Mapping

from .logger import get_logger

logger = get_logger(__name__)


def _merged_env(env: Optional[Mapping[str, str]]) -> Optional[dict]:
    if not env:
        return None
    merged = dict(os.environ)
    merged.update(env)
    return merged


def run_command(
    command: List[str],
    check: bool = True,
    capture_output: bool = True,
    timeout: Optional[int] = 30,
    env: Optional[Mapping[str, str]] = None
) -> Tuple[bool, str, str]:
    """
    Execute a command and capture its output.

    Args:
        command: Command and arguments as list
        check: If True, raise internally on non-zero exit (logged at debug level)
        capture_output: If True, capture stdout/stderr
        timeout: Command timeout in seconds (None for no limit)
        env: Extra environment variables for the child process

    Returns:
        Tuple of (success, stdout, stderr)
    """
    try:
        logger.debug(f"Running command: {' '.join(command)}")

        result = subprocess.run(
            command,
            check=check,
            capture_output=capture_output,
            text=True,
            timeout=timeout,
            env=_merged_env(env)
        )

        stdout = result.stdout.strip() if result.stdout else ""
        stderr = result.stderr.strip() if result.stderr else ""

        if stdout:
            logger.debug(f"Command stdout: {stdout}")
        if stderr:
            logger.debug(f"Command stderr: {stderr}")

        return result.returncode == 0, stdout, stderr

    except subprocess.CalledProcessError as e:
        logger.debug(f"Command failed with code {e.returncode}: {e.stderr}")
        return False, e.stdout.strip() if e.stdout else "", e.stderr.strip() if e.stderr else ""

    except subprocess.TimeoutExpired:
        error_msg = f"Command timed out after {timeout}s"
        logger.error(error_msg)
        return False, "", error_msg

    except OSError as e:
        error_msg = f"Command execution error: {e}"
        logger.error(error_msg)
        return False, "", str(e)


def run_to_files(
    command: List[str],
    stdout_path: Path,
    stderr_path: Path,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[int] = None
) -> int:
    """
    Execute a long-running command, appending its output to two files.

    Args:
        command: Command and arguments as list
        stdout_path: File receiving stdout (appended)
        stderr_path: File receiving stderr (appended)
        env: Extra environment variables for the child process
        timeout: Command timeout in seconds (None for no limit)

    Returns:
        The process exit code, or -1 if the process could not be run
    """
    logger.debug(f"Running command: {' '.join(command)}")

    with open(stdout_path, "a", encoding="utf-8") as out, \
         open(stderr_path, "a", encoding="utf-8") as err:
        try:
            result = subprocess.run(
                command,
                stdout=out,
                stderr=err,
                stdin=subprocess.DEVNULL,
                timeout=timeout,
                env=_merged_env(env)
            )
            return result.returncode

        except subprocess.TimeoutExpired:
            err.write(f"Command timed out after {timeout}s: {command[0]}\n")
            logger.error(f"Command timed out after {timeout}s")
            return -1

        except OSError as e:
            err.write(f"Command execution error: {e}\n")
            logger.error(f"Command execution error: {e}")
            return -1


def check_command_available(command: str) -> bool:
    """
    Check if a command is available in the system.

    Args:
        command: Command name or path to check

    Returns:
        True if command exists
    """
    if Path(command).is_file():
        return os.access(command, os.X_OK)
    return shutil.which(command) is not None
