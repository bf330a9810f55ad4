"""
Utility functions for the GitHub project migration tool.
"""

from __future__ import annotations

import logging
import re
import subprocess
from subprocess import CompletedProcess
from typing import Final

logger: logging.Logger = logging.getLogger(__name__)

_LOG_FILE: Final[str] = "migration.log"
_CONSOLE_LEVELS: Final[dict[int, int]] = {0: logging.WARNING, 1: logging.INFO}


class PassError(Exception):
    """Base class for pass-related errors."""


class InvalidPassPathError(PassError):
    """Raised when the pass path format is invalid or not in the store."""


def setup_logging(*, verbosity: int = 0) -> None:
    """Configure logging for the migration process.

    The console shows warnings by default, info with one ``-v`` and debug
    with two or more. The log file always receives everything.
    """
    console_handler = logging.StreamHandler()
    console_handler.setLevel(_CONSOLE_LEVELS.get(verbosity, logging.DEBUG))

    file_handler = logging.FileHandler(_LOG_FILE, mode="a")
    file_handler.setLevel(logging.DEBUG)

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[console_handler, file_handler],
    )


def normalize_base_url(base_url: str) -> str:
    """Strip a single trailing slash from an API base URL."""
    if base_url.endswith("/"):
        normalized = base_url[:-1]
        logger.info(f"Automatically removing trailing slash from base URL - base URL is now {normalized}")
        return normalized
    return base_url


def _validate_pass_path(pass_path: str) -> None:
    if not re.fullmatch(r"(?:[A-Za-z0-9_-]+)(?:/[A-Za-z0-9_-]+)*", pass_path):
        msg = f"Invalid pass path: {pass_path}"
        raise ValueError(msg)


def get_pass_value(pass_path: str) -> str:
    """Get a secret from the pass utility at the specified path."""
    _validate_pass_path(pass_path)

    try:
        result: CompletedProcess[str] = subprocess.run(  # noqa: S603
            ["pass", "show", pass_path], capture_output=True, text=True, check=True
        )
    except FileNotFoundError as e:
        msg = "The pass utility is not installed"
        raise PassError(msg) from e
    except subprocess.CalledProcessError as e:
        if "not in the password store" in e.stderr.lower():
            msg = f"Pass path '{pass_path}' not found in the password store."
            raise InvalidPassPathError(msg) from e
        msg = (
            f"Failed to get value from pass at '{pass_path}'.\n"
            f"Error: {e.stderr.strip()}\n"
            f"Return code: {e.returncode}"
        )
        raise PassError(msg) from e

    # pass stores the secret on the first line; further lines are metadata
    return result.stdout.splitlines()[0].strip() if result.stdout else ""
