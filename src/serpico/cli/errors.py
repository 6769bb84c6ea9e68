"""
CLI Error Handling
==================

Maps exceptions to messages and exit codes for the serpico command.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from serpico.errors import SerpicoError


class ExitCode(IntEnum):
    """Exit codes for the serpico command."""
    SUCCESS = 0
    DEVICE_ERROR = 1     # Discovery, connection, or protocol failure
    INVALID_ARGS = 2     # Invalid arguments or unreadable script file
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(error: Exception, verbose: bool = False) -> NoReturn:
    """
    Report an exception and exit with the matching exit code.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors

    Raises:
        SystemExit: Always
    """
    if isinstance(error, SerpicoError):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.DEVICE_ERROR)

    elif isinstance(error, (click.BadParameter, FileNotFoundError, PermissionError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
