"""
serpico - Command-Line Interface
================================

Runs a Python script on a MicroPython board connected over USB serial.

Usage Examples
--------------
Run a script on the only connected board:
    $ serpico blink.py

Run on a specific board, giving up after 5 seconds of silence:
    $ serpico --device /dev/ttyACM1 --timeout 5 blink.py

Show which board would be used:
    $ serpico --print-discovery

List every serial port:
    $ serpico --list

The script's standard output is written to stdout and its error output
(tracebacks) to stderr as the board produces them.

Exit Codes
----------
0 - Success
1 - Discovery, connection, or protocol error
2 - Invalid arguments or unreadable script file
3 - Internal error
"""

import logging
import sys
from pathlib import Path
from typing import BinaryIO, Callable, Optional

import click

from serpico import __version__
from serpico.cli.errors import handle_cli_exception
from serpico.comms import (
    execute,
    find_micropython_devices,
    format_port_list,
    list_serial_ports,
    select_device,
)
from serpico.config import SessionConfig

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


def stream_writer(stream: BinaryIO) -> Callable[[bytes], None]:
    """Forward device output to a binary stream without buffering."""
    def write(data: bytes) -> None:
        stream.write(data)
        stream.flush()
    return write


@click.command()
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path), required=False)
@click.option(
    "-d", "--device",
    type=str,
    default=None,
    help="Serial device of the board (auto-detect if not specified)",
)
@click.option(
    "-t", "--timeout",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds to wait for the board before giving up (default: wait forever)",
)
@click.option(
    "-p", "--print-discovery",
    is_flag=True,
    help="Print the discovered MicroPython device and exit",
)
@click.option(
    "-l", "--list", "list_ports",
    is_flag=True,
    help="List available serial ports and exit",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.version_option(version=__version__, prog_name="serpico")
def main(
    file: Optional[Path],
    device: Optional[str],
    timeout: Optional[float],
    print_discovery: bool,
    list_ports: bool,
    verbose: bool,
) -> None:
    """
    Run FILE on a MicroPython board.

    If --device is not given, serpico looks for USB serial ports whose
    manufacturer is "MicroPython" and uses the board only if exactly one
    is found.
    """
    setup_logging(verbose)

    config = SessionConfig.from_env()
    if device:
        config.device = device
    if timeout is not None:
        config.idle_timeout = timeout

    if list_ports:
        click.echo(format_port_list(list_serial_ports(), verbose=verbose))
        return

    if not print_discovery:
        if file is None:
            raise click.UsageError("No file specified")
        if not file.is_file():
            raise click.BadParameter(f"File '{file}' does not exist.", param_hint="'FILE'")

    try:
        target = config.device or select_device(find_micropython_devices(config.manufacturer))

        if print_discovery:
            click.echo(target)
            return

        script = file.read_bytes()
        logger.info("Running %s (%d bytes) on %s", file, len(script), target)

        execute(
            target,
            script,
            config=config,
            stdout=stream_writer(sys.stdout.buffer),
            stderr=stream_writer(sys.stderr.buffer),
        )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


if __name__ == "__main__":
    main()
