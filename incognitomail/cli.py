"""
Command line interface.

Without a command the server is started. Any other command is sent to the
running server over its control socket:

    incognitomail new account <address>
    incognitomail new handle <secret>
    incognitomail delete account <secret>
    incognitomail delete handle <handle> <secret>
    incognitomail list <secret>
    incognitomail stop

Exit codes: 0 on success, 1 on runtime errors, 2 on wrong usage.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer

from incognitomail.api.client import ControlClient
from incognitomail.config import load_settings
from incognitomail.core.exceptions import InvalidConfigException
from incognitomail.core.logging import get_logger, setup_logging
from incognitomail.server import IncognitoMailServer

logger = get_logger(__name__)

UNSUCCESSFUL_MESSAGE = "The program was unsuccessful due to an error."
INVALID_CONFIG_MESSAGE = "The configuration specified is invalid."

app = typer.Typer(add_completion=False, help="Disposable email handles forwarding to your real address.")


@app.command()
def main(
    ctx: typer.Context,
    command: Optional[List[str]] = typer.Argument(
        None,
        help="Command to send to the running server. Starts the server when omitted.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        dir_okay=False,
        help="Path to a configuration file.",
    ),
) -> None:
    try:
        settings = load_settings(str(config) if config else None)
    except InvalidConfigException as e:
        logger.info("Invalid configuration")
        logger.debug(f"{e.detail}")
        typer.echo(INVALID_CONFIG_MESSAGE)
        raise typer.Exit(1)
    except OSError as e:
        logger.debug(f"{e}")
        typer.echo(UNSUCCESSFUL_MESSAGE)
        raise typer.Exit(1)

    setup_logging(settings)

    args = command or []
    if args and args[0] == "list" and len(args) != 2:
        typer.echo(ctx.get_help())
        raise typer.Exit(2)

    try:
        if not args:
            asyncio.run(IncognitoMailServer(settings).serve())
        else:
            _run_remote(settings.UNIX_SOCK_PATH, args)
    except Exception as e:
        logger.debug(f"{e}")
        typer.echo(UNSUCCESSFUL_MESSAGE)
        raise typer.Exit(1)


def _run_remote(socket_path: str, args: List[str]) -> None:
    with ControlClient(socket_path) as client:
        if args[0] == "stop":
            client.stop()
            typer.echo("Stopped server")
        elif args[0] == "list":
            for handle in client.list_handles(args[1]):
                typer.echo(handle)
        else:
            typer.echo(client.send_command(" ".join(args)))


if __name__ == "__main__":
    app()
