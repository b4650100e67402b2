"""
Command Facade

Turns free-text commands from any transport into typed actor commands.

Grammar (whitespace separated):
    new handle <secret>
    new account <target>
    delete handle <handle> <secret>
    delete account <secret>
"""

from typing import List

from incognitomail.core.exceptions import (
    EmptyCommandException,
    UnknownCommandException,
    WrongCommandException,
)
from incognitomail.core.logging import get_logger
from incognitomail.services.command_actor import (
    Command,
    CommandActor,
    DeleteAccountCommand,
    DeleteHandleCommand,
    NewAccountCommand,
    NewHandleCommand,
)

logger = get_logger(__name__)


def parse_command(source: str, text: str) -> Command:
    """
    Parse a free-text command.

    Must be called with a running event loop, since every command owns a
    future for its outcome.

    Args:
        source: Transport the command arrived from
        text: Command text

    Returns:
        Command: The typed command

    Raises:
        EmptyCommandException: If text has no tokens
        UnknownCommandException: If the verb is unknown
        WrongCommandException: If the arguments do not fit the verb
    """
    tokens = text.split()
    if not tokens:
        raise EmptyCommandException()

    verb, args = tokens[0], tokens[1:]

    if verb == "new":
        return _parse_new(source, text, args)
    if verb == "delete":
        return _parse_delete(source, text, args)

    logger.debug(f"Received unknown command: {text}")
    raise UnknownCommandException(verb)


def _parse_new(source: str, text: str, args: List[str]) -> Command:
    if len(args) != 2:
        raise WrongCommandException(text)

    obj, value = args
    if obj == "handle":
        return NewHandleCommand(source=source, secret=value)
    if obj == "account":
        return NewAccountCommand(source=source, target=value)

    logger.debug(f"Received unknown 'new' option: {text}")
    raise WrongCommandException(text)


def _parse_delete(source: str, text: str, args: List[str]) -> Command:
    if not args:
        raise WrongCommandException(text)

    obj = args[0]
    if obj == "handle" and len(args) == 3:
        return DeleteHandleCommand(source=source, handle=args[1], secret=args[2])
    if obj == "account" and len(args) == 2:
        return DeleteAccountCommand(source=source, secret=args[1])

    logger.debug(f"Received malformed 'delete' command: {text}")
    raise WrongCommandException(text)


class CommandFacade:
    """Entry point shared by the public and the control transports."""

    def __init__(self, actor: CommandActor):
        self.actor = actor

    async def submit(self, source: str, text: str) -> str:
        """
        Parse a command, run it through the actor and return its result.

        Parse errors are raised without queueing anything.
        """
        command = parse_command(source, text)
        return await self.actor.submit(command)
