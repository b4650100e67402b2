"""
Command Actor

Single writer for all account and handle mutations.

Commands are queued on a bounded asyncio queue and executed strictly one at
a time, each one to completion (store and mail system) before the next one
starts. This ordering is what keeps secret and handle uniqueness checks free
of races. Every command carries a future that receives exactly one outcome:
a result or an exception.
"""

import asyncio
import enum
import time
from dataclasses import dataclass, field
from typing import Optional, Union

from incognitomail.core.exceptions import (
    IncognitoMailException,
    InvalidPermissionException,
    ServerNotStartedException,
)
from incognitomail.core.logging import get_logger
from incognitomail.core.metrics import commands_queued, record_command
from incognitomail.services.handle_service import HandleService

logger = get_logger(__name__)

WEBSOCKET_SOURCE = "websocket"
RPC_SOURCE = "rpc"

SUCCESS_RESULT = "success"


def _new_future() -> asyncio.Future:
    return asyncio.get_running_loop().create_future()


# ===================================
# Commands
# ===================================

@dataclass(frozen=True)
class NewHandleCommand:
    source: str
    secret: str
    future: asyncio.Future = field(default_factory=_new_future, repr=False, compare=False)

    kind = "new_handle"


@dataclass(frozen=True)
class NewAccountCommand:
    source: str
    target: str
    future: asyncio.Future = field(default_factory=_new_future, repr=False, compare=False)

    kind = "new_account"


@dataclass(frozen=True)
class DeleteHandleCommand:
    source: str
    handle: str
    secret: str
    future: asyncio.Future = field(default_factory=_new_future, repr=False, compare=False)

    kind = "delete_handle"


@dataclass(frozen=True)
class DeleteAccountCommand:
    source: str
    secret: str
    future: asyncio.Future = field(default_factory=_new_future, repr=False, compare=False)

    kind = "delete_account"


@dataclass(frozen=True)
class TerminateCommand:
    kind = "terminate"


Command = Union[NewHandleCommand, NewAccountCommand, DeleteHandleCommand, DeleteAccountCommand]


class ActorState(enum.Enum):
    NEW = "new"
    RUNNING = "running"
    TERMINATED = "terminated"


# ===================================
# Actor
# ===================================

class CommandActor:
    """
    Executes queued commands one by one against the handle service.

    Lifecycle: NEW -> RUNNING (start) -> TERMINATED (terminate command
    dequeued). Commands queued behind the terminate command are never run.
    """

    def __init__(self, handle_service: HandleService, queue_size: int = 10):
        self.handle_service = handle_service
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.state = ActorState.NEW
        self._accepting = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.state is ActorState.RUNNING

    def start(self) -> asyncio.Task:
        """
        Start consuming commands on the running event loop.

        Returns:
            asyncio.Task: The consumer task
        """
        if self._task is None:
            self.state = ActorState.RUNNING
            self._accepting = True
            self._task = asyncio.create_task(self._run(), name="incognitomail-command-actor")
            logger.info("Command actor started")
        return self._task

    async def submit(self, command: Command) -> str:
        """
        Queue a command and wait for its outcome.

        Args:
            command: Command to execute

        Returns:
            str: The command's result

        Raises:
            ServerNotStartedException: If the actor does not accept commands
            IncognitoMailException: Whatever the command failed with
        """
        if not self._accepting:
            raise ServerNotStartedException()

        await self.queue.put(command)
        commands_queued.inc()
        return await command.future

    async def terminate(self) -> None:
        """Stop accepting commands and queue the terminate command."""
        if self._task is None:
            self.state = ActorState.TERMINATED
            return

        self._accepting = False
        await self.queue.put(TerminateCommand())
        commands_queued.inc()

    async def wait(self) -> None:
        """Block until the actor has terminated."""
        if self._task is None:
            raise ServerNotStartedException()
        await self._task

    async def _run(self) -> None:
        while True:
            command = await self.queue.get()
            commands_queued.dec()

            if isinstance(command, TerminateCommand):
                self.state = ActorState.TERMINATED
                logger.info("Terminating command actor")
                return

            await self._execute(command)

    async def _execute(self, command: Command) -> None:
        start_time = time.time()
        status = "success"

        try:
            result = await self._dispatch(command)
        except InvalidPermissionException as e:
            status = "denied"
            logger.debug(f"Rejected {command.kind} from {command.source}")
            _deliver_error(command, e)
        except IncognitoMailException as e:
            status = "error"
            logger.debug(f"Command {command.kind} failed: {e.message}")
            _deliver_error(command, e)
        except Exception as e:
            # Store and OS failures go back to the caller; the actor keeps running
            status = "error"
            logger.error(f"Command {command.kind} failed: {e}", exc_info=True)
            _deliver_error(command, e)
        else:
            if not command.future.done():
                command.future.set_result(result)
        finally:
            record_command(command.kind, status, time.time() - start_time)

    async def _dispatch(self, command: Command) -> str:
        if isinstance(command, NewHandleCommand):
            return await self.handle_service.new_handle(command.secret)

        # Accounts are managed only from the local control socket
        if isinstance(command, NewAccountCommand):
            _require_trusted(command)
            return await self.handle_service.new_account(command.target)

        if isinstance(command, DeleteHandleCommand):
            _require_trusted(command)
            await self.handle_service.delete_handle(command.secret, command.handle)
            return SUCCESS_RESULT

        if isinstance(command, DeleteAccountCommand):
            _require_trusted(command)
            await self.handle_service.delete_account(command.secret)
            return SUCCESS_RESULT

        raise TypeError(f"Unrecognized command: {command!r}")


def _require_trusted(command: Command) -> None:
    if command.source == WEBSOCKET_SOURCE:
        raise InvalidPermissionException(command.source)


def _deliver_error(command: Command, error: BaseException) -> None:
    # The caller may have gone away and cancelled its future
    if not command.future.done():
        command.future.set_exception(error)
