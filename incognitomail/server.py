"""
IncognitoMail Server

Process supervisor wiring everything together:
- Singleton lock file
- Persistence, handle service, command actor
- Control listener on the Unix socket, public listener on TCP
- Signal triggered shutdown

Shutdown order: control listener, command actor, persistence, lock file,
and only then the public listener, so public requests still in flight get
an answer instead of a reset connection.
"""

import asyncio
import contextlib
import fcntl
import os
import signal
from typing import Optional

import uvicorn

from incognitomail.api.control import create_control_app
from incognitomail.api.public import create_public_app
from incognitomail.config import Settings
from incognitomail.core.exceptions import (
    ListenerException,
    LockFileException,
    ServerNotStartedException,
)
from incognitomail.core.logging import get_logger
from incognitomail.mailsystem import MailSystemHandleWriter, mail_system_writer_from_settings
from incognitomail.services.command_actor import CommandActor
from incognitomail.services.command_facade import CommandFacade
from incognitomail.services.handle_service import HandleService
from incognitomail.services.persistence import IncognitoData

logger = get_logger(__name__)


class _ListenerServer(uvicorn.Server):
    """uvicorn server leaving signal handling to the supervisor."""

    def __init__(self, config: uvicorn.Config, name: str):
        super().__init__(config)
        self.name = name

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    async def serve(self, sockets=None) -> None:
        try:
            await super().serve(sockets=sockets)
        except (SystemExit, OSError) as e:
            if self.started:
                raise
            # uvicorn calls sys.exit when it cannot bind
            raise ListenerException(
                f"could not start the {self.name} listener",
                detail={"error": str(e)},
            ) from e

    async def wait_started(self, task: asyncio.Task, interval: float = 0.05) -> None:
        """
        Block until the listener accepts connections.

        Raises:
            ListenerException: If the listener task ended before that
        """
        while not self.started:
            if task.done():
                task.result()
                raise ListenerException(f"the {self.name} listener stopped during startup")
            await asyncio.sleep(interval)


class IncognitoMailServer:
    """Runs all server components and sequences their shutdown."""

    def __init__(self, settings: Settings, mail_writer: Optional[MailSystemHandleWriter] = None):
        self.settings = settings
        self.mail_writer = mail_writer or mail_system_writer_from_settings(settings)

        self.persistence: Optional[IncognitoData] = None
        self.handle_service: Optional[HandleService] = None
        self.actor: Optional[CommandActor] = None
        self.facade: Optional[CommandFacade] = None

        self.lock_file = None
        self.control_server: Optional[_ListenerServer] = None
        self.public_server: Optional[_ListenerServer] = None
        self._control_task: Optional[asyncio.Task] = None
        self._public_task: Optional[asyncio.Task] = None
        self._stop_task: Optional[asyncio.Task] = None
        self._finished: Optional[asyncio.Event] = None
        self._stopping = False

    @property
    def started(self) -> bool:
        return self._finished is not None

    # ===================================
    # Lock File
    # ===================================

    def acquire_lock_file(self) -> None:
        """
        Take the exclusive, non-blocking lock on the lock file.

        Raises:
            LockFileException: If the lock is held already
        """
        if self.lock_file is not None:
            raise LockFileException("lock file already exists")

        path = self.settings.LOCK_FILE_PATH
        os.makedirs(os.path.dirname(os.path.abspath(path)), mode=0o755, exist_ok=True)

        lock_file = open(path, "a+")
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            lock_file.close()
            raise LockFileException(
                "could not acquire lock file, is another instance running?",
                detail={"path": path, "error": str(e)},
            ) from e

        # PID in the lock file, as the FHS describes
        lock_file.seek(0)
        lock_file.truncate()
        lock_file.write("%10d\n" % os.getpid())
        lock_file.flush()

        self.lock_file = lock_file

    def release_lock_file(self) -> None:
        """
        Release and remove the lock file.

        Raises:
            LockFileException: If no lock is held
        """
        if self.lock_file is None:
            raise LockFileException("could not find lock file")

        fcntl.flock(self.lock_file.fileno(), fcntl.LOCK_UN)
        self.lock_file.close()
        self.lock_file = None

        try:
            os.remove(self.settings.LOCK_FILE_PATH)
        except OSError:
            # A leftover lock file does not prevent the next start
            logger.debug(f"Could not remove lock file in {self.settings.LOCK_FILE_PATH}")

    # ===================================
    # Lifecycle
    # ===================================

    async def start(self) -> None:
        """
        Start every component and both listeners.

        Returns once both listeners accept connections.

        Raises:
            LockFileException: If another instance holds the lock
            ListenerException: If a listener cannot start, e.g. the port is taken
        """
        if self.started:
            return

        logger.info(f"Starting {self.settings.APP_NAME} server")
        logger.info(f"Environment: {self.settings.APP_ENV}")

        self.acquire_lock_file()
        try:
            self.persistence = await IncognitoData.open(self.settings)
        except Exception:
            self.release_lock_file()
            raise

        self._finished = asyncio.Event()

        self.handle_service = HandleService(self.persistence, self.mail_writer, self.settings)
        self.actor = CommandActor(self.handle_service, queue_size=self.settings.COMMAND_QUEUE_SIZE)
        self.facade = CommandFacade(self.actor)
        self.actor.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_stop)

        control_app = create_control_app(self.facade, self.handle_service, on_stop=self.request_stop)
        self.control_server = _ListenerServer(
            uvicorn.Config(
                control_app,
                uds=self.settings.UNIX_SOCK_PATH,
                lifespan="off",
                log_config=None,
            ),
            name="control",
        )
        self._control_task = asyncio.create_task(self.control_server.serve(), name="incognitomail-control")

        public_app = create_public_app(self.settings, self.facade)
        tls = {}
        if self.settings.tls_enabled:
            tls = {
                "ssl_certfile": self.settings.TLS_CERT_FILE,
                "ssl_keyfile": self.settings.TLS_KEY_FILE,
            }
        self.public_server = _ListenerServer(
            uvicorn.Config(
                public_app,
                host=self.settings.LISTEN_HOST,
                port=self.settings.LISTEN_PORT,
                lifespan="off",
                log_config=None,
                timeout_graceful_shutdown=self.settings.SHUTDOWN_TIMEOUT_SECONDS,
                **tls,
            ),
            name="public",
        )
        self._public_task = asyncio.create_task(self.public_server.serve(), name="incognitomail-public")

        try:
            await self.control_server.wait_started(self._control_task)
            await self.public_server.wait_started(self._public_task)
        except Exception:
            await self._abort_start()
            raise

        logger.info(f"Control socket: {self.settings.UNIX_SOCK_PATH}")
        logger.info(
            f"Listening on {self.settings.LISTEN_HOST}:{self.settings.LISTEN_PORT}"
            f"{self.settings.LISTEN_PATH} (TLS: {self.settings.tls_enabled})"
        )

    async def _abort_start(self) -> None:
        """Undo a start whose listeners did not come up."""
        logger.error("Startup failed, shutting down started components")

        for server, task in (
            (self.control_server, self._control_task),
            (self.public_server, self._public_task),
        ):
            server.should_exit = True
            await asyncio.gather(task, return_exceptions=True)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

        await self.actor.terminate()
        await self.actor.wait()
        await self.persistence.close()
        self.release_lock_file()

        self._finished = None

    def request_stop(self) -> None:
        """Schedule a stop; safe to call repeatedly and from signal handlers."""
        if self._stop_task is None and self.started:
            self._stop_task = asyncio.get_running_loop().create_task(self.stop())

    async def stop(self) -> None:
        """
        Stop everything in shutdown order.

        Raises:
            ServerNotStartedException: If the server was never started
        """
        if not self.started:
            raise ServerNotStartedException()
        if self._stopping:
            return
        self._stopping = True

        logger.info("Stopping IncognitoMail server")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

        try:
            self.control_server.should_exit = True
            await self._control_task

            await self.actor.terminate()
            await self.actor.wait()

            await self.persistence.close()
            self.release_lock_file()

            # Remaining public connections get SHUTDOWN_TIMEOUT_SECONDS to finish
            self.public_server.should_exit = True
            await self._public_task
        finally:
            self._finished.set()

        logger.info("IncognitoMail server stopped")

    async def wait(self) -> None:
        """
        Block until the server has finished shutting down.

        Raises:
            ServerNotStartedException: If the server was never started
        """
        if not self.started:
            raise ServerNotStartedException()
        await self._finished.wait()

    async def serve(self) -> None:
        """Start the server and block until it has stopped."""
        await self.start()
        await self.wait()
