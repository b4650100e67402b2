"""
Tests for the process supervisor.
"""

import asyncio
import os
import socket

import httpx
import pytest

from incognitomail.core.exceptions import (
    ListenerException,
    LockFileException,
    ServerNotStartedException,
)
from incognitomail.server import IncognitoMailServer


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestLockFile:
    """Only one instance may hold the lock file."""

    def test_lock_is_exclusive(self, settings):
        first = IncognitoMailServer(settings)
        second = IncognitoMailServer(settings)

        first.acquire_lock_file()
        try:
            with pytest.raises(LockFileException):
                second.acquire_lock_file()
        finally:
            first.release_lock_file()

        second.acquire_lock_file()
        second.release_lock_file()

    def test_lock_file_holds_pid(self, settings):
        server = IncognitoMailServer(settings)

        server.acquire_lock_file()
        try:
            with open(settings.LOCK_FILE_PATH) as f:
                content = f.read()
        finally:
            server.release_lock_file()

        assert content == "%10d\n" % os.getpid()

    def test_release_removes_lock_file(self, settings):
        server = IncognitoMailServer(settings)

        server.acquire_lock_file()
        server.release_lock_file()

        assert not os.path.exists(settings.LOCK_FILE_PATH)

    def test_release_without_lock(self, settings):
        with pytest.raises(LockFileException):
            IncognitoMailServer(settings).release_lock_file()

    def test_acquire_twice(self, settings):
        server = IncognitoMailServer(settings)
        server.acquire_lock_file()
        try:
            with pytest.raises(LockFileException):
                server.acquire_lock_file()
        finally:
            server.release_lock_file()


class TestLifecycle:
    """Start, control calls and ordered shutdown."""

    @pytest.mark.asyncio
    async def test_stop_before_start(self, settings):
        with pytest.raises(ServerNotStartedException):
            await IncognitoMailServer(settings).stop()

    @pytest.mark.asyncio
    async def test_wait_before_start(self, settings):
        with pytest.raises(ServerNotStartedException):
            await IncognitoMailServer(settings).wait()

    @pytest.mark.asyncio
    async def test_start_fails_when_locked(self, settings):
        holder = IncognitoMailServer(settings)
        holder.acquire_lock_file()
        try:
            with pytest.raises(LockFileException):
                await IncognitoMailServer(settings).start()
        finally:
            holder.release_lock_file()

    @pytest.mark.asyncio
    async def test_serve_and_stop_over_control_socket(self, settings, recording_writer_factory):
        settings.LISTEN_HOST = "127.0.0.1"
        settings.LISTEN_PORT = free_port()
        writer = recording_writer_factory()
        server = IncognitoMailServer(settings, mail_writer=writer)

        await server.start()
        try:
            assert server.control_server.started and server.public_server.started

            transport = httpx.AsyncHTTPTransport(uds=settings.UNIX_SOCK_PATH)
            async with httpx.AsyncClient(transport=transport, base_url="http://incognitomail") as client:
                response = await client.post("/rpc/SendCommand", json={"args": "new account me@real.org"})
                secret = response.json()["result"]

                response = await client.post("/rpc/SendCommand", json={"args": f"new handle {secret}"})
                address = response.json()["result"]

                response = await client.post("/rpc/ListHandles", json={"args": secret})
                assert response.json()["result"] == [address.split("@")[0]]

                response = await client.post("/rpc/Stop", json={"args": None})
                assert response.status_code == 200

            await asyncio.wait_for(server.wait(), timeout=10)
        finally:
            if not server._finished.is_set():
                await server.stop()

        assert list(writer.mappings.values()) == ["me@real.org"]
        assert server.lock_file is None
        assert not os.path.exists(settings.LOCK_FILE_PATH)
        assert server.actor.queue.empty()

    @pytest.mark.asyncio
    async def test_stop_order(self, settings, recording_writer_factory, monkeypatch):
        settings.LISTEN_HOST = "127.0.0.1"
        settings.LISTEN_PORT = free_port()
        server = IncognitoMailServer(settings, mail_writer=recording_writer_factory())
        await server.start()

        steps = []

        def record(step):
            steps.append((step, server._control_task.done(), server._public_task.done()))

        terminate, close, release = server.actor.terminate, server.persistence.close, server.release_lock_file

        async def spy_terminate():
            record("terminate actor")
            await terminate()

        async def spy_close():
            # The actor has drained its queue by now
            assert not server.actor.running
            record("close persistence")
            await close()

        def spy_release():
            record("release lock")
            release()

        monkeypatch.setattr(server.actor, "terminate", spy_terminate)
        monkeypatch.setattr(server.persistence, "close", spy_close)
        monkeypatch.setattr(server, "release_lock_file", spy_release)

        await asyncio.wait_for(server.stop(), timeout=10)
        record("stopped")

        # (step, control listener done, public listener done)
        assert steps == [
            ("terminate actor", True, False),
            ("close persistence", True, False),
            ("release lock", True, False),
            ("stopped", True, True),
        ]

    @pytest.mark.asyncio
    async def test_start_fails_when_port_taken(self, settings, recording_writer_factory):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
            taken.bind(("127.0.0.1", 0))
            taken.listen()
            settings.LISTEN_HOST = "127.0.0.1"
            settings.LISTEN_PORT = taken.getsockname()[1]
            server = IncognitoMailServer(settings, mail_writer=recording_writer_factory())

            with pytest.raises(ListenerException):
                await asyncio.wait_for(server.start(), timeout=10)

        # Everything started so far was shut down again
        assert not server.started
        assert server.lock_file is None
        assert not os.path.exists(settings.LOCK_FILE_PATH)
        assert server._control_task.done()
        assert server.actor.state.value == "terminated"

        with pytest.raises(ServerNotStartedException):
            await server.wait()
