"""
Pytest configuration and fixtures for all tests.
"""

from pathlib import Path
from typing import List

import pytest
import pytest_asyncio

from incognitomail.config import Settings, load_settings
from incognitomail.core.exceptions import MailSystemException
from incognitomail.mailsystem import PostfixWriter
from incognitomail.services.handle_service import HandleService
from incognitomail.services.persistence import IncognitoData

DOMAIN = "@example.com"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every file at a temporary directory."""
    return load_settings(
        POSTFIX_DOMAIN=DOMAIN,
        POSTFIX_MAP_FILE_PATH=str(tmp_path / "virtual"),
        POSTMAP_COMMAND="true",
        DATABASE_PATH=str(tmp_path / "incognitomail.db"),
        LOCK_FILE_PATH=str(tmp_path / "lock" / "incognitomail.lock"),
        UNIX_SOCK_PATH=str(tmp_path / "incognitomail.sock"),
    )


@pytest_asyncio.fixture
async def data(settings: Settings):
    """A brand new database for each test."""
    persistence = await IncognitoData.open(settings)
    yield persistence
    await persistence.close()


@pytest.fixture
def writer(settings: Settings) -> PostfixWriter:
    return PostfixWriter.from_settings(settings)


@pytest.fixture
def handle_service(data: IncognitoData, writer: PostfixWriter, settings: Settings) -> HandleService:
    return HandleService(data, writer, settings)


class RecordingWriter:
    """Mail system writer keeping mappings in memory."""

    def __init__(self, fail_on_remove: int = 0):
        self.mappings = {}
        self.removed: List[str] = []
        self.fail_on_remove = fail_on_remove

    async def add_handle(self, handle: str, target: str) -> str:
        self.mappings[handle] = target
        return f"{handle}{DOMAIN}"

    async def remove_handle(self, handle: str) -> None:
        if self.fail_on_remove and len(self.removed) + 1 == self.fail_on_remove:
            raise MailSystemException("postmap exited with status 1")
        self.mappings.pop(handle, None)
        self.removed.append(handle)


@pytest.fixture
def recording_writer_factory():
    """Builds in-memory writers, optionally failing on the Nth removal."""
    return RecordingWriter
