"""
Postfix Writer

Keeps a Postfix virtual alias map in sync with the stored handles.

The map file holds one line per handle, ``<handle><domain> <target>``.
After every change the map index is rebuilt with ``postmap`` so Postfix
picks up the new content.
"""

import asyncio
import os
import tempfile

from incognitomail.config import Settings
from incognitomail.core.exceptions import MailSystemException
from incognitomail.core.logging import get_logger
from incognitomail.core.metrics import record_postmap

logger = get_logger(__name__)


class PostfixWriter:
    """Adds and removes handle mappings in a Postfix map file."""

    def __init__(self, map_file_path: str, domain: str, postmap_command: str = "postmap"):
        self.map_file_path = map_file_path
        self.domain = domain
        self.postmap_command = postmap_command

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostfixWriter":
        return cls(
            map_file_path=settings.POSTFIX_MAP_FILE_PATH,
            domain=settings.POSTFIX_DOMAIN,
            postmap_command=settings.POSTMAP_COMMAND,
        )

    def full_address(self, handle: str) -> str:
        """Address under which the handle receives mail."""
        return f"{handle}{self.domain}"

    async def add_handle(self, handle: str, target: str) -> str:
        """
        Append a handle mapping and rebuild the map index.

        A crash between the append and the rebuild leaves Postfix on the
        previous index until the next successful rebuild.

        Args:
            handle: Handle to add
            target: Address mail for the handle is forwarded to

        Returns:
            str: The handle's full address

        Raises:
            MailSystemException: If postmap fails
            OSError: If the map file cannot be written
        """
        full_address = self.full_address(handle)
        await asyncio.to_thread(self._append_line, f"{full_address} {target}\n")
        await self._invoke_postmap()

        logger.debug(f"Added {full_address} to {self.map_file_path}")
        return full_address

    async def remove_handle(self, handle: str) -> None:
        """
        Drop the mapping of a handle and rebuild the map index.

        The new content is written to a temporary file next to the map and
        renamed over it, so the map is either fully old or fully new.

        A map file that does not exist yet holds no handles, so there is
        nothing to remove or rebuild.

        Raises:
            MailSystemException: If postmap fails
            OSError: If the map file cannot be read or replaced
        """
        if not await asyncio.to_thread(self._rewrite_without, self.full_address(handle)):
            logger.debug(f"No map file in {self.map_file_path}, nothing to remove")
            return

        await self._invoke_postmap()

        logger.debug(f"Removed {self.full_address(handle)} from {self.map_file_path}")

    def _append_line(self, line: str) -> None:
        fd = os.open(self.map_file_path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(line)

    def _rewrite_without(self, address: str) -> bool:
        if not os.path.exists(self.map_file_path):
            return False

        directory = os.path.dirname(os.path.abspath(self.map_file_path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".incognitomail-")

        try:
            with open(self.map_file_path, "r", encoding="utf-8") as src, \
                    os.fdopen(fd, "w", encoding="utf-8") as dst:
                for line in src:
                    fields = line.split(maxsplit=1)
                    if fields and fields[0] == address:
                        continue
                    dst.write(line if line.endswith("\n") else line + "\n")

            os.replace(tmp_path, self.map_file_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        return True

    async def _invoke_postmap(self) -> None:
        """
        Run postmap on the map file.

        Raises:
            MailSystemException: If the command cannot be started or exits non-zero
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self.postmap_command,
                self.map_file_path,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            record_postmap(False)
            raise MailSystemException(
                message=f"could not run {self.postmap_command}",
                detail={"error": str(e)},
            ) from e

        _, stderr = await proc.communicate()

        if proc.returncode != 0:
            record_postmap(False)
            raise MailSystemException(
                message=f"{self.postmap_command} exited with status {proc.returncode}",
                detail={"stderr": stderr.decode("utf-8", errors="replace").strip()},
            )

        record_postmap(True)
