"""
Tests for the Postfix map file writer.
"""

from pathlib import Path

import pytest

from incognitomail.core.exceptions import MailSystemException
from incognitomail.mailsystem import PostfixWriter, mail_system_writer_from_settings

DOMAIN = "@example.com"


def read_map(writer: PostfixWriter) -> str:
    return Path(writer.map_file_path).read_text(encoding="utf-8")


class TestAddHandle:
    """Appending mappings."""

    @pytest.mark.asyncio
    async def test_returns_full_address(self, writer: PostfixWriter):
        address = await writer.add_handle("abc", "me@real.org")

        assert address == f"abc{DOMAIN}"

    @pytest.mark.asyncio
    async def test_appends_lines_in_order(self, writer: PostfixWriter):
        await writer.add_handle("abc", "me@real.org")
        await writer.add_handle("def", "you@real.org")

        assert read_map(writer) == (
            f"abc{DOMAIN} me@real.org\n"
            f"def{DOMAIN} you@real.org\n"
        )

    @pytest.mark.asyncio
    async def test_creates_map_owner_only(self, writer: PostfixWriter):
        await writer.add_handle("abc", "me@real.org")

        assert Path(writer.map_file_path).stat().st_mode & 0o777 == 0o600

    @pytest.mark.asyncio
    async def test_failed_postmap_raises(self, writer: PostfixWriter):
        writer.postmap_command = "false"

        with pytest.raises(MailSystemException) as exc_info:
            await writer.add_handle("abc", "me@real.org")

        assert exc_info.value.status_code == 502
        assert "status 1" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_postmap_raises(self, writer: PostfixWriter, tmp_path: Path):
        writer.postmap_command = str(tmp_path / "no-such-postmap")

        with pytest.raises(MailSystemException):
            await writer.add_handle("abc", "me@real.org")


class TestRemoveHandle:
    """Removing mappings."""

    @pytest.mark.asyncio
    async def test_removes_only_matching_address(self, writer: PostfixWriter):
        await writer.add_handle("abc", "me@real.org")
        await writer.add_handle("abcd", "me@real.org")
        await writer.add_handle("xabc", "me@real.org")

        await writer.remove_handle("abc")

        assert read_map(writer) == (
            f"abcd{DOMAIN} me@real.org\n"
            f"xabc{DOMAIN} me@real.org\n"
        )

    @pytest.mark.asyncio
    async def test_target_mentioning_handle_is_kept(self, writer: PostfixWriter):
        await writer.add_handle("abc", "me@real.org")
        await writer.add_handle("def", f"abc{DOMAIN}")

        await writer.remove_handle("abc")

        assert read_map(writer) == f"def{DOMAIN} abc{DOMAIN}\n"

    @pytest.mark.asyncio
    async def test_unknown_handle_leaves_map_unchanged(self, writer: PostfixWriter):
        await writer.add_handle("abc", "me@real.org")

        await writer.remove_handle("zzz")

        assert read_map(writer) == f"abc{DOMAIN} me@real.org\n"

    @pytest.mark.asyncio
    async def test_no_temporary_files_left(self, writer: PostfixWriter):
        await writer.add_handle("abc", "me@real.org")
        await writer.remove_handle("abc")

        directory = Path(writer.map_file_path).parent
        assert [p.name for p in directory.iterdir() if p.name.startswith(".incognitomail-")] == []

    @pytest.mark.asyncio
    async def test_missing_map_file_is_noop(self, writer: PostfixWriter):
        # No rebuild either, or "false" would raise
        writer.postmap_command = "false"

        await writer.remove_handle("abc")

        assert not Path(writer.map_file_path).exists()

    @pytest.mark.asyncio
    async def test_failed_postmap_raises(self, writer: PostfixWriter):
        await writer.add_handle("abc", "me@real.org")
        writer.postmap_command = "false"

        with pytest.raises(MailSystemException):
            await writer.remove_handle("abc")

        # The map itself was already rewritten
        assert read_map(writer) == ""


def test_writer_from_settings(settings):
    writer = mail_system_writer_from_settings(settings)

    assert isinstance(writer, PostfixWriter)
    assert writer.domain == DOMAIN
    assert writer.map_file_path == settings.POSTFIX_MAP_FILE_PATH
