"""
Mail System Module

Writers keeping the mail transfer agent's alias map in sync with the
stored handles.
"""

from typing import Protocol

from incognitomail.config import Settings
from incognitomail.mailsystem.postfix import PostfixWriter


class MailSystemHandleWriter(Protocol):
    """Adds and removes handle mappings in the mail system."""

    async def add_handle(self, handle: str, target: str) -> str:
        ...

    async def remove_handle(self, handle: str) -> None:
        ...


def mail_system_writer_from_settings(settings: Settings) -> MailSystemHandleWriter:
    """
    Build the writer for the configured mail system.

    Raises:
        ValueError: If the mail system is not supported
    """
    if settings.MAIL_SYSTEM == "postfix":
        return PostfixWriter.from_settings(settings)

    raise ValueError(f"Unsupported mail system: {settings.MAIL_SYSTEM}")


__all__ = [
    "MailSystemHandleWriter",
    "PostfixWriter",
    "mail_system_writer_from_settings",
]
