"""
Handle Service

Business logic for accounts and handles:
- Unique secret and handle generation
- Store mutation followed by the mail system update
- Account removal handle by handle

None of these methods are safe to run concurrently with each other; the
command actor is their only caller for mutations.
"""

from typing import List

from incognitomail.config import Settings
from incognitomail.core.exceptions import AccountNotFoundException
from incognitomail.core.logging import get_logger
from incognitomail.core.metrics import (
    accounts_created,
    accounts_deleted,
    handles_created,
    handles_deleted,
)
from incognitomail.core.security import generate_random_string
from incognitomail.mailsystem import MailSystemHandleWriter
from incognitomail.services.persistence import IncognitoData

logger = get_logger(__name__)


class HandleService:
    """Service pairing every store mutation with its mail system update."""

    def __init__(self, persistence: IncognitoData, mail_writer: MailSystemHandleWriter, settings: Settings):
        self.persistence = persistence
        self.mail_writer = mail_writer
        self.secret_size = settings.ACCOUNT_SECRET_SIZE
        self.handle_size = settings.HANDLE_SIZE

    async def new_handle(self, secret: str) -> str:
        """
        Create a new handle for an account.

        Args:
            secret: Account secret

        Returns:
            str: The full address of the new handle

        Raises:
            AccountNotFoundException: If the account does not exist
            MailSystemException: If the mail system update fails
        """
        target = await self.persistence.get_target(secret)

        handle = generate_random_string(self.handle_size)
        while await self.persistence.has_handle_global(handle):
            handle = generate_random_string(self.handle_size)

        await self.persistence.create_handle(secret, handle)
        handles_created.inc()

        # Includes the domain, so this is the complete incognito address
        return await self.mail_writer.add_handle(handle, target)

    async def new_account(self, target: str) -> str:
        """
        Create a new account forwarding to target.

        Args:
            target: Destination email address

        Returns:
            str: The new account's secret
        """
        secret = generate_random_string(self.secret_size)
        while await self.persistence.has_account(secret):
            secret = generate_random_string(self.secret_size)

        await self.persistence.create_account(secret, target)
        accounts_created.inc()

        logger.info("Created account")
        return secret

    async def delete_handle(self, secret: str, handle: str) -> None:
        """
        Delete a handle of an account.

        A handle the account does not own is left alone, in the store and
        in the mail system.

        Raises:
            AccountNotFoundException: If the account does not exist
            MailSystemException: If the mail system update fails
        """
        if not await self.persistence.has_account(secret):
            raise AccountNotFoundException()

        if not await self.persistence.delete_handle(secret, handle):
            logger.debug("Handle to delete is not owned by the account")
            return

        handles_deleted.inc()
        await self.mail_writer.remove_handle(handle)

    async def delete_account(self, secret: str) -> None:
        """
        Delete an account and all of its handles.

        Handles are removed from the mail system one by one before the
        account is removed from the store. The first failure stops the
        removal: handles already removed stay removed and the account with
        its remaining handles stays in place.

        Raises:
            AccountNotFoundException: If the account does not exist
            MailSystemException: If a mail system update fails
        """
        if not await self.persistence.has_account(secret):
            raise AccountNotFoundException()

        handles = await self.persistence.list_handles(secret)

        for handle in handles:
            await self.mail_writer.remove_handle(handle)
            await self.persistence.delete_handle(secret, handle)
            handles_deleted.inc()

        await self.persistence.delete_account(secret)
        accounts_deleted.inc()

        logger.info(f"Deleted account with {len(handles)} handles")

    async def list_handles(self, secret: str) -> List[str]:
        """
        List the handles of an account.

        Raises:
            AccountNotFoundException: If the account does not exist
        """
        if not await self.persistence.has_account(secret):
            raise AccountNotFoundException()

        return await self.persistence.list_handles(secret)
