"""
Persistence Service

Account and handle storage on the embedded SQLite store.

Every public operation runs inside a single transaction, so all namespaces
touched by one operation change together or not at all. A handle always
lives in two places at once: its account's namespace and the global handle
index.
"""

from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from incognitomail.config import Settings
from incognitomail.core.exceptions import (
    AccountExistsException,
    AccountNotFoundException,
    EmptyHandleException,
    EmptySecretException,
    EmptyTargetException,
    HandleExistsException,
)
from incognitomail.core.logging import get_logger
from incognitomail.db.models import Account, Handle, Namespace, NamespaceHandle, Target
from incognitomail.db.session import create_engine, create_session_factory, create_tables

logger = get_logger(__name__)


class IncognitoData:
    """
    Owner of the store connection and every namespace in it.

    Create one with ``await IncognitoData.open(settings)``; callers only ever
    see the typed operations below.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory: async_sessionmaker = create_session_factory(engine)

    @classmethod
    async def open(cls, settings: Settings) -> "IncognitoData":
        """
        Open the store and create the static namespaces.

        Args:
            settings: Application settings

        Returns:
            IncognitoData: Ready to use persistence layer
        """
        engine = create_engine(settings)
        try:
            await create_tables(engine)
        except Exception:
            await engine.dispose()
            raise

        logger.info(f"Opened database at {settings.DATABASE_PATH}")
        return cls(engine)

    async def create_account(self, secret: str, target: str) -> None:
        """
        Create an account with the given secret and target address.

        Raises:
            EmptySecretException: If secret is empty
            EmptyTargetException: If target is empty
            AccountExistsException: If the secret is already in use
        """
        if not secret:
            raise EmptySecretException()
        if not target:
            raise EmptyTargetException()

        async with self.session_factory.begin() as session:
            if await session.get(Namespace, secret) is not None:
                raise AccountExistsException()

            now = _now()
            session.add(Namespace(secret=secret))
            session.add(Target(secret=secret, target=target))
            session.add(Account(secret=secret, created_at=now))

    async def delete_account(self, secret: str) -> None:
        """
        Delete everything stored for an account, its handles included.

        Deleting an account that does not exist does nothing.
        """
        if not secret:
            return

        async with self.session_factory.begin() as session:
            handles = select(NamespaceHandle.handle).where(NamespaceHandle.secret == secret)
            await session.execute(delete(Handle).where(Handle.handle.in_(handles)))
            await session.execute(delete(NamespaceHandle).where(NamespaceHandle.secret == secret))
            await session.execute(delete(Target).where(Target.secret == secret))
            await session.execute(delete(Account).where(Account.secret == secret))
            await session.execute(delete(Namespace).where(Namespace.secret == secret))

    async def create_handle(self, secret: str, handle: str) -> None:
        """
        Store a handle for the account with the given secret.

        Handles are unique across all accounts, not only within one.

        Raises:
            EmptySecretException: If secret is empty
            EmptyHandleException: If handle is empty
            AccountNotFoundException: If the account does not exist
            HandleExistsException: If any account already owns the handle
        """
        if not secret:
            raise EmptySecretException()
        if not handle:
            raise EmptyHandleException()

        async with self.session_factory.begin() as session:
            if await session.get(Namespace, secret) is None:
                raise AccountNotFoundException()

            if await session.get(Handle, handle) is not None:
                raise HandleExistsException(handle)

            now = _now()
            session.add(NamespaceHandle(secret=secret, handle=handle, created_at=now))
            session.add(Handle(handle=handle, created_at=now))

    async def delete_handle(self, secret: str, handle: str) -> bool:
        """
        Delete a handle from its account and from the global index.

        Does nothing if either the account or the handle does not exist, or
        if the handle belongs to another account.

        Returns:
            bool: True if the account owned the handle and it was removed
        """
        if not secret or not handle:
            return False

        async with self.session_factory.begin() as session:
            if await session.get(Namespace, secret) is None:
                return False

            result = await session.execute(
                delete(NamespaceHandle).where(
                    NamespaceHandle.secret == secret,
                    NamespaceHandle.handle == handle,
                )
            )
            # Another account's handle stays untouched in the global index
            if not result.rowcount:
                return False
            await session.execute(delete(Handle).where(Handle.handle == handle))

        return True

    async def get_target(self, secret: str) -> str:
        """
        Get the target address registered for an account.

        Raises:
            EmptySecretException: If secret is empty
            AccountNotFoundException: If the account does not exist
        """
        if not secret:
            raise EmptySecretException()

        async with self.session_factory() as session:
            target = await session.get(Target, secret)

        if target is None:
            raise AccountNotFoundException()
        return target.target

    async def has_account(self, secret: str) -> bool:
        """Return True if an account with the given secret exists."""
        if not secret:
            return False

        async with self.session_factory() as session:
            return await session.get(Account, secret) is not None

    async def has_handle_global(self, handle: str) -> bool:
        """Return True if any account owns the given handle."""
        if not handle:
            return False

        async with self.session_factory() as session:
            return await session.get(Handle, handle) is not None

    async def list_handles(self, secret: str) -> List[str]:
        """
        List every handle of an account, in key order.

        Raises:
            EmptySecretException: If secret is empty
        """
        if not secret:
            raise EmptySecretException()

        async with self.session_factory() as session:
            result = await session.execute(
                select(NamespaceHandle.handle)
                .where(NamespaceHandle.secret == secret)
                .order_by(NamespaceHandle.handle)
            )
            return list(result.scalars().all())

    async def close(self) -> None:
        """Close the store once pending transactions have finished."""
        await self.engine.dispose()
        logger.info("Database connections closed")


def _now() -> datetime:
    return datetime.now(timezone.utc)
