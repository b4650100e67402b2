"""
SQLAlchemy Database Models

One table per logical namespace of the store:

- targets: secret -> target address
- accounts: secret -> creation time (existence marker)
- handles: global handle index, handle -> creation time
- namespaces / namespace_handles: the per-account handle namespace
"""

from sqlalchemy import Column, DateTime, ForeignKey, MetaData, String
from sqlalchemy.orm import declarative_base

Base = declarative_base(
    metadata=MetaData(
        naming_convention={
            "pk": "pk_%(table_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        }
    )
)


class Target(Base):
    """Destination address of an account."""

    __tablename__ = "targets"

    secret = Column(String, primary_key=True)
    target = Column(String, nullable=False)

    def __repr__(self):
        return f"<Target(target={self.target})>"


class Account(Base):
    """Account existence marker with its creation time."""

    __tablename__ = "accounts"

    secret = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Account(created_at={self.created_at})>"


class Handle(Base):
    """Global handle index, shared by all accounts."""

    __tablename__ = "handles"

    handle = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Handle(handle={self.handle})>"


class Namespace(Base):
    """Per-account namespace, named after the account secret."""

    __tablename__ = "namespaces"

    secret = Column(String, primary_key=True)


class NamespaceHandle(Base):
    """A handle inside the namespace of the account owning it."""

    __tablename__ = "namespace_handles"

    secret = Column(String, ForeignKey("namespaces.secret", ondelete="CASCADE"), primary_key=True)
    handle = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<NamespaceHandle(handle={self.handle})>"
