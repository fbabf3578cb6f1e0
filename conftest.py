"""
Shared pytest fixtures
Every test gets its own file-backed SQLite database (aiosqlite) so the
real SQLAlchemy store, constraints and transactions are exercised.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import select  # noqa: E402

from database import DatabaseManager  # noqa: E402
from models.base import utcnow  # noqa: E402
from models.contact import Contact, LinkPrecedence  # noqa: E402
from services.identity_service import IdentityService  # noqa: E402


def at(day: int) -> datetime:
    """Fixed creation timestamps for ordering-sensitive tests"""
    return datetime(2023, 4, day, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
async def db(tmp_path):
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'contacts.db'}")
    await manager.create_tables()
    yield manager
    await manager.dispose()


@pytest.fixture
def service(db):
    return IdentityService(unit_of_work=db.contact_store, max_attempts=3)


@pytest.fixture
def add_contact(db):
    """Insert a contact row directly, bypassing the engine"""
    async def _add(email=None, phone=None, linked_id=None, created_at=None, deleted_at=None):
        precedence = LinkPrecedence.SECONDARY if linked_id else LinkPrecedence.PRIMARY
        created_at = created_at or utcnow()
        async with db.get_session() as session:
            contact = Contact(
                email=email,
                phone_number=phone,
                pair_key=Contact.make_pair_key(email, phone),
                linked_id=linked_id,
                link_precedence=precedence.value,
                created_at=created_at,
                updated_at=created_at,
                deleted_at=deleted_at,
            )
            session.add(contact)
            await session.flush()
            return contact

    return _add


@pytest.fixture
def all_contacts(db):
    """Every stored row, deleted ones included, ordered by id"""
    async def _all():
        async with db.get_session() as session:
            result = await session.execute(select(Contact).order_by(Contact.id))
            return list(result.scalars().all())

    return _all
