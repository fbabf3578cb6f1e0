"""
Contact store for identity reconciliation
Defines the storage contract the reconciliation engine consumes and its
SQLAlchemy implementation. A store instance is bound to a single
transaction; committing or rolling back is the owner's job.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from sqlalchemy import select, update, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utcnow
from models.contact import Contact, LinkPrecedence
from errors import DuplicateContact


class ContactStore(ABC):
    """Storage operations required by the reconciliation engine"""

    @abstractmethod
    async def find_matching(self, email: Optional[str], phone: Optional[str]) -> List[Contact]:
        """Live contacts whose email equals `email` OR whose phone equals `phone`"""
        ...

    @abstractmethod
    async def find_by_ids(self, ids: Iterable[int], lock: bool = False) -> List[Contact]:
        """Live contacts by primary key, optionally locked for update"""
        ...

    @abstractmethod
    async def find_one(
        self, linked_id: int, email: Optional[str], phone: Optional[str]
    ) -> Optional[Contact]:
        """Live secondary of `linked_id` carrying exactly this identifier pair"""
        ...

    @abstractmethod
    async def find_by_cluster_root(self, primary_id: int) -> List[Contact]:
        """The primary and every live contact linked to it, oldest first"""
        ...

    @abstractmethod
    async def create(
        self,
        email: Optional[str],
        phone: Optional[str],
        precedence: LinkPrecedence,
        linked_id: Optional[int] = None,
    ) -> Contact:
        """Insert a contact; raises DuplicateContact on a uniqueness conflict"""
        ...

    @abstractmethod
    async def atomic_merge(self, demote_id: int, onto_id: int) -> None:
        """Demote `demote_id` under `onto_id` and re-point its secondaries, all or nothing"""
        ...


class SqlAlchemyContactStore(ContactStore):
    """ContactStore over an AsyncSession that already has a transaction open"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fetch(self, query) -> List[Contact]:
        # Bulk updates earlier in the transaction leave identity-map rows stale
        result = await self.session.execute(
            query.execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_matching(self, email: Optional[str], phone: Optional[str]) -> List[Contact]:
        conditions = []
        if email:
            conditions.append(Contact.email == email)
        if phone:
            conditions.append(Contact.phone_number == phone)

        if not conditions:
            return []

        query = (
            select(Contact)
            .where(and_(or_(*conditions), Contact.deleted_at.is_(None)))
            .order_by(Contact.created_at, Contact.id)
        )
        return await self._fetch(query)

    async def find_by_ids(self, ids: Iterable[int], lock: bool = False) -> List[Contact]:
        ids = set(ids)
        if not ids:
            return []

        query = (
            select(Contact)
            .where(and_(Contact.id.in_(ids), Contact.deleted_at.is_(None)))
            .order_by(Contact.id)
        )
        if lock:
            query = query.with_for_update()
        return await self._fetch(query)

    async def find_one(
        self, linked_id: int, email: Optional[str], phone: Optional[str]
    ) -> Optional[Contact]:
        query = (
            select(Contact)
            .where(
                and_(
                    Contact.linked_id == linked_id,
                    Contact.email.is_(None) if email is None else Contact.email == email,
                    Contact.phone_number.is_(None) if phone is None else Contact.phone_number == phone,
                    Contact.deleted_at.is_(None),
                )
            )
            .order_by(Contact.id)
            .limit(1)
        )
        contacts = await self._fetch(query)
        return contacts[0] if contacts else None

    async def find_by_cluster_root(self, primary_id: int) -> List[Contact]:
        query = (
            select(Contact)
            .where(
                and_(
                    or_(Contact.id == primary_id, Contact.linked_id == primary_id),
                    Contact.deleted_at.is_(None),
                )
            )
            .order_by(Contact.created_at, Contact.id)
        )
        return await self._fetch(query)

    async def create(
        self,
        email: Optional[str],
        phone: Optional[str],
        precedence: LinkPrecedence,
        linked_id: Optional[int] = None,
    ) -> Contact:
        now = utcnow()
        contact = Contact(
            email=email,
            phone_number=phone,
            pair_key=Contact.make_pair_key(email, phone),
            linked_id=linked_id,
            link_precedence=LinkPrecedence(precedence).value,
            created_at=now,
            updated_at=now,
        )

        self.session.add(contact)
        try:
            await self.session.flush()  # Get the ID
        except IntegrityError as e:
            raise DuplicateContact(
                "Contact with this identifier pair already exists",
                details={"linked_id": linked_id, "precedence": LinkPrecedence(precedence).value},
            ) from e
        return contact

    async def atomic_merge(self, demote_id: int, onto_id: int) -> None:
        # Both statements run in the caller's transaction, which is the atomic unit
        now = utcnow()
        await self.session.execute(
            update(Contact)
            .where(Contact.linked_id == demote_id)
            .values(linked_id=onto_id, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(
            update(Contact)
            .where(Contact.id == demote_id)
            .values(
                link_precedence=LinkPrecedence.SECONDARY.value,
                linked_id=onto_id,
                updated_at=now,
            )
            .execution_options(synchronize_session="fetch")
        )
