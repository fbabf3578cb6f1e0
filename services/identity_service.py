"""
Identity Service - Core business logic for identity reconciliation
Decides whether an (email, phone) pair is a new person, new information about
a known person, or the bridge between two known clusters that must be merged,
and builds the consolidated view of the resulting cluster.
"""

import logging
from typing import Callable, List, Optional, AsyncContextManager, Iterable

from config import settings
from database import db_manager
from errors import ConsistencyFault, InvalidInput, StaleCluster, StorageError, WriteConflict
from models.contact import Contact, LinkPrecedence
from repositories.contact_repository import ContactStore
from schemas.identify import IdentifyRequest, IdentifyResponse, ContactResponse

logger = logging.getLogger(__name__)


def _unique(values: Iterable[Optional[str]]) -> List[str]:
    """Drop absent values and duplicates, keeping first occurrence order"""
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


class IdentityService:
    """
    Core service for identity reconciliation logic
    Handles all business rules for linking customer contacts

    Holds no contact state between calls. Each resolution runs inside one
    unit of work obtained from `unit_of_work`, so either all of its writes
    (new contact, merge) are committed or none are.
    """

    def __init__(
        self,
        unit_of_work: Optional[Callable[[], AsyncContextManager[ContactStore]]] = None,
        max_attempts: Optional[int] = None,
    ):
        self.unit_of_work = unit_of_work or db_manager.contact_store
        self.max_attempts = max(1, max_attempts or settings.RESOLVE_MAX_ATTEMPTS)

    async def identify_contact(self, request: IdentifyRequest) -> IdentifyResponse:
        """Resolve a validated /identify request into its response body"""
        contact = await self.resolve(request.email, request.phoneNumber)
        return IdentifyResponse(contact=contact)

    async def resolve(self, email: Optional[str], phone: Optional[str]) -> ContactResponse:
        """
        Main orchestration method for identity reconciliation

        Algorithm:
        1. Find existing contacts matching email or phone
        2. If no matches -> create new primary contact
        3. Collect the primaries of the matched clusters; merge if there are two
        4. Record the exact pair as a secondary unless a cluster member has it
        5. Return consolidated contact information

        A pass that loses a race to a concurrent request (identical pair
        inserted first, or a root demoted by another merge) is rolled back
        and re-run against the state that request committed.
        """
        email = email or None
        phone = phone or None
        if email is None and phone is None:
            raise InvalidInput("Either email or phoneNumber must be provided")

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with self.unit_of_work() as store:
                    return await self._resolve_once(store, email, phone)
            except WriteConflict as e:
                logger.warning(
                    f"Concurrent write for email={email}, phone={phone} "
                    f"(attempt {attempt}/{self.max_attempts}): {e.message}"
                )

        raise StorageError(
            "Identifier pair kept conflicting with concurrent writes",
            details={"attempts": self.max_attempts},
        )

    async def _resolve_once(
        self, store: ContactStore, email: Optional[str], phone: Optional[str]
    ) -> ContactResponse:
        matches = await store.find_matching(email, phone)

        if not matches:
            contact = await store.create(email, phone, LinkPrecedence.PRIMARY)
            logger.info(f"Created primary contact {contact.id}")
            return self._build_consolidated_response(contact.id, [contact])

        primary_ids = self._cluster_roots(matches)

        if len(primary_ids) == 1:
            primary = (await self._load_primaries(store, primary_ids))[0]
        elif len(primary_ids) == 2:
            primary = await self._merge_clusters(store, primary_ids)
        else:
            raise ConsistencyFault(
                "Identifiers span more than two clusters",
                details={"primary_ids": primary_ids},
            )

        await self._attach_new_information(store, primary, email, phone)

        cluster = await store.find_by_cluster_root(primary.id)
        return self._build_consolidated_response(primary.id, cluster)

    def _cluster_roots(self, contacts: List[Contact]) -> List[int]:
        """Distinct primary ids of the given contacts' clusters, in first-seen order"""
        roots = []
        for contact in contacts:
            root = contact.primary_id
            if root is None:
                raise ConsistencyFault(
                    "Secondary contact has no linked primary",
                    details={"contact_id": contact.id},
                )
            if root not in roots:
                roots.append(root)
        return roots

    async def _load_primaries(
        self, store: ContactStore, ids: List[int]
    ) -> List[Contact]:
        """
        Fetch cluster roots by id, in the order given
        A root that is missing or is itself a secondary means a broken link chain
        """
        found = {contact.id: contact for contact in await store.find_by_ids(ids)}

        primaries = []
        for primary_id in ids:
            contact = found.get(primary_id)
            if contact is None or not contact.is_primary():
                logger.error(f"Cluster root {primary_id} is missing or not primary: {contact!r}")
                raise ConsistencyFault(
                    "Secondary contact links to a contact that is not a live primary",
                    details={"primary_id": primary_id},
                )
            primaries.append(contact)
        return primaries

    async def _merge_clusters(self, store: ContactStore, primary_ids: List[int]) -> Contact:
        """
        Link two primary contacts by demoting the newer one
        The oldest primary remains primary, ties broken by the lower id
        """
        await self._load_primaries(store, primary_ids)

        # A concurrent merge may have demoted one of them while we waited for the lock
        primaries = await store.find_by_ids(primary_ids, lock=True)
        if len(primaries) != 2 or not all(c.is_primary() for c in primaries):
            raise StaleCluster(
                "Cluster root changed before it could be locked",
                details={"primary_ids": primary_ids},
            )
        oldest, newer = sorted(primaries, key=lambda c: (c.created_at, c.id))

        await store.atomic_merge(demote_id=newer.id, onto_id=oldest.id)
        logger.info(f"Merged cluster {newer.id} into primary contact {oldest.id}")
        return oldest

    async def _attach_new_information(
        self,
        store: ContactStore,
        primary: Contact,
        email: Optional[str],
        phone: Optional[str]
    ) -> Optional[Contact]:
        """
        Record the exact (email, phone) pair as a secondary of `primary`
        unless the primary or one of its secondaries already carries it.
        Absent values are part of the pair: (a, None) differs from (a, 111).
        """
        if primary.matches_pair(email, phone):
            return None

        if await store.find_one(primary.id, email, phone) is not None:
            return None

        secondary = await store.create(
            email, phone, LinkPrecedence.SECONDARY, linked_id=primary.id
        )
        logger.info(f"Created secondary contact {secondary.id} linked to {primary.id}")
        return secondary

    def _build_consolidated_response(
        self,
        primary_id: int,
        cluster: List[Contact]
    ) -> ContactResponse:
        """
        Build the consolidated response with all contact information
        Primary contact info goes first, then secondaries in cluster order
        """
        primary = next((c for c in cluster if c.id == primary_id), None)
        if primary is None:
            raise ConsistencyFault(
                "Primary contact missing from its own cluster",
                details={"primary_id": primary_id},
            )

        secondaries = [c for c in cluster if c.id != primary_id]

        return ContactResponse(
            primaryContactId=primary.id,
            emails=_unique([primary.email] + [c.email for c in secondaries]),
            phoneNumbers=_unique([primary.phone_number] + [c.phone_number for c in secondaries]),
            secondaryContactIds=[c.id for c in secondaries if c.is_secondary()]
        )


# Global service instance
identity_service = IdentityService()
