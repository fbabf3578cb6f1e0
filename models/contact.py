"""
Contact model for Identity Reconciliation API
This module defines the Contact database model for storing customer
contact information and managing identity linking relationships.
Supports primary/secondary contact hierarchy and soft delete functionality.
"""

import enum
from typing import Optional

from sqlalchemy import Column, String, Integer, ForeignKey, Index, CheckConstraint, text

from .base import BaseModel


class LinkPrecedence(str, enum.Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


# Separator that cannot appear in a phone number or an email local part we store
_PAIR_SEPARATOR = "\x1f"

_LIVE_ROWS = text("deleted_at IS NULL")
_LIVE_PRIMARY_ROWS = text("deleted_at IS NULL AND link_precedence = 'primary'")


class Contact(BaseModel):
    """
    Contact model representing customer contact information

    Stores email and phone number data with linking relationships
    to support identity reconciliation. Each contact can be either
    'primary' (root of a cluster) or 'secondary' (linked to a primary contact).
    Secondaries always point straight at a primary, never at another secondary.

    Database Table: contacts
    """
    __tablename__ = "contacts"

    # Contact information fields - at least one must be provided, never modified after insert
    phone_number = Column(
        String(32),
        nullable=True,
        index=True,
        comment="Customer phone number as supplied"
    )

    email = Column(
        String(255),
        nullable=True,
        index=True,
        comment="Customer email address"
    )

    # Normalized (email, phone_number) pair used by the uniqueness indexes,
    # NULL-safe unlike a composite index over the two nullable columns
    pair_key = Column(
        String(300),
        nullable=False,
        comment="Derived identifier pair, see Contact.make_pair_key"
    )

    # Identity linking fields
    linked_id = Column(
        Integer,
        ForeignKey("contacts.id"),
        nullable=True,
        index=True,
        comment="ID of the primary contact this secondary contact links to"
    )

    link_precedence = Column(
        String(10),
        nullable=False,
        default=LinkPrecedence.PRIMARY.value,
        comment="Either 'primary' (cluster root) or 'secondary' (linked contact)"
    )

    # Database constraints
    __table_args__ = (
        CheckConstraint(
            link_precedence.in_([p.value for p in LinkPrecedence]),
            name="valid_link_precedence"
        ),

        CheckConstraint(
            "(phone_number IS NOT NULL) OR (email IS NOT NULL)",
            name="contact_info_required"
        ),

        CheckConstraint(
            "(link_precedence = 'primary' AND linked_id IS NULL) OR "
            "(link_precedence = 'secondary' AND linked_id IS NOT NULL)",
            name="secondary_must_have_linked_id"
        ),

        # One live row per identifier pair inside a cluster
        Index(
            "uq_contact_linked_pair", linked_id, pair_key,
            unique=True,
            postgresql_where=_LIVE_ROWS,
            sqlite_where=_LIVE_ROWS,
        ),
        # Concurrent first sightings of the same pair collapse onto one primary
        Index(
            "uq_contact_primary_pair", pair_key,
            unique=True,
            postgresql_where=_LIVE_PRIMARY_ROWS,
            sqlite_where=_LIVE_PRIMARY_ROWS,
        ),

        Index("ix_contact_email_phone", email, phone_number),
        Index("ix_contact_precedence_linked", link_precedence, linked_id),
    )

    @staticmethod
    def make_pair_key(email: Optional[str], phone_number: Optional[str]) -> str:
        return f"{email or ''}{_PAIR_SEPARATOR}{phone_number or ''}"

    def __repr__(self):
        """String representation showing key contact information"""
        contact_info = []
        if self.email:
            contact_info.append(f"email={self.email}")
        if self.phone_number:
            contact_info.append(f"phone={self.phone_number}")

        return (
            f"<Contact(id={self.id}, "
            f"{', '.join(contact_info)}, "
            f"precedence={self.link_precedence}, "
            f"linked_id={self.linked_id})>"
        )

    def is_primary(self):
        """Check if this is a primary contact"""
        return self.link_precedence == LinkPrecedence.PRIMARY.value

    def is_secondary(self):
        """Check if this is a secondary contact"""
        return self.link_precedence == LinkPrecedence.SECONDARY.value

    @property
    def primary_id(self) -> Optional[int]:
        """
        Id of the primary that roots this contact's cluster
        Returns own id for a primary, linked_id for a secondary
        """
        if self.is_primary():
            return self.id
        return self.linked_id

    def matches_pair(self, email: Optional[str], phone_number: Optional[str]) -> bool:
        """Exact identifier-pair comparison, absent values only match absent values"""
        return self.email == email and self.phone_number == phone_number

    def to_dict(self):
        """Convert contact to dictionary with formatted timestamps"""
        data = super().to_dict()
        data.pop("pair_key", None)

        for field in ("created_at", "updated_at", "deleted_at"):
            if data.get(field):
                data[field] = data[field].isoformat()

        return data
