"""
Data access layer for Identity Reconciliation System
"""

from .contact_repository import ContactStore, SqlAlchemyContactStore

__all__ = [
    "ContactStore",
    "SqlAlchemyContactStore"
]
