"""
Error taxonomy for identity reconciliation
Separates caller mistakes, infrastructure failures and data-integrity faults
so the HTTP layer and operators can tell them apart.
"""

from typing import Any, Dict, Optional


class IdentityError(Exception):
    """Base class for all reconciliation errors"""

    code = "IdentityError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInput(IdentityError):
    """Neither an email nor a phone number was supplied"""

    code = "InvalidInput"


class StorageError(IdentityError):
    """A read, write or transaction failed at the contact store boundary"""

    code = "StorageError"


class ConsistencyFault(IdentityError):
    """
    Stored contacts violate a linkage invariant the engine relies on,
    e.g. a secondary pointing at another secondary or more than two
    clusters touched by one request. Never repaired automatically.
    """

    code = "ConsistencyFault"


class WriteConflict(IdentityError):
    """
    A concurrent request changed rows this resolution depends on after it
    read them. The resolution is rolled back and run again on fresh state.
    """

    code = "WriteConflict"


class DuplicateContact(WriteConflict):
    """
    The store rejected a new contact because an identical live
    (email, phone) pair already exists where it would be inserted
    """

    code = "DuplicateContact"


class StaleCluster(WriteConflict):
    """
    A cluster root read as primary was demoted by a concurrent merge
    before this resolution could lock it
    """

    code = "StaleCluster"
