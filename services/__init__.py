"""
Business logic services for Identity Reconciliation API
Contains the identity reconciliation engine that links customer
contacts into clusters and consolidates them.
"""

from .identity_service import IdentityService, identity_service

# Export all services for easy importing
__all__ = [
    "IdentityService",
    "identity_service"
]
