"""
Pydantic schemas for the /identify endpoint
Handles request parsing and response serialization
"null" strings and blank values are treated as absent identifiers
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _clean_identifier(v: Any) -> Optional[str]:
    if v is None:
        return None

    # Clients frequently send numeric phone numbers
    if isinstance(v, bool):
        raise ValueError('Identifier must be a string')
    if isinstance(v, float) and not v.is_integer():
        raise ValueError('Phone number must be a whole number')
    if isinstance(v, (int, float)):
        v = str(int(v))

    if not isinstance(v, str):
        raise ValueError('Identifier must be a string')

    v = v.strip()
    if v.lower() in ('', 'null'):
        return None
    return v


class IdentifyRequest(BaseModel):
    """
    Request schema for the /identify endpoint
    Validates that at least one of email or phoneNumber is provided
    """
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"email": "customer@example.com", "phoneNumber": "123456"},
                {"email": "customer@example.com", "phoneNumber": None},
                {"email": None, "phoneNumber": "123456"},
            ]
        },
    )

    email: Optional[str] = Field(
        None,
        description="Customer email address",
        examples=["customer@example.com", None]
    )
    phoneNumber: Optional[str] = Field(
        None,
        description="Customer phone number",
        examples=["123456", None]
    )

    @field_validator('email', 'phoneNumber', mode='before')
    @classmethod
    def clean_identifier(cls, v) -> Optional[str]:
        return _clean_identifier(v)

    @model_validator(mode='after')
    def validate_at_least_one_field(self):
        """
        Ensure at least one of email or phoneNumber is provided
        """
        if not self.email and not self.phoneNumber:
            raise ValueError('Either email or phoneNumber must be provided')
        return self


class ContactResponse(BaseModel):
    """
    Consolidated view of one identity cluster
    Primary contact's email and phone number come first in their lists
    """
    primaryContactId: int = Field(
        description="ID of the primary contact"
    )
    emails: List[str] = Field(
        default_factory=list,
        description="All email addresses associated with this contact",
        examples=[["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"]]
    )
    phoneNumbers: List[str] = Field(
        default_factory=list,
        description="All phone numbers associated with this contact",
        examples=[["123456"]]
    )
    secondaryContactIds: List[int] = Field(
        default_factory=list,
        description="IDs of all secondary contacts linked to the primary",
        examples=[[23]]
    )


class IdentifyResponse(BaseModel):
    """
    Response schema for the /identify endpoint
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "contact": {
                    "primaryContactId": 1,
                    "emails": ["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"],
                    "phoneNumbers": ["123456"],
                    "secondaryContactIds": [23]
                }
            }
        }
    )

    contact: ContactResponse = Field(
        description="Consolidated contact information"
    )


class ErrorResponse(BaseModel):
    """
    Error response schema for API errors
    """
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": "ValidationError",
                    "message": "Either email or phoneNumber must be provided",
                    "details": {"field": "body"}
                },
                {
                    "error": "StorageError",
                    "message": "Unable to process identity reconciliation request"
                }
            ]
        }
    )

    error: str = Field(
        description="Error type or category"
    )
    message: str = Field(
        description="Human-readable error message"
    )
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional error details"
    )
