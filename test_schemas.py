"""
Schema validation tests for Identity Reconciliation API
Covers request cleaning ("null"/blank/numeric identifiers) and response shapes.
"""

import pytest
from pydantic import ValidationError

from schemas import IdentifyRequest, ContactResponse, IdentifyResponse, ErrorResponse


@pytest.mark.parametrize("payload, email, phone", [
    ({"email": "test@example.com", "phoneNumber": "123456"}, "test@example.com", "123456"),
    ({"email": "user@domain.org"}, "user@domain.org", None),
    ({"phoneNumber": 123456}, None, "123456"),
    ({"phoneNumber": 123456.0}, None, "123456"),
    ({"email": "null", "phoneNumber": "123456"}, None, "123456"),
    ({"email": "  doc@hillvalley.edu ", "phoneNumber": ""}, "doc@hillvalley.edu", None),
])
def test_identify_request_accepts(payload, email, phone):
    request = IdentifyRequest(**payload)
    assert request.email == email
    assert request.phoneNumber == phone


@pytest.mark.parametrize("payload", [
    {},
    {"email": None, "phoneNumber": None},
    {"email": "NULL", "phoneNumber": "  "},
    {"email": ["a@b.c"]},
    {"phoneNumber": 1.5},
    {"email": "a@b.c", "phoneNumber": float("nan")},
])
def test_identify_request_rejects(payload):
    with pytest.raises(ValidationError):
        IdentifyRequest(**payload)


def test_identify_response_serialization():
    contact = ContactResponse(
        primaryContactId=1,
        emails=["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"],
        phoneNumbers=["123456"],
        secondaryContactIds=[23]
    )
    response = IdentifyResponse(contact=contact)

    assert response.model_dump() == {
        "contact": {
            "primaryContactId": 1,
            "emails": ["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"],
            "phoneNumbers": ["123456"],
            "secondaryContactIds": [23],
        }
    }
    assert IdentifyResponse.model_validate_json(response.model_dump_json()) == response


def test_error_response_details_optional():
    error = ErrorResponse(error="StorageError", message="Unable to process request")
    assert error.model_dump(exclude_none=True) == {
        "error": "StorageError",
        "message": "Unable to process request",
    }
