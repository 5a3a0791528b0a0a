"""Table-driven access-control tests.

Each row: endpoint, method, caller, expected status.  Unknown ids are
used on purpose: a 404 proves the caller got past the permission guard.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tests.conftest import OPERATOR_PERMISSIONS, auth, mint_token

_UNKNOWN = uuid4()
_NUMBER = "MEDEVENT-2405-AAAAAA"

_TOKENS = {
    "anon": lambda: None,
    "attendee": lambda: mint_token(roles=["attendee"]),
    "operator": lambda: mint_token(
        roles=["organizer"], permissions=OPERATOR_PERMISSIONS
    ),
    "reader": lambda: mint_token(permissions=["certificate:read"]),
    "super_admin": lambda: mint_token(roles=["super_admin"]),
}

_RBAC_CASES = [
    # (endpoint, method, caller, expected_status)
    # issue: certificate:generate
    (f"/registrations/{_UNKNOWN}/certificate", "POST", "anon", 401),
    (f"/registrations/{_UNKNOWN}/certificate", "POST", "attendee", 403),
    (f"/registrations/{_UNKNOWN}/certificate", "POST", "reader", 403),
    (f"/registrations/{_UNKNOWN}/certificate", "POST", "operator", 404),
    (f"/registrations/{_UNKNOWN}/certificate", "POST", "super_admin", 404),
    # list: certificate:read
    ("/certificates", "GET", "anon", 401),
    ("/certificates", "GET", "attendee", 403),
    ("/certificates", "GET", "reader", 200),
    ("/certificates", "GET", "operator", 200),
    ("/certificates", "GET", "super_admin", 200),
    # detail: certificate:read
    (f"/certificates/{_UNKNOWN}", "GET", "anon", 401),
    (f"/certificates/{_UNKNOWN}", "GET", "attendee", 403),
    (f"/certificates/{_UNKNOWN}", "GET", "reader", 404),
    # revoke: certificate:revoke
    (f"/certificates/{_UNKNOWN}/revoke", "POST", "anon", 401),
    (f"/certificates/{_UNKNOWN}/revoke", "POST", "attendee", 403),
    (f"/certificates/{_UNKNOWN}/revoke", "POST", "reader", 403),
    (f"/certificates/{_UNKNOWN}/revoke", "POST", "operator", 404),
    (f"/certificates/{_UNKNOWN}/revoke", "POST", "super_admin", 404),
    # verify: granted to everyone, including anonymous callers
    (f"/certificates/verify/{_NUMBER}", "GET", "anon", 200),
    (f"/certificates/verify/{_NUMBER}", "GET", "attendee", 200),
    (f"/certificates/verify/{_NUMBER}", "GET", "operator", 200),
    # own certificates: any authenticated caller
    ("/user/certificates", "GET", "anon", 401),
    ("/user/certificates", "GET", "attendee", 200),
]


def _case_id(case: tuple) -> str:
    endpoint, method, caller, expected = case
    return f"{method} {endpoint} [{caller}] -> {expected}"


@pytest.mark.parametrize(
    "endpoint,method,caller,expected",
    _RBAC_CASES,
    ids=[_case_id(c) for c in _RBAC_CASES],
)
def test_rbac(
    client: TestClient, endpoint: str, method: str, caller: str, expected: int
) -> None:
    headers = auth(_TOKENS[caller]())
    if method == "POST":
        resp = client.post(endpoint, json={"reason": "rbac check"}, headers=headers)
    else:
        resp = client.get(endpoint, headers=headers)
    assert resp.status_code == expected, resp.text


def test_401_carries_bearer_challenge(client: TestClient) -> None:
    resp = client.get("/certificates")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


def test_garbage_token_is_rejected_not_downgraded(client: TestClient) -> None:
    """An invalid token is a 401 even where anonymous access is allowed."""
    resp = client.get(
        f"/certificates/verify/{_NUMBER}", headers=auth("not.a.jwt")
    )
    assert resp.status_code == 401


def test_token_with_non_uuid_subject_rejected(client: TestClient) -> None:
    from medcert.services import token_service

    token = token_service.create_access_token(
        sub="not-a-uuid", permissions=["certificate:read"]
    )
    resp = client.get("/certificates", headers=auth(token))
    assert resp.status_code == 401


def test_token_signed_by_another_key_rejected(client: TestClient) -> None:
    import jwt
    from cryptography.hazmat.primitives.asymmetric import ec

    foreign_key = ec.generate_private_key(ec.SECP256R1())
    forged = jwt.encode(
        {
            "sub": str(uuid4()),
            "iss": "medevents-auth",
            "aud": "medevents-api",
            "exp": 4102444800,
            "iat": 1700000000,
            "jti": "x",
            "roles": ["super_admin"],
        },
        foreign_key,
        algorithm="ES256",
    )
    resp = client.get("/certificates", headers=auth(forged))
    assert resp.status_code == 401


def test_actor_id_requires_an_authenticated_principal() -> None:
    from fastapi import HTTPException

    from medcert.api.dependencies import actor_id
    from medcert.models.principal import Principal

    with pytest.raises(HTTPException) as exc_info:
        actor_id(Principal.anonymous())
    assert exc_info.value.status_code == 401

    user_id = uuid4()
    caller = Principal(
        user_id=user_id, roles=frozenset(), permissions=frozenset()
    )
    assert actor_id(caller) == user_id
