import pytest
from fastapi import HTTPException
from jose import jwt

from shared.rbac import require_role, require_self_or_admin
from shared.security import JWT_ALGORITHM, JWT_SECRET, decode_token


def test_decode_token_returns_claims(token_for):
    payload = decode_token(token_for("S1", ["student"]))

    assert payload["sub"] == "S1"
    assert payload["roles"] == ["student"]


def test_single_role_string_becomes_list():
    token = jwt.encode({"sub": "S1", "roles": "student"}, JWT_SECRET, algorithm=JWT_ALGORITHM)
    assert decode_token(token)["roles"] == ["student"]


def test_wrong_secret_is_rejected():
    token = jwt.encode({"sub": "S1", "roles": ["student"]}, "other-secret", algorithm=JWT_ALGORITHM)

    with pytest.raises(HTTPException) as exc:
        decode_token(token)
    assert exc.value.status_code == 401


def test_token_without_subject_is_rejected():
    token = jwt.encode({"roles": ["admin"]}, JWT_SECRET, algorithm=JWT_ALGORITHM)

    with pytest.raises(HTTPException) as exc:
        decode_token(token)
    assert exc.value.status_code == 401


def test_require_role():
    require_role({"sub": "i1", "roles": ["Instructor"]}, ["instructor"])

    with pytest.raises(HTTPException) as exc:
        require_role({"sub": "s1", "roles": ["student"]}, ["admin"])
    assert exc.value.status_code == 403


def test_missing_roles_claim_is_forbidden():
    with pytest.raises(HTTPException) as exc:
        require_role({"sub": "s1"}, ["student"])
    assert exc.value.status_code == 403


def test_self_or_admin():
    require_self_or_admin({"sub": "S1", "roles": ["student"]}, "S1", ["student"])
    require_self_or_admin({"sub": "ops", "roles": ["admin"]}, "S1", ["student"])

    with pytest.raises(HTTPException):
        require_self_or_admin({"sub": "S2", "roles": ["student"]}, "S1", ["student"])
    with pytest.raises(HTTPException):
        require_self_or_admin({"sub": "S1", "roles": ["instructor"]}, "S1", ["student"])
