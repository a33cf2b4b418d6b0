# Overview: Pytest coverage for password hashing, user creation and role assignment.

import pytest

from brandledger.models import User
from brandledger.services.auth_service import (
    ROLE_ADMIN,
    PasswordValidationError,
    assign_role,
    authenticate,
    create_user,
    hash_password,
    validate_password_strength,
    verify_password,
)


@pytest.mark.parametrize("password", ["Short1", "password123", "PASSWORD123", "Password"])
def test_weak_passwords_rejected(password):
    with pytest.raises(PasswordValidationError):
        validate_password_strength(password)


def test_hash_is_not_plaintext(app):
    hashed = hash_password("Password123")
    assert hashed != "Password123"
    assert verify_password("Password123", hashed)
    assert not verify_password("Password124", hashed)


def test_malformed_hash_never_verifies():
    assert verify_password("Password123", "not-a-bcrypt-hash") is False


def test_duplicate_username(db_session, owner):
    with pytest.raises(ValueError):
        create_user("owner", "Password123")


def test_unknown_default_brand(db_session, setup_roles):
    with pytest.raises(ValueError):
        create_user("kasir", "Password123", default_brand_profile_id=424242)


def test_authenticate_by_username_or_email(db_session, setup_roles):
    create_user("kasir", "Password123", email="kasir@example.com")

    assert authenticate("kasir", "Password123").username == "kasir"
    assert authenticate("kasir@example.com", "Password123").username == "kasir"
    assert authenticate("kasir", "Password999") is None
    assert db_session.query(User).filter_by(username="kasir").one().last_login_at is not None


def test_inactive_user_cannot_authenticate(db_session, owner):
    owner.is_active = False
    db_session.commit()
    assert authenticate("owner", "Password123") is None


def test_assign_role_idempotent(db_session, staff):
    first = assign_role(staff.id, ROLE_ADMIN)
    second = assign_role(staff.id, ROLE_ADMIN)
    assert first.id == second.id
    assert staff.role_names == ["admin", "staff"]


def test_unknown_role(db_session, staff):
    with pytest.raises(ValueError):
        assign_role(staff.id, "superuser")
