# Overview: Service-layer operations for auth; password hashing, user creation and role assignment.

"""
Authentication Service

Every payment, stock mutation and document is stamped with the acting
user, so a minimal user store is required even though sign-up and
password reset live elsewhere.

ROLES:
- owner, admin: access to every brand
- staff: access only to brands granted through UserBrandScope

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, mixed case and a digit
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import BrandProfile, Role, User, UserBrandScope, UserRole
from ..time_utils import utcnow

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"

DEFAULT_ROLES = [
    (ROLE_OWNER, "Business owner, all brands"),
    (ROLE_ADMIN, "Administrator, all brands"),
    (ROLE_STAFF, "Staff, assigned brands only"),
]

ALL_BRAND_ROLES = {ROLE_OWNER, ROLE_ADMIN}


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if len(password) < 8:
        raise PasswordValidationError("Password minimal 8 karakter")
    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password harus mengandung huruf besar")
    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password harus mengandung huruf kecil")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password harus mengandung angka")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_default_roles() -> None:
    for name, desc in DEFAULT_ROLES:
        existing = db.session.query(Role).filter_by(name=name).first()
        if not existing:
            db.session.add(Role(name=name, description=desc))
    db.session.commit()


def create_user(
    username: str,
    password: str,
    *,
    email: str | None = None,
    default_brand_profile_id: int | None = None,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValueError: username already taken or default brand missing
        PasswordValidationError: weak password
    """
    if db.session.query(User).filter_by(username=username).first():
        raise ValueError("Username sudah digunakan")

    if default_brand_profile_id is not None:
        if not db.session.get(BrandProfile, default_brand_profile_id):
            raise ValueError("Brand tidak ditemukan")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        default_brand_profile_id=default_brand_profile_id,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Check credentials; returns the User or None.

    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user
    return None


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign role to user (idempotent)."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(user_id=user_id, role_id=role.id).first()
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)
    db.session.add(user_role)
    db.session.commit()
    return user_role


def grant_brand(user_id: int, brand_id: int) -> UserBrandScope:
    """Give a staff user access to one brand (idempotent)."""
    existing = db.session.query(UserBrandScope).filter_by(
        user_id=user_id, brand_profile_id=brand_id
    ).first()
    if existing:
        return existing
    scope = UserBrandScope(user_id=user_id, brand_profile_id=brand_id)
    db.session.add(scope)
    db.session.commit()
    return scope
