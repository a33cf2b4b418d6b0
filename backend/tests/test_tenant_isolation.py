# Overview: Pytest coverage for brand scoping, active brand resolution and sessions.

"""
Multi-Brand Isolation Tests

Owners and admins may work in every brand; other users only in brands
granted through UserBrandScope. Documents of one brand are invisible to
another.
"""

from datetime import timedelta

import pytest

from brandledger.models import SessionToken
from brandledger.services import sales_order_service, session_service
from brandledger.services.tenant_service import (
    BRAND_NOT_FOUND,
    allowed_brand_ids,
    require_brand_access,
    resolve_active_brand,
)
from brandledger.time_utils import utcnow
from brandledger.validation import NotFoundError, TenantAccessError, ValidationError


class TestBrandScope:
    def test_owner_sees_all_brands(self, db_session, owner, brand_a, brand_b):
        assert allowed_brand_ids(owner) == [brand_a.id, brand_b.id]

    def test_staff_sees_granted_brands(self, db_session, staff, brand_a):
        assert allowed_brand_ids(staff) == [brand_a.id]

    def test_staff_denied_other_brand(self, db_session, staff, brand_b):
        with pytest.raises(TenantAccessError):
            require_brand_access(staff, brand_b.id)

    def test_unknown_brand_denied(self, db_session, owner):
        with pytest.raises(TenantAccessError):
            require_brand_access(owner, 99999)


class TestResolveActiveBrand:
    def test_explicit_brand_wins(self, db_session, owner, brand_b):
        brand = resolve_active_brand(owner, requested_brand_id=brand_b.id, session_brand_id=None)
        assert brand.id == brand_b.id

    def test_explicit_brand_outside_scope_rejected(self, db_session, staff, brand_b):
        with pytest.raises(TenantAccessError):
            resolve_active_brand(staff, requested_brand_id=brand_b.id)

    def test_session_brand_before_default(self, db_session, owner, brand_b):
        brand = resolve_active_brand(owner, session_brand_id=brand_b.id)
        assert brand.id == brand_b.id

    def test_default_brand(self, db_session, owner, brand_a):
        assert resolve_active_brand(owner).id == brand_a.id

    def test_session_brand_outside_scope_ignored(self, db_session, staff, brand_a, brand_b):
        assert resolve_active_brand(staff, session_brand_id=brand_b.id).id == brand_a.id

    def test_falls_back_to_latest_active_brand(self, db_session, owner, brand_a, brand_b):
        owner.default_brand_profile_id = None
        brand_a.is_active = False
        db_session.commit()
        assert resolve_active_brand(owner).id == brand_b.id

    def test_falls_back_to_first_brand_when_none_active(self, db_session, owner, brand_a, brand_b):
        owner.default_brand_profile_id = None
        brand_a.is_active = False
        brand_b.is_active = False
        db_session.commit()
        assert resolve_active_brand(owner).id == brand_a.id

    def test_no_brand_at_all(self, db_session, setup_roles):
        from brandledger.services.auth_service import create_user

        user = create_user("lonely", "Password123")
        with pytest.raises(ValidationError) as exc:
            resolve_active_brand(user)
        assert exc.value.message == BRAND_NOT_FOUND


class TestDocumentIsolation:
    def test_orders_invisible_across_brands(self, db_session, tenant, tenant_b):
        order = sales_order_service.create_sales_order(tenant, {
            "customerName": "Budi",
            "items": [{"product": "Kaos", "quantity": 1, "price": 1000}],
        })

        assert [o.id for o in sales_order_service.list_sales_orders(tenant)] == [order.id]
        assert sales_order_service.list_sales_orders(tenant_b) == []
        with pytest.raises(NotFoundError):
            sales_order_service.get_sales_order(tenant_b, order.id)
        with pytest.raises(NotFoundError):
            sales_order_service.update_sales_order(tenant_b, order.id, {"status": "Shipped"})

    def test_order_numbers_restart_per_brand(self, db_session, tenant, tenant_b):
        payload = {"customerName": "Budi", "items": [{"product": "Kaos", "quantity": 1, "price": 1}]}
        first = sales_order_service.create_sales_order(tenant, payload)
        other = sales_order_service.create_sales_order(tenant_b, payload)
        assert first.order_number == other.order_number


class TestSessions:
    def test_session_starts_in_default_brand(self, db_session, owner, brand_a):
        session, token = session_service.create_session(owner.id)
        context = session_service.validate_session(token)
        assert context.active_brand_id == brand_a.id
        assert context.roles == ["owner"]
        assert session.token_hash != token

    def test_set_active_brand(self, db_session, owner, brand_b):
        session, token = session_service.create_session(owner.id)
        session_service.set_active_brand(session, brand_b.id)
        assert session_service.validate_session(token).active_brand_id == brand_b.id

    def test_revoked_token_rejected(self, db_session, owner):
        _session, token = session_service.create_session(owner.id)
        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_idle_session_revoked(self, db_session, app, owner):
        session, token = session_service.create_session(owner.id)
        session.last_used_at = utcnow() - timedelta(hours=app.config["SESSION_IDLE_HOURS"] + 1)
        db_session.commit()

        assert session_service.validate_session(token) is None
        db_session.refresh(session)
        assert session.is_revoked
        assert session.revoked_reason == "Idle timeout"

    def test_expired_session_rejected(self, db_session, owner):
        session, token = session_service.create_session(owner.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_inactive_user_rejected(self, db_session, owner):
        _session, token = session_service.create_session(owner.id)
        owner.is_active = False
        db_session.commit()
        assert session_service.validate_session(token) is None
        assert db_session.query(SessionToken).filter_by(is_revoked=True).count() == 1
