from decimal import Decimal

import pytest

from retailhub.models.tenant import LicenseKey, LicenseStatus, SubscriptionPlan, Tenant, TenantStatus
from retailhub.models.user import User
from retailhub.services.licensing import LicenseValidationError, create_license_key
from retailhub.services.tenant_directory import (
    TenantConflictError,
    get_tenant_by_id,
    get_tenant_by_subdomain,
    get_tenant_by_user_email,
    list_tenants,
    register_enterprise_tenant,
    register_free_tenant,
    set_tenant_status,
)


def _free(db, connections, subdomain: str):
    return register_free_tenant(
        db,
        connections,
        name="Corner Shop",
        subdomain=subdomain,
        admin_email=f"Owner@{subdomain}.test",
        admin_password="correct-horse-1",
    )


def test_free_registration(db, connections):
    tenant, user = _free(db, connections, "Corner")

    assert tenant.subdomain == "corner"
    assert tenant.db_name is None
    assert tenant.subscription_plan == SubscriptionPlan.FREE
    assert tenant.status == TenantStatus.ACTIVE
    assert tenant.transaction_fee_percentage == Decimal("3.00")
    assert user.tenant_id == tenant.id
    assert user.email == "owner@corner.test"
    assert connections.has("shared_free")


def test_lookups(db, connections, platform_admin):
    tenant, _ = _free(db, connections, "lookup")

    assert get_tenant_by_id(db, tenant.id) is tenant
    assert get_tenant_by_subdomain(db, " LOOKUP ") is tenant
    assert get_tenant_by_user_email(db, "OWNER@lookup.test") is tenant
    assert get_tenant_by_user_email(db, platform_admin.email) is None
    assert get_tenant_by_subdomain(db, "nobody") is None


def test_conflicts(db, connections):
    _free(db, connections, "taken")

    with pytest.raises(TenantConflictError, match="Subdomain"):
        _free(db, connections, "taken")
    with pytest.raises(TenantConflictError, match="Email"):
        register_free_tenant(
            db,
            connections,
            name="Other",
            subdomain="other",
            admin_email="owner@taken.test",
            admin_password="correct-horse-1",
        )


def test_enterprise_registration_provisions_database(db, connections):
    key = create_license_key(db).license_key
    db.commit()

    tenant, _ = register_enterprise_tenant(
        db,
        connections,
        name="Mega",
        subdomain="mega",
        admin_email="admin@mega.test",
        admin_password="correct-horse-1",
        license_key=key,
    )

    assert tenant.subscription_plan == SubscriptionPlan.ENTERPRISE
    assert tenant.db_name == f"retailhub_tenant_{tenant.id}"
    assert tenant.transaction_fee_percentage == Decimal("0.00")
    assert connections.has(tenant.db_name)
    license_row = db.query(LicenseKey).filter_by(license_key=key).one()
    assert license_row.status == LicenseStatus.USED
    assert license_row.tenant_id == tenant.id


def test_failed_enterprise_registration_commits_nothing(db, connections):
    with pytest.raises(LicenseValidationError):
        register_enterprise_tenant(
            db,
            connections,
            name="Nope",
            subdomain="nope",
            admin_email="admin@nope.test",
            admin_password="correct-horse-1",
            license_key="AAAA-BBBB-CCCC-DDDD",
        )

    assert db.query(Tenant).count() == 0
    assert db.query(User).count() == 0


def test_status_and_listing(db, connections):
    first, _ = _free(db, connections, "one")
    _free(db, connections, "two")

    set_tenant_status(db, first, TenantStatus.SUSPENDED)

    rows, total = list_tenants(db, status=TenantStatus.SUSPENDED)
    assert total == 1
    assert [t.subdomain for t in rows] == ["one"]
    rows, total = list_tenants(db, plan=SubscriptionPlan.FREE, limit=1)
    assert total == 2
    assert len(rows) == 1
