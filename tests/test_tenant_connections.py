import threading
import time
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import Engine, inspect
from sqlalchemy.exc import IntegrityError, OperationalError

from retailhub.db.admin import InvalidDatabaseNameError, build_tenant_url, validate_db_name
from retailhub.db.database import TenantBase
from retailhub.db.tenant_connections import SHARED_KEY
from retailhub.models.catalog import Invoice, Product
from retailhub.services.provisioning import drop_dedicated_database


def test_shared_connection_is_created_once(connections):
    first = connections.get_shared()
    second = connections.get_shared()

    assert first is second
    assert first.is_shared
    assert connections.keys() == [SHARED_KEY]


def test_dedicated_connection_provisions_schema(connections, tmp_path):
    connection = connections.get_dedicated("retailhub_tenant_42")

    assert not connection.is_shared
    assert (tmp_path / "retailhub_tenant_42.db").exists()
    tables = set(inspect(connection.engine).get_table_names())
    assert {"stores", "products", "customers", "invoices", "online_store_orders"} <= tables
    assert connections.get_dedicated("retailhub_tenant_42") is connection


def test_each_dedicated_database_gets_its_own_pool(connections):
    first = connections.get_dedicated("retailhub_tenant_1")
    second = connections.get_dedicated("retailhub_tenant_2")

    assert first.engine is not second.engine
    assert sorted(connections.keys()) == ["retailhub_tenant_1", "retailhub_tenant_2"]


@pytest.mark.parametrize("db_name", ["", "tenant-1", "tenant_1; DROP DATABASE x", "../escape", "name with space"])
def test_unsafe_database_names_are_rejected(connections, db_name):
    with pytest.raises(InvalidDatabaseNameError):
        connections.get_dedicated(db_name)


def test_shared_key_cannot_be_used_as_dedicated_name(connections):
    with pytest.raises(InvalidDatabaseNameError):
        connections.get_dedicated(SHARED_KEY)


def test_build_tenant_url_substitutes_name():
    url = build_tenant_url("postgresql+psycopg://u:p@db:5432/{db_name}", "retailhub_tenant_9")
    assert url == "postgresql+psycopg://u:p@db:5432/retailhub_tenant_9"
    assert validate_db_name("abc_123") == "abc_123"


def test_evict_idle_keeps_shared_pool(connections):
    shared = connections.get_shared()
    dedicated = connections.get_dedicated("retailhub_tenant_5")
    shared.last_used_at = time.monotonic() - 3600
    dedicated.last_used_at = time.monotonic() - 3600

    evicted = connections.evict_idle(60)

    assert evicted == ["retailhub_tenant_5"]
    assert connections.has(SHARED_KEY)
    assert not connections.has("retailhub_tenant_5")


def test_recently_used_pool_is_not_evicted(connections):
    connections.get_dedicated("retailhub_tenant_6").session().close()

    assert connections.evict_idle(3600) == []
    assert connections.has("retailhub_tenant_6")


def test_dispose_unknown_key_is_noop(connections):
    assert connections.dispose("retailhub_tenant_missing") is False


def test_drop_dedicated_database(connections, tmp_path):
    connections.get_dedicated("retailhub_tenant_77")

    drop_dedicated_database(connections, "retailhub_tenant_77")

    assert not connections.has("retailhub_tenant_77")
    assert not (tmp_path / "retailhub_tenant_77.db").exists()
    with pytest.raises(InvalidDatabaseNameError):
        drop_dedicated_database(connections, SHARED_KEY)


def test_lookup_refreshes_pool_before_eviction(connections):
    connection = connections.get_dedicated("retailhub_tenant_31")
    connection.last_used_at = time.monotonic() - 3600

    assert connections.get_dedicated("retailhub_tenant_31") is connection
    assert connections.evict_idle(60) == []

    connection.last_used_at = time.monotonic() - 3600
    assert connections.evict_idle(60) == ["retailhub_tenant_31"]
    fresh = connections.get_dedicated("retailhub_tenant_31")
    assert fresh is not connection
    assert connections.get_dedicated("retailhub_tenant_31") is fresh


def test_concurrent_first_use_builds_one_pool(connections, monkeypatch):
    real_build = connections._build
    built = []

    def slow_build(key, url, is_shared):
        built.append(key)
        time.sleep(0.05)
        return real_build(key, url, is_shared)

    monkeypatch.setattr(connections, "_build", slow_build)
    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(connections.get_dedicated("retailhub_tenant_30"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert built == ["retailhub_tenant_30"]
    assert len(results) == 8
    assert all(result is results[0] for result in results)


def test_failed_schema_creation_disposes_engine(connections, monkeypatch):
    real_build = connections._build
    real_dispose = Engine.dispose
    built = []
    disposed = []

    def recording_build(key, url, is_shared):
        connection = real_build(key, url, is_shared)
        built.append(connection)
        return connection

    def recording_dispose(self, close=True):
        disposed.append(self)
        real_dispose(self, close)

    def broken_create_all(bind, **kwargs):
        raise OperationalError("CREATE TABLE products", {}, Exception("permission denied"))

    monkeypatch.setattr(connections, "_build", recording_build)
    monkeypatch.setattr(Engine, "dispose", recording_dispose)
    monkeypatch.setattr(TenantBase.metadata, "create_all", broken_create_all)

    with pytest.raises(OperationalError):
        connections.get_dedicated("retailhub_tenant_32")

    assert not connections.has("retailhub_tenant_32")
    assert disposed == [built[0].engine]

    monkeypatch.undo()
    assert connections.get_dedicated("retailhub_tenant_32").engine is not built[0].engine


def test_sku_is_unique_inside_dedicated_database(connections):
    with connections.get_dedicated("retailhub_tenant_33").session() as session:
        session.add(Product(name="Rice", sku="RICE-5", price=Decimal("9.00")))
        session.add_all([Product(name="Loose item", price=Decimal("1.00")) for _ in range(2)])
        session.commit()

        session.add(Product(name="Rice again", sku="RICE-5", price=Decimal("9.00")))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

        session.add(Invoice(invoice_number="INV-1", issue_date=date(2026, 10, 1)))
        session.commit()
        session.add(Invoice(invoice_number="INV-1", issue_date=date(2026, 10, 2)))
        with pytest.raises(IntegrityError):
            session.commit()


def test_sku_uniqueness_is_per_tenant_in_shared_database(connections):
    with connections.get_shared().session() as session:
        session.add_all(
            [
                Product(tenant_id=1, name="Rice", sku="RICE-5", price=Decimal("9.00")),
                Product(tenant_id=2, name="Rice", sku="RICE-5", price=Decimal("9.00")),
            ]
        )
        session.commit()

        session.add(Product(tenant_id=1, name="Rice again", sku="RICE-5", price=Decimal("9.00")))
        with pytest.raises(IntegrityError):
            session.commit()
