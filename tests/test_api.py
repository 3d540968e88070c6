from retailhub.models.tenant import Tenant


def _register_free(client, subdomain: str) -> dict:
    response = client.post(
        "/tenants/free",
        json={
            "name": f"{subdomain.title()} Mart",
            "subdomain": subdomain,
            "adminEmail": f"admin@{subdomain}.test",
            "adminPassword": "str0ng-password",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def _generate_license(client, admin_headers) -> str:
    response = client.post("/platform/licenses", json={"quantity": 1}, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()[0]["license_key"]


def _create_product(client, headers, name: str, sku: str, stock: int = 5) -> dict:
    response = client.post(
        "/catalog/products",
        json={"name": name, "sku": sku, "price": "9.99", "stock": stock, "category": "grocery"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_free_tenant_upgrade_flow(client, admin_headers, connections) -> None:
    registered = _register_free(client, "acme")
    assert registered["subscription_plan"] == "free"
    tenant_id = registered["tenant_id"]

    login_resp = client.post("/auth/login", json={"email": "admin@acme.test", "password": "str0ng-password"})
    assert login_resp.status_code == 200
    assert login_resp.json()["tenant_id"] == tenant_id
    assert login_resp.json()["subscription_plan"] == "free"
    headers = {"Authorization": f"Bearer {login_resp.json()['access_token']}"}

    product = _create_product(client, headers, "Rice 5kg", "rice-5")
    assert product["sku"] == "RICE-5"

    store_resp = client.post("/catalog/stores", json={"name": "Ikeja Branch"}, headers=headers)
    assert store_resp.status_code == 403
    detail = store_resp.json()["detail"]
    assert detail["upgrade_required"] is True
    assert detail["current_plan"] == "free"
    assert detail["required_plan"] == "enterprise"

    license_key = _generate_license(client, admin_headers)
    upgrade_resp = client.post(
        f"/platform/tenants/{tenant_id}/upgrade",
        json={"license_key": license_key},
        headers=admin_headers,
    )
    assert upgrade_resp.status_code == 200, upgrade_resp.text
    upgrade = upgrade_resp.json()
    assert upgrade["db_name"] == f"retailhub_tenant_{tenant_id}"
    assert upgrade["migrated_rows"]["products"] == 1
    assert upgrade["tenant"]["subscription_plan"] == "enterprise"
    assert connections.has(upgrade["db_name"])

    # The same token is now routed to the dedicated database.
    products = client.get("/catalog/products", headers=headers).json()
    assert [p["id"] for p in products] == [product["id"]]
    assert client.get(f"/catalog/products/{product['id']}", headers=headers).status_code == 200

    store_resp = client.post("/catalog/stores", json={"name": "Ikeja Branch"}, headers=headers)
    assert store_resp.status_code == 201, store_resp.text
    assert [s["name"] for s in client.get("/catalog/stores", headers=headers).json()] == ["Ikeja Branch"]

    me = client.get("/tenants/me", headers=headers).json()
    assert me["subscription_plan"] == "enterprise"
    assert me["transaction_fee_percentage"] in ("0.00", "0", 0, 0.0)

    again = client.post(
        f"/platform/tenants/{tenant_id}/upgrade",
        json={"license_key": _generate_license(client, admin_headers)},
        headers=admin_headers,
    )
    assert again.status_code == 400


def test_upgrade_with_used_license_is_rejected(client, admin_headers) -> None:
    first = _register_free(client, "first")
    second = _register_free(client, "second")
    license_key = _generate_license(client, admin_headers)

    ok = client.post(
        f"/platform/tenants/{first['tenant_id']}/upgrade",
        json={"license_key": license_key},
        headers=admin_headers,
    )
    assert ok.status_code == 200

    reused = client.post(
        f"/platform/tenants/{second['tenant_id']}/upgrade",
        json={"license_key": license_key},
        headers=admin_headers,
    )
    assert reused.status_code == 400
    assert "already been used" in reused.json()["detail"]


def test_free_tenants_are_isolated(client, login) -> None:
    _register_free(client, "north")
    _register_free(client, "south")
    north = login("admin@north.test", "str0ng-password")
    south = login("admin@south.test", "str0ng-password")

    north_product = _create_product(client, north, "Palm Oil", "OIL-1")
    south_product = _create_product(client, south, "Palm Oil", "OIL-1")

    assert [p["id"] for p in client.get("/catalog/products", headers=north).json()] == [north_product["id"]]
    assert [p["id"] for p in client.get("/catalog/products", headers=south).json()] == [south_product["id"]]
    assert client.get(f"/catalog/products/{south_product['id']}", headers=north).status_code == 404

    duplicate = client.post(
        "/catalog/products",
        json={"name": "Palm Oil", "sku": "oil-1", "price": "1.00"},
        headers=north,
    )
    assert duplicate.status_code == 409


def test_customers_are_scoped(client, login) -> None:
    _register_free(client, "shopa")
    _register_free(client, "shopb")
    shop_a = login("admin@shopa.test", "str0ng-password")
    shop_b = login("admin@shopb.test", "str0ng-password")

    created = client.post("/catalog/customers", json={"name": "Ada Obi", "email": "ADA@example.com"}, headers=shop_a)
    assert created.status_code == 201
    assert created.json()["email"] == "ada@example.com"

    assert len(client.get("/catalog/customers", headers=shop_a).json()) == 1
    assert client.get("/catalog/customers", headers=shop_b).json() == []
    assert len(client.get("/catalog/customers", params={"search": "ada"}, headers=shop_a).json()) == 1


def test_enterprise_registration(client, admin_headers, login, connections) -> None:
    license_key = _generate_license(client, admin_headers)
    payload = {
        "name": "Mega Stores",
        "subdomain": "mega",
        "admin_email": "admin@mega.test",
        "admin_password": "str0ng-password",
        "license_key": license_key,
    }

    response = client.post("/tenants/enterprise", json=payload)
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["subscription_plan"] == "enterprise"
    assert connections.has(f"retailhub_tenant_{body['tenant_id']}")

    headers = login("admin@mega.test", "str0ng-password")
    store = client.post("/catalog/stores", json={"name": "Lekki"}, headers=headers)
    assert store.status_code == 201

    reused = client.post(
        "/tenants/enterprise",
        json={**payload, "subdomain": "mega2", "admin_email": "admin@mega2.test"},
    )
    assert reused.status_code == 400
    assert client.get("/platform/tenants", params={"plan": "enterprise"}, headers=admin_headers).json()["total"] == 1


def test_enterprise_registration_requires_valid_license(client) -> None:
    response = client.post(
        "/tenants/enterprise",
        json={
            "name": "Nope Stores",
            "subdomain": "nope",
            "admin_email": "admin@nope.test",
            "admin_password": "str0ng-password",
            "license_key": "AAAA-BBBB-CCCC-DDDD",
        },
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid license key"


def test_duplicate_subdomain_conflicts(client) -> None:
    _register_free(client, "dupe")
    response = client.post(
        "/tenants/free",
        json={
            "name": "Another",
            "subdomain": "DUPE",
            "admin_email": "other@dupe.test",
            "admin_password": "str0ng-password",
        },
    )
    assert response.status_code == 409


def test_public_storefront_by_subdomain(client, login) -> None:
    _register_free(client, "corner")
    headers = login("admin@corner.test", "str0ng-password")
    _create_product(client, headers, "Bread", "BRD-1", stock=3)
    _create_product(client, headers, "Milk", "MLK-1", stock=0)

    by_header = client.get("/public/products", headers={"X-Subdomain": "corner"})
    assert by_header.status_code == 200
    assert {p["name"]: p["in_stock"] for p in by_header.json()} == {"Bread": True, "Milk": False}
    assert "stock" not in by_header.json()[0]

    by_host = client.get("/public/products", headers={"Host": "corner.retailhub.test"})
    assert len(by_host.json()) == 2

    assert client.get("/public/products", headers={"X-Subdomain": "missing"}).status_code == 404
    assert client.get("/public/products").status_code == 404


def test_suspended_tenant_is_locked_out(client, admin_headers, login) -> None:
    registered = _register_free(client, "sleepy")
    headers = login("admin@sleepy.test", "str0ng-password")

    response = client.patch(
        f"/platform/tenants/{registered['tenant_id']}/status",
        json={"status": "suspended"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "suspended"

    blocked = client.get("/catalog/products", headers=headers)
    assert blocked.status_code == 403
    assert blocked.json()["detail"] == "Invalid or inactive tenant"
    relogin = client.post("/auth/login", json={"email": "admin@sleepy.test", "password": "str0ng-password"})
    assert relogin.status_code == 403
    assert client.get("/public/products", headers={"X-Subdomain": "sleepy"}).status_code == 404


def test_authentication_rules(client, admin_headers, login) -> None:
    assert client.get("/catalog/products").json()["detail"] == "No token provided"
    assert client.get("/catalog/products", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401

    me = client.get("/auth/me", headers=admin_headers).json()
    assert me["email"] == "root@retailhub.test"
    assert me["tenant_id"] is None
    assert client.get("/catalog/products", headers=admin_headers).status_code == 403

    _register_free(client, "plain")
    tenant_headers = login("admin@plain.test", "str0ng-password")
    assert client.get("/platform/tenants", headers=tenant_headers).status_code == 403

    bad_login = client.post("/auth/login", json={"email": "admin@plain.test", "password": "wrong"})
    assert bad_login.status_code == 401


def test_license_administration(client, admin_headers) -> None:
    created = client.post(
        "/platform/licenses",
        json={"quantity": 3, "purchased_by": "Reseller"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    keys = created.json()
    assert len(keys) == 3

    page = client.get("/platform/licenses", params={"status": "active", "limit": 2}, headers=admin_headers).json()
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert len(page["items"]) == 2

    revoked = client.patch(f"/platform/licenses/{keys[0]['id']}", json={"status": "revoked"}, headers=admin_headers)
    assert revoked.status_code == 200
    assert revoked.json()["status"] == "revoked"

    too_many = client.post("/platform/licenses", json={"quantity": 101}, headers=admin_headers)
    assert too_many.status_code == 422


def test_writes_are_refused_while_tenant_migrates(client, login, session_factory) -> None:
    registered = _register_free(client, "moving")
    headers = login("admin@moving.test", "str0ng-password")
    _create_product(client, headers, "Beans", "BNS-1")

    with session_factory() as session:
        session.get(Tenant, registered["tenant_id"]).is_migrating = True
        session.commit()

    blocked = client.post(
        "/catalog/products",
        json={"name": "Late sale item", "sku": "LATE-1", "price": "1.00"},
        headers=headers,
    )
    assert blocked.status_code == 409
    assert blocked.json()["detail"] == "Tenant migration in progress, try again shortly"
    assert client.post("/catalog/customers", json={"name": "Ada"}, headers=headers).status_code == 409
    assert [p["sku"] for p in client.get("/catalog/products", headers=headers).json()] == ["BNS-1"]
    assert client.get("/tenants/me", headers=headers).json()["is_migrating"] is True


def test_enterprise_duplicate_sku_conflicts(client, admin_headers, login) -> None:
    response = client.post(
        "/tenants/enterprise",
        json={
            "name": "Solo Stores",
            "subdomain": "solo",
            "admin_email": "admin@solo.test",
            "admin_password": "str0ng-password",
            "license_key": _generate_license(client, admin_headers),
        },
    )
    assert response.status_code == 201, response.text
    headers = login("admin@solo.test", "str0ng-password")

    _create_product(client, headers, "Palm Oil", "OIL-1")
    duplicate = client.post(
        "/catalog/products",
        json={"name": "Palm Oil", "sku": "oil-1", "price": "1.00"},
        headers=headers,
    )
    assert duplicate.status_code == 409
