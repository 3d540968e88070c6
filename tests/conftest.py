import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MAINTENANCE_ENABLED"] = "false"
os.environ["AUTO_CREATE_SCHEMA"] = "false"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ["MIGRATION_PURGE_SHARED_ROWS"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from retailhub.core.security import hash_password
from retailhub.db.database import Base, get_db
from retailhub.db.tenant_connections import TenantConnectionCache, get_tenant_connections
from retailhub.main import app
from retailhub.models.user import User, UserRole

PLATFORM_ADMIN_EMAIL = "root@retailhub.test"
PLATFORM_ADMIN_PASSWORD = "platform-secret-1"


@pytest.fixture()
def control_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(control_engine):
    return sessionmaker(bind=control_engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def connections(tmp_path):
    cache = TenantConnectionCache(
        shared_url=f"sqlite:///{tmp_path / 'retailhub_free_users.db'}",
        tenant_url_template=f"sqlite:///{tmp_path}/{{db_name}}.db",
    )
    yield cache
    cache.dispose_all()


@pytest.fixture()
def client(session_factory, connections):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tenant_connections] = lambda: connections
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def platform_admin(db):
    user = User(
        tenant_id=None,
        email=PLATFORM_ADMIN_EMAIL,
        password_hash=hash_password(PLATFORM_ADMIN_PASSWORD),
        role=UserRole.PLATFORM_ADMIN,
        is_platform_admin=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def login(client):
    def _login(email: str, password: str) -> dict[str, str]:
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture()
def admin_headers(platform_admin, login):
    return login(PLATFORM_ADMIN_EMAIL, PLATFORM_ADMIN_PASSWORD)
