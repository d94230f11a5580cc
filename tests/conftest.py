import os
import tempfile
from typing import Dict

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("ENV", "test")
os.environ.setdefault("SQLITE_PATH", os.path.join(tempfile.mkdtemp(prefix="feteer-test-"), "orders.db"))
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-prod")
os.environ.setdefault("LOGIN_FAIL_DELAY_SECS", "0")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_USERNAME", "admin")
os.environ.setdefault("AUTH_PASSWORD", "admin-pass-123")

ADMIN_PASSWORD = os.environ["AUTH_PASSWORD"]
CASHIER_PASSWORD = "cashier-pass-123"


@pytest.fixture(scope="session")
def app():
    """
    Import the orders FastAPI app once per test session.
    """
    from apps.orders.app.main import app as orders_app

    return orders_app


@pytest.fixture(scope="session")
def store(app):
    from apps.orders.app import main as orders  # type: ignore[import]

    return orders.store


@pytest.fixture(autouse=True)
def _fresh_db(store):
    """
    Every test starts from an empty schema with the default admin and menu.
    """
    from apps.orders.app.auth import ensure_default_admin
    from apps.orders.app.seed import seed_menu

    store.drop_schema()
    store.create_schema()
    ensure_default_admin(store)
    seed_menu(store)
    yield


@pytest.fixture()
def client(app):
    return TestClient(app)


def _login(client: TestClient, username: str, password: str) -> str:
    r = client.post("/api/auth/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["token"]


@pytest.fixture()
def admin_headers(client) -> Dict[str, str]:
    token = _login(client, os.environ["AUTH_USERNAME"], ADMIN_PASSWORD)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def cashier_headers(client, store) -> Dict[str, str]:
    from apps.orders.app.auth import hash_password

    store.create_user("cashier", hash_password(CASHIER_PASSWORD, rounds=4), "cashier")
    token = _login(client, "cashier", CASHIER_PASSWORD)
    return {"Authorization": f"Bearer {token}"}
