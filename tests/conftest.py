import os

# 必须在 import app 之前设置：测试一律用内存库
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test_secret")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

from warehouse.db import engine
from warehouse.main import app

ADMIN = {"username": "admin", "password": "password", "role": "Admin"}


@pytest.fixture()
def client():
    # 每个测试一个干净的库；lifespan 会重新建表并创建 admin
    SQLModel.metadata.drop_all(engine)
    with TestClient(app) as c:
        yield c


def login(client, username: str, password: str, role: str) -> dict:
    r = client.post("/api/login", json={"username": username, "password": password, "role": role})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}


@pytest.fixture()
def admin_h(client):
    return login(client, **ADMIN)


@pytest.fixture()
def make_user(client, admin_h):
    def _make(username: str, role: str, password: str = "secret", client_id: int | None = None) -> dict:
        r = client.post(
            "/api/users",
            json={"name": username.title(), "username": username, "password": password,
                  "role": role, "clientId": client_id},
            headers=admin_h,
        )
        assert r.status_code == 201, r.text
        return r.json()
    return _make


@pytest.fixture()
def receptionist_h(client, make_user):
    make_user("recep", "Receptionist")
    return login(client, "recep", "secret", "Receptionist")


@pytest.fixture()
def make_client(client, admin_h):
    def _make(name: str = "Ferme Dupont", **overrides) -> dict:
        body = {
            "name": name,
            "type": "individual",
            "phone": "0600000000",
            "address": "1 rue des Champs",
            "email": "dupont@example.com",
        }
        body.update(overrides)
        r = client.post("/api/clients", json=body, headers=admin_h)
        assert r.status_code == 201, r.text
        return r.json()
    return _make
