import pytest
from fastapi.testclient import TestClient

from merch_ledger import config
from merch_ledger.db import get_engine
from merch_ledger.main import app


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def login(client, username, password="secret"):
    r = client.post("/api/auth", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_auth_issues_token_and_rejects_wrong_password(client):
    login(client, "alice")
    r = client.post("/api/auth", json={"username": "alice", "password": "nope"})
    assert r.status_code == 401
    assert "errors" in r.json()


@pytest.mark.parametrize("body", [{"username": "", "password": "x"}, {"username": "x", "password": ""}, {"username": "x"}])
def test_auth_bad_request(client, body):
    r = client.post("/api/auth", json=body)
    assert r.status_code == 400
    assert r.json()["errors"]


def test_protected_routes_need_token(client):
    r = client.get("/api/info")
    assert r.status_code == 401
    assert r.json() == {"errors": "empty Authorization header"}
    assert client.get("/api/info", headers={"Authorization": "Basic abc"}).status_code == 401
    r = client.get("/api/info", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json()["errors"]


def test_buy_and_info(client):
    headers = login(client, "alice")

    assert client.get("/api/buy/t-shirt", headers=headers).status_code == 200
    assert client.get("/api/buy/pen", headers=headers).status_code == 200

    r = client.get("/api/info", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["coins"] == 490
    assert sorted((i["type"], i["quantity"]) for i in body["inventory"]) == [("pen", 1), ("t-shirt", 1)]
    assert body["coinHistory"] == {"received": [], "sent": []}


def test_buy_errors(client):
    headers = login(client, "alice")

    r = client.get("/api/buy/yacht", headers=headers)
    assert r.status_code == 400

    client.get("/api/buy/t-shirt", headers=headers)
    client.get("/api/buy/t-shirt", headers=headers)
    r = client.get("/api/buy/t-shirt", headers=headers)
    assert r.status_code == 400
    assert r.json() == {"errors": "not enough coins"}


def test_send_coin_and_history(client):
    alice = login(client, "alice")
    bob = login(client, "bob")

    assert client.post("/api/sendCoin", json={"toUser": "bob", "amount": 40}, headers=alice).status_code == 200
    assert client.post("/api/sendCoin", json={"toUser": "alice", "amount": 43}, headers=bob).status_code == 200

    body = client.get("/api/info", headers=alice).json()
    assert body["coins"] == 1003
    assert body["coinHistory"]["sent"] == [{"toUser": "bob", "amount": 40}]
    assert body["coinHistory"]["received"] == [{"fromUser": "bob", "amount": 43}]


@pytest.mark.parametrize(
    "payload",
    [
        {"toUser": "bob", "amount": 0},
        {"toUser": "bob", "amount": 5000},
        {"toUser": "nobody", "amount": 1},
        {"toUser": "alice", "amount": 1},
        {"toUser": "", "amount": 1},
        {"amount": 1},
    ],
)
def test_send_coin_errors(client, payload):
    alice = login(client, "alice")
    login(client, "bob")

    r = client.post("/api/sendCoin", json=payload, headers=alice)
    assert r.status_code == 400
    assert r.json()["errors"]
    assert client.get("/api/info", headers=alice).json()["coins"] == 1000


def test_request_timeout_maps_to_503(client, monkeypatch):
    headers = login(client, "alice")
    monkeypatch.setattr(config, "REQUEST_TIMEOUT_SECONDS", 1e-9)

    r = client.get("/api/buy/pen", headers=headers)
    assert r.status_code == 503

    monkeypatch.setattr(config, "REQUEST_TIMEOUT_SECONDS", 0)
    assert client.get("/api/info", headers=headers).json()["coins"] == 1000


def test_send_coin_refusal_hides_account_id(client):
    alice = login(client, "alice")
    login(client, "bob")

    r = client.post("/api/sendCoin", json={"toUser": "bob", "amount": 5000}, headers=alice)
    assert r.status_code == 400
    assert r.json() == {"errors": "not enough coins"}
