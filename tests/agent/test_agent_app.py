"""Tests for the agent Flask application via its test client."""

from __future__ import annotations

import stat
from dataclasses import dataclass

import pytest

from acmeman.agent import ChallengeStore, create_agent_app

_KEY = "agent-secret-0123456789"


@dataclass(frozen=True)
class _FakeAgentServerSettings:
    bind: str = "127.0.0.1"
    port: int = 8080
    api_key: str = _KEY
    api_key_header: str = "X-Api-Key"
    name: str = "web1"
    version: str = "1.2.3"
    certificate_dir: str = "certs"
    workers: int = 1
    worker_class: str = "gthread"
    timeout: int = 30
    graceful_timeout: int = 30
    keepalive: int = 2


@pytest.fixture
def store():
    return ChallengeStore()


@pytest.fixture
def app(store, tmp_path):
    settings = _FakeAgentServerSettings(certificate_dir=str(tmp_path / "installed"))
    app = create_agent_app(settings, store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


_AUTH = {"X-Api-Key": _KEY}


class TestPutChallenge:
    def test_stores_token(self, client, store):
        resp = client.put(
            "/challenges",
            json={"token": "tok", "authorization": "tok.thumb"},
            headers=_AUTH,
        )
        assert resp.status_code == 200
        assert resp.get_json() == {"token": "tok", "replaced": False}
        assert store.get("tok") == "tok.thumb"

    def test_overwrite_reports_replaced(self, client, store):
        store.put("tok", "old")
        resp = client.put(
            "/challenges",
            json={"token": "tok", "authorization": "new"},
            headers=_AUTH,
        )
        assert resp.get_json()["replaced"] is True
        assert store.get("tok") == "new"

    def test_requires_api_key(self, client, store):
        resp = client.put("/challenges", json={"token": "tok", "authorization": "a"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "unauthorized"
        assert store.get("tok") is None

    def test_wrong_api_key(self, client):
        resp = client.put(
            "/challenges",
            json={"token": "tok", "authorization": "a"},
            headers={"X-Api-Key": "nope"},
        )
        assert resp.status_code == 401

    @pytest.mark.parametrize(
        "body",
        [{"token": "tok"}, {"authorization": "a"}, {"token": "", "authorization": "a"}],
    )
    def test_malformed_body(self, client, body):
        resp = client.put("/challenges", json=body, headers=_AUTH)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "malformed"

    def test_non_json_body(self, client):
        resp = client.put("/challenges", data="token=tok", headers=_AUTH)
        assert resp.status_code == 400


class TestDeleteChallenge:
    def test_removes_token(self, client, store):
        store.put("tok", "a")
        resp = client.delete("/challenges?token=tok", headers=_AUTH)
        assert resp.status_code == 204
        assert store.get("tok") is None

    def test_unknown_token_is_404(self, client):
        resp = client.delete("/challenges?token=missing", headers=_AUTH)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_found"

    def test_token_required(self, client):
        resp = client.delete("/challenges", headers=_AUTH)
        assert resp.status_code == 400

    def test_requires_api_key(self, client, store):
        store.put("tok", "a")
        assert client.delete("/challenges?token=tok").status_code == 401
        assert store.get("tok") == "a"


class TestServeChallenge:
    def test_well_known_path(self, client, store):
        store.put("tok", "tok.thumb")
        resp = client.get("/.well-known/acme-challenge/tok")
        assert resp.status_code == 200
        assert resp.mimetype == "text/plain"
        assert resp.get_data(as_text=True) == "tok.thumb"

    def test_challenges_path(self, client, store):
        store.put("tok", "tok.thumb")
        resp = client.get("/challenges/tok")
        assert resp.get_data(as_text=True) == "tok.thumb"

    def test_missing_token(self, client):
        assert client.get("/.well-known/acme-challenge/nope").status_code == 404

    def test_withdrawn_token_no_longer_served(self, client, store):
        client.put("/challenges", json={"token": "t", "authorization": "a"}, headers=_AUTH)
        client.delete("/challenges?token=t", headers=_AUTH)
        assert client.get("/challenges/t").status_code == 404


class TestListAndMetadata:
    def test_list_tokens(self, client, store):
        store.put("b", "2")
        store.put("a", "1")
        resp = client.get("/challenges", headers=_AUTH)
        assert resp.get_json() == {"tokens": ["a", "b"]}

    def test_list_requires_key(self, client):
        assert client.get("/challenges").status_code == 401

    def test_metadata(self, client):
        resp = client.get("/metadata")
        assert resp.status_code == 200
        assert resp.get_json() == {"name": "web1", "version": "1.2.3"}

    def test_unknown_route_is_json(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_found"


class TestInstallCertificate:
    def test_writes_files(self, client, tmp_path):
        resp = client.put(
            "/certificate",
            json={"certificate": "CERT-PEM", "private_key": "KEY-PEM"},
            headers=_AUTH,
        )
        assert resp.status_code == 200
        directory = tmp_path / "installed"
        assert (directory / "certificate.crt").read_text() == "CERT-PEM"
        key_file = directory / "private.key"
        assert key_file.read_text() == "KEY-PEM"
        assert stat.S_IMODE(key_file.stat().st_mode) == 0o600

    def test_requires_key(self, client):
        resp = client.put("/certificate", json={"certificate": "c", "private_key": "k"})
        assert resp.status_code == 401

    def test_storage_error(self, tmp_path, store):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        app = create_agent_app(
            _FakeAgentServerSettings(certificate_dir=str(blocker / "sub")),
            store,
        )
        resp = app.test_client().put(
            "/certificate",
            json={"certificate": "c", "private_key": "k"},
            headers=_AUTH,
        )
        assert resp.status_code == 500
        assert resp.get_json()["error"] == "storage_error"


def test_custom_header(store):
    app = create_agent_app(_FakeAgentServerSettings(api_key_header="X-Agent-Key"), store)
    client = app.test_client()
    resp = client.put(
        "/challenges",
        json={"token": "t", "authorization": "a"},
        headers={"X-Agent-Key": _KEY},
    )
    assert resp.status_code == 200
