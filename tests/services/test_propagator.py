"""Tests for agent challenge propagation and routing."""

from __future__ import annotations

import io
import json
import urllib.error
import uuid
from unittest.mock import MagicMock, patch

import pytest

from acmeman.core.errors import RoutingError
from acmeman.core.types import ChallengeType
from acmeman.models.agent import Agent
from acmeman.services.propagator import AgentDirectory, ChallengePropagator, ChallengeRouter
from acmeman.services.selector import SelectedChallenge

_URLOPEN = "acmeman.services.propagator.urllib.request.urlopen"
_AGENT_URL = "http://10.0.0.5:8080/"
_KEY = "agent-secret-0123456789"


def _ok_response():
    resp = MagicMock()
    resp.read.return_value = b""
    resp.__enter__ = MagicMock(return_value=resp)
    resp.__exit__ = MagicMock(return_value=False)
    return resp


def _http_error(code: int, body: bytes = b"") -> urllib.error.HTTPError:
    return urllib.error.HTTPError(_AGENT_URL, code, "err", {}, io.BytesIO(body))


def _make_agent(**overrides) -> Agent:
    defaults = {
        "id": uuid.uuid4(),
        "name": "web1",
        "url": "http://10.0.0.5:8080",
        "token": _KEY,
        "domains": ("example.com",),
        "is_connected": True,
    }
    defaults.update(overrides)
    return Agent(**defaults)


# ---------------------------------------------------------------------------
# ChallengePropagator
# ---------------------------------------------------------------------------


class TestPublish:
    @patch(_URLOPEN)
    def test_put_with_json_and_api_key(self, mock_urlopen):
        mock_urlopen.return_value = _ok_response()
        ChallengePropagator(timeout=7).publish(_AGENT_URL, _KEY, "tok", "tok.thumb")

        req = mock_urlopen.call_args.args[0]
        assert req.get_method() == "PUT"
        assert req.full_url == "http://10.0.0.5:8080/challenges"
        assert json.loads(req.data) == {"token": "tok", "authorization": "tok.thumb"}
        assert req.get_header("X-api-key") == _KEY
        assert req.get_header("Content-type") == "application/json"
        assert mock_urlopen.call_args.kwargs["timeout"] == 7

    @patch(_URLOPEN)
    def test_custom_header(self, mock_urlopen):
        mock_urlopen.return_value = _ok_response()
        ChallengePropagator(api_key_header="X-Agent-Key").publish(_AGENT_URL, _KEY, "t", "a")
        req = mock_urlopen.call_args.args[0]
        assert req.get_header("X-agent-key") == _KEY

    @patch(_URLOPEN)
    def test_http_error_is_routing_error(self, mock_urlopen):
        mock_urlopen.side_effect = _http_error(401, b'{"error":"unauthorized"}')
        with pytest.raises(RoutingError, match="HTTP 401") as exc_info:
            ChallengePropagator().publish(_AGENT_URL, "wrong", "tok", "auth")
        assert exc_info.value.retryable is False

    @patch(_URLOPEN)
    def test_server_error_is_retryable(self, mock_urlopen):
        mock_urlopen.side_effect = _http_error(503)
        with pytest.raises(RoutingError) as exc_info:
            ChallengePropagator().publish(_AGENT_URL, _KEY, "tok", "auth")
        assert exc_info.value.retryable is True

    @patch(_URLOPEN)
    def test_unreachable_is_routing_error(self, mock_urlopen):
        mock_urlopen.side_effect = urllib.error.URLError("connection refused")
        with pytest.raises(RoutingError, match="unreachable"):
            ChallengePropagator().publish(_AGENT_URL, _KEY, "tok", "auth")


class TestWithdraw:
    @patch(_URLOPEN)
    def test_delete_with_token_query(self, mock_urlopen):
        mock_urlopen.return_value = _ok_response()
        ChallengePropagator().withdraw(_AGENT_URL, _KEY, "tok/1")
        req = mock_urlopen.call_args.args[0]
        assert req.get_method() == "DELETE"
        assert req.full_url == "http://10.0.0.5:8080/challenges?token=tok%2F1"

    @patch(_URLOPEN)
    def test_missing_token_is_success(self, mock_urlopen):
        mock_urlopen.side_effect = _http_error(404)
        ChallengePropagator().withdraw(_AGENT_URL, _KEY, "tok")

    @patch(_URLOPEN)
    def test_other_errors_raise(self, mock_urlopen):
        mock_urlopen.side_effect = _http_error(500)
        with pytest.raises(RoutingError):
            ChallengePropagator().withdraw(_AGENT_URL, _KEY, "tok")


# ---------------------------------------------------------------------------
# AgentDirectory
# ---------------------------------------------------------------------------


class TestAgentDirectory:
    def test_returns_first_connected(self):
        repo = MagicMock()
        down = _make_agent(name="a", is_connected=False)
        up = _make_agent(name="b")
        repo.find_for_domain.return_value = [up, down]
        assert AgentDirectory(repo).resolve("example.com") is up

    def test_no_agent_bound(self):
        repo = MagicMock()
        repo.find_for_domain.return_value = []
        with pytest.raises(RoutingError, match="No agent"):
            AgentDirectory(repo).resolve("example.com")

    def test_all_disconnected(self):
        repo = MagicMock()
        repo.find_for_domain.return_value = [_make_agent(is_connected=False)]
        with pytest.raises(RoutingError, match="disconnected") as exc_info:
            AgentDirectory(repo).resolve("example.com")
        assert exc_info.value.retryable is True

    def test_connectivity_ignored_when_not_required(self):
        repo = MagicMock()
        first = _make_agent(name="a", is_connected=False)
        repo.find_for_domain.return_value = [first, _make_agent(name="b")]
        directory = AgentDirectory(repo, require_connected=False)
        assert directory.resolve("example.com") is first

    def test_no_agent_bound_when_not_required(self):
        repo = MagicMock()
        repo.find_for_domain.return_value = []
        with pytest.raises(RoutingError, match="No agent"):
            AgentDirectory(repo, require_connected=False).resolve("example.com")


# ---------------------------------------------------------------------------
# ChallengeRouter
# ---------------------------------------------------------------------------


def _selected(type_=ChallengeType.HTTP_01) -> SelectedChallenge:
    if type_ is ChallengeType.HTTP_01:
        return SelectedChallenge("example.com", type_, "tok", "tok.thumb")
    return SelectedChallenge("example.com", type_, "_acme-challenge.example.com", "digest")


class TestChallengeRouter:
    def _build(self, dns=None):
        propagator = MagicMock(spec=ChallengePropagator)
        directory = MagicMock(spec=AgentDirectory)
        directory.resolve.return_value = _make_agent()
        return ChallengeRouter(propagator, directory, dns), propagator, directory

    def test_http01_publish_goes_to_agent(self):
        router, propagator, directory = self._build()
        router.publish(_selected())
        directory.resolve.assert_called_once_with("example.com")
        propagator.publish.assert_called_once_with(
            "http://10.0.0.5:8080", _KEY, "tok", "tok.thumb",
        )

    def test_http01_withdraw_goes_to_agent(self):
        router, propagator, _ = self._build()
        router.withdraw(_selected())
        propagator.withdraw.assert_called_once_with("http://10.0.0.5:8080", _KEY, "tok")

    def test_dns01_goes_to_publisher(self):
        dns = MagicMock()
        router, propagator, _ = self._build(dns)
        router.publish(_selected(ChallengeType.DNS_01))
        router.withdraw(_selected(ChallengeType.DNS_01))
        dns.create.assert_called_once_with("example.com", "_acme-challenge.example.com", "digest")
        dns.delete.assert_called_once_with("example.com", "_acme-challenge.example.com")
        propagator.publish.assert_not_called()

    def test_dns01_without_publisher(self):
        router, _, _ = self._build()
        with pytest.raises(RoutingError, match="No DNS publisher"):
            router.publish(_selected(ChallengeType.DNS_01))
