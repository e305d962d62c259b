"""Tests for the callback-script DNS-01 publisher."""

from __future__ import annotations

import subprocess
import threading
from dataclasses import dataclass
from unittest.mock import MagicMock, patch

import dns.resolver
import pytest

from acmeman.core.errors import RoutingError
from acmeman.services.dns01 import CallbackDnsPublisher

_RUN = "acmeman.services.dns01.subprocess.run"


@dataclass(frozen=True)
class _FakeDns01Settings:
    create_script: str | None = "/usr/local/bin/dns-create"
    delete_script: str | None = "/usr/local/bin/dns-delete"
    script_timeout: int = 60
    resolvers: tuple[str, ...] = ()
    verify_propagation: bool = False
    propagation_timeout_seconds: int = 120
    propagation_poll_seconds: int = 5


def _make_publisher(**overrides) -> CallbackDnsPublisher:
    return CallbackDnsPublisher(_FakeDns01Settings(**overrides))


def _txt_rdata(value: str):
    rdata = MagicMock()
    rdata.strings = [value.encode("ascii")]
    return rdata


class TestConstruction:
    @pytest.mark.parametrize("missing", ["create_script", "delete_script"])
    def test_requires_both_scripts(self, missing):
        with pytest.raises(ValueError, match="both"):
            _make_publisher(**{missing: None})


class TestScripts:
    @patch(_RUN)
    def test_create_invokes_script(self, mock_run):
        _make_publisher().create("example.com", "_acme-challenge.example.com", "digest")
        argv = mock_run.call_args.args[0]
        assert argv == [
            "/usr/local/bin/dns-create",
            "example.com",
            "_acme-challenge.example.com",
            "digest",
        ]
        kwargs = mock_run.call_args.kwargs
        assert kwargs["check"] is True
        assert kwargs["timeout"] == 60

    @patch(_RUN)
    def test_delete_invokes_script(self, mock_run):
        _make_publisher().delete("example.com", "_acme-challenge.example.com")
        assert mock_run.call_args.args[0] == [
            "/usr/local/bin/dns-delete",
            "example.com",
            "_acme-challenge.example.com",
        ]

    @patch(_RUN)
    def test_non_zero_exit(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(3, ["x"], stderr="zone locked")
        with pytest.raises(RoutingError, match="exit 3"):
            _make_publisher().create("example.com", "_acme-challenge.example.com", "digest")

    @patch(_RUN)
    def test_timeout_is_retryable(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(["x"], 60)
        with pytest.raises(RoutingError) as exc_info:
            _make_publisher().delete("example.com", "_acme-challenge.example.com")
        assert exc_info.value.retryable is True

    @patch(_RUN)
    def test_missing_script(self, mock_run):
        mock_run.side_effect = FileNotFoundError("no such file")
        with pytest.raises(RoutingError, match="could not be run"):
            _make_publisher().delete("example.com", "_acme-challenge.example.com")


class TestPropagation:
    @patch("acmeman.services.dns01.dns.resolver.Resolver")
    def test_lookup_returns_txt_values(self, mock_resolver_cls):
        mock_resolver_cls.return_value.resolve.return_value = [_txt_rdata("digest")]
        publisher = _make_publisher(resolvers=("192.0.2.53",))
        assert publisher.lookup("_acme-challenge.example.com") == ["digest"]
        assert mock_resolver_cls.return_value.nameservers == ["192.0.2.53"]

    @patch("acmeman.services.dns01.dns.resolver.Resolver")
    def test_lookup_nxdomain_is_empty(self, mock_resolver_cls):
        mock_resolver_cls.return_value.resolve.side_effect = dns.resolver.NXDOMAIN()
        assert _make_publisher().lookup("_acme-challenge.example.com") == []

    @patch(_RUN)
    def test_create_waits_for_propagation(self, mock_run):
        publisher = _make_publisher(verify_propagation=True)
        with patch.object(publisher, "lookup", side_effect=[[], ["other"], ["digest"]]) as lookup:
            publisher._stop_event = MagicMock(spec=threading.Event)
            publisher._stop_event.wait.return_value = False
            publisher.create("example.com", "_acme-challenge.example.com", "digest")
        assert lookup.call_count == 3

    def test_propagation_timeout(self):
        publisher = _make_publisher(propagation_timeout_seconds=0)
        with (
            patch.object(publisher, "lookup", return_value=[]),
            pytest.raises(RoutingError, match="not visible"),
        ):
            publisher.wait_for_propagation("_acme-challenge.example.com", "digest")

    def test_stop_event_aborts_wait(self):
        stop = threading.Event()
        stop.set()
        publisher = CallbackDnsPublisher(_FakeDns01Settings(), stop_event=stop)
        with (
            patch.object(publisher, "lookup", return_value=[]),
            pytest.raises(RoutingError),
        ):
            publisher.wait_for_propagation("_acme-challenge.example.com", "digest")
