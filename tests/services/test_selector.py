"""Tests for challenge selection."""

from __future__ import annotations

import pytest

from acmeman.core.errors import NoSupportedChallengeError, UnsupportedChallengeError
from acmeman.core.types import ChallengeType, ValidationStatus
from acmeman.provider.base import ProviderAuthorization, ProviderChallenge
from acmeman.services.selector import dns_record_name, select_challenge

# ---------------------------------------------------------------------------
# Stubs
# ---------------------------------------------------------------------------


class StubChallenge(ProviderChallenge):
    def __init__(self, type_, token="tok123"):
        self._type = type_
        self._token = token

    @property
    def type(self):
        return self._type

    @property
    def token(self):
        return self._token

    @property
    def status(self):
        return ValidationStatus.PENDING

    @property
    def error(self):
        return None

    def key_authorization(self):
        return f"{self._token}.thumbprint"

    def dns_digest(self):
        return "digest-value"

    def update(self):
        return None

    def trigger(self):
        pass


class StubAuthorization(ProviderAuthorization):
    def __init__(self, domain, *types, wildcard=False):
        self._domain = domain
        self._wildcard = wildcard
        self._challenges = [StubChallenge(t) for t in types]

    @property
    def domain(self):
        return self._domain

    @property
    def wildcard(self):
        return self._wildcard

    @property
    def status(self):
        return ValidationStatus.PENDING

    @property
    def challenges(self):
        return self._challenges


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestUnforced:
    def test_prefers_http01(self):
        authz = StubAuthorization("example.com", ChallengeType.DNS_01, ChallengeType.HTTP_01)
        selected = select_challenge(authz)
        assert selected.type is ChallengeType.HTTP_01
        assert selected.domain == "example.com"
        assert selected.token == "tok123"
        assert selected.authorization == "tok123.thumbprint"

    def test_falls_back_to_dns01(self):
        authz = StubAuthorization("example.com", ChallengeType.DNS_01, "tls-alpn-01")
        selected = select_challenge(authz)
        assert selected.type is ChallengeType.DNS_01
        assert selected.token == "_acme-challenge.example.com"
        assert selected.authorization == "digest-value"

    def test_requested_type_ignored_without_force(self):
        authz = StubAuthorization("example.com", ChallengeType.HTTP_01, ChallengeType.DNS_01)
        assert select_challenge(authz, ChallengeType.DNS_01).type is ChallengeType.HTTP_01

    def test_nothing_supported(self):
        authz = StubAuthorization("example.com", "tls-alpn-01")
        with pytest.raises(NoSupportedChallengeError, match="found no supported challenge"):
            select_challenge(authz)

    def test_no_challenges_at_all(self):
        with pytest.raises(NoSupportedChallengeError):
            select_challenge(StubAuthorization("example.com"))


class TestForced:
    def test_forced_type_offered(self):
        authz = StubAuthorization("example.com", ChallengeType.HTTP_01, ChallengeType.DNS_01)
        selected = select_challenge(authz, ChallengeType.DNS_01, force_type=True)
        assert selected.type is ChallengeType.DNS_01

    def test_forced_type_missing_has_no_fallback(self):
        authz = StubAuthorization("example.com", ChallengeType.HTTP_01)
        with pytest.raises(UnsupportedChallengeError, match="dns-01"):
            select_challenge(authz, "dns-01", force_type=True)


class TestWildcard:
    def test_wildcard_identifier_and_record_name(self):
        authz = StubAuthorization("example.com", ChallengeType.DNS_01, wildcard=True)
        selected = select_challenge(authz)
        assert selected.domain == "*.example.com"
        assert selected.token == "_acme-challenge.example.com"


def test_dns_record_name_strips_wildcard():
    assert dns_record_name("*.example.com") == "_acme-challenge.example.com"
    assert dns_record_name("example.com") == "_acme-challenge.example.com"
