"""Tests for Agent domain matching."""

from __future__ import annotations

import uuid

import pytest

from acmeman.models.agent import Agent


def _make_agent(*domains: str, **overrides) -> Agent:
    defaults = {
        "id": uuid.uuid4(),
        "name": "web1",
        "url": "http://10.0.0.5:8080",
        "token": "shared-secret-0123456789",
        "domains": domains,
        "is_connected": True,
    }
    defaults.update(overrides)
    return Agent(**defaults)


class TestFronts:
    def test_exact_match(self):
        assert _make_agent("example.com").fronts("example.com")

    def test_case_insensitive(self):
        assert _make_agent("Example.COM").fronts("example.com")
        assert _make_agent("example.com").fronts("EXAMPLE.com")

    def test_other_domain(self):
        assert not _make_agent("example.com").fronts("example.org")

    @pytest.mark.parametrize("name", ["www.example.com", "api.example.com"])
    def test_wildcard_one_label(self, name):
        assert _make_agent("*.example.com").fronts(name)

    def test_wildcard_does_not_match_two_labels(self):
        assert not _make_agent("*.example.com").fronts("a.b.example.com")

    def test_wildcard_does_not_match_apex(self):
        assert not _make_agent("*.example.com").fronts("example.com")

    def test_wildcard_order_identifier_uses_base_domain(self):
        # A "*.example.com" identifier is validated on example.com.
        assert _make_agent("example.com").fronts("*.example.com")

    def test_suffix_must_align_on_label(self):
        assert not _make_agent("*.example.com").fronts("badexample.com")


def test_token_hidden_from_repr():
    agent = _make_agent("example.com")
    assert "shared-secret" not in repr(agent)
