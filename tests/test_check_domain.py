"""
F34 - Unit tests for the check_domain.py command-line script
"""

from __future__ import annotations

import json
from unittest.mock import patch

from conftest import VALID_ANSWERS, FakeResolver

import check_domain

_PATCH_RESOLVER = "mailauth.checker.resolver.DnsResolver"


def test_valid_domain_exits_zero(capsys):
    with patch(_PATCH_RESOLVER, return_value=FakeResolver(VALID_ANSWERS)) as mock_cls:
        code = check_domain.main(["https://example.com/"])

    assert code == 0
    mock_cls.assert_called_once_with(timeout=10.0)
    payload = json.loads(capsys.readouterr().out)
    assert payload["domain"] == "example.com"
    assert payload["validation"]["isValid"] is True


def test_invalid_domain_exits_two(capsys):
    with patch(_PATCH_RESOLVER, return_value=FakeResolver({})):
        code = check_domain.main(["example.com", "example.org", "--timeout", "2"])

    assert code == 2
    payload = json.loads(capsys.readouterr().out)
    assert [item["domain"] for item in payload] == ["example.com", "example.org"]


def test_unusable_argument_exits_one(capsys):
    with patch(_PATCH_RESOLVER) as mock_cls:
        code = check_domain.main(["/nothing"])

    assert code == 1
    mock_cls.assert_not_called()
    assert capsys.readouterr().out == ""


def test_unexpected_failure_exits_one():
    class _Broken:
        async def query_all_providers(self, domain, record_type, prefix=None):
            raise RuntimeError("boom")

    with patch(_PATCH_RESOLVER, return_value=_Broken()):
        assert check_domain.main(["example.com"]) == 1
