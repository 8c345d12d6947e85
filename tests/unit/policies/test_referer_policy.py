"""
actionflow — unit tests for the Referer policy

File: tests/unit/policies/test_referer_policy.py
Last updated: 2026-10-19

Purpose
- Validate every Referer dimension: scheme, domain, URL and path.

What this test file should cover
- Missing or unparseable headers raise ``NoReferer``.
- Exact, suffix and regex matching for domains, URLs and paths.
- Candidates merged from attribute values, context variables and config.
- The failing dimension is reported on ``RefererMismatch``.
"""

from __future__ import annotations

import pytest

from actionflow.domain.errors import NoReferer, RefererMismatch
from actionflow.domain.signals import CONTINUE, HALT
from actionflow.policies import Referer

from . import make_context


def _ctx(referer: str | None, **kwargs: object):
    headers = {"Referer": referer} if referer is not None else {}
    return make_context(headers=headers, **kwargs)  # type: ignore[arg-type]


def _dimension(policy: Referer, referer: str, **kwargs: object) -> str:
    with pytest.raises(RefererMismatch) as excinfo:
        policy.apply(_ctx(referer, **kwargs))
    return excinfo.value.dimension


@pytest.mark.parametrize("referer", [None, "", "   ", "/relative/only", "not a url"])
def test_missing_or_unusable_referer(referer: str | None) -> None:
    with pytest.raises(NoReferer):
        Referer().apply(_ctx(referer))


def test_any_absolute_referer_passes_an_unconfigured_policy() -> None:
    assert Referer().apply(_ctx("http://elsewhere.test/x")) == CONTINUE


def test_domain_suffix() -> None:
    policy = Referer(domain_suffix=".example.com")

    assert policy.apply(_ctx("https://a.example.com/x")) == CONTINUE
    assert _dimension(policy, "https://example.org/") == "domain_suffix"


def test_domain_list_is_case_insensitive() -> None:
    policy = Referer(domain=["App.Example.com"])

    assert policy.apply(_ctx("https://APP.example.com/page")) == CONTINUE
    assert _dimension(policy, "https://other.example.com/") == "domain"


def test_domain_true_means_local_server_name() -> None:
    policy = Referer(domain=True)

    assert policy.apply(_ctx("https://app.example.com/")) == CONTINUE
    assert _dimension(policy, "https://evil.test/") == "domain"


def test_domain_candidates_from_variable_and_config() -> None:
    policy = Referer(domain_var="trusted", domain_config=True)
    kwargs = {"variables": {"trusted": ["partner.test"]}, "security": {"refererDomain": ["cdn.test"]}}

    assert policy.apply(_ctx("https://partner.test/", **kwargs)) == CONTINUE
    assert policy.apply(_ctx("https://cdn.test/", **kwargs)) == CONTINUE
    assert _dimension(policy, "https://app.example.com/", **kwargs) == "domain"


def test_domain_regex_uses_search() -> None:
    policy = Referer(domain_regex=r"\.example\.(com|net)$")

    assert policy.apply(_ctx("https://www.example.net/")) == CONTINUE
    assert _dimension(policy, "https://example.org/") == "domain_regex"


@pytest.mark.parametrize(
    ("https", "secure", "referer", "ok"),
    [
        (True, False, "https://app.example.com/", True),
        (True, False, "http://app.example.com/", False),
        (False, True, "http://app.example.com/", True),
        ("same", True, "https://app.example.com/", True),
        ("same", False, "https://app.example.com/", False),
    ],
)
def test_scheme_requirement(https: object, secure: bool, referer: str, ok: bool) -> None:
    policy = Referer(https=https)  # type: ignore[arg-type]
    if ok:
        assert policy.apply(_ctx(referer, secure=secure)) == CONTINUE
    else:
        assert _dimension(policy, referer, secure=secure) == "scheme"


def test_invalid_https_option_and_regex_are_rejected_at_construction() -> None:
    with pytest.raises(ValueError):
        Referer(https="sometimes")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        Referer(path_regex="(")


def test_url_exact_and_regex() -> None:
    exact = Referer(url=["https://app.example.com/form"])
    assert exact.apply(_ctx("https://app.example.com/form")) == CONTINUE
    assert _dimension(exact, "https://app.example.com/form?x=1") == "url"

    pattern = Referer(url_regex=r"^https://app\.example\.com/")
    assert _dimension(pattern, "https://evil.test/?https://app.example.com/") == "url_regex"


def test_url_candidates_from_config() -> None:
    policy = Referer(url_config=True)

    assert policy.apply(_ctx("https://a.test/p", security={"refererUrl": "https://a.test/p"})) == CONTINUE


def test_path_dimensions() -> None:
    assert Referer(path="/account/edit").apply(_ctx("https://app.example.com/account/edit")) == CONTINUE
    assert _dimension(Referer(path="/account/edit"), "https://app.example.com/other") == "path"
    assert _dimension(Referer(path_prefix="/account/"), "https://app.example.com/admin") == "path_prefix"
    assert _dimension(Referer(path_suffix=".html"), "https://app.example.com/a.php") == "path_suffix"
    assert _dimension(Referer(path_regex=r"^/\d+$"), "https://app.example.com/abc") == "path_regex"


def test_empty_referer_path_is_root() -> None:
    assert Referer(path="/").apply(_ctx("https://app.example.com")) == CONTINUE


def test_path_candidates_from_variable() -> None:
    policy = Referer(path_var="allowedPaths")
    kwargs = {"variables": {"allowedPaths": "/cart"}}

    assert policy.apply(_ctx("https://app.example.com/cart", **kwargs)) == CONTINUE


def test_mismatch_redirects_when_configured() -> None:
    ctx = _ctx("https://evil.test/", security={"refererRedirect": "/bad-referer"})

    assert Referer(domain=True).apply(ctx) == HALT
    assert ctx.response.redirect_url == "/bad-referer"
