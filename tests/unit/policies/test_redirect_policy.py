"""
actionflow — unit tests for the Redirect policy and redirect target resolution

File: tests/unit/policies/test_redirect_policy.py
Last updated: 2026-10-19

Purpose
- Validate the unconditional Redirect policy and the shared target resolution order.

What this test file should cover
- Order: explicit url, context variable, Referer header, policy config key, ``security.redirect``.
- ``NoRedirectTarget`` when nothing resolves.
"""

from __future__ import annotations

import pytest

from actionflow.domain.errors import NoRedirectTarget
from actionflow.domain.signals import HALT
from actionflow.policies import Redirect, resolve_redirect

from . import make_context


def test_explicit_url_wins() -> None:
    ctx = make_context(variables={"next": "/var"}, security={"redirect": "/config"})

    assert Redirect(url="/explicit", var="next").apply(ctx) == HALT
    assert ctx.response.redirect_url == "/explicit"


def test_variable_then_referer_then_config() -> None:
    by_var = make_context(variables={"next": "/var"}, headers={"Referer": "https://r.test/"})
    Redirect(var="next", referer=True).apply(by_var)
    assert by_var.response.redirect_url == "/var"

    by_referer = make_context(headers={"Referer": "https://r.test/back"}, security={"redirect": "/config"})
    Redirect(var="next", referer=True).apply(by_referer)
    assert by_referer.response.redirect_url == "https://r.test/back"

    by_config = make_context(security={"redirect": "/config"})
    Redirect(var="next").apply(by_config)
    assert by_config.response.redirect_url == "/config"


def test_referer_is_ignored_unless_requested() -> None:
    ctx = make_context(headers={"Referer": "https://r.test/back"}, security={"redirect": "/config"})

    Redirect().apply(ctx)

    assert ctx.response.redirect_url == "/config"


def test_no_target_raises() -> None:
    ctx = make_context()

    with pytest.raises(NoRedirectTarget):
        Redirect().apply(ctx)
    assert ctx.response.redirect_url is None


def test_resolve_redirect_prefers_policy_config_key_over_generic_redirect() -> None:
    ctx = make_context(security={"checkRedirect": "/check", "redirect": "/generic"})

    assert resolve_redirect(ctx, url=None, var=None, config_key="checkRedirect") == "/check"
    assert resolve_redirect(ctx, url=None, var=None, config_key="authRedirect") == "/generic"
    assert resolve_redirect(make_context(), url=None, var=None) is None
