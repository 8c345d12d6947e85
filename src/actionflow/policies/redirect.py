"""Unconditional redirection."""

from __future__ import annotations

from dataclasses import dataclass

from actionflow.domain.context import ActionContext
from actionflow.domain.errors import NoRedirectTarget
from actionflow.domain.signals import Flow
from actionflow.policies.base import PolicyAttribute, redirect_or_raise, resolve_redirect


@dataclass(frozen=True, slots=True)
class Redirect(PolicyAttribute):
    """Always redirect: ``url``, context variable ``var``, the Referer header
    (when ``referer``) or ``security.redirect``.
    """

    url: str | None = None
    var: str | None = None
    referer: bool = False

    def apply(self, ctx: ActionContext) -> Flow:
        target = resolve_redirect(ctx, url=self.url, var=self.var, use_referer=self.referer)
        return redirect_or_raise(ctx, NoRedirectTarget("no redirect target configured"), target, policy="Redirect")


__all__ = ["Redirect"]
