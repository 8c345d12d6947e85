"""Shared machinery for policy attributes.

A policy either passes (``CONTINUE``), issues a redirect and returns ``HALT``,
or raises a typed ``PolicyError``/``ValidationError`` when no redirect target
can be resolved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from actionflow.constants import KEY_REDIRECT, SECURITY_NAMESPACE
from actionflow.domain.context import ActionContext
from actionflow.domain.errors import ActionflowError
from actionflow.domain.signals import HALT, Flow

logger = logging.getLogger(__name__)


class PolicyAttribute(ABC):
    """A declarative check bound to a controller or one of its actions."""

    __slots__ = ()

    @abstractmethod
    def apply(self, ctx: ActionContext) -> Flow:
        """Run the check against ``ctx``."""

    @property
    def kind(self) -> str:
        return type(self).__name__


def as_str_tuple(value: Any, *, field_name: str) -> tuple[str, ...]:
    """Normalize ``None``, a string or an iterable of strings to a tuple."""

    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value else ()
    if isinstance(value, Iterable):
        items: list[str] = []
        for item in value:
            if not isinstance(item, str):
                raise TypeError(f"{field_name} entries must be strings")
            if item:
                items.append(item)
        return tuple(items)
    raise TypeError(f"{field_name} must be a string or a list of strings")


def collect_candidates(value: Any) -> list[str]:
    """Flatten a string-or-list value read from a context variable or config."""

    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, str) and item]
    return []


def resolve_redirect(
    ctx: ActionContext,
    *,
    url: str | None,
    var: str | None,
    config_key: str | None = None,
    use_referer: bool = False,
) -> str | None:
    """First non-empty target of: ``url``, context variable ``var``, the Referer
    header (when ``use_referer``), ``security.<config_key>``, ``security.redirect``.
    """

    if url:
        return url
    if var:
        value = ctx.get_var(var)
        if value:
            return str(value)
    if use_referer:
        referer = ctx.request.referer
        if referer:
            return referer
    if config_key:
        value = ctx.xtra(SECURITY_NAMESPACE, config_key)
        if value:
            return str(value)
    value = ctx.xtra(SECURITY_NAMESPACE, KEY_REDIRECT)
    return str(value) if value else None


def redirect_or_raise(ctx: ActionContext, error: ActionflowError, target: str | None, *, policy: str) -> Flow:
    """Redirect to ``target`` and halt, or propagate ``error`` when there is none."""

    if not target:
        ctx.debug.note("policy", f"{policy} rejected request", code=error.code)
        raise error
    logger.debug("%s redirecting to %s after %s", policy, target, error.code)
    ctx.debug.note("policy", f"{policy} redirected", code=error.code, target=target)
    ctx.response.redirect(target)
    return HALT


__all__ = [
    "PolicyAttribute",
    "as_str_tuple",
    "collect_candidates",
    "redirect_or_raise",
    "resolve_redirect",
]
