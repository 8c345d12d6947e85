"""Authentication, administrator, role and service checks."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from actionflow.constants import (
    DEFAULT_CURRENT_USER_VAR,
    KEY_AUTH_REDIRECT,
    KEY_CURRENT_USER_VAR,
    SECURITY_NAMESPACE,
    SESSION_AUTH_ERROR,
    SESSION_AUTH_ERROR_DATA,
    SESSION_AUTH_REQUESTED_URL,
)
from actionflow.domain.context import ActionContext
from actionflow.domain.errors import (
    Administrator,
    Authenticated,
    ForbiddenRole,
    ForbiddenService,
    NoMatchingAccess,
    NoMatchingRole,
    NotAdministrator,
    NotAuthenticated,
    PolicyError,
)
from actionflow.domain.signals import CONTINUE, Flow
from actionflow.policies.base import PolicyAttribute, as_str_tuple, redirect_or_raise, resolve_redirect

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Auth(PolicyAttribute):
    """Restrict access by authentication state, admin flag, roles and services.

    The identity is the mapping stored in the context variable named by
    ``security.currentUserVar``. Its ``roles``/``services`` entries may be a
    mapping (keys with truthy values count) or a list.

    Role entries prefixed with ``-`` are forbidden: the first forbidden role the
    user holds fails immediately. When positive entries exist, the user must
    hold at least one of them. Services follow the same rules.
    """

    role: tuple[str, ...] = ()
    service: tuple[str, ...] = ()
    authenticated: bool | None = True
    is_admin: bool | None = None
    redirect: str | None = None
    redirect_var: str | None = None
    store_url: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", as_str_tuple(self.role, field_name="role"))
        object.__setattr__(self, "service", as_str_tuple(self.service, field_name="service"))

    def apply(self, ctx: ActionContext) -> Flow:
        try:
            self._check(ctx)
        except PolicyError as exc:
            logger.warning("Auth rejected %s: %s", ctx.route, exc.code)
            target = resolve_redirect(
                ctx, url=self.redirect, var=self.redirect_var, config_key=KEY_AUTH_REDIRECT
            )
            if target:
                ctx.session.set(SESSION_AUTH_ERROR, exc.code)
                if exc.details:
                    ctx.session.set(SESSION_AUTH_ERROR_DATA, exc.details)
                else:
                    ctx.session.unset(SESSION_AUTH_ERROR_DATA)
                if self.store_url:
                    ctx.session.set(SESSION_AUTH_REQUESTED_URL, ctx.request.url)
            return redirect_or_raise(ctx, exc, target, policy="Auth")
        return CONTINUE

    def _check(self, ctx: ActionContext) -> None:
        user_var = ctx.xtra(SECURITY_NAMESPACE, KEY_CURRENT_USER_VAR, DEFAULT_CURRENT_USER_VAR)
        user = ctx.get_var(user_var or DEFAULT_CURRENT_USER_VAR)
        if not isinstance(user, Mapping):
            user = {}
        identified = bool(user.get("id"))

        if self.authenticated is True and not identified:
            raise NotAuthenticated("user is not authenticated")
        if self.authenticated is False and identified:
            raise Authenticated("user is authenticated")

        if self.is_admin is not None:
            admin = bool(user.get("isAdmin"))
            if self.is_admin and not admin:
                raise NotAdministrator("user is not an administrator")
            if not self.is_admin and admin:
                raise Administrator("user is an administrator")

        if self.role:
            _match_entries(self.role, _held(user.get("roles")), ForbiddenRole, NoMatchingRole, "role")
        if self.service:
            _match_entries(
                self.service, _held(user.get("services")), ForbiddenService, NoMatchingAccess, "service"
            )


def _held(value: Any) -> frozenset[str]:
    if isinstance(value, Mapping):
        return frozenset(str(key) for key, flag in value.items() if flag)
    if isinstance(value, str):
        return frozenset({value})
    if isinstance(value, Iterable):
        return frozenset(str(item) for item in value)
    return frozenset()


def _match_entries(
    entries: tuple[str, ...],
    held: frozenset[str],
    forbidden_error: type[ForbiddenRole] | type[ForbiddenService],
    no_match_error: type[PolicyError],
    label: str,
) -> None:
    has_positive = False
    matched = False
    for entry in entries:
        if entry.startswith("-"):
            name = entry[1:]
            if name in held:
                raise forbidden_error(name, f"user holds forbidden {label} {name!r}")
            continue
        has_positive = True
        if entry in held:
            matched = True
    if has_positive and not matched:
        raise no_match_error(f"user has no matching {label}")


__all__ = ["Auth"]
