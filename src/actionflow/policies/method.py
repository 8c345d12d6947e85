"""HTTP method restriction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar

from actionflow.constants import KEY_METHOD_REDIRECT
from actionflow.domain.context import ActionContext
from actionflow.domain.errors import UnauthorizedMethod
from actionflow.domain.signals import CONTINUE, Flow
from actionflow.policies.base import PolicyAttribute, as_str_tuple, redirect_or_raise, resolve_redirect

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Method(PolicyAttribute):
    """Reject requests whose method is forbidden or outside ``allowed``."""

    allowed: tuple[str, ...] = ()
    forbidden: tuple[str, ...] = ()
    redirect: str | None = None
    redirect_var: str | None = None

    def __post_init__(self) -> None:
        allowed = as_str_tuple(self.allowed, field_name="allowed")
        forbidden = as_str_tuple(self.forbidden, field_name="forbidden")
        object.__setattr__(self, "allowed", tuple(item.strip().upper() for item in allowed))
        object.__setattr__(self, "forbidden", tuple(item.strip().upper() for item in forbidden))

    def permits(self, method: str) -> bool:
        actual = method.strip().upper()
        if actual in self.forbidden:
            return False
        return not self.allowed or actual in self.allowed

    def apply(self, ctx: ActionContext) -> Flow:
        if self.permits(ctx.method):
            return CONTINUE
        logger.warning("Method %s not permitted for %s", ctx.method, ctx.route)
        error = UnauthorizedMethod(ctx.method)
        target = resolve_redirect(ctx, url=self.redirect, var=self.redirect_var, config_key=KEY_METHOD_REDIRECT)
        return redirect_or_raise(ctx, error, target, policy="Method")


class _FixedMethod(Method):
    __slots__ = ()

    METHOD: ClassVar[str] = ""

    def __init__(self, *, redirect: str | None = None, redirect_var: str | None = None) -> None:
        super().__init__(allowed=(self.METHOD,), redirect=redirect, redirect_var=redirect_var)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(redirect={self.redirect!r}, redirect_var={self.redirect_var!r})"


class Get(_FixedMethod):
    __slots__ = ()
    METHOD = "GET"


class Post(_FixedMethod):
    __slots__ = ()
    METHOD = "POST"


class Put(_FixedMethod):
    __slots__ = ()
    METHOD = "PUT"


class Patch(_FixedMethod):
    __slots__ = ()
    METHOD = "PATCH"


class Delete(_FixedMethod):
    __slots__ = ()
    METHOD = "DELETE"


class Head(_FixedMethod):
    __slots__ = ()
    METHOD = "HEAD"


__all__ = ["Delete", "Get", "Head", "Method", "Patch", "Post", "Put"]
