"""Referer header checks: scheme, domain, URL and path."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal
from urllib.parse import SplitResult, urlsplit

from actionflow.constants import (
    KEY_REFERER_DOMAIN,
    KEY_REFERER_PATH,
    KEY_REFERER_REDIRECT,
    KEY_REFERER_URL,
    SECURITY_NAMESPACE,
)
from actionflow.domain.context import ActionContext
from actionflow.domain.errors import NoReferer, PolicyError, RefererMismatch
from actionflow.domain.signals import CONTINUE, Flow
from actionflow.policies.base import (
    PolicyAttribute,
    as_str_tuple,
    collect_candidates,
    redirect_or_raise,
    resolve_redirect,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Referer(PolicyAttribute):
    """Require a Referer header matching every configured dimension.

    Only dimensions with a value are checked. Exact domain, URL and path
    candidates are the union of the attribute value, the ``*_var`` context
    variable and, when ``*_config`` is set, ``security.refererDomain``,
    ``security.refererUrl`` or ``security.refererPath``. ``domain=True`` means
    the local server name. ``https`` may be ``True``, ``False`` or ``"same"``
    (same scheme as the current request).
    """

    domain: bool | tuple[str, ...] = ()
    domain_suffix: tuple[str, ...] = ()
    domain_regex: str | None = None
    domain_var: str | None = None
    domain_config: bool = False
    https: bool | Literal["same"] | None = None
    path: tuple[str, ...] = ()
    path_prefix: tuple[str, ...] = ()
    path_suffix: tuple[str, ...] = ()
    path_regex: str | None = None
    path_var: str | None = None
    path_config: bool = False
    url: tuple[str, ...] = ()
    url_regex: str | None = None
    url_var: str | None = None
    url_config: bool = False
    redirect: str | None = None
    redirect_var: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.domain, bool):
            object.__setattr__(self, "domain", as_str_tuple(self.domain, field_name="domain"))
        for name in ("domain_suffix", "path", "path_prefix", "path_suffix", "url"):
            object.__setattr__(self, name, as_str_tuple(getattr(self, name), field_name=name))
        if self.https not in (None, True, False, "same"):
            raise ValueError("https must be True, False, 'same' or None")
        for name in ("domain_regex", "path_regex", "url_regex"):
            pattern = getattr(self, name)
            if pattern is not None:
                try:
                    re.compile(pattern)
                except re.error as exc:
                    raise ValueError(f"{name} is not a valid regular expression: {exc}") from exc

    def apply(self, ctx: ActionContext) -> Flow:
        try:
            self._check(ctx)
        except PolicyError as exc:
            logger.warning("Referer rejected %s: %s", ctx.route, exc)
            target = resolve_redirect(
                ctx, url=self.redirect, var=self.redirect_var, config_key=KEY_REFERER_REDIRECT
            )
            return redirect_or_raise(ctx, exc, target, policy="Referer")
        return CONTINUE

    def _check(self, ctx: ActionContext) -> None:
        raw = ctx.request.referer
        parts = _parse(raw)
        if raw is None or parts is None:
            raise NoReferer("no usable Referer header")
        host = (parts.hostname or "").lower()
        path = parts.path or "/"

        self._check_scheme(ctx, parts.scheme.lower(), raw)

        domains = [item.lower() for item in self._domain_candidates(ctx)]
        if domains and host not in domains:
            raise RefererMismatch("domain", raw)
        if self.domain_suffix and not any(host.endswith(s.lower()) for s in self.domain_suffix):
            raise RefererMismatch("domain_suffix", raw)
        if self.domain_regex and not re.search(self.domain_regex, host):
            raise RefererMismatch("domain_regex", raw)

        urls = self._candidates(ctx, self.url, self.url_var, self.url_config, KEY_REFERER_URL)
        if urls and raw not in urls:
            raise RefererMismatch("url", raw)
        if self.url_regex and not re.search(self.url_regex, raw):
            raise RefererMismatch("url_regex", raw)

        paths = self._candidates(ctx, self.path, self.path_var, self.path_config, KEY_REFERER_PATH)
        if paths and path not in paths:
            raise RefererMismatch("path", raw)
        if self.path_prefix and not any(path.startswith(p) for p in self.path_prefix):
            raise RefererMismatch("path_prefix", raw)
        if self.path_suffix and not any(path.endswith(s) for s in self.path_suffix):
            raise RefererMismatch("path_suffix", raw)
        if self.path_regex and not re.search(self.path_regex, path):
            raise RefererMismatch("path_regex", raw)

    def _check_scheme(self, ctx: ActionContext, scheme: str, raw: str) -> None:
        if self.https is None:
            return
        if self.https == "same":
            expected = "https" if ctx.request.secure else "http"
        else:
            expected = "https" if self.https else "http"
        if scheme != expected:
            raise RefererMismatch("scheme", raw)

    def _domain_candidates(self, ctx: ActionContext) -> list[str]:
        if self.domain is True:
            own: tuple[str, ...] = (ctx.request.server_name,)
        elif self.domain is False:
            own = ()
        else:
            own = self.domain
        return self._candidates(ctx, own, self.domain_var, self.domain_config, KEY_REFERER_DOMAIN)

    @staticmethod
    def _candidates(
        ctx: ActionContext,
        own: tuple[str, ...],
        var: str | None,
        use_config: bool,
        config_key: str,
    ) -> list[str]:
        values = list(own)
        if var:
            values.extend(collect_candidates(ctx.get_var(var)))
        if use_config:
            values.extend(collect_candidates(ctx.xtra(SECURITY_NAMESPACE, config_key)))
        return values


def _parse(raw: str | None) -> SplitResult | None:
    if not raw:
        return None
    try:
        parts = urlsplit(raw)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts


__all__ = ["Referer"]
