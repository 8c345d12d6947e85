"""Shared builders for policy tests."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from actionflow.config.accessor import Config
from actionflow.domain.context import ActionContext, MemorySession, RequestData
from actionflow.domain.signals import Route
from actionflow.observability.debug import DebugCollector
from actionflow.validation.registry import ContractRegistry


def make_config(security: Mapping[str, Any] | None = None) -> Config:
    return Config.from_mapping({"security": dict(security or {})})


def make_context(
    *,
    method: str = "GET",
    url: str = "https://app.example.com/account/update",
    headers: Mapping[str, str] | None = None,
    query: Mapping[str, Any] | None = None,
    form: Mapping[str, Any] | None = None,
    body: bytes | str = b"",
    files: Mapping[str, Any] | None = None,
    secure: bool = True,
    server_name: str = "app.example.com",
    variables: Mapping[str, Any] | None = None,
    security: Mapping[str, Any] | None = None,
    session: MemorySession | None = None,
    contracts: ContractRegistry | None = None,
) -> ActionContext:
    request = RequestData(
        method=method,
        url=url,
        headers=dict(headers or {}),
        query=dict(query or {}),
        form=dict(form or {}),
        body=body,  # type: ignore[arg-type]
        files=dict(files or {}),
        secure=secure,
        server_name=server_name,
    )
    ctx = ActionContext(
        route=Route("account", "update"),
        request=request,
        session=session if session is not None else MemorySession(),
        config=make_config(security),
        debug=DebugCollector("req-test"),
        contracts=contracts,
    )
    for name, value in (variables or {}).items():
        ctx.set_var(name, value)
    return ctx


def user(
    *,
    user_id: int | None = 1,
    is_admin: bool = False,
    roles: Any = (),
    services: Any = (),
) -> dict[str, Any]:
    return {"id": user_id, "isAdmin": is_admin, "roles": roles, "services": services}


__all__ = ["make_config", "make_context", "user"]
