"""Shared controllers, plugins and builders for dispatch tests."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from actionflow.config.accessor import Config
from actionflow.dispatch import Controller, ControllerRegistry, FlowController, Plugin, PluginHookChain
from actionflow.domain.context import ActionContext, MemorySession, RequestData
from actionflow.domain.signals import Flow
from actionflow.observability.logging import get_correlation_context


class DecisionLog:
    """Stands in for the structlog logger; records ``info`` events."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def info(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))


class RecordingRenderer:
    def __init__(self) -> None:
        self.rendered: list[Any] = []

    def render(self, ctx: ActionContext, data: Any) -> None:
        self.rendered.append(data)


class SignalPlugin(Plugin):
    """Records each call in ``calls`` and returns the configured flows."""

    def __init__(
        self,
        name: str,
        calls: list[str],
        *,
        pre: Flow | None = None,
        post: Flow | None = None,
    ) -> None:
        self.name = name
        self.calls = calls
        self._pre = pre
        self._post = post

    def pre(self, ctx: ActionContext) -> Flow | None:
        self.calls.append(f"pre:{self.name}")
        return self._pre

    def post(self, ctx: ActionContext) -> Flow | None:
        self.calls.append(f"post:{self.name}")
        return self._post


class PreOnlyPlugin(Plugin):
    def __init__(self, calls: list[str]) -> None:
        self.calls = calls

    def pre(self, ctx: ActionContext) -> Flow | None:
        self.calls.append("pre:only")
        return None


class CorrelationRecorder(Plugin):
    def __init__(self, seen: list[dict[str, str]]) -> None:
        self.seen = seen

    def pre(self, ctx: ActionContext) -> Flow | None:
        self.seen.append(get_correlation_context())
        return None


def make_request(
    method: str = "GET",
    url: str = "https://app.example.com/",
    **kwargs: Any,
) -> RequestData:
    return RequestData(method=method, url=url, **kwargs)


def make_config(overlay: Mapping[str, Any] | None = None) -> Config:
    return Config.from_mapping(dict(overlay or {}))


def make_flow_controller(
    controllers: Mapping[str, type[Controller]],
    *,
    plugins: Mapping[str, Any] | None = None,
    factories: Mapping[str, Callable[[], Plugin] | Plugin] | None = None,
    config: Config | None = None,
    **kwargs: Any,
) -> tuple[FlowController, ControllerRegistry]:
    registry = ControllerRegistry()
    for name, controller_cls in controllers.items():
        registry.register(name, controller_cls)
    hooks = PluginHookChain(plugins or {}, factories or {}) if plugins or factories else None
    controller = FlowController(registry, hooks=hooks, config=config or make_config(), **kwargs)
    return controller, registry


def new_session(**values: Any) -> MemorySession:
    return MemorySession(values)


__all__ = [
    "CorrelationRecorder",
    "DecisionLog",
    "PreOnlyPlugin",
    "RecordingRenderer",
    "SignalPlugin",
    "make_config",
    "make_flow_controller",
    "make_request",
    "new_session",
]
