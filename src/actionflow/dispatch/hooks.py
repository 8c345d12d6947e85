"""Plugin pre/post hook chain sourced from the ``[plugins]`` config table.

Layout::

    [plugins]
    _pre = ["session_loader"]            # every controller
    _post = ["audit"]

    [plugins.account]
    _pre = ["account_menu"]              # every action of "account"

    [plugins.account.update]
    _pre = ["rate_limit"]                # only account/update

Pre-hooks run global, then controller, then action entries; post-hooks follow
the same order.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeAlias

from actionflow.constants import PLUGINS_POST_KEY, PLUGINS_PRE_KEY
from actionflow.domain.context import ActionContext
from actionflow.domain.errors import UnknownPlugin
from actionflow.domain.signals import Flow


class Phase(StrEnum):
    PRE = "pre"
    POST = "post"


class HookScope(StrEnum):
    GLOBAL = "global"
    CONTROLLER = "controller"
    ACTION = "action"


class Plugin:
    """Base class for hooks. Override ``pre`` and/or ``post``.

    Both return ``None`` (continue) or a ``Flow``. A phase method that is not
    overridden is skipped by the chain.
    """

    def pre(self, ctx: ActionContext) -> Flow | None:
        return None

    def post(self, ctx: ActionContext) -> Flow | None:
        return None

    def handles(self, phase: Phase) -> bool:
        method = Phase(phase).value
        return getattr(type(self), method) is not getattr(Plugin, method)

    def run(self, phase: Phase, ctx: ActionContext) -> Flow | None:
        if Phase(phase) is Phase.PRE:
            return self.pre(ctx)
        return self.post(ctx)


PluginFactory: TypeAlias = Callable[[], Plugin] | Plugin


@dataclass(frozen=True, slots=True)
class PluginHookSpec:
    phase: Phase
    scope: HookScope
    plugin_ref: str

    def __str__(self) -> str:
        return f"{self.phase}:{self.scope}:{self.plugin_ref}"


class PluginHookChain:
    """Resolves ordered hook lists per route and instantiates plugins."""

    def __init__(
        self,
        plugins_config: Mapping[str, Any] | None = None,
        factories: Mapping[str, PluginFactory] | None = None,
    ) -> None:
        self._config: Mapping[str, Any] = plugins_config or {}
        self._factories: dict[str, PluginFactory] = dict(factories or {})

    def register(self, ref: str, factory: PluginFactory) -> None:
        self._factories[ref] = factory

    def with_config(self, plugins_config: Mapping[str, Any] | None) -> PluginHookChain:
        """Same factories, new ``[plugins]`` table (used after a config reload)."""

        return PluginHookChain(plugins_config, self._factories)

    def resolve_pre(self, controller: str, action: str) -> tuple[PluginHookSpec, ...]:
        return self._resolve(Phase.PRE, controller, action)

    def resolve_post(self, controller: str, action: str) -> tuple[PluginHookSpec, ...]:
        return self._resolve(Phase.POST, controller, action)

    def instantiate(self, spec: PluginHookSpec) -> Plugin:
        try:
            factory = self._factories[spec.plugin_ref]
        except KeyError:
            raise UnknownPlugin(f"unknown plugin {spec.plugin_ref!r}") from None
        plugin = factory if isinstance(factory, Plugin) else factory()
        if not isinstance(plugin, Plugin):
            raise UnknownPlugin(f"factory for {spec.plugin_ref!r} did not produce a Plugin")
        return plugin

    def _resolve(self, phase: Phase, controller: str, action: str) -> tuple[PluginHookSpec, ...]:
        key = PLUGINS_PRE_KEY if phase is Phase.PRE else PLUGINS_POST_KEY
        controller_table = _table(self._config.get(controller))
        action_table = _table(controller_table.get(action))
        specs: list[PluginHookSpec] = []
        for scope, table in (
            (HookScope.GLOBAL, self._config),
            (HookScope.CONTROLLER, controller_table),
            (HookScope.ACTION, action_table),
        ):
            specs.extend(PluginHookSpec(phase, scope, ref) for ref in _refs(table.get(key)))
        return tuple(specs)


def _table(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _refs(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return [str(item) for item in value if item]


__all__ = [
    "HookScope",
    "Phase",
    "Plugin",
    "PluginFactory",
    "PluginHookChain",
    "PluginHookSpec",
]
