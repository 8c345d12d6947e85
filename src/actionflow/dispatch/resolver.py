"""Registration-time policy bindings and their per-action resolution.

Controllers declare their policies explicitly when they are registered::

    table = registry.register("account", AccountController, policies=[Auth()])
    table.bind_action("update", Post(), Check.post({"email": "email"}))

``AttributeResolver.resolve("account", "update")`` then yields the class-level
``Auth`` binding followed by the two action-level bindings, in that order.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from actionflow.domain.errors import UnknownController
from actionflow.policies.base import PolicyAttribute

if TYPE_CHECKING:
    from actionflow.dispatch.flow import Controller


class Scope(StrEnum):
    CLASS = "class"
    METHOD = "method"


@dataclass(frozen=True, slots=True)
class AttributeBinding:
    attribute: PolicyAttribute
    scope: Scope
    action: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.attribute, PolicyAttribute):
            raise TypeError(f"expected a PolicyAttribute, got {type(self.attribute).__name__}")
        object.__setattr__(self, "scope", Scope(self.scope))
        if self.scope is Scope.METHOD and not self.action:
            raise ValueError("method-scope bindings need an action name")
        if self.scope is Scope.CLASS and self.action is not None:
            raise ValueError("class-scope bindings must not name an action")


class BindingTable:
    """Ordered policy bindings of one controller.

    Every bind calls ``on_change``; a registry uses it to invalidate memoized
    resolutions.
    """

    __slots__ = ("_actions", "_class", "_lock", "_on_change")

    def __init__(self, on_change: Callable[[], None] | None = None) -> None:
        self._class: list[AttributeBinding] = []
        self._actions: dict[str, list[AttributeBinding]] = {}
        self._lock = threading.Lock()
        self._on_change = on_change

    def bind_class(self, *attributes: PolicyAttribute) -> BindingTable:
        with self._lock:
            self._class.extend(AttributeBinding(attribute, Scope.CLASS) for attribute in attributes)
        self._changed()
        return self

    def bind_action(self, action: str, *attributes: PolicyAttribute) -> BindingTable:
        with self._lock:
            bucket = self._actions.setdefault(action, [])
            bucket.extend(AttributeBinding(attribute, Scope.METHOD, action) for attribute in attributes)
        self._changed()
        return self

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def class_bindings(self) -> tuple[AttributeBinding, ...]:
        return tuple(self._class)

    def action_bindings(self, action: str) -> tuple[AttributeBinding, ...]:
        return tuple(self._actions.get(action, ()))


@dataclass(frozen=True, slots=True)
class RegisteredController:
    name: str
    controller_cls: type[Controller]
    bindings: BindingTable


class ControllerRegistry:
    """Explicit name -> controller class map with per-controller binding tables."""

    def __init__(self) -> None:
        self._controllers: dict[str, RegisteredController] = {}
        self._lock = threading.Lock()
        self._generation = 0

    def register(
        self,
        name: str,
        controller_cls: type[Controller],
        policies: Iterable[PolicyAttribute] = (),
        actions: Mapping[str, Iterable[PolicyAttribute]] | None = None,
    ) -> BindingTable:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("controller name must be a non-empty string")
        table = BindingTable(on_change=self._touch).bind_class(*policies)
        for action, attributes in (actions or {}).items():
            table.bind_action(action, *attributes)
        with self._lock:
            self._controllers[name.strip()] = RegisteredController(name.strip(), controller_cls, table)
            self._generation += 1
        return table

    def _touch(self) -> None:
        with self._lock:
            self._generation += 1

    def get(self, name: str) -> RegisteredController:
        try:
            return self._controllers[name]
        except KeyError:
            raise UnknownController(f"unknown controller {name!r}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._controllers

    def names(self) -> list[str]:
        return sorted(self._controllers)

    @property
    def generation(self) -> int:
        """Bumped on every registration and bind; resolvers use it to drop stale memos."""

        return self._generation


class AttributeResolver:
    """Memoized ``(controller, action) -> bindings`` lookup."""

    def __init__(self, registry: ControllerRegistry) -> None:
        self._registry = registry
        self._memo: dict[tuple[str, str], tuple[AttributeBinding, ...]] = {}
        self._generation = registry.generation
        self._lock = threading.Lock()

    def resolve(self, controller: str, action: str) -> tuple[AttributeBinding, ...]:
        """Class bindings in declaration order, then bindings of ``action``."""

        key = (controller, action)
        generation = self._registry.generation
        if self._generation == generation:
            cached = self._memo.get(key)
            if cached is not None:
                return cached
        entry = self._registry.get(controller)
        bindings = entry.bindings.class_bindings() + entry.bindings.action_bindings(action)
        with self._lock:
            if generation > self._generation:
                self._memo.clear()
                self._generation = generation
            if generation != self._generation or generation != self._registry.generation:
                return bindings
            self._memo.setdefault(key, bindings)
            return self._memo[key]

    def attributes(self, controller: str, action: str) -> tuple[PolicyAttribute, ...]:
        return tuple(binding.attribute for binding in self.resolve(controller, action))

    def clear(self) -> None:
        with self._lock:
            self._memo.clear()


__all__ = [
    "AttributeBinding",
    "AttributeResolver",
    "BindingTable",
    "ControllerRegistry",
    "RegisteredController",
    "Scope",
]
