"""Named contracts and user type aliases.

Contracts can be registered in code, declared inline in the ``[contracts.named]``
config table, or loaded from YAML files listed in ``contracts.paths``. A YAML
file holds one top-level mapping of contract name to contract structure::

    user:
      id: "int; min: 1"
      email: email
      "nickname?": "string; maxLen: 32"
    percentage: "int; min: 0; max: 100"

A name registered here is usable both as a whole contract (``Check`` may
reference it) and as a type name inside other contracts (``score: percentage``).
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Final

import yaml

from actionflow.constants import CONTRACTS_NAMESPACE
from actionflow.domain.errors import ContractSyntaxError
from actionflow.validation.contract import ASSOC_TYPES, LIST_TYPES, Contract, from_structure
from actionflow.validation.validators import BUILTIN_VALIDATORS

logger = logging.getLogger(__name__)

_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")
_RESERVED: Final[frozenset[str]] = frozenset(BUILTIN_VALIDATORS) | ASSOC_TYPES | LIST_TYPES


class ContractRegistry:
    """Thread-safe name -> contract map."""

    def __init__(self, contracts: Mapping[str, Any] | None = None) -> None:
        self._lock = threading.Lock()
        self._contracts: dict[str, Contract] = {}
        for name, contract in (contracts or {}).items():
            self.register(name, contract)

    def register(self, name: str, contract: Any) -> Contract:
        """Register ``contract`` (object, expression or structure) under ``name``.

        Re-registering a name replaces the previous contract.
        """

        if not isinstance(name, str) or not _NAME_PATTERN.fullmatch(name):
            raise ContractSyntaxError(f"invalid contract name {name!r}")
        if name.lower() in _RESERVED:
            raise ContractSyntaxError(f"contract name {name!r} shadows a builtin type")
        built = from_structure(contract)
        with self._lock:
            self._contracts[name] = built
        logger.debug("Registered contract %s", name)
        return built

    register_alias = register

    def get(self, name: str, default: Contract | None = None) -> Contract | None:
        return self._contracts.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self._contracts

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._contracts))

    def __len__(self) -> int:
        return len(self._contracts)

    def load_yaml(self, path: str | Path) -> list[str]:
        """Register every contract of a YAML file; returns the names in file order."""

        source = Path(path)
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as exc:
            raise ContractSyntaxError(f"unable to read contract file {source}: {exc}") from exc
        try:
            payload = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ContractSyntaxError(f"invalid YAML in contract file {source}: {exc}") from exc
        if payload is None:
            return []
        if not isinstance(payload, Mapping):
            raise ContractSyntaxError(f"contract file {source} must hold a mapping of name to contract")

        names: list[str] = []
        for name, contract in payload.items():
            try:
                self.register(str(name), contract)
            except ContractSyntaxError as exc:
                raise ContractSyntaxError(f"{source}: contract {name!r}: {exc}") from exc
            names.append(str(name))
        logger.info("Loaded %d contract(s) from %s", len(names), source)
        return names

    @classmethod
    def from_config(cls, config: Any) -> ContractRegistry:
        """Build a registry from the ``[contracts]`` table of a config accessor or mapping."""

        if hasattr(config, "xtra"):
            section = config.xtra(CONTRACTS_NAMESPACE) or {}
        else:
            section = (config or {}).get(CONTRACTS_NAMESPACE, {})
        registry = cls()
        for path in section.get("paths", []) or []:
            registry.load_yaml(path)
        for name, contract in (section.get("named", {}) or {}).items():
            registry.register(name, contract)
        return registry


__all__ = ["ContractRegistry"]
