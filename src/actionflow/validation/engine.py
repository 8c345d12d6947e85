"""Contract evaluation: walks a contract tree against a value and coerces it."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from actionflow.domain.errors import ContractSyntaxError, ValidationError
from actionflow.validation.contract import Assoc, Contract, Leaf, ListOf, from_structure
from actionflow.validation.validators import BUILTIN_VALIDATORS, LeafParams

if TYPE_CHECKING:
    from actionflow.validation.registry import ContractRegistry


def coerce_contract(contract: Any, registry: ContractRegistry | None = None) -> Contract:
    """Turn a contract object, expression, registry name or mapping into a contract."""

    if isinstance(contract, (Leaf, Assoc, ListOf)):
        return contract
    if isinstance(contract, str) and registry is not None:
        named = registry.get(contract.strip())
        if named is not None:
            return named
    return from_structure(contract)


def validate(
    value: Any,
    contract: Any,
    strict: bool = False,
    *,
    registry: ContractRegistry | None = None,
) -> Any:
    """Validate ``value`` and return its coerced form.

    Raises ``ValidationError`` with the dotted path of the first offending
    field, or ``ContractSyntaxError`` when the contract itself is malformed.
    The input is never mutated.
    """

    return _Evaluator(registry).run(value, coerce_contract(contract, registry), strict)


def validate_fields(
    data: Mapping[str, Any],
    fields: Any,
    strict: bool = False,
    *,
    registry: ContractRegistry | None = None,
) -> dict[str, Any]:
    """Validate a request map against a field map; returns a new dict.

    Either every field passes and the whole coerced map is returned, or the
    first failure is raised and nothing is produced.
    """

    contract = coerce_contract(fields, registry)
    if not isinstance(contract, Assoc):
        raise ContractSyntaxError("field validation needs a field map (assoc) contract")
    if not isinstance(data, Mapping):
        raise ValidationError("", "type", data)
    result = _Evaluator(registry).run(data, contract, strict)
    return dict(result) if result is not None else {}


class _Evaluator:
    __slots__ = ("_registry",)

    def __init__(self, registry: ContractRegistry | None) -> None:
        self._registry = registry

    def run(self, value: Any, contract: Contract, strict: bool) -> Any:
        effective = strict if contract.strict_override is None else contract.strict_override
        if value is None:
            if contract.nullable:
                return None
            if contract.default is not None:
                return self.run_default(contract)
        if isinstance(contract, Assoc):
            return self._assoc(value, contract, effective)
        if isinstance(contract, ListOf):
            return self._list(value, contract, effective)
        return self._leaf(value, contract, effective, frozenset())

    def run_default(self, contract: Contract) -> Any:
        # Defaults are trusted configuration: checked, but never strictly.
        plain = replace(contract, default=None, strict_override=False)
        return self.run(copy.deepcopy(contract.default), plain, False)

    # -- composites ---------------------------------------------------------

    def _assoc(self, value: Any, contract: Assoc, strict: bool) -> dict[Any, Any]:
        if not isinstance(value, Mapping):
            raise ValidationError("", "type", value)
        out: dict[Any, Any] = {}
        declared: set[str] = set()
        for name, child in contract.keys:
            declared.add(name)
            try:
                if name not in value:
                    if child.optional:
                        continue
                    if child.default is None:
                        raise ValidationError("", "missing")
                    out[name] = self.run_default(child)
                    continue
                out[name] = self.run(value[name], child, strict)
            except ValidationError as exc:
                raise exc.at(name) from None

        extras = [key for key in value if key not in declared]
        if not extras:
            return out
        if contract.wildcard:
            for key in extras:
                if contract.wildcard_item is None:
                    out[key] = copy.deepcopy(value[key])
                    continue
                try:
                    out[key] = self.run(value[key], contract.wildcard_item, strict)
                except ValidationError as exc:
                    raise exc.at(str(key)) from None
        elif strict:
            first = extras[0]
            raise ValidationError(str(first), "extra", value[first])
        return out

    def _list(self, value: Any, contract: ListOf, strict: bool) -> list[Any]:
        if not isinstance(value, (list, tuple)):
            raise ValidationError("", "type", value)
        if contract.min_len is not None and len(value) < contract.min_len:
            raise ValidationError("", "minLen", value)
        if contract.max_len is not None and len(value) > contract.max_len:
            raise ValidationError("", "maxLen", value)
        if contract.item is None:
            return copy.deepcopy(list(value))
        out: list[Any] = []
        for index, item in enumerate(value):
            try:
                out.append(self.run(item, contract.item, strict))
            except ValidationError as exc:
                raise exc.at(f"[{index}]") from None
        return out

    # -- scalars ------------------------------------------------------------

    def _leaf(self, value: Any, leaf: Leaf, strict: bool, seen: frozenset[str]) -> Any:
        last_error: ValidationError | None = None
        for alternative in leaf.alternatives:
            try:
                return self._one(value, alternative, leaf, strict, seen)
            except ValidationError as exc:
                last_error = exc
        assert last_error is not None
        raise last_error

    def _one(self, value: Any, type_name: str, leaf: Leaf, strict: bool, seen: frozenset[str]) -> Any:
        validator = BUILTIN_VALIDATORS.get(type_name.lower())
        if validator is not None:
            return validator(value, LeafParams(leaf.param_map(), type_name), strict, type_name.lower())

        alias = self._registry.get(type_name) if self._registry is not None else None
        if alias is None:
            raise ContractSyntaxError(f"unknown contract type {type_name!r}")
        if type_name in seen:
            raise ContractSyntaxError(f"contract alias {type_name!r} refers to itself")

        if isinstance(alias, Leaf):
            merged = Leaf(
                type_name=alias.type_name,
                params=tuple({**alias.param_map(), **leaf.param_map()}.items()),
                nullable=alias.nullable,
                strict_override=alias.strict_override,
            )
            if value is None and merged.nullable:
                return None
            effective = strict if merged.strict_override is None else merged.strict_override
            return self._leaf(value, merged, effective, seen | {type_name})
        return self.run(value, alias, strict)


__all__ = ["coerce_contract", "validate", "validate_fields"]
