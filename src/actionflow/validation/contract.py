"""Validation contract model, expression parser and serializer.

A contract is a small immutable tree:

- ``Leaf``: one scalar type (or ``|``-separated alternatives) with parameters,
  e.g. ``int; min: 5; max: 128``.
- ``Assoc``: a mapping of field name to contract. A ``?`` suffix on a field name
  marks the field optional; a ``...`` key accepts extra keys.
- ``ListOf``: a list whose items all satisfy one contract.

Expression grammar::

    [~|=][?]type[|type...][; key: value]*

``~`` forces non-strict validation, ``=`` forces strict validation and ``?``
makes ``None`` acceptable. Values may be double-quoted; inside quotes ``\\"``
and ``\\\\`` escape a quote and a backslash, so a mask can contain ``;``.
"""

from __future__ import annotations

import functools
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any, Final, TypeAlias

from actionflow.domain.errors import ContractSyntaxError

WILDCARD: Final[str] = "..."
_WILDCARD_ALIASES: Final[frozenset[str]] = frozenset({WILDCARD, "…"})
ASSOC_TYPES: Final[frozenset[str]] = frozenset({"assoc"})
LIST_TYPES: Final[frozenset[str]] = frozenset({"list", "array"})
_NEEDS_QUOTES: Final[frozenset[str]] = frozenset({";", '"', "\\"})

Params: TypeAlias = tuple[tuple[str, Any], ...]


@dataclass(frozen=True, slots=True)
class Leaf:
    """Scalar contract. ``type_name`` may hold ``|``-separated alternatives."""

    type_name: str
    params: Params = ()
    optional: bool = False
    default: Any = None
    nullable: bool = False
    strict_override: bool | None = None

    def __post_init__(self) -> None:
        name = self.type_name.strip() if isinstance(self.type_name, str) else ""
        if not name:
            raise ContractSyntaxError("contract type must not be empty")
        object.__setattr__(self, "type_name", name)
        object.__setattr__(self, "params", _freeze_params(self.params))

    @property
    def alternatives(self) -> tuple[str, ...]:
        return tuple(part.strip() for part in self.type_name.split("|"))

    def param(self, name: str, default: Any = None) -> Any:
        for key, value in self.params:
            if key == name:
                return value
        return default

    def param_map(self) -> dict[str, Any]:
        return dict(self.params)


@dataclass(frozen=True, slots=True)
class Assoc:
    """Mapping contract; ``keys`` keeps declaration order."""

    keys: tuple[tuple[str, Contract], ...]
    optional: bool = False
    default: Any = None
    nullable: bool = False
    strict_override: bool | None = None
    wildcard: bool = False
    wildcard_item: Contract | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "keys", tuple((str(k), c) for k, c in self.keys))
        if not self.keys and not self.wildcard:
            raise ContractSyntaxError("assoc contract needs at least one key")

    def field(self, name: str) -> Contract | None:
        for key, contract in self.keys:
            if key == name:
                return contract
        return None


@dataclass(frozen=True, slots=True)
class ListOf:
    """List contract. ``item`` of ``None`` accepts any element."""

    item: Contract | None = None
    min_len: int | None = None
    max_len: int | None = None
    optional: bool = False
    default: Any = None
    nullable: bool = False
    strict_override: bool | None = None

    def __post_init__(self) -> None:
        for label, bound in (("minLen", self.min_len), ("maxLen", self.max_len)):
            if bound is not None and (isinstance(bound, bool) or not isinstance(bound, int) or bound < 0):
                raise ContractSyntaxError(f"list {label} must be a non-negative integer")


Contract: TypeAlias = Leaf | Assoc | ListOf


# ---------------------------------------------------------------------------
# Expression parsing
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=1024)
def parse(expression: str) -> Contract:
    """Parse a contract expression such as ``"int; min: 1"``.

    Results are cached by expression text.
    """

    if not isinstance(expression, str):
        raise ContractSyntaxError(f"contract expression must be a string, got {type(expression).__name__}")
    head, _, tail = expression.partition(";")
    strict_override, nullable, type_name = _split_prefixes(head)
    params = _parse_params(tail) if tail.strip() else []
    return _build(type_name, params, strict_override=strict_override, nullable=nullable)


def _split_prefixes(head: str) -> tuple[bool | None, bool, str]:
    text = head.strip()
    strict_override: bool | None = None
    nullable = False
    if text.startswith("~"):
        strict_override, text = False, text[1:].lstrip()
    elif text.startswith("="):
        strict_override, text = True, text[1:].lstrip()
    if text.startswith("?"):
        nullable, text = True, text[1:].lstrip()
    if not text:
        raise ContractSyntaxError(f"contract {head!r} has no type")
    return strict_override, nullable, text


def _parse_params(text: str) -> list[tuple[str, str]]:
    """Split ``key: value; key: "quoted; value"`` into pairs."""

    pairs: list[tuple[str, str]] = []
    label: list[str] = []
    value: list[str] = []
    in_label = True
    quoted = False
    escaped = False
    first_quoted: int | None = None
    last_quoted: int | None = None

    def flush() -> None:
        name = "".join(label).strip()
        if in_label:
            if name:
                raise ContractSyntaxError(f"contract parameter {name!r} has no value")
            return
        if not name:
            raise ContractSyntaxError("contract parameter name must not be empty")
        pairs.append((name, _finish_value(value, first_quoted, last_quoted)))

    for char in text:
        if in_label:
            if char == ":":
                in_label = False
            elif char == ";":
                flush()
                label = []
            else:
                label.append(char)
            continue
        if quoted:
            if escaped:
                value.append(char)
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                quoted = False
                last_quoted = len(value)
            else:
                value.append(char)
            continue
        if char == '"':
            quoted = True
            if first_quoted is None:
                first_quoted = len(value)
        elif char == ";":
            flush()
            label, value = [], []
            in_label, first_quoted, last_quoted = True, None, None
        else:
            value.append(char)

    if quoted:
        raise ContractSyntaxError("unterminated quoted value in contract")
    flush()
    return pairs


def _finish_value(chars: list[str], first_quoted: int | None, last_quoted: int | None) -> str:
    text = "".join(chars)
    if first_quoted is None or last_quoted is None:
        return text.strip()
    return text[:first_quoted].lstrip() + text[first_quoted:last_quoted] + text[last_quoted:].rstrip()


def _build(
    type_name: str,
    params: Sequence[tuple[str, Any]],
    *,
    strict_override: bool | None,
    nullable: bool,
    optional: bool = False,
) -> Contract:
    values = dict(params)
    default = values.pop("default", None)
    lowered = type_name.lower()

    if lowered in LIST_TYPES:
        item = values.pop("contract", None)
        min_len = _as_size(values.pop("minLen", None), "minLen")
        max_len = _as_size(values.pop("maxLen", None), "maxLen")
        _reject_leftovers(type_name, values)
        return ListOf(
            item=from_structure(item) if item is not None else None,
            min_len=min_len,
            max_len=max_len,
            optional=optional,
            default=default,
            nullable=nullable,
            strict_override=strict_override,
        )

    if lowered in ASSOC_TYPES:
        keys = values.pop("keys", None)
        _reject_leftovers(type_name, values)
        assoc = _assoc_from_keys(keys)
        return replace(
            assoc,
            optional=optional,
            default=default,
            nullable=nullable,
            strict_override=strict_override,
        )

    for alternative in type_name.split("|"):
        name = alternative.strip().lower()
        if not name:
            raise ContractSyntaxError(f"empty alternative in contract type {type_name!r}")
        if name in LIST_TYPES or name in ASSOC_TYPES:
            raise ContractSyntaxError(f"composite type {name!r} cannot be an alternative")

    return Leaf(
        type_name=type_name,
        params=tuple(params_without(params, "default")),
        optional=optional,
        default=default,
        nullable=nullable,
        strict_override=strict_override,
    )


def params_without(params: Sequence[tuple[str, Any]], *names: str) -> list[tuple[str, Any]]:
    return [(key, value) for key, value in params if key not in names]


def _reject_leftovers(type_name: str, values: Mapping[str, Any]) -> None:
    if values:
        unknown = ", ".join(sorted(values))
        raise ContractSyntaxError(f"unsupported parameter(s) for {type_name}: {unknown}")


def _as_size(value: Any, label: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ContractSyntaxError(f"{label} must be an integer")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ContractSyntaxError(f"{label} must be an integer, got {value!r}") from exc


# ---------------------------------------------------------------------------
# Structured contracts
# ---------------------------------------------------------------------------


def from_structure(obj: Any) -> Contract:
    """Build a contract from a string, a typed mapping or a bare field map.

    ``{"type": "int", "min": 1}`` is a leaf, ``{"type": "assoc", "keys":
    {...}}`` and ``{"type": "list", "contract": ...}`` are composites, and any
    mapping without ``type`` is a field map (an ``assoc``).
    """

    if isinstance(obj, (Leaf, Assoc, ListOf)):
        return obj
    if isinstance(obj, str):
        return parse(obj)
    if not isinstance(obj, Mapping):
        raise ContractSyntaxError(f"unsupported contract value of type {type(obj).__name__}")
    type_text = obj.get("type")
    if type_text in (None, ""):
        return _assoc_from_keys({k: v for k, v in obj.items() if k != "type"})
    if not isinstance(type_text, str):
        # A field literally named "type" inside a field map.
        return _assoc_from_keys(obj)

    strict_override, nullable, type_name = _split_prefixes(type_text)
    if "strict" in obj:
        strict_override = bool(obj["strict"])
    if obj.get("nullable"):
        nullable = True
    optional = bool(obj.get("optional", False)) or obj.get("mandatory") is False
    params = [
        (str(key), value)
        for key, value in obj.items()
        if key not in ("type", "strict", "nullable", "optional", "mandatory")
    ]
    return _build(type_name, params, strict_override=strict_override, nullable=nullable, optional=optional)


def _assoc_from_keys(keys: Any) -> Assoc:
    if isinstance(keys, str):
        keys = [part.strip() for part in keys.split(",") if part.strip()]
    if isinstance(keys, (list, tuple)):
        keys = {name: None for name in keys}
    if not isinstance(keys, Mapping) or not keys:
        raise ContractSyntaxError("assoc contract needs a non-empty 'keys' map")

    fields: list[tuple[str, Contract]] = []
    wildcard = False
    wildcard_item: Contract | None = None
    for raw_name, raw_contract in keys.items():
        name = str(raw_name).strip()
        if name in _WILDCARD_ALIASES:
            wildcard = True
            if raw_contract is not None and raw_contract not in _WILDCARD_ALIASES:
                wildcard_item = from_structure(raw_contract)
            continue
        if isinstance(raw_contract, str) and raw_contract.strip() in _WILDCARD_ALIASES:
            wildcard = True
            continue
        optional = name.endswith("?")
        if optional:
            name = name[:-1].rstrip()
        if not name:
            raise ContractSyntaxError("assoc field name must not be empty")
        child = from_structure(raw_contract) if raw_contract is not None else Leaf("any")
        if optional:
            child = replace(child, optional=True)
        fields.append((name, child))
    return Assoc(keys=tuple(fields), wildcard=wildcard, wildcard_item=wildcard_item)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize(contract: Contract) -> str | dict[str, Any]:
    """Render a contract back to its expression string or structured form."""

    if isinstance(contract, Leaf):
        if contract.optional or not _string_renderable(contract):
            return _leaf_structure(contract)
        return _leaf_expression(contract)
    if isinstance(contract, ListOf):
        out: dict[str, Any] = {"type": _prefixed("list", contract.strict_override, contract.nullable)}
        if contract.item is not None:
            out["contract"] = serialize(contract.item)
        if contract.min_len is not None:
            out["minLen"] = contract.min_len
        if contract.max_len is not None:
            out["maxLen"] = contract.max_len
        if contract.default is not None:
            out["default"] = _thaw(contract.default)
        if contract.optional:
            out["optional"] = True
        return out

    keys: dict[str, Any] = {}
    for name, child in contract.keys:
        rendered = serialize(replace(child, optional=False))
        keys[f"{name}?" if child.optional else name] = rendered
    if contract.wildcard:
        keys[WILDCARD] = serialize(contract.wildcard_item) if contract.wildcard_item else WILDCARD
    plain = (
        not contract.optional
        and contract.default is None
        and not contract.nullable
        and contract.strict_override is None
    )
    if plain:
        return keys
    out = {"type": _prefixed("assoc", contract.strict_override, contract.nullable), "keys": keys}
    if contract.default is not None:
        out["default"] = _thaw(contract.default)
    if contract.optional:
        out["optional"] = True
    return out


def _leaf_expression(leaf: Leaf) -> str:
    parts = [_prefixed(leaf.type_name, leaf.strict_override, leaf.nullable)]
    for key, value in leaf.params:
        parts.append(f"{key}: {_quote(value)}")
    if leaf.default is not None:
        parts.append(f"default: {_quote(leaf.default)}")
    return "; ".join(parts)


def _leaf_structure(leaf: Leaf) -> dict[str, Any]:
    out: dict[str, Any] = {"type": _prefixed(leaf.type_name, leaf.strict_override, leaf.nullable)}
    for key, value in leaf.params:
        out[key] = _thaw(value)
    if leaf.default is not None:
        out["default"] = _thaw(leaf.default)
    if leaf.optional:
        out["optional"] = True
    return out


def _string_renderable(leaf: Leaf) -> bool:
    values = [value for _, value in leaf.params]
    if leaf.default is not None:
        values.append(leaf.default)
    if not all(isinstance(value, str) for value in values):
        return False
    return all(":" not in key and ";" not in key and key == key.strip() and key for key, _ in leaf.params)


def _prefixed(type_name: str, strict_override: bool | None, nullable: bool) -> str:
    prefix = "" if strict_override is None else ("=" if strict_override else "~")
    return f"{prefix}{'?' if nullable else ''}{type_name}"


def _quote(value: str) -> str:
    if value and value == value.strip() and not any(char in _NEEDS_QUOTES for char in value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


# ---------------------------------------------------------------------------
# Freezing helpers
# ---------------------------------------------------------------------------


def _freeze_params(params: Any) -> Params:
    if isinstance(params, Mapping):
        params = list(params.items())
    return tuple((str(key), _freeze(value)) for key, value in params)


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


__all__ = [
    "WILDCARD",
    "Assoc",
    "Contract",
    "Leaf",
    "ListOf",
    "from_structure",
    "parse",
    "serialize",
]
