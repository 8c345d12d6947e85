"""
actionflow — unit tests for the contract evaluation engine

File: tests/unit/validation/test_engine.py
Last updated: 2026-10-19

Purpose
- Validate composite evaluation: field maps, lists, defaults, alternatives and aliases.

What this test file should cover
- Missing/optional/extra keys in strict and non-strict mode, wildcard handling.
- Nested field paths in ``ValidationError.field``.
- Defaults applied through validation and never shared between calls.
- Registry aliases with parameter merging and self-reference detection.

Functional requirements
- Validation never mutates its input.
- Re-validating a coerced value yields the same value.
"""

from __future__ import annotations

import copy
from datetime import date

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from actionflow.domain.errors import ContractSyntaxError, ValidationError
from actionflow.validation import ContractRegistry, Leaf, coerce_contract, validate, validate_fields


def _error(value: object, contract: object, strict: bool = False, **kwargs: object) -> ValidationError:
    with pytest.raises(ValidationError) as excinfo:
        validate(value, contract, strict, **kwargs)
    return excinfo.value


# ---------------------------------------------------------------------------
# Field maps
# ---------------------------------------------------------------------------


def test_validate_fields_coerces_every_field() -> None:
    result = validate_fields({"id": "7", "name": "Ada"}, {"id": "int; min: 1", "name": "string"})

    assert result == {"id": 7, "name": "Ada"}


def test_validate_fields_reports_field_and_reason() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_fields({"id": "0"}, {"id": "int; min: 1"})

    assert excinfo.value.field == "id"
    assert excinfo.value.reason == "min"
    assert excinfo.value.details == {"field": "id", "reason": "min"}


def test_validate_fields_requires_an_assoc_contract() -> None:
    with pytest.raises(ContractSyntaxError):
        validate_fields({"id": 1}, "int")
    with pytest.raises(ValidationError) as excinfo:
        validate_fields(["id"], {"id": "int"})  # type: ignore[arg-type]
    assert excinfo.value.reason == "type"


def test_missing_required_and_optional_keys() -> None:
    contract = {"id": "int", "note?": "string"}

    assert validate({"id": 1}, contract) == {"id": 1}
    error = _error({"note": "x"}, contract)
    assert (error.field, error.reason) == ("id", "missing")


def test_extra_keys_are_dropped_non_strict_and_rejected_strict() -> None:
    contract = {"id": "int"}

    assert validate({"id": 1, "junk": True}, contract) == {"id": 1}
    error = _error({"id": 1, "junk": True}, contract, strict=True)
    assert (error.field, error.reason) == ("junk", "extra")


def test_wildcard_keeps_extras_and_validates_them_when_typed() -> None:
    assert validate({"id": 1, "x": [1]}, {"id": "int", "...": "..."}, strict=True) == {"id": 1, "x": [1]}
    assert validate({"id": 1, "n": "3"}, {"id": "int", "...": "int"}) == {"id": 1, "n": 3}
    error = _error({"id": 1, "n": "three"}, {"id": "int", "...": "int"})
    assert (error.field, error.reason) == ("n", "type")


def test_nested_paths_are_dotted_and_indexed() -> None:
    contract = {"user": {"tags": {"type": "list", "contract": "string; maxLen: 3"}}}
    error = _error({"user": {"tags": ["ok", "toolong"]}}, contract)

    assert error.field == "user.tags[1]"
    assert error.reason == "maxLen"


def test_list_length_bounds_and_type() -> None:
    contract = {"type": "list", "contract": "int", "minLen": 1, "maxLen": 2}

    assert validate(("1", 2), contract) == [1, 2]
    assert _error([], contract).reason == "minLen"
    assert _error([1, 2, 3], contract).reason == "maxLen"
    assert _error("1,2", contract).reason == "type"


def test_nullable_contracts_accept_none() -> None:
    assert validate(None, "?int") is None
    assert validate({"n": None}, {"n": "?int"}) == {"n": None}
    assert _error(None, "int").reason == "type"


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_defaults_fill_missing_and_null_values() -> None:
    contract = {"page": "int; default: 1", "size": "int; min: 1; default: 20"}

    assert validate({}, contract) == {"page": 1, "size": 20}
    assert validate({"page": None, "size": "5"}, contract) == {"page": 1, "size": 5}


def test_defaults_are_copied_per_call() -> None:
    contract = {"opts": {"type": "assoc", "keys": {"...": "..."}, "default": {"flags": []}}}

    first = validate({}, contract)
    first["opts"]["flags"].append("mutated")
    second = validate({}, contract)

    assert second == {"opts": {"flags": []}}


def test_validation_does_not_mutate_input() -> None:
    data = {"id": "7", "tags": ["a", "b"], "extra": {"x": 1}}
    snapshot = copy.deepcopy(data)

    validate(data, {"id": "int", "tags": {"type": "list", "contract": "string"}, "...": "..."})

    assert data == snapshot


# ---------------------------------------------------------------------------
# Alternatives and aliases
# ---------------------------------------------------------------------------


def test_alternatives_are_tried_in_order() -> None:
    assert validate("12", "int|string") == 12
    assert validate("twelve", "int|string") == "twelve"
    assert _error([1], "int|email").reason == "type"


def test_unknown_type_is_a_contract_error() -> None:
    with pytest.raises(ContractSyntaxError):
        validate(1, "widget")


def test_registry_alias_merges_usage_parameters_over_alias_parameters() -> None:
    registry = ContractRegistry({"age": "int; min: 0; max: 150"})

    assert validate("42", "age", registry=registry) == 42
    assert _error(200, "age", registry=registry).reason == "max"
    assert validate(200, "age; max: 300", registry=registry) == 200
    assert _error(-1, "age; max: 300", registry=registry).reason == "min"


def test_registry_alias_for_composite_contract() -> None:
    registry = ContractRegistry({"point": {"x": "int", "y": "int"}})

    assert validate({"x": "1", "y": 2}, "point", registry=registry) == {"x": 1, "y": 2}
    assert validate({"p": {"x": 0, "y": 0}}, {"p": "point"}, registry=registry) == {"p": {"x": 0, "y": 0}}


def test_self_referencing_alias_is_a_contract_error() -> None:
    registry = ContractRegistry()
    registry.register("loop", Leaf("loop|int"))

    with pytest.raises(ContractSyntaxError):
        validate("x", "loop", registry=registry)


def test_coerce_contract_prefers_registry_names() -> None:
    registry = ContractRegistry({"nick": "string; maxLen: 8"})

    assert coerce_contract("nick", registry) == Leaf("string", (("maxLen", "8"),))
    assert coerce_contract("nick") == Leaf("nick")


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@settings(max_examples=25, derandomize=True, deadline=None)
@given(number=st.integers(min_value=-1000, max_value=1000))
def test_property_int_bounds_are_inclusive(number: int) -> None:
    contract = "int; min: 5; max: 128"
    if 5 <= number <= 128:
        assert validate(number, contract) == number
        assert validate(str(number), contract) == number
    else:
        assert _error(number, contract).reason == ("min" if number < 5 else "max")


_IDEMPOTENT_CASES = st.one_of(
    st.tuples(st.integers(), st.just("int")),
    st.tuples(st.integers().map(str), st.just("int")),
    st.tuples(st.floats(allow_nan=False, allow_infinity=False), st.just("float")),
    st.tuples(st.text(max_size=20), st.just("string")),
    st.tuples(st.text(max_size=20), st.just("bool")),
    st.tuples(st.from_regex(r"[A-Za-z0-9 ]{1,12}", fullmatch=True), st.just("slug")),
    st.tuples(st.sampled_from(["#ABC", "#abcdef", "FFF"]), st.just("color")),
    st.tuples(st.dates(min_value=date(1900, 1, 1)).map(lambda d: d.isoformat()), st.just("date")),
)


@settings(max_examples=50, derandomize=True, deadline=None)
@given(case=_IDEMPOTENT_CASES)
def test_property_revalidating_coerced_values_is_stable(case: tuple[object, str]) -> None:
    value, contract = case
    try:
        once = validate(value, contract)
    except ValidationError:
        return
    assert validate(once, contract) == once
