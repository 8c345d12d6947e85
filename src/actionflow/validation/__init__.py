"""Contract-based validation: parsing, evaluation and named contracts."""

from actionflow.validation.contract import (
    WILDCARD,
    Assoc,
    Contract,
    Leaf,
    ListOf,
    from_structure,
    parse,
    serialize,
)
from actionflow.validation.engine import coerce_contract, validate, validate_fields
from actionflow.validation.registry import ContractRegistry
from actionflow.validation.validators import BUILTIN_VALIDATORS, slugify, sniff_mime

__all__ = [
    "BUILTIN_VALIDATORS",
    "WILDCARD",
    "Assoc",
    "Contract",
    "ContractRegistry",
    "Leaf",
    "ListOf",
    "coerce_contract",
    "from_structure",
    "parse",
    "serialize",
    "slugify",
    "sniff_mime",
    "validate",
    "validate_fields",
]
