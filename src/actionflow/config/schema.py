"""
actionflow — configuration schema and validation.

File: src/actionflow/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules for
  the dispatch core.

What should be included in this file
- Schema versioning and migration guidance.
- Validation of the ``dispatch``, ``security``, ``plugins``, ``contracts`` and
  ``observability`` sections.
- Deterministic deep-merge helpers and redacted dumps.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Leave application-defined top-level tables alone: they are extended
  configuration namespaces read through ``Config.xtra``.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from actionflow.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_CURRENT_USER_VAR,
    DEFAULT_MAX_REBOOTS,
    KEY_AUTH_REDIRECT,
    KEY_CHECK_REDIRECT,
    KEY_CURRENT_USER_VAR,
    KEY_MAX_REBOOTS,
    KEY_METHOD_REDIRECT,
    KEY_REDIRECT,
    KEY_REFERER_DOMAIN,
    KEY_REFERER_PATH,
    KEY_REFERER_REDIRECT,
    KEY_REFERER_URL,
    PLUGINS_POST_KEY,
    PLUGINS_PRE_KEY,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

_PLUGIN_REF_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.:-]*$")
_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = ("password", "secret", "token", "api_key", "cookie")

_REDIRECT_KEYS: Final[tuple[str, ...]] = (
    KEY_REDIRECT,
    KEY_AUTH_REDIRECT,
    KEY_METHOD_REDIRECT,
    KEY_REFERER_REDIRECT,
    KEY_CHECK_REDIRECT,
)
_REFERER_KEYS: Final[tuple[str, ...]] = (KEY_REFERER_DOMAIN, KEY_REFERER_URL, KEY_REFERER_PATH)
_CORE_SECTIONS: Final[frozenset[str]] = frozenset(
    {"meta", "dispatch", "security", "plugins", "contracts", "observability"}
)

# Config paths that are normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("observability", "log_dir"),
    ("contracts", "paths"),
)


class MetaConfig(TypedDict):
    schema_version: int


class DispatchConfig(TypedDict):
    maxReboots: int


class SecurityConfig(TypedDict, total=False):
    currentUserVar: str
    redirect: str
    authRedirect: str
    methodRedirect: str
    refererRedirect: str
    checkRedirect: str
    refererDomain: str | list[str]
    refererUrl: str | list[str]
    refererPath: str | list[str]


class ContractsConfig(TypedDict):
    paths: list[str]
    named: dict[str, object]


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    redact_secrets: bool


class ActionflowConfig(TypedDict):
    meta: MetaConfig
    dispatch: DispatchConfig
    security: SecurityConfig
    plugins: dict[str, object]
    contracts: ContractsConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[ActionflowConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "dispatch": {
        KEY_MAX_REBOOTS: DEFAULT_MAX_REBOOTS,
    },
    "security": {
        KEY_CURRENT_USER_VAR: DEFAULT_CURRENT_USER_VAR,
    },
    "plugins": {
        PLUGINS_PRE_KEY: [],
        PLUGINS_POST_KEY: [],
    },
    "contracts": {
        "paths": [],
        "named": {},
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": "",
        "redact_secrets": True,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> ActionflowConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade actionflow.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the actionflow runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _require_keys(root, _CORE_SECTIONS, "", issues)
    out: dict[str, Any] = {}
    _section(root, "meta", issues, _validate_meta, out)
    _section(root, "dispatch", issues, _validate_dispatch, out)
    _section(root, "security", issues, _validate_security, out)
    _section(root, "plugins", issues, _validate_plugins, out)
    _section(root, "contracts", issues, _validate_contracts, out)
    _section(root, "observability", issues, _validate_observability, out)

    for key in sorted(root):
        if key in _CORE_SECTIONS:
            continue
        if not isinstance(root[key], Mapping):
            issues.add(key, "extended configuration namespaces must be tables")
            continue
        out[key] = _deep_copy_value(root[key])

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=out, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return a redacted representation suitable for logs."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact_value(config, parent_key=None)
    return redacted if isinstance(redacted, dict) else {}


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _section(
    payload: Mapping[str, object],
    key: str,
    issues: _IssueCollector,
    validator: Callable[[dict[str, object], str, _IssueCollector], dict[str, Any]],
    out: dict[str, Any],
) -> None:
    raw = payload.get(key)
    if raw is None:
        return
    section = _as_object(raw, key, issues)
    if section is None:
        return
    out[key] = validator(section, key, issues)


def _validate_meta(payload: dict[str, object], path: str, issues: _IssueCollector) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(payload["schema_version"], _join(path, "schema_version"), issues, minimum=1)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    else:
        issues.add(_join(path, "schema_version"), "missing required field")
    return out


def _validate_dispatch(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {KEY_MAX_REBOOTS}, path, issues)
    out: dict[str, Any] = {}
    if KEY_MAX_REBOOTS in payload:
        parsed = _as_int(payload[KEY_MAX_REBOOTS], _join(path, KEY_MAX_REBOOTS), issues, minimum=0)
        if parsed is not None:
            out[KEY_MAX_REBOOTS] = parsed
    return out


def _validate_security(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {KEY_CURRENT_USER_VAR, *_REDIRECT_KEYS, *_REFERER_KEYS}
    _reject_unknown_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}

    for key in (KEY_CURRENT_USER_VAR, *_REDIRECT_KEYS):
        if key in payload:
            parsed = _as_str(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed

    for key in _REFERER_KEYS:
        if key not in payload:
            continue
        value = payload[key]
        if isinstance(value, str):
            parsed = _as_str(value, _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
            continue
        parsed_list = _as_str_list(value, _join(path, key), issues)
        if parsed_list is not None:
            out[key] = parsed_list
    return out


def _validate_plugins(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(payload):
        key_path = _join(path, key)
        value = payload[key]
        if key in (PLUGINS_PRE_KEY, PLUGINS_POST_KEY):
            refs = _as_plugin_refs(value, key_path, issues)
            if refs is not None:
                out[key] = refs
            continue
        controller = _as_object(value, key_path, issues)
        if controller is None:
            continue
        out[key] = _validate_plugin_scope(controller, key_path, issues, allow_nested=True)
    return out


def _validate_plugin_scope(
    payload: dict[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    allow_nested: bool,
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(payload):
        key_path = _join(path, key)
        value = payload[key]
        if key in (PLUGINS_PRE_KEY, PLUGINS_POST_KEY):
            refs = _as_plugin_refs(value, key_path, issues)
            if refs is not None:
                out[key] = refs
            continue
        if not allow_nested:
            issues.add(key_path, "unknown field")
            continue
        action = _as_object(value, key_path, issues)
        if action is not None:
            out[key] = _validate_plugin_scope(action, key_path, issues, allow_nested=False)
    return out


def _validate_contracts(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"paths", "named"}, path, issues)
    out: dict[str, Any] = {}
    if "paths" in payload:
        paths = _as_str_list(payload["paths"], _join(path, "paths"), issues)
        if paths is not None:
            out["paths"] = paths
    if "named" in payload:
        named = _as_object(payload["named"], _join(path, "named"), issues)
        if named is not None:
            checked: dict[str, Any] = {}
            for name in sorted(named):
                value = named[name]
                if not isinstance(value, (str, Mapping)):
                    issues.add(
                        _join(_join(path, "named"), name),
                        f"expected contract string or table, got {type(value).__name__}",
                    )
                    continue
                checked[name] = _deep_copy_value(value)
            out["named"] = checked
    return out


def _validate_observability(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"log_level", "log_dir", "redact_secrets"}, path, issues)
    out: dict[str, Any] = {}
    if "log_level" in payload:
        level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if level is not None:
            out["log_level"] = level
    if "log_dir" in payload:
        value = payload["log_dir"]
        if not isinstance(value, str):
            issues.add(_join(path, "log_dir"), f"expected string, got {type(value).__name__}")
        elif "\x00" in value:
            issues.add(_join(path, "log_dir"), "must not contain NUL bytes")
        else:
            out["log_dir"] = value.strip()
    if "redact_secrets" in payload:
        flag = _as_bool(payload["redact_secrets"], _join(path, "redact_secrets"), issues)
        if flag is not None:
            out["redact_secrets"] = flag
    return out


# ---------------------------------------------------------------------------
# Scalar coercion helpers
# ---------------------------------------------------------------------------


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return out


def _as_plugin_refs(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    refs = _as_str_list(value, path, issues)
    if refs is None:
        return None
    valid: list[str] = []
    for index, ref in enumerate(refs):
        if not _PLUGIN_REF_PATTERN.fullmatch(ref):
            issues.add(f"{path}[{index}]", f"invalid plugin reference {ref!r}")
            continue
        valid.append(ref)
    return valid


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    parsed = parsed.upper()
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: frozenset[str] | set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


# ---------------------------------------------------------------------------
# Merge and redaction
# ---------------------------------------------------------------------------


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: _deep_copy_value(value[key]) for key in sorted(value)}


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, (list, tuple)):
        return [_deep_copy_value(item) for item in value]
    return copy.deepcopy(value)


def _redact_value(value: object, parent_key: str | None) -> object:
    if isinstance(value, Mapping):
        return {
            key: "<redacted>" if _is_sensitive(key) else _redact_value(value[key], key)
            for key in sorted(value)
        }
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, parent_key) for item in value]
    return value


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(term in lowered for term in _SENSITIVE_KEY_TERMS)


__all__ = [
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "ActionflowConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
