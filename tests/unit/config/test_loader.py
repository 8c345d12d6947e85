"""
actionflow — unit tests for config loader

File: tests/unit/config/test_loader.py
Last updated: 2026-10-19

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > defaults.
- Deterministic env var path mapping and type coercion.
- Path normalization relative to the config file.
- Redacted effective config dumping.

Functional requirements
- Works without any config file present.

Non-functional requirements
- Deterministic output across repeated loads.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pytest

from actionflow.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    load_config,
)
from actionflow.config.schema import ConfigValidationError


def _write_config(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _sha256_json(data: dict[str, object]) -> str:
    payload = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    config_path = tmp_path / "actionflow.toml"
    _write_config(
        config_path,
        """
[dispatch]
maxReboots = 4

[security]
redirect = "/from-file"
authRedirect = "/login"
""".strip(),
    )

    from_file = load_config(config_path, environ={})
    assert from_file["dispatch"]["maxReboots"] == 4
    assert from_file["security"]["redirect"] == "/from-file"
    assert from_file["security"]["currentUserVar"] == "currentUser"

    env = {"ACTIONFLOW_DISPATCH_MAXREBOOTS": "6", "ACTIONFLOW_SECURITY_REDIRECT": "/from-env"}
    from_env = load_config(config_path, environ=env)
    assert from_env["dispatch"]["maxReboots"] == 6
    assert from_env["security"]["redirect"] == "/from-env"
    assert from_env["security"]["authRedirect"] == "/login"

    from_cli = load_config(
        config_path,
        environ=env,
        cli_overrides={"dispatch.maxReboots": 8, "security.redirect": "/from-cli"},
    )
    assert from_cli["dispatch"]["maxReboots"] == 8
    assert from_cli["security"]["redirect"] == "/from-cli"


def test_missing_default_file_falls_back_to_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config(environ={})

    assert config["dispatch"]["maxReboots"] == 10
    assert config["plugins"] == {"_pre": [], "_post": []}


def test_missing_explicit_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="not found"):
        load_config(tmp_path / "absent.toml", environ={})


def test_invalid_toml_is_an_error(tmp_path: Path) -> None:
    config_path = tmp_path / "actionflow.toml"
    _write_config(config_path, "[dispatch\nmaxReboots = 1")

    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_path, environ={})


def test_env_list_and_bool_coercion(tmp_path: Path) -> None:
    config_path = tmp_path / "actionflow.toml"
    _write_config(config_path, "")
    env = {
        "ACTIONFLOW_SECURITY_REFERERDOMAIN": "app.example.com, cdn.example.com ,",
        "ACTIONFLOW_OBSERVABILITY_REDACT_SECRETS": "off",
        "ACTIONFLOW_OBSERVABILITY_LOG_LEVEL": "debug",
    }

    config = load_config(config_path, environ=env)

    assert config["security"]["refererDomain"] == ["app.example.com", "cdn.example.com"]
    assert config["observability"]["redact_secrets"] is False
    assert config["observability"]["log_level"] == "DEBUG"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("ACTIONFLOW_DISPATCH_MAXREBOOTS", "many"),
        ("ACTIONFLOW_OBSERVABILITY_REDACT_SECRETS", "perhaps"),
    ],
)
def test_env_coercion_errors_name_the_variable(tmp_path: Path, name: str, value: str) -> None:
    config_path = tmp_path / "actionflow.toml"
    _write_config(config_path, "")

    with pytest.raises(ConfigLoadError, match=name):
        load_config(config_path, environ={name: value})


def test_invalid_overrides_fail_validation(tmp_path: Path) -> None:
    config_path = tmp_path / "actionflow.toml"
    _write_config(config_path, "")

    with pytest.raises(ConfigValidationError, match="dispatch.maxReboots"):
        load_config(config_path, environ={}, cli_overrides={"dispatch.maxReboots": -1})


def test_paths_are_normalized_relative_to_config_file(tmp_path: Path) -> None:
    config_path = tmp_path / "conf" / "actionflow.toml"
    _write_config(
        config_path,
        """
[contracts]
paths = ["contracts/user.yaml", "/abs/other.yaml"]

[observability]
log_dir = "logs"
""".strip(),
    )

    config = load_config(config_path, environ={})

    base = (tmp_path / "conf").resolve().as_posix()
    assert config["contracts"]["paths"] == [f"{base}/contracts/user.yaml", "/abs/other.yaml"]
    assert config["observability"]["log_dir"] == f"{base}/logs"


def test_plugin_and_extended_tables_pass_through(tmp_path: Path) -> None:
    config_path = tmp_path / "actionflow.toml"
    _write_config(
        config_path,
        """
[plugins]
_pre = ["session_loader"]

[plugins.account.update]
_post = ["notify"]

[shop]
currency = "EUR"
""".strip(),
    )

    config = load_config(config_path, environ={})

    assert config["plugins"]["_pre"] == ["session_loader"]
    assert config["plugins"]["account"] == {"update": {"_post": ["notify"]}}
    assert config["shop"] == {"currency": "EUR"}


def test_effective_config_dump_is_deterministic_and_redacted(tmp_path: Path) -> None:
    config_path = tmp_path / "actionflow.toml"
    _write_config(
        config_path,
        """
[shop]
api_key = "sk-live-123"
currency = "EUR"
""".strip(),
    )

    first = load_config(config_path, environ={})
    second = load_config(config_path, environ={})
    dumped = json.loads(dump_effective_config(first))

    assert _sha256_json(first) == _sha256_json(second)
    assert dumped["shop"] == {"api_key": "<redacted>", "currency": "EUR"}
    assert dump_effective_config(first) == dump_effective_config(second)
