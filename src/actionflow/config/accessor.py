"""Read-only view over an effective configuration mapping."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from actionflow.config.loader import load_config
from actionflow.config.schema import assert_valid_config, default_config, merge_config
from actionflow.constants import (
    DEFAULT_CURRENT_USER_VAR,
    DEFAULT_MAX_REBOOTS,
    DISPATCH_NAMESPACE,
    KEY_CURRENT_USER_VAR,
    KEY_MAX_REBOOTS,
    SECURITY_NAMESPACE,
)


class Config:
    """Effective configuration exposing the ``xtra`` accessor used by policies.

    ``xtra(namespace)`` returns the whole namespace table; ``xtra(namespace,
    key)`` returns one entry or ``default`` when either level is absent.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = merge_config({}, data or default_config())

    @classmethod
    def from_mapping(cls, overlay: Mapping[str, object]) -> Config:
        """Merge ``overlay`` onto defaults and validate."""

        return cls(assert_valid_config(merge_config(default_config(), overlay)))

    @classmethod
    def load(
        cls,
        config_path: str | Path | None = None,
        *,
        cli_overrides: Mapping[str, object] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Config:
        return cls(load_config(config_path, cli_overrides=cli_overrides, environ=environ))

    def xtra(self, namespace: str, key: str | None = None, default: Any = None) -> Any:
        section = self._data.get(namespace)
        if key is None:
            return section if section is not None else default
        if not isinstance(section, Mapping):
            return default
        return section.get(key, default)

    def section(self, namespace: str) -> dict[str, Any]:
        section = self._data.get(namespace)
        return merge_config({}, section) if isinstance(section, Mapping) else {}

    @property
    def max_reboots(self) -> int:
        value = self.xtra(DISPATCH_NAMESPACE, KEY_MAX_REBOOTS, DEFAULT_MAX_REBOOTS)
        return int(value)

    @property
    def current_user_var(self) -> str:
        return str(self.xtra(SECURITY_NAMESPACE, KEY_CURRENT_USER_VAR, DEFAULT_CURRENT_USER_VAR))

    @property
    def plugins(self) -> dict[str, Any]:
        return self.section("plugins")

    @property
    def observability(self) -> dict[str, Any]:
        return self.section("observability")

    def as_dict(self) -> dict[str, Any]:
        return merge_config({}, self._data)


__all__ = ["Config"]
