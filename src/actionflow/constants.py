"""Stable constants shared across the dispatch core."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted configuration.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Extended-configuration namespaces read through ``ConfigAccessor.xtra``.
SECURITY_NAMESPACE: Final[str] = "security"
DISPATCH_NAMESPACE: Final[str] = "dispatch"
PLUGINS_NAMESPACE: Final[str] = "plugins"
CONTRACTS_NAMESPACE: Final[str] = "contracts"

# Security configuration keys (redirect targets and referer allowlists).
KEY_REDIRECT: Final[str] = "redirect"
KEY_AUTH_REDIRECT: Final[str] = "authRedirect"
KEY_METHOD_REDIRECT: Final[str] = "methodRedirect"
KEY_REFERER_REDIRECT: Final[str] = "refererRedirect"
KEY_CHECK_REDIRECT: Final[str] = "checkRedirect"
KEY_REFERER_DOMAIN: Final[str] = "refererDomain"
KEY_REFERER_URL: Final[str] = "refererUrl"
KEY_REFERER_PATH: Final[str] = "refererPath"
KEY_CURRENT_USER_VAR: Final[str] = "currentUserVar"

# Dispatch configuration keys.
KEY_MAX_REBOOTS: Final[str] = "maxReboots"

# Defaults.
DEFAULT_CURRENT_USER_VAR: Final[str] = "currentUser"
DEFAULT_FLASH_VAR: Final[str] = "form"
DEFAULT_MAX_REBOOTS: Final[int] = 10
FLASH_PREFIX: Final[str] = "__"

# Session keys written by the Auth policy.
SESSION_AUTH_ERROR: Final[str] = "authError"
SESSION_AUTH_ERROR_DATA: Final[str] = "authErrorData"
SESSION_AUTH_REQUESTED_URL: Final[str] = "authRequestedUrl"

# Plugin configuration markers.
PLUGINS_PRE_KEY: Final[str] = "_pre"
PLUGINS_POST_KEY: Final[str] = "_post"

HTTP_METHODS: Final[tuple[str, ...]] = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "CONTRACTS_NAMESPACE",
    "DEFAULT_CURRENT_USER_VAR",
    "DEFAULT_FLASH_VAR",
    "DEFAULT_MAX_REBOOTS",
    "DISPATCH_NAMESPACE",
    "FLASH_PREFIX",
    "HTTP_METHODS",
    "KEY_AUTH_REDIRECT",
    "KEY_CHECK_REDIRECT",
    "KEY_CURRENT_USER_VAR",
    "KEY_MAX_REBOOTS",
    "KEY_METHOD_REDIRECT",
    "KEY_REDIRECT",
    "KEY_REFERER_DOMAIN",
    "KEY_REFERER_PATH",
    "KEY_REFERER_REDIRECT",
    "KEY_REFERER_URL",
    "PLUGINS_NAMESPACE",
    "PLUGINS_POST_KEY",
    "PLUGINS_PRE_KEY",
    "SECURITY_NAMESPACE",
    "SESSION_AUTH_ERROR",
    "SESSION_AUTH_ERROR_DATA",
    "SESSION_AUTH_REQUESTED_URL",
]
