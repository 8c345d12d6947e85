"""
actionflow config package public API.

File: src/actionflow/config/__init__.py

Purpose
- Export config loading/validation entrypoints, the ``Config`` accessor and
  public error types.

Functional requirements
- Support loading from ``actionflow.toml`` + ``ACTIONFLOW_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from actionflow.config.accessor import Config
from actionflow.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    normalize_paths,
)
from actionflow.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ActionflowConfig,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    redact_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "ActionflowConfig",
    "Config",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "merge_config",
    "migration_guidance",
    "normalize_paths",
    "redact_config",
    "validate_config",
]
