"""Error taxonomy for validation, policy and dispatch failures.

Every error carries a stable ``code`` and an ``http_status`` hint that the
outer HTTP layer may use; the core itself never builds responses from them.
"""

from __future__ import annotations

from typing import ClassVar


class ActionflowError(Exception):
    """Root of all errors raised by the dispatch core."""

    code: ClassVar[str] = "error"
    http_status: ClassVar[int] = 500

    @property
    def details(self) -> dict[str, object]:
        return {}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ContractSyntaxError(ActionflowError, ValueError):
    """Raised when a contract expression or structure is malformed."""

    code = "contract_syntax"


class ValidationError(ActionflowError):
    """Data does not satisfy a contract.

    ``field`` is a dotted path (``user.email``, ``tags[2]``) or ``""`` for the
    root value; ``reason`` names the violated constraint (``min``, ``type``,
    ``missing`` ...).
    """

    code = "validation"
    http_status = 400

    def __init__(self, field: str, reason: str, value: object = None, message: str | None = None):
        self.field = field
        self.reason = reason
        self.value = value
        location = field or "<root>"
        super().__init__(message or f"{location}: constraint {reason!r} violated")

    def at(self, prefix: str) -> ValidationError:
        """Return a copy whose field path is nested under ``prefix``."""

        if not prefix:
            return self
        if not self.field:
            nested = prefix
        elif self.field.startswith("["):
            nested = f"{prefix}{self.field}"
        else:
            nested = f"{prefix}.{self.field}"
        return ValidationError(nested, self.reason, self.value)

    @property
    def details(self) -> dict[str, object]:
        return {"field": self.field, "reason": self.reason}


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


class PolicyError(ActionflowError):
    """A policy attribute rejected the request and no redirect was available."""

    code = "policy"
    http_status = 403


class NotAuthenticated(PolicyError):
    code = "not_authenticated"
    http_status = 401


class Authenticated(PolicyError):
    code = "authenticated"


class NotAdministrator(PolicyError):
    code = "not_administrator"


class Administrator(PolicyError):
    code = "administrator"


class _ForbiddenEntry(PolicyError):
    def __init__(self, entry: str, message: str | None = None) -> None:
        self.entry = entry
        super().__init__(message or f"{self.code}: {entry!r}")

    @property
    def details(self) -> dict[str, object]:
        return {"entry": self.entry}


class ForbiddenRole(_ForbiddenEntry):
    code = "forbidden_role"


class NoMatchingRole(PolicyError):
    code = "no_matching_role"


class ForbiddenService(_ForbiddenEntry):
    code = "forbidden_service"


class NoMatchingAccess(PolicyError):
    code = "no_matching_access"


class UnauthorizedMethod(PolicyError):
    code = "unauthorized_method"
    http_status = 405

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"unauthorized method {method!r}")

    @property
    def details(self) -> dict[str, object]:
        return {"method": self.method}


class NoReferer(PolicyError):
    code = "no_referer"


class RefererMismatch(PolicyError):
    code = "referer_mismatch"

    def __init__(self, dimension: str, referer: str) -> None:
        self.dimension = dimension
        self.referer = referer
        super().__init__(f"referer {referer!r} fails the {dimension} check")

    @property
    def details(self) -> dict[str, object]:
        return {"dimension": self.dimension}


class NoRedirectTarget(PolicyError):
    code = "no_redirect_target"
    http_status = 500


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class DispatchError(ActionflowError):
    """The flow controller could not complete a dispatch."""

    code = "dispatch"


class RebootLimitExceeded(DispatchError):
    code = "reboot_limit"

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"dispatch re-entered more than {limit} times")


class UnknownController(DispatchError):
    code = "unknown_controller"
    http_status = 404


class UnknownAction(DispatchError):
    code = "unknown_action"
    http_status = 404


class UnknownPlugin(DispatchError):
    code = "unknown_plugin"


class OutputValidationError(DispatchError):
    """Response data failed a deferred output contract."""

    code = "output_validation"

    def __init__(self, cause: ValidationError) -> None:
        self.cause = cause
        super().__init__(f"response data rejected by output contract: {cause}")

    @property
    def details(self) -> dict[str, object]:
        return self.cause.details


__all__ = [
    "ActionflowError",
    "Administrator",
    "Authenticated",
    "ContractSyntaxError",
    "DispatchError",
    "ForbiddenRole",
    "ForbiddenService",
    "NoMatchingAccess",
    "NoMatchingRole",
    "NoRedirectTarget",
    "NoReferer",
    "NotAdministrator",
    "NotAuthenticated",
    "OutputValidationError",
    "PolicyError",
    "RebootLimitExceeded",
    "RefererMismatch",
    "UnauthorizedMethod",
    "UnknownAction",
    "UnknownController",
    "UnknownPlugin",
    "ValidationError",
]
