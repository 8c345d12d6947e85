"""Domain layer: flow signals, error taxonomy and the per-dispatch context."""

from actionflow.domain.context import (
    ActionContext,
    ConfigAccessor,
    MemorySession,
    RedirectSink,
    Renderer,
    RequestData,
    Response,
    SessionStore,
    UploadedFile,
)
from actionflow.domain.errors import (
    ActionflowError,
    Administrator,
    Authenticated,
    ContractSyntaxError,
    DispatchError,
    ForbiddenRole,
    ForbiddenService,
    NoMatchingAccess,
    NoMatchingRole,
    NoRedirectTarget,
    NoReferer,
    NotAdministrator,
    NotAuthenticated,
    OutputValidationError,
    PolicyError,
    RebootLimitExceeded,
    RefererMismatch,
    UnauthorizedMethod,
    UnknownAction,
    UnknownController,
    UnknownPlugin,
    ValidationError,
)
from actionflow.domain.signals import (
    CONTINUE,
    HALT,
    QUIT,
    RESTART,
    STOP,
    Flow,
    FlowSignal,
    Route,
    as_flow,
)

__all__ = [
    "CONTINUE",
    "HALT",
    "QUIT",
    "RESTART",
    "STOP",
    "ActionContext",
    "ActionflowError",
    "Administrator",
    "Authenticated",
    "ConfigAccessor",
    "ContractSyntaxError",
    "DispatchError",
    "Flow",
    "FlowSignal",
    "ForbiddenRole",
    "ForbiddenService",
    "MemorySession",
    "NoMatchingAccess",
    "NoMatchingRole",
    "NoRedirectTarget",
    "NoReferer",
    "NotAdministrator",
    "NotAuthenticated",
    "OutputValidationError",
    "PolicyError",
    "RebootLimitExceeded",
    "RedirectSink",
    "RefererMismatch",
    "Renderer",
    "RequestData",
    "Response",
    "Route",
    "SessionStore",
    "UnauthorizedMethod",
    "UnknownAction",
    "UnknownController",
    "UnknownPlugin",
    "UploadedFile",
    "ValidationError",
    "as_flow",
]
