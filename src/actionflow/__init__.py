"""
actionflow — declarative policy pipeline for request dispatch.

Package root. Defines public package-level metadata and the small set of
entrypoints most applications need: the flow signal algebra, the policy
attributes, the controller registry and the flow controller.

Importing the package has no side effects (no config loading, no logging init).
"""

from actionflow.dispatch import (
    AttributeResolver,
    Controller,
    ControllerRegistry,
    DispatchOutcome,
    DispatchResult,
    FlowController,
    Plugin,
    PluginHookChain,
)
from actionflow.domain import (
    ActionContext,
    Flow,
    FlowSignal,
    RequestData,
    Response,
    Route,
)
from actionflow.policies import (
    Auth,
    Check,
    CheckTarget,
    Delete,
    Get,
    Head,
    Method,
    Patch,
    Post,
    Put,
    Redirect,
    Referer,
)

__version__ = "0.4.0"

__all__ = [
    "ActionContext",
    "AttributeResolver",
    "Auth",
    "Check",
    "CheckTarget",
    "Controller",
    "ControllerRegistry",
    "Delete",
    "DispatchOutcome",
    "DispatchResult",
    "Flow",
    "FlowController",
    "FlowSignal",
    "Get",
    "Head",
    "Method",
    "Patch",
    "Plugin",
    "PluginHookChain",
    "Post",
    "Put",
    "Redirect",
    "Referer",
    "RequestData",
    "Response",
    "Route",
    "__version__",
]
