"""Dispatch: policy resolution, plugin hooks and the execution flow controller."""

from actionflow.dispatch.flow import (
    Controller,
    DispatchOutcome,
    DispatchResult,
    FlowController,
    FlowState,
    TraceEntry,
)
from actionflow.dispatch.hooks import HookScope, Phase, Plugin, PluginHookChain, PluginHookSpec
from actionflow.dispatch.resolver import (
    AttributeBinding,
    AttributeResolver,
    BindingTable,
    ControllerRegistry,
    RegisteredController,
    Scope,
)

__all__ = [
    "AttributeBinding",
    "AttributeResolver",
    "BindingTable",
    "Controller",
    "ControllerRegistry",
    "DispatchOutcome",
    "DispatchResult",
    "FlowController",
    "FlowState",
    "HookScope",
    "Phase",
    "Plugin",
    "PluginHookChain",
    "PluginHookSpec",
    "RegisteredController",
    "Scope",
    "TraceEntry",
]
