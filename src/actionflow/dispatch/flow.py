"""Execution flow controller: runs one request through hooks, policies and the action.

State machine per attempt::

    RESOLVING_POLICIES -> RUNNING_PRE_HOOKS -> RUNNING_POLICIES -> RUNNING_ACTION
        -> RUNNING_POST_HOOKS -> RENDERING -> TERMINATED

Every step returns a ``Flow``:

- ``CONTINUE``: next step.
- ``HALT``: skip the remaining controller logic and post-hooks, then render
  (or report the redirect that was issued).
- ``STOP``: skip the remaining controller logic, run post-hooks, do not render.
  A post-hook ``HALT`` ends the post-hooks without overriding this.
- ``QUIT``: terminate at once.
- ``REBOOT``: start a new attempt for the carried route (or the same one) with a
  fresh context and response; request and session are kept.
- ``RESTART``: reload configuration and start a new attempt for the original route.

``REBOOT`` and ``RESTART`` together are bounded by ``dispatch.maxReboots``.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import structlog

from actionflow.config.accessor import Config
from actionflow.constants import (
    DEFAULT_MAX_REBOOTS,
    DISPATCH_NAMESPACE,
    KEY_MAX_REBOOTS,
    PLUGINS_NAMESPACE,
)
from actionflow.dispatch.hooks import Phase, PluginHookChain, PluginHookSpec
from actionflow.dispatch.resolver import AttributeBinding, AttributeResolver, ControllerRegistry
from actionflow.domain.context import (
    ActionContext,
    ConfigAccessor,
    Renderer,
    RequestData,
    Response,
    SessionStore,
)
from actionflow.domain.errors import (
    ActionflowError,
    OutputValidationError,
    RebootLimitExceeded,
    UnknownAction,
    ValidationError,
)
from actionflow.domain.signals import CONTINUE, Flow, FlowSignal, Route, as_flow
from actionflow.observability.debug import DebugCollector
from actionflow.observability.logging import correlation_scope
from actionflow.validation.engine import validate
from actionflow.validation.registry import ContractRegistry

logger = logging.getLogger(__name__)

ConfigLoader = Callable[[], ConfigAccessor]


class FlowState(StrEnum):
    RESOLVING_POLICIES = "resolving_policies"
    RUNNING_PRE_HOOKS = "running_pre_hooks"
    RUNNING_POLICIES = "running_policies"
    RUNNING_ACTION = "running_action"
    RUNNING_POST_HOOKS = "running_post_hooks"
    RENDERING = "rendering"
    TERMINATED = "terminated"


class DispatchOutcome(StrEnum):
    RENDERED = "rendered"
    NO_RENDER = "no_render"
    REDIRECT = "redirect"
    QUIT = "quit"


# ---------------------------------------------------------------------------
# Controllers
# ---------------------------------------------------------------------------


class Controller:
    """Base class for controllers.

    An action is a public method named after it, called without arguments and
    returning ``None`` or a ``Flow``. ``init`` runs before and ``finalize``
    after every action of the controller.
    """

    def __init__(self, ctx: ActionContext) -> None:
        self.ctx = ctx

    def init(self) -> Flow | None:
        return None

    def finalize(self) -> Flow | None:
        return None

    @property
    def request(self) -> RequestData:
        return self.ctx.request

    @property
    def response(self) -> Response:
        return self.ctx.response

    @property
    def session(self) -> SessionStore:
        return self.ctx.session

    def redirect(self, url: str, *, permanent: bool = False) -> Flow:
        """Redirect and halt; use as ``return self.redirect(url)``."""

        self.ctx.response.redirect(url, permanent=permanent)
        return Flow.halt()


_RESERVED_ACTIONS = frozenset(name for name in dir(Controller) if not name.startswith("_"))


def action_callable(controller_cls: type[Controller], action: str) -> None:
    """Raise ``UnknownAction`` unless ``action`` names a public method of the class."""

    if action.startswith("_") or action in _RESERVED_ACTIONS:
        raise UnknownAction(f"{controller_cls.__name__} has no action {action!r}")
    if not callable(getattr(controller_cls, action, None)):
        raise UnknownAction(f"{controller_cls.__name__} has no action {action!r}")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TraceEntry:
    attempt: int
    route: Route
    state: FlowState
    signal: FlowSignal | None = None


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """What happened to a request.

    ``context`` is the context of the final attempt; ``reboots`` counts the
    REBOOT/RESTART re-entries that preceded it.
    """

    outcome: DispatchOutcome
    route: Route
    context: ActionContext
    trace: tuple[TraceEntry, ...]
    reboots: int
    request_id: str

    @property
    def response(self) -> Response:
        return self.context.response

    @property
    def rendered(self) -> bool:
        return self.outcome is DispatchOutcome.RENDERED

    def states(self, attempt: int | None = None) -> list[FlowState]:
        return [e.state for e in self.trace if attempt is None or e.attempt == attempt]


@dataclass(frozen=True, slots=True)
class _Runtime:
    config: ConfigAccessor
    hooks: PluginHookChain
    contracts: ContractRegistry
    max_reboots: int


@dataclass(frozen=True, slots=True)
class _Attempt:
    flow: Flow | None = None
    result: DispatchResult | None = None


# ---------------------------------------------------------------------------
# Flow controller
# ---------------------------------------------------------------------------


class FlowController:
    """Dispatches routes registered in a ``ControllerRegistry``."""

    def __init__(
        self,
        registry: ControllerRegistry,
        resolver: AttributeResolver | None = None,
        hooks: PluginHookChain | None = None,
        renderer: Renderer | None = None,
        config: ConfigAccessor | None = None,
        config_loader: ConfigLoader | None = None,
        max_reboots: int | None = None,
        contracts: ContractRegistry | None = None,
        logger: Any | None = None,
    ) -> None:
        if max_reboots is not None and max_reboots < 0:
            raise ValueError("max_reboots must be >= 0")
        self._registry = registry
        self._resolver = resolver if resolver is not None else AttributeResolver(registry)
        self._renderer = renderer
        self._config_loader = config_loader
        self._explicit_max_reboots = max_reboots
        self._explicit_contracts = contracts
        self._decisions = logger if logger is not None else structlog.get_logger(__name__)
        self._lock = threading.Lock()
        self._runtime = self._build_runtime(config if config is not None else Config(), hooks)

    @property
    def config(self) -> ConfigAccessor:
        return self._runtime.config

    @property
    def contracts(self) -> ContractRegistry:
        return self._runtime.contracts

    @property
    def max_reboots(self) -> int:
        return self._runtime.max_reboots

    def dispatch(
        self,
        route: Route,
        request: RequestData,
        session: SessionStore,
        *,
        request_id: str | None = None,
    ) -> DispatchResult:
        """Run ``route`` to completion; typed errors propagate unchanged."""

        request_id = request_id or uuid.uuid4().hex
        trace: list[TraceEntry] = []
        reboots = 0
        current = route
        with correlation_scope(request_id=request_id):
            while True:
                runtime = self._runtime
                attempt = self._attempt(current, request, session, request_id, reboots, runtime, trace)
                if attempt.result is not None:
                    self._log_decision(route, attempt.result)
                    return attempt.result
                flow = attempt.flow
                assert flow is not None
                reboots += 1
                if reboots > runtime.max_reboots:
                    logger.warning("Reboot limit %d exceeded for %s", runtime.max_reboots, route)
                    raise RebootLimitExceeded(runtime.max_reboots)
                if flow.signal is FlowSignal.RESTART:
                    self.reload_config()
                    current = route
                else:
                    current = flow.route or current
                logger.debug("Re-entering dispatch (%s) for %s", flow.signal, current)

    def reload_config(self) -> None:
        """Re-read configuration through ``config_loader`` (no-op without one)."""

        if self._config_loader is None:
            return
        config = self._config_loader()
        with self._lock:
            hooks = self._runtime.hooks.with_config(config.xtra(PLUGINS_NAMESPACE) or {})
            self._runtime = self._build_runtime(config, hooks)
        logger.info("Configuration reloaded")

    def _log_decision(self, route: Route, result: DispatchResult) -> None:
        self._decisions.info(
            "dispatch_decision",
            request_id=result.request_id,
            requested=str(route),
            final=str(result.route),
            outcome=result.outcome.value,
            reboots=result.reboots,
            redirect=result.response.redirect_url,
        )

    # -- one attempt --------------------------------------------------------

    def _attempt(
        self,
        route: Route,
        request: RequestData,
        session: SessionStore,
        request_id: str,
        reboots: int,
        runtime: _Runtime,
        trace: list[TraceEntry],
    ) -> _Attempt:
        ctx = ActionContext(
            route=route,
            request=request,
            session=session,
            config=runtime.config,
            debug=DebugCollector(request_id),
            contracts=runtime.contracts,
        )
        attempt_no = reboots + 1

        def enter(state: FlowState, signal: FlowSignal | None = None) -> None:
            trace.append(TraceEntry(attempt_no, route, state, signal))
            logger.debug("%s -> %s", route, state)

        def finish(outcome: DispatchOutcome) -> _Attempt:
            nonlocal closing
            enter(FlowState.TERMINATED)
            closing = outcome.value
            return _Attempt(
                result=DispatchResult(outcome, route, ctx, tuple(trace), reboots, request_id)
            )

        closing = "error"
        with correlation_scope(controller=route.controller, action=route.action, attempt=str(attempt_no)):
            try:
                enter(FlowState.RESOLVING_POLICIES)
                entry = self._registry.get(route.controller)
                action_callable(entry.controller_cls, route.action)
                bindings = self._resolver.resolve(route.controller, route.action)
                pre_hooks = runtime.hooks.resolve_pre(route.controller, route.action)
                post_hooks = runtime.hooks.resolve_post(route.controller, route.action)

                enter(FlowState.RUNNING_PRE_HOOKS)
                flow = self._run_hooks(Phase.PRE, pre_hooks, ctx, runtime.hooks)
                if flow.is_continue:
                    enter(FlowState.RUNNING_POLICIES)
                    flow = self._run_policies(bindings, ctx)
                if flow.is_continue:
                    enter(FlowState.RUNNING_ACTION)
                    flow = self._run_controller(entry.controller_cls, ctx)

                signal = flow.signal
                if signal in (FlowSignal.REBOOT, FlowSignal.RESTART):
                    enter(FlowState.TERMINATED, signal)
                    closing = signal.value
                    return _Attempt(flow=flow)
                if signal is FlowSignal.QUIT:
                    return finish(DispatchOutcome.QUIT)

                render = signal is not FlowSignal.STOP
                if signal is not FlowSignal.HALT:
                    enter(FlowState.RUNNING_POST_HOOKS, signal)
                    post = self._run_hooks(Phase.POST, post_hooks, ctx, runtime.hooks)
                    if post.signal in (FlowSignal.REBOOT, FlowSignal.RESTART):
                        enter(FlowState.TERMINATED, post.signal)
                        closing = post.signal.value
                        return _Attempt(flow=post)
                    if post.signal is FlowSignal.QUIT:
                        return finish(DispatchOutcome.QUIT)
                    # HALT only ends the post-hooks; a main-flow STOP still suppresses rendering.
                    if post.signal is FlowSignal.STOP:
                        render = False

                if not render:
                    return finish(DispatchOutcome.NO_RENDER)
                enter(FlowState.RENDERING)
                return finish(self._render(ctx))
            except ActionflowError as exc:
                logger.warning("Dispatch of %s failed: %s (%s)", route, exc.code, exc)
                raise
            finally:
                ctx.debug.close(closing)

    # -- steps --------------------------------------------------------------

    def _run_hooks(
        self,
        phase: Phase,
        specs: Sequence[PluginHookSpec],
        ctx: ActionContext,
        hooks: PluginHookChain,
    ) -> Flow:
        for spec in specs:
            plugin = hooks.instantiate(spec)
            if not plugin.handles(phase):
                continue
            flow = as_flow(plugin.run(phase, ctx))
            ctx.debug.note("hook", f"{spec}", signal=flow.signal.value)
            if not flow.is_continue:
                logger.debug("Hook %s returned %s", spec, flow.signal)
                return flow
        return CONTINUE

    def _run_policies(self, bindings: Sequence[AttributeBinding], ctx: ActionContext) -> Flow:
        for binding in bindings:
            flow = as_flow(binding.attribute.apply(ctx))
            ctx.debug.note("policy", binding.attribute.kind, scope=binding.scope.value, signal=flow.signal.value)
            if not flow.is_continue:
                logger.debug("Policy %s returned %s", binding.attribute.kind, flow.signal)
                return flow
        return CONTINUE

    def _run_controller(self, controller_cls: type[Controller], ctx: ActionContext) -> Flow:
        controller = controller_cls(ctx)
        flow = as_flow(controller.init())
        if not flow.is_continue:
            return flow
        flow = as_flow(getattr(controller, ctx.action)())
        ctx.debug.note("action", ctx.action, signal=flow.signal.value)
        if not flow.is_continue:
            return flow
        return as_flow(controller.finalize())

    def _render(self, ctx: ActionContext) -> DispatchOutcome:
        response = ctx.response
        if response.redirect_url:
            logger.debug("Redirect to %s; rendering skipped", response.redirect_url)
            return DispatchOutcome.REDIRECT
        if response.output_contracts:
            data: Any = response.data
            for contract in response.output_contracts:
                try:
                    data = validate(data, contract, registry=ctx.contracts)
                except ValidationError as exc:
                    raise OutputValidationError(exc) from exc
            response.data = data
        if self._renderer is not None:
            self._renderer.render(ctx, response.data)
        return DispatchOutcome.RENDERED

    # -- runtime ------------------------------------------------------------

    def _build_runtime(self, config: ConfigAccessor, hooks: PluginHookChain | None) -> _Runtime:
        if hooks is None:
            hooks = PluginHookChain(config.xtra(PLUGINS_NAMESPACE) or {})
        contracts = self._explicit_contracts
        if contracts is None:
            contracts = ContractRegistry.from_config(config)
        max_reboots = self._explicit_max_reboots
        if max_reboots is None:
            max_reboots = int(config.xtra(DISPATCH_NAMESPACE, KEY_MAX_REBOOTS, DEFAULT_MAX_REBOOTS))
        return _Runtime(config=config, hooks=hooks, contracts=contracts, max_reboots=max_reboots)


__all__ = [
    "ConfigLoader",
    "Controller",
    "DispatchOutcome",
    "DispatchResult",
    "FlowController",
    "FlowState",
    "TraceEntry",
    "action_callable",
]
