"""Flow signal algebra returned by policies, hooks and controller actions.

Signals are ordinary return values. The dispatch loop inspects them; they never
travel through the exception channel, so generic ``except`` clauses cannot
swallow them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final


class FlowSignal(StrEnum):
    """What the dispatcher does next."""

    CONTINUE = "continue"
    HALT = "halt"
    STOP = "stop"
    QUIT = "quit"
    REBOOT = "reboot"
    RESTART = "restart"


@dataclass(frozen=True, slots=True)
class Route:
    """Controller/action pair produced by the router."""

    controller: str
    action: str

    def __post_init__(self) -> None:
        if not isinstance(self.controller, str) or not self.controller.strip():
            raise ValueError("controller must be a non-empty string")
        if not isinstance(self.action, str) or not self.action.strip():
            raise ValueError("action must be a non-empty string")
        object.__setattr__(self, "controller", self.controller.strip())
        object.__setattr__(self, "action", self.action.strip())

    def __str__(self) -> str:
        return f"{self.controller}/{self.action}"


@dataclass(frozen=True, slots=True)
class Flow:
    """Outcome of one policy, hook or action step.

    ``route`` is only meaningful with ``FlowSignal.REBOOT``: it names the
    controller/action the dispatcher forwards to. ``None`` re-dispatches the
    current route.
    """

    signal: FlowSignal = FlowSignal.CONTINUE
    route: Route | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "signal", FlowSignal(self.signal))
        if self.route is not None and self.signal is not FlowSignal.REBOOT:
            raise ValueError("only REBOOT flows may carry a route")

    @property
    def is_continue(self) -> bool:
        return self.signal is FlowSignal.CONTINUE

    @classmethod
    def proceed(cls) -> Flow:
        return CONTINUE

    @classmethod
    def halt(cls) -> Flow:
        return HALT

    @classmethod
    def stop(cls) -> Flow:
        return STOP

    @classmethod
    def quit(cls) -> Flow:
        return QUIT

    @classmethod
    def restart(cls) -> Flow:
        return RESTART

    @classmethod
    def reboot(cls, controller: str | None = None, action: str | None = None) -> Flow:
        """Forward internally to ``controller``/``action`` (or re-run the current route)."""

        if controller is None and action is None:
            return cls(FlowSignal.REBOOT)
        if controller is None or action is None:
            raise ValueError("reboot needs both controller and action, or neither")
        return cls(FlowSignal.REBOOT, Route(controller, action))


CONTINUE: Final[Flow] = Flow(FlowSignal.CONTINUE)
HALT: Final[Flow] = Flow(FlowSignal.HALT)
STOP: Final[Flow] = Flow(FlowSignal.STOP)
QUIT: Final[Flow] = Flow(FlowSignal.QUIT)
RESTART: Final[Flow] = Flow(FlowSignal.RESTART)


def as_flow(value: object) -> Flow:
    """Normalize a step's return value: ``None`` means CONTINUE."""

    if value is None:
        return CONTINUE
    if isinstance(value, Flow):
        return value
    if isinstance(value, FlowSignal):
        if value is FlowSignal.REBOOT:
            return Flow(FlowSignal.REBOOT)
        return Flow(value)
    raise TypeError(f"expected Flow, FlowSignal or None, got {type(value).__name__}")


__all__ = [
    "CONTINUE",
    "HALT",
    "QUIT",
    "RESTART",
    "STOP",
    "Flow",
    "FlowSignal",
    "Route",
    "as_flow",
]
