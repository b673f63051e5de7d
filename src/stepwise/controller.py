# controller.py
# Stop/continue policies. A controller is any callable (run) -> ControllerDecision
# and holds no state of its own; it is re-evaluated after every step.

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from stepwise.models import ControllerDecision, StopReason

if TYPE_CHECKING:
    from stepwise.agent import Run

Controller = Callable[["Run"], ControllerDecision]


def max_steps(limit: int) -> Controller:
    """Stop with reason 'maxSteps' once the run holds `limit` steps."""
    if limit < 1:
        raise ValueError("max_steps limit must be >= 1")

    def controller(run: Run) -> ControllerDecision:
        if len(run.steps) >= limit:
            return ControllerDecision.halt(StopReason.MAX_STEPS)
        return ControllerDecision.proceed()

    return controller


def first_of(*controllers: Controller) -> Controller:
    """Combine controllers; the first one that stops decides the reason."""
    if not controllers:
        raise ValueError("first_of needs at least one controller")

    def controller(run: Run) -> ControllerDecision:
        for candidate in controllers:
            decision = candidate(run)
            if decision.stop:
                return decision
        return ControllerDecision.proceed()

    return controller
