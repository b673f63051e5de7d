# agent.py
# Run state and the control loop.
#
# Control flow, one step at a time:
#   cancelled? → generator asks the model → step joins the run → step executes
#   → observers notified → fatal? done? controller? → next iteration
#
# A Run belongs to exactly one call of Agent.run() and shares nothing
# mutable with other runs.

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Generic, TypeVar

from stepwise.controller import Controller, max_steps
from stepwise.errors import RunStateError
from stepwise.generator import StepGenerator
from stepwise.models import RecordedCall, RunOutcome, StepStatus, StopReason
from stepwise.observers import CompositeObserver, Observer, ObserverError
from stepwise.steps import Step

logger = logging.getLogger(__name__)

P = TypeVar("P")

DEFAULT_MAX_STEPS = 10


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


class Run(Generic[P]):
    """Run-scoped properties, append-only step history and call ledger."""

    def __init__(self, properties: P, observer: Observer | None = None) -> None:
        self.properties = properties
        self._steps: list[Step] = []
        self._calls: list[RecordedCall] = []
        self._observer = observer or Observer()

    @property
    def steps(self) -> tuple[Step, ...]:
        return tuple(self._steps)

    @property
    def calls(self) -> tuple[RecordedCall, ...]:
        return tuple(self._calls)

    def add_step(self, step: Step) -> Step:
        if step.run is not self:
            raise RunStateError("Step belongs to a different run.")
        if step.status is not StepStatus.PENDING or step.ordinal is not None:
            raise RunStateError(f"Only fresh pending steps can join a run, got {step!r}.")
        if self._steps and not self._steps[-1].status.is_terminal:
            raise RunStateError(f"Step {self._steps[-1].ordinal} is still {self._steps[-1].status.value}.")
        step.ordinal = len(self._steps)
        self._steps.append(step)
        return step

    def record_call(self, call: RecordedCall) -> None:
        self._calls.append(call)
        self._observer.on_model_call_recorded(self, call)


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class Agent:
    """
    Drives the step loop.

    Example:
        agent = Agent(generator=generator, controller=max_steps(20))
        outcome = asyncio.run(agent.run({"task": "Write hello.txt"}))
    """

    def __init__(
        self,
        *,
        generator: StepGenerator,
        controller: Controller | None = None,
        observers: list[Observer] | None = None,
        on_observer_error: Callable[[ObserverError], None] | None = None,
    ) -> None:
        self.generator = generator
        self.controller = controller or max_steps(DEFAULT_MAX_STEPS)
        self.observers = list(observers or [])
        self.on_observer_error = on_observer_error

    async def run(self, properties: Any, *, cancel: asyncio.Event | None = None) -> RunOutcome:
        observer = CompositeObserver(self.observers, on_error=self.on_observer_error)
        run: Run[Any] = Run(properties, observer=observer)
        observer.on_run_started(run)

        reason, error = await self._loop(run, observer, cancel)

        outcome = RunOutcome(
            reason=reason,
            properties=run.properties,
            steps=run.steps,
            calls=run.calls,
            error=error,
            observer_errors=tuple(observer.errors),
        )
        logger.debug("Run stopped: %s after %d step(s)", reason, len(outcome.steps))
        observer.on_run_finished(run, outcome)
        return outcome

    async def _loop(
        self,
        run: Run[Any],
        observer: Observer,
        cancel: asyncio.Event | None,
    ) -> tuple[str, str | None]:
        while True:
            if cancel is not None and cancel.is_set():
                return StopReason.CANCELLED, None

            step = await self.generator.generate_next_step(run)
            run.add_step(step)

            observer.on_step_started(run, step)
            await step.execute()
            observer.on_step_finished(run, step)

            if step.is_fatal():
                return StopReason.ERROR, step.error
            if step.status is StepStatus.SUCCEEDED and step.is_done_step():
                return StopReason.DONE, None

            decision = self.controller(run)
            if decision.stop:
                return decision.reason or StopReason.MAX_STEPS, None


async def run_agent(
    properties: Any,
    *,
    generator: StepGenerator,
    controller: Controller | None = None,
    observers: list[Observer] | None = None,
    on_observer_error: Callable[[ObserverError], None] | None = None,
    cancel: asyncio.Event | None = None,
) -> RunOutcome:
    """One-shot helper around Agent(...).run(...)."""
    agent = Agent(
        generator=generator,
        controller=controller,
        observers=observers,
        on_observer_error=on_observer_error,
    )
    return await agent.run(properties, cancel=cancel)
