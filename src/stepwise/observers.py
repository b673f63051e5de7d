# observers.py
# Lifecycle notification sinks.
#
# Observers only watch. CompositeObserver fans every event out to its
# members in registration order and isolates their failures: a hook that
# raises is logged and recorded, and the loop carries on untouched.

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from pydantic import BaseModel, ConfigDict

from stepwise.models import ErrorKind, RecordedCall, RunOutcome

if TYPE_CHECKING:
    from stepwise.agent import Run
    from stepwise.steps import Step

logger = logging.getLogger(__name__)


class Observer:
    """Base class with no-op hooks. Override the ones you need."""

    def on_run_started(self, run: Run) -> None:
        pass

    def on_step_started(self, run: Run, step: Step) -> None:
        pass

    def on_step_finished(self, run: Run, step: Step) -> None:
        pass

    def on_model_call_recorded(self, run: Run, call: RecordedCall) -> None:
        pass

    def on_run_finished(self, run: Run, outcome: RunOutcome) -> None:
        pass


class ObserverError(BaseModel):
    """Report of one failed observer hook."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    observer: Any
    hook: str
    error: str
    kind: ErrorKind = ErrorKind.OBSERVER_ERROR


class CompositeObserver(Observer):
    def __init__(
        self,
        observers: list[Observer] | None = None,
        on_error: Callable[[ObserverError], None] | None = None,
    ) -> None:
        self.observers: list[Observer] = list(observers or [])
        self.errors: list[ObserverError] = []
        self._on_error = on_error

    def add(self, observer: Observer) -> None:
        self.observers.append(observer)

    def _dispatch(self, hook: str, *args: Any) -> None:
        for observer in self.observers:
            method = getattr(observer, hook, None)
            if method is None:
                continue
            try:
                method(*args)
            except Exception as exc:
                logger.exception("Observer %r failed in %s", observer, hook)
                report = ObserverError(observer=observer, hook=hook, error=repr(exc))
                self.errors.append(report)
                if self._on_error is not None:
                    try:
                        self._on_error(report)
                    except Exception:
                        logger.exception("Observer error callback failed")

    def on_run_started(self, run: Run) -> None:
        self._dispatch("on_run_started", run)

    def on_step_started(self, run: Run, step: Step) -> None:
        self._dispatch("on_step_started", run, step)

    def on_step_finished(self, run: Run, step: Step) -> None:
        self._dispatch("on_step_finished", run, step)

    def on_model_call_recorded(self, run: Run, call: RecordedCall) -> None:
        self._dispatch("on_model_call_recorded", run, call)

    def on_run_finished(self, run: Run, outcome: RunOutcome) -> None:
        self._dispatch("on_run_finished", run, outcome)


class LoggingObserver(Observer):
    """Writes lifecycle events to the `stepwise.run` logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logging.getLogger("stepwise.run")

    def on_run_started(self, run: Run) -> None:
        self._log.info("Run started")

    def on_step_started(self, run: Run, step: Step) -> None:
        self._log.info("Step %d started (%s)", step.ordinal, step.type)

    def on_step_finished(self, run: Run, step: Step) -> None:
        if step.error_kind is not None:
            self._log.warning(
                "Step %d %s [%s]: %s", step.ordinal, step.status.value, step.error_kind.value, step.error
            )
        else:
            self._log.info("Step %d %s", step.ordinal, step.status.value)

    def on_model_call_recorded(self, run: Run, call: RecordedCall) -> None:
        self._log.debug(
            "Model call %s attempt %d success=%s tokens=%d/%d",
            call.model,
            call.attempt,
            call.success,
            call.usage.input_tokens,
            call.usage.output_tokens,
        )

    def on_run_finished(self, run: Run, outcome: RunOutcome) -> None:
        self._log.info(
            "Run finished: reason=%s steps=%d calls=%d",
            outcome.reason,
            len(outcome.steps),
            len(outcome.calls),
        )
