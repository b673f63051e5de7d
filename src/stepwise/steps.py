# steps.py
# Step state machine: pending → running → {succeeded | failed}.
#
# Every status change goes through Step._advance(). execute() is the only
# public way to move a step forward, and it never lets an exception escape:
# whatever the step's own logic raises becomes a failed StepResult.

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from stepwise.actions import ActionRegistry
from stepwise.errors import (
    ActionExecutionError,
    InvalidActionInputError,
    StepError,
    StepStateError,
)
from stepwise.models import ActionResult, ErrorKind, StepResult, StepStatus

if TYPE_CHECKING:
    from stepwise.agent import Run

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.RUNNING}),
    StepStatus.RUNNING: frozenset({StepStatus.SUCCEEDED, StepStatus.FAILED}),
    StepStatus.SUCCEEDED: frozenset(),
    StepStatus.FAILED: frozenset(),
}


# ---------------------------------------------------------------------------
# Base step
# ---------------------------------------------------------------------------


class Step:
    """
    One iteration of the loop.

    Subclasses implement _execute() and return a StepResult or raise. The
    ordinal is assigned by the Run when it accepts the step.
    """

    def __init__(self, *, type: str, run: Run) -> None:
        self.type = type
        self.run = run
        self.ordinal: int | None = None
        self._status = StepStatus.PENDING
        self._result: StepResult | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> StepStatus:
        return self._status

    @property
    def result(self) -> StepResult | None:
        return self._result

    @property
    def summary(self) -> str | None:
        return self._result.summary if self._result else None

    @property
    def output(self) -> Any:
        return self._result.output if self._result else None

    @property
    def error(self) -> str | None:
        return self._result.error if self._result else None

    @property
    def error_kind(self) -> ErrorKind | None:
        return self._result.error_kind if self._result else None

    def _advance(self, status: StepStatus) -> None:
        if status not in _TRANSITIONS[self._status]:
            raise StepStateError(
                f"Step {self.ordinal} ({self.type}) cannot move from "
                f"{self._status.value} to {status.value}."
            )
        self._status = status

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def execute(self) -> StepResult:
        if self._status is not StepStatus.PENDING:
            raise StepStateError(
                f"Step {self.ordinal} ({self.type}) was already executed "
                f"(status={self._status.value})."
            )
        self._advance(StepStatus.RUNNING)

        try:
            result = await self._execute()
        except StepError as exc:
            result = StepResult.failed(summary=exc.summary, error=exc.error, error_kind=exc.kind)
        except Exception as exc:
            logger.debug("Step %s raised", self.ordinal, exc_info=True)
            result = StepResult.failed(
                summary=f"Step failed: {exc}",
                error=repr(exc),
                error_kind=ErrorKind.EXECUTION_FAILURE,
            )

        self._result = result
        self._advance(StepStatus.SUCCEEDED if result.type == "succeeded" else StepStatus.FAILED)
        return result

    async def _execute(self) -> StepResult:
        raise NotImplementedError

    def is_done_step(self) -> bool:
        return False

    def is_fatal(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} #{self.ordinal} type={self.type!r} status={self._status.value}>"


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class NoopStep(Step):
    """Succeeds with a fixed summary. With is_done_step=True it ends the run."""

    def __init__(
        self,
        *,
        run: Run,
        summary: str,
        is_done_step: bool = False,
        type: str | None = None,
    ) -> None:
        super().__init__(type=type or ("done" if is_done_step else "noop"), run=run)
        self._summary = summary
        self._is_done_step = is_done_step

    async def _execute(self) -> StepResult:
        return StepResult.succeeded(self._summary)

    def is_done_step(self) -> bool:
        return self._is_done_step


class FailedStep(Step):
    """
    A step whose failure is already known when it is generated: unparseable
    model output, or a model call that failed for good (fatal=True).
    """

    def __init__(
        self,
        *,
        run: Run,
        summary: str,
        error: str,
        error_kind: ErrorKind,
        fatal: bool = False,
        type: str = "error",
    ) -> None:
        super().__init__(type=type, run=run)
        self._failure = StepResult.failed(summary=summary, error=error, error_kind=error_kind)
        self._fatal = fatal

    async def _execute(self) -> StepResult:
        return self._failure

    def is_fatal(self) -> bool:
        return self._fatal


class ActionStep(Step):
    """Dispatches one proposed (action_id, raw_input) through the registry."""

    def __init__(
        self,
        *,
        run: Run,
        registry: ActionRegistry,
        action_id: str,
        raw_input: Any,
        thought: str | None = None,
    ) -> None:
        super().__init__(type="action", run=run)
        self.registry = registry
        self.action_id = action_id
        self.raw_input = raw_input
        self.thought = thought

    async def _execute(self) -> StepResult:
        action = self.registry.get(self.action_id)

        try:
            validated = action.input_schema.model_validate(self.raw_input)
        except ValidationError as exc:
            raise InvalidActionInputError(
                summary=(
                    f"Invalid input for action '{action.id}': {_describe_validation(exc)}. "
                    f"Expected input like: {action.example_json()}"
                ),
                error=str(exc),
            ) from exc

        try:
            if inspect.iscoroutinefunction(action.execute):
                result = await action.execute(validated, self.run)
            else:
                # Plain functions run in a worker thread.
                result = await asyncio.to_thread(action.execute, validated, self.run)
            if inspect.isawaitable(result):
                result = await result
            if not isinstance(result, ActionResult):
                result = ActionResult.model_validate(result)
            output = _check_output(action.output_schema, result.output)
        except StepError:
            raise
        except Exception as exc:
            raise ActionExecutionError(
                summary=f"Action '{action.id}' failed: {exc}",
                error=repr(exc),
            ) from exc

        summary = action.format_result(summary=result.summary, output=output)
        return StepResult.succeeded(summary=summary, output=output)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _describe_validation(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "input"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


def _check_output(schema: type[BaseModel] | None, output: Any) -> Any:
    if schema is None or output is None:
        return output
    if isinstance(output, schema):
        return output
    return schema.model_validate(output)
