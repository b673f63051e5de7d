# models.py
# Data contracts for the step loop.
# No business logic lives here: pure schema and validation.

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.SUCCEEDED, StepStatus.FAILED)


class ErrorKind(str, Enum):
    """Classification attached to every failed step result."""

    UNKNOWN_ACTION = "unknown_action"
    INVALID_INPUT = "invalid_input"
    EXECUTION_FAILURE = "execution_failure"
    FORMAT_ERROR = "format_error"
    MODEL_CALL_EXHAUSTED = "model_call_exhausted"
    MODEL_CALL_FAILED = "model_call_failed"
    OBSERVER_ERROR = "observer_error"


class StopReason:
    MAX_STEPS = "maxSteps"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"


class StepResult(BaseModel):
    """Outcome of a single step. Recorded exactly once per step."""

    model_config = ConfigDict(frozen=True)

    type: Literal["succeeded", "failed"]
    summary: str = Field(..., description="Text shown to the model in later prompts.")
    output: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def succeeded(cls, summary: str, output: Any = None) -> "StepResult":
        return cls(type="succeeded", summary=summary, output=output)

    @classmethod
    def failed(cls, summary: str, error: str, error_kind: ErrorKind) -> "StepResult":
        return cls(type="failed", summary=summary, error=error, error_kind=error_kind)


class ActionResult(BaseModel):
    """What an action's execute function hands back to the step."""

    summary: str = Field(..., description="Seed text for the action's result formatter.")
    output: Any = None


class TokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0


class ModelResponse(BaseModel):
    """Return value of the model-call collaborator."""

    text: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str | None = Field(default=None, description="Model id that served the call.")


class RecordedCall(BaseModel):
    """Immutable ledger entry for one model invocation attempt."""

    model_config = ConfigDict(frozen=True)

    model: str
    prompt: Any = Field(..., description="Prompt payload exactly as sent.")
    response: str | None = None
    usage: TokenUsage = Field(default_factory=TokenUsage)
    success: bool
    error: str | None = None
    attempt: int = Field(..., ge=1, description="1-based attempt number within one retried call.")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ControllerDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    stop: bool
    reason: str | None = None

    @classmethod
    def proceed(cls) -> "ControllerDecision":
        return cls(stop=False)

    @classmethod
    def halt(cls, reason: str) -> "ControllerDecision":
        return cls(stop=True, reason=reason)


class RunOutcome(BaseModel):
    """Final state of a run: why it stopped plus everything it did."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    reason: str
    properties: Any = None
    steps: tuple[Any, ...] = ()
    calls: tuple[RecordedCall, ...] = ()
    error: str | None = None
    observer_errors: tuple[Any, ...] = Field(default=(), description="Observer hook failures, in order.")
