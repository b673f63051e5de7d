# errors.py
# Exception hierarchy for the step loop.
#
# StepError subclasses are recovered inside Step.execute() and turned into
# failed steps the model can read. ModelCallError subclasses end the run.

from stepwise.models import ErrorKind


# ---------------------------------------------------------------------------
# Driver bugs
# ---------------------------------------------------------------------------


class StepStateError(RuntimeError):
    """Raised on an illegal step transition, e.g. executing a step twice."""


class RunStateError(RuntimeError):
    """Raised when a run's append-only history would be violated."""


# ---------------------------------------------------------------------------
# Recoverable step failures
# ---------------------------------------------------------------------------


class StepError(Exception):
    """Base for failures that become a failed step instead of a crash."""

    kind: ErrorKind = ErrorKind.EXECUTION_FAILURE

    def __init__(self, summary: str, error: str | None = None) -> None:
        super().__init__(error or summary)
        self.summary = summary
        self.error = error or summary


class UnknownActionError(StepError):
    kind = ErrorKind.UNKNOWN_ACTION


class InvalidActionInputError(StepError):
    kind = ErrorKind.INVALID_INPUT


class ActionExecutionError(StepError):
    kind = ErrorKind.EXECUTION_FAILURE


class OutputFormatError(StepError):
    """Raised when model output does not map onto any recognised intent."""

    kind = ErrorKind.FORMAT_ERROR


# ---------------------------------------------------------------------------
# Model calls
# ---------------------------------------------------------------------------


class RetryableModelError(Exception):
    """Raised by a model collaborator for transient failures (rate limits, 5xx)."""


class FatalModelError(Exception):
    """Raised by a model collaborator for failures that must not be retried."""


class ModelCallError(Exception):
    """A model call failed for good. Always fatal to the run."""

    kind: ErrorKind = ErrorKind.MODEL_CALL_FAILED

    def __init__(self, message: str, attempts: int, last_error: BaseException | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ModelCallFailedError(ModelCallError):
    """The model call raised a non-retryable error."""


class ModelCallTimeoutError(ModelCallFailedError):
    """The model call exceeded its per-attempt deadline."""


class ModelCallExhaustedError(ModelCallError):
    kind = ErrorKind.MODEL_CALL_EXHAUSTED


# ---------------------------------------------------------------------------
# Cost accounting
# ---------------------------------------------------------------------------


class UnknownModelRateError(KeyError):
    """Raised when a recorded call names a model absent from the rate table."""
