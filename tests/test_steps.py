import pytest

from stepwise.agent import Run
from stepwise.errors import RunStateError, StepStateError
from stepwise.models import ErrorKind, StepStatus
from stepwise.steps import FailedStep, NoopStep, Step

# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class ExplodingStep(Step):
    async def _execute(self):
        raise RuntimeError("kaboom")


@pytest.mark.asyncio
async def test_noop_step_lifecycle():
    run = Run({"task": "t"})
    step = run.add_step(NoopStep(run=run, summary="thinking"))

    assert step.status is StepStatus.PENDING
    assert step.ordinal == 0

    result = await step.execute()

    assert result.type == "succeeded"
    assert step.status is StepStatus.SUCCEEDED
    assert step.summary == "thinking"
    assert step.type == "noop"
    assert step.is_done_step() is False


@pytest.mark.asyncio
async def test_done_step_flag_and_type():
    run = Run(None)
    step = NoopStep(run=run, summary="all done", is_done_step=True)
    await step.execute()
    assert step.type == "done"
    assert step.is_done_step() is True


@pytest.mark.asyncio
async def test_exceptions_never_escape_execute():
    run = Run(None)
    step = ExplodingStep(type="custom", run=run)

    result = await step.execute()

    assert result.type == "failed"
    assert step.status is StepStatus.FAILED
    assert step.error_kind is ErrorKind.EXECUTION_FAILURE
    assert "kaboom" in step.summary


@pytest.mark.asyncio
async def test_re_executing_a_step_fails_fast():
    run = Run(None)
    step = NoopStep(run=run, summary="once")
    await step.execute()

    with pytest.raises(StepStateError, match="already executed"):
        await step.execute()

    assert step.status is StepStatus.SUCCEEDED
    assert step.summary == "once"


@pytest.mark.asyncio
async def test_failed_step_is_fatal_when_flagged():
    run = Run(None)
    step = FailedStep(
        run=run,
        summary="model unreachable",
        error="boom",
        error_kind=ErrorKind.MODEL_CALL_EXHAUSTED,
        fatal=True,
    )
    await step.execute()
    assert step.status is StepStatus.FAILED
    assert step.is_fatal() is True
    assert step.error_kind is ErrorKind.MODEL_CALL_EXHAUSTED


# ---------------------------------------------------------------------------
# Run history
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_run_assigns_gapless_ordinals():
    run = Run(None)
    for i in range(3):
        step = run.add_step(NoopStep(run=run, summary=str(i)))
        await step.execute()

    assert [s.ordinal for s in run.steps] == [0, 1, 2]


def test_run_refuses_step_while_previous_is_pending():
    run = Run(None)
    run.add_step(NoopStep(run=run, summary="first"))

    with pytest.raises(RunStateError, match="still pending"):
        run.add_step(NoopStep(run=run, summary="second"))


def test_run_refuses_foreign_step():
    run = Run(None)
    other = Run(None)
    with pytest.raises(RunStateError):
        run.add_step(NoopStep(run=other, summary="x"))


def test_run_steps_are_a_snapshot():
    run = Run(None)
    run.add_step(NoopStep(run=run, summary="x"))
    snapshot = run.steps
    assert isinstance(snapshot, tuple)
    assert len(snapshot) == 1
