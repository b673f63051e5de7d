import pytest
from pydantic import BaseModel

from stepwise.actions import Action, ActionRegistry
from stepwise.agent import Run
from stepwise.models import ActionResult, ErrorKind, StepStatus
from stepwise.steps import ActionStep


class GreetInput(BaseModel):
    name: str


class GreetOutput(BaseModel):
    greeting: str


def make_registry(execute=None, format_result=None):
    calls = []

    def default_execute(input, run):
        calls.append(input)
        return ActionResult(summary=f"Greeted {input.name}.", output=GreetOutput(greeting=f"hi {input.name}"))

    kwargs = {}
    if format_result is not None:
        kwargs["format_result"] = format_result
    action = Action(
        id="greet",
        description="Greet someone.",
        input_schema=GreetInput,
        output_schema=GreetOutput,
        input_example={"name": "{name}"},
        execute=execute or default_execute,
        **kwargs,
    )
    return ActionRegistry([action]), calls


async def dispatch(registry, action_id, raw_input):
    run = Run(None)
    step = run.add_step(ActionStep(run=run, registry=registry, action_id=action_id, raw_input=raw_input))
    await step.execute()
    return step


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def test_registry_rejects_duplicate_ids():
    registry, _ = make_registry()
    with pytest.raises(ValueError, match="already registered"):
        registry.register(registry.get("greet"))


@pytest.mark.parametrize("reserved", ["done", "noop"])
def test_registry_rejects_reserved_ids(reserved):
    with pytest.raises(ValueError, match="reserved"):
        ActionRegistry([Action(id=reserved, description="", input_schema=GreetInput, execute=lambda i, r: None)])


def test_registry_lookup():
    registry, _ = make_registry()
    assert "greet" in registry
    assert "nope" not in registry
    assert registry.ids() == ["greet"]
    assert len(registry) == 1


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_dispatch_success_uses_format_result():
    registry, calls = make_registry(
        format_result=lambda *, summary, output: f"{summary} ({output.greeting})"
    )

    step = await dispatch(registry, "greet", {"name": "Ada"})

    assert step.status is StepStatus.SUCCEEDED
    assert step.summary == "Greeted Ada. (hi Ada)"
    assert step.output == GreetOutput(greeting="hi Ada")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_unknown_action_is_a_failed_step():
    registry, calls = make_registry()

    step = await dispatch(registry, "grete", {"name": "Ada"})

    assert step.status is StepStatus.FAILED
    assert step.error_kind is ErrorKind.UNKNOWN_ACTION
    assert "greet" in step.summary
    assert calls == []


@pytest.mark.asyncio
async def test_invalid_input_never_invokes_execute():
    registry, calls = make_registry()

    step = await dispatch(registry, "greet", {"nom": "Ada"})

    assert step.status is StepStatus.FAILED
    assert step.error_kind is ErrorKind.INVALID_INPUT
    assert "name" in step.summary
    assert calls == []


@pytest.mark.asyncio
async def test_non_object_input_is_invalid_input():
    registry, calls = make_registry()

    step = await dispatch(registry, "greet", "not json at all")

    assert step.error_kind is ErrorKind.INVALID_INPUT
    assert calls == []


@pytest.mark.asyncio
async def test_execute_failure_is_classified():
    def failing(input, run):
        raise OSError("disk full")

    registry, _ = make_registry(execute=failing)

    step = await dispatch(registry, "greet", {"name": "Ada"})

    assert step.status is StepStatus.FAILED
    assert step.error_kind is ErrorKind.EXECUTION_FAILURE
    assert "disk full" in step.summary
    assert "OSError" in step.error


@pytest.mark.asyncio
async def test_async_execute_is_awaited():
    async def execute(input, run):
        return {"summary": "async ok", "output": {"greeting": "hey"}}

    registry, _ = make_registry(execute=execute)

    step = await dispatch(registry, "greet", {"name": "Ada"})

    assert step.status is StepStatus.SUCCEEDED
    assert step.summary == "async ok"
    assert step.output == GreetOutput(greeting="hey")


@pytest.mark.asyncio
async def test_output_schema_violation_is_execution_failure():
    def execute(input, run):
        return ActionResult(summary="bad", output={"unexpected": 1})

    registry, _ = make_registry(execute=execute)

    step = await dispatch(registry, "greet", {"name": "Ada"})

    assert step.error_kind is ErrorKind.EXECUTION_FAILURE


@pytest.mark.asyncio
async def test_execute_receives_the_run():
    seen = []

    def execute(input, run):
        seen.append(run)
        return ActionResult(summary="ok")

    registry, _ = make_registry(execute=execute)
    run = Run({"task": "x"})
    step = run.add_step(ActionStep(run=run, registry=registry, action_id="greet", raw_input={"name": "A"}))
    await step.execute()

    assert seen == [run]
