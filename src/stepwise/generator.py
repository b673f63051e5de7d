# generator.py
# Step generator: asks the model what to do next and turns the answer into a Step.
#
# Unparseable output becomes a failed step with a corrective summary so the
# loop heals itself on the next turn. A model call that fails for good
# becomes a fatal step, which ends the run.

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

from stepwise.actions import ActionRegistry
from stepwise.errors import ModelCallError, OutputFormatError
from stepwise.models import ModelResponse, RecordedCall
from stepwise.parsing import NoopIntent, ReactOutputParser
from stepwise.prompts import ReactPromptBuilder
from stepwise.retry import RetryPolicy, call_with_retry, is_retryable_error
from stepwise.steps import ActionStep, FailedStep, NoopStep, Step

if TYPE_CHECKING:
    from stepwise.agent import Run

logger = logging.getLogger(__name__)

ModelCall = Callable[[Any], Awaitable[ModelResponse]]
PromptBuilder = Callable[[Any, Sequence[Step]], Any]


class StepGenerator:
    """
    Decides the next step from the run's full history.

    Example:
        generator = StepGenerator(
            model=OpenRouterModel("anthropic/claude-3.5-haiku"),
            registry=ActionRegistry(default_actions("./workspace")),
        )
    """

    def __init__(
        self,
        *,
        model: ModelCall,
        registry: ActionRegistry,
        prompt_builder: PromptBuilder | None = None,
        parser: ReactOutputParser | None = None,
        retry_policy: RetryPolicy | None = None,
        classify: Callable[[BaseException], bool] = is_retryable_error,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        model_name: str | None = None,
    ) -> None:
        self.model = model
        self.registry = registry
        self.prompt_builder = prompt_builder or ReactPromptBuilder(registry)
        self.parser = parser or ReactOutputParser()
        self.retry_policy = retry_policy or RetryPolicy()
        self._classify = classify
        self._sleep = sleep
        self.model_name = model_name or getattr(model, "model", None)
        if not self.model_name:
            # Failed attempts are recorded under this name.
            raise ValueError("model_name is required when the model has no `model` attribute.")

    def _recorder(self, run: Run, prompt: Any) -> Callable[[int, Any, BaseException | None], None]:
        def record(attempt: int, response: ModelResponse | None, error: BaseException | None) -> None:
            if response is not None:
                call = RecordedCall(
                    model=response.model or self.model_name,
                    prompt=prompt,
                    response=response.text,
                    usage=response.usage,
                    success=True,
                    attempt=attempt,
                )
            else:
                call = RecordedCall(
                    model=self.model_name,
                    prompt=prompt,
                    success=False,
                    error=repr(error),
                    attempt=attempt,
                )
            run.record_call(call)

        return record

    async def generate_next_step(self, run: Run) -> Step:
        prompt = self.prompt_builder(run.properties, run.steps)

        try:
            response = await call_with_retry(
                lambda: self.model(prompt),
                policy=self.retry_policy,
                on_attempt=self._recorder(run, prompt),
                classify=self._classify,
                sleep=self._sleep,
            )
        except ModelCallError as exc:
            logger.error("Model call failed after %d attempt(s): %s", exc.attempts, exc)
            return FailedStep(
                run=run,
                summary=f"The model could not be reached: {exc}",
                error=str(exc),
                error_kind=exc.kind,
                fatal=True,
                type="model-call",
            )

        try:
            intent = self.parser.parse(response.text)
        except OutputFormatError as exc:
            logger.info("Model output rejected: %s", exc.error)
            return FailedStep(
                run=run,
                summary=exc.summary,
                error=exc.error,
                error_kind=exc.kind,
                type="format-error",
            )

        if isinstance(intent, NoopIntent):
            return NoopStep(run=run, summary=intent.summary, is_done_step=intent.done)

        return ActionStep(
            run=run,
            registry=self.registry,
            action_id=intent.action_id,
            raw_input=intent.input,
            thought=intent.thought,
        )
