# run.py
# Entry point. Config and wiring only. No logic lives here.
#
# Swap STEPWISE_MODEL for any OpenRouter-supported model.
# https://openrouter.ai/models

import asyncio
import logging
import sys

from rich.logging import RichHandler

from stepwise.actions import ActionRegistry
from stepwise.agent import Agent
from stepwise.config import load_settings
from stepwise.controller import max_steps
from stepwise.cost import CostCalculator, ModelRates
from stepwise.display import RichConsoleObserver
from stepwise.generator import StepGenerator
from stepwise.observers import LoggingObserver
from stepwise.openrouter import OpenRouterModel
from stepwise.parsing import ReactOutputParser
from stepwise.tools import default_actions

# USD per million tokens (input, output).
RATES = {
    "anthropic/claude-3.5-haiku": ModelRates.per_million(0.80, 4.00),
    "openai/gpt-4o-mini": ModelRates.per_million(0.15, 0.60),
}

DEFAULT_TASK = (
    "Search for the latest Python packaging best practices and save a short "
    "summary to packaging_notes.md."
)


async def _main(task: str) -> None:
    settings = load_settings()

    registry = ActionRegistry(default_actions(settings.workspace))
    generator = StepGenerator(
        model=OpenRouterModel(settings.model, api_key=settings.api_key),
        registry=registry,
        parser=ReactOutputParser(strict=settings.strict_format),
        retry_policy=settings.retry,
    )
    agent = Agent(
        generator=generator,
        controller=max_steps(settings.max_steps),
        observers=[RichConsoleObserver(model=settings.model), LoggingObserver()],
    )

    outcome = await agent.run({"task": task})

    if settings.model in RATES:
        summary = CostCalculator(RATES).summarize(outcome.calls)
        print(f"\n[COST] ${summary.total_cost:.6f} over {summary.calls} call(s), {summary.failed_calls} failed")


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    task = " ".join(sys.argv[1:]) or DEFAULT_TASK
    asyncio.run(_main(task))


if __name__ == "__main__":
    main()
