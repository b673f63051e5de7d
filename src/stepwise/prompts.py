# prompts.py
# Default prompt assembly: (run properties, step history) → chat messages.
# The loop treats the returned payload as opaque and only forwards it.

import json
from typing import Any, Sequence

from pydantic import BaseModel

from stepwise.actions import ActionRegistry
from stepwise.parsing import DONE_ACTION_ID, NOOP_ACTION_ID

REACT_SYSTEM_PROMPT = """\
You are an autonomous agent that works towards a task one action at a time.

For every turn, respond in EXACTLY this format with no other text:

Thought: <your reasoning about the task and the results so far>
Action: <action id>
Args: <valid JSON object matching the action's input>

Available actions and example arguments:
{actions}
- {noop}: {{"summary": "<note to self>"}}  (think without acting)
- {done}: {{"summary": "<final answer>"}}  (the task is complete)

Results of earlier steps are listed in order. When a step failed, read its \
message and correct your next response.\
"""


def _render_properties(properties: Any) -> str:
    if isinstance(properties, BaseModel):
        return properties.model_dump_json(indent=2)
    if isinstance(properties, (dict, list)):
        return json.dumps(properties, indent=2, ensure_ascii=False, default=str)
    return str(properties)


def _render_history(steps: Sequence[Any]) -> str:
    lines: list[str] = []
    for step in steps:
        lines.append(f"-- Step {step.ordinal} [{step.type}] {step.status.value}")
        lines.append(step.summary or "")
    return "\n".join(lines)


class ReactPromptBuilder:
    """Builds the chat messages for the next model call."""

    def __init__(self, registry: ActionRegistry, system_prompt: str = REACT_SYSTEM_PROMPT) -> None:
        self._registry = registry
        self._system_prompt = system_prompt

    def system_message(self) -> str:
        actions = "\n".join(
            f"- {action.id}: {action.example_json()}  ({action.description})"
            for action in self._registry
        )
        return self._system_prompt.format(actions=actions, noop=NOOP_ACTION_ID, done=DONE_ACTION_ID)

    def __call__(self, properties: Any, steps: Sequence[Any]) -> list[dict[str, str]]:
        task = f"Task:\n{_render_properties(properties)}"
        if steps:
            task += f"\n\nSteps so far:\n{_render_history(steps)}"
        else:
            task += "\n\nNo steps taken yet."
        return [
            {"role": "system", "content": self.system_message()},
            {"role": "user", "content": task},
        ]
