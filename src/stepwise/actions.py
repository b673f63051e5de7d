# actions.py
# Action descriptors and the registry that resolves them by id.
# The registry never executes anything itself; ActionStep does the dispatch.

import json
from typing import Any, Callable, Iterator

from pydantic import BaseModel, ConfigDict, Field

from stepwise.errors import UnknownActionError

# Ids the output parser maps onto noop/done steps. No action may claim them.
RESERVED_ACTION_IDS = frozenset({"done", "noop"})


def default_format_result(*, summary: str, output: Any) -> str:
    return summary


class Action(BaseModel):
    """
    A named, schema-validated capability pluggable into the loop.

    `execute(input, run)` receives the validated input model and the Run, and
    returns an ActionResult (or anything that validates as one). It may be a
    plain function or a coroutine function.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(..., min_length=1, description="Unique within a registry.")
    description: str = Field(..., description="Model-facing description.")
    input_schema: type[BaseModel]
    output_schema: type[BaseModel] | None = None
    input_example: dict[str, Any] = Field(default_factory=dict)
    execute: Callable[..., Any]
    format_result: Callable[..., str] = default_format_result

    def example_json(self) -> str:
        return json.dumps(self.input_example, ensure_ascii=False)


class ActionRegistry:
    """Mapping from action id to Action. Ids are unique."""

    def __init__(self, actions: list[Action] | None = None) -> None:
        self._actions: dict[str, Action] = {}
        for action in actions or []:
            self.register(action)

    def register(self, action: Action) -> Action:
        if action.id in RESERVED_ACTION_IDS:
            raise ValueError(f"Action id '{action.id}' is reserved.")
        if action.id in self._actions:
            raise ValueError(f"Action '{action.id}' is already registered.")
        self._actions[action.id] = action
        return action

    def get(self, action_id: str) -> Action:
        try:
            return self._actions[action_id]
        except KeyError:
            available = ", ".join(self._actions) or "(none)"
            raise UnknownActionError(
                summary=(
                    f"Unknown action '{action_id}'. "
                    f"Use one of the available actions: {available}."
                ),
                error=f"action '{action_id}' is not registered",
            ) from None

    def ids(self) -> list[str]:
        return list(self._actions)

    def __contains__(self, action_id: object) -> bool:
        return action_id in self._actions

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions.values())

    def __len__(self) -> int:
        return len(self._actions)
