# parsing.py
# Turns raw model text into an intent the generator can build a step from.
#
# Expected format:
#
#   Thought: <reasoning>
#   Action: <action id | done | noop>
#   Args: <JSON object>
#
# `strict` decides where a bad Args payload lands: strict parsers reject it
# as a format error, lenient ones forward it to schema validation, where it
# surfaces as invalid input.

import json
import re
from typing import Any

from pydantic import BaseModel, Field

from stepwise.errors import OutputFormatError

DONE_ACTION_ID = "done"
NOOP_ACTION_ID = "noop"

_THOUGHT_RE = re.compile(r"Thought:\s*(.+?)(?=\n\s*Action:|\Z)", re.DOTALL)
_ACTION_RE = re.compile(r"^\s*Action:\s*([\w.\-]+)", re.MULTILINE)
_ARGS_RE = re.compile(r"Args:\s*(.*)\Z", re.DOTALL)
_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```\s*$")
_DECODER = json.JSONDecoder(strict=False)

FORMAT_HINT = (
    "Respond in EXACTLY this format:\n"
    "Thought: <your reasoning>\n"
    "Action: <action id>\n"
    'Args: <JSON object, e.g. {"key": "value"}>'
)


class ActionIntent(BaseModel):
    action_id: str
    input: Any = Field(default_factory=dict)
    thought: str | None = None


class NoopIntent(BaseModel):
    summary: str
    done: bool = False


def _decode(raw: str) -> Any:
    """Decode the leading JSON value; trailing chatter is ignored."""
    try:
        value, _ = _DECODER.raw_decode(raw)
    except RecursionError:
        raise json.JSONDecodeError("Args nested too deeply", raw, 0) from None
    return value


def _strip_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = _FENCE_OPEN_RE.sub("", raw)
        raw = _FENCE_CLOSE_RE.sub("", raw)
    return raw.strip()


class ReactOutputParser:
    """Parses Thought/Action/Args responses."""

    def __init__(self, strict: bool = True) -> None:
        self.strict = strict

    def parse(self, text: str) -> ActionIntent | NoopIntent:
        action_match = _ACTION_RE.search(text or "")
        if not action_match:
            raise OutputFormatError(
                summary=f"Your last response could not be parsed: no 'Action:' line found.\n{FORMAT_HINT}",
                error=f"no Action line in model output: {text!r}",
            )

        action_id = action_match.group(1).strip()
        thought_match = _THOUGHT_RE.search(text)
        thought = thought_match.group(1).strip() if thought_match else None

        args_match = _ARGS_RE.search(text, action_match.end())
        raw_args = _strip_fences(args_match.group(1)) if args_match else None

        if action_id in (DONE_ACTION_ID, NOOP_ACTION_ID):
            return self._noop_intent(action_id, thought, raw_args)

        return ActionIntent(action_id=action_id, input=self._parse_args(raw_args), thought=thought)

    def _parse_args(self, raw_args: str | None) -> Any:
        if raw_args is None or raw_args == "":
            if self.strict:
                raise OutputFormatError(
                    summary=f"Your last response had no 'Args:' line.\n{FORMAT_HINT}",
                    error="missing Args",
                )
            return {}

        try:
            args = _decode(raw_args)
        except json.JSONDecodeError as exc:
            if self.strict:
                raise OutputFormatError(
                    summary=f"The Args of your last response are not valid JSON ({exc.msg}).\n{FORMAT_HINT}",
                    error=f"malformed Args JSON: {exc}",
                ) from exc
            return raw_args

        if not isinstance(args, dict) and self.strict:
            raise OutputFormatError(
                summary=f"The Args of your last response must be a JSON object.\n{FORMAT_HINT}",
                error=f"Args is a {type(args).__name__}, not an object",
            )
        return args

    def _noop_intent(self, action_id: str, thought: str | None, raw_args: str | None) -> NoopIntent:
        summary = None
        if raw_args:
            try:
                args = _decode(raw_args)
            except json.JSONDecodeError:
                args = None
            if isinstance(args, dict) and isinstance(args.get("summary"), str):
                summary = args["summary"]
        if not summary:
            summary = thought or ("Finished." if action_id == DONE_ACTION_ID else "Thinking.")
        return NoopIntent(summary=summary, done=action_id == DONE_ACTION_ID)
