# tools.py
# Example actions. Each factory returns an Action; the loop only ever
# reaches these through an ActionRegistry.

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from stepwise.actions import Action
from stepwise.models import ActionResult

if TYPE_CHECKING:
    import httpx

SUMMARY_LIMIT = 4000


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class EchoInput(BaseModel):
    message: str


class SearchInput(BaseModel):
    query: str = Field(..., min_length=1)
    max_results: int = Field(4, ge=1, le=20)


class SearchHit(BaseModel):
    title: str = ""
    body: str = ""
    href: str = ""


class SearchOutput(BaseModel):
    results: list[SearchHit]


class SummarizeInput(BaseModel):
    text: str


class WriteFileInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(..., alias="filePath", min_length=1)
    content: str


class WriteFileOutput(BaseModel):
    content: str


class HttpPostInput(BaseModel):
    url: str = Field(..., min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)


class HttpPostOutput(BaseModel):
    status_code: int
    size: int


# ---------------------------------------------------------------------------
# echo / summarize
# ---------------------------------------------------------------------------


def echo() -> Action:
    return Action(
        id="echo",
        description="Repeat a message back.",
        input_schema=EchoInput,
        input_example={"message": "{text to repeat}"},
        execute=lambda input, run: ActionResult(summary=input.message, output=input.message),
    )


def _summarize(input: SummarizeInput, run: Any) -> ActionResult:
    text = input.text.strip()
    if len(text) > SUMMARY_LIMIT:
        text = text[:SUMMARY_LIMIT]
    return ActionResult(summary=text, output=text)


def summarize() -> Action:
    return Action(
        id="summarize",
        description=f"Condense text to at most {SUMMARY_LIMIT} characters.",
        input_schema=SummarizeInput,
        input_example={"text": "{text to condense}"},
        execute=_summarize,
    )


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


def _search(input: SearchInput, run: Any) -> ActionResult:
    from ddgs import DDGS

    query = input.query.strip()
    # Coerce the generator to a list to ensure actual execution
    hits = [SearchHit.model_validate(r) for r in DDGS().text(query, max_results=input.max_results)]
    if not hits:
        return ActionResult(summary=f"No results found for '{query}'.", output=SearchOutput(results=[]))
    return ActionResult(summary=f"Search results for '{query}'.", output=SearchOutput(results=hits))


def _format_search(*, summary: str, output: SearchOutput) -> str:
    lines = [f"## {summary}"]
    for hit in output.results:
        lines.append(f"[{hit.title or 'No Title'}]\n{hit.body}\nSource: {hit.href}")
    return "\n\n".join(lines)


def search() -> Action:
    return Action(
        id="search",
        description="Search the web.",
        input_schema=SearchInput,
        output_schema=SearchOutput,
        input_example={"query": "{search query}"},
        execute=_search,
        format_result=_format_search,
    )


# ---------------------------------------------------------------------------
# write-file
# ---------------------------------------------------------------------------


def _resolve_in_workspace(workspace_path: str, file_path: str) -> Path:
    workspace = Path(workspace_path).resolve()
    target = (workspace / file_path).resolve()
    if target != workspace and workspace not in target.parents:
        raise PermissionError(f"'{file_path}' resolves outside the workspace.")
    return target


def execute_write_file(workspace_path: str):
    def execute(input: WriteFileInput, run: Any) -> ActionResult:
        target = _resolve_in_workspace(workspace_path, input.file_path)
        os.makedirs(target.parent, exist_ok=True)
        target.write_text(input.content, encoding="utf-8")
        new_content = target.read_text(encoding="utf-8")
        return ActionResult(
            summary=f"Replaced the content of file {input.file_path}.",
            output=WriteFileOutput(content=new_content),
        )

    return execute


def _format_write_file(*, summary: str, output: WriteFileOutput) -> str:
    return f"## {summary}\n### New file content\n{output.content}"


def write_file(workspace_path: str, id: str = "write-file") -> Action:
    return Action(
        id=id,
        description="Write file content.",
        input_schema=WriteFileInput,
        output_schema=WriteFileOutput,
        input_example={
            "filePath": "{file path relative to the workspace folder}",
            "content": "{new file content}",
        },
        execute=execute_write_file(workspace_path),
        format_result=_format_write_file,
    )


# ---------------------------------------------------------------------------
# http-post
# ---------------------------------------------------------------------------


def http_post(client: "httpx.AsyncClient | None" = None, timeout: float = 10.0) -> Action:
    import httpx

    async def execute(input: HttpPostInput, run: Any) -> ActionResult:
        if client is not None:
            response = await client.post(input.url, json=input.payload)
        else:
            async with httpx.AsyncClient(timeout=timeout) as session:
                response = await session.post(input.url, json=input.payload)
        return ActionResult(
            summary=f"POST {input.url} → {response.status_code} ({len(response.content)} bytes)",
            output=HttpPostOutput(status_code=response.status_code, size=len(response.content)),
        )

    return Action(
        id="http-post",
        description="POST a JSON payload to a URL.",
        input_schema=HttpPostInput,
        output_schema=HttpPostOutput,
        input_example={"url": "{url}", "payload": {}},
        execute=execute,
    )


def default_actions(workspace_path: str) -> list[Action]:
    return [echo(), search(), summarize(), write_file(workspace_path), http_post()]
