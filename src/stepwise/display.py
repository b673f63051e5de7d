# display.py
# Terminal rendering of run lifecycle events.
#
# This module owns presentation entirely. The loop never formats strings for
# the terminal; RichConsoleObserver receives events and draws them.
#
# Colour language:
#   cyan    — run scaffolding
#   blue    — model calls
#   green   — success / confirmed
#   red     — failures, halts
#   magenta — step internals (thought / action / summary)

import json

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from stepwise.models import RecordedCall, RunOutcome, StepStatus, StopReason
from stepwise.observers import Observer

_REASON_COLOURS = {
    StopReason.DONE: "green",
    StopReason.MAX_STEPS: "yellow",
    StopReason.CANCELLED: "yellow",
    StopReason.ERROR: "red",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return escape(value[:max_len]) + "…"
    return escape(value)


# ---------------------------------------------------------------------------
# Observer
# ---------------------------------------------------------------------------


class RichConsoleObserver(Observer):
    def __init__(self, console: Console | None = None, model: str | None = None) -> None:
        self.console = console or Console()
        self._model = model

    def on_run_started(self, run) -> None:
        body = _mono(str(run.properties), 400)
        if self._model:
            body += f"\n\n[dim]Model :[/dim] [white]{escape(self._model)}[/white]"
        self.console.print()
        self.console.print(Rule("[cyan]NEW RUN[/cyan]", style="cyan"))
        self.console.print(
            Panel(
                body,
                title=_label("TASK", "cyan"),
                border_style="cyan",
                padding=(0, 2),
            )
        )

    def on_step_started(self, run, step) -> None:
        self.console.print()
        self.console.print(
            f"[bold cyan]  STEP [{step.ordinal}][/bold cyan]  [white]{step.type}[/white]"
        )
        action_id = getattr(step, "action_id", None)
        if action_id is not None:
            thought = getattr(step, "thought", None)
            if thought:
                self.console.print(f"  [magenta]Thought[/magenta]  [dim white]{_mono(thought, 200)}[/dim white]")
            self.console.print(
                f"  [magenta]Action[/magenta]   [bold white]{action_id}[/bold white]"
                f"  [dim]{_mono(json.dumps(step.raw_input, default=str), 100)}[/dim]"
            )

    def on_model_call_recorded(self, run, call: RecordedCall) -> None:
        if call.success:
            self.console.print(
                f"  [blue]↳ {escape(call.model)}[/blue] [dim]attempt {call.attempt} · "
                f"{call.usage.input_tokens}/{call.usage.output_tokens} tokens[/dim]"
            )
        else:
            self.console.print(
                f"  [bold red]✗ {escape(call.model)}[/bold red] [dim]attempt {call.attempt} failed: "
                f"{_mono(call.error or '', 100)}[/dim]"
            )

    def on_step_finished(self, run, step) -> None:
        if step.status is StepStatus.SUCCEEDED:
            self.console.print(f"  [bold green]✓[/bold green]  [white]{_mono(step.summary or '', 140)}[/white]")
            return
        kind = step.error_kind.value if step.error_kind else "error"
        self.console.print(
            Panel(
                f"[white]{escape(step.summary or '')}[/white]",
                title=_label(f"STEP FAILED: {kind}", "red"),
                border_style="red",
                padding=(0, 2),
            )
        )

    def on_run_finished(self, run, outcome: RunOutcome) -> None:
        table = Table(
            box=box.SIMPLE_HEAVY,
            border_style="dim",
            show_header=True,
            header_style="bold dim",
            padding=(0, 1),
        )
        table.add_column("Step", justify="center", width=6)
        table.add_column("Type", width=14)
        table.add_column("Status", justify="center", width=10)
        table.add_column("Summary", style="dim white")

        for step in outcome.steps:
            status = (
                "[bold green]✓[/bold green]"
                if step.status is StepStatus.SUCCEEDED
                else "[bold red]✗[/bold red]"
            )
            table.add_row(str(step.ordinal), step.type, status, _mono(step.summary or "", 60))

        colour = _REASON_COLOURS.get(outcome.reason, "cyan")
        subtitle = f"[dim]{len(outcome.calls)} model call(s)[/dim]"
        self.console.print()
        self.console.print(
            Panel(
                table,
                title=_label(f"RUN FINISHED: {outcome.reason}", colour),
                subtitle=subtitle,
                border_style=colour,
                padding=(0, 1),
            )
        )
        if outcome.error:
            self.console.print(f"[bold red]  {escape(outcome.error)}[/bold red]")
        self.console.print()
