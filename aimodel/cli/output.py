"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from aimodel.chat.messages import ToolCall
from aimodel.chat.response import ChatResponse


class OutputFormatter:
    """Rich-based output formatting for the aimodel CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_text_delta(self, text: str) -> None:
        self.console.print(text, end="", markup=False, highlight=False)

    def format_tool_call(self, tool_call: ToolCall) -> None:
        try:
            args = json.dumps(json.loads(tool_call.arguments or "{}"), indent=2)
        except json.JSONDecodeError:
            args = tool_call.arguments
        self.console.print(Panel(
            Syntax(args, "json", theme="monokai"),
            title=f"Tool call: {tool_call.name} [dim]({tool_call.id})[/dim]",
        ))

    def format_response(self, response: ChatResponse) -> None:
        generation = response.result
        if generation is None:
            self.console.print("[dim]No response.[/dim]")
            return

        output = generation.output
        if output.text:
            self.console.print(output.text, markup=False, highlight=False)
        for tool_call in output.tool_calls:
            self.format_tool_call(tool_call)
        self.format_usage(response)

    def format_usage(self, response: ChatResponse) -> None:
        usage = response.metadata.usage
        if usage.is_empty():
            return
        table = Table(show_header=True, box=None)
        table.add_column("Prompt", justify="right")
        table.add_column("Completion", justify="right")
        table.add_column("Total", justify="right")
        table.add_row(
            str(usage.prompt_tokens),
            str(usage.completion_tokens),
            str(usage.total_tokens),
        )
        finish = response.result.metadata.finish_reason if response.result else ""
        self.console.print(
            f"[dim]model={response.metadata.model or '?'} finish={finish or '?'}[/dim]"
        )
        self.console.print(table)

    def format_schema(self, schema_json: str) -> None:
        self.console.print(Syntax(schema_json, "json", theme="monokai"))

    def format_config(self, config: dict) -> None:
        config_str = json.dumps(config, indent=2, default=str)
        self.console.print(Syntax(config_str, "json", theme="monokai"))
