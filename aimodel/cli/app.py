"""
Main CLI application for aimodel-core.

Usage:
    aim chat TEXT [--system TEXT] [--model NAME] [--stream/--no-stream] [--profile NAME]
    aim schema MODULE:TYPE
    aim config show|validate
    aim version
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from aimodel.config import AimodelConfig, load_config
from aimodel.errors import AimodelError

app = typer.Typer(name="aim", help="aimodel - chat with LLM providers from the terminal")
config_app = typer.Typer(help="Configuration management")

app.add_typer(config_app, name="config")

console = Console()
err_console = Console(stderr=True)

__version__ = "0.1.0"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config_path() -> Path | None:
    """Find config file in standard locations."""
    candidates = [
        Path.cwd() / "aimodel.yaml",
        Path.cwd() / "aimodel.yml",
        Path.home() / ".config" / "aimodel" / "config.yaml",
        Path.home() / ".aimodel" / "config.yaml",
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def _setup_logging(cfg: AimodelConfig, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else cfg.logging.numeric_level()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )


def _build_router(cfg: AimodelConfig):
    """Wire the configured provider into a router."""
    from aimodel.llm.providers.moonshot import MoonshotApi
    from aimodel.llm.providers.moonshot_chat import MoonshotChatModel
    from aimodel.llm.providers.moonshot_options import MoonshotChatOptions
    from aimodel.llm.router import ChatRouter

    api = MoonshotApi(
        base_url=cfg.llm.api_base,
        api_key=cfg.api_key(),
        timeout=float(cfg.llm.timeout_seconds),
        max_retries=cfg.llm.max_retries,
    )
    model = MoonshotChatModel(
        api,
        MoonshotChatOptions(
            model=cfg.llm.model,
            temperature=cfg.llm.temperature,
            max_tokens=cfg.llm.max_tokens,
        ),
        strict_tool_calls=cfg.stream.strict_tool_calls,
    )
    router = ChatRouter()
    router.register_model(cfg.llm.name, model)
    return router


def _load_type(target: str):
    """Resolve ``package.module:TypeName``."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise typer.BadParameter("expected MODULE:TYPE", param_hint="TARGET")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(str(e), param_hint="TARGET") from e
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise typer.BadParameter(
            f"{module_name} has no attribute {attr!r}", param_hint="TARGET"
        ) from e


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def chat(
    text: str = typer.Argument(..., help="User message"),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="System message"),
    model: Optional[str] = typer.Option(None, help="Model name override"),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Stream the reply"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Send one message and print the reply."""
    from aimodel.chat.messages import SystemMessage, UserMessage
    from aimodel.chat.prompt import Prompt
    from aimodel.cli.output import OutputFormatter

    overrides = {"llm.model": model} if model else None
    cfg = load_config(_get_config_path(), profile=profile, cli_overrides=overrides)
    _setup_logging(cfg, verbose)

    messages = [SystemMessage(system)] if system else []
    messages.append(UserMessage(text))
    prompt = Prompt(messages)
    formatter = OutputFormatter(console)

    async def _run():
        router = _build_router(cfg)
        if not stream:
            formatter.format_response(await router.call(prompt))
            return

        async for response in router.stream(prompt):
            generation = response.result
            if generation is None:
                continue
            if generation.output.text:
                formatter.format_text_delta(generation.output.text)
            for tool_call in generation.output.tool_calls:
                console.print()
                formatter.format_tool_call(tool_call)
        console.print()

    try:
        asyncio.run(_run())
    except AimodelError as e:
        console.print(f"[red]Error ({e.error_code}):[/red] {e}")
        raise typer.Exit(1)


@app.command()
def schema(
    target: str = typer.Argument(..., help="Type to describe, as MODULE:TYPE"),
    instructions: bool = typer.Option(
        False, "--instructions", help="Print the full prompt format instructions"
    ),
):
    """Print the JSON Schema used for structured output of a type."""
    from aimodel.cli.output import OutputFormatter
    from aimodel.converter.structured import TypeOutputConverter

    converter = TypeOutputConverter(_load_type(target))
    if instructions:
        console.print(converter.format, markup=False, highlight=False)
    else:
        OutputFormatter(console).format_schema(converter.json_schema)


@config_app.command("show")
def config_show(
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """Show effective config."""
    from aimodel.cli.output import OutputFormatter

    cfg = load_config(_get_config_path(), profile=profile)
    formatter = OutputFormatter(console)
    formatter.format_config(cfg.to_dict())


@config_app.command("validate")
def config_validate():
    """Validate config and show any type issues."""
    config_path = _get_config_path()
    try:
        cfg = load_config(config_path)
        cfg.logging.numeric_level()
        console.print("[green]Config is valid.[/green]")
        if config_path:
            console.print(f"  Loaded from: {config_path}")
        else:
            console.print("  [dim]No config file found, using defaults.[/dim]")
        console.print(f"  LLM provider: {cfg.llm.name} ({cfg.llm.model})")
        console.print(f"  API key env: {cfg.llm.api_key_env} ({'set' if cfg.api_key() else 'unset'})")
        console.print(f"  Strict tool calls: {cfg.stream.strict_tool_calls}")
    except Exception as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """Show version."""
    console.print(f"aimodel-core v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
