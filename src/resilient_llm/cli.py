"""Command line front-end: one-shot, streaming and JSON completions."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from resilient_llm.config import ClientConfig, load_config
from resilient_llm.errors import LLMClientError, RemoteAPIError
from resilient_llm.events.bus import EventBus
from resilient_llm.llm.client import AsyncLLMClient
from resilient_llm.types import ClientEvent, CompletionRequest, EventType, Message

console = Console()
err_console = Console(stderr=True)

DEFAULT_MODEL = "gpt-4o-mini"


def build_client(config: ClientConfig, event_bus: EventBus | None = None) -> AsyncLLMClient:
    return AsyncLLMClient(config, event_bus=event_bus)


def _build_request(
    prompt: str,
    system: str | None,
    model: str,
    temperature: float | None,
    max_tokens: int | None,
) -> CompletionRequest:
    messages: list[Message] = []
    if system:
        messages.append(Message(role="system", content=system))
    messages.append(Message(role="user", content=prompt))
    return CompletionRequest(
        model=model,
        messages=messages,
        temperature=temperature,
        max_output_tokens=max_tokens,
    )


def _warn_truncated(event: ClientEvent) -> None:
    err_console.print(
        "[yellow]Output truncated at the token limit "
        f"(max_tokens={event.data.get('max_tokens') or 'unset'}).[/yellow]"
    )


def _run(ctx: click.Context, coro_factory: Any) -> None:
    """Run one async command with a fresh client, mapping errors to exit 1."""
    config: ClientConfig = ctx.obj["config"]
    bus = EventBus()
    bus.subscribe(EventType.COMPLETION_TRUNCATED, _warn_truncated)

    async def _main() -> None:
        async with build_client(config, bus) as client:
            await coro_factory(client)

    try:
        asyncio.run(_main())
    except LLMClientError as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        if isinstance(e, RemoteAPIError) and e.is_quota_exhausted:
            err_console.print("[dim]The API key looks out of quota.[/dim]")
        ctx.exit(1)


def _request_options(fn: Any) -> Any:
    fn = click.option("--max-tokens", type=int, default=None, help="Output token limit")(fn)
    fn = click.option("--temperature", "-T", type=float, default=None, help="Sampling temperature")(fn)
    fn = click.option("--model", "-m", default=DEFAULT_MODEL, show_default=True,
                      help="Model name (a configured llm_model takes precedence)")(fn)
    fn = click.option("--system", "-s", default=None, help="System prompt")(fn)
    return fn


@click.group()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to resilient_llm.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging (enables the debug channel)")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """resilient-llm: talk to an OpenAI-compatible chat endpoint."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    config, _ = load_config(config_path)
    if verbose:
        config = config.model_copy(update={"debug": True})
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.command()
@click.argument("prompt")
@_request_options
@click.pass_context
def complete(ctx: click.Context, prompt: str, system: str | None, model: str,
             temperature: float | None, max_tokens: int | None) -> None:
    """Print a one-shot completion."""
    request = _build_request(prompt, system, model, temperature, max_tokens)

    async def _go(client: AsyncLLMClient) -> None:
        result = await client.complete(request)
        console.print(result.content, markup=False, highlight=False)
        if result.usage:
            summary = (
                f"{result.model} | {result.usage.total_tokens} tokens | "
                f"{result.latency_ms:.0f}ms"
            )
            bus = client.event_bus
            retries = bus.count(EventType.COMPLETION_RETRY) if bus is not None else 0
            if retries:
                summary += f" | {retries} retr{'y' if retries == 1 else 'ies'}"
            err_console.print(f"[dim]{escape(summary)}[/dim]")

    _run(ctx, _go)


@main.command()
@click.argument("prompt")
@_request_options
@click.pass_context
def stream(ctx: click.Context, prompt: str, system: str | None, model: str,
           temperature: float | None, max_tokens: int | None) -> None:
    """Stream a completion to stdout as it is generated."""
    request = _build_request(prompt, system, model, temperature, max_tokens)

    async def _go(client: AsyncLLMClient) -> None:
        async for delta in client.stream(request):
            console.print(delta, end="", markup=False, highlight=False)
        console.print()

    _run(ctx, _go)


@main.command()
@click.argument("prompt")
@_request_options
@click.pass_context
def extract(ctx: click.Context, prompt: str, system: str | None, model: str,
            temperature: float | None, max_tokens: int | None) -> None:
    """Ask for JSON output and print the recovered value."""
    request = _build_request(prompt, system, model, temperature, max_tokens)

    async def _go(client: AsyncLLMClient) -> None:
        value = await client.complete_json(request)
        text = json.dumps(value, ensure_ascii=False, indent=2)
        if sys.stdout.isatty():
            console.print(Syntax(text, "json"))
        else:
            click.echo(text)

    _run(ctx, _go)


if __name__ == "__main__":
    main()
