"""
Switchboard - Main Entry Point

Operator CLI for the LLM routing layer: inspect pricing, estimate costs,
check configured providers and send one-off completions through the router.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from switchboard.config.loader import load_router_config
from switchboard.config.schema import RouterConfig
from switchboard.exceptions import NoProviderAvailableError, RouterConfigurationError
from switchboard.llm.cost import calculate_cost, get_pricing_data
from switchboard.llm.factory import create_router
from switchboard.llm.streaming import collect_stream
from switchboard.llm.types import CompletionRequest, Message
from switchboard.observability.logging_config import (
    configure_logging,
    reset_request_id,
    set_request_id,
)

# Load environment (override=True to ensure .env values take precedence)
root_env = Path(__file__).parent / ".env"
if root_env.exists():
    load_dotenv(root_env, override=True)
else:
    load_dotenv(override=True)

app = typer.Typer(
    name="switchboard",
    help="Switchboard - multi-provider LLM routing",
)
console = Console()

configure_logging(level=logging.WARNING)
logger = logging.getLogger("switchboard")


def _get_config(config_path: Optional[Path]) -> RouterConfig:
    """Load and return router config, with friendly error on failure."""
    try:
        return load_router_config(config_path)
    except RouterConfigurationError as e:
        console.print(Panel(
            f"[red]Invalid configuration[/]\n\n{e}",
            title="⚠ Configuration Error",
            border_style="red",
        ))
        raise typer.Exit(code=1)


# =========================================================================
# Commands
# =========================================================================


@app.command()
def pricing(
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help="Only show this provider"
    ),
):
    """Show the per-1K-token rate table."""
    data = get_pricing_data()
    if provider and provider not in data:
        console.print(f"[red]Unknown provider:[/] {provider}")
        raise typer.Exit(1)

    table = Table(title="LLM Pricing (USD per 1K tokens)")
    table.add_column("Provider", style="cyan")
    table.add_column("Model", style="white")
    table.add_column("Input", style="green", justify="right")
    table.add_column("Output", style="yellow", justify="right")

    for name, entry in data.items():
        if provider and name != provider:
            continue
        if entry["local"]:
            table.add_row(name, "[dim]any (local)[/]", "free", "free")
            continue
        for model, rate in entry["models"].items():
            table.add_row(name, model, f"${rate['input']:.6f}", f"${rate['output']:.6f}")

    console.print(table)


@app.command()
def cost(
    provider: str = typer.Argument(..., help="Provider name (e.g. 'anthropic')"),
    model: str = typer.Argument(..., help="Model id (e.g. 'claude-sonnet-4-20250514')"),
    input_tokens: int = typer.Option(1000, "--input", "-i", help="Input tokens"),
    output_tokens: int = typer.Option(1000, "--output", "-o", help="Output tokens"),
):
    """Calculate the cost of a call."""
    result = calculate_cost(provider, model, input_tokens, output_tokens)
    console.print(Panel(
        f"Input:   {input_tokens:,} tokens  [green]${result.breakdown.input:.6f}[/]\n"
        f"Output:  {output_tokens:,} tokens  [yellow]${result.breakdown.output:.6f}[/]\n"
        f"Total:   [bold]${result.cost_usd:.6f}[/]",
        title=f"{provider}/{model}",
    ))


@app.command()
def config(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML config file"
    ),
):
    """Validate and show the effective router configuration."""
    cfg = _get_config(config_path)
    cost_cfg = cfg.cost_optimization
    console.print(Panel(
        f"[green]Configuration valid![/]\n\n"
        f"Default provider:   {cfg.default_provider}\n"
        f"Default model:      {cfg.default_model}\n"
        f"Cost optimization:  {'on' if cost_cfg.enabled else 'off'}\n"
        f"  cheap model:      {cost_cfg.cheap_model} for {', '.join(sorted(cost_cfg.cheap_model_for))}\n"
        f"  expensive model:  {cost_cfg.expensive_model} for {', '.join(sorted(cost_cfg.expensive_model_for))}\n"
        f"Fallback:           {'on' if cfg.fallback.enabled else 'off'} "
        f"({' → '.join(cfg.fallback.providers)})\n"
        f"Retries:            {cfg.retry.max_retries}\n"
        f"Telemetry:          {cfg.telemetry.state_service_url if cfg.telemetry.enabled else 'off'}",
        title="Router Config",
    ))


@app.command()
def providers(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML config file"
    ),
):
    """List providers configured in the environment and their models."""

    async def _run():
        router = create_router(_get_config(config_path))
        try:
            infos = await router.get_providers()
        finally:
            await router.aclose()

        if not infos:
            console.print(
                "[yellow]No providers configured. Set ANTHROPIC_API_KEY, OPENAI_API_KEY, "
                "GOOGLE_API_KEY, OPENROUTER_API_KEY or OLLAMA_BASE_URL.[/]"
            )
            return

        table = Table(title="Configured Providers")
        table.add_column("Provider", style="cyan")
        table.add_column("Status", style="white")
        table.add_column("Models", style="green")
        for info in infos:
            status = "[green]available[/]" if info.available else "[red]unreachable[/]"
            table.add_row(info.name, status, ", ".join(info.models[:6]))
        console.print(table)

    asyncio.run(_run())


@app.command()
def complete(
    prompt: str = typer.Argument(..., help="User prompt"),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="System prompt"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider override"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id or alias"),
    task_type: Optional[str] = typer.Option(
        None, "--task-type", "-t", help="Task category (e.g. 'summarization')"
    ),
    stream: bool = typer.Option(False, "--stream", help="Stream the response"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML config file"
    ),
):
    """Send one completion through the router."""

    async def _run():
        router = create_router(_get_config(config_path))
        request = CompletionRequest(
            messages=[Message(role="user", content=prompt)],
            system=system,
            provider=provider,
            model=model,
        )
        token = set_request_id(uuid.uuid4().hex[:12])
        try:
            if stream:
                await collect_stream(
                    router.route_stream(request, task_type=task_type),
                    on_chunk=lambda piece: console.print(piece, end="", markup=False),
                )
                console.print()
            else:
                response = await router.route(request, task_type=task_type)
                console.print(response.content, markup=False)
                console.print(
                    f"\n[dim]{response.provider}/{response.model} · "
                    f"{response.usage.total_tokens} tokens · "
                    f"${response.cost.cost_usd:.4f}"
                    f"{' · fallback' if response.is_fallback else ''}[/]"
                )
        except NoProviderAvailableError as e:
            console.print(f"[red]{e}[/] (registered: {', '.join(e.registered) or 'none'})")
            raise typer.Exit(1)
        finally:
            reset_request_id(token)
            await router.aclose()

        stats = router.get_usage_stats()
        if stream:
            console.print(
                f"[dim]{stats['total_tokens']} tokens · ${stats['total_cost_usd']:.4f}[/]"
            )

    asyncio.run(_run())


if __name__ == "__main__":
    app()
