"""
Crytonix - Main Entry Point

CLI for chatting with a single ReAct agent, running multi-agent tasks
from YAML agent definitions, inspecting providers and tools, and serving
the HTTP API.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from crytonix.config.settings import Settings, load_env_files, load_settings
from crytonix.observability.logging_config import configure_logging

load_env_files(Path(__file__).parent)

app = typer.Typer(
    name="crytonix",
    help="Crytonix - multi-provider LLM agents",
)
console = Console()
logger = logging.getLogger("crytonix")


def _bootstrap():
    """Settings, logging, cache, router, and tool registry for one command."""
    from crytonix.cache import create_cache
    from crytonix.llm.router import LLMRouter
    from crytonix.tools.registry import ToolRegistry
    from crytonix.tools.sandbox import configure_sandbox

    settings = load_settings()
    configure_logging(env=settings.env, level=settings.log_level)
    configure_sandbox(settings.env)

    cache = create_cache(settings)
    router = LLMRouter.from_settings(settings, cache=cache)
    registry = ToolRegistry.with_builtins()

    if not router.get_available_providers():
        _no_providers_panel()
        raise typer.Exit(code=1)

    return settings, cache, router, registry


def _no_providers_panel() -> None:
    console.print(Panel(
        "[red]No LLM providers configured.[/]\n\n"
        "Set at least one key in your .env file:\n"
        "  [dim]OPENAI_API_KEY=...[/]\n"
        "  [dim]ANTHROPIC_API_KEY=...[/]\n"
        "  [dim]GROQ_API_KEY=...[/]\n"
        "  [dim]GOOGLE_API_KEY=...[/]\n"
        "  [dim]OPENROUTER_API_KEY=...[/]\n"
        "or enable a local model with [dim]OLLAMA_HOST[/].",
        title="⚠ Configuration Error",
        border_style="red",
    ))


# =========================================================================
# Commands
# =========================================================================


@app.command()
def chat(
    message: str = typer.Argument(..., help="What to ask the agent"),
    provider: Optional[str] = typer.Option(None, help="Preferred provider (e.g. 'anthropic')"),
    model: Optional[str] = typer.Option(None, help="Model id (e.g. 'gpt-4o-mini')"),
    tool: list[str] = typer.Option([], "--tool", "-t", help="Tool to enable (repeatable)"),
    max_iterations: int = typer.Option(10, help="ReAct iteration cap"),
    stream: bool = typer.Option(False, help="Stream tokens (no tools)"),
):
    """Chat with a single ReAct agent."""

    async def _run():
        from crytonix.agents.agent import Agent
        from crytonix.config.agent_schema import AgentConfig

        _, cache, router, registry = _bootstrap()
        partial = {"provider": provider, "model": model}
        config = AgentConfig.from_partial(partial, tool or None)
        agent = Agent(config, router, registry=registry, cache=cache)

        if stream:
            async for delta in agent.stream(message):
                console.print(delta, end="")
            console.print()
            return

        answer = await agent.run(message, max_iterations=max_iterations)

        steps = agent.get_react_steps()
        if len(steps) > 1:
            table = Table(title="ReAct Steps")
            table.add_column("#", style="dim")
            table.add_column("Action", style="cyan")
            table.add_column("Observation", style="white")
            for i, step in enumerate(steps, 1):
                action = step.action.tool if step.action else "-"
                table.add_row(str(i), action, (step.observation or "")[:80])
            console.print(table)

        if answer:
            console.print(Panel(answer, title=config.name, border_style="green"))
        else:
            console.print("[yellow]No answer produced (iteration limit reached).[/]")

    asyncio.run(_run())


@app.command()
def task(
    description: str = typer.Argument(..., help="Task for the agents"),
    agents_dir: Path = typer.Option(Path("agents"), help="Directory of agent YAML files"),
    agent: list[str] = typer.Option([], "--agent", "-a", help="Agent id to include (repeatable; default: all)"),
    strategy: str = typer.Option("sequential", help="sequential | parallel | hierarchical | consensus"),
    max_iterations: int = typer.Option(10, help="ReAct iteration cap per agent"),
    timeout_ms: int = typer.Option(60000, help="Overall deadline in milliseconds"),
):
    """Run a multi-agent task."""

    async def _run():
        from crytonix.agents.manager import AgentManager
        from crytonix.agents.models import AgentTask
        from crytonix.exceptions import AgentConfigurationError

        _, cache, router, registry = _bootstrap()
        manager = AgentManager(router, registry=registry, cache=cache)

        try:
            loaded = manager.load_agents(agents_dir)
        except AgentConfigurationError as e:
            console.print(f"[red]Invalid agent config:[/] {e}")
            raise typer.Exit(1)

        if not loaded:
            console.print(f"[yellow]No agents found in {agents_dir}/[/]")
            raise typer.Exit(1)

        agent_ids = agent or [a.id for a in loaded]
        try:
            agent_task = AgentTask(
                task=description,
                agents=agent_ids,
                strategy=strategy,
                max_iterations=max_iterations,
                timeout_ms=timeout_ms,
            )
        except ValueError:
            console.print(f"[red]Unknown strategy:[/] {strategy}")
            raise typer.Exit(1)

        console.print(Panel(
            f"[cyan]Task:[/] {description}\n"
            f"Agents: {', '.join(agent_ids)}\n"
            f"Strategy: {agent_task.strategy.value}",
            title="Multi-Agent Task",
        ))

        result = await manager.execute_task(agent_task)

        table = Table(title="Executions")
        table.add_column("Agent", style="cyan")
        table.add_column("Status", style="white")
        table.add_column("Tokens", style="yellow")
        table.add_column("Cost", style="green")
        table.add_column("Output / Error", style="white")

        for execution in result.executions:
            status = "[green]ok[/]" if execution.success else "[red]failed[/]"
            detail = execution.output if execution.success else execution.error
            table.add_row(
                execution.agent_id,
                status,
                str(execution.tokens),
                f"${execution.cost:.4f}",
                (detail or "")[:80],
            )
        console.print(table)

        if result.error:
            console.print(f"[red]Task failed:[/] {result.error}")
        console.print(
            f"Total: {result.total_tokens} tokens, ${result.total_cost:.4f}, "
            f"{result.execution_time_ms / 1000:.1f}s"
        )
        if not result.success:
            raise typer.Exit(1)

    asyncio.run(_run())


@app.command()
def providers():
    """Show configured providers and whether they respond."""

    async def _run():
        _, _, router, _ = _bootstrap()
        availability = await router.check_provider_availability()

        table = Table(title="LLM Providers")
        table.add_column("Provider", style="cyan")
        table.add_column("Status", style="white")
        for name, ok in availability.items():
            table.add_row(name, "[green]available[/]" if ok else "[red]unavailable[/]")
        console.print(table)

    asyncio.run(_run())


@app.command()
def tools():
    """List built-in tools."""
    from crytonix.tools.registry import ToolRegistry

    table = Table(title="Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Category", style="green")
    table.add_column("Description", style="white")
    for definition in ToolRegistry.with_builtins().list():
        table.add_row(definition.name, definition.category, definition.description)
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Port"),
):
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from crytonix.api.server import create_app

    settings: Settings = load_settings()
    configure_logging(env=settings.env, level=settings.log_level)

    console.print(f"[cyan]Serving Crytonix API on {host}:{port}[/]")
    uvicorn.run(create_app(settings=settings), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
