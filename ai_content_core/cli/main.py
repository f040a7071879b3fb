"""
CLI interface for AI Content Core.

Lists models and prices, estimates costs, checks provider connectivity,
runs generations and parses saved model output.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ai_content_core.config.loader import AppConfig, build_credentials, load_config
from ai_content_core.config.logging import configure_logging
from ai_content_core.core.errors import GenerationError, describe_error
from ai_content_core.core.models import ChunkType, GenerationRequest, ProviderName
from ai_content_core.core.pricing import REGISTRIES, calculate_cost, get_registry
from ai_content_core.core.retry import RetryPolicy
from ai_content_core.core.token_counter import TokenUsage
from ai_content_core.parsing import ArtifactKind, ParseParams, parse_artifacts
from ai_content_core.sdk.base import ProviderAdapter
from ai_content_core.sdk.factory import create_adapter

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for library output"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
):
    """AI Content Core CLI."""
    configure_logging(log_level, json_logs)
    if ctx.invoked_subcommand is None:
        console.print("AI Content Core - Use --help to see available commands")


def _load(config_path: Optional[str]) -> AppConfig:
    try:
        return load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Configuration error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)


def _adapter(provider: ProviderName, config: AppConfig) -> ProviderAdapter:
    settings = config.provider_settings(provider)
    return create_adapter(
        provider,
        build_credentials(config),
        retry_policy=RetryPolicy(settings.max_retries, settings.base_delay_ms),
        base_url=settings.base_url,
        timeout=settings.timeout_seconds,
    )


def _provider(value: str) -> ProviderName:
    try:
        return ProviderName(value.lower())
    except ValueError:
        valid = ", ".join(p.value for p in ProviderName)
        console.print(f"[red]Unknown provider:[/] {value} (expected one of: {valid})")
        sys.exit(EXIT_CODE_FAIL)


def _format_price(value) -> str:
    return "-" if value is None else f"${value}"


@app.command()
def models(
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Only list this provider's models"),
):
    """List supported models with their prices per 1K tokens."""
    providers = [_provider(provider)] if provider else list(REGISTRIES)

    table = Table(title="Supported models")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("API")
    table.add_column("Input/1K", justify="right")
    table.add_column("Output/1K", justify="right")
    table.add_column("Reasoning/1K", justify="right")
    table.add_column("Per image", justify="right")
    table.add_column("Capabilities")

    for name in providers:
        for descriptor in get_registry(name):
            table.add_row(
                name.value,
                descriptor.model_id,
                descriptor.api_kind.value,
                _format_price(descriptor.input_cost_per_1k),
                _format_price(descriptor.output_cost_per_1k),
                _format_price(descriptor.reasoning_cost_per_1k),
                _format_price(descriptor.per_image_cost),
                ", ".join(sorted(c.value for c in descriptor.capabilities)),
            )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def cost(
    provider: str = typer.Argument(..., help="Provider name"),
    model: str = typer.Argument(..., help="Model identifier"),
    input_tokens: int = typer.Option(0, "--input", "-i", min=0, help="Input tokens"),
    output_tokens: int = typer.Option(0, "--output", "-o", min=0, help="Output tokens"),
    reasoning_tokens: int = typer.Option(0, "--reasoning", "-r", min=0, help="Reasoning tokens"),
    images: int = typer.Option(0, "--images", min=0, help="Images generated"),
):
    """Calculate the cost of a call from its token usage."""
    try:
        descriptor = get_registry(_provider(provider)).get(model)
    except GenerationError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    usage = TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        reasoning_tokens=reasoning_tokens,
        images_generated=images,
    )
    console.print(f"[bold]{descriptor.model_id}[/bold]: ${calculate_cost(usage, descriptor):.6f}")
    sys.exit(EXIT_CODE_PASS)


@app.command("test-connection")
def test_connection(
    provider: str = typer.Argument(..., help="Provider name"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Send a minimal request to verify credentials and network access."""
    name = _provider(provider)
    app_config = _load(config)
    try:
        adapter = _adapter(name, app_config)
    except GenerationError as e:
        console.print(f"[red]✗[/] {name.value}: {describe_error(e)}")
        sys.exit(EXIT_CODE_FAIL)

    result = asyncio.run(adapter.test_connection())
    if result.success:
        console.print(f"[green]✓[/] {name.value} reachable via {result.model} ({result.latency_ms:.0f}ms)")
        sys.exit(EXIT_CODE_PASS)
    console.print(f"[red]✗[/] {name.value}: {result.error}")
    sys.exit(EXIT_CODE_FAIL)


async def _stream_to_console(adapter: ProviderAdapter, request: GenerationRequest) -> bool:
    async for chunk in adapter.generate_stream(request):
        if chunk.type == ChunkType.CONTENT:
            console.print(chunk.payload, end="", markup=False, highlight=False)
        elif chunk.type == ChunkType.ERROR:
            console.print(f"\n[red]Error:[/] {describe_error(chunk.payload)}")
            return False
        elif chunk.type == ChunkType.COMPLETE:
            usage = chunk.payload.usage
            console.print(f"\n[dim]{usage.total_tokens} tokens, ${usage.cost:.6f}, {usage.latency_ms:.0f}ms[/dim]")
    return True


@app.command()
def generate(
    provider: str = typer.Argument(..., help="Provider name"),
    model: str = typer.Argument(..., help="Model identifier"),
    prompt: str = typer.Argument(..., help="Prompt text"),
    task: str = typer.Option("default", "--task", "-t", help="Task name selecting temperature and instructions"),
    stream: bool = typer.Option(False, "--stream", "-s", help="Stream the response"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Generate content with one provider and model."""
    name = _provider(provider)
    app_config = _load(config)
    try:
        request = GenerationRequest(task=task, prompt=prompt, provider=name, model=model)
        adapter = _adapter(name, app_config)
        if stream:
            ok = asyncio.run(_stream_to_console(adapter, request))
            sys.exit(EXIT_CODE_PASS if ok else EXIT_CODE_FAIL)
        result = asyncio.run(adapter.generate(request))
    except (GenerationError, ValueError) as e:
        console.print(f"[red]Error:[/] {describe_error(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if result.is_media:
        for media in result.content:
            console.print(media.url or f"<{media.mime_type}, {len(media.data or '')} base64 chars>")
    else:
        console.print(result.text, markup=False, highlight=False)
    usage = result.usage
    console.print(f"[dim]{usage.total_tokens} tokens, ${usage.cost:.6f}, {usage.latency_ms:.0f}ms[/dim]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def parse(
    kind: str = typer.Argument(..., help="Artifact kind: synopsis, enhancement, social_post, research_summary, idea"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Saved model output"),
    topic: str = typer.Option("", "--topic", help="Topic used for defaults and templates"),
    title: Optional[str] = typer.Option(None, "--title", help="Working title"),
    count: int = typer.Option(3, "--count", min=1, help="Number of artifacts requested"),
    platform: str = typer.Option("twitter", "--platform", help="Social platform"),
    mode: str = typer.Option("clarity", "--mode", help="Enhancement mode"),
):
    """Parse saved model output into artifacts and print them as JSON."""
    try:
        params = ParseParams(topic=topic, title=title, count=count, platform=platform, mode=mode)
        outcome = parse_artifacts(file.read_text(encoding="utf-8"), ArtifactKind(kind), params)
    except ValueError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    label = "[yellow]fallback[/]" if outcome.is_fallback else "[green]parsed[/]"
    console.print(f"{label} {len(outcome.artifacts)} {outcome.kind.value} artifact(s)")
    print(json.dumps([a.to_dict() for a in outcome.artifacts], indent=2, ensure_ascii=False))
    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
