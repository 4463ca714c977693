"""
Command-line interface for PhishLens.
"""

import asyncio
import json
import logging
from dataclasses import asdict
from typing import Optional

import typer

from phishlens.config import (
    get_proxy_base_url,
    get_proxy_settings,
    get_timeout_ms,
    setup_config,
)
from phishlens.core import analyze
from phishlens.errors import PhishLensError
from phishlens.models import AnalysisRequest
from phishlens.proxy import ProxyServer
from phishlens.radar import fetch_radar_attack_pairs


app = typer.Typer(
    help="PhishLens - phishing analysis adapter and demo console backend.",
    no_args_is_help=True,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(error: Exception) -> None:
    typer.secho(f"Error: {error}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.command("analyze")
def analyze_command(
    value: str = typer.Argument(..., help="URL or message text to analyze"),
    mode: str = typer.Option("url", "--mode", "-m", help="Analysis mode: url or text"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Analysis service base URL"),
    mock: bool = typer.Option(False, "--mock", help="Use the built-in simulator (no API calls)"),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Upstream timeout in milliseconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Analyze a URL or text payload and print the canonical response as JSON."""
    _configure_logging(verbose)

    request = AnalysisRequest(mode=mode.lower(), value=value)
    try:
        result = asyncio.run(
            analyze(request, base_url="" if mock else base_url, timeout=timeout)
        )
    except PhishLensError as e:
        _fail(e)

    print(json.dumps(result.to_dict(), indent=2))


@app.command("proxy")
def proxy_command(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Upstream base URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Run the reverse proxy in front of the analysis service."""
    _configure_logging(verbose)
    settings = get_proxy_settings()

    server = ProxyServer(
        base_url or get_proxy_base_url(),
        host=host or settings["host"],
        port=port or settings["port"],
        prefix=settings["prefix"],
        timeout=get_timeout_ms(),
    )
    if not server.base_url:
        typer.secho(
            "Warning: no upstream configured, every request will answer 500.",
            fg=typer.colors.YELLOW,
            err=True,
        )

    async def _serve() -> None:
        await server.start()
        print(f"Proxy listening on http://{server.host}:{server.port}{server.prefix}")
        try:
            await asyncio.Event().wait()
        finally:
            await server.stop()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        pass


@app.command("radar")
def radar_command(
    date_range: str = typer.Option("30m", "--date-range", help="Radar dateRange window"),
    limit: int = typer.Option(12, "--limit", help="Maximum rows"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Print top layer-7 attack pairs from Cloudflare Radar as JSON."""
    _configure_logging(verbose)
    try:
        pairs = asyncio.run(fetch_radar_attack_pairs(date_range=date_range, limit=limit))
    except PhishLensError as e:
        _fail(e)

    print(json.dumps([asdict(pair) for pair in pairs], indent=2))


@app.command("setup")
def setup_command():
    """Interactive configuration setup."""
    setup_config()


if __name__ == "__main__":
    app()
