"""Command-line entry points for inspecting and exercising dashkit helpers."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import requests
import typer
import yaml
from pydantic import ValidationError

from dashkit.concurrency.backoff import delay_schedule
from dashkit.concurrency.poller import AdaptivePoller, PollOutcome
from dashkit.config import ConfigError, ToolkitConfig, load_config
from dashkit.util.logging import configure_logging
from dashkit.web.rest import RestRequest

app = typer.Typer(add_completion=False, help="dashkit toolkit CLI")


def _parse_overrides(pairs: List[str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--set")
        overrides[key.strip()] = yaml.safe_load(raw)
    return overrides


def _load(config: Optional[Path], overrides: Optional[dict[str, object]] = None) -> ToolkitConfig:
    try:
        return load_config(config, overrides=overrides)
    except (ConfigError, ValidationError) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def show_config(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML/TOML/JSON config file"),
    set_: List[str] = typer.Option([], "--set", help="Override as dotted.key=value (repeatable)"),
) -> None:
    """Print the merged configuration as YAML."""

    cfg = _load(config, _parse_overrides(set_))
    typer.echo(yaml.safe_dump(cfg.model_dump(mode="json"), sort_keys=False).rstrip())


@app.command()
def schedule(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML/TOML/JSON config file"),
) -> None:
    """Print the delays an always-failing request would wait through before giving up."""

    cfg = _load(config)
    options = cfg.http.backoff.to_options()
    delays = delay_schedule(options)
    for attempt, delay in enumerate(delays, start=1):
        typer.echo(f"attempt {attempt}: wait {delay.total_seconds:g}s")
    typer.echo(f"gives up after {len(delays)} attempts")


@app.command()
def fetch(
    url: str = typer.Argument(..., help="URL to GET"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML/TOML/JSON config file"),
) -> None:
    """GET a URL with retries and print the response body."""

    logger = configure_logging()
    cfg = _load(config)
    client = RestRequest.from_settings(cfg.http)
    try:
        response = asyncio.run(client.get(url))
    except requests.RequestException as exc:
        logger.error("Request to %s failed: %s", url, exc)
        raise typer.Exit(code=1) from exc

    typer.echo(f"HTTP {response.status_code}")
    typer.echo(response.text)


@app.command()
def poll(
    url: str = typer.Argument(..., help="URL to poll"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML/TOML/JSON config file"),
    cycles: int = typer.Option(5, min=1, help="Stop after this many poll cycles"),
) -> None:
    """Poll a URL with the adaptive poller and print each outcome."""

    logger = configure_logging()
    cfg = _load(config)
    asyncio.run(_poll(url, cfg, cycles=cycles, logger=logger))


async def _poll(url: str, cfg: ToolkitConfig, *, cycles: int, logger: logging.Logger) -> None:
    timeout = cfg.http.timeout_seconds
    done = asyncio.Event()
    seen = 0

    async def probe() -> None:
        response = await asyncio.to_thread(requests.get, url, timeout=timeout)
        response.raise_for_status()

    def report(outcome: PollOutcome) -> None:
        nonlocal seen
        seen += 1
        detail = f" ({outcome.error})" if outcome.error else ""
        typer.echo(f"cycle {seen}: {outcome.kind}, next in {outcome.delay.total_seconds:g}s{detail}")
        if seen >= cycles:
            done.set()

    poller = AdaptivePoller(cfg.poller.to_options(logger))
    poller.start(
        probe,
        on_fail=lambda exc: logger.warning("Polling %s is saturated: %s", url, exc),
        on_outcome=report,
    )
    await done.wait()
    await poller.stop()


def main() -> None:
    app()


__all__ = ["main", "app"]
