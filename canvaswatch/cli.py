"""CLI entry point for canvaswatch."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from canvaswatch.models.config import RunConfig
from canvaswatch.runner import WatchRunner

console = Console()

DEFAULT_CONFIG = "canvaswatch.json"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _resolve_config(config: str, url: Optional[str]) -> RunConfig:
    """Load the config file, or build a default one when only a URL is given."""
    if Path(config).exists():
        cfg = RunConfig.load(config)
        if url:
            cfg.target_url = url
        return cfg
    if url:
        return RunConfig(target_url=url)
    console.print(f"[red]Config file not found: {config}[/red]")
    console.print("Pass a URL or run 'canvaswatch init' to create a default config.")
    sys.exit(1)


def _apply_overrides(cfg: RunConfig, **overrides) -> None:
    if overrides.get("output"):
        cfg.output_dir = overrides["output"]
    if overrides.get("selector"):
        cfg.selector = overrides["selector"]
    if overrides.get("headed"):
        cfg.browser.headless = False
    if overrides.get("rename"):
        cfg.rename_base = overrides["rename"]


def _print_summary(title: str, results: dict) -> None:
    table = Table(title=title)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Duration", f"{results['duration']}s")
    table.add_row("Frames", str(results["frames"]))
    table.add_row("Direct", f"[green]{results['direct']}[/green]")
    table.add_row("Fallback", f"[yellow]{results['fallback']}[/yellow]")
    console.print(table)
    console.print(f"  Manifest: [blue]{results['manifest']}[/blue]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Watch canvases for visual changes and capture each new frame."""
    setup_logging(verbose)


@cli.command()
@click.argument("url", required=False)
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.option("--duration", "-d", type=float, help="Seconds to watch")
@click.option("--threshold", "-t", type=int, help="Hamming distance that counts as a change")
@click.option("--grid-size", type=int, help="Fingerprint grid edge (N x N bits)")
@click.option("--auto-deliver", is_flag=True, help="Write each frame as soon as it is captured")
@click.option("--output", "-o", help="Output directory")
@click.option("--selector", "-s", help="CSS selector for watched surfaces")
@click.option("--rename", help="Rename exported frames to <BASE>_<n>")
@click.option("--headed", is_flag=True, help="Show the browser window")
def watch(
    url: Optional[str], config: str, duration: Optional[float], threshold: Optional[int],
    grid_size: Optional[int], auto_deliver: bool, output: Optional[str],
    selector: Optional[str], rename: Optional[str], headed: bool,
) -> None:
    """Watch canvases on a page and capture frames whose content changes."""
    cfg = _resolve_config(config, url)
    _apply_overrides(cfg, output=output, selector=selector, headed=headed, rename=rename)
    if duration is not None:
        cfg.duration_seconds = duration
    if threshold is not None:
        cfg.watch.threshold_bits = threshold
    if grid_size is not None:
        cfg.watch.grid_size = grid_size
    if auto_deliver:
        cfg.watch.auto_deliver = True
    try:
        cfg = RunConfig.model_validate(cfg.model_dump())
    except ValidationError as e:
        console.print(f"[red]Invalid options:[/red] {escape(str(e))}")
        sys.exit(1)

    console.print(
        f"Watching [bold]{cfg.selector}[/bold] on {cfg.target_url} for {cfg.duration_seconds:g}s "
        f"(threshold {cfg.watch.threshold_bits} bits)"
    )
    results = WatchRunner(cfg).run_watch()
    console.print("\n[bold green]Watch Complete[/bold green]")
    _print_summary("Captured Frames", results)


@cli.command()
@click.argument("url", required=False)
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.option("--output", "-o", help="Output directory")
@click.option("--selector", "-s", help="CSS selector for captured surfaces")
@click.option("--rename", help="Rename exported frames to <BASE>_<n>")
@click.option("--headed", is_flag=True, help="Show the browser window")
def scan(
    url: Optional[str], config: str, output: Optional[str], selector: Optional[str],
    rename: Optional[str], headed: bool,
) -> None:
    """Capture every canvas on a page once."""
    cfg = _resolve_config(config, url)
    _apply_overrides(cfg, output=output, selector=selector, headed=headed, rename=rename)
    results = WatchRunner(cfg).run_scan()
    console.print("\n[bold green]Scan Complete[/bold green]")
    _print_summary("Scanned Surfaces", results)


@cli.command()
@click.option("--target", "-t", prompt="Target URL", help="Page URL to watch")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def init(target: str, config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    cfg = RunConfig(target_url=target)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]canvaswatch watch[/blue]")


if __name__ == "__main__":
    cli()
