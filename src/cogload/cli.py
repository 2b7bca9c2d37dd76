"""Command-line interface for cogload."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click
import structlog
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cogload import __version__
from cogload.config.config import Config, load_config
from cogload.container import DependencyContainer
from cogload.control import heat_color
from cogload.errors import CogloadError, UnsupportedResourceError, ensure_supported_resource
from cogload.metrics.extractor import TreeMetricsExtractor
from cogload.metrics.scoring import LoadScoringModel
from cogload.metrics.snapshot import assemble_snapshot
from cogload.metrics.tree import LayoutDocument, LayoutTreeView
from cogload.observability import configure_logging, start_metrics_server
from cogload.protocols import Snapshot
from cogload.sync.events import SnapshotChanged
from cogload.utils.atomic import atomic_write_json

console = Console()
logger = structlog.get_logger(__name__)


def snapshot_table(snapshot: Snapshot, title: str = "Cognitive Load") -> Table:
    """Render a snapshot as a two-column rich table."""
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")

    m = snapshot.measurements
    s = snapshot.score
    table.add_row("source_url", snapshot.source_url)
    table.add_row("score", f"{s.raw_score * 100:.1f}")
    table.add_row("label", s.label.value)
    table.add_row("overlay", heat_color(s.label))
    table.add_row("max_depth", str(m.max_depth))
    table.add_row("interactive_in_view", str(m.interactive_in_view))
    table.add_row("density", f"{m.density:.3e}")
    table.add_row("fragmentation", str(m.fragmentation))
    table.add_row("depth_term", f"{s.depth_term:.4f}")
    table.add_row("density_term", f"{s.density_term:.4f}")
    table.add_row("fragment_term", f"{s.fragment_term:.4f}")
    table.add_row("timestamp", str(snapshot.captured_at_millis))
    return table


def print_snapshot(snapshot: Snapshot, output_format: str) -> None:
    if output_format == "table":
        console.print(snapshot_table(snapshot))
    else:
        click.echo(json.dumps(snapshot.to_record(), indent=2))


def score_document(document: LayoutDocument, config: Config) -> Snapshot:
    extractor = TreeMetricsExtractor(config.metrics.region_min_size)
    scorer = LoadScoringModel(config.metrics)
    measurements = extractor.extract(LayoutTreeView(document))
    return assemble_snapshot(measurements, scorer.score(measurements), document.url)


output_format_option = click.option(
    "--format",
    "output_format",
    default="table",
    type=click.Choice(["table", "json"]),
    help="Output format",
)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides the configuration file)",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: Optional[str]) -> None:
    """cogload - cognitive load metrics for rendered documents."""
    ctx.ensure_object(dict)
    config_path = Path(config) if config else None
    settings = load_config(config_path)
    # Commands share state across runs, so the CLI persists unless told otherwise
    if "backend" not in settings.store.model_fields_set:
        settings.store.backend = "sqlite"
    if log_level:
        settings.monitoring.log_level = log_level
    ctx.obj["config_path"] = config_path
    ctx.obj["config"] = settings
    configure_logging(settings.monitoring)


@cli.command()
@click.argument("layout_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the snapshot record to this file")
@click.option("--publish", is_flag=True, help="Also publish the snapshot to the configured store")
@output_format_option
@click.pass_context
def score(ctx: click.Context, layout_path: str, output: Optional[str], publish: bool, output_format: str) -> None:
    """Score a captured layout tree stored as JSON."""
    config: Config = ctx.obj["config"]
    try:
        document = LayoutDocument.from_json(Path(layout_path))
    except (OSError, ValueError) as e:
        console.print(f"[red]❌ Could not read layout: {escape(str(e))}[/red]")
        sys.exit(1)

    snapshot = score_document(document, config)
    print_snapshot(snapshot, output_format)

    if output:
        atomic_write_json(Path(output), snapshot.to_record())
        console.print(f"[green]Snapshot saved to {output}[/green]")

    if publish:

        async def run_publish() -> None:
            container = DependencyContainer(ctx.obj["config_path"], config=config)
            async with container.lifecycle():
                assert container.sync is not None
                await container.sync.publish(snapshot)

        try:
            asyncio.run(run_publish())
        except CogloadError as e:
            console.print(f"[red]❌ {escape(str(e))}[/red]")
            sys.exit(1)


@cli.command()
@click.argument("url")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the snapshot record to this file")
@output_format_option
@click.pass_context
def analyze(ctx: click.Context, url: str, output: Optional[str], output_format: str) -> None:
    """Open URL in a headless browser, score it once and publish the snapshot."""
    from cogload.capture.browser import capture_layout

    config: Config = ctx.obj["config"]
    console.print(f"[blue]🔍 Analyzing: {url}[/blue]")

    async def run_analysis() -> Snapshot:
        document = await capture_layout(url, config)
        snapshot = score_document(document, config)
        container = DependencyContainer(ctx.obj["config_path"], config=config)
        async with container.lifecycle():
            assert container.sync is not None
            await container.sync.publish(snapshot)
        return snapshot

    try:
        snapshot = asyncio.run(run_analysis())
    except UnsupportedResourceError as e:
        console.print(f"[yellow]⚠️  {escape(str(e))}[/yellow]")
        sys.exit(2)
    except CogloadError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        sys.exit(1)

    print_snapshot(snapshot, output_format)
    if output:
        atomic_write_json(Path(output), snapshot.to_record())
        console.print(f"[green]Snapshot saved to {output}[/green]")


@cli.command()
@click.argument("url")
@click.option("--live/--no-live", default=None, help="Set live-on-scroll before watching")
@click.option("--duration", type=float, default=None, help="Stop after this many seconds")
@click.pass_context
def watch(ctx: click.Context, url: str, live: Optional[bool], duration: Optional[float]) -> None:
    """Open URL in Chromium and recompute as the page is resized and scrolled."""
    from cogload.capture.browser import PlaywrightHost, open_page

    config: Config = ctx.obj["config"]
    try:
        ensure_supported_resource(url)
    except UnsupportedResourceError as e:
        console.print(f"[yellow]⚠️  {escape(str(e))}[/yellow]")
        sys.exit(2)

    def on_snapshot(event: SnapshotChanged) -> None:
        if event.snapshot is not None:
            console.print(snapshot_table(event.snapshot, title=f"Cognitive Load @ {event.snapshot.captured_at_millis}"))

    async def run_watch() -> None:
        start_metrics_server(config.monitoring)
        container = DependencyContainer(ctx.obj["config_path"], config=config)
        async with container.lifecycle():
            assert container.sync is not None
            if live is not None:
                await container.sync.set_live_on_scroll(live)
            subscription = container.sync.subscribe(on_snapshot_changed=on_snapshot)
            async with open_page(config.browser) as page:
                host = await PlaywrightHost.attach(page)
                coordinator = container.create_coordinator(host)
                await coordinator.start()
                await page.goto(url, wait_until="domcontentloaded")
                console.print("[cyan]Watching; press Ctrl+C to stop.[/cyan]")
                try:
                    if duration is not None:
                        await asyncio.sleep(duration)
                    else:
                        await page.wait_for_event("close", timeout=0)
                finally:
                    subscription.cancel()
                    await coordinator.stop()

    try:
        asyncio.run(run_watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")


@cli.command()
@click.argument("state", type=click.Choice(["on", "off"]))
@click.pass_context
def live(ctx: click.Context, state: str) -> None:
    """Persist the live-on-scroll preference in the configured store."""
    config: Config = ctx.obj["config"]

    async def run_set() -> None:
        container = DependencyContainer(ctx.obj["config_path"], config=config)
        async with container.lifecycle():
            assert container.sync is not None
            await container.sync.set_live_on_scroll(state == "on")

    try:
        asyncio.run(run_set())
    except CogloadError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        sys.exit(1)
    console.print(f"[green]Live-on-scroll {state}[/green]")


@cli.command()
@output_format_option
@click.pass_context
def show(ctx: click.Context, output_format: str) -> None:
    """Show the snapshot currently held by the configured store."""
    config: Config = ctx.obj["config"]

    async def run_show() -> tuple[Optional[Snapshot], bool]:
        container = DependencyContainer(ctx.obj["config_path"], config=config)
        async with container.lifecycle():
            assert container.sync is not None
            return await container.sync.current_snapshot(), await container.sync.live_on_scroll()

    try:
        snapshot, live_on = asyncio.run(run_show())
    except CogloadError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        sys.exit(1)

    if snapshot is None:
        console.print("No data")
    else:
        print_snapshot(snapshot, output_format)
    console.print(f"Live-on-scroll: {'on' if live_on else 'off'}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
