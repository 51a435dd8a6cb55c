"""
tacboard CLI - Command Line Interface for match-demo analytics

Provides commands for:
- Analyzing one demo-event file
- Batch-importing many files concurrently
- Showing or writing the effective configuration
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tacboard import __version__
from tacboard.core.config import (
    TacboardConfig,
    config_to_dict,
    configure_logging,
    load_config,
    load_roster_file,
    save_config,
)
from tacboard.core.models import Match
from tacboard.export import export_match
from tacboard.infra.parallel import BatchImporter
from tacboard.parsing.normalizer import DemoFormatError
from tacboard.pipeline.orchestrator import MatchOrchestrator

app = typer.Typer(
    name="tacboard",
    help="CS2 match-demo analytics - scoreboards, timelines, rating and win probability",
    add_completion=False,
)
console = Console()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]tacboard[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose output",
    ),
) -> None:
    """tacboard - CS2 match-demo analytics"""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _load(config_path: Optional[Path], roster_path: Optional[Path]) -> TacboardConfig:
    config = load_config(config_path)
    if logging.getLogger().level == logging.DEBUG:
        # --verbose wins over the configured level
        config.logging.level = "DEBUG"
    configure_logging(config.logging)
    if roster_path is not None:
        config.roster = load_roster_file(roster_path)
    return config


def _print_match(match: Match) -> None:
    score = match.score
    result_style = {"WIN": "green", "LOSS": "red"}.get(match.result, "yellow")
    console.print(
        Panel(
            f"[bold]{match.map_id}[/bold]  "
            f"[{result_style}]{match.result} {score.us}-{score.them}[/{result_style}]  "
            f"(H1 {score.half1_us}-{score.half1_them}, H2 {score.half2_us}-{score.half2_them})\n"
            f"Started {match.starting_side} | {len(match.rounds)} rounds | id {match.id}",
            title="Match",
        )
    )

    for title, players in (("Roster", match.players), ("Opponents", match.enemy_players)):
        if not players:
            continue
        table = Table(title=title)
        table.add_column("Player", style="cyan")
        table.add_column("K", justify="right")
        table.add_column("D", justify="right")
        table.add_column("A", justify="right")
        table.add_column("ADR", justify="right")
        table.add_column("HS%", justify="right")
        table.add_column("KAST%", justify="right")
        table.add_column("Rating", justify="right", style="bold")
        table.add_column("WPA", justify="right")
        for p in players:
            table.add_row(
                p.player_id,
                str(p.kills),
                str(p.deaths),
                str(p.assists),
                f"{p.adr:.1f}",
                f"{p.hs_rate:.1f}",
                f"{p.kast:.1f}",
                f"{p.rating:.2f}",
                f"{p.wpa:+.1f}",
            )
        console.print(table)
        console.print()


@app.command()
def analyze(
    demo_path: Path = typer.Argument(
        ...,
        help="Path to the demo-event JSON file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file (format detected from extension: .json, .csv)",
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file (YAML or JSON)"
    ),
    roster_path: Optional[Path] = typer.Option(
        None, "--roster", "-r", help="Roster file (YAML or JSON)"
    ),
) -> None:
    """
    Analyze one demo-event file and print the scoreboard.
    """
    config = _load(config_path, roster_path)

    try:
        match = MatchOrchestrator(config).parse_file(demo_path)
    except DemoFormatError as e:
        console.print(f"[red]Error reading demo:[/red] {e}")
        raise typer.Exit(1) from e

    _print_match(match)

    if output:
        try:
            export_match(match, output, config=config.export)
        except ValueError as e:
            console.print(f"[red]Export failed:[/red] {e}")
            raise typer.Exit(1) from e
        console.print(f"[green]Results exported to:[/green] {output}")


@app.command()
def batch(
    files: list[Path] = typer.Argument(..., help="Demo-event JSON files", exists=True),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parallel workers"),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-d", help="Write one JSON file per parsed match here"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file (YAML or JSON)"
    ),
    roster_path: Optional[Path] = typer.Option(
        None, "--roster", "-r", help="Roster file (YAML or JSON)"
    ),
) -> None:
    """
    Import many files concurrently; failures are reported per file.
    """
    config = _load(config_path, roster_path)
    if workers is not None:
        config.batch.workers = workers

    result = BatchImporter.from_config(config).import_files(files)

    table = Table(title=f"Batch import ({result.successful}/{len(files)} ok)")
    table.add_column("File", style="cyan")
    table.add_column("Status")
    table.add_column("Map")
    table.add_column("Score", justify="right")
    table.add_column("Detail")
    for item in result.results:
        if item.match is not None:
            m = item.match
            table.add_row(
                item.filename, "[green]ok[/green]", m.map_id, f"{m.score.us}-{m.score.them}", m.result
            )
        else:
            table.add_row(item.filename, "[red]failed[/red]", "", "", item.failure.error_message)
    console.print(table)

    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)
        for item in result.results:
            if item.match is not None:
                target = output_dir / f"{Path(item.filename).stem}.{item.match.id}.json"
                export_match(item.match, target, format="json", config=config.export)
        console.print(f"[green]Wrote {result.successful} matches to:[/green] {output_dir}")

    if result.failed:
        raise typer.Exit(1)


@app.command()
def config(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file to load"
    ),
    write: Optional[Path] = typer.Option(
        None, "--write", help="Write the effective configuration to this file (.yaml/.json)"
    ),
) -> None:
    """
    Show the effective configuration.
    """
    cfg = load_config(config_path)

    if write:
        try:
            save_config(cfg, write)
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e
        console.print(f"[green]Configuration written to:[/green] {write}")
        return

    data = config_to_dict(cfg)
    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for section in ("engine", "batch", "export", "logging"):
        for key, value in data[section].items():
            table.add_row(f"{section}.{key}", str(value))
    table.add_row("roster.players", str(len(cfg.roster.players)))
    table.add_row("roster.aliases", str(len(cfg.roster.aliases)))
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
