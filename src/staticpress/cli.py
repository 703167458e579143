"""CLI interface for staticpress."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from staticpress.build import build_site
from staticpress.config import load_config, merge_cli_overrides
from staticpress.diagrams import DEFAULT_DIAGRAM_THEME, SKIN_DIAGRAM_THEMES, resolve_diagram_theme
from staticpress.emitter import StaticEmitter
from staticpress.errors import (
    BuildReport,
    ConfigurationError,
    ContentError,
    OutputCollisionError,
    SiteError,
    load_report,
    save_report,
)

app = typer.Typer(
    name="staticpress",
    help="Build a static blog from Markdown posts and pages.",
)

console = Console()
_stderr_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_stderr_console, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from staticpress import __version__

        console.print(f"staticpress {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """staticpress - static site generator for Markdown blogs."""
    pass


SourceOption = Annotated[
    Path,
    typer.Option(
        "--source",
        "-s",
        help="Site source directory.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Config file. Defaults to <source>/_config.yml."),
]


@app.command()
def build(
    source: SourceOption = Path("."),
    destination: Annotated[
        Optional[Path],
        typer.Option("--destination", "-d", help="Output directory. Defaults to <source>/_site."),
    ] = None,
    config_path: ConfigOption = None,
    skip_invalid: Annotated[
        Optional[bool],
        typer.Option(
            "--skip-invalid/--strict",
            help="Skip documents with content errors instead of aborting.",
        ),
    ] = None,
    drafts: Annotated[
        Optional[bool],
        typer.Option("--drafts/--no-drafts", help="Render posts from _drafts."),
    ] = None,
    env: Annotated[
        Optional[str],
        typer.Option("--env", "-e", help="Build environment (e.g. production, development)."),
    ] = None,
    url: Annotated[
        Optional[str],
        typer.Option("--url", help="Override the site URL."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """Build the site.

    Reads _config.yml, renders every post and page, generates archives,
    pagination, feed and sitemap, and writes the result atomically to the
    destination directory.
    """
    _setup_logging(verbose)
    report = BuildReport()
    try:
        config = load_config(config_path, source_dir=source)
        config = merge_cli_overrides(
            config,
            skip_invalid=skip_invalid,
            show_drafts=drafts,
            environment=env,
            url=url,
        )
        output_dir = destination.resolve() if destination else source / config.destination
        with console.status("Building site..."):
            build_site(config, source, output_dir, report=report)
    except ConfigurationError as exc:
        _fail(report, source, "Configuration error", exc)
    except OutputCollisionError as exc:
        _fail(report, source, "Output collision", exc)
    except ContentError as exc:
        _fail(report, source, "Content error", exc)
    except SiteError as exc:
        _fail(report, source, "Build failed", exc)

    save_report(report, source)
    console.print(f"[green]{report.summary_text()}[/green]")
    if report.skipped_sources:
        console.print(f"[yellow]Skipped {len(report.skipped_sources)} document(s):[/yellow]")
        for path in report.skipped_sources:
            console.print(f"  - {path}")


def _fail(report: BuildReport, source: Path, label: str, exc: SiteError) -> None:
    if report.fatal is None:
        report.fail("config", exc)
    if report.finished_at is None:
        report.finish()
    save_report(report, source)
    _stderr_console.print(f"[red]{label}:[/red] {exc}")
    raise typer.Exit(1)


@app.command()
def clean(
    source: SourceOption = Path("."),
    config_path: ConfigOption = None,
) -> None:
    """Remove the generated site and leftover staging directories."""
    _setup_logging(False)
    try:
        config = load_config(config_path, source_dir=source)
        emitter = StaticEmitter(config, source, source / config.destination)
    except ConfigurationError as exc:
        _stderr_console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(1)
    if emitter.clean():
        console.print(f"[green]Removed {emitter.output_dir}[/green]")
    else:
        console.print("[yellow]Nothing to clean.[/yellow]")


@app.command()
def status(
    source: SourceOption = Path("."),
) -> None:
    """Show the report of the last build."""
    report = load_report(source)
    if report is None:
        console.print("[yellow]No build report found.[/yellow]")
        raise typer.Exit(1)
    console.print(report.summary_text())
    if not report.success:
        raise typer.Exit(1)


@app.command()
def skins(
    source: SourceOption = Path("."),
    config_path: ConfigOption = None,
) -> None:
    """List skins and the diagram theme each one uses."""
    _setup_logging(False)
    try:
        config = load_config(config_path, source_dir=source)
    except ConfigurationError as exc:
        _stderr_console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(1)

    table = Table(title="Skins")
    table.add_column("Skin")
    table.add_column("Diagram theme")
    for skin, theme in sorted(SKIN_DIAGRAM_THEMES.items()):
        marker = " (active)" if skin == config.skin else ""
        table.add_row(f"{skin}{marker}", theme)
    console.print(table)
    if config.skin not in SKIN_DIAGRAM_THEMES:
        console.print(
            f"Active skin [bold]{config.skin}[/bold] is not listed; "
            f"diagrams use {resolve_diagram_theme(config.skin)!r} "
            f"(default {DEFAULT_DIAGRAM_THEME!r})."
        )


if __name__ == "__main__":
    app()
