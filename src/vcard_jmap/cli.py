from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .calendar_model import CalendarEvent
from .config import ensure_workspace, load_settings
from .dialects import UnknownDialectError, get_dialect
from .errors import LegacyParseError, Result
from .event_mapper import EventMapper
from .io import collect_sources, read_legacy_files
from .mapper import ContactMapper
from .model import Card

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="vcard-jmap: convert vCard / iCalendar to JSContact / JSCalendar and back.",
)
console = Console()
err_console = Console(stderr=True)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _rules(dialect: str):
    try:
        return get_dialect(dialect)
    except UnknownDialectError as exc:
        err_console.print(f"[bold red]{exc.args[0]}[/bold red]")
        raise typer.Exit(code=2)


def _write(text: str, output: Path | None) -> None:
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    err_console.print(f"[green]Wrote[/green] {output}")


# ── Commands ───────────────────────────────────────────────────────────────────

@app.command("to-json")
def to_json(
    files: list[Path] = typer.Argument(..., help=".vcf / .ics files or directories holding them"),
    dialect: str | None = typer.Option(None, "--dialect", "-d", help="standard, nextcloud or roundcube"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (default from config)"),
    config: Path | None = typer.Option(None, "--config", help="Config file (default local/vcard-jmap.toml)"),
) -> None:
    """Map legacy files to a JSON array of Cards and Events."""
    settings = load_settings(config)
    _setup_logging(log_level or settings.log_level)
    rules = _rules(dialect or settings.dialect)

    sources = collect_sources(files)
    if not sources:
        err_console.print("[bold red]No .vcf or .ics files found.[/bold red]")
        raise typer.Exit(code=2)
    vcards, calendars = read_legacy_files(sources)

    contacts = {
        cid: {"vCard": text, "oxpProperties": {"addressBookId": settings.address_book_id}}
        for cid, text in vcards.items()
    }
    events = {
        eid: {"iCalendar": text, "oxpProperties": {"calendarId": settings.calendar_id}}
        for eid, text in calendars.items()
    }
    try:
        records = ContactMapper(rules, settings.vcard_version).map_to_json(contacts)
        records += EventMapper().map_to_json(events)
    except LegacyParseError as exc:
        err_console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=2)

    _write(json.dumps([r.to_json() for r in records], indent=2, ensure_ascii=False), output)


@app.command("from-json")
def from_json(
    file: Path = typer.Argument(..., help="JSON object of {creationId: Card or Event}"),
    dialect: str | None = typer.Option(None, "--dialect", "-d", help="standard, nextcloud or roundcube"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write legacy text here instead of stdout"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (default from config)"),
    config: Path | None = typer.Option(None, "--config", help="Config file (default local/vcard-jmap.toml)"),
) -> None:
    """Map JSON records back to vCard / iCalendar text."""
    settings = load_settings(config)
    _setup_logging(log_level or settings.log_level)
    rules = _rules(dialect or settings.dialect)

    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        err_console.print(f"[bold red]Cannot read {file}: {exc}[/bold red]")
        raise typer.Exit(code=2)
    if not isinstance(data, dict):
        err_console.print("[bold red]Expected a JSON object keyed by creation id.[/bold red]")
        raise typer.Exit(code=2)

    cards = {k: Card.from_json(v) for k, v in data.items() if v.get("@type") == "Card"}
    events = {k: CalendarEvent.from_json(v) for k, v in data.items() if v.get("@type") == "Event"}
    for key in data.keys() - cards.keys() - events.keys():
        err_console.print(f"[yellow]Skipping {key}: @type is neither Card nor Event[/yellow]")

    results: list[Result] = ContactMapper(rules, settings.vcard_version).map_from_json(cards)
    results += EventMapper().map_from_json(events)

    texts = []
    for result in results:
        if result.ok:
            texts.append(result.value.get("vCard") or result.value.get("iCalendar"))
    _write("".join(texts), output)

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Record")
    table.add_column("Status")
    for result in results:
        status = "[green]ok[/green]" if result.ok else f"[red]failed: {result.error}[/red]"
        table.add_row(result.key, status)
    err_console.print(table)

    if not all(r.ok for r in results):
        raise typer.Exit(code=1)


@app.command()
def init(
    dir: Path | None = typer.Option(None, "--dir", help="Workspace directory (default: cwd)"),
) -> None:
    """Create local/vcard-jmap.toml with default settings."""
    conf = ensure_workspace(dir)
    console.print(f"Config: [bold]{conf}[/bold]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
