"""Typer CLI for SightSignal — operator-facing commands over the local catalog."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from sightsignal.authoring import SignalValidationError

app = typer.Typer(
    name="sightsignal",
    help="SightSignal — match sightings to signals and rank signal feeds.",
    add_completion=False,
)
console = Console()

# Failures the operator can fix; anything else exits with code 2.
_KNOWN_ERRORS = (LookupError, SignalValidationError, ValidationError, ValueError, OSError)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_settings(
    db_path: Optional[str] = None,
    log_level: Optional[str] = None,
) -> "Settings":  # type: ignore[name-defined]
    from sightsignal.config import Settings

    overrides: dict = {}
    if db_path:
        overrides["db_path"] = db_path
    if log_level:
        overrides["log_level"] = log_level.upper()
    return Settings(**overrides)  # type: ignore[arg-type]


def _setup_logging(level: str = "INFO") -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    logging.basicConfig(level=numeric, format=fmt)


def _open_service(db_path: Optional[str], log_level: str) -> "SignalService":  # type: ignore[name-defined]
    from sightsignal.service import SignalService
    from sightsignal.storage.database import Database

    cfg = _get_settings(db_path=db_path, log_level=log_level)
    return SignalService(config=cfg, db=Database(cfg.db_path))


def _fail(exc: BaseException) -> None:
    if isinstance(exc, _KNOWN_ERRORS):
        console.print(f"[bold red]Error: {exc}[/]")
        raise typer.Exit(1)
    console.print(f"[bold red]Fatal: {exc}[/]")
    raise typer.Exit(2)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def load(
    seed_file: Path = typer.Argument(..., help="JSON seed document to import."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override catalog DB path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Import geofences, taxonomy, signals, sightings and viewer data from JSON."""
    _setup_logging(log_level)
    try:
        service = _open_service(db_path, log_level)
        payload = json.loads(seed_file.read_text(encoding="utf-8"))
        counts = service.import_seed(payload)
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(exc)
        return

    table = Table(title="Imported Rows")
    table.add_column("Section", style="bold")
    table.add_column("Rows")
    for section, count in counts.items():
        table.add_row(section, str(count))
    console.print(table)


@app.command()
def evaluate(
    sighting_id: str = typer.Argument(..., help="Stored sighting to evaluate."),
    event: str = typer.Option("new_sighting", "--event", help="Trigger event type."),
    detailed: bool = typer.Option(
        False, "--detailed", is_flag=True, help="Show every signal with its reason."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override catalog DB path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Evaluate a stored sighting against every stored signal."""
    _setup_logging(log_level)
    try:
        service = _open_service(db_path, log_level)
        results = service.evaluate_sighting(sighting_id, event, detailed=detailed)
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(exc)
        return

    if detailed:
        table = Table(title=f"Evaluations for {sighting_id} ({event})")
        table.add_column("Signal", style="bold")
        table.add_column("Name")
        table.add_column("Matched")
        table.add_column("Reason")
        for evaluation in results:
            table.add_row(
                evaluation.signal.id,
                evaluation.signal.name,
                "✅" if evaluation.matched else "❌",
                evaluation.reason,
            )
        console.print(table)
        return

    if not results:
        console.print("[dim]No signals matched.[/]")
        return
    _print_signal_table(f"Matched signals for {sighting_id} ({event})", results)


@app.command()
def preview(
    signal_id: str = typer.Argument(..., help="Stored signal to preview."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override catalog DB path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """List stored sightings that would appear in a signal's feed."""
    _setup_logging(log_level)
    try:
        service = _open_service(db_path, log_level)
        feed = service.preview_signal(signal_id)
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(exc)
        return

    if not feed:
        console.print("[dim]No sightings in feed.[/]")
        return
    table = Table(title=f"Feed for {signal_id}")
    table.add_column("Sighting", style="bold")
    table.add_column("Category")
    table.add_column("Type")
    table.add_column("Importance")
    table.add_column("Score")
    for sighting in feed:
        table.add_row(
            sighting.id,
            sighting.category_id,
            sighting.type_id,
            sighting.importance.value,
            f"{sighting.score:g}",
        )
    console.print(table)


@app.command()
def rank(
    user_id: str = typer.Argument(..., help="Viewer to rank signals for."),
    lat: Optional[float] = typer.Option(None, "--lat", help="Viewer latitude."),
    lng: Optional[float] = typer.Option(None, "--lng", help="Viewer longitude."),
    include_hidden: bool = typer.Option(
        False, "--include-hidden", is_flag=True, help="Keep signals the viewer hid."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override catalog DB path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Rank active signals for a viewer."""
    _setup_logging(log_level)
    if (lat is None) != (lng is None):
        console.print("[bold red]Error: --lat and --lng must be given together[/]")
        raise typer.Exit(1)

    try:
        from sightsignal.geo import validate_lat_lng
        from sightsignal.models import LatLng

        location = validate_lat_lng(LatLng(lat=lat, lng=lng)) if lat is not None else None
        service = _open_service(db_path, log_level)
        ranked = service.rank_signals_for_user(
            user_id, user_location=location, include_hidden=include_hidden
        )
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(exc)
        return

    if not ranked:
        console.print("[dim]No active signals.[/]")
        return
    table = Table(title=f"Signals for {user_id}")
    table.add_column("#", style="bold", width=3)
    table.add_column("Signal")
    table.add_column("Class", width=10)
    table.add_column("Score")
    table.add_column("Viral")
    table.add_column("Boost")
    table.add_column("Km")
    for i, signal in enumerate(ranked, start=1):
        table.add_row(
            str(i),
            signal.name or signal.id,
            signal.classification.value,
            f"{signal.rank_score:.2f}",
            "🔥" if signal.is_viral_boosted else "",
            f"{signal.category_boost:g}",
            f"{signal.distance_km:.1f}" if signal.distance_km is not None else "—",
        )
    console.print(table)


@app.command()
def stats(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override catalog DB path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Show catalog row counts."""
    _setup_logging(log_level)
    try:
        service = _open_service(db_path, log_level)
        s = service.db.get_stats()
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(exc)
        return

    table = Table(title="SightSignal Catalog Stats")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    for k, v in s.items():
        table.add_row(str(k), str(v) if v is not None else "—")
    console.print(table)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _print_signal_table(title: str, signals: List) -> None:
    table = Table(title=title)
    table.add_column("Signal", style="bold")
    table.add_column("Name")
    table.add_column("Class", width=10)
    table.add_column("Target", width=9)
    for signal in signals:
        table.add_row(
            signal.id,
            signal.name,
            signal.classification.value,
            signal.target.kind,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entry point registered in pyproject.toml."""
    app()


if __name__ == "__main__":
    main()
