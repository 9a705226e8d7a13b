from __future__ import annotations

import logging
import sys
from pathlib import Path

import typer

from decision_graph.config import settings
from decision_graph.context import EngineContext, build_engine_context
from decision_graph.db import session as db_session
from decision_graph.modules.catalog.errors import DataLoadError
from decision_graph.modules.catalog.loader import load_dataset
from decision_graph.modules.player.engine import PlayerStateEngine
from decision_graph.modules.player.errors import PlayerInputError
from decision_graph.modules.player.persistence import SqlSaveStore
from decision_graph.modules.validation.report import render_report
from decision_graph.modules.validation.validator import validate_dataset

app = typer.Typer(help="Decision graph tools")
state_app = typer.Typer(help="Saved player state commands")
app.add_typer(state_app, name="state")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, str(settings.log_level).upper(), logging.WARNING)
    fmt = "%(asctime)s %(name)s %(levelname)s %(message)s"
    logging.basicConfig(level=level, format=fmt, handlers=[logging.StreamHandler(sys.stderr)])
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _load_context(data: str | None) -> EngineContext:
    try:
        dataset = load_dataset(data)
    except DataLoadError as exc:
        typer.echo(f"FATAL: failed to load dataset: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    return build_engine_context(dataset, validate=False)


def _open_player(data: str | None, slot: str | None, database_url: str | None) -> PlayerStateEngine:
    if database_url:
        db_session.rebind_engine(database_url)
    db_session.init_db(db_session.engine)
    context = _load_context(data)
    return context.create_player(store=SqlSaveStore(db_session.SessionLocal), slot=slot)


@app.command()
def validate(
    data: str | None = typer.Option(None, "--data", help="Dataset path or URL (defaults to settings)."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """Check the dataset for broken references, ghost choices and causality violations."""
    setup_logging(verbose)
    source = str(data or settings.dataset_url or settings.dataset_path)
    try:
        dataset = load_dataset(source)
    except DataLoadError as exc:
        typer.echo(f"FATAL: failed to load dataset: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    report = validate_dataset(dataset)
    typer.echo(render_report(report, source=source))
    raise typer.Exit(code=0 if report.ok else 1)


@app.command()
def graph(
    data: str | None = typer.Option(None, "--data", help="Dataset path or URL (defaults to settings)."),
) -> None:
    """Print reverse-index counts for the dataset."""
    setup_logging()
    context = _load_context(data)
    summary = context.index.summary
    if summary is None:
        return
    typer.echo(f"decisions: {summary.decisions}")
    typer.echo(f"options: {summary.options}")
    typer.echo(f"effects: {summary.effects}")
    typer.echo(f"consumers: {summary.consumers}")
    typer.echo(f"consumer_edges: {summary.consumer_edges}")
    typer.echo(f"tapes: {', '.join(context.dataset.tape_order)}")


@state_app.command("show")
def state_show(
    slot: str | None = typer.Option(None, "--slot", help="Save slot name"),
    data: str | None = typer.Option(None, "--data", help="Dataset path or URL"),
    database_url: str | None = typer.Option(None, "--database-url", help="Override database url"),
) -> None:
    setup_logging()
    player = _open_player(data, slot, database_url)
    snapshot = player.get_state()
    typer.echo(f"save_key: {player.save_key}")
    for name, value in snapshot["stats"].items():
        typer.echo(f"stat {name}: {value}")
    typer.echo(f"flags: {', '.join(snapshot['flags'])}")
    typer.echo(f"arcs: {', '.join(snapshot['arcs'])}")
    typer.echo(f"memories: {len(snapshot['memories'])}")
    typer.echo(f"history: {len(snapshot['history'])}")


@state_app.command("apply")
def state_apply(
    decision_id: str = typer.Argument(..., help="Decision id"),
    option_id: str = typer.Argument(..., help="Option id"),
    slot: str | None = typer.Option(None, "--slot", help="Save slot name"),
    data: str | None = typer.Option(None, "--data", help="Dataset path or URL"),
    database_url: str | None = typer.Option(None, "--database-url", help="Override database url"),
) -> None:
    setup_logging()
    player = _open_player(data, slot, database_url)
    try:
        result = player.apply_choice(decision_id, option_id)
    except PlayerInputError as exc:
        typer.echo(f"apply failed: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(f"applied: {result.decision.id}/{result.option.id}")
    for effect in result.applied_effects:
        if effect.type == "stat":
            typer.echo(f"  - {effect.id}: {effect.stat} {effect.delta:+d} -> {effect.new_value}")
        else:
            typer.echo(f"  - {effect.id}: {effect.type}")


@state_app.command("export")
def state_export(
    slot: str | None = typer.Option(None, "--slot", help="Save slot name"),
    data: str | None = typer.Option(None, "--data", help="Dataset path or URL"),
    database_url: str | None = typer.Option(None, "--database-url", help="Override database url"),
) -> None:
    setup_logging()
    player = _open_player(data, slot, database_url)
    typer.echo(player.export_state())


@state_app.command("import")
def state_import(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file produced by `state export`"),
    slot: str | None = typer.Option(None, "--slot", help="Save slot name"),
    data: str | None = typer.Option(None, "--data", help="Dataset path or URL"),
    database_url: str | None = typer.Option(None, "--database-url", help="Override database url"),
) -> None:
    setup_logging()
    player = _open_player(data, slot, database_url)
    if not player.import_state(source.read_text(encoding="utf-8")):
        typer.echo(f"import failed: {source} is not a valid state export")
        raise typer.Exit(code=1)
    typer.echo(f"imported: {source} -> {player.save_key}")


@state_app.command("reset")
def state_reset(
    slot: str | None = typer.Option(None, "--slot", help="Save slot name"),
    data: str | None = typer.Option(None, "--data", help="Dataset path or URL"),
    database_url: str | None = typer.Option(None, "--database-url", help="Override database url"),
) -> None:
    setup_logging()
    player = _open_player(data, slot, database_url)
    player.reset_state()
    typer.echo(f"reset: {player.save_key}")


if __name__ == "__main__":
    app()
