"""CLI entrypoint for questionkit."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from questionkit import __version__
from questionkit.cards.store import JsonCardStore
from questionkit.config import load_settings
from questionkit.errors import QuestionError
from questionkit.execution import CompileError, DuckDBDatasetApi
from questionkit.log_setup import configure_logging
from questionkit.metadata import Metadata, introspect_duckdb
from questionkit.question import Question


def _read_card(path: str) -> dict:
    """Load a card from a JSON file, or stdin when path is '-'."""
    try:
        if path == "-":
            card = json.load(sys.stdin)
        else:
            with open(path) as f:
                card = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        click.echo(f"❌ Cannot read card from {path}: {e}", err=True)
        raise click.Abort()
    if not isinstance(card, dict):
        click.echo(f"❌ {path} does not contain a card object", err=True)
        raise click.Abort()
    return card


def _metadata(db_path: str | None) -> Metadata:
    if db_path and Path(db_path).exists():
        return introspect_duckdb(Path(db_path))
    return Metadata()


def _parse_params(params: tuple[str, ...]) -> dict:
    """Parse ``id=value`` pairs; values are JSON when they parse as JSON."""
    values = {}
    for item in params:
        if "=" not in item:
            raise click.BadParameter(f"Expected id=value, got '{item}'", param_hint="--param")
        key, raw = item.split("=", 1)
        try:
            values[key] = json.loads(raw)
        except json.JSONDecodeError:
            values[key] = raw
    return values


@click.group()
@click.version_option(__version__)
@click.option("--log-level", default=None, help="Logging level (default: $QK_LOG_LEVEL or INFO)")
@click.pass_context
def main(ctx: click.Context, log_level: str | None):
    """questionkit - immutable questions over saved query cards."""
    settings = load_settings()
    configure_logging(log_level or settings.log_level)
    ctx.obj = settings


@main.command()
@click.argument("card_file")
def classify(card_file: str):
    """Show the query variant of a card and its atomic queries."""
    question = Question(None, _read_card(card_file))
    try:
        query = question.query()
        atomic = question.atomic_queries()
    except QuestionError as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    click.echo(f"Query type: {query.kind.value}")
    click.echo(f"Can run: {question.can_run()}")
    click.echo(f"Convertible to multi-query: {question.can_convert_to_multi_query()}")
    click.echo(f"Atomic queries: {len(atomic)}")
    for i, member in enumerate(atomic, 1):
        click.echo(f"  {i}. {member.kind.value}: {json.dumps(member.dataset_query())}")


@main.command()
@click.argument("card_file")
@click.option(
    "--no-lineage",
    is_flag=True,
    default=False,
    help="Leave original_card_id out of the token",
)
def serialize(card_file: str, no_lineage: bool):
    """Print the URL token of a card."""
    question = Question(None, _read_card(card_file))
    click.echo(question.serialize_for_url(include_original_card_id=not no_lineage))


@main.command()
@click.argument("token")
def decode(token: str):
    """Decode a URL token back into card JSON."""
    try:
        question = Question.from_url(token)
    except QuestionError as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()
    click.echo(json.dumps(question.card(), indent=2, ensure_ascii=False))


@main.command()
@click.argument("card_file")
@click.option(
    "--original",
    "original_file",
    default=None,
    help="Card JSON of the last saved version (default: look it up in the card store)",
)
@click.option("--cards-dir", default=None, help="Card store directory (default: $QK_CARDS_DIR)")
@click.pass_obj
def dirty(settings, card_file: str, original_file: str | None, cards_dir: str | None):
    """Report whether a card differs from its saved version."""
    question = Question(None, _read_card(card_file))
    if original_file:
        original = Question(None, _read_card(original_file))
    elif question.is_saved():
        store = JsonCardStore(cards_dir or settings.cards_dir)
        try:
            original = Question(None, store.load(question.id()))
        except QuestionError as e:
            click.echo(f"❌ {e}", err=True)
            raise click.Abort()
    else:
        original = question

    is_dirty = question.is_dirty_compared_to(original)
    click.echo("dirty" if is_dirty else "clean")
    sys.exit(1 if is_dirty else 0)


@main.command("convert-to-multi")
@click.argument("card_file")
def convert_to_multi(card_file: str):
    """Split an aggregated single-breakout card into a multi-query card."""
    converted = Question(None, _read_card(card_file)).convert_to_multi_query()
    if converted is None:
        click.echo(
            "❌ Only aggregated questions with exactly one breakout can be converted",
            err=True,
        )
        raise click.Abort()
    click.echo(json.dumps(converted.card(), indent=2))


@main.command()
@click.option("--db-path", default=None, help="DuckDB database (default: $QK_DB_PATH)")
@click.pass_obj
def metadata(settings, db_path: str | None):
    """List tables and fields of a DuckDB database with their ids."""
    path = Path(db_path) if db_path else settings.db_path
    if not path.exists():
        click.echo(f"❌ Database not found: {path}", err=True)
        raise click.Abort()

    catalog = introspect_duckdb(path)
    for table in sorted(catalog.tables.values(), key=lambda t: t.id):
        click.echo(f"[{table.id}] {table.name}")
        for field in catalog.fields_for_table(table.id):
            special = f" ({field.special_type})" if field.special_type else ""
            click.echo(f"    [{field.id}] {field.name}: {field.base_type}{special}")


@main.command()
@click.argument("card_file")
@click.option("--db-path", default=None, help="DuckDB database (default: $QK_DB_PATH)")
@click.option("--cards-dir", default=None, help="Card store directory (default: $QK_CARDS_DIR)")
@click.option("--param", "params", multiple=True, help="Parameter value as id=value (repeatable)")
@click.option("--dirty", "is_dirty", is_flag=True, default=False, help="Skip the saved card path")
@click.option("--ignore-cache", is_flag=True, default=False, help="Bypass the saved card cache")
@click.pass_obj
def run(
    settings,
    card_file: str,
    db_path: str | None,
    cards_dir: str | None,
    params: tuple[str, ...],
    is_dirty: bool,
    ignore_cache: bool,
):
    """Run a card against DuckDB and print one result per atomic query."""
    path = Path(db_path) if db_path else settings.db_path
    if not path.exists():
        click.echo(f"❌ Database not found: {path}", err=True)
        raise click.Abort()

    catalog = _metadata(str(path))
    store = JsonCardStore(cards_dir or settings.cards_dir)
    api = DuckDBDatasetApi(path, catalog, store)
    question = Question(catalog, _read_card(card_file), _parse_params(params))

    try:
        results = asyncio.run(
            question.get_results(api, api, is_dirty=is_dirty, ignore_cache=ignore_cache)
        )
    except (QuestionError, CompileError) as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    for i, result in enumerate(results, 1):
        click.echo(f"-- Result {i}: {result['row_count']} row(s) in {result['running_time_ms']} ms")
        click.echo(f"-- {result['sql']}")
        click.echo("\t".join(result["columns"]))
        for row in result["rows"]:
            click.echo("\t".join("" if v is None else str(v) for v in row))


@main.command()
@click.option("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
@click.option("--port", default=8000, type=int, help="Bind port (default: 8000)")
@click.option("--db-path", default=None, help="DuckDB database (default: $QK_DB_PATH)")
@click.option("--cards-dir", default=None, help="Card store directory (default: $QK_CARDS_DIR)")
@click.pass_obj
def serve(settings, host: str, port: int, db_path: str | None, cards_dir: str | None):
    """Start the HTTP API."""
    import uvicorn

    from questionkit.api.server import create_app

    app = create_app(db_path=db_path or settings.db_path, cards_dir=cards_dir or settings.cards_dir)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
