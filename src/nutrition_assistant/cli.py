"""Command-line interface for the nutrition assistant."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from nutrition_assistant.application.exceptions import InvalidMessageError
from nutrition_assistant.bootstrap import create_assistant, create_repository
from nutrition_assistant.config import Settings
from nutrition_assistant.domain.models import CallerContext, Document, UserProfile
from nutrition_assistant.logging_config import setup_logging


def _load_documents(path: Path) -> list[Document]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("documents", [])
    return [Document.model_validate(item) for item in data]


@click.group()
@click.option("--log-level", default=None, help="Override NUTRIBOT_LOG_LEVEL.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """Nutrition assistant response engine."""
    settings = Settings()
    setup_logging(
        level=log_level or settings.log_level,
        json=settings.log_json,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    ctx.obj = settings


@cli.command()
@click.argument("message")
@click.option("--user-id", default=None, help="Authenticated user id.")
@click.option("--first-name", default=None, help="Caller first name for personalization.")
@click.pass_obj
def ask(settings: Settings, message: str, user_id: str | None, first_name: str | None):
    """Answer a single MESSAGE and print the reply with its metadata."""

    async def _run():
        assistant = create_assistant(settings)
        await assistant.start()
        try:
            context = CallerContext(
                user_id=user_id,
                profile=UserProfile(first_name=first_name) if first_name else None,
            )
            return await assistant.generate_response(message, context)
        finally:
            await assistant.aclose()

    try:
        reply = asyncio.run(_run())
    except InvalidMessageError as e:
        for violation in e.violations:
            click.echo(f"✗ {violation}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"✗ Failed to answer: {e}", err=True)
        sys.exit(1)

    click.echo(reply.text)
    click.echo("")
    click.echo(
        f"[method={reply.method} confidence={reply.confidence:.2f} "
        f"documents={reply.documents_found} elapsed={reply.elapsed_ms:.1f}ms]"
    )


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def ingest(settings: Settings, file: Path):
    """Embed and store the documents listed in a JSON FILE."""

    async def _run(documents: list[Document]) -> int:
        assistant = create_assistant(settings)
        await assistant.start()
        try:
            return await assistant.ingest(documents)
        finally:
            await assistant.aclose()

    try:
        documents = _load_documents(file)
        count = asyncio.run(_run(documents))
    except (OSError, ValueError, ValidationError) as e:
        click.echo(f"✗ Ingestion failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Ingested {count} documents into {settings.vector_store_path}")


@cli.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_obj
def clear(settings: Settings, yes: bool):
    """Delete every document from the knowledge base."""
    if not yes:
        click.confirm("This removes all stored documents. Continue?", abort=True)

    async def _run():
        assistant = create_assistant(settings)
        await assistant.start()
        try:
            await assistant.clear_knowledge_base()
        finally:
            await assistant.aclose()

    asyncio.run(_run())
    click.echo("✓ Knowledge base cleared")


@cli.command("store-stats")
@click.pass_obj
def store_stats(settings: Settings):
    """Show knowledge base statistics."""

    async def _run():
        assistant = create_assistant(settings)
        await assistant.start()
        try:
            return assistant.get_store_stats()
        finally:
            await assistant.aclose()

    stats = asyncio.run(_run())
    click.echo("Knowledge base:")
    click.echo(f"  - Documents: {stats.count}")
    click.echo(f"  - Ready: {stats.is_ready}")
    click.echo(f"  - Dimension: {stats.dimension}")
    click.echo(f"  - File: {stats.path}")


@cli.command("seed-corpus")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def seed_corpus(settings: Settings, file: Path):
    """Load intents, examples and responses from a JSON FILE."""
    try:
        repository = create_repository(settings)
        try:
            created = repository.seed_from_file(file)
            stats = repository.get_stats()
        finally:
            repository.close()
    except Exception as e:
        click.echo(f"✗ Seeding failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Created {created} intents")
    click.echo(f"  - Active intents: {stats['active_intents']}")
    click.echo(f"  - Examples: {stats['total_examples']}")
    click.echo(f"  - Responses: {stats['total_responses']}")


@cli.command("refresh-corpus")
@click.pass_obj
def refresh_corpus(settings: Settings):
    """Reload the corpus and report what the cache now holds."""

    async def _run():
        assistant = create_assistant(settings)
        try:
            return await assistant.refresh_corpus_cache()
        finally:
            await assistant.aclose()

    snapshot = asyncio.run(_run())
    click.echo(f"✓ Corpus loaded: {len(snapshot.intents)} intents, {snapshot.example_count} examples")


@cli.command("match-stats")
@click.option("--limit", default=10, show_default=True, help="Number of intents to show.")
@click.pass_obj
def match_stats(settings: Settings, limit: int):
    """Show the most frequently matched intents."""
    repository = create_repository(settings)
    try:
        rows = repository.match_statistics(limit)
    finally:
        repository.close()

    if not rows:
        click.echo("No matches recorded yet.")
        return
    for row in rows:
        click.echo(
            f"{row.intent_name:<30} matches={row.match_count:<5} avg_confidence={row.avg_confidence:.2f}"
        )


if __name__ == "__main__":
    cli()
