"""Entity KB CLI - Main entry point.

Provides the `entity-kb` command-line interface.

Usage:
    entity-kb analyze --min-occurrences 5 --top 10
    entity-kb schema person
    entity-kb promote person --yes
"""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from entity_kb_analyst import (
    analyze_and_rank,
    cluster_entities,
    generate_schema_for_type,
    identify_clusters,
    to_cluster_members,
)
from entity_kb_analyst.ranker import (
    DEFAULT_MIN_CONSISTENCY,
    DEFAULT_MIN_OCCURRENCES,
    DEFAULT_TOP_N,
)
from entity_kb_analyst.schema_inference import SAMPLE_LIMIT
from entity_kb_common import configure_logging, get_settings
from entity_kb_promoter import AlembicTooling, Promoter, table_name_for
from entity_kb_storage import (
    DatabaseConfig,
    EntityStore,
    PromotedTableWriter,
    PromotionStore,
    RelationshipStore,
    close_connection_pool,
    get_connection_pool,
)

from entity_kb_cli.formatters import (
    format_candidates_json,
    format_candidates_table,
    format_clusters,
    format_history,
    format_promotion_result,
)


class OutputFormat(str, Enum):
    """Output format options."""

    table = "table"
    json = "json"


# Create the Typer app
app = typer.Typer(
    name="entity-kb",
    help="Discover entity types and promote them into typed tables.",
    add_completion=False,
)


@app.callback()
def setup():
    """Configure logging from settings before any command runs."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_output=settings.log_format == "json")


async def connect() -> None:
    """Open the global connection pool from settings."""
    config = DatabaseConfig.from_url(get_settings().database_url)
    await get_connection_pool(config)


@app.command()
def analyze(
    min_occurrences: int = typer.Option(
        DEFAULT_MIN_OCCURRENCES, "--min-occurrences", "-m", help="Minimum entity count per type"
    ),
    min_consistency: float = typer.Option(
        DEFAULT_MIN_CONSISTENCY, "--min-consistency", "-c", help="Minimum average property consistency"
    ),
    top: int = typer.Option(DEFAULT_TOP_N, "--top", "-n", help="Number of candidates to show"),
    format: OutputFormat = typer.Option(
        OutputFormat.table, "--format", "-f", help="Output format"
    ),
    with_clusters: bool = typer.Option(
        False, "--clusters", help="Corroborate candidates with embedding clusters"
    ),
):
    """Rank discovered type labels as promotion candidates."""
    settings = get_settings()

    async def run_analysis():
        await connect()
        try:
            candidates = await analyze_and_rank(min_occurrences, min_consistency, top)
            clusters = None
            if with_clusters:
                entities = await EntityStore.list_with_embeddings()
                clusters = identify_clusters(
                    to_cluster_members(entities), settings.similarity_threshold
                )
            return candidates, clusters
        finally:
            await close_connection_pool()

    try:
        candidates, clusters = asyncio.run(run_analysis())

        if format == OutputFormat.json:
            typer.echo(format_candidates_json(candidates, clusters))
        else:
            typer.echo(format_candidates_table(candidates, clusters))

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def clusters(
    threshold: Optional[float] = typer.Option(
        None, "--threshold", "-t", help="Cosine similarity threshold (default from settings)"
    ),
    min_size: Optional[int] = typer.Option(
        None, "--min-size", "-s", help="Members needed to corroborate a type"
    ),
):
    """Cluster entities by embedding similarity within each type."""
    settings = get_settings()
    threshold = settings.similarity_threshold if threshold is None else threshold
    min_size = settings.min_cluster_size if min_size is None else min_size

    async def run_clustering():
        await connect()
        try:
            return await cluster_entities(threshold)
        finally:
            await close_connection_pool()

    try:
        found = asyncio.run(run_clustering())
        typer.echo(format_clusters(found, min_size))

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def schema(
    type_name: str = typer.Argument(..., help="Type label to infer a schema for"),
    sample_limit: int = typer.Option(
        SAMPLE_LIMIT, "--sample-limit", help="Maximum entities to sample"
    ),
):
    """Print the inferred schema for a type as JSON."""

    async def run_inference():
        await connect()
        try:
            return await generate_schema_for_type(type_name, sample_limit)
        finally:
            await close_connection_pool()

    try:
        inferred = asyncio.run(run_inference())
        typer.echo(inferred.model_dump_json(by_alias=True, indent=2))

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def promote(
    type_name: str = typer.Argument(..., help="Type label to promote"),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Directory for the generated model (default from settings)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    no_copy: bool = typer.Option(
        False, "--no-copy", help="Create the table but leave data migration to the operator"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Abort the promotion after this many seconds"
    ),
):
    """Promote a discovered type into its own typed table."""
    settings = get_settings()
    output_dir = output_dir or Path(settings.artifact_dir)

    if not yes:
        typer.confirm(
            f"Promote '{type_name}' into table '{table_name_for(type_name)}'?", abort=True
        )

    async def run_promotion():
        await connect()
        try:
            promoter = Promoter(
                tooling=AlembicTooling.from_settings(settings, artifact_dir=output_dir),
                writer=None if no_copy else PromotedTableWriter(),
            )
            attempt = promoter.promote_type(type_name, output_dir)
            if timeout is not None:
                return await asyncio.wait_for(attempt, timeout)
            return await attempt
        finally:
            await close_connection_pool()

    try:
        result = asyncio.run(run_promotion())
    except asyncio.TimeoutError:
        typer.echo(f"Error: promotion of '{type_name}' timed out after {timeout}s", err=True)
        raise typer.Exit(1)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(format_promotion_result(result))
    if not result.success:
        raise typer.Exit(1)


@app.command()
def history(
    type_name: Optional[str] = typer.Argument(None, help="Only show this type label"),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum records when no type is given"),
):
    """Show the promotion audit trail."""

    async def list_history():
        await connect()
        try:
            if type_name:
                return await PromotionStore.list_for_type(type_name)
            return await PromotionStore.list_recent(limit)
        finally:
            await close_connection_pool()

    try:
        records = asyncio.run(list_history())
        typer.echo(format_history(records))

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def stats():
    """Show discovered entity statistics."""

    async def get_stats():
        await connect()
        try:
            entity_count = await EntityStore.count()
            relationship_count = await RelationshipStore.count()
            by_type = await EntityStore.count_by_type()
            return entity_count, relationship_count, by_type
        finally:
            await close_connection_pool()

    try:
        entity_count, relationship_count, by_type = asyncio.run(get_stats())

        typer.echo("Entity KB Statistics")
        typer.echo("=" * 40)
        typer.echo(f"Total entities:      {entity_count}")
        typer.echo(f"Total relationships: {relationship_count}")
        typer.echo()
        typer.echo("By type:")
        for type_category, count in by_type.items():
            typer.echo(f"  {type_category[:24]:24} {count:6}")

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
