"""Operator CLI: bulk ingestion, index provisioning and ad-hoc queries."""

import json
import logging
from typing import Optional

import typer
from dotenv import load_dotenv

load_dotenv()

from config.settings import settings
from core.errors import ConfigurationError
from storage.qdrant_store import QdrantVectorStore
from storage.file_store import LocalDocumentStore, LocalCheckpointStore, LocalFailedUpsertStore

app = typer.Typer(name="pantrymatch", help="Recipe index maintenance commands")
logger = logging.getLogger("pantrymatch")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _vector_store() -> QdrantVectorStore:
    try:
        return QdrantVectorStore(settings)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)


def _pipeline(vector_store: QdrantVectorStore):
    # Deferred so `create-index` does not load the embedding model
    from core.embed.embedder import Embedder
    from core.pipeline.ingestion import IngestionPipeline

    cache_dir = settings.ingestion.cache_dir
    return IngestionPipeline(
        embedder=Embedder(settings.embedding),
        vector_store=vector_store,
        document_store=LocalDocumentStore(cache_dir),
        checkpoint_store=LocalCheckpointStore(cache_dir),
        failed_store=LocalFailedUpsertStore(cache_dir),
        app_settings=settings
    )


@app.command()
def ingest(
    csv: Optional[str] = typer.Option(None, "--csv", help="Recipe CSV (defaults to ingestion.csv_path)"),
    namespace: Optional[str] = typer.Option(None, help="Target namespace (defaults to qdrant.namespace)"),
    sample_check: bool = typer.Option(True, "--sample-check/--no-sample-check", help="Embed one recipe before the run"),
):
    """Chunk, embed and index every recipe after the last checkpoint."""
    _setup_logging()
    try:
        settings.validate_for_ingestion(csv)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)

    from core.pipeline.ingestion import read_source_rows

    pipeline = _pipeline(_vector_store())
    rows = read_source_rows(csv or settings.ingestion.csv_path)
    if sample_check and settings.ingestion.sample_check:
        pipeline.sample_check(rows)

    try:
        report = pipeline.run(rows, namespace=namespace)
    except Exception as e:
        typer.echo(f"Ingest failed: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(report.model_dump_json(indent=2))


@app.command("create-index")
def create_index():
    """Create the Qdrant collection and payload indexes if they do not exist."""
    _setup_logging()
    store = _vector_store()
    if store.ensure_collection():
        typer.echo(f"Created collection '{settings.qdrant.collection_name}'")
    else:
        typer.echo(f"Collection '{settings.qdrant.collection_name}' already exists")
    typer.echo(json.dumps(store.describe(), indent=2))


@app.command()
def query(
    text: str = typer.Argument("tomato onion pasta"),
    top_k: int = typer.Option(6, "--top-k"),
    namespace: Optional[str] = typer.Option(None),
):
    """Run a raw chunk query, group hits by recipe and show the top cached recipe."""
    _setup_logging()
    from core.embed.embedder import Embedder
    from core.retrieve.query_engine import QueryEngine

    engine = QueryEngine(Embedder(settings.embedding), _vector_store(), app_settings=settings)
    matches = engine.search_chunks(text, top_k, namespace=namespace)
    typer.echo(f"Got {len(matches)} matches")

    grouped = {}
    for m in matches:
        grouped.setdefault(engine.aggregator.parent_id_of(m), []).append(m)
    for parent_id, hits in grouped.items():
        typer.echo(f"--- {parent_id} hits: {len(hits)}")
        typer.echo(json.dumps([h.model_dump() for h in hits[:3]], indent=2, default=str))

    documents = LocalDocumentStore(settings.ingestion.cache_dir)
    documents.load()
    if grouped:
        top_parent = next(iter(grouped))
        document = documents.get(top_parent)
        if document:
            typer.echo(f"Full recipe (from cache) for top result: {top_parent}")
            typer.echo(document.model_dump_json(indent=2)[:1000])
        else:
            typer.echo("Top result is not in the local recipe cache.")


@app.command("reprocess-failed")
def reprocess_failed(path: Optional[str] = typer.Argument(None, help="One side file; default is all of them")):
    """Retry upserts that were written to failed_upsert_*.json side files."""
    _setup_logging()
    pipeline = _pipeline(_vector_store())
    locations = [path] if path else pipeline.failed_store.list()
    if not locations:
        typer.echo("No failed upsert files found.")
        return

    failures = 0
    for location in locations:
        try:
            count = pipeline.reprocess_failed(location)
            typer.echo(f"Re-upserted {count} vectors from {location}")
        except Exception as e:
            failures += 1
            logger.error(f"Reprocessing {location} failed: {e}")
    if failures:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
