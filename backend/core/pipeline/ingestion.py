import logging
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
import pandas as pd
from core.chunk.chunker import TextChunker
from core.chunk.composer import DocumentComposer
from core.embed.embedder import EmbeddingClient, validate_vectors
from core.errors import EmbeddingError, IndexWriteError
from storage.base import VectorStore, DocumentStore, CheckpointStore, FailedUpsertStore
from models.chunk import IndexedVector, RecipeChunk
from models.ingestion import Checkpoint, IngestionReport, IngestionStatus
from config.settings import AppSettings, settings as default_settings

logger = logging.getLogger(__name__)


def read_source_rows(csv_path: str) -> List[Dict[str, Any]]:
    """Reads the bulk recipe CSV; every cell is a string, missing cells are ''."""
    frame = pd.read_csv(
        csv_path,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        on_bad_lines="warn"
    )
    return frame.to_dict(orient="records")


class IngestionPipeline:
    """
    Orchestrates resumable bulk ingestion:
    row -> document cache -> chunk -> compose -> embed (batched) -> upsert (sliced)
    Progress is checkpointed every `checkpoint_every` rows.
    """

    def __init__(self,
                 embedder: EmbeddingClient,
                 vector_store: VectorStore,
                 document_store: DocumentStore,
                 checkpoint_store: CheckpointStore,
                 failed_store: FailedUpsertStore,
                 app_settings: Optional[AppSettings] = None):
        app_settings = app_settings or default_settings
        self.embedder = embedder
        self.vector_store = vector_store
        self.document_store = document_store
        self.checkpoint_store = checkpoint_store
        self.failed_store = failed_store

        self.config = app_settings.ingestion
        self.embed_batch_size = app_settings.embedding.batch_size
        self.default_namespace = app_settings.qdrant.namespace

        # Initialize components
        self.chunker = TextChunker(app_settings.chunking)
        self.composer = DocumentComposer()

        self._embed_batch: List[RecipeChunk] = []
        self._upsert_buffer: List[IndexedVector] = []
        self._report = IngestionReport()

    def run_csv(self,
                csv_path: Optional[str] = None,
                namespace: Optional[str] = None,
                progress_callback: Optional[Callable[[int, str], None]] = None) -> IngestionReport:
        path = csv_path or self.config.csv_path
        rows = read_source_rows(path)
        logger.info(f"Loaded {len(rows)} rows from {path}")
        return self.run(rows, namespace=namespace, progress_callback=progress_callback)

    def run(self,
            rows: Sequence[Mapping[str, Any]],
            namespace: Optional[str] = None,
            progress_callback: Optional[Callable[[int, str], None]] = None) -> IngestionReport:
        """
        Ingests every row after the stored checkpoint.
        The checkpoint and document cache are persisted even when the run fails.
        """
        namespace = namespace or self.default_namespace
        self._embed_batch = []
        self._upsert_buffer = []
        self._report = IngestionReport(rows_total=len(rows))

        def update_progress(row_index: int, message: str):
            progress = int(100 * (row_index + 1) / len(rows)) if rows else 100
            if progress_callback:
                progress_callback(progress, message)
            logger.info(f"{progress}%: {message}")

        self.document_store.load()
        checkpoint = self.checkpoint_store.load()
        committed = checkpoint.last_processed_row
        logger.info(f"Starting ingest of {len(rows)} rows into namespace={namespace}; "
                    f"checkpoint.last_processed_row={committed}")

        try:
            for idx, row in enumerate(rows):
                if idx <= checkpoint.last_processed_row:
                    self._report.rows_skipped += 1
                    continue

                try:
                    chunks = self._process_row(row, namespace)
                except Exception:
                    logger.exception(f"Row {idx} failed to compose; skipping it")
                    self._report.rows_failed += 1
                    chunks = []
                self._enqueue(chunks, namespace)

                if idx % self.config.checkpoint_every == 0:
                    # Only checkpoint rows whose chunks have left the in-memory buffers
                    self._flush_embed_batch(namespace)
                    self._flush_upsert_buffer(namespace)
                    committed = idx
                    self._persist(committed)
                    update_progress(idx, f"Checkpoint saved at row {idx}")

            self._flush_embed_batch(namespace)
            self._flush_upsert_buffer(namespace)
            committed = max(committed, len(rows) - 1)
            self._report.message = "Ingest finished"

        except Exception as e:
            logger.exception(f"Ingest failed; persisting progress up to row {committed}")
            self._report.status = IngestionStatus.failed
            self._report.message = str(e)
            raise

        finally:
            self._persist(committed)
            self._report.last_processed_row = committed
            logger.info(f"Final checkpoint saved at row {committed}")

        update_progress(len(rows) - 1, "Ingest finished")
        return self._report

    def _process_row(self, row: Mapping[str, Any], namespace: str) -> List[RecipeChunk]:
        """Caches the row's document and returns its chunks; nothing is embedded here."""
        record = self.composer.record_from_row(row)
        if not self.composer.record_is_indexable(record):
            logger.warning(f"Skipping row without title or ingredients: {dict(row)!r:.200}")
            self._report.rows_invalid += 1
            return []

        # Re-ingesting an unchanged row keeps its opaque id
        parent_id = self.composer.derive_parent_id(record)
        existing = self.document_store.get(parent_id)
        recipe_id = existing.recipe_id if existing else str(uuid.uuid4())

        document = self.composer.build_document(record, recipe_id=recipe_id)
        self.document_store.put(document.recipe_id, document)

        pieces = self.chunker.chunk(record.instructions)
        chunks = self.composer.build_chunks(record, document, pieces, namespace=namespace)
        self._report.rows_processed += 1
        self._report.chunks_built += len(chunks)
        return chunks

    def _enqueue(self, chunks: List[RecipeChunk], namespace: str) -> None:
        # Embedding and upsert errors are batch-scoped, so they stay outside the per-row guard
        for chunk in chunks:
            self._embed_batch.append(chunk)
            if len(self._embed_batch) >= self.embed_batch_size:
                self._flush_embed_batch(namespace)

    def _flush_embed_batch(self, namespace: str) -> None:
        batch = [c for c in self._embed_batch if c.text.strip()]
        self._embed_batch = []
        if not batch:
            return

        logger.info(f"Embedding batch size={len(batch)}...")
        texts = [c.text for c in batch]
        try:
            vectors = validate_vectors(texts, self.embedder.embed_many(texts))
        except EmbeddingError as e:
            logger.error(f"Embedding API error, skipping this batch of {len(batch)}: {e}")
            self._report.failed_batches += 1
            failed = {c.metadata.parent_id for c in batch}
            self._report.failed_parent_ids.extend(sorted(failed - set(self._report.failed_parent_ids)))
            return

        self._report.vectors_embedded += len(vectors)
        for chunk, vector in zip(batch, vectors):
            self._upsert_buffer.append(IndexedVector(
                id=chunk.chunk_id,
                values=vector,
                metadata=self.composer.chunk_payload(chunk)
            ))
            if len(self._upsert_buffer) >= self.config.upsert_batch:
                self._flush_upsert_buffer(namespace)

    def _flush_upsert_buffer(self, namespace: str) -> None:
        buffer = self._upsert_buffer
        self._upsert_buffer = []
        if not buffer:
            return

        logger.info(f"Upserting {len(buffer)} vectors (namespace={namespace}) ...")
        size = self.config.upsert_batch
        for start in range(0, len(buffer), size):
            vector_slice = buffer[start:start + size]
            try:
                self.vector_store.upsert(namespace, vector_slice)
                self._report.vectors_upserted += len(vector_slice)
                logger.info(f"Upserted vectors {start}..{start + len(vector_slice) - 1}")
            except IndexWriteError as e:
                failed_file = self.failed_store.save(str(e), namespace, vector_slice)
                self._report.failed_slices += 1
                self._report.failed_slice_files.append(failed_file)
                logger.error(f"Upsert failed for slice {start}..{start + len(vector_slice) - 1}: {e}; "
                             f"wrote failed slice to {failed_file}")

    def _persist(self, last_processed_row: int) -> None:
        self.checkpoint_store.save(Checkpoint(last_processed_row=last_processed_row))
        self.document_store.save()

    def sample_check(self, rows: Sequence[Mapping[str, Any]]) -> Optional[int]:
        """Embeds the first non-empty recipe once and returns the vector length."""
        for row in rows:
            record = self.composer.record_from_row(row)
            doc = (self.composer.compose_prefix(record) + "\n" + record.instructions).strip()
            if not doc:
                continue
            try:
                vector = validate_vectors([doc], self.embedder.embed_many([doc]))[0]
            except EmbeddingError as e:
                logger.warning(f"Sample embedding check failed: {e}")
                return None
            logger.info(f"Sample embedding length: {len(vector)}")
            return len(vector)
        return None

    def reprocess_failed(self, location: str) -> int:
        """Re-upserts a failed slice side file; removes it on success."""
        namespace, items = self.failed_store.load(location)
        self.vector_store.upsert(namespace or self.default_namespace, items)
        self.failed_store.remove(location)
        logger.info(f"Reprocessed {len(items)} vectors from {location}")
        return len(items)
