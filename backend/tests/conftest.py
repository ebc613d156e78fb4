import hashlib
import re
from typing import List

import numpy as np
import pytest

from config.settings import (
    AppSettings, ChunkingConfig, EmbeddingConfig, QdrantConfig, IngestionConfig
)
from core.embed.embedder import EmbeddingClient
from core.errors import EmbeddingError
from storage.file_store import LocalDocumentStore, LocalCheckpointStore, LocalFailedUpsertStore

VECTOR_DIM = 64


class HashingEmbedder(EmbeddingClient):
    """Deterministic bag-of-words embedder: each token bumps one hashed dimension."""

    def __init__(self, dim: int = VECTOR_DIM, fail_on_call: int | None = None):
        self.dim = dim
        self.calls: List[List[str]] = []
        self.fail_on_call = fail_on_call

    def _vector(self, text: str) -> List[float]:
        vec = np.zeros(self.dim)
        vec[0] = 1e-3
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            vec[int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dim] += 1.0
        return (vec / np.linalg.norm(vec)).tolist()

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise EmbeddingError("simulated embedding outage", batch_size=len(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, query: str) -> List[float]:
        return self._vector(query)


@pytest.fixture
def app_settings(tmp_path) -> AppSettings:
    return AppSettings(
        chunking=ChunkingConfig(chunk_size_chars=60, chunk_overlap=10),
        embedding=EmbeddingConfig(vector_dim=VECTOR_DIM, batch_size=4),
        qdrant=QdrantConfig(mode="memory", collection_name="test_recipes", namespace="test"),
        ingestion=IngestionConfig(cache_dir=str(tmp_path / "ingest-cache"), upsert_batch=3, checkpoint_every=2),
    )


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def document_store(app_settings) -> LocalDocumentStore:
    return LocalDocumentStore(app_settings.ingestion.cache_dir)


@pytest.fixture
def checkpoint_store(app_settings) -> LocalCheckpointStore:
    return LocalCheckpointStore(app_settings.ingestion.cache_dir)


@pytest.fixture
def failed_store(app_settings) -> LocalFailedUpsertStore:
    return LocalFailedUpsertStore(app_settings.ingestion.cache_dir)


@pytest.fixture
def recipe_rows():
    return [
        {
            "Srno": "",
            "RecipeName": "Tomato Soup",
            "Ingredients": "tomato, onion",
            "Instructions": "Chop tomato and onion. Simmer 20 minutes.",
            "Cuisine": "Indian",
            "Course": "Soup",
            "Diet": "Vegetarian",
            "PrepTimeInMins": "10",
            "CookTimeInMins": "20",
            "Servings": "2",
        },
        {
            "RecipeName": "Garlic Bread",
            "Ingredients": "bread, garlic, butter",
            "Instructions": "Spread butter and garlic on bread. Bake.",
            "Course": "Snack",
        },
    ]
