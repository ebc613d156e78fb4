import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from sentence_transformers import SentenceTransformer
from config.settings import EmbeddingConfig, settings
from core.errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingClient(ABC):
    @abstractmethod
    def embed_many(self, texts: List[str]) -> List[List[float]]:
        """Length-preserving, same order as input."""
        pass

    @abstractmethod
    def embed_query(self, query: str) -> List[float]:
        pass


def validate_vectors(texts: List[str], vectors) -> List[List[float]]:
    """Raises EmbeddingError unless there is exactly one non-empty vector per text."""
    if vectors is None or len(vectors) != len(texts):
        got = 0 if vectors is None else len(vectors)
        raise EmbeddingError(
            f"Unexpected embedding response shape: expected {len(texts)} vectors, got {got}",
            batch_size=len(texts)
        )
    for i, vector in enumerate(vectors):
        if vector is None or len(vector) == 0:
            raise EmbeddingError(f"Empty embedding at position {i}", batch_size=len(texts))
    return vectors


class Embedder(EmbeddingClient):
    """
    Sentence-transformers embedding client.
    - Uses singleton-style model loading to save memory.
    - Supports batched embedding and L2 normalisation.
    """

    _model = None

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or settings.embedding
        self._load_model()

    def _load_model(self):
        """Loads the sentence-transformer model onto CPU."""
        if Embedder._model is None:
            logger.info(f"Loading embedding model: {self.config.model_name}...")
            Embedder._model = SentenceTransformer(self.config.model_name, device="cpu")
        self.model = Embedder._model

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        try:
            embeddings = self.model.encode(
                texts,
                batch_size=self.config.encode_batch_size,
                show_progress_bar=False,
                normalize_embeddings=self.config.normalise
            )
        except Exception as e:
            raise EmbeddingError(f"Embedding model failed: {e}", batch_size=len(texts)) from e

        return validate_vectors(texts, [row.tolist() for row in embeddings])

    def embed_query(self, query: str) -> List[float]:
        """
        Generates an embedding for a single query string.
        Applies the query prefix required by BGE models.
        """
        prefixed_query = f"{self.config.query_prefix}{query}"

        try:
            embedding = self.model.encode(
                prefixed_query,
                normalize_embeddings=self.config.normalise
            )
        except Exception as e:
            raise EmbeddingError(f"Failed to embed query: {e}", batch_size=1) from e

        vector = embedding.tolist()
        if not vector:
            raise EmbeddingError("Failed to embed query: empty vector", batch_size=1)
        return vector
