import logging
from typing import Any, Dict, List, Optional
from storage.base import VectorStore
from core.embed.embedder import EmbeddingClient
from core.retrieve.aggregator import MatchAggregator
from core.errors import EmbeddingError, ValidationError
from models.chunk import ChunkMatch
from models.query import ParentResult
from config.settings import AppSettings, settings as default_settings

logger = logging.getLogger(__name__)


class QueryEngine:
    """
    Semantic recipe search: embed query -> over-fetch chunks -> aggregate per recipe.
    Over-fetching compensates for several chunks of one recipe collapsing into one result.
    """

    def __init__(self,
                 embedder: EmbeddingClient,
                 vector_store: VectorStore,
                 aggregator: Optional[MatchAggregator] = None,
                 app_settings: Optional[AppSettings] = None):
        app_settings = app_settings or default_settings
        self.embedder = embedder
        self.vector_store = vector_store
        self.config = app_settings.retrieval
        self.default_namespace = app_settings.qdrant.namespace
        self.aggregator = aggregator or MatchAggregator(self.config)

    def clamp_top_k(self, top_k: Optional[int]) -> int:
        if top_k is None:
            top_k = self.config.default_top_k
        return max(1, min(int(top_k), self.config.max_top_k))

    def search(self,
               query: str,
               top_k: Optional[int] = None,
               filters: Optional[Dict[str, Any]] = None,
               namespace: Optional[str] = None) -> List[ParentResult]:
        query = (query or "").strip()
        if not query:
            raise ValidationError("query is required", field="query")

        top_k = self.clamp_top_k(top_k)
        chunk_top_k = max(top_k * self.config.chunk_factor, top_k * 2)
        logger.info(f"Searching '{query}' (top_k={top_k}, chunk_top_k={chunk_top_k}, filters={filters})")

        matches = self.search_chunks(query, chunk_top_k, filters=filters, namespace=namespace)
        return self.aggregator.aggregate(matches, top_k)

    def search_chunks(self,
                      query: str,
                      chunk_top_k: int,
                      filters: Optional[Dict[str, Any]] = None,
                      namespace: Optional[str] = None) -> List[ChunkMatch]:
        """Raw chunk-level hits. chunk_top_k is used as given."""
        vector = self.embedder.embed_query(query)
        if not vector:
            raise EmbeddingError("failed to embed query", batch_size=1)

        return self.vector_store.query(
            namespace=namespace or self.default_namespace,
            vector=vector,
            top_k=chunk_top_k,
            filters=filters or None
        )
