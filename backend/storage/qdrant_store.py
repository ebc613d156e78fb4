import uuid
import logging
from typing import Any, Dict, List, Optional
from qdrant_client import QdrantClient
from qdrant_client.http import models as rest
from models.chunk import ChunkMatch, IndexedVector
from storage.base import VectorStore
from config.settings import AppSettings, settings as default_settings
from core.errors import IndexWriteError

logger = logging.getLogger(__name__)

RANGE_KEYS = {"gt", "gte", "lt", "lte"}
KEYWORD_INDEX_FIELDS = ["namespace", "parent_id", "recipe_id", "cuisine", "course", "diet"]
INTEGER_INDEX_FIELDS = ["prep_time", "cook_time", "servings"]


def _to_point_id(namespace: str, chunk_id: str) -> str:
    """Deterministic Qdrant-compatible point ID for a chunk within a namespace."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{namespace}/{chunk_id}"))


def build_filter(namespace: str, filters: Optional[Dict[str, Any]] = None) -> rest.Filter:
    """Namespace equality plus equality / any-of / range predicates over payload fields."""
    must_clauses = [rest.FieldCondition(key="namespace", match=rest.MatchValue(value=namespace))]
    for key, value in (filters or {}).items():
        if value is None:
            continue
        if isinstance(value, dict):
            bounds = {k: v for k, v in value.items() if k in RANGE_KEYS}
            if bounds:
                must_clauses.append(rest.FieldCondition(key=key, range=rest.Range(**bounds)))
        elif isinstance(value, list):
            must_clauses.append(rest.FieldCondition(key=key, match=rest.MatchAny(any=value)))
        else:
            must_clauses.append(rest.FieldCondition(key=key, match=rest.MatchValue(value=value)))
    return rest.Filter(must=must_clauses)


class QdrantVectorStore(VectorStore):
    """
    Implements VectorStore on a single Qdrant collection.
    Namespaces are a payload field; every query is scoped to one.
    """

    def __init__(self, app_settings: Optional[AppSettings] = None, client: Optional[QdrantClient] = None):
        app_settings = app_settings or default_settings
        self.config = app_settings.qdrant
        self.vector_dim = app_settings.embedding.vector_dim
        self.client = client or self._create_client(app_settings)
        self.ensure_collection()

    def _create_client(self, app_settings: AppSettings) -> QdrantClient:
        app_settings.validate_vector_store()
        if self.config.mode == "memory":
            return QdrantClient(":memory:")
        if self.config.mode == "cloud":
            return QdrantClient(url=self.config.cloud_url, api_key=app_settings.qdrant_api_key)
        return QdrantClient(path=self.config.local_path)

    def ensure_collection(self) -> bool:
        """Creates the collection and payload indexes if missing. Returns True when created."""
        if self.collection_exists():
            return False

        logger.info(f"Creating Qdrant collection: {self.config.collection_name} (dim={self.vector_dim})")
        self.client.create_collection(
            collection_name=self.config.collection_name,
            vectors_config=rest.VectorParams(
                size=self.vector_dim,
                distance=rest.Distance.COSINE
            ),
            hnsw_config=rest.HnswConfigDiff(
                m=self.config.hnsw_m,
                ef_construct=self.config.hnsw_ef_construct
            )
        )
        # Payload indexes for faster filtering
        for field in KEYWORD_INDEX_FIELDS + INTEGER_INDEX_FIELDS:
            self.client.create_payload_index(
                collection_name=self.config.collection_name,
                field_name=field,
                field_schema=rest.PayloadSchemaType.INTEGER if field in INTEGER_INDEX_FIELDS else rest.PayloadSchemaType.KEYWORD
            )
        return True

    def collection_exists(self) -> bool:
        collections = self.client.get_collections().collections
        return any(c.name == self.config.collection_name for c in collections)

    def describe(self) -> Dict[str, Any]:
        info = self.client.get_collection(self.config.collection_name)
        return {
            "name": self.config.collection_name,
            "status": str(info.status),
            "points_count": info.points_count,
            "vector_dim": self.vector_dim,
        }

    def upsert(self, namespace: str, items: List[IndexedVector]) -> None:
        points = []
        for item in items:
            payload = dict(item.metadata)
            payload["chunk_id"] = item.id
            payload["namespace"] = namespace
            points.append(rest.PointStruct(
                id=_to_point_id(namespace, item.id),
                vector=item.values,
                payload=payload
            ))

        if not points:
            return

        try:
            self.client.upsert(
                collection_name=self.config.collection_name,
                points=points
            )
        except Exception as e:
            raise IndexWriteError(f"Qdrant upsert failed: {e}", slice_size=len(points)) from e

    def query(self,
              namespace: str,
              vector: List[float],
              top_k: int,
              filters: Optional[Dict[str, Any]] = None) -> List[ChunkMatch]:
        results = self.client.query_points(
            collection_name=self.config.collection_name,
            query=vector,
            limit=top_k,
            query_filter=build_filter(namespace, filters),
            with_payload=True,
            search_params=rest.SearchParams(
                hnsw_ef=self.config.hnsw_ef
            )
        ).points

        return [
            ChunkMatch(
                # Return the app-level chunk_id from payload, not the internal Qdrant UUID
                id=(r.payload or {}).get("chunk_id", str(r.id)),
                score=r.score,
                metadata=r.payload or {}
            )
            for r in results
        ]

    def delete_parent(self, namespace: str, parent_id: str) -> None:
        self.client.delete(
            collection_name=self.config.collection_name,
            points_selector=rest.FilterSelector(
                filter=build_filter(namespace, {"parent_id": parent_id})
            )
        )
