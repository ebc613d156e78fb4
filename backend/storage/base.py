from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Tuple
from models.chunk import ChunkMatch, IndexedVector
from models.ingestion import Checkpoint
from models.recipe import ParentDocument

class VectorStore(ABC):
    @abstractmethod
    def upsert(self, namespace: str, items: List[IndexedVector]) -> None:
        """Idempotent by item id; overwrites on repeat."""
        pass

    @abstractmethod
    def query(self,
              namespace: str,
              vector: List[float],
              top_k: int,
              filters: Optional[Dict[str, Any]] = None) -> List[ChunkMatch]:
        pass

    @abstractmethod
    def delete_parent(self, namespace: str, parent_id: str) -> None:
        pass

    @abstractmethod
    def collection_exists(self) -> bool:
        pass

    @abstractmethod
    def describe(self) -> Dict[str, Any]:
        pass

class DocumentStore(ABC):
    """Key -> ParentDocument cache, read and written wholesale."""

    @abstractmethod
    def load(self) -> None:
        pass

    @abstractmethod
    def save(self) -> None:
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[ParentDocument]:
        """Looks up by recipe_id, falling back to the legacy parent_id."""
        pass

    @abstractmethod
    def put(self, key: str, document: ParentDocument) -> None:
        pass

    @abstractmethod
    def all(self) -> Iterator[Tuple[str, ParentDocument]]:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

class CheckpointStore(ABC):
    @abstractmethod
    def load(self) -> Checkpoint:
        pass

    @abstractmethod
    def save(self, checkpoint: Checkpoint) -> None:
        pass

class FailedUpsertStore(ABC):
    @abstractmethod
    def save(self, error: str, namespace: str, items: List[IndexedVector]) -> str:
        """Persists a failed slice for reprocessing; returns its location."""
        pass

    @abstractmethod
    def list(self) -> List[str]:
        pass

    @abstractmethod
    def load(self, location: str) -> Tuple[str, List[IndexedVector]]:
        """Returns (namespace, items) of a previously failed slice."""
        pass

    @abstractmethod
    def remove(self, location: str) -> None:
        pass
