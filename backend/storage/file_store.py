import os
import json
import glob
import time
import tempfile
import threading
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple
from models.chunk import IndexedVector
from models.ingestion import Checkpoint
from models.recipe import ParentDocument
from storage.base import DocumentStore, CheckpointStore, FailedUpsertStore

logger = logging.getLogger(__name__)


def _write_json(path: str, data: Any) -> None:
    # Unique sibling temp file per writer, so a crash or a concurrent save never leaves a torn file
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=os.path.dirname(path) or ".",
        prefix=f"{os.path.basename(path)}.", suffix=".tmp", delete=False
    ) as f:
        json.dump(data, f, ensure_ascii=False)
    os.replace(f.name, path)


def _read_json(path: str) -> Optional[Any]:
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to load {path}, starting fresh: {e}")
        return None


class LocalDocumentStore(DocumentStore):
    """
    Implements DocumentStore as one JSON file (full_recipes.json).
    Keyed by opaque recipe_id; a secondary index resolves legacy parent_ids.
    """

    def __init__(self, cache_dir: str = "./ingest-cache", filename: str = "full_recipes.json"):
        self.cache_dir = cache_dir
        self.path = os.path.join(cache_dir, filename)
        os.makedirs(self.cache_dir, exist_ok=True)
        self._documents: Dict[str, ParentDocument] = {}
        self._by_parent: Dict[str, str] = {}

    def load(self) -> None:
        data = _read_json(self.path) or {}
        self._documents = {}
        self._by_parent = {}
        for key, raw in data.items():
            try:
                self.put(key, ParentDocument(**raw))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed cached recipe {key}: {e}")
        logger.info(f"Loaded {len(self._documents)} recipes from {self.path}")

    def save(self) -> None:
        data = {key: doc.model_dump() for key, doc in self._documents.items()}
        _write_json(self.path, data)

    def get(self, key: str) -> Optional[ParentDocument]:
        if key in self._documents:
            return self._documents[key]
        recipe_id = self._by_parent.get(key)
        return self._documents.get(recipe_id) if recipe_id else None

    def put(self, key: str, document: ParentDocument) -> None:
        self._documents[key] = document
        self._by_parent[document.parent_id] = key

    def all(self) -> Iterator[Tuple[str, ParentDocument]]:
        return iter(list(self._documents.items()))

    def __len__(self) -> int:
        return len(self._documents)


class LocalCheckpointStore(CheckpointStore):
    def __init__(self, cache_dir: str = "./ingest-cache", filename: str = "checkpoint.json"):
        self.path = os.path.join(cache_dir, filename)
        os.makedirs(cache_dir, exist_ok=True)

    def load(self) -> Checkpoint:
        data = _read_json(self.path)
        if not isinstance(data, dict):
            return Checkpoint()
        try:
            return Checkpoint(**data)
        except ValueError:
            logger.warning(f"Malformed checkpoint at {self.path}, starting from row 0")
            return Checkpoint()

    def save(self, checkpoint: Checkpoint) -> None:
        _write_json(self.path, checkpoint.model_dump())


class LocalFailedUpsertStore(FailedUpsertStore):
    """Writes each failed upsert slice to failed_upsert_<ms>.json for later reprocessing."""

    def __init__(self, cache_dir: str = "./ingest-cache"):
        self.cache_dir = cache_dir
        os.makedirs(self.cache_dir, exist_ok=True)

    def save(self, error: str, namespace: str, items: List[IndexedVector]) -> str:
        stamp = time.time_ns() // 1_000_000
        path = os.path.join(self.cache_dir, f"failed_upsert_{stamp}.json")
        suffix = 1
        while os.path.exists(path):
            path = os.path.join(self.cache_dir, f"failed_upsert_{stamp}_{suffix}.json")
            suffix += 1

        _write_json(path, {
            "error": error,
            "namespace": namespace,
            "vectors": [item.model_dump() for item in items]
        })
        return path

    def list(self) -> List[str]:
        return sorted(glob.glob(os.path.join(self.cache_dir, "failed_upsert_*.json")))

    def load(self, location: str) -> Tuple[str, List[IndexedVector]]:
        with open(location, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data.get("namespace", ""), [IndexedVector(**v) for v in data.get("vectors", [])]

    def remove(self, location: str) -> None:
        if os.path.exists(location):
            os.remove(location)


class SmartSearchCache:
    """
    Query-key -> synthesized answer, persisted as smart_cache.json.
    Shared by every request thread; writes are serialized by a lock.
    """

    def __init__(self, cache_dir: str = "./ingest-cache", filename: str = "smart_cache.json"):
        self.path = os.path.join(cache_dir, filename)
        os.makedirs(cache_dir, exist_ok=True)
        self._entries: Dict[str, Dict[str, Any]] = _read_json(self.path) or {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self._entries[key] = payload
            self.save()

    def save(self) -> None:
        with self._lock:
            _write_json(self.path, self._entries)
