from typing import Any, Dict, List, Optional
from models.chunk import ChunkMatch
from models.query import ParentResult
from config.settings import RetrievalConfig, settings

PARENT_ID_KEYS = ["parent_id", "parentId", "parent"]
CHUNK_INDEX_KEYS = ["chunk_index", "chunkIndex"]
RECIPE_ID_KEYS = ["recipe_id", "recipeId"]


def _first_present(metadata: Dict[str, Any], keys: List[str]) -> Optional[Any]:
    for key in keys:
        value = metadata.get(key)
        if value is not None and value != "":
            return value
    return None


def _chunk_index(match: ChunkMatch) -> int:
    value = _first_present(match.metadata, CHUNK_INDEX_KEYS)
    try:
        return int(value) if value is not None else 0
    except (TypeError, ValueError):
        return 0


class MatchAggregator:
    """
    Collapses chunk-level vector hits into one ranked result per parent recipe.
    score = max(chunk scores) + sum_weight * sum(chunk scores)
    """

    def __init__(self, config: Optional[RetrievalConfig] = None):
        self.config = config or settings.retrieval

    def parent_id_of(self, match: ChunkMatch) -> str:
        value = _first_present(match.metadata or {}, PARENT_ID_KEYS)
        return str(value) if value is not None else "unknown"

    def aggregate(self, matches: List[ChunkMatch], top_k_parents: int = 10) -> List[ParentResult]:
        # dicts keep first-seen order, which keeps ties deterministic
        grouped: Dict[str, List[ChunkMatch]] = {}
        for match in matches:
            grouped.setdefault(self.parent_id_of(match), []).append(match)

        results = []
        for parent_id, hits in grouped.items():
            hits = sorted(hits, key=lambda h: h.score or 0.0, reverse=True)
            max_score = hits[0].score or 0.0
            sum_score = sum(h.score or 0.0 for h in hits)
            top_meta = hits[0].metadata or {}

            results.append(ParentResult(
                parent_id=parent_id,
                recipe_id=_first_present(top_meta, RECIPE_ID_KEYS),
                score=max_score + self.config.sum_weight * sum_score,
                title=top_meta.get("title"),
                snippet=self._build_snippet(top_meta),
                instructions=self._combine_instructions(hits),
                matched_chunks=hits,
                metadata=top_meta
            ))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k_parents]

    def _build_snippet(self, meta: Dict[str, Any]) -> Optional[str]:
        title = meta.get("title")
        text = meta.get("text") or meta.get("instructions") or ""
        body = meta.get("snippet") or text[:self.config.snippet_text_chars]
        snippet = (f"{title} — " if title else "") + body
        return snippet[:self.config.snippet_max_chars] if snippet else None

    def _combine_instructions(self, hits: List[ChunkMatch]) -> Optional[str]:
        # Restore document order; hits arrive in score order
        with_text = [h for h in hits if h.metadata.get("instructions")]
        ordered = sorted(with_text, key=_chunk_index)
        combined = " ".join(h.metadata["instructions"] for h in ordered).strip()
        return combined or None
