import logging
import re
from typing import Iterable, List, Optional, Set, Tuple
from storage.base import DocumentStore
from core.chunk.composer import INGREDIENT_SPLIT
from core.retrieve.query_engine import QueryEngine
from core.errors import ValidationError
from models.recipe import ParentDocument
from models.query import IngredientMatch, MatchResponse
from config.settings import AppSettings, settings as default_settings

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_ingredient(token: str) -> str:
    token = _NON_ALNUM.sub("", (token or "").lower())
    return _WHITESPACE.sub(" ", token).strip()


def ingredient_tokens(raw: str) -> List[str]:
    tokens = [normalize_ingredient(t) for t in INGREDIENT_SPLIT.split(raw or "")]
    return [t for t in tokens if t]


def score_document(document: ParentDocument, provided: Set[str]) -> Tuple[float, List[str]]:
    """Returns (matched / required, missing tokens). A recipe with no ingredients is fully satisfied."""
    required = ingredient_tokens(document.ingredients)
    if not required:
        return 1.0, []
    missing = [t for t in required if t not in provided]
    return (len(required) - len(missing)) / len(required), missing


class IngredientMatcher:
    """
    Two-tier "what can I cook with these" matching.
    1. Exact tier: linear scan of the document cache, subset / lenient partial match.
    2. Fuzzy tier: vector search on the joined ingredient list, only when tier 1 is thin.
    """

    def __init__(self,
                 document_store: DocumentStore,
                 query_engine: QueryEngine,
                 app_settings: Optional[AppSettings] = None):
        app_settings = app_settings or default_settings
        self.document_store = document_store
        self.query_engine = query_engine
        self.config = app_settings.matching
        self.retrieval_config = app_settings.retrieval

    def match(self, ingredients: Iterable[str], namespace: Optional[str] = None) -> MatchResponse:
        provided_list = [t for t in (normalize_ingredient(i) for i in (ingredients or [])) if t]
        if not provided_list:
            raise ValidationError("ingredients required", field="ingredients")
        provided = set(provided_list)

        exact = self.exact_matches(provided)
        if len(exact) >= self.config.fallback_min_results:
            logger.info(f"Exact tier returned {len(exact)} candidates; skipping vector fallback")
            return MatchResponse(
                results=exact[:self.config.max_results],
                tier="exact",
                exact_candidates=len(exact)
            )

        logger.info(f"Exact tier returned {len(exact)} candidates; falling back to vector search")
        fuzzy = self.fuzzy_matches(provided_list, provided, namespace=namespace)
        return MatchResponse(
            results=fuzzy[:self.config.max_results],
            tier="fuzzy",
            exact_candidates=len(exact)
        )

    def exact_matches(self, provided: Set[str]) -> List[IngredientMatch]:
        matches = []
        for key, document in self.document_store.all():
            score, missing = score_document(document, provided)
            if score == 1.0 or score >= self.config.lenient_threshold:
                matches.append(self._to_match(document, score, missing))

        matches.sort(key=lambda m: m.match_score, reverse=True)
        return matches

    def fuzzy_matches(self,
                      provided_list: List[str],
                      provided: Set[str],
                      namespace: Optional[str] = None) -> List[IngredientMatch]:
        top_k = self.config.fallback_top_k
        chunk_matches = self.query_engine.search_chunks(" ".join(provided_list), top_k, namespace=namespace)
        parents = self.query_engine.aggregator.aggregate(chunk_matches, top_k)

        results = []
        for parent in parents:
            document = None
            if parent.recipe_id:
                document = self.document_store.get(parent.recipe_id)
            if document is None:
                document = self.document_store.get(parent.parent_id)

            if document is None:
                logger.warning(f"Fuzzy hit {parent.parent_id} is not in the document cache")
                results.append(IngredientMatch(
                    parent_id=parent.parent_id,
                    recipe_id=parent.recipe_id,
                    match_score=0.0,
                    title=parent.title,
                    snippet=parent.snippet,
                    in_cache=False
                ))
                continue

            score, missing = score_document(document, provided)
            results.append(self._to_match(document, score, missing))

        results.sort(key=lambda m: m.match_score, reverse=True)
        return results

    def _to_match(self, document: ParentDocument, score: float, missing: List[str]) -> IngredientMatch:
        body = document.instructions[:self.retrieval_config.snippet_text_chars]
        snippet = f"{document.title} — {body}" if document.title else body
        return IngredientMatch(
            parent_id=document.parent_id,
            recipe_id=document.recipe_id,
            match_score=score,
            missing_ingredients=missing,
            title=document.title or None,
            snippet=snippet[:self.retrieval_config.snippet_max_chars] or None,
            metadata=document.metadata.model_dump(exclude_none=True)
        )
