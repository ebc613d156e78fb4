import json
import logging
from datetime import datetime, timezone
from typing import Optional
from core.retrieve.query_engine import QueryEngine
from core.generate.prompt_builder import PromptBuilder
from core.generate.llm_client import LLMClient
from core.errors import ValidationError
from storage.file_store import SmartSearchCache
from models.query import SmartSearchRequest, SmartSearchResponse, SelectedRecipe, ContextChunk
from config.settings import AppSettings, settings as default_settings

logger = logging.getLogger(__name__)


class SmartSearch:
    """
    Retrieval -> LLM synthesis over the top recipes, with a persistent answer cache.
    Sequence: cache lookup -> search chunks -> aggregate -> build prompt -> call LLM -> cache
    """

    def __init__(self,
                 query_engine: QueryEngine,
                 llm_client: LLMClient,
                 cache: SmartSearchCache,
                 app_settings: Optional[AppSettings] = None):
        app_settings = app_settings or default_settings
        self.query_engine = query_engine
        self.llm_client = llm_client
        self.cache = cache
        self.config = app_settings.smart_search
        self.prompt_builder = PromptBuilder()

    def cache_key(self, request: SmartSearchRequest, top_k: int) -> str:
        return json.dumps({"query": request.query.strip(), "filters": request.filters, "top_k": top_k}, sort_keys=True)

    def run(self, request: SmartSearchRequest) -> SmartSearchResponse:
        query = (request.query or "").strip()
        if not query:
            raise ValidationError("query required", field="query")

        top_k = max(1, min(request.top_k or self.config.default_top_k, self.config.max_top_k))
        key = self.cache_key(request, top_k)

        if request.use_cache:
            cached = self.cache.get(key)
            if cached:
                logger.info(f"Smart search cache hit for '{query}'")
                return SmartSearchResponse(**{**cached, "cached": True})

        # 1. Retrieve and aggregate
        chunk_top_k = max(top_k * self.config.chunk_factor, self.config.min_query_top_k)
        matches = self.query_engine.search_chunks(query, chunk_top_k, filters=request.filters, namespace=request.namespace)
        parents = self.query_engine.aggregator.aggregate(matches, top_k)

        selected = [
            SelectedRecipe(
                parent_id=p.parent_id,
                score=p.score,
                title=p.title,
                chunks=[
                    ContextChunk(
                        id=c.id,
                        score=c.score,
                        metadata=c.metadata,
                        text=c.metadata.get("instructions", "")
                    )
                    for c in p.matched_chunks[:self.config.context_chunks]
                ]
            )
            for p in parents
        ]

        # 2. Synthesize
        messages = self.prompt_builder.build_messages(query, selected)
        llm_response = self.llm_client.generate(
            messages,
            max_tokens=request.max_tokens,
            temperature=request.temperature
        )

        response = SmartSearchResponse(
            answer=llm_response["text"],
            selected_recipes=selected,
            model_used=llm_response.get("model", ""),
            created_at=datetime.now(timezone.utc).isoformat()
        )

        # 3. Cache
        self.cache.put(key, response.model_dump(exclude={"cached"}))
        return response
