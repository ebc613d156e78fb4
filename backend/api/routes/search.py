import logging
from fastapi import APIRouter, Depends, Request, HTTPException

from models.query import SearchRequest, SearchResponse, SearchResult
from core.retrieve.query_engine import QueryEngine
from core.errors import ValidationError
from config.settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)

def get_query_engine(request: Request) -> QueryEngine:
    return request.app.state.query_engine

@router.post("/search", response_model=SearchResponse, summary="Semantic recipe search")
def search_recipes(
    request_data: SearchRequest,
    engine: QueryEngine = Depends(get_query_engine)
):
    try:
        parents = engine.search(
            request_data.query,
            top_k=request_data.top_k,
            filters=request_data.filters,
            namespace=request_data.namespace
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except Exception as e:
        logger.exception("Search failed.")
        raise HTTPException(status_code=500, detail=f"internal_error: {e}")

    limit = settings.retrieval.matched_chunks_in_response
    results = [
        SearchResult(
            parent_id=p.parent_id,
            recipe_id=p.recipe_id,
            score=round(p.score, 6),
            title=p.title,
            snippet=p.snippet,
            instructions=p.instructions,
            matched_chunks=p.matched_chunks[:limit]
        )
        for p in parents
    ]
    logger.info(f"Returning {len(results)} results for '{request_data.query}'")
    return SearchResponse(results=results)
