import logging
from fastapi import APIRouter, Depends, Request, HTTPException

from models.query import SmartSearchRequest, SmartSearchResponse
from core.pipeline.smart_search import SmartSearch
from core.errors import ValidationError

router = APIRouter()
logger = logging.getLogger(__name__)

def get_smart_search(request: Request) -> SmartSearch:
    return request.app.state.smart_search

@router.post("/smart-search", response_model=SmartSearchResponse, summary="Search recipes and synthesize an answer")
def smart_search(
    request_data: SmartSearchRequest,
    pipeline: SmartSearch = Depends(get_smart_search)
):
    try:
        return pipeline.run(request_data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except Exception as e:
        logger.exception("Smart search failed.")
        raise HTTPException(status_code=500, detail=f"internal_error: {e}")
