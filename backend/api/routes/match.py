import logging
from fastapi import APIRouter, Depends, Request, HTTPException

from models.query import MatchRequest, MatchResponse
from core.retrieve.ingredient_matcher import IngredientMatcher
from core.errors import ValidationError

router = APIRouter()
logger = logging.getLogger(__name__)

def get_ingredient_matcher(request: Request) -> IngredientMatcher:
    return request.app.state.ingredient_matcher

@router.post("/match", response_model=MatchResponse, summary="Find recipes cookable with the given ingredients")
def match_by_ingredients(
    request_data: MatchRequest,
    matcher: IngredientMatcher = Depends(get_ingredient_matcher)
):
    try:
        return matcher.match(request_data.ingredients)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except Exception as e:
        logger.exception("Ingredient matching failed.")
        raise HTTPException(status_code=500, detail=f"internal_error: {e}")
