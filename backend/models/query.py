from typing import Any
from pydantic import BaseModel, Field
from models.chunk import ChunkMatch

class SearchRequest(BaseModel):
    query: str = ""
    top_k: int | None = None                 # clamped to retrieval.max_top_k
    filters: dict[str, Any] | None = None    # payload equality / range predicates
    namespace: str | None = None             # None = configured namespace

class ParentResult(BaseModel):
    parent_id: str
    recipe_id: str | None = None
    score: float
    title: str | None = None
    snippet: str | None = None
    instructions: str | None = None
    matched_chunks: list[ChunkMatch] = []
    metadata: dict[str, Any] = {}

class SearchResult(BaseModel):
    parent_id: str
    recipe_id: str | None = None
    score: float
    title: str | None = None
    snippet: str | None = None
    instructions: str | None = None
    matched_chunks: list[ChunkMatch] = []

class SearchResponse(BaseModel):
    results: list[SearchResult]

class MatchRequest(BaseModel):
    ingredients: list[str] = []

class IngredientMatch(BaseModel):
    parent_id: str
    recipe_id: str | None = None
    match_score: float
    missing_ingredients: list[str] = []
    title: str | None = None
    snippet: str | None = None
    metadata: dict[str, Any] = {}
    in_cache: bool = True                    # False when a fuzzy hit has no cached document

class MatchResponse(BaseModel):
    results: list[IngredientMatch]
    tier: str                                # "exact" | "fuzzy"
    exact_candidates: int = 0

class SmartSearchRequest(BaseModel):
    query: str = ""
    top_k: int | None = None
    filters: dict[str, Any] | None = None
    namespace: str | None = None
    use_cache: bool = True
    max_tokens: int | None = None
    temperature: float | None = None

class ContextChunk(BaseModel):
    id: str
    score: float
    metadata: dict[str, Any] = {}
    text: str = ""

class SelectedRecipe(BaseModel):
    parent_id: str
    score: float
    title: str | None = None
    chunks: list[ContextChunk] = []

class SmartSearchResponse(BaseModel):
    answer: str
    selected_recipes: list[SelectedRecipe] = []
    model_used: str = ""
    cached: bool = False
    created_at: str = Field(default="")
