from typing import Any, Literal
from pydantic import BaseModel

class ChunkMetadata(BaseModel):
    kind: Literal["chunk"] = "chunk"
    # Identity
    recipe_id: str
    parent_id: str
    chunk_index: int                 # 0..total_chunks-1, contiguous
    total_chunks: int
    # Denormalised parent fields so the index can filter/display without a join
    title: str
    tags: str = ""
    ingredients: list[str] = []
    source: str = "csv"
    prep_time: int | None = None
    cook_time: int | None = None
    servings: int | None = None
    cuisine: str = ""
    course: str = ""
    diet: str = ""
    image_url: str = ""
    instructions: str = ""           # raw chunk text, without the composed prefix
    namespace: str = ""

class RecipeChunk(BaseModel):
    chunk_id: str                    # "{parent_id}#c{chunk_index}"
    text: str                        # prefix + chunk text, the embedded unit
    metadata: ChunkMetadata
    embedding: list[float] | None = None    # None before embedding step

class IndexedVector(BaseModel):
    id: str
    values: list[float]
    metadata: dict[str, Any]

class ChunkMatch(BaseModel):
    id: str
    score: float = 0.0
    metadata: dict[str, Any] = {}
