import hashlib
import logging
import math
import re
import uuid
from typing import Any, Dict, List, Mapping, Optional
from models.recipe import SourceRecord, ParentDocument, RecipeTimings
from models.chunk import ChunkMetadata, RecipeChunk

logger = logging.getLogger(__name__)

# Column synonyms, first non-empty wins
TITLE_FIELDS = ["RecipeName", "TranslatedRecipeName", "title", "name"]
INGREDIENT_FIELDS = ["Ingredients", "TranslatedIngredients", "ingredients", "ingredient", "ingredient_list"]
INSTRUCTION_FIELDS = ["Instructions", "TranslatedInstructions", "instructions", "directions"]
CUISINE_FIELDS = ["Cuisine", "cuisine"]
COURSE_FIELDS = ["Course", "course"]
DIET_FIELDS = ["Diet", "diet"]
IMAGE_FIELDS = ["ImageURL", "imageUrl", "image_url"]
URL_FIELDS = ["URL", "url"]
ID_FIELDS = ["Srno", "id", "recipeId"]

INGREDIENT_SPLIT = re.compile(r"[,;|\n]")


def safe_trim(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def first_value(row: Mapping[str, Any], fields: List[str]) -> str:
    for field in fields:
        value = safe_trim(row.get(field))
        if value:
            return value
    return ""


def split_ingredients(raw: str) -> List[str]:
    """Splits a raw ingredient string on , ; | and newlines into lowercased tokens."""
    if not raw:
        return []
    return [s.strip().lower() for s in INGREDIENT_SPLIT.split(raw) if s.strip()]


def _to_int(value: Any) -> Optional[int]:
    text = safe_trim(value)
    if not text:
        return None
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


class DocumentComposer:
    """
    Turns raw source rows into ParentDocuments and embeddable RecipeChunks.
    Every chunk carries a title/ingredients/tags prefix so it embeds well on its own.
    """

    def record_from_row(self, row: Mapping[str, Any]) -> SourceRecord:
        return SourceRecord(
            row_id=first_value(row, ID_FIELDS) or None,
            title=first_value(row, TITLE_FIELDS),
            raw_ingredients=first_value(row, INGREDIENT_FIELDS),
            instructions=self.get_full_instructions(row),
            cuisine=first_value(row, CUISINE_FIELDS),
            course=first_value(row, COURSE_FIELDS),
            diet=first_value(row, DIET_FIELDS),
            prep_time=_to_int(row.get("PrepTimeInMins")),
            cook_time=_to_int(row.get("CookTimeInMins")),
            servings=_to_int(row.get("Servings")),
            recipe_url=first_value(row, URL_FIELDS),
            image_url=first_value(row, IMAGE_FIELDS),
        )

    def get_full_instructions(self, row: Mapping[str, Any]) -> str:
        return first_value(row, INSTRUCTION_FIELDS)

    def record_is_indexable(self, record: SourceRecord) -> bool:
        # Without a title or ingredients there is nothing to embed or match on
        return bool(record.title or record.raw_ingredients)

    def combined_tags(self, record: SourceRecord) -> str:
        return ", ".join(t for t in [record.cuisine, record.course, record.diet] if t)

    def compose_prefix(self, record: SourceRecord) -> str:
        parts = []
        if record.title:
            parts.append(record.title)
        ingredients = split_ingredients(record.raw_ingredients)
        if ingredients:
            parts.append(f"Ingredients: {', '.join(ingredients)}")
        tags = self.combined_tags(record)
        if tags:
            parts.append(f"Tags: {tags}")
        return "\n".join(parts) + ("\n\n" if parts else "")

    def derive_parent_id(self, record: SourceRecord) -> str:
        if record.row_id:
            return record.row_id
        digest = hashlib.sha256(f"{record.title}|{record.raw_ingredients}".encode("utf-8")).hexdigest()
        return f"rid-{digest}"

    def build_document(self, record: SourceRecord, recipe_id: Optional[str] = None) -> ParentDocument:
        return ParentDocument(
            recipe_id=recipe_id or str(uuid.uuid4()),
            parent_id=self.derive_parent_id(record),
            title=record.title,
            ingredients=record.raw_ingredients,
            instructions=record.instructions,
            tags=self.combined_tags(record),
            cuisine=record.cuisine,
            course=record.course,
            diet=record.diet,
            image_url=record.image_url,
            recipe_url=record.recipe_url,
            metadata=RecipeTimings(
                prep_time=record.prep_time,
                cook_time=record.cook_time,
                servings=record.servings,
            ),
        )

    def build_chunks(self,
                     record: SourceRecord,
                     document: ParentDocument,
                     pieces: List[str],
                     namespace: str = "") -> List[RecipeChunk]:
        """
        Builds one RecipeChunk per instruction piece.
        A document without instructions still gets a single empty chunk so it is indexed.
        """
        final_pieces = pieces if pieces else [""]
        prefix = self.compose_prefix(record)
        ingredient_list = split_ingredients(record.raw_ingredients)
        total = len(final_pieces)

        chunks = []
        for index, piece in enumerate(final_pieces):
            metadata = ChunkMetadata(
                recipe_id=document.recipe_id,
                parent_id=document.parent_id,
                chunk_index=index,
                total_chunks=total,
                title=document.title,
                tags=document.tags,
                ingredients=ingredient_list,
                prep_time=document.metadata.prep_time,
                cook_time=document.metadata.cook_time,
                servings=document.metadata.servings,
                cuisine=document.cuisine,
                course=document.course,
                diet=document.diet,
                image_url=document.image_url,
                instructions=piece,
                namespace=namespace,
            )
            chunks.append(RecipeChunk(
                chunk_id=f"{document.parent_id}#c{index}",
                text=(prefix + "\n" + piece).strip(),
                metadata=metadata,
            ))
        return chunks

    def chunk_payload(self, chunk: RecipeChunk) -> Dict[str, Any]:
        """Flat payload stored next to the vector; None values are dropped."""
        return chunk.metadata.model_dump(exclude_none=True)
