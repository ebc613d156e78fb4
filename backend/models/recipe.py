from pydantic import BaseModel, ConfigDict

class SourceRecord(BaseModel):
    """One row of the bulk recipe source, normalised to known field names."""
    model_config = ConfigDict(frozen=True)

    row_id: str | None = None        # Srno / id / recipeId when the source provides one
    title: str = ""
    raw_ingredients: str = ""
    instructions: str = ""
    cuisine: str = ""
    course: str = ""
    diet: str = ""
    prep_time: int | None = None
    cook_time: int | None = None
    servings: int | None = None
    recipe_url: str = ""
    image_url: str = ""

class RecipeTimings(BaseModel):
    prep_time: int | None = None
    cook_time: int | None = None
    servings: int | None = None

class ParentDocument(BaseModel):
    # Identity
    recipe_id: str                   # opaque uuid4, primary key of the document store
    parent_id: str                   # row id or "rid-" + sha256(title|ingredients)
    # Content
    title: str
    ingredients: str                 # raw ingredient text as read from the source
    instructions: str
    tags: str                        # "cuisine, course, diet" with empty parts dropped
    cuisine: str = ""
    course: str = ""
    diet: str = ""
    image_url: str = ""
    recipe_url: str = ""
    metadata: RecipeTimings = RecipeTimings()
