from fastapi import APIRouter, Depends, Request, HTTPException

from models.recipe import ParentDocument
from storage.base import DocumentStore

router = APIRouter()

def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.document_store

@router.get("/recipes/{recipe_id}", response_model=ParentDocument, summary="Fetch a full recipe by recipe id or legacy parent id")
def get_recipe(recipe_id: str, document_store: DocumentStore = Depends(get_document_store)):
    document = document_store.get(recipe_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Recipe not found.")
    return document
