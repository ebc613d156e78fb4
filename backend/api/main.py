import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import settings
from storage.qdrant_store import QdrantVectorStore
from storage.file_store import LocalDocumentStore, SmartSearchCache
from core.embed.embedder import Embedder
from core.retrieve.query_engine import QueryEngine
from core.retrieve.ingredient_matcher import IngredientMatcher
from core.generate.llm_client import LLMClient
from core.pipeline.smart_search import SmartSearch

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup: Initialize singletons ---
    logger.info("Initializing recipe search clients and engines...")

    # 1. External collaborators, built once and shared by every request
    vector_store = QdrantVectorStore(settings)
    embedder = Embedder(settings.embedding)

    # 2. Document cache, read wholesale into memory
    document_store = LocalDocumentStore(cache_dir=settings.ingestion.cache_dir)
    document_store.load()

    # 3. Engines
    query_engine = QueryEngine(embedder, vector_store, app_settings=settings)
    ingredient_matcher = IngredientMatcher(document_store, query_engine, app_settings=settings)
    smart_search = SmartSearch(
        query_engine,
        LLMClient(settings),
        SmartSearchCache(settings.ingestion.cache_dir, settings.smart_search.cache_file),
        app_settings=settings
    )

    # 4. Store in app.state for dependency injection
    app.state.vector_store = vector_store
    app.state.document_store = document_store
    app.state.query_engine = query_engine
    app.state.ingredient_matcher = ingredient_matcher
    app.state.smart_search = smart_search

    logger.info(f"Initialization complete. {len(document_store)} recipes cached.")

    yield

    # --- Shutdown ---
    logger.info("Shutting down recipe search backend...")

# Create FastAPI instance
app = FastAPI(
    title="PantryMatch API",
    description="Recipe search and ingredient matching over a vector index",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}

from api.routes import search, match, smart_search as smart_search_routes, recipes

app.include_router(search.router, prefix="/api", tags=["Search"])
app.include_router(match.router, prefix="/api", tags=["Match"])
app.include_router(smart_search_routes.router, prefix="/api", tags=["Smart Search"])
app.include_router(recipes.router, prefix="/api", tags=["Recipes"])
