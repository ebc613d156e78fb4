from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel
import yaml
import os

from core.errors import ConfigurationError

class ChunkingConfig(BaseModel):
    chunk_size_chars: int = 2000
    chunk_overlap: int = 200

class EmbeddingConfig(BaseModel):
    model_name: str = "BAAI/bge-base-en-v1.5"
    batch_size: int = 200                # texts per embedding call during ingestion
    encode_batch_size: int = 32          # sentence-transformers internal batch
    vector_dim: int = 768
    query_prefix: str = "Represent this sentence for searching relevant passages: "
    normalise: bool = True

class QdrantConfig(BaseModel):
    mode: str = "local"                  # "local" | "memory" | "cloud"
    local_path: str = "./data/qdrant_store"
    cloud_url: str = ""
    collection_name: str = "recipes"
    namespace: str = "production"
    hnsw_m: int = 16
    hnsw_ef_construct: int = 100
    hnsw_ef: int = 64

class IngestionConfig(BaseModel):
    csv_path: str = "recipes_with_images.csv"
    cache_dir: str = "ingest-cache"
    upsert_batch: int = 100
    checkpoint_every: int = 50
    sample_check: bool = True

class RetrievalConfig(BaseModel):
    default_top_k: int = 10
    max_top_k: int = 10
    chunk_factor: int = 3
    sum_weight: float = 0.1
    snippet_text_chars: int = 160
    snippet_max_chars: int = 300
    matched_chunks_in_response: int = 5

class MatchingConfig(BaseModel):
    lenient_threshold: float = 0.6
    fallback_min_results: int = 10
    fallback_top_k: int = 50
    max_results: int = 50

class SmartSearchConfig(BaseModel):
    default_top_k: int = 5
    max_top_k: int = 10
    chunk_factor: int = 4
    min_query_top_k: int = 20
    context_chunks: int = 5
    cache_file: str = "smart_cache.json"

class LLMConfig(BaseModel):
    provider: str = "openrouter"
    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "google/gemini-2.5-flash"
    fallback_model: str = "mistralai/mistral-7b-instruct"
    max_tokens: int = 800
    temperature: float = 0.0

class AppSettings(BaseSettings):
    chunking: ChunkingConfig = ChunkingConfig()
    embedding: EmbeddingConfig = EmbeddingConfig()
    qdrant: QdrantConfig = QdrantConfig()
    ingestion: IngestionConfig = IngestionConfig()
    retrieval: RetrievalConfig = RetrievalConfig()
    matching: MatchingConfig = MatchingConfig()
    smart_search: SmartSearchConfig = SmartSearchConfig()
    llm: LLMConfig = LLMConfig()
    openrouter_api_key: str = ""
    qdrant_api_key: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def validate_vector_store(self) -> None:
        """Raises ConfigurationError when the vector index cannot be reached with these settings."""
        if not self.qdrant.collection_name:
            raise ConfigurationError("qdrant.collection_name is not set")
        if self.qdrant.mode not in ("local", "memory", "cloud"):
            raise ConfigurationError(f"Unknown qdrant.mode '{self.qdrant.mode}'")
        if self.qdrant.mode == "cloud" and not (self.qdrant.cloud_url and self.qdrant_api_key):
            raise ConfigurationError(
                "Cloud mode requires qdrant.cloud_url and QDRANT_API_KEY",
                details={"cloud_url": self.qdrant.cloud_url}
            )

    def validate_for_ingestion(self, csv_path: str | None = None) -> None:
        self.validate_vector_store()
        path = csv_path or self.ingestion.csv_path
        if not path or not os.path.exists(path):
            raise ConfigurationError(f"CSV not found at {path}")
        sizes = {
            "ingestion.upsert_batch": self.ingestion.upsert_batch,
            "ingestion.checkpoint_every": self.ingestion.checkpoint_every,
            "embedding.batch_size": self.embedding.batch_size,
        }
        non_positive = {name: value for name, value in sizes.items() if value < 1}
        if non_positive:
            raise ConfigurationError("Batch sizes must be positive", details=non_positive)

def load_settings(config_path: str = "backend/config/config.yaml") -> AppSettings:
    """Loads settings from config.yaml and applies env overrides."""

    # Try multiple paths for convenience during testing vs running
    paths_to_try = [
        config_path,
        "config.yaml",
        "config/config.yaml",
        os.path.join(os.path.dirname(__file__), "config.yaml")
    ]

    yaml_data = {}
    for path in paths_to_try:
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
            break

    # Manually map yaml sections to our sub-models
    return AppSettings(
        chunking=ChunkingConfig(**yaml_data.get("chunking", {})),
        embedding=EmbeddingConfig(**yaml_data.get("embedding", {})),
        qdrant=QdrantConfig(**yaml_data.get("qdrant", {})),
        ingestion=IngestionConfig(**yaml_data.get("ingestion", {})),
        retrieval=RetrievalConfig(**yaml_data.get("retrieval", {})),
        matching=MatchingConfig(**yaml_data.get("matching", {})),
        smart_search=SmartSearchConfig(**yaml_data.get("smart_search", {})),
        llm=LLMConfig(**yaml_data.get("llm", {}))
    )

# Global settings instance
settings = load_settings()
