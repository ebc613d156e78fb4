import pytest

from config.settings import AppSettings, QdrantConfig, load_settings
from core.errors import ConfigurationError


def test_load_settings_reads_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "chunking:\n  chunk_size_chars: 500\n"
        "qdrant:\n  collection_name: staging_recipes\n  namespace: staging\n"
        "matching:\n  lenient_threshold: 0.75\n",
        encoding="utf-8"
    )
    loaded = load_settings(str(config_file))

    assert loaded.chunking.chunk_size_chars == 500
    assert loaded.chunking.chunk_overlap == 200
    assert loaded.qdrant.namespace == "staging"
    assert loaded.matching.lenient_threshold == 0.75
    assert loaded.retrieval.sum_weight == 0.1


def test_api_keys_come_from_environment(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
    assert AppSettings().openrouter_api_key == "sk-test"


def test_cloud_mode_requires_credentials():
    app_settings = AppSettings(qdrant=QdrantConfig(mode="cloud", cloud_url="https://qdrant.example"))
    with pytest.raises(ConfigurationError) as exc:
        app_settings.validate_vector_store()
    assert "QDRANT_API_KEY" in exc.value.message


def test_unknown_mode_and_missing_collection():
    with pytest.raises(ConfigurationError):
        AppSettings(qdrant=QdrantConfig(mode="remote")).validate_vector_store()
    with pytest.raises(ConfigurationError):
        AppSettings(qdrant=QdrantConfig(collection_name="")).validate_vector_store()


def test_ingestion_needs_csv(tmp_path):
    app_settings = AppSettings()
    with pytest.raises(ConfigurationError):
        app_settings.validate_for_ingestion(str(tmp_path / "missing.csv"))

    csv_path = tmp_path / "recipes.csv"
    csv_path.write_text("RecipeName\nDal\n", encoding="utf-8")
    app_settings.validate_for_ingestion(str(csv_path))


@pytest.mark.parametrize("section,field", [
    ("ingestion", "checkpoint_every"),
    ("ingestion", "upsert_batch"),
    ("embedding", "batch_size"),
])
def test_ingestion_rejects_non_positive_sizes(tmp_path, section, field):
    csv_path = tmp_path / "recipes.csv"
    csv_path.write_text("RecipeName\nDal\n", encoding="utf-8")
    app_settings = AppSettings()
    setattr(getattr(app_settings, section), field, 0)

    with pytest.raises(ConfigurationError) as exc:
        app_settings.validate_for_ingestion(str(csv_path))
    assert exc.value.details == {f"{section}.{field}": 0}
