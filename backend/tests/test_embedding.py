from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from config.settings import EmbeddingConfig
from core.embed.embedder import Embedder, validate_vectors
from core.errors import EmbeddingError


@pytest.fixture
def fake_model():
    model = MagicMock()
    model.encode.side_effect = lambda texts, **kwargs: (
        np.ones((len(texts), 8)) / np.sqrt(8) if isinstance(texts, list) else np.ones(8) / np.sqrt(8)
    )
    with patch("core.embed.embedder.SentenceTransformer", return_value=model) as mock_cls:
        Embedder._model = None
        yield mock_cls, model
    Embedder._model = None


def test_embedding_flow(fake_model):
    print("--- Testing Embedding Flow ---")
    mock_cls, model = fake_model
    config = EmbeddingConfig(model_name="BAAI/bge-small-en-v1.5", encode_batch_size=16)

    embedder = Embedder(config)
    vectors = embedder.embed_many(["Chop the onions.", "Simmer the dal."])

    assert len(vectors) == 2
    for emb in vectors:
        # Verify L2 normalization: sum of squares should be ~1
        assert np.linalg.norm(emb) == pytest.approx(1.0)
    assert model.encode.call_args.kwargs["batch_size"] == 16

    query_emb = embedder.embed_query("onion dal")
    assert len(query_emb) == 8
    assert model.encode.call_args.args[0] == f"{config.query_prefix}onion dal"

    # The model is loaded once per process
    Embedder(config)
    mock_cls.assert_called_once_with("BAAI/bge-small-en-v1.5", device="cpu")


def test_empty_input_skips_the_model(fake_model):
    _, model = fake_model
    assert Embedder(EmbeddingConfig()).embed_many([]) == []
    model.encode.assert_not_called()


def test_model_failure_is_embedding_error(fake_model):
    _, model = fake_model
    model.encode.side_effect = RuntimeError("CUDA out of memory")
    with pytest.raises(EmbeddingError) as exc:
        Embedder(EmbeddingConfig()).embed_many(["a", "b", "c"])
    assert exc.value.batch_size == 3


def test_validate_vectors_rejects_bad_shapes():
    with pytest.raises(EmbeddingError):
        validate_vectors(["a", "b"], [[0.1]])
    with pytest.raises(EmbeddingError):
        validate_vectors(["a"], [[]])
    with pytest.raises(EmbeddingError):
        validate_vectors(["a"], None)
    assert validate_vectors(["a"], [[0.5]]) == [[0.5]]
