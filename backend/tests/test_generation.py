from unittest.mock import MagicMock, patch

import httpx
import pytest

from core.generate.prompt_builder import PromptBuilder
from core.generate.llm_client import LLMClient
from models.query import SelectedRecipe, ContextChunk


def _mock_response(payload):
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = payload
    return mock_response


def test_prompt_builder():
    print("Testing PromptBuilder...")

    recipe = SelectedRecipe(
        parent_id="p1",
        score=1.2,
        title="Tomato Soup",
        chunks=[ContextChunk(
            id="p1#c0",
            score=0.9,
            metadata={"ingredients": ["tomato", "onion"]},
            text="Chop tomato and onion. Simmer 20 minutes."
        )]
    )
    untitled = SelectedRecipe(parent_id="p2", score=0.4, chunks=[
        ContextChunk(id="p2#c0", score=0.4, metadata={"ingredients": "not a list"}, text="x" * 900)
    ])

    question = "quick soup with tomatoes"
    messages = PromptBuilder.build_messages(question, [recipe, untitled])

    assert len(messages) == 2
    assert messages[0]["role"] == "system"
    assert "recipe assistant" in messages[0]["content"]
    user = messages[1]["content"]
    assert question in user
    assert "Context 1 - Title: Tomato Soup" in user
    assert 'Ingredients: ["tomato", "onion"]' in user
    assert "Instructions snippet: Chop tomato and onion." in user
    assert "Context 2 - Title: Untitled" in user
    assert "Ingredients: []" in user
    assert "x" * 501 not in user

    print("PromptBuilder tests PASSED")


def test_llm_client_sync(app_settings):
    print("Testing LLMClient sync call (MOCKED)...")

    with patch("httpx.Client") as mock_client_class:
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = _mock_response({
            "model": "google/gemini-2.5-flash",
            "choices": [{"message": {"content": "Make tomato soup."}}],
            "usage": {"total_tokens": 42}
        })

        client = LLMClient(app_settings)
        response = client.generate([{"role": "user", "content": "hello"}], max_tokens=100)

        assert response == {"text": "Make tomato soup.", "tokens_used": 42, "model": "google/gemini-2.5-flash"}
        sent = mock_client.post.call_args.kwargs["json"]
        assert sent["max_tokens"] == 100
        assert sent["temperature"] == app_settings.llm.temperature
        assert sent["stream"] is False

    print("LLMClient sync tests PASSED")


def test_llm_client_falls_back_after_retries(app_settings):
    with patch("httpx.Client") as mock_client_class, \
         patch("core.generate.llm_client.time.sleep") as mock_sleep:
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.side_effect = [
            httpx.ConnectError("down"),
            httpx.ConnectError("down"),
            httpx.ConnectError("down"),
            _mock_response({"choices": [{"message": {"content": "fallback answer"}}]}),
        ]

        response = LLMClient(app_settings).generate([{"role": "user", "content": "hello"}])

        assert response["text"] == "fallback answer"
        assert response["model"] == app_settings.llm.fallback_model
        assert response["tokens_used"] == 0
        assert mock_sleep.call_count == 2
        assert mock_client.post.call_args.kwargs["json"]["model"] == app_settings.llm.fallback_model


def test_llm_client_raises_when_fallback_also_fails(app_settings):
    with patch("httpx.Client") as mock_client_class, patch("core.generate.llm_client.time.sleep"):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.side_effect = httpx.ConnectError("down")

        with pytest.raises(httpx.HTTPError):
            LLMClient(app_settings).generate([{"role": "user", "content": "hello"}])
        assert mock_client.post.call_count == 6


if __name__ == "__main__":
    test_prompt_builder()
    print("\nAll Generation Component Unit Tests PASSED (Logic only)")
