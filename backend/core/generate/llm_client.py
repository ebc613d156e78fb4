import logging
import httpx
import time
import random
from typing import List, Dict, Any, Optional
from config.settings import AppSettings, settings as default_settings

logger = logging.getLogger(__name__)

class LLMClient:
    """
    OpenRouter-compatible chat completions client used to synthesize recipe answers.
    Retries with exponential backoff and falls back to a second model.
    """

    def __init__(self, app_settings: Optional[AppSettings] = None):
        app_settings = app_settings or default_settings
        self.api_key = app_settings.openrouter_api_key
        self.config = app_settings.llm
        self.base_url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        self.headers = {
            "Authorization": f"Bearer {self.api_key}" if self.api_key else "",
            "X-Title": "PantryMatch",
            "Content-Type": "application/json"
        }
        self.max_retries = 3
        self.base_delay = 2.0

    def generate(self,
                 messages: List[Dict[str, str]],
                 max_tokens: Optional[int] = None,
                 temperature: Optional[float] = None) -> Dict[str, Any]:
        """
        Returns {"text": ..., "tokens_used": ..., "model": ...}.
        Tries the primary model, then the fallback model.
        """
        payload = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": max_tokens if max_tokens is not None else self.config.max_tokens,
            "temperature": temperature if temperature is not None else self.config.temperature,
            "stream": False
        }

        if not self.api_key:
            logger.warning("OPENROUTER_API_KEY is not set. LLM calls will fail.")

        try:
            return self._sync_response(payload)
        except Exception as e:
            if not self.config.fallback_model or self.config.fallback_model == payload["model"]:
                raise
            logger.warning(f"Primary model {payload['model']} failed: {e}. Trying fallback.")
            payload["model"] = self.config.fallback_model
            return self._sync_response(payload)

    def _sync_response(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        for attempt in range(self.max_retries):
            try:
                with httpx.Client(timeout=60.0) as client:
                    response = client.post(self.base_url, headers=self.headers, json=payload)

                    if response.status_code == 429:
                        delay = self.base_delay * (2 ** attempt) + random.uniform(0, 1)
                        logger.warning(f"Rate limited (429). Retrying in {delay:.2f}s... (Attempt {attempt+1}/{self.max_retries})")
                        time.sleep(delay)
                        continue

                    response.raise_for_status()
                    data = response.json()
                    usage = data.get("usage") or {}
                    return {
                        "text": data["choices"][0]["message"]["content"],
                        "tokens_used": usage.get("total_tokens", 0),
                        "model": data.get("model", payload["model"])
                    }
            except httpx.HTTPError as e:
                if attempt == self.max_retries - 1:
                    raise
                delay = self.base_delay * (2 ** attempt) + random.uniform(0, 1)
                logger.warning(f"Request failed: {e}. Retrying in {delay:.2f}s...")
                time.sleep(delay)

        raise RuntimeError(f"LLM call to {payload['model']} failed after {self.max_retries} attempts")
