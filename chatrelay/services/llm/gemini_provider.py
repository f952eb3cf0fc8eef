from typing import List, Optional

import httpx

from chatrelay.logging_config import get_logger
from chatrelay.services.llm.base import LLMError, LLMProvider, LLMResponse

logger = get_logger("llm.gemini")

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Gemini names the assistant side "model"
ROLE_MAP = {"user": "user", "assistant": "model", "model": "model"}


def to_gemini_contents(messages: List[dict]) -> List[dict]:
    contents = []
    for message in messages:
        role = ROLE_MAP.get(message.get("role", "user"), "user")
        contents.append({"role": role, "parts": [{"text": message.get("content") or ""}]})
    return contents


def extract_text(data: dict) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    if not parts:
        return ""
    return parts[0].get("text") or ""


class GeminiProvider(LLMProvider):
    """Google Gemini generateContent API."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        default_model: str = "gemini-2.0-flash",
        base_url: str = DEFAULT_BASE_URL,
        default_timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = base_url.rstrip("/")
        self.default_timeout = default_timeout

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        model = model or self.default_model
        timeout = timeout_seconds if timeout_seconds is not None else self.default_timeout

        payload = {
            "contents": to_gemini_contents(messages),
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        logger.debug(f"Gemini request: model={model}, messages_count={len(messages)}")

        with httpx.Client(timeout=timeout) as client:
            response = client.post(
                f"{self.base_url}/models/{model}:generateContent",
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
            )

        logger.debug(f"Gemini response status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"Gemini error: {response.text[:500]}")
            raise LLMError(self.name, response.status_code, response.text)

        data = response.json()
        content = extract_text(data)
        logger.debug(f"Gemini content: {content[:100] if content else 'EMPTY'}")

        return LLMResponse(
            content=content,
            model=data.get("modelVersion", model),
            usage=data.get("usageMetadata"),
        )
