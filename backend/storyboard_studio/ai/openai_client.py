"""Central wrapper around the OpenAI-compatible text and image endpoints."""

from __future__ import annotations

from typing import Any, Dict, List

from openai import OpenAI

from ..errors import ErrorKind, GenerationError

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_CHAT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "imagen-3.0-generate-002"


class OpenAIClient:
    """Thin wrapper around one OpenAI-compatible provider.

    The SDK client is built lazily so a container can exist before a
    credential has been resolved; any call without a key raises
    ``GenerationError`` of kind ``MISSING_CREDENTIAL``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_chat_model: str | None = None,
        default_image_model: str | None = None,
    ):
        self.api_key = self._clean(api_key)
        self.base_url = self._clean(base_url) or DEFAULT_BASE_URL
        self.default_chat_model = self._clean(default_chat_model) or DEFAULT_CHAT_MODEL
        self.default_image_model = self._clean(default_image_model) or DEFAULT_IMAGE_MODEL
        self._clients: Dict[tuple[str, str], OpenAI] = {}

    @staticmethod
    def _clean(value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None

    def _get_live_client(self) -> OpenAI:
        if not self.api_key:
            raise GenerationError(
                ErrorKind.MISSING_CREDENTIAL,
                "API key not found. Please set it in settings.",
            )
        client_key = (self.api_key, self.base_url)
        client = self._clients.get(client_key)
        if not client:
            client = OpenAI(api_key=self.api_key, base_url=self.base_url)
            self._clients[client_key] = client
        return client

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    def chat(self, messages: List[Dict[str, Any]], model: str | None = None, **kwargs) -> Any:
        """Call the chat completions endpoint."""
        client = self._get_live_client()
        return client.chat.completions.create(
            messages=messages,
            model=model or self.default_chat_model,
            **kwargs,
        )

    def images(self, prompt: str, model: str | None = None, **kwargs) -> Any:
        """Call the image generation endpoint, asking for inline base64 data."""
        client = self._get_live_client()
        kwargs.setdefault("n", 1)
        kwargs.setdefault("response_format", "b64_json")
        return client.images.generate(
            prompt=prompt,
            model=model or self.default_image_model,
            **kwargs,
        )


def extract_content(resp: Any) -> str:
    """Handle both dict responses and SDK objects."""
    def _normalize(content: Any) -> str:
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    text_value = item.get("text") or item.get("content")
                else:
                    text_value = getattr(item, "text", None) or getattr(item, "content", None)
                if isinstance(text_value, str):
                    parts.append(text_value)
            return "\n".join(parts).strip()
        return str(content)

    try:
        return _normalize(resp["choices"][0]["message"]["content"])
    except (KeyError, IndexError, TypeError):
        pass

    try:
        return _normalize(resp.choices[0].message.content)
    except (AttributeError, IndexError, TypeError):
        return ""


def extract_image_data(resp: Any) -> str | None:
    """Return the first base64 image payload found in an images response."""
    if isinstance(resp, dict):
        items = resp.get("data") or []
    else:
        items = getattr(resp, "data", None) or []

    for item in items:
        if isinstance(item, dict):
            payload = item.get("b64_json")
        else:
            payload = getattr(item, "b64_json", None)
        if payload:
            return payload
    return None
