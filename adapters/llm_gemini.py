# ClearPath/adapters/llm_gemini.py
import base64
from typing import Optional

import requests
from loguru import logger

import config


class GeminiAdapter:
    """
    Gemini through its OpenAI compatible chat completions endpoint.
    Provides:
      - complete(prompt, image_bytes=None) -> reply text (route generation)
      - describe_frame(jpeg_bytes, prompt) -> one short sentence (vision)
    """

    def __init__(self,
                 api_key: str = config.GEMINI_API_KEY,
                 model: str = config.GEMINI_MODEL,
                 vision_model: str = config.GEMINI_VISION_MODEL,
                 base_url: str = config.GEMINI_BASE_URL,
                 timeout: float = config.GEMINI_TIMEOUT_S):
        self.api_key = (api_key or "").strip()
        self.model = model
        self.vision_model = vision_model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def _image_part(image_bytes: bytes, mime: str) -> dict:
        b64 = base64.b64encode(image_bytes).decode()
        return {"type": "image_url", "image_url": {"url": f"data:{mime};base64,{b64}"}}

    def _chat(self, model: str, content, max_tokens: int, temperature: float) -> str:
        if not self.api_key:
            raise RuntimeError("GEMINI_API_KEY not set")

        r = self._session.post(
            f"{self.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": model,
                "messages": [{"role": "user", "content": content}],
                "temperature": temperature,
                "max_completion_tokens": max_tokens,
            },
            timeout=self.timeout,
        )
        r.raise_for_status()
        data = r.json()
        try:
            return (data["choices"][0]["message"]["content"] or "").strip()
        except (KeyError, IndexError, TypeError):
            logger.warning(f"[LLM] Unexpected reply shape: {str(data)[:200]}")
            raise ValueError("malformed completion reply")

    def complete(self, prompt: str, image_bytes: Optional[bytes] = None,
                 image_mime: str = "image/png",
                 max_tokens: int = config.ROUTE_MAX_TOKENS,
                 temperature: float = config.ROUTE_TEMPERATURE) -> str:
        content = [{"type": "text", "text": prompt}]
        if image_bytes:
            content.insert(0, self._image_part(image_bytes, image_mime))
        return self._chat(self.model, content, max_tokens, temperature)

    def describe_frame(self, jpeg_bytes: bytes, prompt: str,
                       max_tokens: int = config.VISION_MAX_TOKENS) -> str:
        content = [
            self._image_part(jpeg_bytes, "image/jpeg"),
            {"type": "text", "text": prompt},
        ]
        return self._chat(self.vision_model, content, max_tokens, temperature=0.2)
