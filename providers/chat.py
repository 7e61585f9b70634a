"""
Chat-completions backends: OpenAI, Gemini (OpenAI-compatible endpoint), Groq.

All three speak the same messages format, so they share one _call_api.
"""

from groq import Groq
from openai import OpenAI

from .base import BaseProvider, Completion

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class ChatCompletionsProvider(BaseProvider):
    """Provider for any backend with an OpenAI-style chat.completions API."""

    # JSON mode is unreliable alongside image inputs on some backends
    json_mode_with_images: bool = False
    max_tokens_param: str = "max_tokens"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.client = self._make_client()

    def _make_client(self):
        return OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=1)

    def _build_messages(self, system_prompt: str, user_prompt: str, images: list[str]) -> list[dict]:
        if not images:
            return [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ]

        content = [{"type": "text", "text": user_prompt}]
        for image in images:
            content.append({"type": "image_url", "image_url": {"url": image}})
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": content},
        ]

    def _call_api(self, system_prompt: str, user_prompt: str, images: list[str]) -> Completion:
        request = {
            "model": self.model,
            "messages": self._build_messages(system_prompt, user_prompt, images),
            self.max_tokens_param: self.max_output_tokens,
        }
        if not images or self.json_mode_with_images:
            request["response_format"] = {"type": "json_object"}

        resp = self.client.chat.completions.create(**request)

        content = resp.choices[0].message.content if resp.choices else ""
        usage = getattr(resp, "usage", None)
        tokens = getattr(usage, "total_tokens", 0) if usage else 0
        print(f"[{self.name}] model={self.model} total_tokens={tokens}")
        return Completion(content=content or "", tokens_used=tokens or 0)


class OpenAIProvider(ChatCompletionsProvider):
    name = "openai"
    max_tokens_param = "max_completion_tokens"


class GeminiProvider(ChatCompletionsProvider):
    name = "gemini"
    json_mode_with_images = True

    def _make_client(self):
        return OpenAI(base_url=GEMINI_BASE_URL, api_key=self.api_key,
                      timeout=self.timeout, max_retries=1)


class GroqProvider(ChatCompletionsProvider):
    name = "groq"

    def _make_client(self):
        return Groq(api_key=self.api_key, timeout=self.timeout, max_retries=1)
