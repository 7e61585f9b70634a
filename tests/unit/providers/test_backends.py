"""Unit tests for the SDK-backed providers. SDK clients are replaced with mocks."""

import json
import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock

from models import ContractAnalysisResult
from providers import AnthropicProvider, GeminiProvider, GroqProvider, OpenAIProvider


def chat_response(content, total_tokens=250):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


def build(cls):
    return cls(api_key="test-key", model="test-model", schema=ContractAnalysisResult, timeout=5)


class TestChatCompletionsProviders:

    @pytest.mark.parametrize("cls", [OpenAIProvider, GeminiProvider, GroqProvider])
    def test_text_request_uses_json_mode(self, cls, payloads):
        provider = build(cls)
        provider.client = MagicMock()
        provider.client.chat.completions.create.return_value = chat_response(
            json.dumps(payloads["contract"](71))
        )

        result = provider.analyze("system", "user")

        assert result.score == 71
        assert result.tokens_used == 250
        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}

    def test_openai_uses_max_completion_tokens(self, payloads):
        provider = build(OpenAIProvider)
        provider.client = MagicMock()
        provider.client.chat.completions.create.return_value = chat_response(
            json.dumps(payloads["contract"](71))
        )
        provider.analyze("system", "user")

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert "max_completion_tokens" in kwargs
        assert "max_tokens" not in kwargs

    def test_images_sent_as_parts_without_json_mode(self, payloads, sample_image):
        provider = build(GroqProvider)
        provider.client = MagicMock()
        provider.client.chat.completions.create.return_value = chat_response(
            json.dumps(payloads["contract"](60))
        )
        provider.analyze("system", "user", [sample_image])

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert "response_format" not in kwargs
        parts = kwargs["messages"][1]["content"]
        assert parts[0] == {"type": "text", "text": "user"}
        assert parts[1]["image_url"]["url"] == sample_image

    def test_gemini_keeps_json_mode_with_images(self, payloads, sample_image):
        provider = build(GeminiProvider)
        provider.client = MagicMock()
        provider.client.chat.completions.create.return_value = chat_response(
            json.dumps(payloads["contract"](60))
        )
        provider.analyze("system", "user", [sample_image])

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}


class TestAnthropicProvider:

    def test_messages_request(self, payloads, sample_image):
        provider = build(AnthropicProvider)
        provider.client = MagicMock()
        provider.client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="text", text=json.dumps(payloads["contract"](88)))],
            usage=SimpleNamespace(input_tokens=1000, output_tokens=200),
        )

        result = provider.analyze("system", "user", [sample_image])

        assert result.score == 88
        assert result.tokens_used == 1200
        kwargs = provider.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "system"
        blocks = kwargs["messages"][0]["content"]
        assert blocks[0]["source"]["media_type"] == "image/png"
        assert blocks[-1] == {"type": "text", "text": "user"}
