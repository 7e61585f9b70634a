"""
Anthropic backend - messages API with base64 image blocks.
"""

from anthropic import Anthropic

from .base import BaseProvider, Completion
from .parsing import split_data_url


class AnthropicProvider(BaseProvider):
    name = "anthropic"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.client = Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=1)

    def _call_api(self, system_prompt: str, user_prompt: str, images: list[str]) -> Completion:
        content = []
        for image in images:
            media_type, data = split_data_url(image)
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": media_type, "data": data},
            })
        content.append({"type": "text", "text": user_prompt})

        # Anthropic doesn't use system in messages array
        resp = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_output_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": content}],
        )

        text = "".join(
            block.text for block in resp.content if getattr(block, "type", "") == "text"
        )
        usage = getattr(resp, "usage", None)
        tokens = (getattr(usage, "input_tokens", 0) or 0) + (getattr(usage, "output_tokens", 0) or 0)
        print(f"[{self.name}] model={self.model} total_tokens={tokens}")
        return Completion(content=text, tokens_used=tokens)
