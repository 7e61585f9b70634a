"""
Base provider class - handles timing, parsing, validation and call logging.

Concrete providers just implement _call_api().
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Type

from pydantic import ValidationError

from errors import ProviderError, ProviderExecutionError, ProviderUnavailableError
from models.results import ResultBase
from .parsing import extract_json


@dataclass
class Completion:
    """Raw reply from a backend before parsing."""
    content: str
    tokens_used: int = 0


@dataclass
class ProviderResult:
    """A validated, scored result from one provider call."""
    provider: str
    result: dict[str, Any]
    score: int
    tokens_used: int
    latency_ms: int
    model: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


class BaseProvider(ABC):
    """
    Base class for all AI backends.

    Handles:
    - Latency measurement
    - JSON extraction and truncation repair
    - Schema validation against the domain result model
    - Optional per-call request/response logging

    Subclasses implement _call_api() with the backend's wire format.
    """

    name: str = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        schema: Type[ResultBase],
        timeout: float = 120.0,
        max_output_tokens: int = 8192,
        log_dir: Optional[Path] = None,
    ):
        if not api_key:
            raise ProviderUnavailableError(self.name, "no API key configured")
        if not model:
            raise ProviderUnavailableError(self.name, "no model configured")
        self.api_key = api_key
        self.model = model
        self.schema = schema
        self.timeout = timeout
        self.max_output_tokens = max_output_tokens
        self.log_dir = Path(log_dir) / self.name if log_dir else None

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str, images: list[str]) -> Completion:
        """
        Send one request to the backend.

        Args:
            system_prompt: System-level instructions
            user_prompt: The prompt text
            images: data URLs (empty for text-only calls)

        Returns:
            Completion with raw text and total tokens
        """
        pass

    # === Public capability ===

    def analyze(self, system_prompt: str, user_prompt: str,
                images: Optional[list[str]] = None) -> ProviderResult:
        return self._execute("analyze", system_prompt, user_prompt, images or [])

    def rethink(self, system_prompt: str, user_prompt: str, previous: dict,
                others: list[dict], images: Optional[list[str]] = None) -> ProviderResult:
        """Reconsider a previous result in light of other providers' results."""
        others_str = "\n\n".join(
            f"### {r.get('provider', 'unknown')}\n{json.dumps(r, indent=2)}" for r in others
        )
        prompt = f"""{user_prompt}

## Your Previous Analysis
{json.dumps(previous, indent=2)}

## Other AI Perspectives
{others_str}

Based on these other perspectives, reconsider your analysis. Where do you agree or disagree? Provide your revised assessment."""
        return self._execute("rethink", system_prompt, prompt, images or [])

    def synthesize(self, system_prompt: str, user_prompt: str, prior_results: list[dict],
                   images: Optional[list[str]] = None) -> ProviderResult:
        """Consolidate several providers' results into one verdict."""
        results_str = "\n\n".join(
            f"### {r.get('provider', 'unknown')}\n{json.dumps(r, indent=2)}" for r in prior_results
        )
        prompt = f"""{user_prompt}

## All Provider Analyses
{results_str}

Synthesize these analyses into a final, comprehensive result. Resolve any disagreements between providers, and provide weighted scores based on the consensus. Highlight areas of high agreement and areas where providers significantly disagreed. Provide only the JSON object."""
        return self._execute("synthesize", system_prompt, prompt, images or [])

    # === Internals ===

    def _execute(self, method: str, system_prompt: str, user_prompt: str,
                 images: list[str]) -> ProviderResult:
        """Common wrapper: call, log, parse, validate. Always raises ProviderError on failure."""
        start = time.monotonic()
        completion = Completion(content="")

        try:
            completion = self._call_api(system_prompt, user_prompt, images)
            latency_ms = int((time.monotonic() - start) * 1000)
            self._log_call(method, system_prompt, user_prompt, images, completion, latency_ms)

            if not completion.content.strip():
                raise ProviderExecutionError(self.name, "empty response",
                                             completion.tokens_used, latency_ms)

            parsed = extract_json(completion.content)
            parsed["provider"] = self.name
            validated = self.schema.model_validate(parsed)

            return ProviderResult(
                provider=self.name,
                result=validated.model_dump(mode="json"),
                score=validated.score,
                tokens_used=completion.tokens_used,
                latency_ms=latency_ms,
                model=self.model,
            )

        except ProviderError:
            raise
        except (ValueError, ValidationError) as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            raise ProviderExecutionError(
                self.name, f"malformed response: {e}",
                completion.tokens_used, latency_ms, raw=completion.content[:2000],
            ) from e
        except Exception as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            self._log_call(method, system_prompt, user_prompt, images, completion, latency_ms, error=str(e))
            raise ProviderExecutionError(self.name, f"{type(e).__name__}: {e}",
                                         completion.tokens_used, latency_ms) from e

    def _log_call(self, method: str, system_prompt: str, user_prompt: str, images: list[str],
                  completion: Completion, latency_ms: int, error: Optional[str] = None) -> None:
        """Write request/response to log_dir when API logging is on. Never raises."""
        if not self.log_dir:
            return

        try:
            stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
            call_dir = self.log_dir / f"{method}_{stamp}"
            call_dir.mkdir(parents=True, exist_ok=True)
            data = {
                "provider": self.name,
                "model": self.model,
                "method": method,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "request": {
                    "system_prompt": system_prompt,
                    "user_prompt": user_prompt,
                    "images_count": len(images),
                },
                "response": {
                    "content": completion.content,
                    "tokens_used": completion.tokens_used,
                    "latency_ms": latency_ms,
                    "error": error,
                },
            }
            with open(call_dir / "request.json", "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            print(f"[{self.name}] Failed to log {method} call: {e}")

    def get_name(self) -> str:
        return self.name
