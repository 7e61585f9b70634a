"""
Root test configuration.

Test organization:
- unit/        Fast, isolated, no I/O, fake providers
- integration/ Component boundaries, real I/O to temp locations

Run specific levels:
    pytest tests/unit -v           # Fast feedback loop
    pytest tests/integration -v    # Before commit
    pytest tests -v                # Everything
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast isolated tests")
    config.addinivalue_line("markers", "integration: Component boundary tests")
    config.addinivalue_line("markers", "e2e: End-to-end system tests")
    config.addinivalue_line("markers", "slow: Tests that take > 1s")


@pytest.fixture
def sample_contract():
    """Small Solidity source."""
    return (
        "pragma solidity ^0.8.20;\n\n"
        "contract Token {\n"
        "    mapping(address => uint256) public balanceOf;\n"
        "    function transfer(address to, uint256 amount) external {\n"
        "        balanceOf[msg.sender] -= amount;\n"
        "        balanceOf[to] += amount;\n"
        "    }\n"
        "}\n"
    )


@pytest.fixture
def sample_image():
    """1x1 PNG as a data URL."""
    return (
        "data:image/png;base64,"
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
    )


# === Performance tracking ===

@pytest.fixture
def benchmark(request):
    """
    Simple benchmark fixture.

    Usage:
        def test_something(benchmark):
            result = benchmark(my_function, arg1, arg2)
            assert result == expected
    """
    import time

    def run(fn, *args, **kwargs):
        start = time.perf_counter()
        result = fn(*args, **kwargs)
        elapsed = time.perf_counter() - start

        # Log timing (visible with pytest -v)
        test_name = request.node.name
        print(f"\n  [{test_name}] {elapsed*1000:.2f}ms")

        return result

    return run


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """Add timing summary at end of test run."""
    stats = terminalreporter.stats

    # Collect slowest tests
    if 'passed' in stats:
        durations = []
        for report in stats['passed']:
            if hasattr(report, 'duration'):
                durations.append((report.duration, report.nodeid))

        if durations:
            durations.sort(reverse=True)
            terminalreporter.write_sep("=", "slowest 5 tests")
            for duration, nodeid in durations[:5]:
                terminalreporter.write_line(f"  {duration:.2f}s  {nodeid}")


# === Fake providers ===

import json
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from config import Settings
from models import AnalysisSubmission, ContractAnalysisResult
from providers.base import BaseProvider, Completion

FAKE_PROVIDERS = ("A", "B", "C", "D")

UX_CATEGORIES = (
    "colorContrast", "typography", "layoutComposition", "navigation",
    "accessibility", "visualHierarchy", "whitespace", "consistency",
)


def contract_payload(score: int) -> dict:
    return {
        "overallScore": score,
        "securityScore": score,
        "gasEfficiencyScore": score,
        "codeQualityScore": score,
        "summary": f"Scored {score}",
        "securityFindings": [{
            "title": "Unchecked underflow",
            "severity": "medium",
            "description": "transfer does not check the sender balance",
            "location": "transfer()",
            "recommendation": "require(balanceOf[msg.sender] >= amount)",
        }],
        "strengths": ["small surface"],
        "weaknesses": ["no events"],
    }


def ux_payload(score: int) -> dict:
    return {
        "overallScore": score,
        "categories": {c: {"score": score, "observations": ["fine"]} for c in UX_CATEGORIES},
        "recommendations": [{
            "severity": "high",
            "category": "accessibility",
            "title": "Raise contrast",
            "description": "Body text fails AA",
        }],
        "summary": f"Scored {score}",
    }


@dataclass
class ProviderScript:
    """
    What a fake provider does per method.

    int -> valid reply with that score, str -> raw reply text,
    exception instance -> raised from the backend call.
    """
    analyze: Any = 80
    rethink: Any = 80
    synthesize: Any = 82
    tokens: int = 100
    delay: float = 0.0
    calls: list = field(default_factory=list)

    def methods(self) -> list[str]:
        return [c["method"] for c in self.calls]


def _method_for(user_prompt: str) -> str:
    if "## All Provider Analyses" in user_prompt:
        return "synthesize"
    if "## Your Previous Analysis" in user_prompt:
        return "rethink"
    return "analyze"


class FakeProvider(BaseProvider):
    """BaseProvider whose backend is a ProviderScript."""

    def __init__(self, name: str, script: ProviderScript, **kwargs):
        self.name = name
        self.script = script
        super().__init__(**kwargs)

    def _call_api(self, system_prompt, user_prompt, images):
        method = _method_for(user_prompt)
        self.script.calls.append({
            "method": method,
            "model": self.model,
            "api_key": self.api_key,
            "system": system_prompt,
            "user": user_prompt,
            "images": list(images),
        })
        if self.script.delay:
            time.sleep(self.script.delay)

        reply = getattr(self.script, method)
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, str):
            return Completion(content=reply, tokens_used=self.script.tokens)

        build = contract_payload if self.schema is ContractAnalysisResult else ux_payload
        return Completion(content=json.dumps(build(reply)), tokens_used=self.script.tokens)


@pytest.fixture
def scripts():
    """One script per fake provider, mutable between calls."""
    return {name: ProviderScript() for name in FAKE_PROVIDERS}


@pytest.fixture
def fake_factories(scripts):
    return {name: partial(FakeProvider, name, scripts[name]) for name in FAKE_PROVIDERS}


@pytest.fixture
def settings(tmp_path):
    """Settings wired for the fake providers, every one with a fallback key."""
    return Settings(
        data_dir=tmp_path / "data",
        fallback_credentials={name: f"key-{name}" for name in FAKE_PROVIDERS},
        model_tiers={
            name: {"tier1": f"{name}-small", "tier2": f"{name}-medium", "tier3": f"{name}-large"}
            for name in FAKE_PROVIDERS
        },
        tier_limits={"free": 1000, "pro": 100_000, "enterprise": 1_000_000},
        log_dir=tmp_path / "api-logs",
    )


@pytest.fixture
def contract_submission(sample_contract):
    """Builder for contract submissions with inline source."""
    def build(providers=("A", "B", "C"), **extra):
        data = {
            "domain": "contract",
            "source": {"kind": "inline", "source_type": "contract_upload", "content": [sample_contract]},
            "providers": list(providers),
        }
        data.update(extra)
        return AnalysisSubmission.model_validate(data)

    return build


@pytest.fixture
def fake_provider_class():
    return FakeProvider


@pytest.fixture
def script_class():
    return ProviderScript


@pytest.fixture
def payloads():
    """Reply builders by domain."""
    return {"contract": contract_payload, "ui_ux": ux_payload}
