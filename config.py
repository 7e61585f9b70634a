"""
Configuration and shared settings for the analysis orchestrator.

Everything the pipeline needs from the environment is read here ONCE and
passed around as an explicit Settings object. Nothing downstream reads
os.environ directly.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Mapping, Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Paths
DATA_DIR = Path(os.environ.get("ANALYSIS_DATA_DIR", "data"))
PROVIDERS_CONFIG = Path(os.environ.get("PROVIDERS_CONFIG", "providers.yaml"))

# Provider identifiers, in display order
PROVIDERS = ("openai", "anthropic", "gemini", "groq")

# Process-wide fallback key for each provider
PROVIDER_ENV_KEYS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "groq": "GROQ_API_KEY",
}

MODEL_TIERS = ("tier1", "tier2", "tier3")

# tier1 = cheapest, tier3 = premium
DEFAULT_MODEL_TIERS: Dict[str, Dict[str, str]] = {
    "openai": {"tier1": "gpt-4o-mini", "tier2": "gpt-4.1-mini", "tier3": "gpt-4.1"},
    "anthropic": {
        "tier1": "claude-3-5-haiku-latest",
        "tier2": "claude-sonnet-4-0",
        "tier3": "claude-opus-4-0",
    },
    "gemini": {"tier1": "gemini-2.0-flash", "tier2": "gemini-2.5-flash", "tier3": "gemini-2.5-pro"},
    "groq": {
        "tier1": "llama-3.1-8b-instant",
        "tier2": "llama-3.3-70b-versatile",
        "tier3": "meta-llama/llama-4-maverick-17b-128e-instruct",
    },
}

# Daily token ceilings per subscription tier
DEFAULT_TIER_LIMITS: Dict[str, int] = {
    "free": 100_000,
    "pro": 1_000_000,
    "enterprise": 10_000_000,
}

# Source text passed to the synthesis prompt is cut to this many chars
MAX_SOURCE_CHARS_FOR_SYNTHESIS = 15000


@dataclass
class Settings:
    """
    Explicit configuration handed to the service at construction.

    Build with Settings.from_env() in entry points; tests construct it directly.
    """
    data_dir: Path = DATA_DIR
    fallback_credentials: Dict[str, str] = field(default_factory=dict)
    model_tiers: Dict[str, Dict[str, str]] = field(
        default_factory=lambda: {p: dict(t) for p, t in DEFAULT_MODEL_TIERS.items()}
    )
    default_model_tier: str = "tier1"
    tier_limits: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_TIER_LIMITS))
    default_user_tier: str = "free"
    provider_timeout: float = 120.0
    stage_timeout: Optional[float] = None  # whole-batch deadline, None = wait for every call
    max_output_tokens: int = 8192
    max_parallel_providers: int = 8
    max_source_chars_for_synthesis: int = MAX_SOURCE_CHARS_FOR_SYNTHESIS
    strict_partial: bool = False
    rethink_enabled: bool = False
    api_logging: bool = False
    log_dir: Path = Path("api-logs")
    prompts_dir: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from the process environment plus providers.yaml."""
        env = os.environ if environ is None else environ
        settings = cls()

        settings.data_dir = Path(env.get("ANALYSIS_DATA_DIR", str(DATA_DIR)))
        settings.fallback_credentials = {
            provider: env[key]
            for provider, key in PROVIDER_ENV_KEYS.items()
            if env.get(key)
        }
        settings.default_model_tier = env.get("DEFAULT_MODEL_TIER", settings.default_model_tier)
        settings.provider_timeout = float(env.get("PROVIDER_TIMEOUT_SECONDS", settings.provider_timeout))
        if env.get("STAGE_TIMEOUT_SECONDS"):
            settings.stage_timeout = float(env["STAGE_TIMEOUT_SECONDS"])
        settings.max_output_tokens = int(env.get("MAX_OUTPUT_TOKENS", settings.max_output_tokens))
        settings.strict_partial = _env_flag(env.get("STRICT_PARTIAL_STATUS"))
        settings.rethink_enabled = _env_flag(env.get("ENABLE_RETHINK_STAGE"))
        settings.api_logging = _env_flag(env.get("ENABLE_API_LOGGING"))
        settings.log_dir = Path(env.get("API_LOG_DIR", str(settings.log_dir)))
        if env.get("PROMPTS_DIR"):
            settings.prompts_dir = Path(env["PROMPTS_DIR"])

        # Env model names win over defaults: OPENAI_MODEL_TIER_1 ... GROQ_MODEL_TIER_3
        for provider in PROVIDERS:
            for index, tier in enumerate(MODEL_TIERS, 1):
                value = env.get(f"{provider.upper()}_MODEL_TIER_{index}")
                if value:
                    settings.model_tiers[provider][tier] = value

        settings.apply_yaml(load_providers_config())
        return settings

    def apply_yaml(self, data: dict) -> None:
        """Merge a providers.yaml document into these settings."""
        if not data:
            return
        for provider, tiers in (data.get("model_tiers") or {}).items():
            self.model_tiers.setdefault(provider, {}).update(tiers or {})
        for tier, limit in (data.get("tier_limits") or {}).items():
            self.tier_limits[tier] = int(limit)
        if data.get("default_user_tier"):
            self.default_user_tier = data["default_user_tier"]

    def model_for(self, provider: str, tier: Optional[str] = None) -> str:
        """Resolve the model name a provider runs at a given tier."""
        tier = tier or self.default_model_tier
        if tier not in MODEL_TIERS:
            raise ValueError(f"Unknown model tier: {tier}")
        tiers = self.model_tiers.get(provider)
        if not tiers or not tiers.get(tier):
            raise ValueError(f"No model configured for {provider} at {tier}")
        return tiers[tier]

    def daily_limit_for(self, tier: str) -> int:
        if tier in self.tier_limits:
            return self.tier_limits[tier]
        return self.tier_limits.get(self.default_user_tier, 0)


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def load_providers_config() -> dict:
    """Load optional provider configuration from YAML."""
    if PROVIDERS_CONFIG.exists():
        with open(PROVIDERS_CONFIG) as f:
            return yaml.safe_load(f) or {}
    return {}


def resolve_credential(
    provider: str,
    stored: Optional[Mapping[str, str]] = None,
    supplied: Optional[Mapping[str, str]] = None,
    fallback: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """
    Pick the API key a provider runs with.

    Precedence: per-user stored credential > per-request supplied credential
    > process-wide fallback. Blank values are skipped.
    """
    for source in (stored, supplied, fallback):
        if not source:
            continue
        value = source.get(provider)
        if value and value.strip():
            return value.strip()
    return None


def resolve_credentials(
    providers,
    stored: Optional[Mapping[str, str]] = None,
    supplied: Optional[Mapping[str, str]] = None,
    fallback: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Resolve keys for several providers, omitting ones with no key at all."""
    resolved = {}
    for provider in providers:
        key = resolve_credential(provider, stored, supplied, fallback)
        if key:
            resolved[provider] = key
    return resolved


def has_user_credentials(
    providers,
    stored: Optional[Mapping[str, str]] = None,
    supplied: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    True when the user's own keys (BYOK) cover every provider in the run.

    A key for some other provider doesn't count: the run would still spend
    process fallback keys.
    """
    providers = list(providers or [])
    if not providers:
        return False
    return all(resolve_credential(p, stored, supplied) for p in providers)
