"""
What a caller submits to start an analysis.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from config import MODEL_TIERS
from .analysis import Domain, SourceDescriptor


class AnalysisSubmission(BaseModel):
    """
    Validated submit payload.

    api_keys are per-request credentials; they are used for this run only
    and never written to the record.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    domain: Domain
    source: SourceDescriptor
    providers: list[str] = Field(min_length=1)
    master_provider: Optional[str] = Field(default=None, alias="masterProvider")
    context: dict[str, Any] = Field(default_factory=dict)
    model_tiers: dict[str, str] = Field(default_factory=dict, alias="modelTiers")
    api_keys: dict[str, str] = Field(default_factory=dict, alias="apiKeys", repr=False)

    @field_validator("providers")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        providers = list(dict.fromkeys(p.strip() for p in value if p and p.strip()))
        if not providers:
            raise ValueError("at least one provider is required")
        return providers

    @field_validator("model_tiers")
    @classmethod
    def _known_tiers(cls, value: dict[str, str]) -> dict[str, str]:
        for provider, tier in value.items():
            if tier not in MODEL_TIERS:
                raise ValueError(f"unknown model tier {tier!r} for {provider}")
        return value

    @model_validator(mode="after")
    def _check_master(self) -> "AnalysisSubmission":
        if self.master_provider is None:
            self.master_provider = self.providers[0]
        elif self.master_provider not in self.providers:
            raise ValueError("master provider must be one of the requested providers")
        if self.source.is_empty:
            raise ValueError("source has no content to analyze")
        return self
