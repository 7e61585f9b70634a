"""
Retry models - the plan a caller submits and the outcome they get back.
"""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .analysis import AnalysisStatus, Stage


class Substitution(BaseModel):
    """Run `substitute` in the slot held by `original`. Same id = plain retry."""
    model_config = ConfigDict(populate_by_name=True)

    original: str = Field(alias="originalProvider")
    substitute: str = Field(alias="retryProvider")

    @property
    def is_identity(self) -> bool:
        return self.original == self.substitute


class RetryPlan(BaseModel):
    """Transient value object describing one retry."""
    model_config = ConfigDict(populate_by_name=True)

    analysis_id: str = Field(alias="analysisId")
    stage: Stage = Field(alias="retryStep")
    substitutions: list[Substitution] = Field(default_factory=list, alias="retryProviders")
    new_master: Optional[str] = Field(default=None, alias="newMasterProvider")
    # Plain retry of these slots when no substitutions are given
    failed_providers: list[str] = Field(default_factory=list, alias="failedProviders")

    @field_validator("stage", mode="before")
    @classmethod
    def _accept_legacy_step_names(cls, value):
        # Older clients send v1_initial / v3_synthesis
        if isinstance(value, str) and value.startswith(("v1_", "v2_", "v3_")):
            return value[3:]
        return value

    @model_validator(mode="after")
    def _check_stage(self) -> "RetryPlan":
        if self.stage == Stage.RETHINK:
            raise ValueError("rethink cannot be retried directly")
        if self.stage == Stage.INITIAL and not self.substitutions and self.failed_providers:
            self.substitutions = [
                Substitution(original=p, substitute=p) for p in dict.fromkeys(self.failed_providers)
            ]
        if self.stage == Stage.INITIAL and not self.substitutions:
            raise ValueError("initial retry needs at least one provider")
        originals = [s.original for s in self.substitutions]
        if len(set(originals)) != len(originals):
            raise ValueError("each provider slot can only be retried once per plan")
        return self


class RetryOutcome(BaseModel):
    """What a retry achieved."""
    analysis_id: str
    stage: Stage
    retried_providers: list[str] = Field(default_factory=list)
    failed_providers: list[str] = Field(default_factory=list)
    synthesis_retried: bool = False
    synthesis_provider: Optional[str] = None
    status: AnalysisStatus
    final_score: Optional[int] = None
    message: str = ""
