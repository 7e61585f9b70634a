"""
Structured result payloads - what every provider must return.

Field names follow the JSON the prompts ask for (camelCase), so a parsed
reply validates directly.
"""

from typing import Literal, Optional, Type
from pydantic import BaseModel, Field, ConfigDict

from .analysis import Domain


class ResultBase(BaseModel):
    """Common shape: who produced it and the 0-100 headline score."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    provider: str = ""
    overallScore: float = Field(ge=0, le=100)
    summary: str = ""

    @property
    def score(self) -> int:
        return int(round(self.overallScore))


# === UI/UX ===

class CategoryScore(BaseModel):
    model_config = ConfigDict(extra="allow")

    score: float = Field(ge=0, le=100)
    observations: list[str] = Field(default_factory=list)


class Categories(BaseModel):
    model_config = ConfigDict(extra="allow")

    colorContrast: CategoryScore
    typography: CategoryScore
    layoutComposition: CategoryScore
    navigation: CategoryScore
    accessibility: CategoryScore
    visualHierarchy: CategoryScore
    whitespace: CategoryScore
    consistency: CategoryScore


class Recommendation(BaseModel):
    model_config = ConfigDict(extra="allow")

    severity: Literal["low", "medium", "high", "critical"]
    category: str = ""
    title: str
    description: str = ""


class ImageResult(BaseModel):
    """Per-screenshot breakdown when several images are analyzed together."""
    model_config = ConfigDict(extra="allow")

    imageIndex: int
    overallScore: float = Field(ge=0, le=100)
    summary: str = ""


class ProviderAgreement(BaseModel):
    category: str
    agreement: Literal["high", "medium", "low"]


class UXAnalysisResult(ResultBase):
    categories: Categories
    recommendations: list[Recommendation] = Field(default_factory=list)
    perImageResults: list[ImageResult] = Field(default_factory=list)
    providerAgreement: list[ProviderAgreement] = Field(default_factory=list)


# === Smart contracts ===

class SecurityFinding(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    severity: Literal["critical", "high", "medium", "low", "informational"]
    description: str = ""
    location: Optional[str] = None
    recommendation: str = ""


class GasOptimization(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    potentialSavings: str = ""
    description: str = ""
    location: Optional[str] = None
    recommendation: str = ""


class ContractAnalysisResult(ResultBase):
    securityScore: float = Field(ge=0, le=100)
    gasEfficiencyScore: float = Field(ge=0, le=100)
    codeQualityScore: float = Field(ge=0, le=100)
    securityFindings: list[SecurityFinding] = Field(default_factory=list)
    gasOptimizations: list[GasOptimization] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


RESULT_SCHEMAS: dict[Domain, Type[ResultBase]] = {
    Domain.UI_UX: UXAnalysisResult,
    Domain.CONTRACT: ContractAnalysisResult,
}


def schema_for(domain: Domain) -> Type[ResultBase]:
    return RESULT_SCHEMAS[Domain(domain)]
