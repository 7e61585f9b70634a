"""
Analysis records - the request aggregate and its per-provider response rows.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict

from .base import BaseEntity, utc_now


class Domain(str, Enum):
    """What kind of material is being analyzed."""
    UI_UX = "ui_ux"
    CONTRACT = "contract"


class AnalysisStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.COMPLETED, AnalysisStatus.PARTIAL, AnalysisStatus.FAILED)


class Stage(str, Enum):
    """
    Pipeline stages.

    RETHINK is reserved: defined so progress accounting and retries stay
    stage-generic, but only executed when the rethink stage is enabled.
    """
    INITIAL = "initial"
    RETHINK = "rethink"
    SYNTHESIS = "synthesis"


class SourceKind(str, Enum):
    INLINE = "inline"    # content carried in the request
    STORAGE = "storage"  # keys into the external blob store
    GITHUB = "github"    # fetched from a GitHub file URL


class SourceDescriptor(BaseModel):
    """Where the material to analyze comes from."""
    model_config = ConfigDict(extra="ignore")

    kind: SourceKind = SourceKind.INLINE
    source_type: str = "upload"  # upload | screen_capture | url | github | contract_upload
    content: list[str] = Field(default_factory=list)  # inline text or data URLs
    paths: list[str] = Field(default_factory=list)    # storage keys
    url: Optional[str] = None                         # GitHub file URL or captured page URL

    @property
    def is_empty(self) -> bool:
        if self.kind == SourceKind.INLINE:
            return not any(c.strip() for c in self.content)
        if self.kind == SourceKind.STORAGE:
            return not self.paths
        return not self.url


class ErrorDetail(BaseModel):
    """One recorded provider failure, surfaced to the caller."""
    provider: str
    stage: Stage
    message: str


class AnalysisRequest(BaseEntity):
    """
    One user-submitted unit of work.

    requested_providers is what the user asked for and never changes.
    providers_used holds one slot per provider that actually runs; a retry
    with substitution rewrites the slot to whatever really produced a result.
    """
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    domain: Domain
    source: SourceDescriptor = Field(default_factory=SourceDescriptor)

    requested_providers: list[str] = Field(default_factory=list)
    providers_used: list[str] = Field(default_factory=list)
    excluded_providers: dict[str, str] = Field(default_factory=dict)  # provider -> reason
    master_provider: str

    status: AnalysisStatus = AnalysisStatus.PENDING
    stage: Optional[Stage] = None
    final_score: Optional[int] = Field(default=None, ge=0, le=100)

    context: dict[str, Any] = Field(default_factory=dict)
    model_tiers: dict[str, str] = Field(default_factory=dict)
    used_user_credentials: bool = False
    error_details: list[ErrorDetail] = Field(default_factory=list)

    completed_at: Optional[datetime] = None

    def start_stage(self, stage: Stage) -> None:
        """Move into processing at the given stage."""
        self.status = AnalysisStatus.PROCESSING
        self.stage = stage
        self.touch()

    def finish(self, status: AnalysisStatus, final_score: Optional[int]) -> None:
        """Record a terminal outcome."""
        self.status = status
        self.stage = None
        self.final_score = final_score
        self.completed_at = utc_now()
        self.touch()

    def replace_slot(self, original: str, substitute: str) -> bool:
        """Point the slot held by original at substitute. Returns True if changed."""
        if original == substitute or original not in self.providers_used:
            return False
        index = self.providers_used.index(original)
        updated = list(self.providers_used)
        updated[index] = substitute
        self.providers_used = updated
        self.touch()
        return True

    def record_error(self, provider: str, stage: Stage, message: str) -> None:
        self.error_details = self.error_details + [
            ErrorDetail(provider=provider, stage=stage, message=message[:500])
        ]


class ProviderResponse(BaseModel):
    """
    One attempt by one provider at one stage. Success or failure.

    Rows are append-only; only synthesis rows get deleted (on retry).
    """
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    analysis_id: str
    provider: str
    step: Stage
    result: dict[str, Any] = Field(default_factory=dict)
    score: Optional[int] = None
    tokens_used: int = 0
    latency_ms: int = 0
    success: bool = True
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


def latest_successes(
    responses: list[ProviderResponse],
    step: Stage,
    providers: Optional[list[str]] = None,
) -> dict[str, ProviderResponse]:
    """
    Authoritative successful row per provider for a stage.

    Latest success wins. If providers is given, only those slots count and
    the result keeps that order.
    """
    latest: dict[str, ProviderResponse] = {}
    for response in sorted(responses, key=lambda r: r.created_at):
        if response.step == step and response.success:
            latest[response.provider] = response
    if providers is None:
        return latest
    return {p: latest[p] for p in providers if p in latest}
