"""
Progress report for the read-only status query.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from .analysis import AnalysisRequest, AnalysisStatus, ProviderResponse, Stage, latest_successes


class AnalysisProgress(BaseModel):
    """What a polling client sees."""
    analysis_id: str
    status: AnalysisStatus
    stage: Optional[Stage] = None
    final_score: Optional[int] = None
    best_individual_score: Optional[int] = None
    providers_used: list[str] = Field(default_factory=list)
    master_provider: str
    initial_count: int = 0
    rethink_count: int = 0
    has_synthesis: bool = False
    progress: int = 0
    created_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def summary(self) -> str:
        """Outcome framed as N of M, never a bare pass/fail."""
        total = len(self.providers_used)
        text = f"{self.initial_count} of {total} providers succeeded"
        if self.has_synthesis:
            text += ", synthesis complete"
        return text

    @classmethod
    def build(cls, analysis: AnalysisRequest, responses: list[ProviderResponse]) -> "AnalysisProgress":
        """
        Derive progress from the record and its rows.

        Each provider owns an initial and a rethink slot, plus one shared
        synthesis slot: progress = done / (providers * 2 + 1). Rethink slots
        stay empty unless that stage is enabled.
        """
        slots = analysis.providers_used
        initial = latest_successes(responses, Stage.INITIAL, slots)
        rethink = latest_successes(responses, Stage.RETHINK, slots)
        has_synthesis = any(r.step == Stage.SYNTHESIS and r.success for r in responses)

        total_steps = len(slots) * 2 + 1
        completed_steps = len(initial) + len(rethink) + (1 if has_synthesis else 0)
        progress = round(completed_steps / total_steps * 100) if total_steps else 0

        scores = [r.score for r in initial.values() if r.score is not None]

        return cls(
            analysis_id=analysis.id,
            status=analysis.status,
            stage=analysis.stage,
            final_score=analysis.final_score,
            best_individual_score=max(scores) if scores else None,
            providers_used=list(slots),
            master_provider=analysis.master_provider,
            initial_count=len(initial),
            rethink_count=len(rethink),
            has_synthesis=has_synthesis,
            progress=progress,
            created_at=analysis.created_at,
            completed_at=analysis.completed_at,
        )

    def to_dict(self) -> dict:
        """Export for API responses."""
        data = self.model_dump(mode="json")
        data["summary"] = self.summary
        return data
