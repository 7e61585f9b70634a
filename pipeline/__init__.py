"""
Analysis pipeline.

Usage:
    from pipeline import AnalysisService

    service = AnalysisService(Settings.from_env())
    analysis = service.submit(user_id, submission)
    progress = service.status(analysis.id, user_id)
"""

from .artifacts import ArtifactResolver, ArtifactStore, LocalArtifactStore, ResolvedSource
from .fanout import Settled, TaskTimeoutError, gather_settled
from .orchestrator import Orchestrator, truncate_source
from .rate_limit import RateLimiter
from .retry import RetryCoordinator, RetryLocks
from .service import AnalysisService

__all__ = [
    "AnalysisService",
    "ArtifactResolver",
    "ArtifactStore",
    "LocalArtifactStore",
    "Orchestrator",
    "RateLimiter",
    "ResolvedSource",
    "RetryCoordinator",
    "RetryLocks",
    "Settled",
    "TaskTimeoutError",
    "gather_settled",
    "truncate_source",
]
