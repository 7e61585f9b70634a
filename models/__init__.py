"""
Domain models - single source of truth for all records.

Design principles:
- Every record defined once
- Validation at the boundary (provider replies, API input)
- Backend-agnostic (repository handles persistence)
"""

from .base import BaseEntity, TimestampMixin, utc_now
from .analysis import (
    AnalysisRequest,
    AnalysisStatus,
    Domain,
    ErrorDetail,
    ProviderResponse,
    SourceDescriptor,
    SourceKind,
    Stage,
    latest_successes,
)
from .results import (
    ResultBase,
    UXAnalysisResult,
    ContractAnalysisResult,
    schema_for,
)
from .retry import RetryPlan, RetryOutcome, Substitution
from .submission import AnalysisSubmission
from .account import UserAccount, RateBudget, UNLIMITED
from .progress import AnalysisProgress

__all__ = [
    # Base
    "BaseEntity",
    "TimestampMixin",
    "utc_now",
    # Analysis
    "AnalysisRequest",
    "AnalysisStatus",
    "Domain",
    "ErrorDetail",
    "ProviderResponse",
    "SourceDescriptor",
    "SourceKind",
    "Stage",
    "latest_successes",
    # Results
    "ResultBase",
    "UXAnalysisResult",
    "ContractAnalysisResult",
    "schema_for",
    # Retry
    "RetryPlan",
    "RetryOutcome",
    "Substitution",
    # Submission
    "AnalysisSubmission",
    # Accounts
    "UserAccount",
    "RateBudget",
    "UNLIMITED",
    # Progress
    "AnalysisProgress",
]
