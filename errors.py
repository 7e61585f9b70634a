"""
Error taxonomy for the analysis pipeline.

Admission errors reject a request before any provider is called.
Provider errors never escape a batch; the orchestrator records them as rows.
"""

from typing import Optional


class AnalysisError(Exception):
    """Base for all pipeline errors."""


# === Admission ===

class AdmissionError(AnalysisError):
    """Request rejected before any provider call."""


class InvalidRequestError(AdmissionError):
    """Malformed request or missing required input."""


class RateLimitExceededError(AdmissionError):
    """Daily token budget exhausted."""

    def __init__(self, budget):
        self.budget = budget
        super().__init__(
            f"Daily token limit reached ({budget.used_today}/{budget.daily_limit})"
        )


class NoAvailableProvidersError(AdmissionError):
    """Every requested provider is missing credentials."""


class ArtifactResolutionError(AdmissionError):
    """Could not turn a source descriptor into inline content."""


# === Providers ===

class ProviderError(AnalysisError):
    """Base for provider failures."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderUnavailableError(ProviderError):
    """Provider cannot run at all (no credential, unknown id, SDK not configured)."""


class ProviderExecutionError(ProviderError):
    """Provider ran and failed: timeout, transport error, malformed output."""

    def __init__(self, provider: str, message: str, tokens_used: int = 0,
                 latency_ms: int = 0, raw: Optional[str] = None):
        self.tokens_used = tokens_used
        self.latency_ms = latency_ms
        self.raw = raw
        super().__init__(provider, message)


# === Domain ===

class AnalysisNotFoundError(AnalysisError):
    """No analysis with that id (or not owned by the caller)."""


class NoInitialResultsError(AnalysisError):
    """Synthesis requested but no successful initial responses exist."""


class RetryInProgressError(AnalysisError):
    """Another retry is already running for this analysis."""


# === Storage ===

class RepositoryError(AnalysisError):
    """Record store read/write failure."""
