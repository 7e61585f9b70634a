"""
Analysis service - the one entry point the API and CLI talk to.

Admission (rate limit, credentials, provider availability, artifacts)
happens here; everything after admission is the orchestrator's job.
"""

from typing import List, Mapping, Optional

from config import Settings, has_user_credentials, resolve_credentials
from errors import AnalysisNotFoundError, NoAvailableProvidersError
from models import (
    AnalysisProgress,
    AnalysisRequest,
    AnalysisSubmission,
    RateBudget,
    RetryOutcome,
    RetryPlan,
    UserAccount,
    schema_for,
)
from prompts import PromptResolver
from providers import PROVIDER_CLASSES, ProviderRegistry
from repositories import Repository, get_repository
from .artifacts import ArtifactResolver
from .orchestrator import Orchestrator
from .rate_limit import RateLimiter
from .retry import RetryCoordinator, RetryLocks


class AnalysisService:
    """
    Submit-and-poll facade.

    Args:
        settings: process settings
        repo: record store, defaults to the configured backend
        artifacts: resolver for storage/GitHub sources
        provider_factories: provider id -> factory, defaults to the real SDK classes
    """

    def __init__(
        self,
        settings: Settings,
        repo: Optional[Repository] = None,
        artifacts: Optional[ArtifactResolver] = None,
        provider_factories: Optional[Mapping] = None,
        retry_locks: Optional[RetryLocks] = None,
    ):
        self.settings = settings
        self.repo = repo or get_repository()
        self.artifacts = artifacts or ArtifactResolver()
        self.provider_factories = dict(provider_factories or PROVIDER_CLASSES)
        self.prompts = PromptResolver(settings.prompts_dir)
        self.limiter = RateLimiter(self.repo, settings)
        self.retries = RetryCoordinator(self.repo, retry_locks or RetryLocks())

    # === Submit ===

    def submit(self, user_id: str, submission: AnalysisSubmission) -> AnalysisRequest:
        """
        Admit and run one analysis to a terminal state.

        Raises admission errors before anything is persisted.
        """
        self.limiter.admit(user_id, submission.api_keys, submission.providers)
        account = self._account(user_id)

        registry = self._registry(
            submission.domain, account, submission.api_keys, submission.model_tiers
        )
        available, excluded = registry.partition(submission.providers)
        for provider, reason in excluded.items():
            print(f"[ADMIT] Excluding {provider}: {reason}")
        if not available:
            raise NoAvailableProvidersError(
                f"None of the requested providers are available: {', '.join(submission.providers)}"
            )

        master = submission.master_provider
        if master not in available:
            print(f"[ADMIT] Master {master} unavailable, using {available[0]}")
            master = available[0]

        source = self.artifacts.resolve(submission.domain, submission.source)

        analysis = AnalysisRequest(
            user_id=user_id,
            domain=submission.domain,
            source=submission.source,
            requested_providers=submission.providers,
            providers_used=available,
            excluded_providers=excluded,
            master_provider=master,
            context=submission.context,
            model_tiers=submission.model_tiers,
            used_user_credentials=has_user_credentials(
                available, account.stored_credentials, submission.api_keys
            ),
        )
        self.repo.analyses.save(analysis)
        print(f"[ADMIT] {analysis.id}: {analysis.domain.value} for {user_id} with {available}")

        return self._orchestrator(registry).run(analysis, source)

    # === Queries ===

    def get(self, analysis_id: str, user_id: str) -> AnalysisRequest:
        analysis = self.repo.analyses.get(analysis_id)
        if analysis is None or analysis.user_id != user_id:
            raise AnalysisNotFoundError(f"Analysis not found: {analysis_id}")
        return analysis

    def status(self, analysis_id: str, user_id: str) -> AnalysisProgress:
        """Read-only progress for polling."""
        analysis = self.get(analysis_id, user_id)
        responses = self.repo.responses.get_for_analysis(analysis_id)
        return AnalysisProgress.build(analysis, responses)

    def results(self, analysis_id: str, user_id: str) -> dict:
        """Record plus every response row, for result pages."""
        analysis = self.get(analysis_id, user_id)
        responses = self.repo.responses.get_for_analysis(analysis_id)
        data = analysis.model_dump(mode="json", exclude={"source": {"content"}})
        data["responses"] = [r.model_dump(mode="json") for r in responses]
        return data

    def budget(self, user_id: str, api_keys: Optional[Mapping[str, str]] = None,
               providers: Optional[List[str]] = None) -> RateBudget:
        return self.limiter.check(user_id, api_keys, providers)

    # === Retry ===

    def retry(self, user_id: str, plan: RetryPlan,
              api_keys: Optional[Mapping[str, str]] = None) -> RetryOutcome:
        """Apply a retry plan. Retries spend budget like submissions do."""
        self.limiter.admit(user_id, api_keys, self._retry_providers(plan))
        account = self._account(user_id)

        def setup(analysis: AnalysisRequest):
            registry = self._registry(analysis.domain, account, api_keys, analysis.model_tiers)
            source = self.artifacts.resolve(analysis.domain, analysis.source)
            return self._orchestrator(registry), source

        return self.retries.retry(plan, user_id, setup)

    # === Internals ===

    def _retry_providers(self, plan: RetryPlan) -> List[str]:
        """Providers a retry may call: substitutes plus whoever synthesizes."""
        providers = [s.substitute for s in plan.substitutions]
        master = plan.new_master
        if master is None:
            analysis = self.repo.analyses.get(plan.analysis_id)
            master = analysis.master_provider if analysis else None
        if master:
            providers.append(master)
        return list(dict.fromkeys(providers))

    def _account(self, user_id: str) -> UserAccount:
        try:
            return self.limiter.account_for(user_id)
        except Exception as e:
            print(f"[ADMIT] Account lookup failed for {user_id}, using defaults: {e}")
            return UserAccount(user_id=user_id, tier=self.settings.default_user_tier)

    def _registry(self, domain, account: UserAccount,
                  api_keys: Optional[Mapping[str, str]],
                  model_tiers: Optional[Mapping[str, str]]) -> ProviderRegistry:
        credentials = resolve_credentials(
            self.provider_factories.keys(),
            stored=account.stored_credentials,
            supplied=api_keys,
            fallback=self.settings.fallback_credentials,
        )
        return ProviderRegistry(
            self.settings,
            credentials,
            schema_for(domain),
            model_tiers=model_tiers,
            factories=self.provider_factories,
        )

    def _orchestrator(self, registry: ProviderRegistry) -> Orchestrator:
        return Orchestrator(self.repo, registry, self.settings, self.prompts)
