"""
Selective retry with provider substitution.

An initial retry re-runs chosen slots (optionally with a different provider
per slot), keeps every earlier success, then rebuilds the synthesis. A
synthesis retry only rebuilds the synthesis, optionally with a new master.
At most one retry per analysis runs at a time.
"""

import threading
from contextlib import contextmanager
from typing import Callable

from errors import (
    AnalysisNotFoundError,
    InvalidRequestError,
    NoInitialResultsError,
    RetryInProgressError,
)
from models import AnalysisRequest, RetryOutcome, RetryPlan, Stage
from repositories import Repository
from .artifacts import ResolvedSource
from .orchestrator import Orchestrator

# Given the freshly loaded record, return the orchestrator and inputs to retry with
RetrySetup = Callable[[AnalysisRequest], tuple[Orchestrator, ResolvedSource]]


class RetryLocks:
    """One non-blocking lock per analysis id. Only held ids stay in the map."""

    def __init__(self):
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, analysis_id: str):
        with self._guard:
            lock = self._locks.setdefault(analysis_id, threading.Lock())
            # Try to acquire lock (non-blocking)
            if not lock.acquire(blocking=False):
                print(f"[RETRY] {analysis_id}: another retry is in progress")
                raise RetryInProgressError(f"A retry is already running for {analysis_id}")

        try:
            yield
        finally:
            with self._guard:
                lock.release()
                self._locks.pop(analysis_id, None)

    def is_held(self, analysis_id: str) -> bool:
        with self._guard:
            return analysis_id in self._locks

    def __len__(self):
        return len(self._locks)


class RetryCoordinator:
    """Applies RetryPlans. Long-lived; shares its locks across requests."""

    def __init__(self, repo: Repository, locks: RetryLocks = None):
        self.repo = repo
        self.locks = locks or RetryLocks()

    def retry(self, plan: RetryPlan, user_id: str, setup: RetrySetup) -> RetryOutcome:
        """
        Run a retry under the analysis' lock.

        The record is re-read inside the lock so two retries never work
        from the same stale slot list.
        """
        with self.locks.hold(plan.analysis_id):
            analysis = self.repo.analyses.get(plan.analysis_id)
            if analysis is None or analysis.user_id != user_id:
                raise AnalysisNotFoundError(f"Analysis not found: {plan.analysis_id}")

            self.validate(analysis, plan)
            orchestrator, source = setup(analysis)

            for sub in plan.substitutions:
                if not orchestrator.registry.is_available(sub.substitute):
                    raise InvalidRequestError(f"{sub.substitute} is not available to retry {sub.original}")

            if plan.new_master and not orchestrator.registry.is_available(plan.new_master):
                raise InvalidRequestError(f"{plan.new_master} is not available to synthesize")

            try:
                if plan.stage == Stage.INITIAL:
                    return self._retry_initial(analysis, plan, orchestrator, source)
                return self._retry_synthesis(analysis, plan, orchestrator, source)
            except (NoInitialResultsError, InvalidRequestError):
                raise
            except Exception as e:
                orchestrator.abort(analysis, e)
                raise

    def validate(self, analysis: AnalysisRequest, plan: RetryPlan) -> None:
        """Reject plans that don't fit the record's current slots."""
        for sub in plan.substitutions:
            if sub.original not in analysis.providers_used:
                raise InvalidRequestError(
                    f"{sub.original} does not occupy a slot in {analysis.providers_used}"
                )
            if not sub.is_identity and sub.substitute in analysis.providers_used:
                raise InvalidRequestError(f"{sub.substitute} already occupies a slot")

        substitutes = [s.substitute for s in plan.substitutions]
        if len(set(substitutes)) != len(substitutes):
            raise InvalidRequestError("the same provider cannot fill two slots")

    # === Stages ===

    def _retry_initial(self, analysis: AnalysisRequest, plan: RetryPlan,
                       orchestrator: Orchestrator, source: ResolvedSource) -> RetryOutcome:
        assignments = {s.original: s.substitute for s in plan.substitutions}
        print(f"[RETRY] {analysis.id}: retrying initial stage {assignments}")

        rows = orchestrator.run_initial(analysis, source, assignments)

        retried, failed = [], []
        for slot, row in rows.items():
            if row.success:
                retried.append(row.provider)
                if analysis.replace_slot(slot, row.provider):
                    print(f"[RETRY] {analysis.id}: slot {slot} now held by {row.provider}")
            else:
                failed.append(row.provider)
        self.repo.analyses.save(analysis)

        if not orchestrator.initial_successes(analysis):
            # Nothing to synthesize from; drop any stale synthesis with the verdict
            self.repo.responses.delete_step(analysis.id, Stage.SYNTHESIS)
            orchestrator.classify(analysis, None)
            return self._outcome(analysis, plan, retried, failed, None,
                                 f"All {len(rows)} retried provider(s) failed")

        master = plan.new_master or analysis.master_provider
        synthesis = orchestrator.run_synthesis(analysis, source, master)
        if synthesis.success:
            analysis.master_provider = master
        orchestrator.classify(analysis, synthesis)

        if synthesis.success:
            message = f"Successfully retried with {len(retried)} provider(s) and synthesis"
        else:
            message = f"Retried {len(retried)} provider(s); synthesis by {master} failed"
        return self._outcome(analysis, plan, retried, failed, synthesis, message)

    def _retry_synthesis(self, analysis: AnalysisRequest, plan: RetryPlan,
                         orchestrator: Orchestrator, source: ResolvedSource) -> RetryOutcome:
        if not orchestrator.initial_successes(analysis):
            raise NoInitialResultsError("No initial responses available for synthesis")

        master = plan.new_master or analysis.master_provider
        print(f"[RETRY] {analysis.id}: retrying synthesis with {master} (was {analysis.master_provider})")

        previous_master = analysis.master_provider
        synthesis = orchestrator.run_synthesis(analysis, source, master)
        if synthesis.success:
            analysis.master_provider = master
        orchestrator.classify(analysis, synthesis)

        if not synthesis.success:
            message = f"Synthesis retry with {master} failed"
        elif master != previous_master:
            message = f"Successfully retried synthesis with {master}"
        else:
            message = "Successfully retried synthesis"
        return self._outcome(analysis, plan, [], [], synthesis, message)

    def _outcome(self, analysis, plan, retried, failed, synthesis, message) -> RetryOutcome:
        print(f"[RETRY] {analysis.id}: {message} -> {analysis.status.value}")
        return RetryOutcome(
            analysis_id=analysis.id,
            stage=plan.stage,
            retried_providers=retried,
            failed_providers=failed,
            synthesis_retried=bool(synthesis and synthesis.success),
            synthesis_provider=synthesis.provider if synthesis else None,
            status=analysis.status,
            final_score=analysis.final_score,
            message=message,
        )
