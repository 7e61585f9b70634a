"""
The analysis pipeline: initial fan-out, optional rethink, synthesis, verdict.

Every provider attempt becomes a response row the moment it settles, so an
interrupted run leaves durable partial progress that a retry can build on.
Provider failures never escape a stage; they're recorded and counted.
"""

from functools import partial
from typing import Optional

from config import Settings
from errors import NoInitialResultsError, ProviderExecutionError
from models import (
    AnalysisRequest,
    AnalysisStatus,
    Domain,
    ProviderResponse,
    Stage,
    latest_successes,
)
from prompts import PromptResolver, ResolvedPrompt
from providers import ProviderRegistry
from repositories import Repository
from .artifacts import ResolvedSource
from .fanout import Settled, gather_settled

TRUNCATION_NOTICE = "\n\n// ... (code truncated for synthesis to prevent token overflow)"


def truncate_source(text: str, limit: int) -> str:
    """Cut source text for the synthesis prompt only."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_NOTICE


class Orchestrator:
    """
    Drives one analysis through its stages.

    Built per request: the registry carries that request's credentials and
    model tiers. Retries reuse the same stage primitives.
    """

    def __init__(
        self,
        repo: Repository,
        registry: ProviderRegistry,
        settings: Settings,
        prompts: Optional[PromptResolver] = None,
    ):
        self.repo = repo
        self.registry = registry
        self.settings = settings
        self.prompts = prompts or PromptResolver(settings.prompts_dir)

    # === Full run ===

    def run(self, analysis: AnalysisRequest, source: ResolvedSource) -> AnalysisRequest:
        """Run every stage and leave the record in a terminal state."""
        print(f"[ORCH] {analysis.id}: starting with {analysis.providers_used}, master={analysis.master_provider}")

        try:
            self.run_initial(analysis, source, {p: p for p in analysis.providers_used})

            successes = self.initial_successes(analysis)
            if not successes:
                print(f"[ORCH] {analysis.id}: all {len(analysis.providers_used)} providers failed")
                analysis.finish(AnalysisStatus.FAILED, None)
                self.repo.analyses.save(analysis)
                return analysis

            if self.settings.rethink_enabled:
                self.run_rethink(analysis, source, successes)

            synthesis = self.run_synthesis(analysis, source, analysis.master_provider)
            self.classify(analysis, synthesis)
        except Exception as e:
            self.abort(analysis, e)
            raise

        return analysis

    # === Stages ===

    def run_initial(
        self,
        analysis: AnalysisRequest,
        source: ResolvedSource,
        assignments: dict[str, str],
    ) -> dict[str, ProviderResponse]:
        """
        Fan analyze out across slots.

        Args:
            assignments: slot -> provider to actually call (identity for a
                normal run, substitute for a retry)

        Returns:
            slot -> the row recorded for that attempt
        """
        analysis.start_stage(Stage.INITIAL)
        self.repo.analyses.save(analysis)

        prompt = self._prompt(analysis, Stage.INITIAL, source)
        tasks = {
            slot: partial(self._analyze, provider, prompt, source.images)
            for slot, provider in assignments.items()
        }

        rows: dict[str, ProviderResponse] = {}

        def on_settled(outcome: Settled) -> None:
            rows[outcome.key] = self._record(analysis, assignments[outcome.key], Stage.INITIAL, outcome)

        gather_settled(
            tasks,
            max_workers=min(len(tasks), self.settings.max_parallel_providers) or None,
            timeout=self.settings.stage_timeout,
            on_settled=on_settled,
        )

        ok = sum(1 for r in rows.values() if r.success)
        print(f"[ORCH] {analysis.id}: initial stage {ok} of {len(rows)} succeeded")
        self.repo.analyses.save(analysis)
        return rows

    def run_rethink(
        self,
        analysis: AnalysisRequest,
        source: ResolvedSource,
        successes: dict[str, ProviderResponse],
    ) -> dict[str, ProviderResponse]:
        """Each successful provider reconsiders in light of the others."""
        if len(successes) < 2:
            print(f"[ORCH] {analysis.id}: skipping rethink, nothing to compare against")
            return {}

        analysis.start_stage(Stage.RETHINK)
        self.repo.analyses.save(analysis)

        prompt = self._prompt(analysis, Stage.RETHINK, source)
        tasks = {}
        for provider, response in successes.items():
            others = [r.result for p, r in successes.items() if p != provider]
            tasks[provider] = partial(
                self._rethink, provider, prompt, response.result, others, source.images
            )

        rows: dict[str, ProviderResponse] = {}

        def on_settled(outcome: Settled) -> None:
            rows[outcome.key] = self._record(analysis, outcome.key, Stage.RETHINK, outcome)

        gather_settled(
            tasks,
            max_workers=min(len(tasks), self.settings.max_parallel_providers),
            timeout=self.settings.stage_timeout,
            on_settled=on_settled,
        )
        self.repo.analyses.save(analysis)
        return rows

    def run_synthesis(
        self,
        analysis: AnalysisRequest,
        source: ResolvedSource,
        master: str,
    ) -> ProviderResponse:
        """
        Replace any previous synthesis with a fresh one from master.

        Raises NoInitialResultsError when there is nothing to synthesize.
        """
        inputs = self.synthesis_inputs(analysis)
        if not inputs:
            raise NoInitialResultsError(f"No successful initial responses for {analysis.id}")

        analysis.start_stage(Stage.SYNTHESIS)
        self.repo.analyses.save(analysis)

        removed = self.repo.responses.delete_step(analysis.id, Stage.SYNTHESIS)
        if removed:
            print(f"[ORCH] {analysis.id}: replaced {removed} previous synthesis row(s)")

        prompt = self._prompt(analysis, Stage.SYNTHESIS, source)
        print(f"[ORCH] {analysis.id}: synthesizing {len(inputs)} result(s) with {master}")

        settled = gather_settled(
            {master: partial(self._synthesize, master, prompt, inputs, source.images)},
            max_workers=1,
            timeout=self.settings.stage_timeout,
        )
        return self._record(analysis, master, Stage.SYNTHESIS, settled[master])

    # === Verdict ===

    def classify(self, analysis: AnalysisRequest, synthesis: Optional[ProviderResponse]) -> AnalysisStatus:
        """
        Settle the terminal status from the current rows.

        Synthesis success sets final_score and means completed; under
        strict_partial any empty slot downgrades that to partial. No
        synthesis with some initial success is partial with no score.
        """
        successes = self.initial_successes(analysis)

        if not successes:
            status, score = AnalysisStatus.FAILED, None
        elif synthesis is not None and synthesis.success:
            status, score = AnalysisStatus.COMPLETED, synthesis.score
            if self.settings.strict_partial and len(successes) < len(analysis.providers_used):
                status = AnalysisStatus.PARTIAL
        else:
            status, score = AnalysisStatus.PARTIAL, None

        analysis.finish(status, score)
        self.repo.analyses.save(analysis)
        print(f"[ORCH] {analysis.id}: {status.value} "
              f"({len(successes)} of {len(analysis.providers_used)} providers, score={score})")
        return status

    # === Row queries ===

    def initial_successes(self, analysis: AnalysisRequest) -> dict[str, ProviderResponse]:
        """Authoritative initial row per current slot."""
        responses = self.repo.responses.get_for_analysis(analysis.id)
        return latest_successes(responses, Stage.INITIAL, analysis.providers_used)

    def synthesis_inputs(self, analysis: AnalysisRequest) -> list[dict]:
        """Per slot: its rethink result if newer than its initial one, else the initial."""
        responses = self.repo.responses.get_for_analysis(analysis.id)
        initial = latest_successes(responses, Stage.INITIAL, analysis.providers_used)
        rethink = latest_successes(responses, Stage.RETHINK, analysis.providers_used)

        inputs = []
        for provider, row in initial.items():
            revised = rethink.get(provider)
            if revised is not None and revised.created_at >= row.created_at:
                row = revised
            inputs.append(row.result)
        return inputs

    # === Internals ===

    def _prompt(self, analysis: AnalysisRequest, stage: Stage, source: ResolvedSource) -> ResolvedPrompt:
        if analysis.domain == Domain.UI_UX:
            variables = {"imageCount": source.image_count}
        else:
            code = source.text
            if stage == Stage.SYNTHESIS:
                code = truncate_source(code, self.settings.max_source_chars_for_synthesis)
            variables = {"code": code}
        return self.prompts.resolve(analysis.domain, stage, variables, analysis.context)

    def _analyze(self, provider: str, prompt: ResolvedPrompt, images: list[str]):
        return self.registry.get(provider).analyze(prompt.system, prompt.user, images)

    def _rethink(self, provider: str, prompt: ResolvedPrompt, previous: dict,
                 others: list[dict], images: list[str]):
        return self.registry.get(provider).rethink(prompt.system, prompt.user, previous, others, images)

    def _synthesize(self, provider: str, prompt: ResolvedPrompt, inputs: list[dict], images: list[str]):
        return self.registry.get(provider).synthesize(prompt.system, prompt.user, inputs, images)

    def _record(self, analysis: AnalysisRequest, provider: str, stage: Stage,
                outcome: Settled) -> ProviderResponse:
        """Persist one settled attempt as a row."""
        if outcome.ok:
            result = outcome.value
            row = ProviderResponse(
                analysis_id=analysis.id,
                provider=provider,
                step=stage,
                result=result.result,
                score=result.score,
                tokens_used=result.tokens_used,
                latency_ms=result.latency_ms,
                success=True,
            )
            print(f"[ORCH] {analysis.id}: {provider} {stage.value} ok "
                  f"score={row.score} tokens={row.tokens_used} {row.latency_ms}ms")
        else:
            error = outcome.error
            tokens = error.tokens_used if isinstance(error, ProviderExecutionError) else 0
            latency = error.latency_ms if isinstance(error, ProviderExecutionError) else 0
            message = str(error) or type(error).__name__
            row = ProviderResponse(
                analysis_id=analysis.id,
                provider=provider,
                step=stage,
                tokens_used=tokens,
                latency_ms=latency,
                success=False,
                error=message[:1000],
            )
            analysis.record_error(provider, stage, message)
            print(f"[ORCH] {analysis.id}: {provider} {stage.value} failed: {message[:200]}")

        self.repo.responses.append(row)
        return row

    def abort(self, analysis: AnalysisRequest, error: Exception) -> None:
        """Unexpected error mid-run: don't leave the record stuck in processing."""
        print(f"[ORCH] {analysis.id}: aborted by {type(error).__name__}: {error}")
        try:
            has_success = bool(self.initial_successes(analysis))
            analysis.finish(AnalysisStatus.PARTIAL if has_success else AnalysisStatus.FAILED, None)
            self.repo.analyses.save(analysis)
        except Exception as e:
            print(f"[ORCH] {analysis.id}: could not record abort: {e}")
