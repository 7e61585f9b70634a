"""Unit tests for the pipeline stages and classification."""

import pytest

from errors import NoInitialResultsError
from models import AnalysisRequest, AnalysisStatus, ContractAnalysisResult, Stage
from pipeline import Orchestrator, ResolvedSource, truncate_source
from pipeline.orchestrator import TRUNCATION_NOTICE
from providers import ProviderRegistry


@pytest.fixture
def orchestrator(repo, settings, fake_factories):
    registry = ProviderRegistry(
        settings, settings.fallback_credentials, ContractAnalysisResult, factories=fake_factories,
    )
    return Orchestrator(repo, registry, settings)


@pytest.fixture
def analysis(repo):
    record = AnalysisRequest(
        user_id="u1",
        domain="contract",
        requested_providers=["A", "B", "C"],
        providers_used=["A", "B", "C"],
        master_provider="A",
    )
    repo.analyses.save(record)
    return record


@pytest.fixture
def source(sample_contract):
    return ResolvedSource(text=sample_contract)


def rows_for(repo, analysis, step=None):
    rows = repo.responses.get_for_analysis(analysis.id)
    return [r for r in rows if step is None or r.step == step]


class TestTruncateSource:

    def test_short_text_untouched(self):
        assert truncate_source("abc", 10) == "abc"

    def test_long_text_cut_with_notice(self):
        cut = truncate_source("x" * 20, 10)
        assert cut == "x" * 10 + TRUNCATION_NOTICE


class TestFullRun:

    def test_one_failure_lenient_completed(self, orchestrator, analysis, source, scripts, repo):
        """3 providers, B fails, synthesis by A scores 82."""
        scripts["B"].analyze = RuntimeError("503 Service Unavailable")
        scripts["A"].synthesize = 82

        orchestrator.run(analysis, source)
        stored = repo.analyses.get(analysis.id)

        assert stored.status == AnalysisStatus.COMPLETED
        assert stored.final_score == 82
        assert stored.providers_used == ["A", "B", "C"]
        assert stored.completed_at is not None

        initial = rows_for(repo, analysis, Stage.INITIAL)
        assert len(initial) == 3
        assert sorted(r.success for r in initial) == [False, True, True]
        assert len(rows_for(repo, analysis, Stage.SYNTHESIS)) == 1
        assert [e.provider for e in stored.error_details] == ["B"]

    def test_one_failure_strict_partial(self, orchestrator, analysis, source, scripts, repo, settings):
        settings.strict_partial = True
        scripts["B"].analyze = RuntimeError("503 Service Unavailable")
        scripts["A"].synthesize = 82

        orchestrator.run(analysis, source)
        stored = repo.analyses.get(analysis.id)

        assert stored.status == AnalysisStatus.PARTIAL
        assert stored.final_score == 82

    def test_all_succeed_strict_completed(self, orchestrator, analysis, source, repo, settings):
        settings.strict_partial = True
        orchestrator.run(analysis, source)
        assert repo.analyses.get(analysis.id).status == AnalysisStatus.COMPLETED

    def test_all_fail_no_synthesis(self, orchestrator, analysis, source, scripts, repo):
        for name in "ABC":
            scripts[name].analyze = RuntimeError("down")

        orchestrator.run(analysis, source)
        stored = repo.analyses.get(analysis.id)

        assert stored.status == AnalysisStatus.FAILED
        assert stored.final_score is None
        assert rows_for(repo, analysis, Stage.SYNTHESIS) == []
        assert "synthesize" not in scripts["A"].methods()

    def test_single_success_completed(self, orchestrator, analysis, source, scripts, repo):
        scripts["B"].analyze = RuntimeError("down")
        scripts["C"].analyze = "not json at all"
        scripts["A"].synthesize = 64

        orchestrator.run(analysis, source)
        stored = repo.analyses.get(analysis.id)

        assert stored.status == AnalysisStatus.COMPLETED
        assert stored.final_score == 64
        successes = [r for r in rows_for(repo, analysis, Stage.INITIAL) if r.success]
        assert [r.provider for r in successes] == ["A"]

    def test_synthesis_failure_partial_without_score(self, orchestrator, analysis, source, scripts, repo):
        scripts["A"].synthesize = RuntimeError("context length exceeded")

        orchestrator.run(analysis, source)
        stored = repo.analyses.get(analysis.id)

        assert stored.status == AnalysisStatus.PARTIAL
        assert stored.final_score is None
        synthesis = rows_for(repo, analysis, Stage.SYNTHESIS)
        assert len(synthesis) == 1 and not synthesis[0].success

    def test_failed_rows_keep_tokens(self, orchestrator, analysis, source, scripts, repo):
        scripts["B"].analyze = "garbage"
        scripts["B"].tokens = 55

        orchestrator.run(analysis, source)
        failed = [r for r in rows_for(repo, analysis, Stage.INITIAL) if not r.success]
        assert failed[0].tokens_used == 55
        assert "malformed" in failed[0].error

    def test_synthesis_sees_only_successes(self, orchestrator, analysis, source, scripts):
        scripts["B"].analyze = RuntimeError("down")
        orchestrator.run(analysis, source)

        prompt = [c for c in scripts["A"].calls if c["method"] == "synthesize"][0]["user"]
        assert "### A" in prompt
        assert "### C" in prompt
        assert "### B" not in prompt

    def test_synthesis_code_truncated(self, orchestrator, analysis, scripts, settings):
        settings.max_source_chars_for_synthesis = 50
        source = ResolvedSource(text="// " + "a" * 200)

        orchestrator.run(analysis, source)

        initial_prompt = scripts["B"].calls[0]["user"]
        synth_prompt = [c for c in scripts["A"].calls if c["method"] == "synthesize"][0]["user"]
        assert "a" * 200 in initial_prompt
        assert "a" * 200 not in synth_prompt
        assert TRUNCATION_NOTICE.strip() in synth_prompt

    def test_context_reaches_system_prompt(self, orchestrator, analysis, source, scripts):
        analysis.context = {"contractName": "Token", "blockchain": "Polygon"}
        orchestrator.run(analysis, source)
        assert "Target Blockchain: Polygon" in scripts["C"].calls[0]["system"]

    def test_unexpected_error_does_not_leave_processing(self, orchestrator, analysis, source, repo, monkeypatch):
        def broken(*args, **kwargs):
            raise KeyError("template")

        monkeypatch.setattr(orchestrator, "run_synthesis", broken)
        with pytest.raises(KeyError):
            orchestrator.run(analysis, source)

        stored = repo.analyses.get(analysis.id)
        assert stored.status == AnalysisStatus.PARTIAL
        assert stored.stage is None


class TestRethink:

    def test_disabled_by_default(self, orchestrator, analysis, source, scripts, repo):
        orchestrator.run(analysis, source)
        assert rows_for(repo, analysis, Stage.RETHINK) == []
        assert "rethink" not in scripts["A"].methods()

    def test_enabled_rethink_feeds_synthesis(self, orchestrator, analysis, source, scripts, repo, settings):
        settings.rethink_enabled = True
        scripts["C"].rethink = 33

        orchestrator.run(analysis, source)

        assert len(rows_for(repo, analysis, Stage.RETHINK)) == 3
        inputs = orchestrator.synthesis_inputs(analysis)
        assert {r["provider"]: r["overallScore"] for r in inputs}["C"] == 33

    def test_skipped_with_single_success(self, orchestrator, analysis, source, scripts, repo, settings):
        settings.rethink_enabled = True
        scripts["B"].analyze = RuntimeError("down")
        scripts["C"].analyze = RuntimeError("down")

        orchestrator.run(analysis, source)
        assert rows_for(repo, analysis, Stage.RETHINK) == []
        assert repo.analyses.get(analysis.id).status == AnalysisStatus.COMPLETED


class TestSynthesisStage:

    def test_requires_initial_results(self, orchestrator, analysis, source):
        with pytest.raises(NoInitialResultsError):
            orchestrator.run_synthesis(analysis, source, "A")

    def test_replaces_previous_synthesis(self, orchestrator, analysis, source, scripts, repo):
        orchestrator.run(analysis, source)
        first = rows_for(repo, analysis, Stage.SYNTHESIS)[0]

        scripts["C"].synthesize = 91
        second = orchestrator.run_synthesis(analysis, source, "C")

        synthesis = rows_for(repo, analysis, Stage.SYNTHESIS)
        assert [r.id for r in synthesis] == [second.id]
        assert second.id != first.id
        assert second.score == 91
