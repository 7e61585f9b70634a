"""Unit tests for retry plans."""

import pytest
from pydantic import ValidationError

from models import RetryPlan, Stage


class TestRetryPlan:

    def test_camel_case_payload(self):
        plan = RetryPlan.model_validate({
            "analysisId": "a1",
            "retryStep": "initial",
            "retryProviders": [{"originalProvider": "B", "retryProvider": "D"}],
        })
        assert plan.stage == Stage.INITIAL
        assert plan.substitutions[0].original == "B"
        assert plan.substitutions[0].substitute == "D"
        assert not plan.substitutions[0].is_identity

    def test_legacy_step_names(self):
        plan = RetryPlan.model_validate({"analysisId": "a1", "retryStep": "v3_synthesis"})
        assert plan.stage == Stage.SYNTHESIS

    def test_failed_providers_become_identity_retries(self):
        plan = RetryPlan.model_validate({
            "analysisId": "a1", "retryStep": "v1_initial", "failedProviders": ["B", "C", "B"],
        })
        assert [(s.original, s.substitute) for s in plan.substitutions] == [("B", "B"), ("C", "C")]
        assert all(s.is_identity for s in plan.substitutions)

    def test_initial_needs_providers(self):
        with pytest.raises(ValidationError):
            RetryPlan.model_validate({"analysisId": "a1", "retryStep": "initial"})

    def test_rethink_not_retryable(self):
        with pytest.raises(ValidationError):
            RetryPlan.model_validate({"analysisId": "a1", "retryStep": "rethink"})

    def test_duplicate_slot_rejected(self):
        with pytest.raises(ValidationError):
            RetryPlan.model_validate({
                "analysisId": "a1",
                "retryStep": "initial",
                "retryProviders": [
                    {"originalProvider": "B", "retryProvider": "D"},
                    {"originalProvider": "B", "retryProvider": "C"},
                ],
            })

    def test_synthesis_with_new_master(self):
        plan = RetryPlan(analysis_id="a1", stage="synthesis", new_master="C")
        assert plan.new_master == "C"
        assert plan.substitutions == []
