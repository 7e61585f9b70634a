"""Unit tests for submit payload validation."""

import pytest
from pydantic import ValidationError

from models import AnalysisSubmission, SourceKind


def payload(**overrides):
    data = {
        "domain": "contract",
        "source": {"kind": "inline", "content": ["contract X {}"]},
        "providers": ["openai", "anthropic"],
    }
    data.update(overrides)
    return data


class TestAnalysisSubmission:

    def test_master_defaults_to_first(self):
        submission = AnalysisSubmission.model_validate(payload())
        assert submission.master_provider == "openai"
        assert submission.source.kind == SourceKind.INLINE

    def test_explicit_master(self):
        submission = AnalysisSubmission.model_validate(payload(masterProvider="anthropic"))
        assert submission.master_provider == "anthropic"

    def test_master_must_be_requested(self):
        with pytest.raises(ValidationError):
            AnalysisSubmission.model_validate(payload(masterProvider="groq"))

    def test_providers_deduped_in_order(self):
        submission = AnalysisSubmission.model_validate(
            payload(providers=["gemini", "openai", "gemini", " "])
        )
        assert submission.providers == ["gemini", "openai"]

    def test_empty_providers_rejected(self):
        with pytest.raises(ValidationError):
            AnalysisSubmission.model_validate(payload(providers=[]))

    def test_unknown_tier_rejected(self):
        with pytest.raises(ValidationError):
            AnalysisSubmission.model_validate(payload(modelTiers={"openai": "tier9"}))

    def test_known_tier_accepted(self):
        submission = AnalysisSubmission.model_validate(payload(modelTiers={"openai": "tier3"}))
        assert submission.model_tiers == {"openai": "tier3"}

    def test_empty_source_rejected(self):
        with pytest.raises(ValidationError):
            AnalysisSubmission.model_validate(payload(source={"kind": "inline", "content": [""]}))

    def test_unknown_domain_rejected(self):
        with pytest.raises(ValidationError):
            AnalysisSubmission.model_validate(payload(domain="poetry"))

    def test_api_keys_hidden_from_repr(self):
        submission = AnalysisSubmission.model_validate(payload(apiKeys={"openai": "sk-secret"}))
        assert submission.api_keys == {"openai": "sk-secret"}
        assert "sk-secret" not in repr(submission)
