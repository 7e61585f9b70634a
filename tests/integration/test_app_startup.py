"""
Integration test: App startup.

This test verifies the app can import and start without crashing.
This is the most basic integration test - if it fails, nothing works.
"""

import pytest


class TestAppStartup:
    """Verify app can start."""

    def test_app_imports(self):
        """App module imports without error."""
        # This import triggers:
        # - Settings.from_env()
        # - Blueprint registration
        import app
        assert app.app is not None

    def test_flask_app_configured(self):
        """Flask app has the analysis blueprint and service."""
        import app

        assert "analysis" in app.app.blueprints
        assert "analysis_service" in app.app.extensions

    def test_routes_exist(self):
        """Core routes are registered."""
        import app

        rules = [rule.rule for rule in app.app.url_map.iter_rules()]

        assert "/api/analyze" in rules
        assert "/api/analysis-status/<analysis_id>" in rules
        assert "/api/analysis/<analysis_id>" in rules
        assert "/api/retry" in rules
        assert "/api/rate-limit" in rules
        assert "/health" in rules

    def test_health(self):
        import app

        client = app.app.test_client()
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json() == {"status": "ok"}
