#!/usr/bin/env python3
"""
Analysis API

Flask app exposing submit, status, retry and rate-limit routes.
"""

import os
from flask import Flask, jsonify

from config import Settings
from pipeline import AnalysisService, ArtifactResolver, LocalArtifactStore
from repositories import JsonRepository


def create_app(settings: Settings = None, service: AnalysisService = None) -> Flask:
    """Build the app. Tests pass their own service; production reads the environment."""
    settings = settings or Settings.from_env()

    if service is None:
        store_dir = os.environ.get("ARTIFACT_STORE_DIR")
        artifacts = ArtifactResolver(LocalArtifactStore(store_dir) if store_dir else None)
        service = AnalysisService(
            settings,
            repo=JsonRepository(settings.data_dir),
            artifacts=artifacts,
        )

    flask_app = Flask(__name__)
    flask_app.extensions["analysis_service"] = service

    from routes import analysis_bp
    flask_app.register_blueprint(analysis_bp)

    @flask_app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    return flask_app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5001))
    print("\n" + "="*60)
    print("  Multi-provider Analysis API")
    print("="*60)
    print(f"  Listening on http://localhost:{port}")
    print("="*60 + "\n")
    app.run(debug=True, port=port)
