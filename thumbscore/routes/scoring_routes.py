"""
Scoring Routes Module
=====================
REST API endpoints for thumbnail scoring.

Endpoints:
- POST /api/scoring/score            - Score a thumbnail's vision features
- POST /api/scoring/recommendations  - Score, then suggest improvements
- GET  /api/scoring/model            - Describe the active scoring model
- POST /api/scoring/model/reload     - Reload model artifacts from disk

Typed errors (InvalidInputError, ModelUnavailableError, ...) propagate to
the app-level error handler, which maps them to status codes.
"""

from typing import Any, Dict, Tuple

from flask import Blueprint, request, jsonify, current_app

from ..errors import InvalidInputError
from ..model_store import ThresholdMetrics, ModelSnapshot
from ..models import VisionFeatures, ScoreResult
from ..logging_config import get_research_logger

logger = get_research_logger("routes.scoring", log_to_file=False)

scoring_bp = Blueprint('scoring', __name__)


def _parse_request() -> Tuple[VisionFeatures, Any]:
    """
    Read VisionFeatures and an optional category from the request body.

    The features may be the body itself or nested under "features".
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInputError("Request body must be a JSON object")
    category = data.get('category')
    features_data = data.get('features', data)
    return VisionFeatures.from_dict(features_data), category


def _score(features: VisionFeatures, category) -> Tuple[ScoreResult, ModelSnapshot]:
    snapshot = current_app.model_registry.current()
    result = current_app.scorer.score(features, category=category, snapshot=snapshot)
    return result, snapshot


def _metrics(features: VisionFeatures, result: ScoreResult) -> ThresholdMetrics:
    return ThresholdMetrics(
        text_entities=len(features.detected_text),
        color_score=result.visual,
        face_count=features.face_count,
        face_coverage=sum(face.size_percent for face in features.faces)
    )


@scoring_bp.route('/score', methods=['POST'])
def score_thumbnail():
    """
    Score one thumbnail.

    Request JSON:
        {
            "detectedText": ["BIG NEWS"],
            "dominantColors": ["#ff0000", "#ffffff"],   # Required
            "colorContrastLabel": "high",
            "faces": [{"expressions": ["happy"], "sizePercent": 25, ...}],
            "category": "Gaming"                         # Optional
        }

    Response JSON:
        {
            "scores": {"text": 80, "visual": 74, "faces": 91, "composition": 78, "overall": 81},
            "faceExplanation": "...",
            "insights": ["..."],
            "thresholds": {"text": true, "color": true, "face": true, "faceCoverage": true}
        }
    """
    features, category = _parse_request()
    result, snapshot = _score(features, category)
    metrics = _metrics(features, result)

    return jsonify({
        'scores': {**result.components(), 'overall': result.overall},
        'faceExplanation': result.face_explanation,
        'insights': snapshot.performance_insights(metrics),
        'thresholds': snapshot.check_metrics_thresholds(metrics),
        'modelSource': snapshot.source,
    }), 200


@scoring_bp.route('/recommendations', methods=['POST'])
def recommend():
    """Score the thumbnail and return up to five recommendations."""
    features, category = _parse_request()
    result, snapshot = _score(features, category)
    recommendations = current_app.recommendation_service.generate(features, result, snapshot)

    return jsonify({
        'scores': {**result.components(), 'overall': result.overall},
        'recommendations': [r.to_dict() for r in recommendations],
    }), 200


@scoring_bp.route('/model', methods=['GET'])
def describe_model():
    """Active weights, thresholds and provenance."""
    snapshot = current_app.model_registry.current()
    model = snapshot.model
    body: Dict[str, Any] = {
        'weights': model.weights.to_dict(),
        'thresholds': model.thresholds.to_dict(),
        'categories': sorted(model.category_specific),
        'schemaVersion': model.schema_version,
        'generatedAt': model.generated_at,
        'source': snapshot.source,
        'loadedAt': snapshot.loaded_at,
    }
    return jsonify(body), 200


@scoring_bp.route('/model/reload', methods=['POST'])
def reload_model():
    """
    Swap in freshly written artifacts.

    On failure the previous model stays active and a 503 is returned.
    """
    snapshot = current_app.model_registry.reload()
    logger.info(f"Reloaded scoring model (schema {snapshot.model.schema_version})")
    return jsonify({
        'status': 'reloaded',
        'schemaVersion': snapshot.model.schema_version,
        'generatedAt': snapshot.model.generated_at,
        'loadedAt': snapshot.loaded_at,
    }), 200
