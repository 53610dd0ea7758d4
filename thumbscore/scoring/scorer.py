"""
Thumbnail Scorer Module
=======================
Main interface for scoring a thumbnail's vision features.

score() is the pure entry point: (VisionFeatures, ScoringModel, Findings)
in, ScoreResult out. ThumbnailScorer wraps it for request handlers: it
reads one snapshot from a registry per call and logs the result.
"""

import logging
from typing import Optional

from ..errors import InvalidInputError, ModelUnavailableError, ScoringError
from ..models import VisionFeatures, ScoringModel, Findings, ScoreResult
from ..logging_config import log_thumbnail_score
from .components import (
    score_text,
    score_visual,
    score_faces,
    score_composition,
    score_overall,
)

logger = logging.getLogger(__name__)


def score(
    features: VisionFeatures,
    model: ScoringModel,
    findings: Findings,
    requires_faces: bool = True
) -> ScoreResult:
    """
    Score one thumbnail.

    Args:
        features: Extracted vision signals
        model: Scoring weights and thresholds
        findings: Corpus statistics used as normalization anchors
        requires_faces: Whether a thumbnail without faces scores 0 on faces

    Returns:
        ScoreResult with four component scores, the overall score and the
        face explanation

    Raises:
        InvalidInputError: If dominant_colors is absent
        ModelUnavailableError: If model or findings are missing or have no usable weights
        ScoringError: If scoring fails for any other reason
    """
    if features is None or features.dominant_colors is None:
        raise InvalidInputError("Missing required field: dominantColors")
    if model is None or findings is None:
        raise ModelUnavailableError("Scoring model and findings are required")
    if model.weights.total() <= 0:
        raise ModelUnavailableError("Scoring model weights sum to zero")

    try:
        weights = model.weights
        text = score_text(features, weights, findings)
        visual = score_visual(features, findings)
        faces, explanation = score_faces(features, weights, findings, requires_faces)
        composition = score_composition(features, text, visual, faces)
        overall = score_overall(text, visual, faces, composition, weights)
    except (ArithmeticError, TypeError, ValueError, AttributeError) as e:
        raise ScoringError(f"could not score extracted features: {e}") from e

    return ScoreResult(
        text=text,
        visual=visual,
        faces=faces,
        composition=composition,
        overall=overall,
        face_explanation=explanation
    )


class ThumbnailScorer:
    """
    Scores thumbnails against the registry's active snapshot.

    Usage:
        scorer = ThumbnailScorer(registry)
        result = scorer.score(features, category="Gaming")
    """

    def __init__(self, registry, requires_faces: bool = True):
        """
        Args:
            registry: A ModelRegistry (anything with current() -> ModelSnapshot)
            requires_faces: Face requirement applied to every category
        """
        self.registry = registry
        self.requires_faces = requires_faces

    def score(
        self,
        features: VisionFeatures,
        category: Optional[str] = None,
        snapshot=None
    ) -> ScoreResult:
        """
        Score against one snapshot; pass snapshot to reuse the one a caller
        already holds (e.g. to report thresholds from the same model).
        """
        snapshot = snapshot or self.registry.current()
        result = score(features, snapshot.model, snapshot.findings, self.requires_faces)
        logger.debug(f"Scored thumbnail: overall={result.overall}")
        log_thumbnail_score(result, category=category, model_source=snapshot.source)
        return result
