"""
Scoring Model Builder
=====================
Derives the ScoringModel from Findings.

Weights: each metric's |high - low| quartile difference, scaled by 1/100
and clamped to [0.1, 0.5], then renormalized so the six weights sum to 1.
Metrics that separate high and low performers more get more influence.

Thresholds: taken directly from the high-engagement quartile. Boolean
thresholds are "more than half of the group has it".
"""

import logging
from datetime import datetime
from typing import Dict, List

from ..models import (
    ScoringModel,
    ModelWeights,
    ModelThresholds,
    CategoryThresholds,
    Findings,
    GroupStats,
    MetricDifference,
    METRIC_KEYS,
)
from ..scoring.normalizers import clamp

logger = logging.getLogger(__name__)

MIN_WEIGHT = 0.1
MAX_WEIGHT = 0.5
DIFFERENCE_SCALE = 100.0
MAJORITY_PERCENTAGE = 50.0

CATEGORY_COMMON_COLORS = 3
CATEGORY_COMMON_OBJECTS = 5

# Artifact metric key -> ModelWeights field
WEIGHT_FIELDS = {
    "textPresence": "text_presence",
    "facePresence": "face_presence",
    "faceCoverage": "face_coverage",
    "colorScore": "color_score",
    "textEntities": "text_entities",
    "objectCount": "object_count",
}


def normalize_weight(difference: float) -> float:
    return clamp(abs(difference) / DIFFERENCE_SCALE, MIN_WEIGHT, MAX_WEIGHT)


def derive_weights(differences: Dict[str, MetricDifference]) -> ModelWeights:
    """Six weights from the quartile differences, summing to 1.0."""
    raw = {
        key: normalize_weight(differences[key].difference if key in differences else 0.0)
        for key in METRIC_KEYS
    }
    total = sum(raw.values())
    return ModelWeights(**{WEIGHT_FIELDS[key]: value / total for key, value in raw.items()})


def _threshold_values(stats: GroupStats) -> Dict:
    return {
        'text_presence': stats.text_stats.with_text_percentage > MAJORITY_PERCENTAGE,
        'face_presence': stats.face_stats.with_faces_percentage > MAJORITY_PERCENTAGE,
        'face_coverage': stats.face_stats.avg_face_coverage,
        'color_score': stats.color_stats.avg_color_score,
        'text_entities': stats.text_stats.avg_text_entities,
        'object_count': stats.object_stats.avg_object_count,
    }


def derive_thresholds(stats: GroupStats) -> ModelThresholds:
    return ModelThresholds(**_threshold_values(stats))


def derive_category_thresholds(stats: GroupStats) -> CategoryThresholds:
    """Thresholds from a category's own stats plus its most common colors and objects."""
    common_colors: List[str] = [
        r.range_name for r in stats.color_stats.most_common_color_ranges[:CATEGORY_COMMON_COLORS]
    ]
    common_objects: List[str] = [
        o.name for o in stats.object_stats.most_common_objects[:CATEGORY_COMMON_OBJECTS]
    ]
    return CategoryThresholds(
        common_colors=common_colors,
        common_objects=common_objects,
        **_threshold_values(stats)
    )


def generate_scoring_model(findings: Findings) -> ScoringModel:
    """
    Build the scoring model from a trained Findings artifact.

    Findings without a quartile comparison yield equal weights and
    thresholds taken from the overall statistics.
    """
    if findings.comparison is not None:
        weights = derive_weights(findings.comparison.differences)
        thresholds = derive_thresholds(findings.comparison.high_ctr)
    else:
        logger.warning("Findings have no quartile comparison; using overall statistics")
        weights = derive_weights({})
        thresholds = derive_thresholds(findings.overall)

    return ScoringModel(
        weights=weights,
        thresholds=thresholds,
        category_specific={
            name: derive_category_thresholds(stats)
            for name, stats in findings.by_category.items()
        },
        generated_at=datetime.now().isoformat()
    )


def default_scoring_model() -> ScoringModel:
    """The hard-coded model emitted when training produced no data."""
    return ScoringModel.default()
