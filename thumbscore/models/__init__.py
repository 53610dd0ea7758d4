"""
Data Models Package
===================
Exports all data model classes for the scoring engine and trainer.

Usage:
    from thumbscore.models import VisionFeatures, ScoreResult, ScoringModel, Findings
"""

from .schemas import (
    # Enums
    TextReadability,
    ContrastLevel,
    Prominence,
    LayoutType,
    FacePosition,
    RecommendationCategory,
    parse_enum,

    # Base
    BaseModel,
    SCHEMA_VERSION,
    REFERENCE_WIDTH,
    REFERENCE_HEIGHT,

    # Vision features
    Vertex,
    FaceDetection,
    VisionFeatures,
    bounding_box_area,

    # Scores
    ScoreResult,

    # Scoring model
    METRIC_KEYS,
    ModelWeights,
    ModelThresholds,
    CategoryThresholds,
    ScoringModel,

    # Findings
    TextStats,
    FaceStats,
    RankedColorRange,
    RankedObject,
    ColorStats,
    ObjectStats,
    GroupStats,
    MetricDifference,
    Comparison,
    Findings,

    # Corpus records
    VideoRecord,
    VideoPage,
    DominantColor,
    DetectedObject,
    ThumbnailAnalysis,
    SampledThumbnail,

    # Recommendations
    Impact,
    Recommendation,

    # Helpers
    generate_run_id,
)

__all__ = [
    'TextReadability', 'ContrastLevel', 'Prominence', 'LayoutType', 'FacePosition',
    'RecommendationCategory', 'parse_enum',
    'BaseModel', 'SCHEMA_VERSION', 'REFERENCE_WIDTH', 'REFERENCE_HEIGHT',
    'Vertex', 'FaceDetection', 'VisionFeatures', 'bounding_box_area',
    'ScoreResult',
    'METRIC_KEYS', 'ModelWeights', 'ModelThresholds', 'CategoryThresholds', 'ScoringModel',
    'TextStats', 'FaceStats', 'RankedColorRange', 'RankedObject', 'ColorStats',
    'ObjectStats', 'GroupStats', 'MetricDifference', 'Comparison', 'Findings',
    'VideoRecord', 'VideoPage', 'DominantColor', 'DetectedObject',
    'ThumbnailAnalysis', 'SampledThumbnail',
    'Impact', 'Recommendation',
    'generate_run_id',
]
