"""
Thumbnail Scoring Module
========================
Scores a thumbnail's vision features against a trained model.

This module implements:
- Pure component scorers (text, visual, faces, composition)
- The overall combiner using model weights
- Shared normalization helpers

Usage:
    from thumbscore.scoring import score, ThumbnailScorer

    result = score(features, model, findings)
    print(result.overall, result.face_explanation)
"""

from .scorer import score, ThumbnailScorer
from .normalizers import clamp, to_score, weighted_average, normalize_around_average

__all__ = [
    'score',
    'ThumbnailScorer',
    'clamp',
    'to_score',
    'weighted_average',
    'normalize_around_average',
]
