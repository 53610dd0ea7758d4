"""
Component Scorers
=================
Pure functions that turn VisionFeatures into the four component scores
(text, visual, faces, composition) and the overall score.

Every function here depends only on its arguments: no configuration
lookups, no logging, no global state. Identical inputs always produce
identical outputs, so scoring is safe to call from any number of threads
against a shared model snapshot.

Tuned constants are module-level names so they can be audited in one
place; their values encode calibrated behaviour and are not meant to be
"cleaned up" (e.g. COMPOSITION_NORMALIZER is 1.35 on purpose).
"""

import math
from typing import List, Optional, Tuple

from ..models import (
    VisionFeatures,
    FaceDetection,
    ModelWeights,
    Findings,
    TextReadability,
    ContrastLevel,
    Prominence,
    LayoutType,
    FacePosition,
)
from ..corpus.color import hex_to_rgb, categorize_color
from .normalizers import clamp, to_score, weighted_average, normalize_around_average


# =============================================================================
# CONSTANTS
# =============================================================================

# Text
READABILITY_WEIGHT = 0.3
FONT_WEIGHT = 0.2
TEXT_OVERLOAD_FACTOR = 1.5
TEXT_SPARSE_FACTOR = 0.5
TEXT_ENTITY_FALLOFF_START = 70.0
TEXT_ENTITY_FLOOR = 30.0
TEXT_ENTITY_CLOSENESS_PENALTY = 30.0
DEFAULT_FONT_SCORE = 80.0
DEFAULT_READABILITY_SCORE = 80.0
REFERENCE_FONT_SIZE = 48.0
MIN_FONT_CONTRAST = 4.5

# Visual
VISUAL_VARIETY_WEIGHT = 0.25
VISUAL_CONTRAST_WEIGHT = 0.35
VISUAL_MATCH_WEIGHT = 0.25
VISUAL_SATURATION_WEIGHT = 0.15
OPTIMAL_COLOR_COUNT = 3
UNMATCHED_COLOR_SCORE = 20.0
DEFAULT_SATURATION_SCORE = 75.0
CONTRAST_SCORES = {
    ContrastLevel.HIGH: 100.0,
    ContrastLevel.MEDIUM: 75.0,
    ContrastLevel.LOW: 50.0,
}

# Faces
FACE_COUNT_WEIGHT = 0.15
EXPRESSION_WEIGHT = 0.25
POSITION_WEIGHT = 0.15
NO_FACE_OPTIONAL_SCORE = 70.0
LOW_CONFIDENCE = 0.7
PROMINENCE_SCORES = {
    Prominence.HIGH: 100.0,
    Prominence.MEDIUM: 80.0,
    Prominence.LOW: 60.0,
}
UNKNOWN_PROMINENCE_SCORE = 50.0
EXPRESSION_IMPACT = {
    "joy": 1.0,
    "happy": 0.95,
    "surprise": 0.95,
    "surprised": 0.95,
    "excited": 0.9,
    "confused": 0.7,
    "angry": 0.6,
    "neutral": 0.5,
    "sad": 0.4,
}
DEFAULT_EXPRESSION_IMPACT = 0.5
POSITIVE_EXPRESSIONS = frozenset(("joy", "happy", "surprise", "surprised", "excited"))
NEGATIVE_EXPRESSIONS = frozenset(("angry", "sad"))

# Composition
BALANCE_WEIGHTS = (0.3, 0.4, 0.3)  # text, visual, face
BALANCE_SPREAD_PENALTY = 0.8
COMPOSITION_TEXT_WEIGHT = 0.25
COMPOSITION_VISUAL_WEIGHT = 0.30
COMPOSITION_FACE_WEIGHT = 0.25
COMPOSITION_BALANCE_WEIGHT = 0.25
COMPOSITION_LAYOUT_WEIGHT = 0.15
COMPOSITION_CLUTTER_WEIGHT = 0.15
COMPOSITION_NORMALIZER = 1.35
LAYOUT_SCORES = {
    LayoutType.RULE_OF_THIRDS: 100.0,
    LayoutType.GOLDEN_RATIO: 95.0,
    LayoutType.CENTERED: 85.0,
    LayoutType.OTHER: 70.0,
}
UNKNOWN_LAYOUT_SCORE = 75.0
DEFAULT_CLUTTER_SCORE = 80.0

# Overall
OVERALL_COMPOSITION_WEIGHT = 0.3


# =============================================================================
# TEXT
# =============================================================================

def text_presence_score(detected_text: List[str]) -> float:
    return 100.0 if detected_text else 0.0


def text_entities_score(count: int, optimal: float) -> float:
    """Reward a text-element count close to the corpus average."""
    if optimal <= 0:
        # Corpus thumbnails carry no text; every element is excess
        return 100.0 if count == 0 else max(
            TEXT_ENTITY_FLOOR, TEXT_ENTITY_FALLOFF_START - 10.0 * count)

    falloff = TEXT_ENTITY_FALLOFF_START - TEXT_ENTITY_FLOOR
    if count > TEXT_OVERLOAD_FACTOR * optimal:
        excess = (count - TEXT_OVERLOAD_FACTOR * optimal) / optimal
        return max(TEXT_ENTITY_FLOOR, TEXT_ENTITY_FALLOFF_START - falloff * excess)
    if count < TEXT_SPARSE_FACTOR * optimal:
        shortfall = (TEXT_SPARSE_FACTOR * optimal - count) / (TEXT_SPARSE_FACTOR * optimal)
        return max(TEXT_ENTITY_FLOOR, TEXT_ENTITY_FALLOFF_START - falloff * shortfall)
    return 100.0 - TEXT_ENTITY_CLOSENESS_PENALTY * abs(count - optimal) / optimal


def readability_score(
    label: Optional[TextReadability],
    char_count: int,
    optimal_chars: float
) -> float:
    if label == TextReadability.GOOD:
        return 100.0
    if label == TextReadability.EXCESSIVE:
        excess = (char_count - optimal_chars) / optimal_chars if optimal_chars > 0 else 1.0
        return max(30.0, 60.0 - 30.0 * max(0.0, excess))
    if label == TextReadability.MINIMAL:
        shortfall = (optimal_chars - char_count) / optimal_chars if optimal_chars > 0 else 0.0
        return max(40.0, 70.0 - 30.0 * max(0.0, shortfall))
    return DEFAULT_READABILITY_SCORE


def font_score(
    font_sizes: Optional[List[float]],
    font_contrast: Optional[float],
    reference_size: float = REFERENCE_FONT_SIZE
) -> float:
    parts = []
    if font_sizes:
        mean_size = sum(font_sizes) / len(font_sizes)
        parts.append(normalize_around_average(mean_size, reference_size))
    if font_contrast is not None:
        if font_contrast >= MIN_FONT_CONTRAST:
            parts.append(100.0)
        else:
            parts.append(clamp(font_contrast / MIN_FONT_CONTRAST * 100.0))
    if not parts:
        return DEFAULT_FONT_SCORE
    return sum(parts) / len(parts)


def score_text(features: VisionFeatures, weights: ModelWeights, findings: Findings) -> int:
    text_stats = findings.overall.text_stats
    return to_score(weighted_average([
        (text_presence_score(features.detected_text), weights.text_presence),
        (text_entities_score(len(features.detected_text), text_stats.avg_text_entities),
         weights.text_entities),
        (readability_score(features.text_readability, features.text_char_count,
                           text_stats.avg_char_count), READABILITY_WEIGHT),
        (font_score(features.font_sizes, features.font_contrast), FONT_WEIGHT),
    ]))


# =============================================================================
# VISUAL
# =============================================================================

def color_variety_score(color_count: int) -> float:
    optimal = OPTIMAL_COLOR_COUNT
    if color_count < optimal:
        return 70.0 + 30.0 * color_count / optimal
    if color_count > 2 * optimal:
        return max(40.0, 80.0 - 10.0 * (color_count - 2 * optimal))
    return 100.0 - 5.0 * abs(color_count - optimal)


def contrast_score(label: Optional[ContrastLevel], brightness_factor: Optional[float]) -> float:
    if label in CONTRAST_SCORES:
        return CONTRAST_SCORES[label]
    if brightness_factor is not None and brightness_factor > 0.5:
        return 70.0
    return 40.0


def color_match_score(dominant_colors: List[str], findings: Findings) -> float:
    """
    How well the dominant colors match the corpus' common color ranges.

    Earlier (more dominant) colors weigh more: position i of n gets n - i.
    """
    shares = {
        entry.range_name: entry.percentage
        for entry in findings.overall.color_stats.most_common_color_ranges
    }
    n = len(dominant_colors)
    if n == 0:
        return UNMATCHED_COLOR_SCORE

    pairs = []
    for i, hex_color in enumerate(dominant_colors):
        rgb = hex_to_rgb(hex_color)
        color_range = categorize_color(rgb) if rgb else None
        share = shares.get(color_range)
        pairs.append((share if share is not None else UNMATCHED_COLOR_SCORE, n - i))
    return weighted_average(pairs)


def saturation_score(saturation: Optional[float]) -> float:
    if saturation is None:
        return DEFAULT_SATURATION_SCORE
    if saturation > 0.8:
        return 100.0 - (saturation - 0.8) / 0.2 * 10.0
    if saturation < 0.3:
        return 70.0 * saturation / 0.3
    return 70.0 + (saturation - 0.3) / 0.5 * 30.0


def score_visual(features: VisionFeatures, findings: Findings) -> int:
    colors = features.dominant_colors or []
    return to_score(
        VISUAL_VARIETY_WEIGHT * color_variety_score(len(colors))
        + VISUAL_CONTRAST_WEIGHT * contrast_score(features.color_contrast,
                                                  features.brightness_factor)
        + VISUAL_MATCH_WEIGHT * color_match_score(colors, findings)
        + VISUAL_SATURATION_WEIGHT * saturation_score(features.saturation_level)
    )


# =============================================================================
# FACES
# =============================================================================

def prominence_label(faces: List[FaceDetection]) -> Optional[Prominence]:
    """Bucket the largest face: >30% high, >15% medium, else low."""
    if not faces:
        return None
    largest = max(face.size_percent for face in faces)
    if largest > 30:
        return Prominence.HIGH
    if largest > 15:
        return Prominence.MEDIUM
    return Prominence.LOW


def face_count_score(count: int, average_count: float) -> float:
    if average_count <= 2:
        return clamp(90.0 + (count / 2) * 10.0)
    return max(40.0, 100.0 - 15.0 * max(0, count - 2))


def prominence_score(label: Optional[Prominence]) -> float:
    return PROMINENCE_SCORES.get(label, UNKNOWN_PROMINENCE_SCORE)


def _base_expression(label: str) -> str:
    label = label.strip().lower()
    if label.startswith("slightly "):
        label = label[len("slightly "):]
    return label


def expression_impact(label: str) -> float:
    """
    Emotional impact of one expression label in [0, 1].

    "slightly X" sits halfway between X and neutral.
    """
    raw = label.strip().lower()
    base = _base_expression(raw)
    impact = EXPRESSION_IMPACT.get(base, DEFAULT_EXPRESSION_IMPACT)
    if raw != base:
        return (impact + DEFAULT_EXPRESSION_IMPACT) / 2
    return impact


def expression_score(faces: List[FaceDetection]) -> float:
    impacts = [expression_impact(e) for face in faces for e in face.expressions]
    if not impacts:
        return DEFAULT_EXPRESSION_IMPACT * 100.0
    return sum(impact * 100.0 for impact in impacts) / len(impacts)


def position_score(eye_contact: Optional[bool], face_position: Optional[FacePosition]) -> float:
    score = 75.0
    if eye_contact is True:
        score += 15.0
    elif eye_contact is False:
        score -= 10.0
    if face_position == FacePosition.CENTER:
        score += 10.0
    elif face_position in (FacePosition.LEFT, FacePosition.RIGHT):
        score += 5.0
    return clamp(score)


def face_explanation(faces: List[FaceDetection], requires_faces: bool) -> str:
    """Human-readable account of the face-scoring branches that fired."""
    if not faces:
        if requires_faces:
            return ("No faces were detected in the thumbnail. Thumbnails in this "
                    "category are expected to feature people, so the face score is 0.")
        return ("No faces were detected in the thumbnail. While faces can increase "
                "engagement, many successful thumbnails use other visual elements "
                "to create interest.")

    count = len(faces)
    if count == 1:
        parts = ["The thumbnail contains one face, which can create a personal "
                 "connection with viewers."]
    elif count == 2:
        parts = ["The thumbnail contains two faces, suggesting interaction which "
                 "can increase viewer engagement."]
    elif count == 3:
        parts = ["The thumbnail contains three faces, showing group dynamics which "
                 "can be engaging."]
    else:
        parts = [f"The thumbnail contains {count} faces, which may be too crowded "
                 "for optimal engagement."]

    prominence = prominence_label(faces)
    if prominence == Prominence.HIGH:
        parts.append("The face is prominently featured, which tends to create "
                     "stronger viewer connection.")
    elif prominence == Prominence.MEDIUM:
        parts.append("The face is moderately sized, providing some viewer connection.")
    else:
        parts.append("The face is relatively small, which may reduce its impact.")

    labels = {_base_expression(e) for face in faces for e in face.expressions}
    if labels & POSITIVE_EXPRESSIONS:
        parts.append("Positive facial expressions can increase viewer engagement "
                     "and click-through rates.")
    elif labels & NEGATIVE_EXPRESSIONS:
        parts.append("Strong emotional expressions (even negative ones) can increase "
                     "curiosity and engagement.")
    else:
        parts.append("Neutral expressions tend to perform worse than emotional "
                     "expressions.")

    average_confidence = sum(f.detection_confidence for f in faces) / count
    if average_confidence < LOW_CONFIDENCE:
        parts.append("Note: The face detection confidence is lower, possibly due to "
                     "artistic style, unusual angles, or partial visibility.")

    return " ".join(parts)


def score_faces(
    features: VisionFeatures,
    weights: ModelWeights,
    findings: Findings,
    requires_faces: bool = True
) -> Tuple[int, str]:
    """Return the face score and its explanation."""
    faces = features.faces
    explanation = face_explanation(faces, requires_faces)
    if not faces:
        return to_score(0.0 if requires_faces else NO_FACE_OPTIONAL_SCORE), explanation

    score = weighted_average([
        (100.0, weights.face_presence),
        (face_count_score(len(faces), findings.overall.face_stats.avg_face_count),
         FACE_COUNT_WEIGHT),
        (prominence_score(prominence_label(faces)), weights.face_coverage),
        (expression_score(faces), EXPRESSION_WEIGHT),
        (position_score(features.eye_contact, features.face_position), POSITION_WEIGHT),
    ])
    return to_score(score), explanation


# =============================================================================
# COMPOSITION AND OVERALL
# =============================================================================

def balance_score(text: float, visual: float, face: float) -> float:
    """100 minus a penalty on the weighted spread of the three component scores."""
    values = (text, visual, face)
    mean = sum(w * v for w, v in zip(BALANCE_WEIGHTS, values))
    variance = sum(w * (v - mean) ** 2 for w, v in zip(BALANCE_WEIGHTS, values))
    return max(0.0, 100.0 - math.sqrt(variance) * BALANCE_SPREAD_PENALTY)


def layout_score(layout: Optional[LayoutType]) -> float:
    return LAYOUT_SCORES.get(layout, UNKNOWN_LAYOUT_SCORE)


def clutter_score(clutter_factor: Optional[float]) -> float:
    if clutter_factor is None:
        return DEFAULT_CLUTTER_SCORE
    return max(0.0, 100.0 - clutter_factor * 100.0)


def score_composition(features: VisionFeatures, text: int, visual: int, face: int) -> int:
    total = (
        COMPOSITION_TEXT_WEIGHT * text
        + COMPOSITION_VISUAL_WEIGHT * visual
        + COMPOSITION_FACE_WEIGHT * face
        + COMPOSITION_BALANCE_WEIGHT * balance_score(text, visual, face)
        + COMPOSITION_LAYOUT_WEIGHT * layout_score(features.layout_type)
        + COMPOSITION_CLUTTER_WEIGHT * clutter_score(features.clutter_factor)
    )
    return to_score(total / COMPOSITION_NORMALIZER)


def score_overall(text: int, visual: int, face: int, composition: int,
                  weights: ModelWeights) -> int:
    text_weight = (weights.text_presence + weights.text_entities) / 2
    face_weight = (weights.face_presence + weights.face_coverage) / 2
    return to_score(weighted_average([
        (text, text_weight),
        (visual, weights.color_score),
        (face, face_weight),
        (composition, OVERALL_COMPOSITION_WEIGHT),
    ]))
