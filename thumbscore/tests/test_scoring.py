"""
Thumbnail Scoring Tests
=======================
Tests for the normalizers, component scorers and the score() entry point.
"""

import os
import sys
from unittest.mock import Mock

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from thumbscore.scoring import (
    score,
    ThumbnailScorer,
    clamp,
    to_score,
    weighted_average,
    normalize_around_average,
)
from thumbscore.scoring import components
from thumbscore.model_store import ModelSnapshot
from thumbscore.models import (
    VisionFeatures,
    FaceDetection,
    ScoringModel,
    ModelWeights,
    Findings,
    RankedColorRange,
    ContrastLevel,
    TextReadability,
    LayoutType,
    FacePosition,
)
from thumbscore.errors import InvalidInputError, ModelUnavailableError


# =============================================================================
# TEST FIXTURES
# =============================================================================

def create_face(expressions=None, size_percent: float = 35.0, confidence: float = 0.9) -> FaceDetection:
    """Create a test face detection."""
    return FaceDetection(
        expressions=list(expressions or []),
        size_percent=size_percent,
        detection_confidence=confidence
    )


def create_plain_features(**overrides) -> VisionFeatures:
    """A thumbnail with no text, no faces and a single white color."""
    values = dict(dominant_colors=["#FFFFFF"], color_contrast=ContrastLevel.LOW)
    values.update(overrides)
    return VisionFeatures(**values)


def create_rich_features(**overrides) -> VisionFeatures:
    """A thumbnail with text, two happy faces and vivid colors."""
    values = dict(
        detected_text=["EPIC", "WIN", "TODAY"],
        dominant_colors=["#FF0000", "#00FF00", "#0000FF"],
        text_readability=TextReadability.GOOD,
        color_contrast=ContrastLevel.HIGH,
        faces=[create_face(["joy"]), create_face(["joy"])],
        saturation_level=1.0,
    )
    values.update(overrides)
    return VisionFeatures(**values)


def create_rgb_findings() -> Findings:
    """Findings whose common color ranges are red, green and blue."""
    findings = Findings.default()
    findings.overall.color_stats.most_common_color_ranges = [
        RankedColorRange("red", 35, 35.0),
        RankedColorRange("green", 30, 30.0),
        RankedColorRange("blue", 25, 25.0),
        RankedColorRange("other", 10, 10.0),
    ]
    return findings


def assert_in_range(result):
    for name, value in list(result.components().items()) + [('overall', result.overall)]:
        assert isinstance(value, int), f"{name} is not an int"
        assert 0 <= value <= 100, f"{name} out of range: {value}"


# =============================================================================
# NORMALIZER TESTS
# =============================================================================

def test_clamp_and_to_score():
    """Test clamping and half-up rounding."""
    assert clamp(-5) == 0
    assert clamp(150) == 100
    assert clamp(42.5) == 42.5

    assert to_score(52.5) == 53
    assert to_score(52.49) == 52
    assert to_score(-10) == 0
    assert to_score(250) == 100

    print("[PASS] clamp/to_score test passed")


def test_weighted_average():
    """Test weighted average over partial weight sets."""
    assert weighted_average([(100, 1), (0, 1)]) == 50
    assert weighted_average([(80, 0.3)]) == 80

    try:
        weighted_average([(80, 0), (20, 0)])
        assert False, "Expected ValueError for zero weights"
    except ValueError:
        pass

    print("[PASS] weighted_average test passed")


def test_normalize_around_average():
    """Test the 70-point baseline with capped bonus and penalty."""
    assert normalize_around_average(10, 10) == 70
    assert normalize_around_average(20, 10) == 90
    assert normalize_around_average(100, 10) == 90  # bonus capped
    assert normalize_around_average(0, 10) == 50    # penalty capped at -20
    assert normalize_around_average(5, 0) == 70     # zero average

    print("[PASS] normalize_around_average test passed")


# =============================================================================
# COMPONENT TESTS
# =============================================================================

def test_text_entities_score():
    """Test closeness of text element count to the corpus average."""
    assert components.text_entities_score(3, 3) == 100
    assert components.text_entities_score(0, 3) == 30
    assert components.text_entities_score(4, 3) == 90
    assert components.text_entities_score(30, 3) == 30

    print("[PASS] text_entities_score test passed")


def test_contrast_score_fallback():
    """Test contrast labels and the brightness fallback."""
    assert components.contrast_score(ContrastLevel.HIGH, None) == 100
    assert components.contrast_score(ContrastLevel.LOW, None) == 50
    assert components.contrast_score(None, 0.8) == 70
    assert components.contrast_score(None, None) == 40

    print("[PASS] contrast_score test passed")


def test_color_match_uses_color_ranges():
    """Test that dominant colors are matched by range, not by hex string."""
    findings = create_rgb_findings()

    assert components.color_match_score(["#FF0000"], findings) == 35
    assert components.color_match_score(["#FA1010"], findings) == 35
    assert components.color_match_score([], findings) == components.UNMATCHED_COLOR_SCORE
    assert components.color_match_score(["not-a-color"], findings) == components.UNMATCHED_COLOR_SCORE

    print("[PASS] color_match_score test passed")


def test_saturation_score_curve():
    """Test the piecewise saturation curve."""
    assert components.saturation_score(None) == 75
    assert components.saturation_score(0.0) == 0
    assert abs(components.saturation_score(0.8) - 100) < 1e-9
    assert abs(components.saturation_score(1.0) - 90) < 1e-9

    print("[PASS] saturation_score test passed")


def test_prominence_monotonic():
    """Test that a bigger face never lowers the prominence score."""
    small = components.prominence_score(components.prominence_label([create_face(size_percent=10)]))
    medium = components.prominence_score(components.prominence_label([create_face(size_percent=20)]))
    large = components.prominence_score(components.prominence_label([create_face(size_percent=40)]))

    assert small == 60
    assert medium == 80
    assert large == 100
    assert small <= medium <= large

    print("[PASS] prominence monotonicity test passed")


def test_expression_score():
    """Test expression impacts, including the "slightly" modifier."""
    assert components.expression_score([create_face([])]) == 50
    assert components.expression_score([create_face(["joy"])]) == 100
    assert components.expression_score([create_face(["sad"])]) == 40
    assert components.expression_impact("slightly surprised") == (0.95 + 0.5) / 2
    assert components.expression_impact("bewildered") == 0.5

    print("[PASS] expression_score test passed")


def test_position_score():
    """Test eye contact and placement adjustments."""
    assert components.position_score(None, None) == 75
    assert components.position_score(True, FacePosition.CENTER) == 100
    assert components.position_score(False, FacePosition.LEFT) == 70

    print("[PASS] position_score test passed")


def test_face_explanation_branches():
    """Test that the explanation describes the branches that fired."""
    explanation = components.face_explanation(
        [create_face(["happy"], size_percent=5, confidence=0.4)], requires_faces=True)

    assert "one face" in explanation
    assert "relatively small" in explanation
    assert "Positive facial expressions" in explanation
    assert "confidence is lower" in explanation

    no_face = components.face_explanation([], requires_faces=True)
    assert "No faces" in no_face

    print("[PASS] face_explanation test passed")


# =============================================================================
# SCORE TESTS
# =============================================================================

def test_plain_thumbnail_scores_low():
    """A thumbnail with nothing going for it scores poorly everywhere."""
    result = score(create_plain_features(), ScoringModel.default(), Findings.default())

    assert result.text == 54
    assert 50 <= result.visual <= 55
    assert result.faces == 0
    assert result.overall < 60
    assert "No faces" in result.face_explanation
    assert_in_range(result)

    print("[PASS] Plain thumbnail test passed")


def test_faces_optional():
    """Without the face requirement a faceless thumbnail gets the neutral 70."""
    result = score(create_plain_features(), ScoringModel.default(), Findings.default(),
                   requires_faces=False)
    assert result.faces == 70

    print("[PASS] Optional faces test passed")


def test_two_happy_faces_score_high():
    """Two large, joyful faces score at least 90 on faces."""
    features = create_plain_features(faces=[create_face(["joy"]), create_face(["joy"])])
    result = score(features, ScoringModel.default(), Findings.default())

    assert result.faces >= 90
    assert "two faces" in result.face_explanation

    print("[PASS] Two happy faces test passed")


def test_vivid_matching_colors_score_high():
    """Three hue-spaced colors with high contrast score at least 80 on the default snapshot."""
    triad = ["#FF0000", "#00FF00", "#0000FF"]
    orders = [triad, triad[::-1], [triad[1], triad[2], triad[0]]]
    for colors in orders:
        features = VisionFeatures(dominant_colors=colors, color_contrast=ContrastLevel.HIGH)
        result = score(features, ScoringModel.default(), Findings.default())
        assert result.visual >= 80, f"{colors} scored {result.visual}"

    print("[PASS] Vivid colors test passed")


def test_rich_thumbnail_beats_plain():
    """A thumbnail improved on every axis never scores lower overall."""
    model, findings = ScoringModel.default(), create_rgb_findings()
    plain = score(create_plain_features(), model, findings)
    rich = score(create_rich_features(), model, findings)

    assert rich.text >= plain.text
    assert rich.visual >= plain.visual
    assert rich.faces >= plain.faces
    assert rich.overall > plain.overall

    print("[PASS] Rich vs plain test passed")


def test_scores_stay_in_range():
    """Extreme inputs still produce integer scores within [0, 100]."""
    model, findings = ScoringModel.default(), Findings.default()
    extremes = [
        create_plain_features(faces=[create_face(["angry"], size_percent=2) for _ in range(50)]),
        create_plain_features(saturation_level=0.0, brightness_factor=0.0),
        create_plain_features(saturation_level=1.0, clutter_factor=1.0),
        create_plain_features(dominant_colors=[]),
        create_rich_features(detected_text=["word"] * 200, font_sizes=[300.0], font_contrast=21.0),
        create_rich_features(layout_type=LayoutType.RULE_OF_THIRDS, eye_contact=True,
                             face_position=FacePosition.CENTER),
    ]

    for features in extremes:
        assert_in_range(score(features, model, findings))

    print("[PASS] Score range test passed")


def test_scoring_is_deterministic():
    """Identical inputs produce identical results."""
    model, findings = ScoringModel.default(), Findings.default()
    results = {score(create_rich_features(), model, findings) for _ in range(5)}

    assert len(results) == 1

    print("[PASS] Determinism test passed")


def test_missing_colors_rejected():
    """dominant_colors=None is invalid input, not an empty palette."""
    try:
        score(VisionFeatures(), ScoringModel.default(), Findings.default())
        assert False, "Expected InvalidInputError"
    except InvalidInputError:
        pass

    print("[PASS] Missing colors test passed")


def test_unusable_model_rejected():
    """A model whose weights sum to zero cannot score."""
    zero = ScoringModel(weights=ModelWeights(0, 0, 0, 0, 0, 0))
    try:
        score(create_plain_features(), zero, Findings.default())
        assert False, "Expected ModelUnavailableError"
    except ModelUnavailableError:
        pass

    try:
        score(create_plain_features(), None, Findings.default())
        assert False, "Expected ModelUnavailableError"
    except ModelUnavailableError:
        pass

    print("[PASS] Unusable model test passed")


def test_thumbnail_scorer_uses_registry_snapshot():
    """ThumbnailScorer reads the registry snapshot once per call."""
    registry = Mock()
    registry.current.return_value = ModelSnapshot.default()

    scorer = ThumbnailScorer(registry, requires_faces=False)
    result = scorer.score(create_plain_features(), category="Gaming")

    assert result.faces == 70
    registry.current.assert_called_once()

    # An explicit snapshot bypasses the registry
    scorer.score(create_plain_features(), snapshot=ModelSnapshot.default())
    registry.current.assert_called_once()

    print("[PASS] ThumbnailScorer test passed")


def run_all_tests():
    """Run all scoring tests."""
    print("\n" + "="*60)
    print("THUMBNAIL SCORING TESTS")
    print("="*60 + "\n")

    test_clamp_and_to_score()
    test_weighted_average()
    test_normalize_around_average()
    test_text_entities_score()
    test_contrast_score_fallback()
    test_color_match_uses_color_ranges()
    test_saturation_score_curve()
    test_prominence_monotonic()
    test_expression_score()
    test_position_score()
    test_face_explanation_branches()
    test_plain_thumbnail_scores_low()
    test_faces_optional()
    test_two_happy_faces_score_high()
    test_vivid_matching_colors_score_high()
    test_rich_thumbnail_beats_plain()
    test_scores_stay_in_range()
    test_scoring_is_deterministic()
    test_missing_colors_rejected()
    test_unusable_model_rejected()
    test_thumbnail_scorer_uses_registry_snapshot()

    print("\n" + "="*60)
    print("ALL SCORING TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
