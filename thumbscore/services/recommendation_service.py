"""
Recommendation Service Module
=============================
Turns a scored thumbnail into actionable improvement suggestions.

This service handles:
- LLM recommendations via Google Gemini, prioritised by the weakest components
- Parsing the LLM's structured text blocks into Recommendation models
- Rule-based recommendations from corpus findings when the LLM is
  unavailable, fails, or returns nothing usable
"""

import logging
from typing import List, Optional, Tuple

import google.generativeai as genai
from dotenv import load_dotenv

from ..config import GeminiConfig, get_config
from ..corpus.color import hex_to_rgb, categorize_color
from ..model_store import ModelSnapshot, FACE_EXPECTED_SHARE
from ..models import (
    VisionFeatures,
    ScoreResult,
    Recommendation,
    RecommendationCategory,
    Impact,
)

# Load environment variables (for API key fallback)
load_dotenv()

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 5
COMPOSITION_TARGET = 70
COMPOSITION_IMPACT = 65

COMPONENT_ICONS = {
    RecommendationCategory.TEXT: "🔤",
    RecommendationCategory.VISUAL: "🎨",
    RecommendationCategory.FACE: "😀",
    RecommendationCategory.COMPOSITION: "📐",
    RecommendationCategory.COLOR: "🎯",
}

IMPACT_UNITS = ("%", "x", "points")


def rank_components(score: ScoreResult) -> List[Tuple[str, int]]:
    """Component scores, weakest first (ties keep text/visual/face/composition order)."""
    components = [
        ("text", score.text),
        ("visual", score.visual),
        ("face", score.faces),
        ("composition", score.composition),
    ]
    return sorted(components, key=lambda c: c[1])


def _after_label(line: str, label: str) -> str:
    return line.strip()[len(label):].strip()


def _split_list(value: str) -> Optional[List[str]]:
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def parse_recommendations(text: str, ranked: List[Tuple[str, int]]) -> List[Recommendation]:
    """
    Parse CATEGORY/ACTION/STEPS/IMPACT/TOOLS/EXAMPLES blocks.

    Priority is the category's position in the weakest-first component
    ranking; categories outside it (e.g. "color") fall back to their block
    order. Blocks without an action or steps are dropped.
    """
    order = [name for name, _ in ranked]
    recommendations = []

    for index, block in enumerate(text.split("CATEGORY:")[1:]):
        lines = block.strip().split("\n")
        category = RecommendationCategory.__members__.get(lines[0].strip().upper())
        if category is None:
            logger.warning(f"Skipping recommendation with unknown category: {lines[0].strip()}")
            continue

        action = ""
        steps: List[str] = []
        impact = Impact()
        tools = None
        examples = None
        section = None

        for line in lines[1:]:
            stripped = line.strip()
            if stripped.startswith("ACTION:"):
                action = _after_label(stripped, "ACTION:")
            elif stripped == "STEPS:":
                section = "steps"
            elif stripped == "IMPACT:":
                section = "impact"
            elif stripped.startswith("TOOLS:"):
                tools = _split_list(_after_label(stripped, "TOOLS:"))
                section = None
            elif stripped.startswith("EXAMPLES:"):
                examples = _split_list(_after_label(stripped, "EXAMPLES:"))
                section = None
            elif section == "steps" and stripped.startswith("•"):
                steps.append(stripped.lstrip("•").strip())
            elif section == "impact" and stripped.startswith("-"):
                _parse_impact_line(stripped.lstrip("-").strip(), impact)

        if not action or not steps:
            continue

        name = category.value
        priority = order.index(name) + 1 if name in order else index + 1
        recommendations.append(Recommendation(
            category=category,
            action=action,
            steps=steps,
            impact=impact,
            priority=priority,
            icon=COMPONENT_ICONS[category],
            tools=tools,
            examples=examples
        ))

    recommendations.sort(key=lambda r: r.priority)
    return recommendations[:MAX_RECOMMENDATIONS]


def _parse_impact_line(line: str, impact: Impact) -> None:
    if line.startswith("Metric:"):
        impact.metric = _after_label(line, "Metric:")
    elif line.startswith("Value:"):
        try:
            impact.value = int(float(_after_label(line, "Value:").rstrip("%")))
        except ValueError:
            impact.value = 0
    elif line.startswith("Unit:"):
        unit = _after_label(line, "Unit:")
        if unit in IMPACT_UNITS:
            impact.unit = unit


def basic_recommendations(
    features: VisionFeatures,
    score: ScoreResult,
    snapshot: ModelSnapshot
) -> List[Recommendation]:
    """Rule-based recommendations from the corpus findings."""
    overall = snapshot.overall
    text_stats = overall.text_stats
    face_stats = overall.face_stats
    recommendations = []

    text_count = len(features.detected_text)
    if text_count < text_stats.avg_text_entities:
        missing = max(1, round(text_stats.avg_text_entities - text_count))
        recommendations.append(Recommendation(
            category=RecommendationCategory.TEXT,
            action=f"Add {missing} text elements",
            steps=[
                "Create short, impactful text overlays using a bold font",
                "Place primary text in the top third of the thumbnail",
                "Use contrasting colors for better readability",
            ],
            impact=Impact("Click-through rate", round(text_stats.with_text_percentage), "%"),
            priority=1,
            icon=COMPONENT_ICONS[RecommendationCategory.TEXT],
            tools=["Canva", "Adobe Express", "Photoshop"]
        ))

    recommended = snapshot.recommended_colors()
    current_ranges = {
        categorize_color(rgb)
        for rgb in (hex_to_rgb(c) for c in features.dominant_colors or [])
        if rgb is not None
    }
    missing_ranges = [r for r in recommended[:3] if r.range_name not in current_ranges]
    if missing_ranges:
        color = missing_ranges[0].range_name
        recommendations.append(Recommendation(
            category=RecommendationCategory.COLOR,
            action=f"Incorporate {color} color elements",
            steps=[
                f"Add {color} elements through text, overlays, or backgrounds",
                "Ensure color contrast ratio is at least 4.5:1",
                "Use the color for important visual elements or text",
            ],
            impact=Impact("Visual appeal score", round(recommended[0].percentage), "%"),
            priority=2,
            icon=COMPONENT_ICONS[RecommendationCategory.COLOR],
            tools=["Adobe Color", "Coolors", "Contrast Checker"]
        ))

    target_coverage = round(face_stats.avg_face_coverage)
    if features.face_count == 0:
        if face_stats.with_faces_percentage > FACE_EXPECTED_SHARE:
            recommendations.append(Recommendation(
                category=RecommendationCategory.FACE,
                action="Add a human face to the thumbnail",
                steps=[
                    "Position face in the center-right area",
                    f"Ensure face covers {target_coverage}% of thumbnail",
                    "Use clear, well-lit photo with good resolution",
                ],
                impact=Impact("Engagement rate", round(face_stats.with_faces_percentage), "%"),
                priority=3,
                icon=COMPONENT_ICONS[RecommendationCategory.FACE]
            ))
    elif sum(f.size_percent for f in features.faces) < face_stats.avg_face_coverage:
        recommendations.append(Recommendation(
            category=RecommendationCategory.FACE,
            action="Optimize face size and placement",
            steps=[
                f"Increase face size to cover {target_coverage}% of thumbnail",
                "Position face in the center-right third",
                "Ensure face is well-lit and in focus",
            ],
            impact=Impact("Viewer attention", round(face_stats.with_faces_percentage), "%"),
            priority=3,
            icon=COMPONENT_ICONS[RecommendationCategory.FACE]
        ))

    if score.composition < COMPOSITION_TARGET:
        recommendations.append(Recommendation(
            category=RecommendationCategory.COMPOSITION,
            action="Improve visual hierarchy and composition",
            steps=[
                "Place text in top third of thumbnail",
                "Position faces in center-right area",
                "Use rule of thirds for main elements",
            ],
            impact=Impact("Click-through rate", COMPOSITION_IMPACT, "%"),
            priority=4,
            icon=COMPONENT_ICONS[RecommendationCategory.COMPOSITION],
            tools=["Grid overlay tool", "Rule of thirds guide"]
        ))

    return recommendations[:MAX_RECOMMENDATIONS]


class RecommendationService:
    """
    Generates recommendations for a scored thumbnail.

    Uses Gemini when an API key is configured; otherwise, and whenever the
    LLM call fails or yields nothing parseable, falls back to the
    rule-based recommendations.
    """

    def __init__(self, gemini_config: Optional[GeminiConfig] = None, model=None):
        """
        Args:
            gemini_config: Gemini settings. If None, uses the global config.
            model: Optional pre-built generative model (anything with generate_content)
        """
        gemini_config = gemini_config or get_config().gemini
        self.model = model

        if self.model is None and gemini_config.enabled and gemini_config.api_key:
            genai.configure(api_key=gemini_config.api_key)
            self.model = genai.GenerativeModel(
                gemini_config.model_name,
                generation_config={
                    'temperature': gemini_config.temperature,
                    'top_k': gemini_config.top_k,
                    'top_p': gemini_config.top_p,
                    'max_output_tokens': gemini_config.max_output_tokens,
                }
            )
            logger.info(f"Initialized RecommendationService with model: {gemini_config.model_name}")
        elif self.model is None:
            logger.info("No Gemini API key configured; using rule-based recommendations")

    @property
    def llm_enabled(self) -> bool:
        return self.model is not None

    def _build_prompt(
        self,
        features: VisionFeatures,
        score: ScoreResult,
        snapshot: ModelSnapshot,
        ranked: List[Tuple[str, int]]
    ) -> str:
        overall = snapshot.overall
        expressions = sorted({e for face in features.faces for e in face.expressions})
        colors = ", ".join(r.range_name for r in snapshot.recommended_colors())
        priorities = "\n".join(f"- {name.upper()}: {value}/100" for name, value in ranked)

        return f"""You are a YouTube thumbnail optimization expert. Based on analysis of thousands of successful thumbnails, provide specific recommendations to improve this thumbnail.

Current Analysis:
- Text Score: {score.text}/100 ({len(features.detected_text)} text elements)
- Visual Score: {score.visual}/100 (Colors: {', '.join(features.dominant_colors or [])})
- Face Score: {score.faces}/100 ({features.face_count} faces, {', '.join(expressions) or 'none'})
- Overall Score: {score.overall}/100

Successful Thumbnail Patterns:
- Text: {overall.text_stats.with_text_percentage:.0f}% use text, avg {overall.text_stats.avg_text_entities:.1f} elements
- Faces: {overall.face_stats.with_faces_percentage:.0f}% include faces, avg coverage {overall.face_stats.avg_face_coverage:.1f}%
- Colors: Most effective are {colors or 'varied'}

Priority Areas (Lowest to Highest Score):
{priorities}

Provide 5 specific recommendations to improve this thumbnail, focusing on the lowest scoring components first. Format each recommendation exactly as follows:

CATEGORY: [One of: text, visual, face, composition, color]
ACTION: [Brief, specific action statement under 10 words]
STEPS:
• [Simple, clear step with specific details]
• [Simple, clear step with specific details]
• [Optional third step or visual reference]
IMPACT:
- Metric: [What this improves, e.g. "Click-through rate", "Engagement"]
- Value: [Numerical improvement, e.g. 75]
- Unit: [One of: %, x, points]
TOOLS: [Optional: Comma-separated list of helpful tools]
EXAMPLES: [Optional: Comma-separated list of example implementations]

Keep each recommendation under 100 words total. Be specific, practical, and data-driven."""

    def generate(
        self,
        features: VisionFeatures,
        score: ScoreResult,
        snapshot: ModelSnapshot
    ) -> List[Recommendation]:
        """
        Generate up to five recommendations, highest priority first.

        Args:
            features: The thumbnail's vision features
            score: Its ScoreResult
            snapshot: Model snapshot whose findings anchor the advice
        """
        if not self.llm_enabled:
            return basic_recommendations(features, score, snapshot)

        ranked = rank_components(score)
        prompt = self._build_prompt(features, score, snapshot, ranked)

        try:
            response = self.model.generate_content(prompt)
            text = response.text.strip()
        except Exception as e:
            logger.error(f"Gemini API call failed: {e}")
            return basic_recommendations(features, score, snapshot)

        recommendations = parse_recommendations(text, ranked)
        if not recommendations:
            logger.warning("Gemini response had no usable recommendations; using rule-based fallback")
            return basic_recommendations(features, score, snapshot)

        logger.info(f"Generated {len(recommendations)} recommendations with Gemini")
        return recommendations
