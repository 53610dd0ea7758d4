"""
Data Models and Schemas Module
==============================
Defines structured data representations for the scoring engine and the
corpus trainer.

This module provides:
- Type-safe dataclasses for vision features, scores and model artifacts
- Serialization/deserialization methods (camelCase on the wire)
- Validation of required input fields
- The built-in default scoring model and findings

These models form the contract between the trainer, the artifacts it
writes to disk, and the scoring engine that reads them:
- ScoringModel and Findings are written once per training run
- VisionFeatures -> ScoreResult is computed fresh on every request

Usage:
    from thumbscore.models.schemas import VisionFeatures, ScoringModel, Findings

    features = VisionFeatures.from_dict(request_json)
    model = ScoringModel.from_json(path.read_text())
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any
from enum import Enum
import json
import hashlib
import re

from ..errors import InvalidInputError


# Bumped whenever a key in scoring_model.json or findings.json changes meaning
SCHEMA_VERSION = "1.0"

# Canonical frame used for face size when the real image size is unknown
REFERENCE_WIDTH = 1280
REFERENCE_HEIGHT = 720


# =============================================================================
# ENUMS
# =============================================================================

class TextReadability(str, Enum):
    """Readability bucket derived from the amount of detected text."""
    NONE = "none"
    MINIMAL = "minimal"
    GOOD = "good"
    EXCESSIVE = "excessive"


class ContrastLevel(str, Enum):
    """Luminance contrast between the two most dominant colors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Prominence(str, Enum):
    """Size bucket of the largest detected face."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LayoutType(str, Enum):
    """Layout classification of the thumbnail."""
    RULE_OF_THIRDS = "rule_of_thirds"
    GOLDEN_RATIO = "golden_ratio"
    CENTERED = "centered"
    OTHER = "other"


class FacePosition(str, Enum):
    """Horizontal placement of the main face."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class RecommendationCategory(str, Enum):
    """Areas a recommendation can target."""
    TEXT = "text"
    VISUAL = "visual"
    FACE = "face"
    COMPOSITION = "composition"
    COLOR = "color"


def parse_enum(enum_cls, value):
    """
    Parse a label leniently ("High", "rule-of-thirds", "Rule of thirds").

    Returns None for missing or unrecognized labels so scorers can fall
    back to their documented defaults.
    """
    if value is None or isinstance(value, enum_cls):
        return value
    key = re.sub(r"[\s\-]+", "_", str(value).strip().lower())
    try:
        return enum_cls(key)
    except ValueError:
        return None


def _coerce_float(value, name: str) -> Optional[float]:
    """
    Accept numbers and numeric strings ("35"); None passes through.

    Raises:
        InvalidInputError: For anything else, naming the wire field
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidInputError(f"{_to_camel(name)} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{_to_camel(name)} must be a number, got {value!r}")


# =============================================================================
# BASE CLASSES
# =============================================================================

def _to_camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def _to_snake(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


class BaseModel:
    """
    Base class for all data models with common serialization methods.

    Field names are written in camelCase; a field may pin its wire name
    with field(metadata={'json': 'highCTR'}).
    """

    @classmethod
    def _json_name(cls, f) -> str:
        return f.metadata.get('json', _to_camel(f.name))

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary, handling nested objects."""
        def convert(obj):
            if isinstance(obj, BaseModel):
                return obj.to_dict()
            elif isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, datetime):
                return obj.isoformat()
            elif isinstance(obj, Path):
                return str(obj)
            elif isinstance(obj, (list, tuple)):
                return [convert(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            return obj

        return {self._json_name(f): convert(getattr(self, f.name)) for f in fields(self)}

    def to_json(self, indent: int = 2) -> str:
        """Convert model to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def _field_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Map wire keys (camelCase, aliases or snake_case) to field names, dropping unknown keys."""
        names = {f.name for f in fields(cls)}
        aliases = {cls._json_name(f): f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = aliases.get(key) or _to_snake(key)
            if name in names:
                kwargs[name] = value
        return kwargs

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseModel":
        """Create model from dictionary. Override in subclasses for nested objects."""
        return cls(**cls._field_kwargs(data))

    @classmethod
    def from_json(cls, json_str: str) -> "BaseModel":
        """Create model from JSON string."""
        return cls.from_dict(json.loads(json_str))


# =============================================================================
# VISION FEATURES (scoring input)
# =============================================================================

@dataclass
class Vertex(BaseModel):
    """One corner of a bounding box, in pixels or normalized units."""
    x: float = 0.0
    y: float = 0.0


def bounding_box_area(vertices: List[Vertex]) -> float:
    """
    Area of the axis-aligned extent of a set of corner points.

    Uses max - min over all vertices, so the corner order does not matter.
    """
    if not vertices:
        return 0.0
    xs = [v.x for v in vertices]
    ys = [v.y for v in vertices]
    return (max(xs) - min(xs)) * (max(ys) - min(ys))


@dataclass
class FaceDetection(BaseModel):
    """
    A single detected face.

    Attributes:
        expressions: Expression labels (e.g. "happy", "slightly surprised")
        bounding_box: Four corner points of the face box
        size_percent: Face box area as a percentage of the reference frame
        detection_confidence: Detector confidence in [0, 1]
    """
    expressions: List[str] = field(default_factory=list)
    bounding_box: List[Vertex] = field(default_factory=list)
    size_percent: float = 0.0
    detection_confidence: float = 0.0

    @classmethod
    def from_vertices(
        cls,
        expressions: List[str],
        vertices: List[Vertex],
        detection_confidence: float,
        reference_width: int = REFERENCE_WIDTH,
        reference_height: int = REFERENCE_HEIGHT
    ) -> "FaceDetection":
        """Build a detection, deriving size_percent from the reference frame."""
        area = bounding_box_area(vertices)
        size_percent = float(round(area / (reference_width * reference_height) * 100))
        return cls(
            expressions=list(expressions),
            bounding_box=list(vertices),
            size_percent=size_percent,
            detection_confidence=detection_confidence
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FaceDetection":
        """
        Raises:
            InvalidInputError: If the face is not an object or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise InvalidInputError("Each face must be a JSON object")

        kwargs = cls._field_kwargs(data)
        box = kwargs.get('bounding_box') or []
        if not isinstance(box, list) or not all(isinstance(v, (dict, Vertex)) for v in box):
            raise InvalidInputError("boundingBox must be a list of {x, y} points")
        kwargs['bounding_box'] = [
            v if isinstance(v, Vertex) else Vertex(x=_coerce_float(v.get('x'), 'x') or 0.0,
                                                   y=_coerce_float(v.get('y'), 'y') or 0.0)
            for v in box
        ]

        # A single label is accepted in place of a list
        expressions = kwargs.get('expressions') or []
        if isinstance(expressions, str):
            expressions = [expressions]
        if not isinstance(expressions, list):
            raise InvalidInputError("expressions must be a list of labels")
        kwargs['expressions'] = [str(e) for e in expressions]

        for number_field in ('size_percent', 'detection_confidence'):
            if number_field in kwargs:
                kwargs[number_field] = _coerce_float(kwargs[number_field], number_field) or 0.0
        return cls(**kwargs)


@dataclass
class VisionFeatures(BaseModel):
    """
    Per-thumbnail signals extracted by vision analysis.

    dominant_colors is required: None means the upstream analysis never
    produced a color list and scoring refuses the input. An empty list is
    valid and simply scores poorly. The optional refinement signals fall
    back to documented defaults in the scorers.
    """
    detected_text: List[str] = field(default_factory=list)
    dominant_colors: Optional[List[str]] = None
    text_readability: Optional[TextReadability] = field(
        default=None, metadata={'json': 'textReadabilityLabel'})
    color_contrast: Optional[ContrastLevel] = field(
        default=None, metadata={'json': 'colorContrastLabel'})
    faces: List[FaceDetection] = field(default_factory=list)

    # Optional refinement signals
    font_sizes: Optional[List[float]] = None
    font_contrast: Optional[float] = None
    brightness_factor: Optional[float] = None
    saturation_level: Optional[float] = None
    layout_type: Optional[LayoutType] = None
    clutter_factor: Optional[float] = None
    eye_contact: Optional[bool] = None
    face_position: Optional[FacePosition] = None

    @property
    def text_char_count(self) -> int:
        return len(" ".join(self.detected_text))

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisionFeatures":
        """
        Create from a request/analysis dictionary.

        Raises:
            InvalidInputError: If dominantColors is absent or not a list
        """
        if not isinstance(data, dict):
            raise InvalidInputError("Vision features must be a JSON object")

        kwargs = cls._field_kwargs(data)
        colors = kwargs.get('dominant_colors')
        if colors is None:
            raise InvalidInputError("Missing required field: dominantColors")
        if not isinstance(colors, list):
            raise InvalidInputError("dominantColors must be a list of hex colors")

        for list_field in ('detected_text', 'faces'):
            value = kwargs.get(list_field)
            if value is not None and not isinstance(value, list):
                raise InvalidInputError(f"{_to_camel(list_field)} must be a list")

        kwargs['detected_text'] = [str(t) for t in (kwargs.get('detected_text') or [])]
        for number_field in ('font_contrast', 'brightness_factor', 'saturation_level', 'clutter_factor'):
            kwargs[number_field] = _coerce_float(kwargs.get(number_field), number_field)
        font_sizes = kwargs.get('font_sizes')
        if font_sizes is not None:
            if not isinstance(font_sizes, list):
                raise InvalidInputError("fontSizes must be a list of numbers")
            kwargs['font_sizes'] = [_coerce_float(s, 'font_sizes') for s in font_sizes if s is not None]
        kwargs['faces'] = [
            f if isinstance(f, FaceDetection) else FaceDetection.from_dict(f)
            for f in (kwargs.get('faces') or [])
        ]
        kwargs['text_readability'] = parse_enum(TextReadability, kwargs.get('text_readability'))
        kwargs['color_contrast'] = parse_enum(ContrastLevel, kwargs.get('color_contrast'))
        kwargs['layout_type'] = parse_enum(LayoutType, kwargs.get('layout_type'))
        kwargs['face_position'] = parse_enum(FacePosition, kwargs.get('face_position'))
        return cls(**kwargs)


# =============================================================================
# SCORE RESULT (scoring output)
# =============================================================================

@dataclass(frozen=True)
class ScoreResult(BaseModel):
    """
    Component and overall scores for one thumbnail, each an int in [0, 100].

    face_explanation describes which face-scoring branches fired and is
    part of the result, not telemetry.
    """
    text: int
    visual: int
    faces: int
    composition: int
    overall: int
    face_explanation: str = ""

    def components(self) -> Dict[str, int]:
        return {
            'text': self.text,
            'visual': self.visual,
            'faces': self.faces,
            'composition': self.composition,
        }


# =============================================================================
# SCORING MODEL (artifact)
# =============================================================================

# Names of the six model metrics, in artifact order
METRIC_KEYS = (
    "textPresence",
    "facePresence",
    "faceCoverage",
    "colorScore",
    "textEntities",
    "objectCount",
)


@dataclass
class ModelWeights(BaseModel):
    """Per-metric influence; trainer output always sums to 1.0."""
    text_presence: float = 0.2
    face_presence: float = 0.2
    face_coverage: float = 0.15
    color_score: float = 0.25
    text_entities: float = 0.1
    object_count: float = 0.1

    def total(self) -> float:
        return sum(getattr(self, f.name) for f in fields(self))


@dataclass
class ModelThresholds(BaseModel):
    """Cutoffs observed in high-engagement thumbnails."""
    text_presence: bool = True
    face_presence: bool = True
    face_coverage: float = 20.0
    color_score: float = 70.0
    text_entities: float = 3.0
    object_count: float = 3.0


@dataclass
class CategoryThresholds(ModelThresholds):
    """Thresholds for one content category plus its most common colors/objects."""
    common_colors: List[str] = field(default_factory=list)
    common_objects: List[str] = field(default_factory=list)


@dataclass
class ScoringModel(BaseModel):
    """
    Persisted weights and thresholds consumed by the scoring engine.

    Attributes:
        weights: Six metric weights
        thresholds: Global thresholds from the top engagement quartile
        category_specific: Thresholds keyed by category display name
        schema_version: Artifact schema version
        generated_at: When the trainer produced this model (None for the default)
    """
    weights: ModelWeights = field(default_factory=ModelWeights)
    thresholds: ModelThresholds = field(default_factory=ModelThresholds)
    category_specific: Dict[str, CategoryThresholds] = field(default_factory=dict)
    schema_version: str = SCHEMA_VERSION
    generated_at: Optional[str] = None

    @classmethod
    def default(cls) -> "ScoringModel":
        """The built-in model used when no trained model is available."""
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoringModel":
        """Create from dictionary; artifacts written before versioning load as 1.0."""
        return cls(
            weights=ModelWeights.from_dict(data['weights']),
            thresholds=ModelThresholds.from_dict(data['thresholds']),
            category_specific={
                name: CategoryThresholds.from_dict(values)
                for name, values in (data.get('categorySpecific') or {}).items()
            },
            schema_version=data.get('schemaVersion', SCHEMA_VERSION),
            generated_at=data.get('generatedAt')
        )


# =============================================================================
# FINDINGS (artifact)
# =============================================================================

@dataclass
class TextStats(BaseModel):
    with_text: int = 0
    with_text_percentage: float = 0.0
    avg_text_entities: float = 0.0
    avg_char_count: float = 0.0


@dataclass
class FaceStats(BaseModel):
    with_faces: int = 0
    with_faces_percentage: float = 0.0
    avg_face_count: float = 0.0
    avg_face_coverage: float = 0.0


@dataclass
class RankedColorRange(BaseModel):
    range_name: str = field(default="other", metadata={'json': 'range'})
    count: int = 0
    percentage: float = 0.0


@dataclass
class RankedObject(BaseModel):
    name: str = ""
    count: int = 0
    percentage: float = 0.0


@dataclass
class ColorStats(BaseModel):
    avg_color_score: float = 0.0
    most_common_color_ranges: List[RankedColorRange] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColorStats":
        return cls(
            avg_color_score=data.get('avgColorScore', 0.0),
            most_common_color_ranges=[
                RankedColorRange.from_dict(r) for r in data.get('mostCommonColorRanges', [])
            ]
        )


@dataclass
class ObjectStats(BaseModel):
    avg_object_count: float = 0.0
    most_common_objects: List[RankedObject] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectStats":
        return cls(
            avg_object_count=data.get('avgObjectCount', 0.0),
            most_common_objects=[
                RankedObject.from_dict(o) for o in data.get('mostCommonObjects', [])
            ]
        )


@dataclass
class GroupStats(BaseModel):
    """Aggregate statistics over one group of thumbnails."""
    count: int = 0
    text_stats: TextStats = field(default_factory=TextStats)
    face_stats: FaceStats = field(default_factory=FaceStats)
    color_stats: ColorStats = field(default_factory=ColorStats)
    object_stats: ObjectStats = field(default_factory=ObjectStats)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupStats":
        return cls(
            count=data.get('count', 0),
            text_stats=TextStats.from_dict(data.get('textStats', {})),
            face_stats=FaceStats.from_dict(data.get('faceStats', {})),
            color_stats=ColorStats.from_dict(data.get('colorStats', {})),
            object_stats=ObjectStats.from_dict(data.get('objectStats', {}))
        )


@dataclass
class MetricDifference(BaseModel):
    """High-minus-low engagement quartile difference for one metric."""
    difference: float = 0.0
    high_ctr: float = field(default=0.0, metadata={'json': 'highCTR'})
    low_ctr: float = field(default=0.0, metadata={'json': 'lowCTR'})


@dataclass
class Comparison(BaseModel):
    """
    Top vs bottom engagement quartile statistics.

    "CTR" keys hold the engagement proxy (likes + comments) / views, since
    true click-through rate is not public.
    """
    high_ctr: GroupStats = field(default_factory=GroupStats, metadata={'json': 'highCTR'})
    low_ctr: GroupStats = field(default_factory=GroupStats, metadata={'json': 'lowCTR'})
    differences: Dict[str, MetricDifference] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comparison":
        return cls(
            high_ctr=GroupStats.from_dict(data.get('highCTR', {})),
            low_ctr=GroupStats.from_dict(data.get('lowCTR', {})),
            differences={
                key: MetricDifference.from_dict(value)
                for key, value in (data.get('differences') or {}).items()
            }
        )


@dataclass
class Findings(BaseModel):
    """Aggregate corpus statistics, overall and per category."""
    overall: GroupStats = field(default_factory=GroupStats)
    by_category: Dict[str, GroupStats] = field(default_factory=dict)
    comparison: Optional[Comparison] = None
    schema_version: str = SCHEMA_VERSION
    generated_at: Optional[str] = None

    @classmethod
    def default(cls) -> "Findings":
        """
        Findings paired with the default model.

        Averages mirror the default thresholds so scorers normalize around
        the same anchors the default model encodes. The color ranges describe
        a corpus of vivid primaries, split evenly so that a red/green/blue
        triad matches in any dominance order.
        """
        defaults = ModelThresholds()
        overall = GroupStats(
            count=0,
            text_stats=TextStats(
                with_text_percentage=75.0,
                avg_text_entities=defaults.text_entities,
                avg_char_count=20.0
            ),
            face_stats=FaceStats(
                with_faces_percentage=60.0,
                avg_face_count=1.0,
                avg_face_coverage=defaults.face_coverage
            ),
            color_stats=ColorStats(
                avg_color_score=defaults.color_score,
                most_common_color_ranges=[
                    RankedColorRange("red", 0, 34.0),
                    RankedColorRange("green", 0, 33.0),
                    RankedColorRange("blue", 0, 33.0),
                ]
            ),
            object_stats=ObjectStats(avg_object_count=defaults.object_count)
        )
        return cls(overall=overall)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Findings":
        comparison = data.get('comparison')
        return cls(
            overall=GroupStats.from_dict(data['overall']),
            by_category={
                name: GroupStats.from_dict(stats)
                for name, stats in (data.get('byCategory') or {}).items()
            },
            comparison=Comparison.from_dict(comparison) if comparison else None,
            schema_version=data.get('schemaVersion', SCHEMA_VERSION),
            generated_at=data.get('generatedAt')
        )


# =============================================================================
# CORPUS RECORDS (trainer)
# =============================================================================

@dataclass
class VideoRecord(BaseModel):
    """A sampled video with the statistics the trainer needs."""
    video_id: str
    title: str = ""
    description: str = ""
    thumbnail_url: str = ""
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    duration_seconds: int = 0
    category_id: str = ""
    category_name: str = ""
    published_at: Optional[str] = None

    @property
    def engagement_proxy(self) -> float:
        """(likes + comments) / views * 100, to 2 decimals; an estimate, not true CTR."""
        if self.view_count <= 0:
            return 0.0
        return round((self.like_count + self.comment_count) / self.view_count * 100, 2)


@dataclass
class VideoPage(BaseModel):
    """One page of a popular-videos listing."""
    videos: List[VideoRecord] = field(default_factory=list)
    next_page_token: Optional[str] = None


@dataclass
class DominantColor(BaseModel):
    red: int = 0
    green: int = 0
    blue: int = 0
    score: float = 0.0
    pixel_fraction: float = 0.0
    hex: str = "#000000"

    @property
    def rgb(self):
        return (self.red, self.green, self.blue)


@dataclass
class DetectedObject(BaseModel):
    name: str = ""
    confidence: float = 0.0
    # Normalized box area * 100
    area: float = 0.0


@dataclass
class ThumbnailAnalysis(BaseModel):
    """Full trainer-side vision analysis of one thumbnail."""
    has_text: bool = False
    text: str = ""
    text_entities: int = 0
    text_char_count: int = 0
    dominant_colors: List[DominantColor] = field(default_factory=list)
    color_score: int = 0
    face_count: int = 0
    has_face: bool = False
    face_coverage: float = 0.0
    emotions: List[Dict[str, str]] = field(default_factory=list)
    object_count: int = 0
    objects: List[DetectedObject] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThumbnailAnalysis":
        kwargs = cls._field_kwargs(data)
        kwargs['dominant_colors'] = [
            DominantColor.from_dict(c) for c in kwargs.get('dominant_colors', [])
        ]
        kwargs['objects'] = [DetectedObject.from_dict(o) for o in kwargs.get('objects', [])]
        return cls(**kwargs)


@dataclass
class SampledThumbnail(BaseModel):
    """A video paired with the analysis of its thumbnail."""
    video: VideoRecord
    analysis: ThumbnailAnalysis

    @property
    def estimated_ctr(self) -> float:
        return self.video.engagement_proxy

    @property
    def category_name(self) -> str:
        return self.video.category_name

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SampledThumbnail":
        return cls(
            video=VideoRecord.from_dict(data['video']),
            analysis=ThumbnailAnalysis.from_dict(data['analysis'])
        )


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

@dataclass
class Impact(BaseModel):
    metric: str = ""
    value: float = 0
    unit: str = "%"


@dataclass
class Recommendation(BaseModel):
    """One actionable suggestion for improving a thumbnail."""
    category: RecommendationCategory
    action: str
    steps: List[str] = field(default_factory=list)
    impact: Impact = field(default_factory=Impact)
    priority: int = 1
    icon: Optional[str] = None
    tools: Optional[List[str]] = None
    examples: Optional[List[str]] = None


# =============================================================================
# HELPERS
# =============================================================================

def generate_run_id(prefix: str = "train") -> str:
    """Generate a unique training run ID."""
    content = f"{prefix}_{datetime.now().isoformat()}"
    return hashlib.md5(content.encode()).hexdigest()[:16]
