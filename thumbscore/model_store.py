"""
Model Store Module
==================
Read-only access to the two trainer artifacts: scoring_model.json and
findings.json.

This module provides:
- Artifact load/save with typed errors for missing or corrupt files
- ModelSnapshot: an immutable pairing of model + findings with typed getters
- ModelRegistry: holds the active snapshot and swaps it atomically on reload

Scoring calls read registry.current() once and work against that snapshot,
so a reload never changes the data under an in-flight request.

Usage:
    from thumbscore.model_store import ModelRegistry

    registry = ModelRegistry.from_config(get_config())
    snapshot = registry.current()
    weights = snapshot.weights
"""

import json
import math
import os
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import ModelUnavailableError
from .models import (
    ScoringModel,
    Findings,
    ModelWeights,
    ModelThresholds,
    CategoryThresholds,
    GroupStats,
    RankedColorRange,
    BaseModel,
)
from .scoring.normalizers import normalize_around_average
from .logging_config import log_model_decision

logger = logging.getLogger(__name__)

# Color ranges at or below this share are not worth recommending
RECOMMENDED_COLOR_MIN_SHARE = 10.0

# Share of corpus thumbnails with faces above which missing faces is flagged
FACE_EXPECTED_SHARE = 70.0


# =============================================================================
# ARTIFACT I/O
# =============================================================================

def _read_json(path: Path, label: str) -> dict:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        raise ModelUnavailableError(f"{label} not found: {path}")
    except (OSError, json.JSONDecodeError) as e:
        raise ModelUnavailableError(f"{label} is unreadable ({path}): {e}") from e


def load_scoring_model(path: Union[str, Path]) -> ScoringModel:
    """
    Load and validate a scoring model artifact.

    Raises:
        ModelUnavailableError: If the file is missing, corrupt, or its
            weights are unusable (non-finite or summing to zero)
    """
    data = _read_json(Path(path), "Scoring model")
    try:
        model = ScoringModel.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ModelUnavailableError(f"Scoring model is malformed ({path}): {e}") from e

    weights = [getattr(model.weights, name) for name in vars(model.weights)]
    if not all(isinstance(w, (int, float)) and math.isfinite(w) for w in weights):
        raise ModelUnavailableError(f"Scoring model has non-numeric weights: {path}")
    if model.weights.total() <= 0:
        raise ModelUnavailableError(f"Scoring model weights sum to zero: {path}")
    return model


def load_findings(path: Union[str, Path]) -> Findings:
    """
    Load a findings artifact.

    Raises:
        ModelUnavailableError: If the file is missing or corrupt
    """
    data = _read_json(Path(path), "Findings")
    try:
        return Findings.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ModelUnavailableError(f"Findings are malformed ({path}): {e}") from e


def save_artifact(artifact: BaseModel, path: Union[str, Path]) -> Path:
    """
    Write an artifact as JSON.

    Writes to a temporary file and renames it into place so readers never
    observe a half-written artifact.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, 'w', encoding='utf-8') as f:
        f.write(artifact.to_json())
    os.replace(tmp_path, path)
    logger.info(f"Saved {type(artifact).__name__} to {path}")
    return path


# =============================================================================
# SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class ThresholdMetrics:
    """Raw metrics compared against model thresholds and corpus averages."""
    text_entities: float = 0.0
    color_score: float = 0.0
    face_count: int = 0
    face_coverage: float = 0.0


@dataclass(frozen=True)
class ModelSnapshot:
    """
    An immutable model + findings pair.

    Attributes:
        model: Scoring weights and thresholds
        findings: Corpus statistics
        source: "file" when loaded from artifacts, "default" for the built-in model
        loaded_at: When the snapshot was created
    """
    model: ScoringModel
    findings: Findings
    source: str = "file"
    loaded_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def default(cls) -> "ModelSnapshot":
        return cls(model=ScoringModel.default(), findings=Findings.default(), source="default")

    @property
    def weights(self) -> ModelWeights:
        return self.model.weights

    @property
    def thresholds(self) -> ModelThresholds:
        return self.model.thresholds

    @property
    def overall(self) -> GroupStats:
        return self.findings.overall

    def category_thresholds(self, category: Optional[str]) -> Optional[CategoryThresholds]:
        if not category:
            return None
        return self.model.category_specific.get(category)

    def category_findings(self, category: Optional[str]) -> Optional[GroupStats]:
        if not category:
            return None
        return self.findings.by_category.get(category)

    def recommended_colors(self) -> List[RankedColorRange]:
        """Common color ranges with more than 10% share, most common first."""
        ranges = [
            r for r in self.overall.color_stats.most_common_color_ranges
            if r.percentage > RECOMMENDED_COLOR_MIN_SHARE
        ]
        return sorted(ranges, key=lambda r: r.percentage, reverse=True)

    def normalize(self, value: float, average: float, max_bonus: float = 20.0) -> float:
        return normalize_around_average(value, average, max_bonus)

    def check_metrics_thresholds(self, metrics: ThresholdMetrics) -> Dict[str, bool]:
        """Whether each metric meets the model's global threshold."""
        thresholds = self.thresholds
        return {
            'text': metrics.text_entities >= thresholds.text_entities,
            'color': metrics.color_score >= thresholds.color_score,
            'face': (metrics.face_count > 0) == thresholds.face_presence,
            'faceCoverage': metrics.face_coverage >= thresholds.face_coverage,
        }

    def performance_insights(self, metrics: ThresholdMetrics) -> List[str]:
        """Advisory notes for metrics that fall short of the corpus averages."""
        overall = self.overall
        insights = []
        if metrics.text_entities < overall.text_stats.avg_text_entities:
            insights.append("Text content is below average - consider adding more engaging text")
        if metrics.color_score < overall.color_stats.avg_color_score:
            insights.append("Color impact is lower than successful thumbnails - "
                            "try using more vibrant colors")
        if metrics.face_count == 0 and overall.face_stats.with_faces_percentage > FACE_EXPECTED_SHARE:
            insights.append("Most successful thumbnails include faces - "
                            "consider adding human elements")
        if metrics.face_coverage < overall.face_stats.avg_face_coverage:
            insights.append("Face prominence is lower than optimal - "
                            "try making faces more prominent")
        return insights


def load_snapshot(model_path: Union[str, Path], findings_path: Union[str, Path]) -> ModelSnapshot:
    """Load both artifacts into a snapshot (raises ModelUnavailableError)."""
    return ModelSnapshot(
        model=load_scoring_model(model_path),
        findings=load_findings(findings_path),
        source="file"
    )


# =============================================================================
# REGISTRY
# =============================================================================

class ModelRegistry:
    """
    Holds the active ModelSnapshot.

    reload() builds a complete new snapshot before swapping the reference
    under a lock; a failed reload leaves the current snapshot in place.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        findings_path: Union[str, Path],
        fallback_to_default: bool = True
    ):
        self.model_path = Path(model_path)
        self.findings_path = Path(findings_path)
        self.fallback_to_default = fallback_to_default
        self._snapshot: Optional[ModelSnapshot] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> "ModelRegistry":
        return cls(
            model_path=config.paths.scoring_model_path,
            findings_path=config.paths.findings_path,
            fallback_to_default=config.scoring.fallback_to_default_model
        )

    def current(self) -> ModelSnapshot:
        """
        Return the active snapshot, loading it on first use.

        Raises:
            ModelUnavailableError: If artifacts cannot be loaded and fallback is disabled
        """
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load_initial()
            return self._snapshot

    def _load_initial(self) -> ModelSnapshot:
        try:
            return load_snapshot(self.model_path, self.findings_path)
        except ModelUnavailableError as e:
            if not self.fallback_to_default:
                raise
            logger.warning(f"Using default scoring model: {e}")
            log_model_decision("default_model_fallback", {
                'reason': str(e),
                'model_path': str(self.model_path),
                'findings_path': str(self.findings_path),
            })
            return ModelSnapshot.default()

    def load_or_default(self) -> ModelSnapshot:
        """Reload from disk, falling back to the default snapshot on failure."""
        try:
            return self.reload()
        except ModelUnavailableError as e:
            logger.warning(f"Reload failed, using default scoring model: {e}")
            log_model_decision("default_model_fallback", {'reason': str(e)})
            snapshot = ModelSnapshot.default()
            self.swap(snapshot)
            return snapshot

    def reload(self) -> ModelSnapshot:
        """
        Load fresh artifacts and make them active.

        Raises:
            ModelUnavailableError: If loading fails; the previous snapshot stays active
        """
        snapshot = load_snapshot(self.model_path, self.findings_path)
        self.swap(snapshot)
        log_model_decision("model_reload", {
            'model_path': str(self.model_path),
            'schema_version': snapshot.model.schema_version,
            'generated_at': snapshot.model.generated_at,
        })
        return snapshot

    def swap(self, snapshot: ModelSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
