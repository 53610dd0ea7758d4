"""
Trainer Stages Module
=====================
The shared training context and the stages that run over it.

Each stage:
- Has a name and description
- Reads from and writes to a TrainingContext
- Has its timing and status recorded on the context and in the trainer log

Stages:
1. SamplingStage - Sample qualifying videos per category
2. ThumbnailAnalysisStage - Download and analyse thumbnails concurrently
3. AggregationStage - Build the Findings artifact
4. ModelGenerationStage - Derive the ScoringModel
5. OutputStage - Write JSON/CSV outputs and both artifacts
"""

import csv
import json
import time
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from ..config import AppConfig, get_config
from ..errors import SamplingError, FeatureExtractionError
from ..models import (
    VideoRecord,
    SampledThumbnail,
    Findings,
    ScoringModel,
    generate_run_id,
)
from ..logging_config import log_stage_start, log_stage_complete, log_stage_error
from ..model_store import save_artifact
from .sampling import sample_category
from .statistics import build_findings
from .model_builder import generate_scoring_model

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "videoId",
    "title",
    "viewCount",
    "estimatedCTR",
    "categoryId",
    "categoryName",
    "hasText",
    "textCharCount",
    "textEntities",
    "hasFace",
    "faceCount",
    "faceCoverage",
    "objectCount",
    "colorScore",
    "dominantColorHex",
]


# =============================================================================
# CONTEXT
# =============================================================================

@dataclass
class StageResult:
    """Result of a single trainer stage execution."""
    stage_name: str
    success: bool
    duration_seconds: float
    error_message: Optional[str] = None
    output_summary: Optional[str] = None


@dataclass
class TrainingContext:
    """
    Shared state that flows through all trainer stages.

    Attributes:
        config: Configuration for this run
        videos: Sampled videos, in sampling order
        thumbnails: Successfully analysed thumbnails, in sampling order
        failed_videos: Video ids skipped because download or analysis failed
        findings: Aggregate statistics
        model: Derived scoring model
        used_default: True when the default model/findings were emitted
        output_files: Output label -> written file path
        run_id: Unique identifier for this training run
        stage_results: Timing and status for each stage
    """
    config: AppConfig = field(default_factory=get_config)

    videos: List[VideoRecord] = field(default_factory=list)
    thumbnails: List[SampledThumbnail] = field(default_factory=list)
    failed_videos: List[str] = field(default_factory=list)

    findings: Optional[Findings] = None
    model: Optional[ScoringModel] = None
    used_default: bool = False

    output_files: Dict[str, str] = field(default_factory=dict)

    run_id: str = field(default_factory=lambda: generate_run_id("train"))
    stage_results: List[StageResult] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    completed_at: Optional[str] = None

    @property
    def total_duration_seconds(self) -> float:
        return sum(r.duration_seconds for r in self.stage_results)

    @property
    def successful_stages(self) -> List[str]:
        return [r.stage_name for r in self.stage_results if r.success]

    @property
    def failed_stages(self) -> List[str]:
        return [r.stage_name for r in self.stage_results if not r.success]

    def record_stage(
        self,
        stage_name: str,
        success: bool,
        duration: float,
        error: Optional[str] = None,
        summary: Optional[str] = None
    ) -> None:
        """Record the result of a stage execution."""
        self.stage_results.append(StageResult(
            stage_name=stage_name,
            success=success,
            duration_seconds=duration,
            error_message=error,
            output_summary=summary
        ))

        if success:
            logger.info(f"Stage '{stage_name}' completed in {duration:.2f}s: {summary or 'OK'}")
        else:
            logger.error(f"Stage '{stage_name}' failed after {duration:.2f}s: {error}")


# =============================================================================
# BASE STAGE
# =============================================================================

class TrainerStage(ABC):
    """
    Abstract base class for trainer stages.

    Subclasses must implement name, description and _execute(). The base
    class handles timing, logging and error recording.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this stage."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this stage does."""
        pass

    @abstractmethod
    def _execute(self, context: TrainingContext) -> None:
        """
        Execute the stage logic, writing outputs onto the context.

        Raises:
            Any exception on failure (will be caught by run())
        """
        pass

    def _get_output_summary(self, context: TrainingContext) -> str:
        return "completed"

    def run(self, context: TrainingContext) -> bool:
        """
        Run this stage.

        Returns:
            True if the stage completed successfully, False otherwise
        """
        log_stage_start(self.name, context.run_id)
        start_time = time.time()

        try:
            self._execute(context)
        except Exception as e:
            duration = time.time() - start_time
            logger.exception(f"Stage {self.name} failed: {e}")
            context.record_stage(self.name, success=False, duration=duration, error=str(e))
            log_stage_error(self.name, context.run_id, str(e), duration)
            return False

        duration = time.time() - start_time
        summary = self._get_output_summary(context)
        context.record_stage(self.name, success=True, duration=duration, summary=summary)
        log_stage_complete(self.name, context.run_id, duration, summary)
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"


# =============================================================================
# STAGE 1: SAMPLING
# =============================================================================

class SamplingStage(TrainerStage):
    """
    Sample qualifying videos for every configured category.

    Reads:
        - context.config.corpus

    Writes:
        - context.videos
    """

    def __init__(self, youtube_client):
        self.youtube_client = youtube_client

    @property
    def name(self) -> str:
        return "sampling"

    @property
    def description(self) -> str:
        return "Sample popular long-form videos per category"

    def _execute(self, context: TrainingContext) -> None:
        corpus = context.config.corpus
        max_page_size = context.config.youtube.max_page_size
        for category_id, category_name in corpus.categories.items():
            videos = sample_category(
                self.youtube_client,
                category_id,
                category_name,
                corpus,
                max_page_size=max_page_size
            )
            if not videos:
                logger.warning(f"No qualifying videos for category {category_name}")
            context.videos.extend(videos)

    def _get_output_summary(self, context: TrainingContext) -> str:
        categories = len({v.category_name for v in context.videos})
        return f"{len(context.videos)} videos across {categories} categories"


# =============================================================================
# STAGE 2: THUMBNAIL ANALYSIS
# =============================================================================

class ThumbnailAnalysisStage(TrainerStage):
    """
    Download and analyse each sampled thumbnail.

    Videos are independent, so they run on a thread pool capped at
    corpus.max_workers. A failed download or analysis skips that video.

    Reads:
        - context.videos

    Writes:
        - context.thumbnails (sampling order)
        - context.failed_videos
    """

    def __init__(self, downloader, vision_client):
        self.downloader = downloader
        self.vision_client = vision_client

    @property
    def name(self) -> str:
        return "thumbnail_analysis"

    @property
    def description(self) -> str:
        return "Download thumbnails and run vision analysis"

    def _analyze(self, video: VideoRecord) -> SampledThumbnail:
        image_bytes = self.downloader.download(video)
        analysis = self.vision_client.analyze(image_bytes)
        return SampledThumbnail(video=video, analysis=analysis)

    def _execute(self, context: TrainingContext) -> None:
        if not context.videos:
            return

        max_workers = max(1, context.config.corpus.max_workers)
        results: Dict[int, SampledThumbnail] = {}
        failed: List[int] = []

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(self._analyze, video): index
                for index, video in enumerate(context.videos)
            }
            for future in as_completed(futures):
                index = futures[future]
                video = context.videos[index]
                try:
                    results[index] = future.result()
                except (SamplingError, FeatureExtractionError) as e:
                    logger.warning(f"Skipping video {video.video_id}: {e}")
                    failed.append(index)

        context.thumbnails = [results[i] for i in sorted(results)]
        context.failed_videos = [context.videos[i].video_id for i in sorted(failed)]

    def _get_output_summary(self, context: TrainingContext) -> str:
        return f"{len(context.thumbnails)} analysed, {len(context.failed_videos)} skipped"


# =============================================================================
# STAGE 3: AGGREGATION
# =============================================================================

class AggregationStage(TrainerStage):
    """
    Reads:
        - context.thumbnails

    Writes:
        - context.findings (default findings when nothing was analysed)
    """

    @property
    def name(self) -> str:
        return "aggregation"

    @property
    def description(self) -> str:
        return "Aggregate overall, per-category and quartile statistics"

    def _execute(self, context: TrainingContext) -> None:
        if not context.thumbnails:
            context.findings = Findings.default()
            context.used_default = True
            return
        context.findings = build_findings(context.thumbnails)

    def _get_output_summary(self, context: TrainingContext) -> str:
        if context.used_default:
            return "no thumbnails analysed, using default findings"
        return (f"{context.findings.overall.count} thumbnails, "
                f"{len(context.findings.by_category)} categories")


# =============================================================================
# STAGE 4: MODEL GENERATION
# =============================================================================

class ModelGenerationStage(TrainerStage):
    """
    Reads:
        - context.findings

    Writes:
        - context.model (default model when findings are the defaults)
    """

    @property
    def name(self) -> str:
        return "model_generation"

    @property
    def description(self) -> str:
        return "Derive weights and thresholds from the findings"

    def _execute(self, context: TrainingContext) -> None:
        if context.used_default or context.findings is None:
            context.model = ScoringModel.default()
            context.used_default = True
            return
        context.model = generate_scoring_model(context.findings)

    def _get_output_summary(self, context: TrainingContext) -> str:
        weights = context.model.weights
        return (f"weights textPresence={weights.text_presence:.3f} "
                f"colorScore={weights.color_score:.3f} (sum={weights.total():.3f})")


# =============================================================================
# STAGE 5: OUTPUT
# =============================================================================

def _csv_row(item: SampledThumbnail) -> Dict:
    video = item.video
    analysis = item.analysis
    return {
        "videoId": video.video_id,
        "title": video.title,
        "viewCount": video.view_count,
        "estimatedCTR": item.estimated_ctr,
        "categoryId": video.category_id,
        "categoryName": video.category_name,
        "hasText": analysis.has_text,
        "textCharCount": analysis.text_char_count,
        "textEntities": analysis.text_entities,
        "hasFace": analysis.has_face,
        "faceCount": analysis.face_count,
        "faceCoverage": round(analysis.face_coverage, 2),
        "objectCount": analysis.object_count,
        "colorScore": analysis.color_score,
        "dominantColorHex": analysis.dominant_colors[0].hex if analysis.dominant_colors else "",
    }


class OutputStage(TrainerStage):
    """
    Write the run's outputs.

    - <data>/videos.json
    - <analysis>/thumbnail_analysis.json and .csv
    - the findings and scoring model artifacts
    """

    def __init__(self, write_csv: Optional[bool] = None):
        self.write_csv = write_csv

    @property
    def name(self) -> str:
        return "output"

    @property
    def description(self) -> str:
        return "Write sampled data, analysis and model artifacts"

    @staticmethod
    def _write_json(data, path: Path) -> str:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        return str(path)

    def _execute(self, context: TrainingContext) -> None:
        paths = context.config.paths
        write_csv = context.config.corpus.write_csv if self.write_csv is None else self.write_csv

        context.output_files['videos'] = self._write_json(
            [v.to_dict() for v in context.videos],
            paths.data / "videos.json"
        )
        context.output_files['analysis'] = self._write_json(
            [t.to_dict() for t in context.thumbnails],
            paths.analysis / "thumbnail_analysis.json"
        )

        if write_csv:
            csv_path = paths.analysis / "thumbnail_analysis.csv"
            with open(csv_path, 'w', encoding='utf-8', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
                writer.writeheader()
                for item in context.thumbnails:
                    writer.writerow(_csv_row(item))
            context.output_files['csv'] = str(csv_path)

        context.output_files['findings'] = str(save_artifact(context.findings, paths.findings_path))
        context.output_files['model'] = str(save_artifact(context.model, paths.scoring_model_path))

    def _get_output_summary(self, context: TrainingContext) -> str:
        return f"wrote {len(context.output_files)} files"
