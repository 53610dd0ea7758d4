"""
Corpus Trainer Module
=====================
Composes the trainer stages and runs them in sequence.

Usage:
    from thumbscore.corpus.pipeline import CorpusTrainer

    # Build clients from configuration and train
    trainer = CorpusTrainer.from_config(config)
    context = trainer.run(config)

    print(context.model.weights)
    print(context.output_files)

    # Inject clients (tests, alternative backends)
    trainer = CorpusTrainer(youtube_client, downloader, vision_client)
"""

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from ..config import AppConfig, get_config
from ..logging_config import get_trainer_logger, log_model_decision
from .clients import YouTubeClient, ThumbnailDownloader, VisionClient
from .stages import (
    TrainerStage,
    TrainingContext,
    SamplingStage,
    ThumbnailAnalysisStage,
    AggregationStage,
    ModelGenerationStage,
    OutputStage,
)

logger = logging.getLogger(__name__)


class CorpusTrainer:
    """
    Offline trainer for the scoring model.

    Supports:
    - Running all stages or a named subset
    - Injected API clients
    - Progress callbacks

    When no thumbnail could be analysed (every category failed or was
    empty), the default model and findings are emitted instead of raising.
    """

    def __init__(
        self,
        youtube_client=None,
        downloader=None,
        vision_client=None,
        stages: Optional[List[TrainerStage]] = None,
        write_csv: Optional[bool] = None
    ):
        """
        Args:
            youtube_client: Provides list_popular_videos()
            downloader: Provides download(video) -> bytes
            vision_client: Provides analyze(bytes) -> ThumbnailAnalysis
            stages: Stage instances to use. If None, uses the default stages.
            write_csv: Override corpus.write_csv for the output stage
        """
        if stages is None:
            self.stages = [
                SamplingStage(youtube_client),
                ThumbnailAnalysisStage(downloader, vision_client),
                AggregationStage(),
                ModelGenerationStage(),
                OutputStage(write_csv=write_csv),
            ]
        else:
            self.stages = stages

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None, write_csv: Optional[bool] = None):
        """Build the trainer with HTTP clients constructed from configuration."""
        config = config or get_config()
        return cls(
            youtube_client=YouTubeClient(config.youtube),
            downloader=ThumbnailDownloader(
                save_dir=config.paths.thumbnails,
                timeout_seconds=config.vision.timeout_seconds
            ),
            vision_client=VisionClient(config.vision),
            write_csv=write_csv
        )

    def run(
        self,
        config: Optional[AppConfig] = None,
        stage_names: Optional[List[str]] = None,
        stop_on_failure: bool = True,
        progress_callback: Optional[Callable[[str, int, int], None]] = None
    ) -> TrainingContext:
        """
        Run the trainer.

        Args:
            config: Configuration to use. If None, uses global config.
            stage_names: Stage names to run. If None, runs all stages.
            stop_on_failure: Whether to stop if a stage fails.
            progress_callback: Optional callback(stage_name, stage_index, total_stages)

        Returns:
            The TrainingContext holding the findings, model and written files.

        Raises:
            RuntimeError: If a stage fails and stop_on_failure is True.
        """
        config = config or get_config()
        context = TrainingContext(config=config)
        run_logger = get_trainer_logger(context.run_id)

        run_logger.info(
            f"Starting training run {context.run_id}",
            extra={
                'categories': list(config.corpus.categories.values()),
                'sample_size': config.corpus.sample_size_per_category,
                'max_workers': config.corpus.max_workers,
            }
        )
        start_time = time.time()

        stages_to_run = self._get_stages_to_run(stage_names)
        total_stages = len(stages_to_run)

        for i, stage in enumerate(stages_to_run):
            if progress_callback:
                progress_callback(stage.name, i + 1, total_stages)

            success = stage.run(context)

            if not success and stop_on_failure:
                error_msg = f"Training failed at stage: {stage.name}"
                logger.error(error_msg)
                raise RuntimeError(error_msg)

        if context.used_default:
            logger.warning(
                "No thumbnails could be analysed; emitted the default scoring model"
            )
            log_model_decision("default_model_fallback", {
                'reason': "no usable thumbnails",
                'videos_sampled': len(context.videos),
                'videos_failed': len(context.failed_videos),
            }, run_id=context.run_id)

        context.completed_at = datetime.now().isoformat()
        total_time = time.time() - start_time
        run_logger.info(
            f"Training run completed in {total_time:.2f}s",
            extra={
                'thumbnails': len(context.thumbnails),
                'failed_videos': len(context.failed_videos),
                'used_default': context.used_default,
                'output_files': context.output_files,
            }
        )
        return context

    def _get_stages_to_run(self, stage_names: Optional[List[str]] = None) -> List[TrainerStage]:
        if stage_names is None:
            return self.stages
        name_set = set(stage_names)
        return [stage for stage in self.stages if stage.name in name_set]

    def get_stage(self, name: str) -> Optional[TrainerStage]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]


def train_model(config: Optional[AppConfig] = None, write_csv: Optional[bool] = None) -> TrainingContext:
    """Convenience function: build clients from config and run every stage."""
    config = config or get_config()
    config.paths.ensure_directories()
    return CorpusTrainer.from_config(config, write_csv=write_csv).run(config)
