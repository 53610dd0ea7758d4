"""
Corpus Trainer Tests
====================
Tests for the trainer stages and the end-to-end training run.

The YouTube, download and Vision clients are mocks; outputs go to a
temporary directory.
"""

import os
import sys
import csv
import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import Mock

import httpx

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from thumbscore.config import AppConfig, PathConfig, CorpusConfig
from thumbscore.errors import SamplingError, FeatureExtractionError
from thumbscore.models import (
    VideoRecord,
    VideoPage,
    DominantColor,
    ThumbnailAnalysis,
    ScoringModel,
)
from thumbscore.model_store import load_scoring_model, load_findings
from thumbscore.corpus.pipeline import CorpusTrainer
from thumbscore.corpus.clients import ThumbnailDownloader
from thumbscore.corpus.stages import (
    TrainingContext,
    TrainerStage,
    ThumbnailAnalysisStage,
    AggregationStage,
    ModelGenerationStage,
    CSV_COLUMNS,
)


# =============================================================================
# TEST FIXTURES
# =============================================================================

CATEGORIES = {"20": "Gaming", "10": "Music"}


def create_config(tmp_dir: Path, sample_size: int = 4) -> AppConfig:
    """Config rooted in a temporary directory."""
    return AppConfig(
        paths=PathConfig(base_dir=tmp_dir),
        corpus=CorpusConfig(
            categories=dict(CATEGORIES),
            sample_size_per_category=sample_size,
            max_workers=3
        )
    )


def create_video(video_id: str, likes: int) -> VideoRecord:
    return VideoRecord(
        video_id=video_id,
        title=f"Video {video_id}",
        thumbnail_url=f"https://i.ytimg.com/vi/{video_id}/maxresdefault.jpg",
        view_count=1_000_000,
        like_count=likes,
        duration_seconds=900
    )


def create_analysis(video_id: str) -> ThumbnailAnalysis:
    """Even-numbered videos have text and a face; odd ones have neither."""
    rich = int(video_id[1:]) % 2 == 0
    return ThumbnailAnalysis(
        has_text=rich,
        text="GG" if rich else "",
        text_entities=1 if rich else 0,
        text_char_count=2 if rich else 0,
        dominant_colors=[DominantColor(250, 10, 10, 0.7, 0.5, "#fa0a0a")],
        color_score=75 if rich else 35,
        face_count=1 if rich else 0,
        has_face=rich,
        face_coverage=22.0 if rich else 0.0
    )


def create_youtube_client() -> Mock:
    """Gaming gets g0..g3, Music gets m0..m3; even ids are more engaging."""
    pages = {
        "20": VideoPage(videos=[create_video(f"g{i}", 50_000 - i * 10_000 if i % 2 == 0 else 1_000)
                                for i in range(4)]),
        "10": VideoPage(videos=[create_video(f"m{i}", 40_000 if i % 2 == 0 else 2_000)
                                for i in range(4)]),
    }
    client = Mock()
    client.list_popular_videos.side_effect = (
        lambda category_id, max_results, page_token=None: pages[category_id]
    )
    return client


def create_downloader(failing=()) -> Mock:
    def download(video):
        if video.video_id in failing:
            raise SamplingError(f"404 for {video.video_id}")
        return video.video_id.encode()

    downloader = Mock()
    downloader.download.side_effect = download
    return downloader


def create_vision_client(failing=()) -> Mock:
    def analyze(image_bytes):
        video_id = image_bytes.decode()
        if video_id in failing:
            raise FeatureExtractionError()
        return create_analysis(video_id)

    vision = Mock()
    vision.analyze.side_effect = analyze
    return vision


# =============================================================================
# STAGE TESTS
# =============================================================================

def test_analysis_stage_keeps_sampling_order():
    """Results and failures are kept in sampling order despite concurrency."""
    tmp_dir = Path(tempfile.mkdtemp())
    try:
        context = TrainingContext(config=create_config(tmp_dir))
        context.videos = [create_video(f"g{i}", 1000) for i in range(8)]

        stage = ThumbnailAnalysisStage(create_downloader(failing={"g5"}),
                                       create_vision_client(failing={"g2"}))
        assert stage.run(context) is True

        assert [t.video.video_id for t in context.thumbnails] == ["g0", "g1", "g3", "g4", "g6", "g7"]
        assert context.failed_videos == ["g2", "g5"]
    finally:
        shutil.rmtree(tmp_dir)

    print("[PASS] Analysis stage order test passed")


def test_invalid_thumbnail_url_skips_one_video():
    """An httpx URL error on one download does not fail the stage."""
    def handler(request):
        video_id = request.url.path.split('/')[2]
        if video_id == "g1":
            raise httpx.InvalidURL("Invalid URL component 'path'")
        return httpx.Response(200, content=video_id.encode())

    tmp_dir = Path(tempfile.mkdtemp())
    try:
        context = TrainingContext(config=create_config(tmp_dir))
        context.videos = [create_video(f"g{i}", 1000) for i in range(3)]
        downloader = ThumbnailDownloader(
            http_client=httpx.Client(transport=httpx.MockTransport(handler)))

        assert ThumbnailAnalysisStage(downloader, create_vision_client()).run(context) is True
        assert [t.video.video_id for t in context.thumbnails] == ["g0", "g2"]
        assert context.failed_videos == ["g1"]
    finally:
        shutil.rmtree(tmp_dir)

    print("[PASS] Invalid thumbnail URL test passed")


def test_aggregation_without_thumbnails_uses_defaults():
    """An empty corpus falls back to the default findings and model."""
    tmp_dir = Path(tempfile.mkdtemp())
    try:
        context = TrainingContext(config=create_config(tmp_dir))

        assert AggregationStage().run(context)
        assert ModelGenerationStage().run(context)

        assert context.used_default is True
        assert context.findings.overall.face_stats.avg_face_count == 1.0
        assert context.model.to_dict() == ScoringModel.default().to_dict()
    finally:
        shutil.rmtree(tmp_dir)

    print("[PASS] Default fallback stage test passed")


def test_stage_failure_is_recorded():
    """A stage that raises is recorded as failed instead of propagating."""

    class BrokenStage(TrainerStage):
        name = "broken"
        description = "Always fails"

        def _execute(self, context):
            raise ValueError("boom")

    tmp_dir = Path(tempfile.mkdtemp())
    try:
        context = TrainingContext(config=create_config(tmp_dir))
        assert BrokenStage().run(context) is False
        assert context.failed_stages == ["broken"]
        assert context.stage_results[0].error_message == "boom"
    finally:
        shutil.rmtree(tmp_dir)

    print("[PASS] Stage failure test passed")


# =============================================================================
# END-TO-END TESTS
# =============================================================================

def test_full_training_run():
    """Sampling through output with mocked clients."""
    tmp_dir = Path(tempfile.mkdtemp())
    try:
        config = create_config(tmp_dir)
        trainer = CorpusTrainer(create_youtube_client(),
                                create_downloader(failing={"m3"}),
                                create_vision_client())
        progress = []
        context = trainer.run(config, progress_callback=lambda name, i, n: progress.append(name))

        assert progress == trainer.stage_names
        assert context.successful_stages == trainer.stage_names
        assert len(context.videos) == 8
        assert len(context.thumbnails) == 7
        assert context.failed_videos == ["m3"]
        assert context.used_default is False
        assert context.completed_at is not None

        # Artifacts load back through the model store
        model = load_scoring_model(config.paths.scoring_model_path)
        findings = load_findings(config.paths.findings_path)
        assert abs(model.weights.total() - 1.0) < 1e-9
        assert set(model.category_specific) == {"Gaming", "Music"}
        assert findings.overall.count == 7
        assert findings.comparison.differences["facePresence"].difference > 0

        with open(config.paths.data / "videos.json") as f:
            assert len(json.load(f)) == 8

        with open(config.paths.analysis / "thumbnail_analysis.csv", newline='') as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 7
        assert list(rows[0].keys()) == CSV_COLUMNS
        assert rows[0]["categoryName"] == "Gaming"

        assert set(context.output_files) == {'videos', 'analysis', 'csv', 'findings', 'model'}
    finally:
        shutil.rmtree(tmp_dir)

    print("[PASS] Full training run test passed")


def test_training_without_csv():
    """The CSV output can be switched off."""
    tmp_dir = Path(tempfile.mkdtemp())
    try:
        config = create_config(tmp_dir)
        trainer = CorpusTrainer(create_youtube_client(), create_downloader(),
                                create_vision_client(), write_csv=False)
        context = trainer.run(config)

        assert 'csv' not in context.output_files
        assert not (config.paths.analysis / "thumbnail_analysis.csv").exists()
    finally:
        shutil.rmtree(tmp_dir)

    print("[PASS] Training without CSV test passed")


def test_training_falls_back_when_nothing_analysed():
    """Every download failing still writes the default artifacts."""
    tmp_dir = Path(tempfile.mkdtemp())
    try:
        config = create_config(tmp_dir)
        all_ids = {f"{p}{i}" for p in "gm" for i in range(4)}
        trainer = CorpusTrainer(create_youtube_client(), create_downloader(failing=all_ids),
                                create_vision_client())
        context = trainer.run(config)

        assert context.used_default is True
        assert len(context.failed_videos) == 8
        model = load_scoring_model(config.paths.scoring_model_path)
        assert model.weights.color_score == 0.25
    finally:
        shutil.rmtree(tmp_dir)

    print("[PASS] Default fallback run test passed")


def test_listing_failure_falls_back():
    """A YouTube outage yields no videos and the default model."""
    tmp_dir = Path(tempfile.mkdtemp())
    try:
        config = create_config(tmp_dir)
        youtube = Mock()
        youtube.list_popular_videos.side_effect = SamplingError("quota exceeded")
        context = CorpusTrainer(youtube, create_downloader(), create_vision_client()).run(config)

        assert context.videos == []
        assert context.used_default is True
        assert config.paths.findings_path.exists()
    finally:
        shutil.rmtree(tmp_dir)

    print("[PASS] Listing failure run test passed")


def test_stage_subset_and_failure():
    """Named stages run alone; a failing stage aborts the run."""
    tmp_dir = Path(tempfile.mkdtemp())
    try:
        config = create_config(tmp_dir)
        trainer = CorpusTrainer(create_youtube_client(), create_downloader(), create_vision_client())

        context = trainer.run(config, stage_names=["sampling"])
        assert context.successful_stages == ["sampling"]
        assert len(context.videos) == 8
        assert trainer.get_stage("output") is not None
        assert trainer.get_stage("missing") is None

        # Output without findings cannot save artifacts
        try:
            trainer.run(config, stage_names=["output"])
            assert False, "Expected RuntimeError"
        except RuntimeError as e:
            assert "output" in str(e)
    finally:
        shutil.rmtree(tmp_dir)

    print("[PASS] Stage subset test passed")


def run_all_tests():
    """Run all trainer tests."""
    print("\n" + "="*60)
    print("CORPUS TRAINER TESTS")
    print("="*60 + "\n")

    test_analysis_stage_keeps_sampling_order()
    test_invalid_thumbnail_url_skips_one_video()
    test_aggregation_without_thumbnails_uses_defaults()
    test_stage_failure_is_recorded()
    test_full_training_run()
    test_training_without_csv()
    test_training_falls_back_when_nothing_analysed()
    test_listing_failure_falls_back()
    test_stage_subset_and_failure()

    print("\n" + "="*60)
    print("ALL CORPUS TRAINER TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
