"""
API Client Tests
================
Tests for the YouTube, thumbnail download and Cloud Vision clients.

HTTP traffic is served by httpx.MockTransport; no network access is needed.
"""

import io
import os
import sys
import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import httpx
from PIL import Image

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from thumbscore.config import YouTubeConfig, VisionConfig
from thumbscore.corpus.clients import (
    YouTubeClient,
    ThumbnailDownloader,
    VisionClient,
    readability_label,
)
from thumbscore.errors import SamplingError, FeatureExtractionError
from thumbscore.models import VideoRecord, TextReadability, ContrastLevel


# =============================================================================
# TEST FIXTURES
# =============================================================================

def create_image_bytes(width: int = 1280, height: int = 720) -> bytes:
    """A real JPEG so the client can read the image size."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()


def create_http_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def create_video_item(video_id: str = "vid1") -> dict:
    return {
        "id": video_id,
        "snippet": {
            "title": "Speedrun world record",
            "description": "Full run",
            "categoryId": "20",
            "publishedAt": "2024-01-10T12:00:00Z",
            "thumbnails": {
                "default": {"url": "https://i.ytimg.com/vi/vid1/default.jpg"},
                "high": {"url": "https://i.ytimg.com/vi/vid1/hqdefault.jpg"},
            }
        },
        "statistics": {"viewCount": "2500000", "likeCount": "90000", "commentCount": "4000"},
        "contentDetails": {"duration": "PT12M30S"}
    }


def create_vision_response() -> dict:
    face_box = {"vertices": [{"x": 0, "y": 0}, {"x": 640, "y": 0},
                             {"x": 0, "y": 360}, {"x": 640, "y": 360}]}
    return {
        "responses": [{
            "textAnnotations": [
                {"description": "EPIC WIN\nPART 2"},
                {"description": "EPIC"}, {"description": "WIN"},
                {"description": "PART"}, {"description": "2"},
            ],
            "faceAnnotations": [{
                "boundingPoly": face_box,
                "detectionConfidence": 0.92,
                "joyLikelihood": "VERY_LIKELY",
                "surpriseLikelihood": "POSSIBLE",
                "angerLikelihood": "VERY_UNLIKELY",
                "sorrowLikelihood": "VERY_UNLIKELY",
            }],
            "imagePropertiesAnnotation": {"dominantColors": {"colors": [
                {"color": {"red": 255, "green": 255, "blue": 255}, "score": 0.2, "pixelFraction": 0.1},
                {"color": {"red": 0, "green": 0, "blue": 0}, "score": 0.7, "pixelFraction": 0.6},
            ]}},
            "localizedObjectAnnotations": [{
                "name": "Person",
                "score": 0.88,
                "boundingPoly": {"normalizedVertices": [
                    {"x": 0.0, "y": 0.0}, {"x": 0.5, "y": 0.0},
                    {"x": 0.0, "y": 0.5}, {"x": 0.5, "y": 0.5},
                ]}
            }]
        }]
    }


def create_vision_client(handler, api_key: str = "test-key") -> VisionClient:
    return VisionClient(VisionConfig(api_key=api_key), http_client=create_http_client(handler))


# =============================================================================
# YOUTUBE CLIENT TESTS
# =============================================================================

def test_list_popular_videos():
    """Test the listing request and the parsed page."""
    seen = {}

    def handler(request):
        seen['params'] = dict(request.url.params)
        return httpx.Response(200, json={"items": [create_video_item()], "nextPageToken": "CAUQAA"})

    client = YouTubeClient(YouTubeConfig(api_key="yt-key"), http_client=create_http_client(handler))
    page = client.list_popular_videos("20", 80, page_token="CAoQAA")

    assert seen['params']['chart'] == "mostPopular"
    assert seen['params']['videoCategoryId'] == "20"
    assert seen['params']['maxResults'] == "50"
    assert seen['params']['pageToken'] == "CAoQAA"
    assert seen['params']['key'] == "yt-key"

    assert page.next_page_token == "CAUQAA"
    video = page.videos[0]
    assert video.video_id == "vid1"
    assert video.view_count == 2_500_000
    assert video.duration_seconds == 750
    assert video.thumbnail_url.endswith("hqdefault.jpg")
    assert video.category_id == "20"

    print("[PASS] list_popular_videos test passed")


def test_youtube_failures():
    """Missing key and HTTP errors raise SamplingError."""
    try:
        YouTubeClient(YouTubeConfig(api_key=None)).list_popular_videos("20", 10)
        assert False, "Expected SamplingError without an API key"
    except SamplingError:
        pass

    client = YouTubeClient(
        YouTubeConfig(api_key="yt-key"),
        http_client=create_http_client(lambda request: httpx.Response(403, json={"error": "quota"}))
    )
    try:
        client.list_popular_videos("20", 10)
        assert False, "Expected SamplingError on HTTP 403"
    except SamplingError as e:
        assert "20" in str(e)

    print("[PASS] YouTube failure test passed")


# =============================================================================
# DOWNLOADER TESTS
# =============================================================================

def test_download_saves_thumbnail():
    """Downloaded bytes are returned and cached by video id."""
    image = create_image_bytes(320, 180)
    save_dir = Path(tempfile.mkdtemp())
    try:
        downloader = ThumbnailDownloader(
            save_dir=save_dir,
            http_client=create_http_client(lambda request: httpx.Response(200, content=image))
        )
        video = VideoRecord(video_id="vid1", thumbnail_url="https://i.ytimg.com/vi/vid1/hq.jpg")

        assert downloader.download(video) == image
        assert (save_dir / "vid1.jpg").read_bytes() == image
    finally:
        shutil.rmtree(save_dir)

    print("[PASS] Thumbnail download test passed")


def test_download_failures():
    """Missing URLs and HTTP errors raise SamplingError."""
    downloader = ThumbnailDownloader(
        http_client=create_http_client(lambda request: httpx.Response(404))
    )
    for video in (VideoRecord(video_id="nourl"),
                  VideoRecord(video_id="gone", thumbnail_url="https://i.ytimg.com/vi/gone/hq.jpg")):
        try:
            downloader.download(video)
            assert False, f"Expected SamplingError for {video.video_id}"
        except SamplingError:
            pass

    print("[PASS] Download failure test passed")


def test_download_invalid_url_is_sampling_error():
    """URL errors from httpx are reported as SamplingError, not raised raw."""
    def handler(request):
        raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")

    downloader = ThumbnailDownloader(http_client=create_http_client(handler))
    try:
        downloader.download(VideoRecord(video_id="bad", thumbnail_url="https://i.ytimg.com/vi/bad/hq.jpg"))
        assert False, "Expected SamplingError for an invalid URL"
    except SamplingError as e:
        assert "bad" in str(e)

    print("[PASS] Invalid URL download test passed")


# =============================================================================
# VISION CLIENT TESTS
# =============================================================================

def test_annotate_request():
    """The request carries the image, the key and four feature types."""
    seen = {}

    def handler(request):
        seen['key'] = request.url.params.get('key')
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json=create_vision_response())

    create_vision_client(handler).annotate(b"image-bytes")

    feature_types = [f['type'] for f in seen['body']['requests'][0]['features']]
    assert seen['key'] == "test-key"
    assert feature_types == ["TEXT_DETECTION", "FACE_DETECTION",
                             "IMAGE_PROPERTIES", "OBJECT_LOCALIZATION"]

    print("[PASS] annotate request test passed")


def test_analyze_thumbnail():
    """Test the trainer-side analysis mapping."""
    client = create_vision_client(lambda request: httpx.Response(200, json=create_vision_response()))
    analysis = client.analyze(create_image_bytes())

    assert analysis.has_text is True
    assert analysis.text_entities == 4
    assert analysis.text_char_count == len("EPIC WIN\nPART 2")
    # Colors are ordered by score, most dominant first
    assert analysis.dominant_colors[0].hex == "#000000"
    assert 0 <= analysis.color_score <= 100
    assert analysis.face_count == 1
    assert analysis.face_coverage == 25.0
    assert analysis.emotions[0]['joy'] == "VERY_LIKELY"
    assert analysis.objects[0].name == "Person"
    assert abs(analysis.objects[0].area - 25.0) < 1e-9

    print("[PASS] analyze test passed")


def test_face_coverage_uses_true_image_size():
    """A smaller image makes the same face box cover more of it."""
    client = create_vision_client(lambda request: httpx.Response(200, json=create_vision_response()))
    analysis = client.analyze(create_image_bytes(640, 720))

    assert analysis.face_coverage == 50.0

    print("[PASS] True image size test passed")


def test_extract_features():
    """Test the runtime VisionFeatures mapping."""
    client = create_vision_client(lambda request: httpx.Response(200, json=create_vision_response()))
    features = client.extract(create_image_bytes())

    assert features.detected_text == ["EPIC WIN", "PART 2"]
    assert features.dominant_colors == ["#000000", "#ffffff"]
    assert features.text_readability == TextReadability.MINIMAL
    assert features.color_contrast == ContrastLevel.HIGH
    assert features.faces[0].size_percent == 25.0
    assert features.faces[0].expressions == ["happy", "slightly surprised"]

    print("[PASS] extract test passed")


def test_vision_failures():
    """Every failure mode surfaces as FeatureExtractionError."""
    ok = lambda request: httpx.Response(200, json=create_vision_response())
    clients = [
        create_vision_client(ok, api_key=None),
        create_vision_client(lambda request: httpx.Response(500)),
        create_vision_client(lambda request: httpx.Response(200, json={"responses": []})),
        create_vision_client(lambda request: httpx.Response(
            200, json={"responses": [{"error": {"message": "Bad image data"}}]})),
    ]
    for client in clients:
        try:
            client.annotate(b"image-bytes")
            assert False, "Expected FeatureExtractionError"
        except FeatureExtractionError as e:
            assert "could not extract features" in str(e)

    try:
        create_vision_client(ok).analyze(b"not an image")
        assert False, "Expected FeatureExtractionError for unreadable image"
    except FeatureExtractionError:
        pass

    print("[PASS] Vision failure test passed")


def test_oversized_image_is_extraction_error():
    """Pillow's decompression bomb guard surfaces as FeatureExtractionError."""
    client = create_vision_client(lambda request: httpx.Response(200, json=create_vision_response()))
    with patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
        try:
            client.analyze(create_image_bytes())
            assert False, "Expected FeatureExtractionError for an oversized image"
        except FeatureExtractionError as e:
            assert "could not extract features" in str(e)

    print("[PASS] Oversized image test passed")


def test_readability_label():
    """Test the joined-length readability buckets."""
    assert readability_label([]) == TextReadability.NONE
    assert readability_label(["HI"]) == TextReadability.MINIMAL
    assert readability_label(["THE BEST GAME", "OF THE YEAR"]) == TextReadability.GOOD
    assert readability_label(["x" * 60]) == TextReadability.EXCESSIVE

    print("[PASS] readability_label test passed")


def run_all_tests():
    """Run all client tests."""
    print("\n" + "="*60)
    print("API CLIENT TESTS")
    print("="*60 + "\n")

    test_list_popular_videos()
    test_youtube_failures()
    test_download_saves_thumbnail()
    test_download_failures()
    test_download_invalid_url_is_sampling_error()
    test_annotate_request()
    test_analyze_thumbnail()
    test_face_coverage_uses_true_image_size()
    test_extract_features()
    test_vision_failures()
    test_oversized_image_is_extraction_error()
    test_readability_label()

    print("\n" + "="*60)
    print("ALL API CLIENT TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
