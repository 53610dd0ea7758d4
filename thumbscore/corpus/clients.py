"""
External API Clients
====================
Thin httpx clients for the services the trainer and the scoring API
depend on:

- YouTubeClient: popular-video listings with statistics
- ThumbnailDownloader: fetches thumbnail image bytes
- VisionClient: Cloud Vision images:annotate, mapped to either the
  trainer's ThumbnailAnalysis or the scoring engine's VisionFeatures

Clients are constructed once and passed to their users; none of them
keeps module-level state. Network failures surface as SamplingError or
FeatureExtractionError so callers can retry or skip.
"""

import io
import base64
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx
from PIL import Image

from ..config import YouTubeConfig, VisionConfig
from ..errors import SamplingError, FeatureExtractionError
from ..models import (
    VideoRecord,
    VideoPage,
    DominantColor,
    DetectedObject,
    ThumbnailAnalysis,
    VisionFeatures,
    FaceDetection,
    Vertex,
    TextReadability,
    ContrastLevel,
    bounding_box_area,
)
from .color import rgb_to_hex, color_score, contrast_label
from .sampling import parse_duration

logger = logging.getLogger(__name__)

# Preferred thumbnail sizes, best first
THUMBNAIL_SIZES = ("maxres", "standard", "high", "medium", "default")

LIKELY = ("LIKELY", "VERY_LIKELY")
POSSIBLE = "POSSIBLE"

# Vision likelihood field -> expression label
EMOTION_LABELS = (
    ("joyLikelihood", "happy"),
    ("angerLikelihood", "angry"),
    ("sorrowLikelihood", "sad"),
    ("surpriseLikelihood", "surprised"),
)

# Joined text length cutoffs for the readability label
EXCESSIVE_TEXT_CHARS = 50
GOOD_TEXT_CHARS = 20


class YouTubeClient:
    """YouTube Data API v3 client for mostPopular chart listings."""

    def __init__(self, config: YouTubeConfig, http_client: Optional[httpx.Client] = None):
        self.config = config
        self.http = http_client or httpx.Client(timeout=config.timeout_seconds)

    def list_popular_videos(
        self,
        category_id: str,
        max_results: int,
        page_token: Optional[str] = None
    ) -> VideoPage:
        """
        Fetch one page of the most popular videos in a category.

        Raises:
            SamplingError: If the API key is missing or the request fails
        """
        if not self.config.api_key:
            raise SamplingError("YouTube API key is not configured")

        params = {
            'part': 'snippet,statistics,contentDetails',
            'chart': 'mostPopular',
            'videoCategoryId': category_id,
            'maxResults': min(max_results, self.config.max_page_size),
            'regionCode': self.config.region_code,
            'key': self.config.api_key,
        }
        if page_token:
            params['pageToken'] = page_token

        try:
            response = self.http.get(f"{self.config.base_url}/videos", params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise SamplingError(f"Video listing failed for category {category_id}: {e}") from e

        videos = [self._parse_video(item) for item in data.get('items', [])]
        return VideoPage(videos=videos, next_page_token=data.get('nextPageToken'))

    @staticmethod
    def _parse_video(item: Dict[str, Any]) -> VideoRecord:
        snippet = item.get('snippet', {})
        statistics = item.get('statistics', {})
        thumbnails = snippet.get('thumbnails', {})
        thumbnail_url = next(
            (thumbnails[size]['url'] for size in THUMBNAIL_SIZES if size in thumbnails),
            ""
        )
        return VideoRecord(
            video_id=item['id'],
            title=snippet.get('title', ""),
            description=snippet.get('description', ""),
            thumbnail_url=thumbnail_url,
            view_count=int(statistics.get('viewCount', 0)),
            like_count=int(statistics.get('likeCount', 0)),
            comment_count=int(statistics.get('commentCount', 0)),
            duration_seconds=parse_duration(item.get('contentDetails', {}).get('duration')),
            category_id=snippet.get('categoryId', ""),
            published_at=snippet.get('publishedAt')
        )


class ThumbnailDownloader:
    """Downloads thumbnail images, optionally caching them on disk."""

    def __init__(
        self,
        save_dir: Optional[Path] = None,
        timeout_seconds: float = 30.0,
        http_client: Optional[httpx.Client] = None
    ):
        self.save_dir = Path(save_dir) if save_dir else None
        self.http = http_client or httpx.Client(timeout=timeout_seconds, follow_redirects=True)

    def download(self, video: VideoRecord) -> bytes:
        """
        Raises:
            SamplingError: If the image cannot be fetched
        """
        if not video.thumbnail_url:
            raise SamplingError(f"Video {video.video_id} has no thumbnail URL")
        try:
            response = self.http.get(video.thumbnail_url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SamplingError(f"Thumbnail download failed for {video.video_id}: {e}") from e

        content = response.content
        if self.save_dir:
            self.save_dir.mkdir(parents=True, exist_ok=True)
            (self.save_dir / f"{video.video_id}.jpg").write_bytes(content)
        return content


class VisionClient:
    """
    Cloud Vision REST client.

    analyze() produces the trainer's ThumbnailAnalysis; extract() produces
    the VisionFeatures the scoring engine consumes.
    """

    def __init__(self, config: VisionConfig, http_client: Optional[httpx.Client] = None):
        self.config = config
        self.http = http_client or httpx.Client(timeout=config.timeout_seconds)

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def annotate(self, image_bytes: bytes) -> Dict[str, Any]:
        """
        Run text, face, color and object detection on one image.

        Raises:
            FeatureExtractionError: On missing API key, HTTP failure or an API error
        """
        if not self.config.api_key:
            raise FeatureExtractionError("could not extract features: Vision API key is not configured")

        payload = {
            'requests': [{
                'image': {'content': base64.b64encode(image_bytes).decode('ascii')},
                'features': [
                    {'type': 'TEXT_DETECTION'},
                    {'type': 'FACE_DETECTION'},
                    {'type': 'IMAGE_PROPERTIES'},
                    {'type': 'OBJECT_LOCALIZATION', 'maxResults': self.config.max_objects},
                ]
            }]
        }
        try:
            response = self.http.post(
                self.config.endpoint,
                params={'key': self.config.api_key},
                json=payload
            )
            response.raise_for_status()
            responses = response.json().get('responses', [])
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise FeatureExtractionError(f"could not extract features: {e}") from e

        if not responses:
            raise FeatureExtractionError("could not extract features: empty Vision response")
        result = responses[0]
        if result.get('error'):
            message = result['error'].get('message', 'unknown error')
            raise FeatureExtractionError(f"could not extract features: {message}")
        return result

    # -------------------------------------------------------------------------
    # Shared parsing
    # -------------------------------------------------------------------------

    def _dominant_colors(self, result: Dict[str, Any]) -> List[DominantColor]:
        colors = (result.get('imagePropertiesAnnotation', {})
                  .get('dominantColors', {})
                  .get('colors', []))
        colors = sorted(colors, key=lambda c: c.get('score', 0.0), reverse=True)
        parsed = []
        for entry in colors[:self.config.max_dominant_colors]:
            rgb = entry.get('color', {})
            red, green, blue = (int(rgb.get(k, 0)) for k in ('red', 'green', 'blue'))
            parsed.append(DominantColor(
                red=red,
                green=green,
                blue=blue,
                score=entry.get('score', 0.0),
                pixel_fraction=entry.get('pixelFraction', 0.0),
                hex=rgb_to_hex(red, green, blue)
            ))
        return parsed

    @staticmethod
    def _vertices(poly: Dict[str, Any], key: str = 'vertices') -> List[Vertex]:
        return [Vertex(x=v.get('x', 0), y=v.get('y', 0)) for v in poly.get(key, [])]

    @staticmethod
    def _expressions(face: Dict[str, Any]) -> List[str]:
        expressions = [label for field, label in EMOTION_LABELS if face.get(field) in LIKELY]
        expressions += [f"slightly {label}" for field, label in EMOTION_LABELS
                        if face.get(field) == POSSIBLE]
        return expressions or ["neutral"]

    @staticmethod
    def image_size(image_bytes: bytes) -> Tuple[int, int]:
        """
        Raises:
            FeatureExtractionError: If the bytes are not a readable image
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as image:
                return image.size
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise FeatureExtractionError(f"could not extract features: unreadable image ({e})") from e

    # -------------------------------------------------------------------------
    # Trainer analysis
    # -------------------------------------------------------------------------

    def analyze(self, image_bytes: bytes) -> ThumbnailAnalysis:
        """Full analysis used by the trainer (true image size for face coverage)."""
        result = self.annotate(image_bytes)
        width, height = self.image_size(image_bytes)

        texts = result.get('textAnnotations', [])
        full_text = texts[0].get('description', '') if texts else ''

        colors = self._dominant_colors(result)

        faces = result.get('faceAnnotations', [])
        face_area = sum(
            bounding_box_area(self._vertices(face.get('boundingPoly', {})))
            for face in faces
        )
        image_area = width * height
        face_coverage = face_area / image_area * 100 if faces and image_area else 0.0

        objects = [
            DetectedObject(
                name=obj.get('name', ''),
                confidence=obj.get('score', 0.0),
                area=bounding_box_area(
                    self._vertices(obj.get('boundingPoly', {}), 'normalizedVertices')
                ) * 100
            )
            for obj in result.get('localizedObjectAnnotations', [])
        ]

        return ThumbnailAnalysis(
            has_text=bool(texts),
            text=full_text,
            # First annotation is the full text block; the rest are its pieces
            text_entities=max(0, len(texts) - 1),
            text_char_count=len(full_text),
            dominant_colors=colors,
            color_score=color_score([(c.rgb, c.score) for c in colors]),
            face_count=len(faces),
            has_face=bool(faces),
            face_coverage=face_coverage,
            emotions=[
                {
                    'joy': face.get('joyLikelihood', 'UNKNOWN'),
                    'sorrow': face.get('sorrowLikelihood', 'UNKNOWN'),
                    'anger': face.get('angerLikelihood', 'UNKNOWN'),
                    'surprise': face.get('surpriseLikelihood', 'UNKNOWN'),
                }
                for face in faces
            ],
            object_count=len(objects),
            objects=objects
        )

    # -------------------------------------------------------------------------
    # Runtime extraction
    # -------------------------------------------------------------------------

    def extract(self, image_bytes: bytes) -> VisionFeatures:
        """VisionFeatures for scoring; face sizes use the reference frame."""
        result = self.annotate(image_bytes)

        texts = result.get('textAnnotations', [])
        full_text = texts[0].get('description', '') if texts else ''
        detected_text = [line for line in full_text.split('\n') if line.strip()]

        colors = self._dominant_colors(result)

        faces = [
            FaceDetection.from_vertices(
                expressions=self._expressions(face),
                vertices=self._vertices(face.get('boundingPoly', {})),
                detection_confidence=face.get('detectionConfidence', 0.0),
                reference_width=self.config.reference_width,
                reference_height=self.config.reference_height
            )
            for face in result.get('faceAnnotations', [])
        ]

        return VisionFeatures(
            detected_text=detected_text,
            dominant_colors=[c.hex for c in colors],
            text_readability=readability_label(detected_text),
            color_contrast=ContrastLevel(contrast_label([c.rgb for c in colors])),
            faces=faces
        )


def readability_label(detected_text: List[str]) -> TextReadability:
    """Bucket the joined text length: >50 excessive, >20 good, >0 minimal."""
    length = len(" ".join(detected_text))
    if length > EXCESSIVE_TEXT_CHARS:
        return TextReadability.EXCESSIVE
    if length > GOOD_TEXT_CHARS:
        return TextReadability.GOOD
    if length > 0:
        return TextReadability.MINIMAL
    return TextReadability.NONE
