"""
Corpus Sampling Module
======================
Selects popular long-form videos per category for the trainer.

A video qualifies when it has at least the minimum view count and is
not a Short. A Short is at most 60 seconds long AND carries a "shorts"
signal in its thumbnail URL, title or description.

Pagination stops when the sample is full, when the listing has no more
pages, or after max_stale_fetches consecutive pages that add no new
qualifying videos.
"""

import re
import logging
from typing import Dict, List, Optional

from ..config import CorpusConfig
from ..errors import SamplingError
from ..models import VideoRecord

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")

SHORTS_URL_MARKER = "/shorts/"
SHORTS_TEXT_MARKER = "#shorts"


def parse_duration(duration: Optional[str]) -> int:
    """ISO-8601 "PT#H#M#S" to seconds; unparseable values are 0."""
    if not duration:
        return 0
    match = _DURATION_RE.search(duration)
    if not match:
        return 0
    hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def is_short_form(video: VideoRecord, max_seconds: int = 60) -> bool:
    if video.duration_seconds > max_seconds:
        return False
    return (
        SHORTS_URL_MARKER in (video.thumbnail_url or "")
        or SHORTS_TEXT_MARKER in (video.title or "").lower()
        or SHORTS_TEXT_MARKER in (video.description or "").lower()
    )


def qualifies(video: VideoRecord, config: CorpusConfig) -> bool:
    if video.view_count < config.min_view_count:
        return False
    return not is_short_form(video, config.short_form_max_seconds)


def sample_category(
    client,
    category_id: str,
    category_name: str,
    config: CorpusConfig,
    max_page_size: int = 50
) -> List[VideoRecord]:
    """
    Collect up to sample_size_per_category qualifying videos for one category.

    A failed listing request ends sampling for the category with whatever
    has been collected so far.

    Args:
        client: Anything with list_popular_videos(category_id, max_results, page_token)
        category_id: YouTube category id
        category_name: Display name stamped onto each record
        config: Corpus sampling configuration
        max_page_size: Largest page the listing API accepts
    """
    target = config.sample_size_per_category
    first_page_size = min(target * config.candidate_multiplier, max_page_size)

    selected: Dict[str, VideoRecord] = {}
    page_token = None
    stale_fetches = 0
    first = True

    while len(selected) < target:
        try:
            page = client.list_popular_videos(
                category_id,
                first_page_size if first else max_page_size,
                page_token
            )
        except SamplingError as e:
            logger.warning(f"Listing failed for category {category_name}: {e}")
            break
        first = False

        added = 0
        for video in page.videos:
            if video.video_id in selected or not qualifies(video, config):
                continue
            video.category_id = video.category_id or category_id
            video.category_name = category_name
            selected[video.video_id] = video
            added += 1

        stale_fetches = 0 if added else stale_fetches + 1
        page_token = page.next_page_token

        if not page_token:
            break
        if stale_fetches >= config.max_stale_fetches:
            logger.info(
                f"Only {len(selected)} qualifying videos for {category_name} "
                f"after {stale_fetches} fetches without new results"
            )
            break

    videos = list(selected.values())[:target]
    logger.info(f"Sampled {len(videos)} videos for category {category_name}")
    return videos
