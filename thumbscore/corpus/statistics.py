"""
Corpus Statistics Module
========================
Aggregates analysed thumbnails into the statistics stored in findings.json.

This module provides:
- calculate_stats: text/face/color/object stats for one group
- rank_by_engagement / split_quartiles: the high vs low engagement split
- calculate_differences: per-metric high-minus-low differences
- build_findings: the complete Findings artifact

Engagement is the (likes + comments) / views proxy; "CTR" names in the
output refer to that proxy, not true click-through rate.
"""

from collections import Counter
from datetime import datetime
from typing import Dict, List, Sequence, Tuple

from ..models import (
    SampledThumbnail,
    GroupStats,
    TextStats,
    FaceStats,
    ColorStats,
    ObjectStats,
    RankedColorRange,
    RankedObject,
    MetricDifference,
    Comparison,
    Findings,
)
from .color import categorize_color

TOP_OBJECT_COUNT = 10


def average(values: Sequence) -> float:
    """Mean of the numeric values; non-numbers are ignored, empty gives 0."""
    numbers = [v for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]
    if not numbers:
        return 0.0
    return sum(numbers) / len(numbers)


def _percentage(count: int, total: int) -> float:
    return count / total * 100 if total else 0.0


def calculate_stats(items: Sequence[SampledThumbnail]) -> GroupStats:
    """
    Aggregate statistics for one group of thumbnails.

    Color ranges are counted on each thumbnail's most dominant color only.
    """
    total = len(items)
    analyses = [item.analysis for item in items]

    with_text = sum(1 for a in analyses if a.has_text)
    with_faces = sum(1 for a in analyses if a.has_face)

    range_counts = Counter(
        categorize_color(a.dominant_colors[0].rgb)
        for a in analyses if a.dominant_colors
    )
    color_ranges = [
        RankedColorRange(range_name=name, count=count, percentage=_percentage(count, total))
        for name, count in range_counts.most_common()
    ]

    object_counts = Counter(obj.name for a in analyses for obj in a.objects)
    common_objects = [
        RankedObject(name=name, count=count, percentage=_percentage(count, total))
        for name, count in object_counts.most_common(TOP_OBJECT_COUNT)
    ]

    return GroupStats(
        count=total,
        text_stats=TextStats(
            with_text=with_text,
            with_text_percentage=_percentage(with_text, total),
            avg_text_entities=average([a.text_entities for a in analyses]),
            avg_char_count=average([a.text_char_count for a in analyses])
        ),
        face_stats=FaceStats(
            with_faces=with_faces,
            with_faces_percentage=_percentage(with_faces, total),
            avg_face_count=average([a.face_count for a in analyses]),
            avg_face_coverage=average([a.face_coverage for a in analyses])
        ),
        color_stats=ColorStats(
            avg_color_score=average([a.color_score for a in analyses]),
            most_common_color_ranges=color_ranges
        ),
        object_stats=ObjectStats(
            avg_object_count=average([a.object_count for a in analyses]),
            most_common_objects=common_objects
        )
    )


def rank_by_engagement(items: Sequence[SampledThumbnail]) -> List[SampledThumbnail]:
    """Highest engagement proxy first; ties keep their sampling order."""
    return sorted(items, key=lambda item: item.estimated_ctr, reverse=True)


def quartile_size(n: int) -> int:
    return max(1, n // 4)


def split_quartiles(
    items: Sequence[SampledThumbnail]
) -> Tuple[List[SampledThumbnail], List[SampledThumbnail]]:
    """
    Top and bottom engagement quartiles.

    Both have max(1, n // 4) items; the bottom quartile is the tail of the
    descending ranking, so the two never overlap when n >= 2.
    """
    if not items:
        return [], []
    ranked = rank_by_engagement(items)
    size = quartile_size(len(ranked))
    return ranked[:size], ranked[-size:]


def metric_values(stats: GroupStats) -> Dict[str, float]:
    """The six model metrics as read from one group's statistics."""
    return {
        'textPresence': stats.text_stats.with_text_percentage,
        'facePresence': stats.face_stats.with_faces_percentage,
        'faceCoverage': stats.face_stats.avg_face_coverage,
        'colorScore': stats.color_stats.avg_color_score,
        'textEntities': stats.text_stats.avg_text_entities,
        'objectCount': stats.object_stats.avg_object_count,
    }


def calculate_differences(high: GroupStats, low: GroupStats) -> Dict[str, MetricDifference]:
    high_values = metric_values(high)
    low_values = metric_values(low)
    return {
        key: MetricDifference(
            difference=high_values[key] - low_values[key],
            high_ctr=high_values[key],
            low_ctr=low_values[key]
        )
        for key in high_values
    }


def compare_quartiles(items: Sequence[SampledThumbnail]) -> Comparison:
    top, bottom = split_quartiles(items)
    high = calculate_stats(top)
    low = calculate_stats(bottom)
    return Comparison(high_ctr=high, low_ctr=low, differences=calculate_differences(high, low))


def group_by_category(items: Sequence[SampledThumbnail]) -> Dict[str, List[SampledThumbnail]]:
    groups: Dict[str, List[SampledThumbnail]] = {}
    for item in items:
        groups.setdefault(item.category_name, []).append(item)
    return groups


def build_findings(items: Sequence[SampledThumbnail]) -> Findings:
    """Overall, per-category and quartile-comparison statistics."""
    return Findings(
        overall=calculate_stats(items),
        by_category={
            name: calculate_stats(group)
            for name, group in group_by_category(items).items()
        },
        comparison=compare_quartiles(items),
        generated_at=datetime.now().isoformat()
    )
