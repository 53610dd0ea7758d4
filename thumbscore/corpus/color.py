"""
Color Analysis Module
=====================
Color math shared by the trainer and the scoring engine.

- WCAG relative luminance and contrast ratio
- HSV-style saturation
- The trainer's composite color score
- Bucketing colors into coarse named ranges
"""

import re
from typing import List, Optional, Sequence, Tuple

RGB = Tuple[int, int, int]

# WCAG contrast ratios span 1..21
MAX_CONTRAST_RATIO = 21.0

COLOR_SCORE_CONTRAST_WEIGHT = 0.6
COLOR_SCORE_VIBRANCY_WEIGHT = 0.4
VIBRANCY_COLOR_COUNT = 3

# Contrast ratio cutoffs for the runtime contrast label (WCAG AA/AAA)
HIGH_CONTRAST_RATIO = 7.0
MEDIUM_CONTRAST_RATIO = 4.5

COLOR_RANGES = ("white", "black", "red", "green", "blue", "yellow", "other")

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$")


def hex_to_rgb(hex_color: str) -> Optional[RGB]:
    """Parse "#rrggbb" or "#rgb"; returns None for anything else."""
    if not isinstance(hex_color, str):
        return None
    match = _HEX_RE.match(hex_color.strip())
    if not match:
        return None
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))


def rgb_to_hex(red: float, green: float, blue: float) -> str:
    return "#" + "".join(f"{int(round(c)):02x}" for c in (red, green, blue))


def _linearize(channel: float) -> float:
    c = channel / 255
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(rgb: Sequence[float]) -> float:
    r, g, b = (_linearize(c) for c in rgb)
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(rgb1: Sequence[float], rgb2: Sequence[float]) -> float:
    """WCAG contrast ratio in [1, 21]."""
    l1 = relative_luminance(rgb1)
    l2 = relative_luminance(rgb2)
    return (max(l1, l2) + 0.05) / (min(l1, l2) + 0.05)


def saturation(rgb: Sequence[float]) -> float:
    """(max - min) / max of the channels, 0 for black."""
    high = max(rgb) / 255
    low = min(rgb) / 255
    if high == 0:
        return 0.0
    return (high - low) / high


def color_score(colors: List[Tuple[RGB, float]]) -> int:
    """
    Composite 0-100 color score from dominance-ordered (rgb, score) pairs.

    60% contrast between the top two colors (normalized from the 1-21 WCAG
    range) and 40% saturation of the top three weighted by dominance.
    """
    contrast = 0.0
    if len(colors) >= 2:
        contrast = contrast_ratio(colors[0][0], colors[1][0]) / MAX_CONTRAST_RATIO * 100

    vibrancy = sum(
        saturation(rgb) * score for rgb, score in colors[:VIBRANCY_COLOR_COUNT]
    ) * 100

    return round(contrast * COLOR_SCORE_CONTRAST_WEIGHT + vibrancy * COLOR_SCORE_VIBRANCY_WEIGHT)


def categorize_color(rgb: Sequence[int]) -> str:
    """Bucket a color by simple channel thresholds; checked in a fixed order."""
    r, g, b = rgb
    if r > 200 and g > 200 and b > 200:
        return "white"
    if r < 50 and g < 50 and b < 50:
        return "black"
    if r > 200 and g < 100 and b < 100:
        return "red"
    if r < 100 and g > 200 and b < 100:
        return "green"
    if r < 100 and g < 100 and b > 200:
        return "blue"
    if r > 200 and g > 200 and b < 100:
        return "yellow"
    return "other"


def contrast_label(rgb_colors: List[RGB]) -> str:
    """Runtime contrast bucket of the two most dominant colors."""
    if len(rgb_colors) < 2:
        return "low"
    ratio = contrast_ratio(rgb_colors[0], rgb_colors[1])
    if ratio > HIGH_CONTRAST_RATIO:
        return "high"
    if ratio > MEDIUM_CONTRAST_RATIO:
        return "medium"
    return "low"
