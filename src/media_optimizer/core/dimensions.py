"""Bounding-box arithmetic for resized outputs."""

import math
from typing import Any, Optional, Tuple


def _valid(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fit_inside(
    width: Any,
    height: Any,
    max_width: Any,
    max_height: Any,
    enlarge: bool = False,
) -> Optional[Tuple[int, int]]:
    """
    Scale ``width`` x ``height`` to fit a ``max_width`` x ``max_height`` box.

    The constraining side lands exactly on the box edge; the other side is
    rounded half up and never drops below 1. Without ``enlarge`` an image
    that already fits is returned unchanged.

    Returns:
        The target ``(width, height)``, or None on missing, non-finite or
        non-positive input
    """
    if not all(_valid(v) for v in (width, height, max_width, max_height)):
        return None

    if not enlarge and width <= max_width and height <= max_height:
        return int(width), int(height)

    if width * max_height >= height * max_width:
        scaled = _round_half_up(height * max_width / width)
        return int(max_width), max(1, min(scaled, int(max_height)))

    scaled = _round_half_up(width * max_height / height)
    return max(1, min(scaled, int(max_width))), int(max_height)


def resize(width: Any, height: Any, max_size: int) -> Optional[Tuple[int, int]]:
    """
    Fit ``width`` x ``height`` inside a ``max_size`` square, never upscaling.

    Args:
        width: Original width in pixels
        height: Original height in pixels
        max_size: Length of the bounding box side

    Returns:
        The target ``(width, height)``, or None when either dimension (or
        the box) is missing, non-finite or not positive
    """
    return fit_inside(width, height, max_size, max_size)
