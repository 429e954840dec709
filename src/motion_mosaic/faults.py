"""Large-motion fault detection from inter-frame corner displacement."""

from __future__ import annotations

import math
from typing import List

from motion_mosaic.corners import Corners


def jump_threshold(width: int, height: int, max_jump_fraction: float) -> float:
    """Squared pixel distance above which a corner jump is a fault."""

    limit = max(int(width), int(height)) * float(max_jump_fraction)
    return limit * limit


def corner_jumps(previous: Corners, current: Corners) -> List[float]:
    """Squared displacement of each corner pair, in TL, TR, BR, BL order."""

    jumps = []
    for (px, py), (cx, cy) in zip(previous.points(), current.points()):
        dx = cx - px
        dy = cy - py
        jumps.append(dx * dx + dy * dy)
    return jumps


def is_large_motion(
    previous: Corners,
    current: Corners,
    width: int,
    height: int,
    max_jump_fraction: float,
) -> bool:
    """Return True if any corner moved further than the allowed jump.

    Corners are compared pairwise (p0 with p0, ...). A distance equal to the
    threshold is accepted. Non-finite corners always count as a fault.
    """

    threshold = jump_threshold(width, height, max_jump_fraction)
    for (px, py), (cx, cy) in zip(previous.points(), current.points()):
        dx = cx - px
        dy = cy - py
        dist2 = dx * dx + dy * dy
        if not math.isfinite(dist2) or dist2 > threshold:
            return True
    return False
