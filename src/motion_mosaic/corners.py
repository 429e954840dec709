"""Frame corners projected into mosaic coordinates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple


Point = Tuple[float, float]


@dataclass
class Corners:
    """Four frame corners in fixed order: TL, TR, BR, BL."""

    p0: Point = (0.0, 0.0)
    p1: Point = (0.0, 0.0)
    p2: Point = (0.0, 0.0)
    p3: Point = (0.0, 0.0)

    def points(self) -> List[Point]:
        return [self.p0, self.p1, self.p2, self.p3]

    def as_array(self):
        """Corners as float64 [4, 2]."""
        import numpy as np  # type: ignore

        return np.array(self.points(), dtype=np.float64)

    def set_from_array(self, points) -> None:
        rows = [(float(x), float(y)) for x, y in points]
        if len(rows) != 4:
            raise ValueError(f"expected 4 corners, got {len(rows)}")
        self.p0, self.p1, self.p2, self.p3 = rows

    def is_finite(self) -> bool:
        import numpy as np  # type: ignore

        return bool(np.all(np.isfinite(self.as_array())))


def source_corners(width: int, height: int):
    """Image corners (0,0), (w,0), (w,h), (0,h) as float64 [4, 2]."""
    import numpy as np  # type: ignore

    w, h = float(width), float(height)
    return np.array([[0.0, 0.0], [w, 0.0], [w, h], [0.0, h]], dtype=np.float64)


def map_corners(pixel_curr_to_world, width: int, height: int, out: Optional[Corners] = None) -> Corners:
    """Project the current frame's corners into the mosaic.

    Args:
        pixel_curr_to_world: Pixel transform from frame to mosaic coordinates.
        width: Frame width in pixels.
        height: Frame height in pixels.
        out: Optional container to overwrite.

    Returns:
        Corners in TL, TR, BR, BL order.
    """

    mapped = pixel_curr_to_world.compute_points(source_corners(width, height))
    if out is None:
        out = Corners()
    out.set_from_array(mapped)
    return out


class CornerHistory:
    """Previous/current corner slots rotated by flipping an index."""

    def __init__(self) -> None:
        self._slots = [Corners(), Corners()]
        self._previous_idx = 0

    @property
    def previous(self) -> Corners:
        return self._slots[self._previous_idx]

    @property
    def current(self) -> Corners:
        return self._slots[1 - self._previous_idx]

    def swap(self) -> None:
        """Make the current corners the previous ones."""
        self._previous_idx = 1 - self._previous_idx

    def clear(self) -> None:
        self._slots = [Corners(), Corners()]
        self._previous_idx = 0
