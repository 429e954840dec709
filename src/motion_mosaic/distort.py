"""Image warping, bounding boxes and fill helpers backed by OpenCV.

`ImageDistort` pulls samples: its model maps destination pixels to source
pixels and is passed to OpenCV with `WARP_INVERSE_MAP`. Destination pixels
whose source sample falls outside the source image are left unchanged unless
`render_all=True`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from motion_mosaic.pixel_transform import PixelTransform, PixelTransformAffine


INTERPOLATIONS = ("linear", "nearest", "cubic")

# Samples per frame edge used when bounding a warped frame.
_EDGE_SAMPLES = 8


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned rectangle in integer pixel coordinates."""

    x: int
    y: int
    w: int
    h: int

    @property
    def area(self) -> int:
        return int(max(0, self.w) * max(0, self.h))

    @property
    def corner(self) -> Tuple[int, int]:
        return int(self.x), int(self.y)

    @property
    def size(self) -> Tuple[int, int]:
        return int(self.w), int(self.h)

    @property
    def x2(self) -> int:
        return int(self.x + self.w)

    @property
    def y2(self) -> int:
        return int(self.y + self.h)

    def is_empty(self) -> bool:
        return self.w <= 0 or self.h <= 0


def _perimeter_points(width: int, height: int, samples: int = _EDGE_SAMPLES):
    import numpy as np  # type: ignore

    w, h = float(width), float(height)
    xs = np.linspace(0.0, w, samples + 1)
    ys = np.linspace(0.0, h, samples + 1)
    top = np.stack([xs, np.zeros_like(xs)], axis=1)
    bottom = np.stack([xs, np.full_like(xs, h)], axis=1)
    left = np.stack([np.zeros_like(ys), ys], axis=1)
    right = np.stack([np.full_like(ys, w), ys], axis=1)
    return np.concatenate([top, right, bottom, left], axis=0)


def bound_box(
    src_width: int,
    src_height: int,
    dst_width: int,
    dst_height: int,
    pixel_transform: PixelTransform,
) -> Rectangle:
    """Bounding box of a warped source image, clipped to the destination.

    Args:
        src_width: Source image width.
        src_height: Source image height.
        dst_width: Destination image width.
        dst_height: Destination image height.
        pixel_transform: Maps source pixels into destination pixels.

    Returns:
        Rectangle inside [0, dst_width) x [0, dst_height); may be empty.
        If any perimeter sample maps to a non-finite point the whole
        destination is returned, since the warped region is unbounded.
    """

    import numpy as np  # type: ignore

    mapped = pixel_transform.compute_points(_perimeter_points(src_width, src_height))
    if not np.all(np.isfinite(mapped)):
        return Rectangle(0, 0, int(dst_width), int(dst_height))

    lo = np.floor(mapped.min(axis=0))
    hi = np.ceil(mapped.max(axis=0)) + 1.0
    x0 = int(np.clip(lo[0], 0, dst_width))
    y0 = int(np.clip(lo[1], 0, dst_height))
    x1 = int(np.clip(hi[0], 0, dst_width))
    y1 = int(np.clip(hi[1], 0, dst_height))
    return Rectangle(x0, y0, max(0, x1 - x0), max(0, y1 - y0))


def fill_image(image, value) -> None:
    """Set every pixel of `image` to `value`; no-op for None."""

    if image is None:
        return
    image[...] = value


class ImageDistort:
    """Renders a source image into a destination through a pixel transform.

    Args:
        interpolation: `linear|nearest|cubic`.
        render_all: when True, destination pixels outside the source footprint
            are overwritten with 0 instead of being left unchanged.
    """

    def __init__(self, interpolation: str = "linear", render_all: bool = False) -> None:
        method = str(interpolation).lower().strip()
        if method not in INTERPOLATIONS:
            raise ValueError(f"Unsupported interpolation: {interpolation}")
        self.interpolation = method
        self.render_all = bool(render_all)
        self._model: Optional[PixelTransform] = None

    @property
    def model(self) -> Optional[PixelTransform]:
        return self._model

    def set_model(self, pixel_transform: PixelTransform) -> None:
        """Set the destination -> source pixel transform."""
        self._model = pixel_transform

    def _cv_interpolation(self) -> int:
        import cv2  # type: ignore

        return {
            "linear": cv2.INTER_LINEAR,
            "nearest": cv2.INTER_NEAREST,
            "cubic": cv2.INTER_CUBIC,
        }[self.interpolation]

    def _warp(self, img, matrix, size, interpolation: int, border: int):
        import cv2  # type: ignore

        flags = interpolation | cv2.WARP_INVERSE_MAP
        if isinstance(self._model, PixelTransformAffine):
            return cv2.warpAffine(img, matrix[:2], size, flags=flags, borderMode=border, borderValue=0)
        return cv2.warpPerspective(img, matrix, size, flags=flags, borderMode=border, borderValue=0)

    def apply(self, src, dst, x0: int = 0, y0: int = 0, x1: Optional[int] = None, y1: Optional[int] = None) -> Rectangle:
        """Warp `src` into the region [x0, x1) x [y0, y1) of `dst` in place.

        Without a region the whole destination is rendered.

        Returns:
            The destination region actually rendered (clipped, may be empty).

        Raises:
            RuntimeError: If no model was set.
            ValueError: If src/dst dtype or channel layout differ.
        """

        import cv2  # type: ignore
        import numpy as np  # type: ignore

        if self._model is None:
            raise RuntimeError("ImageDistort.set_model() must be called before apply()")
        if src.dtype != dst.dtype or src.shape[2:] != dst.shape[2:]:
            raise ValueError(
                f"src/dst layout mismatch: {src.shape}/{src.dtype} vs {dst.shape}/{dst.dtype}"
            )

        dst_h, dst_w = dst.shape[:2]
        x0 = max(0, int(x0))
        y0 = max(0, int(y0))
        x1 = dst_w if x1 is None else min(dst_w, int(x1))
        y1 = dst_h if y1 is None else min(dst_h, int(y1))
        if x1 <= x0 or y1 <= y0:
            return Rectangle(x0, y0, 0, 0)

        # Shift so that output pixel (0, 0) is destination pixel (x0, y0).
        offset = np.array([[1.0, 0.0, x0], [0.0, 1.0, y0], [0.0, 0.0, 1.0]], dtype=np.float64)
        matrix = self._model.matrix @ offset
        size = (x1 - x0, y1 - y0)

        region = dst[y0:y1, x0:x1]
        if self.render_all:
            warped = self._warp(src, matrix, size, self._cv_interpolation(), cv2.BORDER_CONSTANT)
            region[...] = warped.reshape(region.shape)
            return Rectangle(x0, y0, x1 - x0, y1 - y0)

        # Image is sampled with a replicated border; the footprint mask selects written pixels.
        warped = self._warp(src, matrix, size, self._cv_interpolation(), cv2.BORDER_REPLICATE)
        footprint = np.full(src.shape[:2], 255, dtype=np.uint8)
        valid = self._warp(footprint, matrix, size, cv2.INTER_NEAREST, cv2.BORDER_CONSTANT) > 0
        if region.ndim == 3:
            valid = valid[..., None]
        np.copyto(region, warped.reshape(region.shape), where=valid)
        return Rectangle(x0, y0, x1 - x0, y1 - y0)
