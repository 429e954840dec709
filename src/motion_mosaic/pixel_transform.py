"""Pixel transforms and motion-model converters.

A pixel transform maps pixel coordinates of one image into floating-point
coordinates of another. Warping pulls samples, so the transform handed to the
warper maps destination pixels to source pixels.

Affine models keep a dedicated pixel transform because they can be rendered
with `cv2.warpAffine`, which is noticeably cheaper than a projective warp.
"""

from __future__ import annotations

from typing import Tuple

from motion_mosaic.transforms import Affine2D, Homography2D


class PixelTransform:
    """Base pixel transform backed by a 3x3 matrix."""

    model_type = ""

    def __init__(self, matrix=None) -> None:
        import numpy as np  # type: ignore

        self.matrix = np.eye(3, dtype=np.float64)
        if matrix is not None:
            self.set_matrix(matrix)

    def set_matrix(self, matrix) -> None:
        import numpy as np  # type: ignore

        arr = np.asarray(matrix, dtype=np.float64)
        if arr.shape != (3, 3):
            raise ValueError(f"pixel transform expects a 3x3 matrix, got shape {arr.shape}")
        self.matrix[...] = arr

    def compute(self, x: float, y: float) -> Tuple[float, float]:
        raise NotImplementedError

    def compute_points(self, points):
        """Vectorized `compute` over an (N, 2) array, returns float64 (N, 2)."""
        raise NotImplementedError


class PixelTransformAffine(PixelTransform):
    model_type = Affine2D.kind

    def compute(self, x: float, y: float) -> Tuple[float, float]:
        m = self.matrix
        return (
            float(m[0, 0] * x + m[0, 1] * y + m[0, 2]),
            float(m[1, 0] * x + m[1, 1] * y + m[1, 2]),
        )

    def compute_points(self, points):
        import numpy as np  # type: ignore

        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        return pts @ self.matrix[:2, :2].T + self.matrix[:2, 2]


class PixelTransformHomography(PixelTransform):
    model_type = Homography2D.kind

    def compute(self, x: float, y: float) -> Tuple[float, float]:
        out = self.compute_points([[x, y]])
        return float(out[0, 0]), float(out[0, 1])

    def compute_points(self, points):
        import numpy as np  # type: ignore

        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        homog = np.hstack([pts, np.ones((pts.shape[0], 1), dtype=np.float64)]) @ self.matrix.T
        # Points on the line at infinity come back as inf/nan; callers filter them.
        with np.errstate(divide="ignore", invalid="ignore"):
            return homog[:, :2] / homog[:, 2:3]


class StitchingTransform:
    """Converts one motion-model family into pixel and canonical forms."""

    model_type = ""
    model_class = None
    pixel_class = PixelTransform

    def _require_model(self, model) -> None:
        if type(model) is not self.model_class:
            raise TypeError(
                f"{type(self).__name__} cannot convert {type(model).__name__}"
            )

    def convert_pixel(self, model, storage=None):
        """Pixel transform for `model`; `storage` is reused when compatible."""

        self._require_model(model)
        if storage is None or type(storage) is not self.pixel_class:
            storage = self.pixel_class()
        storage.set_matrix(model.matrix)
        return storage

    def convert_homography(self, model, storage=None) -> Homography2D:
        """Canonical output form used by accessors and reports."""

        self._require_model(model)
        if storage is None:
            storage = Homography2D()
        storage.matrix[...] = model.matrix
        return storage


class AffineStitchingTransform(StitchingTransform):
    model_type = Affine2D.kind
    model_class = Affine2D
    pixel_class = PixelTransformAffine


class HomographyStitchingTransform(StitchingTransform):
    model_type = Homography2D.kind
    model_class = Homography2D
    pixel_class = PixelTransformHomography


def create_stitching_transform(model_type: str) -> StitchingTransform:
    """Converter for the named motion model (`affine` or `homography`)."""

    key = str(model_type).lower().strip()
    if key == Affine2D.kind:
        return AffineStitchingTransform()
    if key == Homography2D.kind:
        return HomographyStitchingTransform()
    raise ValueError(f"Unsupported motion model: {model_type}")
