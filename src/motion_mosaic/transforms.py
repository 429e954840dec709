"""Motion models and transform composition for mosaic stitching.

Motion models are 3x3 matrices in column-vector convention (p' = M @ p).
`a.concat(b)` is the transform that applies `a` first and then `b`, so its
matrix is `b.M @ a.M`.
"""

from __future__ import annotations

from typing import Tuple

from motion_mosaic.errors import DegenerateTransformError


# Determinant threshold after normalising the matrix by its largest entry.
_DET_EPS = 1e-12


class _Transform2D:
    """Shared matrix storage for the invertible transform family."""

    kind = ""

    def __init__(self, matrix=None) -> None:
        import numpy as np  # type: ignore

        if matrix is None:
            self.matrix = np.eye(3, dtype=np.float64)
        else:
            self.matrix = self._check_matrix(matrix)

    @classmethod
    def _check_matrix(cls, matrix):
        import numpy as np  # type: ignore

        arr = np.array(matrix, dtype=np.float64)
        if arr.shape != (3, 3):
            raise ValueError(f"{cls.__name__} expects a 3x3 matrix, got shape {arr.shape}")
        return arr

    @classmethod
    def from_matrix(cls, matrix):
        return cls(matrix)

    @classmethod
    def from_translation(cls, tx: float, ty: float):
        return cls([[1.0, 0.0, float(tx)], [0.0, 1.0, float(ty)], [0.0, 0.0, 1.0]])

    @classmethod
    def from_scale(cls, scale: float, tx: float = 0.0, ty: float = 0.0):
        """Uniform scale followed by a translation, typical for `world_to_init`."""
        s = float(scale)
        return cls([[s, 0.0, float(tx)], [0.0, s, float(ty)], [0.0, 0.0, 1.0]])

    def _require_same_kind(self, other) -> None:
        if type(other) is not type(self):
            raise TypeError(
                f"Cannot combine {type(self).__name__} with {type(other).__name__}"
            )

    def create_instance(self):
        """New identity transform of the same kind."""
        return type(self)()

    def set(self, other):
        self._require_same_kind(other)
        self.matrix[...] = other.matrix
        return self

    def copy(self):
        return type(self)(self.matrix.copy())

    def reset(self) -> None:
        import numpy as np  # type: ignore

        self.matrix[...] = np.eye(3, dtype=np.float64)

    def is_identity(self, tol: float = 1e-9) -> bool:
        import numpy as np  # type: ignore

        return bool(np.allclose(self.matrix, np.eye(3), atol=tol, rtol=0.0))

    def allclose(self, other, atol: float = 1e-9) -> bool:
        import numpy as np  # type: ignore

        if type(other) is not type(self):
            return False
        return bool(np.allclose(self.matrix, other.matrix, atol=atol, rtol=0.0))

    def concat(self, other, result=None):
        """Transform equivalent to applying `self` and then `other`.

        `result` may alias `self` or `other`; it is overwritten and returned.
        """

        self._require_same_kind(other)
        combined = other.matrix @ self.matrix
        if result is None:
            result = self.create_instance()
        else:
            self._require_same_kind(result)
        result.matrix[...] = combined
        return result

    def check_invertible(self) -> None:
        """Raise `DegenerateTransformError` if the matrix cannot be inverted."""

        import numpy as np  # type: ignore

        m = self.matrix
        if not np.all(np.isfinite(m)):
            raise DegenerateTransformError(f"{type(self).__name__} has non-finite entries")
        scale = float(np.abs(m).max())
        if scale == 0.0:
            raise DegenerateTransformError(f"{type(self).__name__} is all zeros")
        det = float(np.linalg.det(m / scale))
        if not np.isfinite(det) or abs(det) < _DET_EPS:
            raise DegenerateTransformError(
                f"{type(self).__name__} is singular (normalized det={det:.3e})"
            )

    def invert(self, result=None):
        import numpy as np  # type: ignore

        self.check_invertible()
        inv = np.linalg.inv(self.matrix)
        if result is None:
            result = self.create_instance()
        else:
            self._require_same_kind(result)
        result.matrix[...] = inv
        return result

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        """Map a single point, including the homogeneous division."""

        m = self.matrix
        w = m[2, 0] * x + m[2, 1] * y + m[2, 2]
        px = m[0, 0] * x + m[0, 1] * y + m[0, 2]
        py = m[1, 0] * x + m[1, 1] * y + m[1, 2]
        if w == 0:
            return float("inf"), float("inf")
        return float(px / w), float(py / w)

    def __repr__(self) -> str:
        rows = ", ".join(
            "[" + ", ".join(f"{v:.6g}" for v in row) + "]" for row in self.matrix.tolist()
        )
        return f"{type(self).__name__}([{rows}])"


class Affine2D(_Transform2D):
    """2D affine motion; last matrix row is always [0, 0, 1]."""

    kind = "affine"

    @classmethod
    def _check_matrix(cls, matrix):
        import numpy as np  # type: ignore

        arr = super()._check_matrix(matrix)
        if not np.allclose(arr[2], [0.0, 0.0, 1.0]):
            raise ValueError(f"Affine2D last row must be [0, 0, 1], got {arr[2].tolist()}")
        arr[2] = [0.0, 0.0, 1.0]
        return arr

    def invert(self, result=None):
        result = super().invert(result)
        result.matrix[2] = [0.0, 0.0, 1.0]
        return result


class Homography2D(_Transform2D):
    """2D projective motion, defined up to scale."""

    kind = "homography"

    def normalized(self) -> "Homography2D":
        """Copy scaled so that H[2, 2] == 1 when possible."""
        out = self.copy()
        denom = float(out.matrix[2, 2])
        if abs(denom) > 1e-12:
            out.matrix /= denom
        return out


MODEL_TYPES = {
    Affine2D.kind: Affine2D,
    Homography2D.kind: Homography2D,
}


def create_model(model_type: str, matrix=None):
    """Build a motion model of the named kind (`affine` or `homography`)."""

    key = str(model_type).lower().strip()
    if key not in MODEL_TYPES:
        raise ValueError(f"Unsupported motion model: {model_type}")
    return MODEL_TYPES[key](matrix)


def as_model(value, model_type: str):
    """Accept either a motion model or a raw 3x3 matrix."""

    if isinstance(value, _Transform2D):
        return value
    return create_model(model_type, value)


def derive_current_transforms(
    first_to_curr,
    world_to_init,
    converter,
    world_to_curr=None,
    pixel_world_to_curr=None,
    pixel_curr_to_world=None,
):
    """Compose the current frame's transforms relative to the mosaic.

    Args:
        first_to_curr: Accumulated motion from the first frame to the current one.
        world_to_init: Placement of the first frame in mosaic pixel space.
        converter: `StitchingTransform` used to build pixel transforms.
        world_to_curr: Optional storage, overwritten only when the composition
            is invertible.
        pixel_world_to_curr: Optional pixel transform storage to reuse.
        pixel_curr_to_world: Optional pixel transform storage to reuse.

    Returns:
        (world_to_curr, pixel_world_to_curr, pixel_curr_to_world)

    Raises:
        DegenerateTransformError: If the composed transform is not invertible.
    """

    composed = world_to_init.concat(first_to_curr)
    curr_to_world = composed.invert()

    if world_to_curr is None:
        world_to_curr = composed
    else:
        world_to_curr.set(composed)

    pixel_world_to_curr = converter.convert_pixel(world_to_curr, pixel_world_to_curr)
    pixel_curr_to_world = converter.convert_pixel(curr_to_world, pixel_curr_to_world)
    return world_to_curr, pixel_world_to_curr, pixel_curr_to_world

