"""Mosaic configuration and YAML loading.

Example `mosaic.yaml`:

    mosaic:
      width_stitch: 2000
      height_stitch: 1200
      max_jump_fraction: 0.3
      motion_model: homography
      interpolation: linear
      world_to_init:
        scale: 0.5
        tx: 800
        ty: 400

`world_to_init` may also be given as a 3x3 nested list.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
import logging
import math
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from motion_mosaic.distort import INTERPOLATIONS
from motion_mosaic.transforms import MODEL_TYPES, create_model


logger = logging.getLogger(__name__)

Matrix3 = Tuple[Tuple[float, float, float], Tuple[float, float, float], Tuple[float, float, float]]


@dataclass(frozen=True)
class MosaicConfig:
    """Construction-time settings of a `MosaicStitcher`."""

    width_stitch: int
    height_stitch: int
    max_jump_fraction: float = 0.3
    world_to_init: Optional[Matrix3] = None
    motion_model: str = "homography"
    interpolation: str = "linear"

    def validate(self) -> None:
        """Raise ValueError describing the first invalid field."""

        for name in ("width_stitch", "height_stitch"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        fraction = self.max_jump_fraction
        if isinstance(fraction, bool) or not isinstance(fraction, (int, float)):
            raise ValueError(f"max_jump_fraction must be a number, got {fraction!r}")
        if not math.isfinite(fraction) or fraction <= 0:
            raise ValueError(f"max_jump_fraction must be positive, got {fraction!r}")
        if self.motion_model not in MODEL_TYPES:
            raise ValueError(
                f"motion_model must be one of {sorted(MODEL_TYPES)}, got {self.motion_model!r}"
            )
        if self.interpolation not in INTERPOLATIONS:
            raise ValueError(
                f"interpolation must be one of {list(INTERPOLATIONS)}, got {self.interpolation!r}"
            )
        # Shape, affine last row and invertibility are checked by the model itself.
        create_model(self.motion_model, self.world_to_init).check_invertible()

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "MosaicConfig":
        """Build and validate a config from a plain mapping."""

        if not isinstance(data, dict):
            raise ValueError("mosaic config must be a mapping.")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown mosaic config keys: {unknown}")
        missing = [name for name in ("width_stitch", "height_stitch") if name not in data]
        if missing:
            raise ValueError(f"Missing mosaic config keys: {missing}")

        values = dict(data)
        if "motion_model" in values:
            values["motion_model"] = str(values["motion_model"]).lower().strip()
        if "interpolation" in values:
            values["interpolation"] = str(values["interpolation"]).lower().strip()
        values["world_to_init"] = _parse_world_to_init(values.get("world_to_init"))

        config = cls(**values)
        config.validate()
        return config


def _parse_world_to_init(value) -> Optional[Matrix3]:
    """Accept None, a {scale, tx, ty} mapping or a 3x3 nested list."""

    if value is None:
        return None
    if isinstance(value, dict):
        unknown = sorted(set(value) - {"scale", "tx", "ty"})
        if unknown:
            raise ValueError(f"Unknown world_to_init keys: {unknown}")
        s = float(value.get("scale", 1.0))
        tx = float(value.get("tx", 0.0))
        ty = float(value.get("ty", 0.0))
        return ((s, 0.0, tx), (0.0, s, ty), (0.0, 0.0, 1.0))
    try:
        rows = tuple(tuple(float(v) for v in row) for row in value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"world_to_init must be a 3x3 matrix: {value!r}") from exc
    if len(rows) != 3 or any(len(row) != 3 for row in rows):
        raise ValueError(f"world_to_init must be a 3x3 matrix: {value!r}")
    return rows


def load_config(path: str | os.PathLike) -> MosaicConfig:
    """Load a `MosaicConfig` from YAML.

    Args:
        path: YAML file with the settings at top level or under `mosaic:`.

    Returns:
        Validated MosaicConfig.

    Raises:
        FileNotFoundError: If path does not exist.
        ValueError: If the YAML content is not a valid mosaic config.
    """

    import yaml  # type: ignore

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Mosaic config not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("YAML root must be a mapping.")
    if "mosaic" in data:
        data = data["mosaic"]

    config = MosaicConfig.from_mapping(data)
    logger.info(
        "load_config path=%s size=%dx%d model=%s max_jump_fraction=%s",
        path,
        config.width_stitch,
        config.height_stitch,
        config.motion_model,
        config.max_jump_fraction,
    )
    return config
