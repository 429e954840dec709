"""Incremental mosaic stitching driven by a 2D motion estimator.

Per frame the pipeline is:
motion estimate -> compose transforms -> blend into mosaic -> corner jump check.
It does not estimate motion itself; the `ImageMotion2D` collaborator does.

The mosaic is updated before the jump check, so a rejected frame is still
visible in the mosaic. Callers are expected to `reset()` after a rejection.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional

from motion_mosaic.corners import CornerHistory, Corners, map_corners
from motion_mosaic.distort import ImageDistort, fill_image
from motion_mosaic.errors import DegenerateTransformError, StitchingStateError
from motion_mosaic.faults import corner_jumps, is_large_motion, jump_threshold
from motion_mosaic.mosaic_state import BufferPair, FailureKind, MosaicStitchState, StitchPhase
from motion_mosaic.pixel_transform import create_stitching_transform
from motion_mosaic.rebase import rebase_origin
from motion_mosaic.transforms import as_model, create_model, derive_current_transforms
from motion_mosaic.updater import blend_frame


logger = logging.getLogger(__name__)


class MosaicStitcher:
    """Stitches a frame sequence into one persistent mosaic.

    Args:
        motion: `ImageMotion2D` estimator, owned by the caller.
        distorter: warper used to render frames (`ImageDistort`).
        converter: `StitchingTransform` matching the motion-model family.
        max_jump_fraction: largest allowed corner jump between accepted
            frames, as a fraction of max(frame width, frame height).
        world_to_init: placement of the first frame in mosaic pixels.
        width_stitch: mosaic width.
        height_stitch: mosaic height.
        warning_handler: optional callback receiving rejection warnings.
    """

    def __init__(
        self,
        motion,
        distorter,
        converter,
        max_jump_fraction: float,
        world_to_init,
        width_stitch: int,
        height_stitch: int,
        warning_handler: Optional[Callable[[str], None]] = None,
    ):
        if int(width_stitch) <= 0 or int(height_stitch) <= 0:
            raise ValueError(f"mosaic size must be positive, got {width_stitch}x{height_stitch}")
        fraction = float(max_jump_fraction)
        if not math.isfinite(fraction) or fraction <= 0:
            raise ValueError(f"max_jump_fraction must be positive, got {max_jump_fraction}")
        if type(world_to_init) is not converter.model_class:
            raise ValueError(
                f"world_to_init is {type(world_to_init).__name__} but converter handles "
                f"{converter.model_type}"
            )
        world_to_init.check_invertible()

        self.motion = motion
        self.distorter = distorter
        self.converter = converter
        self.max_jump_fraction = fraction
        self.world_to_init = world_to_init.copy()
        self.width_stitch = int(width_stitch)
        self.height_stitch = int(height_stitch)
        self.warning_handler = warning_handler

        self._world_to_curr = self.world_to_init.create_instance()
        self._tran_world_to_curr = None
        self._tran_curr_to_world = None

        self.corners = CornerHistory()
        self.buffers = BufferPair()
        self.state = MosaicStitchState()

    @classmethod
    def from_config(cls, config, motion, distorter=None, warning_handler=None) -> "MosaicStitcher":
        """Build a stitcher from a `MosaicConfig`."""

        config.validate()
        if distorter is None:
            distorter = ImageDistort(interpolation=config.interpolation)
        return cls(
            motion,
            distorter,
            create_stitching_transform(config.motion_model),
            config.max_jump_fraction,
            create_model(config.motion_model, config.world_to_init),
            config.width_stitch,
            config.height_stitch,
            warning_handler=warning_handler,
        )

    @property
    def phase(self) -> StitchPhase:
        return self.state.phase

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self.warning_handler is not None:
            self.warning_handler(message)

    def _reject(self, kind: FailureKind, message: str) -> bool:
        self.state.last_failure = kind
        self.state.frames_rejected += 1
        self._warn(message)
        return False

    def process(self, frame) -> bool:
        """Estimate motion for `frame` and blend it into the mosaic.

        Args:
            frame: Next image in the sequence, (H, W) or (H, W, C).

        Returns:
            True if the frame was accepted. False if motion estimation failed
            or the transform was degenerate (mosaic untouched), or if a large
            jump was detected (mosaic already contains the frame; call
            `reset()`). The reason is kept in `state.last_failure`.
        """

        if frame.ndim not in (2, 3):
            raise ValueError(f"frame must be (H, W) or (H, W, C), got shape {frame.shape}")
        if not self.buffers.allocated:
            self.buffers.allocate(self.height_stitch, self.width_stitch, like=frame)
            self.state.phase = StitchPhase.PRIMING
            logger.info(
                "mosaic buffers allocated shape=%s dtype=%s", self.buffers.shape, frame.dtype
            )
        else:
            self.buffers.check_compatible(frame)

        frame_idx = self.state.frames_processed
        self.state.frames_processed += 1
        self.state.has_current = False

        if not self.motion.process(frame):
            return self._reject(
                FailureKind.ESTIMATION,
                f"motion_estimation_failed frame={frame_idx}",
            )

        try:
            self._compute_curr_to_world()
        except DegenerateTransformError as exc:
            return self._reject(
                FailureKind.DEGENERATE,
                f"degenerate_transform frame={frame_idx}: {exc}",
            )

        self.state.last_box = blend_frame(
            frame,
            self.buffers.mosaic,
            self.distorter,
            self._tran_world_to_curr,
            self._tran_curr_to_world,
        )

        height, width = frame.shape[:2]
        if self._check_large_motion(width, height):
            max_jump = math.sqrt(max(corner_jumps(self.corners.previous, self.corners.current)))
            limit = math.sqrt(jump_threshold(width, height, self.max_jump_fraction))
            return self._reject(
                FailureKind.LARGE_MOTION,
                f"large_motion_rejected frame={frame_idx}: max_jump={max_jump:.1f}px > {limit:.1f}px",
            )

        self.state.has_current = True
        self.state.last_failure = None
        self.state.frames_accepted += 1
        return True

    def _compute_curr_to_world(self) -> None:
        first_to_curr = as_model(self.motion.get_first_to_current(), self.world_to_init.kind)
        self._world_to_curr, self._tran_world_to_curr, self._tran_curr_to_world = derive_current_transforms(
            first_to_curr,
            self.world_to_init,
            self.converter,
            world_to_curr=self._world_to_curr,
            pixel_world_to_curr=self._tran_world_to_curr,
            pixel_curr_to_world=self._tran_curr_to_world,
        )

    def _check_large_motion(self, width: int, height: int) -> bool:
        """Compare current corners with the last accepted ones; True for fault."""

        if self.state.phase is StitchPhase.PRIMING:
            map_corners(self._tran_curr_to_world, width, height, out=self.corners.previous)
            self.state.phase = StitchPhase.TRACKING
            return False

        current = map_corners(self._tran_curr_to_world, width, height, out=self.corners.current)
        if is_large_motion(self.corners.previous, current, width, height, self.max_jump_fraction):
            # 不交换 previous/current：下一帧仍与最后一次可信的角点比较。
            return True
        self.corners.swap()
        return False

    def reset(self) -> None:
        """Throw away the mosaic and motion history and start over."""

        fill_image(self.buffers.mosaic, 0)
        self.motion.reset()
        self._world_to_curr.reset()
        self._tran_world_to_curr = None
        self._tran_curr_to_world = None
        self.corners.clear()

        if self.buffers.allocated:
            self.state.phase = StitchPhase.PRIMING
        self.state.has_current = False
        self.state.last_failure = None
        self.state.last_box = None
        self.state.reset_count += 1
        logger.info("mosaic reset (count=%d)", self.state.reset_count)

    def set_origin_to_current(self) -> None:
        """Make the current frame the origin of the mosaic coordinate system.

        Must follow a successful `process()` call.

        Raises:
            StitchingStateError: If no accepted frame defines the current transform.
            DegenerateTransformError: If the current transform is not invertible.
        """

        if not self.state.phase.is_ready or not self.state.has_current:
            raise StitchingStateError(
                "set_origin_to_current() requires a successful process() call first"
            )

        new_world_to_curr = rebase_origin(
            self.world_to_init,
            self._world_to_curr,
            self.buffers,
            self.distorter,
            self.converter,
            self.motion,
        )
        self._world_to_curr.set(new_world_to_curr)
        curr_to_world = self._world_to_curr.invert()
        self._tran_world_to_curr = self.converter.convert_pixel(self._world_to_curr, self._tran_world_to_curr)
        self._tran_curr_to_world = self.converter.convert_pixel(curr_to_world, self._tran_curr_to_world)

        self.corners.clear()
        self.state.phase = StitchPhase.PRIMING
        self.state.rebase_count += 1
        logger.info("mosaic origin moved to current frame (count=%d)", self.state.rebase_count)

    # --- Accessors ---

    def get_stitched_image(self):
        """Live mosaic buffer, or None before the first `process()`."""
        return self.buffers.mosaic

    def get_work_image(self):
        return self.buffers.scratch

    def get_world_to_curr(self):
        """Copy of the world -> current frame motion model."""
        return self._world_to_curr.copy()

    def get_world_to_curr_homography(self, storage=None):
        """World -> current frame as a `Homography2D`."""
        return self.converter.convert_homography(self._world_to_curr, storage)

    def get_image_corners(self, width: int, height: int, corners: Optional[Corners] = None) -> Corners:
        """Location of the current frame's corners in the mosaic.

        Raises:
            StitchingStateError: If no transform has been derived since
                construction or the last `reset()`.
        """

        if self._tran_curr_to_world is None:
            raise StitchingStateError("no current transform; call process() first")
        return map_corners(self._tran_curr_to_world, width, height, out=corners)
