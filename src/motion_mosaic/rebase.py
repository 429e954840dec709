"""Move the mosaic origin onto the current frame."""

from __future__ import annotations

import logging

from motion_mosaic.distort import fill_image


logger = logging.getLogger(__name__)


def rebase_origin(world_to_init, world_to_curr, buffers, distorter, converter, motion):
    """Re-render the mosaic so that the current frame becomes its origin.

    The whole old mosaic is warped into the scratch buffer through
    `world_to_init` followed by `curr_to_world`. Afterwards the buffers swap
    roles and the motion estimator is re-anchored on the current frame.

    Args:
        world_to_init: Placement of the first frame in mosaic pixels.
        world_to_curr: Current world -> frame transform.
        buffers: `BufferPair` holding mosaic and scratch.
        distorter: `ImageDistort`-like warper.
        converter: `StitchingTransform` for the motion-model family.
        motion: `ImageMotion2D`; its `set_to_first()` is called.

    Returns:
        The new world -> current transform (a copy of `world_to_init`).

    Raises:
        DegenerateTransformError: If `world_to_curr` is not invertible. Buffers
            and motion state are untouched in that case.
    """

    curr_to_world = world_to_curr.invert()
    new_world_to_old_world = world_to_init.concat(curr_to_world)
    # Pulling samples: new mosaic pixel -> old mosaic pixel.
    new_to_old = converter.convert_pixel(new_world_to_old_world)

    fill_image(buffers.scratch, 0)
    distorter.set_model(new_to_old)
    distorter.apply(buffers.mosaic, buffers.scratch)
    buffers.swap()

    motion.set_to_first()
    logger.debug("rebase_origin new_to_old=%s", new_world_to_old_world)
    return world_to_init.copy()
