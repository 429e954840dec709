"""Blend a new frame into the mosaic over its footprint only."""

from __future__ import annotations

import logging

from motion_mosaic.distort import Rectangle, bound_box


logger = logging.getLogger(__name__)


def blend_frame(frame, mosaic, distorter, pixel_world_to_curr, pixel_curr_to_world) -> Rectangle:
    """Warp `frame` into `mosaic` in place.

    Only the bounding box of the frame's footprint in the mosaic is rendered.

    Args:
        frame: Current frame (H, W) or (H, W, C).
        mosaic: Live mosaic buffer, modified in place.
        distorter: `ImageDistort`-like warper.
        pixel_world_to_curr: Mosaic pixel -> frame pixel, used for sampling.
        pixel_curr_to_world: Frame pixel -> mosaic pixel, used for the box.

    Returns:
        The mosaic region that was rendered; empty when the frame lands
        entirely outside the mosaic.
    """

    frame_h, frame_w = frame.shape[:2]
    mosaic_h, mosaic_w = mosaic.shape[:2]
    box = bound_box(frame_w, frame_h, mosaic_w, mosaic_h, pixel_curr_to_world)
    if box.is_empty():
        logger.debug("blend_frame: frame footprint outside mosaic, nothing rendered")
        return box

    distorter.set_model(pixel_world_to_curr)
    distorter.apply(frame, mosaic, box.x, box.y, box.x2, box.y2)
    logger.debug("blend_frame box=(%d, %d, %d, %d)", box.x, box.y, box.w, box.h)
    return box
