"""Motion estimator contract consumed by `MosaicStitcher`."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from motion_mosaic.transforms import as_model, create_model


logger = logging.getLogger(__name__)


class ImageMotion2D:
    """Abstract 2D motion estimator.

    Contract / 契约:
    - process(frame) updates the estimate; False means no motion could be
      computed for this frame.
    - get_first_to_current() returns the accumulated motion model mapping
      first-frame coordinates to current-frame coordinates.
    - reset() discards all history.
    - set_to_first() makes the current frame the new first frame.
    """

    def process(self, frame) -> bool:
        raise NotImplementedError

    def get_first_to_current(self):
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError

    def set_to_first(self) -> None:
        raise NotImplementedError


class AccumulatedMotion2D(ImageMotion2D):
    """Accumulates pairwise motion from a pluggable estimator.

    Args:
        estimate: callable `(previous_frame, frame) -> motion | None` that
            returns the previous->current motion as a model or a 3x3 array,
            or None when estimation failed.
        model_type: `affine|homography`, the family of the accumulated model.

    The first frame after construction or `reset()` only becomes the
    reference and yields identity motion. A failed estimate leaves the
    accumulated motion and the reference frame untouched.
    """

    def __init__(self, estimate: Callable[[Any, Any], Optional[Any]], model_type: str = "homography") -> None:
        self.estimate = estimate
        self._first_to_curr = create_model(model_type)
        self.model_type = self._first_to_curr.kind
        self._previous_frame = None

    def process(self, frame) -> bool:
        if self._previous_frame is None:
            self._previous_frame = frame.copy()
            self._first_to_curr.reset()
            return True

        raw = self.estimate(self._previous_frame, frame)
        if raw is None:
            logger.debug("pairwise motion estimate failed; keeping previous reference frame")
            return False

        prev_to_curr = as_model(raw, self.model_type)
        # first->curr = first->prev followed by prev->curr
        self._first_to_curr.concat(prev_to_curr, self._first_to_curr)
        self._previous_frame = frame.copy()
        return True

    def get_first_to_current(self):
        return self._first_to_curr

    def reset(self) -> None:
        self._previous_frame = None
        self._first_to_curr.reset()

    def set_to_first(self) -> None:
        self._first_to_curr.reset()
