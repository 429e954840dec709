"""State containers for `MosaicStitcher`."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from motion_mosaic.distort import Rectangle


class StitchPhase(Enum):
    """Lifecycle of a stitcher.

    UNINITIALIZED: buffers not allocated yet.
    PRIMING: ready; the next accepted frame only records reference corners.
    TRACKING: ready; frames are checked against the previous corners.
    """

    UNINITIALIZED = "uninitialized"
    PRIMING = "priming"
    TRACKING = "tracking"

    @property
    def is_ready(self) -> bool:
        return self is not StitchPhase.UNINITIALIZED


class FailureKind(Enum):
    """Why the last `process()` call returned False."""

    ESTIMATION = "estimation"
    DEGENERATE = "degenerate"
    LARGE_MOTION = "large_motion"


class BufferPair:
    """Mosaic and scratch images held in two slots with an active index.

    Both slots are allocated together and always share one shape.
    """

    def __init__(self) -> None:
        self._slots = [None, None]
        self._active = 0

    @property
    def allocated(self) -> bool:
        return self._slots[0] is not None

    @property
    def mosaic(self):
        return self._slots[self._active]

    @property
    def scratch(self):
        return self._slots[1 - self._active]

    @property
    def shape(self) -> Optional[Tuple[int, ...]]:
        if not self.allocated:
            return None
        return tuple(self._slots[0].shape)

    def allocate(self, height: int, width: int, like) -> None:
        """Allocate both buffers with the dtype and channels of `like`."""
        import numpy as np  # type: ignore

        shape = (int(height), int(width)) + tuple(like.shape[2:])
        self._slots = [np.zeros(shape, dtype=like.dtype), np.zeros(shape, dtype=like.dtype)]
        self._active = 0

    def check_compatible(self, frame) -> None:
        """Raise ValueError if `frame` cannot be rendered into the buffers."""
        mosaic = self.mosaic
        if frame.dtype != mosaic.dtype or tuple(frame.shape[2:]) != tuple(mosaic.shape[2:]):
            raise ValueError(
                f"frame layout {frame.shape}/{frame.dtype} does not match mosaic "
                f"{mosaic.shape}/{mosaic.dtype}"
            )

    def swap(self) -> None:
        """Exchange mosaic and scratch roles."""
        self._active = 1 - self._active


@dataclass
class MosaicStitchState:
    """Persistent bookkeeping for `MosaicStitcher`."""

    phase: StitchPhase = StitchPhase.UNINITIALIZED
    # True while world_to_curr describes a frame that was accepted.
    has_current: bool = False
    frames_processed: int = 0
    frames_accepted: int = 0
    frames_rejected: int = 0
    rebase_count: int = 0
    reset_count: int = 0
    last_failure: Optional[FailureKind] = None
    last_box: Optional[Rectangle] = None
