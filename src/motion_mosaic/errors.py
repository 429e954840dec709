"""Exception types raised by the mosaic engine.

`MosaicStitcher.process()` reports frame-level failures through its boolean
return value; the exceptions below are used for invalid use and for transform
math that cannot produce a usable result.
"""

from __future__ import annotations


class MosaicError(Exception):
    """Base class for mosaic engine errors."""


class DegenerateTransformError(MosaicError, ValueError):
    """Transform is singular or contains non-finite values."""


class StitchingStateError(MosaicError, RuntimeError):
    """Operation is not valid in the stitcher's current state."""
