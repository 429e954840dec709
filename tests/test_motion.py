"""Tests for the motion estimator contract and the accumulating estimator."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from motion_mosaic.motion import AccumulatedMotion2D, ImageMotion2D
from motion_mosaic.transforms import Affine2D, Homography2D


def _translation(tx, ty):
    return np.array([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]])


@pytest.fixture
def frames():
    return [np.full((4, 4), i, dtype=np.uint8) for i in range(5)]


class TestImageMotion2D:
    def test_abstract_methods(self):
        motion = ImageMotion2D()
        with pytest.raises(NotImplementedError):
            motion.process(np.zeros((2, 2)))
        with pytest.raises(NotImplementedError):
            motion.get_first_to_current()
        with pytest.raises(NotImplementedError):
            motion.reset()
        with pytest.raises(NotImplementedError):
            motion.set_to_first()


class TestAccumulatedMotion2D:
    def test_first_frame_is_identity(self, frames):
        estimate = MagicMock()
        motion = AccumulatedMotion2D(estimate)

        assert motion.process(frames[0])
        assert motion.get_first_to_current().is_identity()
        estimate.assert_not_called()

    def test_accumulates_pairwise_motion(self, frames):
        estimate = MagicMock(side_effect=[_translation(2.0, 0.0), _translation(0.0, 3.0)])
        motion = AccumulatedMotion2D(estimate)

        for frame in frames[:3]:
            assert motion.process(frame)

        model = motion.get_first_to_current()
        assert isinstance(model, Homography2D)
        assert model.allclose(Homography2D.from_translation(2.0, 3.0))

    def test_failed_estimate_keeps_reference(self, frames):
        estimate = MagicMock(side_effect=[_translation(1.0, 0.0), None, _translation(1.0, 0.0)])
        motion = AccumulatedMotion2D(estimate)
        motion.process(frames[0])
        motion.process(frames[1])

        assert not motion.process(frames[2])
        assert motion.get_first_to_current().allclose(Homography2D.from_translation(1.0, 0.0))

        assert motion.process(frames[3])
        previous, current = estimate.call_args[0]
        np.testing.assert_array_equal(previous, frames[1])
        np.testing.assert_array_equal(current, frames[3])
        assert motion.get_first_to_current().allclose(Homography2D.from_translation(2.0, 0.0))

    def test_set_to_first_keeps_reference_frame(self, frames):
        estimate = MagicMock(side_effect=[_translation(4.0, 4.0), _translation(1.0, 0.0)])
        motion = AccumulatedMotion2D(estimate)
        motion.process(frames[0])
        motion.process(frames[1])

        motion.set_to_first()
        assert motion.get_first_to_current().is_identity()

        motion.process(frames[2])
        assert estimate.call_count == 2
        assert motion.get_first_to_current().allclose(Homography2D.from_translation(1.0, 0.0))

    def test_reset_primes_again(self, frames):
        estimate = MagicMock(return_value=_translation(4.0, 4.0))
        motion = AccumulatedMotion2D(estimate)
        motion.process(frames[0])
        motion.process(frames[1])

        motion.reset()
        assert motion.get_first_to_current().is_identity()
        assert motion.process(frames[2])
        assert estimate.call_count == 1
        assert motion.get_first_to_current().is_identity()

    def test_reference_frame_is_copied(self, frames):
        estimate = MagicMock(return_value=_translation(0.0, 0.0))
        motion = AccumulatedMotion2D(estimate)
        frame = frames[0].copy()
        motion.process(frame)
        frame[...] = 99

        motion.process(frames[1])
        previous, _ = estimate.call_args[0]
        assert np.all(previous == 0)

    def test_affine_family(self, frames):
        motion = AccumulatedMotion2D(lambda prev, cur: Affine2D.from_translation(1.0, 1.0), "affine")
        motion.process(frames[0])
        motion.process(frames[1])
        assert isinstance(motion.get_first_to_current(), Affine2D)

    def test_unknown_model_type(self):
        with pytest.raises(ValueError):
            AccumulatedMotion2D(MagicMock(), "similarity")
