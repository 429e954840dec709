"""Tests for bounding boxes and the OpenCV-backed warper."""

import numpy as np
import pytest

from motion_mosaic.distort import ImageDistort, Rectangle, bound_box, fill_image
from motion_mosaic.pixel_transform import PixelTransformAffine, PixelTransformHomography


def _shift(tx, ty, cls=PixelTransformAffine):
    return cls([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]])


class TestRectangle:
    def test_properties(self):
        r = Rectangle(2, 3, 10, 20)
        assert r.area == 200
        assert r.corner == (2, 3)
        assert r.size == (10, 20)
        assert (r.x2, r.y2) == (12, 23)
        assert not r.is_empty()

    def test_empty(self):
        assert Rectangle(5, 5, 0, 10).is_empty()
        assert Rectangle(5, 5, 0, 10).area == 0


class TestBoundBox:
    def test_translation(self):
        box = bound_box(30, 40, 100, 100, _shift(10.0, 20.0))
        assert box == Rectangle(10, 20, 31, 41)

    def test_clipped_to_destination(self):
        box = bound_box(30, 30, 25, 25, _shift(-10.0, -10.0))
        assert box == Rectangle(0, 0, 21, 21)

    def test_outside_destination_is_empty(self):
        assert bound_box(30, 30, 100, 100, _shift(500.0, 500.0)).is_empty()
        assert bound_box(30, 30, 100, 100, _shift(-500.0, 0.0)).is_empty()

    def test_non_finite_returns_full_destination(self):
        t = PixelTransformHomography([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 0.0, 0.0]])
        assert bound_box(30, 30, 64, 48, t) == Rectangle(0, 0, 64, 48)


def test_fill_image():
    img = np.ones((4, 4), dtype=np.uint8)
    fill_image(img, 0)
    assert not img.any()
    fill_image(None, 0)


class TestImageDistort:
    @pytest.fixture
    def src(self):
        return np.full((10, 10), 7, dtype=np.uint8)

    @pytest.fixture
    def dst(self):
        return np.full((30, 30), 3, dtype=np.uint8)

    def test_rejects_unknown_interpolation(self):
        with pytest.raises(ValueError):
            ImageDistort(interpolation="lanczos")

    def test_apply_without_model(self, src, dst):
        with pytest.raises(RuntimeError):
            ImageDistort().apply(src, dst)

    def test_layout_mismatch(self, src):
        distorter = ImageDistort()
        distorter.set_model(_shift(0.0, 0.0))
        with pytest.raises(ValueError):
            distorter.apply(src, np.zeros((30, 30, 3), dtype=np.uint8))
        with pytest.raises(ValueError):
            distorter.apply(src, np.zeros((30, 30), dtype=np.float32))

    @pytest.mark.parametrize("cls", [PixelTransformAffine, PixelTransformHomography])
    def test_outside_footprint_left_unchanged(self, src, dst, cls):
        distorter = ImageDistort()
        # dst (x, y) samples src (x - 5, y - 5)
        distorter.set_model(_shift(-5.0, -5.0, cls))

        rect = distorter.apply(src, dst)

        assert rect == Rectangle(0, 0, 30, 30)
        assert np.all(dst[5:15, 5:15] == 7)
        assert np.all(dst[:5, :] == 3)
        assert np.all(dst[15:, :] == 3)
        assert np.all(dst[:, 15:] == 3)

    def test_region_limits_writes(self, src, dst):
        distorter = ImageDistort(interpolation="nearest")
        distorter.set_model(_shift(-5.0, -5.0))

        rect = distorter.apply(src, dst, 0, 0, 10, 10)

        assert rect == Rectangle(0, 0, 10, 10)
        assert np.all(dst[5:10, 5:10] == 7)
        assert np.all(dst[10:15, 10:15] == 3)

    def test_region_clipped(self, src, dst):
        distorter = ImageDistort()
        distorter.set_model(_shift(0.0, 0.0))
        assert distorter.apply(src, dst, -5, -5, 100, 100) == Rectangle(0, 0, 30, 30)
        assert distorter.apply(src, dst, 40, 0, 50, 10).is_empty()

    def test_render_all_overwrites_region(self, src, dst):
        distorter = ImageDistort(render_all=True)
        distorter.set_model(_shift(-5.0, -5.0))

        distorter.apply(src, dst)

        assert np.all(dst[5:15, 5:15] == 7)
        assert np.all(dst[:5, :] == 0)
        assert np.all(dst[20:, 20:] == 0)

    def test_color_images(self):
        src = np.zeros((10, 10, 3), dtype=np.uint8)
        src[..., 0] = 10
        src[..., 1] = 20
        src[..., 2] = 30
        dst = np.zeros((20, 20, 3), dtype=np.uint8)
        distorter = ImageDistort()
        distorter.set_model(_shift(-2.0, -2.0))

        distorter.apply(src, dst)

        assert dst.shape == (20, 20, 3)
        np.testing.assert_array_equal(dst[5, 5], [10, 20, 30])
        np.testing.assert_array_equal(dst[15, 15], [0, 0, 0])
