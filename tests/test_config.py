"""Tests for MosaicConfig validation and YAML loading."""

import numpy as np
import pytest

from motion_mosaic.config import MosaicConfig, load_config
from motion_mosaic.errors import DegenerateTransformError


@pytest.fixture
def config_file(tmp_path):
    def _write(text):
        path = tmp_path / "mosaic.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


class TestMosaicConfig:
    def test_defaults(self):
        config = MosaicConfig.from_mapping({"width_stitch": 200, "height_stitch": 100})
        assert config.max_jump_fraction == 0.3
        assert config.motion_model == "homography"
        assert config.interpolation == "linear"
        assert config.world_to_init is None

    def test_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown"):
            MosaicConfig.from_mapping({"width_stitch": 1, "height_stitch": 1, "blend": "feather"})

    def test_missing_size(self):
        with pytest.raises(ValueError, match="height_stitch"):
            MosaicConfig.from_mapping({"width_stitch": 100})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"width_stitch": 0},
            {"height_stitch": -5},
            {"width_stitch": True},
            {"max_jump_fraction": 0.0},
            {"max_jump_fraction": float("nan")},
            {"motion_model": "rigid"},
            {"interpolation": "area"},
        ],
    )
    def test_invalid_values(self, overrides):
        data = {"width_stitch": 100, "height_stitch": 100}
        data.update(overrides)
        with pytest.raises(ValueError):
            MosaicConfig.from_mapping(data)

    def test_world_to_init_from_scale_mapping(self):
        config = MosaicConfig.from_mapping(
            {
                "width_stitch": 100,
                "height_stitch": 100,
                "world_to_init": {"scale": 0.5, "tx": -10, "ty": 4},
            }
        )
        np.testing.assert_allclose(
            config.world_to_init, [[0.5, 0.0, -10.0], [0.0, 0.5, 4.0], [0.0, 0.0, 1.0]]
        )

    def test_world_to_init_from_matrix(self):
        config = MosaicConfig.from_mapping(
            {
                "width_stitch": 100,
                "height_stitch": 100,
                "motion_model": "Affine",
                "world_to_init": [[1, 0, 3], [0, 1, 4], [0, 0, 1]],
            }
        )
        assert config.motion_model == "affine"
        assert config.world_to_init[0] == (1.0, 0.0, 3.0)

    def test_world_to_init_bad_shape(self):
        with pytest.raises(ValueError):
            MosaicConfig.from_mapping(
                {"width_stitch": 10, "height_stitch": 10, "world_to_init": [[1, 0], [0, 1]]}
            )

    def test_world_to_init_affine_needs_last_row(self):
        with pytest.raises(ValueError):
            MosaicConfig.from_mapping(
                {
                    "width_stitch": 10,
                    "height_stitch": 10,
                    "motion_model": "affine",
                    "world_to_init": [[1, 0, 0], [0, 1, 0], [0.1, 0, 1]],
                }
            )

    def test_world_to_init_singular(self):
        with pytest.raises(DegenerateTransformError):
            MosaicConfig.from_mapping(
                {"width_stitch": 10, "height_stitch": 10, "world_to_init": {"scale": 0.0}}
            )


class TestLoadConfig:
    def test_nested_under_mosaic(self, config_file):
        path = config_file(
            "mosaic:\n"
            "  width_stitch: 640\n"
            "  height_stitch: 480\n"
            "  max_jump_fraction: 0.2\n"
            "  interpolation: nearest\n"
        )
        config = load_config(path)
        assert (config.width_stitch, config.height_stitch) == (640, 480)
        assert config.max_jump_fraction == 0.2
        assert config.interpolation == "nearest"

    def test_top_level(self, config_file):
        config = load_config(config_file("width_stitch: 64\nheight_stitch: 32\n"))
        assert config.width_stitch == 64

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_root_must_be_mapping(self, config_file):
        with pytest.raises(ValueError, match="mapping"):
            load_config(config_file("- 1\n- 2\n"))

    def test_invalid_yaml(self, config_file):
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(config_file("width_stitch: [1, 2\n"))
