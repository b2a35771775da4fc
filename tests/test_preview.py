"""Tests for the preview module.

This module tests the preview/display and preview/export functionality including:
- Reinhard exposure tone mapping
- Gamma correction
- PPM (P3 and P6) and PNG export

Note: Tests avoid displaying actual windows by not calling show_preview
in automated tests. The processing functions are tested directly.
"""

import numpy as np
import pytest
from PIL import Image as PILImage

from whitted.preview.display import (
    apply_gamma,
    luminance,
    process_image_for_display,
    tone_map_reinhard,
)
from whitted.preview.export import image_to_uint8, save_image, save_ppm


class TestToneMapReinhard:
    """Test Reinhard tone mapping."""

    def test_reinhard_preserves_black(self):
        image = np.zeros((4, 4, 3), dtype=np.float32)
        result = tone_map_reinhard(image, exposure=0.0)
        assert np.all(result == 0.0)

    def test_scale_uses_luminance(self):
        image = np.array([[[1.0, 1.0, 1.0]]], dtype=np.float32)
        # L = 1, e = 1: scale 1/2
        np.testing.assert_allclose(tone_map_reinhard(image, 1.0), [[[0.5, 0.5, 0.5]]], atol=1e-6)

    def test_hue_is_preserved(self):
        image = np.array([[[2.0, 1.0, 0.5]]], dtype=np.float32)
        result = tone_map_reinhard(image, 0.3)[0, 0]
        assert result[0] / result[1] == pytest.approx(2.0, rel=1e-5)
        assert result[1] / result[2] == pytest.approx(2.0, rel=1e-5)

    def test_monotone_in_intensity(self):
        levels = np.linspace(0.0, 50.0, 64, dtype=np.float32)
        image = np.repeat(levels[np.newaxis, :, np.newaxis], 3, axis=2)
        mapped = tone_map_reinhard(image, 0.1)[0, :, 0]
        assert np.all(np.diff(mapped) >= 0.0)
        assert mapped.max() < 1.0

    def test_negative_values_are_clamped(self):
        image = np.array([[[-1.0, 0.5, 0.5]]], dtype=np.float32)
        assert tone_map_reinhard(image, 1.0)[0, 0, 0] == 0.0

    def test_negative_exposure_raises(self):
        with pytest.raises(ValueError, match="Exposure"):
            tone_map_reinhard(np.zeros((1, 1, 3), dtype=np.float32), -0.1)

    def test_luminance_weights(self):
        image = np.array([[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]], dtype=np.float32)
        np.testing.assert_allclose(luminance(image), [[0.2126, 0.7152]], atol=1e-6)


class TestGamma:
    """Test gamma correction."""

    def test_gamma_one_is_identity(self):
        image = np.full((2, 2, 3), 0.3, dtype=np.float32)
        assert apply_gamma(image, 1.0) is image

    def test_gamma_22(self):
        image = np.full((1, 1, 3), 0.5, dtype=np.float32)
        result = apply_gamma(image, 2.2)
        assert result[0, 0, 0] == pytest.approx(0.5 ** (1.0 / 2.2), rel=1e-5)

    def test_endpoints_fixed(self):
        image = np.array([[[0.0, 1.0, 2.0]]], dtype=np.float32)
        np.testing.assert_allclose(apply_gamma(image, 2.2), [[[0.0, 1.0, 1.0]]])


class TestProcessImageForDisplay:
    """Test the full display pipeline."""

    def test_no_tone_mapping_only_clamps(self):
        image = np.array([[[-0.5, 0.25, 3.0]]], dtype=np.float32)
        result = process_image_for_display(image, tone_map="none", gamma=1.0)
        np.testing.assert_allclose(result, [[[0.0, 0.25, 1.0]]])

    def test_does_not_modify_input(self):
        image = np.full((2, 2, 3), 4.0, dtype=np.float32)
        process_image_for_display(image, exposure=0.5)
        assert np.all(image == 4.0)

    def test_unknown_method_raises(self):
        with pytest.raises(ValueError, match="tone mapping"):
            process_image_for_display(np.zeros((1, 1, 3), dtype=np.float32), tone_map="aces")


class TestExport:
    """Test PPM and PNG output."""

    def _image(self):
        image = np.zeros((2, 3, 3), dtype=np.float32)
        image[0, 0] = (1.0, 0.0, 0.0)
        image[0, 2] = (0.0, 0.0, 1.0)
        image[1, 1] = (0.5, 0.5, 0.5)
        return image

    def test_image_to_uint8_quantization(self):
        pixels = image_to_uint8(np.array([[[0.0, 0.5, 1.0]]], dtype=np.float32))
        assert pixels.dtype == np.uint8
        assert tuple(pixels[0, 0]) == (0, 127, 255)

    def test_ascii_ppm(self, tmp_path):
        path = tmp_path / "out.ppm"
        save_ppm(self._image(), path)

        lines = path.read_text(encoding="ascii").splitlines()
        assert lines[:3] == ["P3", "3 2", "255"]
        # Top row first, left to right
        assert lines[3].split() == ["255", "0", "0", "0", "0", "0", "0", "0", "255"]
        assert lines[4].split() == ["0", "0", "0", "127", "127", "127", "0", "0", "0"]
        assert len(lines) == 5

    def test_binary_ppm(self, tmp_path):
        path = tmp_path / "out.ppm"
        save_ppm(self._image(), path, binary=True)

        assert path.read_bytes().startswith(b"P6")
        with PILImage.open(path) as img:
            assert img.size == (3, 2)
            assert img.getpixel((0, 0)) == (255, 0, 0)
            assert img.getpixel((1, 1)) == (127, 127, 127)

    def test_save_image_picks_png_by_suffix(self, tmp_path):
        path = tmp_path / "out.PNG"
        save_image(self._image(), path)

        with PILImage.open(path) as img:
            assert img.format == "PNG"
            assert img.getpixel((2, 0)) == (0, 0, 255)

    def test_save_image_defaults_to_ppm(self, tmp_path):
        path = tmp_path / "render.img"
        save_image(self._image(), path)
        assert path.read_text(encoding="ascii").startswith("P3\n3 2\n255\n")

    def test_tone_mapping_on_export(self, tmp_path):
        path = tmp_path / "out.ppm"
        image = np.full((1, 1, 3), 1.0, dtype=np.float32)
        save_ppm(image, path, tone_map="reinhard", exposure=1.0)
        # 1 * 1 / (1 + 1) = 0.5
        assert path.read_text(encoding="ascii").split()[4:] == ["127", "127", "127"]

    def test_bad_shape_raises(self, tmp_path):
        with pytest.raises(ValueError, match="shape"):
            save_ppm(np.zeros((4, 4), dtype=np.float32), tmp_path / "bad.ppm")
