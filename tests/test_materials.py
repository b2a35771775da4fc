"""Tests for Phong materials and image textures.

Tests cover:
- Material registry validation
- The local Phong term
- Texture atlas uploads, bilinear sampling and file loading
"""

import numpy as np
import pytest
import taichi as ti
from PIL import Image as PILImage


class TestPhongMaterialRegistry:
    """Tests for add_phong_material."""

    def test_defaults(self):
        from whitted.materials.material import (
            add_phong_material,
            get_material_count,
            material_ka,
            material_kd,
            material_ks,
            material_texture_ids,
        )

        idx = add_phong_material(diffuse_color=(0.5, 0.5, 0.5))
        assert idx == 0
        assert get_material_count() == 1
        assert abs(material_ka[idx] - 0.2) < 1e-6
        assert abs(material_kd[idx] - 0.8) < 1e-6
        assert material_ks[idx] == 0.0
        assert material_texture_ids[idx] == -1

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"diffuse_color": (-0.1, 0.0, 0.0)},
            {"diffuse_color": (0.5, 0.5)},
            {"diffuse_color": (0.5, 0.5, 0.5), "specular_color": (1.0, -1.0, 1.0)},
            {"diffuse_color": (0.5, 0.5, 0.5), "ks": -0.1},
            {"diffuse_color": (0.5, 0.5, 0.5), "specular_exponent": -2.0},
            {"diffuse_color": (0.5, 0.5, 0.5), "reflectivity": 1.1},
            {"diffuse_color": (0.5, 0.5, 0.5), "refractive_index": -1.0},
            {"diffuse_color": (0.5, 0.5, 0.5), "texture_id": -2},
        ],
    )
    def test_invalid_parameters_raise(self, kwargs):
        from whitted.materials.material import add_phong_material, get_material_count

        with pytest.raises(ValueError):
            add_phong_material(**kwargs)
        assert get_material_count() == 0

    def test_get_material_in_kernel(self):
        from whitted.materials.material import add_phong_material, get_material

        idx = add_phong_material(
            diffuse_color=(0.1, 0.2, 0.3), is_reflective=True, reflectivity=0.7, specular_exponent=32.0
        )
        reflective = ti.field(dtype=ti.i32, shape=())
        reflectivity = ti.field(dtype=ti.f32, shape=())
        exponent = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(i: ti.i32):
            m = get_material(i)
            reflective[None] = m.is_reflective
            reflectivity[None] = m.reflectivity
            exponent[None] = m.specular_exponent

        test_kernel(idx)
        assert reflective[None] == 1
        assert abs(reflectivity[None] - 0.7) < 1e-6
        assert abs(exponent[None] - 32.0) < 1e-6


class TestPhongLocal:
    """Tests for the per-light Phong term."""

    def test_light_along_normal(self):
        """Test N.L = N.H = 1 gives diffuse*I*kd + specular*I*ks."""
        from whitted.materials.material import PhongMaterial, phong_local, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            m = PhongMaterial(
                ks=0.5,
                kd=0.8,
                ka=0.2,
                specular_exponent=10.0,
                diffuse_color=vec3(1.0, 0.5, 0.0),
                specular_color=vec3(1.0, 1.0, 1.0),
                is_reflective=0,
                reflectivity=0.0,
                is_refractive=0,
                refractive_index=1.0,
                texture_id=-1,
            )
            n = vec3(0.0, 1.0, 0.0)
            result[None] = phong_local(m, m.diffuse_color, vec3(2.0, 2.0, 2.0), n, n, n)

        test_kernel()
        r = result[None]
        assert abs(r[0] - (2.0 * 0.8 + 2.0 * 0.5)) < 1e-5
        assert abs(r[1] - (1.0 * 0.8 + 2.0 * 0.5)) < 1e-5
        assert abs(r[2] - 1.0) < 1e-5

    def test_light_behind_surface(self):
        """Test a light below the surface contributes nothing."""
        from whitted.materials.material import PhongMaterial, phong_local, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            m = PhongMaterial(
                ks=0.5,
                kd=0.8,
                ka=0.2,
                specular_exponent=10.0,
                diffuse_color=vec3(1.0, 1.0, 1.0),
                specular_color=vec3(1.0, 1.0, 1.0),
                is_reflective=0,
                reflectivity=0.0,
                is_refractive=0,
                refractive_index=1.0,
                texture_id=-1,
            )
            n = vec3(0.0, 1.0, 0.0)
            down = vec3(0.0, -1.0, 0.0)
            result[None] = phong_local(m, m.diffuse_color, vec3(1.0, 1.0, 1.0), n, down, down)

        test_kernel()
        r = result[None]
        for c in range(3):
            assert abs(r[c]) < 1e-6


def _sample(tex_id, u, v):
    from whitted.materials.texture import sample_texture

    result = ti.field(dtype=ti.math.vec3, shape=())

    @ti.kernel
    def test_kernel(t: ti.i32, uu: ti.f32, vv: ti.f32):
        result[None] = sample_texture(t, uu, vv)

    test_kernel(tex_id, u, v)
    return result[None]


class TestTextures:
    """Tests for the texture atlas."""

    def _two_by_two(self):
        image = np.zeros((2, 2, 3), dtype=np.float32)
        image[0, 0] = (1.0, 0.0, 0.0)  # top left
        image[0, 1] = (0.0, 1.0, 0.0)  # top right
        image[1, 0] = (0.0, 0.0, 1.0)  # bottom left
        image[1, 1] = (1.0, 1.0, 1.0)  # bottom right
        return image

    def test_corner_samples(self):
        from whitted.materials.texture import add_texture_array

        tex = add_texture_array(self._two_by_two())
        top_left = _sample(tex, 0.0, 0.0)
        bottom_right = _sample(tex, 1.0, 1.0)
        assert abs(top_left[0] - 1.0) < 1e-6 and abs(top_left[1]) < 1e-6
        assert all(abs(bottom_right[c] - 1.0) < 1e-6 for c in range(3))

    def test_bilinear_center(self):
        from whitted.materials.texture import add_texture_array

        tex = add_texture_array(self._two_by_two())
        c = _sample(tex, 0.5, 0.5)
        assert abs(c[0] - 0.5) < 1e-5
        assert abs(c[1] - 0.5) < 1e-5
        assert abs(c[2] - 0.5) < 1e-5

    def test_coordinates_are_clamped(self):
        from whitted.materials.texture import add_texture_array

        tex = add_texture_array(self._two_by_two())
        c = _sample(tex, -3.0, 7.0)
        # Bottom left
        assert abs(c[2] - 1.0) < 1e-6
        assert abs(c[0]) < 1e-6

    def test_second_texture_uses_its_own_texels(self):
        from whitted.materials.texture import add_texture_array, get_texture_count

        add_texture_array(self._two_by_two())
        green = np.zeros((3, 5, 3), dtype=np.float32)
        green[..., 1] = 1.0
        tex = add_texture_array(green)
        assert tex == 1
        assert get_texture_count() == 2
        c = _sample(tex, 0.3, 0.8)
        assert abs(c[0]) < 1e-6
        assert abs(c[1] - 1.0) < 1e-6

    def test_bad_shape_raises(self):
        from whitted.materials.texture import add_texture_array

        with pytest.raises(ValueError):
            add_texture_array(np.zeros((4, 4), dtype=np.float32))

    def test_load_texture_from_png(self, tmp_path):
        from whitted.materials.texture import load_texture, texture_heights, texture_widths

        pixels = np.zeros((2, 3, 3), dtype=np.uint8)
        pixels[:, :, 0] = 255
        path = tmp_path / "red.png"
        PILImage.fromarray(pixels).save(path)

        tex = load_texture(path)
        assert tex == 0
        assert texture_widths[tex] == 3
        assert texture_heights[tex] == 2
        c = _sample(tex, 0.5, 0.5)
        assert abs(c[0] - 1.0) < 1e-6

    def test_missing_file_returns_minus_one(self, tmp_path, caplog):
        from whitted.materials.texture import get_texture_count, load_texture

        with caplog.at_level("WARNING"):
            assert load_texture(tmp_path / "missing.png") == -1
        assert get_texture_count() == 0
        assert "missing.png" in caplog.text
