"""Tests for the pinhole camera.

Tests cover:
- Camera basis and image plane extent
- Ray generation orientation (u left to right, v top to bottom)
- Thin-lens sampling
- Rejection of degenerate configurations
"""

import math

import pytest
import taichi as ti


def _camera(**overrides):
    from whitted.camera.pinhole import PinholeCamera

    params = dict(
        position=(0.0, 0.0, 0.0),
        look_at=(0.0, 0.0, -1.0),
        up=(0.0, 1.0, 0.0),
        fov=90.0,
        exposure=1.0,
        width=200,
        height=100,
    )
    params.update(overrides)
    return PinholeCamera(**params)


def _ray(u, v):
    from whitted.camera.pinhole import get_ray

    origin = ti.field(dtype=ti.math.vec3, shape=())
    direction = ti.field(dtype=ti.math.vec3, shape=())

    @ti.kernel
    def test_kernel(uu: ti.f32, vv: ti.f32):
        ray = get_ray(uu, vv)
        origin[None] = ray.origin
        direction[None] = ray.direction

    test_kernel(u, v)
    return origin[None], direction[None]


class TestCameraSetup:
    """Tests for setup_camera."""

    def test_basis_and_extent(self):
        from whitted.camera.pinhole import get_camera_info, setup_camera

        camera = _camera()
        setup_camera(camera)
        info = get_camera_info()

        assert info["forward"] == pytest.approx((0.0, 0.0, -1.0))
        assert info["right"] == pytest.approx((1.0, 0.0, 0.0))
        assert info["up"] == pytest.approx((0.0, 1.0, 0.0))
        assert info["image_center"] == pytest.approx((0.0, 0.0, -1.0))
        assert info["half_height"] == pytest.approx(1.0)
        assert info["half_width"] == pytest.approx(2.0)
        assert info["lens_radius"] == 0.0
        assert camera.aspect_ratio == pytest.approx(2.0)

    def test_up_is_orthogonalized(self):
        from whitted.camera.pinhole import get_camera_info, setup_camera

        setup_camera(_camera(up=(0.0, 1.0, 1.0)))
        info = get_camera_info()
        assert info["up"] == pytest.approx((0.0, 1.0, 0.0), abs=1e-6)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"width": 0},
            {"height": -5},
            {"fov": 0.0},
            {"fov": 180.0},
            {"aperture": -0.1},
            {"look_at": (0.0, 0.0, 0.0)},
            {"up": (0.0, 0.0, 2.0)},
        ],
    )
    def test_degenerate_configuration_raises(self, overrides):
        from whitted.camera.pinhole import setup_camera

        with pytest.raises(ValueError):
            setup_camera(_camera(**overrides))


class TestRayGeneration:
    """Tests for get_ray."""

    def test_center_ray_points_forward(self):
        from whitted.camera.pinhole import setup_camera

        setup_camera(_camera(position=(1.0, 2.0, 3.0), look_at=(1.0, 2.0, 0.0)))
        origin, direction = _ray(0.5, 0.5)
        assert abs(origin[0] - 1.0) < 1e-6
        assert abs(origin[2] - 3.0) < 1e-6
        assert abs(direction[2] + 1.0) < 1e-6

    def test_top_left_corner(self):
        """Test v = 0 is the top of the image and u = 0 the left edge."""
        from whitted.camera.pinhole import setup_camera

        setup_camera(_camera())
        _, direction = _ray(0.0, 0.0)
        # Plane point (-2, 1, -1)
        norm = math.sqrt(6.0)
        assert abs(direction[0] + 2.0 / norm) < 1e-5
        assert abs(direction[1] - 1.0 / norm) < 1e-5
        assert abs(direction[2] + 1.0 / norm) < 1e-5

    def test_bottom_right_corner(self):
        from whitted.camera.pinhole import setup_camera

        setup_camera(_camera())
        _, direction = _ray(1.0, 1.0)
        assert direction[0] > 0.0
        assert direction[1] < 0.0

    def test_directions_are_unit_length(self):
        from whitted.camera.pinhole import setup_camera

        setup_camera(_camera(fov=35.0))
        _, direction = _ray(0.1, 0.9)
        assert abs(math.sqrt(sum(direction[c] ** 2 for c in range(3))) - 1.0) < 1e-5

    def test_aperture_rays_meet_at_focus(self):
        """Test lens rays start on the lens disk and pass through the focus point."""
        from whitted.camera.pinhole import get_ray, setup_camera

        setup_camera(_camera(look_at=(0.0, 0.0, -4.0), aperture=0.5))

        n = 64
        origins = ti.Vector.field(3, dtype=ti.f32, shape=n)
        focus = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                ray = get_ray(0.5, 0.5)
                origins[i] = ray.origin
                # The center ray focuses at z = -4
                t = (-4.0 - ray.origin.z) / ray.direction.z
                focus[i] = ray.origin + t * ray.direction

        test_kernel()
        o = origins.to_numpy()
        f = focus.to_numpy()
        radii = (o[:, 0] ** 2 + o[:, 1] ** 2) ** 0.5
        assert (radii <= 0.25 + 1e-5).all()
        assert radii.max() > 0.0
        assert (abs(o[:, 2]) < 1e-6).all()
        assert (abs(f[:, 0]) < 1e-4).all()
        assert (abs(f[:, 1]) < 1e-4).all()

    def test_jittered_ray_stays_in_pixel(self):
        from whitted.camera.pinhole import get_ray_jittered, setup_camera

        setup_camera(_camera())

        n = 128
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                directions[i] = get_ray_jittered(0, 0, 200, 100).direction

        test_kernel()
        d = directions.to_numpy()
        # Project back onto the z = -1 image plane
        x = d[:, 0] / -d[:, 2]
        y = d[:, 1] / -d[:, 2]
        pixel_w = 4.0 / 200
        pixel_h = 2.0 / 100
        assert (x >= -2.0 - 1e-5).all() and (x <= -2.0 + pixel_w + 1e-5).all()
        assert (y <= 1.0 + 1e-5).all() and (y >= 1.0 - pixel_h - 1e-5).all()
