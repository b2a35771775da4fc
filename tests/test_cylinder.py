"""Unit tests for cylinder intersection.

Tests cover:
- Conversion from center/half-height to canonical form
- Side hits from outside and inside
- Rays parallel to the axis and hits outside the finite extent
- Bounding boxes
"""

import numpy as np
import pytest
import taichi as ti


class TestCanonicalize:
    """Tests for canonicalize_cylinder."""

    def test_rebases_center_and_doubles_height(self):
        from whitted.geometry.cylinder import canonicalize_cylinder

        base, axis, radius, height = canonicalize_cylinder(
            center=(0.0, 0.0, -3.0), axis=(0.0, 2.0, 0.0), radius=0.5, half_height=1.0
        )
        assert base == pytest.approx((0.0, -1.0, -3.0))
        assert axis == pytest.approx((0.0, 1.0, 0.0))
        assert radius == 0.5
        assert height == 2.0

    def test_zero_axis_raises(self):
        from whitted.geometry.cylinder import canonicalize_cylinder

        with pytest.raises(ValueError, match="axis"):
            canonicalize_cylinder((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), 1.0, 1.0)


def _hit_unit_cylinder(origin, direction):
    """Intersect a ray with a radius-1 cylinder along y from y=-1 to y=1."""
    from whitted.geometry.cylinder import Cylinder, hit_cylinder, vec3

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    normal = ti.field(dtype=ti.math.vec3, shape=())
    front_face = ti.field(dtype=ti.i32, shape=())

    @ti.kernel
    def test_kernel(o: vec3, d: vec3):
        cylinder = Cylinder(
            base=vec3(0.0, -1.0, 0.0), axis=vec3(0.0, 1.0, 0.0), radius=1.0, height=2.0
        )
        record = hit_cylinder(o, d, cylinder, 0.001, 1000.0)
        hit[None] = record.hit
        t_val[None] = record.t
        normal[None] = record.normal
        front_face[None] = record.front_face

    test_kernel(vec3(*origin), vec3(*direction))
    return hit[None], t_val[None], normal[None], front_face[None]


class TestCylinderIntersection:
    """Tests for ray-cylinder intersection."""

    def test_side_hit_from_outside(self):
        hit, t, normal, front = _hit_unit_cylinder((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert hit == 1
        assert abs(t - 4.0) < 1e-5
        assert abs(normal[2] - 1.0) < 1e-5
        assert abs(normal[1]) < 1e-5
        assert front == 1

    def test_hit_from_inside(self):
        hit, t, normal, front = _hit_unit_cylinder((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        assert hit == 1
        assert abs(t - 1.0) < 1e-5
        assert front == 0
        assert abs(normal[0] + 1.0) < 1e-5

    def test_ray_parallel_to_axis_misses(self):
        hit, _, _, _ = _hit_unit_cylinder((0.5, 5.0, 0.0), (0.0, -1.0, 0.0))
        assert hit == 0

    def test_hit_above_extent_misses(self):
        """Test the infinite-cylinder hit at y = 2 is outside [0, height]."""
        hit, _, _, _ = _hit_unit_cylinder((0.0, 2.0, 5.0), (0.0, 0.0, -1.0))
        assert hit == 0

    def test_open_end_sees_inner_wall(self):
        """Test a ray entering through the open top hits the far inner wall."""
        hit, t, _, front = _hit_unit_cylinder((-2.0, 2.5, 0.0), (1.0, -1.0, 0.0))
        # The near root at x = -1 lies above the top end; the far root is at y = -0.5
        assert hit == 1
        assert abs(t - 3.0) < 1e-4
        assert front == 0


class TestCylinderBounds:
    """Tests for the host-side cylinder bounding box."""

    def test_axis_aligned_bounds(self):
        from whitted.geometry.cylinder import cylinder_bounds

        box_min, box_max = cylinder_bounds((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), 0.5, 2.0)
        np.testing.assert_allclose(box_min, [-0.5, -1.0, -0.5])
        np.testing.assert_allclose(box_max, [0.5, 1.0, 0.5])

    def test_tilted_bounds_contain_end_caps(self):
        from whitted.geometry.cylinder import canonicalize_cylinder, cylinder_bounds

        base, axis, radius, height = canonicalize_cylinder((1.0, 2.0, 3.0), (1.0, 1.0, 0.0), 0.3, 2.0)
        box_min, box_max = cylinder_bounds(base, axis, radius, height)
        top = np.asarray(base) + np.asarray(axis) * height
        for end in (np.asarray(base), top):
            assert (box_min <= end).all()
            assert (box_max >= end).all()
        # The axis lies in the xy-plane, so the disks reach exactly radius along z
        assert box_max[2] - box_min[2] == pytest.approx(2 * radius)
