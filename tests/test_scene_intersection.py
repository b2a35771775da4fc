"""Tests for scene-level intersection queries.

Tests cover:
- Primitive registration and the unified primitive table
- Closest-hit queries over mixed primitive types
- Agreement between the linear scan and the BVH walk
- Any-hit (shadow) queries
- The slab test used for BVH nodes
"""

import numpy as np
import pytest
import taichi as ti


def _closest_hit(origin, direction):
    from whitted.scene.intersection import intersect_scene, vec3

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    prim = ti.field(dtype=ti.i32, shape=())
    mat = ti.field(dtype=ti.i32, shape=())

    @ti.kernel
    def test_kernel(o: vec3, d: vec3):
        rec = intersect_scene(o, d, 1e-4, 1e10)
        hit[None] = rec.hit
        t_val[None] = rec.t
        prim[None] = rec.primitive_id
        mat[None] = rec.material_id

    test_kernel(vec3(*origin), vec3(*direction))
    return hit[None], t_val[None], prim[None], mat[None]


class TestPrimitiveStorage:
    """Tests for adding primitives to the scene fields."""

    def test_unified_ids_follow_insertion_order(self):
        from whitted.scene.intersection import (
            PrimitiveType,
            add_cylinder,
            add_sphere,
            add_triangle,
            get_cylinder_count,
            get_primitive_count,
            get_sphere_count,
            get_triangle_count,
            primitive_type_indices,
            primitive_types,
        )

        assert add_sphere((0.0, 0.0, 0.0), 1.0) == 0
        assert add_triangle((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)) == 1
        assert add_cylinder((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), 1.0, 1.0) == 2
        assert add_sphere((3.0, 0.0, 0.0), 1.0) == 3

        assert get_primitive_count() == 4
        assert get_sphere_count() == 2
        assert get_triangle_count() == 1
        assert get_cylinder_count() == 1
        assert primitive_types[3] == PrimitiveType.SPHERE
        assert primitive_type_indices[3] == 1
        assert primitive_types[2] == PrimitiveType.CYLINDER

    def test_clear_scene(self):
        from whitted.scene.intersection import add_sphere, clear_scene, get_primitive_count

        add_sphere((0.0, 0.0, 0.0), 1.0)
        clear_scene()
        assert get_primitive_count() == 0

    def test_adding_a_primitive_drops_the_bvh(self):
        from whitted.scene.intersection import add_sphere, get_bvh_node_count
        from whitted.scene.manager import SceneManager

        scene = SceneManager()
        mat = scene.add_material(diffuse_color=(0.5, 0.5, 0.5))
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, mat)
        scene.add_sphere((3.0, 0.0, 0.0), 1.0, mat)
        scene.build_bvh()
        assert get_bvh_node_count() == 3

        add_sphere((6.0, 0.0, 0.0), 1.0)
        assert get_bvh_node_count() == 0

    def test_upload_rejects_unknown_primitive(self):
        from whitted.geometry.bvh import build_bvh, flatten_bvh
        from whitted.scene.intersection import add_sphere, upload_bvh

        add_sphere((0.0, 0.0, 0.0), 1.0)
        boxes = [(np.zeros(3), np.ones(3)), (np.ones(3), np.full(3, 2.0))]
        with pytest.raises(ValueError):
            upload_bvh(flatten_bvh(build_bvh(boxes)))


class TestClosestHit:
    """Tests for intersect_scene over mixed primitive types."""

    def _build_row(self):
        from whitted.scene.manager import SceneManager

        scene = SceneManager()
        m0 = scene.add_material(diffuse_color=(1.0, 0.0, 0.0))
        m1 = scene.add_material(diffuse_color=(0.0, 1.0, 0.0))
        m2 = scene.add_material(diffuse_color=(0.0, 0.0, 1.0))
        # Along -z from the origin: triangle at z = -2, sphere front at z = -4,
        # cylinder side at z = -7.5
        scene.add_sphere((0.0, 0.0, -5.0), 1.0, m1)
        scene.add_triangle((-1.0, -1.0, -2.0), (1.0, -1.0, -2.0), (0.0, 1.0, -2.0), m0)
        scene.add_cylinder((0.0, 0.0, -8.0), (0.0, 1.0, 0.0), 0.5, 2.0, m2)
        return scene

    @pytest.mark.parametrize("use_bvh", [False, True])
    def test_nearest_primitive_wins(self, use_bvh):
        scene = self._build_row()
        if use_bvh:
            scene.build_bvh()

        hit, t, prim, mat = _closest_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit == 1
        assert abs(t - 2.0) < 1e-4
        assert prim == 1
        assert mat == 0

    @pytest.mark.parametrize("use_bvh", [False, True])
    def test_ray_past_triangle_hits_sphere(self, use_bvh):
        scene = self._build_row()
        if use_bvh:
            scene.build_bvh()

        # Starts behind the triangle
        hit, t, prim, mat = _closest_hit((0.0, 0.0, -3.0), (0.0, 0.0, -1.0))
        assert hit == 1
        assert abs(t - 1.0) < 1e-4
        assert prim == 0
        assert mat == 1

    def test_empty_scene_misses(self):
        hit, _, _, _ = _closest_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit == 0


class TestLinearBVHAgreement:
    """The BVH must return exactly the hits of the linear scan."""

    @pytest.mark.parametrize("strategy", ["order", "centroid"])
    def test_random_scene(self, strategy):
        from whitted.scene.intersection import intersect_scene_bvh, intersect_scene_linear
        from whitted.scene.manager import SceneManager

        rng = np.random.default_rng(11)
        scene = SceneManager()
        mat = scene.add_material(diffuse_color=(0.5, 0.5, 0.5))
        for _ in range(40):
            c = rng.uniform(-5.0, 5.0, 3)
            scene.add_sphere(tuple(c), float(rng.uniform(0.2, 0.8)), mat)
        for _ in range(20):
            v = rng.uniform(-5.0, 5.0, (3, 3))
            scene.add_triangle(tuple(v[0]), tuple(v[1]), tuple(v[2]), mat)
        for _ in range(10):
            c = rng.uniform(-5.0, 5.0, 3)
            axis = rng.normal(size=3)
            scene.add_cylinder(tuple(c), tuple(axis), 0.3, 0.7, mat)
        scene.build_bvh(strategy)

        n_rays = 512
        origins = ti.Vector.field(3, dtype=ti.f32, shape=n_rays)
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n_rays)
        origins.from_numpy(rng.uniform(-8.0, 8.0, (n_rays, 3)).astype(np.float32))
        directions.from_numpy(rng.normal(size=(n_rays, 3)).astype(np.float32))

        linear_hit = ti.field(dtype=ti.i32, shape=n_rays)
        linear_prim = ti.field(dtype=ti.i32, shape=n_rays)
        linear_t = ti.field(dtype=ti.f32, shape=n_rays)
        bvh_hit = ti.field(dtype=ti.i32, shape=n_rays)
        bvh_prim = ti.field(dtype=ti.i32, shape=n_rays)
        bvh_t = ti.field(dtype=ti.f32, shape=n_rays)

        @ti.kernel
        def test_kernel():
            for i in range(n_rays):
                a = intersect_scene_linear(origins[i], directions[i], 1e-4, 1e10)
                b = intersect_scene_bvh(origins[i], directions[i], 1e-4, 1e10)
                linear_hit[i] = a.hit
                linear_prim[i] = a.primitive_id
                linear_t[i] = a.t
                bvh_hit[i] = b.hit
                bvh_prim[i] = b.primitive_id
                bvh_t[i] = b.t

        test_kernel()
        lh = linear_hit.to_numpy()
        assert lh.sum() > 0
        np.testing.assert_array_equal(lh, bvh_hit.to_numpy())
        np.testing.assert_allclose(linear_t.to_numpy(), bvh_t.to_numpy(), rtol=1e-5, atol=1e-5)
        mask = lh == 1
        np.testing.assert_array_equal(linear_prim.to_numpy()[mask], bvh_prim.to_numpy()[mask])


class TestAnyHit:
    """Tests for intersect_scene_any."""

    @pytest.mark.parametrize("use_bvh", [False, True])
    def test_blocked_and_clear(self, use_bvh):
        from whitted.scene.intersection import intersect_scene_any, vec3
        from whitted.scene.manager import SceneManager

        scene = SceneManager()
        mat = scene.add_material(diffuse_color=(0.5, 0.5, 0.5))
        scene.add_sphere((0.0, 0.0, -5.0), 1.0, mat)
        scene.add_sphere((4.0, 0.0, -5.0), 1.0, mat)
        if use_bvh:
            scene.build_bvh()

        result = ti.field(dtype=ti.i32, shape=3)

        @ti.kernel
        def test_kernel():
            origin = vec3(0.0, 0.0, 0.0)
            # Blocked: the light is behind the sphere
            result[0] = intersect_scene_any(origin, vec3(0.0, 0.0, -10.0), 1e-3, 1.0)
            # Clear: the light is in front of the sphere
            result[1] = intersect_scene_any(origin, vec3(0.0, 0.0, -3.0), 1e-3, 1.0)
            # Clear: the segment ends between the spheres, about 1.86 from
            # the first center and 2 from the second
            result[2] = intersect_scene_any(origin, vec3(2.0, 0.0, -5.0), 1e-3, 1.0)

        test_kernel()
        assert result[0] == 1
        assert result[1] == 0
        assert result[2] == 0


class TestSlabTest:
    """Tests for hit_aabb."""

    def test_zero_direction_component(self):
        """Test axis-parallel rays inside and outside a slab."""
        from whitted.scene.intersection import hit_aabb, vec3

        result = ti.field(dtype=ti.i32, shape=3)

        @ti.kernel
        def test_kernel():
            bmin = vec3(-1.0, -1.0, -1.0)
            bmax = vec3(1.0, 1.0, 1.0)
            result[0] = hit_aabb(bmin, bmax, vec3(0.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), 0.0, 100.0)
            result[1] = hit_aabb(bmin, bmax, vec3(2.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), 0.0, 100.0)
            # Box lies beyond t_max
            result[2] = hit_aabb(bmin, bmax, vec3(0.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), 0.0, 3.0)

        test_kernel()
        assert result[0] == 1
        assert result[1] == 0
        assert result[2] == 0

    def test_flat_box(self):
        """Test a box with zero thickness along the ray is still hit."""
        from whitted.scene.intersection import hit_aabb, vec3

        result = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = hit_aabb(
                vec3(-1.0, -1.0, 0.0),
                vec3(1.0, 1.0, 0.0),
                vec3(0.2, 0.3, 4.0),
                vec3(0.0, 0.0, -1.0),
                0.0,
                100.0,
            )

        test_kernel()
        assert result[None] == 1
