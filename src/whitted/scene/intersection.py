"""Scene-level primitive storage and ray intersection testing.

This module stores every primitive in Taichi fields and answers the two
ray queries the integrator needs: the closest hit (with material and
texture coordinates) and an any-hit test for shadow rays.

Primitives are stored per type in Structure-of-Arrays layout. A unified
primitive table maps each primitive id to its type, its index in the
type-specific arrays, and its material, so the BVH and the shading code can
refer to any primitive by a single id.

When a BVH has been uploaded the queries walk it without a stack using the
pre-order skip links; otherwise they fall back to a linear scan over all
primitives. Adding a primitive invalidates the BVH.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from whitted.scene.intersection import (
    ...     add_sphere, add_triangle, clear_scene, intersect_scene
    ... )
    >>> clear_scene()
    >>> add_sphere((0, 0, -1), 0.5, material_id=0)
    >>> add_triangle((-1, -1, -2), (1, -1, -2), (0, 1, -2), material_id=0)
    >>> # Use intersect_scene within a Taichi kernel
"""

from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from whitted.geometry.cylinder import Cylinder, canonicalize_cylinder, hit_cylinder
from whitted.geometry.sphere import HitRecord, Sphere, hit_sphere, make_miss_record
from whitted.geometry.triangle import Triangle, hit_triangle

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
vec2 = tm.vec2


class PrimitiveType(IntEnum):
    """Enumeration of supported primitive types."""

    SPHERE = 0
    CYLINDER = 1
    TRIANGLE = 2


# Plain integer tags for use inside kernels
SPHERE_TYPE = 0
CYLINDER_TYPE = 1
TRIANGLE_TYPE = 2

# Direction component magnitude below which a slab is treated as parallel
SLAB_EPSILON = 1e-12


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        hit: Whether the ray intersected any primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
        point: The 3D point where the ray intersected the surface.
        normal: The unit surface normal, facing the ray origin.
        front_face: Whether the ray hit the front face (1) or back face (0).
        uv: Surface texture coordinates.
        material_id: The material ID of the hit primitive, -1 on a miss.
        primitive_id: The unified id of the hit primitive, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    uv: vec2
    material_id: ti.i32
    primitive_id: ti.i32


# Maximum number of primitives supported in the scene
MAX_SPHERES = 1024
MAX_CYLINDERS = 1024
MAX_TRIANGLES = 8192
MAX_PRIMITIVES = MAX_SPHERES + MAX_CYLINDERS + MAX_TRIANGLES

# A binary tree with one primitive per leaf has 2n - 1 nodes
MAX_BVH_NODES = 2 * MAX_PRIMITIVES

# Sphere storage: Structure of Arrays layout for GPU efficiency
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Cylinder storage in canonical form (base cap, unit axis, full height)
cylinder_bases = ti.Vector.field(3, dtype=ti.f32, shape=MAX_CYLINDERS)
cylinder_axes = ti.Vector.field(3, dtype=ti.f32, shape=MAX_CYLINDERS)
cylinder_radii = ti.field(dtype=ti.f32, shape=MAX_CYLINDERS)
cylinder_heights = ti.field(dtype=ti.f32, shape=MAX_CYLINDERS)
num_cylinders = ti.field(dtype=ti.i32, shape=())

# Triangle storage
triangle_v0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_v1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_v2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
num_triangles = ti.field(dtype=ti.i32, shape=())

# Unified primitive table
# primitive_types[i] stores the PrimitiveType of primitive i
primitive_types = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
# primitive_type_indices[i] stores the index into the type-specific arrays
primitive_type_indices = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
primitive_material_ids = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

# Flattened BVH (pre-order, left child at index + 1, next = skip link)
bvh_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_primitive_index = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_next = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all primitives and the BVH from the scene.

    Resets the primitive counts to zero. The actual field data is not
    cleared but will be overwritten when new primitives are added.
    """
    num_spheres[None] = 0
    num_cylinders[None] = 0
    num_triangles[None] = 0
    num_primitives[None] = 0
    num_bvh_nodes[None] = 0


def invalidate_bvh() -> None:
    """Drop the current BVH so queries use the linear scan."""
    num_bvh_nodes[None] = 0


def _register_primitive(prim_type: PrimitiveType, type_index: int, material_id: int) -> int:
    idx = num_primitives[None]
    if idx >= MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")
    primitive_types[idx] = int(prim_type)
    primitive_type_indices[idx] = type_index
    primitive_material_ids[idx] = material_id
    num_primitives[None] = idx + 1
    invalidate_bvh()
    return idx


def add_sphere(center, radius: float, material_id: int = 0) -> int:
    """Add a sphere to the scene.

    Args:
        center: The center point of the sphere.
        radius: The radius of the sphere. Non-positive radii never hit.
        material_id: The material ID to associate with this sphere.

    Returns:
        The unified primitive id of the added sphere.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = vec3(center[0], center[1], center[2])
    sphere_radii[idx] = radius
    num_spheres[None] = idx + 1
    return _register_primitive(PrimitiveType.SPHERE, idx, material_id)


def add_cylinder(center, axis, radius: float, half_height: float, material_id: int = 0) -> int:
    """Add a cylinder to the scene.

    The cylinder is described by the midpoint of its axis and its
    half-height, and stored in canonical form.

    Args:
        center: Midpoint of the cylinder axis.
        axis: Axis direction (any non-zero length).
        radius: Cylinder radius.
        half_height: Distance from the center to each end.
        material_id: The material ID to associate with this cylinder.

    Returns:
        The unified primitive id of the added cylinder.

    Raises:
        RuntimeError: If the maximum number of cylinders is exceeded.
        ValueError: If the axis has zero length.
    """
    base, unit_axis, radius, height = canonicalize_cylinder(center, axis, radius, half_height)

    idx = num_cylinders[None]
    if idx >= MAX_CYLINDERS:
        raise RuntimeError(f"Maximum number of cylinders ({MAX_CYLINDERS}) exceeded")
    cylinder_bases[idx] = vec3(*base)
    cylinder_axes[idx] = vec3(*unit_axis)
    cylinder_radii[idx] = radius
    cylinder_heights[idx] = height
    num_cylinders[None] = idx + 1
    return _register_primitive(PrimitiveType.CYLINDER, idx, material_id)


def add_triangle(v0, v1, v2, material_id: int = 0) -> int:
    """Add a triangle to the scene.

    Args:
        v0: First vertex.
        v1: Second vertex.
        v2: Third vertex.
        material_id: The material ID to associate with this triangle.

    Returns:
        The unified primitive id of the added triangle.

    Raises:
        RuntimeError: If the maximum number of triangles is exceeded.
    """
    idx = num_triangles[None]
    if idx >= MAX_TRIANGLES:
        raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")
    triangle_v0[idx] = vec3(v0[0], v0[1], v0[2])
    triangle_v1[idx] = vec3(v1[0], v1[1], v1[2])
    triangle_v2[idx] = vec3(v2[0], v2[1], v2[2])
    num_triangles[None] = idx + 1
    return _register_primitive(PrimitiveType.TRIANGLE, idx, material_id)


def upload_bvh(flat: dict[str, np.ndarray]) -> None:
    """Copy a flattened BVH into the device fields.

    Args:
        flat: Arrays as returned by ``whitted.geometry.bvh.flatten_bvh``.

    Raises:
        RuntimeError: If the tree has more nodes than MAX_BVH_NODES.
        ValueError: If a leaf references a primitive that does not exist.
    """
    n = len(flat["primitive_index"])
    if n > MAX_BVH_NODES:
        raise RuntimeError(f"Maximum number of BVH nodes ({MAX_BVH_NODES}) exceeded")
    if n > 0 and int(flat["primitive_index"].max()) >= num_primitives[None]:
        raise ValueError("BVH references a primitive that is not in the scene")

    def padded(values: np.ndarray, fill, dtype) -> np.ndarray:
        out = np.full((MAX_BVH_NODES,) + values.shape[1:], fill, dtype=dtype)
        out[:n] = values
        return out

    bvh_min.from_numpy(padded(flat["min"], 0.0, np.float32))
    bvh_max.from_numpy(padded(flat["max"], 0.0, np.float32))
    bvh_primitive_index.from_numpy(padded(flat["primitive_index"], -1, np.int32))
    bvh_next.from_numpy(padded(flat["next"], -1, np.int32))
    num_bvh_nodes[None] = n


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


def get_cylinder_count() -> int:
    """Get the number of cylinders in the scene."""
    return int(num_cylinders[None])


def get_triangle_count() -> int:
    """Get the number of triangles in the scene."""
    return int(num_triangles[None])


def get_primitive_count() -> int:
    """Get the total number of primitives in the scene."""
    return int(num_primitives[None])


def get_bvh_node_count() -> int:
    """Get the number of nodes in the current BVH (0 if none is built)."""
    return int(num_bvh_nodes[None])


# =============================================================================
# Intersection Queries
# =============================================================================


@ti.func
def _hit_record_to_scene_hit_record(
    rec: HitRecord, material_id: ti.i32, primitive_id: ti.i32
) -> SceneHitRecord:
    """Convert a HitRecord to a SceneHitRecord with material and primitive ids."""
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        uv=rec.uv,
        material_id=material_id,
        primitive_id=primitive_id,
    )


@ti.func
def _make_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        uv=vec2(0.0, 0.0),
        material_id=-1,
        primitive_id=-1,
    )


@ti.func
def hit_primitive(
    primitive_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray with one primitive, dispatching on its type."""
    prim_type = primitive_types[primitive_id]
    k = primitive_type_indices[primitive_id]

    rec = make_miss_record()
    if prim_type == SPHERE_TYPE:
        sphere = Sphere(center=sphere_centers[k], radius=sphere_radii[k])
        rec = hit_sphere(ray_origin, ray_direction, sphere, t_min, t_max)
    elif prim_type == CYLINDER_TYPE:
        cylinder = Cylinder(
            base=cylinder_bases[k],
            axis=cylinder_axes[k],
            radius=cylinder_radii[k],
            height=cylinder_heights[k],
        )
        rec = hit_cylinder(ray_origin, ray_direction, cylinder, t_min, t_max)
    elif prim_type == TRIANGLE_TYPE:
        triangle = Triangle(v0=triangle_v0[k], v1=triangle_v1[k], v2=triangle_v2[k])
        rec = hit_triangle(ray_origin, ray_direction, triangle, t_min, t_max)
    return rec


@ti.func
def hit_aabb(
    box_min: vec3,
    box_max: vec3,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test of a ray against an axis-aligned box.

    The interval [t_min, t_max] is shrunk axis by axis. A direction component
    close to zero never produces a reciprocal: the ray misses if its origin
    is outside that slab, and the slab does not constrain the interval
    otherwise.

    Returns:
        1 if the ray overlaps the box within the interval, 0 otherwise.
    """
    t_enter = t_min
    t_exit = t_max
    hit = 1

    for i in ti.static(range(3)):
        if ti.abs(ray_direction[i]) < SLAB_EPSILON:
            if ray_origin[i] < box_min[i] or ray_origin[i] > box_max[i]:
                hit = 0
        else:
            inv_d = 1.0 / ray_direction[i]
            t0 = (box_min[i] - ray_origin[i]) * inv_d
            t1 = (box_max[i] - ray_origin[i]) * inv_d
            t_enter = ti.max(t_enter, ti.min(t0, t1))
            t_exit = ti.min(t_exit, ti.max(t0, t1))

    if t_enter > t_exit:
        hit = 0

    return hit


@ti.func
def intersect_scene_linear(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Test ray against every primitive and keep the closest hit."""
    closest_t = t_max
    result = _make_miss_record()

    n = num_primitives[None]
    for i in range(n):
        rec = hit_primitive(i, ray_origin, ray_direction, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _hit_record_to_scene_hit_record(rec, primitive_material_ids[i], i)

    return result


@ti.func
def intersect_scene_bvh(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Closest-hit query walking the flattened BVH.

    A node whose box is hit descends to its left child (the next slot);
    a leaf or a missed box follows the skip link. The search interval
    shrinks to the closest hit found so far, so boxes behind it are pruned.
    """
    closest_t = t_max
    result = _make_miss_record()

    current = 0
    if num_bvh_nodes[None] == 0:
        current = -1

    while current != -1:
        if hit_aabb(bvh_min[current], bvh_max[current], ray_origin, ray_direction, t_min, closest_t):
            prim = bvh_primitive_index[current]
            if prim != -1:
                rec = hit_primitive(prim, ray_origin, ray_direction, t_min, closest_t)
                if rec.hit == 1:
                    closest_t = rec.t
                    result = _hit_record_to_scene_hit_record(rec, primitive_material_ids[prim], prim)
                current = bvh_next[current]
            else:
                current = current + 1
        else:
            current = bvh_next[current]

    return result


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Test ray against all primitives in the scene.

    Uses the BVH when one is built and the linear scan otherwise.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A SceneHitRecord containing the closest intersection, or a miss
        record if no intersection was found.
    """
    result = _make_miss_record()
    if num_bvh_nodes[None] > 0:
        result = intersect_scene_bvh(ray_origin, ray_direction, t_min, t_max)
    else:
        result = intersect_scene_linear(ray_origin, ray_direction, t_min, t_max)
    return result


@ti.func
def intersect_scene_any(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Test if ray hits any primitive in the scene (shadow ray query).

    Stops at the first hit found, through the BVH when one is built.

    Returns:
        1 if any primitive was hit, 0 otherwise.
    """
    hit_any = 0

    if num_bvh_nodes[None] > 0:
        current = 0
        while current != -1:
            if hit_aabb(bvh_min[current], bvh_max[current], ray_origin, ray_direction, t_min, t_max):
                prim = bvh_primitive_index[current]
                if prim != -1:
                    rec = hit_primitive(prim, ray_origin, ray_direction, t_min, t_max)
                    if rec.hit == 1:
                        hit_any = 1
                    current = bvh_next[current]
                else:
                    current = current + 1
            else:
                current = bvh_next[current]
            if hit_any == 1:
                current = -1
    else:
        n = num_primitives[None]
        for i in range(n):
            if hit_any == 0:
                rec = hit_primitive(i, ray_origin, ray_direction, t_min, t_max)
                if rec.hit == 1:
                    hit_any = 1

    return hit_any
