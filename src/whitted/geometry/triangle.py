"""Triangle primitive with Moller-Trumbore ray-triangle intersection.

A triangle is defined by its three vertices v0, v1, v2. The geometric normal
is normalize(cross(v1 - v0, v2 - v0)) and is constant across the face.
Texture coordinates are the barycentric (u, v) of the hit point.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from whitted.geometry.triangle import Triangle, hit_triangle
    >>> tri = Triangle(
    ...     v0=ti.math.vec3(-1, -1, -2),
    ...     v1=ti.math.vec3(1, -1, -2),
    ...     v2=ti.math.vec3(0, 1, -2),
    ... )
    >>> # Use hit_triangle within a Taichi kernel
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from whitted.core.ray import normalize, set_face_normal

from .sphere import HitRecord, make_miss_record

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
vec2 = tm.vec2

# Determinant magnitude below which the ray is parallel to the triangle plane
PARALLEL_EPSILON = 1e-5

# Squared cross-product length below which a triangle has zero area
DEGENERATE_EPSILON = 1e-12

# Padding for flat bounding boxes so slab tests never see zero thickness
BOUNDS_PADDING = 1e-4


@ti.dataclass
class Triangle:
    """A triangle defined by three vertices.

    Attributes:
        v0: First vertex (vec3).
        v1: Second vertex (vec3).
        v2: Third vertex (vec3).
    """

    v0: vec3
    v1: vec3
    v2: vec3


@ti.func
def triangle_normal(triangle: Triangle) -> vec3:
    """Unit geometric normal, zero for a degenerate triangle."""
    return normalize(tm.cross(triangle.v1 - triangle.v0, triangle.v2 - triangle.v0))


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    triangle: Triangle,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-triangle intersection using Moller-Trumbore.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        triangle: The triangle to test.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord containing intersection information. Zero-area triangles
        and rays parallel to the triangle plane always miss.
    """
    e1 = triangle.v1 - triangle.v0
    e2 = triangle.v2 - triangle.v0
    n = tm.cross(e1, e2)

    result = make_miss_record()

    h = tm.cross(ray_direction, e2)
    a = tm.dot(e1, h)

    if tm.dot(n, n) > DEGENERATE_EPSILON and ti.abs(a) >= PARALLEL_EPSILON:
        f = 1.0 / a
        s = ray_origin - triangle.v0
        u = f * tm.dot(s, h)

        if u >= 0.0 and u <= 1.0:
            q = tm.cross(s, e1)
            v = f * tm.dot(ray_direction, q)

            if v >= 0.0 and u + v <= 1.0:
                t = f * tm.dot(e2, q)

                if t > t_min and t < t_max:
                    point = ray_origin + t * ray_direction
                    outward_normal = normalize(n)
                    normal, front_face = set_face_normal(ray_direction, outward_normal)

                    result = HitRecord(
                        hit=1,
                        t=t,
                        point=point,
                        normal=normal,
                        front_face=front_face,
                        uv=vec2(u, v),
                    )

    return result


def triangle_bounds(
    v0: tuple[float, float, float],
    v1: tuple[float, float, float],
    v2: tuple[float, float, float],
) -> tuple[np.ndarray, np.ndarray]:
    """Compute the padded axis-aligned bounding box of a triangle."""
    vertices = np.array([v0, v1, v2], dtype=np.float64)
    return vertices.min(axis=0) - BOUNDS_PADDING, vertices.max(axis=0) + BOUNDS_PADDING


def triangle_area(
    v0: tuple[float, float, float],
    v1: tuple[float, float, float],
    v2: tuple[float, float, float],
) -> float:
    """Area of a triangle; zero for collinear vertices."""
    a = np.asarray(v0, dtype=np.float64)
    b = np.asarray(v1, dtype=np.float64)
    c = np.asarray(v2, dtype=np.float64)
    return 0.5 * float(np.linalg.norm(np.cross(b - a, c - a)))
