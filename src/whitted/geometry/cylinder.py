"""Finite open cylinder primitive with ray-cylinder intersection.

A cylinder is stored in canonical form:
- base: center of one end cap
- axis: unit vector from the base toward the other end cap
- radius: distance from the axis to the surface
- height: full length along the axis

Scene documents describe a cylinder by its center and half-height, so
``canonicalize_cylinder`` re-bases the center to the lower end cap and
doubles the height before the cylinder is stored. The surface has no caps
and is two-sided: rays starting inside see the inner wall.

Ray-cylinder intersection projects the ray onto the plane perpendicular to
the axis and solves the resulting quadratic. Each root is accepted only if
its projection onto the axis lies within [0, height].

Example:
    >>> base, axis, radius, height = canonicalize_cylinder(
    ...     center=(0.0, 0.0, -3.0), axis=(0.0, 2.0, 0.0), radius=0.5, half_height=1.0
    ... )
    >>> axis
    (0.0, 1.0, 0.0)
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from whitted.core.ray import build_onb_from_axis, normalize, set_face_normal

from .sphere import HitRecord, make_miss_record

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
vec2 = tm.vec2

# Perpendicular quadratic coefficient below which the ray runs along the axis
PARALLEL_EPSILON = 1e-8


@ti.dataclass
class Cylinder:
    """A finite open cylinder in canonical form.

    Attributes:
        base: Center of the lower end cap (vec3).
        axis: Unit axis direction (vec3).
        radius: Cylinder radius.
        height: Full length along the axis.
    """

    base: vec3
    axis: vec3
    radius: ti.f32
    height: ti.f32


def canonicalize_cylinder(
    center: tuple[float, float, float],
    axis: tuple[float, float, float],
    radius: float,
    half_height: float,
) -> tuple[tuple[float, float, float], tuple[float, float, float], float, float]:
    """Convert a center/half-height description into canonical form.

    Args:
        center: Midpoint of the cylinder axis.
        axis: Axis direction (any non-zero length).
        radius: Cylinder radius.
        half_height: Distance from the center to each end cap.

    Returns:
        Tuple of (base, unit_axis, radius, height) where base is the lower
        end cap and height = 2 * half_height.

    Raises:
        ValueError: If the axis has zero length.
    """
    ax = np.asarray(axis, dtype=np.float64)
    norm = float(np.linalg.norm(ax))
    if norm < 1e-12:
        raise ValueError(f"Cylinder axis must be non-zero, got {tuple(axis)}")
    ax = ax / norm

    height = 2.0 * float(half_height)
    base = np.asarray(center, dtype=np.float64) - ax * (height / 2.0)

    return (
        (float(base[0]), float(base[1]), float(base[2])),
        (float(ax[0]), float(ax[1]), float(ax[2])),
        float(radius),
        height,
    )


def cylinder_bounds(
    base: tuple[float, float, float],
    axis: tuple[float, float, float],
    radius: float,
    height: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Compute the axis-aligned bounding box of a canonical cylinder.

    The box is the union of the two end-cap disks. A disk with unit normal
    n extends radius * sqrt(1 - n_i^2) along world axis i.
    """
    b = np.asarray(base, dtype=np.float64)
    a = np.asarray(axis, dtype=np.float64)
    top = b + a * float(height)
    extent = float(radius) * np.sqrt(np.clip(1.0 - a * a, 0.0, 1.0))
    box_min = np.minimum(b, top) - extent
    box_max = np.maximum(b, top) + extent
    return box_min, box_max


@ti.func
def cylinder_normal(cylinder: Cylinder, point: vec3) -> vec3:
    """Outward unit normal: from the closest point on the axis to the point."""
    along = tm.dot(point - cylinder.base, cylinder.axis)
    on_axis = cylinder.base + along * cylinder.axis
    return normalize(point - on_axis)


@ti.func
def cylinder_uv(cylinder: Cylinder, point: vec3, outward_normal: vec3) -> vec2:
    """Texture coordinates: angle around the axis and fraction along it."""
    tangent, bitangent = build_onb_from_axis(cylinder.axis)
    angle = ti.atan2(tm.dot(outward_normal, bitangent), tm.dot(outward_normal, tangent))
    u = 0.5 + angle / (2.0 * tm.pi)
    v = tm.clamp(tm.dot(point - cylinder.base, cylinder.axis) / cylinder.height, 0.0, 1.0)
    return vec2(u, v)


@ti.func
def hit_cylinder(
    ray_origin: vec3,
    ray_direction: vec3,
    cylinder: Cylinder,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-cylinder intersection.

    With oc = origin - base, d_perp = d - dot(d, axis) axis and
    oc_perp = oc - dot(oc, axis) axis the quadratic is

        dot(d_perp, d_perp) t^2 + 2 dot(d_perp, oc_perp) t
            + dot(oc_perp, oc_perp) - radius^2 = 0

    The near root is preferred; the far root is used when the near one is
    out of range or falls outside the finite extent of the cylinder.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        cylinder: The canonical cylinder.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord containing intersection information.
    """
    oc = ray_origin - cylinder.base
    d_perp = ray_direction - tm.dot(ray_direction, cylinder.axis) * cylinder.axis
    oc_perp = oc - tm.dot(oc, cylinder.axis) * cylinder.axis

    a = tm.dot(d_perp, d_perp)
    h = tm.dot(d_perp, oc_perp)
    c = tm.dot(oc_perp, oc_perp) - cylinder.radius * cylinder.radius

    discriminant = h * h - a * c

    result = make_miss_record()

    if a > PARALLEL_EPSILON and discriminant >= 0.0 and cylinder.height > 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a

        along0 = tm.dot(oc + t0 * ray_direction, cylinder.axis)
        along1 = tm.dot(oc + t1 * ray_direction, cylinder.axis)

        valid0 = (t0 > t_min) and (t0 < t_max) and (along0 >= 0.0) and (along0 <= cylinder.height)
        valid1 = (t1 > t_min) and (t1 < t_max) and (along1 >= 0.0) and (along1 <= cylinder.height)

        t = t0
        valid = valid0
        if not valid0:
            t = t1
            valid = valid1

        if valid:
            point = ray_origin + t * ray_direction
            outward_normal = cylinder_normal(cylinder, point)
            normal, front_face = set_face_normal(ray_direction, outward_normal)

            result = HitRecord(
                hit=1,
                t=t,
                point=point,
                normal=normal,
                front_face=front_face,
                uv=cylinder_uv(cylinder, point, outward_normal),
            )

    return result

