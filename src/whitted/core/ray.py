"""Ray data structure and vector utilities for Taichi ray tracing.

This module provides the fundamental Ray dataclass and the vector helpers the
Whitted integrator is built from. All operations are Taichi functions so they
can be called from inside kernels.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Squared length below which a vector is treated as zero
ZERO_LENGTH_SQUARED = 1e-24


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). It is not required
            to be unit length; functions that need a unit vector normalize it
            at the point of use.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction inside a kernel."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    """Compute the Euclidean length of a vector."""
    return tm.length(v)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Compute the squared length of a vector.

    Cheaper than length() when only comparing magnitudes.
    """
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    """Normalize a vector to unit length.

    Unlike ``tm.normalize`` this never produces NaN: a zero-length vector
    normalizes to the zero vector, which every caller treats as a
    degenerate direction.

    Args:
        v: The input vector.

    Returns:
        A unit vector in the same direction as v, or the zero vector.
    """
    result = vec3(0.0, 0.0, 0.0)
    len_sq = tm.dot(v, v)
    if len_sq > ZERO_LENGTH_SQUARED:
        result = v / ti.sqrt(len_sq)
    return result


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    """Compute the dot product a . b."""
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    """Compute the cross product a x b."""
    return tm.cross(a, b)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Computes ``incident - 2 * dot(incident, normal) * normal``. The normal
    should be unit length for correct results. Reflecting twice about the
    same normal returns the original vector.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta_ratio: ti.f32) -> vec3:
    """Refract an incident vector through a surface using Snell's law.

    The refracted direction is split into a component perpendicular to the
    normal and one parallel to it. When total internal reflection would make
    the radicand of the parallel part negative it is clamped to zero, so the
    result grazes the surface instead of becoming NaN.

    Args:
        incident: The incoming direction (should be normalized).
        normal: The surface normal facing the incident ray (normalized).
        eta_ratio: The ratio of refractive indices (n_incident / n_transmitted).

    Returns:
        The refracted direction vector.
    """
    cos_theta = ti.min(tm.dot(-incident, normal), 1.0)
    perpendicular = eta_ratio * (incident + cos_theta * normal)
    radicand = ti.max(1.0 - tm.dot(perpendicular, perpendicular), 0.0)
    parallel = -ti.sqrt(radicand) * normal
    return perpendicular + parallel


@ti.func
def set_face_normal(direction: vec3, outward_normal: vec3):
    """Orient a surface normal against the incoming ray.

    Args:
        direction: The ray direction.
        outward_normal: The geometric normal pointing out of the surface.

    Returns:
        A tuple (normal, front_face) where normal is outward_normal when the
        ray arrives from outside (dot < 0) and its negation otherwise, and
        front_face is 1 for the outside case and 0 for the inside case.
    """
    normal = outward_normal
    front_face = 1
    if tm.dot(direction, outward_normal) >= 0.0:
        normal = -outward_normal
        front_face = 0
    return normal, front_face


@ti.func
def build_onb_from_axis(axis: vec3):
    """Build an orthonormal basis around a unit axis.

    Args:
        axis: The unit vector to build the frame around.

    Returns:
        A tuple (tangent, bitangent) perpendicular to axis and each other.
    """
    # Choose a helper vector not parallel to the axis
    a = vec3(1.0, 0.0, 0.0)
    if ti.abs(axis.x) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    tangent = normalize(cross(a, axis))
    bitangent = cross(axis, tangent)
    return tangent, bitangent


# =============================================================================
# Random Sampling Utilities
# =============================================================================


@ti.func
def random_in_unit_disk() -> vec3:
    """Generate a random point inside the unit disk in the xy-plane.

    Used for thin-lens sampling. The point is drawn in polar form so no
    rejection loop is needed.

    Returns:
        A random point (x, y, 0) with x^2 + y^2 <= 1.
    """
    r = ti.sqrt(ti.random(ti.f32))
    theta = 2.0 * tm.pi * ti.random(ti.f32)
    return vec3(r * ti.cos(theta), r * ti.sin(theta), 0.0)
