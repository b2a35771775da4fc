"""Core rendering module.

Components:
    ray: Ray data structure and vector helpers
    integrator: Whitted shading (binary and Phong) and the render target
    progressive: Sample accumulation over row bands

All compute-intensive operations use Taichi kernels.
"""

from .ray import (
    Ray,
    build_onb_from_axis,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    normalize,
    random_in_unit_disk,
    ray_at,
    reflect,
    refract,
    set_face_normal,
    vec3,
)

# integrator and progressive allocate Taichi fields, so they are not imported
# here; import them directly once ti.init has run:
#   from whitted.core.progressive import ProgressiveRenderer

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "set_face_normal",
    "build_onb_from_axis",
    "random_in_unit_disk",
]
