"""Geometry module for shape primitives and spatial acceleration.

Components:
    sphere: Sphere primitive and the HitRecord shared by all primitives
    cylinder: Finite open cylinder primitive
    triangle: Triangle primitive (Moller-Trumbore)
    bvh: Host-side bounding volume hierarchy construction and flattening

Intersection routines are Taichi functions returning a HitRecord. Bounding
boxes are computed on the host with NumPy and feed the BVH builder.
"""

from .bvh import AABB, BVHNode, build_bvh, flatten_bvh, surrounding_box
from .cylinder import Cylinder, canonicalize_cylinder, cylinder_bounds, hit_cylinder
from .sphere import HitRecord, Sphere, hit_sphere, sphere_bounds
from .triangle import Triangle, hit_triangle, triangle_area, triangle_bounds

__all__ = [
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "sphere_bounds",
    "Cylinder",
    "canonicalize_cylinder",
    "cylinder_bounds",
    "hit_cylinder",
    "Triangle",
    "hit_triangle",
    "triangle_area",
    "triangle_bounds",
    "AABB",
    "BVHNode",
    "build_bvh",
    "flatten_bvh",
    "surrounding_box",
]
