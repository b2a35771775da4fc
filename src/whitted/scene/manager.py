"""Unified scene manager for coordinating primitives, materials and lights.

This module provides a high-level scene management API on top of the Taichi
field storage. It validates material ids when primitives are added, keeps a
host-side record of every primitive (including its bounding box) and builds
and uploads the BVH.

The SceneManager maintains:
- The material registry and the texture atlas
- The unified primitive table (spheres, cylinders, triangles)
- Point lights
- The BVH over all primitives

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from whitted.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> mat_id = scene.add_material(diffuse_color=(0.8, 0.3, 0.3))
    >>> scene.add_sphere(center=(0, 0, -1), radius=0.5, material_id=mat_id)
    >>> scene.add_point_light(position=(2, 2, 0), intensity=(1, 1, 1))
    >>> scene.build_bvh()
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from whitted.geometry.bvh import SplitStrategy, build_bvh, flatten_bvh
from whitted.geometry.cylinder import canonicalize_cylinder, cylinder_bounds
from whitted.geometry.sphere import sphere_bounds
from whitted.geometry.triangle import triangle_area, triangle_bounds
from whitted.materials.material import (
    add_phong_material,
    clear_materials,
    get_material_count,
)
from whitted.materials.texture import clear_textures, get_texture_count, load_texture
from whitted.scene.intersection import (
    PrimitiveType,
    add_cylinder,
    add_sphere,
    add_triangle,
    clear_scene,
    get_bvh_node_count,
    get_cylinder_count,
    get_primitive_count,
    get_sphere_count,
    get_triangle_count,
    invalidate_bvh,
    upload_bvh,
)
from whitted.scene.lights import add_point_light, clear_lights, get_light_count

logger = logging.getLogger(__name__)


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The material ID.
        params: The material parameters as provided during creation.
    """

    material_id: int
    params: dict[str, Any]


@dataclass
class PrimitiveInfo:
    """Information about a primitive in the scene.

    Attributes:
        primitive_id: The unified primitive id.
        primitive_type: The type of primitive.
        material_id: The material ID assigned to the primitive.
        bounds: Axis-aligned bounding box as (box_min, box_max).
        params: The shape parameters as provided during creation.
    """

    primitive_id: int
    primitive_type: PrimitiveType
    material_id: int
    bounds: tuple[np.ndarray, np.ndarray]
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class LightInfo:
    """Information about a point light.

    Attributes:
        light_index: The index in the light storage arrays.
        position: Light position.
        intensity: Per-channel intensity.
    """

    light_index: int
    position: tuple[float, float, float]
    intensity: tuple[float, float, float]


class SceneManager:
    """Unified scene manager coordinating primitives, materials and lights.

    Creating a SceneManager clears all scene fields, so only one scene is
    live at a time.

    Attributes:
        materials: List of MaterialInfo for all registered materials.
        primitives: List of PrimitiveInfo indexed by primitive id.
        lights: List of LightInfo for all point lights.

    Example:
        >>> scene = SceneManager()
        >>> red = scene.add_material(diffuse_color=(0.8, 0.1, 0.1))
        >>> mirror = scene.add_material(
        ...     diffuse_color=(0.1, 0.1, 0.1), is_reflective=True, reflectivity=0.9
        ... )
        >>> scene.add_sphere((0, 0, -1), 0.5, red)
        >>> scene.add_triangle((-2, -0.5, -3), (2, -0.5, -3), (0, -0.5, 1), mirror)
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.materials: list[MaterialInfo] = []
        self.primitives: list[PrimitiveInfo] = []
        self.lights: list[LightInfo] = []
        self.bvh_height = 0
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        clear_scene()
        clear_materials()
        clear_textures()
        clear_lights()
        self.materials.clear()
        self.primitives.clear()
        self.lights.clear()
        self.bvh_height = 0

    def clear(self) -> None:
        """Clear the entire scene (primitives, materials, textures, lights)."""
        self._clear_all()

    # =========================================================================
    # Material Management
    # =========================================================================

    def add_material(
        self,
        diffuse_color: tuple[float, float, float],
        specular_color: tuple[float, float, float] = (1.0, 1.0, 1.0),
        ks: float = 0.0,
        kd: float = 0.8,
        ka: float = 0.2,
        specular_exponent: float = 1.0,
        is_reflective: bool = False,
        reflectivity: float = 0.0,
        is_refractive: bool = False,
        refractive_index: float = 1.0,
        texture_id: int = -1,
    ) -> int:
        """Add a Phong material to the scene.

        See ``whitted.materials.material.add_phong_material`` for the meaning
        and valid range of each parameter.

        Returns:
            The material ID.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If a parameter is out of range or the texture id
                does not exist.
        """
        if texture_id >= get_texture_count():
            raise ValueError(f"Invalid texture_id: {texture_id}")

        params = {
            "diffuse_color": tuple(diffuse_color),
            "specular_color": tuple(specular_color),
            "ks": ks,
            "kd": kd,
            "ka": ka,
            "specular_exponent": specular_exponent,
            "is_reflective": is_reflective,
            "reflectivity": reflectivity,
            "is_refractive": is_refractive,
            "refractive_index": refractive_index,
            "texture_id": texture_id,
        }
        material_id = add_phong_material(**params)
        self.materials.append(MaterialInfo(material_id=material_id, params=params))
        return material_id

    def add_texture(self, path) -> int:
        """Load a texture image.

        Returns:
            The texture id, or -1 if the image could not be read.
        """
        return load_texture(path)

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return get_material_count()

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by ID, or None if not found."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def _check_material(self, material_id: int) -> None:
        if material_id < 0 or material_id >= get_material_count():
            raise ValueError(f"Invalid material_id: {material_id}")

    def _record(
        self,
        primitive_id: int,
        primitive_type: PrimitiveType,
        material_id: int,
        bounds: tuple[np.ndarray, np.ndarray],
        params: dict[str, Any],
    ) -> int:
        self.primitives.append(
            PrimitiveInfo(
                primitive_id=primitive_id,
                primitive_type=primitive_type,
                material_id=material_id,
                bounds=bounds,
                params=params,
            )
        )
        self.bvh_height = 0
        return primitive_id

    def add_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere to the scene.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere.
            material_id: The material ID to assign to the sphere.

        Returns:
            The unified primitive id.

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded.
            ValueError: If material_id is invalid.
        """
        self._check_material(material_id)
        primitive_id = add_sphere(center, radius, material_id)
        return self._record(
            primitive_id,
            PrimitiveType.SPHERE,
            material_id,
            sphere_bounds(center, radius),
            {"center": tuple(center), "radius": radius},
        )

    def add_cylinder(
        self,
        center: tuple[float, float, float],
        axis: tuple[float, float, float],
        radius: float,
        half_height: float,
        material_id: int,
    ) -> int:
        """Add a cylinder to the scene.

        Args:
            center: Midpoint of the cylinder axis.
            axis: Axis direction (any non-zero length).
            radius: Cylinder radius.
            half_height: Distance from the center to each end.
            material_id: The material ID to assign to the cylinder.

        Returns:
            The unified primitive id.

        Raises:
            RuntimeError: If the maximum number of cylinders is exceeded.
            ValueError: If material_id is invalid or the axis is zero.
        """
        self._check_material(material_id)
        base, unit_axis, radius, height = canonicalize_cylinder(center, axis, radius, half_height)
        primitive_id = add_cylinder(center, axis, radius, half_height, material_id)
        return self._record(
            primitive_id,
            PrimitiveType.CYLINDER,
            material_id,
            cylinder_bounds(base, unit_axis, radius, height),
            {"center": tuple(center), "axis": tuple(axis), "radius": radius, "half_height": half_height},
        )

    def add_triangle(
        self,
        v0: tuple[float, float, float],
        v1: tuple[float, float, float],
        v2: tuple[float, float, float],
        material_id: int,
    ) -> int:
        """Add a triangle to the scene.

        Zero-area triangles are accepted but can never be hit.

        Returns:
            The unified primitive id.

        Raises:
            RuntimeError: If the maximum number of triangles is exceeded.
            ValueError: If material_id is invalid.
        """
        self._check_material(material_id)
        if triangle_area(v0, v1, v2) == 0.0:
            logger.debug("Triangle %s, %s, %s has zero area", v0, v1, v2)
        primitive_id = add_triangle(v0, v1, v2, material_id)
        return self._record(
            primitive_id,
            PrimitiveType.TRIANGLE,
            material_id,
            triangle_bounds(v0, v1, v2),
            {"v0": tuple(v0), "v1": tuple(v1), "v2": tuple(v2)},
        )

    # =========================================================================
    # Lights
    # =========================================================================

    def add_point_light(
        self,
        position: tuple[float, float, float],
        intensity: tuple[float, float, float],
    ) -> int:
        """Add a point light.

        Returns:
            The light index.

        Raises:
            RuntimeError: If the maximum number of lights is exceeded.
            ValueError: If any intensity component is negative.
        """
        light_index = add_point_light(position, intensity)
        self.lights.append(LightInfo(light_index, tuple(position), tuple(intensity)))
        return light_index

    # =========================================================================
    # Acceleration Structure
    # =========================================================================

    def primitive_bounds(self) -> list[tuple[np.ndarray, np.ndarray]]:
        """Bounding boxes of all primitives, indexed by primitive id."""
        return [info.bounds for info in self.primitives]

    def build_bvh(self, strategy: SplitStrategy = "centroid") -> int:
        """Build the BVH over all primitives and upload it.

        An empty scene has no BVH; queries use the linear scan.

        Args:
            strategy: Split strategy, "order" or "centroid".

        Returns:
            The number of BVH nodes.

        Raises:
            ValueError: If the strategy is unknown.
        """
        if not self.primitives:
            invalidate_bvh()
            self.bvh_height = 0
            return 0

        root = build_bvh(self.primitive_bounds(), strategy)
        upload_bvh(flatten_bvh(root))
        self.bvh_height = root.height
        logger.info(
            "Built BVH (%s): %d primitives, %d nodes, height %d",
            strategy,
            len(self.primitives),
            root.n_nodes,
            root.height,
        )
        return root.n_nodes

    @property
    def has_bvh(self) -> bool:
        """Whether queries currently use the BVH."""
        return get_bvh_node_count() > 0

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_sphere_count(self) -> int:
        """Get the number of spheres in the scene."""
        return get_sphere_count()

    def get_cylinder_count(self) -> int:
        """Get the number of cylinders in the scene."""
        return get_cylinder_count()

    def get_triangle_count(self) -> int:
        """Get the number of triangles in the scene."""
        return get_triangle_count()

    def get_primitive_count(self) -> int:
        """Get the total number of primitives in the scene."""
        return get_primitive_count()

    def get_light_count(self) -> int:
        """Get the number of point lights."""
        return get_light_count()

    def get_texture_count(self) -> int:
        """Get the number of loaded textures."""
        return get_texture_count()
