"""Phong material model and material registry.

Every surface in the scene uses the same Phong material: a diffuse and a
specular colour with their coefficients, an ambient coefficient, a specular
exponent, and optional mirror reflection and refraction. A material may also
reference a texture, whose colour then replaces the diffuse colour.

Local illumination for one light with intensity I is:
    diffuse_term  = diffuse * I * max(0, N.L) * kd
    specular_term = specular * I * max(0, N.H)^exponent * ks

Reflectivity and refraction are independent; their weights are not required
to sum to at most one.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from whitted.materials.material import add_phong_material
    >>> mat_id = add_phong_material(
    ...     diffuse_color=(0.8, 0.2, 0.2), specular_color=(1.0, 1.0, 1.0), ks=0.5
    ... )
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.dataclass
class PhongMaterial:
    """Phong material properties.

    Attributes:
        ks: Specular coefficient.
        kd: Diffuse coefficient.
        ka: Ambient coefficient.
        specular_exponent: Shininess exponent of the specular lobe.
        diffuse_color: Diffuse colour (RGB).
        specular_color: Specular colour (RGB).
        is_reflective: 1 if the surface spawns a mirror ray.
        reflectivity: Weight of the mirror contribution in [0, 1].
        is_refractive: 1 if the surface spawns a refracted ray.
        refractive_index: Index of refraction of the material.
        texture_id: Index into the texture registry, -1 for none.
    """

    ks: ti.f32
    kd: ti.f32
    ka: ti.f32
    specular_exponent: ti.f32
    diffuse_color: vec3
    specular_color: vec3
    is_reflective: ti.i32
    reflectivity: ti.f32
    is_refractive: ti.i32
    refractive_index: ti.f32
    texture_id: ti.i32


@ti.func
def phong_local(
    material: PhongMaterial,
    diffuse: vec3,
    intensity: vec3,
    normal: vec3,
    to_light: vec3,
    half_vector: vec3,
) -> vec3:
    """Diffuse plus specular contribution of one unoccluded light.

    Args:
        material: The material at the hit point.
        diffuse: Diffuse colour to use (the texture colour if textured).
        intensity: Light intensity (RGB).
        normal: Unit surface normal.
        to_light: Unit vector from the hit point toward the light.
        half_vector: Unit half vector between view and light directions.

    Returns:
        The light's contribution (RGB).
    """
    n_dot_l = ti.max(tm.dot(normal, to_light), 0.0)
    n_dot_h = ti.max(tm.dot(normal, half_vector), 0.0)
    diffuse_term = diffuse * intensity * n_dot_l * material.kd
    specular_term = (
        material.specular_color * intensity * ti.pow(n_dot_h, material.specular_exponent) * material.ks
    )
    return diffuse_term + specular_term


# =============================================================================
# Material Field Storage
# =============================================================================

# Maximum number of materials in the scene
MAX_MATERIALS = 1024

# Storage for material properties: Structure of Arrays layout
material_ks = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_kd = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_ka = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_specular_exponents = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_diffuse_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_specular_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_is_reflective = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_reflectivity = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_is_refractive = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_refractive_indices = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_texture_ids = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear all materials.

    Resets the material count to zero. Existing data in the fields will be
    overwritten when new materials are added.
    """
    num_materials[None] = 0


def _check_color(name: str, color: tuple[float, float, float]) -> None:
    if len(color) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(color)}")
    for i, component in enumerate(color):
        if component < 0.0:
            raise ValueError(f"{name} component {i} = {component} is negative")


def add_phong_material(
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
    """Add a Phong material to the material registry.

    Args:
        diffuse_color: Diffuse colour as (R, G, B), non-negative.
        specular_color: Specular colour as (R, G, B), non-negative.
        ks: Specular coefficient, non-negative.
        kd: Diffuse coefficient, non-negative.
        ka: Ambient coefficient, non-negative.
        specular_exponent: Shininess exponent, non-negative.
        is_reflective: Whether the surface spawns a mirror ray.
        reflectivity: Mirror weight in [0, 1].
        is_refractive: Whether the surface spawns a refracted ray.
        refractive_index: Index of refraction, non-negative.
        texture_id: Texture registry index, or -1 for none.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any parameter is out of range.
    """
    _check_color("diffuse_color", diffuse_color)
    _check_color("specular_color", specular_color)
    for name, value in (("ks", ks), ("kd", kd), ("ka", ka), ("specular_exponent", specular_exponent)):
        if value < 0.0:
            raise ValueError(f"{name} = {value} must be non-negative")
    if reflectivity < 0.0 or reflectivity > 1.0:
        raise ValueError(f"reflectivity = {reflectivity} is outside [0, 1]")
    if refractive_index < 0.0:
        raise ValueError(f"refractive_index = {refractive_index} must be non-negative")
    if texture_id < -1:
        raise ValueError(f"Invalid texture_id: {texture_id}")

    idx = num_materials[None]
    if idx >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    material_ks[idx] = ks
    material_kd[idx] = kd
    material_ka[idx] = ka
    material_specular_exponents[idx] = specular_exponent
    material_diffuse_colors[idx] = vec3(diffuse_color[0], diffuse_color[1], diffuse_color[2])
    material_specular_colors[idx] = vec3(specular_color[0], specular_color[1], specular_color[2])
    material_is_reflective[idx] = 1 if is_reflective else 0
    material_reflectivity[idx] = reflectivity
    material_is_refractive[idx] = 1 if is_refractive else 0
    material_refractive_indices[idx] = refractive_index
    material_texture_ids[idx] = texture_id
    num_materials[None] = idx + 1
    return idx


def get_material_count() -> int:
    """Get the number of materials in the registry."""
    return int(num_materials[None])


@ti.func
def get_material(material_idx: ti.i32) -> PhongMaterial:
    """Get the material by index.

    Args:
        material_idx: The index of the material in the registry.

    Returns:
        The PhongMaterial stored at that index.
    """
    return PhongMaterial(
        ks=material_ks[material_idx],
        kd=material_kd[material_idx],
        ka=material_ka[material_idx],
        specular_exponent=material_specular_exponents[material_idx],
        diffuse_color=material_diffuse_colors[material_idx],
        specular_color=material_specular_colors[material_idx],
        is_reflective=material_is_reflective[material_idx],
        reflectivity=material_reflectivity[material_idx],
        is_refractive=material_is_refractive[material_idx],
        refractive_index=material_refractive_indices[material_idx],
        texture_id=material_texture_ids[material_idx],
    )
