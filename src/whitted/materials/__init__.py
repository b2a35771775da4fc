"""Materials module for surface appearance.

Components:
    material: Phong material model and material registry
    texture: Image textures in a shared texel atlas

All material lookups are implemented as Taichi functions for use in kernels.
"""

from .material import (
    MAX_MATERIALS,
    PhongMaterial,
    add_phong_material,
    clear_materials,
    get_material,
    get_material_count,
    phong_local,
)
from .texture import (
    MAX_TEXTURES,
    add_texture_array,
    clear_textures,
    get_texture_count,
    load_texture,
    sample_texture,
)

__all__ = [
    # Material
    "MAX_MATERIALS",
    "PhongMaterial",
    "add_phong_material",
    "clear_materials",
    "get_material",
    "get_material_count",
    "phong_local",
    # Texture
    "MAX_TEXTURES",
    "add_texture_array",
    "clear_textures",
    "get_texture_count",
    "load_texture",
    "sample_texture",
]
