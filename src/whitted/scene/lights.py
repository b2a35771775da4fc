"""Point light storage.

Point lights have a position and a per-channel intensity. They are stored in
Taichi fields and iterated by the shading code for direct illumination and
shadow rays.
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3

# Maximum number of point lights in the scene
MAX_LIGHTS = 64

light_positions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
light_intensities = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())


def clear_lights() -> None:
    """Remove all point lights."""
    num_lights[None] = 0


def add_point_light(
    position: tuple[float, float, float],
    intensity: tuple[float, float, float],
) -> int:
    """Add a point light.

    Args:
        position: Light position in world space.
        intensity: Per-channel intensity (RGB), non-negative.

    Returns:
        The index of the added light.

    Raises:
        RuntimeError: If the maximum number of lights is exceeded.
        ValueError: If any intensity component is negative.
    """
    for i, component in enumerate(intensity):
        if component < 0.0:
            raise ValueError(f"Light intensity component {i} = {component} is negative")

    idx = num_lights[None]
    if idx >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")

    light_positions[idx] = vec3(position[0], position[1], position[2])
    light_intensities[idx] = vec3(intensity[0], intensity[1], intensity[2])
    num_lights[None] = idx + 1
    return idx


def get_light_count() -> int:
    """Get the number of point lights."""
    return int(num_lights[None])
