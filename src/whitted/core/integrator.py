"""Whitted-style recursive ray tracing integrator.

This module implements the shading pipeline and the rendering kernels. A
camera ray is traced into the scene and, at each hit, shaded with local Phong
illumination from every unoccluded point light. Mirror and refractive
surfaces spawn secondary rays whose colours are added with the material's
weights, down to a bounce limit.

Taichi functions cannot recurse, so the ray tree is evaluated with a small
explicit stack local to each pixel. Every entry holds a ray, the product of
the weights along its path, and its remaining depth. Depth strictly
decreases for secondary rays, and a ray with depth 0 contributes black, so
the stack never holds more than MAX_BOUNCES + 1 entries.

Render modes:
    BINARY: any hit is pure red, a miss is the background colour
    PHONG: full shading as described above

The render mode, bounce limit and background colour are passed to the
kernels as arguments; there is no global mode.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from whitted.core.integrator import (
    ...     RenderMode, RenderSettings, render_image, setup_render_target
    ... )
    >>> setup_render_target(320, 240)
    >>> settings = RenderSettings(mode=RenderMode.PHONG, max_depth=3)
    >>> render_image(num_samples=4, settings=settings)
"""

import logging
from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from whitted.camera.pinhole import get_ray_jittered
from whitted.core.ray import normalize, reflect, refract
from whitted.materials.material import get_material, phong_local
from whitted.materials.texture import sample_texture
from whitted.scene.intersection import intersect_scene, intersect_scene_any
from whitted.scene.lights import light_intensities, light_positions, num_lights

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================


class RenderMode(IntEnum):
    """How a hit is turned into a colour."""

    BINARY = 0
    PHONG = 1


# Plain integer tags for use inside kernels
BINARY_MODE = 0
PHONG_MODE = 1

# Upper bound on the bounce limit; sizes the per-pixel ray stack
MAX_BOUNCES = 8
STACK_SIZE = MAX_BOUNCES + 2

# t_min and t_max for camera and secondary rays
T_MIN = 1e-4
T_MAX = 1e10

# Offsets along the surface normal for spawned rays
SHADOW_EPSILON = 1e-3
REFLECTION_EPSILON = 1e-2
REFRACTION_EPSILON = 1e-3


@dataclass
class RenderSettings:
    """Per-render shading settings.

    Attributes:
        mode: RenderMode, or its name ("binary" / "phong").
        max_depth: Bounce limit; a camera ray has this depth. Values above
            MAX_BOUNCES are clamped with a warning.
        background: Colour returned for rays that miss everything.
        samples_per_pixel: Jittered samples averaged per pixel.
    """

    mode: RenderMode = RenderMode.PHONG
    max_depth: int = 1
    background: tuple[float, float, float] = (0.0, 0.0, 0.0)
    samples_per_pixel: int = 10

    def __post_init__(self) -> None:
        if isinstance(self.mode, str):
            try:
                self.mode = RenderMode[self.mode.upper()]
            except KeyError:
                raise ValueError(f"Unknown render mode: {self.mode}") from None
        else:
            self.mode = RenderMode(self.mode)
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {self.max_depth}")
        if self.max_depth > MAX_BOUNCES:
            logger.warning(
                "Bounce limit %d exceeds the maximum of %d; clamping", self.max_depth, MAX_BOUNCES
            )
            self.max_depth = MAX_BOUNCES
        if self.samples_per_pixel < 1:
            raise ValueError(f"samples_per_pixel must be at least 1, got {self.samples_per_pixel}")
        if len(self.background) != 3:
            raise ValueError(f"background must have 3 components, got {len(self.background)}")

    @classmethod
    def from_description(cls, description) -> "RenderSettings":
        """Build settings from a ``whitted.scene.loader.SceneDescription``."""
        return cls(
            mode=description.render_mode,
            max_depth=description.n_bounces,
            background=description.background,
            samples_per_pixel=description.samples,
        )

    @property
    def background_vec(self) -> vec3:
        return vec3(*self.background)


# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Image dimensions (actual active size)
_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Colour buffer indexed [column, row], row 0 at the top of the image
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Sample count per pixel (preallocated to max size)
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Flag to track if render target is initialized
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Initialize the render target buffers.

    Sets the active image dimensions and clears the buffers.

    Args:
        width: Image width in pixels (max MAX_IMAGE_WIDTH).
        height: Image height in pixels (max MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()


def clear_render_target() -> None:
    """Clear the render target buffers to zero."""
    _color_buffer.fill(0.0)
    _sample_count.fill(0)


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    """Check if render target is initialized and raise if not."""
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Shading
# =============================================================================


@ti.func
def _direct_lighting(
    material_id: ti.i32,
    point: vec3,
    normal: vec3,
    uv: tm.vec2,
    view_origin: vec3,
) -> vec3:
    """Ambient term plus Phong contribution of every unoccluded light.

    The shadow ray starts slightly above the surface and points at the
    light without normalisation, so the light sits at t = 1 and any hit
    with t in (SHADOW_EPSILON, 1) occludes it.
    """
    material = get_material(material_id)

    diffuse = material.diffuse_color
    if material.texture_id >= 0:
        diffuse = sample_texture(material.texture_id, uv.x, uv.y)

    color = material.ka * diffuse
    to_view = normalize(view_origin - point)
    shadow_origin = point + normal * SHADOW_EPSILON

    for k in range(num_lights[None]):
        light_pos = light_positions[k]
        if intersect_scene_any(shadow_origin, light_pos - shadow_origin, SHADOW_EPSILON, 1.0) == 0:
            to_light = normalize(light_pos - point)
            half_vector = normalize(to_view + to_light)
            color += phong_local(
                material, diffuse, light_intensities[k], normal, to_light, half_vector
            )

    return color


@ti.func
def shade(
    origin: vec3,
    direction: vec3,
    depth: ti.i32,
    mode: ti.i32,
    background: vec3,
) -> vec3:
    """Colour seen along a ray.

    Args:
        origin: Ray origin.
        direction: Ray direction (need not be unit length).
        depth: Remaining bounces; 0 or less returns black without tracing.
        mode: BINARY_MODE or PHONG_MODE.
        background: Colour for rays that miss.

    Returns:
        The accumulated colour of the ray tree (RGB).
    """
    color = vec3(0.0, 0.0, 0.0)

    stack_origin = ti.Matrix.zero(ti.f32, STACK_SIZE, 3)
    stack_direction = ti.Matrix.zero(ti.f32, STACK_SIZE, 3)
    stack_weight = ti.Vector.zero(ti.f32, STACK_SIZE)
    stack_depth = ti.Vector.zero(ti.i32, STACK_SIZE)

    sp = 0
    if depth > 0:
        for c in ti.static(range(3)):
            stack_origin[0, c] = origin[c]
            stack_direction[0, c] = direction[c]
        stack_weight[0] = 1.0
        stack_depth[0] = depth
        sp = 1

    while sp > 0:
        sp -= 1
        ray_o = vec3(stack_origin[sp, 0], stack_origin[sp, 1], stack_origin[sp, 2])
        ray_d = vec3(stack_direction[sp, 0], stack_direction[sp, 1], stack_direction[sp, 2])
        weight = stack_weight[sp]
        ray_depth = stack_depth[sp]

        rec = intersect_scene(ray_o, ray_d, T_MIN, T_MAX)

        if rec.hit == 0:
            color += weight * background
        elif mode == BINARY_MODE:
            # Hit marker
            color += weight * vec3(1.0, 0.0, 0.0)
        else:
            p = rec.point
            n = rec.normal
            color += weight * _direct_lighting(rec.material_id, p, n, rec.uv, ray_o)

            material = get_material(rec.material_id)
            unit_d = normalize(ray_d)

            # Children with no depth left would contribute black
            if ray_depth - 1 >= 1:
                if material.is_reflective == 1 and material.reflectivity > 0.0 and sp < STACK_SIZE:
                    child_o = p + n * REFLECTION_EPSILON
                    child_d = reflect(unit_d, n)
                    for c in ti.static(range(3)):
                        stack_origin[sp, c] = child_o[c]
                        stack_direction[sp, c] = child_d[c]
                    stack_weight[sp] = weight * material.reflectivity
                    stack_depth[sp] = ray_depth - 1
                    sp += 1

                if material.is_refractive == 1 and material.refractive_index > 0.0 and sp < STACK_SIZE:
                    child_o = p - n * REFRACTION_EPSILON
                    child_d = refract(unit_d, n, 1.0 / material.refractive_index)
                    for c in ti.static(range(3)):
                        stack_origin[sp, c] = child_o[c]
                        stack_direction[sp, c] = child_d[c]
                    stack_weight[sp] = weight * (1.0 - material.reflectivity)
                    stack_depth[sp] = ray_depth - 1
                    sp += 1

    return color


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Clamp negative values and replace NaN/Inf with zero."""
    result = tm.max(color, vec3(0.0, 0.0, 0.0))
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]):
            result[c] = 0.0
    return result


@ti.func
def render_sample_impl(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    mode: ti.i32,
    max_depth: ti.i32,
    background: vec3,
) -> vec3:
    """Shade one jittered camera ray through pixel (pixel_i, pixel_j).

    Args:
        pixel_i: Pixel column (0 = left).
        pixel_j: Pixel row (0 = top).
        width: Image width in pixels.
        height: Image height in pixels.
        mode: BINARY_MODE or PHONG_MODE.
        max_depth: Bounce limit.
        background: Colour for rays that miss.

    Returns:
        The sampled colour (RGB).
    """
    ray = get_ray_jittered(pixel_i, pixel_j, width, height)
    return _sanitize(shade(ray.origin, ray.direction, max_depth, mode, background))


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_rows(
    row_start: ti.i32,
    row_end: ti.i32,
    width: ti.i32,
    height: ti.i32,
    mode: ti.i32,
    max_depth: ti.i32,
    background: vec3,
):
    """Render one sample for every pixel in rows [row_start, row_end).

    Each pixel keeps a running mean of its samples:
        avg_n = avg_{n-1} + (x_n - avg_{n-1}) / n
    """
    for i, j in ti.ndrange(width, (row_start, row_end)):
        color = render_sample_impl(i, j, width, height, mode, max_depth, background)

        _sample_count[i, j] += 1
        n = _sample_count[i, j]
        _color_buffer[i, j] += (color - _color_buffer[i, j]) / ti.cast(n, ti.f32)


@ti.kernel
def _render_single_pixel(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    mode: ti.i32,
    max_depth: ti.i32,
    background: vec3,
) -> vec3:
    """Render a single sample for a specific pixel."""
    return render_sample_impl(pixel_i, pixel_j, width, height, mode, max_depth, background)


@ti.kernel
def _shade_single_ray(
    origin: vec3,
    direction: vec3,
    depth: ti.i32,
    mode: ti.i32,
    background: vec3,
) -> vec3:
    """Shade one explicit ray."""
    return shade(origin, direction, depth, mode, background)


# =============================================================================
# Public Rendering API
# =============================================================================


def shade_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    depth: int,
    settings: RenderSettings,
) -> tuple[float, float, float]:
    """Shade a single ray against the current scene.

    Python-callable entry point for testing and debugging. The camera is not
    used. Depth is clamped to MAX_BOUNCES.

    Args:
        origin: Ray origin.
        direction: Ray direction.
        depth: Remaining bounces for this ray.
        settings: Render mode and background colour.

    Returns:
        Tuple of (R, G, B) colour values.
    """
    color = _shade_single_ray(
        vec3(*origin),
        vec3(*direction),
        min(depth, MAX_BOUNCES),
        int(settings.mode),
        settings.background_vec,
    )
    return (float(color[0]), float(color[1]), float(color[2]))


def render_sample(pixel_i: int, pixel_j: int, settings: RenderSettings) -> tuple[float, float, float]:
    """Render a single sample for a specific pixel.

    This is a Python-callable function for testing. For production rendering,
    use render_image() which processes all pixels in parallel.

    Args:
        pixel_i: Pixel column (0 = left).
        pixel_j: Pixel row (0 = top).
        settings: Shading settings.

    Returns:
        Tuple of (R, G, B) colour values.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    color = _render_single_pixel(
        pixel_i,
        pixel_j,
        width,
        height,
        int(settings.mode),
        settings.max_depth,
        settings.background_vec,
    )
    return (float(color[0]), float(color[1]), float(color[2]))


def render_rows(row_start: int, row_end: int, settings: RenderSettings) -> None:
    """Add one sample to every pixel of rows [row_start, row_end).

    Raises:
        RuntimeError: If render target has not been set up.
        ValueError: If the row range is outside the image.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    if not 0 <= row_start <= row_end <= height:
        raise ValueError(f"Row range [{row_start}, {row_end}) is outside [0, {height})")
    if row_start == row_end:
        return
    _render_rows(
        row_start,
        row_end,
        width,
        height,
        int(settings.mode),
        settings.max_depth,
        settings.background_vec,
    )


def render_image(num_samples: int, settings: RenderSettings) -> None:
    """Render the image with the specified number of samples per pixel.

    Accumulates samples into the colour buffer. Can be called multiple times
    to add more samples.

    Args:
        num_samples: Number of samples to render per pixel.
        settings: Shading settings.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    _, height = get_image_dimensions()
    for _ in range(num_samples):
        render_rows(0, height, settings)


def get_total_samples() -> int:
    """Get the number of samples accumulated in pixel (0, 0).

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    return int(_sample_count[0, 0])


def get_sample_counts_numpy() -> np.ndarray:
    """Per-pixel sample counts as an int array of shape (height, width).

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    return _sample_count.to_numpy()[:width, :height].T.copy()


def get_image_numpy() -> np.ndarray:
    """Get the accumulated linear colour image.

    Row 0 of the returned array is the top of the image. Values are not
    clamped; tone mapping happens in ``whitted.preview.display``.

    Returns:
        NumPy array of shape (height, width, 3), dtype float32.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    image = _color_buffer.to_numpy()[:width, :height, :]

    # (width, height, 3) -> (height, width, 3)
    image = np.transpose(image, (1, 0, 2))

    return np.ascontiguousarray(image, dtype=np.float32)
