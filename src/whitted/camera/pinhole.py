"""Pinhole camera model for perspective projection ray generation.

This module implements the camera that generates primary rays. It supports:
- Look-at positioning (position, look_at, up)
- Vertical field of view in degrees
- Arbitrary aspect ratios from the image size
- Jittered sampling for anti-aliasing
- An optional thin lens (aperture > 0) focused on the look-at distance

The camera builds an orthonormal basis from the view parameters:
- forward: unit vector from the position toward look_at
- right: unit(forward x up), right in the image plane
- up': unit(right x forward), up in the image plane

The image plane sits at unit distance along forward. Image coordinates run
u left to right and v top to bottom, so row 0 of the image is its top.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from whitted.camera.pinhole import PinholeCamera, setup_camera, get_ray
    >>>
    >>> camera = PinholeCamera(
    ...     position=(0.0, 0.0, 3.0),
    ...     look_at=(0.0, 0.0, 0.0),
    ...     up=(0.0, 1.0, 0.0),
    ...     fov=60.0,
    ...     exposure=0.1,
    ...     width=320,
    ...     height=240,
    ... )
    >>> setup_camera(camera)
    >>>
    >>> @ti.kernel
    ... def render():
    ...     ray = get_ray(0.5, 0.5)  # Ray through image center
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from whitted.core.ray import Ray, make_ray, normalize, random_in_unit_disk, vec3

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class PinholeCamera:
    """Configuration for the camera.

    Attributes:
        position: Camera position in world space (x, y, z).
        look_at: Point the camera is looking at in world space (x, y, z).
        up: Up direction vector for camera orientation (typically (0, 1, 0)).
        fov: Full vertical field of view in degrees.
        exposure: Exposure used by the Reinhard tone mapper.
        width: Output image width in pixels.
        height: Output image height in pixels.
        aperture: Lens diameter; 0 gives a pinhole with everything in focus.
    """

    position: tuple[float, float, float]
    look_at: tuple[float, float, float]
    up: tuple[float, float, float]
    fov: float
    exposure: float
    width: int
    height: int
    aperture: float = 0.0

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


# =============================================================================
# Taichi Fields for Camera State (GPU-accessible)
# =============================================================================

_camera_position = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_forward = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_right = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_up = ti.Vector.field(3, dtype=ti.f32, shape=())

# Image plane
_image_center = ti.Vector.field(3, dtype=ti.f32, shape=())
_half_width = ti.field(dtype=ti.f32, shape=())
_half_height = ti.field(dtype=ti.f32, shape=())

# Thin lens
_lens_radius = ti.field(dtype=ti.f32, shape=())
_focus_distance = ti.field(dtype=ti.f32, shape=())


# =============================================================================
# Camera Setup (Python-side, called once per camera configuration)
# =============================================================================


def setup_camera(camera: PinholeCamera) -> None:
    """Initialize camera state from configuration.

    Computes the basis, the image plane extent and the lens parameters once
    and stores them in Taichi fields. Must be called before rendering.

    Args:
        camera: Camera configuration.

    Raises:
        ValueError: If the image size is not positive, the field of view is
            outside (0, 180), the aperture is negative, position equals
            look_at, or up is parallel to the view direction.
    """
    if camera.width <= 0 or camera.height <= 0:
        raise ValueError(f"Image size must be positive, got {camera.width}x{camera.height}")
    if not 0.0 < camera.fov < 180.0:
        raise ValueError(f"Field of view must be in (0, 180) degrees, got {camera.fov}")
    if camera.aperture < 0.0:
        raise ValueError(f"Aperture must be non-negative, got {camera.aperture}")

    position = np.array(camera.position, dtype=np.float64)
    look_at = np.array(camera.look_at, dtype=np.float64)
    up = np.array(camera.up, dtype=np.float64)

    view = look_at - position
    focus_distance = float(np.linalg.norm(view))
    if focus_distance < 1e-12:
        raise ValueError("Camera position and look_at must differ")
    forward = view / focus_distance

    right = np.cross(forward, up)
    right_norm = float(np.linalg.norm(right))
    if right_norm < 1e-12:
        raise ValueError("Camera up vector must not be parallel to the view direction")
    right = right / right_norm

    upward = np.cross(right, forward)
    upward = upward / np.linalg.norm(upward)

    half_angle = math.radians(camera.fov) / 2.0
    half_height = math.tan(half_angle)
    half_width = camera.aspect_ratio * half_height

    _camera_position[None] = position.tolist()
    _camera_forward[None] = forward.tolist()
    _camera_right[None] = right.tolist()
    _camera_up[None] = upward.tolist()
    _image_center[None] = (position + forward).tolist()
    _half_width[None] = half_width
    _half_height[None] = half_height
    _lens_radius[None] = camera.aperture / 2.0
    _focus_distance[None] = focus_distance


# =============================================================================
# Ray Generation (Taichi-compatible, GPU-callable)
# =============================================================================


@ti.func
def get_ray(u: ti.f32, v: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates (u, v).

    - u = 0: left edge of image, u = 1: right edge
    - v = 0: top edge of image, v = 1: bottom edge

    With a non-zero aperture the origin is a random point on the lens disk
    and the direction is re-aimed so the ray still passes through the point
    where the pinhole ray crosses the focal plane.

    Args:
        u: Horizontal coordinate in [0, 1] (left to right).
        v: Vertical coordinate in [0, 1] (top to bottom).

    Returns:
        A Ray with a unit direction.
    """
    position = _camera_position[None]
    right = _camera_right[None]
    upward = _camera_up[None]

    point_on_plane = (
        _image_center[None]
        + (2.0 * u - 1.0) * _half_width[None] * right
        + (1.0 - 2.0 * v) * _half_height[None] * upward
    )
    direction = normalize(point_on_plane - position)
    origin = position

    if _lens_radius[None] > 0.0:
        # Distance along the ray to the focal plane
        t_focus = _focus_distance[None] / tm.dot(direction, _camera_forward[None])
        focus_point = position + t_focus * direction
        disk = random_in_unit_disk() * _lens_radius[None]
        origin = position + disk.x * right + disk.y * upward
        direction = normalize(focus_point - origin)

    return make_ray(origin, direction)


@ti.func
def get_ray_jittered(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Generate a jittered ray for anti-aliasing.

    Adds a uniform random offset in [0, 1) to the pixel coordinates before
    converting them to normalized image coordinates.

    Args:
        pixel_i: Pixel column (0 = left).
        pixel_j: Pixel row (0 = top).
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        A Ray with random sub-pixel offset for anti-aliasing.
    """
    jitter_u = ti.random(ti.f32)
    jitter_v = ti.random(ti.f32)

    u = (ti.cast(pixel_i, ti.f32) + jitter_u) / ti.cast(width, ti.f32)
    v = (ti.cast(pixel_j, ti.f32) + jitter_v) / ti.cast(height, ti.f32)

    return get_ray(u, v)


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float] | float]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with position, forward, right, up, image_center,
        half_width, half_height, lens_radius and focus_distance.
    """

    def as_tuple(field) -> tuple[float, float, float]:
        vec = field[None]
        return (float(vec[0]), float(vec[1]), float(vec[2]))

    return {
        "position": as_tuple(_camera_position),
        "forward": as_tuple(_camera_forward),
        "right": as_tuple(_camera_right),
        "up": as_tuple(_camera_up),
        "image_center": as_tuple(_image_center),
        "half_width": float(_half_width[None]),
        "half_height": float(_half_height[None]),
        "lens_radius": float(_lens_radius[None]),
        "focus_distance": float(_focus_distance[None]),
    }
