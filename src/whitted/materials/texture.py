"""Image textures stored in a shared texel atlas.

Texture images are decoded with Pillow on the host and packed one after the
other into a single flat RGB field. Each texture records its offset into the
atlas and its size, so a kernel can sample any texture by id.

Sampling clamps (u, v) to [0, 1] and interpolates bilinearly between the
four nearest texels. u runs left to right and v top to bottom, matching the
row order of the decoded image.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from whitted.materials.texture import load_texture
    >>> tex_id = load_texture("checker.png")  # -1 if the file is unreadable
"""

import logging
from pathlib import Path

import numpy as np
import taichi as ti
import taichi.math as tm
from PIL import Image as PILImage

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# Maximum number of textures and texels across all textures
MAX_TEXTURES = 64
MAX_TEXELS = 1 << 21

# Longest side a loaded image is downscaled to
MAX_TEXTURE_SIZE = 1024

texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
texture_offsets = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_widths = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_heights = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())
num_texels = ti.field(dtype=ti.i32, shape=())


def clear_textures() -> None:
    """Clear all textures and release their atlas space."""
    num_textures[None] = 0
    num_texels[None] = 0


def add_texture_array(image: np.ndarray) -> int:
    """Add an RGB image to the texture atlas.

    Args:
        image: Float array of shape (height, width, 3) with values in [0, 1].
            Row 0 is the top of the image.

    Returns:
        The texture id.

    Raises:
        ValueError: If the array does not have shape (height, width, 3).
        RuntimeError: If the texture or texel capacity is exceeded.
    """
    if image.ndim != 3 or image.shape[2] != 3 or image.shape[0] < 1 or image.shape[1] < 1:
        raise ValueError(f"Expected an image of shape (height, width, 3), got {image.shape}")

    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")

    height, width = image.shape[:2]
    offset = num_texels[None]
    count = width * height
    if offset + count > MAX_TEXELS:
        raise RuntimeError(f"Texture atlas capacity ({MAX_TEXELS} texels) exceeded")

    # Upload through a full-size buffer; the atlas is a single field
    atlas = texels.to_numpy()
    atlas[offset : offset + count] = image.reshape(count, 3).astype(np.float32)
    texels.from_numpy(atlas)

    texture_offsets[idx] = offset
    texture_widths[idx] = width
    texture_heights[idx] = height
    num_texels[None] = offset + count
    num_textures[None] = idx + 1
    return idx


def load_texture(path: str | Path) -> int:
    """Load an image file into the texture atlas.

    Images are converted to RGB. Images with a side longer than
    MAX_TEXTURE_SIZE are downscaled, keeping the aspect ratio.

    Args:
        path: Path to an image file in any format Pillow can read.

    Returns:
        The texture id, or -1 if the file is missing or cannot be decoded.
    """
    try:
        with PILImage.open(path) as img:
            img = img.convert("RGB")
            if max(img.size) > MAX_TEXTURE_SIZE:
                logger.info("Downscaling texture %s from %dx%d", path, *img.size)
                img.thumbnail((MAX_TEXTURE_SIZE, MAX_TEXTURE_SIZE))
            data = np.asarray(img, dtype=np.float32) / 255.0
    except OSError as exc:
        logger.warning("Failed to load texture image %s: %s", path, exc)
        return -1

    tex_id = add_texture_array(data)
    logger.debug("Loaded texture %s as id %d (%dx%d)", path, tex_id, data.shape[1], data.shape[0])
    return tex_id


def get_texture_count() -> int:
    """Get the number of textures in the atlas."""
    return int(num_textures[None])


@ti.func
def _texel(tex_id: ti.i32, x: ti.i32, y: ti.i32) -> vec3:
    return texels[texture_offsets[tex_id] + y * texture_widths[tex_id] + x]


@ti.func
def sample_texture(tex_id: ti.i32, u: ti.f32, v: ti.f32) -> vec3:
    """Sample a texture with bilinear interpolation.

    Args:
        tex_id: The texture id.
        u: Horizontal coordinate, 0 at the left edge.
        v: Vertical coordinate, 0 at the top edge.

    Returns:
        The interpolated colour (RGB).
    """
    width = texture_widths[tex_id]
    height = texture_heights[tex_id]

    uc = tm.clamp(u, 0.0, 1.0)
    vc = tm.clamp(v, 0.0, 1.0)

    fx = uc * ti.cast(width - 1, ti.f32)
    fy = vc * ti.cast(height - 1, ti.f32)
    x0 = ti.cast(fx, ti.i32)
    y0 = ti.cast(fy, ti.i32)
    x1 = ti.min(x0 + 1, width - 1)
    y1 = ti.min(y0 + 1, height - 1)
    tx = fx - ti.cast(x0, ti.f32)
    ty = fy - ti.cast(y0, ti.f32)

    c00 = _texel(tex_id, x0, y0)
    c10 = _texel(tex_id, x1, y0)
    c01 = _texel(tex_id, x0, y1)
    c11 = _texel(tex_id, x1, y1)

    return (
        (1.0 - tx) * (1.0 - ty) * c00
        + tx * (1.0 - ty) * c10
        + (1.0 - tx) * ty * c01
        + tx * ty * c11
    )
