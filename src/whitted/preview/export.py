"""Image export utilities for rendered images.

Supported formats:
    - PPM, ASCII (P3) or binary (P6)
    - PNG (8-bit via Pillow)

Images are written row by row from the top of the picture, each row from
left to right. A channel value c in [0, 1] is stored as int(255.99 * c)
after clamping.

Example:
    >>> from whitted.preview.display import process_image_for_display
    >>> from whitted.preview.export import save_ppm
    >>>
    >>> save_ppm(process_image_for_display(image, exposure=0.1), "output.ppm")
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from whitted.preview.display import ToneMapMethod, process_image_for_display


def image_to_uint8(
    image: npt.NDArray[np.float32],
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 1.0,
    exposure: float = 1.0,
) -> npt.NDArray[np.uint8]:
    """Convert a float image to uint8 for display/export.

    With the defaults this only quantizes: int(255.99 * clamp(c, 0, 1)).

    Args:
        image: Image array of shape (H, W, 3).
        tone_map: Tone mapping method ("none" or "reinhard").
        gamma: Gamma correction value (default 1.0, none).
        exposure: Exposure for Reinhard tone mapping.

    Returns:
        8-bit image array of shape (H, W, 3) with dtype uint8.
    """
    processed = process_image_for_display(
        image,
        tone_map=tone_map,
        gamma=gamma,
        exposure=exposure,
    )

    return (processed * 255.99).astype(np.uint8)


def save_ppm(
    image: npt.NDArray[np.float32],
    filepath: str | Path,
    *,
    binary: bool = False,
    tone_map: ToneMapMethod = "none",
    gamma: float = 1.0,
    exposure: float = 1.0,
) -> None:
    """Save an image as a PPM file.

    Args:
        image: Image array of shape (H, W, 3), row 0 at the top.
        filepath: Output file path.
        binary: Write binary P6 instead of ASCII P3.
        tone_map: Tone mapping method ("none" or "reinhard").
        gamma: Gamma correction value.
        exposure: Exposure for Reinhard tone mapping.

    Raises:
        ValueError: If the image does not have shape (H, W, 3).
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (height, width, 3), got {image.shape}")

    pixels = image_to_uint8(image, tone_map=tone_map, gamma=gamma, exposure=exposure)

    if binary:
        PILImage.fromarray(pixels).save(filepath, format="PPM")
        return

    height, width = pixels.shape[:2]
    with open(filepath, "w", encoding="ascii") as f:
        f.write(f"P3\n{width} {height}\n255\n")
        for row in pixels:
            f.write(" ".join(str(int(v)) for v in row.reshape(-1)))
            f.write("\n")


def save_png_from_array(
    image: npt.NDArray[np.float32],
    filepath: str | Path,
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 1.0,
    exposure: float = 1.0,
) -> None:
    """Save a NumPy array as a PNG file.

    Args:
        image: Image array of shape (H, W, 3), row 0 at the top.
        filepath: Output file path (should end in .png).
        tone_map: Tone mapping method ("none" or "reinhard").
        gamma: Gamma correction value.
        exposure: Exposure for Reinhard tone mapping.
    """
    image_uint8 = image_to_uint8(image, tone_map=tone_map, gamma=gamma, exposure=exposure)

    pil_image = PILImage.fromarray(image_uint8)
    pil_image.save(filepath)


def save_image(
    image: npt.NDArray[np.float32],
    filepath: str | Path,
    **kwargs,
) -> None:
    """Save an image, choosing PNG for a ``.png`` suffix and PPM otherwise.

    Keyword arguments are passed to ``save_png_from_array`` / ``save_ppm``.
    """
    if Path(filepath).suffix.lower() == ".png":
        save_png_from_array(image, filepath, **kwargs)
    else:
        save_ppm(image, filepath, **kwargs)
