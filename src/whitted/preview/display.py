"""Tone mapping and Matplotlib-based preview display for rendered images.

This module turns the linear colour buffer into a displayable image and
optionally shows it in a Matplotlib window.

Features:
    - Reinhard exposure tone mapping driven by luminance
    - Gamma correction (2.2)
    - Interactive preview window

The Reinhard operator scales every channel of a pixel by the same factor:

    L = 0.2126 R + 0.7152 G + 0.0722 B
    mapped = c * exposure / (exposure + L)

so hue is preserved and bright pixels are compressed more than dark ones.

Example:
    >>> from whitted.preview.display import process_image_for_display, show_preview
    >>>
    >>> display_image = process_image_for_display(image, exposure=0.1)
    >>> show_preview(display_image, title="phong, 10 SPP")
"""

from __future__ import annotations

from typing import Literal

import numpy as np
import numpy.typing as npt

# Type alias for tone mapping options
ToneMapMethod = Literal["none", "reinhard"]

# Rec. 709 luminance weights
LUMINANCE_WEIGHTS = np.array([0.2126, 0.7152, 0.0722], dtype=np.float32)


def luminance(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Per-pixel luminance of an (H, W, 3) image, shape (H, W)."""
    return (image @ LUMINANCE_WEIGHTS).astype(np.float32)


def tone_map_reinhard(
    image: npt.NDArray[np.float32],
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Apply Reinhard exposure tone mapping: c * e / (e + L).

    Pixels whose denominator is zero map to black.

    Args:
        image: Linear HDR image array of shape (H, W, 3).
        exposure: Exposure e, non-negative. Larger values brighten the image.

    Returns:
        Tone mapped image, non-negative.

    Raises:
        ValueError: If exposure is negative.
    """
    if exposure < 0.0:
        raise ValueError(f"Exposure must be non-negative, got {exposure}")

    # Ensure non-negative values
    image = np.maximum(image, 0.0)

    denominator = exposure + luminance(image)
    scale = np.zeros_like(denominator)
    np.divide(exposure, denominator, out=scale, where=denominator > 0.0)

    result = image * scale[..., np.newaxis]

    return result.astype(np.float32)


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Apply gamma correction for display.

    Args:
        image: Linear image array of shape (H, W, 3) in [0, 1] range.
        gamma: Gamma value (default 2.2).

    Returns:
        Gamma corrected image: in^(1/gamma).
    """
    if gamma == 1.0:
        return image

    # Clamp to [0, 1] before gamma to avoid NaN from negative values
    image = np.clip(image, 0.0, 1.0)

    result = np.power(image, 1.0 / gamma)

    return result.astype(np.float32)


def process_image_for_display(
    image: npt.NDArray[np.float32],
    tone_map: ToneMapMethod = "reinhard",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Process an image for display with tone mapping and gamma correction.

    Applies the full display pipeline:
    1. Tone mapping (Reinhard with the camera exposure, or none)
    2. Gamma correction
    3. Clamping to [0, 1]

    Args:
        image: Linear HDR image array of shape (H, W, 3).
        tone_map: Tone mapping method ("none" or "reinhard").
        gamma: Gamma correction value (default 2.2).
        exposure: Exposure for Reinhard tone mapping.

    Returns:
        Processed image ready for display, in [0, 1] range.

    Raises:
        ValueError: If the tone mapping method is unknown.
    """
    result = image.copy()

    if tone_map == "reinhard":
        result = tone_map_reinhard(result, exposure)
    elif tone_map != "none":
        raise ValueError(f"Unknown tone mapping method: {tone_map}")

    result = apply_gamma(result, gamma)

    # Final clamp
    result = np.clip(result, 0.0, 1.0)

    return result.astype(np.float32)


def show_preview(
    image: npt.NDArray[np.float32],
    *,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 8),
    block: bool = True,
) -> None:
    """Display a processed image in a Matplotlib window.

    Args:
        image: Display-ready image of shape (H, W, 3) in [0, 1], row 0 at
            the top.
        title: Window title (default "Render Preview").
        figsize: Figure size in inches (width, height).
        block: Whether to block execution until figure is closed.
    """
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(1, 1, figsize=figsize)

    ax.imshow(np.clip(image, 0.0, 1.0))
    ax.axis("off")
    ax.set_title(title if title is not None else "Render Preview")

    plt.tight_layout()
    plt.show(block=block)
