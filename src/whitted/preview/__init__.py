"""Preview module for output and visualization.

Components:
    display: Reinhard tone mapping, gamma and the Matplotlib preview window
    export: PPM and PNG image export

Example:
    >>> from whitted.preview import process_image_for_display, save_ppm
    >>>
    >>> display_image = process_image_for_display(image, exposure=0.1)
    >>> save_ppm(display_image, "output.ppm")
"""

from whitted.preview.display import (
    ToneMapMethod,
    apply_gamma,
    luminance,
    process_image_for_display,
    show_preview,
    tone_map_reinhard,
)
from whitted.preview.export import (
    image_to_uint8,
    save_image,
    save_png_from_array,
    save_ppm,
)

__all__ = [
    # Display functions
    "show_preview",
    # Tone mapping
    "tone_map_reinhard",
    "luminance",
    "apply_gamma",
    "process_image_for_display",
    "ToneMapMethod",
    # Export functions
    "save_ppm",
    "save_png_from_array",
    "save_image",
    "image_to_uint8",
]
