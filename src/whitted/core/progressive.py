"""Progressive renderer for iterative sample accumulation.

This module provides a convenient wrapper around the core integrator that supports:
- Progressive rendering that refines over time
- Batch rendering (multiple SPP in one call)
- Progress callbacks for UI updates
- Cooperative cancellation between bands of rows
- Easy reset and re-render functionality

Each sample pass is dispatched as a sequence of row bands. Between bands the
renderer asks ``should_cancel``; when it returns True the render stops and
the bands already finished keep their accumulated samples.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from whitted.core.progressive import ProgressiveRenderer, RenderSettings
    >>> from whitted.camera.pinhole import setup_camera
    >>>
    >>> setup_camera(camera)
    >>> renderer = ProgressiveRenderer(320, 240, RenderSettings(max_depth=3))
    >>> renderer.render(16)  # Render 16 SPP
    >>> image = renderer.get_image_numpy()
"""

import logging
from collections.abc import Callable, Generator
from pathlib import Path

import numpy as np
import numpy.typing as npt

from whitted.core.integrator import (
    RenderMode,
    RenderSettings,
    clear_render_target,
    get_image_numpy,
    get_total_samples,
    render_rows,
    setup_render_target,
)
from whitted.preview.display import ToneMapMethod, process_image_for_display
from whitted.preview.export import image_to_uint8, save_image

logger = logging.getLogger(__name__)

__all__ = ["ProgressiveRenderer", "RenderMode", "RenderSettings", "ProgressCallback"]

# Type alias for progress callback
# Callback receives (current_samples, total_target_samples)
ProgressCallback = Callable[[int, int], None]

# Callable polled between row bands; True stops the render
CancelCheck = Callable[[], bool]


class ProgressiveRenderer:
    """A progressive renderer that accumulates samples over time.

    The renderer maintains its own state for width/height and settings and
    delegates to the global integrator buffers (which are Taichi fields).

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        settings: Shading settings used for every sample.
        batch_rows: Number of rows dispatched per kernel launch.
        cancelled: Whether the last render was stopped by should_cancel.
    """

    def __init__(
        self,
        width: int,
        height: int,
        settings: RenderSettings | None = None,
        batch_rows: int | None = None,
    ) -> None:
        """Initialize the progressive renderer.

        Args:
            width: Image width in pixels (max 2048).
            height: Image height in pixels (max 2048).
            settings: Shading settings (default phong, depth 1, black).
            batch_rows: Rows per band; None renders the whole image at once.

        Raises:
            ValueError: If dimensions are invalid or batch_rows < 1.
        """
        if batch_rows is not None and batch_rows < 1:
            raise ValueError(f"batch_rows must be at least 1, got {batch_rows}")
        self._width = width
        self._height = height
        self.settings = settings if settings is not None else RenderSettings()
        self.batch_rows = batch_rows
        self.cancelled = False
        setup_render_target(width, height)

    @property
    def width(self) -> int:
        """Get the image width."""
        return self._width

    @property
    def height(self) -> int:
        """Get the image height."""
        return self._height

    @property
    def sample_count(self) -> int:
        """Get the number of samples accumulated in the top-left pixel."""
        return get_total_samples()

    def reset(self) -> None:
        """Reset the accumulator for a new render.

        Clears the color buffer and sample count, allowing a fresh render
        without changing the image dimensions.
        """
        clear_render_target()
        self.cancelled = False

    def resize(self, width: int, height: int) -> None:
        """Resize the render target and reset accumulator.

        Raises:
            ValueError: If dimensions exceed maximum supported size.
        """
        self._width = width
        self._height = height
        setup_render_target(width, height)
        self.cancelled = False

    def _bands(self) -> list[tuple[int, int]]:
        step = self.batch_rows or self._height
        return [(start, min(start + step, self._height)) for start in range(0, self._height, step)]

    def _render_pass(self, should_cancel: CancelCheck | None) -> bool:
        """Add one sample to every pixel, band by band.

        Returns:
            False if should_cancel stopped the pass before it finished.
        """
        for row_start, row_end in self._bands():
            if should_cancel is not None and should_cancel():
                logger.info("Render cancelled before row %d", row_start)
                self.cancelled = True
                return False
            render_rows(row_start, row_end, self.settings)
        return True

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> bool:
        """Render samples progressively with optional progress callback.

        Accumulates the specified number of samples into the existing buffer.
        Can be called multiple times to continue refining the image.

        Args:
            num_samples: Total number of samples to add.
            batch_size: Number of samples to render before each callback.
            callback: Optional callback function called after each batch.
                Receives (current_total_samples, target_total_samples).
            should_cancel: Optional callable polled between row bands.

        Returns:
            True if all samples were rendered, False if cancelled.

        Example:
            >>> def progress(current, target):
            ...     print(f"Progress: {current}/{target} samples")
            >>> renderer.render(100, batch_size=10, callback=progress)
        """
        for current, target in self.render_progressive(num_samples, batch_size, should_cancel):
            if callback is not None:
                callback(current, target)
        return not self.cancelled

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        should_cancel: CancelCheck | None = None,
    ) -> Generator[tuple[int, int], None, None]:
        """Render samples progressively, yielding progress after each batch.

        Args:
            num_samples: Total number of samples to add.
            batch_size: Number of samples to render before each yield.
            should_cancel: Optional callable polled between row bands.

        Yields:
            Tuple of (current_total_samples, target_total_samples). Nothing
            more is yielded once the render is cancelled.

        Example:
            >>> for current, target in renderer.render_progressive(100, batch_size=10):
            ...     print(f"Progress: {current}/{target} samples")
        """
        self.cancelled = False
        if num_samples <= 0:
            return

        start_samples = self.sample_count
        target_samples = start_samples + num_samples

        remaining = num_samples
        while remaining > 0:
            batch = min(batch_size, remaining)
            for _ in range(batch):
                if not self._render_pass(should_cancel):
                    return
            remaining -= batch
            logger.debug("Rendered %d/%d samples", self.sample_count, target_samples)
            yield (self.sample_count, target_samples)

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Get the accumulated linear image, shape (height, width, 3)."""
        return get_image_numpy()

    def get_display_image(
        self,
        tone_map: ToneMapMethod = "reinhard",
        gamma: float = 2.2,
        exposure: float = 1.0,
    ) -> npt.NDArray[np.float32]:
        """Get the image tone mapped and gamma corrected, in [0, 1]."""
        return process_image_for_display(
            self.get_image_numpy(), tone_map=tone_map, gamma=gamma, exposure=exposure
        )

    def get_image_uint8(
        self,
        tone_map: ToneMapMethod = "reinhard",
        gamma: float = 2.2,
        exposure: float = 1.0,
    ) -> npt.NDArray[np.uint8]:
        """Get the display image as an 8-bit NumPy array."""
        return image_to_uint8(
            self.get_image_numpy(), tone_map=tone_map, gamma=gamma, exposure=exposure
        )

    def save_image(
        self,
        filepath: str | Path,
        tone_map: ToneMapMethod = "reinhard",
        gamma: float = 2.2,
        exposure: float = 1.0,
    ) -> None:
        """Save the display image as PNG (``.png``) or PPM (anything else)."""
        save_image(self.get_display_image(tone_map, gamma, exposure), filepath)

    def __repr__(self) -> str:
        """Return a string representation of the renderer state."""
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
