"""Command-line entry point: render a JSON scene document to an image.

Usage:
    whitted-render SCENE [options]
    python -m whitted SCENE [options]

Options:
    --output OUTPUT         Output file, .png for PNG, anything else PPM
                            (default: output.ppm)
    --samples SAMPLES       Samples per pixel, overrides the document
    --arch {cpu,gpu}        Taichi backend (default: cpu)
    --seed SEED             Random seed for the Taichi runtime (default: 0)
    --no-bvh                Intersect with a linear scan instead of a BVH
    --bvh-strategy {order,centroid}
                            BVH split strategy (default: centroid)
    --batch-rows ROWS       Rows per kernel launch (default: whole image)
    --show                  Show the result in a Matplotlib window
    --quiet                 Only log warnings and errors
    --log-level LEVEL       Logging level (default: INFO)

Exit status is 0 on success, 2 when the scene document or its parameters
are invalid, and 1 for any other failure.

Example:
    whitted-render examples/scenes/mirror_glass.json --output mirror.png --samples 16
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Sequence

import taichi as ti

from whitted.preview.export import save_image
from whitted.scene.loader import SceneConfigError, SceneDescription, load_scene

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def setup_logging(level: str = "INFO") -> None:
    """Attach a console handler to the package logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    package_logger = logging.getLogger("whitted")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(isinstance(h, logging.StreamHandler) for h in package_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(console_handler)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="whitted-render",
        description="Render a JSON scene document with Whitted-style ray tracing.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("scene", type=str, help="Path to the scene JSON document")
    parser.add_argument(
        "--output",
        type=str,
        default="output.ppm",
        help="Output file path, .png writes PNG, otherwise PPM (default: output.ppm)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=None,
        help="Samples per pixel (default: the document's 'samples')",
    )
    parser.add_argument(
        "--arch",
        choices=("cpu", "gpu"),
        default="cpu",
        help="Taichi backend (default: cpu)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Random seed for the Taichi runtime (default: 0)",
    )
    parser.add_argument(
        "--no-bvh",
        action="store_true",
        help="Intersect with a linear scan instead of a BVH",
    )
    parser.add_argument(
        "--bvh-strategy",
        choices=("order", "centroid"),
        default="centroid",
        help="BVH split strategy (default: centroid)",
    )
    parser.add_argument(
        "--batch-rows",
        type=int,
        default=None,
        help="Rows per kernel launch (default: whole image)",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Show the result in a Matplotlib window",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def render_scene(description: SceneDescription, args: argparse.Namespace) -> None:
    """Upload the scene, render it and write the output image.

    Must be called after ``ti.init``.

    Raises:
        ValueError: If a scene or camera parameter is invalid.
        RuntimeError: If a capacity is exceeded.
        OSError: If the output cannot be written.
    """
    # Lazy imports to allow Taichi initialization first
    from whitted.camera.pinhole import PinholeCamera, setup_camera
    from whitted.core.progressive import ProgressiveRenderer, RenderSettings
    from whitted.preview.display import show_preview
    from whitted.scene.loader import build_scene
    from whitted.scene.manager import SceneManager

    manager = SceneManager()
    build_scene(description, manager)
    if not args.no_bvh:
        manager.build_bvh(args.bvh_strategy)

    cam = description.camera
    setup_camera(
        PinholeCamera(
            position=cam.position,
            look_at=cam.look_at,
            up=cam.up,
            fov=cam.fov,
            exposure=cam.exposure,
            width=cam.width,
            height=cam.height,
            aperture=cam.aperture,
        )
    )

    settings = RenderSettings.from_description(description)
    if args.samples is not None:
        settings.samples_per_pixel = args.samples

    renderer = ProgressiveRenderer(cam.width, cam.height, settings, batch_rows=args.batch_rows)

    num_samples = settings.samples_per_pixel
    logger.info(
        "Rendering %dx%d, %s mode, %d bounces, %d samples per pixel",
        cam.width,
        cam.height,
        settings.mode.name.lower(),
        settings.max_depth,
        num_samples,
    )

    def progress(current: int, target: int) -> None:
        logger.info("Progress: %d/%d samples", current, target)

    start_time = time.time()
    renderer.render(num_samples, batch_size=max(1, num_samples // 10), callback=progress)
    logger.info("Render finished in %.2f seconds", time.time() - start_time)

    # Gamma belongs to the tone mapping step; without it values are only clamped
    if description.tone_map:
        display_image = renderer.get_display_image("reinhard", 2.2, cam.exposure)
    else:
        display_image = renderer.get_display_image("none", 1.0)

    save_image(display_image, args.output)
    logger.info("Saved image to %s", args.output)

    if args.show:
        show_preview(display_image, title=f"{args.scene} - {num_samples} SPP")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the renderer. Returns the process exit status."""
    args = parse_args(argv)
    setup_logging("WARNING" if args.quiet else args.log_level)

    if args.samples is not None and args.samples < 1:
        logger.error("--samples must be at least 1, got %d", args.samples)
        return EXIT_CONFIG_ERROR
    if args.batch_rows is not None and args.batch_rows < 1:
        logger.error("--batch-rows must be at least 1, got %d", args.batch_rows)
        return EXIT_CONFIG_ERROR

    try:
        description = load_scene(args.scene)
    except SceneConfigError as exc:
        logger.error("Invalid scene document %s: %s", args.scene, exc)
        return EXIT_CONFIG_ERROR
    except OSError as exc:
        logger.error("Cannot read scene document %s: %s", args.scene, exc)
        return EXIT_FAILURE

    ti.init(arch=ti.gpu if args.arch == "gpu" else ti.cpu, random_seed=args.seed)

    try:
        render_scene(description, args)
    except ValueError as exc:
        logger.error("Invalid scene parameters: %s", exc)
        return EXIT_CONFIG_ERROR
    except (RuntimeError, OSError) as exc:
        logger.error("Render failed: %s", exc)
        return EXIT_FAILURE

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
