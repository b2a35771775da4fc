#!/usr/bin/env python3
"""Render a small scene built directly through the Python API.

A glass sphere and a mirror sphere stand on a two-triangle floor next to a
red cylinder, lit by two point lights. The scene is assembled with
SceneManager instead of a JSON document.

Usage:
    python examples/render_mirror_spheres.py [options]

Options:
    --width WIDTH       Image width in pixels (default: 400)
    --height HEIGHT     Image height in pixels (default: 300)
    --samples SAMPLES   Number of samples per pixel (default: 16)
    --bounces BOUNCES   Bounce limit (default: 4)
    --output OUTPUT     Output file path (default: mirror_spheres.png)
    --quiet             Suppress progress output

Example:
    python examples/render_mirror_spheres.py --width 200 --height 150 --samples 4
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import taichi as ti


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render mirror and glass spheres on a floor.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels (default: 400)")
    parser.add_argument("--height", type=int, default=300, help="Image height in pixels (default: 300)")
    parser.add_argument(
        "--samples",
        type=int,
        default=16,
        help="Number of samples per pixel (default: 16)",
    )
    parser.add_argument("--bounces", type=int, default=4, help="Bounce limit (default: 4)")
    parser.add_argument(
        "--output",
        type=str,
        default="mirror_spheres.png",
        help="Output file path (default: mirror_spheres.png)",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def render_mirror_spheres(
    width: int = 400,
    height: int = 300,
    num_samples: int = 16,
    bounces: int = 4,
    output_path: str = "mirror_spheres.png",
    quiet: bool = False,
) -> Path:
    """Build the scene, render it and save the tone mapped image.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from whitted.camera.pinhole import PinholeCamera, setup_camera
    from whitted.core.progressive import ProgressiveRenderer, RenderMode, RenderSettings
    from whitted.scene.manager import SceneManager

    scene = SceneManager()

    floor = scene.add_material(diffuse_color=(0.8, 0.8, 0.75), ks=0.1, kd=0.8, specular_exponent=8.0)
    mirror = scene.add_material(
        diffuse_color=(0.05, 0.05, 0.05),
        ks=0.6,
        kd=0.1,
        specular_exponent=64.0,
        is_reflective=True,
        reflectivity=0.9,
    )
    glass = scene.add_material(
        diffuse_color=(0.0, 0.0, 0.0),
        ks=0.5,
        kd=0.0,
        ka=0.0,
        specular_exponent=128.0,
        is_reflective=True,
        reflectivity=0.1,
        is_refractive=True,
        refractive_index=1.5,
    )
    red = scene.add_material(diffuse_color=(0.8, 0.15, 0.1), ks=0.3, specular_exponent=20.0)

    scene.add_triangle((-6.0, -1.0, 2.0), (6.0, -1.0, 2.0), (6.0, -1.0, -12.0), floor)
    scene.add_triangle((-6.0, -1.0, 2.0), (6.0, -1.0, -12.0), (-6.0, -1.0, -12.0), floor)
    scene.add_sphere((-1.2, 0.0, -4.0), 1.0, mirror)
    scene.add_sphere((1.0, -0.3, -2.8), 0.7, glass)
    scene.add_cylinder((2.6, -0.2, -5.5), (0.0, 1.0, 0.0), 0.5, 0.8, red)

    scene.add_point_light((4.0, 6.0, 1.0), (0.8, 0.8, 0.8))
    scene.add_point_light((-5.0, 4.0, -1.0), (0.4, 0.4, 0.45))
    scene.build_bvh()

    setup_camera(
        PinholeCamera(
            position=(0.0, 0.6, 2.0),
            look_at=(0.0, 0.0, -4.0),
            up=(0.0, 1.0, 0.0),
            fov=55.0,
            exposure=1.0,
            width=width,
            height=height,
        )
    )

    settings = RenderSettings(
        mode=RenderMode.PHONG,
        max_depth=bounces,
        background=(0.25, 0.3, 0.4),
        samples_per_pixel=num_samples,
    )
    renderer = ProgressiveRenderer(width, height, settings)

    if not quiet:
        print(f"Rendering {width}x{height}, {num_samples} samples per pixel...")

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            print(f"\r  Progress: {current}/{target} samples", end="", flush=True)

    renderer.render(num_samples=num_samples, batch_size=1, callback=progress_callback)

    if not quiet:
        print()

    output_file = Path(output_path)
    renderer.save_image(output_file, tone_map="reinhard", gamma=2.2, exposure=1.0)

    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {time.time() - start_time:.2f}s")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()

    ti.init(arch=ti.cpu)

    try:
        render_mirror_spheres(
            width=args.width,
            height=args.height,
            num_samples=args.samples,
            bounces=args.bounces,
            output_path=args.output,
            quiet=args.quiet,
        )
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
