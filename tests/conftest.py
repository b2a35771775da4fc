"""Pytest configuration for raytracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield
    # Note: We don't call ti.reset() here as it can cause issues
    # with subsequent tests if any cleanup happens after


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene data before and after each test.

    This ensures tests are isolated from each other.
    """
    # Import here so Taichi is initialized before fields are allocated
    from whitted.core.integrator import clear_render_target
    from whitted.materials.material import clear_materials
    from whitted.materials.texture import clear_textures
    from whitted.scene.intersection import clear_scene
    from whitted.scene.lights import clear_lights

    def _clear_all():
        clear_scene()
        clear_materials()
        clear_textures()
        clear_lights()
        clear_render_target()

    _clear_all()

    yield

    _clear_all()


@pytest.fixture
def front_camera():
    """Configure a 16x16 camera at z = 5 looking at the origin."""
    from whitted.camera.pinhole import PinholeCamera, setup_camera

    camera = PinholeCamera(
        position=(0.0, 0.0, 5.0),
        look_at=(0.0, 0.0, 0.0),
        up=(0.0, 1.0, 0.0),
        fov=40.0,
        exposure=1.0,
        width=16,
        height=16,
    )
    setup_camera(camera)
    return camera
