"""Whitted-style recursive ray tracer built on Taichi.

Scenes are read from JSON documents and rendered with either a binary
hit/miss shader or a Blinn-Phong shader with hard shadows, mirror
reflection and Snell refraction, accumulated over jittered samples.

Subpackages:
    core: Ray utilities, the Whitted integrator and progressive accumulation
    geometry: Sphere, cylinder and triangle intersection plus the BVH builder
    materials: Phong materials and image textures
    scene: Primitive and light storage, scene intersection and JSON loading
    camera: Pinhole camera with optional thin-lens aperture
    preview: Tone mapping, PPM/PNG export and the Matplotlib preview
"""

__version__ = "0.1.0"
