"""Scene module for scene storage, intersection queries and loading.

Components:
    intersection: Primitive storage in Taichi fields, BVH upload, closest-hit
        and any-hit ray queries
    lights: Point light storage
    manager: SceneManager coordinating materials, primitives, lights and BVH
    loader: JSON scene documents to SceneDescription and into a SceneManager

Scene data is organized for efficient GPU access:
    - Structure-of-Arrays layout for geometric data
    - A unified primitive table shared by all primitive types
    - A flattened BVH walked without a stack
"""

# Note: submodules are NOT imported here. intersection, lights and manager
# allocate Taichi fields at import time and must be imported after ti.init;
# loader is pure Python and can be imported at any time.
#
#   from whitted.scene.loader import load_scene, build_scene
#   from whitted.scene.manager import SceneManager
