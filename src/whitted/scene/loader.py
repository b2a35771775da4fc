"""Scene description loading from JSON documents.

A scene document describes the render settings, the camera, the background,
the point lights and the shapes with their materials. Loading happens in two
steps:

1. ``load_scene`` / ``parse_scene`` validate the document and return a
   ``SceneDescription`` made of plain dataclasses. No Taichi state is
   touched, so configuration errors surface before anything is uploaded.
2. ``build_scene`` uploads the description into a ``SceneManager``.

Document layout:

    {
      "nbounces": 3,
      "rendermode": "phong",
      "samples": 10,
      "tonemap": true,
      "camera": {"position": [..], "lookAt": [..], "upVector": [..],
                 "fov": 45, "exposure": 0.1, "width": 800, "height": 600,
                 "aperture": 0.0},
      "scene": {
        "backgroundcolor": [0.25, 0.25, 0.25],
        "lightsources": [{"type": "pointlight", "position": [..],
                          "intensity": [..]}],
        "shapes": [
          {"type": "sphere", "center": [..], "radius": 1.0, "material": {..}},
          {"type": "cylinder", "center": [..], "axis": [..], "radius": 0.5,
           "height": 1.0, "material": {..}},
          {"type": "triangle", "v0": [..], "v1": [..], "v2": [..],
           "material": {..}}
        ]
      }
    }

A cylinder's "height" is the distance from its center to each end.

Shapes and lights with an unknown or missing type are skipped with a
warning. Malformed required fields raise ``SceneConfigError`` naming the
offending key path, e.g. ``scene.shapes[2].radius``.

Example:
    >>> from whitted.scene.loader import load_scene
    >>> description = load_scene("scenes/simple_phong.json")
    >>> description.render_mode
    'phong'
"""

import json
import logging
import math
from dataclasses import astuple, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

RENDER_MODES = ("binary", "phong")

Vec3 = tuple[float, float, float]


class SceneConfigError(ValueError):
    """A scene document is missing a required field or has a malformed one.

    Attributes:
        key_path: Dotted path of the offending key, e.g. ``camera.fov``.
    """

    def __init__(self, key_path: str, message: str) -> None:
        self.key_path = key_path
        super().__init__(f"{key_path}: {message}" if key_path else message)


@dataclass
class CameraSpec:
    """Camera parameters as given in the document."""

    position: Vec3
    look_at: Vec3
    up: Vec3
    fov: float
    exposure: float
    width: int
    height: int
    aperture: float = 0.0


@dataclass
class MaterialSpec:
    """Phong material parameters as given in the document.

    Attributes:
        texture: Path of the texture image resolved against the scene
            file's directory, or None.
    """

    diffuse_color: Vec3
    specular_color: Vec3
    ks: float = 0.0
    kd: float = 0.8
    ka: float = 0.2
    specular_exponent: float = 1.0
    is_reflective: bool = False
    reflectivity: float = 0.0
    is_refractive: bool = False
    refractive_index: float = 1.0
    texture: Path | None = None


# Material for shapes without a material block: unlit, renders black
DEFAULT_MATERIAL = MaterialSpec(
    diffuse_color=(0.0, 0.0, 0.0),
    specular_color=(0.0, 0.0, 0.0),
    ks=0.0,
    kd=0.0,
    ka=0.0,
)


@dataclass
class ShapeSpec:
    """A shape from the document.

    Attributes:
        kind: "sphere", "cylinder" or "triangle".
        params: Geometry keyed by the manager's argument names.
        material: The shape's material.
    """

    kind: str
    params: dict[str, Any]
    material: MaterialSpec


@dataclass
class LightSpec:
    """A point light from the document."""

    position: Vec3
    intensity: Vec3


@dataclass
class SceneDescription:
    """A validated scene document."""

    render_mode: str
    camera: CameraSpec
    n_bounces: int = 1
    samples: int = 10
    tone_map: bool = True
    background: Vec3 = (0.0, 0.0, 0.0)
    lights: list[LightSpec] = field(default_factory=list)
    shapes: list[ShapeSpec] = field(default_factory=list)


# =============================================================================
# Field validation helpers
# =============================================================================


def _require(obj: dict, key: str, path: str) -> Any:
    if not isinstance(obj, dict):
        raise SceneConfigError(path, "expected an object")
    if key not in obj:
        raise SceneConfigError(_join(path, key), "missing required field")
    return obj[key]


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _number(value: Any, path: str, minimum: float | None = None, strict: bool = False) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise SceneConfigError(path, f"expected a finite number, got {value!r}")
    if minimum is not None:
        if strict and value <= minimum:
            raise SceneConfigError(path, f"must be greater than {minimum}, got {value}")
        if not strict and value < minimum:
            raise SceneConfigError(path, f"must be at least {minimum}, got {value}")
    return float(value)


def _integer(value: Any, path: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SceneConfigError(path, f"expected an integer, got {value!r}")
    if value < minimum:
        raise SceneConfigError(path, f"must be at least {minimum}, got {value}")
    return value


def _boolean(value: Any, path: str) -> bool:
    if not isinstance(value, bool):
        raise SceneConfigError(path, f"expected true or false, got {value!r}")
    return value


def _vec3(value: Any, path: str, non_negative: bool = False) -> Vec3:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise SceneConfigError(path, f"expected an array of 3 numbers, got {value!r}")
    minimum = 0.0 if non_negative else None
    x, y, z = (_number(c, f"{path}[{i}]", minimum) for i, c in enumerate(value))
    return (x, y, z)


# =============================================================================
# Document sections
# =============================================================================


def _parse_camera(obj: Any) -> CameraSpec:
    path = "camera"
    if not isinstance(obj, dict):
        raise SceneConfigError(path, "expected an object")

    camera = CameraSpec(
        position=_vec3(_require(obj, "position", path), f"{path}.position"),
        look_at=_vec3(_require(obj, "lookAt", path), f"{path}.lookAt"),
        up=_vec3(_require(obj, "upVector", path), f"{path}.upVector"),
        fov=_number(_require(obj, "fov", path), f"{path}.fov", 0.0, strict=True),
        exposure=_number(_require(obj, "exposure", path), f"{path}.exposure", 0.0),
        width=_integer(_require(obj, "width", path), f"{path}.width", 1),
        height=_integer(_require(obj, "height", path), f"{path}.height", 1),
        aperture=_number(obj.get("aperture", 0.0), f"{path}.aperture", 0.0),
    )
    if camera.fov >= 180.0:
        raise SceneConfigError(f"{path}.fov", f"must be below 180 degrees, got {camera.fov}")
    if camera.position == camera.look_at:
        raise SceneConfigError(f"{path}.lookAt", "must differ from camera.position")
    return camera


def _parse_material(obj: Any, path: str, base_dir: Path) -> MaterialSpec:
    if not isinstance(obj, dict):
        raise SceneConfigError(path, "expected an object")

    texture = None
    if "texture" in obj:
        name = obj["texture"]
        if not isinstance(name, str) or not name:
            raise SceneConfigError(f"{path}.texture", "expected a non-empty file name")
        texture = base_dir / name

    reflectivity = _number(obj.get("reflectivity", 0.0), f"{path}.reflectivity", 0.0)
    if reflectivity > 1.0:
        raise SceneConfigError(f"{path}.reflectivity", f"must be at most 1, got {reflectivity}")

    return MaterialSpec(
        diffuse_color=_vec3(_require(obj, "diffusecolor", path), f"{path}.diffusecolor", True),
        specular_color=_vec3(_require(obj, "specularcolor", path), f"{path}.specularcolor", True),
        ks=_number(obj.get("ks", 0.0), f"{path}.ks", 0.0),
        kd=_number(obj.get("kd", 0.8), f"{path}.kd", 0.0),
        ka=_number(obj.get("ka", 0.2), f"{path}.ka", 0.0),
        specular_exponent=_number(obj.get("specularexponent", 1.0), f"{path}.specularexponent", 0.0),
        is_reflective=_boolean(obj.get("isreflective", False), f"{path}.isreflective"),
        reflectivity=reflectivity,
        is_refractive=_boolean(obj.get("isrefractive", False), f"{path}.isrefractive"),
        refractive_index=_number(obj.get("refractiveindex", 1.0), f"{path}.refractiveindex", 0.0),
        texture=texture,
    )


def _parse_shape(obj: dict, path: str, base_dir: Path) -> ShapeSpec | None:
    kind = obj["type"]

    if kind == "sphere":
        params = {
            "center": _vec3(_require(obj, "center", path), f"{path}.center"),
            "radius": _number(_require(obj, "radius", path), f"{path}.radius"),
        }
    elif kind == "cylinder":
        axis = _vec3(_require(obj, "axis", path), f"{path}.axis")
        if axis == (0.0, 0.0, 0.0):
            raise SceneConfigError(f"{path}.axis", "must be non-zero")
        params = {
            "center": _vec3(_require(obj, "center", path), f"{path}.center"),
            "axis": axis,
            "radius": _number(_require(obj, "radius", path), f"{path}.radius"),
            "half_height": _number(_require(obj, "height", path), f"{path}.height"),
        }
    elif kind == "triangle":
        params = {
            "v0": _vec3(_require(obj, "v0", path), f"{path}.v0"),
            "v1": _vec3(_require(obj, "v1", path), f"{path}.v1"),
            "v2": _vec3(_require(obj, "v2", path), f"{path}.v2"),
        }
    else:
        logger.warning("Skipping %s: unsupported shape type %r", path, kind)
        return None

    material = DEFAULT_MATERIAL
    if "material" in obj:
        material = _parse_material(obj["material"], f"{path}.material", base_dir)

    return ShapeSpec(kind=kind, params=params, material=material)


def _parse_lights(scene: dict) -> list[LightSpec]:
    lights: list[LightSpec] = []
    entries = scene.get("lightsources", [])
    if not isinstance(entries, list):
        raise SceneConfigError("scene.lightsources", "expected an array")

    for i, obj in enumerate(entries):
        path = f"scene.lightsources[{i}]"
        if not isinstance(obj, dict) or "type" not in obj:
            logger.warning("Skipping %s: light source has no 'type' key", path)
            continue
        if obj["type"] != "pointlight":
            logger.warning("Skipping %s: unsupported light type %r", path, obj["type"])
            continue
        lights.append(
            LightSpec(
                position=_vec3(_require(obj, "position", path), f"{path}.position"),
                intensity=_vec3(_require(obj, "intensity", path), f"{path}.intensity", True),
            )
        )
    return lights


def parse_scene(document: dict, base_dir: str | Path = ".") -> SceneDescription:
    """Validate a scene document.

    Args:
        document: The decoded JSON document.
        base_dir: Directory texture file names are resolved against.

    Returns:
        The validated SceneDescription.

    Raises:
        SceneConfigError: If a required field is missing or malformed.
    """
    if not isinstance(document, dict):
        raise SceneConfigError("", "scene document must be a JSON object")
    base_dir = Path(base_dir)

    render_mode = _require(document, "rendermode", "")
    if not isinstance(render_mode, str) or render_mode.lower() not in RENDER_MODES:
        raise SceneConfigError(
            "rendermode", f"expected one of {', '.join(RENDER_MODES)}, got {render_mode!r}"
        )

    camera = _parse_camera(_require(document, "camera", ""))

    scene = _require(document, "scene", "")
    if not isinstance(scene, dict):
        raise SceneConfigError("scene", "expected an object")

    background = (0.0, 0.0, 0.0)
    if "backgroundcolor" in scene:
        background = _vec3(scene["backgroundcolor"], "scene.backgroundcolor", True)
    else:
        logger.warning("No scene.backgroundcolor given, using black")

    shape_entries = scene.get("shapes", [])
    if not isinstance(shape_entries, list):
        raise SceneConfigError("scene.shapes", "expected an array")

    shapes: list[ShapeSpec] = []
    for i, obj in enumerate(shape_entries):
        path = f"scene.shapes[{i}]"
        if not isinstance(obj, dict) or "type" not in obj:
            logger.warning("Skipping %s: shape has no 'type' key", path)
            continue
        shape = _parse_shape(obj, path, base_dir)
        if shape is not None:
            shapes.append(shape)

    return SceneDescription(
        render_mode=render_mode.lower(),
        camera=camera,
        n_bounces=_integer(document.get("nbounces", 1), "nbounces", 0),
        samples=_integer(document.get("samples", 10), "samples", 1),
        tone_map=_boolean(document.get("tonemap", True), "tonemap"),
        background=background,
        lights=_parse_lights(scene),
        shapes=shapes,
    )


def load_scene(path: str | Path) -> SceneDescription:
    """Read and validate a scene document from a JSON file.

    Texture file names are resolved relative to the file's directory.

    Raises:
        OSError: If the file cannot be read.
        SceneConfigError: If the file is not valid JSON or the document is
            malformed.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        try:
            document = json.load(f)
        except json.JSONDecodeError as exc:
            raise SceneConfigError("", f"{path} is not valid JSON: {exc}") from exc
    return parse_scene(document, base_dir=path.parent)


def build_scene(description: SceneDescription, manager) -> None:
    """Upload a scene description into a SceneManager.

    Shapes with equal material parameters share one registered material,
    so the material registry grows with distinct materials, not shapes.
    A texture that cannot be loaded leaves its material untextured.

    Args:
        description: The validated scene.
        manager: A ``whitted.scene.manager.SceneManager``; it is cleared
            first.
    """
    manager.clear()

    material_ids: dict[tuple, int] = {}
    texture_ids: dict[Path, int] = {}

    for shape in description.shapes:
        spec = shape.material
        key = astuple(spec)
        if key not in material_ids:
            texture_id = -1
            if spec.texture is not None:
                if spec.texture not in texture_ids:
                    texture_ids[spec.texture] = manager.add_texture(spec.texture)
                texture_id = texture_ids[spec.texture]
            material_ids[key] = manager.add_material(
                diffuse_color=spec.diffuse_color,
                specular_color=spec.specular_color,
                ks=spec.ks,
                kd=spec.kd,
                ka=spec.ka,
                specular_exponent=spec.specular_exponent,
                is_reflective=spec.is_reflective,
                reflectivity=spec.reflectivity,
                is_refractive=spec.is_refractive,
                refractive_index=spec.refractive_index,
                texture_id=texture_id,
            )
        material_id = material_ids[key]

        if shape.kind == "sphere":
            manager.add_sphere(material_id=material_id, **shape.params)
        elif shape.kind == "cylinder":
            manager.add_cylinder(material_id=material_id, **shape.params)
        else:
            manager.add_triangle(material_id=material_id, **shape.params)

    for light in description.lights:
        manager.add_point_light(light.position, light.intensity)

    logger.info(
        "Scene built: %d shapes, %d materials, %d lights",
        len(description.shapes),
        len(material_ids),
        len(description.lights),
    )
