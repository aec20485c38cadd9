"""
Runtime scene model produced by the KLang interpreter.

The scene graph maps top-level identifiers to scene nodes. Scene nodes form a closed
set of variants so consumers (renderers, exporters, tests) can branch exhaustively:

Classes:
    Vec3: A mutable 3-component vector used for positions, rotations, and scales.
    Material: A typed bag of evaluated material properties.
    Face: A polygon (index list) with an optional resolved material.
    SceneNode: Shared transform/parent/material state of every node.
    MeshGeometry: Polygon mesh geometry (`shape == "mesh"`).
    PyramidGeometry: Pyramid geometry produced by the pyramid modifier (`shape == "pyramid"`).
    Group: An ordered list of child identifiers sharing a transform.

Functions:
    format_value(value): Renders a runtime value the way `console.print` shows it.

Parent links are identifiers, never object references, so the graph serializes
directly with `to_dict()` and has no ownership cycles.
"""

import math
from dataclasses import dataclass, field
from typing import Any, ClassVar


@dataclass
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def parse(cls, text: str) -> "Vec3":
        """Builds a vector from `"x,y,z"` text; missing or blank components become 0."""
        parts = [p.strip() for p in text.split(",")]
        values = [float(p) if p else 0.0 for p in parts[:3]]
        values += [0.0] * (3 - len(values))
        return cls(*values)

    @classmethod
    def from_value(cls, value: Any) -> "Vec3":
        """Coerces a coordinate list, `{x, y, z}` record, or Vec3 into a new Vec3."""
        if isinstance(value, Vec3):
            return cls(value.x, value.y, value.z)
        if isinstance(value, dict):
            return cls(value.get("x", 0), value.get("y", 0), value.get("z", 0))
        if isinstance(value, (list, tuple)):
            padded = list(value[:3]) + [0] * (3 - len(value[:3]))
            return cls(*padded)
        raise TypeError(f"Cannot use {format_value(value)} as a 3-vector")

    def __add__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass
class Material:
    """Evaluated `material { ... }` properties, kept in declaration order."""

    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def color(self) -> Any:
        return self.properties.get("color")

    @property
    def roughness(self) -> Any:
        return self.properties.get("roughness")

    def get(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "material", **{k: _plain(v) for k, v in self.properties.items()}}


@dataclass
class Face:
    indices: list[int]
    material: Material | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "indices": list(self.indices),
            "material": self.material.to_dict() if self.material else None,
        }


@dataclass
class SceneNode:
    """State shared by every scene graph entry.

    Attributes:
        id: The scene graph key this node is stored under (stamped on assignment).
        pos: Position.
        rot: Rotation in radians.
        scale: Per-axis scale factors.
        parent: Identifier of the enclosing group, if any.
        material: Object-level material.
        attributes: Free-form properties set through property assignment.
    """

    kind: ClassVar[str] = "node"

    id: str | None = None
    pos: Vec3 = field(default_factory=Vec3)
    rot: Vec3 = field(default_factory=Vec3)
    scale: Vec3 = field(default_factory=lambda: Vec3(1.0, 1.0, 1.0))
    parent: str | None = None
    material: Material | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.kind,
            "id": self.id,
            "pos": self.pos.to_dict(),
            "rot": self.rot.to_dict(),
            "scale": self.scale.to_dict(),
            "parent": self.parent,
            "material": self.material.to_dict() if self.material else None,
        }
        out.update({k: _plain(v) for k, v in self.attributes.items()})
        return out


@dataclass
class MeshGeometry(SceneNode):
    kind: ClassVar[str] = "geometry"
    shape: ClassVar[str] = "mesh"

    vertices: list[Vec3] = field(default_factory=list)
    faces: list[Face] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["shape"] = self.shape
        out["vertices"] = [v.to_dict() for v in self.vertices]
        out["faces"] = [f.to_dict() for f in self.faces]
        return out


@dataclass
class PyramidGeometry(MeshGeometry):
    shape: ClassVar[str] = "pyramid"

    height: float = 1.0
    direction: str = "up"

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["height"] = self.height
        out["direction"] = self.direction
        return out


@dataclass
class Group(SceneNode):
    kind: ClassVar[str] = "group"

    children: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["children"] = list(self.children)
        return out


def _plain(value: Any) -> Any:
    """Converts runtime values into JSON-friendly data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items() if not callable(v)}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    return value


def format_value(value: Any) -> str:
    """Renders a runtime value for the log stream.

    Integral floats print without a fractional part, booleans as `true`/`false`,
    and `None` as `null`.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Vec3):
        return f"{format_value(value.x)},{format_value(value.y)},{format_value(value.z)}"
    if isinstance(value, SceneNode):
        return f"[{value.kind} {value.id}]"
    if isinstance(value, Material):
        return "[material]"
    if isinstance(value, dict):
        inner = ", ".join(f"{k}: {format_value(v)}" for k, v in value.items())
        return "{" + inner + "}"
    if isinstance(value, (list, tuple)):
        return ",".join(format_value(v) for v in value)
    if callable(value):
        return "[function]"
    return str(value)


def to_scene_dict(scene_graph: dict[str, SceneNode]) -> dict[str, dict[str, Any]]:
    """Serializes a whole scene graph for JSON output."""
    return {name: node.to_dict() for name, node in scene_graph.items()}


__all__ = [
    "Face",
    "Group",
    "Material",
    "MeshGeometry",
    "PyramidGeometry",
    "SceneNode",
    "Vec3",
    "format_value",
    "to_scene_dict",
]
