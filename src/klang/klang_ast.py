"""
Defines the abstract syntax tree (AST) node types for the KLang scene language.

The tree is a closed tagged union: every node is a dataclass carrying a class-level
`kind` tag, which the interpreter uses to dispatch (`exec_<kind>` / `eval_<kind>`).

Statements:
    Import, Assignment, PropertyAssignment, MethodCall, ConsolePrint, If, While, For
    (plus the Block and Program containers).

Expressions:
    Literal, Reference, BinaryExpr, CallExpr, and the domain literals
    CubeExpr, MeshExpr, MaterialExpr, ModifierExpr, GroupExpr.

Helpers:
    MeshFace, LibraryRef, CoordinateList, RelativePosition.

Every node converts to plain dictionaries with `to_dict()`, suitable for JSON
output, debugging, and structural assertions in tests.

Example:
    Assignment("a", Literal(1.0)).to_dict()
    # {'kind': 'assignment', 'identifier': 'a', 'value': {'kind': 'literal', 'value': 1.0}}
"""

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Union


def _serialize(value: Any) -> Any:
    if isinstance(value, ASTNode):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    return value


@dataclass
class ASTNode:
    """Base class of every KLang syntax tree node."""

    kind: ClassVar[str] = "node"

    def to_dict(self) -> dict[str, Any]:
        """Converts the node (and all descendants) into nested dictionaries."""
        out: dict[str, Any] = {"kind": self.kind}
        for f in fields(self):
            out[f.name] = _serialize(getattr(self, f.name))
        return out


# --- Expressions -----------------------------------------------------------


@dataclass
class Literal(ASTNode):
    kind: ClassVar[str] = "literal"
    value: Any


@dataclass
class Reference(ASTNode):
    """A bare name (`box`) or a member read (`lib.item`)."""

    kind: ClassVar[str] = "reference"
    name: str
    member: str | None = None


@dataclass
class BinaryExpr(ASTNode):
    kind: ClassVar[str] = "binary"
    left: "Expression"
    operator: str
    right: "Expression"


@dataclass
class CallExpr(ASTNode):
    """A call. `receiver` is set for dotted calls such as `m.sqrt(2)`."""

    kind: ClassVar[str] = "call"
    callee: str
    args: list["Expression"] = field(default_factory=list)
    receiver: str | None = None


@dataclass
class CubeExpr(ASTNode):
    """Cube literal; each vertex is kept as its raw `"x,y,z"` text."""

    kind: ClassVar[str] = "cube"
    vertices: list[str] = field(default_factory=list)


@dataclass
class LibraryRef(ASTNode):
    """A `lib.item` material reference."""

    kind: ClassVar[str] = "library_ref"
    library: str
    item: str

    def __str__(self) -> str:
        return f"{self.library}.{self.item}"


MaterialRef = Union[str, LibraryRef]


@dataclass
class MeshFace(ASTNode):
    kind: ClassVar[str] = "face"
    indices: list[int]
    material_ref: MaterialRef | None = None


@dataclass
class MeshExpr(ASTNode):
    kind: ClassVar[str] = "mesh"
    vertices: list[tuple[float, float, float]] = field(default_factory=list)
    faces: list[MeshFace] = field(default_factory=list)


PropertyValue = Union["Expression", list["Expression"]]


@dataclass
class MaterialExpr(ASTNode):
    kind: ClassVar[str] = "material"
    properties: dict[str, PropertyValue] = field(default_factory=dict)


@dataclass
class ModifierExpr(ASTNode):
    kind: ClassVar[str] = "modifier"
    modifier_type: str
    properties: dict[str, PropertyValue] = field(default_factory=dict)


@dataclass
class GroupExpr(ASTNode):
    kind: ClassVar[str] = "group"
    children: list[str] = field(default_factory=list)


Expression = Union[
    Literal,
    Reference,
    BinaryExpr,
    CallExpr,
    CubeExpr,
    MeshExpr,
    MaterialExpr,
    ModifierExpr,
    GroupExpr,
]


# --- Property assignment fast paths ----------------------------------------


@dataclass
class CoordinateList(ASTNode):
    """Literal coordinates written inline, e.g. `box.pos = 1, -2, 3`."""

    kind: ClassVar[str] = "coordinates"
    values: list[float] = field(default_factory=list)


@dataclass
class RelativePosition(ASTNode):
    """Coordinates measured from another object, e.g. `lamp.pos = 0, 2, 0 from table`."""

    kind: ClassVar[str] = "relative_position"
    relative_to: str
    offset: list[float] = field(default_factory=list)


# --- Statements ------------------------------------------------------------


@dataclass
class Block(ASTNode):
    kind: ClassVar[str] = "block"
    statements: list["Statement"] = field(default_factory=list)


@dataclass
class Import(ASTNode):
    kind: ClassVar[str] = "import"
    source: str
    alias: str | None = None
    items: list[str] | None = None


@dataclass
class Assignment(ASTNode):
    kind: ClassVar[str] = "assignment"
    identifier: str
    value: Expression


@dataclass
class PropertyAssignment(ASTNode):
    kind: ClassVar[str] = "property_assignment"
    object_name: str
    property: str
    value: Union[Expression, CoordinateList, RelativePosition]
    sub_target: str | None = None


@dataclass
class MethodCall(ASTNode):
    kind: ClassVar[str] = "method_call"
    object_name: str
    method: str
    args: list[Expression] = field(default_factory=list)
    exclusion: str | None = None


@dataclass
class ConsolePrint(ASTNode):
    kind: ClassVar[str] = "console_print"
    message: Expression


@dataclass
class If(ASTNode):
    kind: ClassVar[str] = "if"
    condition: Expression
    then_block: Block
    else_block: Union[Block, "If", None] = None


@dataclass
class While(ASTNode):
    kind: ClassVar[str] = "while"
    condition: Expression
    body: Block


@dataclass
class For(ASTNode):
    kind: ClassVar[str] = "for"
    variable: str
    start: Expression
    end: Expression
    body: Block
    step: Expression | None = None


Statement = Union[
    Import,
    Assignment,
    PropertyAssignment,
    MethodCall,
    ConsolePrint,
    If,
    While,
    For,
]


@dataclass
class Program(ASTNode):
    kind: ClassVar[str] = "program"
    statements: list[Statement] = field(default_factory=list)

    def imports(self) -> list[Import]:
        """Returns the top-level import statements in source order."""
        return [stmt for stmt in self.statements if isinstance(stmt, Import)]


__all__ = [
    "ASTNode",
    "Assignment",
    "BinaryExpr",
    "Block",
    "CallExpr",
    "ConsolePrint",
    "CoordinateList",
    "CubeExpr",
    "Expression",
    "For",
    "GroupExpr",
    "If",
    "Import",
    "LibraryRef",
    "Literal",
    "MaterialExpr",
    "MaterialRef",
    "MeshExpr",
    "MeshFace",
    "MethodCall",
    "ModifierExpr",
    "Program",
    "PropertyAssignment",
    "Reference",
    "RelativePosition",
    "Statement",
    "While",
]
