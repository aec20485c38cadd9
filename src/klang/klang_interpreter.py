"""
Tree-walking interpreter for KLang programs.

The interpreter walks a parsed `Program`, maintaining a scope (identifier -> runtime
value) and a scene graph (identifier -> scene node), and returns both together with the
log and error streams as a `CompilerResult`.

1. Execution Model
Statements are executed by `execute()`, expressions evaluated by `evaluate()`. Both
dispatch on the node's `kind` tag to an `exec_<kind>` / `eval_<kind>` method.

2. Scope
The scope starts with the built-in constants (`PI`, colours, axes, directions) followed
by the already-resolved module table. Modules are plain mappings; their functions are
called positionally and their results passed through untouched.

3. Scene Graph
Assigning a geometry or group stores it in the scene graph under the assigned name and
stamps its `id`. Groups reparent their currently defined children at assignment time
only; reassigning a child name later does not rewire the group.

4. Failure Containment
Every statement runs inside its own containment: a `KlangRuntimeError` or any other
exception is recorded in `errors` and execution continues with the next statement.
`interpret()` never raises.

5. Bounded Loops
`while` and `for` stop after `max_iterations` body executions (10,000 by default) and
record a single error when the loop still wanted to continue.
"""

import copy
import logging
import math
import operator
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from typing import Any

from klang.klang_ast import (
    ASTNode,
    Assignment,
    BinaryExpr,
    Block,
    CallExpr,
    ConsolePrint,
    CoordinateList,
    CubeExpr,
    Expression,
    For,
    GroupExpr,
    If,
    Import,
    LibraryRef,
    Literal,
    MaterialExpr,
    MaterialRef,
    MeshExpr,
    MethodCall,
    ModifierExpr,
    Program,
    PropertyAssignment,
    PropertyValue,
    Reference,
    RelativePosition,
    While,
)
from klang.klang_constants import (
    AXES,
    COERCIONS,
    CUBE_FACES,
    MAX_LOOP_ITERATIONS,
    initial_scope,
)
from klang.klang_scene import (
    Face,
    Group,
    Material,
    MeshGeometry,
    PyramidGeometry,
    SceneNode,
    Vec3,
    format_value,
    to_scene_dict,
)

logger = logging.getLogger(__name__)

LOOP_LIMIT_MESSAGE = "Runtime Error: Loop exceeded {limit} iterations."

# Scene node fields readable through `node.member`
NODE_MEMBERS = frozenset(
    {
        "id",
        "pos",
        "rot",
        "scale",
        "parent",
        "material",
        "children",
        "vertices",
        "faces",
        "height",
        "direction",
    }
)


class KlangRuntimeError(Exception):
    """Recoverable evaluation fault. The message is shown to the user verbatim."""


@dataclass
class CompilerResult:
    """Everything a compile produces.

    Attributes:
        scene_graph: Top-level identifier -> scene node.
        logs: Lines printed with `console.print`, in order.
        errors: Diagnostics, fatal or recoverable, in order.
        scope: The file's final bindings, exported when the file is imported.
    """

    scene_graph: dict[str, SceneNode] = field(default_factory=dict)
    logs: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    scope: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "scene_graph": to_scene_dict(self.scene_graph),
            "logs": list(self.logs),
            "errors": list(self.errors),
        }


def _remainder(left: Any, right: Any) -> Any:
    try:
        result = math.fmod(left, right)
    except ValueError:
        raise ZeroDivisionError("modulo by zero") from None
    if isinstance(left, int) and isinstance(right, int):
        return int(result)
    return result


BINARY_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "%": _remainder,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Interpreter:
    """Executes one KLang program against a fresh scope and scene graph.

    An instance accumulates state across `run()` calls; use `interpret()` (or a new
    instance) for independent runs.
    """

    def __init__(
        self,
        modules: dict[str, Any] | None = None,
        max_iterations: int = MAX_LOOP_ITERATIONS,
    ) -> None:
        self.max_iterations = max_iterations
        self.scene_graph: dict[str, SceneNode] = {}
        self.logs: list[str] = []
        self.errors: list[str] = []
        self.scope: dict[str, Any] = initial_scope()
        self.scope.update(modules or {})

    def run(self, program: Program) -> CompilerResult:
        for stmt in program.statements:
            self.execute(stmt)
        return CompilerResult(self.scene_graph, self.logs, self.errors, self.scope)

    # --- Diagnostics -------------------------------------------------------

    def warn(self, message: str) -> None:
        self.errors.append(f"Warning: {message}")

    def lookup(self, name: str) -> Any:
        if name in self.scope:
            return self.scope[name]
        raise KlangRuntimeError(f"Runtime Error: Variable '{name}' not defined.")

    def require_object(self, name: str) -> SceneNode:
        node = self.scene_graph.get(name)
        if node is None:
            raise KlangRuntimeError(f"Runtime Error: Object '{name}' not found.")
        return node

    # --- Statements --------------------------------------------------------

    def execute(self, stmt: ASTNode) -> None:
        """Runs one statement, recording any failure instead of raising it."""
        try:
            handler = getattr(self, f"exec_{stmt.kind}")
            handler(stmt)
        except KlangRuntimeError as e:
            self.errors.append(str(e))
        except Exception as e:
            logger.debug("statement %s failed", stmt.kind, exc_info=True)
            self.errors.append(f"Error executing statement: {e}")

    def exec_block(self, block: Block) -> None:
        for stmt in block.statements:
            self.execute(stmt)

    def exec_import(self, stmt: Import) -> None:
        suffix = f" as {stmt.alias}" if stmt.alias else ""
        self.logs.append(f"Imported {stmt.source}{suffix}")

    def exec_assignment(self, stmt: Assignment) -> None:
        name = stmt.identifier
        value = self.evaluate(stmt.value)

        if isinstance(value, SceneNode):
            if value.id is not None and value.id != name:
                # Already stored under another name; keep `id == key` for both.
                value = copy.deepcopy(value)
                value.parent = None
            value.id = name
            if isinstance(value, Group):
                self.adopt_children(value)
            self.scene_graph[name] = value
        else:
            self.scene_graph.pop(name, None)

        self.scope[name] = value

    def adopt_children(self, group: Group) -> None:
        for child_id in group.children:
            child = self.scope.get(child_id)
            if isinstance(child, SceneNode):
                if child is not group:
                    child.parent = group.id
            else:
                self.warn(f"Group member '{child_id}' is not defined.")

    def exec_property_assignment(self, stmt: PropertyAssignment) -> None:
        node = self.require_object(stmt.object_name)
        if stmt.sub_target is not None:
            if not isinstance(node, Group) or stmt.sub_target not in node.children:
                raise KlangRuntimeError(
                    f"Runtime Error: '{stmt.sub_target}' is not a child of group "
                    f"'{stmt.object_name}'."
                )
            node = self.require_object(stmt.sub_target)

        value = stmt.value
        if isinstance(value, CoordinateList):
            self.set_property(node, stmt.property, list(value.values))
        elif isinstance(value, RelativePosition):
            if stmt.property != "pos":
                raise KlangRuntimeError(
                    "Runtime Error: Relative coordinates only apply to 'pos'."
                )
            anchor = self.require_object(value.relative_to)
            node.pos = anchor.pos + Vec3.from_value(value.offset)
        else:
            self.set_property(node, stmt.property, self.evaluate(value))

    def set_property(self, node: SceneNode, prop: str, value: Any) -> None:
        if prop == "pos":
            node.pos = Vec3.from_value(value)
        elif prop == "rot":
            degrees = Vec3.from_value(value)
            node.rot = Vec3(*(math.radians(c) for c in (degrees.x, degrees.y, degrees.z)))
        elif prop == "scale":
            node.scale = Vec3(value, value, value) if _is_number(value) else Vec3.from_value(value)
        elif prop == "material":
            node.material = self.material_value(value)
        elif prop in ("height", "direction") and isinstance(node, PyramidGeometry):
            setattr(node, prop, value)
        else:
            node.attributes[prop] = value

    def material_value(self, value: Any) -> Material | None:
        if isinstance(value, Material):
            return value
        if isinstance(value, str):
            resolved = self.resolve_material(value)
            if resolved is not None:
                return resolved
        self.warn(f"Material '{format_value(value)}' not found.")
        return None

    def exec_method_call(self, stmt: MethodCall) -> None:
        node = self.scene_graph.get(stmt.object_name)
        if node is None:
            receiver = self.scope.get(stmt.object_name)
            if isinstance(receiver, dict):
                # Library call used as a statement, e.g. `m.seed(4)`
                fn = self.member_of(receiver, stmt.object_name, stmt.method)
                self.call(fn, f"{stmt.object_name}.{stmt.method}", stmt.args)
                return
            raise KlangRuntimeError(f"Runtime Error: Object '{stmt.object_name}' not found.")

        if stmt.method == "rotate":
            if not stmt.args:
                raise KlangRuntimeError("Runtime Error: rotate() requires an angle.")
            radians = math.radians(self.evaluate(stmt.args[0]))
            node.rot.y += radians
            if stmt.exclusion:
                excluded = self.scene_graph.get(stmt.exclusion)
                if excluded is None:
                    self.warn(f"Excluded object '{stmt.exclusion}' not found.")
                else:
                    excluded.rot.y -= radians
        elif stmt.method == "move":
            offsets = [self.evaluate(arg) or 0 for arg in stmt.args[:3]]
            node.pos = node.pos + Vec3.from_value(offsets)
        else:
            logger.debug("ignoring unknown method %s.%s", stmt.object_name, stmt.method)

    def exec_console_print(self, stmt: ConsolePrint) -> None:
        self.logs.append(format_value(self.evaluate(stmt.message)))

    def exec_if(self, stmt: If) -> None:
        if self.evaluate(stmt.condition):
            self.exec_block(stmt.then_block)
        elif isinstance(stmt.else_block, If):
            self.execute(stmt.else_block)
        elif stmt.else_block is not None:
            self.exec_block(stmt.else_block)

    def loop_limit_reached(self) -> None:
        self.errors.append(LOOP_LIMIT_MESSAGE.format(limit=self.max_iterations))

    def exec_while(self, stmt: While) -> None:
        iterations = 0
        while self.evaluate(stmt.condition):
            if iterations >= self.max_iterations:
                self.loop_limit_reached()
                break
            self.exec_block(stmt.body)
            iterations += 1

    def exec_for(self, stmt: For) -> None:
        start = self.evaluate(stmt.start)
        end = self.evaluate(stmt.end)
        step = self.evaluate(stmt.step) if stmt.step is not None else 1

        self.scope[stmt.variable] = start
        iterations = 0
        while True:
            current = self.scope[stmt.variable]
            if step > 0 and current > end:
                break
            if step < 0 and current < end:
                break
            if iterations >= self.max_iterations:
                self.loop_limit_reached()
                break
            self.exec_block(stmt.body)
            self.scope[stmt.variable] = self.scope[stmt.variable] + step
            iterations += 1

    # --- Expressions -------------------------------------------------------

    def evaluate(self, expr: Expression) -> Any:
        return getattr(self, f"eval_{expr.kind}")(expr)

    def evaluate_properties(self, properties: dict[str, PropertyValue]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in properties.items():
            if isinstance(value, list):
                result[key] = [self.evaluate(v) for v in value]
            else:
                result[key] = self.evaluate(value)
        return result

    def eval_literal(self, expr: Literal) -> Any:
        return expr.value

    def eval_reference(self, expr: Reference) -> Any:
        target = self.lookup(expr.name)
        if expr.member is None:
            return target
        return self.member_of(target, expr.name, expr.member)

    def member_of(self, target: Any, name: str, member: str) -> Any:
        """Reads `name.member` from a module mapping, record, or scene node."""
        if isinstance(target, dict):
            if member in target:
                return target[member]
        elif isinstance(target, SceneNode):
            if member in NODE_MEMBERS and hasattr(target, member):
                return getattr(target, member)
            if member in target.attributes:
                return target.attributes[member]
        elif isinstance(target, Material):
            if member in target.properties:
                return target.properties[member]
        elif isinstance(target, Vec3) and member in AXES:
            return getattr(target, member)
        raise KlangRuntimeError(f"Runtime Error: '{name}' has no member '{member}'.")

    def eval_binary(self, expr: BinaryExpr) -> Any:
        left = self.evaluate(expr.left)
        right = self.evaluate(expr.right)
        op = expr.operator
        if op == "+" and (isinstance(left, str) or isinstance(right, str)):
            return format_value(left) + format_value(right)
        try:
            return BINARY_OPERATORS[op](left, right)
        except ZeroDivisionError:
            raise KlangRuntimeError("Runtime Error: Division by zero.") from None
        except TypeError:
            raise KlangRuntimeError(
                f"Runtime Error: Cannot apply '{op}' to {format_value(left)} and "
                f"{format_value(right)}."
            ) from None

    def eval_call(self, expr: CallExpr) -> Any:
        if expr.receiver is None and expr.callee in COERCIONS:
            return self.coerce(expr.callee, [self.evaluate(a) for a in expr.args])
        if expr.receiver is not None:
            fn = self.member_of(self.lookup(expr.receiver), expr.receiver, expr.callee)
            label = f"{expr.receiver}.{expr.callee}"
        else:
            fn = self.lookup(expr.callee)
            label = expr.callee
        return self.call(fn, label, expr.args)

    def call(self, fn: Any, label: str, args: list[Expression]) -> Any:
        if not callable(fn):
            raise KlangRuntimeError(f"Runtime Error: '{label}' is not a function.")
        return fn(*[self.evaluate(a) for a in args])

    def coerce(self, kind: str, args: list[Any]) -> Any:
        if len(args) != 1:
            raise KlangRuntimeError(f"Runtime Error: {kind}() takes exactly one argument.")
        value = args[0]
        try:
            if kind == "int":
                return math.floor(float(value))
            if kind == "float":
                return float(value)
        except (TypeError, ValueError, OverflowError):
            raise KlangRuntimeError(
                f"Runtime Error: Cannot convert {format_value(value)} to {kind}."
            ) from None
        if kind == "string":
            return format_value(value)
        return bool(value)

    def eval_cube(self, expr: CubeExpr) -> MeshGeometry:
        try:
            vertices = [Vec3.parse(text) for text in expr.vertices]
        except ValueError:
            raise KlangRuntimeError("Runtime Error: cube() vertices must be numeric.") from None
        if len(vertices) != 8:
            raise KlangRuntimeError("Runtime Error: cube() requires exactly 8 vertices.")
        faces = [Face(list(indices)) for indices in CUBE_FACES]
        return MeshGeometry(vertices=vertices, faces=faces)

    def resolve_material(self, ref: MaterialRef) -> Material | None:
        if isinstance(ref, LibraryRef):
            library = self.scope.get(ref.library)
            found = library.get(ref.item) if isinstance(library, dict) else None
        else:
            found = self.scope.get(ref)
        return found if isinstance(found, Material) else None

    def eval_mesh(self, expr: MeshExpr) -> MeshGeometry:
        faces = []
        for face in expr.faces:
            material = None
            if face.material_ref is not None:
                material = self.resolve_material(face.material_ref)
                if material is None:
                    self.warn(f"Material '{face.material_ref}' not found.")
            faces.append(Face(list(face.indices), material))
        vertices = [Vec3(*v) for v in expr.vertices]
        return MeshGeometry(vertices=vertices, faces=faces)

    def eval_material(self, expr: MaterialExpr) -> Material:
        return Material(self.evaluate_properties(expr.properties))

    def eval_group(self, expr: GroupExpr) -> Group:
        return Group(children=list(expr.children))

    def eval_modifier(self, expr: ModifierExpr) -> SceneNode:
        props = self.evaluate_properties(expr.properties)
        base = props.get("base")
        if base is None:
            raise KlangRuntimeError("Runtime Error: Modifier requires a 'base' property.")
        if not isinstance(base, SceneNode):
            raise KlangRuntimeError(
                "Runtime Error: Modifier 'base' must be a geometry or group."
            )
        clone = copy.deepcopy(base)
        clone.id = None
        clone.parent = None

        apply = getattr(self, f"modify_{expr.modifier_type}", None)
        if apply is None:
            self.warn(f"Unknown modifier '{expr.modifier_type}'.")
            return clone
        return apply(clone, props)

    def modify_pyramid(self, node: SceneNode, props: dict[str, Any]) -> PyramidGeometry:
        if not isinstance(node, MeshGeometry):
            raise KlangRuntimeError("Runtime Error: pyramid modifier requires a geometry base.")
        state = {f.name: getattr(node, f.name) for f in fields(MeshGeometry)}
        return PyramidGeometry(
            **state,
            height=props.get("height", 1),
            direction=props.get("direction") or "up",
        )

    def modify_scale(self, node: SceneNode, props: dict[str, Any]) -> SceneNode:
        for axis in AXES:
            if axis in props:
                setattr(node.scale, axis, getattr(node.scale, axis) * props[axis])
        return node

    def modify_translate(self, node: SceneNode, props: dict[str, Any]) -> SceneNode:
        for axis in AXES:
            if axis in props:
                setattr(node.pos, axis, getattr(node.pos, axis) + props[axis])
        return node

    def modify_rotate(self, node: SceneNode, props: dict[str, Any]) -> SceneNode:
        axis, angle = props.get("axis"), props.get("angle")
        if isinstance(axis, list) and isinstance(angle, list):
            pairs = list(zip(axis, angle))
        elif isinstance(axis, str) and _is_number(angle):
            pairs = [(axis, angle)]
        else:
            raise KlangRuntimeError(
                "Runtime Error: rotate modifier needs an axis and an angle."
            )
        for ax, degrees in pairs:
            if ax not in AXES:
                raise KlangRuntimeError(f"Runtime Error: Unknown rotation axis '{ax}'.")
            setattr(node.rot, ax, getattr(node.rot, ax) + math.radians(degrees))
        return node


def interpret(
    program: Program,
    modules: dict[str, Any] | None = None,
    *,
    max_iterations: int = MAX_LOOP_ITERATIONS,
) -> CompilerResult:
    """Interprets `program` with the already-resolved `modules`; never raises."""
    return Interpreter(modules, max_iterations=max_iterations).run(program)


__all__ = [
    "CompilerResult",
    "Interpreter",
    "KlangRuntimeError",
    "interpret",
]
