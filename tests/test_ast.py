import hypothesis.strategies as st
from hypothesis import given

from klang.klang_ast import (
    Assignment,
    BinaryExpr,
    Block,
    CallExpr,
    For,
    If,
    Import,
    LibraryRef,
    Literal,
    MeshExpr,
    MeshFace,
    Program,
    Reference,
    While,
)


def test_literal_to_dict() -> None:
    assert Literal(1.0).to_dict() == {"kind": "literal", "value": 1.0}


def test_assignment_to_dict_nests() -> None:
    d = Assignment("a", BinaryExpr(Literal(1), "+", Reference("b"))).to_dict()
    assert d["kind"] == "assignment"
    assert d["identifier"] == "a"
    assert d["value"]["kind"] == "binary"
    assert d["value"]["right"] == {"kind": "reference", "name": "b", "member": None}


def test_mesh_to_dict_serializes_faces() -> None:
    mesh = MeshExpr([(0.0, 0.0, 0.0)], [MeshFace([0, 1, 2], LibraryRef("lib", "oak"))])
    d = mesh.to_dict()
    assert d["vertices"] == [[0.0, 0.0, 0.0]]
    assert d["faces"][0]["material_ref"] == {
        "kind": "library_ref",
        "library": "lib",
        "item": "oak",
    }


def test_nodes_compare_structurally() -> None:
    assert CallExpr("f", [Literal(1)]) == CallExpr("f", [Literal(1)])
    assert CallExpr("f", [Literal(1)]) != CallExpr("f", [Literal(1)], receiver="m")
    assert Literal(1) != "1"


def test_kinds_are_distinct() -> None:
    nodes = [
        Literal(0),
        Block(),
        While(Literal(0), Block()),
        For("i", Literal(0), Literal(1), Block()),
    ]
    assert [n.kind for n in nodes] == ["literal", "block", "while", "for"]


def test_if_else_to_dict() -> None:
    node = If(Literal(True), Block(), If(Literal(False), Block()))
    d = node.to_dict()
    assert d["else_block"]["kind"] == "if"
    assert d["else_block"]["else_block"] is None


def test_program_imports_in_order() -> None:
    program = Program(
        [
            Import("a"),
            Assignment("x", Literal(1)),
            Import("b", "bee"),
        ]
    )
    assert [imp.source for imp in program.imports()] == ["a", "b"]


def test_library_ref_str() -> None:
    assert str(LibraryRef("stdlib", "wood")) == "stdlib.wood"


@given(st.text(min_size=1), st.integers())  # type: ignore[misc]
def test_assignment_roundtrips_through_dict(name: str, value: int) -> None:
    d = Assignment(name, Literal(value)).to_dict()
    assert d == {
        "kind": "assignment",
        "identifier": name,
        "value": {"kind": "literal", "value": value},
    }
