import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from klang.klang_ast import (
    Assignment,
    BinaryExpr,
    CallExpr,
    ConsolePrint,
    CoordinateList,
    CubeExpr,
    For,
    GroupExpr,
    If,
    Import,
    LibraryRef,
    Literal,
    MaterialExpr,
    MeshExpr,
    MethodCall,
    ModifierExpr,
    Program,
    PropertyAssignment,
    Reference,
    RelativePosition,
    While,
)
from klang.klang_lexer import Token, tokenize
from klang.klang_parser import ParseError, Parser


def parse(source: str) -> Program:
    return Parser(tokenize(source)).parse()


def single(source: str):  # type: ignore[no-untyped-def]
    program = parse(source)
    assert len(program.statements) == 1
    return program.statements[0]


def expr(source: str):  # type: ignore[no-untyped-def]
    stmt = single(f"v = {source}")
    assert isinstance(stmt, Assignment)
    return stmt.value


# --- Imports -----------------------------------------------------------------


def test_import_whole_module() -> None:
    assert single("import shapes") == Import("shapes")


def test_import_with_alias() -> None:
    assert single("import klang-math as m") == Import("klang-math", "m")


def test_import_string_source() -> None:
    stmt = single('import "https://example.com/a.klang" as a')
    assert stmt == Import("https://example.com/a.klang", "a")


def test_import_items_from_module() -> None:
    assert single("import box, ball from local@shapes") == Import(
        "local@shapes", None, ["box", "ball"]
    )


def test_import_single_item_with_alias() -> None:
    assert single("import box from shapes as b") == Import("shapes", "b", ["box"])


def test_import_dotted_module_name() -> None:
    assert single("import scenes/room.klang").source == "scenes/room.klang"


def test_import_list_without_from_fails() -> None:
    with pytest.raises(ParseError, match="Expected 'from'"):
        parse("import a, b shapes")


# --- Statements --------------------------------------------------------------


def test_assignment_of_number() -> None:
    assert single("a = 1") == Assignment("a", Literal(1))


def test_float_literal() -> None:
    assert expr("2.5") == Literal(2.5)


def test_console_print() -> None:
    assert single('console.print("hi")') == ConsolePrint(Literal("hi"))


def test_property_assignment_coordinates() -> None:
    stmt = single("box.pos = 1, -2, 3.5")
    assert stmt == PropertyAssignment("box", "pos", CoordinateList([1, -2, 3.5]))


def test_property_assignment_relative() -> None:
    stmt = single("lamp.pos = 0, 2, 0 from table")
    assert stmt == PropertyAssignment(
        "lamp", "pos", RelativePosition("table", [0, 2, 0])
    )


def test_property_assignment_expression() -> None:
    stmt = single("box.material = wood")
    assert stmt == PropertyAssignment("box", "material", Reference("wood"))


def test_property_assignment_negative_expression_is_not_coordinates() -> None:
    stmt = single("box.height = -2")
    assert isinstance(stmt.value, BinaryExpr)


def test_property_assignment_with_sub_target() -> None:
    stmt = single("grp(a).pos = 1, 1, 1")
    assert stmt.sub_target == "a"
    assert stmt.object_name == "grp"


def test_method_call_with_exclusion() -> None:
    stmt = single("scene.rotate(45, not floor)")
    assert stmt == MethodCall("scene", "rotate", [Literal(45)], "floor")


def test_method_call_arguments_without_commas() -> None:
    stmt = single("box.move(1 2 3)")
    assert stmt == MethodCall("box", "move", [Literal(1), Literal(2), Literal(3)])


def test_method_call_unterminated() -> None:
    with pytest.raises(ParseError):
        parse("box.move(1, 2")


def test_action_without_assignment_or_call_fails() -> None:
    with pytest.raises(ParseError, match="assignment or method call"):
        parse("box.pos")


def test_stray_semicolons_are_ignored() -> None:
    program = parse(";; a = 1; ; b = 2;")
    assert [s.identifier for s in program.statements] == ["a", "b"]


def test_if_else_if_chain() -> None:
    stmt = single("if a == 1 { b = 1 } else if a == 2 { b = 2 } else { b = 3 }")
    assert isinstance(stmt, If)
    assert isinstance(stmt.else_block, If)
    assert stmt.else_block.else_block.statements == [Assignment("b", Literal(3))]


def test_while_loop() -> None:
    stmt = single("while i < 3 { i = i + 1 }")
    assert isinstance(stmt, While)
    assert stmt.condition == BinaryExpr(Reference("i"), "<", Literal(3))


def test_for_loop_with_step() -> None:
    stmt = single("for i = 10 to 0 step -2 { console.print(i) }")
    assert isinstance(stmt, For)
    assert stmt.variable == "i"
    assert stmt.step == BinaryExpr(Literal(0), "-", Literal(2))
    assert len(stmt.body.statements) == 1


def test_unclosed_block_fails() -> None:
    with pytest.raises(ParseError, match="Expected '}'"):
        parse("while 1 { a = 1")


def test_unexpected_token_fails_with_line() -> None:
    with pytest.raises(ParseError) as info:
        parse("a = 1\n= 2")
    assert info.value.line == 2
    assert "line 2" in str(info.value)


# --- Expressions -------------------------------------------------------------


def test_precedence_multiplicative_over_additive() -> None:
    assert expr("1 + 2 * 3") == BinaryExpr(
        Literal(1), "+", BinaryExpr(Literal(2), "*", Literal(3))
    )


def test_left_associativity() -> None:
    assert expr("8 - 4 - 2") == BinaryExpr(
        BinaryExpr(Literal(8), "-", Literal(4)), "-", Literal(2)
    )


def test_comparison_below_equality() -> None:
    result = expr("1 < 2 == 3 > 4")
    assert result.operator == "=="
    assert result.left.operator == "<"
    assert result.right.operator == ">"


def test_parentheses_override_precedence() -> None:
    assert expr("(1 + 2) * 3").operator == "*"


def test_unary_minus_desugars_to_subtraction() -> None:
    assert expr("-x") == BinaryExpr(Literal(0), "-", Reference("x"))


def test_member_reference() -> None:
    assert expr("m.pi") == Reference("m", "pi")


def test_dotted_call_sets_receiver() -> None:
    assert expr("m.sqrt(4, 2)") == CallExpr(
        "sqrt", [Literal(4), Literal(2)], receiver="m"
    )


def test_bare_call() -> None:
    assert expr("f()") == CallExpr("f", [])


def test_coercion_call() -> None:
    assert expr('int("4")') == CallExpr("int", [Literal("4")])


def test_unknown_expression_fails() -> None:
    with pytest.raises(ParseError, match="Unknown expression"):
        parse("a = }")


# --- Domain literals ---------------------------------------------------------


def test_cube_with_string_vertices() -> None:
    src = 'cube("0,0,0":"1,0,0":"1,1,0":"0,1,0":"0,0,1":"1,0,1":"1,1,1":"0,1,1")'
    cube = expr(src)
    assert isinstance(cube, CubeExpr)
    assert len(cube.vertices) == 8
    assert cube.vertices[1] == "1,0,0"


def test_cube_with_bare_vertices() -> None:
    cube = expr("cube(0,0,0 : -1,2,0)")
    assert cube.vertices == ["0,0,0", "-1,2,0"]


def test_mesh_literal() -> None:
    mesh = expr("mesh{ vertices=[0,0,0;1,0,0;1,1,0;]; faces=[0,1,2;]; }")
    assert isinstance(mesh, MeshExpr)
    assert mesh.vertices == [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0)]
    assert [f.indices for f in mesh.faces] == [[0, 1, 2]]


def test_mesh_face_materials() -> None:
    mesh = expr("mesh { faces = [0,1,2: wood; 0,2,3,4: lib.stone;] }")
    assert mesh.faces[0].material_ref == "wood"
    assert mesh.faces[1].material_ref == LibraryRef("lib", "stone")
    assert str(mesh.faces[1].material_ref) == "lib.stone"


def test_mesh_negative_vertices() -> None:
    mesh = expr("mesh { vertices = [-1,0,-2.5;] }")
    assert mesh.vertices == [(-1.0, 0.0, -2.5)]


def test_mesh_face_needs_three_indices() -> None:
    with pytest.raises(ParseError, match="at least 3"):
        parse("a = mesh { faces = [0,1;] }")


def test_mesh_face_index_must_be_integer() -> None:
    with pytest.raises(ParseError, match="integer"):
        parse("a = mesh { faces = [0,1.5,2;] }")


def test_mesh_unknown_section() -> None:
    with pytest.raises(ParseError, match="Unknown mesh section"):
        parse("a = mesh { normals = [] }")


def test_material_literal() -> None:
    mat = expr('material { color = red roughness = 0.5; name = "oak" }')
    assert isinstance(mat, MaterialExpr)
    assert mat.properties == {
        "color": Reference("red"),
        "roughness": Literal(0.5),
        "name": Literal("oak"),
    }


def test_key_value_positional_pairs() -> None:
    mod = expr("modifier.scale { base = box x, y = 2, 3 }")
    assert isinstance(mod, ModifierExpr)
    assert mod.modifier_type == "scale"
    assert mod.properties["x"] == Literal(2)
    assert mod.properties["y"] == Literal(3)


def test_key_value_single_key_takes_list() -> None:
    mod = expr("modifier.rotate { base = box axis = x, y angle = 90, 45 }")
    assert mod.properties["axis"] == [Reference("x"), Reference("y")]
    assert mod.properties["angle"] == [Literal(90), Literal(45)]


def test_key_value_count_mismatch() -> None:
    with pytest.raises(ParseError, match="Count mismatch"):
        parse("a = material { x, y, z = 1, 2 }")


def test_group_literal() -> None:
    assert expr("group[a, b c]") == GroupExpr(["a", "b", "c"])


# --- Totality ----------------------------------------------------------------


def test_parser_appends_missing_eof() -> None:
    toks = [
        Token("IDENTIFIER", "a", 1),
        Token("SYMBOL", "=", 1),
        Token("NUMBER", "1", 1),
    ]
    program = Parser(toks).parse()
    assert program.statements == [Assignment("a", Literal(1))]


def test_empty_program() -> None:
    assert parse("").statements == []


FRAGMENTS = [
    "a",
    "=",
    "1",
    "2.5",
    '"s"',
    "{",
    "}",
    "(",
    ")",
    "[",
    "]",
    ",",
    ";",
    ":",
    ".",
    "-",
    "+",
    "==",
    "cube",
    "mesh",
    "material",
    "modifier",
    "group",
    "import",
    "from",
    "as",
    "if",
    "else",
    "while",
    "for",
    "to",
    "step",
    "not",
    "console",
    "print",
    "\n",
]


@settings(deadline=None, max_examples=300)  # type: ignore[misc]
@given(st.lists(st.sampled_from(FRAGMENTS), max_size=40))  # type: ignore[misc]
def test_parse_is_total(fragments: list[str]) -> None:
    toks = tokenize(" ".join(fragments))
    try:
        program = Parser(toks).parse()
    except ParseError as e:
        assert e.line <= toks[-1].line
        assert f"line {e.line}" in str(e)
    else:
        assert isinstance(program, Program)
