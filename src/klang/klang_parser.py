"""
KLang Language Parser

Parses KLang tokens into a `Program` abstract syntax tree.

This module implements a recursive-descent parser over the flat token list produced by
`klang.klang_lexer.tokenize`. Parsing is all-or-nothing per file: the first structural
mismatch raises `ParseError` naming the offending token and its line.

Supported Constructs
--------------------
- Expressions, lowest to highest precedence:
    * equality (`==`, `!=`)
    * comparison (`>`, `<`, `>=`, `<=`)
    * additive (`+`, `-`)
    * multiplicative (`*`, `/`, `%`)
    * unary minus (rewritten as `0 - operand`)
    * primary: literals, calls, references, parenthesised expressions
- Domain literals:
    * `cube("x,y,z" : ... )`
    * `mesh { vertices = [x, y, z; ...] faces = [i, j, k : mat; ...] }`
    * `material { key = value ... }`
    * `modifier.<kind> { key = value ... }`
    * `group [a, b, ...]`
- Statements:
    * Assignments: `box = cube(...)`
    * Property mutation: `box.pos = 1, 2, 3`, `grp(box).material = wood`
    * Method calls: `box.rotate(45, not lid)`, `box.move(1, 0, 0)`
    * Output: `console.print(expr)`
    * Imports: `import shapes`, `import a, b from "lib" as c`
    * Control flow: `if`/`else`, `while`, `for i = a to b step s`

Entry Points
------------
- `parse(tokens)`: Parse a whole token list into a `Program`.
- `Parser.parse_expression()`: Parse a single expression (used by tests and tooling).

Raises
------
ParseError
    Raised when malformed input is encountered or grammar rules are violated.
"""

from __future__ import annotations

from collections.abc import Callable

from klang.klang_ast import (
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
    MeshFace,
    MethodCall,
    ModifierExpr,
    Program,
    PropertyAssignment,
    PropertyValue,
    Reference,
    RelativePosition,
    Statement,
    While,
)
from klang.klang_constants import (
    ADDITIVE_OPS,
    COERCIONS,
    COMPARISON_OPS,
    EOF,
    EQUALITY_OPS,
    IDENTIFIER,
    KEYWORD,
    MULTIPLICATIVE_OPS,
    NUMBER,
    STRING,
)
from klang.klang_lexer import Token


class ParseError(SyntaxError):
    """Fatal syntax error raised while parsing a KLang file.

    Attributes:
        token (Token): The token at which parsing failed.
        line (int): The source line of that token.
    """

    def __init__(self, message: str, token: Token) -> None:
        super().__init__(message)
        self.token = token
        self.line = token.line


def _number(text: str) -> int | float:
    return float(text) if "." in text else int(text)


class Parser:
    """
    KLang Parser Class

    Transforms a list of lexical tokens into a `Program`. The token list must end with
    an EOF token, as produced by `tokenize`.

    Attributes
    ----------
    tokens : list[Token]
        The input token stream to be parsed.
    position : int
        Current index into the token stream.
    """

    def __init__(self, tokens: list[Token]) -> None:
        if not tokens or tokens[-1].type != EOF:
            last_line = tokens[-1].line if tokens else 1
            tokens = list(tokens) + [Token(EOF, "", last_line)]
        self.tokens: list[Token] = tokens
        self.position: int = 0

    # --- Token helpers -----------------------------------------------------

    def current(self) -> Token:
        return self.tokens[min(self.position, len(self.tokens) - 1)]

    def peek(self, offset: int = 1) -> Token:
        index = min(self.position + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        tok = self.current()
        if tok.type != EOF:
            self.position += 1
        return tok

    def at_end(self) -> bool:
        return self.current().type == EOF

    def check(self, type_: str, value: str | None = None) -> bool:
        tok = self.current()
        if tok.type == EOF or tok.type != type_:
            return False
        return value is None or tok.value == value

    def check_symbol(self, *values: str) -> bool:
        return self.current().is_symbol(*values)

    def match_symbol(self, *values: str) -> Token | None:
        if self.check_symbol(*values):
            return self.advance()
        return None

    def match_keyword(self, value: str) -> Token | None:
        if self.check(KEYWORD, value):
            return self.advance()
        return None

    def error(self, expected: str) -> ParseError:
        tok = self.current()
        return ParseError(
            f"Syntax Error: Expected {expected} but found '{tok.value}' at line {tok.line}",
            tok,
        )

    def expect(self, type_: str, value: str | None = None) -> Token:
        if self.check(type_, value):
            return self.advance()
        raise self.error(value or type_)

    def expect_symbol(self, value: str) -> Token:
        if self.check_symbol(value):
            return self.advance()
        raise self.error(f"'{value}'")

    def expect_identifier(self) -> str:
        return self.expect(IDENTIFIER).value

    # --- Program and statements -------------------------------------------

    def parse(self) -> Program:
        """Parse a full KLang program."""
        statements: list[Statement] = []
        while not self.at_end():
            if self.match_symbol(";"):
                continue
            statements.append(self.parse_statement())
        return Program(statements)

    def parse_statement(self) -> Statement:
        """Parse a single top-level or block-level statement."""
        tok = self.current()

        if tok.type == KEYWORD:
            if tok.value == "import":
                return self.parse_import()
            if tok.value == "if":
                return self.parse_if()
            if tok.value == "while":
                return self.parse_while()
            if tok.value == "for":
                return self.parse_for()

        if tok.type == IDENTIFIER:
            nxt = self.peek()
            if tok.value == "console" and nxt.is_symbol("."):
                return self.parse_console_print()
            if nxt.is_symbol("="):
                return self.parse_assignment()
            if nxt.is_symbol("(", "."):
                return self.parse_action()

        raise ParseError(
            f"Syntax Error: Unexpected token '{tok.value}' at line {tok.line}", tok
        )

    def parse_block(self) -> Block:
        """Parse a `{}`-enclosed block of statements."""
        self.expect_symbol("{")
        statements: list[Statement] = []
        while not self.check_symbol("}"):
            if self.at_end():
                raise self.error("'}'")
            if self.match_symbol(";"):
                continue
            statements.append(self.parse_statement())
        self.expect_symbol("}")
        return Block(statements)

    def parse_if(self) -> If:
        """Parse an `if` with optional `else` / `else if` chain."""
        self.expect(KEYWORD, "if")
        condition = self.parse_expression()
        then_block = self.parse_block()
        else_block: Block | If | None = None
        if self.match_keyword("else"):
            if self.check(KEYWORD, "if"):
                else_block = self.parse_if()
            else:
                else_block = self.parse_block()
        return If(condition, then_block, else_block)

    def parse_while(self) -> While:
        self.expect(KEYWORD, "while")
        condition = self.parse_expression()
        return While(condition, self.parse_block())

    def parse_for(self) -> For:
        """Parse `for i = start to end [step expr] { ... }`."""
        self.expect(KEYWORD, "for")
        variable = self.expect_identifier()
        self.expect_symbol("=")
        start = self.parse_expression()
        self.expect(KEYWORD, "to")
        end = self.parse_expression()
        step = None
        if self.match_keyword("step"):
            step = self.parse_expression()
        body = self.parse_block()
        return For(variable, start, end, body, step)

    def parse_module_name(self) -> str:
        """Parse an unquoted module source such as `shapes` or `klang-math`."""
        tok = self.current()
        if tok.type not in (IDENTIFIER, KEYWORD):
            raise self.error("module name")
        name = self.advance().value
        while self.check_symbol("-", ".", "/") and self.peek().type in (
            IDENTIFIER,
            KEYWORD,
            NUMBER,
        ):
            name += self.advance().value
            name += self.advance().value
        return name

    def parse_import(self) -> Import:
        """Parse an `import` directive in any of its three forms."""
        import_tok = self.expect(KEYWORD, "import")
        items: list[str] | None = None

        if self.check(STRING):
            source = self.advance().value
        else:
            first = self.parse_module_name()
            if self.check_symbol(",") or self.check(KEYWORD, "from"):
                ids = [first]
                while self.match_symbol(","):
                    ids.append(self.expect_identifier())
                if not self.match_keyword("from"):
                    raise ParseError(
                        f"Syntax Error: Expected 'from' after import list at line {import_tok.line}",
                        import_tok,
                    )
                items = ids
                if self.check(STRING):
                    source = self.advance().value
                else:
                    source = self.parse_module_name()
            else:
                source = first

        alias = None
        if self.match_keyword("as"):
            alias = self.expect_identifier()
        return Import(source, alias, items)

    def parse_console_print(self) -> ConsolePrint:
        self.expect(IDENTIFIER, "console")
        self.expect_symbol(".")
        self.expect(IDENTIFIER, "print")
        self.expect_symbol("(")
        message = self.parse_expression()
        self.expect_symbol(")")
        return ConsolePrint(message)

    def parse_assignment(self) -> Assignment:
        identifier = self.expect_identifier()
        self.expect_symbol("=")
        return Assignment(identifier, self.parse_expression())

    def parse_action(self) -> PropertyAssignment | MethodCall:
        """Parse `obj[(sub)].prop = value` or `obj.method(args)`."""
        object_name = self.expect_identifier()
        sub_target = None
        if self.match_symbol("("):
            sub_target = self.expect_identifier()
            self.expect_symbol(")")

        self.expect_symbol(".")
        name_tok = self.current()
        if name_tok.type not in (IDENTIFIER, KEYWORD):
            raise self.error("property or method name")
        member = self.advance().value

        if self.match_symbol("="):
            return PropertyAssignment(
                object_name, member, self.parse_property_value(), sub_target
            )

        if self.match_symbol("("):
            args: list[Expression] = []
            exclusion = None
            while not self.check_symbol(")"):
                if self.at_end():
                    raise self.error("')'")
                if self.match_keyword("not"):
                    exclusion = self.expect_identifier()
                else:
                    args.append(self.parse_expression())
                self.match_symbol(",")
            self.expect_symbol(")")
            return MethodCall(object_name, member, args, exclusion)

        raise ParseError(
            f"Syntax Error: Expected assignment or method call after "
            f"{object_name}.{member} at line {name_tok.line}",
            name_tok,
        )

    def starts_coordinates(self) -> bool:
        """True when the upcoming tokens are an inline coordinate list like `1, -2, 3`."""
        offset = 1 if self.check_symbol("-") else 0
        return (
            self.peek(offset).type == NUMBER and self.peek(offset + 1).is_symbol(",")
        )

    def parse_signed_number(self) -> int | float:
        negative = self.match_symbol("-") is not None
        value = _number(self.expect(NUMBER).value)
        return -value if negative else value

    def parse_property_value(self) -> Expression | CoordinateList | RelativePosition:
        """Parse the right-hand side of a property mutation."""
        if not self.starts_coordinates():
            return self.parse_expression()

        values = [self.parse_signed_number()]
        while self.match_symbol(","):
            values.append(self.parse_signed_number())
        if self.match_keyword("from"):
            return RelativePosition(self.expect_identifier(), values)
        return CoordinateList(values)

    # --- Expressions -------------------------------------------------------

    def parse_expression(self) -> Expression:
        return self.parse_equality()

    def _parse_binary(
        self, operators: tuple[str, ...], operand: Callable[[], Expression]
    ) -> Expression:
        expr = operand()
        while self.check_symbol(*operators):
            operator = self.advance().value
            expr = BinaryExpr(expr, operator, operand())
        return expr

    def parse_equality(self) -> Expression:
        return self._parse_binary(EQUALITY_OPS, self.parse_comparison)

    def parse_comparison(self) -> Expression:
        return self._parse_binary(COMPARISON_OPS, self.parse_additive)

    def parse_additive(self) -> Expression:
        return self._parse_binary(ADDITIVE_OPS, self.parse_multiplicative)

    def parse_multiplicative(self) -> Expression:
        return self._parse_binary(MULTIPLICATIVE_OPS, self.parse_unary)

    def parse_unary(self) -> Expression:
        if self.match_symbol("-"):
            return BinaryExpr(Literal(0), "-", self.parse_unary())
        return self.parse_primary()

    def parse_arguments(self) -> list[Expression]:
        """Parse a parenthesised, comma-separated argument list."""
        self.expect_symbol("(")
        args: list[Expression] = []
        if not self.check_symbol(")"):
            args.append(self.parse_expression())
            while self.match_symbol(","):
                args.append(self.parse_expression())
        self.expect_symbol(")")
        return args

    def parse_primary(self) -> Expression:
        tok = self.current()

        if tok.type == NUMBER:
            return Literal(_number(self.advance().value))
        if tok.type == STRING:
            return Literal(self.advance().value)

        if tok.type == KEYWORD:
            if tok.value == "cube":
                return self.parse_cube()
            if tok.value == "mesh":
                return self.parse_mesh()
            if tok.value == "material":
                return self.parse_material()
            if tok.value == "modifier":
                return self.parse_modifier()
            if tok.value == "group":
                return self.parse_group()
            if tok.value in COERCIONS and self.peek().is_symbol("("):
                self.advance()
                return CallExpr(tok.value, self.parse_arguments())

        if tok.type == IDENTIFIER:
            name = self.advance().value
            if self.check_symbol("("):
                return CallExpr(name, self.parse_arguments())
            if self.check_symbol(".") and self.peek().type in (IDENTIFIER, KEYWORD):
                self.advance()
                member = self.advance().value
                if self.check_symbol("("):
                    return CallExpr(member, self.parse_arguments(), receiver=name)
                return Reference(name, member)
            return Reference(name)

        if self.match_symbol("("):
            expr = self.parse_expression()
            self.expect_symbol(")")
            return expr

        raise ParseError(
            f"Syntax Error: Unknown expression starting with '{tok.value}' at line {tok.line}",
            tok,
        )

    # --- Domain literals ---------------------------------------------------

    def parse_cube(self) -> CubeExpr:
        """Parse `cube(...)`, splitting the raw token text on `:` into vertex strings."""
        self.expect(KEYWORD, "cube")
        self.expect_symbol("(")
        vertices: list[str] = []
        buffer = ""
        while not self.check_symbol(")"):
            if self.at_end():
                raise self.error("')'")
            tok = self.advance()
            if tok.is_symbol(":"):
                vertices.append(buffer.strip())
                buffer = ""
            else:
                buffer += tok.value
        if buffer:
            vertices.append(buffer.strip())
        self.expect_symbol(")")
        return CubeExpr(vertices)

    def parse_mesh(self) -> MeshExpr:
        """Parse a `mesh { vertices = [...] faces = [...] }` literal."""
        self.expect(KEYWORD, "mesh")
        self.expect_symbol("{")
        mesh = MeshExpr()
        while not self.check_symbol("}"):
            if self.match_symbol(";", ","):
                continue
            key_tok = self.expect(IDENTIFIER)
            self.expect_symbol("=")
            self.expect_symbol("[")
            if key_tok.value == "vertices":
                mesh.vertices.extend(self.parse_vertex_list())
            elif key_tok.value == "faces":
                mesh.faces.extend(self.parse_face_list())
            else:
                raise ParseError(
                    f"Syntax Error: Unknown mesh section '{key_tok.value}' at line {key_tok.line}",
                    key_tok,
                )
            self.expect_symbol("]")
        self.expect_symbol("}")
        return mesh

    def parse_vertex_list(self) -> list[tuple[float, float, float]]:
        vertices = []
        while not self.check_symbol("]"):
            x = float(self.parse_signed_number())
            self.expect_symbol(",")
            y = float(self.parse_signed_number())
            self.expect_symbol(",")
            z = float(self.parse_signed_number())
            self.expect_symbol(";")
            vertices.append((x, y, z))
        return vertices

    def parse_face_list(self) -> list[MeshFace]:
        faces = []
        while not self.check_symbol("]"):
            start = self.current()
            indices = [self.parse_face_index()]
            while self.match_symbol(","):
                indices.append(self.parse_face_index())
            if len(indices) < 3:
                raise ParseError(
                    f"Syntax Error: A face needs at least 3 indices at line {start.line}",
                    start,
                )
            material_ref: MaterialRef | None = None
            if self.match_symbol(":"):
                ref_name = self.expect_identifier()
                if self.match_symbol("."):
                    material_ref = LibraryRef(ref_name, self.expect_identifier())
                else:
                    material_ref = ref_name
            self.expect_symbol(";")
            faces.append(MeshFace(indices, material_ref))
        return faces

    def parse_face_index(self) -> int:
        tok = self.expect(NUMBER)
        if "." in tok.value:
            raise ParseError(
                f"Syntax Error: Face index must be an integer, found '{tok.value}' at line {tok.line}",
                tok,
            )
        return int(tok.value)

    def parse_material(self) -> MaterialExpr:
        self.expect(KEYWORD, "material")
        self.expect_symbol("{")
        properties = self.parse_key_value_block()
        self.expect_symbol("}")
        return MaterialExpr(properties)

    def parse_modifier(self) -> ModifierExpr:
        self.expect(KEYWORD, "modifier")
        self.expect_symbol(".")
        modifier_type = self.expect_identifier()
        self.expect_symbol("{")
        properties = self.parse_key_value_block()
        self.expect_symbol("}")
        return ModifierExpr(modifier_type, properties)

    def parse_group(self) -> GroupExpr:
        self.expect(KEYWORD, "group")
        self.expect_symbol("[")
        children: list[str] = []
        while not self.check_symbol("]"):
            children.append(self.expect_identifier())
            self.match_symbol(",")
        self.expect_symbol("]")
        return GroupExpr(children)

    def parse_key_value_block(self) -> dict[str, PropertyValue]:
        """Parse `k1, k2 = v1, v2` entries up to the closing brace.

        Keys and values pair up positionally; a single key with several values is
        bound to the whole value list.
        """
        properties: dict[str, PropertyValue] = {}
        while not self.check_symbol("}"):
            if self.match_symbol(";"):
                continue
            key_tok = self.current()
            keys = [self.expect_identifier()]
            while self.match_symbol(","):
                keys.append(self.expect_identifier())
            self.expect_symbol("=")
            values = [self.parse_expression()]
            while self.match_symbol(","):
                values.append(self.parse_expression())

            if len(keys) == len(values):
                properties.update(zip(keys, values))
            elif len(keys) == 1:
                properties[keys[0]] = values
            else:
                raise ParseError(
                    f"Syntax Error: Count mismatch in assignment: {len(keys)} keys vs "
                    f"{len(values)} values at line {key_tok.line}",
                    key_tok,
                )
        return properties


def parse(tokens: list[Token]) -> Program:
    """Parse a token list into a `Program`, raising `ParseError` on malformed input."""
    return Parser(tokens).parse()


__all__ = ["ParseError", "Parser", "parse"]
