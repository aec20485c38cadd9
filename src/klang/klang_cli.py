"""
KLang CLI Entrypoint.

This module provides the command-line interface for compiling KLang scene files.

Features:
    - Read source from `.klang` files or inline strings.
    - Resolve imports against every `.klang` file of a workspace directory.
    - Print `console.print` output to stdout and diagnostics to stderr.
    - Summarize the resulting scene graph, or dump it as JSON to the console or a file.

Example usage:
    klang scene.klang
    klang -s 'for i = 1 to 3 { console.print(i) }'
    klang scene.klang -w ./project --json -o scene.json
    klang scene.klang --verbose

Functions:
    load_workspace(root: str) -> dict[str, str]:
        Builds the in-memory file table used for import resolution.

    run_klang(source: str, is_string: bool = False, ...) -> int:
        Executes the full pipeline (lex -> parse -> load -> interpret -> output)
        and returns the process exit status.

    main() -> None:
        Parses CLI arguments and invokes `run_klang`.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from klang.klang_constants import (
    DEFAULT_FETCH_TIMEOUT,
    MAX_LOOP_ITERATIONS,
    SOURCE_EXTENSION,
)
from klang.klang_interpreter import CompilerResult
from klang.klang_loader import compile_sync
from klang.klang_scene import Group, MeshGeometry


def load_workspace(root: str) -> dict[str, str]:
    """Reads every `*.klang` file under `root`, keyed by its POSIX relative path."""
    base = Path(root)
    return {
        path.relative_to(base).as_posix(): path.read_text(encoding="utf-8")
        for path in sorted(base.rglob(f"*{SOURCE_EXTENSION}"))
    }


def describe_scene(result: CompilerResult) -> list[str]:
    lines = []
    for name, node in result.scene_graph.items():
        if isinstance(node, MeshGeometry):
            detail = f"{node.shape}, {len(node.vertices)} vertices, {len(node.faces)} faces"
        elif isinstance(node, Group):
            detail = f"group of {len(node.children)}"
        else:
            detail = node.kind
        parent = f" in {node.parent}" if node.parent else ""
        lines.append(f"{name}: {detail}{parent}")
    return lines


def run_klang(
    source: str,
    is_string: bool = False,
    workspace: str | None = None,
    as_json: bool = False,
    out: str | None = None,
    pretty: bool = False,
    max_iterations: int = MAX_LOOP_ITERATIONS,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> int:
    """
    Run the KLang toolchain on one file or inline string and report the result.

    Args:
        source (str): KLang source code or path to a `.klang` file.
        is_string (bool): If True, treats `source` as raw code instead of a file path.
        workspace (str | None): Directory whose `.klang` files are importable. Defaults to
            the source file's directory, or the current directory for inline source.
        as_json (bool): Emit the scene graph as JSON instead of a text summary.
        out (str | None): Optional path to write the scene output to.
        pretty (bool): If True, prints section banners.
        max_iterations (int): Loop cap for `while` and `for`.
        timeout (float): Timeout in seconds for URL imports.

    Returns:
        int: 1 when any error or warning was recorded, otherwise 0.

    Raises:
        ValueError: If `is_string` is False and the source does not end with '.klang'.
    """
    if not is_string and not source.endswith(SOURCE_EXTENSION):
        raise ValueError(f"Only {SOURCE_EXTENSION} files are supported.")

    if is_string:
        root = workspace or "."
    else:
        root = workspace or str(Path(source).parent)
        source = Path(source).read_text(encoding="utf-8")

    files = load_workspace(root) if Path(root).is_dir() else {}
    result = compile_sync(source, files, max_iterations=max_iterations, timeout=timeout)

    banner = "=" * 20
    if pretty and result.logs:
        print(f"{banner}\nOutput\n{banner}")
    for line in result.logs:
        print(line)

    if as_json:
        scene = json.dumps(result.to_dict(), indent=2)
    else:
        scene = "\n".join(describe_scene(result))

    if out:
        Path(out).write_text(scene + "\n", encoding="utf-8")
        if pretty:
            print(f"(wrote to {out})")
    elif scene:
        if pretty:
            print(f"{banner}\nScene\n{banner}")
        print(scene)

    for message in result.errors:
        print(message, file=sys.stderr)

    return 0 if result.ok else 1


def main() -> None:
    """
    Entry point for the KLang CLI.

    Supported flags:
        - `-s`, `--string`: Interpret source as a raw string instead of a file path.
        - `-w`, `--workspace`: Directory of importable `.klang` files.
        - `--json`: Emit the scene graph, logs, and errors as JSON.
        - `-o`, `--out`: Write the scene output to a file.
        - `-p`, `--pretty`: Show banners around output sections.
        - `--max-iterations`: Loop cap (default 10000).
        - `--timeout`: URL import timeout in seconds.
        - `--verbose`: Enable debug logging of module resolution.
    """
    parser = argparse.ArgumentParser(prog="klang")
    parser.add_argument("source", help="Filename or raw source (with -s)")
    parser.add_argument(
        "-s", "--string", action="store_true", help="Interpret source as literal string"
    )
    parser.add_argument(
        "-w", "--workspace", metavar="DIR", help="Directory of importable .klang files"
    )
    parser.add_argument(
        "--json", dest="as_json", action="store_true", help="Emit scene graph as JSON"
    )
    parser.add_argument("-o", "--out", metavar="OUTFILE", help="Output to file")
    parser.add_argument(
        "-p", "--pretty", action="store_true", help="Show output with banners"
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=MAX_LOOP_ITERATIONS,
        help=f"Loop iteration cap (default: {MAX_LOOP_ITERATIONS})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_FETCH_TIMEOUT,
        help="Timeout in seconds for URL imports",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    try:
        status = run_klang(
            source=args.source,
            is_string=args.string,
            workspace=args.workspace,
            as_json=args.as_json,
            out=args.out,
            pretty=args.pretty,
            max_iterations=args.max_iterations,
            timeout=args.timeout,
        )
    except (OSError, ValueError) as e:
        print(f"klang: {e}", file=sys.stderr)
        status = 2
    sys.exit(status)


if __name__ == "__main__" and not any("pytest" in arg for arg in sys.argv):
    main()
