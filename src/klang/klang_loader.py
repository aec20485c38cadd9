"""
Asynchronous module loader and top-level compile entry point for KLang.

`ModuleLoader.compile()` runs the whole pipeline for one source text:
tokenize -> parse -> resolve imports (recursively compiling each imported module)
-> interpret. Only an imported module's final scope is kept; its scene graph is
discarded, while its logs and errors are surfaced in the importer's result.

Resolution order for `import <source>`:
    1. The built-in library table (`klang-math`, `klang-physics`).
    2. `http://` / `https://` URLs, fetched with `httpx.AsyncClient` and cached in a
       `ModuleCache`. A failed fetch is replaced by a one-line program that prints
       `Failed to load <url>`.
    3. The in-memory file table, trying the raw name, the name without its `local@`
       prefix, the name plus the source extension, and `local/<name>.klang`.

Binding:
    import X            -> X bound to the module's scope
    import X as Y       -> Y bound to the module's scope
    import a, b from X  -> a and b bound to the matching scope entries
    import a from X as Y -> Y bound to entry a

Unresolvable imports, missing items, and circular imports are recorded as diagnostics
and never stop compilation of the importing file.

Example:
    result = compile_sync('import klang-math as m\\nconsole.print(m.sqrt(16))')
    result.logs  # ['Imported klang-math as m', '4']
"""

import asyncio
import logging
from typing import Any

import httpx

from klang.klang_ast import Import, Program
from klang.klang_constants import (
    DEFAULT_FETCH_TIMEOUT,
    LOCAL_MODULE_DIR,
    LOCAL_PREFIX,
    MAX_LOOP_ITERATIONS,
    SOURCE_EXTENSION,
    URL_SCHEMES,
)
from klang.klang_interpreter import CompilerResult, interpret
from klang.klang_lexer import tokenize
from klang.klang_parser import ParseError, parse
from klang.klang_stdlib import default_libraries

logger = logging.getLogger(__name__)


class ModuleCache:
    """URL -> source text cache. Entries live as long as the cache instance."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, url: str) -> str | None:
        return self._entries.get(url)

    def set(self, url: str, text: str) -> None:
        self._entries[url] = text

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def is_url(source: str) -> bool:
    return source.startswith(URL_SCHEMES)


def fallback_program(url: str) -> str:
    """Source substituted for a module whose fetch failed."""
    return f'console.print("Failed to load {url}")'


class ModuleLoader:
    """
    Resolves and compiles KLang imports.

    Args:
        files (dict[str, str] | None): In-memory file table, path -> source text.
        cache (ModuleCache | None): URL cache. Pass the same instance to several
            loaders to share fetched modules between them.
        client (httpx.AsyncClient | None): HTTP client for URL imports. When omitted,
            a client is opened for the duration of each `compile()` call.
        libraries (dict[str, dict] | None): Built-in library table. Defaults to fresh
            copies of `klang-math` and `klang-physics`.
        extension (str): Source file extension tried during file lookup.
        local_dir (str): Directory searched for `local@` modules.
        max_iterations (int): Loop cap handed to the interpreter.
        timeout (float): Timeout in seconds for the default HTTP client.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        *,
        cache: ModuleCache | None = None,
        client: httpx.AsyncClient | None = None,
        libraries: dict[str, dict[str, Any]] | None = None,
        extension: str = SOURCE_EXTENSION,
        local_dir: str = LOCAL_MODULE_DIR,
        max_iterations: int = MAX_LOOP_ITERATIONS,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self.files = dict(files or {})
        self.cache = cache if cache is not None else ModuleCache()
        self.client = client
        self.libraries = libraries if libraries is not None else default_libraries()
        self.extension = extension
        self.local_dir = local_dir
        self.max_iterations = max_iterations
        self.timeout = timeout

    async def compile(
        self,
        source: str,
        files: dict[str, str] | None = None,
        import_path: str = "root",
    ) -> CompilerResult:
        """
        Compiles a root source text, resolving its imports first.

        Args:
            source (str): KLang source text.
            files (dict[str, str] | None): Replaces the loader's file table when given.
            import_path (str): Name of the root file, used for cycle detection.

        Returns:
            CompilerResult: A syntax error in the root yields an empty scene graph and
            exactly one error; every other failure is recorded and compilation goes on.
        """
        if files is not None:
            self.files = dict(files)

        if self.client is not None:
            return await self._compile_root(source, import_path, self.client)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._compile_root(source, import_path, client)

    async def _compile_root(
        self, source: str, import_path: str, client: httpx.AsyncClient
    ) -> CompilerResult:
        try:
            return await self._compile(source, (import_path,), client)
        except ParseError as e:
            return CompilerResult(errors=[str(e)])

    async def _compile(
        self, source: str, stack: tuple[str, ...], client: httpx.AsyncClient
    ) -> CompilerResult:
        program = parse(tokenize(source))
        logs: list[str] = []
        errors: list[str] = []
        modules = await self.load_imports(program, stack, client, logs, errors)

        result = interpret(program, modules, max_iterations=self.max_iterations)
        result.logs[:0] = logs
        result.errors[:0] = errors
        return result

    async def load_imports(
        self,
        program: Program,
        stack: tuple[str, ...],
        client: httpx.AsyncClient,
        logs: list[str],
        errors: list[str],
    ) -> dict[str, Any]:
        """Resolves every top-level import of `program` into a module table."""
        modules: dict[str, Any] = {}
        for imp in program.imports():
            if imp.source in self.libraries:
                self.bind(imp, self.libraries[imp.source], modules, errors)
                continue

            located = await self.locate(imp.source, client)
            if located is None:
                logger.debug("unresolved import %r", imp.source)
                errors.append(f"Warning: Could not resolve import '{imp.source}'.")
                continue

            key, text = located
            if key in stack:
                chain = " -> ".join((*stack, key))
                logger.debug("circular import %s", chain)
                errors.append(f"Import Error: circular import of '{key}' ({chain}).")
                continue

            try:
                sub = await self._compile(text, (*stack, key), client)
            except ParseError as e:
                errors.append(f"[{key}] {e}")
                continue

            logs.extend(sub.logs)
            errors.extend(f"[{key}] {message}" for message in sub.errors)
            self.bind(imp, sub.scope, modules, errors)
        return modules

    def bind(
        self,
        imp: Import,
        scope: dict[str, Any],
        modules: dict[str, Any],
        errors: list[str],
    ) -> None:
        if imp.items is None:
            modules[imp.alias or imp.source] = scope
            return

        if imp.alias and len(imp.items) == 1:
            targets = [(imp.items[0], imp.alias)]
        else:
            if imp.alias:
                errors.append(
                    f"Warning: Alias '{imp.alias}' ignored when importing several "
                    f"items from '{imp.source}'."
                )
            targets = [(item, item) for item in imp.items]

        for item, name in targets:
            if item in scope:
                modules[name] = scope[item]
            else:
                errors.append(f"Warning: '{item}' not found in module '{imp.source}'.")

    async def locate(
        self, source: str, client: httpx.AsyncClient
    ) -> tuple[str, str] | None:
        """Finds the text of a non-library module as `(key, text)`, or None."""
        if is_url(source):
            return source, await self.fetch(source, client)
        for candidate in self.candidates(source):
            if candidate in self.files:
                return candidate, self.files[candidate]
        return None

    def candidates(self, source: str) -> list[str]:
        name = source[len(LOCAL_PREFIX):] if source.startswith(LOCAL_PREFIX) else source
        found: list[str] = []
        for candidate in (
            source,
            name,
            f"{name}{self.extension}",
            f"{self.local_dir}/{name}{self.extension}",
        ):
            if candidate not in found:
                found.append(candidate)
        return found

    async def fetch(self, url: str, client: httpx.AsyncClient) -> str:
        cached = self.cache.get(url)
        if cached is not None:
            logger.debug("cache hit for %s", url)
            return cached

        logger.info("fetching module %s", url)
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("failed to load %s: %s", url, e)
            return fallback_program(url)

        self.cache.set(url, response.text)
        return response.text


async def compile(
    source: str, files: dict[str, str] | None = None, **options: Any
) -> CompilerResult:
    """Compiles `source` with a fresh `ModuleLoader` built from `options`."""
    return await ModuleLoader(files, **options).compile(source)


def compile_sync(
    source: str, files: dict[str, str] | None = None, **options: Any
) -> CompilerResult:
    """Blocking wrapper around `compile()` for scripts and the CLI."""
    return asyncio.run(compile(source, files, **options))


__all__ = [
    "ModuleCache",
    "ModuleLoader",
    "compile",
    "compile_sync",
    "fallback_program",
]
