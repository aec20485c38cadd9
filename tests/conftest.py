from collections.abc import Callable
from typing import Any

import httpx
import pytest

from klang.klang_interpreter import CompilerResult, interpret
from klang.klang_lexer import tokenize
from klang.klang_parser import parse

UNIT_CUBE = (
    'cube("0,0,0":"1,0,0":"1,1,0":"0,1,0":"0,0,1":"1,0,1":"1,1,1":"0,1,1")'
)


@pytest.fixture  # type: ignore[misc]
def run() -> Callable[..., CompilerResult]:
    """Tokenizes, parses, and interprets a source string without a module loader."""

    def _run(source: str, modules: dict[str, Any] | None = None, **kwargs: Any) -> CompilerResult:
        return interpret(parse(tokenize(source)), modules, **kwargs)

    return _run


@pytest.fixture  # type: ignore[misc]
def remote_modules() -> dict[str, str]:
    return {
        "https://example.com/shapes.klang": (
            f'box = {UNIT_CUBE}\nsize = 2\nconsole.print("shapes loaded")'
        ),
        "https://example.com/hello.klang": 'console.print("hello from remote")',
    }


@pytest.fixture  # type: ignore[misc]
def fetch_log() -> list[str]:
    return []


@pytest.fixture  # type: ignore[misc]
def mock_client(remote_modules: dict[str, str], fetch_log: list[str]) -> httpx.AsyncClient:
    """An AsyncClient served by `remote_modules`; unknown URLs answer 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        fetch_log.append(url)
        if url in remote_modules:
            return httpx.Response(200, text=remote_modules[url])
        return httpx.Response(404, text="not found")

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
