import json
import logging
import sys
from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from klang import klang_cli

UNIT_CUBE = (
    'cube("0,0,0":"1,0,0":"1,1,0":"0,1,0":"0,0,1":"1,0,1":"1,1,1":"0,1,1")'
)


@pytest.fixture  # type: ignore[misc]
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "local").mkdir()
    (tmp_path / "local" / "parts.klang").write_text(f"box = {UNIT_CUBE}\n")
    (tmp_path / "scene.klang").write_text(
        "import box from local@parts\n"
        "a = box\n"
        "g = group[a]\n"
        'console.print("built")\n'
    )
    (tmp_path / "notes.txt").write_text("ignored")
    return tmp_path


def test_load_workspace(workspace: Path) -> None:
    files = klang_cli.load_workspace(str(workspace))
    assert sorted(files) == ["local/parts.klang", "scene.klang"]


def test_run_klang_string_input_prints(
    capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    status = klang_cli.run_klang('console.print("hi")', is_string=True, workspace=str(tmp_path))
    assert status == 0
    assert capsys.readouterr().out.strip() == "hi"


def test_run_klang_file_input(capsys: pytest.CaptureFixture[str], workspace: Path) -> None:
    status = klang_cli.run_klang(str(workspace / "scene.klang"))
    out = capsys.readouterr().out
    assert status == 0
    assert "built" in out
    assert "a: mesh, 8 vertices, 6 faces in g" in out
    assert "g: group of 1" in out


def test_run_klang_rejects_other_extensions(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        klang_cli.run_klang(str(tmp_path / "scene.txt"))


def test_run_klang_reports_errors(
    capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    status = klang_cli.run_klang("console.print(nope)", is_string=True, workspace=str(tmp_path))
    captured = capsys.readouterr()
    assert status == 1
    assert "Runtime Error: Variable 'nope' not defined." in captured.err


def test_run_klang_json_to_file(
    capsys: pytest.CaptureFixture[str], workspace: Path
) -> None:
    out_path = workspace / "scene.json"
    klang_cli.run_klang(
        str(workspace / "scene.klang"), as_json=True, out=str(out_path), pretty=True
    )
    data = json.loads(out_path.read_text())
    assert data["scene_graph"]["a"]["parent"] == "g"
    assert data["logs"][-1] == "built"
    out = capsys.readouterr().out
    assert f"(wrote to {out_path})" in out


def test_run_klang_pretty_banners(
    capsys: pytest.CaptureFixture[str], workspace: Path
) -> None:
    klang_cli.run_klang(str(workspace / "scene.klang"), pretty=True)
    out = capsys.readouterr().out
    assert "Output" in out
    assert "Scene" in out


def test_run_klang_max_iterations(
    capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    status = klang_cli.run_klang(
        "while 1 { }", is_string=True, workspace=str(tmp_path), max_iterations=4
    )
    assert status == 1
    assert "Loop exceeded 4 iterations." in capsys.readouterr().err


def test_main_string_mode(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    monkeypatch.setattr(
        sys, "argv", ["klang", "-s", "console.print(1 + 1)", "-w", str(tmp_path)]
    )
    with pytest.raises(SystemExit) as exit_info:
        klang_cli.main()
    assert exit_info.value.code == 0
    assert capsys.readouterr().out.strip() == "2"


def test_main_missing_file(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    monkeypatch.setattr(sys, "argv", ["klang", str(tmp_path / "missing.klang")])
    with pytest.raises(SystemExit) as exit_info:
        klang_cli.main()
    assert exit_info.value.code == 2
    assert "klang:" in capsys.readouterr().err


def test_main_json_verbose(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], workspace: Path
) -> None:
    calls: list[dict[str, int]] = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
    monkeypatch.setattr(
        sys, "argv", ["klang", str(workspace / "scene.klang"), "--json", "--verbose"]
    )
    with pytest.raises(SystemExit) as exit_info:
        klang_cli.main()
    assert exit_info.value.code == 0
    out = capsys.readouterr().out
    assert '"scene_graph"' in out
    assert calls == [{"level": logging.DEBUG}]


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture], max_examples=25)  # type: ignore[misc]
@given(st.text(alphabet="abc =1{}()\"", max_size=30))  # type: ignore[misc]
def test_run_klang_never_raises_on_inline_source(tmp_path: Path, source: str) -> None:
    status = klang_cli.run_klang(source, is_string=True, workspace=str(tmp_path))
    assert status in (0, 1)
