import json
import runpy
import sys
from pathlib import Path

import pytest

from pipegen import bench
from pipegen.bulk_generator import generate_all_kinds


def test_bench_run() -> None:
    result = bench.run("square", 3, 3, 2, seed=0)
    assert set(result) == {"generate", "solve"}
    assert result["generate"] > 0.0
    assert result["solve"] >= 0.0


def test_generate_all_kinds() -> None:
    puzzles = generate_all_kinds(3, 3, 1, seed=0)
    assert sorted(p["kind"] for p in puzzles) == ["hexagonal", "octagonal", "square"]


# 既に import 済みのモジュールを再実行する際の RuntimeWarning は無視する
@pytest.mark.filterwarnings("ignore::RuntimeWarning")
def test_bulk_generator_runs_as_module(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "argv", ["bulk_generator", "3", "3", "1", "--seed", "0"])
    runpy.run_module("pipegen.bulk_generator", run_name="__main__")
    data = json.loads((tmp_path / "data" / "map_pipes.json").read_text(encoding="utf-8"))
    assert len(data) == 3
    assert "--- square ---" in capsys.readouterr().out


@pytest.mark.filterwarnings("ignore::RuntimeWarning")
def test_bench_runs_as_module(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(sys, "argv", ["bench", "hexagonal", "3", "3", "--seed", "1"])
    runpy.run_module("pipegen.bench", run_name="__main__")
    assert "平均生成時間" in capsys.readouterr().out
