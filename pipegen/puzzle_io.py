"""パズルインスタンスを JSON で保存・読み込みする"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List

from .puzzle_types import Puzzle

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "map_pipes.json"


def _write_json(data: Any, directory: str | Path, filename: str) -> Path:
    """``directory`` を作成し ``filename`` へ整形済み JSON を書き出す"""
    target = Path(directory) / filename
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("パズルを保存しました: %s", target)
    return target


def save_puzzle(
    puzzle: Puzzle, directory: str | Path = "data", filename: str = DEFAULT_FILENAME
) -> Path:
    """1 問をオブジェクトのまま保存する"""
    return _write_json(puzzle, directory, filename)


def save_puzzles(
    puzzles: List[Puzzle], directory: str | Path = "data", filename: str = DEFAULT_FILENAME
) -> Path:
    """複数の問題を配列として 1 ファイルに保存する"""
    return _write_json(list(puzzles), directory, filename)


def load_puzzles(file_path: str | Path) -> List[Puzzle]:
    """保存済みの JSON を読み込む。単一パズルでも一覧にして返す"""
    data = json.loads(Path(file_path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        return [data]
    if not isinstance(data, list):
        raise ValueError("パズルの JSON はオブジェクトか配列である必要があります")
    return data


__all__ = ["save_puzzle", "save_puzzles", "load_puzzles", "DEFAULT_FILENAME"]
