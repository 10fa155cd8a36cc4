"""パズルデータの整合性を確認するモジュール"""

from __future__ import annotations

from typing import List

from . import sat_unique
from .board import analyze_board
from .grids import GRID_KINDS, GridTopology, create_grid
from .puzzle_types import Puzzle
from .solver import Solver

REQUIRED_KEYS = ("width", "height", "wrap", "kind", "tiles")


def grid_from_puzzle(puzzle: Puzzle) -> GridTopology:
    """パズル辞書から盤面トポロジーを復元する"""

    for key in REQUIRED_KEYS:
        if key not in puzzle:
            raise ValueError(f"{key} フィールドが存在しません")
    kind = puzzle["kind"]
    if kind not in GRID_KINDS:
        raise ValueError(f"kind {kind!r} は未対応のグリッド種別です")
    width = puzzle["width"]
    height = puzzle["height"]
    if not isinstance(width, int) or not isinstance(height, int):
        raise ValueError("width と height は整数で指定してください")
    tiles = puzzle["tiles"]
    if not isinstance(tiles, list) or not all(isinstance(t, int) for t in tiles):
        raise ValueError("tiles は整数の配列である必要があります")
    return create_grid(kind, width, height, bool(puzzle["wrap"]), tiles)


def _check_tiles(grid: GridTopology, tiles: List[int]) -> None:
    for index in grid.cells():
        polygon = grid.polygon_at(index)
        if not polygon.is_valid_tile(tiles[index]):
            raise ValueError(f"セル {index} のタイル値 {tiles[index]} が不正です")


def validate_puzzle(
    puzzle: Puzzle, *, require_unique: bool = True, cross_check: bool = False
) -> None:
    """盤面データが仕様を満たすか簡易チェックする

    解が存在し、その解が全セルを 1 本の木でつなぐことを確認する。
    ``require_unique`` が True なら解が一意であることも確認する。
    ``cross_check`` が True なら SAT ソルバーでも一意性を検算する。
    """

    grid = grid_from_puzzle(puzzle)
    tiles = puzzle["tiles"]
    _check_tiles(grid, tiles)

    solver = Solver(tiles, grid)
    for _ in solver.solve(all_solutions=True, limit=2):
        pass
    if not solver.solutions:
        raise ValueError("解が存在しません")
    if require_unique and len(solver.solutions) > 1:
        raise ValueError("解が一意ではありません")

    analysis = analyze_board(grid, solver.solutions[0])
    if not analysis.is_solved(grid):
        raise ValueError("解が 1 本の木になっていません")
    if require_unique and cross_check and not sat_unique.is_unique(tiles, grid):
        raise ValueError("SAT 検算で解が一意ではありません")


__all__ = ["validate_puzzle", "grid_from_puzzle", "REQUIRED_KEYS"]
