"""パズル辞書の構築をまとめたモジュール"""

from __future__ import annotations

# datetime モジュールから UTC 定数も合わせてインポート
from datetime import datetime, UTC
from typing import Any, Dict, Sequence

from .constants import _evaluate_difficulty
from .grids import GridTopology
from .puzzle_types import Puzzle
from .solver import count_solutions

# JSON スキーマのバージョン
SCHEMA_VERSION = "1.0"


def _collect_solver_stats(grid: GridTopology, tiles: Sequence[int]) -> Dict[str, int]:
    """盤面を解き直して探索統計と解の個数を求める"""

    solutions, stats = count_solutions(tiles, grid, limit=2, return_stats=True)
    stats = dict(stats)
    stats["solutions"] = solutions
    return stats


def _build_puzzle_dict(
    *,
    grid: GridTopology,
    tiles: Sequence[int],
    solver_stats: Dict[str, int],
    generation_params: Dict[str, Any],
    seed_hash: str,
    partial: bool = False,
    reason: str | None = None,
) -> Puzzle:
    """パズル用の辞書オブジェクトを構築するヘルパー関数"""

    # timezone-aware な UTC 時刻を取得する
    timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
    wrap = "_wrap" if grid.wrap else ""
    cells = grid.total - len(grid.empty_cells)
    puzzle: Puzzle = {
        "schemaVersion": SCHEMA_VERSION,
        "id": f"{grid.KIND}_{grid.width}x{grid.height}{wrap}_{timestamp}",
    }
    puzzle.update(grid.export(tiles))
    puzzle.update(
        {
            "solverStats": {
                "steps": solver_stats["steps"],
                "maxDepth": solver_stats["max_depth"],
                "guesses": solver_stats.get("guesses", 0),
                "solutions": solver_stats.get("solutions", 1),
            },
            "difficultyEval": _evaluate_difficulty(
                solver_stats["steps"], solver_stats["max_depth"], cells
            ),
            "generationParams": generation_params,
            "seedHash": seed_hash,
            "createdBy": "auto-gen-v1",
            # ISO8601 形式の UTC 日付文字列を保存
            "createdAt": datetime.now(UTC).date().isoformat(),
            "partial": partial,
        }
    )
    if partial and reason is not None:
        puzzle["reason"] = reason
    return puzzle


__all__ = ["SCHEMA_VERSION", "_build_puzzle_dict", "_collect_solver_stats"]
