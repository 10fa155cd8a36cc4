"""グリッド種別ごとのパズルをまとめて生成するスクリプト

パッケージ内の相対インポートを使うため ``python -m pipegen.bulk_generator 5 5 2`` のように実行する。
"""

from __future__ import annotations

import logging

import argparse
from typing import List

from .generator import generate_multiple_puzzles, puzzle_to_ascii, setup_logging
from .grids import GRID_KINDS
from .puzzle_io import save_puzzles
from .puzzle_types import Puzzle


def generate_all_kinds(
    width: int,
    height: int,
    count_each: int,
    *,
    wrap: bool = False,
    seed: int | None = None,
    jobs: int = 1,
) -> List[Puzzle]:
    """square/hexagonal/octagonal を同数ずつ生成して一覧で返す"""

    puzzles: List[Puzzle] = []
    for offset, kind in enumerate(sorted(GRID_KINDS)):
        kind_seed = None if seed is None else seed + offset * count_each
        puzzles.extend(
            generate_multiple_puzzles(
                kind,
                width,
                height,
                count_each,
                wrap=wrap,
                seed=kind_seed,
                jobs=jobs,
                worker_log_level=logging.WARNING if jobs > 1 else logging.INFO,
            )
        )
    return puzzles


# コマンドラインから実行される関数
def main() -> None:
    """引数を解釈してパズルを生成し保存する"""

    parser = argparse.ArgumentParser(
        description="square/hexagonal/octagonal を同数生成して保存します"
    )
    parser.add_argument("width", type=int, help="盤面の列数")
    parser.add_argument("height", type=int, help="盤面の行数")
    parser.add_argument(
        "count_each", type=int, default=1, help="各グリッド種別の生成数 (デフォルト:1)"
    )
    parser.add_argument("--wrap", action="store_true", help="上下左右をつなげる")
    parser.add_argument("--seed", type=int, default=None, help="乱数シード")
    parser.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="並列生成プロセス数",
    )
    args = parser.parse_args()

    puzzles = generate_all_kinds(
        args.width,
        args.height,
        args.count_each,
        wrap=args.wrap,
        seed=args.seed,
        jobs=args.jobs,
    )
    path = save_puzzles(puzzles)
    print(f"{path} を作成しました")
    # 生成した各パズルを ASCII で表示
    for pzl in puzzles:
        print(f"--- {pzl['kind']} ---")
        print(puzzle_to_ascii(pzl))


if __name__ == "__main__":
    # ログ設定を行ってからメイン処理を呼び出す
    setup_logging()
    main()
