"""ソルバーの処理量 (1 セルあたりのステップ数) の分布を計算するモジュール

コマンドラインからは ``python -m pipegen.steps_histogram hexagonal 6 6 --samples 20`` で実行する。
"""

from __future__ import annotations

import random
from typing import List, Tuple, cast

from .generator import generate_puzzle
from .puzzle_types import Puzzle


def build_steps_histogram(
    kind: str,
    width: int,
    height: int,
    samples: int,
    *,
    wrap: bool = False,
    seed: int | None = None,
) -> Tuple[List[int], float]:
    """複数パズルを生成して 1 セルあたりのソルバーステップ数を集計する関数

    ``samples`` 個のパズルを生成し、それぞれの ``solverStats.steps`` を
    セル数で割った値を 0.5 刻みの 21 区間 (最後の区間は 10 以上) に集計し、
    95 パーセンタイル (全体の上位 5% 境界値) を返します。

    :param samples: 生成するパズル数
    :param seed: 乱数シード。指定しない場合はランダム
    :return: (ヒストグラム配列, P95 値)
    """

    if samples <= 0:
        raise ValueError("samples は 1 以上を指定してください")

    rng = random.Random(seed)
    scores: List[float] = []
    for _ in range(samples):
        puzzle = cast(
            Puzzle,
            generate_puzzle(kind, width, height, wrap=wrap, seed=rng.randint(0, 2**32 - 1)),
        )
        cells = sum(1 for t in puzzle["tiles"] if t != 0)
        scores.append(puzzle["solverStats"]["steps"] / cells)

    scores.sort()

    histogram = [0 for _ in range(21)]
    for score in scores:
        idx = min(20, int(score * 2))
        histogram[idx] += 1

    index = max(0, int(len(scores) * 0.95) - 1)
    p95 = scores[index]

    return histogram, p95


if __name__ == "__main__":
    import argparse
    from pprint import pprint

    parser = argparse.ArgumentParser(
        description="1 セルあたりのソルバーステップ数のヒストグラムと P95 を計算します"
    )
    parser.add_argument("kind", choices=["square", "hexagonal", "octagonal"], help="グリッド種別")
    parser.add_argument("width", type=int, help="盤面の列数")
    parser.add_argument("height", type=int, help="盤面の行数")
    parser.add_argument("--samples", type=int, default=10, help="生成数")
    parser.add_argument("--wrap", action="store_true", help="上下左右をつなげる")
    parser.add_argument("--seed", type=int, default=None, help="乱数シード")
    args = parser.parse_args()

    hist, p95 = build_steps_histogram(
        args.kind, args.width, args.height, args.samples, wrap=args.wrap, seed=args.seed
    )
    pprint(hist)
    print(f"P95 = {p95:.2f}")
