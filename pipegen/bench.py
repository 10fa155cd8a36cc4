"""生成とソルバーの所要時間を測る簡易ベンチマーク

``python -m pipegen.bench square 5 5 -n 3`` のようにモジュールとして実行する。
"""

from __future__ import annotations

import random
import time
from typing import Any, Dict, Optional, cast

from . import generator
from .solver import Solver
from .validator import grid_from_puzzle


def run(
    kind: str,
    width: int,
    height: int,
    n: int = 1,
    *,
    wrap: bool = False,
    seed: Optional[int] = None,
) -> Dict[str, float]:
    """``n`` 個の盤面を生成し、生成と解き直しの平均秒数を返す"""

    rng = random.Random(seed)
    generate_total = 0.0
    solve_total = 0.0
    for _ in range(n):
        start = time.perf_counter()
        puzzle = cast(
            Dict[str, Any],
            generator.generate_puzzle(
                kind, width, height, wrap=wrap, seed=rng.randint(0, 2**32 - 1)
            ),
        )
        generate_total += time.perf_counter() - start

        # 生成済みの盤面を最初から解き直す時間
        start = time.perf_counter()
        solver = Solver(puzzle["tiles"], grid_from_puzzle(puzzle))
        for _ in solver.solve():
            pass
        solve_total += time.perf_counter() - start

    result = {
        "generate": generate_total / n if n else 0.0,
        "solve": solve_total / n if n else 0.0,
    }
    print(f"平均生成時間: {result['generate']:.3f} 秒 / 平均求解時間: {result['solve']:.3f} 秒")
    return result


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="パズル生成ベンチマーク")
    parser.add_argument("kind", choices=["square", "hexagonal", "octagonal"], help="グリッド種別")
    parser.add_argument("width", type=int, help="盤面の列数")
    parser.add_argument("height", type=int, help="盤面の行数")
    parser.add_argument("-n", type=int, default=1, help="生成回数")
    parser.add_argument("--wrap", action="store_true", help="上下左右をつなげる")
    parser.add_argument("--seed", type=int, help="乱数シード")
    args = parser.parse_args()
    generator.setup_logging()
    run(args.kind, args.width, args.height, args.n, wrap=args.wrap, seed=args.seed)
