"""PySAT を使った一意解チェックモジュール

局所制約 (各セルちょうど 1 つの向き・向き合う接続の一致・盤外への接続禁止)
を CNF にして解を列挙し、木になっていない解 (ループや孤島) はブロック節で
除外しながら数える。伝播ソルバーとは独立した検算に使う。
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from pysat.formula import CNF, IDPool

# EncType は PySAT で定義されている列挙型で、
# エンコーディング方式を数値で表現します
from pysat.card import CardEnc, EncType
from pysat.solvers import Minisat22

from .board import analyze_board
from .grids import GridTopology

logger = logging.getLogger(__name__)

# 木でない解をいくつまでブロックして探すか
DEFAULT_MAX_MODELS = 2000


def _create_variables(
    grid: GridTopology, tiles: Sequence[int], pool: IDPool
) -> Dict[int, Dict[int, int]]:
    """セルと向きの組ごとの SAT 変数を作成する補助関数"""

    variables: Dict[int, Dict[int, int]] = {}
    for index in grid.cells():
        polygon = grid.polygon_at(index)
        tile = tiles[index]
        if tile > 0:
            orientations = sorted(polygon.rotations_of(tile))
        else:
            orientations = sorted(t for t in polygon.tile_types if t != 0)
        variables[index] = {o: pool.id(("o", index, o)) for o in orientations}
    return variables


def _build_cnf(
    grid: GridTopology, variables: Dict[int, Dict[int, int]], pool: IDPool
) -> CNF:
    cnf = CNF()
    for index, options in variables.items():
        lits = list(options.values())
        if len(lits) == 1:
            cnf.append(lits)
        else:
            # EncType.seqcounter を指定してちょうど 1 つの向きに制限する
            cnf.extend(
                CardEnc.equals(
                    lits,
                    1,
                    vpool=pool,
                    encoding=EncType.seqcounter,
                ).clauses
            )
        for direction in grid.polygon_at(index).directions:
            found = grid.find_neighbour(index, direction)
            for orientation, var in options.items():
                if not orientation & direction:
                    continue
                if found.empty:
                    cnf.append([-var])
                    continue
                # こちらが接続するなら相手も向き合って接続する
                support = [
                    other_var
                    for other, other_var in variables[found.neighbour].items()
                    if other & found.opposite_direction
                ]
                cnf.append([-var] + support)
    return cnf


def _decode(
    grid: GridTopology, variables: Dict[int, Dict[int, int]], model: List[int]
) -> Tuple[List[int], List[int]]:
    truth = {lit for lit in model if lit > 0}
    solution = [0] * grid.total
    chosen: List[int] = []
    for index, options in variables.items():
        for orientation, var in options.items():
            if var in truth:
                solution[index] = orientation
                chosen.append(var)
                break
    return solution, chosen


def is_unique(
    tiles: Sequence[int], grid: GridTopology, *, max_models: int = DEFAULT_MAX_MODELS
) -> bool:
    """与えられたタイル配置の解が一意か確認する

    ``max_models`` 個の候補を調べても決着しない場合は False を返す。
    """

    pool = IDPool()
    variables = _create_variables(grid, tiles, pool)
    cnf = _build_cnf(grid, variables, pool)

    trees = 0
    with Minisat22(bootstrap_with=cnf.clauses) as solver:
        for _ in range(max_models):
            if not solver.solve():
                return trees == 1
            solution, chosen = _decode(grid, variables, solver.get_model())
            if analyze_board(grid, solution).is_solved(grid):
                trees += 1
                if trees > 1:
                    return False
            # 見つけた向きの組み合わせを禁止して次の解を探す
            solver.add_clause([-var for var in chosen])
    logger.warning("SAT 検算が %d 候補で決着しませんでした", max_models)
    return False


__all__ = ["is_unique", "DEFAULT_MAX_MODELS"]
