"""盤面全体を覆う全域木 (ループも孤島も無い配管) を作るモジュール"""

from __future__ import annotations

import logging
import random
import time
from typing import List

from .grids import GridTopology

logger = logging.getLogger(__name__)


def _is_obvious(grid: GridTopology, index: int, tile: int) -> bool:
    """盤面の端に沿って置ける向きが 1 通りしかないタイルか判定する"""

    polygon = grid.polygon_at(index)
    border = 0
    for direction in polygon.directions:
        if grid.find_neighbour(index, direction).empty:
            border |= direction
    if not border:
        return False
    fits = [o for o in polygon.rotations_of(tile) if o & border == 0]
    return len(fits) == 1


def _is_unwanted(
    grid: GridTopology,
    index: int,
    tile: int,
    rng: random.Random,
    avoid_obvious: float,
    avoid_straights: float,
) -> bool:
    """次の辺を足すと好ましくない形になるか判定する"""

    tile_type = grid.polygon_at(index).tile_types[tile]
    if tile_type.fully_connected:
        return True
    if avoid_straights > 0 and tile_type.straight and rng.random() < avoid_straights:
        return True
    if (
        avoid_obvious > 0
        and _is_obvious(grid, index, tile)
        and rng.random() < avoid_obvious
    ):
        return True
    return False


def pregenerate_growing_tree(
    grid: GridTopology,
    rng: random.Random,
    *,
    branching_amount: float = 1.0,
    avoid_obvious: float = 0.0,
    avoid_straights: float = 0.0,
) -> List[int]:
    """成長木アルゴリズムで全域木のタイル配列を作る

    訪問済みセルから未訪問の隣接セルへ辺を伸ばすことを繰り返す。
    ``branching_amount`` の確率で訪問済みセルをランダムに選び (Prim 法)、
    それ以外は最後に訪問したセルから伸ばす (深さ優先の通路)。
    辺を足すと全方向接続などの好ましくない形になるセルは「最終手段」の
    候補へ回し、通常の候補が尽きてから使う。

    :param branching_amount: ランダムに分岐させる確率 (0--1)
    :param avoid_obvious: 端で向きが 1 通りに決まる形を避ける確率
    :param avoid_straights: 直線の形を避ける確率
    :return: 各セルの接続方向を表すタイル配列。空きセルは 0
    """

    if not 0.0 <= branching_amount <= 1.0:
        raise ValueError("branching_amount は 0 から 1 の範囲で指定してください")

    cells = list(grid.cells())
    if not cells:
        raise ValueError("空きでないセルが存在しません")

    start_time = time.perf_counter()
    tiles = [0] * grid.total
    start = cells[len(cells) // 2]
    seen = {start}
    visited = [start]
    last_resort: List[int] = []

    while visited or last_resort:
        from_last_resort = not visited
        pool = last_resort if from_last_resort else visited
        if rng.random() < branching_amount:
            pos = rng.randrange(len(pool))
        else:
            pos = len(pool) - 1
        from_node = pool[pos]

        options = []
        for direction in grid.polygon_at(from_node).directions:
            found = grid.find_neighbour(from_node, direction)
            if not found.empty and found.neighbour not in seen:
                options.append((direction, found))
        if not options:
            pool.pop(pos)
            continue

        direction, found = rng.choice(options)
        new_tile = tiles[from_node] | direction
        if (
            not from_last_resort
            and len(seen) > 1
            and _is_unwanted(grid, from_node, new_tile, rng, avoid_obvious, avoid_straights)
        ):
            visited.pop(pos)
            last_resort.append(from_node)
            continue

        tiles[from_node] = new_tile
        tiles[found.neighbour] |= found.opposite_direction
        seen.add(found.neighbour)
        visited.append(found.neighbour)

    if len(seen) != len(cells):
        raise ValueError("盤面が連結ではないため全域木を作れません")

    logger.debug("全域木生成完了: %.3f 秒", time.perf_counter() - start_time)
    return tiles


__all__ = ["pregenerate_growing_tree"]
