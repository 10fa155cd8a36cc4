"""セルの多角形と、タイル形状の回転・分類を扱うモジュール

方向はビットフラグで表し、``directions`` には東から反時計回りの順に並べる。
``rotate(tile, n)`` は正の ``n`` で時計回りに ``n`` ステップ回転させる。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Set

import numpy as np
from numba import njit


@dataclass(frozen=True)
class TileType:
    """向きに依存しないタイル形状の分類

    同じ形状のすべての回転は同じ ``TileType`` を共有する。
    """

    pattern: int  # 回転の中で最小の値を代表値とする
    connections: int
    deadend: bool
    straight: bool
    fully_connected: bool
    no_adjacent_connections: bool
    no_adjacent_walls: bool
    many_adjacent_connections: bool
    no_isolated_connections: bool


@njit(cache=True)
def _build_rotation_table(directions: np.ndarray, full: int) -> np.ndarray:
    """回転数とタイル値から回転後のタイル値を引く表を作る"""

    k = directions.shape[0]
    table = np.zeros((k, full + 1), dtype=np.int64)
    for n in range(k):
        for mask in range(full + 1):
            rotated = 0
            for i in range(k):
                if mask & directions[i]:
                    rotated |= directions[(i - n + k) % k]
            table[n, mask] = rotated
    return table


def _longest_run(flags: List[bool]) -> int:
    """環状の真偽列で連続する True の最大長を返す"""

    k = len(flags)
    if all(flags):
        return k
    best = 0
    run = 0
    # 2 周なめれば末尾から先頭へ続く並びも数えられる
    for i in range(2 * k):
        if flags[i % k]:
            run += 1
            best = max(best, min(run, k))
        else:
            run = 0
    return best


def _classify(mask: int, directions: Sequence[int], pattern: int) -> TileType:
    k = len(directions)
    conn = [bool(mask & d) for d in directions]
    count = sum(conn)
    full = count == k

    adjacent_conn = any(conn[i] and conn[(i + 1) % k] for i in range(k))
    adjacent_wall = any(
        not conn[i] and not conn[(i + 1) % k] for i in range(k)
    )
    isolated = any(
        conn[i] and not conn[(i - 1) % k] and not conn[(i + 1) % k]
        for i in range(k)
    )
    straight = False
    if count == 2 and k % 2 == 0:
        first = conn.index(True)
        straight = conn[(first + k // 2) % k]

    return TileType(
        pattern=pattern,
        connections=count,
        deadend=count == 1,
        straight=straight,
        fully_connected=full,
        no_adjacent_connections=count > 0 and not adjacent_conn,
        no_adjacent_walls=0 < count < k and not adjacent_wall,
        many_adjacent_connections=_longest_run(conn) >= 3,
        no_isolated_connections=count >= 2 and not full and not isolated,
    )


class Polygon:
    """1 種類のセル形状を表すクラス

    回転表と形状分類は生成時に一度だけ計算し、同じ多角形のセル全体で共有する。
    """

    def __init__(self, directions: Sequence[int]) -> None:
        self.directions: tuple[int, ...] = tuple(directions)
        self.fully_connected = sum(self.directions)
        self._table = _build_rotation_table(
            np.array(self.directions, dtype=np.int64), self.fully_connected
        )
        self.tile_types: Dict[int, TileType] = self._classify_tiles()

    def __repr__(self) -> str:
        return f"Polygon({list(self.directions)!r})"

    def rotate(self, tile: int, rotations: int) -> int:
        """``tile`` を時計回りに ``rotations`` ステップ回転させる"""

        return int(self._table[rotations % len(self.directions), tile])

    def rotations_of(self, tile: int) -> Set[int]:
        """``tile`` の取り得るすべての向きを返す"""

        return {int(v) for v in self._table[:, tile]}

    def get_directions(self, tile: int) -> List[int]:
        """``tile`` が接続している方向の一覧を返す"""

        return [d for d in self.directions if tile & d]

    def is_valid_tile(self, tile: int) -> bool:
        return 0 <= tile <= self.fully_connected and tile & ~self.fully_connected == 0

    def _classify_tiles(self) -> Dict[int, TileType]:
        tile_types: Dict[int, TileType] = {}
        for mask in range(self.fully_connected + 1):
            if mask in tile_types or mask & ~self.fully_connected:
                continue
            rotations = self.rotations_of(mask)
            tile_type = _classify(mask, self.directions, min(rotations))
            for rotated in rotations:
                tile_types[rotated] = tile_type
        return tile_types


# 方向ビット
SQUARE_E, SQUARE_N, SQUARE_W, SQUARE_S = 1, 2, 4, 8
HEX_E, HEX_NE, HEX_NW, HEX_W, HEX_SW, HEX_SE = 1, 2, 4, 8, 16, 32
OCTA_E, OCTA_NE, OCTA_N, OCTA_NW, OCTA_W, OCTA_SW, OCTA_S, OCTA_SE = (
    1,
    2,
    4,
    8,
    16,
    32,
    64,
    128,
)

SQUARE = Polygon((SQUARE_E, SQUARE_N, SQUARE_W, SQUARE_S))
HEXAGON = Polygon((HEX_E, HEX_NE, HEX_NW, HEX_W, HEX_SW, HEX_SE))
OCTAGON = Polygon(
    (OCTA_E, OCTA_NE, OCTA_N, OCTA_NW, OCTA_W, OCTA_SW, OCTA_S, OCTA_SE)
)
# 八角形グリッドの隙間に入る小さな菱形。斜め 4 方向だけを持つ
DIAMOND = Polygon((OCTA_NE, OCTA_NW, OCTA_SW, OCTA_SE))


__all__ = [
    "TileType",
    "Polygon",
    "SQUARE",
    "HEXAGON",
    "OCTAGON",
    "DIAMOND",
]
