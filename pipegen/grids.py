"""盤面トポロジー (四角形・六角形・八角形グリッド) を定義するモジュール

各グリッドはセル番号と方向ビットから隣接セルを引く ``find_neighbour`` と、
セルごとの多角形を返す ``polygon_at`` を提供する。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .polygon import (
    DIAMOND,
    HEXAGON,
    OCTAGON,
    SQUARE,
    HEX_E,
    HEX_NE,
    HEX_NW,
    HEX_SE,
    HEX_SW,
    HEX_W,
    OCTA_E,
    OCTA_N,
    OCTA_NE,
    OCTA_NW,
    OCTA_S,
    OCTA_SE,
    OCTA_SW,
    OCTA_W,
    SQUARE_E,
    SQUARE_N,
    SQUARE_S,
    SQUARE_W,
    Polygon,
)
from .puzzle_types import Puzzle


@dataclass(frozen=True)
class Neighbour:
    """隣接セルの情報

    ``neighbour`` は盤面外なら -1。盤面外または空きセルなら ``empty`` が True。
    """

    neighbour: int
    empty: bool
    opposite_direction: int


class GridTopology:
    """グリッド共通の処理をまとめた基底クラス"""

    KIND = ""
    DIRECTIONS: tuple[int, ...] = ()
    OPPOSITE: Dict[int, int] = {}

    def __init__(
        self,
        width: int,
        height: int,
        wrap: bool = False,
        tiles: Optional[Sequence[int]] = None,
    ) -> None:
        if width < 1 or height < 1:
            raise ValueError("width と height は 1 以上を指定してください")
        self.width = width
        self.height = height
        self.wrap = wrap
        self.total = self._count_cells()
        self.empty_cells: Set[int] = set()
        if tiles is not None:
            if len(tiles) != self.total:
                raise ValueError(
                    f"tiles の長さ {len(tiles)} が盤面のセル数 {self.total} と一致しません"
                )
            self.empty_cells = {i for i, t in enumerate(tiles) if t == 0}
        else:
            self.empty_cells = self._default_empty_cells()
        self._neighbours: List[Dict[int, Neighbour]] = [
            {
                d: self._locate(index, d)
                for d in self.polygon_at(index).directions
            }
            for index in range(self.total)
        ]

    def __repr__(self) -> str:
        wrap = " wrap" if self.wrap else ""
        return f"<{type(self).__name__} {self.width}x{self.height}{wrap}>"

    def _count_cells(self) -> int:
        return self.width * self.height

    def _default_empty_cells(self) -> Set[int]:
        return set()

    def _find_raw(self, index: int, direction: int) -> int:
        """盤面外なら -1 を返す隣接セル計算。サブクラスで実装する"""

        raise NotImplementedError

    def _locate(self, index: int, direction: int) -> Neighbour:
        neighbour = self._find_raw(index, direction)
        opposite = self.OPPOSITE[direction]
        if neighbour < 0:
            return Neighbour(-1, True, opposite)
        return Neighbour(neighbour, neighbour in self.empty_cells, opposite)

    def find_neighbour(self, index: int, direction: int) -> Neighbour:
        """``index`` から ``direction`` 方向にある隣接セルを返す"""

        found = self._neighbours[index].get(direction)
        if found is None:
            # 多角形に含まれない方向は常に盤面外として扱う
            return Neighbour(-1, True, self.OPPOSITE.get(direction, 0))
        return found

    def polygon_at(self, index: int) -> Polygon:
        raise NotImplementedError

    def rotate(self, tile: int, rotations: int, index: int = 0) -> int:
        return self.polygon_at(index).rotate(tile, rotations)

    def is_empty(self, index: int) -> bool:
        return index in self.empty_cells

    def cells(self) -> Iterable[int]:
        """空きセルを除いたセル番号を順に返す"""

        return (i for i in range(self.total) if i not in self.empty_cells)

    def export(self, tiles: Sequence[int]) -> Puzzle:
        """パズルインスタンス形式の辞書を作る"""

        return {
            "width": self.width,
            "height": self.height,
            "wrap": self.wrap,
            "kind": self.KIND,
            "tiles": [0 if i in self.empty_cells else int(t) for i, t in enumerate(tiles)],
        }


class SquareGrid(GridTopology):
    """行優先に並べた四角形グリッド"""

    KIND = "square"
    DIRECTIONS = SQUARE.directions
    OPPOSITE = {
        SQUARE_E: SQUARE_W,
        SQUARE_N: SQUARE_S,
        SQUARE_W: SQUARE_E,
        SQUARE_S: SQUARE_N,
    }
    # (dx, dy)。dy は北向きを正とする
    XY_DELTAS = {
        SQUARE_E: (1, 0),
        SQUARE_N: (0, 1),
        SQUARE_W: (-1, 0),
        SQUARE_S: (0, -1),
    }

    def _find_raw(self, index: int, direction: int) -> int:
        r, c = divmod(index, self.width)
        dx, dy = self.XY_DELTAS[direction]
        r -= dy
        c += dx
        if self.wrap:
            r %= self.height
            c %= self.width
        elif not (0 <= r < self.height and 0 <= c < self.width):
            return -1
        return r * self.width + c

    def polygon_at(self, index: int) -> Polygon:
        return SQUARE


class HexaGrid(GridTopology):
    """奇数行を半セル東にずらした六角形グリッド"""

    KIND = "hexagonal"
    DIRECTIONS = HEXAGON.directions
    OPPOSITE = {
        HEX_E: HEX_W,
        HEX_NE: HEX_SW,
        HEX_NW: HEX_SE,
        HEX_W: HEX_E,
        HEX_SW: HEX_NE,
        HEX_SE: HEX_NW,
    }
    # 行の偶奇ごとの (dr, dc)
    RC_DELTA = {
        HEX_E: ((0, 1), (0, 1)),
        HEX_NE: ((-1, 0), (-1, 1)),
        HEX_NW: ((-1, -1), (-1, 0)),
        HEX_W: ((0, -1), (0, -1)),
        HEX_SW: ((1, -1), (1, 0)),
        HEX_SE: ((1, 0), (1, 1)),
    }

    def _find_raw(self, index: int, direction: int) -> int:
        r, c = divmod(index, self.width)
        dr, dc = self.RC_DELTA[direction][r % 2]
        r += dr
        c += dc
        if self.wrap:
            # 上下の端をまたぐときは列をずらして往復の対応を保つ
            if r == -1:
                r = self.height - 1
                c += 1
            elif r == self.height:
                r = 0
                c -= 1 - (self.height % 2)
            c %= self.width
        elif not (0 <= r < self.height and 0 <= c < self.width):
            return -1
        return r * self.width + c

    def polygon_at(self, index: int) -> Polygon:
        return HEXAGON


class OctaGrid(GridTopology):
    """八角形と、その南東の角に入る菱形からなるグリッド

    セル番号 ``0 .. width*height-1`` が八角形、その後ろの同数が菱形。
    菱形 (r, c) は八角形 (r, c) の南東の角に位置する。
    """

    KIND = "octagonal"
    DIRECTIONS = OCTAGON.directions
    OPPOSITE = {
        OCTA_E: OCTA_W,
        OCTA_NE: OCTA_SW,
        OCTA_N: OCTA_S,
        OCTA_NW: OCTA_SE,
        OCTA_W: OCTA_E,
        OCTA_SW: OCTA_NE,
        OCTA_S: OCTA_N,
        OCTA_SE: OCTA_NW,
    }
    # 八角形から見た (dr, dc, 菱形かどうか)
    OCTAGON_STEPS = {
        OCTA_E: (0, 1, False),
        OCTA_N: (-1, 0, False),
        OCTA_W: (0, -1, False),
        OCTA_S: (1, 0, False),
        OCTA_NE: (-1, 0, True),
        OCTA_NW: (-1, -1, True),
        OCTA_SW: (0, -1, True),
        OCTA_SE: (0, 0, True),
    }
    # 菱形から見た八角形への (dr, dc)
    DIAMOND_STEPS = {
        OCTA_NE: (0, 1),
        OCTA_NW: (0, 0),
        OCTA_SW: (1, 0),
        OCTA_SE: (1, 1),
    }

    def _count_cells(self) -> int:
        return 2 * self.width * self.height

    def _default_empty_cells(self) -> Set[int]:
        if self.wrap:
            return set()
        # 周回しない盤面では右端と下端の菱形が盤面からはみ出す
        n = self.width * self.height
        empty = set()
        for r in range(self.height):
            for c in range(self.width):
                if r == self.height - 1 or c == self.width - 1:
                    empty.add(n + r * self.width + c)
        return empty

    def _wrap_rc(self, r: int, c: int) -> tuple[int, int] | None:
        if self.wrap:
            return r % self.height, c % self.width
        if 0 <= r < self.height and 0 <= c < self.width:
            return r, c
        return None

    def _find_raw(self, index: int, direction: int) -> int:
        n = self.width * self.height
        if index < n:
            r, c = divmod(index, self.width)
            dr, dc, to_diamond = self.OCTAGON_STEPS[direction]
            rc = self._wrap_rc(r + dr, c + dc)
            if rc is None:
                return -1
            offset = n if to_diamond else 0
            return offset + rc[0] * self.width + rc[1]
        r, c = divmod(index - n, self.width)
        dr, dc = self.DIAMOND_STEPS[direction]
        rc = self._wrap_rc(r + dr, c + dc)
        if rc is None:
            return -1
        return rc[0] * self.width + rc[1]

    def polygon_at(self, index: int) -> Polygon:
        if index < self.width * self.height:
            return OCTAGON
        return DIAMOND


GRID_KINDS = {
    SquareGrid.KIND: SquareGrid,
    HexaGrid.KIND: HexaGrid,
    OctaGrid.KIND: OctaGrid,
}


def create_grid(
    kind: str,
    width: int,
    height: int,
    wrap: bool = False,
    tiles: Optional[Sequence[int]] = None,
) -> GridTopology:
    """グリッド種別名から盤面トポロジーを生成する"""

    grid_class = GRID_KINDS.get(kind)
    if grid_class is None:
        raise ValueError(f"kind は {sorted(GRID_KINDS)} のいずれかで指定してください")
    return grid_class(width, height, wrap, tiles)


__all__ = [
    "Neighbour",
    "GridTopology",
    "SquareGrid",
    "HexaGrid",
    "OctaGrid",
    "GRID_KINDS",
    "create_grid",
]
