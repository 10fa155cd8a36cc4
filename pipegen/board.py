"""置かれたタイルから盤面の接続状態を調べるモジュール

互いに向き合った接続だけを辺とみなし、つながったセルの集まりと
ループ上にあるセルを求める。プレイヤーの盤面が完成したかの判定にも使う。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set, Tuple

from .grids import GridTopology


@dataclass
class BoardAnalysis:
    """盤面の解析結果

    ``components`` は 2 セル以上がつながった集まり、``loop_tiles`` は
    ループ上にあるセル、``dangling`` は相手が向き合っていない接続の数。
    """

    components: List[frozenset] = field(default_factory=list)
    loop_tiles: Set[int] = field(default_factory=set)
    dangling: int = 0

    def component_of(self, index: int) -> frozenset:
        for component in self.components:
            if index in component:
                return component
        return frozenset({index})

    def is_solved(self, grid: GridTopology) -> bool:
        """ループも途切れた接続も無く、全セルが 1 つにつながっているか"""

        if self.dangling or self.loop_tiles:
            return False
        cells = set(grid.cells())
        if len(cells) == 1:
            return True
        return len(self.components) == 1 and self.components[0] == cells


def mutual_edges(
    grid: GridTopology, tiles: Sequence[int]
) -> Tuple[List[Tuple[int, int]], int]:
    """向き合った接続を辺の一覧にする

    :return: (辺の一覧, 相手のいない接続の数)
    """

    edges: List[Tuple[int, int]] = []
    dangling = 0
    for index in grid.cells():
        tile = tiles[index]
        for direction in grid.polygon_at(index).directions:
            if not tile & direction:
                continue
            found = grid.find_neighbour(index, direction)
            if found.empty or not tiles[found.neighbour] & found.opposite_direction:
                dangling += 1
                continue
            # 同じ辺を両側から数えないよう片側だけ登録する
            if (index, direction) < (found.neighbour, found.opposite_direction):
                edges.append((index, found.neighbour))
    return edges, dangling


def _find_bridges(adjacency: Dict[int, List[Tuple[int, int]]]) -> Set[int]:
    """橋 (取り除くと非連結になる辺) の辺番号を返す

    多重辺を扱えるよう、親への戻りは頂点ではなく辺番号で判定する。
    """

    order: Dict[int, int] = {}
    low: Dict[int, int] = {}
    bridges: Set[int] = set()
    counter = 0
    for root in adjacency:
        if root in order:
            continue
        order[root] = low[root] = counter
        counter += 1
        # (頂点, 親の辺番号, 隣接リストのイテレーター)
        stack = [(root, -1, iter(adjacency[root]))]
        while stack:
            node, parent_edge, it = stack[-1]
            advanced = False
            for nxt, edge_id in it:
                if edge_id == parent_edge:
                    continue
                if nxt in order:
                    low[node] = min(low[node], order[nxt])
                    continue
                order[nxt] = low[nxt] = counter
                counter += 1
                stack.append((nxt, edge_id, iter(adjacency[nxt])))
                advanced = True
                break
            if advanced:
                continue
            stack.pop()
            if stack:
                parent = stack[-1][0]
                low[parent] = min(low[parent], low[node])
                if low[node] > order[parent]:
                    bridges.add(parent_edge)
    return bridges


def analyze_board(grid: GridTopology, tiles: Sequence[int]) -> BoardAnalysis:
    """タイル配置から連結成分とループ上のセルを求める"""

    edges, dangling = mutual_edges(grid, tiles)
    adjacency: Dict[int, List[Tuple[int, int]]] = {i: [] for i in grid.cells()}
    for edge_id, (a, b) in enumerate(edges):
        adjacency[a].append((b, edge_id))
        if a != b:
            adjacency[b].append((a, edge_id))

    components: List[frozenset] = []
    seen: Set[int] = set()
    for index in adjacency:
        if index in seen or not adjacency[index]:
            continue
        group = {index}
        stack = [index]
        while stack:
            node = stack.pop()
            for nxt, _ in adjacency[node]:
                if nxt not in group:
                    group.add(nxt)
                    stack.append(nxt)
        seen |= group
        if len(group) > 1:
            components.append(frozenset(group))

    bridges = _find_bridges(adjacency)
    loop_tiles: Set[int] = set()
    for edge_id, (a, b) in enumerate(edges):
        if edge_id not in bridges:
            loop_tiles.add(a)
            loop_tiles.add(b)

    return BoardAnalysis(components=components, loop_tiles=loop_tiles, dangling=dangling)


__all__ = ["BoardAnalysis", "analyze_board", "mutual_edges"]
