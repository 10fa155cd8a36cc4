"""パイプパズル用の制約伝播ソルバーモジュール

各セルは取り得る向きの集合 ``possible`` と、確定した壁・接続のビットマスクを持つ。
壁や接続が確定すると隣接セルへ伝播し、それでも決まらない場合は
盤面全体を複製して仮置き (トライアル) を積み、バックトラックで探索する。

連結成分を追跡してループ (同じ成分同士の再接続) と孤島 (他とつながらないまま
閉じた成分) を早期に検出する。
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass
from typing import (
    Callable,
    Dict,
    Generator,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from .constants import (
    AMBIGUOUS,
    FIX_MAX_CHECKS,
    FIX_MAX_ITERATIONS,
    SHORT_TRIAL_MAX_OPTIONS,
    UNSOLVED,
    WILDCARD,
)
from .grids import GridTopology
from .polygon import Polygon, TileType

logger = logging.getLogger(__name__)


class ContradictionKind(enum.Enum):
    """探索中に起こり得る矛盾の種類"""

    NO_ORIENTATIONS_POSSIBLE = "no_orientations_possible"
    LOOP_DETECTED = "loop_detected"
    ISLAND_DETECTED = "island_detected"


class Contradiction(Exception):
    """制約伝播中の矛盾を表す基底例外"""

    kind: ContradictionKind

    def __init__(self, index: int, message: str = "") -> None:
        super().__init__(message or f"{self.kind.value} at {index}")
        self.index = index


class NoOrientationsPossible(Contradiction):
    kind = ContradictionKind.NO_ORIENTATIONS_POSSIBLE


class LoopDetected(Contradiction):
    kind = ContradictionKind.LOOP_DETECTED


class IslandDetected(Contradiction):
    kind = ContradictionKind.ISLAND_DETECTED


class Cell:
    """1 セル分の制約状態

    ``walls`` と ``connections`` は互いに素で、``possible`` の各要素は
    ``walls`` を使わず ``connections`` をすべて含む (``apply_constraints`` 後)。
    """

    def __init__(self, polygon: Polygon, index: int, initial: int) -> None:
        self.polygon = polygon
        self.index = index
        self.initial = initial
        if initial > 0:
            self.possible: Set[int] = polygon.rotations_of(initial)
        else:
            # 0 や負の値はワイルドカード扱いで、あらゆる形状を許す
            self.possible = {t for t in polygon.tile_types if t != 0}
        self.walls = 0
        self.connections = 0

    def __repr__(self) -> str:
        return (
            f"Cell({self.index}, possible={sorted(self.possible)}, "
            f"walls={self.walls}, connections={self.connections})"
        )

    @property
    def decided(self) -> int:
        return self.walls | self.connections

    def add_wall(self, directions: int) -> None:
        """壁を確定させる。既に接続として確定した方向とは両立しない"""

        if directions & self.connections:
            raise NoOrientationsPossible(
                self.index, f"wall {directions} conflicts with connection at {self.index}"
            )
        self.walls |= directions

    def add_connection(self, directions: int) -> None:
        """接続を確定させる。既に壁として確定した方向とは両立しない"""

        if directions & self.walls:
            raise NoOrientationsPossible(
                self.index, f"connection {directions} conflicts with wall at {self.index}"
            )
        self.connections |= directions

    def _keep(self, predicate: Callable[[int], bool]) -> bool:
        kept = {o for o in self.possible if predicate(o)}
        if len(kept) == len(self.possible):
            return False
        self.possible = kept
        return True

    def must_have_all_walls(self, directions: int) -> bool:
        return self._keep(lambda o: o & directions == 0)

    def must_have_some_walls(self, directions: int) -> bool:
        """``directions`` をすべて接続する向きを除く"""

        return self._keep(lambda o: o & directions != directions)

    def must_have_other_connections(self, directions: int) -> bool:
        """``directions`` だけにしか接続しない向きを除く"""

        return self._keep(lambda o: o & ~directions != 0)

    def must_have_all_connections(self, directions: int) -> bool:
        return self._keep(lambda o: o & directions == directions)

    def apply_constraints(self) -> Tuple[int, int]:
        """確定情報で ``possible`` を絞り込み、新たに確定した壁と接続を返す"""

        walls = self.walls
        connections = self.connections
        self.possible = {
            o
            for o in self.possible
            if o & walls == 0 and o & connections == connections
        }
        if not self.possible:
            raise NoOrientationsPossible(self.index)

        union = 0
        common = self.polygon.fully_connected
        for orientation in self.possible:
            union |= orientation
            common &= orientation
        new_walls = self.polygon.fully_connected & ~union
        added_walls = new_walls & ~walls
        added_connections = common & ~connections
        self.walls = new_walls
        self.connections = common
        return added_walls, added_connections

    def clone(self) -> Cell:
        cell = Cell.__new__(Cell)
        cell.polygon = self.polygon
        cell.index = self.index
        cell.initial = self.initial
        cell.possible = set(self.possible)
        cell.walls = self.walls
        cell.connections = self.connections
        return cell


@dataclass(frozen=True)
class SolverStep:
    """確定したセル 1 つ分の通知

    ``final`` はルート (仮置きなし) で確定したとき True。仮置き中の結果は False。
    """

    index: int
    orientation: int
    final: bool


@dataclass
class SolverProgress:
    total: int
    solved: int
    guessed: int
    ambiguous: int


@dataclass
class SolverStats:
    """探索統計。``steps`` は処理したセル数、``max_depth`` は仮置きの最大深さ"""

    steps: int = 0
    max_depth: int = 0
    guesses: int = 0
    backtracks: int = 0


@dataclass
class AmbiguityReport:
    """``mark_ambiguous_tiles`` の結果

    ``marked`` はセルごとの向き。解ごとに異なったセルは ``AMBIGUOUS``。
    """

    marked: List[int]
    solvable: bool
    unique: bool

    @property
    def ambiguous(self) -> List[int]:
        return [i for i, m in enumerate(self.marked) if m == AMBIGUOUS]


@dataclass
class Trial:
    index: int
    guess: int
    solver: Solver


Propagation = Generator[SolverStep, None, Optional[ContradictionKind]]


class Solver:
    """制約伝播とバックトラックで盤面を解くクラス

    ``tiles`` は作者が与えた各セルの形状 (向きは任意)。0 以下の値を持つ
    空きでないセルはワイルドカードとして扱う。
    """

    def __init__(
        self,
        tiles: Sequence[int],
        grid: GridTopology,
        *,
        island_checks: bool = True,
        short_trials: bool = True,
    ) -> None:
        if len(tiles) != grid.total:
            raise ValueError(
                f"tiles の長さ {len(tiles)} が盤面のセル数 {grid.total} と一致しません"
            )
        self.tiles: List[int] = list(tiles)
        self.grid = grid
        self.island_checks = island_checks
        self.short_trials = short_trials
        self.unsolved: Dict[int, Cell] = {}
        self.components: Dict[int, Set[int]] = {}
        self.dirty: Dict[int, None] = {}
        self.solution: List[int] = [
            0 if i in grid.empty_cells else UNSOLVED for i in range(grid.total)
        ]
        self.solutions: List[List[int]] = []
        self.progress_callback: Optional[Callable[[SolverProgress], None]] = None
        self.stats = SolverStats()
        self.depth = 0
        self.processed = 0
        self.cell_count = grid.total - len(grid.empty_cells)
        self.solved_count = 0
        max_directions = max(
            len(grid.polygon_at(i).directions) for i in range(grid.total)
        )
        self.check_deadend_connections = self.cell_count > max_directions + 1
        self._corners: Dict[Tuple[int, int], Optional[frozenset]] = {}

    def __repr__(self) -> str:
        return (
            f"<Solver {self.grid!r} solved={self.solved_count}/{self.cell_count} "
            f"depth={self.depth}>"
        )

    # ------------------------------------------------------------------
    # セル生成と局所推論
    # ------------------------------------------------------------------
    def _tile_type(self, index: int) -> Optional[TileType]:
        tile = self.tiles[index]
        if tile <= 0:
            return None
        return self.grid.polygon_at(index).tile_types.get(tile)

    def _shared_corner(self, index: int, direction: int) -> Optional[frozenset]:
        """``index`` と ``direction`` 側の隣接セルの両方に隣接する 2 セルを返す

        盤面の端などで 2 セルがそろわない場合は None。
        """

        key = (index, direction)
        if key in self._corners:
            return self._corners[key]
        grid = self.grid
        polygon = grid.polygon_at(index)
        found = grid.find_neighbour(index, direction)
        result: Optional[frozenset] = None
        if not found.empty:
            other = found.neighbour
            other_polygon = grid.polygon_at(other)
            mine = [
                grid.find_neighbour(index, polygon.rotate(direction, n))
                for n in (1, -1)
            ]
            theirs = [
                grid.find_neighbour(other, other_polygon.rotate(found.opposite_direction, n))
                for n in (1, -1)
            ]
            if not any(nb.empty for nb in mine + theirs):
                corner = frozenset(nb.neighbour for nb in mine)
                if (
                    len(corner) == 2
                    and corner == frozenset(nb.neighbour for nb in theirs)
                    and index not in corner
                    and other not in corner
                    and other != index
                ):
                    result = corner
        self._corners[key] = result
        return result

    def _seed_cell(self, cell: Cell) -> None:
        index = cell.index
        grid = self.grid
        polygon = cell.polygon
        deadends = 0
        my_type = self._tile_type(index)
        many_directions = len(polygon.directions) >= 6
        for direction in polygon.directions:
            found = grid.find_neighbour(index, direction)
            if found.empty:
                cell.add_wall(direction)
                continue
            neighbour_type = self._tile_type(found.neighbour)
            if neighbour_type is None:
                continue
            if neighbour_type.deadend:
                deadends |= direction
            if my_type is None or not many_directions:
                continue
            if self._shared_corner(index, direction) is None:
                continue
            if (
                my_type.many_adjacent_connections
                and neighbour_type.no_isolated_connections
            ):
                # 3 本並んだ中央の腕を鋭角タイルへ向けると必ずループになる
                prongs = (
                    direction
                    | polygon.rotate(direction, 1)
                    | polygon.rotate(direction, -1)
                )
                cell.must_have_some_walls(prongs)
            if my_type.no_adjacent_walls and neighbour_type.no_adjacent_walls:
                cell.must_have_all_connections(direction)
        if deadends and self.check_deadend_connections:
            cell.must_have_other_connections(deadends)

    def get_cell(self, index: int) -> Cell:
        """未解決セルを返す。まだ無ければ局所推論を済ませて作成する"""

        cell = self.unsolved.get(index)
        if cell is None:
            cell = Cell(self.grid.polygon_at(index), index, self.tiles[index])
            if len(cell.possible) > 1:
                self._seed_cell(cell)
            else:
                for direction in cell.polygon.directions:
                    if self.grid.find_neighbour(index, direction).empty:
                        cell.add_wall(direction)
            self.unsolved[index] = cell
            self.dirty[index] = None
        return cell

    # ------------------------------------------------------------------
    # 伝播
    # ------------------------------------------------------------------
    def _push(self, index: int, direction: int, wall: bool) -> None:
        """確定した壁または接続を隣接セルの対向方向へ伝える"""

        found = self.grid.find_neighbour(index, direction)
        if found.empty:
            if not wall:
                raise NoOrientationsPossible(index)
            return
        neighbour = found.neighbour
        opposite = found.opposite_direction
        solved = self.solution[neighbour]
        if solved >= 0:
            # 既に解けたセルは整合性だけ確認する
            if bool(solved & opposite) == wall:
                raise NoOrientationsPossible(neighbour)
            return
        cell = self.get_cell(neighbour)
        if wall:
            cell.add_wall(opposite)
        else:
            cell.add_connection(opposite)
        self.dirty[neighbour] = None

    def process_dirty_cells(self) -> Iterator[SolverStep]:
        """作業キューが空になるまで伝播し、確定したセルを順に返す"""

        grid = self.grid
        while self.dirty:
            index = next(iter(self.dirty))
            del self.dirty[index]
            if self.solution[index] != UNSOLVED:
                continue
            self.processed += 1
            cell = self.get_cell(index)
            added_walls, added_connections = cell.apply_constraints()
            if added_walls:
                for direction in cell.polygon.directions:
                    if added_walls & direction:
                        self._push(index, direction, wall=True)
            if added_connections:
                if index not in self.components:
                    self.components[index] = {index}
                for direction in cell.polygon.directions:
                    if added_connections & direction:
                        self._push(index, direction, wall=False)
                        neighbour = grid.find_neighbour(index, direction).neighbour
                        self.merge_components(index, neighbour)
            if len(cell.possible) == 1:
                orientation = next(iter(cell.possible))
                self._resolve(index, orientation)
                yield SolverStep(index, orientation, self.depth == 0)

    def _resolve(self, index: int, orientation: int) -> None:
        del self.unsolved[index]
        self.solution[index] = orientation
        self.solved_count += 1
        component = self.components.pop(index, None)
        if component is not None:
            component.discard(index)
            if not component and self.solved_count < self.cell_count:
                raise IslandDetected(index)

    # ------------------------------------------------------------------
    # 連結成分
    # ------------------------------------------------------------------
    def merge_components(self, index: int, neighbour: int) -> None:
        """接続した 2 セルの成分を統合する。同じ成分ならループ"""

        component = self.components.get(index)
        if component is None:
            component = self.components[index] = {index}
        other = self.components.get(neighbour)
        if other is None:
            if self.solution[neighbour] != UNSOLVED:
                return
            other = {neighbour}
        if component is other:
            raise LoopDetected(neighbour)
        if len(component) < len(other):
            component, other = other, component
        for member in other:
            self.components[member] = component
        component |= other
        self._forbid_shortcuts(component, other)

    def _forbid_shortcuts(self, component: Set[int], moved: Set[int]) -> None:
        """統合後の成分へ再接続する方向を塞ぐ

        移動したセルから同じ成分への未確定方向は壁にし、成分外のセルが
        未確定方向で成分の 2 セル以上に接しているときは同時接続を禁じる。
        """

        grid = self.grid
        frontier: Set[int] = set()
        for member in moved:
            cell = self.unsolved.get(member)
            if cell is None:
                continue
            for direction in cell.polygon.directions:
                if cell.decided & direction:
                    continue
                found = grid.find_neighbour(member, direction)
                if found.empty:
                    continue
                if self.components.get(found.neighbour) is component:
                    cell.add_wall(direction)
                    self.dirty[member] = None
                    self._push(member, direction, wall=True)
                else:
                    frontier.add(found.neighbour)

        for outsider in frontier:
            cell = self.unsolved.get(outsider)
            if cell is None or self.components.get(outsider) is component:
                continue
            links = [
                direction
                for direction in cell.polygon.directions
                if not cell.decided & direction
                and self.components.get(grid.find_neighbour(outsider, direction).neighbour)
                is component
            ]
            if len(links) < 2:
                continue
            changed = False
            for a, b in itertools.combinations(links, 2):
                changed |= cell.must_have_some_walls(a | b)
            if changed:
                self.dirty[outsider] = None

    def _is_closed(self, index: int) -> bool:
        """``index`` が属するネットワークに他の未解決セルが無いか"""

        component = self.components.get(index)
        return component is None or len(component) == 1

    def avoid_islands(self) -> bool:
        """他に出口の無い 2 つのネットワーク同士を結ぶ向きを禁じる

        成分内で唯一の未解決セル同士が互いにしか接続しないと閉じた島になるため、
        相手がこちら以外へ接続できないときは、こちら側の「相手だけへ接続する」向きを除く。
        何か絞り込めたら True を返す。
        """

        if self.solved_count + 2 >= self.cell_count:
            return False
        grid = self.grid
        changed = False
        for index, cell in list(self.unsolved.items()):
            if not self._is_closed(index):
                continue
            for direction in cell.polygon.directions:
                if cell.decided & direction:
                    continue
                found = grid.find_neighbour(index, direction)
                if found.empty:
                    continue
                other = self.unsolved.get(found.neighbour)
                if other is None or not self._is_closed(found.neighbour):
                    continue
                opposite = found.opposite_direction
                free = ~other.decided
                # 相手がこちらへ接続する向きはすべて、他の未確定方向を使わない
                dead_end = all(
                    o & free & ~opposite == 0
                    for o in other.possible
                    if o & opposite
                )
                if not dead_end:
                    continue
                if cell.must_have_other_connections(direction | cell.connections):
                    self.dirty[index] = None
                    changed = True
        return changed

    # ------------------------------------------------------------------
    # 探索
    # ------------------------------------------------------------------
    def clone(self) -> Solver:
        """仮置き用に状態を複製する。作業キューは空で始まる"""

        other = Solver.__new__(Solver)
        other.tiles = self.tiles
        other.grid = self.grid
        other.island_checks = self.island_checks
        other.short_trials = self.short_trials
        other.unsolved = {i: cell.clone() for i, cell in self.unsolved.items()}
        copies: Dict[int, Set[int]] = {}
        other.components = {}
        for index, component in self.components.items():
            copied = copies.get(id(component))
            if copied is None:
                copied = copies[id(component)] = set(component)
            other.components[index] = copied
        other.dirty = {}
        other.solution = list(self.solution)
        other.solutions = []
        other.progress_callback = None
        other.stats = SolverStats()
        other.depth = self.depth + 1
        other.processed = 0
        other.cell_count = self.cell_count
        other.solved_count = self.solved_count
        other.check_deadend_connections = self.check_deadend_connections
        other._corners = self._corners
        return other

    def is_solved(self) -> bool:
        return self.solved_count == self.cell_count

    def make_a_guess(self, excluded: Optional[Set[int]] = None) -> Optional[Tuple[int, int]]:
        """候補が最も少ないセルと、その最初の向きを返す"""

        best: Optional[Cell] = None
        for index, cell in self.unsolved.items():
            if excluded and index in excluded:
                continue
            if best is None or len(cell.possible) < len(best.possible):
                best = cell
                if len(cell.possible) <= 2:
                    break
        if best is None:
            return None
        return best.index, min(best.possible)

    def make_a_guess_unique(self) -> Optional[Tuple[int, int]]:
        """回転させた形が他に候補に無い向きを優先して仮置きする"""

        for index, cell in self.unsolved.items():
            for orientation in sorted(cell.possible):
                rotations = cell.polygon.rotations_of(orientation)
                if not (rotations - {orientation}) & cell.possible:
                    return index, orientation
        return self.make_a_guess()

    def do_short_trials(self) -> bool:
        """候補の少ないセルの各向きを伝播だけで試し、矛盾する向きを除く"""

        pruned = False
        for index, cell in list(self.unsolved.items()):
            if not 1 < len(cell.possible) <= SHORT_TRIAL_MAX_OPTIONS:
                continue
            for orientation in sorted(cell.possible):
                attempt = self.clone()
                attempt.unsolved[index].possible = {orientation}
                attempt.dirty[index] = None
                try:
                    for _ in attempt.process_dirty_cells():
                        pass
                except Contradiction as exc:
                    logger.debug("短い試行で除外: cell=%d orientation=%d (%s)", index, orientation, exc.kind.value)
                    cell.possible.discard(orientation)
                    self.dirty[index] = None
                    pruned = True
                self.stats.steps += attempt.processed
        return pruned

    def _propagate(self, solver: Solver, emit: bool = True) -> Propagation:
        """``solver`` の作業キューを処理し、矛盾があればその種類を返す"""

        try:
            for step in solver.process_dirty_cells():
                if emit:
                    yield step
        except Contradiction as exc:
            logger.debug("矛盾を検出: depth=%d %s", solver.depth, exc)
            return exc.kind
        finally:
            self.stats.steps += solver.processed
            solver.processed = 0
        return None

    def _initialize(self, emit: bool = True) -> Propagation:
        """全セルを作成して初期伝播を行う"""

        for index in range(self.grid.total):
            if self.solution[index] != UNSOLVED or index in self.unsolved:
                continue
            self.get_cell(index)
            result = yield from self._propagate(self, emit)
            if result is not None:
                return result
        return None

    def _backtrack(self, trials: List[Trial]) -> bool:
        """最後のトライアルを捨て、親セルからその向きを取り除く"""

        if len(trials) <= 1:
            return False
        failed = trials.pop()
        self.stats.backtracks += 1
        parent = trials[-1].solver
        cell = parent.unsolved.get(failed.index)
        if cell is not None:
            cell.possible.discard(failed.guess)
            parent.dirty[failed.index] = None
        return True

    def _push_trial(self, trials: List[Trial], solver: Solver, guess: Tuple[int, int]) -> None:
        index, orientation = guess
        child = solver.clone()
        child.unsolved[index].possible = {orientation}
        child.dirty[index] = None
        trials.append(Trial(index, orientation, child))
        self.stats.guesses += 1
        self.stats.max_depth = max(self.stats.max_depth, child.depth)

    def _stalled(self, trials: List[Trial], solver: Solver) -> bool:
        """伝播が止まったときの追加推論。何か進めば True"""

        if solver.island_checks and solver.avoid_islands():
            return True
        if len(trials) == 1 and solver.short_trials:
            return solver.do_short_trials()
        return False

    def solve(
        self, all_solutions: bool = False, limit: Optional[int] = None
    ) -> Iterator[SolverStep]:
        """盤面を解き、確定したセルを順に返すジェネレーター

        見つかった解は ``solutions`` に蓄積される。``all_solutions`` が False なら
        最初の解で止まる。``limit`` を指定すると解がその数に達した時点で止まる。
        """

        result = yield from self._initialize()
        if result is not None:
            logger.debug("初期伝播で矛盾: %s", result.value)
            return
        trials = [Trial(-1, -1, self)]
        while trials:
            solver = trials[-1].solver
            result = yield from self._propagate(solver, emit=not self.solutions)
            if result is not None:
                if not self._backtrack(trials):
                    break
                continue
            if solver.is_solved():
                self.solutions.append(list(solver.solution))
                if not all_solutions or (limit is not None and len(self.solutions) >= limit):
                    break
                if not self._backtrack(trials):
                    break
                continue
            if self._stalled(trials, solver):
                continue
            guess = solver.make_a_guess()
            if guess is None:
                break
            self._push_trial(trials, solver, guess)
        # 探索中の根の状態は trials[0] が使うため、公開用の解は最後に書き戻す
        if self.solutions:
            self.solution = list(self.solutions[0])

    def _report_progress(self, marked: List[int], guessed: int) -> None:
        if self.progress_callback is None:
            return
        solved = sum(1 for i, m in enumerate(marked) if m > 0 and i not in self.grid.empty_cells)
        ambiguous = sum(1 for m in marked if m == AMBIGUOUS)
        self.progress_callback(
            SolverProgress(
                total=self.cell_count, solved=solved, guessed=guessed, ambiguous=ambiguous
            )
        )

    def mark_ambiguous_tiles(self, limit: Optional[int] = None) -> AmbiguityReport:
        """すべての解を比べ、解ごとに向きが異なるセルを ``AMBIGUOUS`` にする

        ``limit`` を指定すると曖昧セルがその数に達した時点で打ち切る。
        """

        result = self._drain(self._initialize(emit=False))
        marked = list(self.solution)
        if result is not None:
            return AmbiguityReport(marked, solvable=False, unique=False)

        ambiguous: Set[int] = set()
        found = False
        trials = [Trial(-1, -1, self)]
        while trials:
            solver = trials[-1].solver
            self._report_progress(marked, len(trials) - 1)
            result = self._drain(self._propagate(solver, emit=False))
            if result is not None:
                if not self._backtrack(trials):
                    break
                continue

            complete = solver.is_solved()
            if not complete and not self._stalled(trials, solver):
                guess = solver.make_a_guess(ambiguous)
                if guess is not None:
                    self._push_trial(trials, solver, guess)
                    continue
                # 残りは曖昧と分かっているセルだけなので、解とみなして比較する
                complete = True
            elif not complete:
                continue

            found = True
            for index, orientation in enumerate(solver.solution):
                if orientation == UNSOLVED or marked[index] == AMBIGUOUS:
                    continue
                if marked[index] == UNSOLVED:
                    marked[index] = orientation
                elif marked[index] != orientation:
                    marked[index] = AMBIGUOUS
                    ambiguous.add(index)
            self._report_progress(marked, len(trials) - 1)
            if limit is not None and len(ambiguous) >= limit:
                logger.debug("曖昧セルが上限 %d に達したため打ち切り", limit)
                break
            if not self._backtrack(trials):
                break

        if found and limit is not None and len(ambiguous) >= limit:
            solvable = True
        else:
            solvable = found and all(
                m != UNSOLVED for i, m in enumerate(marked) if i not in self.grid.empty_cells
            )
        return AmbiguityReport(marked, solvable=solvable, unique=solvable and not ambiguous)

    @staticmethod
    def _drain(propagation: Propagation) -> Optional[ContradictionKind]:
        while True:
            try:
                next(propagation)
            except StopIteration as stop:
                return stop.value

    def fix_ambiguous_tiles(
        self, marked: Sequence[int], max_checks: int = FIX_MAX_CHECKS
    ) -> Tuple[List[int], int]:
        """曖昧なセルの形状を作り直して、一意解に近い盤面を探す

        曖昧でないセルは ``marked`` の向きに固定し、曖昧なセルは任意の形状を
        取れるワイルドカードにして解を探す。見つけた配置ごとに曖昧さを調べ、
        一意なものがあればそれを、なければ曖昧セルが最も少ないものを返す。

        :return: (新しいタイル配列, 残った曖昧セル数)
        """

        grid = self.grid
        tiles = [WILDCARD if m == AMBIGUOUS else m for m in marked]
        for index in grid.empty_cells:
            tiles[index] = 0
        wild = Solver(tiles, grid, short_trials=False)
        for index in grid.cells():
            cell = wild.get_cell(index)
            if marked[index] != AMBIGUOUS:
                cell.possible = {marked[index]}

        best: Optional[List[int]] = None
        best_count = grid.total + 1
        checks = 0
        iterations = 0
        trials = [Trial(-1, -1, wild)]
        while trials and checks < max_checks and iterations < FIX_MAX_ITERATIONS:
            iterations += 1
            solver = trials[-1].solver
            result = self._drain(self._propagate(solver, emit=False))
            if result is not None:
                if not self._backtrack(trials):
                    break
                continue
            if solver.is_solved():
                candidate = list(solver.solution)
                checks += 1
                report = Solver(candidate, grid).mark_ambiguous_tiles()
                count = len(report.ambiguous)
                logger.debug("修正候補 %d: 曖昧セル %d 個", checks, count)
                if report.unique:
                    return candidate, 0
                if report.solvable and count < best_count:
                    best, best_count = candidate, count
                if not self._backtrack(trials):
                    break
                continue
            if self._stalled(trials, solver):
                continue
            guess = solver.make_a_guess_unique()
            if guess is None:
                break
            self._push_trial(trials, solver, guess)

        if best is None:
            raise ValueError("曖昧セルを修正できる配置が見つかりません")
        return best, best_count


def count_solutions(
    tiles: Sequence[int],
    grid: GridTopology,
    *,
    limit: int = 2,
    return_stats: bool = False,
) -> int | tuple[int, Dict[str, int]]:
    """解の個数を ``limit`` 個まで数える

    ``return_stats`` が True なら探索統計 (``steps``, ``max_depth``,
    ``guesses``, ``backtracks``) も返す。
    """

    solver = Solver(tiles, grid)
    for _ in solver.solve(all_solutions=True, limit=limit):
        pass
    solutions = len(solver.solutions)
    if not return_stats:
        return solutions
    stats = {
        "steps": solver.stats.steps,
        "max_depth": solver.stats.max_depth,
        "guesses": solver.stats.guesses,
        "backtracks": solver.stats.backtracks,
    }
    return solutions, stats


__all__ = [
    "ContradictionKind",
    "Contradiction",
    "NoOrientationsPossible",
    "LoopDetected",
    "IslandDetected",
    "Cell",
    "SolverStep",
    "SolverProgress",
    "SolverStats",
    "AmbiguityReport",
    "Trial",
    "Solver",
    "count_solutions",
]
