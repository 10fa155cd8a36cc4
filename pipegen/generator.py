"""一意解を持つパイプパズル盤面の生成モジュール

コマンドラインからは ``python -m pipegen.generator`` で実行する。
"""

from __future__ import annotations

import concurrent.futures
import hashlib
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, cast

from .constants import FIX_ROUNDS, RETRY_LIMIT
from .grids import GridTopology, create_grid
from .puzzle_builder import _build_puzzle_dict, _collect_solver_stats
from .puzzle_io import save_puzzle
from .puzzle_types import Puzzle
from .solver import Solver, SolverProgress
from .spanning_tree import pregenerate_growing_tree
from .validator import validate_puzzle

logger = logging.getLogger(__name__)

ALLOWED_SOLUTIONS_NUMBERS = {"unique", "whatever"}


def setup_logging(level: int = logging.INFO) -> None:
    """ログ出力の設定を行う関数

    Python の ``logging`` モジュールはアプリの動作状況を
    画面やファイルに出力する仕組みです。ここでは ``basicConfig`` を
    使ってフォーマットと出力レベルをまとめて設定します。

    :param level: 表示するログの重要度。``logging.INFO`` などを指定
    """

    # logging.basicConfig でフォーマットやレベルを一括設定する
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


class GenerationError(ValueError):
    """一意解の盤面を作れなかったときの例外

    ``tiles`` には途中で得られた最良の配置 (一意とは限らない) を保持する。
    """

    def __init__(self, message: str, tiles: Optional[List[int]] = None) -> None:
        super().__init__(message)
        self.tiles = tiles


@dataclass
class GeneratorProgress:
    stage: str
    round: int
    ambiguous: int


class Generator:
    """全域木から盤面を作り、曖昧さを取り除いてから回転させるクラス"""

    def __init__(
        self, grid: GridTopology, rng: Optional[random.Random] = None
    ) -> None:
        self.grid = grid
        self.rng = rng if rng is not None else random.Random()
        self.generator_progress_callback: Optional[
            Callable[[GeneratorProgress], None]
        ] = None
        self.solver_progress_callback: Optional[Callable[[SolverProgress], None]] = None

    def _report(self, stage: str, round_no: int = 0, ambiguous: int = 0) -> None:
        if self.generator_progress_callback is not None:
            self.generator_progress_callback(
                GeneratorProgress(stage=stage, round=round_no, ambiguous=ambiguous)
            )

    def pregenerate_growing_tree(
        self,
        branching_amount: float = 1.0,
        avoid_obvious: float = 0.0,
        avoid_straights: float = 0.0,
    ) -> List[int]:
        self._report("pregenerate")
        return pregenerate_growing_tree(
            self.grid,
            self.rng,
            branching_amount=branching_amount,
            avoid_obvious=avoid_obvious,
            avoid_straights=avoid_straights,
        )

    def pregenerate_spanning_tree(self) -> List[int]:
        """Prim 法風に全域木を作る"""

        return self.pregenerate_growing_tree(1.0, 0.0, 0.0)

    def ensure_unique_solution(self, tiles: Sequence[int]) -> List[int]:
        """曖昧なセルを作り直し、解が一意になった配置を返す

        :raises GenerationError: 規定回数の修正で一意にならなかった場合
        """

        current = list(tiles)
        for round_no in range(FIX_ROUNDS + 1):
            start = time.perf_counter()
            solver = Solver(current, self.grid)
            solver.progress_callback = self.solver_progress_callback
            report = solver.mark_ambiguous_tiles()
            if not report.solvable:
                raise GenerationError("解の存在しない配置です", current)
            ambiguous = len(report.ambiguous)
            self._report("unique", round_no, ambiguous)
            logger.info(
                "曖昧セル判定完了 (%d 回目): %d 個, %.3f 秒",
                round_no + 1,
                ambiguous,
                time.perf_counter() - start,
            )
            if report.unique:
                return current
            if round_no == FIX_ROUNDS:
                break
            try:
                current, _ = solver.fix_ambiguous_tiles(report.marked)
            except ValueError as exc:
                raise GenerationError(str(exc), current) from exc
        raise GenerationError("曖昧セルを修正しきれませんでした", current)

    def random_rotate(self, tiles: Sequence[int]) -> List[int]:
        """各タイルをランダムな向きに回転させる"""

        rotated = list(tiles)
        for index in self.grid.cells():
            polygon = self.grid.polygon_at(index)
            rotated[index] = polygon.rotate(
                tiles[index], self.rng.randrange(len(polygon.directions))
            )
        return rotated

    def generate(
        self,
        branching_amount: float = 0.6,
        avoid_obvious: float = 0.0,
        avoid_straights: float = 0.0,
        solutions_number: str = "unique",
    ) -> List[int]:
        """盤面を 1 つ生成し、回転済みのタイル配列を返す"""

        if solutions_number not in ALLOWED_SOLUTIONS_NUMBERS:
            raise ValueError(
                f"solutions_number は {sorted(ALLOWED_SOLUTIONS_NUMBERS)} のいずれかで指定"
            )
        tiles = self.pregenerate_growing_tree(
            branching_amount, avoid_obvious, avoid_straights
        )
        if solutions_number == "unique":
            tiles = self.ensure_unique_solution(tiles)
        self._report("rotate")
        return self.random_rotate(tiles)


def generate_puzzle(
    kind: str,
    width: int,
    height: int,
    *,
    wrap: bool = False,
    seed: int | None = None,
    branching_amount: float = 0.6,
    avoid_obvious: float = 0.0,
    avoid_straights: float = 0.0,
    solutions_number: str = "unique",
    timeout_s: float | None = None,
    return_stats: bool = False,
) -> Puzzle | tuple[Puzzle, Dict[str, int]]:
    """盤面を生成してパズル辞書で返す

    失敗したら新しい全域木で ``RETRY_LIMIT`` 回まで再試行する。

    :param kind: "square" / "hexagonal" / "octagonal" のいずれか
    :param wrap: True なら上下左右がつながった盤面
    :param seed: 乱数シード。再現したいときに指定する
    :param branching_amount: 全域木の分岐しやすさ (0--1)
    :param avoid_obvious: 向きが自明なタイルを避ける確率
    :param avoid_straights: 直線タイルを避ける確率
    :param solutions_number: "unique" なら解の一意性を保証する
    :param timeout_s: 生成処理のタイムアウト秒。None なら無制限
    :param return_stats: True なら生成統計も返す
    :return: 生成したパズル。``return_stats`` が True の場合は
        ``(Puzzle, dict)`` のタプルを返す
    """

    grid = create_grid(kind, width, height, wrap)
    # 乱数生成器を作成。シードを指定すると結果を再現できる
    rng = random.Random(seed)
    generator = Generator(grid, rng)

    generation_params = {
        "kind": kind,
        "width": width,
        "height": height,
        "wrap": wrap,
        "seed": seed,
        "branchingAmount": branching_amount,
        "avoidObvious": avoid_obvious,
        "avoidStraights": avoid_straights,
        "solutionsNumber": solutions_number,
    }
    seed_hash = hashlib.sha256(str(seed).encode("utf-8")).hexdigest()

    start_time = time.perf_counter()
    logger.info("盤面生成開始: %s %dx%d wrap=%s", kind, width, height, wrap)

    best_tiles: List[int] | None = None
    for attempt in range(RETRY_LIMIT):
        if timeout_s is not None and time.perf_counter() - start_time > timeout_s:
            if best_tiles is not None:
                stats = _collect_solver_stats(grid, best_tiles)
                return _finish(
                    _build_puzzle_dict(
                        grid=grid,
                        tiles=best_tiles,
                        solver_stats=stats,
                        generation_params=generation_params,
                        seed_hash=seed_hash,
                        partial=True,
                        reason="timeout",
                    ),
                    stats,
                    return_stats,
                )
            raise TimeoutError("generation timed out")

        try:
            tiles = generator.generate(
                branching_amount, avoid_obvious, avoid_straights, solutions_number
            )
        except GenerationError as exc:
            logger.warning("生成失敗のため再試行します (%d 回目): %s", attempt + 1, exc)
            if exc.tiles is not None:
                best_tiles = generator.random_rotate(exc.tiles)
            continue

        stats = _collect_solver_stats(grid, tiles)
        puzzle = _build_puzzle_dict(
            grid=grid,
            tiles=tiles,
            solver_stats=stats,
            generation_params=generation_params,
            seed_hash=seed_hash,
        )
        # 生成した結果が条件を満たすか簡易チェック
        try:
            validate_puzzle(puzzle, require_unique=solutions_number == "unique")
        except ValueError as exc:
            logger.warning("検証失敗: %s", exc)
            best_tiles = tiles
            continue

        logger.info("盤面生成成功: %.3f 秒", time.perf_counter() - start_time)
        return _finish(puzzle, stats, return_stats)

    if best_tiles is not None:
        stats = _collect_solver_stats(grid, best_tiles)
        puzzle = _build_puzzle_dict(
            grid=grid,
            tiles=best_tiles,
            solver_stats=stats,
            generation_params=generation_params,
            seed_hash=seed_hash,
            partial=True,
            reason="not_unique",
        )
        logger.info(
            "盤面生成成功(フォールバック): %.3f 秒", time.perf_counter() - start_time
        )
        return _finish(puzzle, stats, return_stats)

    raise ValueError("盤面生成に失敗しました")


def _finish(
    puzzle: Puzzle, stats: Dict[str, int], return_stats: bool
) -> Puzzle | tuple[Puzzle, Dict[str, int]]:
    if return_stats:
        return puzzle, {
            "solver_steps": stats["steps"],
            "solver_max_depth": stats["max_depth"],
            "solutions": stats["solutions"],
        }
    return puzzle


def generate_multiple_puzzles(
    kind: str,
    width: int,
    height: int,
    count: int,
    *,
    wrap: bool = False,
    seed: int | None = None,
    jobs: int | None = None,
    worker_log_level: int = logging.WARNING,
    **options: Any,
) -> List[Puzzle]:
    """同じ条件の盤面を ``count`` 個生成して一覧で返す

    :param jobs: 並列生成プロセス数。1 以下なら逐次生成
    :param worker_log_level: 並列処理のログレベル。WARNING 以上のみ表示する
    :param options: ``generate_puzzle`` へそのまま渡す生成オプション
    """

    if count <= 0:
        raise ValueError("count は 1 以上を指定してください")

    logger.info("複数盤面生成開始 %s %dx%d count=%d", kind, width, height, count)
    start_time = time.perf_counter()
    if seed is None:
        seed = random.randint(0, 2**32 - 1)

    puzzles: List[Puzzle] = []
    if jobs is None or jobs <= 1:
        for offset in range(count):
            puzzles.append(
                cast(
                    Puzzle,
                    generate_puzzle(
                        kind, width, height, wrap=wrap, seed=seed + offset, **options
                    ),
                )
            )
    else:
        with concurrent.futures.ProcessPoolExecutor(
            max_workers=jobs,
            initializer=setup_logging,
            initargs=(worker_log_level,),
        ) as executor:
            futures = [
                executor.submit(
                    generate_puzzle,
                    kind,
                    width,
                    height,
                    wrap=wrap,
                    seed=seed + offset,
                    **options,
                )
                for offset in range(count)
            ]
            for future in futures:
                try:
                    puzzles.append(cast(Puzzle, future.result()))
                except Exception as exc:  # noqa: BLE001
                    logger.warning("並列生成失敗: %s", exc)

    logger.info("複数盤面生成終了: %.3f 秒", time.perf_counter() - start_time)
    return puzzles


# 四角形グリッド用の罫線文字 (E=1, N=2, W=4, S=8)
SQUARE_GLYPHS = {
    0: " ",
    1: "╶",
    2: "╵",
    3: "└",
    4: "╴",
    5: "─",
    6: "┘",
    7: "┴",
    8: "╷",
    9: "┌",
    10: "│",
    11: "├",
    12: "┐",
    13: "┬",
    14: "┤",
    15: "┼",
}


def puzzle_to_ascii(puzzle: Puzzle) -> str:
    """パズル情報を簡易的なテキスト盤面へ変換する

    四角形グリッドは罫線文字で、それ以外はタイル値を 16 進数で並べる。
    六角形グリッドは奇数行を半セル右へずらす。
    """

    width = puzzle["width"]
    height = puzzle["height"]
    tiles: List[int] = puzzle["tiles"]
    kind = puzzle["kind"]

    lines: List[str] = []
    if kind == "square":
        for r in range(height):
            row = tiles[r * width : (r + 1) * width]
            lines.append("".join(SQUARE_GLYPHS[t] for t in row))
        return "\n".join(lines)

    rows = height * 2 if kind == "octagonal" else height
    for r in range(rows):
        row = tiles[r * width : (r + 1) * width]
        cells = " ".join("  " if t == 0 else f"{t:02x}" for t in row)
        indent = " " if kind == "hexagonal" and r % 2 == 1 else ""
        if kind == "octagonal" and r >= height:
            # 後半は八角形の南東に入る菱形の行
            indent = "  "
        lines.append(indent + cells)
    return "\n".join(lines)


if __name__ == "__main__":
    import argparse

    # ログ設定を行う。デフォルトは INFO レベル
    setup_logging()

    # コマンドライン引数を受け取る
    parser = argparse.ArgumentParser(description="パイプパズル盤面を生成します")
    parser.add_argument("kind", choices=["square", "hexagonal", "octagonal"], help="グリッド種別")
    parser.add_argument("width", type=int, help="盤面の列数")
    parser.add_argument("height", type=int, help="盤面の行数")
    parser.add_argument("--wrap", action="store_true", help="上下左右をつなげる")
    parser.add_argument("--seed", type=int, default=None, help="乱数シード")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="タイムアウト秒数 (指定しない場合は無制限)",
    )
    parser.add_argument("--branching", type=float, default=0.6, help="分岐のしやすさ (0--1)")
    parser.add_argument(
        "--avoid-obvious", type=float, default=0.0, help="自明なタイルを避ける確率"
    )
    parser.add_argument(
        "--avoid-straights", type=float, default=0.0, help="直線タイルを避ける確率"
    )
    parser.add_argument(
        "--solutions",
        choices=sorted(ALLOWED_SOLUTIONS_NUMBERS),
        default="unique",
        help="解の一意性を保証するかどうか",
    )
    parser.add_argument(
        "--profile",
        action="store_true",
        help="プロファイル結果を profile.prof に保存する",
    )
    args = parser.parse_args()

    func_kwargs: Dict[str, Any] = {
        "wrap": args.wrap,
        "seed": args.seed,
        "branching_amount": args.branching,
        "avoid_obvious": args.avoid_obvious,
        "avoid_straights": args.avoid_straights,
        "solutions_number": args.solutions,
        "timeout_s": args.timeout,
    }

    if args.profile:
        # cProfile でプロファイルを取得し profile.prof に書き出す
        import cProfile

        profiler = cProfile.Profile()
        pzl_obj = profiler.runcall(
            generate_puzzle, args.kind, args.width, args.height, **func_kwargs
        )
        profiler.dump_stats("profile.prof")
    else:
        pzl_obj = generate_puzzle(args.kind, args.width, args.height, **func_kwargs)
    pzl = cast(Puzzle, pzl_obj)
    path = save_puzzle(pzl)
    print(f"{path} を作成しました")
    print(puzzle_to_ascii(pzl))
