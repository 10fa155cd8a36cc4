"""盤面生成を別プロセスへ任せるワーカー

受け取るコマンドと送り返すメッセージはどちらも辞書で表す。

- 受信: ``{"command": "generate", "grid": {...}, "options": {...}}``
- 送信: ``generator_progress`` / ``solver_progress`` / ``generated`` / ``error``

中断はプロセスごと終了させる粗い方式で、コア側には中断の仕組みを持たない。
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import queue
import random
from dataclasses import asdict
from typing import Any, Dict, Iterator, Optional

from .generator import Generator, setup_logging
from .grids import create_grid
from .puzzle_types import PostMessage

logger = logging.getLogger(__name__)

# forkserver を使うことで不要なファイルディスクリプタを継承せず、
# プロセス数が多い場合でも安定して動作する
CTX = mp.get_context("forkserver")

# options のキーと Generator.generate の引数名の対応
OPTION_NAMES = {
    "branchingAmount": "branching_amount",
    "avoidObvious": "avoid_obvious",
    "avoidStraights": "avoid_straights",
    "solutionsNumber": "solutions_number",
}

FINAL_MESSAGES = {"generated", "error"}


def _generate(data: Dict[str, Any], post_message: PostMessage) -> None:
    grid_spec = data.get("grid") or {}
    grid = create_grid(
        grid_spec.get("gridKind", "hexagonal"),
        int(grid_spec.get("width", 5)),
        int(grid_spec.get("height", 5)),
        bool(grid_spec.get("wrap", False)),
    )
    options = data.get("options") or {}
    kwargs = {
        name: options[key] for key, name in OPTION_NAMES.items() if key in options
    }
    seed = data.get("seed")
    generator = Generator(grid, random.Random(seed))
    generator.generator_progress_callback = lambda progress: post_message(
        {"msg": "generator_progress", "gen_progress": asdict(progress)}
    )
    generator.solver_progress_callback = lambda progress: post_message(
        {"msg": "solver_progress", "progress": asdict(progress)}
    )
    tiles = generator.generate(**kwargs)
    post_message({"msg": "generated", "tiles": tiles, "grid": grid.export(tiles)})


def handle_message(data: Dict[str, Any], post_message: PostMessage) -> None:
    """コマンドを 1 つ処理し、結果をメッセージとして送る

    例外が発生しても呼び出し側がハングしないよう ``error`` メッセージで返す。
    """

    command = data.get("command")
    try:
        if command == "generate":
            _generate(data, post_message)
        else:
            raise ValueError(f"未知のコマンドです: {command!r}")
    except Exception as exc:  # noqa: BLE001
        logger.warning("ワーカー処理失敗: %s", exc)
        post_message({"msg": "error", "error": str(exc)})


def _worker_main(inbox: Any, outbox: Any, log_level: int) -> None:
    """子プロセス側のメインループ。``None`` を受け取ると終了する"""

    setup_logging(log_level)
    while True:
        data = inbox.get()
        if data is None:
            break
        handle_message(data, outbox.put)


class GeneratorWorker:
    """生成ワーカーの子プロセスを管理するクラス"""

    def __init__(self, log_level: int = logging.WARNING) -> None:
        self.log_level = log_level
        self._process: Optional[mp.process.BaseProcess] = None
        self._inbox: Any = None
        self._outbox: Any = None

    def start(self) -> None:
        if self._process is not None and self._process.is_alive():
            return
        self._inbox = CTX.Queue()
        self._outbox = CTX.Queue()
        self._process = CTX.Process(
            target=_worker_main,
            args=(self._inbox, self._outbox, self.log_level),
            daemon=True,
        )
        self._process.start()

    def post_message(self, data: Dict[str, Any]) -> None:
        self.start()
        self._inbox.put(data)

    def messages(self, timeout: float | None = None) -> Iterator[Dict[str, Any]]:
        """``generated`` か ``error`` を受け取るまでメッセージを順に返す

        :raises TimeoutError: ``timeout`` 秒以内に次のメッセージが来なかった場合
        """

        while True:
            try:
                message = self._outbox.get(timeout=timeout)
            except queue.Empty as exc:
                raise TimeoutError("worker did not respond") from exc
            yield message
            if message.get("msg") in FINAL_MESSAGES:
                return

    def generate(
        self,
        grid: Dict[str, Any],
        options: Optional[Dict[str, Any]] = None,
        *,
        seed: int | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """生成コマンドを送り、最後のメッセージ (``generated`` か ``error``) を返す"""

        self.post_message(
            {"command": "generate", "grid": grid, "options": options or {}, "seed": seed}
        )
        last: Dict[str, Any] = {}
        for message in self.messages(timeout):
            last = message
        return last

    def terminate(self) -> None:
        """子プロセスを強制終了する"""
        if self._process is not None:
            self._process.terminate()
            self._process.join()
            self._process = None

    def restart(self) -> None:
        """実行中の生成を捨てて新しいプロセスに置き換える"""
        self.terminate()
        self.start()

    def close(self) -> None:
        """終了コマンドを送って子プロセスを止める"""
        if self._process is not None:
            self._inbox.put(None)
            self._process.join()
            self._process = None

    def __enter__(self) -> GeneratorWorker:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.terminate()


__all__ = ["handle_message", "GeneratorWorker", "CTX", "OPTION_NAMES"]
