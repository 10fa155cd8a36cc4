"""generator や入出力モジュールの関数を公開するパッケージ用モジュール"""

from importlib import import_module
from typing import Any

__all__ = [
    "generate_puzzle",
    "generate_multiple_puzzles",
    "puzzle_to_ascii",
    "Generator",
    "Solver",
    "create_grid",
    "analyze_board",
    "save_puzzle",
    "save_puzzles",
    "load_puzzles",
    "validate_puzzle",
    "build_steps_histogram",
    "GeneratorWorker",
]


def __getattr__(name: str) -> Any:
    """必要になったタイミングで対象モジュールを読み込む"""

    if name in {
        "generate_puzzle",
        "generate_multiple_puzzles",
        "puzzle_to_ascii",
        "Generator",
    }:
        module = import_module(".generator", __name__)
        return getattr(module, name)

    if name == "Solver":
        module = import_module(".solver", __name__)
        return getattr(module, name)

    if name == "create_grid":
        module = import_module(".grids", __name__)
        return getattr(module, name)

    if name == "analyze_board":
        module = import_module(".board", __name__)
        return getattr(module, name)

    if name in {"save_puzzle", "save_puzzles", "load_puzzles"}:
        module = import_module(".puzzle_io", __name__)
        return getattr(module, name)

    if name == "build_steps_histogram":
        module = import_module(".steps_histogram", __name__)
        return getattr(module, name)

    if name == "validate_puzzle":
        module = import_module(".validator", __name__)
        return getattr(module, name)

    if name == "GeneratorWorker":
        module = import_module(".worker", __name__)
        return getattr(module, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name}")
