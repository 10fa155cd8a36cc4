"""共通で使う型エイリアスをまとめたモジュール

Python 標準ライブラリの ``types`` モジュールと名前が衝突しないよう、
このファイル名を ``puzzle_types`` としている。
"""

from typing import Any, Callable, Dict, List

# パズルインスタンスを表す辞書型。width/height/wrap/kind/tiles を必ず含む
Puzzle = Dict[str, Any]

# タイル配列。0 は空きセル、それ以外は方向ビットマスク
Tiles = List[int]

# ワーカーから外へ送るメッセージの受け口
PostMessage = Callable[[Dict[str, Any]], None]

__all__ = ["Puzzle", "Tiles", "PostMessage"]
