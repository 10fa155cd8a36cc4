"""共通定数や簡易ヘルパー関数を定義するモジュール"""

from __future__ import annotations

# solution 配列で使う番兵値。0 は空きセル
UNSOLVED = -1
AMBIGUOUS = -2
# タイル配列でワイルドカードを表す値 (0 以下の空きでないセルも同じ扱い)
WILDCARD = -1

# 伝播だけで試す「短い試行」の対象にする候補数の上限
SHORT_TRIAL_MAX_OPTIONS = 3

# 曖昧セル修正で調べる候補配置の数と、探索ループの上限
FIX_MAX_CHECKS = 12
FIX_MAX_ITERATIONS = 5000
# 曖昧セル修正を繰り返す回数
FIX_ROUNDS = 6

# 生成失敗時に何回まで新しい全域木で再試行するか
RETRY_LIMIT = 20


def _evaluate_difficulty(steps: int, depth: int, cells: int) -> str:
    """ソルバー統計から難易度を推定する関数"""

    # 1 セルあたりの処理回数と仮置きの深さから判断する
    per_cell = steps / cells if cells else 0.0
    if per_cell < 1.5 and depth == 0:
        return "easy"
    if per_cell < 3.0 and depth <= 2:
        return "normal"
    if per_cell < 6.0 and depth <= 6:
        return "hard"
    return "expert"


__all__ = [
    "UNSOLVED",
    "AMBIGUOUS",
    "WILDCARD",
    "SHORT_TRIAL_MAX_OPTIONS",
    "FIX_MAX_CHECKS",
    "FIX_MAX_ITERATIONS",
    "FIX_ROUNDS",
    "RETRY_LIMIT",
    "_evaluate_difficulty",
]
