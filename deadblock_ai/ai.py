"""コンピュータ対戦相手の指し手選択。

難易度:
    EASY: 合法手から一様ランダムに選ぶ
    MEDIUM: 1手読みの評価値にノイズを加え、上位の手からランダムに選ぶ
    HARD: 相手の合法手数を最小にする手を選ぶ貪欲法（1手読み、ミニマックスではない）
    EXPERT: 時間制限付きαβ探索（search.AlphaBetaSearch）
"""

from __future__ import annotations

import random
from dataclasses import replace
from enum import Enum
from typing import Callable, Dict, Optional

from deadblock_ai.engine import Engine, Move
from deadblock_ai.search import AlphaBetaSearch, evaluate_move
from deadblock_ai.state import PLAYERS, AIConfig, GameState


class NoLegalMoveError(RuntimeError):
    """合法手がない状態でAIに手を選ばせた場合の例外（呼び出し側の契約違反）。"""


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"

    @classmethod
    def parse(cls, value: "Difficulty | str | None") -> "Difficulty":
        """難易度を解釈する。不明な値はEASYとして扱う。

        旧クライアントの名前（random / average / professional）も受け付ける。
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.EASY
        key = value.strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return cls.EASY


_ALIASES: Dict[str, str] = {
    "random": "easy",
    "average": "medium",
    "professional": "expert",
}


def random_policy(
    engine: Engine,
    state: GameState,
    rng: random.Random | None = None,
    config: AIConfig | None = None,
) -> Move | None:
    """合法手から一様ランダムに選ぶポリシー。

    向きの重複を除いた合法手から選ぶので、対称なピースが
    不利に重み付けされることはない。

    Returns:
        選択された手（合法手がない場合はNone）
    """
    rng = rng or random
    moves = engine.legal_moves(state, unique=True)
    if not moves:
        return None
    return rng.choice(moves)


def heuristic_policy(
    engine: Engine,
    state: GameState,
    rng: random.Random | None = None,
    config: AIConfig | None = None,
) -> Move | None:
    """評価値にランダム性を加えて上位から選ぶポリシー（MEDIUM）。

    初手付近では盤の中央寄りの手からランダムに選ぶ。
    それ以降はevaluate_moveにノイズを加えて並べ、上位k手から選ぶ。

    Returns:
        選択された手（合法手がない場合はNone）
    """
    rng = rng or random
    config = config or AIConfig()
    moves = engine.legal_moves(state, unique=True)
    if not moves:
        return None

    used_count = len(state.used)
    if used_count < config.opening_pieces:
        last = engine.config.size - 3
        central = [
            move
            for move in moves
            if 1 <= move.anchor[0] <= last and 1 <= move.anchor[1] <= last
        ]
        pool = central if len(central) > 5 else moves
        return rng.choice(pool)

    early = used_count < config.early_game_pieces
    noise = 400.0 if early else 50.0
    scored = [
        (evaluate_move(engine, state.board, state.used, move) + rng.random() * noise, move)
        for move in moves
    ]
    scored.sort(key=lambda item: item[0], reverse=True)
    top_k = config.medium_top_k_early if early else config.medium_top_k_late
    return rng.choice(scored[:top_k])[1]


def greedy_policy(
    engine: Engine,
    state: GameState,
    rng: random.Random | None = None,
    config: AIConfig | None = None,
) -> Move | None:
    """相手の合法手数を最小にする手を選ぶ貪欲ポリシー（HARD）。

    各合法手を指した後の相手の合法手数をEngine.reply_countsでまとめて数える。
    最小の手が複数あればランダムに選ぶ。ランダムより強いだけの
    簡易ヒューリスティックで、ミニマックス探索ではない。

    Returns:
        選択された手（合法手がない場合はNone）
    """
    rng = rng or random
    moves = engine.legal_moves(state, unique=True)
    if not moves:
        return None

    mobility = engine.reply_counts(state.board, state.unused_pieces(), moves)
    best_mobility = mobility.min()
    best_moves = [move for move, count in zip(moves, mobility) if count == best_mobility]
    return rng.choice(best_moves)


def expert_policy(
    engine: Engine,
    state: GameState,
    rng: random.Random | None = None,
    config: AIConfig | None = None,
    verbose: bool = False,
) -> Move | None:
    """αβ探索で手を選ぶポリシー（EXPERT）。探索が手を返さなければMEDIUMに切り替える。"""
    search = AlphaBetaSearch(
        engine,
        config=config,
        rng=rng if isinstance(rng, random.Random) else None,
        verbose=verbose,
    )
    result = search.run(state)
    if result.move is not None:
        return result.move
    if verbose:
        print("[Expert AI] Falling back to strategic move")
    return heuristic_policy(engine, state, rng=rng, config=config)


POLICIES: Dict[Difficulty, Callable[..., Optional[Move]]] = {
    Difficulty.EASY: random_policy,
    Difficulty.MEDIUM: heuristic_policy,
    Difficulty.HARD: greedy_policy,
    Difficulty.EXPERT: expert_policy,
}


def select_move(
    engine: Engine,
    state: GameState,
    difficulty: Difficulty | str = Difficulty.EASY,
    player: int | None = None,
    rng: random.Random | None = None,
    config: AIConfig | None = None,
) -> Move:
    """指定された難易度でAIの指し手を選ぶ。

    Args:
        engine: ゲームエンジン
        state: 現在のゲーム状態
        difficulty: 難易度（不明な値はEASY）
        player: 手を選ぶプレイヤーID（Noneの場合は現在のターンプレイヤー）
        rng: 乱数生成器（Noneならconfig.seedから作る）
        config: AI設定

    Returns:
        validate_moveで合法と判定される指し手

    Raises:
        NoLegalMoveError: プレイヤーに合法手がない場合
    """
    config = config or AIConfig()
    if rng is None and config.seed is not None:
        rng = random.Random(config.seed)
    if player is not None and player not in PLAYERS:
        raise ValueError(f"player must be 1 or 2, got {player}")
    if player is not None and player != state.turn:
        state = replace(state, turn=player)

    if not engine.has_any_legal_move(state.board, state.unused_pieces()):
        raise NoLegalMoveError(
            f"Player {state.turn} has no legal move; check the outcome before asking the AI"
        )

    policy = POLICIES[Difficulty.parse(difficulty)]
    move = policy(engine, state, rng=rng, config=config)
    if move is None:
        raise NoLegalMoveError(f"Player {state.turn} has no legal move")
    return move
