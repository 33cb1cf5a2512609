from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from deadblock_ai.engine import Engine, Move, Outcome
from deadblock_ai.state import GameState

Policy = Callable[[Engine, GameState], Optional[Move]]


@dataclass
class GameRecord:
    """1試合の記録。

    Attributes:
        moves: 確定した指し手（配置順）
        states: 各指し手を指す直前の状態（movesと同じ長さ）
        final_state: 終局時の状態
        outcome: 終局時の勝敗
    """

    moves: List[Move] = field(default_factory=list)
    states: List[GameState] = field(default_factory=list)
    final_state: GameState | None = None
    outcome: Outcome | None = None


def play_match(
    policy1: Policy,
    policy2: Policy,
    seed: int | None = None,
    engine: Engine | None = None,
    start_state: GameState | None = None,
) -> GameRecord:
    """2つのポリシーで1試合対戦する。

    検証 -> 確定 -> 勝敗判定 -> 次の手番 を終局まで繰り返す。

    Args:
        policy1: プレイヤー1のポリシー関数
        policy2: プレイヤー2のポリシー関数
        seed: 乱数シード（再現性のため）
        engine: ゲームエンジン（Noneならデフォルト設定）
        start_state: 開始局面（Noneなら空のボード）

    Returns:
        試合の記録

    Raises:
        ValueError: ポリシーが不正な手を返した場合
        RuntimeError: 合法手があるのにポリシーが手を返さなかった場合
    """
    if seed is not None:
        random.seed(seed)
        np.random.seed(seed)
    engine = engine or Engine()
    state = start_state.clone() if start_state is not None else engine.initial_state()
    record = GameRecord()

    outcome = engine.resolve_outcome(state)
    while not outcome.is_over:
        policy = policy1 if state.turn == 1 else policy2
        move = policy(engine, state)
        if move is None:
            raise RuntimeError(f"Policy for player {state.turn} returned no move")
        new_state, placement = engine.commit(state, move)
        if not placement.is_legal:
            raise ValueError(
                f"Policy for player {state.turn} returned an illegal move "
                f"({placement.value}): {move}"
            )
        record.states.append(state)
        record.moves.append(move)
        state = new_state
        outcome = engine.resolve_outcome(state)

    record.final_state = state
    record.outcome = outcome
    return record


def evaluate_winrate(
    name1: str,
    policy1: Policy,
    name2: str,
    policy2: Policy,
    num_games: int = 20,
    engine: Engine | None = None,
    verbose: bool = True,
) -> dict:
    """2つのポリシー間で複数試合を実施し、プレイヤー1側の勝率を計算する。

    先手・後手の偏りを避けるため、奇数番目の試合では手番を入れ替える。

    Args:
        name1: ポリシー1の名前（表示用）
        policy1: ポリシー1
        name2: ポリシー2の名前（表示用）
        policy2: ポリシー2
        num_games: 試合数
        engine: ゲームエンジン
        verbose: Trueなら結果を表示する

    Returns:
        勝敗統計の辞書（wins, losses, draws, winrate）
    """
    engine = engine or Engine()
    wins = losses = draws = 0
    for i in range(num_games):
        swapped = i % 2 == 1
        first, second = (policy2, policy1) if swapped else (policy1, policy2)
        record = play_match(first, second, seed=i, engine=engine)
        winner = record.outcome.winner
        if winner is None:
            draws += 1
        elif (winner == 1) != swapped:
            wins += 1
        else:
            losses += 1
    winrate = (wins + 0.5 * draws) / num_games if num_games > 0 else 0.0
    if verbose:
        print(f"[Match] {name1} vs {name2}: W={wins} L={losses} D={draws} ({winrate:.1%})")
    return {"wins": wins, "losses": losses, "draws": draws, "winrate": winrate}
