"""AI同士の対局から詰めパズルを生成する。

AI同士で1局指し、手詰まりで終わった対局の最後のN手を巻き戻した局面を
パズルとする。Nは奇数なので、パズルの手番側が最後の手を指して勝つ。
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Sequence, Tuple

from deadblock_ai.engine import Engine, Move, Status
from deadblock_ai.match import play_match
from deadblock_ai.state import GameState


class PuzzleDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def moves_remaining(self) -> int:
        return _MOVES_REMAINING[self]


_MOVES_REMAINING = {
    PuzzleDifficulty.EASY: 3,
    PuzzleDifficulty.MEDIUM: 5,
    PuzzleDifficulty.HARD: 7,
}


@dataclass(frozen=True)
class Puzzle:
    """詰めパズル。

    Attributes:
        state: パズルの開始局面
        solution: 元の対局で実際に指された残りの手
        difficulty: パズルの難易度
    """

    state: GameState
    solution: Tuple[Move, ...]
    difficulty: PuzzleDifficulty

    @property
    def moves_remaining(self) -> int:
        return len(self.solution)

    @property
    def player(self) -> int:
        """パズルを解く側（開始局面の手番）のプレイヤーID。"""
        return self.state.turn

    def check_solution(self, engine: Engine, moves: Sequence[Move]) -> bool:
        """手順が合法で、最後の手でパズルの手番側が勝つか判定する。

        Args:
            engine: ゲームエンジン
            moves: 検証する手順（相手の手も含む）

        Returns:
            全ての手が合法で、全ての手を指し終えた時点で手番側の勝ちならTrue
        """
        state = self.state
        for move in moves:
            if engine.resolve_outcome(state).is_over:
                return False
            state, placement = engine.commit(state, move)
            if not placement.is_legal:
                return False
        outcome = engine.resolve_outcome(state)
        return outcome.is_over and outcome.winner == self.player


def centre_biased_policy(
    engine: Engine, state: GameState, rng: random.Random | None = None
) -> Move | None:
    """序盤は中央寄りの手を、それ以降は合法手から一様に選ぶポリシー。"""
    rng = rng or random
    moves = engine.legal_moves(state)
    if not moves:
        return None
    if len(state.used) < 4:
        centre = (engine.config.size - 1) / 2
        central = [
            move
            for move in moves
            if abs(move.anchor[0] - centre) + abs(move.anchor[1] - centre) < 4
        ]
        if central:
            return rng.choice(central)
    return rng.choice(moves)


def generate_puzzle(
    engine: Engine | None = None,
    difficulty: PuzzleDifficulty | str = PuzzleDifficulty.EASY,
    seed: int | None = None,
    max_attempts: int = 10,
    verbose: bool = False,
) -> Puzzle | None:
    """AI同士の対局を巻き戻してパズルを生成する。

    Args:
        engine: ゲームエンジン
        difficulty: パズルの難易度（残り手数 3/5/7）
        seed: 乱数シード
        max_attempts: 対局をやり直す最大回数
        verbose: Trueなら進捗を表示する

    Returns:
        生成されたPuzzle（max_attempts回失敗した場合はNone）
    """
    engine = engine or Engine()
    difficulty = PuzzleDifficulty(difficulty)
    moves_remaining = difficulty.moves_remaining
    rng = random.Random(seed)
    policy = partial(centre_biased_policy, rng=rng)

    for attempt in range(max_attempts):
        record = play_match(policy, policy, engine=engine)
        if verbose:
            print(
                f"[Puzzle] Attempt {attempt + 1}: game completed with "
                f"{len(record.moves)} moves ({record.outcome.status.value})"
            )
        if record.outcome.status is not Status.BLOCKED:
            continue
        if len(record.moves) < moves_remaining:
            continue

        start = len(record.moves) - moves_remaining
        state = record.states[start]
        if record.outcome.winner != state.turn:
            continue
        if not engine.has_any_legal_move(state.board, state.unused_pieces()):
            continue
        if verbose:
            print(
                f"[Puzzle] Generated: {len(state.used)} pieces placed, "
                f"{moves_remaining} moves remaining"
            )
        return Puzzle(
            state=state,
            solution=tuple(record.moves[start:]),
            difficulty=difficulty,
        )

    if verbose:
        print(f"[Puzzle] Failed to generate puzzle after {max_attempts} attempts")
    return None
