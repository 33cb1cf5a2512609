from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from deadblock_ai.engine import Engine, Move
from deadblock_ai.pieces import PieceName
from deadblock_ai.state import AIConfig, GameState, opponent

WIN_SCORE = 100000.0
TERMINAL_SCORE = 10000.0
MOBILITY_WEIGHT = 100.0


def centre_bonus(move: Move, size: int) -> float:
    """盤の中央に近いセルほど大きくなるボーナスを返す。"""
    centre = (size - 1) / 2
    return float(
        sum(
            (centre - abs(row - centre)) + (centre - abs(col - centre))
            for row, col in move.cells
        )
    )


def _with_piece(used: Sequence[PieceName], move: Move) -> Tuple[PieceName, ...]:
    return tuple(used) + (move.piece,)


def _unused(engine: Engine, used: Sequence[PieceName]) -> List[PieceName]:
    taken = set(used)
    return [name for name in engine.pieces if name not in taken]


def evaluate_move(
    engine: Engine, board: np.ndarray, used: Sequence[PieceName], move: Move
) -> float:
    """指し手を1手読みで評価する（大きいほど良い）。

    - 相手が手詰まりになる手: WIN_SCORE
    - 全ピース配置で終わる手: 占有セル数で勝てばWIN_SCORE、負ければ-WIN_SCORE
    - それ以外: 相手が置けるピースの数が少ないほど高く、中央寄りに加点

    Args:
        engine: ゲームエンジン
        board: 指す前のボード配列
        used: 指す前の使用済みピース
        move: 評価する指し手

    Returns:
        評価値
    """
    after = engine.simulate(board, move)
    unused = _unused(engine, _with_piece(used, move))
    if not unused:
        scores = engine.score(after)
        mine, theirs = scores[move.player], scores[opponent(move.player)]
        if mine == theirs:
            return 0.0
        return WIN_SCORE if mine > theirs else -WIN_SCORE
    if not engine.has_any_legal_move(after, unused):
        return WIN_SCORE
    placeable = engine.count_placeable_pieces(after, unused)
    return 1000.0 - placeable * MOBILITY_WEIGHT + 2 * centre_bonus(move, engine.config.size)


@dataclass
class SearchResult:
    """探索結果。

    Attributes:
        move: 選ばれた手（合法手がなければNone）
        score: 選ばれた手の評価値（探索プレイヤー視点）
        depth: 探索深さ
        nodes: 訪問したノード数
        elapsed: 探索時間（秒）
        timed_out: 制限時間に達したか
    """

    move: Move | None
    score: float
    depth: int
    nodes: int
    elapsed: float
    timed_out: bool


class AlphaBetaSearch:
    """時間制限付きのαβ探索。

    評価値の視点に関する規約:
    - 全ての値は探索を開始したプレイヤー（self.player）の視点
    - 手番のプレイヤーに合法手がなければ手番側の負け
    - 全ピース配置済みなら占有セル数で勝敗を決める
    - 勝ちは早いほど、負けは遅いほど高く評価する（残り深さを加減）

    Attributes:
        engine: ゲームエンジン
        config: AI設定（制限時間・分岐数）
        rng: 同点の手を選ぶための乱数生成器
        verbose: Trueなら探索の統計を表示する
    """

    def __init__(
        self,
        engine: Engine,
        config: AIConfig | None = None,
        rng: random.Random | None = None,
        verbose: bool = False,
    ):
        self.engine = engine
        self.config = config or AIConfig()
        self.rng = rng if rng is not None else random.Random(self.config.seed)
        self.verbose = verbose
        self.player = 1
        self._nodes = 0
        self._start = 0.0
        self._timed_out = False

    def choose_depth(self, used_count: int) -> int:
        """残りピース数から探索深さを決める（終盤ほど深く読む）。"""
        remaining = len(self.engine.pieces) - used_count
        if remaining <= 4:
            return 4
        if remaining <= 6:
            return 3
        return 2

    def run(self, state: GameState) -> SearchResult:
        """state.turnのプレイヤーにとって最善の手を探索する。

        全ての手をevaluate_moveで評価し、即勝ちがあればそれを返す。
        なければ上位max_branching手をαβ探索で読み比べる。

        Args:
            state: 現在のゲーム状態

        Returns:
            SearchResult
        """
        self._start = time.time()
        self._nodes = 0
        self._timed_out = False
        self.player = state.turn
        depth = self.choose_depth(len(state.used))

        moves = self.engine.legal_moves(state, unique=True)
        if not moves:
            return self._result(None, -TERMINAL_SCORE, depth)

        scored = [
            (evaluate_move(self.engine, state.board, state.used, move), move)
            for move in moves
        ]
        self.rng.shuffle(scored)
        scored.sort(key=lambda item: item[0], reverse=True)
        if scored[0][0] >= WIN_SCORE:
            if self.verbose:
                print("[Expert AI] Found winning move")
            return self._result(scored[0][1], scored[0][0], depth)

        best_move = scored[0][1]
        best_score = -float("inf")
        for _, move in scored[: self.config.max_branching]:
            if self._time_up():
                self._timed_out = True
                break
            value = self._search(
                self.engine.simulate(state.board, move),
                _with_piece(state.used, move),
                opponent(self.player),
                depth,
                -float("inf"),
                float("inf"),
            )
            if value > best_score:
                best_score = value
                best_move = move
            if value > TERMINAL_SCORE / 2:
                if self.verbose:
                    print("[Expert AI] Found strong winning path")
                break
        if best_score == -float("inf"):
            best_score = scored[0][0]

        result = self._result(best_move, best_score, depth)
        if self.verbose:
            print(
                f"[Expert AI] {result.nodes} nodes in {result.elapsed * 1000:.0f}ms, "
                f"depth={depth}, best score: {result.score:.1f}"
            )
        return result

    def _result(self, move: Move | None, score: float, depth: int) -> SearchResult:
        return SearchResult(
            move=move,
            score=score,
            depth=depth,
            nodes=self._nodes,
            elapsed=time.time() - self._start,
            timed_out=self._timed_out,
        )

    def _time_up(self) -> bool:
        return time.time() - self._start > self.config.search_time_limit

    def _evaluate(self, board: np.ndarray, unused: Sequence[PieceName], to_move: int) -> float:
        """深さ0での静的評価。置けるピースが多いほど手番側に有利とみなす。"""
        placeable = self.engine.count_placeable_pieces(board, unused)
        value = placeable * MOBILITY_WEIGHT
        return value if to_move == self.player else -value

    def _search(
        self,
        board: np.ndarray,
        used: Tuple[PieceName, ...],
        to_move: int,
        depth: int,
        alpha: float,
        beta: float,
    ) -> float:
        """再帰的にαβ探索を行い、self.player視点の評価値を返す。"""
        self._nodes += 1

        unused = _unused(self.engine, used)
        if not unused:
            scores = self.engine.score(board)
            mine, theirs = scores[self.player], scores[opponent(self.player)]
            if mine == theirs:
                return 0.0
            return TERMINAL_SCORE + depth if mine > theirs else -(TERMINAL_SCORE + depth)

        moves = list(self.engine.iter_legal_moves(board, unused, player=to_move, unique=True))
        if not moves:
            # 手番側の負け
            if to_move == self.player:
                return -(TERMINAL_SCORE + depth)
            return TERMINAL_SCORE + depth

        # 500ノードごとに制限時間を確認
        if depth == 0 or (self._nodes % 500 == 0 and self._time_up()):
            if depth > 0:
                self._timed_out = True
            return self._evaluate(board, unused, to_move)

        size = self.engine.config.size
        moves.sort(key=lambda move: centre_bonus(move, size), reverse=True)
        maximizing = to_move == self.player
        best = -float("inf") if maximizing else float("inf")
        for move in moves[: self.config.max_branching]:
            if self._time_up():
                self._timed_out = True
                break
            value = self._search(
                self.engine.simulate(board, move),
                used + (move.piece,),
                opponent(to_move),
                depth - 1,
                alpha,
                beta,
            )
            if maximizing:
                best = max(best, value)
                alpha = max(alpha, value)
            else:
                best = min(best, value)
                beta = min(beta, value)
            if beta <= alpha:
                break
        if best in (float("inf"), -float("inf")):
            return self._evaluate(board, unused, to_move)
        return best
