from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, Sequence, Tuple

import numpy as np
from dotenv import load_dotenv

from deadblock_ai.pieces import PIECES, PieceName

if TYPE_CHECKING:
    from deadblock_ai.engine import Move

Cell = Tuple[int, int]

EMPTY = 0
PLAYERS: Tuple[int, int] = (1, 2)


def opponent(player: int) -> int:
    """相手プレイヤーのIDを返す。

    Raises:
        ValueError: playerが1でも2でもない場合
    """
    if player not in PLAYERS:
        raise ValueError(f"player must be 1 or 2, got {player}")
    return 2 if player == 1 else 1


@dataclass(frozen=True)
class GameConfig:
    """Deadblockのルール設定。

    Attributes:
        size: ボードのサイズ（size×size）。デフォルト8
        min_pieces_before_blocking: 手詰まり判定を始める配置済みピース数。
            デフォルト0（初手から判定する）
    """

    size: int = 8
    min_pieces_before_blocking: int = 0

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError(f"size must be positive, got {self.size}")
        if self.min_pieces_before_blocking < 0:
            raise ValueError(
                "min_pieces_before_blocking must be non-negative, "
                f"got {self.min_pieces_before_blocking}"
            )


def _env_value(name: str, cast, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None


@dataclass(frozen=True)
class AIConfig:
    """AIの探索・選択パラメータ。

    Attributes:
        search_time_limit: EXPERT探索の制限時間（秒）
        max_branching: EXPERT探索で各局面に展開する手の最大数
        medium_top_k_early: MEDIUMが序盤に候補とする上位手数
        medium_top_k_late: MEDIUMが中盤以降に候補とする上位手数
        early_game_pieces: 配置済みピースがこの数未満なら序盤とみなす
        opening_pieces: 配置済みピースがこの数未満なら初手とみなす
        seed: 乱数シード（Noneなら非決定的）
    """

    search_time_limit: float = 1.2
    max_branching: int = 8
    medium_top_k_early: int = 6
    medium_top_k_late: int = 3
    early_game_pieces: int = 6
    opening_pieces: int = 2
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.search_time_limit <= 0:
            raise ValueError(
                f"search_time_limit must be positive, got {self.search_time_limit}"
            )
        if self.max_branching <= 0:
            raise ValueError(f"max_branching must be positive, got {self.max_branching}")

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "AIConfig":
        """環境変数（と.envファイル）から設定を読み込む。

        対応する環境変数:
            DEADBLOCK_SEARCH_TIME_LIMIT: 探索の制限時間（秒）
            DEADBLOCK_MAX_BRANCHING: 探索の最大分岐数
            DEADBLOCK_AI_SEED: 乱数シード

        Args:
            dotenv_path: .envファイルのパス（Noneなら自動探索）

        Returns:
            AIConfigオブジェクト

        Raises:
            ValueError: 環境変数の値が不正な場合
        """
        load_dotenv(dotenv_path)
        defaults = cls()
        return cls(
            search_time_limit=_env_value(
                "DEADBLOCK_SEARCH_TIME_LIMIT", float, defaults.search_time_limit
            ),
            max_branching=_env_value(
                "DEADBLOCK_MAX_BRANCHING", int, defaults.max_branching
            ),
            seed=_env_value("DEADBLOCK_AI_SEED", int, defaults.seed),
        )


@dataclass
class GameState:
    """Deadblockゲームの現在の状態。

    Attributes:
        board: ボード配列（size×size）。0=空、1/2=プレイヤーID
        provenance: セル(row, col)からそのセルを占めるピース名へのマップ
        used: 配置済みピース名（配置順）
        turn: 次に手を指すプレイヤーID（1または2）
        history: 確定済みの指し手（配置順）
    """

    board: np.ndarray
    provenance: Dict[Cell, PieceName] = field(default_factory=dict)
    used: Tuple[PieceName, ...] = ()
    turn: int = 1
    history: Tuple["Move", ...] = ()

    @classmethod
    def new(cls, config: GameConfig) -> "GameState":
        """空のボードで新しいゲーム状態を作成する。"""
        board = np.zeros((config.size, config.size), dtype=np.int8)
        return cls(board=board)

    @classmethod
    def from_snapshot(
        cls,
        board: Sequence[Sequence[int | None]],
        pieces: Sequence[Sequence[str | None]],
        used: Iterable[str] = (),
        turn: int = 1,
    ) -> "GameState":
        """外部（永続化層）から受け取ったスナップショットから状態を復元する。

        Args:
            board: セル所有者の2次元配列（None/0=空、1/2=プレイヤー）
            pieces: セルを占めるピース名の2次元配列（None=空）
            used: 配置済みピース名
            turn: 次に手を指すプレイヤーID

        Returns:
            復元されたGameState

        Raises:
            ValueError: 配列の形や値が不正な場合
            InvalidShapeName: 不明なピース名が含まれる場合
        """
        grid = np.array(
            [[EMPTY if cell is None else cell for cell in row] for row in board],
            dtype=np.int8,
        )
        if grid.ndim != 2 or grid.shape[0] != grid.shape[1]:
            raise ValueError(f"board must be square, got shape {grid.shape}")
        if not np.isin(grid, (EMPTY,) + PLAYERS).all():
            raise ValueError("board cells must be empty, 1 or 2")
        if len(pieces) != grid.shape[0] or any(len(row) != grid.shape[1] for row in pieces):
            raise ValueError("pieces grid must have the same shape as board")
        provenance: Dict[Cell, PieceName] = {}
        for r, row in enumerate(pieces):
            for c, name in enumerate(row):
                if name:
                    provenance[(r, c)] = PieceName.parse(name)
        if turn not in PLAYERS:
            raise ValueError(f"turn must be 1 or 2, got {turn}")
        return cls(
            board=grid,
            provenance=provenance,
            used=tuple(PieceName.parse(name) for name in used),
            turn=turn,
        )

    def clone(self) -> "GameState":
        """この状態のコピーを作成する（指し手は不変なので共有する）。"""
        return GameState(
            board=self.board.copy(),
            provenance=dict(self.provenance),
            used=self.used,
            turn=self.turn,
            history=self.history,
        )

    def next_player(self) -> int:
        """次のプレイヤーのIDを返す。"""
        return opponent(self.turn)

    def unused_pieces(self) -> Tuple[PieceName, ...]:
        """未使用のピース名を定義順で返す。"""
        used = set(self.used)
        return tuple(name for name in PIECES if name not in used)


def check_board_invariants(state: GameState) -> None:
    """盤面とプロヴェナンス・使用済みピースの整合性を検証する。

    実行時には呼ばれない（テスト用）。

    Raises:
        AssertionError: 不整合が見つかった場合
    """
    occupied = {(int(r), int(c)) for r, c in np.argwhere(state.board != EMPTY)}
    assert occupied == set(state.provenance), (
        f"provenance keys {sorted(set(state.provenance) ^ occupied)} disagree with board"
    )
    assert len(set(state.used)) == len(state.used), f"piece used twice: {state.used}"
    assert set(state.provenance.values()) <= set(state.used), (
        "provenance references a piece that is not marked as used"
    )
    assert len(occupied) == 5 * len(state.used), (
        f"{len(occupied)} occupied cells for {len(state.used)} pieces"
    )
    assert state.turn in PLAYERS, f"invalid turn: {state.turn}"
