from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Tuple

import numpy as np

from deadblock_ai.pieces import (
    ORIENTATIONS,
    PIECES,
    Offset,
    Piece,
    PieceName,
    apply_transform,
    shape_offsets,
)
from deadblock_ai.state import (
    EMPTY,
    PLAYERS,
    Cell,
    GameConfig,
    GameState,
    opponent,
)

Orientation = Tuple[int, bool, Tuple[Offset, ...]]


class Placement(Enum):
    """配置判定の結果。不正な配置は例外ではなく値として返す。"""

    OK = "ok"
    OUT_OF_BOUNDS = "out_of_bounds"
    OVERLAP = "overlap"
    PIECE_USED = "piece_used"
    NOT_YOUR_TURN = "not_your_turn"
    SHAPE_MISMATCH = "shape_mismatch"

    @property
    def is_legal(self) -> bool:
        return self is Placement.OK


class Status(Enum):
    ONGOING = "ongoing"
    BLOCKED = "blocked"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class Outcome:
    """ゲームの勝敗判定結果。

    Attributes:
        status: 進行中 / 手詰まりによる終了 / 全ピース配置による終了
        winner: 勝者のプレイヤーID（進行中と引き分けはNone）
        scores: 各プレイヤーの占有セル数
    """

    status: Status
    winner: int | None = None
    scores: Mapping[int, int] = field(default_factory=dict)

    @property
    def is_over(self) -> bool:
        return self.status is not Status.ONGOING

    @property
    def is_draw(self) -> bool:
        return self.status is Status.EXHAUSTED and self.winner is None


@dataclass(frozen=True)
class Move:
    """Deadblockの指し手を表すクラス。

    Attributes:
        player: プレイヤーID（1または2）
        piece: ピース名
        rotation: 回転ステップ数（0-3）
        reflect: 回転後に左右反転するか
        anchor: 正規化オフセット(0, 0)を置くセル(row, col)
        cells: 配置される全セルの座標(row, col)
    """

    player: int
    piece: PieceName
    rotation: int
    reflect: bool
    anchor: Cell
    cells: Tuple[Cell, ...]

    @classmethod
    def build(
        cls,
        piece: PieceName | str,
        rotation: int = 0,
        reflect: bool = False,
        anchor: Cell = (0, 0),
        player: int = 1,
    ) -> "Move":
        """ピース・向き・アンカーから指し手を作る。

        Args:
            piece: ピース名
            rotation: 回転ステップ数（4を法として扱う）
            reflect: 左右反転するか
            anchor: アンカーセル(row, col)
            player: プレイヤーID

        Returns:
            配置セルを計算済みのMove

        Raises:
            InvalidShapeName: 不明なピース名の場合
        """
        name = PieceName.parse(piece)
        offsets = apply_transform(shape_offsets(name), rotation, reflect)
        return cls(
            player=player,
            piece=name,
            rotation=rotation % 4,
            reflect=reflect,
            anchor=anchor,
            cells=placement_cells(offsets, anchor),
        )

    @property
    def offsets(self) -> Tuple[Offset, ...]:
        """この指し手の向きに変換済みのオフセット。"""
        return apply_transform(shape_offsets(self.piece), self.rotation, self.reflect)

    @property
    def size(self) -> int:
        return len(self.cells)


def placement_cells(offsets: Iterable[Offset], anchor: Cell) -> Tuple[Cell, ...]:
    """オフセットをアンカーに置いた際の絶対セル座標を計算する。

    Args:
        offsets: (dx, dy)のオフセット
        anchor: アンカーセル(row, col)

    Returns:
        (row + dy, col + dx)のタプル
    """
    row, col = anchor
    return tuple((row + dy, col + dx) for dx, dy in offsets)


class Engine:
    """Deadblockゲームエンジン（配置判定・合法手生成・勝敗判定）。

    全ての判定は引数で渡された盤面・状態に対する純粋な関数で、
    エンジン自身は盤面を保持しない。

    Attributes:
        config: ゲーム設定
        pieces: 全12種類のペントミノ
    """

    def __init__(self, config: GameConfig | None = None):
        """エンジンを初期化する。

        Args:
            config: ゲーム設定（Noneならデフォルト）
        """
        self.config = config or GameConfig()
        self.pieces: Mapping[PieceName, Piece] = PIECES

        # 向きごとのオフセットを事前に計算（盤面に依存しないのでキャッシュしてよい）
        self._orientations: Dict[PieceName, Tuple[Orientation, ...]] = {
            name: tuple(
                (rotation, reflect, apply_transform(piece.cells, rotation, reflect))
                for rotation, reflect in ORIENTATIONS
            )
            for name, piece in self.pieces.items()
        }
        self._unique_orientations: Dict[PieceName, Tuple[Orientation, ...]] = {
            name: tuple(
                (variant.rotation, variant.reflect, variant.cells)
                for variant in piece.variants
            )
            for name, piece in self.pieces.items()
        }

    def initial_state(self) -> GameState:
        """初期ゲーム状態を生成する。"""
        return GameState.new(self.config)

    # --- Placement Validator ---

    def can_place(
        self, board: np.ndarray, offsets: Iterable[Offset], row: int, col: int
    ) -> bool:
        """オフセットをアンカー(row, col)に置けるか判定する。

        全てのセルが盤内かつ空であれば合法。最初の違反で打ち切る。

        Args:
            board: ボード配列
            offsets: 変換済みのオフセット
            row: アンカー行
            col: アンカー列

        Returns:
            配置が合法ならTrue
        """
        h, w = board.shape
        for dx, dy in offsets:
            r, c = row + dy, col + dx
            if not (0 <= r < h and 0 <= c < w):
                return False
            if board[r, c] != EMPTY:
                return False
        return True

    def check_placement(
        self, board: np.ndarray, offsets: Iterable[Offset], row: int, col: int
    ) -> Placement:
        """can_placeと同じ判定を行い、不正な場合はその理由を返す。

        盤外のチェックを重なりのチェックより優先する。
        """
        return self._check_cells(board, placement_cells(offsets, (row, col)))

    def _check_cells(self, board: np.ndarray, cells: Iterable[Cell]) -> Placement:
        # 負のインデックスも盤外として扱う
        h, w = board.shape
        cells = tuple(cells)
        for r, c in cells:
            if not (0 <= r < h and 0 <= c < w):
                return Placement.OUT_OF_BOUNDS
        for r, c in cells:
            if board[r, c] != EMPTY:
                return Placement.OVERLAP
        return Placement.OK

    def validate_move(self, state: GameState, move: Move) -> Placement:
        """指し手が現在の状態で合法か判定する。

        手番・ピースの使用状況・配置の順にチェックする。配置のチェックは
        placeが実際に書き込むmove.cellsに対して行い、さらにそのセルが
        ピース・向き・アンカーから計算したセルと一致することを確認する。

        Args:
            state: 現在のゲーム状態
            move: 判定する指し手

        Returns:
            判定結果（合法ならPlacement.OK）
        """
        if move.player != state.turn:
            return Placement.NOT_YOUR_TURN
        if move.piece in state.used:
            return Placement.PIECE_USED
        result = self._check_cells(state.board, move.cells)
        if not result.is_legal:
            return result
        if sorted(move.cells) != sorted(placement_cells(move.offsets, move.anchor)):
            return Placement.SHAPE_MISMATCH
        return Placement.OK

    # --- Legal Move Enumerator ---

    def anchor_mask(self, board: np.ndarray, offsets: Iterable[Offset]) -> np.ndarray:
        """正規化済みオフセットを置ける全アンカーのマスクを返す。

        各アンカーについてcan_placeと同じ結果になる。

        Args:
            board: ボード配列
            offsets: 正規化済み（最小x・最小yが0）のオフセット

        Returns:
            合法なアンカーがTrueのブールマスク（ボードと同じ形）
        """
        mask = np.zeros(board.shape, dtype=bool)
        fits = self._fits(board == EMPTY, tuple(offsets))
        mask[: fits.shape[0], : fits.shape[1]] = fits
        return mask

    def _fits(self, empty: np.ndarray, offsets: Tuple[Offset, ...]) -> np.ndarray:
        """空きマスクをずらしながらANDを取り、合法なアンカー領域を求める。"""
        h, w = empty.shape
        rows = h - max(dy for _, dy in offsets)
        cols = w - max(dx for dx, _ in offsets)
        if rows <= 0 or cols <= 0:
            return np.zeros((0, 0), dtype=bool)
        fits = np.ones((rows, cols), dtype=bool)
        for dx, dy in offsets:
            fits &= empty[dy : dy + rows, dx : dx + cols]
        return fits

    def _ordered(self, names: Iterable[PieceName | str]) -> List[PieceName]:
        wanted = {PieceName.parse(name) for name in names}
        return [name for name in self.pieces if name in wanted]

    def iter_legal_moves(
        self,
        board: np.ndarray,
        unused: Iterable[PieceName | str],
        player: int = 1,
        unique: bool = False,
    ) -> Iterator[Move]:
        """合法手を1つずつ生成する。

        未使用ピース × 8通りの向き × 全アンカーを走査する。呼び出すたびに
        盤面から計算し直す（キャッシュしない）。生成中に盤面を変更してはならない。

        Args:
            board: ボード配列
            unused: 未使用のピース名
            player: 生成する指し手のプレイヤーID
            unique: Trueなら同じ(ピース, セル集合)になる向きの重複を除く

        Yields:
            合法なMove
        """
        empty = board == EMPTY
        table = self._unique_orientations if unique else self._orientations
        for name in self._ordered(unused):
            for rotation, reflect, offsets in table[name]:
                fits = self._fits(empty, offsets)
                for row, col in np.argwhere(fits):
                    anchor = (int(row), int(col))
                    yield Move(
                        player=player,
                        piece=name,
                        rotation=rotation,
                        reflect=reflect,
                        anchor=anchor,
                        cells=placement_cells(offsets, anchor),
                    )

    def legal_moves(
        self, state: GameState, player: int | None = None, unique: bool = False
    ) -> List[Move]:
        """指定プレイヤーの全ての合法手を生成する。

        Args:
            state: 現在のゲーム状態
            player: プレイヤーID（Noneの場合は現在のターンプレイヤー）
            unique: Trueなら向きの重複を除く

        Returns:
            合法手のリスト
        """
        if player is None:
            player = state.turn
        return list(
            self.iter_legal_moves(
                state.board, state.unused_pieces(), player=player, unique=unique
            )
        )

    def has_any_legal_move(
        self, board: np.ndarray, unused: Iterable[PieceName | str]
    ) -> bool:
        """少なくとも1つ合法手があるか判定する（最初の1手で打ち切る）。

        勝敗判定とAIの両方がこの関数を使う。
        """
        return next(self.iter_legal_moves(board, unused, unique=True), None) is not None

    def count_legal_moves(
        self, board: np.ndarray, unused: Iterable[PieceName | str], unique: bool = True
    ) -> int:
        """合法手の数を数える（Moveオブジェクトは生成しない）。"""
        empty = board == EMPTY
        table = self._unique_orientations if unique else self._orientations
        return int(
            sum(
                self._fits(empty, offsets).sum()
                for name in self._ordered(unused)
                for _, _, offsets in table[name]
            )
        )

    def reply_counts(
        self,
        board: np.ndarray,
        unused: Iterable[PieceName | str],
        moves: List[Move] | None = None,
    ) -> np.ndarray:
        """各手を指した後に相手が指せる合法手の数（向きの重複なし）をまとめて数える。

        指した後の相手の合法手は「現在の合法手のうち、指した手と同じピースを
        使わず、セルが重ならないもの」と一致する。盤面を手ごとに走査し直す
        代わりに、セル占有行列の積で重なりを一度に求める。

        Args:
            board: ボード配列
            unused: 未使用のピース名（両プレイヤー共通）
            moves: 数える対象の手（boardで合法であること。Noneなら全ての一意な合法手）

        Returns:
            movesと同じ順の相手の合法手数の配列
        """
        replies = list(self.iter_legal_moves(board, unused, unique=True))
        if moves is None:
            moves = replies
        index = {name: i for i, name in enumerate(self.pieces)}
        w = board.shape[1]

        def footprint(ms: List[Move]) -> np.ndarray:
            grid = np.zeros((len(ms), board.size), dtype=np.float32)
            for i, move in enumerate(ms):
                for r, c in move.cells:
                    grid[i, r * w + c] = 1.0
            return grid

        overlap = footprint(moves) @ footprint(replies).T
        move_pieces = np.array([index[m.piece] for m in moves], dtype=np.int64)
        reply_pieces = np.array([index[m.piece] for m in replies], dtype=np.int64)
        free = (overlap == 0) & (move_pieces[:, None] != reply_pieces[None, :])
        return free.sum(axis=1)

    def count_placeable_pieces(
        self, board: np.ndarray, unused: Iterable[PieceName | str]
    ) -> int:
        """少なくとも1箇所に置ける未使用ピースの数を返す。"""
        return sum(
            1 for name in self._ordered(unused) if self.has_any_legal_move(board, (name,))
        )

    # --- Board Model ---

    def place(
        self, board: np.ndarray, provenance: Mapping[Cell, PieceName], move: Move
    ) -> Tuple[np.ndarray, Dict[Cell, PieceName]]:
        """指し手を盤面に書き込んだコピーを返す。

        注意: 合法性は再検証しない。呼び出し側がcan_place/validate_moveで
        検証済みであることが前提で、不正な指し手を渡すと盤面が壊れる。

        Args:
            board: ボード配列
            provenance: セルからピース名へのマップ
            move: 適用する指し手

        Returns:
            (新しいボード配列, 新しいプロヴェナンス)
        """
        new_board = board.copy()
        new_provenance = dict(provenance)
        for row, col in move.cells:
            new_board[row, col] = move.player
            new_provenance[(row, col)] = move.piece
        return new_board, new_provenance

    def simulate(self, board: np.ndarray, move: Move) -> np.ndarray:
        """AIの先読み用。プロヴェナンスを持たずにボードだけ更新したコピーを返す。"""
        new_board = board.copy()
        for row, col in move.cells:
            new_board[row, col] = move.player
        return new_board

    def apply_move(self, state: GameState, move: Move) -> GameState:
        """指し手を適用して新しいゲーム状態を返す。

        placeと同様に合法性は再検証しない。

        Args:
            state: 現在のゲーム状態
            move: 適用する指し手

        Returns:
            指し手適用後の新しいGameState
        """
        board, provenance = self.place(state.board, state.provenance, move)
        return GameState(
            board=board,
            provenance=provenance,
            used=state.used + (move.piece,),
            turn=opponent(move.player),
            history=state.history + (move,),
        )

    def commit(self, state: GameState, move: Move) -> Tuple[GameState, Placement]:
        """指し手を検証し、合法なら適用する。

        Returns:
            (新しい状態, Placement.OK) または (元の状態, 不正の理由)
        """
        result = self.validate_move(state, move)
        if not result.is_legal:
            return state, result
        return self.apply_move(state, move), result

    def undo_move(self, state: GameState) -> GameState:
        """直前の指し手を取り消した状態を返す。

        プロヴェナンスを使って直前のピースが占めるセルを空に戻し、
        手番を取り消した指し手のプレイヤーに戻す。

        Raises:
            ValueError: 取り消す指し手がない場合
        """
        if not state.history:
            raise ValueError("No move to undo")
        last = state.history[-1]
        board = state.board.copy()
        provenance = dict(state.provenance)
        for cell, name in state.provenance.items():
            if name == last.piece:
                board[cell] = EMPTY
                del provenance[cell]
        used = tuple(name for name in state.used if name != last.piece)
        return GameState(
            board=board,
            provenance=provenance,
            used=used,
            turn=last.player,
            history=state.history[:-1],
        )

    # --- Outcome Resolver ---

    def score(self, board: np.ndarray) -> Dict[int, int]:
        """各プレイヤーの占有セル数を返す。"""
        return {player: int(np.count_nonzero(board == player)) for player in PLAYERS}

    def resolve_outcome(self, state: GameState) -> Outcome:
        """次に手を指すプレイヤー（state.turn）の視点で勝敗を判定する。

        1. 全12ピース配置済み: 占有セル数が多い方の勝ち（同数は引き分け）
        2. 次の手番に合法手がない: 相手の勝ち（手詰まり）
        3. それ以外: 進行中

        Args:
            state: ゲーム状態

        Returns:
            Outcome（状態から毎回計算し、保存しない）
        """
        scores = self.score(state.board)
        if len(set(state.used)) == len(self.pieces):
            if scores[1] > scores[2]:
                winner = 1
            elif scores[2] > scores[1]:
                winner = 2
            else:
                winner = None
            return Outcome(Status.EXHAUSTED, winner, scores)
        if len(state.used) >= self.config.min_pieces_before_blocking and not (
            self.has_any_legal_move(state.board, state.unused_pieces())
        ):
            return Outcome(Status.BLOCKED, opponent(state.turn), scores)
        return Outcome(Status.ONGOING, None, scores)

    def is_terminal(self, state: GameState) -> bool:
        """ゲームが終了状態か判定する。"""
        return self.resolve_outcome(state).is_over
