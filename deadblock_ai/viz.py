from __future__ import annotations

from typing import List, Sequence

import matplotlib.pyplot as plt

from deadblock_ai.engine import Engine, Move
from deadblock_ai.pieces import piece_color
from deadblock_ai.state import EMPTY, GameState

_EMPTY_COLOR = "#f0f0f0"
_PLAYER_MARKS = {1: "#111827", 2: "#b91c1c"}


def _draw_cells(ax, state: GameState) -> None:
    board = state.board
    h, w = board.shape
    for y in range(h):
        for x in range(w):
            owner = int(board[y, x])
            name = state.provenance.get((y, x))
            color = piece_color(name) if name is not None else _EMPTY_COLOR
            ax.add_patch(
                plt.Rectangle(
                    (x, h - 1 - y),
                    1,
                    1,
                    facecolor=color,
                    edgecolor="#cccccc",
                    linewidth=0.5,
                )
            )
            if owner != EMPTY:
                # 持ち主はマーカーで示す（色はピースごと）
                ax.text(
                    x + 0.5,
                    h - 0.5 - y,
                    str(owner),
                    ha="center",
                    va="center",
                    fontsize=9,
                    color=_PLAYER_MARKS[owner],
                )
    ax.set_xlim(0, w)
    ax.set_ylim(0, h)
    ax.set_aspect("equal")
    ax.axis("off")


def _outline(ax, move: Move, h: int, color: str, linewidth: float) -> None:
    for y, x in move.cells:
        ax.add_patch(
            plt.Rectangle(
                (x, h - 1 - y), 1, 1, fill=False, edgecolor=color, linewidth=linewidth
            )
        )


def _finish(fig, save_path: str | None) -> None:
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"Saved to {save_path}")
        plt.close(fig)
    else:
        plt.show()


def render_board(
    engine: Engine,
    state: GameState,
    last_move: Move | None = None,
    preview_moves: Sequence[Move] | None = None,
    save_path: str | None = None,
) -> None:
    """盤面を描画する。

    各セルはそのセルを占めるピースの色で塗り、持ち主のプレイヤーIDを表示する。

    Args:
        engine: ゲームエンジン
        state: 描画するゲーム状態
        last_move: 枠線で強調する直前の手
        preview_moves: 半透明で重ねる候補手
        save_path: 保存先のパス（Noneなら画面に表示）
    """
    h = state.board.shape[0]
    fig, ax = plt.subplots(figsize=(6, 6))
    _draw_cells(ax, state)
    if last_move is not None:
        _outline(ax, last_move, h, "black", 2)
    if preview_moves:
        for move in preview_moves:
            for y, x in move.cells:
                ax.add_patch(
                    plt.Rectangle(
                        (x, h - 1 - y),
                        1,
                        1,
                        facecolor=piece_color(move.piece),
                        alpha=0.3,
                        linewidth=0,
                    )
                )
    outcome = engine.resolve_outcome(state)
    title = f"Player {state.turn} to move"
    if outcome.is_over:
        title = f"{outcome.status.value}: winner={outcome.winner}"
    ax.set_title(title, fontsize=11)
    _finish(fig, save_path)


def render_topk_moves(
    engine: Engine,
    state: GameState,
    moves: Sequence[Move],
    k: int = 5,
    save_path: str | None = None,
) -> None:
    top = list(moves)[:k]
    if not top:
        return
    fig, axes = plt.subplots(1, len(top), figsize=(3 * len(top), 3))
    if len(top) == 1:
        axes = [axes]
    h = state.board.shape[0]
    for idx, (ax, move) in enumerate(zip(axes, top)):
        _draw_cells(ax, engine.apply_move(state, move))
        _outline(ax, move, h, "red", 2.5)
        ax.set_title(f"#{idx + 1}: {move.piece.value} @ {move.anchor}", fontsize=10)
    _finish(fig, save_path)


def board_to_text(state: GameState) -> str:
    """盤面をテキストで表す（空き='.'、占有セル=ピース名の小文字/大文字）。

    プレイヤー1のピースは大文字、プレイヤー2のピースは小文字で表示する。
    """
    lines: List[str] = []
    h, w = state.board.shape
    for y in range(h):
        row = []
        for x in range(w):
            owner = int(state.board[y, x])
            name = state.provenance.get((y, x))
            if owner == EMPTY:
                row.append(".")
            elif name is None:
                row.append(str(owner))
            else:
                row.append(name.value if owner == 1 else name.value.lower())
        lines.append(" ".join(row))
    return "\n".join(lines)
