"""Deadblockのペントミノ定義と回転・反転変換。

座標規約:
    オフセットは (dx, dy) で、dx が列方向、dy が行方向の差分。
    1ステップの回転は (x, y) -> (y, -x)、反転は (x, y) -> (-x, y)。
    変換は常に「回転 -> 反転 -> 正規化」の順に適用する。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Tuple

Offset = Tuple[int, int]

# (rotation, reflect) の全8通り。列挙順はこのタプルの順序で固定
ORIENTATIONS: Tuple[Tuple[int, bool], ...] = tuple(
    (rotation, reflect) for reflect in (False, True) for rotation in range(4)
)


class InvalidShapeName(ValueError):
    """12種類のペントミノ以外の名前が指定された場合の例外。"""


class PieceName(str, Enum):
    """12種類のペントミノの名前（閉じた列挙型）。"""

    F = "F"
    I = "I"  # noqa: E741
    L = "L"
    N = "N"
    P = "P"
    T = "T"
    U = "U"
    V = "V"
    W = "W"
    X = "X"
    Y = "Y"
    Z = "Z"

    @classmethod
    def parse(cls, name: "PieceName | str") -> "PieceName":
        """文字列またはPieceNameをPieceNameに変換する。

        Args:
            name: ピース名（例: "F"）

        Returns:
            対応するPieceName

        Raises:
            InvalidShapeName: 12種類以外の名前の場合
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise InvalidShapeName(
                f"Unknown piece name: {name!r}. Expected one of {''.join(p.value for p in cls)}"
            ) from None


@dataclass(frozen=True)
class PieceVariant:
    """ペントミノの回転・反転バリアント。

    Attributes:
        cells: バリアントを構成するオフセット（正規化・ソート済み）
        rotation: このバリアントを最初に生成した回転ステップ数
        reflect: このバリアントを最初に生成した反転フラグ
    """

    cells: Tuple[Offset, ...]
    rotation: int
    reflect: bool

    @property
    def width(self) -> int:
        return max(dx for dx, _ in self.cells) + 1

    @property
    def height(self) -> int:
        return max(dy for _, dy in self.cells) + 1


@dataclass(frozen=True)
class Piece:
    """ペントミノ（全ての一意なバリアントを含む）。

    Attributes:
        name: ピース名
        cells: 基本形のオフセット（回転0・反転なし）
        color: 表示用のパレット色
        variants: 一意なバリアントのタプル（対称なピースは8未満）
    """

    name: PieceName
    cells: Tuple[Offset, ...]
    color: str
    variants: Tuple[PieceVariant, ...]

    @property
    def size(self) -> int:
        """ピースのサイズ（セル数）を返す。"""
        return len(self.cells)


def _parse_pattern(pattern: str) -> List[Offset]:
    """ASCII文字列パターンをオフセットのリストに変換する。

    Args:
        pattern: "X"でセルを表すASCII文字列（複数行可）

    Returns:
        オフセット(dx, dy)のリスト
    """
    lines = [line.rstrip() for line in pattern.splitlines() if line.strip() != ""]
    cells: List[Offset] = []
    for y, line in enumerate(lines):
        for x, ch in enumerate(line):
            if ch == "X":
                cells.append((x, y))
    return cells


def _normalize(cells: Iterable[Offset]) -> Tuple[Offset, ...]:
    """オフセットを正規化する（最小x・最小yを0に移動し、ソートする）。"""
    cells = list(cells)
    min_x = min(x for x, _ in cells)
    min_y = min(y for _, y in cells)
    return tuple(sorted((x - min_x, y - min_y) for x, y in cells))


def _rotate(cells: Iterable[Offset]) -> Tuple[Offset, ...]:
    """オフセットを1ステップ（90度）回転する。"""
    return _normalize((y, -x) for x, y in cells)


def _reflect(cells: Iterable[Offset]) -> Tuple[Offset, ...]:
    """オフセットを左右反転する。"""
    return _normalize((-x, y) for x, y in cells)


def apply_transform(
    offsets: Iterable[Offset], rotation: int = 0, reflect: bool = False
) -> Tuple[Offset, ...]:
    """オフセットに回転・反転を適用し、正規化した結果を返す。

    回転を先に、反転を後に適用する。この順序は固定で、
    (rotation, reflect) の組が8通りの向きのどれか1つを一意に表す。

    Args:
        offsets: 変換元のオフセット
        rotation: 回転ステップ数（4を法として扱う）
        reflect: Trueなら回転後に左右反転する

    Returns:
        最小x・最小yが0になるよう正規化されたオフセット
    """
    current = _normalize(offsets)
    for _ in range(rotation % 4):
        current = _rotate(current)
    if reflect:
        current = _reflect(current)
    return current


def _variants_for_cells(cells: Tuple[Offset, ...]) -> Tuple[PieceVariant, ...]:
    """基本形から一意なバリアントをORIENTATIONSの順に生成する。"""
    seen: Dict[Tuple[Offset, ...], PieceVariant] = {}
    for rotation, reflect in ORIENTATIONS:
        transformed = apply_transform(cells, rotation, reflect)
        if transformed not in seen:
            seen[transformed] = PieceVariant(
                cells=transformed, rotation=rotation, reflect=reflect
            )
    return tuple(seen.values())


# 基本形と表示色
_PATTERNS: Tuple[Tuple[PieceName, str, str], ...] = (
    (PieceName.F, ".XX\nXX.\n.X.", "#d946ef"),
    (PieceName.I, "XXXXX", "#06b6d4"),
    (PieceName.L, "XXXX\nX", "#f97316"),
    (PieceName.N, "XXX\n..XX", "#3b82f6"),
    (PieceName.P, "XX\nXX\nX.", "#8b5cf6"),
    (PieceName.T, "XXX\n.X.\n.X.", "#94a3b8"),
    (PieceName.U, "X.X\nXXX", "#eab308"),
    (PieceName.V, "X..\nX..\nXXX", "#10b981"),
    (PieceName.W, "X..\nXX.\n.XX", "#ef4444"),
    (PieceName.X, ".X.\nXXX\n.X.", "#ffffff"),
    (PieceName.Y, "XXXX\n..X.", "#f59e0b"),
    (PieceName.Z, "XX.\n.X.\n.XX", "#84cc16"),
)


def build_pentominoes() -> Mapping[PieceName, Piece]:
    """全12種類のペントミノを構築する。

    Returns:
        PieceNameからPieceへのマッピング（列挙型の定義順）
    """
    pieces: Dict[PieceName, Piece] = {}
    for name, pattern, color in _PATTERNS:
        cells = _normalize(_parse_pattern(pattern))
        pieces[name] = Piece(
            name=name,
            cells=cells,
            color=color,
            variants=_variants_for_cells(cells),
        )
    return pieces


PIECES: Mapping[PieceName, Piece] = build_pentominoes()


def get_piece(name: PieceName | str) -> Piece:
    """名前からPieceを取得する。

    Raises:
        InvalidShapeName: 12種類以外の名前の場合
    """
    return PIECES[PieceName.parse(name)]


def shape_offsets(name: PieceName | str) -> Tuple[Offset, ...]:
    """ピースの基本形オフセット（5セル）を返す。"""
    return get_piece(name).cells


def all_shape_names() -> Tuple[PieceName, ...]:
    """全12種類のピース名を定義順で返す。"""
    return tuple(PIECES)


def piece_color(name: PieceName | str) -> str:
    """ピースの表示色を返す。"""
    return get_piece(name).color


def distinct_orientations(name: PieceName | str) -> Tuple[PieceVariant, ...]:
    """ピースの一意な向きを返す（Xは1通り、Iは2通りなど）。"""
    return get_piece(name).variants
