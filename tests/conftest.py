"""Shared fixtures for the Deadblock tests."""

from __future__ import annotations

import random
from typing import Callable, Iterable, List, Sequence

import numpy as np
import pytest

from deadblock_ai.engine import Engine
from deadblock_ai.pieces import PieceName
from deadblock_ai.state import GameState


@pytest.fixture
def engine() -> Engine:
    return Engine()


def _state_from_rows(
    rows: Sequence[str], used: Iterable[str] = (), turn: int = 1
) -> GameState:
    """Build a state from rows of '1', '2' and '.' characters.

    Provenance is left empty, so these states are only meant for
    placement and outcome checks.
    """
    board = np.array(
        [[0 if ch == "." else int(ch) for ch in row] for row in rows], dtype=np.int8
    )
    return GameState(
        board=board,
        used=tuple(PieceName.parse(name) for name in used),
        turn=turn,
    )


@pytest.fixture
def make_state() -> Callable[..., GameState]:
    return _state_from_rows


def _random_states(
    engine: Engine, count: int, min_moves: int, max_moves: int, seed: int = 0
) -> List[GameState]:
    """Play random unique moves from an empty board and collect the states."""
    rng = random.Random(seed)
    states: List[GameState] = []
    while len(states) < count:
        state = engine.initial_state()
        for _ in range(rng.randint(min_moves, max_moves)):
            moves = engine.legal_moves(state, unique=True)
            if not moves:
                break
            state = engine.apply_move(state, rng.choice(moves))
        states.append(state)
    return states


@pytest.fixture
def random_states(engine) -> Callable[..., List[GameState]]:
    def factory(count: int = 20, min_moves: int = 0, max_moves: int = 10, seed: int = 0):
        return _random_states(engine, count, min_moves, max_moves, seed)

    return factory


# Fully filled board except region A (row 2, cols 1-5 plus (1, 3) and (3, 3))
# and strip S (row 6, cols 1-5). With I, U and X left, only I on row 2 wins.
INSTANT_WIN_ROWS = (
    "11111111",
    "111.1111",
    "1.....11",
    "222.2222",
    "22222222",
    "11111111",
    "2.....22",
    "22222222",
)
INSTANT_WIN_USED = ("F", "L", "N", "P", "T", "V", "W", "Y", "Z")


@pytest.fixture
def instant_win_state() -> GameState:
    return _state_from_rows(INSTANT_WIN_ROWS, used=INSTANT_WIN_USED, turn=1)
