from __future__ import annotations

import argparse
import random

from deadblock_ai.ai import Difficulty, select_move
from deadblock_ai.engine import Engine
from deadblock_ai.state import AIConfig, GameConfig
from deadblock_ai.viz import board_to_text, render_board


def play_ai_vs_ai(
    difficulty1: str = "hard",
    difficulty2: str = "medium",
    seed: int = 7,
    show_every: int = 1,
    save_path: str | None = None,
) -> None:
    rng = random.Random(seed)
    engine = Engine(GameConfig())
    config = AIConfig.from_env()
    state = engine.initial_state()
    difficulties = {1: Difficulty.parse(difficulty1), 2: Difficulty.parse(difficulty2)}
    print(f"Player 1: {difficulties[1].value} / Player 2: {difficulties[2].value}")

    while not engine.is_terminal(state):
        move = select_move(engine, state, difficulties[state.turn], rng=rng, config=config)
        state, _ = engine.commit(state, move)
        if show_every and len(state.history) % show_every == 0:
            print(
                f"\nMove {len(state.history)}: player {move.player} "
                f"{move.piece.value} r={move.rotation} f={int(move.reflect)} at {move.anchor}"
            )
            print(board_to_text(state))

    outcome = engine.resolve_outcome(state)
    print("\nFinal scores:", outcome.scores)
    print(f"Outcome: {outcome.status.value}, winner={outcome.winner}")
    if save_path:
        render_board(engine, state, last_move=state.history[-1], save_path=save_path)


def main() -> None:
    parser = argparse.ArgumentParser(description="Deadblock AI vs AI demo")
    parser.add_argument("--p1", default="hard", help="Player 1 difficulty")
    parser.add_argument("--p2", default="medium", help="Player 2 difficulty")
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--show-every", type=int, default=1)
    parser.add_argument("--save", default=None, help="Save the final board as an image")
    args = parser.parse_args()
    play_ai_vs_ai(args.p1, args.p2, args.seed, args.show_every, args.save)


if __name__ == "__main__":
    main()
