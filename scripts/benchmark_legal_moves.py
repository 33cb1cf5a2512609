"""legal_moves / has_any_legal_move のベンチマーク"""

import random
import time

from deadblock_ai.engine import Engine
from deadblock_ai.state import GameConfig


def play_random_moves(engine, num_moves, seed=0):
    """ランダムにnum_moves手進めた局面を作る"""
    rng = random.Random(seed)
    state = engine.initial_state()
    for _ in range(num_moves):
        moves = engine.legal_moves(state, unique=True)
        if not moves:
            break
        state = engine.apply_move(state, rng.choice(moves))
    return state


def benchmark_legal_moves():
    """局面の進行度ごとに合法手生成の時間を計測する"""
    engine = Engine(GameConfig())

    print("=== 合法手の数 ===")
    for num_moves in (0, 2, 4, 6, 8):
        state = play_random_moves(engine, num_moves)
        all_moves = engine.legal_moves(state)
        unique = engine.legal_moves(state, unique=True)
        print(f"{num_moves}手目: 全{len(all_moves)}手 / 重複除去後{len(unique)}手")

    print("\n=== パフォーマンステスト ===")
    for num_moves, n_iterations in ((0, 100), (4, 300), (8, 1000)):
        state = play_random_moves(engine, num_moves)
        unused = state.unused_pieces()

        start = time.time()
        for _ in range(n_iterations):
            engine.legal_moves(state)
        time_enum = time.time() - start

        start = time.time()
        for _ in range(n_iterations):
            engine.count_legal_moves(state.board, unused)
        time_count = time.time() - start

        start = time.time()
        for _ in range(n_iterations):
            engine.has_any_legal_move(state.board, unused)
        time_any = time.time() - start

        print(f"{num_moves}手目 ({n_iterations} iterations):")
        print(f"  legal_moves:        {time_enum / n_iterations * 1000:.3f}ms")
        print(f"  count_legal_moves:  {time_count / n_iterations * 1000:.3f}ms")
        print(f"  has_any_legal_move: {time_any / n_iterations * 1000:.3f}ms")


if __name__ == "__main__":
    benchmark_legal_moves()
