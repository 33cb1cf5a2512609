"""Unit tests for the computer opponent."""

from __future__ import annotations

import random

import pytest

from deadblock_ai.ai import (
    Difficulty,
    NoLegalMoveError,
    expert_policy,
    greedy_policy,
    heuristic_policy,
    random_policy,
    select_move,
)
from deadblock_ai.engine import Move, Placement
from deadblock_ai.pieces import PieceName
from deadblock_ai.search import WIN_SCORE, AlphaBetaSearch, evaluate_move
from deadblock_ai.state import AIConfig

FAST = AIConfig(search_time_limit=0.05, max_branching=4)


class TestDifficulty:
    """Test difficulty parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("easy", Difficulty.EASY),
            ("MEDIUM", Difficulty.MEDIUM),
            (" hard ", Difficulty.HARD),
            ("expert", Difficulty.EXPERT),
            ("random", Difficulty.EASY),
            ("average", Difficulty.MEDIUM),
            ("professional", Difficulty.EXPERT),
            (Difficulty.HARD, Difficulty.HARD),
        ],
    )
    def test_parse(self, value, expected):
        """Test parsing of names and legacy aliases."""
        assert Difficulty.parse(value) is expected

    @pytest.mark.parametrize("value", ["impossible", "", None, 3])
    def test_unknown_defaults_to_easy(self, value):
        """Test that unknown difficulties fall back to EASY."""
        assert Difficulty.parse(value) is Difficulty.EASY


class TestSelectMove:
    """Test that every difficulty returns legal moves."""

    @pytest.mark.parametrize("difficulty", ["easy", "hard"])
    def test_moves_are_legal(self, engine, random_states, difficulty):
        """Test legality over 100 random positions."""
        rng = random.Random(0)
        checked = 0
        for state in random_states(count=100, min_moves=7, max_moves=10, seed=1):
            if not engine.has_any_legal_move(state.board, state.unused_pieces()):
                continue
            move = select_move(engine, state, difficulty, rng=rng)
            assert engine.validate_move(state, move) is Placement.OK
            checked += 1
        assert checked > 0

    def test_medium_moves_are_legal(self, engine, random_states):
        """Test MEDIUM legality from the opening onwards."""
        rng = random.Random(0)
        for state in random_states(count=30, min_moves=0, max_moves=9, seed=2):
            if not engine.has_any_legal_move(state.board, state.unused_pieces()):
                continue
            move = select_move(engine, state, Difficulty.MEDIUM, rng=rng)
            assert engine.validate_move(state, move) is Placement.OK

    def test_expert_moves_are_legal(self, engine, random_states):
        """Test EXPERT legality with a short time limit."""
        for state in random_states(count=5, min_moves=6, max_moves=9, seed=4):
            if not engine.has_any_legal_move(state.board, state.unused_pieces()):
                continue
            move = select_move(engine, state, Difficulty.EXPERT, config=FAST)
            assert engine.validate_move(state, move) is Placement.OK

    def test_hard_opening_move(self, engine):
        """Test HARD on an empty board, where it has the most moves to compare."""
        state = engine.initial_state()
        move = select_move(engine, state, Difficulty.HARD, rng=random.Random(0))
        assert engine.validate_move(state, move) is Placement.OK

    def test_unknown_difficulty_plays_randomly(self, engine):
        """Test that an unknown difficulty still produces a legal move."""
        state = engine.initial_state()
        move = select_move(engine, state, "grandmaster")
        assert engine.validate_move(state, move) is Placement.OK

    def test_player_override(self, engine):
        """Test selecting a move for the player who is not on turn."""
        state = engine.initial_state()
        move = select_move(engine, state, Difficulty.EASY, player=2)
        assert move.player == 2
        assert state.turn == 1

    def test_invalid_player(self, engine):
        """Test that an unknown player id is rejected."""
        with pytest.raises(ValueError, match="player must be 1 or 2"):
            select_move(engine, engine.initial_state(), player=3)

    def test_no_legal_move_raises(self, engine, make_state):
        """Test that asking for a move in a blocked position raises."""
        state = make_state([".1111111"] + ["11111111"] * 7, used=("F",), turn=2)
        with pytest.raises(NoLegalMoveError):
            select_move(engine, state, Difficulty.HARD)

    def test_policies_return_none_without_moves(self, engine, make_state):
        """Test that the policy functions return None when blocked."""
        state = make_state(["11111111"] * 8, used=("F",), turn=2)
        for policy in (random_policy, heuristic_policy, greedy_policy):
            assert policy(engine, state) is None

    def test_seeded_config_is_reproducible(self, engine):
        """Test that a seeded config makes the choice deterministic."""
        state = engine.initial_state()
        config = AIConfig(seed=123)
        first = select_move(engine, state, Difficulty.EASY, config=config)
        second = select_move(engine, state, Difficulty.EASY, config=config)
        assert first == second


class TestInstantWin:
    """Test that the stronger tiers take a winning move when one exists."""

    WINNING_CELLS = [(2, 1), (2, 2), (2, 3), (2, 4), (2, 5)]

    def test_evaluate_move_scores_block(self, engine, instant_win_state):
        """Test that the blocking move gets the win score."""
        state = instant_win_state
        win = Move.build("I", anchor=(2, 1))
        lose = Move.build("I", anchor=(6, 1))
        assert evaluate_move(engine, state.board, state.used, win) == WIN_SCORE
        assert evaluate_move(engine, state.board, state.used, lose) < WIN_SCORE

    def test_hard_takes_win(self, engine, instant_win_state):
        """Test that HARD picks the move leaving the opponent no reply."""
        for seed in range(5):
            move = select_move(
                engine, instant_win_state, Difficulty.HARD, rng=random.Random(seed)
            )
            assert move.piece is PieceName.I
            assert sorted(move.cells) == self.WINNING_CELLS

    def test_expert_takes_win(self, engine, instant_win_state):
        """Test that EXPERT picks the winning move."""
        move = expert_policy(engine, instant_win_state, config=FAST)
        assert move.piece is PieceName.I
        assert sorted(move.cells) == self.WINNING_CELLS

    def test_search_reports_win(self, engine, instant_win_state):
        """Test the search result for a position with an immediate win."""
        result = AlphaBetaSearch(engine, config=FAST).run(instant_win_state)
        assert result.score == WIN_SCORE
        assert sorted(result.move.cells) == self.WINNING_CELLS


class TestAlphaBetaSearch:
    """Test search bookkeeping."""

    def test_choose_depth(self, engine):
        """Test that the search reads deeper near the end."""
        search = AlphaBetaSearch(engine)
        assert search.choose_depth(0) == 2
        assert search.choose_depth(6) == 3
        assert search.choose_depth(8) == 4

    def test_no_moves(self, engine, make_state):
        """Test that the search returns no move when blocked."""
        state = make_state(["11111111"] * 8, used=("F",), turn=2)
        result = AlphaBetaSearch(engine, config=FAST).run(state)
        assert result.move is None

    def test_verbose_output(self, engine, capsys):
        """Test that verbose search prints its statistics."""
        # no move on an empty board blocks the opponent, so the search runs to the end
        AlphaBetaSearch(engine, config=FAST, verbose=True).run(engine.initial_state())
        out = capsys.readouterr().out
        assert "[Expert AI]" in out
        assert "nodes in" in out


class TestAIConfig:
    """Test AI configuration."""

    def test_defaults(self):
        """Test default values."""
        config = AIConfig()
        assert config.search_time_limit == 1.2
        assert config.max_branching == 8
        assert config.seed is None

    def test_invalid_values(self):
        """Test that invalid values are rejected."""
        with pytest.raises(ValueError, match="search_time_limit must be positive"):
            AIConfig(search_time_limit=0)
        with pytest.raises(ValueError, match="max_branching must be positive"):
            AIConfig(max_branching=0)

    def test_from_env(self, monkeypatch, tmp_path):
        """Test loading values from environment variables."""
        monkeypatch.setenv("DEADBLOCK_SEARCH_TIME_LIMIT", "0.5")
        monkeypatch.setenv("DEADBLOCK_MAX_BRANCHING", "3")
        monkeypatch.setenv("DEADBLOCK_AI_SEED", "42")
        config = AIConfig.from_env(dotenv_path=str(tmp_path / "missing.env"))
        assert config.search_time_limit == 0.5
        assert config.max_branching == 3
        assert config.seed == 42

    def test_from_dotenv_file(self, monkeypatch, tmp_path):
        """Test loading values from a .env file."""
        for name in ("DEADBLOCK_SEARCH_TIME_LIMIT", "DEADBLOCK_MAX_BRANCHING", "DEADBLOCK_AI_SEED"):
            # setenv first so that the value written by load_dotenv is undone
            monkeypatch.setenv(name, "")
            monkeypatch.delenv(name)
        env_file = tmp_path / ".env"
        env_file.write_text("DEADBLOCK_MAX_BRANCHING=5\n")
        config = AIConfig.from_env(dotenv_path=str(env_file))
        assert config.max_branching == 5
        assert config.search_time_limit == 1.2

    def test_invalid_env_value(self, monkeypatch, tmp_path):
        """Test that malformed environment values raise ValueError."""
        monkeypatch.setenv("DEADBLOCK_MAX_BRANCHING", "many")
        with pytest.raises(ValueError, match="Invalid value for DEADBLOCK_MAX_BRANCHING"):
            AIConfig.from_env(dotenv_path=str(tmp_path / "missing.env"))
