#!/usr/bin/env python3
"""
Smoke test: plays full games against the shipped question files.
"""
import random
import tempfile
from pathlib import Path

from trivia_challenge.config_manager import ConfigManager
from trivia_challenge.game_session import GameSession
from trivia_challenge.leaderboard_store import JsonLeaderboardStore
from trivia_challenge.models import GameMode, GamePhase, Team
from trivia_challenge.question_bank import QuestionBank
from trivia_challenge.results import merge_leaderboard


def load_bank():
    bank = QuestionBank(question_directory=str(Path(__file__).parent / "questions"), rng=random.Random(1))
    bank.load_question_files()
    assert not bank.sample_bank_active, bank.get_loading_summary()['errors']
    return bank


def no_scheduler(delay, callback):
    raise AssertionError("freeze is not used in the smoke test")


def test_solo_game_reaches_leaderboard():
    session = GameSession(load_bank(), settings=ConfigManager().get_game_settings(), scheduler=no_scheduler)
    session.start(GameMode.SOLO, "All", 10, player_name="Smoke")

    while session.phase == GamePhase.ACTIVE:
        session.submit_answer(session.current_question.answer)
        session.advance()

    summary = session.summary
    assert summary.correct_pct == 100
    assert summary.stars == 5

    with tempfile.TemporaryDirectory() as temp_dir:
        store = JsonLeaderboardStore(str(Path(temp_dir) / "leaderboard.json"))
        entry = summary.leaderboard_entry
        store.save_leaderboard(entry.question_count_bucket, merge_leaderboard([], entry))
        assert store.load_leaderboard(10)[0].player_name == "Smoke"
    print("✓ Solo game completed and recorded")


def test_sequential_team_game():
    session = GameSession(load_bank(), scheduler=no_scheduler)
    session.start(GameMode.TEAMS, "Prophecy", 5, time_attack=True)
    blue_ids = {q.id for q in session.draw}

    while session.phase == GamePhase.ACTIVE:
        session.submit_answer(session.current_question.answer)
    assert session.phase == GamePhase.ROUND_BOUNDARY

    session.continue_to_next_team()
    assert not blue_ids & {q.id for q in session.draw}
    while session.phase == GamePhase.ACTIVE:
        session.submit_answer("not an option")

    assert session.summary.winner == Team.BLUE
    print("✓ Sequential team game completed")


def main():
    print("Running Trivia Challenge smoke tests...")
    test_solo_game_reaches_leaderboard()
    test_sequential_team_game()
    print("🎉 All smoke tests passed")


if __name__ == "__main__":
    main()
