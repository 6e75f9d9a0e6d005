from datetime import date, timedelta

from backend.core.streak import decay_streak, register_answer
from backend.models.schemas import UserProfile

TODAY = date(2024, 5, 10)


def test_first_answer_starts_streak():
    profile = register_answer(UserProfile(), TODAY)
    assert profile.streak == 1
    assert profile.questions_answered == 1
    assert profile.last_active_date == TODAY


def test_same_day_keeps_streak():
    profile = UserProfile(last_active_date=TODAY, streak=4, questions_answered=10)
    updated = register_answer(profile, TODAY)
    assert updated.streak == 4
    assert updated.questions_answered == 11


def test_yesterday_increments_streak():
    profile = UserProfile(last_active_date=TODAY - timedelta(days=1), streak=4, questions_answered=10)
    assert register_answer(profile, TODAY).streak == 5


def test_gap_resets_streak_to_one():
    profile = UserProfile(last_active_date=TODAY - timedelta(days=3), streak=4, questions_answered=10)
    updated = register_answer(profile, TODAY)
    assert updated.streak == 1
    assert updated.last_active_date == TODAY


def test_register_answer_does_not_mutate_input():
    profile = UserProfile(last_active_date=TODAY - timedelta(days=1), streak=2)
    register_answer(profile, TODAY)
    assert profile.streak == 2


def test_decay_keeps_recent_streaks():
    today = UserProfile(last_active_date=TODAY, streak=3)
    yesterday = UserProfile(last_active_date=TODAY - timedelta(days=1), streak=3)
    assert decay_streak(today, TODAY).streak == 3
    assert decay_streak(yesterday, TODAY).streak == 3


def test_decay_resets_stale_streak():
    stale = UserProfile(last_active_date=TODAY - timedelta(days=2), streak=3, questions_answered=9)
    decayed = decay_streak(stale, TODAY)
    assert decayed.streak == 0
    assert decayed.questions_answered == 9
