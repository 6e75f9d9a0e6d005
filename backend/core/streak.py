from datetime import date, timedelta

from backend.models.schemas import UserProfile


def register_answer(profile: UserProfile, today: date) -> UserProfile:
    """Profile after one more answered question on `today`"""
    last = profile.last_active_date
    if last == today:
        streak = profile.streak
    elif last == today - timedelta(days=1):
        streak = profile.streak + 1
    else:
        streak = 1

    return profile.model_copy(update={
        "last_active_date": today,
        "streak": streak,
        "questions_answered": profile.questions_answered + 1,
    })


def decay_streak(profile: UserProfile, today: date) -> UserProfile:
    """Reset the streak of a returning user who skipped at least one full day"""
    last = profile.last_active_date
    if last is not None and last in (today, today - timedelta(days=1)):
        return profile
    return profile.model_copy(update={"streak": 0})
