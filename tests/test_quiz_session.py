import json
import random
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from backend.config import Config
from backend.core.analysis_agent import NOT_ENOUGH_DATA_SUMMARY, PerformanceAnalysisAgent
from backend.core.errors import GenerationFailure, SubmissionRejected, ValidationError
from backend.core.mongodb_client import MongoDBClient
from backend.core.question_agent import QuestionAgent
from backend.core.quiz_session import QuizSession
from backend.core.storage import InMemoryStorage
from backend.models.schemas import QuestionSettings, UserProfile
from conftest import TODAY, FakeLLM, default_response, make_analysis_draft, make_draft


def build_session(storage, llm=None):
    llm = llm or FakeLLM(default=default_response)
    quiz_session = QuizSession(
        QuestionAgent(llm, rng=random.Random(1)),
        PerformanceAnalysisAgent(llm),
        storage,
        today=lambda: TODAY,
    )
    quiz_session.hydrate()
    return quiz_session


def test_fresh_session_is_empty(session):
    assert session.history == []
    assert session.current_attempt is None
    assert session.feedback == "idle"
    assert not session.is_viewing_history
    assert session.can_generate_new
    assert not session.can_check_answer
    assert session.hydration_errors == []


@pytest.mark.asyncio
async def test_generate_appends_and_moves_cursor(session, algebra_easy):
    first = await session.generate_question(algebra_easy)
    second = await session.generate_question(algebra_easy)

    assert session.history == [first, second]
    assert session.current_index == 1
    assert session.current_attempt is second
    assert second.settings == algebra_easy
    assert session.can_check_answer


@pytest.mark.asyncio
async def test_generation_failure_keeps_state(storage, algebra_easy):
    llm = FakeLLM([make_draft()])
    quiz_session = build_session(storage, llm)
    await quiz_session.generate_question(algebra_easy)

    with pytest.raises(GenerationFailure):
        await quiz_session.generate_question(algebra_easy)

    assert len(quiz_session.history) == 1
    assert quiz_session.current_index == 0
    assert not quiz_session.is_loading


@pytest.mark.asyncio
async def test_submit_correct_answer(session, algebra_easy):
    await session.generate_question(algebra_easy)

    attempt = await session.submit_answer("5")

    assert attempt.user_answer == "5"
    assert attempt.is_correct is True
    assert session.feedback == "correct"
    assert not session.can_check_answer
    assert session.profile.questions_answered == 1
    assert session.profile.streak == 1
    assert session.profile.last_active_date == TODAY


@pytest.mark.asyncio
async def test_submit_incorrect_answer(session, algebra_easy):
    await session.generate_question(algebra_easy)

    attempt = await session.submit_answer("4")

    assert attempt.is_correct is False
    assert session.feedback == "incorrect"


@pytest.mark.asyncio
async def test_second_submission_has_no_effect(session, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("4")

    with pytest.raises(SubmissionRejected):
        await session.submit_answer("5")

    attempt = session.current_attempt
    assert attempt.user_answer == "4"
    assert attempt.is_correct is False
    assert session.profile.questions_answered == 1


@pytest.mark.asyncio
async def test_empty_answer_is_a_validation_error(session, algebra_easy):
    await session.generate_question(algebra_easy)

    with pytest.raises(ValidationError):
        await session.submit_answer(None)
    with pytest.raises(ValidationError):
        await session.submit_answer("   ")

    assert not session.current_attempt.is_answered


@pytest.mark.asyncio
async def test_submit_without_question_is_rejected(session):
    with pytest.raises(SubmissionRejected):
        await session.submit_answer("5")


@pytest.mark.asyncio
async def test_history_navigation(session, algebra_easy):
    first = await session.generate_question(algebra_easy)
    await session.submit_answer("5")
    second = await session.generate_question(algebra_easy)

    assert session.go_previous() is first
    assert session.is_viewing_history
    assert not session.can_generate_new
    assert session.feedback == "correct"
    assert session.go_previous() is first

    assert session.go_next() is second
    assert not session.is_viewing_history
    assert session.go_next() is second
    assert not second.is_answered


@pytest.mark.asyncio
async def test_answering_history_is_rejected(session, algebra_easy):
    first = await session.generate_question(algebra_easy)
    await session.generate_question(algebra_easy)
    session.go_previous()

    with pytest.raises(SubmissionRejected):
        await session.submit_answer("5")

    assert not first.is_answered


@pytest.mark.asyncio
async def test_return_to_latest_keeps_its_state(session, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.generate_question(algebra_easy)
    await session.submit_answer("4")
    session.go_previous()

    latest = session.go_latest()

    assert latest is session.latest_attempt
    assert latest.user_answer == "4"
    assert session.feedback == "incorrect"


@pytest.mark.asyncio
async def test_submit_starts_preload(session, llm, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("5")
    await session.wait_for_preload()

    assert not session.is_preloading
    assert session.preloaded is not None
    assert session.preloaded.settings == algebra_easy
    assert len(llm.calls) == 2


@pytest.mark.asyncio
async def test_preload_reused_for_same_settings(session, llm, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("5")
    await session.wait_for_preload()
    preloaded_question = session.preloaded.question

    attempt = await session.generate_question(QuestionSettings(difficulty="easy", type="algebra"))

    assert len(llm.calls) == 2
    assert attempt.question == preloaded_question
    assert session.preloaded is None


@pytest.mark.asyncio
async def test_preload_discarded_for_other_settings(session, llm, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("5")
    await session.wait_for_preload()

    await session.generate_question(QuestionSettings(difficulty="hard", type="algebra"))

    assert len(llm.calls) == 3
    assert session.preloaded is None


@pytest.mark.asyncio
async def test_optional_fields_take_part_in_preload_match(session, llm, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("5")
    await session.wait_for_preload()

    await session.generate_question(algebra_easy.model_copy(update={"exam_type": "Quiz"}))

    assert len(llm.calls) == 3


@pytest.mark.asyncio
async def test_settings_change_discards_preload(session, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("5")
    await session.wait_for_preload()

    session.update_settings(QuestionSettings(difficulty="medium", type="geometry"))

    assert session.preloaded is None


@pytest.mark.asyncio
async def test_settings_change_while_preloading_discards_result(session, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("5")
    assert session.is_preloading

    session.update_settings(QuestionSettings(difficulty="medium", type="geometry"))
    await session.wait_for_preload()

    assert session.preloaded is None


@pytest.mark.asyncio
async def test_failed_preload_is_discarded(storage, algebra_easy):
    llm = FakeLLM([make_draft()])
    quiz_session = build_session(storage, llm)
    await quiz_session.generate_question(algebra_easy)
    await quiz_session.submit_answer("5")
    await quiz_session.wait_for_preload()

    assert quiz_session.preloaded is None
    assert not quiz_session.is_preloading


@pytest.mark.asyncio
async def test_only_one_preload_in_flight(session, llm, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("5")
    first_task = session._preload_task

    session._start_preload()

    assert session._preload_task is first_task
    await session.wait_for_preload()
    assert len(llm.calls) == 2


@pytest.mark.asyncio
async def test_state_is_persisted(storage, algebra_easy):
    quiz_session = build_session(storage)
    await quiz_session.generate_question(algebra_easy)
    await quiz_session.submit_answer("5")

    history = json.loads(storage.get_item(Config.HISTORY_STORAGE_KEY))
    profile = json.loads(storage.get_item(Config.PROFILE_STORAGE_KEY))
    assert len(history) == 1
    assert history[0]["user_answer"] == "5"
    assert history[0]["is_correct"] is True
    assert profile["questions_answered"] == 1
    assert profile["last_active_date"] == TODAY.isoformat()


@pytest.mark.asyncio
async def test_state_survives_restart(storage, algebra_easy):
    first = build_session(storage)
    await first.generate_question(algebra_easy)
    await first.submit_answer("5")
    await first.generate_question(QuestionSettings(difficulty="medium", type="geometry"))
    await first.wait_for_preload()

    restored = build_session(storage)

    assert len(restored.history) == 2
    assert restored.current_index == 1
    assert restored.history[0].is_correct is True
    assert restored.settings == QuestionSettings(difficulty="medium", type="geometry")
    assert restored.profile.questions_answered == 1


def test_nothing_is_written_before_hydration():
    storage = InMemoryStorage()
    QuizSession(None, None, storage)._persist()
    assert storage.items == {}


def test_malformed_storage_falls_back_to_defaults():
    storage = InMemoryStorage({
        Config.PROFILE_STORAGE_KEY: "{not json",
        Config.HISTORY_STORAGE_KEY: json.dumps([{"unexpected": True}]),
    })

    quiz_session = build_session(storage)

    assert quiz_session.history == []
    assert quiz_session.profile == UserProfile()
    assert len(quiz_session.hydration_errors) == 2
    assert quiz_session.is_hydrated


@pytest.mark.asyncio
async def test_streak_increments_for_yesterdays_user(algebra_easy):
    storage = InMemoryStorage({
        Config.PROFILE_STORAGE_KEY: UserProfile(
            last_active_date=TODAY - timedelta(days=1), streak=3, questions_answered=12
        ).model_dump_json(),
    })
    quiz_session = build_session(storage)
    assert quiz_session.profile.streak == 3

    await quiz_session.generate_question(algebra_easy)
    await quiz_session.submit_answer("5")

    assert quiz_session.profile.streak == 4
    assert quiz_session.profile.questions_answered == 13


@pytest.mark.asyncio
async def test_streak_resets_after_a_gap(algebra_easy):
    storage = InMemoryStorage({
        Config.PROFILE_STORAGE_KEY: UserProfile(
            last_active_date=TODAY - timedelta(days=3), streak=7, questions_answered=30
        ).model_dump_json(),
    })
    quiz_session = build_session(storage)
    assert quiz_session.profile.streak == 0
    assert json.loads(storage.get_item(Config.PROFILE_STORAGE_KEY))["streak"] == 0

    await quiz_session.generate_question(algebra_easy)
    await quiz_session.submit_answer("5")

    assert quiz_session.profile.streak == 1


@pytest.mark.asyncio
async def test_analyze_uses_answered_attempts_only(session, llm, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("4")
    await session.wait_for_preload()
    await session.generate_question(QuestionSettings(difficulty="hard", type="calculus"))

    records = session.activity_history()
    result = await session.analyze()

    assert len(records) == 1
    assert records[0].user_answer == "4"
    assert records[0].correct_answer == "5"
    assert records[0].is_correct is False
    assert session.analysis == result
    assert "The user wants to focus on: calculus" in llm.calls[-1][0][-1].content


@pytest.mark.asyncio
async def test_analyze_without_answers_returns_canned_result(session, llm, algebra_easy):
    await session.generate_question(algebra_easy)
    calls_before = len(llm.calls)

    result = await session.analyze()

    assert result.summary == NOT_ENOUGH_DATA_SUMMARY
    assert len(llm.calls) == calls_before


@pytest.mark.asyncio
async def test_navigation_clears_analysis(session, algebra_easy):
    await session.generate_question(algebra_easy)
    await session.submit_answer("5")
    await session.wait_for_preload()
    await session.generate_question(algebra_easy)
    await session.analyze()

    session.go_previous()

    assert session.analysis is None


@pytest.mark.asyncio
async def test_apply_suggestion_generates_suggested_settings(storage):
    llm = FakeLLM(default=default_response)
    quiz_session = build_session(storage, llm)
    settings = QuestionSettings(difficulty="easy", type="algebra", student_class="High School Junior")
    await quiz_session.generate_question(settings)
    await quiz_session.submit_answer("5")
    await quiz_session.wait_for_preload()
    llm.responses.append(make_analysis_draft(suggested_next_type="geometry", suggested_next_difficulty=None))
    await quiz_session.analyze()

    attempt = await quiz_session.apply_suggestion()

    assert attempt.settings == QuestionSettings(
        difficulty="easy", type="geometry", student_class="High School Junior"
    )
    assert quiz_session.analysis is None


@pytest.mark.asyncio
async def test_apply_suggestion_requires_analysis(session):
    with pytest.raises(ValidationError):
        await session.apply_suggestion()


@pytest.mark.asyncio
async def test_unreachable_mongodb_is_reported_at_hydration(algebra_easy):
    client = MagicMock()
    collection = client.__getitem__.return_value.__getitem__.return_value
    collection.find_one.side_effect = RuntimeError("connection lost")

    quiz_session = build_session(MongoDBClient(client))

    assert quiz_session.history == []
    assert quiz_session.profile == UserProfile()
    assert len(quiz_session.hydration_errors) == 2
    assert quiz_session.is_hydrated

    await quiz_session.generate_question(algebra_easy)
    assert len(quiz_session.history) == 1
