from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from challenge_service.core.exceptions import (
    AlreadyCompletedTodayError,
    ChallengeEndedError,
    ChallengeNotActiveError,
    InvalidSpecError,
    NotAParticipantError,
    TaskNotScheduledError,
    TaskNotFoundError,
    UnavailableError,
)
from challenge_service.crud.challenge import crud_challenge
from challenge_service.crud.participation import crud_participation
from challenge_service.models import ChallengeType, TaskCompletion
from challenge_service.schemas import TaskCompletionCreate
from challenge_service.services.challenge_engine import ChallengeEngine
from challenge_service.services.fasting_client import FastingSessionClient
from challenge_service.services.identity import DirectoryIdentityProvider, IdentityProvider
from challenge_service.services.side_effects import SideEffectDispatcher


@pytest.fixture
def challenge(make_challenge):
    return make_challenge(start_date="2024-01-01", duration=7, goal=3)


@pytest.fixture
def task(challenge, make_task):
    return make_task(challenge, points=10)


@pytest.fixture
def joined(db, engine, challenge, alice):
    return engine.join_challenge(db, challenge.id, alice)


def _progress(db, challenge, user):
    participation = crud_participation.get(db, challenge_id=challenge.id, user_id=user.id)
    db.refresh(participation)
    return participation


# =====================================================================
# RECORDING
# =====================================================================

def test_completion_snapshots_points_and_counts_a_day(db, engine, challenge, task, joined, alice):
    completion = engine.complete_task(
        db, challenge.id, task.id, alice,
        TaskCompletionCreate(actual_value=32.5, notes="felt good", time_spent_minutes=35),
    )

    assert completion.points == 10
    assert completion.completed_date == date(2024, 1, 3)
    assert completion.actual_value == 32.5
    assert _progress(db, challenge, alice).progress == 1


def test_second_completion_same_day_is_rejected(db, engine, challenge, task, joined, alice):
    engine.complete_task(db, challenge.id, task.id, alice)

    with pytest.raises(AlreadyCompletedTodayError):
        engine.complete_task(db, challenge.id, task.id, alice)

    assert db.query(TaskCompletion).count() == 1
    assert _progress(db, challenge, alice).progress == 1


def test_points_snapshot_survives_later_task_edit(db, engine, challenge, task, joined, alice):
    completion = engine.complete_task(db, challenge.id, task.id, alice)
    task.points = 99
    db.commit()

    db.refresh(completion)
    assert completion.points == 10


def test_two_tasks_on_one_day_count_once(db, engine, challenge, task, make_task, joined, alice):
    other = make_task(challenge, title="Drink water", task_type="water")

    engine.complete_task(db, challenge.id, task.id, alice)
    engine.complete_task(db, challenge.id, other.id, alice)

    assert _progress(db, challenge, alice).progress == 1


def test_goal_reached_marks_completed(db, engine, challenge, make_task, joined, alice):
    for day in (1, 2, 3):
        daily = make_task(challenge, title=f"Day {day}", day_of_challenge=day)
        engine.complete_task(db, challenge.id, daily.id, alice, completed_date=date(2024, 1, day))

    participation = _progress(db, challenge, alice)
    assert participation.progress == 3
    assert participation.completed is True
    assert participation.last_synced_at is not None


def test_point_accumulation_challenges_sum_points(db, engine, make_challenge, make_task, alice):
    steps = make_challenge(type=ChallengeType.steps, goal=30)
    walk = make_task(steps, points=10)
    run = make_task(steps, title="Run", points=25)
    engine.join_challenge(db, steps.id, alice)

    engine.complete_task(db, steps.id, walk.id, alice)
    engine.complete_task(db, steps.id, run.id, alice)

    participation = _progress(db, steps, alice)
    assert participation.progress == 35
    assert participation.completed is True


# =====================================================================
# GUARDS
# =====================================================================

def test_non_participant_cannot_complete(db, engine, challenge, task, bob):
    with pytest.raises(NotAParticipantError):
        engine.complete_task(db, challenge.id, task.id, bob)

    assert db.query(TaskCompletion).count() == 0


def test_completion_after_end_is_rejected(db, engine, clock, challenge, task, joined, alice):
    clock.set(2024, 1, 9)

    with pytest.raises(ChallengeEndedError):
        engine.complete_task(db, challenge.id, task.id, alice)


def test_completion_before_start_is_rejected(db, engine, make_challenge, make_task, alice):
    upcoming = make_challenge(start_date="2024-02-01")
    task = make_task(upcoming)
    engine.join_challenge(db, upcoming.id, alice)

    with pytest.raises(ChallengeNotActiveError):
        engine.complete_task(db, upcoming.id, task.id, alice)


def test_task_must_belong_to_challenge(db, engine, challenge, joined, make_challenge, make_task, alice):
    stranger = make_task(make_challenge(name="Elsewhere"))

    with pytest.raises(TaskNotFoundError):
        engine.complete_task(db, challenge.id, stranger.id, alice)


def test_task_scores_only_on_its_own_day(db, engine, clock, make_challenge, make_task, alice):
    steps = make_challenge(type=ChallengeType.steps, goal=50)
    first_day = make_task(steps, points=10, day_of_challenge=1)
    engine.join_challenge(db, steps.id, alice)

    clock.set(2024, 1, 1)
    engine.complete_task(db, steps.id, first_day.id, alice)
    for day in range(2, 8):
        clock.set(2024, 1, day)
        with pytest.raises(TaskNotScheduledError):
            engine.complete_task(db, steps.id, first_day.id, alice)

    assert db.query(TaskCompletion).count() == 1
    assert _progress(db, steps, alice).progress == 10
    assert engine.get_leaderboard(db, steps.id)[0]["progress"] == 10


def test_streak_needs_each_day_s_own_task(db, engine, challenge, make_task, joined, alice):
    first_day = make_task(challenge, day_of_challenge=1)

    with pytest.raises(TaskNotScheduledError):
        engine.complete_task(db, challenge.id, first_day.id, alice)
    with pytest.raises(TaskNotScheduledError):
        engine.complete_task(db, challenge.id, first_day.id, alice, completed_date="2024-01-02")

    engine.complete_task(db, challenge.id, first_day.id, alice, completed_date="2024-01-01")
    assert _progress(db, challenge, alice).progress == 1


def test_task_addressed_by_date_is_scheduled_on_that_date(db, engine, challenge, make_task, joined, alice):
    dated = make_task(challenge, task_date="2024-01-02")

    with pytest.raises(TaskNotScheduledError):
        engine.complete_task(db, challenge.id, dated.id, alice)

    completion = engine.complete_task(db, challenge.id, dated.id, alice, completed_date="2024-01-02")
    assert completion.completed_date == date(2024, 1, 2)


def test_completion_losing_a_race_leaves_progress_alone(db, engine, clock, challenge, task, joined, alice):
    # Row written by a concurrent request that committed first
    db.add(TaskCompletion(
        task_id=task.id,
        user_id=alice.id,
        completed_date=date(2024, 1, 3),
        points=task.points,
        completed_at=clock(),
    ))
    db.commit()

    with pytest.raises(AlreadyCompletedTodayError):
        engine.complete_task(db, challenge.id, task.id, alice)

    assert db.query(TaskCompletion).count() == 1
    assert _progress(db, challenge, alice).progress == 0


@pytest.mark.parametrize("completed_date", ["2024-01-04", "2023-12-31", "someday"])
def test_completed_date_must_be_past_and_inside_window(
    db, engine, challenge, task, joined, alice, completed_date
):
    with pytest.raises(InvalidSpecError):
        engine.complete_task(db, challenge.id, task.id, alice, completed_date=completed_date)


def test_store_failure_is_reported_as_unavailable(db, engine, challenge, monkeypatch, alice):
    def broken_get(db, id):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(crud_challenge, "get", broken_get)

    with pytest.raises(UnavailableError):
        engine.join_challenge(db, challenge.id, alice)


# =====================================================================
# SYNC / HISTORY
# =====================================================================

def test_sync_recomputes_progress_from_rows(db, engine, challenge, task, make_task, joined, alice):
    yesterday = make_task(challenge, title="Yesterday", day_of_challenge=2)
    engine.complete_task(db, challenge.id, task.id, alice)
    engine.complete_task(db, challenge.id, yesterday.id, alice, completed_date="2024-01-02")
    joined.progress = 0
    joined.completed = False
    db.commit()

    participation = engine.sync_progress(db, challenge.id, alice)

    assert participation.progress == 2


def test_sync_requires_participation(db, engine, challenge, bob):
    with pytest.raises(NotAParticipantError):
        engine.sync_progress(db, challenge.id, bob)


def test_my_completions_filter_by_date(db, engine, challenge, task, make_task, joined, alice, bob):
    yesterday = make_task(challenge, title="Yesterday", day_of_challenge=2)
    engine.join_challenge(db, challenge.id, bob)
    engine.complete_task(db, challenge.id, yesterday.id, alice, completed_date="2024-01-02")
    engine.complete_task(db, challenge.id, task.id, alice)
    engine.complete_task(db, challenge.id, task.id, bob)

    everything = engine.get_my_completions(db, challenge.id, alice)
    today = engine.get_my_completions(db, challenge.id, alice, on_date="2024-01-03")

    assert [c.completed_date for c in everything] == [date(2024, 1, 2), date(2024, 1, 3)]
    assert len(today) == 1


def test_my_progress_summary(db, engine, challenge, task, joined, make_task, alice):
    make_task(challenge, title="Tomorrow", day_of_challenge=4)
    engine.complete_task(db, challenge.id, task.id, alice)

    summary = engine.get_my_progress(db, challenge.id, alice)

    assert summary["progress"] == 1
    assert summary["current_day"] == 3
    assert summary["tasks_today"] == 1
    assert summary["completed_today"] == 1


# =====================================================================
# FASTING SIDE EFFECTS
# =====================================================================

@pytest.fixture
def fasting_task(challenge, make_task):
    return make_task(challenge, title="Fast", task_type="fasting", fasting_type="16:8")


def test_fasting_completion_activates_session(db, engine, fasting_client, challenge, fasting_task, joined, alice):
    engine.complete_task(db, challenge.id, fasting_task.id, alice)

    assert fasting_client.calls == [(alice.id, "16:8")]


def test_fasting_failure_keeps_the_completion(db, engine, fasting_client, challenge, fasting_task, joined, alice):
    fasting_client.fail = True

    completion = engine.complete_task(db, challenge.id, fasting_task.id, alice)

    assert completion.id is not None
    assert db.query(TaskCompletion).count() == 1
    assert _progress(db, challenge, alice).progress == 1


def test_other_task_types_do_not_call_fasting(db, engine, fasting_client, challenge, task, joined, alice):
    engine.complete_task(db, challenge.id, task.id, alice)

    assert fasting_client.calls == []


def test_explicit_activation_propagates_failures(db, engine, fasting_client, challenge, joined, alice):
    engine.activate_fasting(db, challenge.id, "18:6", alice)
    assert fasting_client.calls == [(alice.id, "18:6")]

    fasting_client.fail = True
    with pytest.raises(UnavailableError):
        engine.activate_fasting(db, challenge.id, "18:6", alice)


def test_explicit_activation_requires_participation(db, engine, challenge, bob):
    with pytest.raises(NotAParticipantError):
        engine.activate_fasting(db, challenge.id, "16:8", bob)


def test_explicit_activation_without_fasting_service(db, clock, challenge, joined, alice):
    engine = ChallengeEngine(
        identity=DirectoryIdentityProvider("User"),
        dispatcher=SideEffectDispatcher(None),
        clock=clock,
    )

    with pytest.raises(UnavailableError):
        engine.activate_fasting(db, challenge.id, "16:8", alice)


def test_collaborator_interfaces_need_an_implementation():
    with pytest.raises(TypeError):
        FastingSessionClient()
    with pytest.raises(TypeError):
        IdentityProvider("User")
