import uuid
from datetime import date

import pytest

from challenge_service.core.exceptions import (
    AlreadyJoinedError,
    ChallengeEndedError,
    ChallengeNotFoundError,
    ForbiddenError,
    InvalidSpecError,
)
from challenge_service.core.timewindow import ChallengeStatus
from challenge_service.crud.participation import crud_participation
from challenge_service.models import Challenge, DailyTask, Participation, TaskCompletion
from challenge_service.schemas import (
    ChallengeCreate,
    ChallengeListFilter,
    ChallengeUpdate,
    DailyTaskCreate,
)


# =====================================================================
# CREATE / READ
# =====================================================================

@pytest.mark.parametrize("duration", [1, 7, 30])
def test_end_date_is_derived_and_survives_reads(db, engine, make_challenge, alice, duration):
    challenge = make_challenge(duration=duration, start_date="2024-01-01")

    view = engine.get_challenge(db, challenge.id, alice)

    assert (challenge.end_date - challenge.start_date).days == duration
    assert view["end_date"] == challenge.end_date
    assert view["start_date"] == date(2024, 1, 1)


@pytest.mark.parametrize(
    "overrides",
    [
        {"duration": 0},
        {"duration": -3},
        {"goal": -1},
        {"start_date": "not-a-date"},
        {"name": "   "},
    ],
)
def test_invalid_specs_are_rejected_without_writing(db, make_challenge, overrides):
    with pytest.raises(InvalidSpecError):
        make_challenge(**overrides)

    assert db.query(Challenge).count() == 0


def test_view_derives_status_from_clock(db, engine, clock, make_challenge, alice):
    challenge = make_challenge(start_date="2024-01-01", duration=7)

    clock.set(2024, 1, 3)
    view = engine.get_challenge(db, challenge.id, alice)
    assert view["status"] == ChallengeStatus.active
    assert view["current_day"] == 3
    assert view["days_remaining"] == 5

    clock.set(2024, 1, 9)
    assert engine.get_challenge(db, challenge.id, alice)["status"] == ChallengeStatus.ended


def test_unknown_challenge_is_not_found(db, engine, alice):
    with pytest.raises(ChallengeNotFoundError):
        engine.get_challenge(db, uuid.uuid4(), alice)


def test_admin_can_create_challenge_with_tasks(db, engine, admin):
    challenge_in = ChallengeCreate(
        name="21-Day Meal Prep",
        type="meals",
        goal=21,
        duration=21,
        start_date="2024-01-01",
        daily_tasks=[
            DailyTaskCreate(title="Plan meals", task_type="meal", day_of_challenge=1),
            DailyTaskCreate(title="Cook lunch", task_type="meal", task_date="2024-01-02"),
        ],
    )

    challenge = engine.create_challenge(db, challenge_in, admin, allow_tasks=True)

    assert db.query(DailyTask).filter(DailyTask.challenge_id == challenge.id).count() == 2


def test_invalid_embedded_task_leaves_no_partial_challenge(db, engine, admin):
    challenge_in = ChallengeCreate(
        name="Broken",
        duration=7,
        start_date="2024-01-01",
        daily_tasks=[
            DailyTaskCreate(title="Fine", day_of_challenge=1),
            DailyTaskCreate(title="", day_of_challenge=2),
        ],
    )

    with pytest.raises(InvalidSpecError):
        engine.create_challenge(db, challenge_in, admin, allow_tasks=True)

    assert db.query(Challenge).count() == 0
    assert db.query(DailyTask).count() == 0


def test_embedded_tasks_need_admin(db, engine, alice):
    challenge_in = ChallengeCreate(
        name="Mine",
        duration=7,
        start_date="2024-01-01",
        daily_tasks=[DailyTaskCreate(title="Walk", day_of_challenge=1)],
    )

    with pytest.raises(ForbiddenError):
        engine.create_challenge(db, challenge_in, alice, allow_tasks=True)


def test_list_filters(db, engine, make_challenge, alice, bob):
    mine = make_challenge(creator=alice, name="Alice's")
    joined = make_challenge(creator=bob, name="Bob's")
    make_challenge(name="Admin's")
    engine.join_challenge(db, joined.id, alice)

    everything = engine.list_challenges(db, alice)
    created = engine.list_challenges(db, alice, list_filter=ChallengeListFilter.created)
    joined_views = engine.list_challenges(db, alice, list_filter=ChallengeListFilter.joined)

    assert len(everything) == 3
    assert [v["id"] for v in created] == [mine.id]
    assert [v["id"] for v in joined_views] == [joined.id]
    assert joined_views[0]["participation"].user_id == alice.id


# =====================================================================
# UPDATE / DELETE
# =====================================================================

def test_update_keeps_dates_and_reevaluates_completed(db, engine, make_challenge, admin, alice):
    challenge = make_challenge(goal=5)
    engine.join_challenge(db, challenge.id, alice)
    participation = crud_participation.get(db, challenge_id=challenge.id, user_id=alice.id)
    participation.progress = 2
    db.commit()

    view = engine.update_challenge(db, challenge.id, ChallengeUpdate(goal=2, name="Renamed"), admin)

    assert view["name"] == "Renamed"
    assert view["end_date"] == date(2024, 1, 8)
    assert crud_participation.get(db, challenge_id=challenge.id, user_id=alice.id).completed is True


def test_only_creator_or_admin_can_update(db, engine, make_challenge, alice, bob):
    challenge = make_challenge(creator=alice)

    with pytest.raises(ForbiddenError):
        engine.update_challenge(db, challenge.id, ChallengeUpdate(name="Hijacked"), bob)


def test_delete_requires_creator_or_admin(db, engine, make_challenge, alice, bob):
    challenge = make_challenge(creator=alice)

    with pytest.raises(ForbiddenError):
        engine.delete_challenge(db, challenge.id, bob)

    engine.delete_challenge(db, challenge.id, alice)
    assert db.query(Challenge).count() == 0


def test_delete_cascades_to_tasks_participations_and_completions(
    db, engine, make_challenge, make_task, admin, alice
):
    challenge = make_challenge()
    task = make_task(challenge)
    engine.join_challenge(db, challenge.id, alice)
    engine.complete_task(db, challenge.id, task.id, alice)

    engine.delete_challenge(db, challenge.id, admin)

    assert db.query(DailyTask).count() == 0
    assert db.query(Participation).count() == 0
    assert db.query(TaskCompletion).count() == 0


# =====================================================================
# JOIN
# =====================================================================

def test_join_creates_one_participation_and_counts_it(db, engine, make_challenge, alice, bob):
    challenge = make_challenge()

    participation = engine.join_challenge(db, challenge.id, alice)
    engine.join_challenge(db, challenge.id, bob)

    assert participation.progress == 0
    assert participation.completed is False
    db.refresh(challenge)
    assert challenge.participant_count == 2


def test_second_join_is_already_joined(db, engine, make_challenge, alice):
    challenge = make_challenge()
    engine.join_challenge(db, challenge.id, alice)

    with pytest.raises(AlreadyJoinedError):
        engine.join_challenge(db, challenge.id, alice)

    assert db.query(Participation).count() == 1


def test_joining_an_upcoming_challenge_is_accepted(db, engine, make_challenge, alice):
    challenge = make_challenge(start_date="2024-02-01")

    participation = engine.join_challenge(db, challenge.id, alice)

    assert participation.challenge_id == challenge.id


def test_joining_an_ended_challenge_fails_without_a_row(db, engine, clock, make_challenge, alice):
    challenge = make_challenge(start_date="2023-12-01", duration=7)

    with pytest.raises(ChallengeEndedError):
        engine.join_challenge(db, challenge.id, alice)

    assert db.query(Participation).count() == 0


def test_join_on_last_day_is_still_accepted(db, engine, clock, make_challenge, alice):
    challenge = make_challenge(start_date="2024-01-01", duration=7)
    clock.set(2024, 1, 8, hour=23)

    engine.join_challenge(db, challenge.id, alice)

    assert db.query(Participation).count() == 1


def test_join_losing_a_race_is_already_joined(db, engine, clock, make_challenge, monkeypatch, alice):
    challenge = make_challenge()

    def concurrent_join_then_miss(db, *, challenge_id, user_id, for_update=False):
        # Another request inserts its row after this one checked and found nothing
        db.add(Participation(challenge_id=challenge_id, user_id=user_id, joined_at=clock()))
        db.commit()
        return None

    monkeypatch.setattr(crud_participation, "get", concurrent_join_then_miss)

    with pytest.raises(AlreadyJoinedError):
        engine.join_challenge(db, challenge.id, alice)

    monkeypatch.undo()
    assert db.query(Participation).filter(Participation.user_id == alice.id).count() == 1
