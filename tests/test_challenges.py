from datetime import datetime, timedelta

import pytest

import challenges
from catalog import DEFAULT_CHALLENGES, seed_challenges
from exceptions import AlreadyEnrolledError, DuplicateCheckinError, NotFoundError, ValidationError
from models import ChallengeProgress, UserChallenge

NOW = datetime(2025, 10, 1, 9, 0, 0)
TODAY = NOW.date()


def _day(n: int):
    """Fecha del día n del desafío (día 1 = hoy)"""
    return TODAY + timedelta(days=n - 1)


def _check_in_days(db, user_challenge, days, user_id="user-1"):
    result = None
    for n in days:
        result = challenges.check_in(
            db, user_id, user_challenge.id,
            checkin_date=_day(n),
            now=NOW + timedelta(days=n - 1),
        )
    return result


# ─────────────────────────────────────────────────────────────────────────────
# INSCRIPCIÓN
# ─────────────────────────────────────────────────────────────────────────────

def test_join_creates_active_enrollment(db, make_challenge):
    challenge = make_challenge()

    uc = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)

    assert uc.status == "active"
    assert uc.joined_at == NOW
    assert uc.deadline == NOW + timedelta(days=7)
    assert uc.checkins_completed == 0
    assert uc.progress_percent == 0
    assert uc.current_streak == 0
    assert uc.checkins_required == 7
    assert uc.retry_count == 0
    db.refresh(challenge)
    assert challenge.total_participants == 1


def test_streak_enrollment_requires_consecutive_days(db, make_challenge):
    challenge = make_challenge(challenge_type="streak", required_checkins=None, required_consecutive_days=5)
    uc = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    assert uc.checkins_required == 5


def test_join_twice_is_rejected(db, make_challenge):
    challenge = make_challenge()
    challenges.join_challenge(db, "user-1", challenge.id, now=NOW)

    with pytest.raises(AlreadyEnrolledError):
        challenges.join_challenge(db, "user-1", challenge.id, now=NOW)

    active = db.query(UserChallenge).filter(
        UserChallenge.user_id == "user-1",
        UserChallenge.challenge_id == challenge.id,
        UserChallenge.status == "active",
    ).count()
    assert active == 1


def test_other_users_can_join_same_challenge(db, make_challenge):
    challenge = make_challenge()
    challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    challenges.join_challenge(db, "user-2", challenge.id, now=NOW)
    db.refresh(challenge)
    assert challenge.total_participants == 2


def test_join_inactive_or_missing_challenge(db, make_challenge):
    inactive = make_challenge(is_active=False)

    with pytest.raises(NotFoundError):
        challenges.join_challenge(db, "user-1", inactive.id, now=NOW)
    with pytest.raises(NotFoundError):
        challenges.join_challenge(db, "user-1", 9999, now=NOW)


def test_rejoin_after_abandon_counts_retry(db, make_challenge):
    challenge = make_challenge()
    first = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    challenges.abandon_challenge(db, "user-1", first.id, now=NOW)

    second = challenges.join_challenge(db, "user-1", challenge.id, now=NOW + timedelta(days=1))

    assert second.id != first.id
    assert second.status == "active"
    assert second.retry_count == 1


def test_join_replaces_expired_enrollment(db, make_challenge):
    challenge = make_challenge()
    first = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)

    second = challenges.join_challenge(db, "user-1", challenge.id, now=NOW + timedelta(days=10))

    db.refresh(first)
    assert first.status == "failed"
    assert second.status == "active"
    assert second.retry_count == 1


# ─────────────────────────────────────────────────────────────────────────────
# CHECK-INS
# ─────────────────────────────────────────────────────────────────────────────

def test_checkin_defaults_to_today(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)

    result = challenges.check_in(db, "user-1", uc.id, now=NOW)

    assert result.progress.checkin_date == TODAY
    assert result.progress.progress_type == "daily_checkin"
    assert result.progress.completed is True
    assert result.user_challenge.checkins_completed == 1
    assert result.user_challenge.progress_percent == 14
    assert result.is_complete is False
    assert result.message == "✅ Progress logged! 1/7 complete"


def test_checkin_for_other_date_is_retroactive(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)

    result = challenges.check_in(
        db, "user-1", uc.id, checkin_date=TODAY, note="Packed lunch", value=150, now=NOW + timedelta(days=1)
    )

    assert result.progress.progress_type == "retroactive_checkin"
    assert result.progress.note == "Packed lunch"
    assert result.progress.value == 150


def test_duplicate_checkin_is_rejected_without_double_counting(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)
    challenges.check_in(db, "user-1", uc.id, now=NOW)

    with pytest.raises(DuplicateCheckinError):
        challenges.check_in(db, "user-1", uc.id, checkin_date=TODAY, now=NOW)

    db.refresh(uc)
    assert uc.checkins_completed == 1
    assert db.query(ChallengeProgress).filter(ChallengeProgress.user_challenge_id == uc.id).count() == 1


def test_future_checkins_are_rejected(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge(points_full=70).id, now=NOW)

    for n in range(2, 8):
        with pytest.raises(ValidationError):
            challenges.check_in(db, "user-1", uc.id, checkin_date=_day(n), now=NOW)

    db.refresh(uc)
    assert uc.status == "active"
    assert uc.checkins_completed == 0
    assert uc.points_earned == 0
    assert db.query(ChallengeProgress).filter(ChallengeProgress.user_challenge_id == uc.id).count() == 0


def test_checkin_before_joining_is_rejected(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)

    with pytest.raises(ValidationError):
        challenges.check_in(db, "user-1", uc.id, checkin_date=TODAY - timedelta(days=30), now=NOW)
    with pytest.raises(ValidationError):
        challenges.check_in(db, "user-1", uc.id, checkin_date=TODAY - timedelta(days=1), now=NOW + timedelta(days=2))

    db.refresh(uc)
    assert uc.checkins_completed == 0


def test_join_day_is_a_valid_checkin_date(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)

    result = challenges.check_in(db, "user-1", uc.id, checkin_date=TODAY, now=NOW + timedelta(days=3))

    assert result.progress.checkin_date == TODAY
    assert result.user_challenge.checkins_completed == 1


def test_missed_checkin_is_logged_but_not_counted(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)

    result = challenges.check_in(db, "user-1", uc.id, completed=False, now=NOW)

    assert result.progress.completed is False
    assert result.user_challenge.checkins_completed == 0
    assert result.user_challenge.progress_percent == 0


def test_checkins_completed_matches_completed_rows(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge(required_checkins=10).id, now=NOW)
    for n, completed in [(1, True), (2, False), (3, True), (4, True), (5, False)]:
        challenges.check_in(db, "user-1", uc.id, checkin_date=_day(n), completed=completed, now=NOW + timedelta(days=4))

    db.refresh(uc)
    completed_rows = db.query(ChallengeProgress).filter(
        ChallengeProgress.user_challenge_id == uc.id,
        ChallengeProgress.completed == True,
    ).count()
    assert uc.checkins_completed == completed_rows == 3


def test_flexible_progress_never_decreases(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge(required_checkins=10).id, now=NOW)

    seen = []
    for n in [3, 1, 6, 2, 5]:
        result = challenges.check_in(db, "user-1", uc.id, checkin_date=_day(n), now=NOW + timedelta(days=5))
        seen.append(result.user_challenge.progress_percent)

    assert seen == sorted(seen)
    assert seen[-1] == 50


def test_seventh_checkin_completes_challenge(db, make_challenge):
    challenge = make_challenge(points_full=70)
    uc = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)

    _check_in_days(db, uc, range(1, 7))
    db.refresh(uc)
    assert uc.status == "active"

    result = challenges.check_in(db, "user-1", uc.id, checkin_date=_day(7), now=NOW + timedelta(days=6))

    assert result.is_complete is True
    assert result.user_challenge.status == "completed"
    assert result.user_challenge.completed_at == NOW + timedelta(days=6)
    assert result.user_challenge.points_earned == 70
    assert result.message == "🎉 Challenge complete! You earned 70 points!"


def test_checkin_on_completed_challenge_is_rejected(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge(required_checkins=1).id, now=NOW)
    challenges.check_in(db, "user-1", uc.id, now=NOW)

    with pytest.raises(NotFoundError):
        challenges.check_in(db, "user-1", uc.id, checkin_date=_day(2), now=NOW)


def test_checkin_by_other_user_is_rejected(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)

    with pytest.raises(NotFoundError):
        challenges.check_in(db, "intruder", uc.id, now=NOW)


def test_streak_resets_after_missed_day(db, make_challenge):
    challenge = make_challenge(challenge_type="streak", required_checkins=None, required_consecutive_days=5)
    uc = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)

    result = _check_in_days(db, uc, [1, 2, 3])
    assert result.user_challenge.current_streak == 3
    assert result.user_challenge.progress_percent == 60
    assert result.message == "🔥 Progress logged! 3/5 days in a row"

    result = _check_in_days(db, uc, [5])
    assert result.user_challenge.current_streak == 1
    assert result.user_challenge.progress_percent == 20
    assert result.user_challenge.checkins_completed == 4


def test_retroactive_checkin_fills_streak_gap(db, make_challenge):
    challenge = make_challenge(challenge_type="streak", required_checkins=None, required_consecutive_days=5, points_full=50)
    uc = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    _check_in_days(db, uc, [1, 2, 3, 5])

    result = challenges.check_in(db, "user-1", uc.id, checkin_date=_day(4), now=NOW + timedelta(days=4))

    assert result.progress.progress_type == "retroactive_checkin"
    assert result.user_challenge.current_streak == 5
    assert result.user_challenge.status == "completed"
    assert result.user_challenge.points_earned == 50


def test_checkin_after_deadline_fails_enrollment(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)
    _check_in_days(db, uc, [1, 2])

    with pytest.raises(NotFoundError):
        challenges.check_in(db, "user-1", uc.id, now=NOW + timedelta(days=8))

    db.refresh(uc)
    assert uc.status == "failed"
    assert uc.failure_reason == "deadline_passed"
    assert uc.checkins_completed == 2


# ─────────────────────────────────────────────────────────────────────────────
# LIQUIDACIÓN
# ─────────────────────────────────────────────────────────────────────────────

def test_abandon_awards_partial_points(db, make_challenge):
    challenge = make_challenge(required_checkins=5, points_full=100)
    uc = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    _check_in_days(db, uc, [1, 2])

    result = challenges.abandon_challenge(db, "user-1", uc.id, now=NOW + timedelta(days=2))

    assert result.partial_points == 40
    assert result.message == "Challenge abandoned. You earned 40 points for your progress!"
    uc = result.user_challenge
    assert uc.status == "abandoned"
    assert uc.failure_reason == "manual_abandonment"
    assert uc.failed_at == NOW + timedelta(days=2)
    assert uc.partial_completion_percent == 40
    assert uc.points_earned == 40


def test_abandon_three_of_seven(db, make_challenge):
    challenge = make_challenge(duration_days=7, required_checkins=7, points_full=70)
    uc = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    _check_in_days(db, uc, [1, 2, 3])

    result = challenges.abandon_challenge(db, "user-1", uc.id, now=NOW + timedelta(days=3))

    assert result.user_challenge.progress_percent == 42
    assert result.partial_points == 30


def test_abandon_without_partial_credit(db, make_challenge):
    challenge = make_challenge(required_checkins=5, points_full=100, points_partial_enabled=False)
    uc = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    _check_in_days(db, uc, [1, 2])

    result = challenges.abandon_challenge(db, "user-1", uc.id, now=NOW)

    assert result.partial_points == 0
    assert result.user_challenge.points_earned == 0
    assert result.message == "Challenge abandoned. Try again when you're ready!"


def test_abandon_requires_active_owned_enrollment(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)

    with pytest.raises(NotFoundError):
        challenges.abandon_challenge(db, "user-2", uc.id, now=NOW)

    challenges.abandon_challenge(db, "user-1", uc.id, now=NOW)
    with pytest.raises(NotFoundError):
        challenges.abandon_challenge(db, "user-1", uc.id, now=NOW)


def test_sweep_fails_overdue_enrollments(db, make_challenge):
    challenge = make_challenge(duration_days=7, required_checkins=7, points_full=70)
    overdue = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    _check_in_days(db, overdue, [1, 2, 3])
    finished = challenges.join_challenge(db, "user-2", make_challenge(required_checkins=1).id, now=NOW)
    challenges.check_in(db, "user-2", finished.id, now=NOW)
    fresh = challenges.join_challenge(db, "user-3", challenge.id, now=NOW + timedelta(days=5))

    expired = challenges.expire_overdue_challenges(db, now=NOW + timedelta(days=8))

    assert expired == 1
    db.refresh(overdue)
    db.refresh(finished)
    db.refresh(fresh)
    assert overdue.status == "failed"
    assert overdue.failure_reason == "deadline_passed"
    assert overdue.partial_completion_percent == 42
    assert overdue.points_earned == 30
    assert finished.status == "completed"
    assert fresh.status == "active"


def test_sweep_with_nothing_overdue(db, make_challenge):
    challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)
    assert challenges.expire_overdue_challenges(db, now=NOW + timedelta(days=1)) == 0


# ─────────────────────────────────────────────────────────────────────────────
# CONSULTAS
# ─────────────────────────────────────────────────────────────────────────────

def test_list_challenges_orders_by_difficulty_then_popularity(db, make_challenge):
    hard = make_challenge(title="Emergency Fund Race", difficulty="hard", total_participants=900)
    easy_small = make_challenge(title="Load Smart", difficulty="easy", total_participants=10)
    medium = make_challenge(title="Salary Split", difficulty="medium", total_participants=50, category="savings")
    easy_big = make_challenge(title="No-Spend Weekend", difficulty="easy", total_participants=2000)
    make_challenge(title="Retired", is_active=False)

    rows = challenges.list_challenges(db)
    assert [c.id for c in rows] == [easy_big.id, easy_small.id, medium.id, hard.id]

    assert [c.id for c in challenges.list_challenges(db, category="savings")] == [medium.id]
    assert [c.id for c in challenges.list_challenges(db, difficulty="hard")] == [hard.id]

    with pytest.raises(ValidationError):
        challenges.list_challenges(db, difficulty="extreme")


def test_active_challenges_listed_by_deadline(db, make_challenge):
    week = challenges.join_challenge(db, "user-1", make_challenge(duration_days=7).id, now=NOW)
    weekend = challenges.join_challenge(db, "user-1", make_challenge(duration_days=2).id, now=NOW)
    done = challenges.join_challenge(db, "user-1", make_challenge(required_checkins=1).id, now=NOW)
    challenges.check_in(db, "user-1", done.id, now=NOW)

    rows = challenges.list_user_active_challenges(db, "user-1", now=NOW + timedelta(hours=12))

    assert [(uc.id, left) for uc, left in rows] == [(weekend.id, 2), (week.id, 7)]


def test_active_listing_expires_overdue(db, make_challenge):
    weekend = challenges.join_challenge(db, "user-1", make_challenge(duration_days=2).id, now=NOW)
    week = challenges.join_challenge(db, "user-1", make_challenge(duration_days=7).id, now=NOW)

    rows = challenges.list_user_active_challenges(db, "user-1", now=NOW + timedelta(days=3))

    assert [uc.id for uc, _ in rows] == [week.id]
    db.refresh(weekend)
    assert weekend.status == "failed"


def test_progress_history_is_oldest_first(db, make_challenge):
    uc = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)
    _check_in_days(db, uc, [3, 1, 2])

    history = challenges.get_progress_history(db, "user-1", uc.id)
    assert [p.checkin_date for p in history] == [_day(1), _day(2), _day(3)]

    with pytest.raises(NotFoundError):
        challenges.get_progress_history(db, "user-2", uc.id)


def test_user_stats(db, make_challenge):
    completed = challenges.join_challenge(db, "user-1", make_challenge(required_checkins=1, points_full=25).id, now=NOW)
    challenges.check_in(db, "user-1", completed.id, now=NOW)
    abandoned = challenges.join_challenge(db, "user-1", make_challenge(required_checkins=5, points_full=100).id, now=NOW)
    _check_in_days(db, abandoned, [1, 2])
    challenges.abandon_challenge(db, "user-1", abandoned.id, now=NOW + timedelta(days=2))
    active = challenges.join_challenge(db, "user-1", make_challenge().id, now=NOW)
    _check_in_days(db, active, [1, 2, 3])

    stats = challenges.user_stats(db, "user-1")

    assert stats == {
        "total_challenges": 3,
        "active_challenges": 1,
        "completed_challenges": 1,
        "failed_challenges": 0,
        "abandoned_challenges": 1,
        "total_points": 65,
        "success_rate": 50.0,
        "current_streak": 3,
    }


def test_global_stats(db, make_challenge):
    challenge = make_challenge(required_checkins=1)
    first = challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    challenges.check_in(db, "user-1", first.id, now=NOW)
    challenges.join_challenge(db, "user-1", challenge.id, now=NOW)
    challenges.join_challenge(db, "user-2", challenge.id, now=NOW)

    stats = challenges.global_stats(db)

    assert stats["totalMembers"] == 2
    assert stats["completedChallenges"] == 1
    assert stats["totalChallengeEntries"] == 3
    assert "timestamp" in stats


def test_seed_challenges_runs_once(db):
    assert seed_challenges(db) == len(DEFAULT_CHALLENGES)
    assert seed_challenges(db) == 0
    assert len(challenges.list_challenges(db)) == len(DEFAULT_CHALLENGES)
