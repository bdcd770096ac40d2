"""Tests for recording completions and the streak maintenance sweep."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from apto.errors import FrequencyDecodeError, HabitNotFoundError, StorageError
from apto.infra.repositories import SQLModelHabitRepository
from apto.models import Custom, Daily, Habit, Interval, Monthly, Weekly
from apto.services.tracker import due_habits, next_streak

from tests.conftest import at

MON = date(2024, 1, 1)
MWF = Weekly({1, 3, 5})


def _complete(tracker, habit_id: int, day: date, hour: int = 12):
    return tracker.record_completion(habit_id, completed_at=at(day, hour))


class TestRecordCompletion:
    """Streak transitions when a completion is recorded."""

    def test_first_completion_starts_streak(self, tracker, repo, habit_factory):
        habit = habit_factory(frequency=Daily())

        result = _complete(tracker, habit.id, MON)

        assert (result.current_streak, result.longest_streak) == (1, 1)
        stored = repo.get_habit(habit.id)
        assert stored.current_streak == 1
        assert stored.longest_streak == 1
        assert stored.last_completed == at(MON)
        assert repo.count_completions(habit.id) == 1

    def test_uses_clock_when_no_timestamp_given(self, tracker, repo, clock, habit_factory):
        habit = habit_factory()
        clock.set_day(date(2024, 3, 9), hour=8)

        tracker.record_completion(habit.id, value=2.5, notes="felt good", mood=4, difficulty=2)

        stored = repo.get_habit(habit.id)
        assert stored.last_completed == at(date(2024, 3, 9), 8)
        completion = repo.list_completions(habit.id)[0]
        assert completion.value == 2.5
        assert completion.notes == "felt good"
        assert (completion.mood, completion.difficulty) == (4, 2)

    def test_consecutive_daily_completions(self, tracker, repo, habit_factory):
        habit = habit_factory(frequency=Daily())

        for offset in range(3):
            result = _complete(tracker, habit.id, MON + timedelta(days=offset))

        assert (result.current_streak, result.longest_streak) == (3, 3)

    def test_same_day_repeat_keeps_streak(self, tracker, repo, habit_factory):
        habit = habit_factory(frequency=Daily())
        _complete(tracker, habit.id, MON)
        _complete(tracker, habit.id, MON + timedelta(days=1), hour=8)

        result = _complete(tracker, habit.id, MON + timedelta(days=1), hour=20)

        assert result.current_streak == 2
        assert repo.count_completions(habit.id) == 3
        assert repo.get_habit(habit.id).last_completed == at(MON + timedelta(days=1), 20)

    def test_skipped_day_resets_to_one(self, tracker, habit_factory):
        habit = habit_factory(frequency=Daily())
        _complete(tracker, habit.id, MON)
        _complete(tracker, habit.id, MON + timedelta(days=1))

        result = _complete(tracker, habit.id, MON + timedelta(days=3))

        assert result.current_streak == 1
        assert result.longest_streak == 2

    def test_weekly_pattern_streak(self, tracker, habit_factory):
        habit = habit_factory(frequency=MWF)
        scheduled = [MON, date(2024, 1, 3), date(2024, 1, 5), date(2024, 1, 8)]

        streaks = [_complete(tracker, habit.id, day).current_streak for day in scheduled]
        assert streaks == [1, 2, 3, 4]

        # Skip Wednesday Jan 10, complete Friday Jan 12
        result = _complete(tracker, habit.id, date(2024, 1, 12))
        assert result.current_streak == 1
        assert result.longest_streak == 4

    def test_monthly_pattern_continues_across_months(self, tracker, habit_factory):
        habit = habit_factory(frequency=Monthly({15}))
        _complete(tracker, habit.id, date(2024, 1, 15))

        result = _complete(tracker, habit.id, date(2024, 2, 15))

        assert result.current_streak == 2

    def test_interval_pattern(self, tracker, habit_factory):
        habit = habit_factory(frequency=Interval(3))
        _complete(tracker, habit.id, MON)
        assert _complete(tracker, habit.id, date(2024, 1, 4)).current_streak == 2
        assert _complete(tracker, habit.id, date(2024, 1, 9)).current_streak == 1

    def test_longest_never_decreases(self, tracker, habit_factory):
        habit = habit_factory(frequency=Daily())
        offsets = [0, 1, 2, 3, 6, 7, 7, 12, 13, 14, 15, 16, 30]

        previous_longest = 0
        for offset in offsets:
            result = _complete(tracker, habit.id, MON + timedelta(days=offset))
            assert result.longest_streak >= previous_longest
            assert result.longest_streak >= result.current_streak
            previous_longest = result.longest_streak

        assert previous_longest == 5

    def test_custom_pattern_never_resets(self, tracker, habit_factory):
        habit = habit_factory(frequency=Custom("when inspired"))
        _complete(tracker, habit.id, MON)

        result = _complete(tracker, habit.id, MON + timedelta(days=90))

        assert result.current_streak == 2

    def test_missing_habit(self, tracker):
        with pytest.raises(HabitNotFoundError):
            _complete(tracker, 999, MON)

    def test_naive_timestamp_rejected(self, tracker, habit_factory):
        habit = habit_factory()
        with pytest.raises(ValueError):
            tracker.record_completion(habit.id, completed_at=datetime(2024, 1, 1, 12))

    def test_backdated_completion_rejected(self, tracker, repo, habit_factory):
        habit = habit_factory()
        _complete(tracker, habit.id, date(2024, 1, 5))

        with pytest.raises(ValueError):
            _complete(tracker, habit.id, date(2024, 1, 4))

        assert repo.count_completions(habit.id) == 1
        assert repo.get_habit(habit.id).last_completed == at(date(2024, 1, 5))

    def test_failed_habit_update_rolls_back_insert(
        self, tracker, repo, habit_factory, monkeypatch
    ):
        habit = habit_factory()
        _complete(tracker, habit.id, MON)

        def _boom(self, *args, **kwargs):
            raise StorageError("disk I/O error")

        monkeypatch.setattr(SQLModelHabitRepository, "update_habit_streak_fields", _boom)

        with pytest.raises(StorageError):
            _complete(tracker, habit.id, MON + timedelta(days=1))

        assert repo.count_completions(habit.id) == 1
        stored = repo.get_habit(habit.id)
        assert stored.current_streak == 1
        assert stored.last_completed == at(MON)


def test_next_streak_rules():
    assert next_streak(Daily(), None, 0, MON) == 1
    assert next_streak(Daily(), at(MON), 4, MON) == 4
    assert next_streak(Daily(), at(MON), 4, MON + timedelta(days=1)) == 5
    assert next_streak(Daily(), at(MON), 4, MON + timedelta(days=2)) == 1


class TestSweep:
    """The maintenance sweep zeroes streaks that missed a due day."""

    def _streak(self, tracker, habit, days):
        for day in days:
            _complete(tracker, habit.id, day)

    def test_missed_daily_resets_current_only(self, tracker, repo, habit_factory):
        habit = habit_factory(frequency=Daily())
        self._streak(tracker, habit, [MON, MON + timedelta(days=1), MON + timedelta(days=2)])

        reset = tracker.sweep(today=MON + timedelta(days=4))

        assert reset == {habit.id}
        stored = repo.get_habit(habit.id)
        assert stored.current_streak == 0
        assert stored.longest_streak == 3

    def test_completed_yesterday_is_kept(self, tracker, repo, habit_factory):
        habit = habit_factory(frequency=Daily())
        self._streak(tracker, habit, [MON])

        assert tracker.sweep(today=MON + timedelta(days=1)) == set()
        assert repo.get_habit(habit.id).current_streak == 1

    def test_sweep_is_idempotent(self, tracker, repo, habit_factory):
        habit = habit_factory(frequency=Daily())
        self._streak(tracker, habit, [MON])
        today = MON + timedelta(days=5)

        assert tracker.sweep(today=today) == {habit.id}
        assert tracker.sweep(today=today) == set()
        assert repo.get_habit(habit.id).current_streak == 0

    def test_weekly_off_days_are_not_misses(self, tracker, repo, habit_factory):
        habit = habit_factory(frequency=MWF)
        self._streak(tracker, habit, [MON])

        # Tuesday is not scheduled; Wednesday (today) is still open
        assert tracker.sweep(today=date(2024, 1, 3)) == set()
        # Wednesday passed without a completion
        assert tracker.sweep(today=date(2024, 1, 4)) == {habit.id}

    def test_interval_waits_for_the_spacing(self, tracker, habit_factory):
        habit = habit_factory(frequency=Interval(3))
        self._streak(tracker, habit, [MON])

        assert tracker.sweep(today=date(2024, 1, 4)) == set()
        assert tracker.sweep(today=date(2024, 1, 5)) == {habit.id}

    def test_inactive_and_zero_streak_habits_are_skipped(self, tracker, repo, habit_factory):
        paused = habit_factory(name="Paused")
        self._streak(tracker, paused, [MON])
        repo.set_active(paused.id, False)
        never_done = habit_factory(name="Never done")

        assert tracker.sweep(today=MON + timedelta(days=10)) == set()
        assert repo.get_habit(paused.id).current_streak == 1
        assert repo.get_habit(never_done.id).current_streak == 0

    def test_defaults_to_clock_date(self, tracker, clock, habit_factory):
        habit = habit_factory()
        self._streak(tracker, habit, [MON])
        clock.set_day(MON + timedelta(days=3))

        assert tracker.sweep() == {habit.id}

    def test_malformed_frequency_aborts_sweep(self, tracker, session_factory):
        with session_factory() as session:
            session.add(
                Habit(
                    name="Broken",
                    frequency_type="weekly",
                    frequency_data="oops",
                    current_streak=2,
                    longest_streak=2,
                    last_completed=at(MON),
                )
            )
            session.commit()

        with pytest.raises(FrequencyDecodeError):
            tracker.sweep(today=MON + timedelta(days=7))


class TestDueHabits:
    def test_filters_by_schedule_and_state(self, repo, habit_factory):
        today = date(2024, 1, 3)  # Wednesday
        daily = habit_factory(name="Daily")
        weekly = habit_factory(name="MWF", frequency=MWF)
        habit_factory(name="Tuesdays", frequency=Weekly({2}))
        habit_factory(name="Paused", is_active=False)
        habit_factory(name="Future", start_date=date(2024, 2, 1))
        habit_factory(name="Ended", end_date=date(2023, 12, 31))

        due = due_habits(repo.list_habits(include_inactive=True), today)

        assert {habit.id for habit in due} == {daily.id, weekly.id}

    def test_completed_today_is_not_due(self, tracker, repo, habit_factory):
        habit = habit_factory()
        _complete(tracker, habit.id, MON)

        assert due_habits(repo.list_habits(), MON) == []
        assert [h.id for h in due_habits(repo.list_habits(), MON + timedelta(days=1))] == [habit.id]
