"""
Coaching insight tests

Verify:
1. Streak messages above 3 and 7 days, from the activity streak
2. Habits under 3 completions in 7 days are named, two at most
3. Weekend drop-off needs more than half of the last 8 weekend days missed
4. The closing tip depends only on the as_of day
"""

from datetime import timedelta

from habitrat.features.scoring.insights import (
    GENERAL_TIPS,
    WEEKEND_INSIGHT,
    activity_streak,
    general_tip,
    generate_insights,
    weekend_miss_share,
)
from habitrat.tests.factories import entries_for, make_habit, view_of

# fixed_as_of is a Monday: offsets 1 and 2 (mod 7) are Sunday and Saturday
WEEKDAYS = [d for d in range(28) if d % 7 not in (1, 2)]
WEEKENDS = [d for d in range(28) if d % 7 in (1, 2)]


class TestStreakInsight:
    def test_hot_streak(self, fixed_as_of):
        habits = [make_habit("run")]
        view = view_of(entries_for("run", fixed_as_of, done=range(10)))
        insights = generate_insights(habits, view, fixed_as_of)
        assert insights[0] == "🔥 You're on fire! 10 days streak. Keep it up!"

    def test_momentum_streak(self, fixed_as_of):
        habits = [make_habit("run")]
        view = view_of(entries_for("run", fixed_as_of, done=range(5)))
        insights = generate_insights(habits, view, fixed_as_of)
        assert insights[0] == "🚀 Great momentum! You've hit 5 days in a row."

    def test_three_days_is_not_enough(self, fixed_as_of):
        habits = [make_habit("run")]
        view = view_of(entries_for("run", fixed_as_of, done=range(3)))
        insights = generate_insights(habits, view, fixed_as_of)
        assert not any(i.startswith(("🔥", "🚀")) for i in insights)

    def test_explicit_streak_wins(self, fixed_as_of):
        insights = generate_insights([make_habit("run")], view_of(), fixed_as_of, streak=8)
        assert insights[0] == "🔥 You're on fire! 8 days streak. Keep it up!"

    def test_activity_streak_counts_any_habit_and_open_day(self, fixed_as_of):
        habits = [make_habit("run"), make_habit("read")]
        view = view_of(
            entries_for("run", fixed_as_of, done=[1, 3]),
            entries_for("read", fixed_as_of, done=[2, 4], missed=[0]),
        )
        assert activity_streak(habits, view, fixed_as_of) == 4
        assert activity_streak(habits, view, fixed_as_of - timedelta(days=2)) == 3


class TestStrugglingInsight:
    def test_names_first_two_struggling_habits(self, fixed_as_of):
        habits = [make_habit("run"), make_habit("read"), make_habit("yoga"), make_habit("walk")]
        view = view_of(
            entries_for("run", fixed_as_of, done=range(7)),
            entries_for("read", fixed_as_of, done=[0, 1]),
        )
        insights = generate_insights(habits, view, fixed_as_of)
        assert "💪 Focus on Read, Yoga. Consistency is key to building lasting habits." in insights

    def test_three_completions_in_seven_days_is_fine(self, fixed_as_of):
        habits = [make_habit("run")]
        view = view_of(entries_for("run", fixed_as_of, done=[0, 3, 6, 7, 8, 9]))
        insights = generate_insights(habits, view, fixed_as_of)
        assert not any(i.startswith("💪") for i in insights)

    def test_completion_eight_days_ago_does_not_count(self, fixed_as_of):
        habits = [make_habit("run")]
        view = view_of(entries_for("run", fixed_as_of, done=[0, 3, 7]))
        insights = generate_insights(habits, view, fixed_as_of)
        assert "💪 Focus on Run. Consistency is key to building lasting habits." in insights


class TestWeekendInsight:
    def test_weekday_only_habit(self, fixed_as_of):
        habits = [make_habit("run")]
        view = view_of(entries_for("run", fixed_as_of, done=WEEKDAYS))
        assert weekend_miss_share(habits, view, fixed_as_of) == 1.0
        assert WEEKEND_INSIGHT in generate_insights(habits, view, fixed_as_of)

    def test_half_missed_is_not_a_drop_off(self, fixed_as_of):
        habits = [make_habit("run")]
        view = view_of(entries_for("run", fixed_as_of, done=WEEKDAYS + WEEKENDS[:4]))
        assert weekend_miss_share(habits, view, fixed_as_of) == 0.5
        assert WEEKEND_INSIGHT not in generate_insights(habits, view, fixed_as_of)

    def test_half_the_habits_done_is_not_a_miss(self, fixed_as_of):
        habits = [make_habit("run"), make_habit("read")]
        view = view_of(entries_for("run", fixed_as_of, done=range(28)))
        assert weekend_miss_share(habits, view, fixed_as_of) == 0.0


class TestGeneralTip:
    def test_tip_closes_every_list(self, fixed_as_of):
        assert generate_insights([], view_of(), fixed_as_of) == [general_tip(fixed_as_of)]

    def test_tip_rotates_by_day(self, fixed_as_of):
        tips = [general_tip(fixed_as_of + timedelta(days=i)) for i in range(3)]
        assert sorted(tips) == sorted(GENERAL_TIPS)
        assert general_tip(fixed_as_of) == general_tip(fixed_as_of + timedelta(days=3))
