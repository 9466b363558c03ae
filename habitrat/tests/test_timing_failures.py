"""
Time-of-day heatmap and failure-reason tests
"""

from datetime import date, timedelta

from habitrat.features.scoring.timing import analyze_failure_reasons, generate_time_heatmap
from habitrat.tests.factories import detailed_entry, entries_for, view_of


class TestHeatmap:
    def test_buckets_by_weekday_and_hour(self, fixed_as_of):
        sunday = date(2025, 6, 29)
        view = view_of([
            detailed_entry("h1", sunday, True, hour=9),
            detailed_entry("h1", sunday - timedelta(days=7), True, hour=9),
            detailed_entry("h1", fixed_as_of, True, hour=9),
        ])
        cells = generate_time_heatmap("h1", view, fixed_as_of)

        assert [(c.day, c.hour, c.count) for c in cells] == [(0, 9, 2), (1, 9, 1)]
        assert cells[0].intensity == 1.0
        assert cells[1].intensity == 0.5

    def test_ignores_entries_without_time_and_misses(self, fixed_as_of):
        view = view_of(
            entries_for("h1", fixed_as_of, done=range(1, 10)),
            [detailed_entry("h1", fixed_as_of, False, hour=7)],
        )
        assert generate_time_heatmap("h1", view, fixed_as_of) == []

    def test_window_excludes_old_entries(self, fixed_as_of):
        view = view_of([detailed_entry("h1", fixed_as_of - timedelta(days=90), True, hour=9)])
        assert generate_time_heatmap("h1", view, fixed_as_of) == []


class TestFailureReasons:
    def test_top_reasons_with_percentages(self, fixed_as_of):
        entries = [
            detailed_entry("h1", fixed_as_of - timedelta(days=d), False, reason="tired")
            for d in (1, 2, 3)
        ]
        entries.append(detailed_entry("h1", fixed_as_of - timedelta(days=4), False, reason="busy"))
        entries.append(detailed_entry("h1", fixed_as_of - timedelta(days=5), True, reason="ignored"))
        summary = analyze_failure_reasons("h1", view_of(entries), fixed_as_of)

        assert summary.total_failures == 4
        assert [(r.reason, r.percentage) for r in summary.top_reasons] == [("tired", 75), ("busy", 25)]

    def test_keeps_top_three(self, fixed_as_of):
        reasons = ["a", "b", "b", "c", "c", "c", "d", "d", "d", "d"]
        entries = [
            detailed_entry("h1", fixed_as_of - timedelta(days=i), False, reason=r)
            for i, r in enumerate(reasons)
        ]
        summary = analyze_failure_reasons("h1", view_of(entries), fixed_as_of)
        assert [r.reason for r in summary.top_reasons] == ["d", "c", "b"]
        assert summary.total_failures == 10

    def test_no_failures(self, fixed_as_of):
        view = view_of(entries_for("h1", fixed_as_of, missed=range(10)))
        summary = analyze_failure_reasons("h1", view, fixed_as_of)
        assert summary.top_reasons == []
        assert summary.total_failures == 0

    def test_percentages_round_half_up(self, fixed_as_of):
        reasons = ["tired"] * 7 + ["busy"]
        entries = [
            detailed_entry("h1", fixed_as_of - timedelta(days=i), False, reason=r)
            for i, r in enumerate(reasons)
        ]
        summary = analyze_failure_reasons("h1", view_of(entries), fixed_as_of)
        # 87.5 and 12.5 both round up
        assert [(r.reason, r.percentage) for r in summary.top_reasons] == [("tired", 88), ("busy", 13)]
