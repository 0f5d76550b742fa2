"""
Tests for the yearly statistics aggregator.
"""

import copy
from datetime import date, datetime, timedelta, timezone

import pytest

from domain import ProjectAllocation, TimeEntry
from yearly_stats import (
    MILESTONES,
    MONTH_NAMES,
    MilestoneFacts,
    compute_yearly_statistics,
    entry_date,
    evaluate_milestones,
    longest_streak,
)


class TestEmptyInput:

    def test_no_entries_returns_none(self):
        assert compute_yearly_statistics([], 2024, 750, 7.5) is None

    def test_entries_from_other_years_return_none(self, make_entry):
        entries = [make_entry("2023-06-01", 8), make_entry("2025-01-02", 8)]
        assert compute_yearly_statistics(entries, 2024, 750, 7.5) is None


class TestSingleEntry:

    @pytest.fixture
    def stats(self, make_entry):
        entry = make_entry("2024-03-01", 8, ("A", 8, True))
        return compute_yearly_statistics([entry], 2024, 100, 7.5)

    def test_totals(self, stats):
        assert stats.year == 2024
        assert stats.total_hours == 8
        assert stats.billable_hours == 8
        assert stats.non_billable_hours == 0
        assert stats.total_revenue == 800
        assert stats.average_hourly_rate == 100
        assert stats.working_days == 1
        assert stats.longest_streak == 1
        assert stats.average_daily_hours == 8

    def test_top_project(self, stats):
        assert len(stats.top_projects) == 1
        top = stats.top_projects[0]
        assert top.name == "A"
        assert top.total_hours == 8
        assert top.revenue == 800
        assert top.percentage_of_year == 100
        assert top.billable_hours == 8
        assert top.non_billable_hours == 0

    def test_month_bucket(self, stats):
        march = stats.monthly_breakdown[2]
        assert march.month == "Mar"
        assert march.total_hours == 8
        assert march.project_hours == {"A": 8}
        assert stats.busiest_month.month == "Mar"
        assert stats.busiest_month.hours == 8
        assert stats.busiest_month.percentage_of_year == 100
        assert stats.least_busy_month.month == "Mar"

    def test_milestones_in_checklist_order(self, stats):
        assert stats.milestones == [
            "⚡ Productive: 6h Daily Average",
            "💼 Overtime Veteran: First Overtime Day",
            "💼 Client Focus: 70%+ Billable",
            "⏰ Dedicated: 7h Daily Average",
            "💰 Efficiency Master: 80%+ Billable",
            "⚡ Workhorse: 8h Daily Average",
            "💰 Perfect Client: 90%+ Billable",
            "💰 Perfect Year: 100% Billable",
        ]


class TestOvertime:

    def test_overtime_beyond_workday(self, make_entry):
        stats = compute_yearly_statistics([make_entry("2024-02-01", 10)], 2024, 750, 7.5)
        assert stats.total_overtime_hours == 2.5
        assert stats.overtime_days == 1
        assert stats.average_overtime_hours == 2.5
        assert stats.overtime_percentage == 25

    def test_no_overtime_at_or_below_workday(self, make_entry):
        entries = [make_entry("2024-02-01", 7.5), make_entry("2024-02-02", 6)]
        stats = compute_yearly_statistics(entries, 2024, 750, 7.5)
        assert stats.total_overtime_hours == 0
        assert stats.overtime_days == 0
        assert stats.average_overtime_hours == 0
        assert stats.overtime_percentage == 0

    def test_average_over_overtime_days_only(self, make_entry):
        entries = [make_entry("2024-02-01", 9), make_entry("2024-02-02", 10.5), make_entry("2024-02-03", 5)]
        stats = compute_yearly_statistics(entries, 2024, 750, 7.5)
        assert stats.total_overtime_hours == 4.5
        assert stats.overtime_days == 2
        assert stats.average_overtime_hours == 2.25


class TestStreaks:

    def test_gap_breaks_streak(self, make_entry):
        entries = [make_entry("2024-01-01", 8), make_entry("2024-01-02", 8), make_entry("2024-01-04", 8)]
        assert compute_yearly_statistics(entries, 2024, 750, 7.5).longest_streak == 2

    def test_unsorted_input(self, make_entry):
        entries = [make_entry(d, 1) for d in ("2024-05-03", "2024-01-01", "2024-05-01", "2024-05-02")]
        assert compute_yearly_statistics(entries, 2024, 750, 7.5).longest_streak == 3

    def test_streak_crosses_month_boundary(self):
        days = [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]
        assert longest_streak(days) == 3

    def test_duplicate_dates_count_once(self):
        days = [date(2024, 1, 1), date(2024, 1, 1), date(2024, 1, 2)]
        assert longest_streak(days) == 2

    def test_empty(self):
        assert longest_streak([]) == 0


class TestProjects:

    def test_equal_revenue_ranks_by_hours(self, make_entry):
        entries = [
            make_entry("2024-04-01", 6, ("B", 4, True)),
            make_entry("2024-04-02", 6, ("A", 4, True), ("A", 2, False)),
        ]
        stats = compute_yearly_statistics(entries, 2024, 100, 7.5)
        assert [p.name for p in stats.top_projects] == ["A", "B"]
        assert stats.top_projects[0].revenue == stats.top_projects[1].revenue == 400

    def test_revenue_ranks_before_hours(self, make_entry):
        entries = [make_entry("2024-04-01", 8, ("Internal", 6, False), ("Client", 2, True))]
        stats = compute_yearly_statistics(entries, 2024, 100, 7.5)
        assert [p.name for p in stats.top_projects] == ["Client", "Internal"]

    def test_full_ties_keep_first_seen_order(self, make_entry):
        entries = [make_entry("2024-04-01", 4, ("Zeta", 2), ("Alpha", 2))]
        stats = compute_yearly_statistics(entries, 2024, 100, 7.5)
        assert [p.name for p in stats.top_projects] == ["Zeta", "Alpha"]

    def test_non_billable_allocation(self, make_entry):
        entries = [make_entry("2024-04-01", 8, ("A", 5, True), ("Admin", 3, False))]
        stats = compute_yearly_statistics(entries, 2024, 100, 7.5)
        assert stats.billable_hours == 5
        assert stats.non_billable_hours == 3
        assert stats.total_revenue == 500
        admin = next(p for p in stats.top_projects if p.name == "Admin")
        assert admin.total_hours == 3
        assert admin.non_billable_hours == 3
        assert admin.billable_hours == 0
        assert admin.revenue == 0
        assert admin.percentage_of_year == 37.5

    def test_missing_billable_flag_counts_as_billable(self):
        entry = TimeEntry(
            work_date=date(2024, 4, 1),
            total_hours=4,
            projects=[ProjectAllocation(name="A", hours_allocated=4, billable=None)],
        )
        stats = compute_yearly_statistics([entry], 2024, 100, 7.5)
        assert stats.billable_hours == 4
        assert stats.total_revenue == 400

    def test_hours_are_summed_across_entries(self, make_entry):
        entries = [
            make_entry("2024-01-10", 5, ("A", 5)),
            make_entry("2024-02-10", 5, ("A", 3), ("B", 2)),
        ]
        stats = compute_yearly_statistics(entries, 2024, 100, 7.5)
        a = stats.top_projects[0]
        assert (a.name, a.total_hours, a.revenue, a.percentage_of_year) == ("A", 8, 800, 80)
        assert stats.monthly_breakdown[1].project_hours == {"A": 3, "B": 2}


class TestMonths:

    def test_twelve_buckets_in_calendar_order(self, make_entry):
        stats = compute_yearly_statistics([make_entry("2024-07-15", 3)], 2024, 750, 7.5)
        assert len(stats.monthly_breakdown) == 12
        assert [m.month for m in stats.monthly_breakdown] == MONTH_NAMES
        assert [m.total_hours for m in stats.monthly_breakdown] == [0] * 6 + [3] + [0] * 5
        assert stats.monthly_breakdown[0].project_hours == {}

    def test_busiest_and_least_busy(self, make_entry):
        entries = [
            make_entry("2024-01-10", 8),
            make_entry("2024-03-01", 10),
            make_entry("2024-03-02", 10),
            make_entry("2024-05-20", 4),
        ]
        stats = compute_yearly_statistics(entries, 2024, 750, 7.5)
        assert (stats.busiest_month.month, stats.busiest_month.hours) == ("Mar", 20)
        assert stats.busiest_month.percentage_of_year == 62.5
        assert (stats.least_busy_month.month, stats.least_busy_month.hours) == ("May", 4)
        assert stats.least_busy_month.percentage_of_year == 12.5

    def test_ties_keep_earlier_month(self, make_entry):
        entries = [make_entry("2024-02-01", 8), make_entry("2024-01-01", 8)]
        stats = compute_yearly_statistics(entries, 2024, 750, 7.5)
        assert stats.busiest_month.month == "Jan"
        assert stats.least_busy_month.month == "Jan"


class TestDerivedValues:

    def test_working_days_are_distinct_dates(self, make_entry):
        entries = [make_entry("2024-05-05", 4), make_entry("2024-05-05", 9), make_entry("2024-05-06", 2)]
        stats = compute_yearly_statistics(entries, 2024, 750, 7.5)
        assert stats.working_days == 2
        assert stats.average_daily_hours == 7.5
        assert stats.overtime_days == 1
        assert "🏃 Marathon Day: 12h+ in One Day" in stats.milestones

    def test_coffee_equivalent(self, make_entry):
        entries = [make_entry("2024-05-01", 10.5), make_entry("2024-05-02", 10.5)]
        assert compute_yearly_statistics(entries, 2024, 750, 7.5).coffee_equivalent == 5

    def test_values_rounded_to_two_decimals(self, make_entry):
        entries = [make_entry("2024-05-01", 7.333333, ("A", 1 / 3, True))]
        stats = compute_yearly_statistics(entries, 2024, 10, 7.5)
        assert stats.total_hours == 7.33
        assert stats.billable_hours == 0.33
        assert stats.total_revenue == 3.33
        assert stats.top_projects[0].percentage_of_year == 4.55


class TestLenientInput:

    def test_missing_total_hours_counts_as_zero(self, make_entry):
        stats = compute_yearly_statistics([make_entry("2024-05-01", None, ("A", 2))], 2024, 100, 7.5)
        assert stats.total_hours == 0
        assert stats.working_days == 1
        assert stats.top_projects[0].total_hours == 2
        assert stats.top_projects[0].percentage_of_year == 0
        assert stats.busiest_month is None
        assert stats.least_busy_month is None
        assert stats.overtime_percentage == 0

    def test_unreadable_date_is_skipped(self, make_entry):
        entries = [TimeEntry(work_date="not-a-date", total_hours=5), make_entry("2024-05-01", 3)]
        stats = compute_yearly_statistics(entries, 2024, 100, 7.5)
        assert stats.total_hours == 3
        assert stats.working_days == 1

    def test_iso_strings_accepted(self):
        entry = TimeEntry(work_date="2024-08-09", total_hours=4)
        assert compute_yearly_statistics([entry], 2024, 100, 7.5).monthly_breakdown[7].total_hours == 4


class TestEntryDate:

    def test_aware_datetime_is_read_in_utc(self):
        local = datetime(2025, 1, 1, 0, 30, tzinfo=timezone(timedelta(hours=2)))
        assert entry_date(local) == date(2024, 12, 31)

    def test_iso_datetime_string(self):
        assert entry_date("2024-12-31T23:30:00-02:00") == date(2025, 1, 1)
        assert entry_date("2024-06-01T10:00:00Z") == date(2024, 6, 1)

    def test_naive_datetime_and_date(self):
        assert entry_date(datetime(2024, 6, 1, 23, 59)) == date(2024, 6, 1)
        assert entry_date(date(2024, 6, 1)) == date(2024, 6, 1)

    def test_unreadable(self):
        assert entry_date("31/12/2024") is None
        assert entry_date(None) is None

    def test_year_filter_uses_utc(self):
        entry = TimeEntry(work_date=datetime(2025, 1, 1, 0, 30, tzinfo=timezone(timedelta(hours=2))), total_hours=4)
        assert compute_yearly_statistics([entry], 2024, 100, 7.5).total_hours == 4
        assert compute_yearly_statistics([entry], 2025, 100, 7.5) is None


class TestMilestones:

    def test_weekend_days(self, make_entry):
        saturdays = [make_entry((date(2024, 1, 6) + timedelta(weeks=i)).isoformat(), 1) for i in range(10)]
        stats = compute_yearly_statistics(saturdays, 2024, 750, 7.5)
        assert "🌱 Getting Started: 10+ Hours" in stats.milestones
        assert "📝 Regular: First 10 Entries" in stats.milestones
        assert "🎮 Weekend Warrior: 10+ Weekend Days" in stats.milestones
        assert stats.milestones.index("🌱 Getting Started: 10+ Hours") < stats.milestones.index(
            "🎮 Weekend Warrior: 10+ Weekend Days")

    def test_attendance_against_calendar_days(self, make_entry):
        days = [date(2023, 1, 1) + timedelta(days=i) for i in range(346)]
        stats = compute_yearly_statistics([make_entry(d.isoformat(), 1) for d in days], 2023, 750, 7.5)
        assert "🔥 Work Machine: 90%+ Work Days" in stats.milestones
        assert "👑 Perfect Attendance: 95%+ Work Days" not in stats.milestones
        assert "🔥 Immortal: 90-Day Streak" in stats.milestones

    def test_project_diversity(self, make_entry):
        allocs = [(f"P{i}", 1) for i in range(5)]
        stats = compute_yearly_statistics([make_entry("2024-03-01", 5, *allocs)], 2024, 750, 7.5)
        assert "🎯 Project Explorer: 5+ Different Projects" in stats.milestones
        assert "🔥 Project Master: 10+ Different Projects" not in stats.milestones

    def test_labels_are_unique(self):
        labels = [label for _, label in MILESTONES]
        assert len(labels) == len(set(labels))

    def test_evaluate_custom_checklist(self):
        facts = MilestoneFacts(
            total_hours=0, billable_ratio=0, longest_streak=0, working_days=0, entry_count=0,
            average_daily_hours=0, overtime_days=0, total_overtime_hours=0, coffee_equivalent=0,
            max_month_hours=0, weekend_days=0, max_day_hours=0, attendance_percentage=0, unique_projects=0,
        )
        checklist = [(lambda f: True, "always"), (lambda f: f.total_hours > 0, "worked"), (lambda f: True, "last")]
        assert evaluate_milestones(facts, checklist) == ["always", "last"]
        assert evaluate_milestones(facts) == []


class TestPurity:

    def test_repeated_calls_are_identical(self, make_entry):
        entries = [
            make_entry("2024-01-01", 9, ("A", 5), ("B", 4, False)),
            make_entry("2024-01-02", 6, ("B", 6)),
        ]
        snapshot = copy.deepcopy(entries)
        first = compute_yearly_statistics(entries, 2024, 750, 7.5)
        second = compute_yearly_statistics(entries, 2024, 750, 7.5)
        assert first == second
        assert first.to_dict() == second.to_dict()
        assert entries == snapshot

    def test_accepts_any_iterable(self, make_entry):
        entries = (e for e in [make_entry("2024-01-01", 2)])
        assert compute_yearly_statistics(entries, 2024, 750, 7.5).total_hours == 2

    def test_to_dict_shape(self, make_entry):
        stats = compute_yearly_statistics([make_entry("2024-01-01", 2, ("A", 2))], 2024, 750, 7.5)
        data = stats.to_dict()
        assert data["topProjects"][0]["percentageOfYear"] == 100
        assert len(data["monthlyBreakdown"]) == 12
        assert data["busiestMonth"] == {"month": "Jan", "hours": 2, "percentageOfYear": 100}
        assert set(data) >= {"totalOvertimeHours", "overtimeDays", "averageOvertimeHours", "overtimePercentage",
                             "coffeeEquivalent", "milestones", "longestStreak", "workingDays"}
