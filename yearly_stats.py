# yearly_stats.py
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable

from domain import MonthHighlight, MonthStats, ProjectStats, TimeEntry, YearlyStatistics, entry_date

logger = logging.getLogger(__name__)

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
HOURS_PER_COFFEE = 4


@dataclass(frozen=True)
class MilestoneFacts:
    """Aggregates the milestone checklist is evaluated against (unrounded)."""
    total_hours: float
    billable_ratio: float
    longest_streak: int
    working_days: int
    entry_count: int
    average_daily_hours: float
    overtime_days: int
    total_overtime_hours: float
    coffee_equivalent: int
    max_month_hours: float
    weekend_days: int
    max_day_hours: float
    attendance_percentage: float
    unique_projects: int


Milestone = tuple[Callable[[MilestoneFacts], bool], str]

MILESTONES: list[Milestone] = [
    # beginner
    (lambda f: f.total_hours >= 10, "🌱 Getting Started: 10+ Hours"),
    (lambda f: f.total_hours >= 50, "🔥 Month Warrior: 50+ Hours"),
    (lambda f: f.longest_streak >= 5, "📈 Consistency: 5-Day Streak"),
    (lambda f: f.working_days >= 25, "🗓️ Dedicated: 25+ Work Days"),
    (lambda f: f.total_hours >= 100, "💪 Century Club: 100+ Hours"),
    (lambda f: f.entry_count >= 10, "📝 Regular: First 10 Entries"),
    (lambda f: f.average_daily_hours >= 6, "⚡ Productive: 6h Daily Average"),
    (lambda f: f.overtime_days >= 1, "💼 Overtime Veteran: First Overtime Day"),
    # intermediate
    (lambda f: f.total_hours >= 250, "🚀 Acceleration: 250+ Hours"),
    (lambda f: f.longest_streak >= 14, "🔥 Fortitude: 2-Week Streak"),
    (lambda f: f.working_days >= 50, "🎯 Dedicated Professional: 50+ Days"),
    (lambda f: f.total_hours >= 500, "🎯 Half Marathon: 500+ Hours"),
    (lambda f: f.billable_ratio > 0.7, "💼 Client Focus: 70%+ Billable"),
    (lambda f: f.average_daily_hours >= 7, "⏰ Dedicated: 7h Daily Average"),
    (lambda f: f.total_overtime_hours >= 50, "🔥 Overtime Master: 50h Overtime"),
    (lambda f: f.entry_count >= 50, "📊 Diligent: 50+ Time Entries"),
    # advanced
    (lambda f: f.total_hours >= 1000, "🎯 Thousand Club: 1000+ Hours"),
    (lambda f: f.longest_streak >= 30, "🔥 Iron Will: 30-Day Streak"),
    (lambda f: f.working_days >= 100, "💼 Dedicated Expert: 100+ Days"),
    (lambda f: f.total_hours >= 1500, "🚀 High Achiever: 1500+ Hours"),
    (lambda f: f.billable_ratio > 0.8, "💰 Efficiency Master: 80%+ Billable"),
    (lambda f: f.average_daily_hours >= 8, "⚡ Workhorse: 8h Daily Average"),
    (lambda f: f.coffee_equivalent >= 250, "☕ Caffeinated: 250+ Coffee Cups"),
    (lambda f: f.total_overtime_hours >= 100, "🔥 Overtime Champion: 100h Overtime"),
    (lambda f: f.entry_count >= 100, "📝 Meticulous: 100+ Entries"),
    # expert
    (lambda f: f.total_hours >= 2000, "⭐ Mastery: 2000+ Hours"),
    (lambda f: f.longest_streak >= 60, "🔥 Unstoppable: 60-Day Streak"),
    (lambda f: f.working_days >= 200, "📅 Work Legend: 200+ Days"),
    (lambda f: f.total_hours >= 2500, "🚀 Superhuman: 2500+ Hours"),
    (lambda f: f.billable_ratio > 0.9, "💰 Perfect Client: 90%+ Billable"),
    (lambda f: f.average_daily_hours >= 9, "⚡ Machine: 9h Daily Average"),
    (lambda f: f.coffee_equivalent >= 500, "☕ Coffee Master: 500+ Cups"),
    (lambda f: f.total_overtime_hours >= 200, "🔥 Overtime Titan: 200h Overtime"),
    (lambda f: f.entry_count >= 200, "📝 Data Master: 200+ Entries"),
    # legendary
    (lambda f: f.total_hours >= 3000, "👑 Legend: 3000+ Hours"),
    (lambda f: f.longest_streak >= 90, "🔥 Immortal: 90-Day Streak"),
    (lambda f: f.working_days >= 250, "📅 Workaholic: 250+ Days"),
    (lambda f: f.total_hours >= 4000, "🚀 Demigod: 4000+ Hours"),
    (lambda f: f.billable_ratio >= 1.0, "💰 Perfect Year: 100% Billable"),
    (lambda f: f.average_daily_hours >= 10, "⚡ Beast Mode: 10h Daily Average"),
    (lambda f: f.total_overtime_hours >= 500, "🔥 Overtime God: 500h Overtime"),
    (lambda f: f.entry_count >= 500, "📝 Historian: 500+ Entries"),
    # special
    (lambda f: f.max_month_hours >= 100, "📈 Month Crusher: 100h in One Month"),
    (lambda f: f.max_month_hours >= 150, "🔥 Month Beast: 150h in One Month"),
    (lambda f: f.max_month_hours >= 200, "🚀 Month Legend: 200h in One Month"),
    (lambda f: f.weekend_days >= 10, "🎮 Weekend Warrior: 10+ Weekend Days"),
    (lambda f: f.weekend_days >= 25, "🔥 Weekend Champion: 25+ Weekend Days"),
    (lambda f: f.max_day_hours >= 12, "🏃 Marathon Day: 12h+ in One Day"),
    (lambda f: f.max_day_hours >= 15, "🚀 Ultra Marathon: 15h+ in One Day"),
    (lambda f: f.max_day_hours >= 20, "👑 Superhuman: 20h+ in One Day"),
    (lambda f: f.attendance_percentage >= 80, "🎯 Consistency King: 80%+ Work Days"),
    (lambda f: f.attendance_percentage >= 90, "🔥 Work Machine: 90%+ Work Days"),
    (lambda f: f.attendance_percentage >= 95, "👑 Perfect Attendance: 95%+ Work Days"),
    (lambda f: f.total_overtime_hours == 0 and f.total_hours >= 500,
     "⚖️ Balanced Life: Zero Overtime at 500h+"),
    (lambda f: f.unique_projects >= 5, "🎯 Project Explorer: 5+ Different Projects"),
    (lambda f: f.unique_projects >= 10, "🔥 Project Master: 10+ Different Projects"),
    (lambda f: f.unique_projects >= 20, "🚀 Jack of All Trades: 20+ Different Projects"),
]


def _hours(value) -> float:
    return float(value or 0)


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def longest_streak(days: Iterable[date]) -> int:
    """Longest run of consecutive calendar days."""
    best = current = 0
    previous = None
    for d in sorted(set(days)):
        if previous is not None and (d - previous).days == 1:
            current += 1
        else:
            current = 1
        best = max(best, current)
        previous = d
    return best


def evaluate_milestones(facts: MilestoneFacts, milestones: list[Milestone] = MILESTONES) -> list[str]:
    return [label for predicate, label in milestones if predicate(facts)]


def _highlight(bucket: MonthStats | None, year_total: float) -> MonthHighlight | None:
    if bucket is None:
        return None
    return MonthHighlight(
        month=bucket.month,
        hours=round(bucket.total_hours, 2),
        percentage_of_year=round(_pct(bucket.total_hours, year_total), 2),
    )


def compute_yearly_statistics(
    entries: Iterable[TimeEntry],
    year: int,
    hourly_rate: float,
    work_day_hours: float,
) -> YearlyStatistics | None:
    """
    Builds the yearly report for `year` from `entries`.
    Returns None when no entry falls in that year. Inputs are never mutated.
    """
    entries = list(entries)
    year_entries: list[tuple[date, TimeEntry]] = []
    for entry in entries:
        d = entry_date(entry.work_date)
        if d is None:
            logger.warning("Skipping time entry %s with unreadable date %r", entry.id, entry.work_date)
            continue
        if d.year == year:
            year_entries.append((d, entry))

    if not year_entries:
        return None

    total_hours = 0.0
    billable_hours = 0.0
    non_billable_hours = 0.0
    total_overtime = 0.0
    overtime_days = 0
    projects: dict[str, ProjectStats] = {}
    months = [MonthStats(month=name) for name in MONTH_NAMES]
    day_hours: dict[date, float] = {}

    for d, entry in year_entries:
        hours = _hours(entry.total_hours)
        total_hours += hours
        day_hours[d] = day_hours.get(d, 0.0) + hours

        overtime = max(0.0, hours - work_day_hours)
        if overtime > 0:
            total_overtime += overtime
            overtime_days += 1

        bucket = months[d.month - 1]
        bucket.total_hours += hours

        for alloc in entry.projects or []:
            allocated = _hours(alloc.hours_allocated)
            stats = projects.setdefault(alloc.name, ProjectStats(name=alloc.name))
            stats.total_hours += allocated
            if alloc.billable is not False:
                stats.billable_hours += allocated
                stats.revenue += allocated * hourly_rate
                billable_hours += allocated
            else:
                stats.non_billable_hours += allocated
                non_billable_hours += allocated
            bucket.project_hours[alloc.name] = bucket.project_hours.get(alloc.name, 0.0) + allocated

    # sorted() is stable: equal (revenue, hours) keep first-seen order
    ranked = sorted(projects.values(), key=lambda p: (-p.revenue, -p.total_hours))
    top_projects = [
        ProjectStats(
            name=p.name,
            total_hours=round(p.total_hours, 2),
            revenue=round(p.revenue, 2),
            percentage_of_year=round(_pct(p.total_hours, total_hours), 2),
            billable_hours=round(p.billable_hours, 2),
            non_billable_hours=round(p.non_billable_hours, 2),
        )
        for p in ranked
    ]

    active_months = [m for m in months if m.total_hours > 0]
    busiest = least_busy = None
    for m in active_months:
        if busiest is None or m.total_hours > busiest.total_hours:
            busiest = m
        if least_busy is None or m.total_hours < least_busy.total_hours:
            least_busy = m

    working_days = len(day_hours)
    streak = longest_streak(day_hours)
    average_daily = total_hours / working_days if working_days else 0.0
    coffee = round(total_hours / HOURS_PER_COFFEE)
    average_overtime = total_overtime / overtime_days if overtime_days else 0.0
    overtime_pct = _pct(total_overtime, total_hours)

    days_in_year = 366 if calendar.isleap(year) else 365
    facts = MilestoneFacts(
        total_hours=total_hours,
        billable_ratio=billable_hours / total_hours if total_hours else 0.0,
        longest_streak=streak,
        working_days=working_days,
        entry_count=len(entries),
        average_daily_hours=average_daily,
        overtime_days=overtime_days,
        total_overtime_hours=total_overtime,
        coffee_equivalent=coffee,
        max_month_hours=max(m.total_hours for m in months),
        weekend_days=sum(1 for d in day_hours if d.weekday() >= 5),
        max_day_hours=max(day_hours.values()),
        attendance_percentage=_pct(working_days, days_in_year),
        unique_projects=len(projects),
    )

    logger.debug("Yearly statistics %s: %d entries, %.2f hours", year, len(year_entries), total_hours)

    return YearlyStatistics(
        year=year,
        total_hours=round(total_hours, 2),
        billable_hours=round(billable_hours, 2),
        non_billable_hours=round(non_billable_hours, 2),
        total_revenue=round(billable_hours * hourly_rate, 2),
        average_hourly_rate=hourly_rate,
        top_projects=top_projects,
        monthly_breakdown=[
            MonthStats(
                month=m.month,
                total_hours=round(m.total_hours, 2),
                project_hours={k: round(v, 2) for k, v in m.project_hours.items()},
            )
            for m in months
        ],
        busiest_month=_highlight(busiest, total_hours),
        least_busy_month=_highlight(least_busy, total_hours),
        average_daily_hours=round(average_daily, 2),
        working_days=working_days,
        longest_streak=streak,
        milestones=evaluate_milestones(facts),
        coffee_equivalent=coffee,
        total_overtime_hours=round(total_overtime, 2),
        overtime_days=overtime_days,
        average_overtime_hours=round(average_overtime, 2),
        overtime_percentage=round(overtime_pct, 2),
    )


__all__ = ["compute_yearly_statistics", "longest_streak", "evaluate_milestones",
           "entry_date", "MilestoneFacts", "MILESTONES", "MONTH_NAMES"]
