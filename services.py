# services.py
from __future__ import annotations
import re
from typing import Iterable, Dict, Tuple, List
from datetime import timedelta
from domain import TimeEntry, WeekSummary, MonthSummary, entry_date
from utils import month_range

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
MAX_DAY_HOURS = 24.0
MAX_PROJECT_NAME = 100
MAX_COMMENT = 500
HOURS_EPSILON = 1e-9


class EntryValidationError(ValueError):
    """Raised when a time entry breaks one or more input rules."""
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


def _minutes(hhmm: str) -> int:
    hh, mm = hhmm.strip().split(":")
    return int(hh) * 60 + int(mm)


def shift_length_hours(start: str, end: str) -> float:
    """Hours between two HH:MM times. Supports overnight shifts."""
    total = _minutes(end) - _minutes(start)
    if total < 0:
        total += 24 * 60  # passed midnight
    return total / 60.0


class TimeEntryCalculator:
    """Business rules for calculating worked hours and overtime."""
    def __init__(self, work_day_hours: float = 7.5, work_week_hours: float = 37.5):
        self.work_day_hours = work_day_hours
        self.work_week_hours = work_week_hours

    def calculate_total_hours(self, start: str | None, end: str | None, hours_away: float = 0.0) -> float:
        """Returns worked hours (2 decimals) net of time away."""
        if not start or not end:
            return 0.0
        total = shift_length_hours(start, end) - max(0.0, float(hours_away or 0))
        return round(max(0.0, total), 2)

    def calculate_daily_overtime(self, total_hours: float) -> float:
        """Overtime above the standard workday."""
        return round(max(0.0, float(total_hours or 0) - self.work_day_hours), 2)

    def summarize_weeks(self, entries: Iterable[TimeEntry]) -> List[WeekSummary]:
        """
        Aggregates hours per ISO week against the work-week target.
        Newest week first.
        """
        weekly_hours: Dict[Tuple[int, int], float] = {}
        for e in entries:
            d = entry_date(e.work_date)
            if d is None:
                continue
            iso = d.isocalendar()
            key = (iso[0], iso[1])
            weekly_hours[key] = weekly_hours.get(key, 0.0) + float(e.total_hours or 0)

        return [
            WeekSummary(
                year=y,
                week=w,
                total_hours=round(total, 2),
                target_hours=self.work_week_hours,
                overtime_hours=round(max(0.0, total - self.work_week_hours), 2),
            )
            for (y, w), total in sorted(weekly_hours.items(), reverse=True)
        ]

    def summarize_month_weeks(self, entries: Iterable[TimeEntry], year: int, month: int) -> List[WeekSummary]:
        """
        Weekly summaries for every ISO week that touches the month.
        Weeks straddling the month edge include their days from the neighbouring months.
        """
        first, last = month_range(f"{year:04d}-{month:02d}")
        keys = set()
        day = first
        while day <= last:
            iso = day.isocalendar()
            keys.add((iso[0], iso[1]))
            day += timedelta(days=1)

        week_entries = []
        for e in entries:
            d = entry_date(e.work_date)
            if d is None:
                continue
            iso = d.isocalendar()
            if (iso[0], iso[1]) in keys:
                week_entries.append(e)
        return self.summarize_weeks(week_entries)

    def summarize_month(self, entries: Iterable[TimeEntry], year: int, month: int) -> MonthSummary:
        summary = MonthSummary(month_key=f"{year:04d}-{month:02d}")
        days = set()
        for e in entries:
            d = entry_date(e.work_date)
            if d is None or (d.year, d.month) != (year, month):
                continue
            hours = float(e.total_hours or 0)
            days.add(d)
            summary.total_hours += hours
            summary.overtime_hours += max(0.0, hours - self.work_day_hours)
            for p in e.projects:
                summary.project_hours[p.name] = summary.project_hours.get(p.name, 0.0) + float(p.hours_allocated or 0)
        summary.total_hours = round(summary.total_hours, 2)
        summary.overtime_hours = round(summary.overtime_hours, 2)
        summary.project_hours = {k: round(v, 2) for k, v in summary.project_hours.items()}
        summary.working_days = len(days)
        return summary

    def complete_entry(self, entry: TimeEntry) -> TimeEntry:
        """Fills in total hours from start/end/time away when both times are known."""
        if entry.start_time and entry.end_time:
            entry.total_hours = self.calculate_total_hours(entry.start_time, entry.end_time, entry.hours_away)
        return entry


def validate_project_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise EntryValidationError(["Project name is required"])
    if len(cleaned) > MAX_PROJECT_NAME:
        raise EntryValidationError([f"Project name must be at most {MAX_PROJECT_NAME} characters"])
    return cleaned


def validate_time_entry(entry: TimeEntry) -> TimeEntry:
    """Checks an entry before it is stored. Collects every problem before raising."""
    errors: List[str] = []

    if entry_date(entry.work_date) is None:
        errors.append("Date must be an ISO date (YYYY-MM-DD)")
    for label, value in (("Start time", entry.start_time), ("End time", entry.end_time)):
        if value is not None and not TIME_PATTERN.match(value):
            errors.append(f"{label} must be in 24-hour format (HH:MM)")

    hours_away = float(entry.hours_away or 0)
    if not 0 <= hours_away <= MAX_DAY_HOURS:
        errors.append("Hours away must be between 0 and 24")
    if entry.total_hours is not None and not 0 <= float(entry.total_hours) <= MAX_DAY_HOURS:
        errors.append("Total hours must be between 0 and 24")

    for p in entry.projects:
        try:
            p.name = validate_project_name(p.name)
        except EntryValidationError as e:
            errors.extend(e.errors)
        if not 0 <= float(p.hours_allocated or 0) <= MAX_DAY_HOURS:
            errors.append(f"Hours for project '{p.name}' must be between 0 and 24")
        if len(p.comment or "") > MAX_COMMENT:
            errors.append(f"Comment for project '{p.name}' must be at most {MAX_COMMENT} characters")

    if errors:
        raise EntryValidationError(errors)

    if entry.start_time and entry.end_time and hours_away > shift_length_hours(entry.start_time, entry.end_time):
        errors.append("Hours away cannot exceed total work time")
    if entry.total_hours:
        allocated = sum(float(p.hours_allocated or 0) for p in entry.projects)
        if allocated > float(entry.total_hours) + HOURS_EPSILON:
            errors.append("Sum of project hours cannot exceed total hours")

    if errors:
        raise EntryValidationError(errors)
    return entry
