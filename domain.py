# domain.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any


def entry_date(value: date | datetime | str | None) -> date | None:
    """Calendar date of an entry; aware datetimes are read in UTC. None if unreadable."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) > 10:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
                return entry_date(parsed)
            return date.fromisoformat(text)
        except ValueError:
            return None
    return None


def _iso(value: date | datetime | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


@dataclass
class ProjectAllocation:
    """Hours of one day booked against a project."""
    name: str
    hours_allocated: float = 0.0
    billable: bool = True
    comment: str = ""
    id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectAllocation":
        billable = data.get("billable")
        return cls(
            name=data.get("name", ""),
            hours_allocated=data.get("hoursAllocated") or 0.0,
            billable=billable is not False,
            comment=data.get("comment") or "",
            id=data.get("id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "hoursAllocated": self.hours_allocated,
            "billable": self.billable,
            "comment": self.comment,
        }


@dataclass
class TimeEntry:
    """Represents a single work day entry."""
    work_date: date | datetime | str
    total_hours: float | None = 0.0
    projects: list[ProjectAllocation] = field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None
    hours_away: float = 0.0
    imported: bool = False
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def iso_year_week(self) -> tuple[int, int]:
        """Returns (ISO year, ISO week number). Useful for weekly overtime aggregation."""
        d = entry_date(self.work_date)
        if d is None:
            raise ValueError(f"Unreadable entry date: {self.work_date!r}")
        iso = d.isocalendar()
        return (iso[0], iso[1])

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeEntry":
        return cls(
            work_date=data.get("date"),
            total_hours=data.get("totalHours"),
            projects=[ProjectAllocation.from_dict(p) for p in data.get("projects") or []],
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            hours_away=data.get("hoursAway") or 0.0,
            imported=bool(data.get("imported", False)),
            id=data.get("id"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": _iso(self.work_date),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "hoursAway": self.hours_away,
            "totalHours": self.total_hours,
            "projects": [p.to_dict() for p in self.projects],
            "imported": self.imported,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class ProjectSummary:
    name: str
    billable: bool = False
    total_hours: float = 0.0
    last_used: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectSummary":
        return cls(
            name=data["name"],
            billable=bool(data.get("billable", False)),
            total_hours=data.get("totalHours") or 0.0,
            last_used=data.get("lastUsed"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "billable": self.billable,
            "totalHours": self.total_hours,
            "lastUsed": self.last_used,
        }


# -------------------------
# Reports
# -------------------------
@dataclass
class WeekSummary:
    year: int
    week: int
    total_hours: float
    target_hours: float
    overtime_hours: float

    @property
    def label(self) -> str:
        return f"{self.year}-W{self.week:02d}"


@dataclass
class MonthSummary:
    month_key: str
    total_hours: float = 0.0
    working_days: int = 0
    overtime_hours: float = 0.0
    project_hours: dict[str, float] = field(default_factory=dict)


@dataclass
class ProjectStats:
    name: str
    total_hours: float = 0.0
    revenue: float = 0.0
    percentage_of_year: float = 0.0
    billable_hours: float = 0.0
    non_billable_hours: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "totalHours": self.total_hours,
            "revenue": self.revenue,
            "percentageOfYear": self.percentage_of_year,
            "billableHours": self.billable_hours,
            "nonBillableHours": self.non_billable_hours,
        }


@dataclass
class MonthStats:
    month: str
    total_hours: float = 0.0
    project_hours: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "totalHours": self.total_hours,
            "projectHours": dict(self.project_hours),
        }


@dataclass
class MonthHighlight:
    month: str
    hours: float
    percentage_of_year: float

    def to_dict(self) -> dict[str, Any]:
        return {"month": self.month, "hours": self.hours, "percentageOfYear": self.percentage_of_year}


@dataclass
class YearlyStatistics:
    """Yearly report built from the time entries of one calendar year."""
    year: int
    total_hours: float
    billable_hours: float
    non_billable_hours: float
    total_revenue: float
    average_hourly_rate: float
    top_projects: list[ProjectStats]
    monthly_breakdown: list[MonthStats]
    busiest_month: MonthHighlight | None
    least_busy_month: MonthHighlight | None
    average_daily_hours: float
    working_days: int
    longest_streak: int
    milestones: list[str]
    coffee_equivalent: int
    total_overtime_hours: float
    overtime_days: int
    average_overtime_hours: float
    overtime_percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "totalHours": self.total_hours,
            "billableHours": self.billable_hours,
            "nonBillableHours": self.non_billable_hours,
            "totalRevenue": self.total_revenue,
            "averageHourlyRate": self.average_hourly_rate,
            "topProjects": [p.to_dict() for p in self.top_projects],
            "monthlyBreakdown": [m.to_dict() for m in self.monthly_breakdown],
            "busiestMonth": self.busiest_month.to_dict() if self.busiest_month else None,
            "leastBusyMonth": self.least_busy_month.to_dict() if self.least_busy_month else None,
            "averageDailyHours": self.average_daily_hours,
            "workingDays": self.working_days,
            "longestStreak": self.longest_streak,
            "milestones": list(self.milestones),
            "coffeeEquivalent": self.coffee_equivalent,
            "totalOvertimeHours": self.total_overtime_hours,
            "overtimeDays": self.overtime_days,
            "averageOvertimeHours": self.average_overtime_hours,
            "overtimePercentage": self.overtime_percentage,
        }
