from datetime import date

import pytest

from domain import ProjectAllocation, TimeEntry


@pytest.fixture
def make_entry():
    """Build a TimeEntry from a date string, total hours and (name, hours[, billable]) tuples."""
    def _make(day: str, total: float | None, *allocs, **kwargs) -> TimeEntry:
        projects = []
        for a in allocs:
            name, hours = a[0], a[1]
            billable = a[2] if len(a) > 2 else True
            projects.append(ProjectAllocation(name=name, hours_allocated=hours, billable=billable))
        return TimeEntry(work_date=date.fromisoformat(day), total_hours=total, projects=projects, **kwargs)
    return _make
