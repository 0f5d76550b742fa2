# utils.py
from __future__ import annotations
from datetime import date, timedelta
from typing import Iterable

import pandas as pd

from domain import TimeEntry, WeekSummary, YearlyStatistics, entry_date

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_range(yyyy_mm: str) -> tuple[date, date]:
    y, m = map(int, yyyy_mm.split("-"))
    d1 = date(y, m, 1)
    d2 = (date(y + 1, 1, 1) - timedelta(days=1)) if m == 12 else (date(y, m + 1, 1) - timedelta(days=1))
    return d1, d2


def format_hours(hours: float) -> str:
    """7.5 -> '7 h 30 min'."""
    minutes = int(round(float(hours or 0) * 60))
    sign = "-" if minutes < 0 else ""
    h, m = divmod(abs(minutes), 60)
    if h == 0:
        return f"{sign}{m} min"
    if m == 0:
        return f"{sign}{h} h"
    return f"{sign}{h} h {m} min"


def format_currency(amount: float) -> str:
    return f"{amount:,.2f}"


def entries_to_dataframe(entries: Iterable[TimeEntry]) -> pd.DataFrame:
    rows = []
    for e in entries:
        d = entry_date(e.work_date)
        if d is None:
            continue
        year, week = e.iso_year_week
        rows.append({
            "ID": e.id,
            "Date": d.isoformat(),
            "Day": WEEKDAYS[d.weekday()],
            "ISO Week": f"{year}-W{week:02d}",
            "Start": e.start_time or "",
            "End": e.end_time or "",
            "Away (h)": float(e.hours_away or 0),
            "Hours": round(float(e.total_hours or 0), 2),
            "Projects": ", ".join(f"{p.name} ({p.hours_allocated:g}h)" for p in e.projects),
        })
    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values(["Date"], ascending=False).reset_index(drop=True)
    return df


def monthly_breakdown_to_dataframe(stats: YearlyStatistics) -> pd.DataFrame:
    """One row per month (Jan..Dec), one column per project, plus a Total column."""
    projects = [p.name for p in stats.top_projects]
    rows = []
    for m in stats.monthly_breakdown:
        row = {"Month": m.month}
        for name in projects:
            row[name] = m.project_hours.get(name, 0.0)
        row["Total"] = m.total_hours
        rows.append(row)
    return pd.DataFrame(rows, columns=["Month", *projects, "Total"]).set_index("Month")


def top_projects_to_dataframe(stats: YearlyStatistics) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Project": p.name,
                "Hours": p.total_hours,
                "Billable (h)": p.billable_hours,
                "Non-billable (h)": p.non_billable_hours,
                "Revenue": p.revenue,
                "% of year": p.percentage_of_year,
            }
            for p in stats.top_projects
        ],
        columns=["Project", "Hours", "Billable (h)", "Non-billable (h)", "Revenue", "% of year"],
    )


def weeks_to_dataframe(weeks: Iterable[WeekSummary]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"Week": w.label, "Hours": w.total_hours, "Target": w.target_hours, "Overtime": w.overtime_hours}
            for w in weeks
        ],
        columns=["Week", "Hours", "Target", "Overtime"],
    )
