# app.py
# -----------------------------------------------
# ⏱️ Work hours ledger (Streamlit)
# -----------------------------------------------
# Requires: streamlit, sqlmodel, pandas, reportlab, psycopg2-binary (for Postgres)

import hmac
import json
import logging
from dataclasses import replace
from datetime import date, datetime

import pandas as pd
import streamlit as st

from config import configure_logging, load_settings
from domain import ProjectAllocation, TimeEntry, entry_date
from reports import dataframe_to_pdf, yearly_statistics_to_pdf
from repository import create_repository
from services import EntryValidationError, TimeEntryCalculator, validate_project_name, validate_time_entry
from utils import (
    entries_to_dataframe,
    format_currency,
    format_hours,
    month_key,
    monthly_breakdown_to_dataframe,
    top_projects_to_dataframe,
    weeks_to_dataframe,
)
from yearly_stats import compute_yearly_statistics

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

APP_TITLE = "Work hours ledger"
DEFAULT_START = "09:00"
DEFAULT_END = "17:00"
DEFAULT_AWAY_H = 0.5


@st.cache_resource
def get_repo(storage_type: str, location: str):
    return create_repository(settings)


repo = get_repo(settings.storage_type, str(settings.database_url if settings.storage_type == "database" else settings.data_file))
calc = TimeEntryCalculator(settings.work_day_hours, settings.work_week_hours)

st.set_page_config(page_title=APP_TITLE, page_icon="⏱️", layout="wide")

# =========================
# Password gate (only when APP_PASSWORD is set)
# =========================
if settings.app_password and not st.session_state.get("_authenticated", False):
    st.title(f"⏱️ {APP_TITLE}")
    pw = st.text_input("Password", type="password")
    if st.button("Log in"):
        if hmac.compare_digest(pw.encode(), settings.app_password.encode()):
            st.session_state["_authenticated"] = True
            st.rerun()
        else:
            logger.warning("Rejected login attempt")
            st.error("Wrong password.")
    st.stop()

st.title(f"⏱️ {APP_TITLE}")


def _flash_success_if_any():
    msg = st.session_state.pop("_flash_success", None)
    if msg:
        st.success(msg)


def _prepare(entry: TimeEntry) -> TimeEntry:
    """Validates raw input, derives total hours, then re-checks project allocations."""
    validate_time_entry(entry)
    return validate_time_entry(calc.complete_entry(entry))


entries = repo.list_all()
projects = repo.list_projects()
project_names = [p.name for p in projects]
billable_by_name = {p.name: p.billable for p in projects}
today = date.today()

tab_days, tab_projects, tab_year = st.tabs(["🗓️ Days", "📁 Projects", "📊 Year"])

# =========================
# ➕ Add entry + monthly grid
# =========================
with tab_days:
    _flash_success_if_any()
    st.subheader("➕ Add entry")
    c1, c2, c3, c4 = st.columns(4)
    work_date = c1.date_input("Date", value=today, max_value=today, key="new_date")
    start = c2.text_input("Start (HH:MM)", value=DEFAULT_START, key="new_start")
    end = c3.text_input("End (HH:MM)", value=DEFAULT_END, key="new_end")
    away = c4.number_input("Away (h)", min_value=0.0, max_value=24.0, step=0.25, value=DEFAULT_AWAY_H, key="new_away")
    chosen = st.multiselect("Projects", options=project_names, key="new_projects")
    hours_per_project = {}
    for name in chosen:
        hours_per_project[name] = st.number_input(f"Hours on {name}", min_value=0.0, max_value=24.0, step=0.25, key=f"alloc_{name}")

    if st.button("Save entry", key="save_entry", use_container_width=True):
        entry = TimeEntry(
            work_date=work_date,
            start_time=start.strip(),
            end_time=end.strip(),
            hours_away=away,
            projects=[
                ProjectAllocation(name=n, hours_allocated=h, billable=billable_by_name.get(n, True))
                for n, h in hours_per_project.items()
            ],
        )
        try:
            entry = _prepare(entry)
        except EntryValidationError as e:
            for msg in e.errors:
                st.warning(msg)
        else:
            if any(entry_date(e.work_date) == work_date for e in entries):
                st.warning("That day already has an entry.")
            else:
                saved = repo.add(entry)
                logger.info("Created time entry %s for %s", saved.id, work_date)
                st.session_state["_flash_success"] = (
                    f"Saved {work_date.strftime('%d/%m/%Y')}: {format_hours(saved.total_hours)} · "
                    f"Overtime: {format_hours(calc.calculate_daily_overtime(saved.total_hours))}"
                )
                st.rerun()

    st.subheader("🗓️ Month")
    months = sorted({month_key(d) for d in (entry_date(e.work_date) for e in entries) if d} | {month_key(today)}, reverse=True)
    selected_month = st.selectbox("Month", months)
    month_entries = [e for e in entries if (d := entry_date(e.work_date)) and month_key(d) == selected_month]
    df_month = entries_to_dataframe(month_entries)

    if df_month.empty:
        st.info("No entries this month.")
    else:
        col_cfg = {
            "ID": None,
            "Date": st.column_config.TextColumn(disabled=True),
            "Day": st.column_config.TextColumn(disabled=True),
            "ISO Week": st.column_config.TextColumn(disabled=True),
            "Start": st.column_config.TextColumn(help="HH:MM"),
            "End": st.column_config.TextColumn(help="HH:MM"),
            "Away (h)": st.column_config.NumberColumn(min_value=0.0, max_value=24.0, step=0.25),
            "Hours": st.column_config.NumberColumn(disabled=True, format="%.2f"),
            "Projects": st.column_config.TextColumn(disabled=True),
        }
        edited = st.data_editor(df_month, column_config=col_cfg, use_container_width=True,
                                num_rows="fixed", key=f"editor_{selected_month}")

        changed = 0
        for idx, row in edited.iterrows():
            orig = df_month.loc[idx]
            if (row["Start"], row["End"], row["Away (h)"]) == (orig["Start"], orig["End"], orig["Away (h)"]):
                continue
            current = repo.get(orig["ID"])
            if current is None:
                continue
            current.start_time, current.end_time, current.hours_away = row["Start"], row["End"], float(row["Away (h)"])
            try:
                _prepare(current)
            except EntryValidationError as e:
                st.warning(f"{orig['Date']}: {'; '.join(e.errors)}")
                continue
            repo.update(current.id, start_time=current.start_time, end_time=current.end_time,
                        hours_away=current.hours_away, total_hours=current.total_hours)
            changed += 1
        if changed:
            st.toast("Changes saved.", icon="✅")
            st.rerun()

        to_delete = st.selectbox("Delete entry", ["—"] + df_month["Date"].tolist())
        if to_delete != "—" and st.button("Delete", type="secondary"):
            entry_id = df_month.loc[df_month["Date"] == to_delete, "ID"].iloc[0]
            repo.delete(entry_id)
            st.rerun()

        st.markdown("**Project hours**")
        edit_date = st.selectbox("Entry", df_month["Date"].tolist(), key="edit_entry")
        editing = repo.get(df_month.loc[df_month["Date"] == edit_date, "ID"].iloc[0])
        if editing is not None:
            by_name = {p.name: p for p in editing.projects}
            names = project_names + [n for n in by_name if n not in billable_by_name]
            cols = st.columns(min(len(names), 4) or 1)
            new_hours = {}
            for i, name in enumerate(names):
                alloc = by_name.get(name)
                new_hours[name] = cols[i % len(cols)].number_input(
                    f"{name} (h)", min_value=0.0, max_value=24.0, step=0.25,
                    value=float(alloc.hours_allocated) if alloc else 0.0,
                    key=f"edit_{editing.id}_{name}",
                )
            st.caption(f"Day total: {format_hours(editing.total_hours)}")
            if st.button("Save projects", key="save_projects"):
                allocations = [
                    ProjectAllocation(
                        name=name,
                        hours_allocated=hours,
                        billable=by_name[name].billable if name in by_name else billable_by_name.get(name, True),
                        comment=by_name[name].comment if name in by_name else "",
                        id=by_name[name].id if name in by_name else None,
                    )
                    for name, hours in new_hours.items() if hours > 0
                ]
                try:
                    validate_time_entry(replace(editing, projects=allocations))
                except EntryValidationError as e:
                    for msg in e.errors:
                        st.warning(msg)
                else:
                    repo.update(editing.id, projects=allocations)
                    logger.info("Updated project hours of entry %s", editing.id)
                    st.session_state["_flash_success"] = f"Project hours saved for {edit_date}."
                    st.rerun()

    y, m = map(int, selected_month.split("-"))
    st.subheader("📅 Weekly summary")
    weeks = calc.summarize_month_weeks(entries, y, m)
    if weeks:
        st.dataframe(weeks_to_dataframe(weeks), use_container_width=True, hide_index=True)

    month_summary = calc.summarize_month(entries, y, m)
    pdf_month = dataframe_to_pdf(
        df_month.drop(columns=["ID"]) if not df_month.empty else df_month,
        title=f"{APP_TITLE} — {selected_month}",
        summary_lines=[
            f"Total: {format_hours(month_summary.total_hours)} over {month_summary.working_days} days",
            f"Overtime: {format_hours(month_summary.overtime_hours)}",
        ],
    )
    st.download_button("Download month PDF", data=pdf_month, file_name=f"report_{selected_month}.pdf",
                       mime="application/pdf", disabled=df_month.empty, use_container_width=True)

# =========================
# 📁 Projects
# =========================
with tab_projects:
    st.subheader("📁 Projects")
    with st.form("add_project", clear_on_submit=True):
        new_name = st.text_input("Name")
        new_billable = st.checkbox("Billable", value=True)
        if st.form_submit_button("Add project"):
            try:
                repo.add_project(validate_project_name(new_name), billable=new_billable)
            except (EntryValidationError, ValueError) as e:
                st.warning(str(e))
            else:
                st.rerun()

    if projects:
        st.dataframe(
            pd.DataFrame([
                {"Project": p.name, "Billable": p.billable, "Hours": p.total_hours, "Last used": p.last_used}
                for p in projects
            ]),
            use_container_width=True, hide_index=True,
        )
        name = st.selectbox("Project", project_names)
        c1, c2 = st.columns(2)
        if c1.button("Toggle billable"):
            repo.update_project(name, billable=not billable_by_name[name])
            st.rerun()
        if c2.button("Delete project"):
            repo.delete_project(name)
            st.rerun()

# =========================
# 📊 Yearly statistics
# =========================
with tab_year:
    years = sorted({d.year for d in (entry_date(e.work_date) for e in entries) if d} | {today.year}, reverse=True)
    c1, c2 = st.columns(2)
    year = c1.selectbox("Year", years)
    rate = c2.number_input("Hourly rate", min_value=0.0, value=float(settings.hourly_rate), step=10.0)

    stats = compute_yearly_statistics(entries, year, rate, settings.work_day_hours)
    if stats is None:
        st.info(f"No entries for {year}.")
    else:
        m1, m2, m3, m4 = st.columns(4)
        m1.metric("Hours", format_hours(stats.total_hours))
        m2.metric("Revenue", format_currency(stats.total_revenue))
        m3.metric("Working days", stats.working_days)
        m4.metric("Longest streak", f"{stats.longest_streak} days")
        m1.metric("Billable", format_hours(stats.billable_hours))
        m2.metric("Daily average", format_hours(stats.average_daily_hours))
        m3.metric("Overtime", format_hours(stats.total_overtime_hours), f"{stats.overtime_percentage:.1f}%")
        m4.metric("☕ Coffees", stats.coffee_equivalent)

        if stats.busiest_month and stats.least_busy_month:
            st.caption(
                f"Busiest month: {stats.busiest_month.month} ({stats.busiest_month.percentage_of_year:.1f}%) · "
                f"Quietest: {stats.least_busy_month.month} ({stats.least_busy_month.percentage_of_year:.1f}%)"
            )

        st.bar_chart(monthly_breakdown_to_dataframe(stats).drop(columns=["Total"]))
        st.dataframe(top_projects_to_dataframe(stats), use_container_width=True, hide_index=True)

        if stats.milestones:
            st.markdown("**🏆 Milestones**")
            for label in stats.milestones:
                st.markdown(f"- {label}")

        st.download_button(
            "Download yearly PDF",
            data=yearly_statistics_to_pdf(stats, f"{APP_TITLE} — {year}"),
            file_name=f"report_{year}_{datetime.now():%Y%m%d}.pdf",
            mime="application/pdf",
            use_container_width=True,
        )
        st.download_button(
            "Download yearly JSON",
            data=json.dumps(stats.to_dict(), ensure_ascii=False, indent=2),
            file_name=f"statistics_{year}.json",
            mime="application/json",
            use_container_width=True,
        )
