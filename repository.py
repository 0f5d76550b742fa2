# repository.py
from __future__ import annotations

import argparse
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlalchemy import text
from sqlmodel import SQLModel, Field, Session, create_engine, select

from config import Settings, configure_logging, load_settings
from domain import ProjectAllocation, ProjectSummary, TimeEntry, entry_date

logger = logging.getLogger(__name__)

DATA_VERSION = "1.0"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _now_iso() -> str:
    return _now().isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def summarize_projects(projects: Iterable[ProjectSummary], entries: Iterable[TimeEntry]) -> List[ProjectSummary]:
    """Fills total hours and last used date of each known project from the entries."""
    totals: Dict[str, float] = {}
    last_used: Dict[str, date] = {}
    for e in entries:
        d = entry_date(e.work_date)
        for p in e.projects:
            totals[p.name] = totals.get(p.name, 0.0) + float(p.hours_allocated or 0)
            if d is not None and (p.name not in last_used or d > last_used[p.name]):
                last_used[p.name] = d
    out = []
    for p in projects:
        used = last_used.get(p.name)
        out.append(ProjectSummary(
            name=p.name,
            billable=p.billable,
            total_hours=round(totals.get(p.name, 0.0), 2),
            last_used=used.isoformat() if used else p.last_used,
        ))
    return out


# =========================
# SQL storage (SQLite / PostgreSQL)
# =========================
class TimeEntryDB(SQLModel, table=True):
    __tablename__ = "time_entries"
    id: str = Field(default_factory=_new_id, primary_key=True)
    work_date: date = Field(index=True)
    start_time: str | None = None
    end_time: str | None = None
    hours_away: float = 0.0
    total_hours: float = 0.0
    imported: bool = False
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class TimeEntryProjectDB(SQLModel, table=True):
    __tablename__ = "time_entry_projects"
    id: int | None = Field(default=None, primary_key=True)
    time_entry_id: str = Field(foreign_key="time_entries.id", index=True)
    project_id: str | None = None
    project_name: str = Field(index=True)
    billable: bool = True
    hours_allocated: float = 0.0
    comment: str = ""


class ProjectDB(SQLModel, table=True):
    __tablename__ = "projects"
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    billable: bool = False
    created_at: datetime = Field(default_factory=_now)


class MetadataDB(SQLModel, table=True):
    __tablename__ = "metadata"
    id: int | None = Field(default=None, primary_key=True)
    version: str = DATA_VERSION
    last_modified: datetime = Field(default_factory=_now)


def build_engine(db_url: str, echo: bool = False):
    is_sqlite = db_url.startswith("sqlite")
    kwargs = {
        "echo": echo,
        "pool_pre_ping": True,
        "connect_args": {},
    }
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        # Serverless PG (Neon/Supabase): no local pool, bounded connect time
        kwargs["poolclass"] = NullPool
        kwargs["connect_args"] = {"connect_timeout": 10}
        if "sslmode=" not in db_url:
            db_url += ("&" if "?" in db_url else "?") + "sslmode=require"
    return create_engine(db_url, **kwargs)


class EntryRepository:
    """CRUD for time entries and projects in a SQL database."""
    def __init__(self, url: str = "sqlite:///timetracking.db", echo: bool = False):
        self.engine = build_engine(url, echo=echo)

        # Fail fast when Postgres is unreachable
        if not url.startswith("sqlite"):
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("select 1"))
            except Exception as e:
                raise RuntimeError(f"Could not connect to Postgres: {e}") from e

        SQLModel.metadata.create_all(self.engine)
        with Session(self.engine) as session:
            if session.exec(select(MetadataDB)).first() is None:
                session.add(MetadataDB())
                session.commit()
        logger.info("Database storage initialized (%s)", self.engine.url.get_backend_name())

    # ---- helpers
    def _to_domain(self, row: TimeEntryDB, allocations: List[TimeEntryProjectDB]) -> TimeEntry:
        return TimeEntry(
            work_date=row.work_date,
            total_hours=row.total_hours,
            projects=[
                ProjectAllocation(
                    name=a.project_name,
                    hours_allocated=a.hours_allocated,
                    billable=a.billable,
                    comment=a.comment or "",
                    id=a.project_id,
                )
                for a in allocations
            ],
            start_time=row.start_time,
            end_time=row.end_time,
            hours_away=row.hours_away,
            imported=row.imported,
            id=row.id,
            created_at=row.created_at.isoformat(),
            updated_at=row.updated_at.isoformat(),
        )

    def _allocations(self, session: Session, entry_id: str) -> List[TimeEntryProjectDB]:
        return list(session.exec(
            select(TimeEntryProjectDB)
            .where(TimeEntryProjectDB.time_entry_id == entry_id)
            .order_by(TimeEntryProjectDB.id)
        ).all())

    def _replace_allocations(self, session: Session, entry_id: str, projects: Iterable[ProjectAllocation]) -> None:
        session.execute(delete(TimeEntryProjectDB).where(TimeEntryProjectDB.time_entry_id == entry_id))
        for p in projects:
            session.add(TimeEntryProjectDB(
                time_entry_id=entry_id,
                project_id=p.id,
                project_name=p.name,
                billable=p.billable,
                hours_allocated=float(p.hours_allocated or 0),
                comment=p.comment or "",
            ))

    def _touch(self, session: Session) -> datetime:
        meta = session.exec(select(MetadataDB)).first()
        if meta is None:
            meta = MetadataDB()
        meta.last_modified = _now()
        session.add(meta)
        return meta.last_modified

    # ---- time entries
    def add(self, e: TimeEntry) -> TimeEntry:
        work_date = entry_date(e.work_date)
        if work_date is None:
            raise ValueError(f"Unreadable entry date: {e.work_date!r}")
        with Session(self.engine) as session:
            row = TimeEntryDB(
                work_date=work_date,
                start_time=e.start_time,
                end_time=e.end_time,
                hours_away=float(e.hours_away or 0),
                total_hours=float(e.total_hours or 0),
                imported=e.imported,
            )
            session.add(row)
            session.flush()
            self._replace_allocations(session, row.id, e.projects)
            self._touch(session)
            session.commit()
            session.refresh(row)
            return self._to_domain(row, self._allocations(session, row.id))

    def list_all(self) -> List[TimeEntry]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(TimeEntryDB).order_by(TimeEntryDB.work_date.desc(), TimeEntryDB.created_at.desc())
            ).all()
            return [self._to_domain(r, self._allocations(session, r.id)) for r in rows]

    def get(self, entry_id: str) -> TimeEntry | None:
        with Session(self.engine) as session:
            row = session.get(TimeEntryDB, entry_id)
            if row is None:
                return None
            return self._to_domain(row, self._allocations(session, row.id))

    def update(self, entry_id: str, **changes) -> TimeEntry | None:
        with Session(self.engine) as session:
            row = session.get(TimeEntryDB, entry_id)
            if row is None:
                return None
            projects = changes.pop("projects", None)
            if "work_date" in changes:
                changes["work_date"] = entry_date(changes["work_date"])
            for key, value in changes.items():
                if not hasattr(row, key) or key in ("id", "created_at"):
                    raise AttributeError(f"Unknown time entry field: {key}")
                setattr(row, key, value)
            row.updated_at = _now()
            session.add(row)
            if projects is not None:
                self._replace_allocations(session, entry_id, projects)
            self._touch(session)
            session.commit()
            session.refresh(row)
            return self._to_domain(row, self._allocations(session, row.id))

    def delete(self, entry_id: str) -> bool:
        with Session(self.engine) as session:
            row = session.get(TimeEntryDB, entry_id)
            if row is None:
                return False
            session.execute(delete(TimeEntryProjectDB).where(TimeEntryProjectDB.time_entry_id == entry_id))
            session.delete(row)
            self._touch(session)
            session.commit()
            return True

    # ---- projects
    def list_projects(self) -> List[ProjectSummary]:
        with Session(self.engine) as session:
            rows = session.exec(select(ProjectDB).order_by(ProjectDB.name)).all()
            known = [ProjectSummary(name=r.name, billable=r.billable) for r in rows]
        return summarize_projects(known, self.list_all())

    def get_project(self, name: str) -> ProjectSummary | None:
        return next((p for p in self.list_projects() if p.name == name), None)

    def add_project(self, name: str, billable: bool = False) -> ProjectSummary:
        with Session(self.engine) as session:
            if session.exec(select(ProjectDB).where(ProjectDB.name == name)).first() is not None:
                raise ValueError(f"Project '{name}' already exists")
            session.add(ProjectDB(name=name, billable=billable))
            self._touch(session)
            session.commit()
        return ProjectSummary(name=name, billable=billable, last_used=date.today().isoformat())

    def update_project(self, name: str, **changes) -> ProjectSummary | None:
        with Session(self.engine) as session:
            row = session.exec(select(ProjectDB).where(ProjectDB.name == name)).first()
            if row is None:
                return None
            for key, value in changes.items():
                if key not in ("name", "billable"):
                    raise AttributeError(f"Unknown project field: {key}")
                setattr(row, key, value)
            session.add(row)
            self._touch(session)
            session.commit()
            new_name = row.name
        return self.get_project(new_name)

    def delete_project(self, name: str) -> bool:
        with Session(self.engine) as session:
            row = session.exec(select(ProjectDB).where(ProjectDB.name == name)).first()
            if row is None:
                return False
            session.delete(row)
            self._touch(session)
            session.commit()
            return True

    def last_modified(self) -> str:
        with Session(self.engine) as session:
            meta = session.exec(select(MetadataDB)).first()
            return meta.last_modified.isoformat() if meta else _now_iso()


# =========================
# JSON file storage
# =========================
class JsonFileRepository:
    """Same CRUD surface as EntryRepository, backed by a single JSON document."""
    def __init__(self, path: str | Path = "timetracking-data.json"):
        self.path = Path(path)
        self.initialize()

    def initialize(self) -> None:
        try:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._write({
                    "metadata": {"version": DATA_VERSION, "lastModified": _now_iso(), "totalEntries": 0},
                    "timeEntries": [],
                    "projects": [],
                })
                logger.info("Initialized %s", self.path)
            else:
                self._migrate_duplicate_ids()
        except OSError:
            logger.error("Error initializing data file %s", self.path, exc_info=True)
            raise

    def _read(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError):
            logger.error("Error reading data file %s", self.path, exc_info=True)
            raise

    def _write(self, data: dict) -> str:
        data.setdefault("metadata", {})
        data["metadata"]["lastModified"] = _now_iso()
        data["metadata"]["totalEntries"] = len(data.get("timeEntries", []))
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError:
            logger.error("Error writing data file %s", self.path, exc_info=True)
            raise
        return data["metadata"]["lastModified"]

    def _migrate_duplicate_ids(self) -> None:
        data = self._read()
        seen = set()
        fixed = 0
        for raw in data.get("timeEntries", []):
            if raw.get("id") in seen or not raw.get("id"):
                raw["id"] = _new_id()
                fixed += 1
            seen.add(raw["id"])
        if fixed:
            logger.info("Migrating %d duplicate time entry ids to UUIDs", fixed)
            self._write(data)

    # ---- time entries
    def list_all(self) -> List[TimeEntry]:
        entries = [TimeEntry.from_dict(raw) for raw in self._read().get("timeEntries", [])]
        return sorted(entries, key=lambda e: entry_date(e.work_date) or date.min, reverse=True)

    def get(self, entry_id: str) -> TimeEntry | None:
        for raw in self._read().get("timeEntries", []):
            if raw.get("id") == entry_id:
                return TimeEntry.from_dict(raw)
        return None

    def add(self, e: TimeEntry) -> TimeEntry:
        data = self._read()
        stamp = _now_iso()
        raw = e.to_dict()
        raw.update({"id": _new_id(), "createdAt": stamp, "updatedAt": stamp})
        d = entry_date(e.work_date)
        raw["date"] = d.isoformat() if d else raw["date"]
        data.setdefault("timeEntries", []).append(raw)
        self._write(data)
        return TimeEntry.from_dict(raw)

    def update(self, entry_id: str, **changes) -> TimeEntry | None:
        data = self._read()
        for i, raw in enumerate(data.get("timeEntries", [])):
            if raw.get("id") != entry_id:
                continue
            current = TimeEntry.from_dict(raw)
            for key, value in changes.items():
                if not hasattr(current, key) or key in ("id", "created_at"):
                    raise AttributeError(f"Unknown time entry field: {key}")
                setattr(current, key, value)
            current.updated_at = _now_iso()
            updated = current.to_dict()
            d = entry_date(current.work_date)
            updated["date"] = d.isoformat() if d else updated["date"]
            data["timeEntries"][i] = updated
            self._write(data)
            return TimeEntry.from_dict(updated)
        return None

    def delete(self, entry_id: str) -> bool:
        data = self._read()
        before = len(data.get("timeEntries", []))
        data["timeEntries"] = [raw for raw in data.get("timeEntries", []) if raw.get("id") != entry_id]
        if len(data["timeEntries"]) == before:
            return False
        self._write(data)
        return True

    # ---- projects
    def list_projects(self) -> List[ProjectSummary]:
        data = self._read()
        known = [ProjectSummary.from_dict(raw) for raw in data.get("projects", [])]
        entries = [TimeEntry.from_dict(raw) for raw in data.get("timeEntries", [])]
        return summarize_projects(known, entries)

    def get_project(self, name: str) -> ProjectSummary | None:
        return next((p for p in self.list_projects() if p.name == name), None)

    def add_project(self, name: str, billable: bool = False) -> ProjectSummary:
        data = self._read()
        if any(raw.get("name") == name for raw in data.get("projects", [])):
            raise ValueError(f"Project '{name}' already exists")
        project = ProjectSummary(name=name, billable=billable, last_used=date.today().isoformat())
        data.setdefault("projects", []).append(project.to_dict())
        self._write(data)
        return project

    def update_project(self, name: str, **changes) -> ProjectSummary | None:
        data = self._read()
        for raw in data.get("projects", []):
            if raw.get("name") != name:
                continue
            for key, value in changes.items():
                if key not in ("name", "billable"):
                    raise AttributeError(f"Unknown project field: {key}")
                raw[key] = value
            self._write(data)
            return self.get_project(raw["name"])
        return None

    def delete_project(self, name: str) -> bool:
        data = self._read()
        before = len(data.get("projects", []))
        data["projects"] = [raw for raw in data.get("projects", []) if raw.get("name") != name]
        if len(data["projects"]) == before:
            return False
        self._write(data)
        return True

    def last_modified(self) -> str:
        return self._read()["metadata"]["lastModified"]


def create_repository(settings: Settings):
    if settings.storage_type == "database":
        logger.info("Using database storage")
        return EntryRepository(settings.database_url)
    logger.info("Using file storage at %s", settings.data_file)
    return JsonFileRepository(settings.data_file)


# =========================
# File -> database migration
# =========================
@dataclass
class MigrationResult:
    projects_created: int = 0
    projects_skipped: int = 0
    entries_created: int = 0
    entries_failed: int = 0


def migrate_file_to_database(source: JsonFileRepository, target: EntryRepository) -> MigrationResult:
    """
    Copies projects, then time entries, from the JSON file store into the database.
    Projects that already exist are skipped. An entry that cannot be stored is
    logged and counted, and the migration moves on to the next one.
    """
    result = MigrationResult()

    projects = source.list_projects()
    logger.info("Migrating %d projects", len(projects))
    for p in projects:
        if target.get_project(p.name) is not None:
            result.projects_skipped += 1
            logger.warning("Project already exists: %s", p.name)
            continue
        target.add_project(p.name, billable=p.billable)
        result.projects_created += 1

    entries = list(reversed(source.list_all()))
    logger.info("Migrating %d time entries", len(entries))
    for e in entries:
        try:
            target.add(e)
        except (SQLAlchemyError, ValueError, TypeError):
            result.entries_failed += 1
            logger.error("Failed to migrate entry %s (%s)", e.id, e.work_date, exc_info=True)
            continue
        result.entries_created += 1
        if result.entries_created % 10 == 0:
            logger.info("Progress: %d/%d entries migrated", result.entries_created, len(entries))

    logger.info(
        "Migration finished: projects %d created, %d skipped; entries %d created, %d failed",
        result.projects_created, result.projects_skipped, result.entries_created, result.entries_failed,
    )
    return result


def main(argv: List[str] | None = None) -> int:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Copy time entries and projects from the JSON file into the database.")
    parser.add_argument("--file", type=Path, default=settings.data_file, help="source JSON data file")
    parser.add_argument("--database-url", default=settings.database_url, help="target database URL")
    args = parser.parse_args(argv)
    configure_logging(settings.log_level)

    if not args.file.exists():
        logger.error("File not found: %s", args.file)
        return 1

    result = migrate_file_to_database(JsonFileRepository(args.file), EntryRepository(args.database_url))
    print(f"Projects: {result.projects_created} created, {result.projects_skipped} skipped")
    print(f"Time entries: {result.entries_created} created, {result.entries_failed} failed")
    return 0


__all__ = [
    "TimeEntryDB", "TimeEntryProjectDB", "ProjectDB", "MetadataDB",
    "EntryRepository", "JsonFileRepository", "build_engine", "create_repository",
    "summarize_projects", "MigrationResult", "migrate_file_to_database", "main",
]


if __name__ == "__main__":
    raise SystemExit(main())
