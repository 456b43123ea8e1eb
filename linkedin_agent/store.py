"""
SQLite store: the single source of truth for jobs, applications, companies,
recruiters, search filters, settings and the run log.

One connection is shared between the scheduler worker and the dashboard, so
every statement goes through a re-entrant lock. Multi-statement writes run
inside ``transaction()``; list-valued attributes are stored as JSON text.
"""
from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from linkedin_agent.errors import ConflictError, DailyCapReached, NotFoundError, StoreError
from linkedin_agent.log import get_logger
from linkedin_agent.models import (
    NO_RESPONSE_STATUSES,
    Application,
    Company,
    Job,
    Recruiter,
    RunOutcome,
    RunStatus,
    SearchFilter,
    StatusChange,
)

log = get_logger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS jobs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        job_id TEXT UNIQUE NOT NULL,
        title TEXT NOT NULL,
        company TEXT NOT NULL,
        location TEXT,
        job_type TEXT,
        description TEXT,
        requirements TEXT,
        posted_date TEXT,
        url TEXT,
        salary_range TEXT,
        experience_level TEXT,
        is_applied INTEGER DEFAULT 0,
        match_score REAL DEFAULT 0,
        keywords_matched TEXT,
        scraped_at TEXT,
        last_seen_at TEXT
    );

    CREATE TABLE IF NOT EXISTS applications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        job_id TEXT UNIQUE NOT NULL REFERENCES jobs(job_id) ON DELETE CASCADE,
        application_id TEXT UNIQUE NOT NULL,
        status TEXT DEFAULT 'Applied',
        applied_at TEXT,
        last_checked TEXT,
        status_history TEXT,
        recruiter_contact TEXT,
        notes TEXT
    );

    CREATE TABLE IF NOT EXISTS companies (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        company_name TEXT UNIQUE NOT NULL,
        industry TEXT,
        size TEXT,
        location TEXT,
        website TEXT,
        description TEXT,
        employees_count INTEGER,
        founded_year INTEGER,
        specialties TEXT,
        scraped_at TEXT
    );

    CREATE TABLE IF NOT EXISTS recruiters (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        title TEXT,
        company TEXT,
        profile_url TEXT UNIQUE NOT NULL,
        email TEXT,
        phone TEXT,
        location TEXT,
        connection_degree TEXT,
        mutual_connections INTEGER DEFAULT 0,
        scraped_at TEXT
    );

    CREATE TABLE IF NOT EXISTS search_filters (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        keywords TEXT,
        locations TEXT,
        job_types TEXT,
        experience_levels TEXT,
        salary_min INTEGER,
        salary_max INTEGER,
        is_active INTEGER DEFAULT 1,
        created_at TEXT,
        last_used TEXT
    );

    CREATE TABLE IF NOT EXISTS settings (
        setting_key TEXT PRIMARY KEY,
        setting_value TEXT,
        updated_at TEXT
    );

    CREATE TABLE IF NOT EXISTS scraping_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type TEXT NOT NULL,
        status TEXT NOT NULL,
        items_processed INTEGER DEFAULT 0,
        errors_count INTEGER DEFAULT 0,
        duration_ms INTEGER DEFAULT 0,
        started_at TEXT,
        completed_at TEXT,
        error_message TEXT,
        error_type TEXT,
        trigger TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_jobs_company ON jobs(company);
    CREATE INDEX IF NOT EXISTS idx_jobs_scraped_at ON jobs(scraped_at);
    CREATE INDEX IF NOT EXISTS idx_applications_status ON applications(status);
    CREATE INDEX IF NOT EXISTS idx_applications_applied_at ON applications(applied_at);
    CREATE INDEX IF NOT EXISTS idx_recruiters_company ON recruiters(company);
    CREATE INDEX IF NOT EXISTS idx_logs_type ON scraping_logs(type);
    CREATE INDEX IF NOT EXISTS idx_logs_started_at ON scraping_logs(started_at);
"""

_JOB_FIELDS = (
    "title", "company", "location", "job_type", "description", "requirements",
    "posted_date", "url", "salary_range", "experience_level", "match_score",
    "keywords_matched",
)


def _dumps(value: Any) -> str:
    return json.dumps(value if value is not None else [])


def _loads(raw: str | None, default: Any = None) -> Any:
    if not raw:
        return [] if default is None else default
    try:
        return json.loads(raw)
    except ValueError:
        log.warning("Discarding unreadable JSON column value: %r", raw[:80])
        return [] if default is None else default


def _iso(dt: datetime) -> str:
    return dt.isoformat(timespec="seconds")


class Database:
    """Thread-safe wrapper around one SQLite connection."""

    def __init__(self, path: str | Path, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self.path = str(path)
        self._clock = clock
        self._lock = threading.RLock()
        self._depth = 0
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open database {self.path}: {exc}") from exc
        self._closed = False
        self.init_schema()

    # -- plumbing -----------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def init_schema(self) -> None:
        with self._lock:
            try:
                self._conn.executescript(_SCHEMA)
            except sqlite3.Error as exc:
                raise StoreError(f"Schema creation failed: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._conn.close()
            except sqlite3.Error as exc:
                raise StoreError(f"Closing database failed: {exc}") from exc
        log.info("Database closed: %s", self.path)

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block in one IMMEDIATE transaction; nested calls join the outer one."""
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self._conn
                finally:
                    self._depth -= 1
                return
            self._depth = 1
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                yield self._conn
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback()
                raise StoreError(str(exc)) from exc
            except BaseException:
                self._rollback()
                raise
            finally:
                self._depth = 0

    def _rollback(self) -> None:
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error as exc:
            log.error("Rollback failed: %s", exc)

    def _fetchall(self, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    def _fetchone(self, sql: str, params: tuple | list = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    def _stamp(self, now: datetime | None = None) -> str:
        return _iso(now or self.now())

    # -- jobs ---------------------------------------------------------------

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> Job:
        return Job(
            job_id=row["job_id"],
            title=row["title"],
            company=row["company"],
            url=row["url"] or "",
            location=row["location"] or "",
            job_type=row["job_type"] or "",
            description=row["description"] or "",
            requirements=row["requirements"] or "",
            posted_date=row["posted_date"],
            salary_range=row["salary_range"],
            experience_level=row["experience_level"],
            match_score=row["match_score"] or 0.0,
            keywords_matched=_loads(row["keywords_matched"]),
            is_applied=bool(row["is_applied"]),
            scraped_at=row["scraped_at"],
        )

    def job_exists(self, job_id: str) -> bool:
        return self._fetchone("SELECT 1 FROM jobs WHERE job_id = ?", (job_id,)) is not None

    def upsert_job(self, job: Job, *, now: datetime | None = None) -> bool:
        """Insert or overwrite a job by ``job_id``. Returns True when the row is new.

        ``is_applied`` and the first ``scraped_at`` survive an overwrite.
        """
        job.validate()
        stamp = self._stamp(now)
        values = [getattr(job, f) for f in _JOB_FIELDS]
        values[_JOB_FIELDS.index("keywords_matched")] = _dumps(sorted(set(job.keywords_matched)))
        updates = ", ".join(f"{f} = excluded.{f}" for f in _JOB_FIELDS)
        with self.transaction() as conn:
            created = conn.execute("SELECT 1 FROM jobs WHERE job_id = ?", (job.job_id,)).fetchone() is None
            conn.execute(
                f"""INSERT INTO jobs (job_id, {", ".join(_JOB_FIELDS)}, scraped_at, last_seen_at)
                    VALUES (?, {", ".join("?" * len(_JOB_FIELDS))}, ?, ?)
                    ON CONFLICT(job_id) DO UPDATE SET {updates}, last_seen_at = excluded.last_seen_at""",
                [job.job_id, *values, job.scraped_at or stamp, stamp],
            )
        return created

    def find_job(self, job_id: str) -> Optional[Job]:
        row = self._fetchone("SELECT * FROM jobs WHERE job_id = ?", (job_id,))
        return self._row_to_job(row) if row else None

    def get_job(self, job_id: str) -> Job:
        job = self.find_job(job_id)
        if job is None:
            raise NotFoundError("job", job_id)
        return job

    def list_jobs(
        self,
        *,
        company: str | None = None,
        applied: bool | None = None,
        min_score: float | None = None,
        search: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Job]:
        clauses, params = [], []
        if company:
            clauses.append("company = ?")
            params.append(company)
        if applied is not None:
            clauses.append("is_applied = ?")
            params.append(int(applied))
        if min_score is not None:
            clauses.append("match_score >= ?")
            params.append(min_score)
        if search:
            clauses.append("(title LIKE ? OR company LIKE ? OR description LIKE ?)")
            params.extend([f"%{search}%"] * 3)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(
            f"SELECT * FROM jobs {where} ORDER BY scraped_at DESC, id DESC LIMIT ? OFFSET ?",
            [*params, limit, offset],
        )
        return [self._row_to_job(r) for r in rows]

    def jobs_scraped_on(self, day: datetime | None = None) -> list[Job]:
        rows = self._fetchall(
            "SELECT * FROM jobs WHERE substr(scraped_at, 1, 10) = ? ORDER BY match_score DESC",
            ((day or self.now()).strftime("%Y-%m-%d"),),
        )
        return [self._row_to_job(r) for r in rows]

    def jobs_to_apply(
        self,
        *,
        limit: int,
        min_match_score: float = 0,
        keywords: list[str] | None = None,
        exclude_companies: list[str] | None = None,
        max_age_days: int = 3,
    ) -> list[Job]:
        """Unapplied jobs seen within ``max_age_days``, best match first."""
        if limit <= 0:
            return []
        cutoff = _iso(self.now() - timedelta(days=max_age_days))
        clauses = ["is_applied = 0", "last_seen_at >= ?", "match_score >= ?"]
        params: list[Any] = [cutoff, min_match_score]
        if keywords:
            kw = " OR ".join("(title LIKE ? OR description LIKE ?)" for _ in keywords)
            clauses.append(f"({kw})")
            for k in keywords:
                params.extend([f"%{k}%", f"%{k}%"])
        if exclude_companies:
            clauses.append(f"lower(company) NOT IN ({','.join('?' * len(exclude_companies))})")
            params.extend(c.lower() for c in exclude_companies)
        rows = self._fetchall(
            f"""SELECT * FROM jobs WHERE {' AND '.join(clauses)}
                ORDER BY match_score DESC, scraped_at DESC LIMIT ?""",
            [*params, limit],
        )
        return [self._row_to_job(r) for r in rows]

    def delete_job(self, job_id: str) -> None:
        """Explicit user deletion; the job's application goes with it."""
        with self.transaction() as conn:
            if conn.execute("SELECT 1 FROM jobs WHERE job_id = ?", (job_id,)).fetchone() is None:
                raise NotFoundError("job", job_id)
            conn.execute("DELETE FROM applications WHERE job_id = ?", (job_id,))
            conn.execute("DELETE FROM jobs WHERE job_id = ?", (job_id,))
        log.info("Deleted job %s", job_id)

    # -- applications -------------------------------------------------------

    @staticmethod
    def _row_to_application(row: sqlite3.Row) -> Application:
        return Application(
            id=row["id"],
            job_id=row["job_id"],
            application_id=row["application_id"],
            status=row["status"],
            applied_at=row["applied_at"],
            last_checked=row["last_checked"],
            status_history=[StatusChange.from_dict(h) for h in _loads(row["status_history"])],
            recruiter_contact=row["recruiter_contact"],
            notes=row["notes"],
        )

    def count_applications_on(self, day: datetime | None = None) -> int:
        date_str = (day or self.now()).strftime("%Y-%m-%d")
        row = self._fetchone(
            "SELECT COUNT(*) AS n FROM applications WHERE substr(applied_at, 1, 10) = ?", (date_str,)
        )
        return int(row["n"]) if row else 0

    def create_application(
        self,
        app: Application,
        *,
        daily_cap: int | None = None,
        now: datetime | None = None,
    ) -> Application:
        """Record an application and flag its job, atomically.

        Raises NotFoundError for an unknown job, ConflictError when the job
        already has an application, DailyCapReached when ``daily_cap`` is set
        and today's count has already reached it.
        """
        moment = now or self.now()
        stamp = _iso(moment)
        app.applied_at = app.applied_at or stamp
        app.last_checked = app.last_checked or stamp
        with self.transaction() as conn:
            if conn.execute("SELECT 1 FROM jobs WHERE job_id = ?", (app.job_id,)).fetchone() is None:
                raise NotFoundError("job", app.job_id)
            existing = conn.execute(
                "SELECT application_id FROM applications WHERE job_id = ?", (app.job_id,)
            ).fetchone()
            if existing is not None:
                raise ConflictError(
                    f"Job {app.job_id} already has application {existing['application_id']}"
                )
            if daily_cap is not None:
                count = conn.execute(
                    "SELECT COUNT(*) AS n FROM applications WHERE substr(applied_at, 1, 10) = ?",
                    (moment.strftime("%Y-%m-%d"),),
                ).fetchone()["n"]
                if count >= daily_cap:
                    raise DailyCapReached(daily_cap, count)
            try:
                cur = conn.execute(
                    """INSERT INTO applications
                       (job_id, application_id, status, applied_at, last_checked,
                        status_history, recruiter_contact, notes)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        app.job_id, app.application_id, app.status, app.applied_at,
                        app.last_checked, _dumps([h.to_dict() for h in app.status_history]),
                        app.recruiter_contact, app.notes,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(f"Application {app.application_id} already exists") from exc
            conn.execute("UPDATE jobs SET is_applied = 1 WHERE job_id = ?", (app.job_id,))
            app.id = cur.lastrowid
        log.info("Recorded application %s for job %s", app.application_id, app.job_id)
        return app

    def mark_job_applied(self, job_id: str, *, notes: str | None = None, now: datetime | None = None) -> Application:
        """Manual "I applied elsewhere" helper."""
        moment = now or self.now()
        app = Application(
            job_id=job_id,
            application_id=f"manual_{int(moment.timestamp() * 1000)}",
            notes=notes,
        )
        return self.create_application(app, now=moment)

    def find_application(self, application_id: str) -> Optional[Application]:
        row = self._fetchone("SELECT * FROM applications WHERE application_id = ?", (application_id,))
        return self._row_to_application(row) if row else None

    def get_application(self, application_id: str) -> Application:
        app = self.find_application(application_id)
        if app is None:
            raise NotFoundError("application", application_id)
        return app

    def list_applications(self, *, status: str | None = None, limit: int | None = None) -> list[Application]:
        sql = "SELECT * FROM applications"
        params: list[Any] = []
        if status:
            sql += " WHERE status = ?"
            params.append(status)
        sql += " ORDER BY applied_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_application(r) for r in self._fetchall(sql, params)]

    def record_status_change(
        self,
        application_id: str,
        status: str,
        *,
        now: datetime | None = None,
        recruiter_contact: str | None = None,
        notes: str | None = None,
    ) -> Application:
        """Set a new status and append it to the application's history."""
        stamp = self._stamp(now)
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM applications WHERE application_id = ?", (application_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError("application", application_id)
            history = _loads(row["status_history"])
            history.append(StatusChange(status, stamp, row["status"]).to_dict())
            conn.execute(
                """UPDATE applications
                   SET status = ?, last_checked = ?, status_history = ?,
                       recruiter_contact = COALESCE(?, recruiter_contact),
                       notes = COALESCE(?, notes)
                   WHERE application_id = ?""",
                (status, stamp, _dumps(history), recruiter_contact, notes, application_id),
            )
            updated = conn.execute(
                "SELECT * FROM applications WHERE application_id = ?", (application_id,)
            ).fetchone()
        return self._row_to_application(updated)

    def touch_application(self, application_id: str, *, now: datetime | None = None) -> None:
        with self.transaction() as conn:
            cur = conn.execute(
                "UPDATE applications SET last_checked = ? WHERE application_id = ?",
                (self._stamp(now), application_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("application", application_id)

    def delete_application(self, application_id: str) -> None:
        """Explicit user deletion; the job becomes eligible for applying again."""
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT job_id FROM applications WHERE application_id = ?", (application_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError("application", application_id)
            conn.execute("DELETE FROM applications WHERE application_id = ?", (application_id,))
            conn.execute(
                """UPDATE jobs SET is_applied = 0 WHERE job_id = ?
                   AND NOT EXISTS (SELECT 1 FROM applications WHERE job_id = ?)""",
                (row["job_id"], row["job_id"]),
            )
        log.info("Deleted application %s", application_id)

    def application_stats(self) -> dict[str, Any]:
        rows = self._fetchall("SELECT status, COUNT(*) AS n FROM applications GROUP BY status")
        by_status = {r["status"]: r["n"] for r in rows}
        total = sum(by_status.values())
        responded = sum(n for s, n in by_status.items() if s not in NO_RESPONSE_STATUSES)
        return {
            "total": total,
            "by_status": by_status,
            "response_rate": round(responded / total * 100, 1) if total else 0.0,
        }

    # -- companies & recruiters ---------------------------------------------

    @staticmethod
    def _row_to_company(row: sqlite3.Row) -> Company:
        return Company(
            company_name=row["company_name"],
            industry=row["industry"],
            size=row["size"],
            location=row["location"],
            website=row["website"],
            description=row["description"],
            employees_count=row["employees_count"],
            founded_year=row["founded_year"],
            specialties=_loads(row["specialties"]),
            scraped_at=row["scraped_at"],
        )

    def upsert_company(self, company: Company, *, now: datetime | None = None) -> None:
        """Replace every attribute of the company row (no merge with the old one)."""
        company.validate()
        with self.transaction() as conn:
            conn.execute(
                """INSERT INTO companies
                   (company_name, industry, size, location, website, description,
                    employees_count, founded_year, specialties, scraped_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(company_name) DO UPDATE SET
                     industry = excluded.industry, size = excluded.size,
                     location = excluded.location, website = excluded.website,
                     description = excluded.description,
                     employees_count = excluded.employees_count,
                     founded_year = excluded.founded_year,
                     specialties = excluded.specialties,
                     scraped_at = excluded.scraped_at""",
                (
                    company.company_name, company.industry, company.size, company.location,
                    company.website, company.description, company.employees_count,
                    company.founded_year, _dumps(company.specialties), self._stamp(now),
                ),
            )

    def find_company(self, name: str) -> Optional[Company]:
        row = self._fetchone("SELECT * FROM companies WHERE company_name = ?", (name,))
        return self._row_to_company(row) if row else None

    def get_company(self, name: str) -> Company:
        company = self.find_company(name)
        if company is None:
            raise NotFoundError("company", name)
        return company

    def list_companies(self, *, limit: int = 100) -> list[Company]:
        rows = self._fetchall("SELECT * FROM companies ORDER BY scraped_at DESC LIMIT ?", (limit,))
        return [self._row_to_company(r) for r in rows]

    def companies_needing_research(self, *, limit: int = 20, stale_days: int = 30) -> list[str]:
        """Companies seen on jobs that have no profile yet, or a stale one."""
        cutoff = _iso(self.now() - timedelta(days=stale_days))
        rows = self._fetchall(
            """SELECT j.company AS name, MAX(j.scraped_at) AS seen
               FROM jobs j LEFT JOIN companies c ON c.company_name = j.company
               WHERE j.company != '' AND (c.id IS NULL OR c.scraped_at < ?)
               GROUP BY j.company ORDER BY seen DESC LIMIT ?""",
            (cutoff, limit),
        )
        return [r["name"] for r in rows]

    def delete_company(self, name: str) -> None:
        with self.transaction() as conn:
            if conn.execute("SELECT 1 FROM companies WHERE company_name = ?", (name,)).fetchone() is None:
                raise NotFoundError("company", name)
            conn.execute("DELETE FROM recruiters WHERE company = ?", (name,))
            conn.execute("DELETE FROM companies WHERE company_name = ?", (name,))

    def upsert_recruiter(self, recruiter: Recruiter, *, now: datetime | None = None) -> None:
        recruiter.validate()
        with self.transaction() as conn:
            conn.execute(
                """INSERT INTO recruiters
                   (name, title, company, profile_url, email, phone, location,
                    connection_degree, mutual_connections, scraped_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(profile_url) DO UPDATE SET
                     name = excluded.name, title = excluded.title,
                     company = excluded.company, email = excluded.email,
                     phone = excluded.phone, location = excluded.location,
                     connection_degree = excluded.connection_degree,
                     mutual_connections = excluded.mutual_connections,
                     scraped_at = excluded.scraped_at""",
                (
                    recruiter.name, recruiter.title, recruiter.company, recruiter.profile_url,
                    recruiter.email, recruiter.phone, recruiter.location,
                    recruiter.connection_degree, recruiter.mutual_connections, self._stamp(now),
                ),
            )

    def list_recruiters(self, company: str | None = None) -> list[Recruiter]:
        if company:
            rows = self._fetchall("SELECT * FROM recruiters WHERE company = ? ORDER BY name", (company,))
        else:
            rows = self._fetchall("SELECT * FROM recruiters ORDER BY company, name")
        return [
            Recruiter(
                name=r["name"], profile_url=r["profile_url"], title=r["title"], company=r["company"],
                email=r["email"], phone=r["phone"], location=r["location"],
                connection_degree=r["connection_degree"],
                mutual_connections=r["mutual_connections"] or 0, scraped_at=r["scraped_at"],
            )
            for r in rows
        ]

    # -- search filters -----------------------------------------------------

    @staticmethod
    def _row_to_filter(row: sqlite3.Row) -> SearchFilter:
        return SearchFilter(
            id=row["id"],
            name=row["name"],
            keywords=_loads(row["keywords"]),
            locations=_loads(row["locations"]),
            job_types=_loads(row["job_types"]),
            experience_levels=_loads(row["experience_levels"]),
            salary_min=row["salary_min"],
            salary_max=row["salary_max"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            last_used=row["last_used"],
        )

    def save_filter(self, f: SearchFilter) -> SearchFilter:
        values = (
            f.name, _dumps(f.keywords), _dumps(f.locations), _dumps(f.job_types),
            _dumps(f.experience_levels), f.salary_min, f.salary_max, int(f.is_active),
        )
        with self.transaction() as conn:
            if f.id is None:
                f.created_at = f.created_at or self._stamp()
                cur = conn.execute(
                    """INSERT INTO search_filters
                       (name, keywords, locations, job_types, experience_levels,
                        salary_min, salary_max, is_active, created_at, last_used)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (*values, f.created_at, f.last_used),
                )
                f.id = cur.lastrowid
            else:
                cur = conn.execute(
                    """UPDATE search_filters SET name = ?, keywords = ?, locations = ?,
                       job_types = ?, experience_levels = ?, salary_min = ?,
                       salary_max = ?, is_active = ? WHERE id = ?""",
                    (*values, f.id),
                )
                if cur.rowcount == 0:
                    raise NotFoundError("search filter", f.id)
        return f

    def get_filter(self, filter_id: int) -> SearchFilter:
        row = self._fetchone("SELECT * FROM search_filters WHERE id = ?", (filter_id,))
        if row is None:
            raise NotFoundError("search filter", filter_id)
        return self._row_to_filter(row)

    def list_filters(self, *, active_only: bool = False) -> list[SearchFilter]:
        sql = "SELECT * FROM search_filters"
        if active_only:
            sql += " WHERE is_active = 1"
        return [self._row_to_filter(r) for r in self._fetchall(sql + " ORDER BY id")]

    def active_filter(self) -> Optional[SearchFilter]:
        row = self._fetchone(
            """SELECT * FROM search_filters WHERE is_active = 1
               ORDER BY last_used IS NULL, last_used DESC, id DESC LIMIT 1"""
        )
        return self._row_to_filter(row) if row else None

    def mark_filter_used(self, filter_id: int, *, now: datetime | None = None) -> None:
        with self.transaction() as conn:
            conn.execute("UPDATE search_filters SET last_used = ? WHERE id = ?", (self._stamp(now), filter_id))

    def delete_filter(self, filter_id: int) -> None:
        with self.transaction() as conn:
            cur = conn.execute("DELETE FROM search_filters WHERE id = ?", (filter_id,))
            if cur.rowcount == 0:
                raise NotFoundError("search filter", filter_id)

    # -- settings -----------------------------------------------------------

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        row = self._fetchone("SELECT setting_value FROM settings WHERE setting_key = ?", (key,))
        return row["setting_value"] if row else default

    def set_setting(self, key: str, value: Any) -> None:
        with self.transaction() as conn:
            conn.execute(
                """INSERT INTO settings (setting_key, setting_value, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(setting_key) DO UPDATE SET
                     setting_value = excluded.setting_value, updated_at = excluded.updated_at""",
                (key, str(value), self._stamp()),
            )

    def delete_setting(self, key: str) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM settings WHERE setting_key = ?", (key,))

    def all_settings(self) -> dict[str, str]:
        return {r["setting_key"]: r["setting_value"] for r in self._fetchall("SELECT * FROM settings")}

    def export_settings(self) -> dict[str, Any]:
        filters = [
            {
                "name": f.name, "keywords": f.keywords, "locations": f.locations,
                "job_types": f.job_types, "experience_levels": f.experience_levels,
                "salary_min": f.salary_min, "salary_max": f.salary_max, "is_active": f.is_active,
            }
            for f in self.list_filters()
        ]
        return {"exported_at": self._stamp(), "settings": self.all_settings(), "filters": filters}

    def import_settings(self, data: dict[str, Any]) -> int:
        """Load an ``export_settings`` payload; settings and same-named filters are overwritten."""
        count = 0
        with self.transaction():
            existing = {f.name: f.id for f in self.list_filters()}
            for key, value in (data.get("settings") or {}).items():
                self.set_setting(key, value)
                count += 1
            for raw in data.get("filters") or []:
                name = raw.get("name", "imported")
                self.save_filter(SearchFilter(
                    id=existing.get(name),
                    name=name,
                    keywords=list(raw.get("keywords") or []),
                    locations=list(raw.get("locations") or []),
                    job_types=list(raw.get("job_types") or []),
                    experience_levels=list(raw.get("experience_levels") or []),
                    salary_min=raw.get("salary_min"),
                    salary_max=raw.get("salary_max"),
                    is_active=bool(raw.get("is_active", True)),
                ))
                count += 1
        log.info("Imported %d settings/filters", count)
        return count

    # -- run log ------------------------------------------------------------

    def record_run(self, outcome: RunOutcome) -> int:
        with self.transaction() as conn:
            cur = conn.execute(
                """INSERT INTO scraping_logs
                   (type, status, items_processed, errors_count, duration_ms,
                    started_at, completed_at, error_message, error_type, trigger)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    outcome.kind, RunStatus(outcome.status).value, outcome.items_processed,
                    outcome.errors_count, outcome.duration_ms, outcome.started_at,
                    outcome.completed_at, outcome.error_message, outcome.error_type,
                    outcome.trigger,
                ),
            )
            outcome.id = cur.lastrowid
        return outcome.id

    @staticmethod
    def _row_to_run(row: sqlite3.Row) -> RunOutcome:
        return RunOutcome(
            id=row["id"],
            kind=row["type"],
            status=RunStatus(row["status"]),
            items_processed=row["items_processed"],
            errors_count=row["errors_count"],
            duration_ms=row["duration_ms"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            error_message=row["error_message"],
            error_type=row["error_type"],
            trigger=row["trigger"] or "schedule",
        )

    def list_runs(self, *, kind: str | None = None, status: str | None = None, limit: int = 50) -> list[RunOutcome]:
        clauses, params = [], []
        if kind:
            clauses.append("type = ?")
            params.append(kind)
        if status:
            clauses.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(
            f"SELECT * FROM scraping_logs {where} ORDER BY id DESC LIMIT ?", [*params, limit]
        )
        return [self._row_to_run(r) for r in rows]

    def last_run(self, kind: str) -> Optional[RunOutcome]:
        runs = self.list_runs(kind=kind, limit=1)
        return runs[0] if runs else None

    # -- maintenance --------------------------------------------------------

    def prune_stale_jobs(self, *, older_than_days: int) -> int:
        """Delete unapplied jobs not seen within the window."""
        cutoff = _iso(self.now() - timedelta(days=older_than_days))
        with self.transaction() as conn:
            cur = conn.execute(
                """DELETE FROM jobs WHERE is_applied = 0
                   AND COALESCE(last_seen_at, scraped_at) < ?
                   AND NOT EXISTS (SELECT 1 FROM applications a WHERE a.job_id = jobs.job_id)""",
                (cutoff,),
            )
            return cur.rowcount

    def prune_runs(self, *, older_than_days: int) -> int:
        cutoff = _iso(self.now() - timedelta(days=older_than_days))
        with self.transaction() as conn:
            return conn.execute("DELETE FROM scraping_logs WHERE started_at < ?", (cutoff,)).rowcount

    def compact_status_history(self, *, older_than_days: int, keep: int) -> int:
        """Keep only the newest ``keep`` history entries of long-untouched applications."""
        cutoff = _iso(self.now() - timedelta(days=older_than_days))
        compacted = 0
        with self.transaction() as conn:
            rows = conn.execute(
                "SELECT application_id, status_history FROM applications WHERE last_checked < ?",
                (cutoff,),
            ).fetchall()
            for row in rows:
                history = _loads(row["status_history"])
                if len(history) <= keep:
                    continue
                trimmed = history[-keep:] if keep > 0 else []
                conn.execute(
                    "UPDATE applications SET status_history = ? WHERE application_id = ?",
                    (_dumps(trimmed), row["application_id"]),
                )
                compacted += 1
        return compacted

    def daily_stats(self, day: datetime | None = None) -> dict[str, int]:
        date_str = (day or self.now()).strftime("%Y-%m-%d")

        def count(sql: str) -> int:
            row = self._fetchone(sql, (date_str,))
            return int(row[0]) if row else 0

        status_changes = 0
        for app in self.list_applications():
            status_changes += sum(1 for h in app.status_history if h.timestamp[:10] == date_str)
        return {
            "new_jobs": count("SELECT COUNT(*) FROM jobs WHERE substr(scraped_at, 1, 10) = ?"),
            "applications": count("SELECT COUNT(*) FROM applications WHERE substr(applied_at, 1, 10) = ?"),
            "companies": count("SELECT COUNT(*) FROM companies WHERE substr(scraped_at, 1, 10) = ?"),
            "runs": count("SELECT COUNT(*) FROM scraping_logs WHERE substr(started_at, 1, 10) = ?"),
            "failed_runs": count(
                "SELECT COUNT(*) FROM scraping_logs WHERE status = 'error' AND substr(started_at, 1, 10) = ?"
            ),
            "status_changes": status_changes,
        }
