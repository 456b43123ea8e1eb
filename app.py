"""Streamlit control panel for the LinkedIn automation agent."""
from __future__ import annotations

import json
import sys
from pathlib import Path

import streamlit as st

ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT))

from linkedin_agent.agent import Agent, build_agent
from linkedin_agent.errors import AgentError
from linkedin_agent.log import get_logger
from linkedin_agent.models import APPLICATION_STATUSES, SearchFilter, TaskKind

log = get_logger(__name__)

_TASK_LABELS: dict[TaskKind, str] = {
    TaskKind.DISCOVERY: "Job discovery",
    TaskKind.STATUS_CHECK: "Application tracking",
    TaskKind.RESEARCH: "Company research",
    TaskKind.AUTO_APPLY: "Auto-apply",
    TaskKind.MAINTENANCE: "Daily maintenance",
}

# ── Helpers ──────────────────────────────────────────────────────────────


@st.cache_resource
def _agent() -> Agent:
    return build_agent()


def _split(text: str) -> list[str]:
    return [p.strip() for p in text.split(",") if p.strip()]


def _check(label: str, ok: bool) -> str:
    return f"{'✅' if ok else '⬜'} {label}"


# ── Page: Dashboard ──────────────────────────────────────────────────────


def page_dashboard() -> None:
    st.header("Dashboard")
    agent = _agent()
    coord = agent.coordinator
    status = coord.status()

    stats = agent.store.daily_stats()
    app_stats = agent.store.application_stats()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("New jobs today", stats["new_jobs"])
    c2.metric("Applied today", f"{stats['applications']}/{agent.settings.max_applications_per_day}")
    c3.metric("Applications", app_stats["total"])
    c4.metric("Response rate", f"{app_stats['response_rate']:.0f}%")

    if status["pending_challenge"]:
        st.warning(f"Login verification pending: **{status['pending_challenge']}**")
        with st.form("challenge"):
            code = st.text_input("Verification code (leave empty if you completed it in the browser)")
            if st.form_submit_button("Resolve", type="primary"):
                agent.sessions.gate.resolve(code or None)
                st.rerun()

    st.divider()
    st.subheader("Scheduler")
    c1, c2 = st.columns(2)
    c1.markdown(_check("Scheduler running", status["running"]))
    c2.markdown(f"Session: `{status['session_state']}`")
    if status["running"]:
        if st.button("Stop scheduler"):
            coord.stop()
            st.rerun()
    elif st.button("Start scheduler", type="primary"):
        coord.start()
        st.rerun()

    jobs = status["jobs"]
    for kind, label in _TASK_LABELS.items():
        info = jobs.get(kind.value)
        with st.container(border=True):
            c1, c2, c3, c4 = st.columns([3, 2, 1, 1])
            c1.markdown(f"**{label}**  \n`{kind.value}`")
            if info:
                state = "running" if info["running"] else ("paused" if info["paused"] else "idle")
                c2.markdown(
                    f"{info['schedule']}, {state}  \n"
                    f"last: {info['last_status'] or '-'}, next: {info['next_run'] or '-'}  \n"
                    f"runs {info['runs']}, failed {info['failures']}, skipped {info['skipped']}"
                )
                if c3.button("Run", key=f"run_{kind.value}", disabled=info["running"]):
                    coord.trigger(kind)
                    st.toast(f"{label} triggered")
                if info["paused"]:
                    if c4.button("Resume", key=f"resume_{kind.value}"):
                        coord.resume(kind)
                        st.rerun()
                elif c4.button("Pause", key=f"pause_{kind.value}"):
                    coord.pause(kind)
                    st.rerun()
            else:
                c2.markdown("_not scheduled_")
                if c3.button("Run once", key=f"once_{kind.value}"):
                    try:
                        accepted = coord.trigger(kind)
                    except AgentError as exc:
                        st.error(str(exc))
                    else:
                        st.toast(f"{label} triggered" if accepted else f"{label} is already running")


# ── Page: Jobs ───────────────────────────────────────────────────────────


def page_jobs() -> None:
    st.header("Jobs")
    store = _agent().store
    c1, c2, c3 = st.columns([3, 1, 1])
    search = c1.text_input("Search title, company or description")
    min_score = c2.slider("Min match %", 0, 100, 0)
    only_open = c3.checkbox("Not applied only")

    jobs = store.list_jobs(search=search or None, min_score=min_score or None,
                           applied=False if only_open else None, limit=500)
    if not jobs:
        st.info("No jobs yet. Run **Job discovery** from the Dashboard.")
        return
    st.dataframe(
        [
            {"job_id": j.job_id, "title": j.title, "company": j.company, "location": j.location,
             "match": j.match_score, "applied": j.is_applied, "scraped_at": j.scraped_at, "url": j.url}
            for j in jobs
        ],
        use_container_width=True,
        column_config={
            "url": st.column_config.LinkColumn("Link"),
            "match": st.column_config.ProgressColumn("Match", min_value=0, max_value=100, format="%.0f%%"),
        },
        hide_index=True,
    )

    with st.expander("Manage a job"):
        job_id = st.selectbox("Job", [j.job_id for j in jobs],
                              format_func=lambda jid: next(f"{j.title} @ {j.company}" for j in jobs if j.job_id == jid))
        c1, c2 = st.columns(2)
        if c1.button("Mark as applied"):
            try:
                store.mark_job_applied(job_id, notes="Marked from dashboard")
                st.success("Recorded")
            except AgentError as exc:
                st.error(str(exc))
        if c2.button("Delete job"):
            store.delete_job(job_id)
            st.rerun()


# ── Page: Applications ───────────────────────────────────────────────────


def page_applications() -> None:
    st.header("Applications")
    store = _agent().store
    stats = store.application_stats()
    cols = st.columns(max(1, len(stats["by_status"])))
    for col, (status, n) in zip(cols, sorted(stats["by_status"].items())):
        col.metric(status, n)

    apps = store.list_applications()
    if not apps:
        st.info("No applications tracked yet.")
        return
    jobs = {a.job_id: store.find_job(a.job_id) for a in apps}
    st.dataframe(
        [
            {"application_id": a.application_id,
             "title": jobs[a.job_id].title if jobs[a.job_id] else "",
             "company": jobs[a.job_id].company if jobs[a.job_id] else "",
             "status": a.status, "applied_at": a.applied_at, "last_checked": a.last_checked,
             "changes": len(a.status_history), "notes": a.notes or ""}
            for a in apps
        ],
        use_container_width=True,
        hide_index=True,
    )

    with st.expander("Update an application"):
        app_id = st.selectbox("Application", [a.application_id for a in apps])
        new_status = st.selectbox("Status", APPLICATION_STATUSES)
        notes = st.text_input("Notes")
        c1, c2 = st.columns(2)
        if c1.button("Save status", type="primary"):
            store.record_status_change(app_id, new_status, notes=notes or None)
            st.rerun()
        if c2.button("Delete application"):
            store.delete_application(app_id)
            st.rerun()
        selected = next(a for a in apps if a.application_id == app_id)
        for h in selected.status_history:
            st.markdown(f"- {h.timestamp}: {h.previous_status or '-'} → **{h.status}**")


# ── Page: Companies ──────────────────────────────────────────────────────


def page_companies() -> None:
    st.header("Companies")
    store = _agent().store
    companies = store.list_companies(limit=200)
    if not companies:
        st.info("No companies researched yet.")
        return
    for c in companies:
        with st.expander(f"{c.company_name}  ·  {c.industry or 'unknown industry'}"):
            st.markdown(
                f"**Size:** {c.size or '-'}  \n**Location:** {c.location or '-'}  \n"
                f"**Founded:** {c.founded_year or '-'}  \n**Website:** {c.website or '-'}"
            )
            if c.description:
                st.write(c.description)
            if c.specialties:
                st.caption(", ".join(c.specialties))
            recruiters = store.list_recruiters(c.company_name)
            for r in recruiters:
                st.markdown(f"- [{r.name}]({r.profile_url}) {r.title or ''}")
            if st.button("Delete company", key=f"del_{c.company_name}"):
                store.delete_company(c.company_name)
                st.rerun()


# ── Page: Runs & reports ─────────────────────────────────────────────────


def page_runs() -> None:
    st.header("Runs & Reports")
    agent = _agent()
    tab_runs, tab_reports = st.tabs(["Run log", "Daily reports"])

    with tab_runs:
        kind = st.selectbox("Task", ["all"] + [k.value for k in TaskKind])
        runs = agent.store.list_runs(kind=None if kind == "all" else kind, limit=200)
        if not runs:
            st.info("No runs recorded yet.")
        else:
            st.dataframe(
                [
                    {"task": r.kind, "status": r.status.value, "trigger": r.trigger,
                     "processed": r.items_processed, "errors": r.errors_count,
                     "duration_s": round(r.duration_ms / 1000, 1), "started_at": r.started_at,
                     "error_type": r.error_type or "", "error": r.error_message or ""}
                    for r in runs
                ],
                use_container_width=True,
                hide_index=True,
            )

    with tab_reports:
        reports = sorted(Path(agent.settings.reports_dir).glob("daily_*.md"), reverse=True)
        if not reports:
            st.info("No reports yet. They are written by the nightly maintenance run.")
        else:
            selected = st.selectbox("Select report", reports, format_func=lambda p: p.stem.replace("daily_", ""))
            if selected:
                st.markdown(selected.read_text(encoding="utf-8"))


# ── Page: Settings ───────────────────────────────────────────────────────


def page_settings() -> None:
    st.header("Settings")
    store = _agent().store
    tab_filters, tab_data = st.tabs(["Search filters", "Import / export"])

    with tab_filters:
        for f in store.list_filters():
            c1, c2 = st.columns([4, 1])
            c1.markdown(
                f"**{f.name}** {'(active)' if f.is_active else '(inactive)'}  \n"
                f"{', '.join(f.keywords) or '-'} · {', '.join(f.locations) or '-'} · last used {f.last_used or 'never'}"
            )
            if c2.button("Delete", key=f"del_filter_{f.id}"):
                store.delete_filter(f.id)
                st.rerun()
        with st.form("new_filter"):
            name = st.text_input("Name")
            keywords = st.text_input("Keywords (comma separated)")
            locations = st.text_input("Locations (comma separated)")
            job_types = st.text_input("Job types (full-time, contract, …)")
            if st.form_submit_button("Save filter", type="primary") and name:
                store.save_filter(SearchFilter(
                    name=name, keywords=_split(keywords), locations=_split(locations), job_types=_split(job_types)
                ))
                st.rerun()

    with tab_data:
        st.download_button(
            "Export settings",
            json.dumps(store.export_settings(), indent=2),
            file_name="linkedin_agent_settings.json",
            mime="application/json",
        )
        uploaded = st.file_uploader("Import settings", type=["json"])
        if uploaded is not None and st.button("Import"):
            try:
                n = store.import_settings(json.loads(uploaded.read()))
                st.success(f"Imported {n} item(s)")
            except (ValueError, AgentError) as exc:
                st.error(f"Import failed: {exc}")


pages = [
    st.Page(page_dashboard, title="Dashboard", icon="🚀", url_path="dashboard", default=True),
    st.Page(page_jobs, title="Jobs", icon="💼", url_path="jobs"),
    st.Page(page_applications, title="Applications", icon="📨", url_path="applications"),
    st.Page(page_companies, title="Companies", icon="🏢", url_path="companies"),
    st.Page(page_runs, title="Runs & Reports", icon="📋", url_path="runs"),
    st.Page(page_settings, title="Settings", icon="⚙️", url_path="settings"),
]

nav = st.navigation(pages)
nav.run()
