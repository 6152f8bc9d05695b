import asyncio
from contextlib import contextmanager

import pandas as pd
import streamlit as st

from profile_core.charts import Drawing, render_dashboard
from profile_core.client import ApiClient
from profile_core.config import settings
from profile_core.data import format_ratio, format_xp
from profile_core.errors import AuthError, FetchFailed, TokenExpired, TokenInvalid, Unauthorized
from profile_core.filters import normalize_options
from profile_core.pipeline import refresh, sign_in
from profile_core.session import ProfileSession, browser_session


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .placeholder {color: #666666;text-align: center;padding: 40px 0;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def get_session() -> ProfileSession:
    return browser_session(st.session_state)


def show_drawing(drawing: Drawing):
    if drawing.is_placeholder:
        st.markdown(f"<div class='placeholder'>{drawing.placeholder}</div>", unsafe_allow_html=True)
        return
    st.vega_lite_chart(drawing.spec, use_container_width=True)


async def _sign_in(session: ProfileSession, username: str, password: str) -> str:
    async with ApiClient() as client:
        return await sign_in(session, client, username, password)


async def _refresh(session: ProfileSession, options):
    async with ApiClient() as client:
        return await refresh(session, client, options=options)


def render_login(session: ProfileSession):
    st.title("Learner Profile")
    st.caption("Sign in with your username or email.")
    notice = st.session_state.pop("auth_notice", None)
    if notice:
        st.warning(notice)
    with st.form("login"):
        username = st.text_input("Username or email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in")
    if submitted:
        try:
            asyncio.run(_sign_in(session, username, password))
        except AuthError as exc:
            st.error(str(exc))
            return
        st.session_state["needs_refresh"] = True
        st.rerun()


def render_header(session: ProfileSession):
    dataset = session.dataset
    name = " ".join(p for p in [dataset.first_name, dataset.last_name] if p) if dataset else ""
    c1, c2, c3 = st.columns([6, 2, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>Profile / {dataset.login if dataset else ''}</div>"
            f"<div class='page-title'>Welcome, {name or 'learner'}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if st.button("Refresh"):
            st.session_state["needs_refresh"] = True
            st.rerun()
    with c3:
        if st.button("Logout"):
            session.logout()
            st.rerun()


def render_stat_panels(session: ProfileSession):
    dataset = session.dataset
    cols = st.columns(4)
    cols[0].metric("Total XP", format_xp(dataset.total_xp), help=f"{dataset.total_xp:,} XP")
    cols[1].metric("Level", dataset.level)
    cols[2].metric("Audit ratio", format_ratio(dataset.audit_ratio), help=f"Given {format_xp(dataset.audit_given)} / received {format_xp(dataset.audit_received)}")
    cols[3].metric("Pass rate", f"{dataset.pass_rate}%", help=f"{dataset.passed} passed, {dataset.failed} failed")

    with st.expander("Profile details"):
        st.write(f"**Login:** {dataset.login}")
        if dataset.email:
            st.write(f"**Email:** {dataset.email}")
        st.write(f"**Projects graded:** {dataset.total_projects}")
        st.caption(f"Skills source: {dataset.skill_source.value}. Updated {dataset.assembled_at}.")


def render_charts(session: ProfileSession, options):
    drawings = render_dashboard(session.dataset, options)
    row1 = st.columns(2)
    with row1[0]:
        with card("XP Progress Over Time"):
            show_drawing(drawings["xp_progress"])
    with row1[1]:
        with card("Audit Ratio"):
            show_drawing(drawings["audit"])
        with card("Project Pass / Fail"):
            show_drawing(drawings["pass_fail"])
    row2 = st.columns(2)
    with row2[0]:
        with card("XP by Project"):
            show_drawing(drawings["top_projects"])
    with row2[1]:
        with card("Top Skills"):
            show_drawing(drawings["skills"])
    with card("Piscine Stats"):
        show_drawing(drawings["piscine"])

    recent = pd.DataFrame([dict(t) for t in session.dataset.transactions[-10:]][::-1])
    if not recent.empty:
        with card("Recent XP"):
            cols = [c for c in ["createdAt", "path", "amount"] if c in recent.columns]
            st.dataframe(recent[cols], use_container_width=True, hide_index=True)


# ---------- UI setup ----------
st.set_page_config(page_title="Learner Profile", layout="wide")
inject_base_styles()
session = get_session()

if not session.is_authenticated:
    render_login(session)
    st.stop()

with st.sidebar:
    st.markdown("### Display")
    top_n_skills = st.slider("Skills shown", min_value=1, max_value=10, value=settings.top_n_skills)
options = normalize_options({"top_n_skills": top_n_skills})

if st.session_state.pop("needs_refresh", False) or session.dataset is None:
    try:
        with st.spinner("Loading your profile..."):
            asyncio.run(_refresh(session, options))
    except (TokenInvalid, TokenExpired, Unauthorized) as exc:
        # the session is already cleared; the login screen shows why
        st.session_state["auth_notice"] = str(exc)
        st.rerun()
    except FetchFailed as exc:
        st.error(f"Could not load data: {exc}")

if session.dataset is None:
    st.info("No data available yet.")
    if st.button("Retry"):
        st.rerun()
    st.stop()

render_header(session)
render_stat_panels(session)
render_charts(session, options)
