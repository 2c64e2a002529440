import html
import logging
from typing import Optional

import streamlit as st

from lms import auth, queries
from lms.app_state import get_api, get_cache
from lms.config import OAUTH_URL
from lms.errors import ApiError, ValidationError
from lms.models import User
from lms.queries import MutationResult

logger = logging.getLogger(__name__)


def apply_global_styles():
    st.markdown(
        """
        <style>
        @import url('https://fonts.googleapis.com/css2?family=Space+Grotesk:wght@400;600;700&family=IBM+Plex+Sans:wght@400;600&display=swap');

        :root {
            --bg-0: #0b0f14;
            --bg-1: #0f141b;
            --fg-0: #e6edf3;
            --fg-1: #c6d1dc;
            --muted: #9aa7b4;
            --accent: #4cc9f0;
            --ok: #80ed99;
            --warn: #ffb703;
            --bad: #ef476f;
        }

        .stApp {
            background: radial-gradient(1200px 600px at 15% -10%, #1a2230 0%, var(--bg-0) 60%);
            color: var(--fg-0);
            font-family: "IBM Plex Sans", sans-serif;
        }

        h1, h2, h3, h4 {
            font-family: "Space Grotesk", sans-serif;
            letter-spacing: 0.3px;
        }

        .hero {
            padding: 1.5rem 1.75rem;
            background: linear-gradient(120deg, #141b24 0%, #0f141b 55%, #111925 100%);
            border: 1px solid #1f2a38;
            border-radius: 16px;
            box-shadow: 0 12px 40px rgba(0, 0, 0, 0.35);
            margin-bottom: 1.5rem;
        }

        .hero h2 {
            margin-bottom: 0.5rem;
        }

        .hero p {
            color: var(--fg-1);
            margin: 0;
        }

        .card {
            padding: 1rem 1.1rem;
            background: var(--bg-1);
            border: 1px solid #1d2634;
            border-radius: 14px;
            margin-bottom: 0.75rem;
        }

        .badge {
            display: inline-block;
            padding: 0.1rem 0.55rem;
            border-radius: 999px;
            font-size: 0.8rem;
            border: 1px solid #2b3645;
            color: var(--fg-1);
        }

        .badge-pending { color: var(--warn); border-color: var(--warn); }
        .badge-approved, .badge-published { color: var(--ok); border-color: var(--ok); }
        .badge-rejected { color: var(--bad); border-color: var(--bad); }

        .timer {
            font-family: "Space Grotesk", monospace;
            font-size: 1.6rem;
            font-weight: 700;
        }

        .timer-low {
            color: var(--bad);
        }

        [data-testid="stSidebarNav"] {
            display: none;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


def hero(title: str, subtitle: str = ""):
    st.markdown(
        f"""
        <div class="hero">
            <h2>{html.escape(title)}</h2>
            <p>{html.escape(subtitle)}</p>
        </div>
        """,
        unsafe_allow_html=True,
    )


def badge(text: str, kind: str = ""):
    return f'<span class="badge badge-{html.escape(kind)}">{html.escape(text)}</span>'


def notify(result: MutationResult, icon_ok: str = "✅", icon_fail: str = "⚠️"):
    st.toast(result.message, icon=icon_ok if result.ok else icon_fail)


def show_field_errors(error: ValidationError):
    for field, messages in error.errors.items():
        for message in messages:
            st.error(message)


def render_sidebar(user: Optional[User]):
    with st.sidebar:
        st.header("Account")
        render_auth(user)

        st.divider()

        render_nav(user)


def _after_login(user: User):
    target = st.session_state.get("redirect_after_login") or auth.home_page_for(user)
    st.session_state.redirect_after_login = None
    st.switch_page(target)


def render_auth(user: Optional[User]):
    api, cache = get_api(), get_cache()

    if st.session_state.pop("logged_out_notice", False):
        st.warning("Your session expired. Please sign in again.")

    if user is None:
        auth_options = ["Sign in", "Create account"]
        if st.session_state.get("pending_auth_tab"):
            st.session_state["auth_tab"] = auth_options[0]
            st.session_state.reg_success = True
            st.session_state.pending_auth_tab = False
        auth_tab = st.selectbox("Account", auth_options, key="auth_tab")
        if auth_tab == auth_options[0]:
            if st.session_state.get("reg_success"):
                st.success("Account created successfully! Please log in.")
                st.session_state.reg_success = False
            email = st.text_input("Email", key="login_email")
            password = st.text_input("Password", type="password", key="login_password")
            if st.button("Sign in", key="login_btn", type="primary"):
                try:
                    signed_in = auth.login(api, cache, email, password)
                except ValidationError as e:
                    show_field_errors(e)
                except ApiError as e:
                    logger.info("Login rejected: %s", e.message)
                    st.error(e.message or "Login failed")
                else:
                    st.toast("Login successful!", icon="✅")
                    _after_login(signed_in)
            st.link_button("Continue with Google", OAUTH_URL)
        else:
            reg_name = st.text_input("Full name", key="reg_name")
            reg_email = st.text_input("Email", key="reg_email")
            reg_password = st.text_input("Password", type="password", key="reg_password")
            reg_confirm = st.text_input("Confirm password", type="password", key="reg_confirm")
            role_choice = st.selectbox("I am a", ["student", "instructor"], key="reg_role")
            if st.button("Create account", key="reg_btn", type="primary"):
                try:
                    auth.register(api, reg_name, reg_email, reg_password, reg_confirm, role_choice)
                    st.session_state.pending_auth_tab = True
                    st.rerun()
                except ValidationError as e:
                    show_field_errors(e)
                except ApiError as e:
                    logger.exception("Registration failed")
                    st.error(e.message or "Signup failed. Please try again.")
    else:
        st.markdown(f"**Signed in as:** {user.display_name}")
        st.caption(f"Role: {user.role}")
        with st.expander("Edit profile"):
            with st.form("profile_form"):
                new_name = st.text_input("Full name", value=user.name or "")
                saved = st.form_submit_button("Save")
            if saved:
                if not new_name.strip():
                    st.error("Name is required")
                else:
                    result = queries.update_profile(api, cache, {"name": new_name.strip()})
                    notify(result)
                    if result.ok:
                        st.rerun()
        if st.button("Sign out", key="logout_btn"):
            auth.logout(api, cache)
            st.session_state.quiz_sessions = {}
            st.switch_page("app.py")


def render_nav(user: Optional[User]):
    role = user.role if user else None

    st.header("Menu")
    st.page_link("app.py", label="Home", icon="🏠")
    st.page_link("pages/1_Course_Catalog.py", label="Course catalog", icon="📚")

    if role == "student":
        st.page_link("pages/6_Student_Dashboard.py", label="My learning", icon="🎓")
    if role == "instructor":
        st.page_link("pages/7_Instructor_Panel.py", label="Instructor panel", icon="🧑‍🏫")
        st.page_link("pages/8_Assignment_Grading.py", label="Grading", icon="📝")
    if role == "admin":
        st.page_link("pages/9_Admin_Panel.py", label="Admin panel", icon="🛡️")
