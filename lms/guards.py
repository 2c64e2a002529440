from enum import Enum
from typing import Iterable, Optional

import streamlit as st

from lms.models import User


class Access(str, Enum):
    ALLOW = "allow"
    LOGIN = "login"
    UNAUTHORIZED = "unauthorized"


def check_access(user: Optional[User], allowed_roles: Optional[Iterable[str]] = None) -> Access:
    if user is None:
        return Access.LOGIN
    if allowed_roles is not None and user.role not in tuple(allowed_roles):
        return Access.UNAUTHORIZED
    return Access.ALLOW


def require_auth(user: Optional[User], page: Optional[str] = None) -> User:
    """Stop the page for anonymous visitors.

    The requested page is remembered so the sidebar login can send the user
    back to it.
    """
    if check_access(user) is Access.LOGIN:
        if page:
            st.session_state.redirect_after_login = page
        st.info("Please sign in from the sidebar to continue.")
        st.stop()
    return user


def require_role(user: Optional[User], *roles: str, page: Optional[str] = None) -> User:
    require_auth(user, page)
    if check_access(user, roles) is Access.UNAUTHORIZED:
        st.error("Unauthorized: you do not have permission to view this page.")
        st.page_link("app.py", label="Back to home", icon="🏠")
        st.stop()
    return user
