import logging
from typing import Optional

from lms.api import LmsApi
from lms.errors import ApiError
from lms.models import User, parse
from lms.queries import Keys, MINUTE
from lms.query_cache import QueryCache
from lms.validation import login_validator, signup_validator

logger = logging.getLogger(__name__)

HOME_PAGES = {
    "student": "pages/6_Student_Dashboard.py",
    "instructor": "pages/7_Instructor_Panel.py",
    "admin": "pages/9_Admin_Panel.py",
}
DEFAULT_HOME = "app.py"


def current_user(api: LmsApi, cache: QueryCache) -> Optional[User]:
    """The signed-in user, or None.

    No profile request is made without a stored token. A failed profile load
    is not retried and leaves the visitor anonymous.
    """
    if not api.client.tokens.has_token():
        return None
    try:
        data = cache.fetch(Keys.AUTH, api.auth.profile, retry=0, stale_time=5 * MINUTE)
        return parse(User, data) if data else None
    except ApiError as e:
        logger.info("Profile lookup failed: %s", e.message)
        return None


def login(api: LmsApi, cache: QueryCache, email: str, password: str) -> User:
    login_validator().validate({"email": email, "password": password})
    data = api.auth.login(email.strip(), password) or {}
    issued = data.get("tokens") or {}
    profile = data.get("user")
    if not issued.get("access") or not profile:
        logger.warning("Login response missing user data: %s", sorted(data))
        raise ApiError("Login failed: the server did not return a session")
    cache.clear()
    api.client.tokens.save(issued["access"], issued.get("refresh"))
    cache.set_data(Keys.AUTH, profile)
    return parse(User, profile)


def register(api: LmsApi, name: str, email: str, password: str, confirm_password: str,
             role: str = "student"):
    signup_validator().validate({
        "name": name,
        "email": email,
        "password": password,
        "confirm_password": confirm_password,
    })
    if role not in ("student", "instructor"):
        role = "student"
    return api.auth.register(name.strip(), email.strip(), password, role)


def logout(api: LmsApi, cache: QueryCache):
    try:
        if api.client.tokens.has_token():
            api.auth.logout()
    except ApiError as e:
        logger.warning("Server logout failed, clearing local session anyway: %s", e.message)
    finally:
        api.client.tokens.clear()
        cache.clear()


def accept_oauth_tokens(api: LmsApi, cache: QueryCache, access: str,
                        refresh: Optional[str] = None) -> Optional[User]:
    """Store tokens handed back by the OAuth redirect and load the profile."""
    api.client.tokens.save(access, refresh)
    cache.invalidate(Keys.AUTH)
    return current_user(api, cache)


def home_page_for(user: Optional[User]) -> str:
    if user is None:
        return DEFAULT_HOME
    return HOME_PAGES.get(user.role, DEFAULT_HOME)
