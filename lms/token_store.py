from typing import MutableMapping, Optional

ACCESS_KEY = "accessToken"
REFRESH_KEY = "refreshToken"


class TokenStore:
    """Access/refresh token pair kept in a per-browser mapping.

    In the app the mapping is st.session_state; tests pass a plain dict.
    """

    def __init__(self, storage: Optional[MutableMapping] = None):
        self._storage = storage if storage is not None else {}

    @property
    def access_token(self) -> Optional[str]:
        return self._storage.get(ACCESS_KEY)

    @property
    def refresh_token(self) -> Optional[str]:
        return self._storage.get(REFRESH_KEY)

    def has_token(self) -> bool:
        return bool(self.access_token)

    def save(self, access: str, refresh: Optional[str] = None):
        self._storage[ACCESS_KEY] = access
        if refresh:
            self._storage[REFRESH_KEY] = refresh

    def clear(self):
        for key in (ACCESS_KEY, REFRESH_KEY):
            if key in self._storage:
                del self._storage[key]
