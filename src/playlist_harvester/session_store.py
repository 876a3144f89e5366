"""Process-scoped key/value storage for credentials and the last query."""

from __future__ import annotations

from threading import Lock

from .models import Credential

CLIENT_ID_KEY = "spotify_client_id"
CLIENT_SECRET_KEY = "spotify_client_secret"
LAST_SEARCH_QUERY_KEY = "last_search_query"


class SessionStore:
    """Nothing written here outlives the process."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._lock = Lock()

    def persist(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def load(self, key: str, default: str = "") -> str:
        return self._values.get(key, default)

    def save_credentials(self, credential: Credential) -> None:
        if credential.client_id:
            self.persist(CLIENT_ID_KEY, credential.client_id)
        if credential.client_secret:
            self.persist(CLIENT_SECRET_KEY, credential.client_secret)

    def load_credentials(self) -> Credential:
        return Credential(
            client_id=self.load(CLIENT_ID_KEY),
            client_secret=self.load(CLIENT_SECRET_KEY),
        )

    def save_last_query(self, query: str) -> None:
        if query:
            self.persist(LAST_SEARCH_QUERY_KEY, query)

    def load_last_query(self) -> str:
        return self.load(LAST_SEARCH_QUERY_KEY)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()
