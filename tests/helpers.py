import logging
import re
from collections.abc import Callable
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any

from playlist_harvester.api import SpotifyApi
from playlist_harvester.app import Application, build_application
from playlist_harvester.cancellation import CancellationToken
from playlist_harvester.config import HarvestConfig
from playlist_harvester.models import DetailRecord, PageState
from playlist_harvester.retry import RateLimitWaiter

TOKEN_PATH = "/api/token"
SEARCH_PATH = "/search"
PLAYLIST_PATH = re.compile(r"/playlists/(?P<id>[^/?]+)$")


class FakeResponse:
    def __init__(
        self,
        *,
        status_code: int = 200,
        payload: Any = None,
        headers: dict[str, str] | None = None,
        reason: str = "",
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.reason = reason

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


@dataclass
class Call:
    method: str
    url: str
    kwargs: dict[str, Any]

    @property
    def params(self) -> dict[str, Any]:
        return self.kwargs.get("params") or {}

    @property
    def bearer(self) -> str:
        return (self.kwargs.get("headers") or {}).get("Authorization", "")


Handler = Callable[[Call], FakeResponse]


class FakeSession:
    """Answers token, search and playlist requests from queued responses or handlers."""

    def __init__(self) -> None:
        self.headers: dict[str, str] = {}
        self.calls: list[Call] = []
        self._queues: dict[str, list[FakeResponse | Exception]] = {}
        self._handlers: dict[str, Handler] = {}
        self._token_counter = 0
        self.on_token(self._default_token)
        self.on_playlist(lambda call: FakeResponse(payload=playlist_payload(playlist_id(call))))

    def _default_token(self, _call: Call) -> FakeResponse:
        self._token_counter += 1
        return FakeResponse(payload={"access_token": f"token-{self._token_counter}"})

    def on_token(self, handler: Handler) -> None:
        self._handlers["token"] = handler

    def on_search(self, handler: Handler) -> None:
        self._handlers["search"] = handler

    def on_playlist(self, handler: Handler) -> None:
        self._handlers["playlist"] = handler

    def queue(self, route: str, *responses: FakeResponse | Exception) -> None:
        """Responses served before falling back to the route handler."""
        self._queues.setdefault(route, []).extend(responses)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        call = Call(method=method, url=url, kwargs=kwargs)
        self.calls.append(call)
        route = route_of(url)
        queued = self._queues.get(route)
        if queued:
            item = queued.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return self._handlers[route](call)

    def calls_to(self, route: str) -> list[Call]:
        return [call for call in self.calls if route_of(call.url) == route]


def route_of(url: str) -> str:
    if url.endswith(TOKEN_PATH):
        return "token"
    if url.endswith(SEARCH_PATH):
        return "search"
    if PLAYLIST_PATH.search(url):
        return "playlist"
    raise AssertionError(f"unexpected url {url}")


def playlist_id(call: Call) -> str:
    match = PLAYLIST_PATH.search(call.url)
    assert match is not None
    return match.group("id")


def playlist_payload(
    pid: str, description: str | None = None, *, name: str | None = None
) -> dict[str, Any]:
    return {
        "id": pid,
        "name": name or f"Playlist {pid}",
        "owner": {"id": f"owner-{pid}", "display_name": f"Owner {pid}"},
        "description": f"Submissions: {pid}@example.com" if description is None else description,
        "followers": {"total": 10},
        "external_urls": {"spotify": f"https://open.spotify.com/playlist/{pid}"},
        "images": [{"url": f"https://i.scdn.co/image/{pid}"}],
    }


def search_payload(total: int, ids: list[str | None]) -> dict[str, Any]:
    return {
        "playlists": {
            "total": total,
            "items": [None if pid is None else {"id": pid, "name": pid} for pid in ids],
        }
    }


def paged_search(total: int, prefix: str = "p") -> Handler:
    """Search handler that serves ``total`` playlists honouring limit/offset."""

    def handler(call: Call) -> FakeResponse:
        limit = int(call.params["limit"])
        offset = int(call.params["offset"])
        ids: list[str | None] = [f"{prefix}{n}" for n in range(offset, min(offset + limit, total))]
        return FakeResponse(payload=search_payload(total, ids))

    return handler


class RecordingListener:
    def __init__(self) -> None:
        self.statuses: list[str] = []
        self.errors: list[str] = []
        self.records: list[DetailRecord] = []
        self.progress: list[tuple[int, int, int]] = []
        self.pages: list[PageState] = []
        self.progress_hook: Callable[[int, int, int], None] | None = None
        self.record_hook: Callable[[DetailRecord], None] | None = None

    def on_status(self, message: str) -> None:
        self.statuses.append(message)

    def on_error(self, message: str) -> None:
        self.errors.append(message)

    def on_record(self, record: DetailRecord) -> None:
        self.records.append(record)
        if self.record_hook is not None:
            self.record_hook(record)

    def on_progress(self, processed: int, total: int, emails_found: int) -> None:
        self.progress.append((processed, total, emails_found))
        if self.progress_hook is not None:
            self.progress_hook(processed, total, emails_found)

    def on_page(self, state: PageState) -> None:
        self.pages.append(state)


class RecordingExporter:
    def __init__(self) -> None:
        self.exports: list[list[DetailRecord]] = []
        self.failure: Exception | None = None

    def export(self, records: list[DetailRecord], filename: str | None = None) -> str:
        if self.failure is not None:
            raise self.failure
        self.exports.append(list(records))
        return filename or f"export-{len(self.exports)}.json"


@dataclass
class Harness:
    app: Application
    session: FakeSession
    listener: RecordingListener
    sink: RecordingExporter
    sleeps: list[float] = field(default_factory=list)


def recording_sleep(sleeps: list[float]) -> Callable[[float, CancellationToken], None]:
    def _sleep(seconds: float, token: CancellationToken) -> None:
        token.raise_if_cancelled()
        sleeps.append(seconds)

    return _sleep


def make_harness(
    session: FakeSession | None = None, *, executor: Executor | None = None, **overrides: Any
) -> Harness:
    session = session or FakeSession()
    options: dict[str, Any] = {"client_id": "client", "client_secret": "secret"}
    options.update(overrides)
    config = HarvestConfig(**options)
    listener = RecordingListener()
    sink = RecordingExporter()
    sleeps: list[float] = []
    app = build_application(
        config,
        logger=logging.getLogger("test"),
        listener=listener,
        session=session,  # type: ignore[arg-type]
        sink=sink,
        sleep_fn=recording_sleep(sleeps),
        executor=executor,
    )
    return Harness(app=app, session=session, listener=listener, sink=sink, sleeps=sleeps)


def make_api(session: FakeSession, sleeps: list[float], **kwargs: Any) -> SpotifyApi:
    waiter = RateLimitWaiter(
        status_fn=lambda _message: None,
        logger=logging.getLogger("test"),
        sleep_fn=recording_sleep(sleeps),
    )
    return SpotifyApi(
        session=session,  # type: ignore[arg-type]
        waiter=waiter,
        token_url="https://accounts.spotify.com/api/token",
        api_base_url="https://api.spotify.com/v1",
        timeout=5.0,
        logger=logging.getLogger("test"),
        **kwargs,
    )
