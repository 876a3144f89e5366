"""Bulk export: walk every result page for a query and collect playlists with emails."""

from __future__ import annotations

import enum
import logging
import math

from .api import SpotifyApi
from .auth import TokenProvider, call_with_reauth
from .cancellation import CancellationScope, CancellationToken
from .errors import ExportError, HarvesterError, ServerUnavailable, UserCancelled
from .fetchers import DetailFetcher
from .models import (
    DEFAULT_PAGE_SIZE,
    Credential,
    DetailRecord,
    ExportOutcome,
    ExportState,
    ExportStatus,
    Exporter,
    ProgressListener,
    SearchPage,
    page_count,
)
from .retry import RetryPolicy, SleepFn, cancellable_sleep
from .session_store import SessionStore
from .validation import normalize_query

AVG_SECONDS_PER_PLAYLIST = 0.5


class ExportPhase(enum.Enum):
    IDLE = "idle"
    EXPORTING = "exporting"


def format_duration(seconds: int) -> str:
    """Format seconds as e.g. ``1h 2m 5s``."""
    hours, rest = divmod(max(int(seconds), 0), 3600)
    minutes, secs = divmod(rest, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def estimate_export_time(total_playlists: int) -> dict[str, object]:
    seconds = math.ceil(total_playlists * AVG_SECONDS_PER_PLAYLIST)
    return {
        "total_playlists": total_playlists,
        "estimated_time_seconds": seconds,
        "estimated_time_formatted": format_duration(seconds),
    }


class BulkExportController:
    """Exhaustive traversal of a query with stop-and-salvage support."""

    def __init__(
        self,
        *,
        api: SpotifyApi,
        tokens: TokenProvider,
        fetcher: DetailFetcher,
        scope: CancellationScope,
        listener: ProgressListener,
        store: SessionStore,
        exporter: Exporter,
        logger: logging.Logger,
        auth_policy: RetryPolicy,
        page_retry_policy: RetryPolicy,
        page_size: int = DEFAULT_PAGE_SIZE,
        sleep_fn: SleepFn = cancellable_sleep,
    ) -> None:
        self._api = api
        self._tokens = tokens
        self._fetcher = fetcher
        self._scope = scope
        self._listener = listener
        self._store = store
        self._exporter = exporter
        self._logger = logger
        self._auth_policy = auth_policy
        self._page_retry_policy = page_retry_policy
        self._sleep_fn = sleep_fn
        self.page_size = page_size
        self.phase = ExportPhase.IDLE
        self.state = ExportState()
        self._partial: list[DetailRecord] | None = None

    @property
    def in_progress(self) -> bool:
        return self.phase is ExportPhase.EXPORTING

    @property
    def has_partial_results(self) -> bool:
        return bool(self._partial)

    def export_all(self, query: str, credential: Credential) -> ExportOutcome:
        trimmed = normalize_query(query)
        if not trimmed:
            return self._fail("Please enter a search query")

        token = self._scope.begin()
        self.phase = ExportPhase.EXPORTING
        self.state = ExportState(query=trimmed)
        self._partial = None
        try:
            self._tokens.acquire(credential, token)
            self._store.save_last_query(trimmed)
            self._store.save_credentials(credential)
            self._listener.on_status("Starting full export...")
            return self._run(trimmed, token)
        except UserCancelled:
            return self._handle_stopped()
        except HarvesterError as exc:
            return self._fail(exc.message)
        finally:
            self.phase = ExportPhase.IDLE
            self._scope.end(token)

    def _run(self, query: str, token: CancellationToken) -> ExportOutcome:
        counted = self._search(query, limit=1, offset=0, token=token)
        self.state.total_to_process = counted.total
        if counted.total == 0:
            message = "No playlists found for this query."
            self._listener.on_status(message)
            return ExportOutcome(ExportStatus.NOTHING_TO_EXPORT, message)

        estimate = estimate_export_time(counted.total)
        self._listener.on_status(
            f"Found {counted.total} playlists. Starting export "
            f"(about {estimate['estimated_time_formatted']})..."
        )
        for page_index in range(page_count(counted.total, self.page_size)):
            if token.cancelled:
                return self._handle_stopped()
            page = self._search_page(query, page_index, token)
            if page is None:
                continue
            self._process_items(page, token)

        return self._handle_completed()

    def _search(
        self, query: str, *, limit: int, offset: int, token: CancellationToken
    ) -> SearchPage:
        return call_with_reauth(
            self._tokens,
            lambda access: self._api.search_playlists(
                access, query, limit=limit, offset=offset, cancel=token
            ),
            policy=self._auth_policy,
            cancel=token,
            logger=self._logger,
        )

    def _search_page(
        self, query: str, page_index: int, token: CancellationToken
    ) -> SearchPage | None:
        """Fetch one page, backing off on server errors and skipping it when they persist."""
        offset = page_index * self.page_size
        attempt = 0
        while True:
            try:
                return self._search(query, limit=self.page_size, offset=offset, token=token)
            except ServerUnavailable as exc:
                attempt += 1
                if not self._page_retry_policy.allows(attempt):
                    self._skip_page(page_index, offset, exc)
                    return None
                delay = self._page_retry_policy.delay_for(attempt)
                self._logger.warning(
                    "Server error on page %d (attempt %d); retrying in %.1fs",
                    page_index + 1,
                    attempt,
                    delay,
                )
                self._listener.on_status(f"Server error. Retrying page {page_index + 1}...")
                self._sleep_fn(delay, token)

    def _skip_page(self, page_index: int, offset: int, exc: ServerUnavailable) -> None:
        skipped = max(min(self.page_size, self.state.total_to_process - offset), 0)
        self._logger.error(
            "Skipping page %d after repeated server errors: %s", page_index + 1, exc
        )
        self.state.skipped_pages.append(page_index)
        self.state.processed_count += skipped
        self._notify_progress()

    def _process_items(self, page: SearchPage, token: CancellationToken) -> None:
        for summary in page.items:
            token.raise_if_cancelled()
            if summary is not None:
                record = self._fetcher.get_detail(summary.id)
                if record is not None:
                    if record.has_emails:
                        self.state.collected.append(record)
                        self.state.emails_found_count += len(record.emails)
                    self._listener.on_record(record)
            self.state.processed_count += 1
            self._notify_progress()

    def _notify_progress(self) -> None:
        self._listener.on_progress(
            self.state.processed_count,
            self.state.total_to_process,
            self.state.emails_found_count,
        )

    def _handle_completed(self) -> ExportOutcome:
        collected = self.state.collected
        if not collected:
            message = "No playlists with emails found."
            self._listener.on_status(message)
            return ExportOutcome(ExportStatus.COMPLETED_EMPTY, message)
        try:
            path = self._exporter.export(list(collected))
        except ExportError as exc:
            self._partial = list(collected)
            return self._fail(exc.message)
        message = f"Export completed. {len(collected)} playlists with emails exported."
        self._listener.on_status(message)
        return ExportOutcome(ExportStatus.COMPLETED, message, path)

    def _handle_stopped(self) -> ExportOutcome:
        self._logger.info("Export stopped by user.")
        collected = self.state.collected
        if not collected:
            message = "Export stopped. No playlists with emails found."
            self._listener.on_status(message)
            return ExportOutcome(ExportStatus.STOPPED_EMPTY, message)
        self._partial = list(collected)
        message = f"Export stopped. {len(collected)} playlists with emails were found."
        self._listener.on_status(message)
        return ExportOutcome(ExportStatus.STOPPED_WITH_RESULTS, message)

    def _fail(self, message: str) -> ExportOutcome:
        self._listener.on_error(message)
        return ExportOutcome(ExportStatus.ERROR, message)

    def export_partial(self) -> str | None:
        """Write the records salvaged from a stopped export. Works once."""
        partial, self._partial = self._partial, None
        if not partial:
            return None
        try:
            path = self._exporter.export(partial)
        except ExportError as exc:
            self._partial = partial
            self._listener.on_error(exc.message)
            return None
        self._listener.on_status(f"Partial export completed. {len(partial)} playlists exported.")
        return path

    def stop(self) -> bool:
        return self._scope.cancel()

    def stats(self) -> dict[str, object]:
        return {
            "total_to_process": self.state.total_to_process,
            "processed_count": self.state.processed_count,
            "total_emails_found": self.state.emails_found_count,
            "playlists_with_emails": len(self.state.collected),
            "skipped_pages": list(self.state.skipped_pages),
            "progress_percentage": self.state.progress_percentage,
            "is_in_progress": self.in_progress,
        }

    def reset(self) -> None:
        self.phase = ExportPhase.IDLE
        self.state = ExportState()
        self._partial = None
