"""Single-page browsing over playlist search results."""

from __future__ import annotations

import enum
import logging
from dataclasses import replace

from .api import SpotifyApi
from .auth import TokenProvider, call_with_reauth
from .cancellation import CancellationScope, CancellationToken
from .errors import ExportError, HarvesterError, UserCancelled
from .fetchers import DetailFetcher
from .models import (
    DEFAULT_PAGE_SIZE,
    Credential,
    DetailRecord,
    Exporter,
    OperationStatus,
    PageOutcome,
    PageState,
    PlaylistSummary,
    ProgressListener,
    page_count,
)
from .retry import RetryPolicy
from .session_store import SessionStore
from .validation import normalize_query


class ControllerState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"


class PaginationController:
    """Loads one page of playlists at a time and hydrates every entry."""

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
        page_size: int = DEFAULT_PAGE_SIZE,
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
        self.page_size = page_size
        self.state_name = ControllerState.IDLE
        self.page = PageState(page_size=page_size)

    def search(self, query: str, credential: Credential, page_index: int = 0) -> PageOutcome:
        """Start a new search and load ``page_index`` of its results."""
        trimmed = normalize_query(query)
        if not trimmed:
            return self._fail("Please enter a search query")

        token = self._scope.begin()
        try:
            self._tokens.acquire(credential, token)
        except UserCancelled:
            return PageOutcome(OperationStatus.ABORTED)
        except HarvesterError as exc:
            return self._fail(exc.message)
        finally:
            self._scope.end(token)

        self._store.save_last_query(trimmed)
        self._store.save_credentials(credential)
        self.page = PageState(query=trimmed, page_size=self.page_size)
        return self.load_page(page_index)

    def load_page(self, page_index: int) -> PageOutcome:
        if page_index < 0:
            return PageOutcome(OperationStatus.ERROR, "Page index must be >= 0")
        if not self.page.query:
            return self._fail("Please enter a search query")

        token = self._scope.begin()
        self.state_name = ControllerState.LOADING
        self._listener.on_status(f"Loading page {page_index + 1}...")
        query = self.page.query
        items: list[DetailRecord] = []
        total = 0
        try:
            result = call_with_reauth(
                self._tokens,
                lambda access: self._api.search_playlists(
                    access,
                    query,
                    limit=self.page_size,
                    offset=page_index * self.page_size,
                    cancel=token,
                ),
                policy=self._auth_policy,
                cancel=token,
                logger=self._logger,
            )
            total = result.total
            pages = page_count(total, self.page_size)
            if page_index > 0 and page_index >= pages:
                self.page = replace(self.page, total_results=total)
                return self._fail(f"No such page: {page_index + 1} (results have {pages} pages)")
            self._hydrate(result.items, items, token)
            self.page = PageState(
                query=query,
                page_index=page_index,
                page_size=self.page_size,
                total_results=total,
                items=tuple(items),
            )
            self._listener.on_page(self.page)
            self._listener.on_status("Page loaded.")
            return PageOutcome(OperationStatus.SUCCESS)
        except UserCancelled:
            self._logger.info("Search stopped by user.")
            self.page = PageState(
                query=query,
                page_index=page_index,
                page_size=self.page_size,
                total_results=total,
                items=tuple(items),
            )
            return PageOutcome(OperationStatus.ABORTED)
        except HarvesterError as exc:
            return self._fail(exc.message)
        finally:
            self.state_name = ControllerState.IDLE
            self._scope.end(token)

    def _hydrate(
        self,
        summaries: list[PlaylistSummary | None],
        items: list[DetailRecord],
        token: CancellationToken,
    ) -> None:
        total = len(summaries)
        emails_found = 0
        for position, summary in enumerate(summaries, start=1):
            token.raise_if_cancelled()
            if summary is not None:
                record = self._fetcher.get_detail(summary.id)
                if record is not None:
                    items.append(record)
                    emails_found += len(record.emails)
                    self._listener.on_record(record)
            self._listener.on_progress(position, total, emails_found)

    def _fail(self, message: str) -> PageOutcome:
        self._listener.on_error(message)
        return PageOutcome(OperationStatus.ERROR, message)

    def next_page(self) -> PageOutcome | None:
        if not self.page.has_next:
            return None
        return self.load_page(self.page.page_index + 1)

    def previous_page(self) -> PageOutcome | None:
        if not self.page.has_previous:
            return None
        return self.load_page(self.page.page_index - 1)

    def go_to_page(self, page_index: int) -> PageOutcome | None:
        if not 0 <= page_index < self.page.total_pages:
            return None
        return self.load_page(page_index)

    def stop(self) -> bool:
        return self._scope.cancel()

    def records_with_emails(self) -> list[DetailRecord]:
        return [record for record in self.page.items if record.has_emails]

    def export_current_page(self) -> str | None:
        if not self.page.items:
            self._listener.on_error("No playlists to export on current page")
            return None
        records = self.records_with_emails()
        if not records:
            self._listener.on_error("No playlists with emails found on current page")
            return None
        try:
            path = self._exporter.export(records)
        except ExportError as exc:
            self._listener.on_error(exc.message)
            return None
        self._listener.on_status(
            f"Page export completed. {len(records)} playlists with emails exported."
        )
        return path

    def stats(self) -> dict[str, object]:
        return {
            "current_page": self.page.page_index,
            "total_results": self.page.total_results,
            "total_pages": self.page.total_pages,
            "current_query": self.page.query,
            "displayed_playlist_count": len(self.page.items),
            "total_emails_found": self.page.emails_found,
            "results_per_page": self.page_size,
        }

    def clear(self) -> None:
        self.page = PageState(page_size=self.page_size)
