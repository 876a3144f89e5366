"""Protocols and lightweight model types."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Protocol

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class Credential:
    """Client-credentials pair, kept in memory only."""

    client_id: str
    client_secret: str

    @property
    def is_complete(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret)

    def __repr__(self) -> str:
        return f"Credential(client_id={self.client_id!r}, client_secret='***')"


@dataclass(frozen=True)
class AccessToken:
    """Bearer token. Expiry is only discovered through a 401."""

    value: str
    acquired_at: float = 0.0


@dataclass(frozen=True)
class PlaylistSummary:
    """Search-page entry; consumed immediately to request a detail record."""

    id: str
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class SearchPage:
    total: int
    items: list[PlaylistSummary | None]


@dataclass(frozen=True)
class DetailRecord:
    """Normalized playlist plus the emails found in its description.

    ``description`` is kept as Spotify returned it; ``description_text`` is the
    same text with markup stripped and entities unescaped.
    """

    id: str
    name: str
    owner: str
    description: str
    emails: tuple[str, ...]
    followers: int
    url: str
    image: str | None = None
    description_text: str = ""

    @property
    def has_emails(self) -> bool:
        return bool(self.emails)


def page_count(total: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    return math.ceil(total / page_size) if total > 0 else 0


@dataclass(frozen=True)
class PageState:
    """One loaded page of search results. Replaced, never patched."""

    query: str = ""
    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    total_results: int = 0
    items: tuple[DetailRecord, ...] = ()

    @property
    def total_pages(self) -> int:
        return page_count(self.total_results, self.page_size)

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    @property
    def has_next(self) -> bool:
        return self.page_index < self.total_pages - 1

    @property
    def emails_found(self) -> int:
        return sum(len(record.emails) for record in self.items)


@dataclass
class ExportState:
    """Running totals of a bulk export."""

    query: str = ""
    total_to_process: int = 0
    processed_count: int = 0
    emails_found_count: int = 0
    collected: list[DetailRecord] = field(default_factory=list)
    skipped_pages: list[int] = field(default_factory=list)

    @property
    def progress_percentage(self) -> float:
        if self.total_to_process <= 0:
            return 0.0
        return self.processed_count / self.total_to_process * 100.0


class OperationStatus(enum.Enum):
    SUCCESS = "success"
    ERROR = "error"
    ABORTED = "aborted"


@dataclass(frozen=True)
class PageOutcome:
    status: OperationStatus
    message: str = ""


class ExportStatus(enum.Enum):
    COMPLETED = "completed"
    COMPLETED_EMPTY = "completed_empty"
    NOTHING_TO_EXPORT = "nothing_to_export"
    STOPPED_WITH_RESULTS = "stopped_with_results"
    STOPPED_EMPTY = "stopped_empty"
    ERROR = "error"


@dataclass(frozen=True)
class ExportOutcome:
    status: ExportStatus
    message: str = ""
    path: str | None = None


class DetailCache(Protocol):
    """Session cache of detail records keyed by playlist id."""

    def get(self, playlist_id: str) -> DetailRecord | None:
        """Return the cached record or None."""

    def put(self, record: DetailRecord) -> DetailRecord:
        """Store a record unless one exists; return the stored record."""

    def __contains__(self, playlist_id: object) -> bool:
        """Return True when the id is cached."""

    def __len__(self) -> int:
        """Return the number of cached records."""

    def clear(self) -> None:
        """Drop every cached record."""


class Exporter(Protocol):
    """Contract for export sinks."""

    def export(self, records: list[DetailRecord], filename: str | None = None) -> str:
        """Write records and return the output location.

        Raises ExportError when the records cannot be written.
        """


class ProgressListener(Protocol):
    """Observer channel between controllers and whatever presents them."""

    def on_status(self, message: str) -> None:
        """Transient status text."""

    def on_error(self, message: str) -> None:
        """User-visible, dismissible failure notice."""

    def on_record(self, record: DetailRecord) -> None:
        """A detail record is ready to be rendered."""

    def on_progress(self, processed: int, total: int, emails_found: int) -> None:
        """Per-item progress of the running operation."""

    def on_page(self, state: PageState) -> None:
        """A page finished loading; pagination bounds are derivable from state."""


class LoggingListener:
    """Listener that only logs; the default when nothing presents results."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def on_status(self, message: str) -> None:
        self._logger.info(message)

    def on_error(self, message: str) -> None:
        self._logger.error(message)

    def on_record(self, record: DetailRecord) -> None:
        self._logger.debug("Playlist %s: %d email(s)", record.id, len(record.emails))

    def on_progress(self, processed: int, total: int, emails_found: int) -> None:
        self._logger.debug("Processed %d/%d, emails found: %d", processed, total, emails_found)

    def on_page(self, state: PageState) -> None:
        self._logger.info(
            "Page %d of %d (%d results)",
            state.page_index + 1,
            state.total_pages,
            state.total_results,
        )
