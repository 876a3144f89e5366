"""CLI entrypoint for playlist-harvester."""

from __future__ import annotations

import argparse
import os
import signal
import sys
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from tqdm import tqdm

from .app import Application, build_application
from .config import (
    DEFAULT_EXPORT_FORMAT,
    DEFAULT_PAGE_RETRY_ATTEMPTS,
    DEFAULT_PAGE_RETRY_BASE_DELAY,
    DEFAULT_REQUEST_TIMEOUT,
    HarvestConfig,
)
from .errors import ConfigError
from .extraction import email_domains
from .logging_utils import configure_logging, get_logger
from .models import DetailRecord, ExportStatus, OperationStatus, PageState
from .validation import EXPORT_FORMATS


def render_record(record: DetailRecord) -> str:
    emails = ", ".join(record.emails) or "-"
    line = f"{record.name} | {record.owner} | {record.followers} followers | {emails}"
    domains = email_domains(list(record.emails))
    if domains:
        line += f" ({', '.join(domains)})"
    return f"{line} | {record.url}"


def render_page(records: Sequence[DetailRecord], *, only_with_emails: bool = False) -> str:
    shown = [record for record in records if record.has_emails or not only_with_emails]
    if not shown:
        return "No playlists to show."
    return "\n".join(render_record(record) for record in shown)


class ConsoleListener:
    """Prints status lines and draws a tqdm bar for per-item progress."""

    def __init__(self, *, show_progress: bool = True) -> None:
        self._show_progress = show_progress
        self._bar: Any = None

    def on_status(self, message: str) -> None:
        tqdm.write(message)

    def on_error(self, message: str) -> None:
        tqdm.write(f"Error: {message}", file=sys.stderr)

    def on_record(self, record: DetailRecord) -> None:
        return None

    def on_progress(self, processed: int, total: int, emails_found: int) -> None:
        if not self._show_progress:
            return
        if self._bar is None:
            self._bar = tqdm(total=total, desc="processing playlists", unit="playlist")
        if self._bar.total != total:
            self._bar.total = total
        self._bar.update(processed - self._bar.n)
        self._bar.set_postfix(emails=emails_found)
        if processed >= total:
            self.close()

    def on_page(self, state: PageState) -> None:
        self.close()
        tqdm.write(
            f"Page {state.page_index + 1} of {state.total_pages} "
            f"({state.total_results} results, {state.emails_found} emails)"
        )

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


@contextmanager
def cancel_on_interrupt(stop: Callable[[], bool]) -> Iterator[None]:
    """Route Ctrl-C to the running operation instead of killing the process."""

    def _handler(_signum: int, _frame: Any) -> None:
        if stop():
            tqdm.write("Stopping...")

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        description="Playlist Harvester - search Spotify playlists and collect contact emails."
    )
    parser.add_argument("--client-id", help="Spotify client ID (or set SPOTIFY_CLIENT_ID).")
    parser.add_argument(
        "--client-secret", help="Spotify client secret (or set SPOTIFY_CLIENT_SECRET)."
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_REQUEST_TIMEOUT,
        help="Per-request timeout in seconds.",
    )
    parser.add_argument(
        "--max-rate-limit-retries",
        type=int,
        default=None,
        help="Give up after this many 429 responses for one request (default: never).",
    )
    parser.add_argument("--no-progress", action="store_true", help="Disable tqdm progress bars.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Show one page of results.")
    search.add_argument("query", help="Search query, e.g. '@gmail.com'.")
    search.add_argument("--page", type=positive_int, default=1, help="Page number (1-based).")
    search.add_argument(
        "--only-with-emails", action="store_true", help="Hide playlists without emails."
    )

    browse = subparsers.add_parser("browse", help="Page through results interactively.")
    browse.add_argument("query", help="Search query.")
    browse.add_argument(
        "--only-with-emails", action="store_true", help="Hide playlists without emails."
    )
    browse.add_argument("--output-dir", default=".", help="Directory for page exports.")
    browse.add_argument("--format", choices=EXPORT_FORMATS, default=DEFAULT_EXPORT_FORMAT)

    export = subparsers.add_parser("export", help="Export every playlist with emails.")
    export.add_argument("query", help="Search query.")
    export.add_argument("--output-dir", default=".", help="Directory for the export file.")
    export.add_argument("--format", choices=EXPORT_FORMATS, default=DEFAULT_EXPORT_FORMAT)
    export.add_argument(
        "--page-retries",
        type=int,
        default=DEFAULT_PAGE_RETRY_ATTEMPTS,
        help="Retries for a result page that keeps failing with server errors.",
    )
    export.add_argument(
        "--page-retry-delay",
        type=float,
        default=DEFAULT_PAGE_RETRY_BASE_DELAY,
        help="First backoff delay in seconds; doubles on each retry.",
    )
    export.add_argument(
        "--discard-partial",
        action="store_true",
        help="Do not write the records collected before a stop.",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI input."""
    return build_parser().parse_args(argv)


def namespace_to_config(args: argparse.Namespace) -> HarvestConfig:
    """Convert CLI args to validated HarvestConfig."""
    logger = get_logger()
    client_id = args.client_id or os.getenv("SPOTIFY_CLIENT_ID", "")
    client_secret = args.client_secret or os.getenv("SPOTIFY_CLIENT_SECRET", "")
    if not (client_id and client_secret):
        logger.warning(
            "No Spotify credentials found. Set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET "
            "or pass --client-id/--client-secret."
        )
    return HarvestConfig(
        client_id=client_id,
        client_secret=client_secret,
        output_dir=getattr(args, "output_dir", "."),
        export_format=getattr(args, "format", DEFAULT_EXPORT_FORMAT),
        request_timeout=args.timeout,
        max_rate_limit_retries=args.max_rate_limit_retries,
        page_retry_attempts=getattr(args, "page_retries", DEFAULT_PAGE_RETRY_ATTEMPTS),
        page_retry_base_delay=getattr(args, "page_retry_delay", DEFAULT_PAGE_RETRY_BASE_DELAY),
        show_progress=not args.no_progress,
    )


def run_search(app: Application, args: argparse.Namespace) -> int:
    controller = app.pagination
    with cancel_on_interrupt(app.stop):
        outcome = controller.search(args.query, app.config.credential, page_index=args.page - 1)
    if outcome.status is OperationStatus.ERROR:
        return 1
    print(render_page(controller.page.items, only_with_emails=args.only_with_emails))
    return 0


def run_browse(
    app: Application,
    args: argparse.Namespace,
    input_fn: Callable[[str], str] = input,
) -> int:
    controller = app.pagination
    with cancel_on_interrupt(app.stop):
        outcome = controller.search(args.query, app.config.credential)
    if outcome.status is OperationStatus.ERROR:
        return 1
    while True:
        print(render_page(controller.page.items, only_with_emails=args.only_with_emails))
        page = controller.page
        prompt = "[n]ext [p]revious [s]earch [e]xport page [q]uit"
        choice = input_fn(f"{prompt} (page {page.page_index + 1}/{page.total_pages}): ")
        choice = choice.strip().lower()
        if choice in {"q", "quit", ""}:
            return 0
        with cancel_on_interrupt(app.stop):
            if choice == "n":
                if controller.next_page() is None:
                    print("Already on the last page.")
            elif choice == "p":
                if controller.previous_page() is None:
                    print("Already on the first page.")
            elif choice == "s":
                last = app.store.load_last_query()
                query = input_fn(f"Query [{last}]: ").strip() or last
                controller.search(query, app.store.load_credentials())
            elif choice == "e":
                path = controller.export_current_page()
                if path:
                    print(f"Wrote {path}")
            elif choice.isdigit():
                if controller.go_to_page(int(choice) - 1) is None:
                    print("No such page.")
            else:
                print("Unknown command.")


def run_export(app: Application, args: argparse.Namespace) -> int:
    controller = app.exporter
    with cancel_on_interrupt(app.stop):
        outcome = controller.export_all(args.query, app.config.credential)
    if outcome.status is ExportStatus.STOPPED_WITH_RESULTS and not args.discard_partial:
        path = controller.export_partial()
        if path:
            print(f"Wrote {path}")
    elif outcome.path:
        print(f"Wrote {outcome.path}")
    return 1 if outcome.status is ExportStatus.ERROR else 0


COMMANDS: dict[str, Callable[[Application, argparse.Namespace], int]] = {
    "search": run_search,
    "browse": run_browse,
    "export": run_export,
}


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    logger = get_logger()
    try:
        config = namespace_to_config(args)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    listener = ConsoleListener(show_progress=config.show_progress)
    app = build_application(config, logger=logger, listener=listener)
    try:
        return COMMANDS[args.command](app, args)
    finally:
        listener.close()
        app.close()


if __name__ == "__main__":
    raise SystemExit(main())
