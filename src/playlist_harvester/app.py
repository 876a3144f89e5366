"""Builds the object graph shared by the controllers of one session."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass

from requests import Session

from .api import SpotifyApi, make_api_session
from .auth import TokenProvider
from .cache import InMemoryDetailCache
from .cancellation import CancellationScope
from .config import HarvestConfig
from .fetchers import DetailFetcher
from .io_export import FileExporter
from .models import DetailCache, Exporter, LoggingListener, ProgressListener
from .pagination import PaginationController
from .pipeline import BulkExportController
from .retry import RateLimitWaiter, RetryPolicy, SleepFn, cancellable_sleep
from .session_store import SessionStore

IO_WORKERS = 4


@dataclass
class Application:
    config: HarvestConfig
    scope: CancellationScope
    store: SessionStore
    tokens: TokenProvider
    fetcher: DetailFetcher
    pagination: PaginationController
    exporter: BulkExportController
    executor: Executor

    def stop(self) -> bool:
        """Cancel whatever operation is running."""
        return self.scope.cancel()

    def close(self) -> None:
        """Release the I/O workers and forget the session; ends any running operation."""
        self.scope.cancel()
        self.executor.shutdown(wait=False, cancel_futures=True)
        self.store.clear()


def build_application(
    config: HarvestConfig,
    *,
    logger: logging.Logger,
    listener: ProgressListener | None = None,
    session: Session | None = None,
    cache: DetailCache | None = None,
    sink: Exporter | None = None,
    sleep_fn: SleepFn = cancellable_sleep,
    executor: Executor | None = None,
) -> Application:
    """Wire concrete dependencies; tests swap any of them out."""
    listener = listener or LoggingListener(logger)
    session = session or make_api_session(config.user_agent)
    cache = cache if cache is not None else InMemoryDetailCache()
    sink = sink or FileExporter(output_dir=config.output_dir, export_format=config.export_format)
    executor = executor or ThreadPoolExecutor(
        max_workers=IO_WORKERS, thread_name_prefix="harvester-io"
    )
    scope = CancellationScope(executor)
    store = SessionStore()

    waiter = RateLimitWaiter(status_fn=listener.on_status, logger=logger, sleep_fn=sleep_fn)
    api = SpotifyApi(
        session=session,
        waiter=waiter,
        token_url=config.token_url,
        api_base_url=config.api_base_url,
        timeout=config.request_timeout,
        logger=logger,
        rate_limit_policy=RetryPolicy(max_attempts=config.max_rate_limit_retries),
    )
    tokens = TokenProvider(api=api, logger=logger)
    auth_policy = RetryPolicy(max_attempts=config.auth_retry_attempts)
    fetcher = DetailFetcher(
        api=api,
        tokens=tokens,
        cache=cache,
        scope=scope,
        listener=listener,
        logger=logger,
        auth_policy=auth_policy,
    )
    pagination = PaginationController(
        api=api,
        tokens=tokens,
        fetcher=fetcher,
        scope=scope,
        listener=listener,
        store=store,
        exporter=sink,
        logger=logger,
        auth_policy=auth_policy,
        page_size=config.page_size,
    )
    exporter = BulkExportController(
        api=api,
        tokens=tokens,
        fetcher=fetcher,
        scope=scope,
        listener=listener,
        store=store,
        exporter=sink,
        logger=logger,
        auth_policy=auth_policy,
        page_retry_policy=RetryPolicy(
            max_attempts=config.page_retry_attempts,
            base_delay=config.page_retry_base_delay,
        ),
        page_size=config.page_size,
        sleep_fn=sleep_fn,
    )
    return Application(
        config=config,
        scope=scope,
        store=store,
        tokens=tokens,
        fetcher=fetcher,
        pagination=pagination,
        exporter=exporter,
        executor=executor,
    )
