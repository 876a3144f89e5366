from helpers import (
    FakeResponse,
    FakeSession,
    make_harness,
    paged_search,
    playlist_id,
    playlist_payload,
    search_payload,
)
from playlist_harvester.errors import ExportError
from playlist_harvester.models import Credential, DetailRecord, OperationStatus

CREDENTIAL = Credential(client_id="client", client_secret="secret")


def _searching(total: int) -> FakeSession:
    session = FakeSession()
    session.on_search(paged_search(total))
    return session


def test_search_loads_first_page_and_exposes_bounds() -> None:
    harness = make_harness(_searching(120))
    pagination = harness.app.pagination

    outcome = pagination.search("  @gmail.com ", CREDENTIAL)

    assert outcome.status is OperationStatus.SUCCESS
    page = pagination.page
    assert page.query == "@gmail.com"
    assert page.total_pages == 3
    assert (page.has_previous, page.has_next) == (False, True)
    assert [record.id for record in page.items] == [f"p{n}" for n in range(50)]
    assert page.emails_found == 50
    assert harness.listener.pages[-1] is page
    assert harness.listener.statuses[0] == "Loading page 1..."
    assert harness.listener.statuses[-1] == "Page loaded."
    assert harness.listener.progress[-1] == (50, 50, 50)


def test_navigation_requests_matching_offsets() -> None:
    harness = make_harness(_searching(120))
    pagination = harness.app.pagination
    pagination.search("rock", CREDENTIAL)

    assert pagination.next_page() is not None
    assert pagination.next_page() is not None
    page = pagination.page
    assert page.page_index == 2
    assert len(page.items) == 20
    assert (page.has_previous, page.has_next) == (True, False)
    assert pagination.next_page() is None

    assert pagination.previous_page() is not None
    assert pagination.go_to_page(3) is None
    assert pagination.go_to_page(0) is not None
    assert pagination.previous_page() is None

    offsets = [call.params["offset"] for call in harness.session.calls_to("search")]
    assert offsets == [0, 50, 100, 50, 0]


def test_revisited_page_is_served_from_cache() -> None:
    harness = make_harness(_searching(60))
    pagination = harness.app.pagination
    pagination.search("rock", CREDENTIAL)
    pagination.next_page()
    pagination.previous_page()

    assert len(harness.session.calls_to("playlist")) == 60
    assert len(harness.session.calls_to("search")) == 3


def test_negative_page_index_is_rejected() -> None:
    harness = make_harness(_searching(10))
    outcome = harness.app.pagination.load_page(-1)
    assert outcome.status is OperationStatus.ERROR
    assert harness.session.calls == []
    assert harness.listener.errors == []


def test_empty_query_issues_no_requests() -> None:
    harness = make_harness(_searching(10))
    outcome = harness.app.pagination.search("   ", CREDENTIAL)
    assert outcome.status is OperationStatus.ERROR
    assert harness.listener.errors == ["Please enter a search query"]
    assert harness.session.calls == []


def test_missing_credentials_are_reported() -> None:
    harness = make_harness(_searching(10))
    outcome = harness.app.pagination.search("rock", Credential("client", ""))
    assert outcome.status is OperationStatus.ERROR
    assert harness.listener.errors == ["Please enter both Client ID and Client Secret."]
    assert harness.session.calls == []


def test_expired_token_retries_the_same_page_once() -> None:
    session = _searching(120)
    session.queue("search", FakeResponse(status_code=401))
    harness = make_harness(session)

    outcome = harness.app.pagination.search("rock", CREDENTIAL)

    assert outcome.status is OperationStatus.SUCCESS
    first, second = session.calls_to("search")
    assert first.params == second.params
    assert (first.bearer, second.bearer) == ("Bearer token-1", "Bearer token-2")


def test_forbidden_search_reports_error() -> None:
    session = _searching(120)
    session.queue("search", FakeResponse(status_code=403))
    harness = make_harness(session)

    outcome = harness.app.pagination.search("rock", CREDENTIAL)

    assert outcome.status is OperationStatus.ERROR
    assert "Access denied" in harness.listener.errors[0]
    assert session.calls_to("playlist") == []


def test_invalid_query_reports_error() -> None:
    session = _searching(120)
    session.queue("search", FakeResponse(status_code=400))
    harness = make_harness(session)

    outcome = harness.app.pagination.search("rock", CREDENTIAL)

    assert outcome.status is OperationStatus.ERROR
    assert "Invalid search query" in outcome.message


def test_null_entries_are_skipped() -> None:
    session = FakeSession()
    session.on_search(lambda _call: FakeResponse(payload=search_payload(3, ["a", None, "b"])))
    harness = make_harness(session)

    harness.app.pagination.search("rock", CREDENTIAL)

    assert [record.id for record in harness.app.pagination.page.items] == ["a", "b"]
    assert len(session.calls_to("playlist")) == 2
    assert [entry[0] for entry in harness.listener.progress] == [1, 2, 3]


def test_failed_detail_leaves_hole_without_error() -> None:
    session = _searching(3)
    session.queue("playlist", FakeResponse(status_code=404))
    harness = make_harness(session)

    outcome = harness.app.pagination.search("rock", CREDENTIAL)

    assert outcome.status is OperationStatus.SUCCESS
    assert [record.id for record in harness.app.pagination.page.items] == ["p1", "p2"]
    assert harness.listener.errors == []


def test_stop_mid_page_keeps_partial_items() -> None:
    harness = make_harness(_searching(50))
    pagination = harness.app.pagination

    def stop_after_second(_record: DetailRecord) -> None:
        if len(harness.listener.records) == 2:
            assert pagination.stop() is True

    harness.listener.record_hook = stop_after_second
    outcome = pagination.search("rock", CREDENTIAL)

    assert outcome.status is OperationStatus.ABORTED
    assert [record.id for record in pagination.page.items] == ["p0", "p1"]
    assert len(harness.session.calls_to("playlist")) == 2
    assert harness.listener.errors == []
    assert pagination.stop() is False


def test_export_current_page_only_includes_records_with_emails() -> None:
    session = _searching(3)
    session.on_playlist(
        lambda call: FakeResponse(payload=playlist_payload(playlist_id(call), "no contact"))
    )
    session.queue(
        "playlist",
        FakeResponse(payload={"id": "p0", "description": "demo@label.com"}),
    )
    harness = make_harness(session)
    pagination = harness.app.pagination
    pagination.search("rock", CREDENTIAL)

    path = pagination.export_current_page()

    assert path == "export-1.json"
    assert [[record.id for record in batch] for batch in harness.sink.exports] == [["p0"]]
    assert [record.id for record in pagination.records_with_emails()] == ["p0"]


def test_export_current_page_reports_empty_pages() -> None:
    harness = make_harness(_searching(0))
    pagination = harness.app.pagination
    assert pagination.export_current_page() is None
    assert harness.listener.errors == ["No playlists to export on current page"]

    session = _searching(2)
    session.on_playlist(lambda call: FakeResponse(payload=playlist_payload(playlist_id(call), "")))
    harness = make_harness(session)
    harness.app.pagination.search("rock", CREDENTIAL)
    assert harness.app.pagination.export_current_page() is None
    assert harness.listener.errors == ["No playlists with emails found on current page"]
    assert harness.sink.exports == []


def test_search_remembers_query_and_stats() -> None:
    harness = make_harness(_searching(120))
    pagination = harness.app.pagination
    pagination.search("rock", CREDENTIAL)

    assert harness.app.store.load_last_query() == "rock"
    stats = pagination.stats()
    assert stats["total_results"] == 120
    assert stats["total_pages"] == 3
    assert stats["displayed_playlist_count"] == 50

    pagination.clear()
    assert pagination.page.items == ()
    assert pagination.page.query == ""


def test_export_current_page_reports_write_failure() -> None:
    harness = make_harness(_searching(2))
    pagination = harness.app.pagination
    pagination.search("rock", CREDENTIAL)
    harness.sink.failure = ExportError("Export failed: could not write page.json: Read-only")

    assert pagination.export_current_page() is None
    assert harness.listener.errors == ["Export failed: could not write page.json: Read-only"]
