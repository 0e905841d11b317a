from datetime import date
import pytest

from availcal.exceptions import NotFound, SyncFailed
from availcal.models.event import CalendarEvent
from availcal.models.sync_status import SyncState


def test_sync_creates_remote_mirror(service, remote, unavailable_mondays):
    event = service.event_store.create_event(unavailable_mondays)

    outcome = service.sync_mediator.sync_event(event.id)

    assert outcome.status == SyncState.SYNCED
    assert outcome.mirror_id == "ext-1"
    saved = service.event_store.get_event(event.id)
    assert saved.google_id == "ext-1"
    assert saved.sync_status == "synced"
    assert saved.last_synced is not None

    payload = remote.events["ext-1"]
    assert payload["summary"] == "Unavailable Mondays"
    assert payload["recurrence"] == ["RRULE:FREQ=WEEKLY;BYDAY=MO;UNTIL=20250401T035959Z"]


def test_sync_updates_existing_mirror(service, remote, unavailable_mondays):
    event = service.event_store.create_event(unavailable_mondays)
    service.sync_mediator.sync_event(event.id)
    service.event_store.update_event(event.id, {"title": "Out on Mondays"})
    assert service.event_store.get_event(event.id).sync_status == "unsynced"

    outcome = service.sync_mediator.sync_event(event.id)

    assert outcome.mirror_id == "ext-1"
    assert [call[0] for call in remote.calls] == ["create", "update"]
    assert remote.events["ext-1"]["summary"] == "Out on Mondays"


def test_sync_recreates_vanished_mirror(service, remote, unavailable_mondays):
    event = service.event_store.create_event(unavailable_mondays)
    service.sync_mediator.sync_event(event.id)
    remote.events.clear()

    outcome = service.sync_mediator.sync_event(event.id)

    assert outcome.mirror_id == "ext-2"
    assert service.event_store.get_event(event.id).google_id == "ext-2"


def test_skip_exceptions_are_not_mirrored(service, remote, unavailable_mondays):
    event = service.event_store.create_event(unavailable_mondays)
    service.sync_mediator.sync_event(event.id)
    calls_before = list(remote.calls)

    service.request_delete(event.id, "this_day", date(2025, 2, 3))

    assert remote.calls == calls_before
    assert "exceptions" not in remote.events["ext-1"]


@pytest.mark.parametrize("failure", ["transient", "permanent"])
def test_remote_failure_marks_sync_failed(service, remote, unavailable_mondays, failure):
    event = service.event_store.create_event(unavailable_mondays)
    remote.failure = failure

    with pytest.raises(SyncFailed) as excinfo:
        service.sync_mediator.sync_event(event.id)

    assert excinfo.value.event_id == event.id
    assert excinfo.value.details["transient"] == (failure == "transient")
    saved = service.event_store.get_event(event.id)
    assert saved.sync_status == "sync_failed"
    assert saved.sync_error
    # local data is untouched
    assert saved.title == "Unavailable Mondays"
    assert saved.google_id is None


def test_hanging_remote_times_out(service, remote, unavailable_mondays):
    event = service.event_store.create_event(unavailable_mondays)
    remote.failure = "hang"

    with pytest.raises(SyncFailed):
        service.sync_mediator.sync_event(event.id)

    assert service.event_store.get_event(event.id).sync_status == "sync_failed"


def test_edit_during_sync_stays_unsynced(service, db_manager, remote, unavailable_mondays):
    event = service.event_store.create_event(unavailable_mondays)
    original_create = remote.create_remote_event

    def create_while_editing(payload):
        remote_id = original_create(payload)
        service.event_store.update_event(event.id, {"title": "Edited meanwhile"})
        return remote_id

    remote.create_remote_event = create_while_editing

    outcome = service.sync_mediator.sync_event(event.id)

    assert outcome.status == SyncState.UNSYNCED
    saved = service.event_store.get_event(event.id)
    assert saved.google_id == "ext-1"
    assert saved.sync_status == "unsynced"


def test_delete_during_create_removes_orphan(service, remote, unavailable_mondays):
    event = service.event_store.create_event(unavailable_mondays)
    original_create = remote.create_remote_event

    def create_while_deleting(payload):
        remote_id = original_create(payload)
        service.event_store.delete_event(event.id)
        return remote_id

    remote.create_remote_event = create_while_deleting

    with pytest.raises(NotFound):
        service.sync_mediator.sync_event(event.id)

    assert remote.calls_of("delete") == [("delete", "ext-1", None)]
    assert remote.events == {}


def test_sync_unknown_event(service):
    with pytest.raises(NotFound):
        service.sync_mediator.sync_event("missing")


def test_sync_pending_retries_failed_events(service, remote, unavailable_mondays):
    first = service.event_store.create_event(unavailable_mondays)
    second = service.event_store.create_event(dict(unavailable_mondays, title="Unavailable Fridays"))
    remote.failure = "transient"
    with pytest.raises(SyncFailed):
        service.sync_mediator.sync_event(first.id)

    remote.failure = None
    status = service.sync_pending()

    assert status.new_events == 2
    assert status.failed_events == 0
    assert service.event_store.list_unsynced() == []
    assert service.event_store.get_event(second.id).sync_status == "synced"


def test_sync_pending_reports_failures(service, remote, unavailable_mondays):
    service.event_store.create_event(unavailable_mondays)
    remote.failure = "permanent"

    status = service.sync_pending()

    assert status.failed_events == 1
    assert len(status.errors) == 1


def test_sync_pending_without_remote(offline_service, unavailable_mondays):
    offline_service.event_store.create_event(unavailable_mondays)
    status = offline_service.sync_pending()
    assert status.errors == ["Remote calendar sync is disabled"]


def test_quiet_sync_records_failure(service, remote, db_manager, unavailable_mondays):
    event = service.event_store.create_event(unavailable_mondays)
    remote.failure = "transient"

    service.sync_event_quietly(event.id)

    with db_manager.session_scope() as session:
        assert session.get(CalendarEvent, event.id).sync_status == "sync_failed"
