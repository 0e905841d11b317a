import os
import tempfile
import threading
import pytest

from availcal.config.manager import ConfigManager
from availcal.database.connection import DatabaseManager
from availcal.exceptions import RemoteCalendarError, RemoteNotFound
from availcal.services.calendar_service import build_calendar_service


class FakeRemoteCalendar:
    """In-memory remote calendar that records every call"""

    def __init__(self):
        self.events = {}
        self.calls = []
        self.failure = None  # None, 'transient', 'permanent', 'not_found' or 'hang'
        self.release = threading.Event()
        self._counter = 0

    def _maybe_fail(self):
        if self.failure == 'transient':
            raise RemoteCalendarError("Service unavailable", transient=True, status_code=503)
        if self.failure == 'permanent':
            raise RemoteCalendarError("Bad request", transient=False, status_code=400)
        if self.failure == 'not_found':
            raise RemoteNotFound("Remote event not found")
        if self.failure == 'hang':
            self.release.wait(5)

    def create_remote_event(self, payload):
        self.calls.append(('create', None, payload))
        self._maybe_fail()
        self._counter += 1
        remote_id = f"ext-{self._counter}"
        self.events[remote_id] = payload
        return remote_id

    def update_remote_event(self, remote_id, payload):
        self.calls.append(('update', remote_id, payload))
        self._maybe_fail()
        if remote_id not in self.events:
            raise RemoteNotFound(f"{remote_id} not found")
        self.events[remote_id] = payload

    def delete_remote_event(self, remote_id):
        self.calls.append(('delete', remote_id, None))
        self._maybe_fail()
        if remote_id not in self.events:
            raise RemoteNotFound(f"{remote_id} not found")
        del self.events[remote_id]

    def calls_of(self, kind):
        return [call for call in self.calls if call[0] == kind]


@pytest.fixture
def db_manager():
    """Temporary SQLite database for each test"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as tmp:
        db_path = tmp.name

    manager = DatabaseManager(db_path)
    try:
        yield manager
    finally:
        manager.drop_all()
        os.unlink(db_path)


@pytest.fixture
def config_manager(monkeypatch, tmp_path):
    monkeypatch.setattr("availcal.config.manager.keyring.get_password", lambda *args: None)
    monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_FILE", raising=False)
    monkeypatch.setenv("SYNC_ENABLED", "false")
    monkeypatch.setenv("SYNC_TIMEOUT_SECONDS", "1")
    monkeypatch.setenv("TIMEZONE", "America/New_York")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "calendar.db"))
    return ConfigManager(env_file=str(tmp_path / "missing.env"))


@pytest.fixture
def remote():
    fake = FakeRemoteCalendar()
    yield fake
    fake.release.set()


@pytest.fixture
def service(config_manager, db_manager, remote):
    """Calendar service mirrored to the fake remote calendar"""
    calendar_service = build_calendar_service(config_manager, database_manager=db_manager, remote_client=remote)
    yield calendar_service
    calendar_service.close()


@pytest.fixture
def offline_service(config_manager, db_manager):
    """Calendar service without a remote mirror"""
    calendar_service = build_calendar_service(config_manager, database_manager=db_manager)
    yield calendar_service
    calendar_service.close()


@pytest.fixture
def unavailable_mondays():
    return {
        "title": "Unavailable Mondays",
        "event_type": "unavailability",
        "owner_id": "tech-42",
        "start_date": "2025-01-06",
        "end_date": "2025-03-31",
        "start_time": "08:00",
        "end_time": "17:00",
        "is_recurring": True,
        "recurrence_pattern": {"type": "weekly", "days": ["monday"]}
    }
