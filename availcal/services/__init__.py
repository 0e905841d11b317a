from availcal.services.deletion_coordinator import DeletionCoordinator
from availcal.services.event_store import EventStore
from availcal.services.exception_store import ExceptionStore
from availcal.services.locks import EventLockRegistry
from availcal.services.occurrence_expander import Occurrences, expand
from availcal.services.sync_mediator import SyncMediator

__all__ = [
    'DeletionCoordinator', 'EventStore', 'ExceptionStore', 'EventLockRegistry',
    'Occurrences', 'expand', 'SyncMediator'
]
