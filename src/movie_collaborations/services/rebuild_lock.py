import logging
import threading
from contextlib import contextmanager
from typing import Iterator
from sqlalchemy import text
from sqlmodel import Session

logger = logging.getLogger(__name__)

# Arbitrary application-wide key for the PostgreSQL advisory lock
ADVISORY_LOCK_KEY = 4815162342


class RebuildLock:
    """Readers/writer exclusion between full rebuilds and per-movie runs.

    A full rebuild is exclusive. Incremental runs share the lock among
    themselves and wait while a rebuild holds or waits for it. On PostgreSQL the same
    exclusion is taken as a transaction-scoped advisory lock so that several
    processes cooperate too.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def exclusive(self, session: Session = None) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            _advisory_lock(session, shared=False)
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()

    @contextmanager
    def shared(self, session: Session = None) -> Iterator[None]:
        with self._cond:
            # A waiting rebuild goes before new readers
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            _advisory_lock(session, shared=True)
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()


def _advisory_lock(session: Session, shared: bool) -> None:
    if session is None or session.get_bind().dialect.name != "postgresql":
        return
    fn = "pg_advisory_xact_lock_shared" if shared else "pg_advisory_xact_lock"
    logger.debug(f"Taking {fn}({ADVISORY_LOCK_KEY})")
    session.exec(text(f"SELECT {fn}(:key)").bindparams(key=ADVISORY_LOCK_KEY))


# Process-wide lock shared by every CollaborationService
rebuild_lock = RebuildLock()
