import logging
import threading
from enum import Enum
from typing import Callable, Optional

from flagship.cache import SnapshotCache
from flagship.errors import FlagshipError, SchemaError, TransportError
from flagship.metrics import DROPPED_FEATURES, SYNC_LATENCY, SYNCS
from flagship.schemas import parse_schema
from flagship.store import FlagStore
from flagship.transport import FlagFetcher

logger = logging.getLogger(__name__)


class SyncOutcome(str, Enum):
    UPDATED = "updated"
    NOT_MODIFIED = "not_modified"
    COALESCED = "coalesced"
    FAILED = "failed"


def _header_time(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class SyncCoordinator:
    """Periodic fetch -> parse -> validate -> swap cycle.

    At most one cycle runs at a time; a trigger that arrives while a cycle is
    in flight is dropped rather than queued.
    """

    def __init__(
        self,
        fetcher: FlagFetcher,
        store: FlagStore,
        interval: float = 30.0,
        cache: Optional[SnapshotCache] = None,
        api_key: str = "",
        on_failure: Optional[Callable[[FlagshipError], None]] = None,
    ):
        self._fetcher = fetcher
        self._store = store
        self._interval = interval
        self._cache = cache
        self._api_key = api_key
        self._on_failure = on_failure
        self._in_flight = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_header: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def restore(self) -> bool:
        """Load the durable copy into the store, if there is one."""
        if self._cache is None:
            return False
        payload = self._cache.load(self._api_key)
        if payload is None:
            return False
        try:
            schema, _ = parse_schema(payload)
        except SchemaError as e:
            logger.warning("Discarding corrupt cached snapshot", extra={"error": str(e)})
            self._cache.clear(self._api_key)
            return False
        restored = self._store.replace_if_newer(schema)
        if restored:
            logger.info("Restored cached snapshot", extra={"features": len(schema), "updated_at": schema.updated_at})
        return restored

    def start(self) -> None:
        if self.running:
            if not self._stop.is_set():
                return
            # a stopped timer still finishing its last cycle
            self._thread.join()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop,), name="flagship-sync", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if thread is None or not thread.is_alive():
            self._thread = None

    def _run(self, stop: threading.Event) -> None:
        # first cycle runs immediately
        while not stop.is_set():
            self.sync_once()
            stop.wait(self._interval)

    def sync_once(self) -> SyncOutcome:
        if not self._in_flight.acquire(blocking=False):
            logger.debug("Sync already in flight, trigger coalesced")
            SYNCS.labels(SyncOutcome.COALESCED.value).inc()
            return SyncOutcome.COALESCED
        try:
            with SYNC_LATENCY.time():
                outcome = self._cycle()
        finally:
            self._in_flight.release()
        SYNCS.labels(outcome.value).inc()
        return outcome

    def _cycle(self) -> SyncOutcome:
        try:
            response = self._fetcher.fetch()
            header = _header_time(response.updated_at)
            if header is not None and self._last_header is not None and header <= self._last_header:
                return SyncOutcome.NOT_MODIFIED

            schema, errors = parse_schema(response.body)
            if errors:
                DROPPED_FEATURES.inc(len(errors))
            if header is not None:
                self._last_header = header

            if not self._store.replace_if_newer(schema):
                return SyncOutcome.NOT_MODIFIED
            logger.info(
                "Flag snapshot updated",
                extra={"features": len(schema), "dropped": len(errors), "updated_at": schema.updated_at},
            )
        except (TransportError, SchemaError) as e:
            return self._fail(e)
        except Exception as e:
            logger.exception("Unexpected sync failure")
            return self._fail(TransportError(f"unexpected sync failure: {e}", cause=e))

        self._persist(response.body)
        return SyncOutcome.UPDATED

    def _persist(self, payload: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.save(self._api_key, payload)
        except Exception as e:
            logger.warning("Failed to persist snapshot", extra={"error": str(e)})

    def _fail(self, error: FlagshipError) -> SyncOutcome:
        logger.warning("Flag sync failed", extra={"code": error.code, "error": str(error)})
        if self._on_failure is not None:
            try:
                self._on_failure(error)
            except Exception:
                logger.exception("Sync failure observer raised")
        return SyncOutcome.FAILED
