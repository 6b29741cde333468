import threading
from typing import Optional

from flagship.schemas import Feature, FeatureFlagsSchema


class FlagStore:
    """Holds the current schema snapshot.

    Readers take the reference without locking; a snapshot is immutable and
    only ever replaced as a whole, so a reader sees either the old or the new
    schema. Writers are serialised so the freshness check and the swap are
    one step.
    """

    def __init__(self, snapshot: Optional[FeatureFlagsSchema] = None):
        self._snapshot = snapshot
        self._write_lock = threading.Lock()

    @property
    def snapshot(self) -> Optional[FeatureFlagsSchema]:
        return self._snapshot

    @property
    def updated_at(self) -> Optional[float]:
        snapshot = self._snapshot
        return snapshot.updated_at if snapshot is not None else None

    def get_feature(self, key: str) -> Optional[Feature]:
        snapshot = self._snapshot
        if snapshot is None:
            return None
        return snapshot.get(key)

    def replace(self, snapshot: FeatureFlagsSchema) -> None:
        with self._write_lock:
            self._snapshot = snapshot

    def replace_if_newer(self, snapshot: FeatureFlagsSchema) -> bool:
        with self._write_lock:
            current = self._snapshot
            if current is not None and snapshot.updated_at <= current.updated_at:
                return False
            self._snapshot = snapshot
            return True
