import logging
import threading
from typing import Any, Callable, ClassVar, Dict, Optional

from flagship.cache import SnapshotCache
from flagship.config import FlagshipConfig
from flagship.errors import ConfigError, FlagshipError
from flagship.metrics import EVALS
from flagship.models import EvaluationContext, EvaluationResult, Reason
from flagship.schemas import Feature
from flagship.services import engine
from flagship.store import FlagStore
from flagship.sync import SyncCoordinator, SyncOutcome
from flagship.transport import FlagFetcher, HttpFlagFetcher

logger = logging.getLogger(__name__)

Resolver = Callable[[Optional[Feature], EvaluationContext, Optional[str], Any], EvaluationResult]


class FlagshipClient:
    """Evaluates flags against the locally cached snapshot.

    Evaluation never touches the network: values come from the last snapshot
    the background sync accepted (or the durable cache on a cold start).
    """

    _instances: ClassVar[Dict[str, "FlagshipClient"]] = {}
    _instances_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        config: FlagshipConfig,
        fetcher: Optional[FlagFetcher] = None,
        cache: Optional[SnapshotCache] = None,
        on_sync_failure: Optional[Callable[[FlagshipError], None]] = None,
    ):
        if not isinstance(config, FlagshipConfig):
            raise ConfigError("config must be a FlagshipConfig")
        self.config = config
        self._store = FlagStore()
        self._fetcher = fetcher or HttpFlagFetcher(config.base_url, config.api_key, timeout=config.timeout)
        self._context = EvaluationContext()
        self._sync = SyncCoordinator(
            self._fetcher,
            self._store,
            interval=config.refresh_interval,
            cache=cache,
            api_key=config.api_key,
            on_failure=on_sync_failure,
        )
        self._sync.restore()

    @classmethod
    def get_instance(cls, config: FlagshipConfig, **kwargs: Any) -> "FlagshipClient":
        """Return the process-wide client for config.api_key, creating it on first use."""
        with cls._instances_lock:
            client = cls._instances.get(config.api_key)
            if client is None:
                client = cls(config, **kwargs)
                cls._instances[config.api_key] = client
            return client

    @property
    def store(self) -> FlagStore:
        return self._store

    @property
    def context(self) -> EvaluationContext:
        return self._context

    def set_context(self, targeting_key: str, attributes: Optional[Dict[str, Any]] = None) -> None:
        self._context = EvaluationContext.build(targeting_key, attributes)

    def _resolve(
        self,
        resolver: Resolver,
        flag_key: str,
        default: Any,
        targeting_key: Optional[str],
        context: Optional[Dict[str, Any]],
    ) -> EvaluationResult:
        current = self._context
        if context is None:
            ctx = current
        else:
            try:
                ctx = EvaluationContext.build(targeting_key or current.targeting_key, context)
            except TypeError as e:
                result = EvaluationResult(default, Reason.ERROR, error_message=str(e))
                EVALS.labels(flag_key, result.reason.value).inc()
                return result
        result = resolver(self._store.get_feature(flag_key), ctx, targeting_key, default)
        EVALS.labels(flag_key, result.reason.value).inc()
        return result

    def resolve_boolean(self, flag_key: str, default: bool, targeting_key: Optional[str] = None, context: Optional[Dict[str, Any]] = None) -> EvaluationResult:
        return self._resolve(engine.resolve_boolean, flag_key, default, targeting_key, context)

    def resolve_string(self, flag_key: str, default: str, targeting_key: Optional[str] = None, context: Optional[Dict[str, Any]] = None) -> EvaluationResult:
        return self._resolve(engine.resolve_string, flag_key, default, targeting_key, context)

    def resolve_integer(self, flag_key: str, default: int, targeting_key: Optional[str] = None, context: Optional[Dict[str, Any]] = None) -> EvaluationResult:
        return self._resolve(engine.resolve_integer, flag_key, default, targeting_key, context)

    def resolve_double(self, flag_key: str, default: float, targeting_key: Optional[str] = None, context: Optional[Dict[str, Any]] = None) -> EvaluationResult:
        return self._resolve(engine.resolve_double, flag_key, default, targeting_key, context)

    def resolve_object(
        self, flag_key: str, default: Dict[str, Any], targeting_key: Optional[str] = None, context: Optional[Dict[str, Any]] = None
    ) -> EvaluationResult:
        return self._resolve(engine.resolve_object, flag_key, default, targeting_key, context)

    def resolve_semver(self, flag_key: str, default: str, targeting_key: Optional[str] = None, context: Optional[Dict[str, Any]] = None) -> EvaluationResult:
        return self._resolve(engine.resolve_semver, flag_key, default, targeting_key, context)

    def is_enabled(self, flag_key: str, targeting_key: Optional[str] = None, context: Optional[Dict[str, Any]] = None) -> bool:
        return self.resolve_boolean(flag_key, False, targeting_key, context).value

    def start_sync(self) -> None:
        self._sync.start()

    def stop_sync(self) -> None:
        self._sync.stop()

    def force_sync(self) -> SyncOutcome:
        return self._sync.sync_once()

    def shutdown(self) -> None:
        self._sync.stop()
        close = getattr(self._fetcher, "close", None)
        if close is not None:
            close()
        with self._instances_lock:
            if self._instances.get(self.config.api_key) is self:
                del self._instances[self.config.api_key]

    def __enter__(self) -> "FlagshipClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()
