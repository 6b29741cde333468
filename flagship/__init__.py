from flagship.cache import MemorySnapshotCache, RedisSnapshotCache, SnapshotCache
from flagship.client import FlagshipClient
from flagship.config import FlagshipConfig
from flagship.database import SqlSnapshotCache
from flagship.errors import ConfigError, EvaluationError, FlagshipError, SchemaError, TransportError
from flagship.models import EvaluationContext, EvaluationResult, FlagType, Operator, Reason
from flagship.schemas import FeatureFlagsSchema, parse_schema
from flagship.services.hashing import generate_hash
from flagship.store import FlagStore
from flagship.sync import SyncCoordinator, SyncOutcome
from flagship.transport import FetchResponse, HttpFlagFetcher

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "EvaluationContext",
    "EvaluationError",
    "EvaluationResult",
    "FeatureFlagsSchema",
    "FetchResponse",
    "FlagStore",
    "FlagType",
    "FlagshipClient",
    "FlagshipConfig",
    "FlagshipError",
    "HttpFlagFetcher",
    "MemorySnapshotCache",
    "Operator",
    "Reason",
    "RedisSnapshotCache",
    "SchemaError",
    "SnapshotCache",
    "SqlSnapshotCache",
    "SyncCoordinator",
    "SyncOutcome",
    "TransportError",
    "generate_hash",
    "parse_schema",
]
