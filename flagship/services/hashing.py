import hashlib
from typing import Optional

DELIMITER = ":"


def generate_hash(flag_key: str, targeting_key: str, rule_name: Optional[str] = None) -> int:
    # unsigned 32-bit, stable across processes and interpreter versions.
    # Parts are joined unescaped: ("a:b", "c") and ("a", "b:c") share a bucket.
    if rule_name is None:
        value = DELIMITER.join((flag_key, targeting_key))
    else:
        value = DELIMITER.join((flag_key, rule_name, targeting_key))
    digest = hashlib.sha1(value.encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


def percentile(flag_key: str, targeting_key: str, rule_name: Optional[str] = None) -> int:
    # 0..99
    return generate_hash(flag_key, targeting_key, rule_name) % 100


def in_rollout(flag_key: str, targeting_key: str, rollout_percentage: int) -> bool:
    return percentile(flag_key, targeting_key) < rollout_percentage
