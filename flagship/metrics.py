from prometheus_client import Counter, Histogram

EVALS = Counter("flagship_flag_evaluations_total", "Total flag evaluations", ["key", "reason"])
SYNCS = Counter("flagship_syncs_total", "Total sync cycles", ["result"])
DROPPED_FEATURES = Counter("flagship_dropped_features_total", "Features dropped while parsing a payload")
SYNC_LATENCY = Histogram("flagship_sync_latency_seconds", "Sync cycle latency")
