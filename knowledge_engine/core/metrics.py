"""Prometheus metrics for monitoring source aggregation.

Provides counters and histograms for tracking:
- Cache hit/miss rates
- Source call success/failure rates and latency
- Orchestrator deadline overruns
- Fallback chain outcomes
"""

from prometheus_client import Counter, Histogram

# Cache metrics
cache_hits_total = Counter(
    "knowledge_cache_hits_total",
    "Total cache hits",
    ["cache_type"],  # key prefix: time, weather, exchange, duckduckgo...
)

cache_misses_total = Counter(
    "knowledge_cache_misses_total",
    "Total cache misses",
    ["cache_type"],
)

# Source call metrics
source_calls_total = Counter(
    "knowledge_source_calls_total",
    "Total external source calls",
    ["source", "status"],  # success/empty/error/timeout
)

source_call_duration_seconds = Histogram(
    "knowledge_source_call_duration_seconds",
    "External source call duration in seconds",
    ["source"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# Orchestrator metrics
orchestrator_deadline_exceeded_total = Counter(
    "knowledge_orchestrator_deadline_exceeded_total",
    "Categorized fetches dropped because the fan-out budget elapsed",
    ["category"],
)

orchestrator_fanout_duration_seconds = Histogram(
    "knowledge_orchestrator_fanout_duration_seconds",
    "Duration of the categorized fan-out in seconds",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 4.0, 6.0, 10.0],
)

# Fallback chain metrics
fallback_chain_outcomes_total = Counter(
    "knowledge_fallback_chain_outcomes_total",
    "Fallback chain terminal outcomes",
    ["step"],  # direct_answer, encyclopedia, dictionary, tech_qa, full_search, partial, none
)
