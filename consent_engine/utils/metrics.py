"""
Prometheus Metrics Module

Consent engine metrics using the prometheus_client library.
"""

from prometheus_client import Counter, Histogram, Info

APP_INFO = Info("consent_engine_app", "Consent engine application information")


def set_app_info(version: str, environment: str) -> None:
    APP_INFO.info({"version": version, "environment": environment})


# =============================================================================
# Region Resolution Metrics
# =============================================================================

REGION_CACHE_HITS_TOTAL = Counter(
    "consent_region_cache_hits_total",
    "Region resolutions served from cache",
)

REGION_CACHE_MISSES_TOTAL = Counter(
    "consent_region_cache_misses_total",
    "Region resolutions that required a provider lookup",
)

REGION_RESOLUTIONS_TOTAL = Counter(
    "consent_region_resolutions_total",
    "Resolved regions",
    ["region"],
)

GEO_LOOKUP_FAILURES_TOTAL = Counter(
    "consent_geo_lookup_failures_total",
    "Geolocation provider errors",
    ["provider"],
)

GEO_LOOKUP_DURATION_SECONDS = Histogram(
    "consent_geo_lookup_duration_seconds",
    "Geolocation provider lookup duration in seconds",
    ["provider"],
    buckets=(0.001, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# =============================================================================
# Blocking Metrics
# =============================================================================

RESOURCES_BLOCKED_TOTAL = Counter(
    "consent_resources_blocked_total",
    "Resources queued because their consent category was not granted",
    ["rule_id"],
)

# =============================================================================
# Consent Log Metrics
# =============================================================================

CONSENT_OPERATIONS_TOTAL = Counter(
    "consent_operations_total",
    "Consent log operations",
    ["operation"],  # saved, withdrawn, partially_withdrawn, deleted
)

CONSENT_RECORDS_PRUNED_TOTAL = Counter(
    "consent_records_pruned_total",
    "Consent log records removed by retention pruning",
)


# =============================================================================
# Helper Functions
# =============================================================================


def record_region_cache(hit: bool) -> None:
    (REGION_CACHE_HITS_TOTAL if hit else REGION_CACHE_MISSES_TOTAL).inc()


def record_geo_failure(provider: str) -> None:
    GEO_LOOKUP_FAILURES_TOTAL.labels(provider=provider).inc()


def record_resource_blocked(rule_id: str) -> None:
    RESOURCES_BLOCKED_TOTAL.labels(rule_id=rule_id).inc()


def record_consent_operation(operation: str) -> None:
    """Record a consent operation (saved/withdrawn/partially_withdrawn/deleted)."""
    CONSENT_OPERATIONS_TOTAL.labels(operation=operation).inc()


def record_pruned(count: int) -> None:
    if count > 0:
        CONSENT_RECORDS_PRUNED_TOTAL.inc(count)
