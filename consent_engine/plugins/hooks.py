"""
Hook Constants

Centralised list of hook names that extensions can subscribe to.
Hook names follow the `category.action` convention.

Filters receive a value and return a (possibly modified) value.
Actions receive a payload and return nothing.
"""

from __future__ import annotations

# ── Geolocation / region ──────────────────────────────────────────────────────
FILTER_GEO_LOOKUP_COUNTRY = "geo.lookup_country"
HOOK_REGION_DETECTED = "region.detected"

# ── Blocking ──────────────────────────────────────────────────────────────────
HOOK_BLOCKING_RULES_LOADED = "blocking.rules_loaded"

# ── Signals ───────────────────────────────────────────────────────────────────
FILTER_SIGNALS_REGIONAL = "signals.regional"
HOOK_SIGNALS_EMITTED = "signals.emitted"
HOOK_CONSENT_CATEGORY_SET = "consent.category_set"

# ── Consent lifecycle ─────────────────────────────────────────────────────────
HOOK_CONSENT_SAVED = "consent.saved"
HOOK_CONSENT_WITHDRAWN = "consent.withdrawn"
HOOK_CONSENT_PRUNED = "consent.pruned"

# ── Master lists ──────────────────────────────────────────────────────────────
ALL_FILTERS: list[str] = [
    FILTER_GEO_LOOKUP_COUNTRY,
    FILTER_SIGNALS_REGIONAL,
]

ALL_HOOKS: list[str] = [
    HOOK_REGION_DETECTED,
    HOOK_BLOCKING_RULES_LOADED,
    HOOK_SIGNALS_EMITTED,
    HOOK_CONSENT_CATEGORY_SET,
    HOOK_CONSENT_SAVED,
    HOOK_CONSENT_WITHDRAWN,
    HOOK_CONSENT_PRUNED,
]
