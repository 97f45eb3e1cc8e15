"""
Consent Signal Service

Translates a consent categories map into the formats third-party platforms
consume: Google Consent Mode v2, a simplified IAB TCF object, a simplified
GPP / US Privacy string, and a Google Tag Manager dataLayer event.

The derive_* helpers are pure functions of their arguments. Extension
callbacks only run from emit_regional_signals and emit_category_events.
"""

import json
import logging
import time
from typing import Any

from consent_engine.constants import (
    GCM_DEFAULTS,
    GCM_DENIED,
    GCM_GRANTED,
    GPP_NOT_OPTED_OUT,
    GPP_OPT_OUT,
    ConsentCategory,
)
from consent_engine.plugins.hooks import (
    FILTER_SIGNALS_REGIONAL,
    HOOK_CONSENT_CATEGORY_SET,
    HOOK_SIGNALS_EMITTED,
)
from consent_engine.plugins.registry import HookRegistry, hook_registry
from consent_engine.schemas.consent import is_granted
from consent_engine.schemas.policy import ConsentConfig

logger = logging.getLogger(__name__)

CCPA_NOTICE_TYPE = "do_not_sell_link"


def _state(granted: bool) -> str:
    return GCM_GRANTED if granted else GCM_DENIED


def _to_json(value: Any) -> str:
    # Safe to embed inside a <script> element
    return json.dumps(value, separators=(",", ":")).replace("</", "<\\/")


class SignalTranslator:
    """Builds regional consent signals for a consent state."""

    def __init__(self, config: ConsentConfig, registry: HookRegistry | None = None):
        self.config = config
        self.registry = registry or hook_registry

    def emit_regional_signals(
        self,
        consents: dict[str, Any] | None,
        region: str,
        options: dict[str, bool] | None = None,
    ) -> dict[str, Any]:
        """
        Build the signal payload appropriate for a region.

        GCM regions get ``signals.gcm_v2``; CCPA regions get
        ``signals.ccpa_notice``; every other region gets no signals.
        ``signals.regional`` filters may then adjust the payload.

        Args:
            consents: Consent categories map
            region: Region code
            options: GCM toggles (see derive_gcm)

        Returns:
            {"region": region, "signals": {...}}
        """
        region = (region or "").strip().upper()
        policy = self.config.signal_policy
        payload: dict[str, Any] = {"region": region, "signals": {}}

        if policy.emits_gcm(region):
            payload["signals"]["gcm_v2"] = self.derive_gcm(consents, options)

        if policy.emits_ccpa_notice(region):
            payload["signals"]["ccpa_notice"] = {
                "region": region,
                "notice_type": CCPA_NOTICE_TYPE,
                "applied": True,
            }

        filtered = self.registry.apply_filters(FILTER_SIGNALS_REGIONAL, payload, region, consents)
        if isinstance(filtered, dict):
            payload = filtered
        else:
            logger.warning("Ignoring %s filter result of type %s", FILTER_SIGNALS_REGIONAL, type(filtered).__name__)

        self.registry.do_action(HOOK_SIGNALS_EMITTED, {"region": region, "payload": payload})
        return payload

    def emit_category_events(self, consents: dict[str, Any] | None) -> int:
        """
        Fire ``consent.category_set`` once per category in the map.

        Returns:
            Number of events fired
        """
        fired = 0
        for category, granted in (consents or {}).items():
            self.registry.do_action(HOOK_CONSENT_CATEGORY_SET, {"category": category, "granted": bool(granted)})
            fired += 1
        return fired

    # ── Pure derivations ──────────────────────────────────────────────────────

    @staticmethod
    def derive_gcm(consents: dict[str, Any] | None, options: dict[str, bool] | None = None) -> dict[str, str]:
        """
        Google Consent Mode v2 payload.

        Every key defaults to "denied". Each key can be switched off through
        ``options`` (``{"ad_user_data": False}``), in which case it stays
        "denied" regardless of consent.
        """
        options = {**{key: True for key in GCM_DEFAULTS}, **(options or {})}
        analytics = is_granted(consents, ConsentCategory.ANALYTICS.value)
        marketing = is_granted(consents, ConsentCategory.MARKETING.value)
        functional = is_granted(consents, ConsentCategory.FUNCTIONAL.value)

        payload = dict(GCM_DEFAULTS)
        if options["analytics_storage"]:
            payload["analytics_storage"] = _state(analytics)
        if options["ad_storage"]:
            payload["ad_storage"] = _state(marketing)
        if options["ad_user_data"]:
            payload["ad_user_data"] = _state(marketing and functional)
        if options["ad_personalization"]:
            payload["ad_personalization"] = _state(marketing)
        return payload

    @staticmethod
    def derive_tcf_lite(
        consents: dict[str, Any] | None,
        purposes: dict[str, Any] | list | None = None,
        vendors: dict[str, Any] | list | None = None,
    ) -> dict[str, Any]:
        """Simplified TCF-style object; purposes and vendors pass through untouched."""
        payload: dict[str, Any] = {
            "gdprApplies": True,
            "consents": {
                "necessary": True,
                "analytics": is_granted(consents, ConsentCategory.ANALYTICS.value),
                "marketing": is_granted(consents, ConsentCategory.MARKETING.value),
                "functional": is_granted(consents, ConsentCategory.FUNCTIONAL.value),
            },
        }
        if purposes:
            payload["purposes"] = purposes
        if vendors:
            payload["vendors"] = vendors
        return payload

    @staticmethod
    def derive_gpp_lite(consents: dict[str, Any] | None, options: dict[str, Any] | None = None) -> str:
        opt_out = bool((options or {}).get("opt_out")) or not is_granted(consents, ConsentCategory.MARKETING.value)
        return GPP_OPT_OUT if opt_out else GPP_NOT_OPTED_OUT

    @classmethod
    def datalayer_event(
        cls,
        consents: dict[str, Any] | None,
        options: dict[str, Any] | None = None,
        timestamp: int | None = None,
    ) -> dict[str, Any]:
        """
        Google Tag Manager ``consent_update`` event.

        Pass ``{"include_gcm": True}`` to nest the GCM payload under
        ``consentUpdate``.
        """
        analytics = is_granted(consents, ConsentCategory.ANALYTICS.value)
        marketing = is_granted(consents, ConsentCategory.MARKETING.value)
        functional = is_granted(consents, ConsentCategory.FUNCTIONAL.value)

        event: dict[str, Any] = {
            "event": "consent_update",
            "event_category": "consent",
            "event_label": "user_consent_update",
            "consent_analytics": analytics,
            "consent_marketing": marketing,
            "consent_functional": functional,
            "consent_necessary": True,
            "consent_all_granted": analytics and marketing and functional,
            "consent_all_rejected": not (analytics or marketing or functional),
            "consent_timestamp": int(time.time()) if timestamp is None else timestamp,
        }
        if (options or {}).get("include_gcm"):
            event["consentUpdate"] = cls.derive_gcm(consents)
        return event

    # ── JavaScript snippets ───────────────────────────────────────────────────

    @classmethod
    def gcm_javascript(cls, consents: dict[str, Any] | None) -> str:
        return f"gtag('consent', 'update', {_to_json(cls.derive_gcm(consents))});"

    @classmethod
    def datalayer_javascript(cls, consents: dict[str, Any] | None) -> str:
        event = cls.datalayer_event(consents, {"include_gcm": True})
        return f"window.dataLayer = window.dataLayer || []; window.dataLayer.push({_to_json(event)});"

    @classmethod
    def all_signals_javascript(cls, consents: dict[str, Any] | None) -> str:
        """dataLayer push, per-category DOM events and a guarded gtag update."""
        lines = [cls.datalayer_javascript(consents)]
        for category, granted in (consents or {}).items():
            detail = _to_json({"category": category, "granted": bool(granted)})
            lines.append(f"document.dispatchEvent(new CustomEvent('consent_category_set', {{detail: {detail}}}));")
        lines.append(f"if (typeof gtag !== 'undefined') {{ {cls.gcm_javascript(consents)} }}")
        return "\n".join(lines) + "\n"
