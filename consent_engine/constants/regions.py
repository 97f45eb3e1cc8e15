"""
Regional Policy Presets

Built-in compliance policy per region code. These are plain data; they are
turned into validated RegionPolicy objects once, by build_consent_config().
"""

_STANDARD_CATEGORIES = ["necessary", "functional", "analytics", "marketing"]

_OPT_IN_DEFAULTS = {
    "necessary": True,
    "functional": False,
    "analytics": False,
    "marketing": False,
}

_OPT_OUT_DEFAULTS = {
    "necessary": True,
    "analytics": True,
    "marketing": True,
}

_FULL_RULE_SET = [
    "google-analytics-4",
    "google-analytics-universal",
    "facebook-pixel",
    "linkedin-insight",
    "twitter-pixel",
    "hotjar",
    "segment",
]

EU_COUNTRIES = [
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR",
    "DE", "GR", "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL",
    "PL", "PT", "RO", "SK", "SI", "ES", "SE",
    # EEA
    "IS", "LI", "NO",
]

REGIONAL_PRESETS: dict[str, dict] = {
    "EU": {
        "mode": "gdpr",
        "label": "European Union (GDPR)",
        "countries": EU_COUNTRIES,
        "requires_prior_consent": True,
        "blocking_rule_ids": _FULL_RULE_SET,
        "retention_days": 365,
        "categories": _STANDARD_CATEGORIES,
        "default_consents": _OPT_IN_DEFAULTS,
    },
    "UK": {
        "mode": "uk_gdpr",
        "label": "United Kingdom (UK GDPR)",
        "countries": ["GB"],
        "requires_prior_consent": True,
        "blocking_rule_ids": _FULL_RULE_SET,
        "retention_days": 365,
        "categories": _STANDARD_CATEGORIES,
        "default_consents": _OPT_IN_DEFAULTS,
    },
    "US-CA": {
        # Opt-out model: scripts load by default, visitor can disable
        "mode": "ccpa",
        "label": "California, USA (CCPA)",
        "countries": ["US"],
        "requires_prior_consent": False,
        "blocking_rule_ids": [],
        "retention_days": 90,
        "categories": ["necessary", "analytics", "marketing"],
        "default_consents": _OPT_OUT_DEFAULTS,
    },
    "BR": {
        "mode": "lgpd",
        "label": "Brazil (LGPD)",
        "countries": ["BR"],
        "requires_prior_consent": True,
        "blocking_rule_ids": ["google-analytics-4", "facebook-pixel", "linkedin-insight"],
        "retention_days": 180,
        "categories": _STANDARD_CATEGORIES,
        "default_consents": _OPT_IN_DEFAULTS,
    },
    "AU": {
        "mode": "privacy_act",
        "label": "Australia (Privacy Act)",
        "countries": ["AU"],
        "requires_prior_consent": True,
        "blocking_rule_ids": ["google-analytics-4", "facebook-pixel"],
        "retention_days": 365,
        "categories": _STANDARD_CATEGORIES,
        "default_consents": _OPT_IN_DEFAULTS,
    },
    "CA": {
        "mode": "pipeda",
        "label": "Canada (PIPEDA)",
        "countries": ["CA"],
        "requires_prior_consent": True,
        "blocking_rule_ids": ["google-analytics-4", "facebook-pixel", "linkedin-insight"],
        "retention_days": 365,
        "categories": _STANDARD_CATEGORIES,
        "default_consents": _OPT_IN_DEFAULTS,
    },
    "ZA": {
        "mode": "popia",
        "label": "South Africa (POPIA)",
        "countries": ["ZA"],
        "requires_prior_consent": True,
        "blocking_rule_ids": ["google-analytics-4", "facebook-pixel"],
        "retention_days": 365,
        "categories": _STANDARD_CATEGORIES,
        "default_consents": _OPT_IN_DEFAULTS,
    },
    "DEFAULT": {
        "mode": "default",
        "label": "Default",
        "countries": [],
        "requires_prior_consent": False,
        "blocking_rule_ids": [],
        "retention_days": 90,
        "categories": ["necessary", "analytics", "marketing"],
        "default_consents": _OPT_OUT_DEFAULTS,
    },
}

# Regions that get Google Consent Mode v2 signals
GCM_REGIONS = ["EU", "UK"]
GCM_ALSO_EMIT_REGIONS = ["BR", "AU", "CA", "ZA"]

# Regions that get a CCPA "do not sell" notice instead of GCM
CCPA_NOTICE_REGIONS = ["US-CA"]
