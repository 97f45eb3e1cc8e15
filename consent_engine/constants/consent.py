"""
Consent Constants

Enumerations shared by the region resolver, blocking engine, signal
translator and consent log store.
"""

from enum import Enum


class ConsentCategory(str, Enum):
    """Known consent categories a visitor can grant or deny."""

    NECESSARY = "necessary"
    FUNCTIONAL = "functional"
    ANALYTICS = "analytics"
    MARKETING = "marketing"


class ComplianceMode(str, Enum):
    """Legal regime applied to a region."""

    GDPR = "gdpr"
    UK_GDPR = "uk_gdpr"
    CCPA = "ccpa"
    LGPD = "lgpd"
    POPIA = "popia"
    PIPEDA = "pipeda"
    PRIVACY_ACT = "privacy_act"
    DEFAULT = "default"


class ResourceKind(str, Enum):
    """Kind of page resource a blocking rule guards."""

    EXTERNAL_SCRIPT = "external_script"
    INLINE_SCRIPT = "inline_script"
    IFRAME = "iframe"
    PIXEL = "pixel"


class BlockingAction(str, Enum):
    """What happens to a resource while consent is missing."""

    BLOCK_UNTIL_CONSENT = "block_until_consent"
    REPLACE_WITH_PLACEHOLDER = "replace_with_placeholder"


class ConsentSource(str, Enum):
    """How a consent record came to exist."""

    BANNER = "banner"
    API = "api"
    WITHDRAW = "withdraw"
    IMPORT = "import"


DEFAULT_REGION = "DEFAULT"

# Google Consent Mode v2 consent types, all denied until mapped
GCM_DENIED = "denied"
GCM_GRANTED = "granted"
GCM_DEFAULTS = {
    "analytics_storage": GCM_DENIED,
    "ad_storage": GCM_DENIED,
    "ad_user_data": GCM_DENIED,
    "ad_personalization": GCM_DENIED,
}

# Simplified GPP / US Privacy tokens
GPP_OPT_OUT = "1---"
GPP_NOT_OPTED_OUT = "1NYN"
