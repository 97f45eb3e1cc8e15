"""Constants package for the Regional Consent Engine."""

from .blocking_rules import BLOCKING_RULE_CATALOGUE
from .consent import (
    DEFAULT_REGION,
    BlockingAction,
    ComplianceMode,
    ConsentCategory,
    GCM_DEFAULTS,
    GCM_DENIED,
    GCM_GRANTED,
    GPP_NOT_OPTED_OUT,
    GPP_OPT_OUT,
    ConsentSource,
    ResourceKind,
)
from .regions import CCPA_NOTICE_REGIONS, GCM_ALSO_EMIT_REGIONS, GCM_REGIONS, REGIONAL_PRESETS

__all__ = [
    # Consent enums
    "ConsentCategory",
    "ComplianceMode",
    "ResourceKind",
    "BlockingAction",
    "ConsentSource",
    "DEFAULT_REGION",
    # Signal tokens
    "GCM_DEFAULTS",
    "GCM_DENIED",
    "GCM_GRANTED",
    "GPP_OPT_OUT",
    "GPP_NOT_OPTED_OUT",
    # Regional presets
    "REGIONAL_PRESETS",
    "GCM_REGIONS",
    "GCM_ALSO_EMIT_REGIONS",
    "CCPA_NOTICE_REGIONS",
    # Rule catalogue
    "BLOCKING_RULE_CATALOGUE",
]
