from .consent import (
    ConsentLogFilters,
    ConsentLogListResponse,
    ConsentLogResponse,
    ConsentPreferences,
    RegionResolution,
    RegionStatistics,
)
from .policy import BlockingRule, ConsentConfig, RegionPolicy, SignalPolicy, build_consent_config

# Define the public API of this module
__all__ = [
    "ConsentLogFilters",
    "ConsentLogListResponse",
    "ConsentLogResponse",
    "ConsentPreferences",
    "RegionResolution",
    "RegionStatistics",
    "BlockingRule",
    "ConsentConfig",
    "RegionPolicy",
    "SignalPolicy",
    "build_consent_config",
]
