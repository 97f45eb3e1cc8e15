"""
Policy Schemas

Pydantic models for region policies, blocking rules and the consent
configuration object that is built once at startup and injected into the
region resolver, blocking engine, signal translator and consent store.
"""

import re
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

from consent_engine.constants import (
    BLOCKING_RULE_CATALOGUE,
    CCPA_NOTICE_REGIONS,
    DEFAULT_REGION,
    GCM_ALSO_EMIT_REGIONS,
    GCM_REGIONS,
    REGIONAL_PRESETS,
    BlockingAction,
    ComplianceMode,
    ResourceKind,
)

# "/pattern/flags" notation marks a regular expression
_DELIMITED_REGEX = re.compile(r"^/(?P<body>.+)/(?P<flags>[imsx]*)$")
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


class RegionPolicy(BaseModel):
    """Compliance policy for one region code."""

    model_config = ConfigDict(frozen=True)

    region: str = Field(..., min_length=1)
    mode: ComplianceMode = ComplianceMode.DEFAULT
    label: str | None = None
    requires_prior_consent: bool = False
    blocking_rule_ids: tuple[str, ...] = ()
    countries: tuple[str, ...] = ()
    retention_days: int | None = Field(None, gt=0)
    categories: tuple[str, ...] = ()
    default_consents: dict[str, bool] = Field(default_factory=dict)

    @field_validator("region")
    @classmethod
    def normalize_region(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("countries")
    @classmethod
    def normalize_countries(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(country.strip().upper() for country in v if country.strip())


class BlockingRule(BaseModel):
    """
    A pattern guarding a kind of page resource behind a consent category.

    The pattern is a substring unless ``is_regex`` is set or the pattern is
    written in ``/body/flags`` notation.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    resource_kind: ResourceKind
    pattern: str = Field(..., min_length=1)
    required_category: str = Field(..., min_length=1)
    action: BlockingAction
    is_regex: bool = False

    _compiled: re.Pattern | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def compile_pattern(self) -> "BlockingRule":
        delimited = _DELIMITED_REGEX.match(self.pattern)
        if delimited:
            flags = 0
            for flag in delimited.group("flags"):
                flags |= _REGEX_FLAGS[flag]
            self._compiled = re.compile(delimited.group("body"), flags)
        elif self.is_regex:
            self._compiled = re.compile(self.pattern)
        return self

    @property
    def is_pattern_regex(self) -> bool:
        return self._compiled is not None

    def matches(self, url: str) -> bool:
        """Return True if the resource URL is covered by this rule."""
        if self._compiled is not None:
            return self._compiled.search(url) is not None
        return self.pattern in url


class SignalPolicy(BaseModel):
    """Which regions receive which third-party signal payloads."""

    model_config = ConfigDict(frozen=True)

    gcm_regions: tuple[str, ...] = tuple(GCM_REGIONS)
    gcm_also_emit_regions: tuple[str, ...] = tuple(GCM_ALSO_EMIT_REGIONS)
    ccpa_notice_regions: tuple[str, ...] = tuple(CCPA_NOTICE_REGIONS)

    def emits_gcm(self, region: str) -> bool:
        return region in self.gcm_regions or region in self.gcm_also_emit_regions

    def emits_ccpa_notice(self, region: str) -> bool:
        return region in self.ccpa_notice_regions


class ConsentConfig:
    """
    Immutable bundle of region policies, the rule catalogue and signal policy.

    Construct once (see build_consent_config) and pass to each component.
    The country -> region inverse index is computed here, once.
    """

    def __init__(
        self,
        regions: dict[str, RegionPolicy],
        rule_catalogue: dict[str, BlockingRule],
        signal_policy: SignalPolicy | None = None,
    ):
        if DEFAULT_REGION not in regions:
            raise ValueError(f"Region policies must include a {DEFAULT_REGION} policy")

        self._regions = MappingProxyType(dict(regions))
        self._rule_catalogue = MappingProxyType(dict(rule_catalogue))
        self.signal_policy = signal_policy or SignalPolicy()

        country_map: dict[str, str] = {}
        for code, policy in self._regions.items():
            if code == DEFAULT_REGION:
                continue
            for country in policy.countries:
                country_map[country] = code
        self._country_region_map = MappingProxyType(country_map)

    @property
    def regions(self) -> MappingProxyType:
        return self._regions

    @property
    def rule_catalogue(self) -> MappingProxyType:
        return self._rule_catalogue

    @property
    def country_region_map(self) -> MappingProxyType:
        return self._country_region_map

    def policy_for(self, region: str | None) -> RegionPolicy:
        """Return the policy for a region code, falling back to DEFAULT."""
        code = (region or "").strip().upper()
        return self._regions.get(code) or self._regions[DEFAULT_REGION]

    def region_for_country(self, country: str | None) -> str:
        return self._country_region_map.get((country or "").strip().upper(), DEFAULT_REGION)


def build_consent_config(
    presets: dict[str, dict[str, Any]] | None = None,
    catalogue: dict[str, dict[str, Any]] | None = None,
    signal_policy: SignalPolicy | None = None,
) -> ConsentConfig:
    """
    Build the consent configuration from preset dictionaries.

    Args:
        presets: Region code -> preset dict (defaults to REGIONAL_PRESETS)
        catalogue: Rule id -> rule dict (defaults to BLOCKING_RULE_CATALOGUE)
        signal_policy: Region sets for signal emission

    Returns:
        ConsentConfig
    """
    presets = REGIONAL_PRESETS if presets is None else presets
    catalogue = BLOCKING_RULE_CATALOGUE if catalogue is None else catalogue

    regions = {
        code.upper(): RegionPolicy(region=code, **preset)
        for code, preset in presets.items()
    }
    rules = {rule_id: BlockingRule(**rule) for rule_id, rule in catalogue.items()}

    return ConsentConfig(regions=regions, rule_catalogue=rules, signal_policy=signal_policy)
