"""
Region Resolution Service

Maps a client IP to a country through a chain of geolocation providers,
then to a region code and its compliance policy. Results are cached per
hashed IP in a process-wide TTL cache.
"""

import logging
import time
from collections.abc import Sequence
from types import MappingProxyType

from consent_engine.config import settings
from consent_engine.constants import DEFAULT_REGION
from consent_engine.plugins.hooks import HOOK_REGION_DETECTED
from consent_engine.plugins.registry import HookRegistry, hook_registry
from consent_engine.schemas.consent import RegionResolution
from consent_engine.schemas.policy import ConsentConfig, RegionPolicy
from consent_engine.services.geo_providers import GeoProvider, default_providers
from consent_engine.utils.cache import TTLCache
from consent_engine.utils.metrics import (
    GEO_LOOKUP_DURATION_SECONDS,
    REGION_RESOLUTIONS_TOTAL,
    record_geo_failure,
    record_region_cache,
)
from consent_engine.utils.security import hash_ip

logger = logging.getLogger(__name__)

# Shared by every resolver in the process
region_cache = TTLCache(max_size=settings.region_cache_max_size, ttl=settings.region_cache_ttl)


class RegionResolver:
    """Resolves IP addresses to region policies."""

    def __init__(
        self,
        config: ConsentConfig,
        providers: Sequence[GeoProvider] | None = None,
        cache: TTLCache | None = None,
        registry: HookRegistry | None = None,
    ):
        self.config = config
        self.registry = registry or hook_registry
        self.providers = list(providers) if providers is not None else default_providers(self.registry)
        self.cache = cache if cache is not None else region_cache

    async def resolve(self, ip: str) -> RegionResolution:
        """
        Resolve an IP address to its region.

        Never raises: provider failures count as an unknown country, which
        resolves to the DEFAULT region.

        Args:
            ip: Client IP address

        Returns:
            RegionResolution with region, country, mode and prior-consent flag
        """
        cache_key = hash_ip(ip or "")
        cached = self.cache.get(cache_key)
        if cached is not None:
            record_region_cache(hit=True)
            return cached
        record_region_cache(hit=False)

        try:
            country = await self.lookup_country(ip)
            resolution = self._build_resolution(country)
        except Exception:
            logger.exception("Region resolution failed; using %s", DEFAULT_REGION)
            resolution = self._build_resolution("")

        self.cache.set(cache_key, resolution)
        REGION_RESOLUTIONS_TOTAL.labels(region=resolution.region).inc()

        self.registry.do_action(HOOK_REGION_DETECTED, {"ip_hash": cache_key, "resolution": resolution})
        return resolution

    async def lookup_country(self, ip: str) -> str:
        """Ask each provider in turn; the first non-empty answer wins."""
        for provider in self.providers:
            start_time = time.perf_counter()
            try:
                country = await provider.lookup_country(ip)
            except Exception as exc:
                record_geo_failure(provider.name)
                logger.warning("Geo provider %s failed for lookup: %s", provider.name, exc)
                continue
            finally:
                GEO_LOOKUP_DURATION_SECONDS.labels(provider=provider.name).observe(time.perf_counter() - start_time)

            country = (country or "").strip().upper()
            if country:
                logger.debug("Geo provider %s resolved country %s", provider.name, country)
                return country
        return ""

    def _build_resolution(self, country: str) -> RegionResolution:
        region = self.config.region_for_country(country)
        policy = self.config.policy_for(region)
        return RegionResolution(
            region=policy.region,
            country=country,
            mode=policy.mode,
            requires_prior_consent=policy.requires_prior_consent,
        )

    # ── Read-only accessors ───────────────────────────────────────────────────

    def policy_for(self, region: str | None) -> RegionPolicy:
        return self.config.policy_for(region)

    def is_regulated_region(self, region: str | None) -> bool:
        """Whether the region blocks non-essential scripts until consent is given."""
        return self.config.policy_for(region).requires_prior_consent

    def supported_regions(self) -> list[str]:
        return list(self.config.regions.keys())

    def countries_for(self, region: str) -> list[str]:
        policy = self.config.regions.get((region or "").strip().upper())
        return list(policy.countries) if policy else []

    def region_for_country(self, country: str | None) -> str:
        return self.config.region_for_country(country)

    def country_region_map(self) -> MappingProxyType:
        return self.config.country_region_map
