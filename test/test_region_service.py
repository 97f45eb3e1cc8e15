"""
Tests for region resolution and geolocation providers.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from consent_engine.constants import ComplianceMode
from consent_engine.plugins.hooks import FILTER_GEO_LOOKUP_COUNTRY, HOOK_REGION_DETECTED
from consent_engine.schemas.policy import ConsentConfig, RegionPolicy, build_consent_config
from consent_engine.services.geo_providers import FilterLookupProvider, HttpGeoProvider, LocalDatabaseProvider
from consent_engine.services.region_service import RegionResolver
from consent_engine.utils.cache import TTLCache
from consent_engine.utils.security import hash_ip

from conftest import IP_BRAZIL, IP_CALIFORNIA, IP_GERMANY, IP_JAPAN, StaticGeoProvider


class TestRegionResolution:
    @pytest.mark.asyncio
    async def test_german_ip_resolves_to_eu_gdpr(self, resolver):
        resolution = await resolver.resolve(IP_GERMANY)

        assert resolution.region == "EU"
        assert resolution.country == "DE"
        assert resolution.mode == ComplianceMode.GDPR
        assert resolution.requires_prior_consent is True

    @pytest.mark.asyncio
    async def test_us_ip_resolves_to_california_ccpa(self, resolver):
        resolution = await resolver.resolve(IP_CALIFORNIA)

        assert resolution.region == "US-CA"
        assert resolution.mode == ComplianceMode.CCPA
        assert resolution.requires_prior_consent is False

    @pytest.mark.asyncio
    async def test_unmapped_country_resolves_to_default(self, resolver):
        resolution = await resolver.resolve(IP_JAPAN)

        assert resolution.region == "DEFAULT"
        assert resolution.country == "JP"
        assert resolution.requires_prior_consent is False

    @pytest.mark.asyncio
    async def test_unresolvable_ip_resolves_to_default(self, resolver):
        resolution = await resolver.resolve("192.0.2.55")

        assert resolution.region == "DEFAULT"
        assert resolution.country == ""
        assert resolution.mode == ComplianceMode.DEFAULT
        assert resolution.requires_prior_consent is False

    @pytest.mark.asyncio
    async def test_lowercase_country_is_uppercased(self, consent_config):
        resolver = RegionResolver(
            consent_config, providers=[StaticGeoProvider({"1.2.3.4": "br"})], cache=TTLCache()
        )

        resolution = await resolver.resolve("1.2.3.4")

        assert resolution.country == "BR"
        assert resolution.region == "BR"


class TestRegionCache:
    @pytest.mark.asyncio
    async def test_second_lookup_is_served_from_cache(self, resolver, geo_provider):
        first = await resolver.resolve(IP_GERMANY)
        second = await resolver.resolve(IP_GERMANY)

        assert first == second
        assert geo_provider.calls == [IP_GERMANY]

    @pytest.mark.asyncio
    async def test_cache_is_keyed_by_hashed_ip(self, consent_config, geo_provider):
        cache = TTLCache()
        resolver = RegionResolver(consent_config, providers=[geo_provider], cache=cache)

        await resolver.resolve(IP_BRAZIL)

        assert cache.get(hash_ip(IP_BRAZIL)).region == "BR"
        assert cache.get(IP_BRAZIL) is None

    @pytest.mark.asyncio
    async def test_expired_entry_triggers_new_lookup(self, consent_config, geo_provider):
        now = [1000.0]
        cache = TTLCache(ttl=3600, clock=lambda: now[0])
        resolver = RegionResolver(consent_config, providers=[geo_provider], cache=cache)

        await resolver.resolve(IP_GERMANY)
        now[0] += 3601
        await resolver.resolve(IP_GERMANY)

        assert len(geo_provider.calls) == 2


class TestProviderChain:
    @pytest.mark.asyncio
    async def test_first_non_empty_answer_wins(self, consent_config):
        empty = AsyncMock()
        empty.name = "empty"
        empty.lookup_country.return_value = ""
        later = StaticGeoProvider({IP_GERMANY: "FR"})
        never = AsyncMock()
        never.name = "never"

        resolver = RegionResolver(consent_config, providers=[empty, later, never], cache=TTLCache())
        resolution = await resolver.resolve(IP_GERMANY)

        assert resolution.country == "FR"
        never.lookup_country.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_errors_are_swallowed(self, consent_config):
        failing = AsyncMock()
        failing.name = "failing"
        failing.lookup_country.side_effect = RuntimeError("geo service down")

        resolver = RegionResolver(
            consent_config, providers=[failing, StaticGeoProvider({IP_GERMANY: "DE"})], cache=TTLCache()
        )

        assert (await resolver.resolve(IP_GERMANY)).region == "EU"

    @pytest.mark.asyncio
    async def test_all_providers_failing_resolves_to_default(self, consent_config):
        failing = AsyncMock()
        failing.name = "failing"
        failing.lookup_country.side_effect = httpx.ConnectTimeout("timed out")

        resolver = RegionResolver(consent_config, providers=[failing], cache=TTLCache())
        resolution = await resolver.resolve(IP_GERMANY)

        assert resolution.region == "DEFAULT"
        assert resolution.requires_prior_consent is False

    @pytest.mark.asyncio
    async def test_filter_override_takes_precedence(self, consent_config, registry):
        registry.add_filter(FILTER_GEO_LOOKUP_COUNTRY, lambda country, ip: "ZA")
        resolver = RegionResolver(
            consent_config,
            providers=[FilterLookupProvider(registry), StaticGeoProvider()],
            cache=TTLCache(),
            registry=registry,
        )

        resolution = await resolver.resolve(IP_GERMANY)

        assert resolution.region == "ZA"
        assert resolution.mode == ComplianceMode.POPIA

    @pytest.mark.asyncio
    async def test_region_detected_action_fires(self, resolver, registry):
        events = []
        registry.add_action(HOOK_REGION_DETECTED, events.append)

        await resolver.resolve(IP_GERMANY)

        assert len(events) == 1
        assert events[0]["resolution"].region == "EU"
        assert events[0]["ip_hash"] == hash_ip(IP_GERMANY)


class TestHttpGeoProvider:
    @pytest.mark.asyncio
    async def test_parses_country_code(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"status": "success", "countryCode": "fr"})

        provider = HttpGeoProvider(
            url_template="http://geo.test/json/{ip}", transport=httpx.MockTransport(handler)
        )

        assert await provider.lookup_country("8.8.4.4") == "FR"
        assert str(requests[0].url) == "http://geo.test/json/8.8.4.4"

    @pytest.mark.asyncio
    async def test_failed_status_is_unknown(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"status": "fail"}))
        provider = HttpGeoProvider(url_template="http://geo.test/{ip}", transport=transport)

        assert await provider.lookup_country("8.8.4.4") == ""

    @pytest.mark.asyncio
    async def test_private_address_is_not_looked_up(self):
        handler = AsyncMock()
        provider = HttpGeoProvider(url_template="http://geo.test/{ip}", transport=httpx.MockTransport(handler))

        assert await provider.lookup_country("10.0.0.7") == ""
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_server_error_resolves_to_default(self, consent_config):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        provider = HttpGeoProvider(url_template="http://geo.test/{ip}", transport=transport)
        resolver = RegionResolver(consent_config, providers=[provider], cache=TTLCache())

        assert (await resolver.resolve("8.8.4.4")).region == "DEFAULT"


class TestLocalDatabaseProvider:
    @pytest.mark.asyncio
    async def test_most_specific_network_wins(self, tmp_path):
        path = tmp_path / "geo.csv"
        path.write_text("network,country\n81.0.0.0/8,FR\n81.2.69.0/24,GB\nnot-a-network,XX\n2a02:c7f::/32,GB\n")
        provider = LocalDatabaseProvider(path)

        assert await provider.lookup_country("81.2.69.160") == "GB"
        assert await provider.lookup_country("81.9.9.9") == "FR"
        assert await provider.lookup_country("2a02:c7f:1234::1") == "GB"
        assert await provider.lookup_country("9.9.9.9") == ""


class TestAccessors:
    def test_country_map_excludes_default(self, resolver):
        mapping = resolver.country_region_map()

        assert mapping["DE"] == "EU"
        assert mapping["GB"] == "UK"
        assert mapping["US"] == "US-CA"
        assert "DEFAULT" not in mapping.values()

    def test_country_map_is_read_only(self, resolver):
        with pytest.raises(TypeError):
            resolver.country_region_map()["JP"] = "EU"

    def test_unknown_region_policy_falls_back_to_default(self, resolver):
        assert resolver.policy_for("XX").region == "DEFAULT"
        assert resolver.policy_for("eu").region == "EU"

    def test_is_regulated_region(self, resolver):
        assert resolver.is_regulated_region("EU") is True
        assert resolver.is_regulated_region("uk") is True
        assert resolver.is_regulated_region("US-CA") is False
        assert resolver.is_regulated_region("XX") is False

    def test_countries_and_supported_regions(self, resolver):
        assert resolver.countries_for("UK") == ["GB"]
        assert resolver.countries_for("NOWHERE") == []
        assert set(resolver.supported_regions()) >= {"EU", "UK", "US-CA", "BR", "AU", "CA", "ZA", "DEFAULT"}

    def test_region_for_country(self, resolver):
        assert resolver.region_for_country("no") == "EU"
        assert resolver.region_for_country("") == "DEFAULT"

    def test_config_requires_default_policy(self):
        with pytest.raises(ValueError):
            ConsentConfig(regions={"EU": RegionPolicy(region="EU")}, rule_catalogue={})

    def test_custom_presets(self):
        config = build_consent_config(
            presets={
                "DEFAULT": {"mode": "default"},
                "NZ": {"mode": "privacy_act", "countries": ["nz"], "requires_prior_consent": True},
            }
        )

        assert config.region_for_country("NZ") == "NZ"
        assert config.policy_for("NZ").requires_prior_consent is True
