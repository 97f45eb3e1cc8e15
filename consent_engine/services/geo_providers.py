"""
Geolocation Providers

Each provider maps an IP address to an ISO 3166-1 alpha-2 country code.
An empty string means "unknown". Providers may raise; the region resolver
treats any exception as an unknown country and moves on to the next one.
"""

import csv
import ipaddress
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx

from consent_engine.config import settings
from consent_engine.plugins.hooks import FILTER_GEO_LOOKUP_COUNTRY
from consent_engine.plugins.registry import HookRegistry

logger = logging.getLogger(__name__)


@runtime_checkable
class GeoProvider(Protocol):
    name: str

    async def lookup_country(self, ip: str) -> str: ...


def _normalize_country(value) -> str:
    code = str(value or "").strip().upper()
    return code if len(code) == 2 and code.isalpha() else ""


class FilterLookupProvider:
    """
    Country override supplied by extensions.

    Extensions subscribe to the ``geo.lookup_country`` filter; each receives
    the current answer (initially "") and the IP, and returns a country code.
    """

    name = "filter"

    def __init__(self, registry: HookRegistry):
        self.registry = registry

    async def lookup_country(self, ip: str) -> str:
        if not self.registry.has_subscribers(FILTER_GEO_LOOKUP_COUNTRY):
            return ""
        return _normalize_country(self.registry.apply_filters(FILTER_GEO_LOOKUP_COUNTRY, "", ip))


class LocalDatabaseProvider:
    """
    Offline lookup against a CSV table of ``network,country`` rows.

    Example file:

        network,country
        81.2.69.0/24,GB
        2a02:c7f::/32,GB

    The most specific matching network wins. Rows that do not parse are
    skipped. The file is read on first lookup.
    """

    name = "local_database"

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._networks: list[tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, str]] | None = None

    def _load(self) -> list:
        networks = []
        with self.path.open(newline="", encoding="utf-8") as handle:
            for row in csv.reader(handle):
                if len(row) < 2:
                    continue
                country = _normalize_country(row[1])
                try:
                    network = ipaddress.ip_network(row[0].strip(), strict=False)
                except ValueError:
                    continue
                if country:
                    networks.append((network, country))

        networks.sort(key=lambda entry: entry[0].prefixlen, reverse=True)
        logger.info("Loaded %d networks from geo database %s", len(networks), self.path)
        return networks

    async def lookup_country(self, ip: str) -> str:
        if self._networks is None:
            self._networks = self._load()

        address = ipaddress.ip_address(ip)
        for network, country in self._networks:
            if address.version == network.version and address in network:
                return country
        return ""


class HttpGeoProvider:
    """
    Remote lookup against an ip-api.com style JSON endpoint.

    The URL template must contain ``{ip}``. The response is expected to carry
    ``countryCode`` and, optionally, ``status`` ("success"/"fail").
    """

    name = "http"

    def __init__(
        self,
        url_template: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url_template = url_template or settings.geo_api_url
        self.timeout = timeout if timeout is not None else settings.geo_lookup_timeout
        self.transport = transport

    async def lookup_country(self, ip: str) -> str:
        # Private and reserved ranges cannot be geolocated
        if not ipaddress.ip_address(ip).is_global:
            return ""

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(self.url_template.format(ip=ip))
            response.raise_for_status()
            data = response.json()

        if data.get("status", "success") != "success":
            return ""
        return _normalize_country(data.get("countryCode"))


def default_providers(registry: HookRegistry) -> list:
    """Build the provider chain from settings: filter, local database, HTTP."""
    providers: list = [FilterLookupProvider(registry)]
    if settings.geo_database_path:
        providers.append(LocalDatabaseProvider(settings.geo_database_path))
    if settings.geo_api_enabled:
        providers.append(HttpGeoProvider())
    return providers
