"""
Consent Orchestrator

Wires the region resolver, blocking engine, consent store and signal
translator together for a single request.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from consent_engine.models.consent_log import ConsentLog
from consent_engine.plugins.registry import HookRegistry, hook_registry
from consent_engine.schemas.consent import ConsentLogFilters, RegionResolution, RegionStatistics, is_granted
from consent_engine.schemas.policy import ConsentConfig
from consent_engine.services.blocking_service import BlockingEngine
from consent_engine.services.consent_service import ConsentStore
from consent_engine.services.region_service import RegionResolver
from consent_engine.services.signal_service import SignalTranslator
from consent_engine.utils.security import hash_ip, hash_user_agent

logger = logging.getLogger(__name__)


class ConsentOrchestrator:
    """
    Per-request facade over the consent components.

    The region resolution for a client IP is computed once per orchestrator
    and reused by every call that needs it.
    """

    def __init__(
        self,
        db: AsyncSession,
        config: ConsentConfig,
        resolver: RegionResolver | None = None,
        registry: HookRegistry | None = None,
    ):
        self.config = config
        self.registry = registry or hook_registry
        self.resolver = resolver or RegionResolver(config, registry=self.registry)
        self.store = ConsentStore(db, config, registry=self.registry)
        self.translator = SignalTranslator(config, registry=self.registry)
        self._resolutions: dict[str, RegionResolution] = {}

    async def resolve(self, ip: str) -> RegionResolution:
        if ip not in self._resolutions:
            self._resolutions[ip] = await self.resolver.resolve(ip)
        return self._resolutions[ip]

    def blocking_engine(self, region: str) -> BlockingEngine:
        """A fresh engine loaded with the region's rules."""
        engine = BlockingEngine(self.config, registry=self.registry)
        engine.load_rules_for_region(region)
        return engine

    async def save_preferences(
        self,
        session_id: str,
        categories: dict[str, Any],
        ip: str,
        user_agent: str | None = None,
        user_id: int | None = None,
        region: str | None = None,
        banner_version: str | None = None,
        purposes: dict[str, Any] | None = None,
        source: str = "banner",
    ) -> tuple[int | None, str]:
        """
        Record a consent decision for the visitor.

        The region is detected from the IP unless given explicitly. The
        compliance mode in force is stored in the record's metadata.

        Returns:
            (record id or None, region code)
        """
        resolution = await self.resolve(ip)
        region_code = (region or resolution.region).strip().upper()
        policy = self.config.policy_for(region_code)

        preferences: dict[str, Any] = {
            "session_id": session_id,
            "region": region_code,
            "categories": categories,
            "user_id": user_id,
            "purposes": purposes,
            "source": source,
            "ip_hash": hash_ip(ip) if ip else None,
            "user_agent_hash": hash_user_agent(user_agent) if user_agent else None,
            "metadata": {"mode": policy.mode.value, "country": resolution.country},
        }
        if banner_version:
            preferences["banner_version"] = banner_version

        record_id = await self.store.save(preferences)
        if record_id is not None:
            self.translator.emit_category_events(categories)
        return record_id, region_code

    async def get_status(self, session_id: str, user_id: int = 0) -> ConsentLog | None:
        return await self.store.current_status(session_id, user_id)

    async def withdraw(self, session_id: str, categories: list[str] | None = None) -> bool:
        """Withdraw all consent, or only the named categories."""
        previous = await self.store.current_status(session_id) if session_id else None
        withdrawn = await self.store.withdraw(session_id, tuple(categories or ()))
        if withdrawn:
            names = categories or [name for name in (previous.categories if previous else {}) if name != "necessary"]
            self.translator.emit_category_events({name: False for name in names})
        return withdrawn

    async def list_logs(self, filters: ConsentLogFilters | None = None) -> dict[str, Any]:
        return await self.store.paginate(filters)

    async def region_statistics(self, filters: ConsentLogFilters | None = None) -> RegionStatistics:
        return await self.store.region_statistics(filters)

    async def consents(self, session_id: str | None, ip: str, user_id: int = 0) -> dict[str, bool]:
        """
        Categories of the visitor's active record, or the region's defaults.

        Fails closed: with neither, every category is denied.
        """
        record = await self.store.current_status(session_id, user_id) if session_id else None
        if record is not None:
            return dict(record.categories)

        resolution = await self.resolve(ip)
        return dict(self.config.policy_for(resolution.region).default_consents)

    async def signals(self, session_id: str | None, ip: str, user_id: int = 0) -> dict[str, Any]:
        """Regional signals plus the dataLayer event for the visitor's consent state."""
        resolution = await self.resolve(ip)
        consents = await self.consents(session_id, ip, user_id)
        payload = self.translator.emit_regional_signals(consents, resolution.region)
        return {
            **payload,
            "consents": consents,
            "datalayer": self.translator.datalayer_event(consents, {"include_gcm": True}),
        }

    async def blocking_summary(self, session_id: str | None, ip: str, user_id: int = 0) -> dict[str, Any]:
        """Rules in force for the visitor's region and which of them currently block."""
        resolution = await self.resolve(ip)
        consents = await self.consents(session_id, ip, user_id)
        engine = self.blocking_engine(resolution.region)
        return {
            "rules": [rule.id for rule in engine.rules],
            "blocked": [rule.id for rule in engine.rules if not is_granted(consents, rule.required_category)],
        }
