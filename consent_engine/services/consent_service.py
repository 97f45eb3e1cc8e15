"""
Consent Log Service

Persistence and reporting for consent decisions: save, current status,
full and partial withdrawal with an audit trail, filtered listing, export,
regional statistics and retention pruning.

Validation failures are reported as None/False rather than raised.
Database failures on read paths degrade to "no consent"/empty results.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Select, and_, delete, func, not_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from consent_engine.config import settings
from consent_engine.constants import DEFAULT_REGION, ConsentSource
from consent_engine.models.consent_log import ConsentLog
from consent_engine.plugins.hooks import HOOK_CONSENT_PRUNED, HOOK_CONSENT_SAVED, HOOK_CONSENT_WITHDRAWN
from consent_engine.plugins.registry import HookRegistry, hook_registry
from consent_engine.schemas.consent import (
    CategoryTally,
    ConsentLogFilters,
    ConsentPreferences,
    RegionStatistics,
)
from consent_engine.schemas.policy import ConsentConfig, build_consent_config
from consent_engine.utils import security
from consent_engine.utils.metrics import record_consent_operation, record_pruned
from consent_engine.utils.security import sanitize_csv_field

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "json")

CSV_HEADERS = [
    "ID",
    "User ID",
    "Session ID",
    "Region",
    "Categories",
    "Purposes",
    "Banner Version",
    "Timestamp",
    "Expiry Date",
    "Source",
    "IP Hash",
    "User Agent Hash",
    "Withdrawn At",
    "Metadata",
]

UNKNOWN_REGION = "UNKNOWN"


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def _json_or_blank(value: Any) -> str:
    return json.dumps(value, sort_keys=True) if value else ""


class ConsentStore:
    """
    Consent log repository bound to one database session.

    Usage:
        store = ConsentStore(db, config)
        record_id = await store.save({"session_id": sid, "region": "EU", "categories": {...}})
    """

    # Identifier helpers, usable without an instance
    hash_ip = staticmethod(security.hash_ip)
    hash_user_agent = staticmethod(security.hash_user_agent)
    generate_session_id = staticmethod(security.generate_session_id)
    get_client_ip = staticmethod(security.get_client_ip)

    def __init__(self, db: AsyncSession, config: ConsentConfig | None = None, registry: HookRegistry | None = None):
        self.db = db
        self.config = config or build_consent_config()
        self.registry = registry or hook_registry

    # ── Writes ────────────────────────────────────────────────────────────────

    async def save(self, preferences: ConsentPreferences | dict[str, Any]) -> int | None:
        """
        Persist a consent decision.

        The session's previous active record, if any, is marked withdrawn in
        the same transaction so a session has at most one active record.

        Args:
            preferences: ConsentPreferences or an equivalent dict

        Returns:
            The new record id, or None if the input is invalid or the write fails
        """
        if not isinstance(preferences, ConsentPreferences):
            try:
                preferences = ConsentPreferences.model_validate(preferences)
            except PydanticValidationError as exc:
                logger.warning("Rejected consent preferences: %s", exc.errors())
                return None

        now = datetime.now(timezone.utc)
        expiry_date = preferences.expiry_date
        if expiry_date is None:
            retention_days = self.config.policy_for(preferences.region).retention_days
            expiry_date = now + timedelta(days=retention_days or settings.default_retention_days)

        record = ConsentLog(
            user_id=preferences.user_id,
            session_id=preferences.session_id,
            region=preferences.region,
            categories=preferences.categories,
            purposes=preferences.purposes,
            banner_version=preferences.banner_version or settings.default_banner_version,
            timestamp=now,
            expiry_date=expiry_date,
            source=preferences.source.value,
            ip_hash=preferences.ip_hash,
            user_agent_hash=preferences.user_agent_hash,
            metadata_=preferences.metadata,
        )

        try:
            await self.db.execute(
                update(ConsentLog)
                .where(ConsentLog.session_id == preferences.session_id, ConsentLog.withdrawn_at.is_(None))
                .values(withdrawn_at=now)
            )
            self.db.add(record)
            await self.db.commit()
            await self.db.refresh(record)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Failed to save consent for region %s", preferences.region)
            return None

        record_consent_operation("saved")
        logger.info("Consent saved: id=%d region=%s source=%s", record.id, record.region, record.source)
        self.registry.do_action(
            HOOK_CONSENT_SAVED,
            {
                "id": record.id,
                "session_id": record.session_id,
                "user_id": record.user_id,
                "region": record.region,
                "categories": dict(record.categories),
            },
        )
        return record.id

    async def withdraw(self, session_id: str, categories: list[str] | tuple[str, ...] = ()) -> bool:
        """
        Withdraw consent for a session.

        With no categories every active record of the session is marked
        withdrawn. With categories, the named keys are removed from the
        current record: the current record is marked withdrawn and a copy
        without those keys, possibly empty, is inserted with source
        "withdraw", all in one transaction.

        Returns:
            True if anything was withdrawn, False otherwise
        """
        if not session_id:
            return False

        names = {str(category).strip().lower() for category in categories if str(category).strip()}
        now = datetime.now(timezone.utc)

        try:
            if not names:
                result = await self.db.execute(
                    update(ConsentLog)
                    .where(ConsentLog.session_id == session_id, ConsentLog.withdrawn_at.is_(None))
                    .values(withdrawn_at=now)
                )
                await self.db.commit()
                withdrawn = result.rowcount > 0
                if withdrawn:
                    record_consent_operation("withdrawn")
                    logger.info("Consent fully withdrawn for %d record(s)", result.rowcount)
                    self.registry.do_action(
                        HOOK_CONSENT_WITHDRAWN, {"session_id": session_id, "categories": [], "full": True}
                    )
                return withdrawn

            return await self._withdraw_categories(session_id, names, now)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Failed to withdraw consent")
            return False

    async def _withdraw_categories(self, session_id: str, names: set[str], now: datetime) -> bool:
        stmt = self._active_statement(session_id).with_for_update()
        current = (await self.db.execute(stmt)).scalars().first()
        if current is None:
            return False

        remaining = {key: value for key, value in (current.categories or {}).items() if key not in names}
        current.withdrawn_at = now

        # A superseding row is written even when no category remains
        self.db.add(
            ConsentLog(
                user_id=current.user_id,
                session_id=current.session_id,
                region=current.region,
                categories=remaining,
                purposes=current.purposes,
                banner_version=current.banner_version,
                timestamp=now,
                expiry_date=current.expiry_date,
                source=ConsentSource.WITHDRAW.value,
                ip_hash=current.ip_hash,
                user_agent_hash=current.user_agent_hash,
                metadata_=current.metadata_,
            )
        )
        await self.db.commit()

        record_consent_operation("partially_withdrawn")
        logger.info("Consent partially withdrawn from record %d: %s", current.id, sorted(names))
        self.registry.do_action(
            HOOK_CONSENT_WITHDRAWN,
            {"session_id": session_id, "categories": sorted(names), "full": not remaining},
        )
        return True

    async def delete(self, record_id: int) -> bool:
        """Hard-delete a single consent record."""
        try:
            result = await self.db.execute(delete(ConsentLog).where(ConsentLog.id == record_id))
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Failed to delete consent record %s", record_id)
            return False

        deleted = result.rowcount > 0
        if deleted:
            record_consent_operation("deleted")
            logger.info("Consent record %d deleted", record_id)
        return deleted

    async def prune_expired(self, retention_days: int) -> int:
        """
        Delete records older than the retention period.

        Returns:
            Number of deleted records; 0 when retention_days is not positive
        """
        if retention_days <= 0:
            return 0

        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        deleted = await self._delete_older_than(cutoff)
        logger.info("Consent retention: deleted %d records older than %s (%d days)", deleted, cutoff.isoformat(), retention_days)
        self.registry.do_action(HOOK_CONSENT_PRUNED, {"deleted": deleted, "retention_days": retention_days})
        return deleted

    async def prune_by_region_policy(self) -> dict[str, int]:
        """
        Apply each region's configured retention period to its records.

        Records whose region is not configured follow the DEFAULT policy.

        Returns:
            Region code -> number of deleted records
        """
        now = datetime.now(timezone.utc)
        known = [code for code in self.config.regions if code != DEFAULT_REGION]
        results: dict[str, int] = {}

        for code, policy in self.config.regions.items():
            if not policy.retention_days:
                continue
            if code == DEFAULT_REGION:
                scope = or_(ConsentLog.region == DEFAULT_REGION, not_(ConsentLog.region.in_(known)))
            else:
                scope = ConsentLog.region == code
            cutoff = now - timedelta(days=policy.retention_days)
            results[code] = await self._delete_older_than(cutoff, scope)

        total = sum(results.values())
        logger.info("Consent regional retention: deleted %d records %s", total, results)
        self.registry.do_action(HOOK_CONSENT_PRUNED, {"deleted": total, "by_region": results})
        return results

    async def _delete_older_than(self, cutoff: datetime, scope=None) -> int:
        condition = ConsentLog.timestamp < cutoff
        if scope is not None:
            condition = and_(condition, scope)
        try:
            result = await self.db.execute(delete(ConsentLog).where(condition))
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Consent retention delete failed")
            return 0

        deleted = result.rowcount or 0
        record_pruned(deleted)
        return deleted

    # ── Reads ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _active_statement(session_id: str) -> Select:
        stmt = select(ConsentLog).where(ConsentLog.session_id == session_id, ConsentLog.withdrawn_at.is_(None))
        return stmt.order_by(ConsentLog.timestamp.desc(), ConsentLog.id.desc()).limit(1)

    async def current_status(self, session_id: str, user_id: int = 0) -> ConsentLog | None:
        """
        Return the newest active record for a session, or None.

        user_id is accepted for callers that know the visitor, but matching
        is by session only: consent given anonymously still applies after
        login.
        """
        if not session_id:
            return None
        try:
            result = await self.db.execute(self._active_statement(session_id))
        except SQLAlchemyError:
            logger.exception("Failed to read consent status")
            return None
        return result.scalars().first()

    async def history(self, session_id: str) -> list[ConsentLog]:
        """All records of a session, withdrawn included, oldest first."""
        try:
            result = await self.db.execute(
                select(ConsentLog)
                .where(ConsentLog.session_id == session_id)
                .order_by(ConsentLog.timestamp.asc(), ConsentLog.id.asc())
            )
        except SQLAlchemyError:
            logger.exception("Failed to read consent history")
            return []
        return list(result.scalars().all())

    @staticmethod
    def _apply_filters(stmt: Select, filters: ConsentLogFilters) -> Select:
        if filters.region:
            stmt = stmt.where(ConsentLog.region == filters.region)
        if filters.user_id:
            stmt = stmt.where(ConsentLog.user_id == filters.user_id)
        if filters.start_date:
            stmt = stmt.where(ConsentLog.timestamp >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(ConsentLog.timestamp <= filters.end_date)
        if not filters.include_withdrawn:
            stmt = stmt.where(ConsentLog.withdrawn_at.is_(None))
        return stmt

    @staticmethod
    def _apply_ordering(stmt: Select, filters: ConsentLogFilters) -> Select:
        column = getattr(ConsentLog, filters.orderby)
        if filters.order == "asc":
            return stmt.order_by(column.asc(), ConsentLog.id.asc())
        return stmt.order_by(column.desc(), ConsentLog.id.desc())

    async def list(self, filters: ConsentLogFilters | None = None) -> list[ConsentLog]:
        """Return one page of consent records matching the filters."""
        filters = filters or ConsentLogFilters()
        stmt = self._apply_ordering(self._apply_filters(select(ConsentLog), filters), filters)
        stmt = stmt.offset(filters.offset).limit(filters.per_page)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError:
            logger.exception("Failed to list consent logs")
            return []
        return list(result.scalars().all())

    async def count(self, filters: ConsentLogFilters | None = None) -> int:
        """Count consent records matching the filters, ignoring pagination."""
        filters = filters or ConsentLogFilters()
        stmt = self._apply_filters(select(func.count(ConsentLog.id)), filters)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError:
            logger.exception("Failed to count consent logs")
            return 0
        return result.scalar_one() or 0

    async def paginate(self, filters: ConsentLogFilters | None = None) -> dict[str, Any]:
        filters = filters or ConsentLogFilters()
        total = await self.count(filters)
        return {
            "logs": await self.list(filters),
            "total": total,
            "page": filters.page,
            "per_page": filters.per_page,
            "pages": math.ceil(total / filters.per_page) if total else 0,
        }

    async def _all_matching(self, filters: ConsentLogFilters, limit: int) -> list[ConsentLog]:
        stmt = self._apply_ordering(self._apply_filters(select(ConsentLog), filters), filters).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def export(self, format: str = "csv", filters: ConsentLogFilters | None = None) -> str:
        """
        Export matching records as CSV or JSON.

        Unknown formats export CSV. At most settings.export_max_rows rows are
        exported, ignoring the page settings of the filters.

        Returns:
            CSV text (empty string when nothing matches) or a JSON array
        """
        format = (format or "").strip().lower()
        if format not in EXPORT_FORMATS:
            format = "csv"
        filters = filters or ConsentLogFilters()

        try:
            records = await self._all_matching(filters, settings.export_max_rows)
        except SQLAlchemyError:
            logger.exception("Failed to export consent logs")
            records = []

        if format == "json":
            return json.dumps([record.to_dict() for record in records], default=str)

        if not records:
            return ""

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_HEADERS)
        for record in records:
            writer.writerow(
                [
                    sanitize_csv_field(field)
                    for field in (
                        record.id,
                        record.user_id if record.user_id else "",
                        record.session_id,
                        record.region,
                        json.dumps(record.categories, sort_keys=True),
                        _json_or_blank(record.purposes),
                        record.banner_version,
                        _iso(record.timestamp),
                        _iso(record.expiry_date),
                        record.source,
                        record.ip_hash or "",
                        record.user_agent_hash or "",
                        _iso(record.withdrawn_at),
                        _json_or_blank(record.metadata_),
                    )
                ]
            )
        logger.info("Exported %d consent records as CSV", len(records))
        return output.getvalue()

    async def region_statistics(self, filters: ConsentLogFilters | None = None) -> RegionStatistics:
        """
        Aggregate consent outcomes over the matching records.

        A record counts as accepted when any of its categories is granted,
        "necessary" included. The mode of a record is the one recorded in
        its metadata, or else the configured mode of its region.
        """
        filters = filters or ConsentLogFilters()
        try:
            records = await self._all_matching(filters, settings.export_max_rows)
        except SQLAlchemyError:
            logger.exception("Failed to compute consent statistics")
            return RegionStatistics()

        stats = RegionStatistics()
        accepted_total = 0
        for record in records:
            categories = record.categories or {}
            stats.total_consents += 1
            if any(categories.values()):
                accepted_total += 1

            region = record.region or UNKNOWN_REGION
            stats.by_region[region] = stats.by_region.get(region, 0) + 1

            mode = (record.metadata_ or {}).get("mode") or self.config.policy_for(record.region).mode.value
            stats.by_mode[mode] = stats.by_mode.get(mode, 0) + 1

            for category, granted in categories.items():
                tally = stats.by_category.setdefault(category, CategoryTally())
                if granted:
                    tally.accepted += 1
                else:
                    tally.rejected += 1

        stats.total_rejections = stats.total_consents - accepted_total
        if stats.total_consents:
            stats.acceptance_rate = round(accepted_total / stats.total_consents * 100, 2)
        return stats
