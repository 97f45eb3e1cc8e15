"""
Consent Routes

Endpoints for recording, reading and withdrawing visitor consent, plus the
consent log listing, export and statistics used by administrators.

The visitor is identified by the consent session cookie, which is issued
on first contact.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from consent_engine.auth import require_admin
from consent_engine.config import settings
from consent_engine.database import get_db
from consent_engine.exceptions import ConsentNotFoundError, ValidationError, WithdrawalError
from consent_engine.schemas.consent import (
    ConsentLogFilters,
    ConsentLogListResponse,
    ConsentLogResponse,
    RegionStatistics,
    SavePreferencesRequest,
    SavePreferencesResponse,
    WithdrawRequest,
    WithdrawResponse,
)
from consent_engine.schemas.policy import ConsentConfig, build_consent_config
from consent_engine.services.orchestrator import ConsentOrchestrator
from consent_engine.services.region_service import RegionResolver
from consent_engine.utils.security import generate_session_id, get_client_ip

router = APIRouter(prefix="/consent", tags=["Consent"])

logger = logging.getLogger(__name__)

EXPORT_MEDIA_TYPES = {"csv": "text/csv", "json": "application/json"}


# ── Dependencies ──────────────────────────────────────────────────────────────


@lru_cache
def get_consent_config() -> ConsentConfig:
    return build_consent_config()


def get_region_resolver(config: ConsentConfig = Depends(get_consent_config)) -> RegionResolver:
    return RegionResolver(config)


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    config: ConsentConfig = Depends(get_consent_config),
    resolver: RegionResolver = Depends(get_region_resolver),
) -> ConsentOrchestrator:
    return ConsentOrchestrator(db, config, resolver=resolver)


def client_ip(request: Request) -> str:
    return get_client_ip(request.headers, request.client.host if request.client else None)


def consent_session(request: Request, response: Response) -> str:
    """Read the consent session cookie, issuing a new one when absent."""
    session_id = request.cookies.get(settings.session_cookie_name)
    if not session_id:
        session_id = generate_session_id()
        response.set_cookie(
            key=settings.session_cookie_name,
            value=session_id,
            max_age=settings.session_cookie_max_age,
            httponly=True,
            samesite="lax",
        )
    return session_id


def log_filters(
    region: str | None = None,
    user_id: int | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    include_withdrawn: bool = False,
    page: int = Query(1),
    per_page: int = Query(20),
    orderby: str = "timestamp",
    order: str = "desc",
) -> ConsentLogFilters:
    return ConsentLogFilters(
        region=region,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
        include_withdrawn=include_withdrawn,
        page=page,
        per_page=per_page,
        orderby=orderby,
        order=order,
    )


# ── Visitor endpoints ─────────────────────────────────────────────────────────


@router.post("/preferences", response_model=SavePreferencesResponse)
async def save_preferences(
    body: SavePreferencesRequest,
    request: Request,
    session_id: str = Depends(consent_session),
    ip: str = Depends(client_ip),
    orchestrator: ConsentOrchestrator = Depends(get_orchestrator),
) -> SavePreferencesResponse:
    """Record the visitor's consent choices for their region."""
    record_id, region = await orchestrator.save_preferences(
        session_id=session_id,
        categories=body.categories,
        ip=ip,
        user_agent=request.headers.get("user-agent"),
        region=body.region,
        banner_version=body.banner_version,
        purposes=body.purposes,
        source=body.source.value,
    )
    if record_id is None:
        raise ValidationError("Consent preferences could not be saved", field="categories")

    return SavePreferencesResponse(success=True, message="Consent saved", consent_id=record_id, region=region)


@router.get("/status", response_model=ConsentLogResponse)
async def get_status(
    session_id: str = Depends(consent_session),
    orchestrator: ConsentOrchestrator = Depends(get_orchestrator),
):
    record = await orchestrator.get_status(session_id)
    if record is None:
        raise ConsentNotFoundError("No active consent for this session")
    return ConsentLogResponse.model_validate(record)


@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw_consent(
    body: WithdrawRequest,
    session_id: str = Depends(consent_session),
    orchestrator: ConsentOrchestrator = Depends(get_orchestrator),
) -> WithdrawResponse:
    """Withdraw all consent, or only the listed categories."""
    if not await orchestrator.withdraw(session_id, body.categories):
        raise WithdrawalError("No active consent to withdraw", categories=body.categories)

    message = "Consent withdrawn" if not body.categories else "Consent withdrawn for: " + ", ".join(body.categories)
    return WithdrawResponse(success=True, message=message, withdrawn_at=datetime.now(timezone.utc))


@router.get("/region")
async def get_region(
    session_id: str = Depends(consent_session),
    ip: str = Depends(client_ip),
    orchestrator: ConsentOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Detected region, its policy and the blocking rules in force."""
    resolution = await orchestrator.resolve(ip)
    policy = orchestrator.config.policy_for(resolution.region)
    return {
        **resolution.model_dump(mode="json"),
        "label": policy.label,
        "categories": list(policy.categories),
        "default_consents": policy.default_consents,
        "blocking": await orchestrator.blocking_summary(session_id, ip),
    }


@router.get("/signals")
async def get_signals(
    session_id: str = Depends(consent_session),
    ip: str = Depends(client_ip),
    orchestrator: ConsentOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    return await orchestrator.signals(session_id, ip)


# ── Administration ────────────────────────────────────────────────────────────


@router.get("/logs", response_model=ConsentLogListResponse, dependencies=[Depends(require_admin)])
async def list_logs(
    filters: ConsentLogFilters = Depends(log_filters),
    orchestrator: ConsentOrchestrator = Depends(get_orchestrator),
):
    page = await orchestrator.list_logs(filters)
    return ConsentLogListResponse(
        logs=[ConsentLogResponse.model_validate(record) for record in page["logs"]],
        total=page["total"],
        page=page["page"],
        per_page=page["per_page"],
        pages=page["pages"],
    )


@router.get("/logs/export", dependencies=[Depends(require_admin)])
async def export_logs(
    format: str = Query("csv"),
    filters: ConsentLogFilters = Depends(log_filters),
    orchestrator: ConsentOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Download matching consent records as CSV or JSON."""
    export_format = format.lower() if format.lower() in EXPORT_MEDIA_TYPES else "csv"
    content = await orchestrator.store.export(export_format, filters)
    filename = f"consent-logs-{datetime.now(timezone.utc):%Y%m%d-%H%M%S}.{export_format}"
    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPES[export_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/regions/stats", response_model=RegionStatistics, dependencies=[Depends(require_admin)])
async def region_statistics(
    filters: ConsentLogFilters = Depends(log_filters),
    orchestrator: ConsentOrchestrator = Depends(get_orchestrator),
) -> RegionStatistics:
    return await orchestrator.region_statistics(filters)


@router.delete("/logs/{log_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
async def delete_log(
    log_id: int,
    orchestrator: ConsentOrchestrator = Depends(get_orchestrator),
) -> Response:
    if not await orchestrator.store.delete(log_id):
        raise ConsentNotFoundError(f"Consent log {log_id} not found", record_id=log_id)
    logger.info("Consent log %d deleted by administrator", log_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
