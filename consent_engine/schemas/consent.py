"""
Consent Schemas

Pydantic models for region resolution results, consent preferences,
log filters and API request/response bodies.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from consent_engine.constants import DEFAULT_REGION, ComplianceMode, ConsentSource

# Pagination limits for consent log listing
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 500

# Sortable consent log columns
ALLOWED_ORDERBY = ("timestamp", "region", "user_id", "id", "banner_version")
DEFAULT_ORDERBY = "timestamp"
DEFAULT_ORDER = "desc"


def normalize_categories(categories: dict[str, Any]) -> dict[str, Any]:
    """
    Lower-case category keys, dropping blank ones.

    Values are left to pydantic's bool parsing, so "false" or "0" is a
    refusal and anything unparseable is rejected.
    """
    normalized: dict[str, Any] = {}
    for key, value in categories.items():
        name = str(key).strip().lower()
        if name:
            normalized[name] = value
    return normalized


class RegionResolution(BaseModel):
    """Outcome of resolving a client IP to a region and policy."""

    model_config = ConfigDict(frozen=True)

    region: str = DEFAULT_REGION
    country: str = ""
    mode: ComplianceMode = ComplianceMode.DEFAULT
    requires_prior_consent: bool = False


class ConsentPreferences(BaseModel):
    """A consent decision to be persisted."""

    session_id: str = Field(..., min_length=1, max_length=64)
    region: str = Field(..., min_length=1, max_length=10)
    categories: dict[str, bool] = Field(..., min_length=1)
    user_id: int | None = None
    purposes: dict[str, Any] | None = None
    banner_version: str = Field("1.0.0", max_length=50)
    source: ConsentSource = ConsentSource.BANNER
    ip_hash: str | None = Field(None, max_length=64)
    user_agent_hash: str | None = Field(None, max_length=64)
    expiry_date: datetime | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("session_id")
    @classmethod
    def strip_session_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "session_id must not be blank"
            raise ValueError(msg)
        return v

    @field_validator("region")
    @classmethod
    def normalize_region(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            msg = "region must not be blank"
            raise ValueError(msg)
        return v

    @field_validator("categories", mode="before")
    @classmethod
    def validate_categories(cls, v: Any) -> dict[str, Any]:
        if not isinstance(v, dict):
            msg = "categories must be a mapping of category name to boolean"
            raise ValueError(msg)
        return normalize_categories(v)

    @field_validator("user_id")
    @classmethod
    def drop_anonymous_user(cls, v: int | None) -> int | None:
        return v if v and v > 0 else None


class ConsentLogFilters(BaseModel):
    """
    Filters for listing, counting, exporting and summarising consent logs.

    Out-of-range pagination and unknown sort values fall back to safe
    defaults instead of failing validation.
    """

    region: str | None = None
    user_id: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    include_withdrawn: bool = False
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    orderby: str = DEFAULT_ORDERBY
    order: str = DEFAULT_ORDER

    @field_validator("region")
    @classmethod
    def normalize_region(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip().upper() or None

    @field_validator("user_id")
    @classmethod
    def ignore_anonymous_user(cls, v: int | None) -> int | None:
        return v if v and v > 0 else None

    @field_validator("page", mode="before")
    @classmethod
    def clamp_page(cls, v: Any) -> int:
        try:
            page = int(v)
        except (TypeError, ValueError):
            return 1
        return max(1, page)

    @field_validator("per_page", mode="before")
    @classmethod
    def clamp_per_page(cls, v: Any) -> int:
        try:
            per_page = int(v)
        except (TypeError, ValueError):
            return DEFAULT_PER_PAGE
        if per_page < 1:
            return DEFAULT_PER_PAGE
        return min(per_page, MAX_PER_PAGE)

    @field_validator("orderby", mode="before")
    @classmethod
    def restrict_orderby(cls, v: Any) -> str:
        value = str(v or "").strip().lower()
        return value if value in ALLOWED_ORDERBY else DEFAULT_ORDERBY

    @field_validator("order", mode="before")
    @classmethod
    def restrict_order(cls, v: Any) -> str:
        value = str(v or "").strip().lower()
        return value if value in ("asc", "desc") else DEFAULT_ORDER

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class ConsentLogResponse(BaseModel):
    """Consent log record as returned by the API"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int | None = None
    session_id: str
    region: str
    categories: dict[str, bool]
    purposes: dict[str, Any] | None = None
    banner_version: str
    source: str
    ip_hash: str | None = None
    user_agent_hash: str | None = None
    timestamp: datetime
    expiry_date: datetime | None = None
    withdrawn_at: datetime | None = None
    metadata: dict[str, Any] | None = Field(None, validation_alias="metadata_")


class ConsentLogListResponse(BaseModel):
    """Paginated consent log listing"""

    logs: list[ConsentLogResponse]
    total: int
    page: int
    per_page: int
    pages: int


class SavePreferencesRequest(BaseModel):
    """Body of a consent preferences submission"""

    categories: dict[str, bool] = Field(..., min_length=1)
    banner_version: str = Field("1.0.0", max_length=50)
    region: str | None = Field(None, max_length=10, description="Region override; detected from IP when omitted")
    purposes: dict[str, Any] | None = None
    source: ConsentSource = ConsentSource.BANNER


class SavePreferencesResponse(BaseModel):
    success: bool
    message: str
    consent_id: int
    region: str


class WithdrawRequest(BaseModel):
    """Body of a withdrawal request; no categories withdraws everything"""

    categories: list[str] = Field(default_factory=list)


class WithdrawResponse(BaseModel):
    success: bool
    message: str
    withdrawn_at: datetime


class CategoryTally(BaseModel):
    accepted: int = 0
    rejected: int = 0


class RegionStatistics(BaseModel):
    """Aggregate consent statistics over a filtered record set"""

    total_consents: int = 0
    total_rejections: int = 0
    acceptance_rate: float = 0.0
    by_region: dict[str, int] = Field(default_factory=dict)
    by_mode: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, CategoryTally] = Field(default_factory=dict)


def is_granted(consents: dict[str, Any] | None, category: str) -> bool:
    """Absent categories are denied; "necessary" is always granted."""
    if category == "necessary":
        return True
    return bool((consents or {}).get(category, False))
