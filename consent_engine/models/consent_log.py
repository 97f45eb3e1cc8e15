"""
ConsentLog model: the consent audit trail.

Each row is one consent decision for a session. Changes never update a
decision in place: a new row is inserted and the prior one is marked
withdrawn, so the history of a session is the full set of its rows.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from consent_engine.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConsentLog(Base):
    """A single consent decision. Non-null withdrawn_at means inactive."""

    __tablename__ = "consent_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    session_id = Column(String(64), nullable=False)
    region = Column(String(10), nullable=False, index=True)
    categories = Column(JSON, nullable=False)
    purposes = Column(JSON, nullable=True)
    banner_version = Column(String(50), nullable=False, default="1.0.0")
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    # banner, api, withdraw, import
    source = Column(String(50), nullable=False, default="banner")
    ip_hash = Column(String(64), nullable=True)
    user_agent_hash = Column(String(64), nullable=True)
    withdrawn_at = Column(DateTime(timezone=True), nullable=True, index=True)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=True)

    __table_args__ = (Index("idx_consent_logs_session_active", "session_id", "withdrawn_at"),)

    @property
    def is_active(self) -> bool:
        return self.withdrawn_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "region": self.region,
            "categories": self.categories,
            "purposes": self.purposes,
            "banner_version": self.banner_version,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "source": self.source,
            "ip_hash": self.ip_hash,
            "user_agent_hash": self.user_agent_hash,
            "withdrawn_at": self.withdrawn_at.isoformat() if self.withdrawn_at else None,
            "metadata": self.metadata_,
        }

    def __repr__(self) -> str:
        return f"<ConsentLog id={self.id} session={self.session_id} region={self.region}>"
